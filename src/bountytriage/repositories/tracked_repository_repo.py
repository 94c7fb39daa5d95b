"""Tracked repository repository."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bountytriage.db.models.tracked_repository import TrackedRepositoryRow
from bountytriage.repositories.base import BaseRepository
from bountytriage.services.id_generator import generate_id


class TrackedRepositoryRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, TrackedRepositoryRow)

    async def get_by_url(self, url: str) -> TrackedRepositoryRow | None:
        result = await self.session.execute(
            select(TrackedRepositoryRow).where(TrackedRepositoryRow.url == url)
        )
        return result.scalar_one_or_none()

    async def language_for(self, repository_url: str) -> str | None:
        """Language recorded for a repository, matched by web or clone URL."""
        base = repository_url.removesuffix(".git")
        result = await self.session.execute(
            select(TrackedRepositoryRow.language)
            .where(TrackedRepositoryRow.url.in_([base, f"{base}.git"]))
            .where(TrackedRepositoryRow.language.is_not(None))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def mark_touched(
        self,
        url: str,
        full_name: str | None,
        default_branch: str | None,
        branch: str | None,
        language: str | None = None,
    ) -> TrackedRepositoryRow:
        """Record a push and flag the repository for an in-place update."""
        now = datetime.now(timezone.utc)
        row = await self.get_by_url(url)
        if row is None:
            return await self.create(
                repository_id=generate_id("repo_"),
                url=url,
                full_name=full_name,
                default_branch=default_branch,
                language=language,
                last_pushed_branch=branch,
                last_pushed_at=now,
                push_count=1,
                pending_update=True,
            )
        return await self.update(
            row,
            full_name=full_name or row.full_name,
            default_branch=default_branch or row.default_branch,
            language=language or row.language,
            last_pushed_branch=branch,
            last_pushed_at=now,
            push_count=row.push_count + 1,
            pending_update=True,
        )
