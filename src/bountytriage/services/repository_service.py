"""Push handling: flag touched repositories for an in-place update."""

import logging

from sqlalchemy.exc import IntegrityError

from bountytriage.repositories.tracked_repository_repo import TrackedRepositoryRepository
from bountytriage.webhooks.normalizer import RepositoryTouched

logger = logging.getLogger(__name__)


class RepositoryIntakeService:
    """Records pushes so the git collaborator pulls the repository instead of re-cloning."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    async def handle(self, touched: RepositoryTouched) -> None:
        async with self.session_factory() as session:
            repo = TrackedRepositoryRepository(session)
            try:
                row = await self._mark(repo, touched)
                await session.commit()
            except IntegrityError:
                # Another push created the row first; count this one against it.
                await session.rollback()
                logger.debug("Repository %s was created concurrently, retrying", touched.clone_url)
                row = await self._mark(repo, touched)
                await session.commit()

        logger.info(
            "Repository %s touched on %s (%d commit(s), %d push(es) recorded)",
            touched.full_name or touched.clone_url, touched.branch, touched.commit_count, row.push_count,
        )

    @staticmethod
    async def _mark(repo: TrackedRepositoryRepository, touched: RepositoryTouched):
        return await repo.mark_touched(
            url=touched.clone_url,
            full_name=touched.full_name,
            default_branch=touched.default_branch,
            branch=touched.branch,
            language=touched.language,
        )
