"""Bounty repository: persistence and lifecycle updates for bounties."""

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bountytriage.db.models.bounty import BountyRow
from bountytriage.errors.exceptions import ConflictError, NotFoundError
from bountytriage.lifecycle.transitions import LifecycleEvent, transition
from bountytriage.models.bounty import Bounty
from bountytriage.models.enums import BountyStatus
from bountytriage.repositories.base import BaseRepository

_LIFECYCLE_COLUMNS = (
    "status",
    "started_at",
    "completed_at",
    "failed_at",
    "pull_request_id",
    "failure_reason",
)


def row_to_bounty(row: BountyRow) -> Bounty:
    return Bounty(
        id=row.bounty_id,
        issue_id=row.issue_id,
        repository_url=row.repository_url,
        platform=row.platform,
        amount=row.amount,
        currency=row.currency,
        title=row.title,
        description=row.description,
        language=row.language,
        status=BountyStatus(row.status),
        created_at=row.created_at,
        started_at=row.started_at,
        completed_at=row.completed_at,
        failed_at=row.failed_at,
        pull_request_id=row.pull_request_id,
        failure_reason=row.failure_reason,
    )


class BountyRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, BountyRow)

    async def add(self, bounty: Bounty) -> Bounty:
        await self.create(
            bounty_id=bounty.id,
            issue_id=bounty.issue_id,
            repository_url=bounty.repository_url,
            platform=bounty.platform,
            amount=bounty.amount,
            currency=bounty.currency,
            title=bounty.title,
            description=bounty.description,
            language=bounty.language,
            status=bounty.status.value,
            created_at=bounty.created_at,
            started_at=bounty.started_at,
            completed_at=bounty.completed_at,
            failed_at=bounty.failed_at,
            pull_request_id=bounty.pull_request_id,
            failure_reason=bounty.failure_reason,
        )
        return bounty

    async def get(self, bounty_id: str) -> Bounty | None:
        # Lifecycle updates bypass the identity map, so always reload the row
        stmt = (
            select(BountyRow)
            .where(BountyRow.bounty_id == bounty_id)
            .execution_options(populate_existing=True)
        )
        row = (await self.session.execute(stmt)).scalar_one_or_none()
        return row_to_bounty(row) if row else None

    async def exists_by_issue_and_platform(self, issue_id: str, platform: str) -> bool:
        stmt = select(
            exists().where(BountyRow.issue_id == issue_id, BountyRow.platform == platform)
        )
        result = await self.session.execute(stmt)
        return bool(result.scalar())

    async def list_bounties(self, status: BountyStatus | None = None, limit: int = 100) -> list[Bounty]:
        stmt = (
            select(BountyRow)
            .order_by(BountyRow.created_at.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        if status is not None:
            stmt = stmt.where(BountyRow.status == status.value)
        result = await self.session.execute(stmt)
        return [row_to_bounty(row) for row in result.scalars().all()]

    async def apply_transition(self, bounty_id: str, event: LifecycleEvent) -> Bounty:
        """Apply a lifecycle event as one compare-and-set update.

        Raises:
            NotFoundError: if the bounty does not exist.
            InvalidTransitionError: if the event is illegal from the stored status.
            ConflictError: if the stored status changed concurrently.
        """
        current = await self.get(bounty_id)
        if current is None:
            raise NotFoundError("Bounty", bounty_id)

        updated = transition(current, event)
        values = {column: getattr(updated, column) for column in _LIFECYCLE_COLUMNS}
        values["status"] = updated.status.value

        stmt = (
            update(BountyRow)
            .where(BountyRow.bounty_id == bounty_id, BountyRow.status == current.status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            raise ConflictError(f"Bounty '{bounty_id}' changed status concurrently")
        await self.session.flush()
        return updated
