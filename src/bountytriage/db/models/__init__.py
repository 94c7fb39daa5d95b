"""Import all ORM models so they register with Base.metadata."""

from bountytriage.db.models.bounty import BountyRow
from bountytriage.db.models.cve import CVERow
from bountytriage.db.models.tracked_repository import TrackedRepositoryRow

__all__ = ["BountyRow", "CVERow", "TrackedRepositoryRow"]
