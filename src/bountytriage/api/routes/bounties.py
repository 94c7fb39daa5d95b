"""Read access to tracked bounties, manual failure, and queue depth."""

import logging

from fastapi import APIRouter
from pydantic import BaseModel, Field

from bountytriage.dependencies import DBSession, Queue
from bountytriage.errors.exceptions import NotFoundError
from bountytriage.lifecycle.transitions import FailProcessing
from bountytriage.models.bounty import Bounty
from bountytriage.models.enums import BountyStatus
from bountytriage.repositories.bounty_repo import BountyRepository

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Bounties"])


class FailBountyRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


@router.get("/bounties", response_model=list[Bounty])
async def list_bounties(db: DBSession, status: BountyStatus | None = None, limit: int = 100):
    repo = BountyRepository(db)
    return await repo.list_bounties(status=status, limit=min(max(limit, 1), 500))


@router.get("/bounties/{bounty_id}", response_model=Bounty)
async def get_bounty(bounty_id: str, db: DBSession):
    bounty = await BountyRepository(db).get(bounty_id)
    if bounty is None:
        raise NotFoundError("Bounty", bounty_id)
    return bounty


@router.post("/bounties/{bounty_id}/fail", response_model=Bounty)
async def fail_bounty(bounty_id: str, body: FailBountyRequest, db: DBSession, queue: Queue):
    """Move a bounty to FAILED and drop it from the queue if still queued."""
    bounty = await BountyRepository(db).apply_transition(bounty_id, FailProcessing(body.reason))
    await db.commit()
    await queue.remove(bounty)
    logger.info("Bounty %s failed manually: %s", bounty_id, body.reason)
    return bounty


@router.get("/queue")
async def queue_status(queue: Queue):
    return {"key": queue.key, "size": await queue.size()}
