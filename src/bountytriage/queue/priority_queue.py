"""Score-ordered triage queue of accepted bounties."""

from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError

from bountytriage.models.bounty import Bounty
from bountytriage.models.enums import Platform
from bountytriage.queue.store import SortedSetStore

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_KEY = "triage:queue"
BASE_PRIORITY = 1000.0

# Additive score per platform; unlisted platforms get 0
PLATFORM_BONUS: dict[str, float] = {
    Platform.ALGORA.value: 100.0,
}


def calculate_priority(bounty: Bounty) -> float:
    """Score a bounty: base + amount + platform bonus. Higher dequeues first."""
    priority = BASE_PRIORITY
    if bounty.amount is not None:
        priority += float(bounty.amount)
    priority += PLATFORM_BONUS.get(bounty.platform, 0.0)
    return priority


class TriageQueue:
    """Priority queue of bounties keyed by bounty id.

    Enqueueing a bounty that is already queued replaces its entry and score.
    Store failures surface as ``QueueUnavailableError``; they are never
    reported as an empty queue.
    """

    def __init__(self, store: SortedSetStore, key: str = DEFAULT_QUEUE_KEY) -> None:
        self.store = store
        self.key = key

    async def enqueue(self, bounty: Bounty) -> float:
        priority = calculate_priority(bounty)
        await self.store.add(self.key, bounty.id, priority, bounty.model_dump_json())
        logger.debug("Enqueued bounty %s with priority %.2f", bounty.issue_id, priority)
        return priority

    async def dequeue(self) -> Bounty | None:
        """Pop the highest-priority bounty, or None when the queue is empty."""
        while True:
            popped = await self.store.pop_max(self.key)
            if popped is None:
                return None
            member, score, payload = popped
            if payload is None:
                logger.error("Queue entry %s (score %.2f) has no payload, dropping it", member, score)
                continue
            try:
                bounty = Bounty.model_validate_json(payload)
            except PydanticValidationError as exc:
                logger.error("Queue entry %s is not a valid bounty, dropping it: %s", member, exc)
                continue
            logger.debug("Dequeued bounty %s (score %.2f)", bounty.issue_id, score)
            return bounty

    async def size(self) -> int:
        return await self.store.cardinality(self.key)

    async def is_empty(self) -> bool:
        return await self.size() == 0

    async def remove(self, bounty: Bounty) -> bool:
        removed = await self.store.remove(self.key, bounty.id)
        if removed:
            logger.debug("Removed bounty %s from queue", bounty.issue_id)
        return removed
