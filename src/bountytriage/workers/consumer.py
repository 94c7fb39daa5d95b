"""Queue consumer: pulls the highest-priority bounty and drives its lifecycle."""

import asyncio
import logging

from bountytriage.errors.exceptions import ConflictError, InvalidTransitionError, QueueUnavailableError
from bountytriage.lifecycle.transitions import (
    CompleteProcessing,
    FailProcessing,
    StartProcessing,
    is_eligible_for_processing,
)
from bountytriage.models.bounty import Bounty
from bountytriage.queue.priority_queue import TriageQueue
from bountytriage.repositories.bounty_repo import BountyRepository
from bountytriage.workers.base import BountyProcessor

logger = logging.getLogger(__name__)


class QueueConsumer:
    """Single-item consumer loop over the triage queue.

    The queue entry is a snapshot taken at enqueue time, so the stored status
    is re-read before any work starts.
    """

    def __init__(
        self,
        queue: TriageQueue,
        session_factory,
        processor: BountyProcessor,
        poll_interval: float = 5.0,
        backoff_initial: float = 1.0,
        backoff_max: float = 60.0,
    ) -> None:
        self.queue = queue
        self.session_factory = session_factory
        self.processor = processor
        self.poll_interval = poll_interval
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max

    async def run_once(self) -> bool:
        """Handle at most one queue entry. Returns False when the queue was empty.

        An entry whose processing never started is put back on the queue
        before the error propagates.

        Raises:
            QueueUnavailableError: if the queue store cannot be reached.
        """
        snapshot = await self.queue.dequeue()
        if snapshot is None:
            return False

        try:
            started = await self._start(snapshot)
        except (Exception, asyncio.CancelledError):
            await self._requeue(snapshot)
            raise
        if started is None:
            return True

        async with self.session_factory() as session:
            repo = BountyRepository(session)
            logger.info("Processing bounty %s with %s", started.issue_id, self.processor.processor_type)
            try:
                pull_request_id = await self.processor.process(started)
                if not pull_request_id:
                    raise ValueError("processor returned no pull request")
            except Exception as exc:
                logger.exception("Processing failed for bounty %s", started.issue_id)
                await repo.apply_transition(started.id, FailProcessing(str(exc)))
                await session.commit()
                return True

            await repo.apply_transition(started.id, CompleteProcessing(pull_request_id))
            await session.commit()
            logger.info("Bounty %s completed (pull_request=%s)", started.issue_id, pull_request_id)
        return True

    async def _start(self, snapshot: Bounty) -> Bounty | None:
        """Move the live record to IN_PROGRESS, or return None to skip it."""
        async with self.session_factory() as session:
            repo = BountyRepository(session)
            live = await repo.get(snapshot.id)
            if live is None or not is_eligible_for_processing(live):
                logger.info(
                    "Skipping bounty %s: no longer eligible (status=%s)",
                    snapshot.issue_id, live.status if live else "missing",
                )
                return None

            try:
                started = await repo.apply_transition(live.id, StartProcessing())
                await session.commit()
            except (ConflictError, InvalidTransitionError) as exc:
                await session.rollback()
                logger.info("Skipping bounty %s: %s", live.issue_id, exc.message)
                return None
        return started

    async def _requeue(self, snapshot: Bounty) -> None:
        try:
            await self.queue.enqueue(snapshot)
        except QueueUnavailableError as exc:
            logger.error("Could not requeue bounty %s: %s", snapshot.issue_id, exc.message)
            return
        logger.warning("Requeued bounty %s after a failure before processing started", snapshot.issue_id)

    async def run(self) -> None:
        """Poll until cancelled; store outages back off exponentially."""
        logger.info("Queue consumer started (poll_interval=%.1fs)", self.poll_interval)
        delay = self.backoff_initial

        try:
            while True:
                try:
                    processed = await self.run_once()
                except QueueUnavailableError as exc:
                    logger.error("Queue unavailable, retrying in %.1fs: %s", delay, exc.message)
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, self.backoff_max)
                    continue
                except Exception as exc:
                    logger.exception("Queue consumer error: %s", exc)
                    await asyncio.sleep(self.poll_interval)
                    continue

                delay = self.backoff_initial
                if not processed:
                    await asyncio.sleep(self.poll_interval)
        except asyncio.CancelledError:
            logger.info("Queue consumer stopped")
