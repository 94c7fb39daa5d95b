"""Triage pipeline: duplicate check, language and amount pre-filters, admission, persist, enqueue."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from bountytriage.admission.filter import (
    DEFAULT_MAX_TIME_MINUTES,
    DEFAULT_MIN_CONFIDENCE,
    DEFAULT_SUPPORTED_LANGUAGES,
    AdmissionFilter,
    normalize_language,
    parse_supported_languages,
)
from bountytriage.errors.exceptions import QueueUnavailableError
from bountytriage.lifecycle.transitions import FailProcessing
from bountytriage.models.assessment import FilterResult
from bountytriage.models.bounty import Bounty
from bountytriage.queue.priority_queue import TriageQueue
from bountytriage.repositories.bounty_repo import BountyRepository
from bountytriage.repositories.tracked_repository_repo import TrackedRepositoryRepository

logger = logging.getLogger(__name__)


class TriageService:
    """Runs admission for bounty candidates and queues the accepted ones."""

    def __init__(
        self,
        session_factory,
        admission_filter: AdmissionFilter,
        queue: TriageQueue,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        max_time_minutes: int = DEFAULT_MAX_TIME_MINUTES,
        min_bounty_amount: Decimal | None = None,
        max_bounty_amount: Decimal | None = None,
        supported_languages: str | None = DEFAULT_SUPPORTED_LANGUAGES,
    ) -> None:
        self.session_factory = session_factory
        self.admission_filter = admission_filter
        self.queue = queue
        self.min_confidence = min_confidence
        self.max_time_minutes = max_time_minutes
        self.min_bounty_amount = min_bounty_amount
        self.max_bounty_amount = max_bounty_amount
        self.supported_languages_label = supported_languages or ""
        self.supported_languages = parse_supported_languages(supported_languages)

    async def is_tracked(self, bounty: Bounty) -> bool:
        async with self.session_factory() as session:
            return await BountyRepository(session).exists_by_issue_and_platform(
                bounty.issue_id, bounty.platform
            )

    async def resolve_language(self, bounty: Bounty) -> Bounty:
        """Fill in a missing language from the tracked repository, when one is known."""
        if bounty.language or not bounty.repository_url:
            return bounty
        async with self.session_factory() as session:
            language = await TrackedRepositoryRepository(session).language_for(bounty.repository_url)
        if not language:
            return bounty
        return bounty.model_copy(update={"language": language})

    def check_language(self, bounty: Bounty) -> FilterResult | None:
        """Reject a known, unsupported language. An unknown language is left to the oracle."""
        language = normalize_language(bounty.language)
        if language is None or not self.supported_languages or language in self.supported_languages:
            return None
        return FilterResult(
            False, 0.0, 0,
            f"Language '{bounty.language}' not supported. Supported: {self.supported_languages_label}",
        )

    def check_amount_window(self, bounty: Bounty) -> FilterResult | None:
        """Reject on amount before spending an oracle call. None means in range."""
        if self.min_bounty_amount is not None and not bounty.meets_minimum_amount(self.min_bounty_amount):
            return FilterResult(
                False, 0.0, 0,
                f"Bounty amount {bounty.amount} is below minimum {self.min_bounty_amount}",
            )
        if bounty.exceeds_amount(self.max_bounty_amount):
            return FilterResult(
                False, 0.0, 0,
                f"Bounty amount {bounty.amount} exceeds maximum {self.max_bounty_amount} "
                "(higher amounts usually indicate complexity)",
            )
        return None

    async def triage(self, bounty: Bounty) -> FilterResult | None:
        """Decide on a candidate; accepted bounties are stored at OPEN and queued.

        Returns None when the issue is already tracked.

        Raises:
            QueueUnavailableError: if the accepted bounty could not be queued.
                The stored bounty is marked FAILED before the error propagates.
        """
        if await self.is_tracked(bounty):
            logger.debug("Bounty for %s (%s) already tracked", bounty.issue_id, bounty.platform)
            return None

        bounty = await self.resolve_language(bounty)
        result = self.check_language(bounty) or self.check_amount_window(bounty)
        if result is None:
            result = await self.admission_filter.decide(
                bounty,
                min_confidence=self.min_confidence,
                max_time_minutes=self.max_time_minutes,
            )

        if not result.accept:
            logger.info("Bounty %s not admitted: %s", bounty.issue_id, result.reason)
            return result

        async with self.session_factory() as session:
            repo = BountyRepository(session)
            try:
                await repo.add(bounty)
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info("Bounty for %s was stored concurrently, skipping", bounty.issue_id)
                return None

            try:
                priority = await self.queue.enqueue(bounty)
            except QueueUnavailableError as exc:
                await repo.apply_transition(bounty.id, FailProcessing(f"Failed to enqueue: {exc.message}"))
                await session.commit()
                raise

        logger.info(
            "Bounty %s admitted (confidence=%.2f, time=%dmin, priority=%.2f)",
            bounty.issue_id, result.confidence, result.estimated_time_minutes, priority,
        )
        return result


class TriageDispatcher:
    """Runs triage on background tasks so webhook handlers return immediately."""

    def __init__(self, triage_service: TriageService, concurrency: int = 4) -> None:
        self.triage_service = triage_service
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, bounty: Bounty) -> asyncio.Task:
        task = asyncio.create_task(self._run(bounty), name=f"triage:{bounty.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, bounty: Bounty) -> FilterResult | None:
        async with self._semaphore:
            try:
                return await self.triage_service.triage(bounty)
            except QueueUnavailableError:
                logger.error("Bounty %s admitted but could not be queued", bounty.issue_id)
            except Exception:
                logger.exception("Triage failed for bounty %s", bounty.issue_id)
            return None

    async def drain(self) -> None:
        """Wait for the triage tasks submitted before this call.

        Tasks submitted while draining are not awaited.
        """
        tasks = list(self._tasks)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
