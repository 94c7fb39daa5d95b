"""Bounty lifecycle state machine.

    OPEN -> IN_PROGRESS -> COMPLETED
      |          |
      +----------+-----> FAILED

COMPLETED and FAILED are terminal. ``transition`` is pure: it returns a new
Bounty and never mutates its input.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from bountytriage.errors.exceptions import InvalidTransitionError
from bountytriage.models.bounty import Bounty
from bountytriage.models.enums import BountyStatus


@dataclass(frozen=True)
class StartProcessing:
    name = "start_processing"


@dataclass(frozen=True)
class CompleteProcessing:
    pull_request_id: str

    name = "complete_processing"


@dataclass(frozen=True)
class FailProcessing:
    reason: str

    name = "fail_processing"


LifecycleEvent = StartProcessing | CompleteProcessing | FailProcessing

# Event type -> statuses it may be applied from
ALLOWED_FROM: dict[type, frozenset[BountyStatus]] = {
    StartProcessing: frozenset({BountyStatus.OPEN}),
    CompleteProcessing: frozenset({BountyStatus.IN_PROGRESS}),
    FailProcessing: frozenset({BountyStatus.OPEN, BountyStatus.IN_PROGRESS}),
}

TERMINAL_STATUSES = frozenset({BountyStatus.COMPLETED, BountyStatus.FAILED})


def _apply(bounty: Bounty, **changes) -> Bounty:
    return Bounty.model_validate({**bounty.model_dump(), **changes})


def transition(bounty: Bounty, event: LifecycleEvent, now: datetime | None = None) -> Bounty:
    """Apply ``event`` to ``bounty`` and return the resulting value.

    Raises:
        InvalidTransitionError: if the event is not legal from the current status.
    """
    allowed = ALLOWED_FROM.get(type(event))
    if allowed is None or bounty.status not in allowed:
        raise InvalidTransitionError(str(bounty.status), getattr(event, "name", type(event).__name__))

    now = now or datetime.now(timezone.utc)

    if isinstance(event, StartProcessing):
        return _apply(bounty, status=BountyStatus.IN_PROGRESS, started_at=now)
    if isinstance(event, CompleteProcessing):
        return _apply(
            bounty,
            status=BountyStatus.COMPLETED,
            completed_at=now,
            pull_request_id=event.pull_request_id,
        )
    return _apply(bounty, status=BountyStatus.FAILED, failed_at=now, failure_reason=event.reason)


def mark_in_progress(bounty: Bounty) -> Bounty:
    return transition(bounty, StartProcessing())


def mark_completed(bounty: Bounty, pull_request_id: str) -> Bounty:
    return transition(bounty, CompleteProcessing(pull_request_id))


def mark_failed(bounty: Bounty, reason: str) -> Bounty:
    return transition(bounty, FailProcessing(reason))


def is_eligible_for_processing(bounty: Bounty) -> bool:
    """Only OPEN bounties may be picked up by the consumer."""
    return bounty.status == BountyStatus.OPEN


def is_terminal(bounty: Bounty) -> bool:
    return bounty.status in TERMINAL_STATUSES
