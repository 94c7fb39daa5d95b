"""Bounty domain model: an immutable unit of potential remediation work."""

from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from bountytriage.models.enums import BountyStatus
from bountytriage.services.id_generator import generate_id


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Bounty(BaseModel):
    """A bounty candidate tracked through the lifecycle state machine.

    Instances are frozen; lifecycle changes produce new values through
    ``bountytriage.lifecycle.transitions``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("bty_"))
    issue_id: str
    repository_url: str | None = None
    platform: str
    amount: Decimal | None = Field(None, ge=0)
    currency: str | None = None
    title: str | None = None
    description: str | None = None
    language: str | None = None
    status: BountyStatus = BountyStatus.OPEN

    created_at: datetime = Field(default_factory=_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None

    pull_request_id: str | None = None
    failure_reason: str | None = None

    @model_validator(mode="after")
    def _terminal_timestamp_matches_status(self) -> "Bounty":
        if self.completed_at is not None and self.failed_at is not None:
            raise ValueError("completed_at and failed_at cannot both be set")
        if (self.status == BountyStatus.COMPLETED) != (self.completed_at is not None):
            raise ValueError("completed_at must be set exactly when status is COMPLETED")
        if (self.status == BountyStatus.FAILED) != (self.failed_at is not None):
            raise ValueError("failed_at must be set exactly when status is FAILED")
        return self

    def meets_minimum_amount(self, minimum: Decimal | None) -> bool:
        if self.amount is None or minimum is None:
            return False
        return self.amount >= minimum

    def exceeds_amount(self, maximum: Decimal | None) -> bool:
        if self.amount is None or maximum is None:
            return False
        return self.amount > maximum
