"""Admission decision types."""

from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from bountytriage.models.enums import Complexity


class AssessmentResult(BaseModel):
    """The oracle's structured answer about a single bounty."""

    model_config = ConfigDict(populate_by_name=True)

    should_process: bool = Field(alias="shouldProcess")
    confidence: float = Field(ge=0.0, le=1.0)
    estimated_time_minutes: int = Field(alias="estimatedTimeMinutes", ge=0)
    reason: str = ""
    complexity: Complexity | None = None


class FilterResult(NamedTuple):
    """Final admission outcome for a bounty."""

    accept: bool
    confidence: float
    estimated_time_minutes: int
    reason: str
