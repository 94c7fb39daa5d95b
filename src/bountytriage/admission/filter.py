"""Admission control: accept or reject a bounty before it reaches the queue.

The oracle's answer is gated by a confidence floor and a time ceiling. Any
failure to obtain or parse an answer rejects the bounty.
"""

from __future__ import annotations

import asyncio
import json
import logging

from pydantic import ValidationError as PydanticValidationError

from bountytriage.admission.oracle import AssessmentOracle
from bountytriage.models.assessment import AssessmentResult, FilterResult
from bountytriage.models.bounty import Bounty
from bountytriage.models.enums import Complexity

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 0.6
DEFAULT_MAX_TIME_MINUTES = 60
DEFAULT_SUPPORTED_LANGUAGES = "Java,TypeScript,JavaScript,Python"

NOT_AVAILABLE = "N/A"

# File-extension style names some repository hosts report
_LANGUAGE_ALIASES = {
    "js": "javascript",
    "jsx": "javascript",
    "tsx": "javascript",
    "ts": "typescript",
    "py": "python",
}

_COMPLEXITY_RANK = {
    Complexity.SIMPLE: 0,
    Complexity.MODERATE: 1,
    Complexity.COMPLEX: 2,
}


class AssessmentParseError(ValueError):
    """Oracle content could not be read as an assessment."""


def _field(value) -> str:
    if value is None or value == "":
        return NOT_AVAILABLE
    return str(value)


def normalize_language(language: str | None) -> str | None:
    """Lower-case ``language`` and resolve shorthand names. Blank means unknown."""
    if language is None or not language.strip():
        return None
    name = language.strip().lower()
    return _LANGUAGE_ALIASES.get(name, name)


def parse_supported_languages(value: str | None) -> frozenset[str]:
    """Parse a comma-separated language list. An empty list disables the check."""
    if not value:
        return frozenset()
    return frozenset(
        name for name in (normalize_language(part) for part in value.split(",")) if name
    )


def build_prompt(bounty: Bounty, max_time_minutes: int = DEFAULT_MAX_TIME_MINUTES) -> str:
    """Render the assessment prompt for a bounty. Missing values render as N/A."""
    amount = _field(bounty.amount)
    currency = _field(bounty.currency) if bounty.amount is not None else ""
    return f"""Analyze this bug bounty and determine if it should be processed.

We are looking for SIMPLE, QUICK bugs that can be fixed fast. Most bounties
require proofs of concept, several review iterations and deep knowledge of the
codebase. Reject anything that is not a trivial fix in a single file.

Bounty Details:
- Issue ID: {_field(bounty.issue_id)}
- Repository: {_field(bounty.repository_url)}
- Language: {_field(bounty.language)}
- Platform: {_field(bounty.platform)}
- Amount: {amount} {currency}
- Title: {_field(bounty.title)}
- Description: {_field(bounty.description)}

Reject if ANY of these apply: a proof of concept or exploit is required; it is
a security vulnerability; more than one file must change; it mentions
refactoring or architecture; new tests or documentation are required; the
description is vague; performance profiling or external system knowledge is
needed; several feedback iterations are expected; the logic is complex.

Accept only if ALL of these hold: the fix touches exactly one file; the bug is
obvious (typo, wrong variable, missing null check, wrong operator); the issue
has clear expected vs actual behaviour; it can be done in under
{max_time_minutes} minutes; you are highly confident it is trivial.

Respond with a JSON object:
{{
  "shouldProcess": true/false,
  "confidence": 0.0-1.0,
  "estimatedTimeMinutes": number,
  "complexity": "simple|moderate|complex",
  "reason": "brief explanation of why it was accepted or rejected"
}}
"""


def strip_code_fences(content: str) -> str:
    text = content.strip()
    if text.startswith("```json"):
        text = text[len("```json"):]
    elif text.startswith("```"):
        text = text[len("```"):]
    if text.endswith("```"):
        text = text[: -len("```")]
    return text.strip()


def parse_assessment(content: str) -> AssessmentResult:
    """Parse oracle content into an AssessmentResult.

    Raises:
        AssessmentParseError: if the content is not a valid assessment object.
    """
    try:
        data = json.loads(strip_code_fences(content))
    except ValueError as exc:
        raise AssessmentParseError(f"not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise AssessmentParseError("expected a JSON object")
    if isinstance(data.get("complexity"), str):
        data["complexity"] = data["complexity"].strip().lower()
    try:
        return AssessmentResult.model_validate(data)
    except PydanticValidationError as exc:
        raise AssessmentParseError(f"{exc.error_count()} invalid field(s)") from exc


class AdmissionFilter:
    """Decides whether a bounty enters the priority queue."""

    def __init__(
        self,
        oracle: AssessmentOracle,
        timeout_seconds: float = 30.0,
        max_complexity: Complexity | str | None = None,
    ) -> None:
        self.oracle = oracle
        self.timeout_seconds = timeout_seconds
        self.max_complexity = Complexity(max_complexity.lower()) if max_complexity else None

    async def decide(
        self,
        bounty: Bounty,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        max_time_minutes: int = DEFAULT_MAX_TIME_MINUTES,
    ) -> FilterResult:
        prompt = build_prompt(bounty, max_time_minutes)
        try:
            content = await asyncio.wait_for(self.oracle.complete(prompt), timeout=self.timeout_seconds)
            result = parse_assessment(content)
        except asyncio.TimeoutError:
            logger.error("Assessment oracle timed out after %.1fs for bounty %s", self.timeout_seconds, bounty.issue_id)
            return FilterResult(False, 0.0, 0, f"Assessment timed out after {self.timeout_seconds:g}s")
        except AssessmentParseError as exc:
            logger.error("Failed to parse assessment for bounty %s: %s", bounty.issue_id, exc)
            return FilterResult(False, 0.0, 0, f"Failed to parse assessment response: {exc}")
        except Exception as exc:
            logger.error("Assessment oracle failed for bounty %s: %s", bounty.issue_id, exc)
            return FilterResult(False, 0.0, 0, f"Error during assessment: {exc}")

        return self.apply_thresholds(bounty, result, min_confidence, max_time_minutes)

    def apply_thresholds(
        self,
        bounty: Bounty,
        result: AssessmentResult,
        min_confidence: float,
        max_time_minutes: int,
    ) -> FilterResult:
        if result.confidence < min_confidence:
            logger.info(
                "Bounty %s rejected: confidence %.2f below threshold %.2f",
                bounty.issue_id, result.confidence, min_confidence,
            )
            return FilterResult(
                False, result.confidence, result.estimated_time_minutes,
                f"{result.reason} (confidence too low)",
            )

        if result.estimated_time_minutes > max_time_minutes:
            logger.info(
                "Bounty %s rejected: estimated time %d exceeds threshold %d",
                bounty.issue_id, result.estimated_time_minutes, max_time_minutes,
            )
            return FilterResult(
                False, result.confidence, result.estimated_time_minutes,
                f"{result.reason} (time estimate too high)",
            )

        if (
            self.max_complexity is not None
            and result.complexity is not None
            and _COMPLEXITY_RANK[result.complexity] > _COMPLEXITY_RANK[self.max_complexity]
        ):
            logger.info(
                "Bounty %s rejected: complexity %s exceeds maximum %s",
                bounty.issue_id, result.complexity, self.max_complexity,
            )
            return FilterResult(
                False, result.confidence, result.estimated_time_minutes,
                f"{result.reason} (complexity too high: {result.complexity})",
            )

        logger.info(
            "Bounty %s assessed: should_process=%s confidence=%.2f time=%dmin",
            bounty.issue_id, result.should_process, result.confidence, result.estimated_time_minutes,
        )
        return FilterResult(
            result.should_process, result.confidence, result.estimated_time_minutes, result.reason,
        )
