"""Normalize raw webhook payloads into bounty candidates and CVE records.

``normalize`` never raises: every payload is classified as a Bounty, a
NormalizedCVE, a RepositoryTouched signal, or a Discard carrying a reason.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from bountytriage.models.bounty import Bounty
from bountytriage.models.cve import CVE_ID_PATTERN, NormalizedCVE
from bountytriage.models.enums import BountyStatus, CVESource, Platform, Severity
from bountytriage.models.github import GitHubIssueEvent, GitHubPushEvent

logger = logging.getLogger(__name__)

ISSUE_EVENT = "issues"
PUSH_EVENT = "push"
CVE_EVENT = "cve"

_ACTIONABLE_ISSUE_ACTIONS = frozenset({"opened", "reopened"})

# Dollar figures such as "$50", "$1,500" or "$99.99"
_AMOUNT_PATTERN = re.compile(r"\$([0-9]{1,3}(?:,?[0-9]{3})*(?:\.[0-9]{2})?)", re.IGNORECASE)
_MIN_EXTRACTED_AMOUNT = Decimal("10")

# Logical CVE field -> payload keys, looked up in order. The first key holding
# a non-null value of the expected type wins, so an explicit null falls through
# to the next alias. Add a provider's spelling here to support it.
CVE_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "cve_id": ("cveId", "cve_id", "id"),
    "description": ("description", "summary"),
    "severity": ("severity", "cvss_severity"),
    "cvss_score": ("cvssScore", "cvss_score", "score"),
    "published_date": ("publishedDate", "published_date", "published"),
    "last_modified_date": ("lastModifiedDate", "last_modified_date", "lastModified"),
    "affected_languages": ("affectedLanguages", "affected_languages", "languages"),
    "affected_products": ("affectedProducts", "affected_products", "products"),
}


@dataclass(frozen=True)
class RepositoryTouched:
    """A push landed on a repository; it should be updated in place, not enqueued."""

    full_name: str | None
    clone_url: str
    default_branch: str | None
    branch: str | None
    commit_count: int
    language: str | None = None


@dataclass(frozen=True)
class Discard:
    """The payload produces no work.

    ``malformed`` separates invalid input (HTTP 400) from a deliberate no-op.
    """

    reason: str
    malformed: bool = False


NormalizedEvent = Bounty | NormalizedCVE | RepositoryTouched | Discard


def normalize(event_kind: str | None, raw_payload: str | bytes) -> NormalizedEvent:
    """Classify a raw webhook payload by event kind."""
    try:
        data = json.loads(raw_payload)
    except (ValueError, TypeError) as exc:
        logger.info("Discarding %s payload: invalid JSON (%s)", event_kind, exc)
        return Discard("Invalid JSON payload", malformed=True)

    if not isinstance(data, dict):
        return Discard("Payload must be a JSON object", malformed=True)

    if event_kind == ISSUE_EVENT:
        return normalize_issue_event(data)
    if event_kind == PUSH_EVENT:
        return normalize_push_event(data)
    if event_kind == CVE_EVENT:
        return normalize_cve_payload(data)

    logger.debug("No normalizer for event kind %s", event_kind)
    return Discard(f"Event type '{event_kind}' is not processed")


# ---------------------------------------------------------------------------
# Source-control events
# ---------------------------------------------------------------------------


def normalize_issue_event(data: dict[str, Any]) -> Bounty | Discard:
    try:
        event = GitHubIssueEvent.model_validate(data)
    except PydanticValidationError as exc:
        return Discard(f"Invalid issue event: {exc.error_count()} field error(s)", malformed=True)

    if event.issue is None or event.repository is None:
        return Discard("Invalid issue event: missing issue or repository", malformed=True)

    if event.is_pull_request():
        return Discard("Pull request events are not processed")

    if event.action not in _ACTIONABLE_ISSUE_ACTIONS:
        return Discard(f"Issue action '{event.action}' is not processed")

    if not event.is_open():
        return Discard("Issue is not open")

    repository_url = event.repository_url()
    if repository_url is None or event.issue.number is None:
        return Discard("Invalid issue event: missing repository name or issue number", malformed=True)

    amount = extract_bounty_amount(f"{event.issue.title or ''} {event.issue.body or ''}")

    return Bounty(
        issue_id=f"{event.repository.full_name}#{event.issue.number}",
        repository_url=repository_url,
        platform=Platform.GITHUB_ISSUE.value,
        amount=amount,
        currency="USD",
        title=event.issue.title,
        description=event.issue.body,
        language=event.repository.language,
        status=BountyStatus.OPEN,
    )


def normalize_push_event(data: dict[str, Any]) -> RepositoryTouched | Discard:
    try:
        event = GitHubPushEvent.model_validate(data)
    except PydanticValidationError as exc:
        return Discard(f"Invalid push event: {exc.error_count()} field error(s)", malformed=True)

    if event.repository is None or not event.repository.clone_url:
        return Discard("Invalid push event: missing repository clone URL", malformed=True)

    return RepositoryTouched(
        full_name=event.repository.full_name,
        clone_url=event.repository.clone_url,
        default_branch=event.repository.default_branch,
        branch=event.branch_name(),
        commit_count=len(event.commits),
        language=event.repository.language,
    )


def extract_bounty_amount(text: str) -> Decimal | None:
    """Return the largest dollar figure of at least $10 in ``text``."""
    best: Decimal | None = None
    for match in _AMOUNT_PATTERN.finditer(text):
        try:
            amount = Decimal(match.group(1).replace(",", ""))
        except InvalidOperation:
            continue
        if amount >= _MIN_EXTRACTED_AMOUNT and (best is None or amount > best):
            best = amount
    return best


# ---------------------------------------------------------------------------
# CVE feeds
# ---------------------------------------------------------------------------


def _first_string(data: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
    return None


def _first_number(data: dict[str, Any], keys: tuple[str, ...]) -> float | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                continue
    return None


def _first_list(data: dict[str, Any], keys: tuple[str, ...]) -> list[str]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, list):
            return [item for item in value if isinstance(item, str)]
    return []


def parse_local_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 date-time into a naive UTC datetime, or None."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Failed to parse date: %s", value)
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _severity(value: str | None) -> Severity:
    if not value:
        return Severity.UNKNOWN
    try:
        return Severity(value.strip().upper())
    except ValueError:
        return Severity.UNKNOWN


def normalize_cve_payload(data: dict[str, Any], now: datetime | None = None) -> NormalizedCVE | Discard:
    aliases = CVE_FIELD_ALIASES
    cve_id = _first_string(data, aliases["cve_id"])
    if not cve_id or not cve_id.strip():
        logger.warning("Invalid CVE webhook payload: missing cveId")
        return Discard("Invalid payload: missing cveId", malformed=True)

    cve_id = cve_id.strip().upper()
    if not CVE_ID_PATTERN.match(cve_id):
        logger.warning("Invalid CVE webhook payload: malformed cveId %r", cve_id)
        return Discard(f"Invalid payload: malformed cveId '{cve_id}'", malformed=True)

    if now is None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)

    published = parse_local_datetime(_first_string(data, aliases["published_date"]))

    return NormalizedCVE(
        cve_id=cve_id,
        description=_first_string(data, aliases["description"]),
        severity=_severity(_first_string(data, aliases["severity"])),
        cvss_score=_first_number(data, aliases["cvss_score"]),
        published_date=published or now,
        last_modified_date=parse_local_datetime(_first_string(data, aliases["last_modified_date"])),
        affected_languages=_first_list(data, aliases["affected_languages"]),
        affected_products=_first_list(data, aliases["affected_products"]),
        source=CVESource.WEBHOOK,
    )
