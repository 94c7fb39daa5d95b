"""String enums for bounty and CVE records."""

from enum import StrEnum


class BountyStatus(StrEnum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Platform(StrEnum):
    """Known originating platforms. Bounty.platform accepts any string."""

    GITHUB_ISSUE = "github-issue"
    ALGORA = "algora"
    POLAR = "polar"
    CVE_WEBHOOK = "cve-webhook"


class Severity(StrEnum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNKNOWN = "UNKNOWN"


class CVESource(StrEnum):
    NVD = "NVD"
    GITHUB = "GITHUB"
    WEBHOOK = "WEBHOOK"


class Complexity(StrEnum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
