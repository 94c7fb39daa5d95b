"""Canonical CVE record produced by webhook normalization."""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bountytriage.models.enums import CVESource, Severity

CVE_ID_PATTERN = re.compile(r"^CVE-\d{4}-\d+$")


class NormalizedCVE(BaseModel):
    """A CVE notification in canonical form, keyed by ``cve_id``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    cve_id: str
    description: str | None = None
    severity: Severity = Severity.UNKNOWN
    cvss_score: float | None = None
    published_date: datetime
    last_modified_date: datetime | None = None
    affected_languages: list[str] = Field(default_factory=list)
    affected_products: list[str] = Field(default_factory=list)
    source: CVESource = CVESource.WEBHOOK

    @field_validator("cve_id")
    @classmethod
    def _check_cve_id(cls, value: str) -> str:
        if not CVE_ID_PATTERN.match(value):
            raise ValueError(f"'{value}' is not a CVE identifier")
        return value

    def is_critical_or_high(self) -> bool:
        return self.severity in (Severity.CRITICAL, Severity.HIGH)

    def affects_language(self, language: str | None) -> bool:
        if not language:
            return False
        return any(lang.lower() == language.lower() for lang in self.affected_languages)
