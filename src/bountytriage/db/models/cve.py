"""CVE table."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bountytriage.db.base import Base, TimestampMixin


class CVERow(Base, TimestampMixin):
    __tablename__ = "cves"

    cve_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    cvss_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    published_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_modified_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    affected_languages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    affected_products: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
