"""Tracked repository table, updated in place when pushes arrive."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bountytriage.db.base import Base, TimestampMixin


class TrackedRepositoryRow(Base, TimestampMixin):
    __tablename__ = "tracked_repositories"

    repository_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    url: Mapped[str] = mapped_column(String(1024), nullable=False, unique=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    default_branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    language: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_pushed_branch: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_pushed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    push_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pending_update: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
