"""
Check-in model — one per member per company-local day, read-only for aggregation.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import validates

from app.core.timezones import ensure_utc
from app.db.base import Base


class Checkin(Base):
    __tablename__ = "checkins"
    __table_args__ = (Index("ix_checkins_user_created", "user_id", "created_at"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    company_id: int = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)  # type: ignore[assignment]
    mood: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    stress: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    sleep: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    physical_health: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    readiness_score: float = Column(Float, nullable=False)  # type: ignore[assignment]
    readiness_status: str = Column(String(10), nullable=False)  # type: ignore[assignment]
    # GREEN | YELLOW | RED
    notes: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    @validates("created_at")
    def _store_utc(self, _key: str, value: datetime | None) -> datetime | None:
        # SQLite drops offsets, so everything is written as UTC.
        return ensure_utc(value) if value is not None else None
