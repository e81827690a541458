"""
Team model — membership is owned by team management; summaries only read it.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from app.db.base import Base


class Team(Base):
    __tablename__ = "teams"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    company_id: int = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    leader_id: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]  # users.id
    work_days: str = Column(String(40), nullable=False, default="MON,TUE,WED,THU,FRI")  # type: ignore[assignment]
    shift_start: str = Column(String(5), nullable=False, default="08:00")  # type: ignore[assignment]
    shift_end: str = Column(String(5), nullable=False, default="17:00")  # type: ignore[assignment]
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
