"""
DailyTeamSummary — per (team, company-local date) aggregate.

Written only by the recalculation engine (upsert on ``team_id, date``).
It is a materialised view over check-ins, exceptions, holidays and team
membership and may be discarded and rebuilt at any time.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import (Boolean, Column, Date, Float, ForeignKey, Index,
                        Integer, UniqueConstraint)

from app.db.base import Base


class DailyTeamSummary(Base):
    __tablename__ = "daily_team_summaries"
    __table_args__ = (
        UniqueConstraint("team_id", "date", name="uq_daily_team_summary_team_date"),
        Index("ix_daily_team_summary_company_date", "company_id", "date"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    team_id: int = Column(Integer, ForeignKey("teams.id"), nullable=False)  # type: ignore[assignment]
    company_id: int = Column(Integer, ForeignKey("companies.id"), nullable=False)  # type: ignore[assignment]
    date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    is_work_day: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]
    is_holiday: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    total_members: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    on_leave_count: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    expected_to_check_in: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    checked_in_count: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    not_checked_in_count: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    green_count: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    yellow_count: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    red_count: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    avg_readiness_score: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    compliance_rate: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
