"""
Exception (leave / exemption) model.

Lifecycle: PENDING -> APPROVED | REJECTED. An APPROVED record may later be
ended early (``end_date`` shortened) or deleted outright. Only APPROVED rows
with ``is_exemption`` set count a member as on leave.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (Boolean, Column, Date, DateTime, Float, ForeignKey,
                        Index, Integer, String)

from app.db.base import Base

EXCEPTION_TYPES = (
    "SICK_LEAVE",
    "PERSONAL_LEAVE",
    "MEDICAL_APPOINTMENT",
    "FAMILY_EMERGENCY",
    "OTHER",
)
EXCEPTION_STATUSES = ("PENDING", "APPROVED", "REJECTED")


class ExceptionRequest(Base):
    __tablename__ = "exceptions"
    __table_args__ = (
        Index("ix_exceptions_user_status", "user_id", "status"),
        Index("ix_exceptions_dates", "start_date", "end_date"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    company_id: int = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)  # type: ignore[assignment]
    type: str = Column(String(30), nullable=False, default="OTHER")  # type: ignore[assignment]
    reason: str = Column(String(1000), nullable=False, default="")  # type: ignore[assignment]
    status: str = Column(String(10), nullable=False, default="PENDING", index=True)  # type: ignore[assignment]
    start_date: date = Column(Date, nullable=False)  # type: ignore[assignment]
    end_date: date = Column(Date, nullable=False)  # type: ignore[assignment]  # inclusive
    is_exemption: bool = Column(Boolean, nullable=False, default=True, server_default="true")  # type: ignore[assignment]
    triggered_by_checkin_id: int | None = Column(Integer, ForeignKey("checkins.id"), nullable=True)  # type: ignore[assignment]
    score_at_request: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    notes: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    reviewed_by_id: int | None = Column(Integer, ForeignKey("users.id"), nullable=True)  # type: ignore[assignment]
    review_note: str | None = Column(String(1000), nullable=True)  # type: ignore[assignment]
    approved_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
