"""
User model — directory entry, credentials and role.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from app.db.base import Base

MEMBER_ROLES = ("WORKER", "MEMBER")
ELEVATED_ROLES = ("EXECUTIVE", "ADMIN", "SUPERVISOR")
REVIEWER_ROLES = ("TEAM_LEAD", *ELEVATED_ROLES)
ALL_ROLES = (*MEMBER_ROLES, *REVIEWER_ROLES)


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    first_name: str = Column(String(100), nullable=False, default="")  # type: ignore[assignment]
    last_name: str = Column(String(100), nullable=False, default="")  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="WORKER",
        server_default="WORKER",
    )  # WORKER | MEMBER | TEAM_LEAD | SUPERVISOR | ADMIN | EXECUTIVE
    company_id: int = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)  # type: ignore[assignment]
    team_id: int | None = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
