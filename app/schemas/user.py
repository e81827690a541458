"""Pydantic schemas for the authenticated user's profile."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class UserRead(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    company_id: int
    team_id: int | None
    is_active: bool
    created_at: datetime | None

    model_config = {"from_attributes": True}


class ProfileRead(UserRead):
    """Profile plus the context dashboards need: team and company-local zone."""

    full_name: str
    team_name: str | None = None
    timezone: str
