"""Pydantic schemas for daily check-ins."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class CheckinCreate(BaseModel):
    mood: int = Field(ge=1, le=10)
    stress: int = Field(ge=1, le=10)
    sleep: int = Field(ge=1, le=10)
    physical_health: int = Field(ge=1, le=10)
    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def _notes(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if len(v) > 500:
            raise ValueError("Notes must not exceed 500 characters")
        return v or None


class CheckinRead(BaseModel):
    id: int
    user_id: int
    mood: int
    stress: int
    sleep: int
    physical_health: int
    readiness_score: float
    readiness_status: str
    notes: str | None
    created_at: datetime | None

    model_config = {"from_attributes": True}
