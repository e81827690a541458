"""Pydantic schemas for company holidays."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, field_validator


class HolidayCreate(BaseModel):
    date: date
    name: str

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        if len(v) > 200:
            raise ValueError("Name must not exceed 200 characters")
        return v


class HolidayRead(BaseModel):
    id: int
    date: date
    name: str
    created_by: int | None
    created_at: datetime | None

    model_config = {"from_attributes": True}
