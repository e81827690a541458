"""Pydantic schemas for leave / exemption requests."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, field_validator, model_validator

from app.models.exception_request import EXCEPTION_TYPES
from app.schemas.common import PageMeta, UserBrief


def _check_type(v: str) -> str:
    v = v.strip().upper()
    if v not in EXCEPTION_TYPES:
        raise ValueError(f"Type must be one of: {', '.join(EXCEPTION_TYPES)}")
    return v


class _DateRange(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _ordered(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ExceptionCreate(_DateRange):
    type: str
    reason: str
    checkin_id: int | None = None
    notes: str | None = None

    @field_validator("type")
    @classmethod
    def _type(cls, v: str) -> str:
        return _check_type(v)

    @field_validator("reason")
    @classmethod
    def _reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Reason must not be empty")
        return v


class ExceptionForWorkerCreate(ExceptionCreate):
    user_id: int


class ExceptionUpdate(BaseModel):
    type: str | None = None
    reason: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    notes: str | None = None

    @field_validator("type")
    @classmethod
    def _type(cls, v: str | None) -> str | None:
        return _check_type(v) if v is not None else None


class ReviewRequest(BaseModel):
    note: str | None = None


class EndEarlyRequest(BaseModel):
    end_date: date | None = None
    note: str | None = None


class ExceptionRead(BaseModel):
    id: int
    user_id: int
    type: str
    reason: str
    status: str
    start_date: date
    end_date: date
    is_exemption: bool
    triggered_by_checkin_id: int | None
    score_at_request: float | None
    notes: str | None
    reviewed_by_id: int | None
    review_note: str | None
    approved_at: datetime | None
    created_at: datetime | None
    user: UserBrief | None = None

    model_config = {"from_attributes": True}


class ExceptionListResponse(BaseModel):
    data: list[ExceptionRead]
    pagination: PageMeta


def exception_out(exc, user=None) -> ExceptionRead:
    """Serialise an ExceptionRequest row, attaching its owner when known."""
    out = ExceptionRead.model_validate(exc)
    if user is not None:
        out.user = UserBrief.model_validate(user)
    return out
