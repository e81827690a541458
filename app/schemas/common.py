"""Pydantic schemas shared across endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UserBrief(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    db: bool
    redis: bool


class StatusResponse(BaseModel):
    total_teams: int
    total_members: int
    today_checkins: int
    status: str
