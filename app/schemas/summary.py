"""Pydantic schemas for stored daily team summaries."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field, model_validator


class DailyTeamSummaryRead(BaseModel):
    team_id: int
    date: date
    is_work_day: bool
    is_holiday: bool
    total_members: int
    on_leave_count: int
    expected_to_check_in: int
    checked_in_count: int
    not_checked_in_count: int
    green_count: int
    yellow_count: int
    red_count: int
    avg_readiness_score: float | None
    compliance_rate: float | None

    model_config = {"from_attributes": True}


class SummaryAggregateRead(BaseModel):
    total_days: int
    work_days: int
    holidays: int
    total_expected: int
    total_checked_in: int
    total_not_checked_in: int
    total_on_leave: int
    total_green: int
    total_yellow: int
    total_red: int
    avg_readiness_score: float | None
    compliance_rate: float | None


class TeamSummariesResponse(BaseModel):
    team_id: int
    start_date: date
    end_date: date
    summaries: list[DailyTeamSummaryRead]
    aggregate: SummaryAggregateRead


class RebuildRequest(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _ordered(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class RebuildResponse(BaseModel):
    team_id: int
    days: int = Field(description="Number of days recomputed")
    summaries: list[DailyTeamSummaryRead]


class TeamDaySummaryRead(DailyTeamSummaryRead):
    team_name: str


class CompanySummariesResponse(BaseModel):
    date: date
    teams: list[TeamDaySummaryRead]
    aggregate: SummaryAggregateRead
