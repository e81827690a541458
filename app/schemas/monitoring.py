"""Pydantic schemas for the daily monitoring dashboard and health reports."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

from app.schemas.checkin import CheckinRead
from app.schemas.common import PageMeta, UserBrief
from app.schemas.exception import ExceptionRead


# ── Team ────────────────────────────────────────────────────────────
class TeamInfo(BaseModel):
    id: int
    name: str
    work_days: str
    shift_start: str
    shift_end: str
    timezone: str


class TeamOption(BaseModel):
    id: int
    name: str
    member_count: int


# ── Stats ───────────────────────────────────────────────────────────
class MonitoringStats(BaseModel):
    total_members: int
    active_members: int
    on_leave: int
    checked_in: int
    not_checked_in: int
    green_count: int
    yellow_count: int
    red_count: int
    pending_exemptions: int
    active_exemptions: int
    sudden_changes: int
    critical_changes: int


class SummaryStats(BaseModel):
    date: date
    is_work_day: bool
    is_holiday: bool
    total_members: int
    on_leave: int
    expected: int
    checked_in: int
    not_checked_in: int
    green_count: int
    yellow_count: int
    red_count: int
    avg_readiness_score: float | None
    compliance_rate: float | None


class StatsResponse(BaseModel):
    team: TeamInfo
    stats: SummaryStats


# ── Rows ────────────────────────────────────────────────────────────
class TodayCheckinRow(BaseModel):
    id: int
    user_id: int
    user: UserBrief
    mood: int
    stress: int
    sleep: int
    physical_health: int
    readiness_score: int
    readiness_status: str
    notes: str | None
    created_at: datetime
    average_score: int | None
    change_from_average: int | None
    has_exemption_request: bool
    exemption_status: str | None


class SuddenChangeRead(BaseModel):
    user_id: int
    user: UserBrief
    today_score: int
    today_status: str
    average_score: int
    change: int
    severity: str
    checkin_id: int
    checkin_time: datetime
    mood: int
    stress: int
    sleep: int
    physical_health: int
    history: list[int]


class DailyMonitoringResponse(BaseModel):
    team: TeamInfo
    stats: MonitoringStats
    today_checkins: list[TodayCheckinRow]
    not_checked_in_members: list[UserBrief]
    sudden_changes: list[SuddenChangeRead]
    pending_exemptions: list[ExceptionRead]
    active_exemptions: list[ExceptionRead]
    generated_at: datetime


# ── Paginated lists ─────────────────────────────────────────────────
class CheckinPage(BaseModel):
    data: list[TodayCheckinRow]
    pagination: PageMeta


class NotCheckedInPage(BaseModel):
    data: list[UserBrief]
    pagination: PageMeta


class SuddenChangePage(BaseModel):
    data: list[SuddenChangeRead]
    pagination: PageMeta
    total: int
    critical_count: int
    significant_count: int


class ExemptionPage(BaseModel):
    data: list[ExceptionRead]
    pagination: PageMeta


# ── Worker health report ────────────────────────────────────────────
class WorkerInfo(BaseModel):
    id: int
    name: str
    email: str
    team: str


class CheckinStats(BaseModel):
    total_checkins: int
    avg_score: float
    avg_mood: float
    avg_stress: float
    avg_sleep: float
    avg_physical: float
    lowest_score: float
    highest_score: float


class PeriodBaseline(CheckinStats):
    period: int
    first_checkin: datetime
    last_checkin: datetime


class MonthlyBaseline(CheckinStats):
    year: int
    month: int


class ClaimAnalysis(BaseModel):
    target_date: date
    days_before: int
    days_after: int
    baseline: float | None
    checkins: list[CheckinRead]


class WorkerHealthReport(BaseModel):
    worker: WorkerInfo
    baseline: PeriodBaseline | None
    monthly_history: list[MonthlyBaseline]
    claim_analysis: ClaimAnalysis | None
    generated_at: datetime


class MemberDayCounts(BaseModel):
    green_days: int
    yellow_days: int
    red_days: int


class MemberHistoryResponse(BaseModel):
    report: WorkerHealthReport
    day_counts: MemberDayCounts
    checkins: list[CheckinRead]
    exemptions: list[ExceptionRead]
