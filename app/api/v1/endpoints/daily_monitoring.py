"""
Daily monitoring dashboard for team leads and supervisors.

Every endpoint works on the resolved team's company-local "today". List
endpoints compute the whole team first and only then filter, rank and
paginate, so summary counts always describe the full team.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (TeamContext, find_team_for_user, get_current_active_user,
                             get_db, require_roles, resolve_team)
from app.core.config import settings
from app.core.exceptions import AppError
from app.core.timezones import last_n_days_range, today
from app.models.exception_request import ExceptionRequest
from app.models.team import Team
from app.models.user import ELEVATED_ROLES, REVIEWER_ROLES, User
from app.schemas.checkin import CheckinRead
from app.schemas.exception import exception_out
from app.schemas.monitoring import (CheckinPage, DailyMonitoringResponse, ExemptionPage,
                                    MemberHistoryResponse, NotCheckedInPage, StatsResponse,
                                    SuddenChangePage, TeamInfo, TeamOption)
from app.services.daily_summary import (get_team_summary_for_date,
                                        recalculate_daily_team_summary)
from app.services.health_report import generate_worker_health_report
from app.services.monitoring import (TeamDay, change_rows, checkin_rows, dashboard_stats,
                                     filter_by_name, load_team_day, not_checked_in_members,
                                     sudden_changes)
from app.services.pagination import paginate
from app.services.queries import (CompanyIs, ExemptionOnly, OverlapsRange, UserIn,
                                  exception_clauses)
from app.services.readiness import READINESS_STATUSES
from app.services.sudden_changes import CRITICAL, SEVERITY_ORDER, SIGNIFICANT
from app.services.team_facts import get_checkins, get_company_timezone

router = APIRouter(prefix="/daily-monitoring", tags=["daily-monitoring"])
logger = logging.getLogger(__name__)


def _team_info(ctx: TeamContext) -> TeamInfo:
    team = ctx.team
    return TeamInfo(
        id=team.id,
        name=team.name,
        work_days=team.work_days,
        shift_start=team.shift_start,
        shift_end=team.shift_end,
        timezone=ctx.timezone,
    )


def _parse_filter(value: str | None, allowed, code: str) -> tuple[str, ...]:
    if not value:
        return ()
    picked = tuple(v.strip().upper() for v in value.split(",") if v.strip())
    bad = [v for v in picked if v not in allowed]
    if bad:
        raise AppError(400, f"Unknown value(s): {', '.join(bad)}", code)
    return picked


def _row_user(row: dict) -> User:
    return row["user"]


def _exemption_list(day: TeamDay, which: str) -> list:
    users = day.members_by_id
    source = day.pending_exemptions if which == "PENDING" else day.active_exemptions
    return [exception_out(e, users.get(e.user_id)) for e in source]


# ── Full dashboard ──────────────────────────────────────────────────
@router.get("", response_model=DailyMonitoringResponse)
async def daily_monitoring(
    ctx: TeamContext = Depends(resolve_team),
    db: AsyncSession = Depends(get_db),
) -> DailyMonitoringResponse:
    day = await load_team_day(db, ctx.team, ctx.timezone)
    changes = sudden_changes(
        day,
        min_samples=settings.DASHBOARD_MIN_BASELINE_SAMPLES,
        min_drop=settings.SUDDEN_CHANGE_MIN_DROP,
    )
    return DailyMonitoringResponse(
        team=_team_info(ctx),
        stats=dashboard_stats(day, changes),
        today_checkins=checkin_rows(day),
        not_checked_in_members=not_checked_in_members(day),
        sudden_changes=change_rows(day, changes),
        pending_exemptions=_exemption_list(day, "PENDING"),
        active_exemptions=_exemption_list(day, "APPROVED"),
        generated_at=datetime.now(timezone.utc),
    )


@router.get("/stats", response_model=StatsResponse)
async def daily_stats(
    ctx: TeamContext = Depends(resolve_team),
    db: AsyncSession = Depends(get_db),
) -> StatsResponse:
    """Counts only, read from today's stored summary (computed once if missing)."""
    local_today = today(ctx.timezone)
    summary = await get_team_summary_for_date(db, ctx.team.id, local_today)
    if summary is None:
        summary = await recalculate_daily_team_summary(db, ctx.team.id, local_today, ctx.timezone)
    return StatsResponse(
        team=_team_info(ctx),
        stats={
            "date": summary.date,
            "is_work_day": summary.is_work_day,
            "is_holiday": summary.is_holiday,
            "total_members": summary.total_members,
            "on_leave": summary.on_leave_count,
            "expected": summary.expected_to_check_in,
            "checked_in": summary.checked_in_count,
            "not_checked_in": summary.not_checked_in_count,
            "green_count": summary.green_count,
            "yellow_count": summary.yellow_count,
            "red_count": summary.red_count,
            "avg_readiness_score": summary.avg_readiness_score,
            "compliance_rate": summary.compliance_rate,
        },
    )


# ── Paginated lists ─────────────────────────────────────────────────
@router.get("/checkins", response_model=CheckinPage)
async def today_checkins(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.PAGINATION_DEFAULT_LIMIT, ge=1, le=settings.PAGINATION_MAX_LIMIT),
    search: str | None = Query(default=None),
    status: str | None = Query(default=None, description="GREEN,YELLOW,RED"),
    ctx: TeamContext = Depends(resolve_team),
    db: AsyncSession = Depends(get_db),
) -> CheckinPage:
    statuses = _parse_filter(status, READINESS_STATUSES, "INVALID_STATUS")
    day = await load_team_day(db, ctx.team, ctx.timezone)
    rows = filter_by_name(checkin_rows(day, statuses), search, _row_user)
    result = paginate(rows, page, limit)
    return CheckinPage(data=result.items, pagination=result.meta())


@router.get("/not-checked-in", response_model=NotCheckedInPage)
async def not_checked_in(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.PAGINATION_DEFAULT_LIMIT, ge=1, le=settings.PAGINATION_MAX_LIMIT),
    search: str | None = Query(default=None),
    ctx: TeamContext = Depends(resolve_team),
    db: AsyncSession = Depends(get_db),
) -> NotCheckedInPage:
    day = await load_team_day(db, ctx.team, ctx.timezone)
    members = filter_by_name(not_checked_in_members(day), search, lambda m: m)
    result = paginate(members, page, limit)
    return NotCheckedInPage(data=result.items, pagination=result.meta())


@router.get("/sudden-changes", response_model=SuddenChangePage)
async def list_sudden_changes(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.PAGINATION_DEFAULT_LIMIT, ge=1, le=settings.PAGINATION_MAX_LIMIT),
    search: str | None = Query(default=None),
    severity: str | None = Query(default=None, description="CRITICAL,SIGNIFICANT,NOTABLE,MINOR"),
    min_drop: float = Query(default=settings.SUDDEN_CHANGE_MIN_DROP, ge=0, le=100),
    ctx: TeamContext = Depends(resolve_team),
    db: AsyncSession = Depends(get_db),
) -> SuddenChangePage:
    """Members whose score fell at least *min_drop* below their baseline.

    This list needs only two baseline samples; the main dashboard asks
    for three.
    """
    wanted = _parse_filter(severity, SEVERITY_ORDER, "INVALID_SEVERITY")
    day = await load_team_day(db, ctx.team, ctx.timezone)
    changes = sudden_changes(
        day,
        min_samples=settings.SUDDEN_CHANGES_MIN_BASELINE_SAMPLES,
        min_drop=min_drop,
    )
    shown = [c for c in changes if not wanted or c.severity in wanted]
    rows = filter_by_name(change_rows(day, shown), search, _row_user)
    result = paginate(rows, page, limit)
    return SuddenChangePage(
        data=result.items,
        pagination=result.meta(),
        total=len(changes),
        critical_count=sum(1 for c in changes if c.severity == CRITICAL),
        significant_count=sum(1 for c in changes if c.severity == SIGNIFICANT),
    )


@router.get("/exemptions", response_model=ExemptionPage)
async def list_exemptions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.PAGINATION_DEFAULT_LIMIT, ge=1, le=settings.PAGINATION_MAX_LIMIT),
    search: str | None = Query(default=None),
    status: str | None = Query(default=None, description="PENDING or APPROVED (active today)"),
    ctx: TeamContext = Depends(resolve_team),
    db: AsyncSession = Depends(get_db),
) -> ExemptionPage:
    statuses = _parse_filter(status, ("PENDING", "APPROVED"), "INVALID_STATUS") or ("PENDING", "APPROVED")
    day = await load_team_day(db, ctx.team, ctx.timezone)
    rows = [row for which in statuses for row in _exemption_list(day, which)]
    users = day.members_by_id
    rows = filter_by_name(rows, search, lambda r: users.get(r.user_id))
    result = paginate(rows, page, limit)
    return ExemptionPage(data=result.items, pagination=result.meta())


# ── Team picker ─────────────────────────────────────────────────────
@router.get("/teams", response_model=list[TeamOption])
async def available_teams(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(*ELEVATED_ROLES)),
) -> list[TeamOption]:
    member_count = (
        select(func.count(User.id))
        .where(User.team_id == Team.id, User.is_active.is_(True))
        .correlate(Team)
        .scalar_subquery()
    )
    result = await db.execute(
        select(Team.id, Team.name, member_count)
        .where(Team.company_id == current_user.company_id, Team.is_active.is_(True))
        .order_by(Team.name, Team.id)
    )
    return [TeamOption(id=i, name=n, member_count=c or 0) for i, n, c in result.all()]


# ── Member drill-down ───────────────────────────────────────────────
@router.get("/member/{member_id}", response_model=MemberHistoryResponse)
async def member_history(
    member_id: int,
    days: int = Query(default=settings.HEALTH_REPORT_PERIOD_DAYS, ge=1, le=366),
    claim_date: date | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MemberHistoryResponse:
    """Health report for one member plus their check-ins and exemptions in the period."""
    result = await db.execute(
        select(User).where(User.id == member_id, User.company_id == current_user.company_id)
    )
    member = result.scalar_one_or_none()
    if member is None:
        raise AppError(404, "Member not found", "MEMBER_NOT_FOUND")
    if member.id != current_user.id:
        if current_user.role not in REVIEWER_ROLES:
            raise AppError(403, "You can only view your own history", "FORBIDDEN")
        if current_user.role == "TEAM_LEAD":
            team = await find_team_for_user(db, current_user, None)
            if member.team_id != team.id:
                raise AppError(403, "You can only view members of your own team", "FORBIDDEN_TEAM")

    report = await generate_worker_health_report(db, member.id, claim_date, days)
    if report is None:
        raise AppError(404, "Member not found", "MEMBER_NOT_FOUND")

    tz_name = await get_company_timezone(db, member.company_id)
    start, now = last_n_days_range(days, tz_name)
    local_today = today(tz_name)
    checkins = await get_checkins(db, [member.id], start, now, newest_first=True)
    exc_result = await db.execute(
        select(ExceptionRequest)
        .where(
            *exception_clauses(
                (
                    CompanyIs(member.company_id),
                    UserIn((member.id,)),
                    ExemptionOnly(),
                    OverlapsRange(local_today - timedelta(days=days), local_today),
                )
            )
        )
        .order_by(ExceptionRequest.created_at.desc())
    )

    return MemberHistoryResponse(
        report=report,
        day_counts={
            "green_days": sum(1 for c in checkins if c.readiness_status == "GREEN"),
            "yellow_days": sum(1 for c in checkins if c.readiness_status == "YELLOW"),
            "red_days": sum(1 for c in checkins if c.readiness_status == "RED"),
        },
        checkins=[CheckinRead.model_validate(c) for c in checkins],
        exemptions=[exception_out(e, member) for e in exc_result.scalars().all()],
    )
