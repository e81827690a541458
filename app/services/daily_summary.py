"""
Daily team summary recalculation.

A summary is a pure function of the current check-ins, approved leave,
holidays and team membership for one company-local day. Recomputing is
always safe: the row is upserted on ``(team_id, date)`` so repeated or
concurrent runs converge on the same content (last writer wins).

Membership is read at recompute time, so re-running an old day reflects
today's roster rather than the roster on that day.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timezones import (as_local_date, day_name, day_range, iter_days,
                                parse_work_days, today)
from app.models.checkin import Checkin
from app.models.daily_team_summary import DailyTeamSummary
from app.models.team import Team
from app.services.readiness import GREEN, RED, YELLOW
from app.services.team_facts import (first_checkin_per_user, get_active_member_ids,
                                     get_checkins, get_on_leave_user_ids,
                                     get_team_with_timezone, is_holiday)

logger = logging.getLogger(__name__)

_KEY_FIELDS = ("team_id", "date")


class TeamNotFoundError(LookupError):
    pass


def _rate(numerator: float, denominator: float) -> float | None:
    if denominator <= 0:
        return None
    return round(numerator / denominator * 100, 2)


def build_summary_values(
    *,
    team: Team,
    day: date,
    member_ids: Sequence[int],
    holiday: bool,
    on_leave_ids: set[int],
    checkins: Iterable[Checkin],
) -> dict[str, Any]:
    """Derive every summary column from the day's facts.

    ``checked_in_count`` only counts members who were expected (not on
    leave), which keeps ``expected == checked_in + not_checked_in``.
    Status counts and the average cover every member's first check-in
    of the day.
    """
    members = set(member_ids)
    total_members = len(members)
    is_work_day = day_name(day) in parse_work_days(team.work_days)
    values: dict[str, Any] = {
        "team_id": team.id,
        "company_id": team.company_id,
        "date": day,
        "is_work_day": is_work_day,
        "is_holiday": holiday,
        "total_members": total_members,
        "on_leave_count": 0,
        "expected_to_check_in": 0,
        "checked_in_count": 0,
        "not_checked_in_count": 0,
        "green_count": 0,
        "yellow_count": 0,
        "red_count": 0,
        "avg_readiness_score": None,
        "compliance_rate": None,
    }
    if holiday:
        return values

    counted = [c for uid, c in first_checkin_per_user(checkins).items() if uid in members]
    on_leave = on_leave_ids & members
    expected = total_members - len(on_leave)
    checked_in = sum(1 for c in counted if c.user_id not in on_leave)

    values.update(
        on_leave_count=len(on_leave),
        expected_to_check_in=expected,
        checked_in_count=checked_in,
        not_checked_in_count=max(0, expected - checked_in),
        green_count=sum(1 for c in counted if c.readiness_status == GREEN),
        yellow_count=sum(1 for c in counted if c.readiness_status == YELLOW),
        red_count=sum(1 for c in counted if c.readiness_status == RED),
        avg_readiness_score=(
            round(sum(c.readiness_score for c in counted) / len(counted), 2) if counted else None
        ),
        compliance_rate=_rate(checked_in, expected),
    )
    return values


async def _upsert(db: AsyncSession, values: dict[str, Any]) -> None:
    dialect = db.bind.dialect.name if db.bind is not None else ""
    if dialect in ("postgresql", "sqlite"):
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(DailyTeamSummary).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(_KEY_FIELDS),
            set_={k: stmt.excluded[k] for k in values if k not in _KEY_FIELDS},
        )
        await db.execute(stmt)
        return

    existing = await get_team_summary_for_date(db, values["team_id"], values["date"])
    if existing is None:
        db.add(DailyTeamSummary(**values))
    else:
        for field, value in values.items():
            setattr(existing, field, value)


async def recalculate_daily_team_summary(
    db: AsyncSession,
    team_id: int,
    day: date | datetime,
    timezone: str | None = None,
) -> DailyTeamSummary:
    """Recompute and upsert the summary of *team_id* for one company-local day."""
    found = await get_team_with_timezone(db, team_id)
    if found is None:
        raise TeamNotFoundError(f"Team not found: {team_id}")
    team, company_tz = found
    tz = company_tz or timezone

    local_day = as_local_date(day, tz)
    start, end = day_range(tz, local_day)
    member_ids = await get_active_member_ids(db, team_id)

    holiday = await is_holiday(db, team.company_id, local_day)
    if holiday:
        on_leave_ids: set[int] = set()
        checkins: list[Checkin] = []
    else:
        on_leave_ids = await get_on_leave_user_ids(db, member_ids, local_day)
        checkins = await get_checkins(db, member_ids, start, end)

    values = build_summary_values(
        team=team,
        day=local_day,
        member_ids=member_ids,
        holiday=holiday,
        on_leave_ids=on_leave_ids,
        checkins=checkins,
    )
    await _upsert(db, values)
    await db.commit()

    result = await db.execute(
        select(DailyTeamSummary)
        .where(DailyTeamSummary.team_id == team_id, DailyTeamSummary.date == local_day)
        .execution_options(populate_existing=True)
    )
    summary = result.scalar_one()
    logger.debug(
        "Summary team=%s date=%s expected=%s checked_in=%s",
        team_id,
        local_day,
        summary.expected_to_check_in,
        summary.checked_in_count,
    )
    return summary


async def recalculate_today_summary(
    db: AsyncSession, team_id: int, timezone: str | None = None
) -> DailyTeamSummary:
    found = await get_team_with_timezone(db, team_id)
    tz = (found[1] if found else None) or timezone
    return await recalculate_daily_team_summary(db, team_id, today(tz), tz)


async def recalculate_summaries_for_date_range(
    db: AsyncSession,
    team_id: int,
    start_date: date,
    end_date: date,
    timezone: str | None = None,
) -> list[DailyTeamSummary]:
    """Recompute every day of the inclusive range, one day at a time."""
    summaries = []
    for day in iter_days(start_date, end_date):
        summaries.append(await recalculate_daily_team_summary(db, team_id, day, timezone))
    return summaries


async def recalculate_all_team_summaries_for_date(
    db: AsyncSession,
    company_id: int,
    day: date,
    timezone: str | None = None,
) -> list[DailyTeamSummary]:
    """Recompute *day* for every active team of the company (holiday changes)."""
    result = await db.execute(
        select(Team.id).where(Team.company_id == company_id, Team.is_active.is_(True))
    )
    return [
        await recalculate_daily_team_summary(db, team_id, day, timezone)
        for team_id in result.scalars().all()
    ]


# ── Query helpers (no recomputation) ───────────────────────────────
async def get_team_summary_for_date(
    db: AsyncSession, team_id: int, day: date
) -> DailyTeamSummary | None:
    result = await db.execute(
        select(DailyTeamSummary)
        .where(DailyTeamSummary.team_id == team_id, DailyTeamSummary.date == day)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_team_summaries_for_range(
    db: AsyncSession, team_id: int, start_date: date, end_date: date
) -> list[DailyTeamSummary]:
    result = await db.execute(
        select(DailyTeamSummary)
        .where(
            DailyTeamSummary.team_id == team_id,
            DailyTeamSummary.date >= start_date,
            DailyTeamSummary.date <= end_date,
        )
        .order_by(DailyTeamSummary.date.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_company_summaries_for_date(
    db: AsyncSession, company_id: int, day: date
) -> list[tuple[DailyTeamSummary, str]]:
    """Every stored team summary of the company for *day*, with the team name."""
    result = await db.execute(
        select(DailyTeamSummary, Team.name)
        .join(Team, DailyTeamSummary.team_id == Team.id)
        .where(DailyTeamSummary.company_id == company_id, DailyTeamSummary.date == day)
        .order_by(Team.name, Team.id)
        .execution_options(populate_existing=True)
    )
    return [(summary, name) for summary, name in result.all()]


# ── Period aggregation ─────────────────────────────────────────────
@dataclass(frozen=True)
class SummaryAggregate:
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

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def aggregate_summaries(summaries: Iterable[DailyTeamSummary]) -> SummaryAggregate:
    """Fold daily rows into period totals.

    Readiness is re-derived as a mean weighted by the number of check-ins
    behind each day's average; compliance is ``sum(checked) / sum(expected)``
    over days where someone was expected.
    """
    rows = list(summaries)
    weighted_sum = 0.0
    weight = 0
    expected_total = 0
    checked_for_rate = 0
    for s in rows:
        if s.avg_readiness_score is not None:
            n = s.green_count + s.yellow_count + s.red_count
            weighted_sum += s.avg_readiness_score * n
            weight += n
        if s.expected_to_check_in > 0:
            expected_total += s.expected_to_check_in
            checked_for_rate += s.checked_in_count

    return SummaryAggregate(
        total_days=len(rows),
        work_days=sum(1 for s in rows if s.is_work_day and not s.is_holiday),
        holidays=sum(1 for s in rows if s.is_holiday),
        total_expected=sum(s.expected_to_check_in for s in rows),
        total_checked_in=sum(s.checked_in_count for s in rows),
        total_not_checked_in=sum(s.not_checked_in_count for s in rows),
        total_on_leave=sum(s.on_leave_count for s in rows),
        total_green=sum(s.green_count for s in rows),
        total_yellow=sum(s.yellow_count for s in rows),
        total_red=sum(s.red_count for s in rows),
        avg_readiness_score=round(weighted_sum / weight, 2) if weight else None,
        compliance_rate=_rate(checked_for_rate, expected_total),
    )
