"""
Worker health report.

Always computed fresh from raw check-ins; it is a per-member drill-down
and deliberately does not read the team summary table.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.timezones import day_range, ensure_utc, last_n_days_range, local_date
from app.models.checkin import Checkin
from app.models.team import Team
from app.models.user import User
from app.services.team_facts import get_checkins, get_company_timezone

logger = logging.getLogger(__name__)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def summarize_checkins(checkins: Sequence[Checkin]) -> dict[str, Any] | None:
    """Averages and extremes of *checkins*; ``None`` when there are none."""
    if not checkins:
        return None
    return _stats(checkins)


def _stats(checkins: Sequence[Checkin]) -> dict[str, Any]:
    scores = [c.readiness_score for c in checkins]
    return {
        "total_checkins": len(checkins),
        "avg_score": _mean(scores),
        "avg_mood": _mean([c.mood for c in checkins]),
        "avg_stress": _mean([c.stress for c in checkins]),
        "avg_sleep": _mean([c.sleep for c in checkins]),
        "avg_physical": _mean([c.physical_health for c in checkins]),
        "lowest_score": min(scores),
        "highest_score": max(scores),
    }


def group_by_month(checkins: Sequence[Checkin], tz_name: str | None) -> list[dict[str, Any]]:
    """Bucket check-ins by company-local (year, month), most recent first."""
    buckets: dict[tuple[int, int], list[Checkin]] = defaultdict(list)
    for checkin in checkins:
        day = local_date(checkin.created_at, tz_name)
        buckets[(day.year, day.month)].append(checkin)

    history = []
    for (year, month) in sorted(buckets, reverse=True):
        history.append({"year": year, "month": month, **_stats(buckets[(year, month)])})
    return history


async def _user_checkins(
    db: AsyncSession,
    user_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Checkin]:
    if start is None and end is None:
        result = await db.execute(
            select(Checkin).where(Checkin.user_id == user_id).order_by(Checkin.created_at.desc())
        )
        return list(result.scalars().all())
    return await get_checkins(db, [user_id], start, end, newest_first=True)


async def get_worker_baseline_for_period(
    db: AsyncSession, user_id: int, days: int, tz_name: str | None
) -> dict[str, Any] | None:
    start, now = last_n_days_range(days, tz_name)
    checkins = await _user_checkins(db, user_id, start, now)
    stats = summarize_checkins(checkins)
    if stats is None:
        return None
    return {
        "period": days,
        **stats,
        "first_checkin": ensure_utc(checkins[-1].created_at),
        "last_checkin": ensure_utc(checkins[0].created_at),
    }


async def get_worker_monthly_baseline(
    db: AsyncSession, user_id: int, tz_name: str | None
) -> list[dict[str, Any]]:
    return group_by_month(await _user_checkins(db, user_id), tz_name)


async def get_worker_history_around_date(
    db: AsyncSession,
    user_id: int,
    target: date,
    tz_name: str | None,
    days_before: int = 7,
    days_after: int = 3,
) -> dict[str, Any]:
    """Check-ins from *days_before* to *days_after* around a claimed date."""
    start, _ = day_range(tz_name, target - timedelta(days=days_before))
    _, end = day_range(tz_name, target + timedelta(days=days_after))
    target_start, _ = day_range(tz_name, target)

    checkins = await get_checkins(db, [user_id], start, end)
    before = [c.readiness_score for c in checkins if ensure_utc(c.created_at) < target_start]
    return {
        "target_date": target,
        "days_before": days_before,
        "days_after": days_after,
        "baseline": _mean(before) if before else None,
        "checkins": checkins,
    }


async def generate_worker_health_report(
    db: AsyncSession,
    user_id: int,
    claim_date: date | None = None,
    period_days: int | None = None,
) -> dict[str, Any] | None:
    """Baseline, monthly history and optional claim analysis for one worker.

    Returns ``None`` when the user does not exist.
    """
    result = await db.execute(
        select(User, Team.name).outerjoin(Team, User.team_id == Team.id).where(User.id == user_id)
    )
    row = result.first()
    if row is None:
        return None
    user, team_name = row
    days = period_days or settings.HEALTH_REPORT_PERIOD_DAYS
    tz_name = await get_company_timezone(db, user.company_id)

    report = {
        "worker": {
            "id": user.id,
            "name": user.full_name,
            "email": user.email,
            "team": team_name or "No Team",
        },
        "baseline": await get_worker_baseline_for_period(db, user.id, days, tz_name),
        "monthly_history": await get_worker_monthly_baseline(db, user.id, tz_name),
        "claim_analysis": (
            await get_worker_history_around_date(db, user.id, claim_date, tz_name)
            if claim_date is not None
            else None
        ),
        "generated_at": datetime.now(timezone.utc),
    }
    logger.info("Health report generated for user=%s period=%sd", user.id, days)
    return report
