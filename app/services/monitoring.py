"""
Team-day snapshot behind the daily monitoring dashboard.

Everything the dashboard shows for "today" is derived from one load so
the check-in list, the not-checked-in list, the sudden changes and the
stats agree with each other.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timezones import today
from app.models.checkin import Checkin
from app.models.exception_request import ExceptionRequest
from app.models.team import Team
from app.models.user import User
from app.services.queries import (CoversDay, ExemptionOnly, NameMatches, Predicate,
                                  StatusIs, UserIn, exception_clauses)
from app.services.readiness import GREEN, RED, YELLOW
from app.services.sudden_changes import (CRITICAL, SuddenChange, TodayWindow,
                                         detect_sudden_changes, load_today_window)
from app.services.team_facts import get_active_members


@dataclass(frozen=True)
class TeamDay:
    team: Team
    timezone: str
    members: list[User]
    window: TodayWindow
    pending_exemptions: list[ExceptionRequest]
    active_exemptions: list[ExceptionRequest]
    exemption_by_checkin: dict[int, ExceptionRequest]

    @property
    def member_ids(self) -> list[int]:
        return [m.id for m in self.members]

    @property
    def members_by_id(self) -> dict[int, User]:
        return {m.id: m for m in self.members}

    @property
    def on_leave_ids(self) -> set[int]:
        return {e.user_id for e in self.active_exemptions}

    @property
    def checked_in_ids(self) -> set[int]:
        return {c.user_id for c in self.window.checkins}


async def _exemptions(db: AsyncSession, predicates: Sequence[Predicate], order) -> list[ExceptionRequest]:
    result = await db.execute(
        select(ExceptionRequest).where(*exception_clauses(predicates)).order_by(order)
    )
    return list(result.scalars().all())


async def load_team_day(
    db: AsyncSession,
    team: Team,
    timezone: str,
    *,
    baseline_days: int | None = None,
) -> TeamDay:
    members = await get_active_members(db, team.id)
    member_ids = tuple(m.id for m in members)
    local_today = today(timezone)

    window = await load_today_window(db, list(member_ids), timezone, baseline_days)
    if member_ids:
        pending = await _exemptions(
            db,
            (UserIn(member_ids), ExemptionOnly(), StatusIs(("PENDING",))),
            ExceptionRequest.created_at.desc(),
        )
        active = await _exemptions(
            db,
            (UserIn(member_ids), ExemptionOnly(), StatusIs(("APPROVED",)), CoversDay(local_today)),
            ExceptionRequest.end_date.asc(),
        )
    else:
        pending, active = [], []

    checkin_ids = [c.id for c in window.checkins]
    linked: dict[int, ExceptionRequest] = {}
    if checkin_ids:
        result = await db.execute(
            select(ExceptionRequest).where(ExceptionRequest.triggered_by_checkin_id.in_(checkin_ids))
        )
        for exc in result.scalars().all():
            linked[exc.triggered_by_checkin_id] = exc

    return TeamDay(
        team=team,
        timezone=timezone,
        members=members,
        window=window,
        pending_exemptions=pending,
        active_exemptions=active,
        exemption_by_checkin=linked,
    )


def checkin_rows(day: TeamDay, statuses: Sequence[str] = ()) -> list[dict[str, Any]]:
    """Today's check-ins, newest first, with each member's baseline comparison."""
    users = day.members_by_id
    rows = []
    for checkin in day.window.checkins:
        if statuses and checkin.readiness_status not in statuses:
            continue
        baseline = day.window.baselines.get(checkin.user_id)
        average = baseline.mean if baseline else None
        linked = day.exemption_by_checkin.get(checkin.id)
        rows.append(
            {
                "id": checkin.id,
                "user_id": checkin.user_id,
                "user": users[checkin.user_id],
                "mood": checkin.mood,
                "stress": checkin.stress,
                "sleep": checkin.sleep,
                "physical_health": checkin.physical_health,
                "readiness_score": round(checkin.readiness_score),
                "readiness_status": checkin.readiness_status,
                "notes": checkin.notes,
                "created_at": checkin.created_at,
                "average_score": round(average) if average is not None else None,
                "change_from_average": (
                    round(checkin.readiness_score - average) if average is not None else None
                ),
                "has_exemption_request": linked is not None,
                "exemption_status": linked.status if linked else None,
            }
        )
    return rows


def not_checked_in_members(day: TeamDay) -> list[User]:
    """Members expected today who have not checked in; leave excludes them."""
    skip = day.checked_in_ids | day.on_leave_ids
    return [m for m in day.members if m.id not in skip]


def sudden_changes(day: TeamDay, *, min_samples: int, min_drop: float = 10) -> list[SuddenChange]:
    return detect_sudden_changes(
        day.window.checkins, day.window.baselines, min_samples=min_samples, min_drop=min_drop
    )


def change_rows(day: TeamDay, changes: Sequence[SuddenChange]) -> list[dict[str, Any]]:
    users = day.members_by_id
    return [
        {
            "user_id": c.user_id,
            "user": users[c.user_id],
            "today_score": c.today_score,
            "today_status": c.today_status,
            "average_score": c.average_score,
            "change": c.change,
            "severity": c.severity,
            "checkin_id": c.checkin_id,
            "checkin_time": c.checkin_time,
            "mood": c.mood,
            "stress": c.stress,
            "sleep": c.sleep,
            "physical_health": c.physical_health,
            "history": list(c.history),
        }
        for c in changes
    ]


def dashboard_stats(day: TeamDay, changes: Sequence[SuddenChange]) -> dict[str, int]:
    checkins: list[Checkin] = day.window.checkins
    total = len(day.members)
    on_leave = len(day.on_leave_ids)
    return {
        "total_members": total,
        "active_members": total - on_leave,
        "on_leave": on_leave,
        "checked_in": len(day.checked_in_ids - day.on_leave_ids),
        "not_checked_in": len(not_checked_in_members(day)),
        "green_count": sum(1 for c in checkins if c.readiness_status == GREEN),
        "yellow_count": sum(1 for c in checkins if c.readiness_status == YELLOW),
        "red_count": sum(1 for c in checkins if c.readiness_status == RED),
        "pending_exemptions": len(day.pending_exemptions),
        "active_exemptions": len(day.active_exemptions),
        "sudden_changes": len(changes),
        "critical_changes": sum(1 for c in changes if c.severity == CRITICAL),
    }


def filter_by_name(items: Sequence[Any], search: str | None, user_of: Callable[[Any], User | None]) -> list[Any]:
    """Narrow already-computed rows to members whose name or email contains *search*."""
    if not search or not search.strip():
        return list(items)
    needle = NameMatches(search)
    return [item for item in items if needle.matches(user_of(item))]
