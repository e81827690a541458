"""
Read-only facts the aggregation reads: membership, holidays, leave and
check-ins for a team over company-local days.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timezones import ensure_utc
from app.models.checkin import Checkin
from app.models.company import Company
from app.models.exception_request import ExceptionRequest
from app.models.holiday import Holiday
from app.models.team import Team
from app.models.user import User
from app.services.queries import (ActiveMembers, CoversDay, CreatedBetween,
                                  ExemptionOnly, StatusIs, TeamIs,
                                  UserIn, checkin_clauses, exception_clauses,
                                  member_clauses)


async def get_team_with_timezone(db: AsyncSession, team_id: int) -> tuple[Team, str | None] | None:
    result = await db.execute(
        select(Team, Company.timezone)
        .join(Company, Team.company_id == Company.id)
        .where(Team.id == team_id)
    )
    row = result.first()
    if row is None:
        return None
    return row[0], row[1]


async def get_company_timezone(db: AsyncSession, company_id: int) -> str | None:
    result = await db.execute(select(Company.timezone).where(Company.id == company_id))
    return result.scalar_one_or_none()


async def get_active_members(db: AsyncSession, team_id: int) -> list[User]:
    """Current active WORKER/MEMBER users of the team, ordered by name."""
    result = await db.execute(
        select(User)
        .where(*member_clauses((TeamIs(team_id), ActiveMembers())))
        .order_by(User.first_name, User.last_name, User.id)
    )
    return list(result.scalars().all())


async def get_active_member_ids(db: AsyncSession, team_id: int) -> list[int]:
    result = await db.execute(
        select(User.id).where(*member_clauses((TeamIs(team_id), ActiveMembers())))
    )
    return list(result.scalars().all())


async def is_holiday(db: AsyncSession, company_id: int, day: date) -> bool:
    result = await db.execute(
        select(Holiday.id).where(Holiday.company_id == company_id, Holiday.date == day).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def get_approved_leave(
    db: AsyncSession, member_ids: Iterable[int], day: date
) -> list[ExceptionRequest]:
    """APPROVED exemptions of *member_ids* whose inclusive range covers *day*."""
    ids = tuple(member_ids)
    if not ids:
        return []
    result = await db.execute(
        select(ExceptionRequest)
        .where(
            *exception_clauses(
                (UserIn(ids), StatusIs(("APPROVED",)), ExemptionOnly(), CoversDay(day))
            )
        )
        .order_by(ExceptionRequest.end_date.asc())
    )
    return list(result.scalars().all())


async def get_on_leave_user_ids(db: AsyncSession, member_ids: Iterable[int], day: date) -> set[int]:
    return {exc.user_id for exc in await get_approved_leave(db, member_ids, day)}


async def get_checkins(
    db: AsyncSession,
    member_ids: Iterable[int],
    start: datetime,
    end: datetime,
    *,
    inclusive_end: bool = True,
    newest_first: bool = False,
) -> list[Checkin]:
    ids = tuple(member_ids)
    if not ids:
        return []
    order = Checkin.created_at.desc() if newest_first else Checkin.created_at.asc()
    result = await db.execute(
        select(Checkin)
        .where(*checkin_clauses((UserIn(ids), CreatedBetween(start, end, inclusive_end))))
        .order_by(order, Checkin.id)
    )
    return list(result.scalars().all())


def first_checkin_per_user(checkins: Iterable[Checkin]) -> dict[int, Checkin]:
    """Keep each user's earliest check-in; at most one counts per day."""
    first: dict[int, Checkin] = {}
    for checkin in sorted(checkins, key=lambda c: (ensure_utc(c.created_at), c.id)):
        first.setdefault(checkin.user_id, checkin)
    return first
