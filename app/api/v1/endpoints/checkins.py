"""
Check-in submission. Each accepted check-in refreshes today's team summary.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_active_user, get_db, get_session_factory
from app.core.exceptions import AppError
from app.core.timezones import day_range, today
from app.db.session import SessionFactory
from app.models.checkin import Checkin
from app.models.user import MEMBER_ROLES, User
from app.schemas.checkin import CheckinCreate, CheckinRead
from app.services.readiness import calculate_readiness
from app.services.team_facts import get_checkins, get_company_timezone, get_on_leave_user_ids
from app.services.triggers import enqueue_today

router = APIRouter(prefix="/checkins", tags=["checkins"])
logger = logging.getLogger(__name__)


@router.post("", response_model=CheckinRead, status_code=201)
async def submit_checkin(
    body: CheckinCreate,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
    current_user: User = Depends(get_current_active_user),
) -> Checkin:
    """Record today's check-in for the caller (one per company-local day)."""
    if current_user.role not in MEMBER_ROLES:
        raise AppError(403, "Only team members can submit check-ins", "NOT_MEMBER_ROLE")
    if current_user.team_id is None:
        raise AppError(400, "You must be assigned to a team to check in", "NO_TEAM")

    tz_name = await get_company_timezone(db, current_user.company_id)
    local_today = today(tz_name)

    if current_user.id in await get_on_leave_user_ids(db, [current_user.id], local_today):
        raise AppError(400, "You are on approved leave today", "ON_LEAVE")

    start, end = day_range(tz_name, local_today)
    if await get_checkins(db, [current_user.id], start, end):
        raise AppError(400, "You have already checked in today", "ALREADY_CHECKED_IN")

    score, status = calculate_readiness(body.mood, body.stress, body.sleep, body.physical_health)
    checkin = Checkin(
        user_id=current_user.id,
        company_id=current_user.company_id,
        mood=body.mood,
        stress=body.stress,
        sleep=body.sleep,
        physical_health=body.physical_health,
        readiness_score=score,
        readiness_status=status,
        notes=body.notes,
    )
    db.add(checkin)
    await db.commit()
    await db.refresh(checkin)
    logger.info("Check-in %s for user=%s score=%s (%s)", checkin.id, current_user.id, score, status)

    enqueue_today(background, session_factory, current_user.team_id, tz_name, "checkin")
    return checkin


@router.get("/my", response_model=list[CheckinRead])
async def my_checkins(
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> list[Checkin]:
    """The caller's most recent check-ins, newest first."""
    result = await db.execute(
        select(Checkin)
        .where(Checkin.user_id == current_user.id)
        .order_by(Checkin.created_at.desc(), Checkin.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
