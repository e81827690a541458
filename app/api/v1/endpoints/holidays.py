"""
Company holidays. Adding or removing one recomputes that date for every team.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (get_current_active_user, get_db, get_session_factory,
                             require_roles)
from app.core.exceptions import AppError
from app.db.session import SessionFactory
from app.models.holiday import Holiday
from app.models.user import ELEVATED_ROLES, User
from app.schemas.common import MessageResponse
from app.schemas.holiday import HolidayCreate, HolidayRead
from app.services.team_facts import get_company_timezone
from app.services.triggers import enqueue_company_date

router = APIRouter(prefix="/holidays", tags=["holidays"])
logger = logging.getLogger(__name__)


@router.get("", response_model=list[HolidayRead])
async def list_holidays(
    year: int | None = Query(default=None, ge=1970, le=2100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> list[Holiday]:
    stmt = select(Holiday).where(Holiday.company_id == current_user.company_id)
    if year is not None:
        stmt = stmt.where(Holiday.date >= date(year, 1, 1), Holiday.date <= date(year, 12, 31))
    result = await db.execute(stmt.order_by(Holiday.date.asc()))
    return list(result.scalars().all())


@router.post("", response_model=HolidayRead, status_code=201)
async def create_holiday(
    body: HolidayCreate,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
    admin: User = Depends(require_roles(*ELEVATED_ROLES)),
) -> Holiday:
    """Declare a company-wide day off (one per date)."""
    existing = await db.execute(
        select(Holiday.id).where(Holiday.company_id == admin.company_id, Holiday.date == body.date)
    )
    if existing.scalar_one_or_none() is not None:
        raise AppError(409, f"A holiday already exists on {body.date.isoformat()}", "HOLIDAY_EXISTS")

    holiday = Holiday(
        company_id=admin.company_id,
        date=body.date,
        name=body.name,
        created_by=admin.id,
    )
    db.add(holiday)
    await db.commit()
    await db.refresh(holiday)
    logger.info("Holiday %s (%s) added by %s", holiday.date, holiday.name, admin.id)

    tz_name = await get_company_timezone(db, admin.company_id)
    enqueue_company_date(background, session_factory, admin.company_id, holiday.date, tz_name, "holiday-added")
    return holiday


@router.delete("/{holiday_id}", response_model=MessageResponse)
async def delete_holiday(
    holiday_id: int,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
    admin: User = Depends(require_roles(*ELEVATED_ROLES)),
) -> MessageResponse:
    result = await db.execute(
        select(Holiday).where(Holiday.id == holiday_id, Holiday.company_id == admin.company_id)
    )
    holiday = result.scalar_one_or_none()
    if holiday is None:
        raise AppError(404, "Holiday not found", "HOLIDAY_NOT_FOUND")

    day = holiday.date
    await db.delete(holiday)
    await db.commit()
    logger.info("Holiday %s removed by %s", day, admin.id)

    tz_name = await get_company_timezone(db, admin.company_id)
    enqueue_company_date(background, session_factory, admin.company_id, day, tz_name, "holiday-removed")
    return MessageResponse(message="Holiday deleted")
