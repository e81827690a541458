"""
Health and status probes.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_current_active_user, get_db
from app.core.config import settings
from app.core.timezones import day_range
from app.models.checkin import Checkin
from app.models.team import Team
from app.models.user import MEMBER_ROLES, User
from app.schemas.common import HealthResponse, StatusResponse
from app.services.team_facts import get_company_timezone

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Public health check — DB and Redis connectivity."""
    result = HealthResponse(db=False, redis=False)

    try:
        await db.execute(select(1))
        result.db = True
    except Exception as e:
        logger.error("Health check DB failure: %s", e)

    try:
        r = aioredis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
        await r.ping()
        await r.aclose()
        result.redis = True
    except Exception as e:
        logger.error("Health check Redis failure: %s", e)

    return result


@router.get("/status", response_model=StatusResponse)
async def system_status(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> StatusResponse:
    """Team and member counts for the caller's company, plus today's check-ins."""
    company_id = current_user.company_id
    teams = await db.execute(
        select(func.count(Team.id)).where(Team.company_id == company_id, Team.is_active.is_(True))
    )
    members = await db.execute(
        select(func.count(User.id)).where(
            User.company_id == company_id,
            User.is_active.is_(True),
            User.role.in_(MEMBER_ROLES),
        )
    )
    start, end = day_range(await get_company_timezone(db, company_id))
    checkins = await db.execute(
        select(func.count(Checkin.id)).where(
            Checkin.company_id == company_id,
            Checkin.created_at >= start,
            Checkin.created_at <= end,
        )
    )

    return StatusResponse(
        total_teams=teams.scalar() or 0,
        total_members=members.scalar() or 0,
        today_checkins=checkins.scalar() or 0,
        status="operational",
    )
