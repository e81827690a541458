"""
Stored daily team summaries: period reads, a company view of one day and manual rebuilds.

Reads never recompute; they return whatever the last trigger wrote.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import find_team_for_user, get_current_active_user, get_db, require_roles
from app.core.exceptions import AppError
from app.core.timezones import today
from app.models.daily_team_summary import DailyTeamSummary
from app.models.user import ELEVATED_ROLES, REVIEWER_ROLES, User
from app.schemas.summary import (CompanySummariesResponse, DailyTeamSummaryRead,
                                 RebuildRequest, RebuildResponse, SummaryAggregateRead,
                                 TeamDaySummaryRead, TeamSummariesResponse)
from app.services.daily_summary import (aggregate_summaries, get_company_summaries_for_date,
                                        get_team_summaries_for_range,
                                        get_team_summary_for_date,
                                        recalculate_summaries_for_date_range)
from app.services.team_facts import get_company_timezone

router = APIRouter(prefix="/summaries", tags=["summaries"])
logger = logging.getLogger(__name__)

MAX_REBUILD_DAYS = 366


@router.get("/teams/{team_id}", response_model=TeamSummariesResponse)
async def team_summaries(
    team_id: int,
    days: int = Query(default=30, ge=1, le=MAX_REBUILD_DAYS),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> TeamSummariesResponse:
    """Stored summaries for the last *days* company-local days, newest first."""
    team = await find_team_for_user(db, current_user, team_id)
    tz_name = await get_company_timezone(db, team.company_id)
    end = today(tz_name)
    start = end - timedelta(days=days - 1)

    rows = await get_team_summaries_for_range(db, team.id, start, end)
    return TeamSummariesResponse(
        team_id=team.id,
        start_date=start,
        end_date=end,
        summaries=[DailyTeamSummaryRead.model_validate(r) for r in rows],
        aggregate=SummaryAggregateRead(**aggregate_summaries(rows).to_dict()),
    )


@router.get("/teams/{team_id}/{day}", response_model=DailyTeamSummaryRead)
async def team_summary_for_date(
    team_id: int,
    day: date,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> DailyTeamSummary:
    team = await find_team_for_user(db, current_user, team_id)
    summary = await get_team_summary_for_date(db, team.id, day)
    if summary is None:
        raise AppError(404, f"No summary stored for {day.isoformat()}", "SUMMARY_NOT_FOUND")
    return summary


@router.post("/teams/{team_id}/rebuild", response_model=RebuildResponse)
async def rebuild_team_summaries(
    team_id: int,
    body: RebuildRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(*REVIEWER_ROLES)),
) -> RebuildResponse:
    """Recompute an inclusive date range now and return the fresh rows."""
    span = (body.end_date - body.start_date).days + 1
    if span > MAX_REBUILD_DAYS:
        raise AppError(400, f"At most {MAX_REBUILD_DAYS} days can be rebuilt at once", "RANGE_TOO_LARGE")

    team = await find_team_for_user(db, current_user, team_id)
    tz_name = await get_company_timezone(db, team.company_id)
    rows = await recalculate_summaries_for_date_range(db, team.id, body.start_date, body.end_date, tz_name)
    logger.info(
        "Rebuilt %d summaries for team=%s (%s..%s) by user=%s",
        len(rows), team.id, body.start_date, body.end_date, current_user.id,
    )
    return RebuildResponse(
        team_id=team.id,
        days=len(rows),
        summaries=[DailyTeamSummaryRead.model_validate(r) for r in rows],
    )


@router.get("/company/{day}", response_model=CompanySummariesResponse)
async def company_summaries_for_date(
    day: date,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(*ELEVATED_ROLES)),
) -> CompanySummariesResponse:
    """Stored summaries of every team in the caller's company for one day."""
    rows = await get_company_summaries_for_date(db, current_user.company_id, day)
    return CompanySummariesResponse(
        date=day,
        teams=[
            TeamDaySummaryRead(**DailyTeamSummaryRead.model_validate(s).model_dump(), team_name=name)
            for s, name in rows
        ],
        aggregate=SummaryAggregateRead(**aggregate_summaries(s for s, _ in rows).to_dict()),
    )
