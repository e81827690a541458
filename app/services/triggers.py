"""
Recalculation triggers.

Write endpoints decide *which* days an upstream change touched and hand
the work to FastAPI ``BackgroundTasks``. The background job opens its own
session, recomputes each day and never lets a failure escape: a failed
run only leaves a stale summary that the next trigger or a manual
rebuild repairs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from fastapi import BackgroundTasks

from app.db.session import SessionFactory
from app.models.exception_request import ExceptionRequest
from app.services.daily_summary import (recalculate_all_team_summaries_for_date,
                                        recalculate_summaries_for_date_range,
                                        recalculate_today_summary)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateSpan:
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Empty span: {self.start} > {self.end}")

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


def union_span(a: DateSpan, b: DateSpan) -> DateSpan:
    """Smallest span covering both, so days that left the range are fixed too."""
    return DateSpan(min(a.start, b.start), max(a.end, b.end))


def counts_as_leave(exc: ExceptionRequest) -> bool:
    return exc.status == "APPROVED" and bool(exc.is_exemption)


def approval_span(exc: ExceptionRequest) -> DateSpan | None:
    if not exc.is_exemption:
        return None
    return DateSpan(exc.start_date, exc.end_date)


def update_span(
    old_start: date,
    old_end: date,
    exc: ExceptionRequest,
) -> DateSpan | None:
    """Days to recompute after a date edit; only APPROVED leave matters."""
    if not counts_as_leave(exc):
        return None
    if (old_start, old_end) == (exc.start_date, exc.end_date):
        return None
    return union_span(DateSpan(old_start, old_end), DateSpan(exc.start_date, exc.end_date))


def end_early_span(original_end: date, new_end: date, is_exemption: bool = True) -> DateSpan | None:
    """The uncovered tail ``[new_end + 1, original_end]``."""
    if not is_exemption or new_end >= original_end:
        return None
    return DateSpan(new_end + timedelta(days=1), original_end)


def cancellation_span(exc: ExceptionRequest) -> DateSpan | None:
    """Deleting PENDING or REJECTED records never touched any summary."""
    if not counts_as_leave(exc):
        return None
    return DateSpan(exc.start_date, exc.end_date)


# ── Background jobs ─────────────────────────────────────────────────
async def run_range_recalculation(
    session_factory: SessionFactory,
    team_id: int,
    span: DateSpan,
    timezone: str | None,
    action: str,
) -> None:
    try:
        async with session_factory() as db:
            await recalculate_summaries_for_date_range(db, team_id, span.start, span.end, timezone)
        logger.info("Recalculated team=%s days=%s after %s", team_id, span, action)
    except Exception:
        logger.exception("Summary recalculation failed team=%s days=%s action=%s", team_id, span, action)


async def run_today_recalculation(
    session_factory: SessionFactory,
    team_id: int,
    timezone: str | None,
    action: str,
) -> None:
    try:
        async with session_factory() as db:
            await recalculate_today_summary(db, team_id, timezone)
    except Exception:
        logger.exception("Summary recalculation failed team=%s day=today action=%s", team_id, action)


async def run_company_date_recalculation(
    session_factory: SessionFactory,
    company_id: int,
    day: date,
    timezone: str | None,
    action: str,
) -> None:
    try:
        async with session_factory() as db:
            summaries = await recalculate_all_team_summaries_for_date(db, company_id, day, timezone)
        logger.info("Recalculated %d team(s) for %s after %s", len(summaries), day, action)
    except Exception:
        logger.exception(
            "Summary recalculation failed company=%s day=%s action=%s", company_id, day, action
        )


def enqueue_range(
    tasks: BackgroundTasks,
    session_factory: SessionFactory,
    team_id: int | None,
    span: DateSpan | None,
    timezone: str | None,
    action: str,
) -> bool:
    """Schedule a range recompute; returns False when there is nothing to do."""
    if team_id is None or span is None:
        return False
    tasks.add_task(run_range_recalculation, session_factory, team_id, span, timezone, action)
    return True


def enqueue_today(
    tasks: BackgroundTasks,
    session_factory: SessionFactory,
    team_id: int | None,
    timezone: str | None,
    action: str,
) -> bool:
    if team_id is None:
        return False
    tasks.add_task(run_today_recalculation, session_factory, team_id, timezone, action)
    return True


def enqueue_company_date(
    tasks: BackgroundTasks,
    session_factory: SessionFactory,
    company_id: int,
    day: date,
    timezone: str | None,
    action: str,
) -> None:
    tasks.add_task(run_company_date_recalculation, session_factory, company_id, day, timezone, action)
