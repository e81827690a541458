"""
Tests for the worker health report building blocks.
"""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.health_report import (generate_worker_health_report, group_by_month,
                                        summarize_checkins)


def _checkin(at: datetime, score: float, mood=6, stress=4, sleep=7, physical_health=8):
    return SimpleNamespace(
        created_at=at, readiness_score=score, mood=mood, stress=stress,
        sleep=sleep, physical_health=physical_health,
    )


def test_summary_of_no_checkins_is_none():
    assert summarize_checkins([]) is None


def test_summary_averages_and_extremes():
    stats = summarize_checkins([
        _checkin(datetime(2025, 3, 1, tzinfo=timezone.utc), 40, mood=4),
        _checkin(datetime(2025, 3, 2, tzinfo=timezone.utc), 80, mood=8),
    ])
    assert stats["total_checkins"] == 2
    assert stats["avg_score"] == 60
    assert stats["avg_mood"] == 6
    assert stats["lowest_score"] == 40
    assert stats["highest_score"] == 80


def test_months_follow_company_calendar():
    checkins = [
        # 2025-01-31 17:00 UTC is already February 1 in Manila
        _checkin(datetime(2025, 1, 31, 17, 0, tzinfo=timezone.utc), 70),
        _checkin(datetime(2025, 1, 15, 4, 0, tzinfo=timezone.utc), 50),
        _checkin(datetime(2025, 2, 10, 4, 0, tzinfo=timezone.utc), 90),
    ]
    history = group_by_month(checkins, "Asia/Manila")
    assert [(h["year"], h["month"], h["total_checkins"]) for h in history] == [(2025, 2, 2), (2025, 1, 1)]
    assert history[0]["avg_score"] == 80


@pytest.mark.asyncio
async def test_report_for_missing_user_is_none(db_session: AsyncSession, seeded):
    assert await generate_worker_health_report(db_session, 9999) is None


@pytest.mark.asyncio
async def test_report_for_user_without_team(db_session: AsyncSession, seeded):
    report = await generate_worker_health_report(db_session, seeded.admin.id)
    assert report["worker"]["team"] == "No Team"
    assert report["worker"]["name"] == "Ada Tester"
    assert report["baseline"] is None
