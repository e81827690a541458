"""
Tests for check-in submission and the today-summary refresh it triggers.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timezones import today
from app.services.daily_summary import get_team_summary_for_date
from app.services.readiness import calculate_readiness
from tests.conftest import TZ, add_leave

BASE = "/api/v1/checkins"
GOOD_DAY = {"mood": 8, "stress": 2, "sleep": 8, "physical_health": 8}


def test_readiness_score_and_status():
    assert calculate_readiness(8, 2, 8, 8) == (80, "GREEN")
    assert calculate_readiness(5, 5, 5, 5) == (50, "YELLOW")
    assert calculate_readiness(2, 9, 2, 3) == (20, "RED")
    assert calculate_readiness(7, 3, 7, 7)[1] == "GREEN"


def test_readiness_halves_round_up():
    assert calculate_readiness(8, 3, 7, 7) == (73, "GREEN")
    assert calculate_readiness(6, 5, 6, 6) == (58, "YELLOW")
    assert calculate_readiness(2, 10, 3, 2) == (18, "RED")


@pytest.mark.asyncio
async def test_checkin_refreshes_today_summary(async_client: AsyncClient, db_session: AsyncSession, seeded, login_as):
    login_as(seeded.workers[0])

    resp = await async_client.post(BASE, json={**GOOD_DAY, "notes": "  fine  "})
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["readiness_score"] == 80
    assert body["readiness_status"] == "GREEN"
    assert body["notes"] == "fine"

    summary = await get_team_summary_for_date(db_session, seeded.alpha.id, today(TZ))
    assert summary is not None
    assert summary.checked_in_count == 1
    assert summary.green_count == 1
    assert summary.compliance_rate == 20.0


@pytest.mark.asyncio
async def test_second_checkin_same_day_is_rejected(async_client: AsyncClient, seeded, login_as):
    login_as(seeded.workers[0])
    assert (await async_client.post(BASE, json=GOOD_DAY)).status_code == 201

    resp = await async_client.post(BASE, json=GOOD_DAY)
    assert resp.status_code == 400
    assert resp.json() == {
        "detail": "You have already checked in today",
        "code": "ALREADY_CHECKED_IN",
        "success": False,
    }


@pytest.mark.asyncio
async def test_checkin_guards(async_client: AsyncClient, db_session: AsyncSession, seeded, login_as):
    login_as(seeded.admin)
    resp = await async_client.post(BASE, json=GOOD_DAY)
    assert resp.status_code == 403
    assert resp.json()["code"] == "NOT_MEMBER_ROLE"

    worker = seeded.workers[0]
    local_today = today(TZ)
    await add_leave(db_session, worker, local_today - timedelta(days=1), local_today + timedelta(days=1))
    login_as(worker)
    resp = await async_client.post(BASE, json=GOOD_DAY)
    assert resp.status_code == 400
    assert resp.json()["code"] == "ON_LEAVE"

    worker.team_id = None
    await db_session.commit()
    resp = await async_client.post(BASE, json=GOOD_DAY)
    assert resp.json()["code"] == "NO_TEAM"


@pytest.mark.asyncio
async def test_subscores_are_bounded(async_client: AsyncClient, seeded, login_as):
    login_as(seeded.workers[0])
    resp = await async_client.post(BASE, json={**GOOD_DAY, "mood": 11})
    assert resp.status_code == 422
    resp = await async_client.post(BASE, json={**GOOD_DAY, "sleep": 0})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_my_checkins_newest_first(async_client: AsyncClient, seeded, login_as):
    login_as(seeded.workers[0])
    await async_client.post(BASE, json=GOOD_DAY)

    resp = await async_client.get(f"{BASE}/my")
    assert resp.status_code == 200
    assert len(resp.json()) == 1
    assert resp.json()[0]["user_id"] == seeded.workers[0].id
