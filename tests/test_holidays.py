"""
Tests for company holidays and the company-wide recalculation they trigger.
"""

from datetime import date

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.daily_summary import get_team_summary_for_date
from tests.conftest import add_checkin, local_noon

BASE = "/api/v1/holidays"
DAY = date(2025, 6, 12)


@pytest.mark.asyncio
async def test_adding_and_removing_a_holiday(async_client: AsyncClient, db_session: AsyncSession, seeded, login_as):
    await add_checkin(db_session, seeded.workers[0], local_noon(DAY), 80)
    login_as(seeded.admin)

    resp = await async_client.post(BASE, json={"date": DAY.isoformat(), "name": "Independence Day"})
    assert resp.status_code == 201, resp.text
    holiday_id = resp.json()["id"]

    for team in (seeded.alpha, seeded.bravo):
        summary = await get_team_summary_for_date(db_session, team.id, DAY)
        assert summary.is_holiday is True
        assert summary.expected_to_check_in == 0
        assert summary.compliance_rate is None

    resp = await async_client.delete(f"{BASE}/{holiday_id}")
    assert resp.status_code == 200

    alpha = await get_team_summary_for_date(db_session, seeded.alpha.id, DAY)
    assert alpha.is_holiday is False
    assert alpha.expected_to_check_in == 5
    assert alpha.checked_in_count == 1
    assert alpha.compliance_rate == 20.0


@pytest.mark.asyncio
async def test_one_holiday_per_date(async_client: AsyncClient, seeded, login_as):
    login_as(seeded.admin)
    payload = {"date": DAY.isoformat(), "name": "Independence Day"}
    assert (await async_client.post(BASE, json=payload)).status_code == 201

    resp = await async_client.post(BASE, json=payload)
    assert resp.status_code == 409
    assert resp.json()["code"] == "HOLIDAY_EXISTS"


@pytest.mark.asyncio
async def test_only_elevated_roles_manage_holidays(async_client: AsyncClient, seeded, login_as):
    login_as(seeded.lead)
    resp = await async_client.post(BASE, json={"date": DAY.isoformat(), "name": "Day off"})
    assert resp.status_code == 403

    login_as(seeded.admin)
    resp = await async_client.delete(f"{BASE}/9999")
    assert resp.status_code == 404
    assert resp.json()["code"] == "HOLIDAY_NOT_FOUND"


@pytest.mark.asyncio
async def test_list_by_year(async_client: AsyncClient, seeded, login_as):
    login_as(seeded.admin)
    for day, name in ((date(2024, 12, 25), "Christmas"), (DAY, "Independence Day"), (date(2025, 1, 1), "New Year")):
        await async_client.post(BASE, json={"date": day.isoformat(), "name": name})

    login_as(seeded.workers[0])
    resp = await async_client.get(BASE, params={"year": 2025})
    assert [h["name"] for h in resp.json()] == ["New Year", "Independence Day"]
    resp = await async_client.get(BASE)
    assert len(resp.json()) == 3
