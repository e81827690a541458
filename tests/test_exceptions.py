"""
Tests for the leave / exemption workflow and the summary recalculation
each change triggers.
"""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timezones import iter_days, today
from app.services.daily_summary import (get_team_summary_for_date,
                                        recalculate_summaries_for_date_range)
from tests.conftest import TZ, add_leave

BASE = "/api/v1/exceptions"


async def _on_leave(db: AsyncSession, team_id: int, day: date) -> int | None:
    summary = await get_team_summary_for_date(db, team_id, day)
    return summary.on_leave_count if summary else None


# ── Create / read ───────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_member_request_starts_pending(async_client: AsyncClient, seeded, login_as):
    login_as(seeded.workers[0])
    start = today(TZ) + timedelta(days=1)
    resp = await async_client.post(
        BASE,
        json={
            "type": "sick_leave",
            "reason": "  Flu  ",
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=1)).isoformat(),
        },
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["status"] == "PENDING"
    assert body["type"] == "SICK_LEAVE"
    assert body["reason"] == "Flu"
    assert body["user"]["first_name"] == "Worker1"


@pytest.mark.asyncio
async def test_request_validation(async_client: AsyncClient, seeded, login_as):
    login_as(seeded.workers[0])
    resp = await async_client.post(
        BASE,
        json={"type": "HOLIDAY", "reason": "x", "start_date": "2025-01-05", "end_date": "2025-01-06"},
    )
    assert resp.status_code == 422

    resp = await async_client.post(
        BASE,
        json={"type": "OTHER", "reason": "x", "start_date": "2025-01-06", "end_date": "2025-01-05"},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_members_only_list_their_own(async_client: AsyncClient, db_session: AsyncSession, seeded, login_as):
    w1, w2, *_ = seeded.workers
    await add_leave(db_session, w1, date(2025, 1, 5), date(2025, 1, 6), status="PENDING")
    await add_leave(db_session, w2, date(2025, 1, 5), date(2025, 1, 6), status="PENDING")
    await add_leave(db_session, seeded.outsider, date(2025, 1, 5), date(2025, 1, 6), status="PENDING")

    login_as(w1)
    resp = await async_client.get(BASE)
    assert [e["user_id"] for e in resp.json()["data"]] == [w1.id]

    login_as(seeded.lead)
    resp = await async_client.get(BASE)
    assert resp.json()["pagination"]["total"] == 2

    login_as(seeded.admin)
    resp = await async_client.get(BASE, params={"active_on": "2025-01-06"})
    assert resp.json()["pagination"]["total"] == 3
    resp = await async_client.get(BASE, params={"status": "maybe"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_STATUS"


# ── Review triggers ─────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_approve_recalculates_covered_days(async_client: AsyncClient, db_session: AsyncSession, seeded, login_as):
    local_today = today(TZ)
    exc = await add_leave(
        db_session, seeded.workers[0], local_today - timedelta(days=1), local_today + timedelta(days=1),
        status="PENDING",
    )
    login_as(seeded.lead)

    resp = await async_client.patch(f"{BASE}/{exc.id}/approve", json={"note": "Get well"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "APPROVED"
    assert resp.json()["review_note"] == "Get well"

    for day in iter_days(exc.start_date, exc.end_date):
        assert await _on_leave(db_session, seeded.alpha.id, day) == 1
    assert await _on_leave(db_session, seeded.alpha.id, local_today + timedelta(days=2)) is None

    resp = await async_client.patch(f"{BASE}/{exc.id}/approve")
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_STATUS"


@pytest.mark.asyncio
async def test_reject_leaves_summaries_alone(async_client: AsyncClient, db_session: AsyncSession, seeded, login_as):
    local_today = today(TZ)
    exc = await add_leave(db_session, seeded.workers[0], local_today, local_today, status="PENDING")
    login_as(seeded.lead)

    resp = await async_client.patch(f"{BASE}/{exc.id}/reject")
    assert resp.status_code == 200
    assert resp.json()["status"] == "REJECTED"
    assert await _on_leave(db_session, seeded.alpha.id, local_today) is None


@pytest.mark.asyncio
async def test_lead_cannot_review_other_teams(async_client: AsyncClient, db_session: AsyncSession, seeded, login_as):
    exc = await add_leave(db_session, seeded.outsider, date(2025, 1, 5), date(2025, 1, 6), status="PENDING")
    login_as(seeded.lead)

    resp = await async_client.patch(f"{BASE}/{exc.id}/approve")
    assert resp.status_code == 403
    assert resp.json()["code"] == "NOT_YOUR_TEAM"


@pytest.mark.asyncio
async def test_members_cannot_review(async_client: AsyncClient, db_session: AsyncSession, seeded, login_as):
    exc = await add_leave(db_session, seeded.workers[1], date(2025, 1, 5), date(2025, 1, 6), status="PENDING")
    login_as(seeded.workers[0])

    resp = await async_client.patch(f"{BASE}/{exc.id}/approve")
    assert resp.status_code == 403
    assert resp.json()["code"] == "FORBIDDEN_ROLE"


@pytest.mark.asyncio
async def test_create_for_worker_is_approved_immediately(
    async_client: AsyncClient, db_session: AsyncSession, seeded, login_as
):
    local_today = today(TZ)
    login_as(seeded.lead)
    resp = await async_client.post(
        f"{BASE}/for-worker",
        json={
            "user_id": seeded.workers[1].id,
            "type": "MEDICAL_APPOINTMENT",
            "reason": "Clinic",
            "start_date": local_today.isoformat(),
            "end_date": local_today.isoformat(),
        },
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["status"] == "APPROVED"
    assert await _on_leave(db_session, seeded.alpha.id, local_today) == 1

    resp = await async_client.post(
        f"{BASE}/for-worker",
        json={
            "user_id": seeded.outsider.id,
            "type": "OTHER",
            "reason": "x",
            "start_date": local_today.isoformat(),
            "end_date": local_today.isoformat(),
        },
    )
    assert resp.status_code == 403
    assert resp.json()["code"] == "NOT_YOUR_TEAM"


# ── Edits that move dates ───────────────────────────────────────────
@pytest.mark.asyncio
async def test_shrinking_approved_range_repairs_dropped_days(
    async_client: AsyncClient, db_session: AsyncSession, seeded, login_as
):
    exc = await add_leave(db_session, seeded.workers[0], date(2025, 1, 5), date(2025, 1, 10))
    await recalculate_summaries_for_date_range(db_session, seeded.alpha.id, date(2025, 1, 5), date(2025, 1, 10), TZ)
    assert await _on_leave(db_session, seeded.alpha.id, date(2025, 1, 10)) == 1
    login_as(seeded.admin)

    resp = await async_client.put(f"{BASE}/{exc.id}", json={"end_date": "2025-01-08"})
    assert resp.status_code == 200, resp.text

    assert await _on_leave(db_session, seeded.alpha.id, date(2025, 1, 8)) == 1
    assert await _on_leave(db_session, seeded.alpha.id, date(2025, 1, 9)) == 0
    assert await _on_leave(db_session, seeded.alpha.id, date(2025, 1, 10)) == 0


@pytest.mark.asyncio
async def test_owner_edits_only_while_pending(async_client: AsyncClient, db_session: AsyncSession, seeded, login_as):
    worker = seeded.workers[0]
    pending = await add_leave(db_session, worker, date(2025, 1, 5), date(2025, 1, 6), status="PENDING")
    approved = await add_leave(db_session, worker, date(2025, 2, 5), date(2025, 2, 6))
    login_as(worker)

    resp = await async_client.put(f"{BASE}/{pending.id}", json={"reason": "Dentist"})
    assert resp.status_code == 200
    assert resp.json()["reason"] == "Dentist"

    resp = await async_client.put(f"{BASE}/{pending.id}", json={"start_date": "2025-01-07"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_DATE_RANGE"

    resp = await async_client.put(f"{BASE}/{approved.id}", json={"reason": "Changed"})
    assert resp.status_code == 403
    assert resp.json()["code"] == "ALREADY_REVIEWED"


@pytest.mark.asyncio
async def test_end_early_releases_remaining_days(
    async_client: AsyncClient, db_session: AsyncSession, seeded, login_as
):
    local_today = today(TZ)
    start, end = local_today - timedelta(days=2), local_today + timedelta(days=3)
    exc = await add_leave(db_session, seeded.workers[0], start, end)
    await recalculate_summaries_for_date_range(db_session, seeded.alpha.id, start, end, TZ)
    login_as(seeded.lead)

    resp = await async_client.patch(f"{BASE}/{exc.id}/end-early")
    assert resp.status_code == 200, resp.text
    assert resp.json()["end_date"] == (local_today - timedelta(days=1)).isoformat()

    assert await _on_leave(db_session, seeded.alpha.id, local_today - timedelta(days=1)) == 1
    for day in iter_days(local_today, end):
        assert await _on_leave(db_session, seeded.alpha.id, day) == 0

    # Now it has already ended
    resp = await async_client.patch(f"{BASE}/{exc.id}/end-early")
    assert resp.status_code == 400
    assert resp.json()["code"] == "ALREADY_ENDED"


@pytest.mark.asyncio
async def test_end_early_started_today_ends_today(
    async_client: AsyncClient, db_session: AsyncSession, seeded, login_as
):
    local_today = today(TZ)
    exc = await add_leave(db_session, seeded.workers[0], local_today, local_today + timedelta(days=2))
    login_as(seeded.lead)

    resp = await async_client.patch(f"{BASE}/{exc.id}/end-early", json={"note": "Back early"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["end_date"] == local_today.isoformat()
    assert resp.json()["review_note"] == "Back early"
    assert await _on_leave(db_session, seeded.alpha.id, local_today + timedelta(days=1)) == 0


@pytest.mark.asyncio
async def test_end_early_rejections(async_client: AsyncClient, db_session: AsyncSession, seeded, login_as):
    local_today = today(TZ)
    worker = seeded.workers[0]
    single = await add_leave(db_session, worker, local_today + timedelta(days=1), local_today + timedelta(days=1))
    pending = await add_leave(db_session, worker, local_today, local_today + timedelta(days=3), status="PENDING")
    future = await add_leave(db_session, worker, local_today + timedelta(days=5), local_today + timedelta(days=8))
    login_as(seeded.lead)

    resp = await async_client.patch(f"{BASE}/{single.id}/end-early")
    assert resp.json()["code"] == "INVALID_DATE_RANGE"

    resp = await async_client.patch(f"{BASE}/{pending.id}/end-early")
    assert resp.json()["code"] == "INVALID_STATUS"

    # Default end (yesterday) would precede the start
    resp = await async_client.patch(f"{BASE}/{future.id}/end-early")
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_DATE_RANGE"

    resp = await async_client.patch(
        f"{BASE}/{future.id}/end-early",
        json={"end_date": (local_today + timedelta(days=6)).isoformat()},
    )
    assert resp.status_code == 200
    assert resp.json()["end_date"] == (local_today + timedelta(days=6)).isoformat()


# ── Cancel ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_cancelling_approved_leave_recalculates(
    async_client: AsyncClient, db_session: AsyncSession, seeded, login_as
):
    exc = await add_leave(db_session, seeded.workers[0], date(2025, 1, 5), date(2025, 1, 7))
    await recalculate_summaries_for_date_range(db_session, seeded.alpha.id, date(2025, 1, 5), date(2025, 1, 7), TZ)
    login_as(seeded.lead)

    resp = await async_client.delete(f"{BASE}/{exc.id}")
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    for day in iter_days(date(2025, 1, 5), date(2025, 1, 7)):
        assert await _on_leave(db_session, seeded.alpha.id, day) == 0

    resp = await async_client.get(f"{BASE}/{exc.id}")
    assert resp.status_code == 404
    assert resp.json()["code"] == "EXCEPTION_NOT_FOUND"


@pytest.mark.asyncio
async def test_owner_may_only_cancel_pending(async_client: AsyncClient, db_session: AsyncSession, seeded, login_as):
    worker = seeded.workers[0]
    pending = await add_leave(db_session, worker, date(2025, 1, 5), date(2025, 1, 6), status="PENDING")
    approved = await add_leave(db_session, worker, date(2025, 2, 5), date(2025, 2, 6))
    login_as(worker)

    resp = await async_client.delete(f"{BASE}/{approved.id}")
    assert resp.status_code == 403
    assert resp.json()["code"] == "ALREADY_REVIEWED"

    resp = await async_client.delete(f"{BASE}/{pending.id}")
    assert resp.status_code == 200
    # Pending requests never produced summaries
    assert await _on_leave(db_session, seeded.alpha.id, date(2025, 1, 5)) is None

    login_as(seeded.workers[1])
    resp = await async_client.delete(f"{BASE}/{approved.id}")
    assert resp.status_code == 403
    assert resp.json()["code"] == "FORBIDDEN"
