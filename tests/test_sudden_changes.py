"""
Tests for sudden-change detection against each member's rolling baseline.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timezones import today
from app.services.sudden_changes import (CRITICAL, MINOR, NOTABLE, SEVERITY_ORDER, SIGNIFICANT,
                                         build_baselines, detect_sudden_changes, get_severity,
                                         load_today_window)
from tests.conftest import TZ, add_checkin, local_noon

NOW = datetime(2025, 3, 10, 4, 0, tzinfo=timezone.utc)
_ids = iter(range(1, 10_000))


def _checkin(user_id: int, score: float, days_ago: int = 0, status: str = "GREEN"):
    return SimpleNamespace(
        id=next(_ids),
        user_id=user_id,
        readiness_score=score,
        readiness_status=status,
        created_at=NOW - timedelta(days=days_ago),
        mood=5,
        stress=5,
        sleep=5,
        physical_health=5,
    )


def _baseline(user_id: int, scores: list[float]):
    return build_baselines([_checkin(user_id, s, days_ago=i + 1) for i, s in enumerate(scores)])


# ── Severity tiers ──────────────────────────────────────────────────
@pytest.mark.parametrize(
    "change, severity",
    [(-45, CRITICAL), (-30, CRITICAL), (-29.9, SIGNIFICANT), (-20, SIGNIFICANT),
     (-19.5, NOTABLE), (-10, NOTABLE), (-9.99, MINOR), (0, MINOR), (12, MINOR)],
)
def test_severity_tiers(change, severity):
    assert get_severity(change) == severity


def test_severity_never_decreases_as_drop_grows():
    ranks = [SEVERITY_ORDER[get_severity(-d / 2)] for d in range(0, 121)]
    assert ranks == sorted(ranks, reverse=True)


# ── Detection ───────────────────────────────────────────────────────
def test_drop_of_15_from_baseline_75_is_notable():
    baselines = _baseline(1, [75, 75, 75, 75, 75])
    [change] = detect_sudden_changes([_checkin(1, 60, status="YELLOW")], baselines, min_samples=3)
    assert change.change == -15
    assert change.average_score == 75
    assert change.severity == NOTABLE
    assert change.history == (75, 75, 75, 75, 75)


def test_drop_of_35_from_baseline_75_is_critical():
    baselines = _baseline(1, [75, 75, 75, 75, 75])
    [change] = detect_sudden_changes([_checkin(1, 40, status="YELLOW")], baselines, min_samples=3)
    assert change.change == -35
    assert change.severity == CRITICAL


def test_rises_and_small_dips_are_not_flagged():
    baselines = {**_baseline(1, [60, 60, 60]), **_baseline(2, [70, 70, 70])}
    today = [_checkin(1, 90), _checkin(2, 61)]
    assert detect_sudden_changes(today, baselines, min_samples=3) == []


def test_member_without_enough_samples_is_skipped():
    baselines = {**_baseline(1, [80, 80]), **_baseline(2, [80, 80, 80])}
    today = [_checkin(1, 20, status="RED"), _checkin(2, 20, status="RED"), _checkin(3, 20, status="RED")]

    dashboard = detect_sudden_changes(today, baselines, min_samples=3)
    assert [c.user_id for c in dashboard] == [2]

    relaxed = detect_sudden_changes(today, baselines, min_samples=2)
    assert sorted(c.user_id for c in relaxed) == [1, 2]


def test_min_drop_threshold_is_inclusive():
    baselines = _baseline(1, [70, 70, 70])
    assert len(detect_sudden_changes([_checkin(1, 60)], baselines, min_samples=3, min_drop=10)) == 1
    assert detect_sudden_changes([_checkin(1, 60)], baselines, min_samples=3, min_drop=15) == []


def test_results_are_ordered_by_severity_then_input_order():
    baselines = {}
    for uid in (1, 2, 3, 4):
        baselines.update(_baseline(uid, [80, 80, 80]))
    today = [
        _checkin(1, 68, status="YELLOW"),  # -12 NOTABLE
        _checkin(2, 40, status="YELLOW"),  # -40 CRITICAL
        _checkin(3, 55, status="YELLOW"),  # -25 SIGNIFICANT
        _checkin(4, 45, status="YELLOW"),  # -35 CRITICAL
    ]
    changes = detect_sudden_changes(today, baselines, min_samples=3)
    assert [(c.user_id, c.severity) for c in changes] == [
        (2, CRITICAL),
        (4, CRITICAL),
        (3, SIGNIFICANT),
        (1, NOTABLE),
    ]


def test_history_is_newest_first_and_capped():
    baselines = _baseline(1, [10, 20, 30, 40, 50, 60, 70, 80, 90])
    assert baselines[1].history == [10, 20, 30, 40, 50, 60, 70, 80, 90]
    [change] = detect_sudden_changes([_checkin(1, 5, status="RED")], baselines, min_samples=3)
    assert change.history == (10, 20, 30, 40, 50, 60, 70)


# ── Window loading ──────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_window_excludes_today_and_old_checkins(db_session: AsyncSession, seeded):
    worker = seeded.workers[0]
    local_today = today(TZ)
    for k in range(1, 6):
        await add_checkin(db_session, worker, local_noon(local_today - timedelta(days=k)), 75)
    # Older than the seven-day window
    await add_checkin(db_session, worker, local_noon(local_today - timedelta(days=10)), 5)
    now = datetime.now(timezone.utc)
    first = await add_checkin(db_session, worker, now - timedelta(seconds=2), 60)
    await add_checkin(db_session, worker, now, 30)

    window = await load_today_window(db_session, [worker.id], TZ)

    assert [c.id for c in window.checkins] == [first.id]
    assert window.baselines[worker.id].count == 5
    assert window.baselines[worker.id].mean == 75

    [change] = detect_sudden_changes(window.checkins, window.baselines, min_samples=3)
    assert change.change == -15
    assert change.severity == NOTABLE
