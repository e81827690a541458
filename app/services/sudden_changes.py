"""
Sudden-change detection.

A member is flagged when today's readiness score sits at least
``min_drop`` points below the mean of their own check-ins over the
trailing baseline window (today excluded). Members without enough
baseline samples are skipped: without history nothing is "sudden".
Rises are never flagged.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.timezones import day_range, ensure_utc, last_n_days_range
from app.models.checkin import Checkin
from app.services.team_facts import first_checkin_per_user, get_checkins

CRITICAL = "CRITICAL"
SIGNIFICANT = "SIGNIFICANT"
NOTABLE = "NOTABLE"
MINOR = "MINOR"

SEVERITY_ORDER = {CRITICAL: 0, SIGNIFICANT: 1, NOTABLE: 2, MINOR: 3}
HISTORY_LENGTH = 7


def get_severity(change: float) -> str:
    if change <= -30:
        return CRITICAL
    if change <= -20:
        return SIGNIFICANT
    if change <= -10:
        return NOTABLE
    return MINOR


@dataclass
class Baseline:
    total: float = 0.0
    count: int = 0
    history: list[int] = field(default_factory=list)  # newest first

    @property
    def mean(self) -> float | None:
        return self.total / self.count if self.count else None


@dataclass(frozen=True)
class SuddenChange:
    user_id: int
    checkin_id: int
    checkin_time: datetime
    today_score: int
    today_status: str
    average_score: int
    change: int
    severity: str
    mood: int
    stress: int
    sleep: int
    physical_health: int
    history: tuple[int, ...] = ()


def build_baselines(history: Iterable[Checkin]) -> dict[int, Baseline]:
    baselines: dict[int, Baseline] = {}
    ordered = sorted(history, key=lambda c: (ensure_utc(c.created_at), c.id), reverse=True)
    for checkin in ordered:
        b = baselines.setdefault(checkin.user_id, Baseline())
        b.total += checkin.readiness_score
        b.count += 1
        b.history.append(round(checkin.readiness_score))
    return baselines


def detect_sudden_changes(
    today_checkins: Iterable[Checkin],
    baselines: dict[int, Baseline],
    *,
    min_samples: int,
    min_drop: float = 10,
) -> list[SuddenChange]:
    """Compare each of today's check-ins with its member's baseline.

    Severity is tiered on the unrounded change. The result is ordered
    CRITICAL first; ``sorted`` is stable, so equal tiers keep the order
    of *today_checkins*.
    """
    changes: list[SuddenChange] = []
    for checkin in today_checkins:
        baseline = baselines.get(checkin.user_id)
        if baseline is None or baseline.count < min_samples:
            continue
        average = baseline.total / baseline.count
        change = checkin.readiness_score - average
        if change > -min_drop:
            continue
        changes.append(
            SuddenChange(
                user_id=checkin.user_id,
                checkin_id=checkin.id,
                checkin_time=ensure_utc(checkin.created_at),
                today_score=round(checkin.readiness_score),
                today_status=checkin.readiness_status,
                average_score=round(average),
                change=round(change),
                severity=get_severity(change),
                mood=checkin.mood,
                stress=checkin.stress,
                sleep=checkin.sleep,
                physical_health=checkin.physical_health,
                history=tuple(baseline.history[:HISTORY_LENGTH]),
            )
        )
    return sorted(changes, key=lambda c: SEVERITY_ORDER[c.severity])


@dataclass(frozen=True)
class TodayWindow:
    """Today's first check-in per member (newest first) and their baselines."""

    checkins: list[Checkin]
    baselines: dict[int, Baseline]


async def load_today_window(
    db: AsyncSession,
    member_ids: list[int],
    timezone: str | None,
    baseline_days: int | None = None,
) -> TodayWindow:
    days = baseline_days or settings.SUDDEN_CHANGE_BASELINE_DAYS
    today_start, today_end = day_range(timezone)
    window_start, _ = last_n_days_range(days, timezone)

    todays = await get_checkins(db, member_ids, today_start, today_end)
    history = await get_checkins(db, member_ids, window_start, today_start, inclusive_end=False)

    firsts = sorted(
        first_checkin_per_user(todays).values(),
        key=lambda c: (ensure_utc(c.created_at), c.id),
        reverse=True,
    )
    return TodayWindow(checkins=firsts, baselines=build_baselines(history))
