"""
Readiness score from the four daily sub-scores (each 1-10).
"""

from __future__ import annotations

import math

GREEN = "GREEN"
YELLOW = "YELLOW"
RED = "RED"
READINESS_STATUSES = (GREEN, YELLOW, RED)

_WEIGHTS = {"mood": 0.25, "stress": 0.25, "sleep": 0.25, "physical_health": 0.25}


def calculate_readiness(mood: int, stress: int, sleep: int, physical_health: int) -> tuple[int, str]:
    """Return ``(score, status)`` with score on a 0-100 scale.

    Stress is inverted: a stress of 10 contributes nothing.
    """
    normalised = {
        "mood": mood * 10,
        "stress": (10 - stress) * 10,
        "sleep": sleep * 10,
        "physical_health": physical_health * 10,
    }
    # Halves round up: 72.5 becomes 73
    score = math.floor(sum(normalised[k] * w for k, w in _WEIGHTS.items()) + 0.5)

    if score >= 70:
        status = GREEN
    elif score >= 40:
        status = YELLOW
    else:
        status = RED
    return score, status
