"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import (auth, checkins, daily_monitoring, exceptions,
                                  health, holidays, summaries)

api_router = APIRouter()

# Auth (login, refresh, profile)
api_router.include_router(auth.router)

# Write paths that trigger summary recalculation
api_router.include_router(checkins.router)
api_router.include_router(exceptions.router)
api_router.include_router(holidays.router)

# Dashboard, stored summaries, health
api_router.include_router(daily_monitoring.router)
api_router.include_router(summaries.router)
api_router.include_router(health.router)
