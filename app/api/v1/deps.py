"""
FastAPI dependencies — auth guards, database sessions and team resolution.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AppError, TeamResolutionError
from app.core.security import ACCESS, decode_token
from app.core.timezones import resolve_timezone
from app.db.session import SessionFactory, async_session_factory
from app.models.team import Team
from app.models.user import ELEVATED_ROLES, User
from app.services.team_facts import get_company_timezone

# auto_error=False so the cookie can be checked when the header is missing
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_session_factory() -> SessionFactory:
    """Factory for work that outlives the request (background recalculation)."""
    return async_session_factory


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Cookie(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode JWT from Header OR Cookie, look up user."""
    final_token = token
    if not final_token and access_token:
        # Cookie is stored as "Bearer <token>"
        final_token = access_token.removeprefix("Bearer ").strip()

    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not final_token:
        raise credentials_exc

    payload = decode_token(final_token, ACCESS)
    if payload is None or payload.get("sub") is None:
        raise credentials_exc

    result = await db.execute(select(User).where(User.id == int(payload["sub"])))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exc
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Reject inactive accounts."""
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user account")
    return current_user


def require_roles(*roles: str) -> Callable[..., Awaitable[User]]:
    """Dependency factory: only the listed roles may proceed."""

    async def _guard(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role not in roles:
            raise AppError(
                status.HTTP_403_FORBIDDEN,
                "You do not have permission to perform this action",
                "FORBIDDEN_ROLE",
            )
        return current_user

    return _guard


# ── Team resolution ─────────────────────────────────────────────────
@dataclass(frozen=True)
class TeamContext:
    team: Team
    timezone: str


async def _team_in_company(db: AsyncSession, team_id: int, company_id: int) -> Team | None:
    result = await db.execute(
        select(Team).where(Team.id == team_id, Team.company_id == company_id)
    )
    return result.scalar_one_or_none()


async def find_team_for_user(db: AsyncSession, user: User, requested_team_id: int | None) -> Team:
    """Pick the team a dashboard request refers to.

    Elevated roles may pick any team of their company and default to the
    first active one by name. Team leads use their assigned team or the
    team they lead. Everyone else uses their own team.
    """
    if user.role in ELEVATED_ROLES:
        if requested_team_id is not None:
            team = await _team_in_company(db, requested_team_id, user.company_id)
            if team is None:
                raise TeamResolutionError(404, "Team not found", "TEAM_NOT_FOUND")
            return team
        result = await db.execute(
            select(Team)
            .where(Team.company_id == user.company_id, Team.is_active.is_(True))
            .order_by(Team.name, Team.id)
            .limit(1)
        )
        team = result.scalar_one_or_none()
        if team is None:
            raise TeamResolutionError(400, "No teams found in your company", "NO_TEAMS_FOUND")
        return team

    team = None
    if user.team_id is not None:
        team = await _team_in_company(db, user.team_id, user.company_id)
    if team is None and user.role == "TEAM_LEAD":
        result = await db.execute(
            select(Team)
            .where(
                Team.leader_id == user.id,
                Team.company_id == user.company_id,
                Team.is_active.is_(True),
            )
            .limit(1)
        )
        team = result.scalar_one_or_none()
    if team is None:
        detail = (
            "You are not assigned to lead any team"
            if user.role == "TEAM_LEAD"
            else "You are not assigned to a team"
        )
        raise TeamResolutionError(400, detail, "NO_TEAM_ASSIGNMENT")
    if requested_team_id is not None and requested_team_id != team.id:
        raise TeamResolutionError(403, "You cannot view another team", "FORBIDDEN_TEAM")
    return team


async def resolve_team(
    team_id: Optional[int] = Query(default=None),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> TeamContext:
    team = await find_team_for_user(db, current_user, team_id)
    tz_name = await get_company_timezone(db, team.company_id)
    return TeamContext(team=team, timezone=resolve_timezone(tz_name).key)
