"""
Typed query predicates.

Endpoints describe what they want as a tuple of small predicate values;
``checkin_clauses`` / ``exception_clauses`` / ``member_clauses`` compile
them to SQLAlchemy expressions for the matching entity. ``NameMatches`` is
the exception: it filters loaded users in memory. Unsupported
predicates raise ``TypeError`` instead of being silently ignored.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Union

from sqlalchemy import ColumnElement

from app.models.checkin import Checkin
from app.models.exception_request import ExceptionRequest
from app.models.user import MEMBER_ROLES, User


@dataclass(frozen=True)
class CompanyIs:
    company_id: int


@dataclass(frozen=True)
class UserIn:
    user_ids: tuple[int, ...]


@dataclass(frozen=True)
class CreatedBetween:
    """Half-open when ``inclusive_end`` is false: ``start <= created_at < end``."""

    start: datetime | None = None
    end: datetime | None = None
    inclusive_end: bool = True


@dataclass(frozen=True)
class StatusIs:
    statuses: tuple[str, ...]


@dataclass(frozen=True)
class ExemptionOnly:
    pass


@dataclass(frozen=True)
class CoversDay:
    """Inclusive-inclusive containment: ``start_date <= day <= end_date``."""

    day: date


@dataclass(frozen=True)
class OverlapsRange:
    start: date
    end: date


@dataclass(frozen=True)
class TeamIs:
    team_id: int


@dataclass(frozen=True)
class ActiveMembers:
    pass


@dataclass(frozen=True)
class NameMatches:
    """Case-insensitive substring over first name, last name and email.

    Applied to already-loaded users so a search never changes which members
    feed the team-wide numbers.
    """

    text: str

    def matches(self, user: User | None) -> bool:
        if user is None:
            return False
        needle = self.text.strip().lower()
        return any(needle in (value or "").lower() for value in (user.first_name, user.last_name, user.email))


Predicate = Union[
    CompanyIs,
    UserIn,
    CreatedBetween,
    StatusIs,
    ExemptionOnly,
    CoversDay,
    OverlapsRange,
    TeamIs,
    ActiveMembers,
]


def _user_in(column, pred: UserIn) -> ColumnElement[bool]:
    return column.in_(pred.user_ids)


def _created_between(column, pred: CreatedBetween) -> list[ColumnElement[bool]]:
    clauses = []
    if pred.start is not None:
        clauses.append(column >= pred.start)
    if pred.end is not None:
        clauses.append(column <= pred.end if pred.inclusive_end else column < pred.end)
    return clauses


def checkin_clauses(predicates: Iterable[Predicate]) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    for pred in predicates:
        if isinstance(pred, CompanyIs):
            clauses.append(Checkin.company_id == pred.company_id)
        elif isinstance(pred, UserIn):
            clauses.append(_user_in(Checkin.user_id, pred))
        elif isinstance(pred, CreatedBetween):
            clauses.extend(_created_between(Checkin.created_at, pred))
        elif isinstance(pred, StatusIs):
            clauses.append(Checkin.readiness_status.in_(pred.statuses))
        else:
            raise TypeError(f"Unsupported check-in predicate: {pred!r}")
    return clauses


def exception_clauses(predicates: Iterable[Predicate]) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    for pred in predicates:
        if isinstance(pred, CompanyIs):
            clauses.append(ExceptionRequest.company_id == pred.company_id)
        elif isinstance(pred, UserIn):
            clauses.append(_user_in(ExceptionRequest.user_id, pred))
        elif isinstance(pred, StatusIs):
            clauses.append(ExceptionRequest.status.in_(pred.statuses))
        elif isinstance(pred, ExemptionOnly):
            clauses.append(ExceptionRequest.is_exemption.is_(True))
        elif isinstance(pred, CoversDay):
            clauses.append(ExceptionRequest.start_date <= pred.day)
            clauses.append(ExceptionRequest.end_date >= pred.day)
        elif isinstance(pred, OverlapsRange):
            clauses.append(ExceptionRequest.start_date <= pred.end)
            clauses.append(ExceptionRequest.end_date >= pred.start)
        elif isinstance(pred, CreatedBetween):
            clauses.extend(_created_between(ExceptionRequest.created_at, pred))
        else:
            raise TypeError(f"Unsupported exception predicate: {pred!r}")
    return clauses


def member_clauses(predicates: Iterable[Predicate]) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    for pred in predicates:
        if isinstance(pred, TeamIs):
            clauses.append(User.team_id == pred.team_id)
        elif isinstance(pred, CompanyIs):
            clauses.append(User.company_id == pred.company_id)
        elif isinstance(pred, ActiveMembers):
            clauses.append(User.is_active.is_(True))
            clauses.append(User.role.in_(MEMBER_ROLES))
        elif isinstance(pred, UserIn):
            clauses.append(_user_in(User.id, pred))
        else:
            raise TypeError(f"Unsupported member predicate: {pred!r}")
    return clauses
