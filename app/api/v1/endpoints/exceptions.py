"""
Leave / exemption workflow.

Any change to which days an APPROVED exemption covers schedules a
background recalculation of the owner's team summaries for the affected
days. PENDING and REJECTED records never touch the summaries.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (get_current_active_user, get_db, get_session_factory,
                             require_roles)
from app.core.config import settings
from app.core.exceptions import AppError
from app.core.timezones import today
from app.db.session import SessionFactory
from app.models.checkin import Checkin
from app.models.exception_request import EXCEPTION_STATUSES, ExceptionRequest
from app.models.team import Team
from app.models.user import MEMBER_ROLES, REVIEWER_ROLES, User
from app.schemas.common import MessageResponse
from app.schemas.exception import (EndEarlyRequest, ExceptionCreate,
                                   ExceptionForWorkerCreate, ExceptionListResponse,
                                   ExceptionRead, ExceptionUpdate, ReviewRequest,
                                   exception_out)
from app.services.pagination import Page
from app.services.queries import (CompanyIs, CoversDay, Predicate, StatusIs,
                                  UserIn, exception_clauses)
from app.services.team_facts import get_company_timezone
from app.services.triggers import (DateSpan, approval_span, cancellation_span,
                                   end_early_span, enqueue_range, update_span)

router = APIRouter(prefix="/exceptions", tags=["exceptions"])
logger = logging.getLogger(__name__)


# ── Helpers ─────────────────────────────────────────────────────────
async def _load(db: AsyncSession, exception_id: int, company_id: int) -> tuple[ExceptionRequest, User]:
    result = await db.execute(
        select(ExceptionRequest, User)
        .join(User, ExceptionRequest.user_id == User.id)
        .where(ExceptionRequest.id == exception_id, ExceptionRequest.company_id == company_id)
    )
    row = result.first()
    if row is None:
        raise AppError(404, "Exception not found", "EXCEPTION_NOT_FOUND")
    return row[0], row[1]


async def _led_team_id(db: AsyncSession, lead: User) -> int | None:
    result = await db.execute(
        select(Team.id).where(
            Team.leader_id == lead.id,
            Team.company_id == lead.company_id,
            Team.is_active.is_(True),
        )
    )
    return result.scalars().first() or lead.team_id


async def _ensure_same_team(db: AsyncSession, reviewer: User, owner: User) -> None:
    """Team leads may only act on members of the team they lead."""
    if reviewer.role != "TEAM_LEAD":
        return
    team_id = await _led_team_id(db, reviewer)
    if team_id is None or owner.team_id != team_id:
        raise AppError(403, "You can only manage exceptions of your own team members", "NOT_YOUR_TEAM")


def _ensure_status(exc: ExceptionRequest, *allowed: str) -> None:
    if exc.status not in allowed:
        raise AppError(
            400,
            f"Exception is {exc.status}; expected {' or '.join(allowed)}",
            "INVALID_STATUS",
        )


async def _schedule(
    background: BackgroundTasks,
    session_factory: SessionFactory,
    db: AsyncSession,
    owner: User,
    span: DateSpan | None,
    action: str,
) -> None:
    if span is None or owner.team_id is None:
        return
    tz_name = await get_company_timezone(db, owner.company_id)
    enqueue_range(background, session_factory, owner.team_id, span, tz_name, action)


async def _linked_checkin(db: AsyncSession, checkin_id: int | None, owner: User) -> Checkin | None:
    if checkin_id is None:
        return None
    result = await db.execute(
        select(Checkin).where(Checkin.id == checkin_id, Checkin.user_id == owner.id)
    )
    checkin = result.scalar_one_or_none()
    if checkin is None:
        raise AppError(404, "Check-in not found or does not belong to this user", "CHECKIN_NOT_FOUND")
    return checkin


# ── Create ──────────────────────────────────────────────────────────
@router.post("", response_model=ExceptionRead, status_code=201)
async def create_exception(
    body: ExceptionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ExceptionRead:
    """Submit a leave request for the caller; it starts PENDING."""
    if current_user.role in MEMBER_ROLES and current_user.team_id is None:
        raise AppError(400, "You must be assigned to a team before requesting leave", "NO_TEAM")

    checkin = await _linked_checkin(db, body.checkin_id, current_user)
    exc = ExceptionRequest(
        user_id=current_user.id,
        company_id=current_user.company_id,
        type=body.type,
        reason=body.reason,
        start_date=body.start_date,
        end_date=body.end_date,
        notes=body.notes,
        is_exemption=True,
        triggered_by_checkin_id=checkin.id if checkin else None,
        score_at_request=checkin.readiness_score if checkin else None,
    )
    db.add(exc)
    await db.commit()
    await db.refresh(exc)
    logger.info("Exception %s requested by user=%s (%s..%s)", exc.id, current_user.id, exc.start_date, exc.end_date)
    return exception_out(exc, current_user)


@router.post("/for-worker", response_model=ExceptionRead, status_code=201)
async def create_exception_for_worker(
    body: ExceptionForWorkerCreate,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
    reviewer: User = Depends(require_roles(*REVIEWER_ROLES)),
) -> ExceptionRead:
    """Record an already-approved exemption on a worker's behalf."""
    result = await db.execute(
        select(User).where(User.id == body.user_id, User.company_id == reviewer.company_id)
    )
    owner = result.scalar_one_or_none()
    if owner is None:
        raise AppError(404, "Worker not found", "USER_NOT_FOUND")
    await _ensure_same_team(db, reviewer, owner)

    checkin = await _linked_checkin(db, body.checkin_id, owner)
    exc = ExceptionRequest(
        user_id=owner.id,
        company_id=owner.company_id,
        type=body.type,
        reason=body.reason,
        start_date=body.start_date,
        end_date=body.end_date,
        notes=body.notes,
        is_exemption=True,
        status="APPROVED",
        reviewed_by_id=reviewer.id,
        approved_at=datetime.now(timezone.utc),
        triggered_by_checkin_id=checkin.id if checkin else None,
        score_at_request=checkin.readiness_score if checkin else None,
    )
    db.add(exc)
    await db.commit()
    await db.refresh(exc)
    logger.info("Exemption %s created for user=%s by %s", exc.id, owner.id, reviewer.id)

    await _schedule(background, session_factory, db, owner, approval_span(exc), "create-for-worker")
    return exception_out(exc, owner)


# ── Read ────────────────────────────────────────────────────────────
@router.get("", response_model=ExceptionListResponse)
async def list_exceptions(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.PAGINATION_DEFAULT_LIMIT, ge=1, le=settings.PAGINATION_MAX_LIMIT),
    status: str | None = Query(default=None),
    user_id: int | None = Query(default=None),
    active_on: date | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ExceptionListResponse:
    """Company exceptions, newest first. Members only see their own."""
    predicates: list[Predicate] = [CompanyIs(current_user.company_id)]
    if status:
        status = status.upper()
        if status not in EXCEPTION_STATUSES:
            raise AppError(400, f"Status must be one of: {', '.join(EXCEPTION_STATUSES)}", "INVALID_STATUS")
        predicates.append(StatusIs((status,)))
    if current_user.role in MEMBER_ROLES:
        predicates.append(UserIn((current_user.id,)))
    elif user_id is not None:
        predicates.append(UserIn((user_id,)))
    if active_on is not None:
        predicates.append(CoversDay(active_on))

    where = exception_clauses(predicates)
    stmt = select(ExceptionRequest, User).join(User, ExceptionRequest.user_id == User.id).where(*where)
    if current_user.role == "TEAM_LEAD":
        team_id = await _led_team_id(db, current_user)
        if team_id is None:
            raise AppError(403, "You are not assigned to lead any team", "NO_TEAM_ASSIGNMENT")
        stmt = stmt.where(User.team_id == team_id)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar() or 0
    result = await db.execute(
        stmt.order_by(ExceptionRequest.created_at.desc(), ExceptionRequest.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = [exception_out(exc, owner) for exc, owner in result.all()]
    return ExceptionListResponse(
        data=items,
        pagination=Page(items=items, page=page, limit=limit, total=total).meta(),
    )


@router.get("/{exception_id}", response_model=ExceptionRead)
async def get_exception(
    exception_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ExceptionRead:
    exc, owner = await _load(db, exception_id, current_user.company_id)
    if owner.id != current_user.id:
        if current_user.role not in REVIEWER_ROLES:
            raise AppError(403, "You can only view your own exceptions", "FORBIDDEN")
        await _ensure_same_team(db, current_user, owner)
    return exception_out(exc, owner)


# ── Update ──────────────────────────────────────────────────────────
@router.put("/{exception_id}", response_model=ExceptionRead)
async def update_exception(
    exception_id: int,
    body: ExceptionUpdate,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
    current_user: User = Depends(get_current_active_user),
) -> ExceptionRead:
    """Edit a request. Owners may edit while PENDING; reviewers at any time."""
    exc, owner = await _load(db, exception_id, current_user.company_id)
    is_owner = owner.id == current_user.id
    is_reviewer = current_user.role in REVIEWER_ROLES

    if is_reviewer:
        await _ensure_same_team(db, current_user, owner)
    elif not is_owner:
        raise AppError(403, "You do not have permission to update this exception", "FORBIDDEN")
    if is_owner and not is_reviewer and exc.status != "PENDING":
        raise AppError(403, "Cannot update an exception that has already been reviewed", "ALREADY_REVIEWED")

    new_start = body.start_date or exc.start_date
    new_end = body.end_date or exc.end_date
    if new_end < new_start:
        raise AppError(400, "Start date cannot be after end date", "INVALID_DATE_RANGE")

    old_start, old_end = exc.start_date, exc.end_date
    exc.type = body.type or exc.type
    exc.reason = body.reason.strip() if body.reason else exc.reason
    exc.notes = body.notes if body.notes is not None else exc.notes
    exc.start_date = new_start
    exc.end_date = new_end
    await db.commit()
    await db.refresh(exc)

    await _schedule(background, session_factory, db, owner, update_span(old_start, old_end, exc), "update")
    return exception_out(exc, owner)


# ── Review ──────────────────────────────────────────────────────────
@router.patch("/{exception_id}/approve", response_model=ExceptionRead)
async def approve_exception(
    exception_id: int,
    background: BackgroundTasks,
    body: ReviewRequest | None = None,
    db: AsyncSession = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
    reviewer: User = Depends(require_roles(*REVIEWER_ROLES)),
) -> ExceptionRead:
    exc, owner = await _load(db, exception_id, reviewer.company_id)
    await _ensure_same_team(db, reviewer, owner)
    _ensure_status(exc, "PENDING")

    exc.status = "APPROVED"
    exc.reviewed_by_id = reviewer.id
    exc.review_note = body.note if body else None
    exc.approved_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(exc)
    logger.info("Exception %s approved by %s", exc.id, reviewer.id)

    await _schedule(background, session_factory, db, owner, approval_span(exc), "approve")
    return exception_out(exc, owner)


@router.patch("/{exception_id}/reject", response_model=ExceptionRead)
async def reject_exception(
    exception_id: int,
    body: ReviewRequest | None = None,
    db: AsyncSession = Depends(get_db),
    reviewer: User = Depends(require_roles(*REVIEWER_ROLES)),
) -> ExceptionRead:
    """Reject a PENDING request; summaries are unaffected."""
    exc, owner = await _load(db, exception_id, reviewer.company_id)
    await _ensure_same_team(db, reviewer, owner)
    _ensure_status(exc, "PENDING")

    exc.status = "REJECTED"
    exc.reviewed_by_id = reviewer.id
    exc.review_note = body.note if body else None
    await db.commit()
    await db.refresh(exc)
    logger.info("Exception %s rejected by %s", exc.id, reviewer.id)
    return exception_out(exc, owner)


@router.patch("/{exception_id}/end-early", response_model=ExceptionRead)
async def end_exception_early(
    exception_id: int,
    background: BackgroundTasks,
    body: EndEarlyRequest | None = None,
    db: AsyncSession = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
    reviewer: User = Depends(require_roles(*REVIEWER_ROLES)),
) -> ExceptionRead:
    """Shorten an APPROVED exemption.

    Without an explicit date the leave ends yesterday, or today when it
    started today.
    """
    exc, owner = await _load(db, exception_id, reviewer.company_id)
    _ensure_status(exc, "APPROVED")
    await _ensure_same_team(db, reviewer, owner)

    if exc.start_date == exc.end_date:
        raise AppError(400, "Cannot end early - this is already a single-day exception", "INVALID_DATE_RANGE")
    tz_name = await get_company_timezone(db, owner.company_id)
    local_today = today(tz_name)
    if exc.end_date <= local_today:
        raise AppError(400, "Cannot end early - this exception has already ended or ends today", "ALREADY_ENDED")

    if body and body.end_date:
        new_end = body.end_date
    elif exc.start_date == local_today:
        new_end = local_today
    else:
        new_end = local_today - timedelta(days=1)

    if new_end >= exc.end_date:
        raise AppError(400, "New end date must be before the original end date", "INVALID_DATE_RANGE")
    if new_end < exc.start_date:
        raise AppError(400, "New end date cannot be before the start date", "INVALID_DATE_RANGE")

    original_end = exc.end_date
    exc.end_date = new_end
    if body and body.note:
        exc.review_note = body.note
    await db.commit()
    await db.refresh(exc)
    logger.info("Exception %s ended early: %s -> %s", exc.id, original_end, new_end)

    span = end_early_span(original_end, new_end, bool(exc.is_exemption))
    await _schedule(background, session_factory, db, owner, span, "end-early")
    return exception_out(exc, owner)


# ── Cancel ──────────────────────────────────────────────────────────
@router.delete("/{exception_id}", response_model=MessageResponse)
async def cancel_exception(
    exception_id: int,
    background: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: SessionFactory = Depends(get_session_factory),
    current_user: User = Depends(get_current_active_user),
) -> MessageResponse:
    """Owners cancel their own PENDING requests; reviewers may cancel any."""
    exc, owner = await _load(db, exception_id, current_user.company_id)
    is_owner = owner.id == current_user.id
    is_reviewer = current_user.role in REVIEWER_ROLES

    if is_reviewer:
        await _ensure_same_team(db, current_user, owner)
    elif not is_owner:
        raise AppError(403, "You do not have permission to cancel this exception", "FORBIDDEN")
    elif exc.status != "PENDING":
        raise AppError(403, "Cannot cancel an exception that has already been reviewed", "ALREADY_REVIEWED")

    span = cancellation_span(exc)
    previous_status = exc.status
    await db.delete(exc)
    await db.commit()
    logger.info("Exception %s (%s) cancelled by %s", exception_id, previous_status, current_user.id)

    await _schedule(background, session_factory, db, owner, span, "cancel")
    return MessageResponse(message="Exception cancelled successfully")
