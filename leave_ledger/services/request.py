# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlmodel import col

from leave_ledger.exceptions import AppError, InvalidStateError, NotFoundError, UnauthorizedError
from leave_ledger.models.base import now_utc
from leave_ledger.models.enums import (
    AuditAction,
    AuditEntityType,
    Decision,
    LeaveType,
    RequestStatus,
)
from leave_ledger.models.request import LeaveRequest
from leave_ledger.schemas.request import DecisionResponse, RequestListResponse, RequestResponse
from leave_ledger.services.audit import model_to_audit_dict, write_audit_log
from leave_ledger.services.deduction import deduct_leave
from leave_ledger.services.directory import get_profile_directory, is_admin, is_manager_of

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.services.directory import ProfileDirectory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_request_response(request: LeaveRequest) -> RequestResponse:
    """Map a request model to its response schema."""
    return RequestResponse(
        id=request.id,
        user_id=request.user_id,
        start_date=request.start_date,
        end_date=request.end_date,
        days=request.days,
        leave_type=LeaveType(request.leave_type),
        reason=request.reason,
        status=RequestStatus(request.status),
        approved_by=request.approved_by,
        approved_at=request.approved_at,
        rejection_reason=request.rejection_reason,
        created_at=request.created_at,
    )


async def _get_request_or_404(session: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
    """Fetch a request by ID. Raises NotFoundError if missing."""
    result = await session.execute(
        select(LeaveRequest)
        .where(col(LeaveRequest.id) == request_id)
        .execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if request is None:
        msg = "Leave request not found"
        raise NotFoundError(msg)
    return request


async def _ensure_can_decide(directory: ProfileDirectory, actor_id: uuid.UUID, owner_id: uuid.UUID) -> None:
    """Admins may decide any request; otherwise only the user named as the owner's manager."""
    if await is_admin(directory, actor_id):
        return
    if await is_manager_of(directory, actor_id, owner_id):
        return
    msg = "Not authorized to decide this request"
    raise UnauthorizedError(msg)


async def _mark_decided(
    session: AsyncSession,
    request: LeaveRequest,
    new_status: RequestStatus,
    **values: Any,
) -> None:
    """Flip a pending request to ``new_status``; fails if someone else got there first."""
    result = await session.execute(
        update(LeaveRequest)
        .where(
            col(LeaveRequest.id) == request.id,
            col(LeaveRequest.status) == RequestStatus.PENDING.value,
        )
        .values(status=new_status.value, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:  # type: ignore[attr-defined]
        msg = "Request is not pending"
        raise InvalidStateError(msg)
    await session.refresh(request)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def create_request(
    session: AsyncSession,
    actor_id: uuid.UUID,
    user_id: uuid.UUID,
    start_date: date,
    end_date: date,
    days: int,
    leave_type: LeaveType,
    reason: str | None = None,
) -> RequestResponse:
    """Create a pending leave request. Date ranges and day counts are trusted as given."""
    leave_request = LeaveRequest(
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
        days=days,
        leave_type=leave_type.value,
        reason=reason,
        status=RequestStatus.PENDING.value,
    )
    session.add(leave_request)
    await session.flush()

    await write_audit_log(
        session,
        actor_id=actor_id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=leave_request.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(leave_request),
    )

    await session.commit()
    await session.refresh(leave_request)
    return _build_request_response(leave_request)


async def decide(
    session: AsyncSession,
    request_id: uuid.UUID,
    decision: Decision,
    actor_id: uuid.UUID,
    rejection_reason: str | None = None,
    *,
    directory: ProfileDirectory | None = None,
) -> DecisionResponse:
    """Approve or reject a pending request.

    Flow:
    1. Fetch the request (NotFoundError) and require PENDING (InvalidStateError)
    2. Require the actor to be an admin or the owner's manager (UnauthorizedError)
    3. Approve: deduct from the ledger of the start date's year
    4. Flip status with a compare-and-set on PENDING
    5. Audit log, then commit deduction and status together

    Any failure rolls the whole unit back, so an approval never lands without
    its deduction and the request stays pending.
    """
    directory = directory or get_profile_directory()

    leave_request = await _get_request_or_404(session, request_id)
    if leave_request.status != RequestStatus.PENDING.value:
        msg = "Request is not pending"
        raise InvalidStateError(msg)

    await _ensure_can_decide(directory, actor_id, leave_request.user_id)

    if decision == Decision.REJECT and not (rejection_reason or "").strip():
        msg = "A rejection reason is required"
        raise AppError(msg, status_code=422)

    before_dict = model_to_audit_dict(leave_request)
    deduction = None

    try:
        if decision == Decision.APPROVE:
            deduction = await deduct_leave(
                session,
                leave_request.user_id,
                leave_request.days,
                LeaveType(leave_request.leave_type),
                leave_request.start_date.year,
                request_id=leave_request.id,
            )
            await _mark_decided(
                session, leave_request, RequestStatus.APPROVED, approved_by=actor_id, approved_at=now_utc()
            )
            action = AuditAction.APPROVE
        else:
            await _mark_decided(
                session,
                leave_request,
                RequestStatus.REJECTED,
                approved_by=actor_id,
                approved_at=now_utc(),
                rejection_reason=rejection_reason,
            )
            action = AuditAction.REJECT

        after_dict = model_to_audit_dict(leave_request)
        if deduction is not None:
            after_dict["deduction"] = deduction.to_response().model_dump()

        await write_audit_log(
            session,
            actor_id=actor_id,
            entity_type=AuditEntityType.REQUEST,
            entity_id=leave_request.id,
            action=action,
            before_json=before_dict,
            after_json=after_dict,
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info("Request %s %s by %s", leave_request.id, leave_request.status, actor_id)
    return DecisionResponse(
        request=_build_request_response(leave_request),
        deduction=deduction.to_response() if deduction is not None else None,
    )


async def cancel_request(
    session: AsyncSession,
    request_id: uuid.UUID,
    actor_id: uuid.UUID,
    *,
    directory: ProfileDirectory | None = None,
) -> RequestResponse:
    """Cancel a pending request. The owner or an admin can cancel; the ledger is untouched."""
    directory = directory or get_profile_directory()

    leave_request = await _get_request_or_404(session, request_id)
    if leave_request.status != RequestStatus.PENDING.value:
        msg = "Only pending requests can be cancelled"
        raise InvalidStateError(msg)

    if actor_id != leave_request.user_id and not await is_admin(directory, actor_id):
        msg = "Not authorized to cancel this request"
        raise UnauthorizedError(msg)

    before_dict = model_to_audit_dict(leave_request)
    try:
        await _mark_decided(session, leave_request, RequestStatus.CANCELLED)
        await write_audit_log(
            session,
            actor_id=actor_id,
            entity_type=AuditEntityType.REQUEST,
            entity_id=leave_request.id,
            action=AuditAction.CANCEL,
            before_json=before_dict,
            after_json=model_to_audit_dict(leave_request),
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    return _build_request_response(leave_request)


async def get_request(session: AsyncSession, request_id: uuid.UUID) -> RequestResponse:
    """Get a single request by ID."""
    leave_request = await _get_request_or_404(session, request_id)
    return _build_request_response(leave_request)


async def list_requests(
    session: AsyncSession,
    user_ids: list[uuid.UUID] | None = None,
    status_filter: RequestStatus | None = None,
    offset: int = 0,
    limit: int = 50,
) -> RequestListResponse:
    """List requests with optional filters, newest first. ``user_ids=None`` means every user."""
    filters = []
    if user_ids is not None:
        filters.append(col(LeaveRequest.user_id).in_(user_ids))
    if status_filter is not None:
        filters.append(col(LeaveRequest.status) == status_filter.value)

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*filters)
        .order_by(col(LeaveRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    return RequestListResponse(
        items=[_build_request_response(r) for r in result.scalars().all()],
        total=total,
    )


async def list_pending_for_approver(
    session: AsyncSession,
    actor_id: uuid.UUID,
    *,
    directory: ProfileDirectory | None = None,
    offset: int = 0,
    limit: int = 50,
) -> RequestListResponse:
    """Pending requests the actor may decide.

    Admins see every pending request. Anyone else sees the requests of users
    whose profile names them as manager, whatever their role or the owner's
    active flag, which is the same rule `decide` enforces.
    """
    directory = directory or get_profile_directory()

    if await is_admin(directory, actor_id):
        return await list_requests(session, None, RequestStatus.PENDING, offset, limit)

    owners = await session.execute(
        select(LeaveRequest.user_id).where(col(LeaveRequest.status) == RequestStatus.PENDING.value).distinct()
    )
    report_ids = [
        user_id for user_id in owners.scalars().all() if await is_manager_of(directory, actor_id, user_id)
    ]
    return await list_requests(session, report_ids, RequestStatus.PENDING, offset, limit)
