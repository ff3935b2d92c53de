# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leave_ledger.api.deps import AuthDep, DirectoryDep, ensure_can_view_user
from leave_ledger.db import SessionDep
from leave_ledger.exceptions import UnauthorizedError
from leave_ledger.models.enums import RequestStatus
from leave_ledger.schemas.request import (
    CreateLeaveRequestPayload,
    DecisionPayload,
    DecisionResponse,
    RequestListResponse,
    RequestResponse,
)
from leave_ledger.services import request as request_service

requests_router = APIRouter(prefix="/requests", tags=["requests"])


@requests_router.post("", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: CreateLeaveRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Submit a leave request for yourself, or for anyone as an admin."""
    user_id = payload.user_id or auth.user_id
    if user_id != auth.user_id and not auth.is_admin:
        msg = "Only admins can file requests on behalf of another user"
        raise UnauthorizedError(msg)
    return await request_service.create_request(
        session,
        auth.user_id,
        user_id,
        payload.start_date,
        payload.end_date,
        payload.days,
        payload.leave_type,
        payload.reason,
    )


@requests_router.get("", response_model=RequestListResponse)
async def list_requests(
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
    user_id: uuid.UUID | None = Query(default=None),
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    """List leave requests. Non-admins see their own, or a report's when ``user_id`` is given."""
    if auth.is_admin:
        user_ids = [user_id] if user_id is not None else None
    else:
        target = user_id or auth.user_id
        await ensure_can_view_user(directory, auth, target)
        user_ids = [target]
    return await request_service.list_requests(session, user_ids, status_filter, offset, limit)


@requests_router.get("/pending", response_model=RequestListResponse)
async def list_pending(
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    """Pending requests awaiting the caller's decision."""
    return await request_service.list_pending_for_approver(
        session, auth.user_id, directory=directory, offset=offset, limit=limit
    )


@requests_router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
) -> RequestResponse:
    """Get a single leave request."""
    leave_request = await request_service.get_request(session, request_id)
    await ensure_can_view_user(directory, auth, leave_request.user_id)
    return leave_request


@requests_router.post("/{request_id}/decision", response_model=DecisionResponse)
async def decide_request(
    request_id: uuid.UUID,
    payload: DecisionPayload,
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
) -> DecisionResponse:
    """Approve or reject a pending request (admin or the owner's manager)."""
    return await request_service.decide(
        session,
        request_id,
        payload.decision,
        auth.user_id,
        payload.rejection_reason,
        directory=directory,
    )


@requests_router.post("/{request_id}/cancel", response_model=RequestResponse)
async def cancel_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
) -> RequestResponse:
    """Cancel a pending request (owner or admin)."""
    return await request_service.cancel_request(session, request_id, auth.user_id, directory=directory)
