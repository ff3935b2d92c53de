# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Path, Query

from leave_ledger.api.deps import AuthDep, DirectoryDep, ensure_can_view_user
from leave_ledger.db import SessionDep
from leave_ledger.schemas.ledger import DeductionListResponse, LedgerResponse
from leave_ledger.services import ledger as ledger_service

ledgers_router = APIRouter(prefix="/users/{user_id}/ledgers", tags=["ledgers"])


@ledgers_router.get("/{year}", response_model=LedgerResponse)
async def get_ledger(
    user_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
    year: int = Path(ge=1970, le=9999),
) -> LedgerResponse:
    """Balance view for one user and year; all zeros when no ledger exists yet."""
    await ensure_can_view_user(directory, auth, user_id)
    return await ledger_service.get_balance(session, user_id, year)


@ledgers_router.get("/{year}/deductions", response_model=DeductionListResponse)
async def list_deductions(
    user_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    directory: DirectoryDep,
    year: int = Path(ge=1970, le=9999),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> DeductionListResponse:
    """Per-bucket deductions applied to the ledger, newest first."""
    await ensure_can_view_user(directory, auth, user_id)
    return await ledger_service.list_deductions(session, user_id, year, offset, limit)
