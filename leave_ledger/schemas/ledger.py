# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from leave_ledger.models.enums import LeaveType

# ---------------------------------------------------------------------------
# Balance view
# ---------------------------------------------------------------------------


class LedgerResponse(BaseModel):
    """Balance view of one user's ledger for a year."""

    user_id: uuid.UUID
    year: int
    q1: int
    q2: int
    q3: int
    q4: int
    carried: int
    total: int
    optional_used: int
    optional_remaining: int
    exists: bool
    version: int | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Deductions
# ---------------------------------------------------------------------------


class DeductionBreakdownResponse(BaseModel):
    """Days taken from each bucket by one deduction."""

    q1: int
    q2: int
    q3: int
    q4: int
    carried: int
    optional: int


class DeductionResponse(BaseModel):
    """A deduction applied for an approved request."""

    id: uuid.UUID
    request_id: uuid.UUID
    user_id: uuid.UUID
    year: int
    leave_type: LeaveType
    q1: int
    q2: int
    q3: int
    q4: int
    carried: int
    optional: int
    created_at: datetime


class DeductionListResponse(BaseModel):
    """Paginated deductions."""

    items: list[DeductionResponse]
    total: int
