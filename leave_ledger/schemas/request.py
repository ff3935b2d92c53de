# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leave_ledger.models.enums import Decision, LeaveType, RequestStatus
from leave_ledger.schemas.ledger import DeductionBreakdownResponse

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateLeaveRequestPayload(BaseModel):
    """Request body for submitting a leave request.

    ``days`` is the business-day count computed by the caller and is trusted as given.
    ``user_id`` defaults to the authenticated user.
    """

    user_id: uuid.UUID | None = None
    start_date: date
    end_date: date
    days: int = Field(gt=0)
    leave_type: LeaveType = LeaveType.GENERAL
    reason: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date < self.start_date:
            msg = "end_date must be on or after start_date"
            raise ValueError(msg)
        return self


class DecisionPayload(BaseModel):
    """Request body for approving or rejecting a request."""

    decision: Decision
    rejection_reason: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _require_reason_on_reject(self) -> Self:
        if self.decision == Decision.REJECT and not (self.rejection_reason or "").strip():
            msg = "rejection_reason is required when rejecting"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    user_id: uuid.UUID
    start_date: date
    end_date: date
    days: int
    leave_type: LeaveType
    reason: str | None
    status: RequestStatus
    approved_by: uuid.UUID | None
    approved_at: datetime | None
    rejection_reason: str | None
    created_at: datetime


class RequestListResponse(BaseModel):
    """Paginated list of leave requests."""

    items: list[RequestResponse]
    total: int


class DecisionResponse(BaseModel):
    """Outcome of a decision; ``deduction`` is set only for approvals."""

    request: RequestResponse
    deduction: DeductionBreakdownResponse | None = None
