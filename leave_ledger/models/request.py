# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UUIDBase
from leave_ledger.models.enums import LeaveType, RequestStatus


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """An employee's leave application with approval workflow state."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_leave_request_user_status", "user_id", "status"),
        sa.CheckConstraint("days > 0", name="ck_leave_request_days_positive"),
    )

    user_id: uuid.UUID = Field(index=True)
    start_date: date
    end_date: date
    days: int
    leave_type: str = Field(default=LeaveType.GENERAL, max_length=20)
    reason: str | None = None
    status: str = Field(
        default=RequestStatus.PENDING, max_length=20, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    rejection_reason: str | None = None
