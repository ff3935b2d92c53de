# ruff: noqa: TC003
from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UUIDBase


class LeaveDeduction(UUIDBase, TimestampMixin, table=True):
    """Per-bucket record of a deduction applied for an approved request.

    The unique request_id makes the ledger mutation at-most-once per request.
    """

    __tablename__ = "leave_deduction"
    __table_args__ = (
        sa.UniqueConstraint("request_id", name="uq_deduction_request"),
        sa.Index("ix_deduction_user_year", "user_id", "year"),
    )

    request_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False),
    )
    user_id: uuid.UUID
    year: int
    leave_type: str = Field(max_length=20)
    q1: int = 0
    q2: int = 0
    q3: int = 0
    q4: int = 0
    carried: int = 0
    optional: int = 0
