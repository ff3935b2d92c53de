# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UUIDBase, now_utc

OPTIONAL_HOLIDAY_ALLOWANCE = 4


class LeaveLedger(UUIDBase, TimestampMixin, table=True):
    """Per-user, per-year leave balances: four quarterly buckets, carry-forward and optional holidays."""

    __tablename__ = "leave_ledger"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "year", name="uq_ledger_user_year"),
        sa.CheckConstraint("q1 >= 0 AND q2 >= 0 AND q3 >= 0 AND q4 >= 0", name="ck_ledger_quarters_non_negative"),
        sa.CheckConstraint("carried_from_last_year >= 0", name="ck_ledger_carried_non_negative"),
        sa.CheckConstraint(
            f"optional_used >= 0 AND optional_used <= {OPTIONAL_HOLIDAY_ALLOWANCE}",
            name="ck_ledger_optional_used_range",
        ),
    )

    user_id: uuid.UUID = Field(index=True)
    year: int = Field(index=True)
    q1: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    q2: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    q3: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    q4: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    carried_from_last_year: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    optional_used: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    last_credited_quarter: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    carry_calculated_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    carry_applied_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    updated_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=now_utc,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": sa.func.now()},
    )
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})

    @property
    def quarterly_total(self) -> int:
        return self.q1 + self.q2 + self.q3 + self.q4

    @property
    def total(self) -> int:
        """Days available for general leave across all five buckets."""
        return self.quarterly_total + self.carried_from_last_year
