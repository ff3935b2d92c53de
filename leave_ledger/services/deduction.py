"""Deduction engine: draws approved leave from a user's yearly ledger.

General leave is drawn Q1 -> Q2 -> Q3 -> Q4 -> carried, each bucket giving
``min(remaining, balance)``. The plan is computed against a locked snapshot and
written with one version-guarded update, so a shortfall leaves the ledger
untouched. Optional leave consumes one of the yearly allowance slots per
request, whatever its day count.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from leave_ledger.config import get_settings
from leave_ledger.exceptions import (
    AppError,
    ConcurrencyConflictError,
    InsufficientBalanceError,
    InvalidStateError,
    QuotaExceededError,
)
from leave_ledger.models.deduction import LeaveDeduction
from leave_ledger.models.enums import LeaveType
from leave_ledger.models.ledger import OPTIONAL_HOLIDAY_ALLOWANCE, LeaveLedger
from leave_ledger.schemas.ledger import DeductionBreakdownResponse
from leave_ledger.services.ledger import apply_delta, create_ledger_if_absent, get_ledger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# (breakdown bucket, ledger column) in draw-down order.
DRAW_DOWN_ORDER = (
    ("q1", "q1"),
    ("q2", "q2"),
    ("q3", "q3"),
    ("q4", "q4"),
    ("carried", "carried_from_last_year"),
)


@dataclass(frozen=True)
class DeductionBreakdown:
    """Days taken from each bucket by one deduction."""

    q1: int = 0
    q2: int = 0
    q3: int = 0
    q4: int = 0
    carried: int = 0
    optional: int = 0

    @property
    def days(self) -> int:
        return self.q1 + self.q2 + self.q3 + self.q4 + self.carried

    def as_deltas(self) -> dict[str, int]:
        """Signed ledger deltas that apply this deduction."""
        deltas = {column: -getattr(self, bucket) for bucket, column in DRAW_DOWN_ORDER}
        deltas["optional_used"] = self.optional
        return deltas

    def to_response(self) -> DeductionBreakdownResponse:
        return DeductionBreakdownResponse(**asdict(self))


# ---------------------------------------------------------------------------
# Pure planning (no DB)
# ---------------------------------------------------------------------------


def plan_general_deduction(ledger: LeaveLedger, days: int) -> DeductionBreakdown:
    """Plan a general-leave draw-down. Raises InsufficientBalanceError with the shortfall."""
    remaining = days
    taken: dict[str, int] = {}
    for bucket, column in DRAW_DOWN_ORDER:
        take = min(remaining, getattr(ledger, column))
        taken[bucket] = take
        remaining -= take

    if remaining > 0:
        raise InsufficientBalanceError(remaining)
    return DeductionBreakdown(**taken)


def plan_optional_deduction(ledger: LeaveLedger) -> DeductionBreakdown:
    if ledger.optional_used + 1 > OPTIONAL_HOLIDAY_ALLOWANCE:
        msg = f"Maximum optional holidays ({OPTIONAL_HOLIDAY_ALLOWANCE}) already used this year"
        raise QuotaExceededError(msg)
    return DeductionBreakdown(optional=1)


def plan_deduction(ledger: LeaveLedger, days: int, leave_type: LeaveType) -> DeductionBreakdown:
    if leave_type == LeaveType.OPTIONAL:
        return plan_optional_deduction(ledger)
    return plan_general_deduction(ledger, days)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


async def _apply_with_retry(
    session: AsyncSession,
    user_id: uuid.UUID,
    year: int,
    days: int,
    leave_type: LeaveType,
) -> DeductionBreakdown:
    attempts = get_settings().ledger_write_attempts
    for attempt in range(1, attempts + 1):
        ledger = await get_ledger(session, user_id, year, for_update=True)
        if ledger is None:
            ledger, _ = await create_ledger_if_absent(session, user_id, year)

        breakdown = plan_deduction(ledger, days, leave_type)
        try:
            await apply_delta(session, user_id, year, breakdown.as_deltas(), expected_version=ledger.version)
        except ConcurrencyConflictError:
            logger.warning(
                "Ledger write conflict for user=%s year=%s (attempt %d/%d)", user_id, year, attempt, attempts
            )
            if attempt == attempts:
                raise
            continue
        return breakdown

    msg = f"Ledger for user {user_id} in {year} could not be updated"
    raise ConcurrencyConflictError(msg)


async def _record_deduction(
    session: AsyncSession,
    request_id: uuid.UUID,
    user_id: uuid.UUID,
    year: int,
    leave_type: LeaveType,
    breakdown: DeductionBreakdown,
) -> LeaveDeduction:
    record = LeaveDeduction(
        request_id=request_id,
        user_id=user_id,
        year=year,
        leave_type=leave_type.value,
        **asdict(breakdown),
    )
    try:
        async with session.begin_nested():
            session.add(record)
            await session.flush()
    except IntegrityError:
        msg = f"Leave for request {request_id} has already been deducted"
        raise InvalidStateError(msg) from None
    return record


async def deduct_leave(
    session: AsyncSession,
    user_id: uuid.UUID,
    days: int,
    leave_type: LeaveType,
    year: int,
    *,
    request_id: uuid.UUID | None = None,
) -> DeductionBreakdown:
    """Deduct leave from the (user_id, year) ledger within the caller's transaction.

    Flow:
    1. Lock the ledger row (create it with zeros if absent)
    2. Plan the deduction against that snapshot
    3. Apply it with a version-guarded update, retrying a lost race
    4. Record the per-bucket breakdown against request_id, if given

    All of it runs in a SAVEPOINT: on any error nothing is left behind. The
    caller owns the commit.
    """
    if days <= 0:
        msg = "days must be a positive integer"
        raise AppError(msg, status_code=422)

    async with session.begin_nested():
        breakdown = await _apply_with_retry(session, user_id, year, days, leave_type)
        if request_id is not None:
            await _record_deduction(session, request_id, user_id, year, leave_type, breakdown)

    logger.info(
        "Deducted %s leave for user=%s year=%s: %s",
        leave_type.value,
        user_id,
        year,
        breakdown,
    )
    return breakdown
