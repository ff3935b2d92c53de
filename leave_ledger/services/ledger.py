"""Ledger store: keyed (user_id, year) balances with guarded read-modify-write.

Every mutation goes through :func:`apply_delta`, a single ``UPDATE`` whose
WHERE clause carries the bounds (no bucket below zero, optional_used capped)
and, optionally, the version the caller computed against. A row that fails
the guard is left untouched and the failure is diagnosed afterwards.
"""

# ruff: noqa: TC003
from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_ledger.exceptions import ConcurrencyConflictError, InvalidStateError, NotFoundError
from leave_ledger.models.deduction import LeaveDeduction
from leave_ledger.models.enums import LeaveType
from leave_ledger.models.ledger import OPTIONAL_HOLIDAY_ALLOWANCE, LeaveLedger
from leave_ledger.schemas.ledger import DeductionListResponse, DeductionResponse, LedgerResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

# Balance columns a delta may touch.
BALANCE_FIELDS = ("q1", "q2", "q3", "q4", "carried_from_last_year", "optional_used")

# Bookkeeping columns that may be set alongside a delta.
MARKER_FIELDS = ("last_credited_quarter", "carry_calculated_at", "carry_applied_at")


def _check_values(values: Mapping[str, int]) -> None:
    for name, value in values.items():
        if name not in BALANCE_FIELDS:
            continue
        if value < 0:
            msg = f"Ledger field {name} cannot be negative"
            raise InvalidStateError(msg)
        if name == "optional_used" and value > OPTIONAL_HOLIDAY_ALLOWANCE:
            msg = f"optional_used cannot exceed {OPTIONAL_HOLIDAY_ALLOWANCE}"
            raise InvalidStateError(msg)


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_ledger(
    session: AsyncSession,
    user_id: uuid.UUID,
    year: int,
    *,
    for_update: bool = False,
) -> LeaveLedger | None:
    """Fetch the ledger for (user_id, year), always re-reading the row from the database."""
    query = (
        select(LeaveLedger)
        .where(col(LeaveLedger.user_id) == user_id, col(LeaveLedger.year) == year)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def list_ledgers_for_year(session: AsyncSession, year: int) -> list[LeaveLedger]:
    result = await session.execute(
        select(LeaveLedger).where(col(LeaveLedger.year) == year).order_by(col(LeaveLedger.user_id))
    )
    return list(result.scalars().all())


def build_ledger_response(ledger: LeaveLedger | None, user_id: uuid.UUID, year: int) -> LedgerResponse:
    """Map a ledger to its balance view; an absent ledger reads as all zeros."""
    if ledger is None:
        return LedgerResponse(
            user_id=user_id,
            year=year,
            q1=0,
            q2=0,
            q3=0,
            q4=0,
            carried=0,
            total=0,
            optional_used=0,
            optional_remaining=OPTIONAL_HOLIDAY_ALLOWANCE,
            exists=False,
        )
    return LedgerResponse(
        user_id=ledger.user_id,
        year=ledger.year,
        q1=ledger.q1,
        q2=ledger.q2,
        q3=ledger.q3,
        q4=ledger.q4,
        carried=ledger.carried_from_last_year,
        total=ledger.total,
        optional_used=ledger.optional_used,
        optional_remaining=OPTIONAL_HOLIDAY_ALLOWANCE - ledger.optional_used,
        exists=True,
        version=ledger.version,
        updated_at=ledger.updated_at,
    )


async def get_balance(session: AsyncSession, user_id: uuid.UUID, year: int) -> LedgerResponse:
    ledger = await get_ledger(session, user_id, year)
    return build_ledger_response(ledger, user_id, year)


async def list_deductions(
    session: AsyncSession,
    user_id: uuid.UUID,
    year: int,
    offset: int = 0,
    limit: int = 50,
) -> DeductionListResponse:
    """List applied deductions for a ledger, newest first."""
    filters = [col(LeaveDeduction.user_id) == user_id, col(LeaveDeduction.year) == year]

    count_result = await session.execute(select(func.count()).select_from(LeaveDeduction).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveDeduction)
        .where(*filters)
        .order_by(col(LeaveDeduction.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    items = [
        DeductionResponse(
            id=d.id,
            request_id=d.request_id,
            user_id=d.user_id,
            year=d.year,
            leave_type=LeaveType(d.leave_type),
            q1=d.q1,
            q2=d.q2,
            q3=d.q3,
            q4=d.q4,
            carried=d.carried,
            optional=d.optional,
            created_at=d.created_at,
        )
        for d in result.scalars().all()
    ]
    return DeductionListResponse(items=items, total=total)


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


async def create_ledger_if_absent(
    session: AsyncSession,
    user_id: uuid.UUID,
    year: int,
    **initial: Any,
) -> tuple[LeaveLedger, bool]:
    """Insert a ledger row unless one exists. Returns (ledger, created).

    The insert runs in a SAVEPOINT; losing a creation race to another writer
    surfaces as a unique violation, after which the winner's row is returned
    untouched.
    """
    _check_values(initial)
    ledger = LeaveLedger(user_id=user_id, year=year, **initial)
    try:
        async with session.begin_nested():
            session.add(ledger)
            await session.flush()
    except IntegrityError:
        existing = await get_ledger(session, user_id, year)
        if existing is None:
            raise
        return existing, False
    return ledger, True


async def apply_delta(
    session: AsyncSession,
    user_id: uuid.UUID,
    year: int,
    deltas: Mapping[str, int],
    *,
    expected_version: int | None = None,
    markers: Mapping[str, Any] | None = None,
) -> LeaveLedger:
    """Add signed deltas to balance fields of one ledger row atomically.

    Raises NotFoundError if the row is missing, ConcurrencyConflictError if
    ``expected_version`` no longer matches, and InvalidStateError if the
    result would leave a bucket negative or optional_used above the allowance.
    """
    unknown = set(deltas) - set(BALANCE_FIELDS)
    if unknown:
        msg = f"Unknown ledger fields: {sorted(unknown)}"
        raise ValueError(msg)
    unknown_markers = set(markers or {}) - set(MARKER_FIELDS)
    if unknown_markers:
        msg = f"Unknown ledger markers: {sorted(unknown_markers)}"
        raise ValueError(msg)

    conditions = [col(LeaveLedger.user_id) == user_id, col(LeaveLedger.year) == year]
    values: dict[str, Any] = dict(markers or {})

    for name, delta in deltas.items():
        if delta == 0:
            continue
        column = col(getattr(LeaveLedger, name))
        values[name] = column + delta
        if delta < 0:
            conditions.append(column + delta >= 0)
        elif name == "optional_used":
            conditions.append(column + delta <= OPTIONAL_HOLIDAY_ALLOWANCE)

    if expected_version is not None:
        conditions.append(col(LeaveLedger.version) == expected_version)
    values["version"] = col(LeaveLedger.version) + 1

    result = await session.execute(
        update(LeaveLedger).where(*conditions).values(**values).execution_options(synchronize_session=False)
    )

    ledger = await get_ledger(session, user_id, year)
    if result.rowcount == 0:  # type: ignore[attr-defined]
        if ledger is None:
            msg = f"No leave ledger for user {user_id} in {year}"
            raise NotFoundError(msg)
        if expected_version is not None and ledger.version != expected_version:
            msg = f"Ledger for user {user_id} in {year} was modified concurrently"
            raise ConcurrencyConflictError(msg)
        msg = "Ledger update would drive a balance out of range"
        raise InvalidStateError(msg)
    if ledger is None:  # pragma: no cover
        msg = f"No leave ledger for user {user_id} in {year}"
        raise NotFoundError(msg)
    return ledger
