"""Deduction engine: draw-down order, shortfall handling, optional quota and concurrent writers."""

from __future__ import annotations

import asyncio
import uuid
from datetime import date
from typing import TYPE_CHECKING

import pytest

from leave_ledger.exceptions import AppError, InsufficientBalanceError, InvalidStateError, QuotaExceededError
from leave_ledger.models.enums import LeaveType
from leave_ledger.models.ledger import LeaveLedger
from leave_ledger.models.request import LeaveRequest
from leave_ledger.services.deduction import (
    DeductionBreakdown,
    deduct_leave,
    plan_deduction,
    plan_general_deduction,
)
from leave_ledger.services.ledger import get_ledger, list_deductions

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

YEAR = 2026
USER_ID = uuid.uuid4()


async def _seed_ledger(session: AsyncSession, user_id: uuid.UUID = USER_ID, **values: int) -> None:
    session.add(LeaveLedger(user_id=user_id, year=YEAR, **values))
    await session.commit()


async def _seed_request(session: AsyncSession, days: int, leave_type: LeaveType = LeaveType.GENERAL) -> LeaveRequest:
    request = LeaveRequest(
        user_id=USER_ID,
        start_date=date(YEAR, 3, 2),
        end_date=date(YEAR, 3, 2 + days - 1),
        days=days,
        leave_type=leave_type.value,
    )
    session.add(request)
    await session.commit()
    return request


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


class TestPlanGeneralDeduction:
    def test_drains_earliest_quarter_first(self) -> None:
        ledger = LeaveLedger(user_id=USER_ID, year=YEAR, q1=2, q2=5, q3=5)
        assert plan_general_deduction(ledger, 4) == DeductionBreakdown(q1=2, q2=2)

    def test_carried_is_drawn_last(self) -> None:
        ledger = LeaveLedger(user_id=USER_ID, year=YEAR, q1=1, q2=1, q3=1, q4=1, carried_from_last_year=6)
        breakdown = plan_general_deduction(ledger, 6)
        assert breakdown == DeductionBreakdown(q1=1, q2=1, q3=1, q4=1, carried=2)

    @pytest.mark.parametrize("days", [1, 3, 7, 12, 20])
    def test_breakdown_sums_to_requested_days(self, days: int) -> None:
        ledger = LeaveLedger(user_id=USER_ID, year=YEAR, q1=5, q2=5, q3=3, q4=0, carried_from_last_year=7)
        breakdown = plan_general_deduction(ledger, days)
        assert breakdown.days == days
        assert breakdown.optional == 0

    def test_shortfall_is_reported(self) -> None:
        ledger = LeaveLedger(user_id=USER_ID, year=YEAR, q1=1, q4=1, carried_from_last_year=1)
        with pytest.raises(InsufficientBalanceError) as exc_info:
            plan_general_deduction(ledger, 5)
        assert exc_info.value.shortfall == 2
        assert "Short by 2 days" in exc_info.value.message

    def test_optional_takes_one_slot_whatever_the_days(self) -> None:
        ledger = LeaveLedger(user_id=USER_ID, year=YEAR, q1=5)
        assert plan_deduction(ledger, 3, LeaveType.OPTIONAL) == DeductionBreakdown(optional=1)

    def test_as_deltas_is_signed(self) -> None:
        deltas = DeductionBreakdown(q1=2, carried=1).as_deltas()
        assert deltas == {
            "q1": -2,
            "q2": 0,
            "q3": 0,
            "q4": 0,
            "carried_from_last_year": -1,
            "optional_used": 0,
        }


# ---------------------------------------------------------------------------
# General leave
# ---------------------------------------------------------------------------


async def test_general_deduction_updates_ledger(db_session: AsyncSession) -> None:
    await _seed_ledger(db_session, q1=5, q2=5, carried_from_last_year=3)

    breakdown = await deduct_leave(db_session, USER_ID, 7, LeaveType.GENERAL, YEAR)
    await db_session.commit()

    assert breakdown == DeductionBreakdown(q1=5, q2=2)
    ledger = await get_ledger(db_session, USER_ID, YEAR)
    assert ledger is not None
    assert (ledger.q1, ledger.q2, ledger.q3, ledger.q4) == (0, 3, 0, 0)
    assert ledger.carried_from_last_year == 3
    assert ledger.version == 2


async def test_total_drops_by_exactly_the_days_deducted(db_session: AsyncSession) -> None:
    await _seed_ledger(db_session, q1=1, q2=2, q3=3, q4=4, carried_from_last_year=5)
    before = await get_ledger(db_session, USER_ID, YEAR)
    assert before is not None
    total_before = before.total

    await deduct_leave(db_session, USER_ID, 11, LeaveType.GENERAL, YEAR)
    await db_session.commit()

    after = await get_ledger(db_session, USER_ID, YEAR)
    assert after is not None
    assert after.total == total_before - 11
    assert after.carried_from_last_year == 4


async def test_insufficient_balance_leaves_ledger_untouched(db_session: AsyncSession) -> None:
    await _seed_ledger(db_session, q1=2, carried_from_last_year=1)

    with pytest.raises(InsufficientBalanceError) as exc_info:
        await deduct_leave(db_session, USER_ID, 6, LeaveType.GENERAL, YEAR)
    assert exc_info.value.shortfall == 3
    await db_session.rollback()

    ledger = await get_ledger(db_session, USER_ID, YEAR)
    assert ledger is not None
    assert ledger.q1 == 2
    assert ledger.carried_from_last_year == 1
    assert ledger.version == 1


async def test_missing_ledger_general_fails_without_creating_row(db_session: AsyncSession) -> None:
    with pytest.raises(InsufficientBalanceError) as exc_info:
        await deduct_leave(db_session, USER_ID, 2, LeaveType.GENERAL, YEAR)
    assert exc_info.value.shortfall == 2

    assert await get_ledger(db_session, USER_ID, YEAR) is None


async def test_non_positive_days_rejected(db_session: AsyncSession) -> None:
    await _seed_ledger(db_session, q1=5)
    with pytest.raises(AppError) as exc_info:
        await deduct_leave(db_session, USER_ID, 0, LeaveType.GENERAL, YEAR)
    assert exc_info.value.status_code == 422


# ---------------------------------------------------------------------------
# Optional leave
# ---------------------------------------------------------------------------


async def test_optional_increments_used_only(db_session: AsyncSession) -> None:
    await _seed_ledger(db_session, q1=5, optional_used=2)

    breakdown = await deduct_leave(db_session, USER_ID, 3, LeaveType.OPTIONAL, YEAR)
    await db_session.commit()

    assert breakdown == DeductionBreakdown(optional=1)
    ledger = await get_ledger(db_session, USER_ID, YEAR)
    assert ledger is not None
    assert ledger.optional_used == 3
    assert ledger.q1 == 5


async def test_optional_creates_missing_ledger(db_session: AsyncSession) -> None:
    await deduct_leave(db_session, USER_ID, 1, LeaveType.OPTIONAL, YEAR)
    await db_session.commit()

    ledger = await get_ledger(db_session, USER_ID, YEAR)
    assert ledger is not None
    assert ledger.optional_used == 1
    assert ledger.total == 0


async def test_optional_quota_exceeded(db_session: AsyncSession) -> None:
    await _seed_ledger(db_session, q1=5, optional_used=4)

    with pytest.raises(QuotaExceededError):
        await deduct_leave(db_session, USER_ID, 1, LeaveType.OPTIONAL, YEAR)
    await db_session.rollback()

    ledger = await get_ledger(db_session, USER_ID, YEAR)
    assert ledger is not None
    assert ledger.optional_used == 4
    assert ledger.version == 1


async def test_optional_allowance_is_four_per_year(db_session: AsyncSession) -> None:
    await _seed_ledger(db_session)
    for _ in range(4):
        await deduct_leave(db_session, USER_ID, 1, LeaveType.OPTIONAL, YEAR)
        await db_session.commit()

    with pytest.raises(QuotaExceededError):
        await deduct_leave(db_session, USER_ID, 1, LeaveType.OPTIONAL, YEAR)


# ---------------------------------------------------------------------------
# Deduction records
# ---------------------------------------------------------------------------


async def test_deduction_recorded_against_request(db_session: AsyncSession) -> None:
    await _seed_ledger(db_session, q1=3, q2=5)
    request = await _seed_request(db_session, 4)

    await deduct_leave(db_session, USER_ID, 4, LeaveType.GENERAL, YEAR, request_id=request.id)
    await db_session.commit()

    deductions = await list_deductions(db_session, USER_ID, YEAR)
    assert deductions.total == 1
    item = deductions.items[0]
    assert item.request_id == request.id
    assert (item.q1, item.q2, item.carried) == (3, 1, 0)


async def test_second_deduction_for_same_request_is_refused(db_session: AsyncSession) -> None:
    await _seed_ledger(db_session, q1=10)
    request = await _seed_request(db_session, 2)

    await deduct_leave(db_session, USER_ID, 2, LeaveType.GENERAL, YEAR, request_id=request.id)
    await db_session.commit()

    with pytest.raises(InvalidStateError):
        await deduct_leave(db_session, USER_ID, 2, LeaveType.GENERAL, YEAR, request_id=request.id)
    await db_session.rollback()

    ledger = await get_ledger(db_session, USER_ID, YEAR)
    assert ledger is not None
    assert ledger.q1 == 8
    assert (await list_deductions(db_session, USER_ID, YEAR)).total == 1


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


async def test_concurrent_deductions_never_overdraw(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Two writers each want 4 of 5 days: exactly one succeeds."""
    async with session_factory() as session:
        await _seed_ledger(session, q1=5)

    async def _attempt() -> str:
        async with session_factory() as session:
            try:
                await deduct_leave(session, USER_ID, 4, LeaveType.GENERAL, YEAR)
                await session.commit()
            except InsufficientBalanceError:
                await session.rollback()
                return "insufficient"
            return "deducted"

    outcomes = await asyncio.gather(_attempt(), _attempt())
    assert sorted(outcomes) == ["deducted", "insufficient"]

    async with session_factory() as session:
        ledger = await get_ledger(session, USER_ID, YEAR)
        assert ledger is not None
        assert ledger.q1 == 1
        assert ledger.version == 2


async def test_concurrent_deductions_across_buckets(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Two 3-day requests against 5 days split over q1, q2 and carry: one wins, the buckets stay whole."""
    async with session_factory() as session:
        await _seed_ledger(session, q1=2, q2=2, carried_from_last_year=1)

    breakdowns: list[DeductionBreakdown] = []

    async def _attempt() -> str:
        async with session_factory() as session:
            try:
                breakdowns.append(await deduct_leave(session, USER_ID, 3, LeaveType.GENERAL, YEAR))
                await session.commit()
            except InsufficientBalanceError:
                await session.rollback()
                return "insufficient"
            return "deducted"

    outcomes = await asyncio.gather(_attempt(), _attempt())
    assert sorted(outcomes) == ["deducted", "insufficient"]
    assert breakdowns == [DeductionBreakdown(q1=2, q2=1)]

    async with session_factory() as session:
        ledger = await get_ledger(session, USER_ID, YEAR)
        assert ledger is not None
        assert (ledger.q1, ledger.q2, ledger.carried_from_last_year) == (0, 1, 1)
        assert ledger.total == 2
        assert ledger.version == 2


async def test_concurrent_optional_deductions_respect_quota(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    async with session_factory() as session:
        await _seed_ledger(session, optional_used=3)

    async def _attempt() -> bool:
        async with session_factory() as session:
            try:
                await deduct_leave(session, USER_ID, 1, LeaveType.OPTIONAL, YEAR)
                await session.commit()
            except QuotaExceededError:
                await session.rollback()
                return False
            return True

    outcomes = await asyncio.gather(*(_attempt() for _ in range(3)))
    assert outcomes.count(True) == 1

    async with session_factory() as session:
        ledger = await get_ledger(session, USER_ID, YEAR)
        assert ledger is not None
        assert ledger.optional_used == 4
