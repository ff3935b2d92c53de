"""Year-end carry-forward, in two separately scheduled phases.

calculate carry: runs on Dec 31 of ``year``. Halves (rounding down) the unused
quarterly balance into ``carried_from_last_year`` and zeroes the quarters.

apply new year: runs on Jan 1 of ``year``. Opens each user's ``year`` ledger
with the Q1 credit and the carry computed on the ``year - 1`` row.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from leave_ledger.models.base import now_utc
from leave_ledger.models.enums import AuditAction, AuditEntityType, Quarter
from leave_ledger.services.audit import SYSTEM_ACTOR, model_to_audit_dict, write_audit_log
from leave_ledger.services.credit import QUARTERLY_CREDIT_DAYS
from leave_ledger.services.ledger import apply_delta, create_ledger_if_absent, get_ledger, list_ledgers_for_year

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

CARRY_FORWARD_RATIO = 0.5


@dataclass
class CarryRunResult:
    """Summary of a carry phase run."""

    year: int
    processed: int = 0
    skipped: int = 0
    errors: int = 0


def compute_carry(quarterly_total: int) -> int:
    return math.floor(quarterly_total * CARRY_FORWARD_RATIO)


# ---------------------------------------------------------------------------
# Phase 1: calculate carry (Dec 31)
# ---------------------------------------------------------------------------


async def _calculate_carry_for(session: AsyncSession, user_id: uuid.UUID, year: int) -> bool:
    ledger = await get_ledger(session, user_id, year, for_update=True)
    if ledger is None or ledger.carry_calculated_at is not None:
        return False

    before = model_to_audit_dict(ledger)
    carry = compute_carry(ledger.quarterly_total)
    deltas = {
        "q1": -ledger.q1,
        "q2": -ledger.q2,
        "q3": -ledger.q3,
        "q4": -ledger.q4,
        "carried_from_last_year": carry - ledger.carried_from_last_year,
    }
    updated = await apply_delta(
        session,
        user_id,
        year,
        deltas,
        expected_version=ledger.version,
        markers={"carry_calculated_at": now_utc()},
    )
    await write_audit_log(
        session,
        actor_id=SYSTEM_ACTOR,
        entity_type=AuditEntityType.LEDGER,
        entity_id=updated.id,
        action=AuditAction.CARRY_CALCULATE,
        before_json=before,
        after_json=model_to_audit_dict(updated),
    )
    return True


async def run_calculate_carry(session: AsyncSession, year: int) -> CarryRunResult:
    """Compute the carry-forward on every ledger of ``year``.

    Rows already calculated are skipped; running the phase again would
    otherwise recompute from zeroed quarters and wipe the carry.
    """
    result = CarryRunResult(year=year)
    user_ids = [ledger.user_id for ledger in await list_ledgers_for_year(session, year)]

    for user_id in user_ids:
        try:
            processed = await _calculate_carry_for(session, user_id, year)
            await session.commit()
        except Exception:
            logger.exception("Carry calculation failed for user=%s year=%s", user_id, year)
            await session.rollback()
            result.errors += 1
            continue

        if processed:
            result.processed += 1
        else:
            result.skipped += 1

    logger.info(
        "Carry calculated for %s: processed=%d skipped=%d errors=%d",
        year,
        result.processed,
        result.skipped,
        result.errors,
    )
    return result


# ---------------------------------------------------------------------------
# Phase 2: apply new year (Jan 1)
# ---------------------------------------------------------------------------


async def _open_year_for(session: AsyncSession, user_id: uuid.UUID, year: int) -> bool:
    prior = await get_ledger(session, user_id, year - 1)
    if prior is None:
        return False
    if prior.carry_calculated_at is None:
        logger.warning("Skipping %s ledger for user=%s: carry for %s was never calculated", year, user_id, year - 1)
        return False

    carry = prior.carried_from_last_year
    applied_at = now_utc()
    ledger, created = await create_ledger_if_absent(
        session,
        user_id,
        year,
        q1=QUARTERLY_CREDIT_DAYS,
        carried_from_last_year=carry,
        last_credited_quarter=Quarter.Q1.value,
        carry_applied_at=applied_at,
    )
    if created:
        await write_audit_log(
            session,
            actor_id=SYSTEM_ACTOR,
            entity_type=AuditEntityType.LEDGER,
            entity_id=ledger.id,
            action=AuditAction.CARRY_APPLY,
            after_json=model_to_audit_dict(ledger),
        )
        return True

    # The row was opened earlier (by a credit or a deduction); fold the carry in once.
    ledger = await get_ledger(session, user_id, year, for_update=True) or ledger
    if ledger.carry_applied_at is not None:
        return False

    before = model_to_audit_dict(ledger)
    deltas = {"carried_from_last_year": carry}
    markers: dict[str, object] = {"carry_applied_at": applied_at}
    if ledger.last_credited_quarter < Quarter.Q1.value:
        deltas["q1"] = QUARTERLY_CREDIT_DAYS
        markers["last_credited_quarter"] = Quarter.Q1.value

    updated = await apply_delta(session, user_id, year, deltas, expected_version=ledger.version, markers=markers)
    await write_audit_log(
        session,
        actor_id=SYSTEM_ACTOR,
        entity_type=AuditEntityType.LEDGER,
        entity_id=updated.id,
        action=AuditAction.CARRY_APPLY,
        before_json=before,
        after_json=model_to_audit_dict(updated),
    )
    return True


async def run_apply_new_year(session: AsyncSession, year: int) -> CarryRunResult:
    """Open ``year`` ledgers for every user with a ``year - 1`` ledger.

    Prior-year rows whose carry was never calculated are skipped and logged;
    the ordering between the two phases is not otherwise enforced.
    """
    result = CarryRunResult(year=year)
    user_ids = [ledger.user_id for ledger in await list_ledgers_for_year(session, year - 1)]

    for user_id in user_ids:
        try:
            processed = await _open_year_for(session, user_id, year)
            await session.commit()
        except Exception:
            logger.exception("New-year ledger failed for user=%s year=%s", user_id, year)
            await session.rollback()
            result.errors += 1
            continue

        if processed:
            result.processed += 1
        else:
            result.skipped += 1

    logger.info(
        "New year %s applied: processed=%d skipped=%d errors=%d",
        year,
        result.processed,
        result.skipped,
        result.errors,
    )
    return result
