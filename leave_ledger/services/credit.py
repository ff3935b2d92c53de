"""Quarterly credit: grants every active employee their quarter's leave on the quarter's first month."""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from leave_ledger.models.enums import AuditAction, AuditEntityType, Quarter
from leave_ledger.services.audit import SYSTEM_ACTOR, model_to_audit_dict, write_audit_log
from leave_ledger.services.directory import get_profile_directory
from leave_ledger.services.ledger import apply_delta, create_ledger_if_absent, get_ledger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.services.directory import ProfileDirectory

logger = logging.getLogger(__name__)

QUARTERLY_CREDIT_DAYS = 5

_QUARTER_START_MONTHS = {
    1: Quarter.Q1,
    4: Quarter.Q2,
    7: Quarter.Q3,
    10: Quarter.Q4,
}


@dataclass
class CreditRunResult:
    """Summary of a quarterly credit run."""

    as_of: date
    quarter: Quarter | None = None
    credited: int = 0
    skipped: int = 0
    errors: int = 0
    message: str = ""


def quarter_of(day: date) -> Quarter:
    """Quarter containing ``day``: ceil(month / 3)."""
    return Quarter(math.ceil(day.month / 3))


def credit_quarter_for(as_of: date) -> Quarter | None:
    """Quarter to credit on ``as_of``, or None outside Jan/Apr/Jul/Oct."""
    return _QUARTER_START_MONTHS.get(as_of.month)


async def _credit_user(
    session: AsyncSession,
    user_id: uuid.UUID,
    year: int,
    quarter: Quarter,
) -> bool:
    """Credit one user's ledger. Returns False if the quarter was already credited."""
    ledger, created = await create_ledger_if_absent(
        session,
        user_id,
        year,
        **{quarter.column: QUARTERLY_CREDIT_DAYS},
        last_credited_quarter=quarter.value,
    )
    if created:
        await write_audit_log(
            session,
            actor_id=SYSTEM_ACTOR,
            entity_type=AuditEntityType.LEDGER,
            entity_id=ledger.id,
            action=AuditAction.CREDIT,
            after_json=model_to_audit_dict(ledger),
        )
        return True

    ledger = await get_ledger(session, user_id, year, for_update=True) or ledger
    if ledger.last_credited_quarter >= quarter.value:
        return False

    before = model_to_audit_dict(ledger)
    updated = await apply_delta(
        session,
        user_id,
        year,
        {quarter.column: QUARTERLY_CREDIT_DAYS},
        expected_version=ledger.version,
        markers={"last_credited_quarter": quarter.value},
    )
    await write_audit_log(
        session,
        actor_id=SYSTEM_ACTOR,
        entity_type=AuditEntityType.LEDGER,
        entity_id=updated.id,
        action=AuditAction.CREDIT,
        before_json=before,
        after_json=model_to_audit_dict(updated),
    )
    return True


async def run_quarterly_credit(
    session: AsyncSession,
    as_of: date,
    *,
    directory: ProfileDirectory | None = None,
) -> CreditRunResult:
    """Credit the quarter starting in ``as_of``'s month to every active user.

    Each user is committed on its own; a failure is logged, rolled back and
    counted without stopping the batch. Ledgers already credited for the
    quarter are skipped, so the run can be repeated to retry failures.
    """
    result = CreditRunResult(as_of=as_of)

    quarter = credit_quarter_for(as_of)
    if quarter is None:
        result.message = "Not a quarter start month"
        logger.info("Quarterly credit skipped: %s is not a quarter start month", as_of)
        return result
    result.quarter = quarter

    directory = directory or get_profile_directory()
    user_ids = await directory.list_active_user_ids()

    for user_id in user_ids:
        try:
            credited = await _credit_user(session, user_id, as_of.year, quarter)
            await session.commit()
        except Exception:
            logger.exception("Quarterly credit failed for user=%s quarter=%s", user_id, quarter.name)
            await session.rollback()
            result.errors += 1
            continue

        if credited:
            result.credited += 1
        else:
            result.skipped += 1

    result.message = f"Quarterly credit completed for {quarter.name}"
    logger.info(
        "Quarterly credit %s %s: credited=%d skipped=%d errors=%d",
        quarter.name,
        as_of.year,
        result.credited,
        result.skipped,
        result.errors,
    )
    return result
