# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Query

from leave_ledger.api.deps import AdminDep, DirectoryDep
from leave_ledger.db import SessionDep
from leave_ledger.schemas.job import CarryRunResponse, CreditRunResponse
from leave_ledger.services.carry import CarryRunResult, run_apply_new_year, run_calculate_carry
from leave_ledger.services.credit import run_quarterly_credit

jobs_router = APIRouter(prefix="/jobs", tags=["jobs"])


def _carry_response(result: CarryRunResult) -> CarryRunResponse:
    return CarryRunResponse(
        year=result.year,
        processed=result.processed,
        skipped=result.skipped,
        errors=result.errors,
    )


@jobs_router.post("/quarterly-credit", response_model=CreditRunResponse)
async def trigger_quarterly_credit(
    session: SessionDep,
    _auth: AdminDep,
    directory: DirectoryDep,
    as_of: date = Query(),
) -> CreditRunResponse:
    """Credit the quarter starting in ``as_of``'s month to every active user (admin only)."""
    result = await run_quarterly_credit(session, as_of, directory=directory)
    return CreditRunResponse(
        as_of=result.as_of,
        quarter=result.quarter.value if result.quarter is not None else None,
        credited=result.credited,
        skipped=result.skipped,
        errors=result.errors,
        message=result.message,
    )


@jobs_router.post("/year-end/calculate-carry", response_model=CarryRunResponse)
async def trigger_calculate_carry(
    session: SessionDep,
    _auth: AdminDep,
    year: int = Query(ge=1970, le=9999),
) -> CarryRunResponse:
    """Compute the carry-forward on every ledger of ``year`` (admin only)."""
    return _carry_response(await run_calculate_carry(session, year))


@jobs_router.post("/year-end/apply-new-year", response_model=CarryRunResponse)
async def trigger_apply_new_year(
    session: SessionDep,
    _auth: AdminDep,
    year: int = Query(ge=1970, le=9999),
) -> CarryRunResponse:
    """Open ``year`` ledgers from the calculated ``year - 1`` carry (admin only)."""
    return _carry_response(await run_apply_new_year(session, year))
