"""Worker process for the scheduled ledger jobs.

Runs whatever each calendar date calls for: the carry calculation on Dec 31,
the new-year ledgers and Q1 credit on Jan 1, and the quarterly credit on the
first of Apr, Jul and Oct. The loop sleeps until just past midnight and then
works through every date since the last one it processed, so a slow or
stopped worker catches up instead of skipping a job date. On startup it
replays the last ``worker_catch_up_days`` days; the jobs' own markers make
those replays no-ops for work that already happened.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from enum import StrEnum

from leave_ledger.config import get_settings
from leave_ledger.db import get_session_factory
from leave_ledger.services.carry import run_apply_new_year, run_calculate_carry
from leave_ledger.services.credit import credit_quarter_for, run_quarterly_credit

logger = logging.getLogger(__name__)

# Wake a little after midnight so the new date has settled.
WAKE_DELAY_SECONDS = 60


class Job(StrEnum):
    CALCULATE_CARRY = "calculate_carry"
    APPLY_NEW_YEAR = "apply_new_year"
    QUARTERLY_CREDIT = "quarterly_credit"


def jobs_due(as_of: date) -> list[Job]:
    """Jobs to run on ``as_of``, in execution order."""
    if as_of.month == 12 and as_of.day == 31:
        return [Job.CALCULATE_CARRY]
    jobs: list[Job] = []
    if as_of.day != 1:
        return jobs
    if as_of.month == 1:
        # The new-year phase credits Q1 itself; the credit run then only
        # picks up users without a prior-year ledger.
        jobs.append(Job.APPLY_NEW_YEAR)
    if credit_quarter_for(as_of) is not None:
        jobs.append(Job.QUARTERLY_CREDIT)
    return jobs


async def run_scheduled_jobs(as_of: date) -> list[Job]:
    """Run the jobs due on ``as_of``, each in its own session. Returns the jobs attempted."""
    session_factory = get_session_factory()
    due = jobs_due(as_of)

    for job in due:
        try:
            async with session_factory() as session:
                if job == Job.CALCULATE_CARRY:
                    carry = await run_calculate_carry(session, as_of.year)
                    logger.info(
                        "Carry calculation for %s: processed=%d skipped=%d errors=%d",
                        as_of.year,
                        carry.processed,
                        carry.skipped,
                        carry.errors,
                    )
                elif job == Job.APPLY_NEW_YEAR:
                    opened = await run_apply_new_year(session, as_of.year)
                    logger.info(
                        "New-year ledgers for %s: processed=%d skipped=%d errors=%d",
                        as_of.year,
                        opened.processed,
                        opened.skipped,
                        opened.errors,
                    )
                else:
                    credit = await run_quarterly_credit(session, as_of)
                    logger.info(
                        "%s: credited=%d skipped=%d errors=%d",
                        credit.message,
                        credit.credited,
                        credit.skipped,
                        credit.errors,
                    )
        except Exception:
            logger.exception("Job %s failed for %s", job.value, as_of)

    return due


def dates_to_process(last_processed: date | None, today: date, catch_up_days: int = 0) -> list[date]:
    """Every date after ``last_processed`` up to and including ``today``, oldest first.

    With no previous run the window starts ``catch_up_days`` before today.
    """
    if last_processed is None:
        start = today - timedelta(days=catch_up_days)
    else:
        start = last_processed + timedelta(days=1)
    return [start + timedelta(days=offset) for offset in range((today - start).days + 1)]


def seconds_until_next_run(now: datetime) -> float:
    """Seconds from ``now`` until shortly after the next midnight."""
    next_midnight = datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=now.tzinfo)
    return (next_midnight - now).total_seconds() + WAKE_DELAY_SECONDS


async def catch_up(last_processed: date | None, today: date, catch_up_days: int = 0) -> date:
    """Run the jobs for each unprocessed date through ``today``. Returns the new last-processed date."""
    pending = dates_to_process(last_processed, today, catch_up_days)
    if len(pending) > 1:
        logger.info("Processing ledger job dates %s through %s", pending[0], pending[-1])

    for as_of in pending:
        due = await run_scheduled_jobs(as_of)
        if not due:
            logger.debug("No ledger jobs due on %s", as_of)

    return today


async def run_job_loop() -> None:
    """Main worker loop: catch up to today, then sleep until the next day."""
    settings = get_settings()
    logger.info("Ledger worker started, replaying the last %d days", settings.worker_catch_up_days)

    last_processed: date | None = None
    while True:
        last_processed = await catch_up(last_processed, date.today(), settings.worker_catch_up_days)
        await asyncio.sleep(seconds_until_next_run(datetime.now()))


def main() -> None:
    """Entry point for the worker process."""
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    asyncio.run(run_job_loop())


if __name__ == "__main__":
    main()
