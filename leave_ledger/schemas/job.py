# ruff: noqa: TC003
from __future__ import annotations

from datetime import date

from pydantic import BaseModel


class CreditRunResponse(BaseModel):
    """Response from the quarterly credit trigger."""

    as_of: date
    quarter: int | None
    credited: int
    skipped: int
    errors: int
    message: str


class CarryRunResponse(BaseModel):
    """Response from the year-end carry triggers."""

    year: int
    processed: int
    skipped: int
    errors: int
