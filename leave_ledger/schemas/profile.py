# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from leave_ledger.models.enums import UserRole


class UpsertProfileRequest(BaseModel):
    """Request body for seeding a profile into the stub directory."""

    email: str | None = Field(default=None, max_length=255)
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    role: UserRole = UserRole.EMPLOYEE
    manager_id: uuid.UUID | None = None
    is_active: bool = True


class ProfileResponse(BaseModel):
    """Profile as seen by this service."""

    user_id: uuid.UUID
    email: str | None
    first_name: str | None
    last_name: str | None
    role: UserRole
    manager_id: uuid.UUID | None
    is_active: bool
