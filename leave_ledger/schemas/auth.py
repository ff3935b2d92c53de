# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from leave_ledger.models.enums import UserRole


class AuthContext(BaseModel):
    """Dev auth context: the user from the request header, the role from the profile directory."""

    user_id: uuid.UUID
    role: UserRole = UserRole.EMPLOYEE

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
