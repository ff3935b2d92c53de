# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header

from leave_ledger.exceptions import UnauthorizedError
from leave_ledger.models.enums import UserRole
from leave_ledger.schemas.auth import AuthContext
from leave_ledger.services.directory import (
    ProfileDirectory,
    get_profile_directory,
    is_manager_of,
)

DirectoryDep = Annotated[ProfileDirectory, Depends(get_profile_directory)]


async def get_auth_context(
    directory: DirectoryDep,
    x_user_id: uuid.UUID = Header(),
) -> AuthContext:
    """Extract dev auth context: the user from the header, the role from the profile directory."""
    profile = await directory.get_profile(x_user_id)
    role = profile.role if profile is not None else UserRole.EMPLOYEE
    return AuthContext(user_id=x_user_id, role=role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require admin role for the request."""
    if not auth.is_admin:
        msg = "Admin access required"
        raise UnauthorizedError(msg)
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def ensure_can_view_user(directory: ProfileDirectory, auth: AuthContext, user_id: uuid.UUID) -> None:
    """Self, the user's manager and admins may read a user's data."""
    if auth.is_admin or auth.user_id == user_id:
        return
    if await is_manager_of(directory, auth.user_id, user_id):
        return
    msg = "Not authorized to view this user's data"
    raise UnauthorizedError(msg)
