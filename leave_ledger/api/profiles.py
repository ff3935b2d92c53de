# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter

from leave_ledger.api.deps import AdminDep, AuthDep, DirectoryDep, ensure_can_view_user
from leave_ledger.exceptions import AppError, NotFoundError
from leave_ledger.schemas.profile import ProfileResponse, UpsertProfileRequest
from leave_ledger.services.directory import InMemoryProfileDirectory, ProfileInfo

profiles_router = APIRouter(prefix="/profiles", tags=["profiles"])


def _to_response(profile: ProfileInfo) -> ProfileResponse:
    return ProfileResponse(**profile.model_dump())


@profiles_router.put("/{user_id}", response_model=ProfileResponse)
async def upsert_profile(
    user_id: uuid.UUID,
    payload: UpsertProfileRequest,
    _auth: AdminDep,
    directory: DirectoryDep,
) -> ProfileResponse:
    """Seed a profile into the development directory (admin only)."""
    if not isinstance(directory, InMemoryProfileDirectory):
        msg = "Profile directory is read-only"
        raise AppError(msg, status_code=405)
    profile = ProfileInfo(user_id=user_id, **payload.model_dump())
    directory.seed(profile)
    return _to_response(profile)


@profiles_router.get("/{user_id}", response_model=ProfileResponse)
async def get_profile(
    user_id: uuid.UUID,
    auth: AuthDep,
    directory: DirectoryDep,
) -> ProfileResponse:
    """Read a profile from the directory."""
    await ensure_can_view_user(directory, auth, user_id)
    profile = await directory.get_profile(user_id)
    if profile is None:
        msg = "Profile not found"
        raise NotFoundError(msg)
    return _to_response(profile)
