# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from leave_ledger.models.enums import UserRole


class ProfileInfo(BaseModel):
    """User profile as published by the profile directory."""

    user_id: uuid.UUID
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: UserRole = UserRole.EMPLOYEE
    manager_id: uuid.UUID | None = None
    is_active: bool = True


@runtime_checkable
class ProfileDirectory(Protocol):
    """Read-only interface to the external profile directory."""

    async def get_profile(self, user_id: uuid.UUID) -> ProfileInfo | None:
        """Fetch a profile. Returns None if not found."""
        ...

    async def list_active_user_ids(self) -> list[uuid.UUID]:
        """List the user ids of every active profile."""
        ...


class InMemoryProfileDirectory:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._profiles: dict[uuid.UUID, ProfileInfo] = {}

    def seed(self, profile: ProfileInfo) -> None:
        """Seed a profile for testing."""
        self._profiles[profile.user_id] = profile

    async def get_profile(self, user_id: uuid.UUID) -> ProfileInfo | None:
        return self._profiles.get(user_id)

    async def list_active_user_ids(self) -> list[uuid.UUID]:
        return [p.user_id for p in self._profiles.values() if p.is_active]


_profile_directory: ProfileDirectory = InMemoryProfileDirectory()


def get_profile_directory() -> ProfileDirectory:
    """FastAPI dependency for the profile directory."""
    return _profile_directory


def set_profile_directory(directory: ProfileDirectory) -> None:
    """Override the directory (for testing or production wiring)."""
    global _profile_directory
    _profile_directory = directory


async def is_admin(directory: ProfileDirectory, user_id: uuid.UUID) -> bool:
    profile = await directory.get_profile(user_id)
    return profile is not None and profile.role == UserRole.ADMIN


async def is_manager_of(directory: ProfileDirectory, actor_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    """True when actor_id is the manager recorded on user_id's profile."""
    profile = await directory.get_profile(user_id)
    return profile is not None and profile.manager_id == actor_id
