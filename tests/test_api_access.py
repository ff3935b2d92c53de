"""Profiles, ledger views, job triggers and audit queries over HTTP."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest

from leave_ledger.models.enums import UserRole
from leave_ledger.models.ledger import LeaveLedger
from leave_ledger.services.directory import InMemoryProfileDirectory, ProfileInfo

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

ADMIN_ID = uuid.uuid4()
MANAGER_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()
PEER_ID = uuid.uuid4()

ADMIN_HEADERS = {"X-User-Id": str(ADMIN_ID)}
MANAGER_HEADERS = {"X-User-Id": str(MANAGER_ID)}
EMPLOYEE_HEADERS = {"X-User-Id": str(EMPLOYEE_ID)}
PEER_HEADERS = {"X-User-Id": str(PEER_ID)}


@pytest.fixture(autouse=True)
def _seed_directory(directory: InMemoryProfileDirectory) -> None:
    directory.seed(ProfileInfo(user_id=ADMIN_ID, role=UserRole.ADMIN))
    directory.seed(ProfileInfo(user_id=MANAGER_ID, role=UserRole.MANAGER))
    directory.seed(ProfileInfo(user_id=EMPLOYEE_ID, manager_id=MANAGER_ID))
    directory.seed(ProfileInfo(user_id=PEER_ID))


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


async def test_missing_user_header_is_rejected(async_client: AsyncClient) -> None:
    resp = await async_client.get("/requests")
    assert resp.status_code == 422


async def test_malformed_user_header_is_rejected(async_client: AsyncClient) -> None:
    resp = await async_client.get("/requests", headers={"X-User-Id": "not-a-uuid"})
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


async def test_admin_upserts_profile(async_client: AsyncClient, directory: InMemoryProfileDirectory) -> None:
    new_id = uuid.uuid4()
    resp = await async_client.put(
        f"/profiles/{new_id}",
        json={"email": "new@example.com", "role": "manager"},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 200
    assert resp.json()["role"] == "manager"

    profile = await directory.get_profile(new_id)
    assert profile is not None
    assert profile.email == "new@example.com"


async def test_non_admin_cannot_upsert_profile(async_client: AsyncClient) -> None:
    resp = await async_client.put(f"/profiles/{PEER_ID}", json={"role": "admin"}, headers=PEER_HEADERS)
    assert resp.status_code == 403


async def test_get_profile(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"/profiles/{EMPLOYEE_ID}", headers=MANAGER_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["manager_id"] == str(MANAGER_ID)

    missing = await async_client.get(f"/profiles/{uuid.uuid4()}", headers=ADMIN_HEADERS)
    assert missing.status_code == 404


# ---------------------------------------------------------------------------
# Ledger views
# ---------------------------------------------------------------------------


async def test_ledger_view(async_client: AsyncClient, db_session: AsyncSession) -> None:
    db_session.add(LeaveLedger(user_id=EMPLOYEE_ID, year=2026, q1=5, q2=5, carried_from_last_year=2, optional_used=1))
    await db_session.commit()

    resp = await async_client.get(f"/users/{EMPLOYEE_ID}/ledgers/2026", headers=EMPLOYEE_HEADERS)

    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 12
    assert data["carried"] == 2
    assert data["optional_remaining"] == 3
    assert data["exists"] is True


async def test_ledger_view_of_missing_ledger(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"/users/{EMPLOYEE_ID}/ledgers/2030", headers=MANAGER_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["exists"] is False
    assert data["total"] == 0
    assert data["optional_remaining"] == 4


async def test_ledger_view_forbidden_for_peers(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"/users/{EMPLOYEE_ID}/ledgers/2026", headers=PEER_HEADERS)
    assert resp.status_code == 403
    assert resp.json()["error"] == "UnauthorizedError"

    deductions = await async_client.get(f"/users/{EMPLOYEE_ID}/ledgers/2026/deductions", headers=PEER_HEADERS)
    assert deductions.status_code == 403


async def test_deductions_listing_empty(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"/users/{EMPLOYEE_ID}/ledgers/2026/deductions", headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert resp.json() == {"items": [], "total": 0}


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


async def test_quarterly_credit_trigger(async_client: AsyncClient) -> None:
    resp = await async_client.post("/jobs/quarterly-credit", params={"as_of": "2026-04-01"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["quarter"] == 2
    assert data["credited"] == 4
    assert data["message"] == "Quarterly credit completed for Q2"

    view = await async_client.get(f"/users/{PEER_ID}/ledgers/2026", headers=PEER_HEADERS)
    assert view.json()["q2"] == 5


async def test_quarterly_credit_trigger_off_month(async_client: AsyncClient) -> None:
    resp = await async_client.post("/jobs/quarterly-credit", params={"as_of": "2026-05-01"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["quarter"] is None
    assert resp.json()["message"] == "Not a quarter start month"


async def test_year_end_triggers(async_client: AsyncClient, db_session: AsyncSession) -> None:
    db_session.add(LeaveLedger(user_id=EMPLOYEE_ID, year=2026, q1=3, q4=4))
    await db_session.commit()

    calc = await async_client.post("/jobs/year-end/calculate-carry", params={"year": 2026}, headers=ADMIN_HEADERS)
    assert calc.json() == {"year": 2026, "processed": 1, "skipped": 0, "errors": 0}

    opened = await async_client.post("/jobs/year-end/apply-new-year", params={"year": 2027}, headers=ADMIN_HEADERS)
    assert opened.json()["processed"] == 1

    view = await async_client.get(f"/users/{EMPLOYEE_ID}/ledgers/2027", headers=EMPLOYEE_HEADERS)
    assert (view.json()["q1"], view.json()["carried"]) == (5, 3)


@pytest.mark.parametrize(
    "path",
    [
        "/jobs/quarterly-credit?as_of=2026-01-01",
        "/jobs/year-end/calculate-carry?year=2026",
        "/jobs/year-end/apply-new-year?year=2027",
    ],
)
async def test_job_triggers_require_admin(async_client: AsyncClient, path: str) -> None:
    resp = await async_client.post(path, headers=MANAGER_HEADERS)
    assert resp.status_code == 403


async def test_audit_log_requires_admin(async_client: AsyncClient) -> None:
    resp = await async_client.get("/audit-log", headers=MANAGER_HEADERS)
    assert resp.status_code == 403


async def test_audit_log_records_credits(async_client: AsyncClient) -> None:
    await async_client.post("/jobs/quarterly-credit", params={"as_of": "2026-07-01"}, headers=ADMIN_HEADERS)

    resp = await async_client.get("/audit-log", params={"entity_type": "LEDGER"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 4
    assert {item["action"] for item in data["items"]} == {"CREDIT"}
