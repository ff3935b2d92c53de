from fastapi import APIRouter

from leave_ledger.api.audit import audit_router
from leave_ledger.api.jobs import jobs_router
from leave_ledger.api.ledgers import ledgers_router
from leave_ledger.api.profiles import profiles_router
from leave_ledger.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(profiles_router)
api_router.include_router(requests_router)
api_router.include_router(ledgers_router)
api_router.include_router(jobs_router)
api_router.include_router(audit_router)
