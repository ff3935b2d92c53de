from sqlmodel import SQLModel

from leave_ledger.models.audit import AuditLog
from leave_ledger.models.deduction import LeaveDeduction
from leave_ledger.models.enums import (
    AuditAction,
    AuditEntityType,
    Decision,
    LeaveType,
    Quarter,
    RequestStatus,
    UserRole,
)
from leave_ledger.models.ledger import OPTIONAL_HOLIDAY_ALLOWANCE, LeaveLedger
from leave_ledger.models.request import LeaveRequest

__all__ = [
    "OPTIONAL_HOLIDAY_ALLOWANCE",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "Decision",
    "LeaveDeduction",
    "LeaveLedger",
    "LeaveRequest",
    "LeaveType",
    "Quarter",
    "RequestStatus",
    "SQLModel",
    "UserRole",
]
