from __future__ import annotations

import enum


class LeaveType(enum.StrEnum):
    """Which allowance a leave request draws from."""

    GENERAL = "general"
    OPTIONAL = "optional"


class RequestStatus(enum.StrEnum):
    """State machine for leave requests. Only PENDING is non-terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Decision(enum.StrEnum):
    """Approver's verdict on a pending request."""

    APPROVE = "approve"
    REJECT = "reject"


class UserRole(enum.StrEnum):
    """Role held by a user in the profile directory."""

    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"
    INTERN = "intern"


class Quarter(enum.IntEnum):
    """Calendar quarter; the value is the quarter index."""

    Q1 = 1
    Q2 = 2
    Q3 = 3
    Q4 = 4

    @property
    def column(self) -> str:
        """Name of the ledger column holding this quarter's balance."""
        return f"q{self.value}"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    REQUEST = "REQUEST"
    LEDGER = "LEDGER"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    CREDIT = "CREDIT"
    CARRY_CALCULATE = "CARRY_CALCULATE"
    CARRY_APPLY = "CARRY_APPLY"
