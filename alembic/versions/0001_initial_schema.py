"""0001 – Initial schema: leave ledger, requests, deductions, audit log.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000+00:00
"""

import sqlalchemy as sa
from alembic import op

# Revision identifiers
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "leave_ledger",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("q1", sa.Integer(), server_default="0", nullable=False),
        sa.Column("q2", sa.Integer(), server_default="0", nullable=False),
        sa.Column("q3", sa.Integer(), server_default="0", nullable=False),
        sa.Column("q4", sa.Integer(), server_default="0", nullable=False),
        sa.Column("carried_from_last_year", sa.Integer(), server_default="0", nullable=False),
        sa.Column("optional_used", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_credited_quarter", sa.Integer(), server_default="0", nullable=False),
        sa.Column("carry_calculated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("carry_applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        _created_at(),
        sa.UniqueConstraint("user_id", "year", name="uq_ledger_user_year"),
        sa.CheckConstraint("q1 >= 0 AND q2 >= 0 AND q3 >= 0 AND q4 >= 0", name="ck_ledger_quarters_non_negative"),
        sa.CheckConstraint("carried_from_last_year >= 0", name="ck_ledger_carried_non_negative"),
        sa.CheckConstraint("optional_used >= 0 AND optional_used <= 4", name="ck_ledger_optional_used_range"),
    )
    op.create_index("ix_leave_ledger_user_id", "leave_ledger", ["user_id"])
    op.create_index("ix_leave_ledger_year", "leave_ledger", ["year"])

    op.create_table(
        "leave_request",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("days", sa.Integer(), nullable=False),
        sa.Column("leave_type", sa.String(length=20), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("approved_by", sa.Uuid(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(), nullable=True),
        _created_at(),
        sa.CheckConstraint("days > 0", name="ck_leave_request_days_positive"),
    )
    op.create_index("ix_leave_request_user_id", "leave_request", ["user_id"])
    op.create_index("ix_leave_request_status", "leave_request", ["status"])
    op.create_index("ix_leave_request_user_status", "leave_request", ["user_id", "status"])

    op.create_table(
        "leave_deduction",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("leave_request.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("leave_type", sa.String(length=20), nullable=False),
        sa.Column("q1", sa.Integer(), nullable=False),
        sa.Column("q2", sa.Integer(), nullable=False),
        sa.Column("q3", sa.Integer(), nullable=False),
        sa.Column("q4", sa.Integer(), nullable=False),
        sa.Column("carried", sa.Integer(), nullable=False),
        sa.Column("optional", sa.Integer(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("request_id", name="uq_deduction_request"),
    )
    op.create_index("ix_deduction_user_year", "leave_deduction", ["user_id", "year"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("leave_deduction")
    op.drop_table("leave_request")
    op.drop_table("leave_ledger")
