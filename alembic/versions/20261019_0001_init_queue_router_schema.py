"""init queue router schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

DEPARTMENTS = ("personal", "fiscal", "accounting", "financial")
SESSION_STATUSES = ("automated", "waiting", "in_service", "completed", "cancelled")
ACTIVE_SESSION_PREDICATE = "status IN ('automated', 'waiting', 'in_service')"


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in (
        sa.Enum(*DEPARTMENTS, name="department"),
        sa.Enum("admin", "supervisor", "operator", name="operator_profile"),
        sa.Enum("online", "offline", name="operator_presence"),
        sa.Enum(*SESSION_STATUSES, name="session_status"),
        sa.Enum("inbound", "outbound", name="session_direction"),
        sa.Enum("customer_request", "forced", "timeout", name="cancellation_reason"),
        sa.Enum("completed", "cancelled", name="session_outcome"),
        sa.Enum("operator", "customer", name="participant_kind"),
    ):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "operators",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("display_name", sa.String(length=120), nullable=False),
        sa.Column("department", _enum("department", *DEPARTMENTS), nullable=False),
        sa.Column(
            "profile",
            _enum("operator_profile", "admin", "supervisor", "operator"),
            nullable=False,
            server_default=sa.text("'operator'"),
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_listable", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "presence",
            _enum("operator_presence", "online", "offline"),
            nullable=False,
            server_default=sa.text("'offline'"),
        ),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_operators_department_eligibility",
        "operators",
        ["department", "is_active", "is_listable"],
        unique=False,
    )

    op.create_table(
        "customer_sessions",
        sa.Column("session_id", sa.String(length=120), nullable=False),
        sa.Column("customer_ref", sa.String(length=120), nullable=False),
        sa.Column("status", _enum("session_status", *SESSION_STATUSES), nullable=False),
        sa.Column(
            "direction",
            _enum("session_direction", "inbound", "outbound"),
            nullable=False,
            server_default=sa.text("'inbound'"),
        ),
        sa.Column("department", _enum("department", *DEPARTMENTS), nullable=True),
        sa.Column("requested_operator_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("assigned_operator_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("supervisor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "cancellation_reason",
            _enum("cancellation_reason", "customer_request", "forced", "timeout"),
            nullable=True,
        ),
        sa.Column("automation_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["requested_operator_id"], ["operators.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["assigned_operator_id"], ["operators.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["supervisor_id"], ["operators.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("session_id"),
    )
    op.create_index(
        "ix_customer_sessions_customer_ref",
        "customer_sessions",
        ["customer_ref"],
        unique=False,
    )
    op.create_index(
        "ix_customer_sessions_assigned_operator_id",
        "customer_sessions",
        ["assigned_operator_id"],
        unique=False,
    )
    op.create_index(
        "ix_customer_sessions_status_created",
        "customer_sessions",
        ["status", "created_at"],
        unique=False,
    )
    op.create_index(
        "uq_customer_sessions_active_customer",
        "customer_sessions",
        ["customer_ref"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_SESSION_PREDICATE),
    )

    op.create_table(
        "operator_choice_lists",
        sa.Column("list_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("session_id", sa.String(length=120), nullable=False),
        sa.Column("department", _enum("department", *DEPARTMENTS), nullable=False),
        sa.Column("operator_ids", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["session_id"], ["customer_sessions.session_id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("list_id"),
    )
    op.create_index(
        "ix_operator_choice_lists_session_id",
        "operator_choice_lists",
        ["session_id"],
        unique=False,
    )

    op.create_table(
        "session_outcomes",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("session_id", sa.String(length=120), nullable=False),
        sa.Column(
            "outcome", _enum("session_outcome", "completed", "cancelled"), nullable=False
        ),
        sa.Column("reason", sa.String(length=60), nullable=True),
        sa.Column("assigned_operator_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("supervisor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("resolution_code", sa.String(length=120), nullable=True),
        sa.Column(
            "closed_by_kind",
            _enum("participant_kind", "operator", "customer"),
            nullable=True,
        ),
        sa.Column("closed_by_id", sa.String(length=120), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["session_id"], ["customer_sessions.session_id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("session_id", name="uq_session_outcomes_session"),
    )


def downgrade() -> None:
    op.drop_table("session_outcomes")

    op.drop_index("ix_operator_choice_lists_session_id", table_name="operator_choice_lists")
    op.drop_table("operator_choice_lists")

    op.drop_index("uq_customer_sessions_active_customer", table_name="customer_sessions")
    op.drop_index("ix_customer_sessions_status_created", table_name="customer_sessions")
    op.drop_index("ix_customer_sessions_assigned_operator_id", table_name="customer_sessions")
    op.drop_index("ix_customer_sessions_customer_ref", table_name="customer_sessions")
    op.drop_table("customer_sessions")

    op.drop_index("ix_operators_department_eligibility", table_name="operators")
    op.drop_table("operators")

    bind = op.get_bind()
    for name in (
        "participant_kind",
        "session_outcome",
        "cancellation_reason",
        "session_direction",
        "session_status",
        "operator_presence",
        "operator_profile",
        "department",
    ):
        sa.Enum(name=name).drop(bind, checkfirst=True)
