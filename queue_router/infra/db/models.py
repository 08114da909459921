from datetime import UTC, datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from queue_router.domain.enums import (
    CancellationReason,
    Department,
    OperatorPresence,
    OperatorProfile,
    ParticipantKind,
    SessionDirection,
    SessionOutcome,
    SessionStatus,
)

ACTIVE_SESSION_PREDICATE = "status IN ('automated', 'waiting', 'in_service')"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _enum(enum_cls: type[PyEnum], name: str) -> Enum:
    # Persist the lowercase values, matching the migration's enum types.
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )


class Operator(Base, TimestampMixin):
    __tablename__ = "operators"
    __table_args__ = (
        Index("ix_operators_department_eligibility", "department", "is_active", "is_listable"),
    )

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    display_name: Mapped[str] = mapped_column(String(120), nullable=False)
    department: Mapped[Department] = mapped_column(
        _enum(Department, "department"), nullable=False
    )
    profile: Mapped[OperatorProfile] = mapped_column(
        _enum(OperatorProfile, "operator_profile"),
        nullable=False,
        default=OperatorProfile.OPERATOR,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_listable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    presence: Mapped[OperatorPresence] = mapped_column(
        _enum(OperatorPresence, "operator_presence"),
        nullable=False,
        default=OperatorPresence.OFFLINE,
    )
    last_seen_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class CustomerSession(Base, TimestampMixin):
    __tablename__ = "customer_sessions"
    __table_args__ = (
        Index(
            "uq_customer_sessions_active_customer",
            "customer_ref",
            unique=True,
            postgresql_where=text(ACTIVE_SESSION_PREDICATE),
            sqlite_where=text(ACTIVE_SESSION_PREDICATE),
        ),
        Index("ix_customer_sessions_status_created", "status", "created_at"),
    )

    session_id: Mapped[str] = mapped_column(String(120), primary_key=True)
    customer_ref: Mapped[str] = mapped_column(String(120), nullable=False, index=True)
    status: Mapped[SessionStatus] = mapped_column(
        _enum(SessionStatus, "session_status"), nullable=False
    )
    direction: Mapped[SessionDirection] = mapped_column(
        _enum(SessionDirection, "session_direction"),
        nullable=False,
        default=SessionDirection.INBOUND,
    )
    department: Mapped[Department | None] = mapped_column(
        _enum(Department, "department"), nullable=True
    )
    requested_operator_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("operators.id", ondelete="SET NULL"), nullable=True
    )
    assigned_operator_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("operators.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    supervisor_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("operators.id", ondelete="SET NULL"), nullable=True
    )
    cancellation_reason: Mapped[CancellationReason | None] = mapped_column(
        _enum(CancellationReason, "cancellation_reason"), nullable=True
    )
    automation_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class OperatorChoiceList(Base):
    __tablename__ = "operator_choice_lists"

    list_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    session_id: Mapped[str] = mapped_column(
        String(120),
        ForeignKey("customer_sessions.session_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    department: Mapped[Department] = mapped_column(
        _enum(Department, "department"), nullable=False
    )
    operator_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class SessionOutcomeRecord(Base):
    __tablename__ = "session_outcomes"
    __table_args__ = (UniqueConstraint("session_id", name="uq_session_outcomes_session"),)

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    session_id: Mapped[str] = mapped_column(
        String(120), ForeignKey("customer_sessions.session_id"), nullable=False
    )
    outcome: Mapped[SessionOutcome] = mapped_column(
        _enum(SessionOutcome, "session_outcome"), nullable=False
    )
    reason: Mapped[str | None] = mapped_column(String(60), nullable=True)
    assigned_operator_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    supervisor_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    resolution_code: Mapped[str | None] = mapped_column(String(120), nullable=True)
    closed_by_kind: Mapped[ParticipantKind | None] = mapped_column(
        _enum(ParticipantKind, "participant_kind"), nullable=True
    )
    closed_by_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
