from collections.abc import Collection, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, and_, case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from queue_router.domain.enums import (
    Department,
    OperatorPresence,
    OperatorProfile,
    SessionDirection,
    SessionStatus,
)
from queue_router.domain.events import CompletionEvent
from queue_router.domain.state_machine import ACTIVE_STATUSES
from queue_router.infra.db.models import (
    CustomerSession,
    Operator,
    OperatorChoiceList,
    SessionOutcomeRecord,
)


@dataclass(frozen=True, slots=True)
class QueueMetrics:
    total_sessions: int
    active_sessions: int
    completed_sessions: int
    cancelled_sessions: int
    average_wait_seconds: float
    average_service_seconds: float


class SessionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, session_id: str, *, refresh: bool = False) -> CustomerSession | None:
        return await self.session.get(
            CustomerSession, session_id, populate_existing=refresh
        )

    async def get_active_for_customer(self, customer_ref: str) -> CustomerSession | None:
        stmt: Select[tuple[CustomerSession]] = (
            select(CustomerSession)
            .where(
                CustomerSession.customer_ref == customer_ref,
                CustomerSession.status.in_(list(ACTIVE_STATUSES)),
            )
            .order_by(CustomerSession.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        session_id: str,
        customer_ref: str,
        direction: SessionDirection,
        status: SessionStatus,
        department: Department | None = None,
    ) -> CustomerSession | None:
        """Insert a session; returns None when the active-session index rejects it."""
        customer_session = CustomerSession(
            session_id=session_id,
            customer_ref=customer_ref,
            direction=direction,
            status=status,
            department=department,
        )
        self.session.add(customer_session)
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            return None
        return customer_session

    async def transition(
        self,
        session_id: str,
        expected: Collection[SessionStatus],
        values: Mapping[str, Any],
        *,
        expected_operator_id: UUID | None = None,
    ) -> CustomerSession | None:
        """Compare-and-set: apply values only while status is still one of expected.

        Returns the updated row, or None when another writer got there first.
        """
        stmt = (
            update(CustomerSession)
            .where(
                CustomerSession.session_id == session_id,
                CustomerSession.status.in_(list(expected)),
            )
            .values(**values)
            .returning(CustomerSession)
            .execution_options(populate_existing=True)
        )
        if expected_operator_id is not None:
            stmt = stmt.where(CustomerSession.assigned_operator_id == expected_operator_id)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_expired_automated(
        self,
        cutoff: datetime,
        limit: int,
        after: tuple[datetime, str] | None = None,
    ) -> list[CustomerSession]:
        stmt: Select[tuple[CustomerSession]] = select(CustomerSession).where(
            CustomerSession.status == SessionStatus.AUTOMATED,
            CustomerSession.automation_completed_at.is_(None),
            CustomerSession.created_at < cutoff,
        )
        if after is not None:
            after_created_at, after_session_id = after
            stmt = stmt.where(
                or_(
                    CustomerSession.created_at > after_created_at,
                    and_(
                        CustomerSession.created_at == after_created_at,
                        CustomerSession.session_id > after_session_id,
                    ),
                )
            )
        stmt = stmt.order_by(
            CustomerSession.created_at.asc(), CustomerSession.session_id.asc()
        ).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_in_service_for_operator(self, operator_id: UUID) -> int:
        stmt: Select[tuple[int]] = select(func.count(CustomerSession.session_id)).where(
            CustomerSession.assigned_operator_id == operator_id,
            CustomerSession.status == SessionStatus.IN_SERVICE,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one() or 0)

    async def list_waiting(
        self, department: Department | None = None, limit: int = 100
    ) -> list[CustomerSession]:
        stmt: Select[tuple[CustomerSession]] = select(CustomerSession).where(
            CustomerSession.status == SessionStatus.WAITING
        )
        if department is not None:
            stmt = stmt.where(CustomerSession.department == department)
        stmt = stmt.order_by(CustomerSession.created_at.asc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_operator(self, operator_id: UUID, limit: int = 100) -> list[CustomerSession]:
        stmt: Select[tuple[CustomerSession]] = (
            select(CustomerSession)
            .where(
                or_(
                    and_(
                        CustomerSession.status == SessionStatus.IN_SERVICE,
                        CustomerSession.assigned_operator_id == operator_id,
                    ),
                    and_(
                        CustomerSession.status == SessionStatus.WAITING,
                        or_(
                            CustomerSession.requested_operator_id == operator_id,
                            CustomerSession.supervisor_id == operator_id,
                        ),
                    ),
                )
            )
            .order_by(CustomerSession.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_latest_waiting_for_operator(self, operator_id: UUID) -> CustomerSession | None:
        stmt: Select[tuple[CustomerSession]] = (
            select(CustomerSession)
            .where(
                CustomerSession.status == SessionStatus.WAITING,
                or_(
                    CustomerSession.requested_operator_id == operator_id,
                    CustomerSession.supervisor_id == operator_id,
                ),
            )
            .order_by(CustomerSession.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def metrics(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> QueueMetrics:
        wait_seconds = func.extract(
            "epoch", CustomerSession.assigned_at - CustomerSession.automation_completed_at
        )
        service_seconds = func.extract(
            "epoch", CustomerSession.completed_at - CustomerSession.assigned_at
        )
        stmt = select(
            func.count(CustomerSession.session_id),
            func.count(case((CustomerSession.status.in_(list(ACTIVE_STATUSES)), 1))),
            func.count(case((CustomerSession.status == SessionStatus.COMPLETED, 1))),
            func.count(case((CustomerSession.status == SessionStatus.CANCELLED, 1))),
            func.avg(wait_seconds),
            func.avg(service_seconds),
        )
        if start is not None:
            stmt = stmt.where(CustomerSession.created_at >= start)
        if end is not None:
            stmt = stmt.where(CustomerSession.created_at <= end)

        row = (await self.session.execute(stmt)).one()
        return QueueMetrics(
            total_sessions=int(row[0] or 0),
            active_sessions=int(row[1] or 0),
            completed_sessions=int(row[2] or 0),
            cancelled_sessions=int(row[3] or 0),
            average_wait_seconds=float(row[4] or 0.0),
            average_service_seconds=float(row[5] or 0.0),
        )


class OperatorRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, operator_id: UUID) -> Operator | None:
        return await self.session.get(Operator, operator_id)

    async def list_by_department(
        self,
        department: Department,
        profiles: Collection[OperatorProfile] = (
            OperatorProfile.OPERATOR,
            OperatorProfile.SUPERVISOR,
        ),
    ) -> list[Operator]:
        stmt: Select[tuple[Operator]] = (
            select(Operator)
            .where(
                Operator.department == department,
                Operator.is_active.is_(True),
                Operator.is_listable.is_(True),
                Operator.profile.in_(list(profiles)),
            )
            .order_by(Operator.created_at.asc(), Operator.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_presence(
        self, operator_ids: Collection[UUID]
    ) -> list[tuple[UUID, OperatorPresence, datetime | None]]:
        if not operator_ids:
            return []
        stmt = select(Operator.id, Operator.presence, Operator.last_seen_at).where(
            Operator.id.in_(list(operator_ids))
        )
        result = await self.session.execute(stmt)
        return [(row.id, row.presence, row.last_seen_at) for row in result.all()]


class OperatorChoiceListRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self, session_id: str, department: Department, operator_ids: list[UUID]
    ) -> OperatorChoiceList:
        choice_list = OperatorChoiceList(
            session_id=session_id,
            department=department,
            operator_ids=[str(operator_id) for operator_id in operator_ids],
        )
        self.session.add(choice_list)
        await self.session.flush()
        return choice_list

    async def get(self, list_id: UUID) -> OperatorChoiceList | None:
        return await self.session.get(OperatorChoiceList, list_id)

    async def get_latest_for_session(self, session_id: str) -> OperatorChoiceList | None:
        stmt: Select[tuple[OperatorChoiceList]] = (
            select(OperatorChoiceList)
            .where(OperatorChoiceList.session_id == session_id)
            .order_by(OperatorChoiceList.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


class SessionOutcomeRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, event: CompletionEvent) -> SessionOutcomeRecord:
        record = SessionOutcomeRecord(
            session_id=event.session_id,
            outcome=event.outcome,
            reason=event.reason,
            assigned_operator_id=event.assigned_operator_id,
            supervisor_id=event.supervisor_id,
            resolution_code=event.resolution_code,
            closed_by_kind=event.closed_by.kind if event.closed_by is not None else None,
            closed_by_id=str(event.closed_by.id) if event.closed_by is not None else None,
            started_at=event.started_at,
            ended_at=event.ended_at,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_by_session(self, session_id: str) -> SessionOutcomeRecord | None:
        stmt: Select[tuple[SessionOutcomeRecord]] = (
            select(SessionOutcomeRecord)
            .where(SessionOutcomeRecord.session_id == session_id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
