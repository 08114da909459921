from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from queue_router.domain.enums import Department
from queue_router.infra.db.models import CustomerSession, SessionOutcomeRecord
from queue_router.infra.db.repositories import (
    OperatorRepository,
    QueueMetrics,
    SessionOutcomeRepository,
    SessionRepository,
)
from queue_router.services.errors import InvalidTimeRange, OperatorNotFound, SessionNotFound


class QueueService:
    """Read-only views over waiting lists, operator queues and outcomes."""

    def __init__(
        self,
        session: AsyncSession,
        sessions: SessionRepository | None = None,
        operators: OperatorRepository | None = None,
        outcomes: SessionOutcomeRepository | None = None,
    ) -> None:
        self.session = session
        self.sessions = sessions or SessionRepository(session)
        self.operators = operators or OperatorRepository(session)
        self.outcomes = outcomes or SessionOutcomeRepository(session)

    async def list_waiting(
        self, department: Department | None = None, limit: int = 100
    ) -> list[CustomerSession]:
        return await self.sessions.list_waiting(department=department, limit=limit)

    async def operator_queue(self, operator_id: UUID, limit: int = 100) -> list[CustomerSession]:
        operator = await self.operators.get_by_id(operator_id)
        if operator is None:
            raise OperatorNotFound(operator_id)
        return await self.sessions.list_for_operator(operator_id, limit=limit)

    async def metrics(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> QueueMetrics:
        if start is not None and end is not None and start > end:
            raise InvalidTimeRange(start, end)
        return await self.sessions.metrics(start=start, end=end)

    async def get_outcome(self, session_id: str) -> SessionOutcomeRecord:
        if await self.sessions.get(session_id) is None:
            raise SessionNotFound(session_id)
        outcome = await self.outcomes.get_by_session(session_id)
        if outcome is None:
            raise SessionNotFound(session_id)
        return outcome
