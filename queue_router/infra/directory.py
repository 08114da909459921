from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from queue_router.domain.enums import Department
from queue_router.domain.routing import OperatorRecord
from queue_router.infra.db.models import Operator
from queue_router.infra.db.repositories import OperatorRepository


class OperatorDirectory(Protocol):
    async def list_eligible(self, department: Department) -> list[OperatorRecord]: ...

    async def get(self, operator_id: UUID) -> OperatorRecord | None: ...


def to_operator_record(operator: Operator) -> OperatorRecord:
    return OperatorRecord(
        id=operator.id,
        display_name=operator.display_name,
        department=operator.department,
        profile=operator.profile,
        is_active=operator.is_active,
        is_listable=operator.is_listable,
        created_at=operator.created_at,
    )


class SqlOperatorDirectory:
    """Reads the externally owned operators table through its own short sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def list_eligible(self, department: Department) -> list[OperatorRecord]:
        async with self.session_factory() as session:
            operators = await OperatorRepository(session).list_by_department(department)
            return [to_operator_record(operator) for operator in operators]

    async def get(self, operator_id: UUID) -> OperatorRecord | None:
        async with self.session_factory() as session:
            operator = await OperatorRepository(session).get_by_id(operator_id)
            if operator is None:
                return None
            return to_operator_record(operator)
