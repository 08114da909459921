from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from queue_router.domain.events import CompletionEvent
from queue_router.infra.db.repositories import SessionOutcomeRepository


class HistoryRecorder(Protocol):
    async def record(self, event: CompletionEvent) -> None: ...


class SqlHistoryRecorder:
    """Writes completion events into the caller's transaction.

    The unique session_id constraint on session_outcomes rejects a second
    event for the same session, so a terminal transition is recorded once.
    """

    def __init__(
        self,
        session: AsyncSession,
        outcomes: SessionOutcomeRepository | None = None,
    ) -> None:
        self.session = session
        self.outcomes = outcomes or SessionOutcomeRepository(session)

    async def record(self, event: CompletionEvent) -> None:
        await self.outcomes.create(event)
