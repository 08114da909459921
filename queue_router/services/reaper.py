import asyncio
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from queue_router.core.config import EngineConfig
from queue_router.core.logging import get_logger
from queue_router.domain.enums import CancellationReason, SessionStatus, TransitionAction
from queue_router.domain.events import CompletionEvent
from queue_router.domain.state_machine import SessionLifecycle
from queue_router.infra.db.repositories import SessionRepository
from queue_router.infra.history import HistoryRecorder, SqlHistoryRecorder

logger = get_logger(__name__)


class SessionReaper:
    """Cancels automated sessions abandoned before the automated flow finished.

    Scans in keyset pages ordered by (created_at, session_id) and commits once
    per page. Each cancellation is a compare-and-set on ``automated``, so a
    session that progressed after the scan read it is skipped, and a sweep
    running alongside another one never cancels the same session twice.
    """

    def __init__(
        self,
        session: AsyncSession,
        config: EngineConfig | None = None,
        sessions: SessionRepository | None = None,
        history: HistoryRecorder | None = None,
    ) -> None:
        self.session = session
        self.config = config or EngineConfig()
        self.sessions = sessions or SessionRepository(session)
        self.history = history or SqlHistoryRecorder(session)

    async def reap_once(self, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        cutoff = now - self.config.inactivity_timeout
        page_size = self.config.reap_page_size
        expected = SessionLifecycle.sources(TransitionAction.EXPIRE)
        next_status = SessionLifecycle.transition(
            SessionStatus.AUTOMATED, TransitionAction.EXPIRE
        )

        reaped = 0
        skipped = 0
        after: tuple[datetime, str] | None = None
        while True:
            page = await self.sessions.list_expired_automated(cutoff, page_size, after)
            if not page:
                break
            after = (page[-1].created_at, page[-1].session_id)

            for candidate in page:
                updated = await self.sessions.transition(
                    candidate.session_id,
                    expected,
                    {
                        "status": next_status,
                        "cancelled_at": now,
                        "cancellation_reason": CancellationReason.TIMEOUT,
                    },
                )
                if updated is None:
                    skipped += 1
                    continue

                await self.history.record(
                    CompletionEvent.from_session(
                        updated, reason=CancellationReason.TIMEOUT.value
                    )
                )
                reaped += 1

            await self.session.commit()
            if len(page) < page_size:
                break

        logger.info(
            "reaper_sweep_completed",
            reaped=reaped,
            skipped=skipped,
            cutoff=cutoff.isoformat(),
        )
        return reaped


class ReaperScheduler:
    """Runs SessionReaper.reap_once on a fixed interval in the background."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: EngineConfig,
    ) -> None:
        self._session_factory = session_factory
        self._config = config
        self._running = False
        self._poll_task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("reaper_already_running")
            return

        self._running = True
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(
            "reaper_started",
            interval_seconds=self._config.reap_interval_seconds,
            inactivity_timeout_seconds=self._config.inactivity_timeout.total_seconds(),
        )

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        logger.info("reaper_stopped")

    async def run_once(self) -> int:
        async with self._session_factory() as session:
            return await SessionReaper(session, self._config).reap_once()

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception:
                logger.exception("reaper_sweep_failed")

            await asyncio.sleep(self._config.reap_interval_seconds)
