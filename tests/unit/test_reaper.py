import asyncio
from datetime import timedelta

import pytest
from fakes import (
    BASE_TIME,
    DummySession,
    FakeHistoryRecorder,
    FakeSessionRepository,
    make_session,
)

from queue_router.core.config import EngineConfig
from queue_router.domain.enums import CancellationReason, SessionOutcome, SessionStatus
from queue_router.services import reaper as reaper_module
from queue_router.services.reaper import ReaperScheduler, SessionReaper

NOW = BASE_TIME + timedelta(hours=1)


def _build_reaper(page_size: int = 100) -> tuple[SessionReaper, FakeSessionRepository, FakeHistoryRecorder, DummySession]:
    session = DummySession()
    sessions = FakeSessionRepository()
    history = FakeHistoryRecorder()
    reaper = SessionReaper(
        session,  # type: ignore[arg-type]
        config=EngineConfig(inactivity_timeout=timedelta(minutes=15), reap_page_size=page_size),
        sessions=sessions,  # type: ignore[arg-type]
        history=history,
    )
    return reaper, sessions, history, session


@pytest.mark.asyncio
async def test_stale_automated_sessions_are_cancelled() -> None:
    reaper, sessions, history, _ = _build_reaper()
    sessions.add(
        make_session(
            "stale",
            status=SessionStatus.AUTOMATED,
            department=None,
            created_at=NOW - timedelta(minutes=30),
        )
    )
    sessions.add(
        make_session(
            "fresh",
            status=SessionStatus.AUTOMATED,
            department=None,
            created_at=NOW - timedelta(minutes=5),
        )
    )

    reaped = await reaper.reap_once(now=NOW)

    assert reaped == 1
    stale = sessions.sessions["stale"]
    assert stale.status == SessionStatus.CANCELLED
    assert stale.cancellation_reason == CancellationReason.TIMEOUT
    assert stale.cancelled_at == NOW
    assert sessions.sessions["fresh"].status == SessionStatus.AUTOMATED
    assert [event.session_id for event in history.events] == ["stale"]
    assert history.events[0].outcome == SessionOutcome.CANCELLED
    assert history.events[0].reason == CancellationReason.TIMEOUT.value


@pytest.mark.asyncio
async def test_progressed_sessions_are_never_reaped() -> None:
    reaper, sessions, history, _ = _build_reaper()
    old = NOW - timedelta(hours=2)
    for session_id, status in (
        ("waiting", SessionStatus.WAITING),
        ("served", SessionStatus.IN_SERVICE),
        ("done", SessionStatus.COMPLETED),
    ):
        sessions.add(make_session(session_id, status=status, created_at=old))

    assert await reaper.reap_once(now=NOW) == 0
    assert history.events == []
    assert sessions.sessions["waiting"].status == SessionStatus.WAITING


@pytest.mark.asyncio
async def test_session_progressing_mid_sweep_is_skipped() -> None:
    reaper, sessions, history, _ = _build_reaper()
    sessions.add(
        make_session(
            "racing",
            status=SessionStatus.AUTOMATED,
            department=None,
            created_at=NOW - timedelta(hours=1),
        )
    )
    original_transition = sessions.transition

    async def progress_first(session_id, expected, values, **kwargs):
        # The automated flow finishes between the scan and the cancel.
        sessions.sessions[session_id].status = SessionStatus.WAITING
        return await original_transition(session_id, expected, values, **kwargs)

    sessions.transition = progress_first  # type: ignore[method-assign]

    assert await reaper.reap_once(now=NOW) == 0
    assert sessions.sessions["racing"].status == SessionStatus.WAITING
    assert history.events == []


@pytest.mark.asyncio
async def test_sweep_pages_through_all_candidates() -> None:
    reaper, sessions, history, session = _build_reaper(page_size=2)
    for index in range(5):
        sessions.add(
            make_session(
                f"stale-{index}",
                status=SessionStatus.AUTOMATED,
                department=None,
                created_at=NOW - timedelta(hours=2, minutes=index),
            )
        )

    reaped = await reaper.reap_once(now=NOW)

    assert reaped == 5
    assert len(history.events) == 5
    # One commit per page: 2 + 2 + 1.
    assert session.commits == 3


@pytest.mark.asyncio
async def test_second_sweep_finds_nothing() -> None:
    reaper, sessions, _, _ = _build_reaper()
    sessions.add(
        make_session(
            "stale",
            status=SessionStatus.AUTOMATED,
            created_at=NOW - timedelta(hours=1),
        )
    )

    assert await reaper.reap_once(now=NOW) == 1
    assert await reaper.reap_once(now=NOW) == 0


@pytest.mark.asyncio
async def test_scheduler_start_and_stop_are_idempotent() -> None:
    scheduler = ReaperScheduler(
        None,  # type: ignore[arg-type]
        EngineConfig(reap_interval_seconds=60),
    )
    scheduler.run_once = _count_runs(scheduler)  # type: ignore[method-assign]

    await scheduler.start()
    await scheduler.start()
    await asyncio.sleep(0)
    assert scheduler.is_running
    await scheduler.stop()
    await scheduler.stop()
    assert not scheduler.is_running
    assert scheduler.run_once.calls == 1  # type: ignore[attr-defined]


def _count_runs(scheduler: ReaperScheduler):
    async def run_once() -> int:
        run_once.calls += 1  # type: ignore[attr-defined]
        return 0

    run_once.calls = 0  # type: ignore[attr-defined]
    return run_once


class RecordingLogger:
    def __init__(self) -> None:
        self.exceptions: list[str] = []

    def exception(self, event: str, **_: object) -> None:
        self.exceptions.append(event)

    def info(self, *_: object, **__: object) -> None:
        return None

    def warning(self, *_: object, **__: object) -> None:
        return None


@pytest.mark.asyncio
async def test_failed_sweep_is_logged_and_polling_continues(monkeypatch) -> None:
    recorder = RecordingLogger()
    monkeypatch.setattr(reaper_module, "logger", recorder)
    scheduler = ReaperScheduler(
        None,  # type: ignore[arg-type]
        EngineConfig(reap_interval_seconds=0.01),
    )
    attempts = 0

    async def run_once() -> int:
        nonlocal attempts
        attempts += 1
        raise RuntimeError("database unavailable")

    scheduler.run_once = run_once  # type: ignore[method-assign]

    await scheduler.start()
    await asyncio.sleep(0.05)
    assert scheduler.is_running
    await scheduler.stop()

    assert attempts >= 2
    assert recorder.exceptions[:2] == ["reaper_sweep_failed", "reaper_sweep_failed"]
