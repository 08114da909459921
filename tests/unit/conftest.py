from dataclasses import dataclass

import pytest
from fakes import (
    DummySession,
    FakeChoiceListRepository,
    FakeDirectory,
    FakeHistoryRecorder,
    FakeOracle,
    FakeSessionRepository,
)

from queue_router.core.config import EngineConfig
from queue_router.services.assignment_service import AssignmentService
from queue_router.services.session_service import SessionService


@dataclass(slots=True)
class EngineFixture:
    session: DummySession
    sessions: FakeSessionRepository
    choice_lists: FakeChoiceListRepository
    history: FakeHistoryRecorder
    directory: FakeDirectory
    oracle: FakeOracle
    config: EngineConfig
    session_service: SessionService
    assignment_service: AssignmentService


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(dependency_timeout_seconds=0.05)


@pytest.fixture
def engine(engine_config: EngineConfig) -> EngineFixture:
    session = DummySession()
    sessions = FakeSessionRepository()
    choice_lists = FakeChoiceListRepository()
    history = FakeHistoryRecorder()
    directory = FakeDirectory()
    oracle = FakeOracle()

    session_service = SessionService(
        session,  # type: ignore[arg-type]
        sessions=sessions,  # type: ignore[arg-type]
        history=history,
        directory=directory,
        config=engine_config,
    )
    assignment_service = AssignmentService(
        session,  # type: ignore[arg-type]
        directory,
        oracle,
        config=engine_config,
        sessions=sessions,  # type: ignore[arg-type]
        choice_lists=choice_lists,  # type: ignore[arg-type]
    )
    return EngineFixture(
        session=session,
        sessions=sessions,
        choice_lists=choice_lists,
        history=history,
        directory=directory,
        oracle=oracle,
        config=engine_config,
        session_service=session_service,
        assignment_service=assignment_service,
    )
