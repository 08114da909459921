from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from queue_router.core.config import EngineConfig
from queue_router.core.db import get_db_session
from queue_router.infra.availability import AvailabilityOracle
from queue_router.infra.directory import OperatorDirectory
from queue_router.services.assignment_service import AssignmentService
from queue_router.services.queue_service import QueueService
from queue_router.services.reaper import SessionReaper
from queue_router.services.session_service import SessionService


def get_engine_config(request: Request) -> EngineConfig:
    return request.app.state.engine_config


def get_operator_directory(request: Request) -> OperatorDirectory:
    return request.app.state.operator_directory


def get_availability_oracle(request: Request) -> AvailabilityOracle:
    return request.app.state.availability_oracle


async def get_session_service(
    session: AsyncSession = Depends(get_db_session),
    directory: OperatorDirectory = Depends(get_operator_directory),
    config: EngineConfig = Depends(get_engine_config),
) -> SessionService:
    return SessionService(session, directory=directory, config=config)


async def get_assignment_service(
    session: AsyncSession = Depends(get_db_session),
    directory: OperatorDirectory = Depends(get_operator_directory),
    oracle: AvailabilityOracle = Depends(get_availability_oracle),
    config: EngineConfig = Depends(get_engine_config),
) -> AssignmentService:
    return AssignmentService(session, directory, oracle, config=config)


async def get_queue_service(
    session: AsyncSession = Depends(get_db_session),
) -> QueueService:
    return QueueService(session)


async def get_session_reaper(
    session: AsyncSession = Depends(get_db_session),
    config: EngineConfig = Depends(get_engine_config),
) -> SessionReaper:
    return SessionReaper(session, config)
