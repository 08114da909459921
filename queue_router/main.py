from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from queue_router.api.router import api_router
from queue_router.core.config import get_settings
from queue_router.core.db import (
    close_engine,
    get_session_factory,
    init_engine,
    initialize_database,
)
from queue_router.core.logging import get_logger, setup_logging
from queue_router.infra.availability import PresenceAvailabilityOracle
from queue_router.infra.directory import SqlOperatorDirectory
from queue_router.services.reaper import ReaperScheduler

settings = get_settings()
settings.validate_deployment_settings()
setup_logging(level=settings.log_level, format=settings.log_format)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = init_engine()
    await initialize_database(engine)
    session_factory = get_session_factory()
    engine_config = settings.engine_config()

    app.state.db_engine = engine
    app.state.engine_config = engine_config
    # Directory and presence reads use their own sessions so a timed-out
    # lookup never leaves the request session mid-query.
    app.state.operator_directory = SqlOperatorDirectory(session_factory)
    app.state.availability_oracle = PresenceAvailabilityOracle(
        session_factory, engine_config.presence_stale_after
    )

    scheduler = ReaperScheduler(session_factory, engine_config)
    app.state.reaper_scheduler = scheduler
    if settings.reaper_enabled:
        await scheduler.start()
    logger.info("service_started", app_env=settings.app_env)

    yield

    await scheduler.stop()
    await close_engine(engine)
    logger.info("service_stopped")


app = FastAPI(
    title="Queue Router API",
    version="0.1.0",
    docs_url="/docs" if settings.app_env != "production" else None,
    redoc_url="/redoc" if settings.app_env != "production" else None,
    lifespan=lifespan,
)

if settings.trusted_hosts:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.trusted_hosts,
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    return response


app.include_router(api_router, prefix="/api")


@app.get("/", tags=["meta"])
async def root() -> dict[str, str]:
    return {"service": "queue-router", "status": "ok"}
