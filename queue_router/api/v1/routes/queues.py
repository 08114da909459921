from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from queue_router.api.deps import get_queue_service
from queue_router.api.v1.errors import SERVICE_ERRORS, raise_for_service_error
from queue_router.domain.enums import Department
from queue_router.schemas.queue import QueueMetricsResponse, SessionListResponse
from queue_router.schemas.session import SessionResponse
from queue_router.services.queue_service import QueueService

router = APIRouter()


@router.get("/waiting", response_model=SessionListResponse)
async def list_waiting_sessions(
    department: Department | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    service: QueueService = Depends(get_queue_service),
) -> SessionListResponse:
    sessions = await service.list_waiting(department=department, limit=limit)
    return SessionListResponse(
        items=[SessionResponse.model_validate(item) for item in sessions]
    )


@router.get("/operators/{operator_id}", response_model=SessionListResponse)
async def get_operator_queue(
    operator_id: UUID,
    limit: int = Query(default=100, ge=1, le=500),
    service: QueueService = Depends(get_queue_service),
) -> SessionListResponse:
    try:
        sessions = await service.operator_queue(operator_id, limit=limit)
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return SessionListResponse(
        items=[SessionResponse.model_validate(item) for item in sessions]
    )


@router.get("/metrics", response_model=QueueMetricsResponse)
async def get_queue_metrics(
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    service: QueueService = Depends(get_queue_service),
) -> QueueMetricsResponse:
    try:
        metrics = await service.metrics(start=start, end=end)
    except SERVICE_ERRORS as exc:
        raise_for_service_error(exc)
    return QueueMetricsResponse.model_validate(metrics)
