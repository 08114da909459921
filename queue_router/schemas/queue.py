from pydantic import BaseModel, ConfigDict

from queue_router.schemas.session import SessionResponse


class SessionListResponse(BaseModel):
    items: list[SessionResponse]


class QueueMetricsResponse(BaseModel):
    total_sessions: int
    active_sessions: int
    completed_sessions: int
    cancelled_sessions: int
    average_wait_seconds: float
    average_service_seconds: float

    model_config = ConfigDict(from_attributes=True)


class ReapResponse(BaseModel):
    reaped: int
