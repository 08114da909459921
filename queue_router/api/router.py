from fastapi import APIRouter

from queue_router.api.v1.routes import (
    customers,
    health,
    maintenance,
    operators,
    queues,
    sessions,
)

api_router = APIRouter()
api_router.include_router(health.router, prefix="/v1", tags=["health"])
api_router.include_router(sessions.router, prefix="/v1/sessions", tags=["sessions"])
api_router.include_router(customers.router, prefix="/v1/customers", tags=["customers"])
api_router.include_router(operators.router, prefix="/v1/operators", tags=["operators"])
api_router.include_router(queues.router, prefix="/v1/queues", tags=["queues"])
api_router.include_router(
    maintenance.router, prefix="/v1/maintenance", tags=["maintenance"]
)
