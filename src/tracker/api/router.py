"""Root API router with health endpoints and module mounting."""

from fastapi import APIRouter
from pydantic import BaseModel

from tracker.core.auth.routes import api_keys_router, external_router
from tracker.core.auth.routes import router as auth_router
from tracker.modules import discover_modules
from tracker.modules.workitems.routes import external_router as external_tickets_router


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str


api_router = APIRouter()

# Health check endpoints (no /api/v1 prefix)
health_router = APIRouter(tags=["health"])


@health_router.get(
    "/health/live",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Returns 200 if the process is running.",
)
async def liveness() -> HealthResponse:
    """Liveness check endpoint."""
    return HealthResponse(status="alive")


v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(auth_router)
v1_router.include_router(api_keys_router)
v1_router.include_router(external_router)
v1_router.include_router(external_tickets_router)

for module_router in discover_modules():
    v1_router.include_router(module_router)

api_router.include_router(health_router)
api_router.include_router(v1_router)
