"""Health check endpoint for monitoring service status."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from adminws.dependencies import RegistryDep

router = APIRouter()


class WebSocketHealth(BaseModel):
    identities: int
    connections: int


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    websocket: WebSocketHealth


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check endpoint",
    tags=["health"],
)
async def health_check(registry: RegistryDep) -> HealthResponse:
    """
    Report service status together with live WebSocket counts.

    The service has no external dependency of its own, so it is healthy
    whenever it can answer.
    """
    return HealthResponse(
        status="healthy",
        websocket=WebSocketHealth(
            identities=len(await registry.enumerate_identities()),
            connections=await registry.total_connections(),
        ),
    )
