"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from app.dependencies import AppContainer

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Detailed health check response model."""

    dependencies: dict[str, str]
    jurisdictions: list[str]


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Basic health check",
)
async def health_check(container: AppContainer) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns:
        Basic health status
    """
    return HealthResponse(
        status="healthy",
        version=container.settings.app_version,
        environment=container.settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Detailed health check",
)
async def detailed_health_check(container: AppContainer) -> DetailedHealthResponse:
    """
    Detailed health check with store and broker status.

    Returns:
        Detailed health status including dependencies
    """
    results = await container.check_health()

    return DetailedHealthResponse(
        status="healthy" if all(results.values()) else "degraded",
        version=container.settings.app_version,
        environment=container.settings.environment,
        dependencies={name: "healthy" if ok else "unhealthy" for name, ok in results.items()},
        jurisdictions=container.jurisdictions.countries,
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """
    Simple ping endpoint.

    Returns:
        Pong response
    """
    return {"message": "pong"}
