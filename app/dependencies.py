"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from app.container import Container
from app.services.intake_service import IntakeService


def get_container(request: Request) -> Container:
    """Container built at startup and attached to the application state."""
    return request.app.state.container


def get_intake_service(
    container: Annotated[Container, Depends(get_container)],
) -> IntakeService:
    """Intake service for the current request."""
    return container.intake_service()


# Type aliases for dependency injection
AppContainer = Annotated[Container, Depends(get_container)]
Intake = Annotated[IntakeService, Depends(get_intake_service)]
