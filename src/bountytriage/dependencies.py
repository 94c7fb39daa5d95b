"""FastAPI dependency injection providers."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request


async def get_db(request: Request) -> AsyncGenerator:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_queue(request: Request):
    """Return the triage queue from app state."""
    return request.app.state.triage_queue


def get_triage_service(request: Request):
    return request.app.state.triage_service


def get_dispatcher(request: Request):
    return request.app.state.triage_dispatcher


def get_cve_service(request: Request):
    return request.app.state.cve_service


def get_repository_service(request: Request):
    return request.app.state.repository_service


# Type aliases for dependency injection
DBSession = Annotated[object, Depends(get_db)]
Queue = Annotated[object, Depends(get_queue)]
TriageSvc = Annotated[object, Depends(get_triage_service)]
Dispatcher = Annotated[object, Depends(get_dispatcher)]
CVESvc = Annotated[object, Depends(get_cve_service)]
RepositorySvc = Annotated[object, Depends(get_repository_service)]
