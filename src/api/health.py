"""
Health check endpoint for SuperTeacher.

Provides system health status for load balancers and monitoring.
"""

from fastapi import APIRouter, Request

from api.schemas import HealthResponse

VERSION = "1.0.0"

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check endpoint.

    Returns:
        Status, version, the active workflow and the number of known sessions.
    """
    engine = request.app.state.engine
    settings = request.app.state.settings
    store = engine.store
    return HealthResponse(
        status="healthy",
        version=VERSION,
        workflow=engine.workflow.value,
        demo_mode=settings.demo_mode,
        active_sessions=len(store) if hasattr(store, "__len__") else 0,
    )
