"""
Health Check Routes

System health and status endpoints.
"""

from fastapi import APIRouter
from models.schemas import HealthResponse
from config.settings import settings


router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Reports "degraded" when the Redis-backed telemetry store is configured
    but Redis is unreachable.

    Returns:
        HealthResponse with status and version information
    """
    status = "healthy"
    if settings.TELEMETRY_STORE_BACKEND == "redis":
        from config.database import check_connections
        if not check_connections()["redis"]["connected"]:
            status = "degraded"

    return HealthResponse(
        status=status,
        version=settings.APP_VERSION
    )


@router.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "Competitor-safe recommendations from AI answer-engine telemetry",
        "endpoints": {
            "health": "/health",
            "generate": "/recommendations/{subject_id}/generate",
            "generate_stream": "/recommendations/{subject_id}/generate/stream",
            "latest": "/recommendations/{subject_id}/latest",
            "update_status": "/recommendations/{candidate_id}/status"
        },
        "workflow": {
            "step_1": "POST /recommendations/{subject_id}/generate - Aggregate telemetry, generate, filter, rank and persist",
            "step_2": "PATCH /recommendations/{candidate_id}/status - Approve, complete or reject a recommendation"
        }
    }
