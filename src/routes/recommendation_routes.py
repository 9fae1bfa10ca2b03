"""
Recommendation Routes

Endpoints for generating recommendations and managing their review status.
"""

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from models.schemas import CandidateStatusUpdate, GenerateRecommendationsResponse
from src.controllers import recommendation_controller
from storage.telemetry_store import PersistenceError, TelemetryStoreError


router = APIRouter(prefix="/recommendations", tags=["Recommendations"])


async def _stream_events(subject_id: str):
    """Format events as Server-Sent Events."""
    async for event_json in recommendation_controller.generate_for_subject_stream(subject_id):
        yield f"data: {event_json}\n\n"


@router.post("/{subject_id}/generate", response_model=GenerateRecommendationsResponse)
async def generate(subject_id: str) -> GenerateRecommendationsResponse:
    """
    Generate, filter, rank and persist recommendations for a brand.

    Failures inside the pipeline (no telemetry, no backend output, everything
    filtered out) return success=false with a message rather than an error status.

    Example:
        POST /recommendations/brand-123/generate
    """
    return await recommendation_controller.generate_for_subject(subject_id)


@router.post("/{subject_id}/generate/stream")
async def generate_stream(subject_id: str):
    """
    Generate recommendations with Server-Sent Events progress updates.

    Example:
        POST /recommendations/brand-123/generate/stream
    """
    return StreamingResponse(
        _stream_events(subject_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no"
        }
    )


@router.get("/{subject_id}/latest")
async def latest(subject_id: str):
    """Return the active generation for a brand."""
    try:
        generation = recommendation_controller.get_latest_generation(subject_id)
    except TelemetryStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))

    if generation is None:
        raise HTTPException(status_code=404, detail=f"No active generation for {subject_id}")
    return generation


@router.patch("/{candidate_id}/status")
async def update_status(candidate_id: str, request: CandidateStatusUpdate):
    """
    Update a recommendation's workflow status.

    Example:
        PATCH /recommendations/3f2b.../status
        {"status": "approved"}
    """
    try:
        recommendation_controller.update_candidate_status(candidate_id, request.status)
    except PersistenceError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {"id": candidate_id, "status": request.status}
