"""
Recommendation Controller

Handles business logic for generating recommendations and updating their status.
"""

import asyncio
import json
import logging
from queue import Empty, Queue
from typing import Any, AsyncGenerator, Dict, Optional

from agents.recommendation_agent import generate_recommendations
from config.settings import settings
from models.schemas import GenerateRecommendationsResponse, GenerationResult
from storage.telemetry_store import TelemetryStore, get_telemetry_store
from utils.cache import get_cached_generation_summary

logger = logging.getLogger(__name__)


def _to_response(result: GenerationResult) -> GenerateRecommendationsResponse:
    return GenerateRecommendationsResponse(
        success=result.success,
        generation_id=result.generation_id,
        maturity=result.maturity,
        message=result.message,
        candidates=result.candidates
    )


async def generate_for_subject(
    subject_id: str,
    store: Optional[TelemetryStore] = None
) -> GenerateRecommendationsResponse:
    """
    Run the recommendation workflow off the event loop.

    Args:
        subject_id: Subject (brand) identifier
        store: Telemetry Store override

    Returns:
        GenerateRecommendationsResponse
    """
    result = await asyncio.to_thread(generate_recommendations, subject_id, store or get_telemetry_store())
    logger.info(f"{'✅' if result.success else '❌'} Generation for {subject_id}: {result.message or 'ok'}")
    return _to_response(result)


async def generate_for_subject_stream(
    subject_id: str,
    store: Optional[TelemetryStore] = None
) -> AsyncGenerator[str, None]:
    """
    Stream workflow progress as JSON events, ending with the result.

    Yields:
        JSON string events with step, status, message, and optional data
    """
    try:
        yield json.dumps({
            "step": "initialize",
            "status": "started",
            "message": f"Starting recommendation generation for {subject_id}",
            "data": None
        })

        event_queue: Queue = Queue()
        result_container: Dict[str, GenerationResult] = {}

        def progress_callback(step, status, message, data):
            event_queue.put({"step": step, "status": status, "message": message, "data": data})

        async def run_workflow():
            try:
                result_container["result"] = await asyncio.to_thread(
                    generate_recommendations,
                    subject_id,
                    store or get_telemetry_store(),
                    None,
                    progress_callback
                )
            finally:
                event_queue.put(None)

        workflow_task = asyncio.create_task(run_workflow())

        while True:
            try:
                event = event_queue.get_nowait()
            except Empty:
                await asyncio.sleep(0.05)
                continue
            if event is None:
                break
            yield json.dumps(event, default=str)

        await workflow_task
        response = _to_response(result_container["result"])

        yield json.dumps({
            "step": "complete",
            "status": "success" if response.success else "failed",
            "message": response.message or "Recommendations generated",
            "data": response.model_dump(mode="json")
        })

    except Exception as e:
        logger.error(f"Recommendation stream failed for {subject_id}: {e}")
        yield json.dumps({
            "step": "error",
            "status": "failed",
            "message": f"Unexpected error: {str(e)}",
            "data": None
        })


def get_latest_generation(subject_id: str, store: Optional[TelemetryStore] = None) -> Optional[Dict[str, Any]]:
    """Return the active generation (with candidates) for a subject, if any."""
    store = store or get_telemetry_store()
    generation = store.get_latest_generation(subject_id)
    if generation is None:
        return None
    if settings.CACHE_GENERATION_SUMMARY:
        summary = get_cached_generation_summary(subject_id)
        if summary:
            generation["summary"] = summary
    return generation


def update_candidate_status(candidate_id: str, status: str, store: Optional[TelemetryStore] = None) -> None:
    """Move a candidate through the review workflow."""
    store = store or get_telemetry_store()
    store.update_candidate_status(candidate_id, status)
    logger.info(f"Candidate {candidate_id} → {status}")
