"""
Persistence coordination for generated recommendations.
"""

import logging
from typing import Iterable, List, Optional

from agents.recommendation_agent.models import FILTERED_OUT_MESSAGE, PERSISTENCE_FAILURE_MESSAGE
from config.settings import settings
from models.schemas import ExclusionList, Generation, GenerationResult, RemovedCandidate
from storage.telemetry_store import TelemetryStore, TelemetryStoreError
from utils.competitor_filter import filter_competitor_candidates
from utils.quality_gate import filter_low_quality

logger = logging.getLogger(__name__)


def persist_generation(
    store: TelemetryStore,
    generation: Generation,
    exclusion_list: ExclusionList,
    allowed_sources: Optional[Iterable[str]] = None
) -> GenerationResult:
    """
    Re-check a generation's candidates and write them to the store.

    Safety and quality filters run again immediately before writing.

    Args:
        store: Telemetry Store to write to
        generation: Generation with ranked candidates
        exclusion_list: Exclusion list for this run
        allowed_sources: Domains a citation source may use

    Returns:
        GenerationResult; success is False when every candidate is filtered
        out or a write fails
    """
    removed: List[RemovedCandidate] = []

    safety = filter_competitor_candidates(
        generation.candidates,
        exclusion_list,
        allow_text_mentions=settings.RECS_ALLOW_TEXT_MENTIONS,
        allowed_sources=allowed_sources,
        stage="pre_persist_safety"
    )
    candidates = safety.kept
    removed.extend(safety.removed)

    if settings.RECS_QUALITY_CONTRACT:
        quality = filter_low_quality(candidates, stage="pre_persist_quality")
        candidates = quality.kept
        removed.extend(quality.removed)

    if not candidates:
        logger.error(f"❌ {FILTERED_OUT_MESSAGE}")
        return GenerationResult(
            success=False,
            maturity=generation.maturity,
            strategy=generation.strategy,
            backend=generation.backend,
            message=FILTERED_OUT_MESSAGE,
            removed=removed
        )

    generation.candidates = candidates

    try:
        generation_id = store.insert_generation(generation)
    except TelemetryStoreError as e:
        logger.error(f"❌ Failed to insert generation: {e}")
        return _persistence_failure(generation, removed, e)

    # The previous generation stays active until this one is fully written
    try:
        candidate_ids = store.insert_candidates(generation_id, candidates)
        store.activate_generation(generation_id)
    except TelemetryStoreError as e:
        logger.error(f"❌ Failed to write candidates for generation {generation_id}: {e}")
        try:
            store.update_generation_status(generation_id, "failed")
        except TelemetryStoreError as status_error:
            logger.error(f"Could not mark generation {generation_id} as failed: {status_error}")
        return _persistence_failure(generation, removed, e)

    generation.id = generation_id
    generation.status = "completed"
    for candidate, candidate_id in zip(candidates, candidate_ids):
        candidate.id = candidate_id

    logger.info(f"💾 Persisted generation {generation_id} with {len(candidates)} candidates")

    return GenerationResult(
        success=True,
        generation_id=generation_id,
        maturity=generation.maturity,
        candidates=candidates,
        strategy=generation.strategy,
        backend=generation.backend,
        removed=removed
    )


def _persistence_failure(
    generation: Generation,
    removed: List[RemovedCandidate],
    error: Exception
) -> GenerationResult:
    return GenerationResult(
        success=False,
        maturity=generation.maturity,
        strategy=generation.strategy,
        backend=generation.backend,
        message=PERSISTENCE_FAILURE_MESSAGE.format(error=str(error)),
        removed=removed,
        errors=[str(error)]
    )
