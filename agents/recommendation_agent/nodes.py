"""
Node functions for the recommendation LangGraph workflow.
"""

import logging

from agents.recommendation_agent.aggregator import gather_snapshot
from agents.recommendation_agent.backends import (
    GenerationRequest,
    build_backend_chain,
    generate_with_fallback,
)
from agents.recommendation_agent.models import (
    CONTEXT_FAILURE_MESSAGE,
    FILTERED_OUT_MESSAGE,
    NO_CANDIDATES_MESSAGE,
    NO_OUTPUT_MESSAGE,
    RecommendationState,
)
from agents.recommendation_agent.persistence import persist_generation
from agents.recommendation_agent.prompts import (
    COLD_START_SYSTEM_MESSAGE,
    DIRECT_SYSTEM_MESSAGE,
    build_cold_start_prompt,
    build_direct_prompt,
)
from agents.recommendation_agent.utils import attach_source_metrics, sanitize_personalized
from config.settings import settings
from models.schemas import Generation
from utils.cold_start_templates import generate_cold_start_templates
from utils.competitor_filter import filter_competitor_candidates
from utils.domain_audit import generate_domain_audit_candidates
from utils.helpers import truncate_text
from utils.json_recovery import coerce_candidates, recover_records
from utils.maturity import classify_maturity
from utils.quality_gate import filter_low_quality
from utils.ranking import rank_candidates

logger = logging.getLogger(__name__)

PERSONALIZED_DEFAULT_CONFIDENCE = 55


def _fail(state: RecommendationState, message: str) -> RecommendationState:
    logger.error(f"❌ {message}")
    state["errors"].append(message)
    state["message"] = message
    state["success"] = False
    state["failed"] = True
    return state


def _get_backends(state: RecommendationState):
    if state.get("backends"):
        return state["backends"]
    snapshot = state["snapshot"]
    backends = build_backend_chain(snapshot.preferred_backend if snapshot else None)
    state["backends"] = backends
    return backends


def gather_context(state: RecommendationState) -> RecommendationState:
    """Node: Aggregate telemetry into a snapshot and build the exclusion list."""
    logger.info(f"📥 Gathering brand context for {state['subject_id']}...")

    try:
        snapshot, exclusion_list = gather_snapshot(state["store"], state["subject_id"])
    except Exception as e:
        return _fail(state, CONTEXT_FAILURE_MESSAGE.format(error=str(e)))

    state["snapshot"] = snapshot
    state["exclusion_list"] = exclusion_list
    return state


def classify_subject_maturity(state: RecommendationState) -> RecommendationState:
    """Node: Classify data maturity and pick the generation strategy."""
    snapshot = state["snapshot"]
    maturity = classify_maturity(snapshot)

    if maturity == "cold_start" and settings.RECS_COLD_START_MODE:
        strategy = "cold_start_templates"
    else:
        strategy = "direct"

    state["maturity"] = maturity
    state["strategy"] = strategy
    state["audit_candidates"] = generate_domain_audit_candidates(snapshot.domain_audit, snapshot.visibility)

    logger.info(
        f"📊 Maturity: {maturity} → strategy: {strategy} "
        f"({len(state['audit_candidates'])} domain audit candidates)"
    )
    return state


def generate_candidates(state: RecommendationState) -> RecommendationState:
    """Node: Generate raw output (direct) or template candidates (cold start)."""
    if state["strategy"] == "direct":
        return _generate_direct(state)
    return _generate_cold_start(state)


def _generate_direct(state: RecommendationState) -> RecommendationState:
    snapshot = state["snapshot"]
    logger.info(f"🎯 Generating recommendations for {snapshot.subject_name}...")

    request = GenerationRequest(
        system_instruction=DIRECT_SYSTEM_MESSAGE,
        prompt=build_direct_prompt(snapshot, state["maturity"]),
        max_output_tokens=settings.RECOMMENDATION_MAX_TOKENS,
        temperature=settings.RECOMMENDATION_TEMPERATURE,
        require_json=True,
        weight="heavy"
    )
    output = generate_with_fallback(_get_backends(state), request, state["errors"])
    state["output"] = output

    if output is None:
        if state["audit_candidates"]:
            logger.warning("⚠️  No generation output; continuing with domain audit candidates only")
            return state
        return _fail(state, NO_OUTPUT_MESSAGE)

    logger.info(f"✓ Output from {output.backend} (tier {output.tier}): {truncate_text(output.text, 120)}")
    return state


def _generate_cold_start(state: RecommendationState) -> RecommendationState:
    snapshot = state["snapshot"]
    templates = generate_cold_start_templates(snapshot.subject_name, snapshot.industry)

    if not settings.RECS_COLD_START_PERSONALIZE:
        state["candidates"] = templates
        return state

    logger.info(f"🧊 Personalizing {len(templates)} cold-start templates...")
    request = GenerationRequest(
        system_instruction=COLD_START_SYSTEM_MESSAGE,
        prompt=build_cold_start_prompt(snapshot, templates),
        max_output_tokens=settings.PERSONALIZATION_MAX_TOKENS,
        temperature=settings.RECOMMENDATION_TEMPERATURE,
        require_json=True,
        weight="light"
    )
    output = generate_with_fallback(_get_backends(state), request, state["errors"])

    personalized = []
    if output is not None:
        recovery = recover_records(output.text)
        personalized = sanitize_personalized(
            coerce_candidates(
                recovery.records,
                source="cold_start_template",
                default_confidence=PERSONALIZED_DEFAULT_CONFIDENCE
            ),
            templates
        )
        usable = _usable_personalized(state, personalized)
        if personalized and not usable:
            logger.warning(f"⚠️  All {len(personalized)} personalized candidates failed safety or quality checks")
        personalized = usable

    if personalized:
        logger.info(f"✓ Personalized {len(personalized)} cold-start candidates via {output.backend}")
        state["output"] = output
        state["strategy"] = "cold_start_personalized"
        state["candidates"] = personalized
    else:
        logger.warning("⚠️  Personalization unavailable; using cold-start templates as-is")
        state["candidates"] = templates

    return state


def _usable_personalized(state: RecommendationState, candidates):
    """Personalized candidates that would survive post-processing."""
    kept = filter_competitor_candidates(
        candidates,
        state["exclusion_list"],
        allow_text_mentions=settings.RECS_ALLOW_TEXT_MENTIONS,
        allowed_sources=state["snapshot"].source_domains,
        stage="personalization_safety"
    ).kept
    if settings.RECS_QUALITY_CONTRACT:
        kept = filter_low_quality(kept, stage="personalization_quality").kept
    return kept


def parse_candidates(state: RecommendationState) -> RecommendationState:
    """Node: Recover structured records from raw output and coerce them to candidates."""
    output = state.get("output")
    candidates = []

    if output is not None:
        recovery = recover_records(output.text)
        if recovery.recovered:
            logger.info(f"🔧 Recovered {len(recovery.records)} records (strategy: {recovery.strategy})")
            candidates = coerce_candidates(recovery.records, source="llm")
        else:
            state["errors"].append(f"Unparseable output from {output.backend}")
            logger.warning(f"⚠️  Could not recover records from: {truncate_text(output.text, 200)}")

    if not candidates and not state["audit_candidates"]:
        return _fail(state, NO_CANDIDATES_MESSAGE)

    state["candidates"] = candidates
    return state


def post_process(state: RecommendationState) -> RecommendationState:
    """Node: Merge, attach metrics, then apply safety, quality and ranking."""
    snapshot = state["snapshot"]

    # Technical fixes first, then strategic recommendations
    candidates = list(state["audit_candidates"]) + list(state["candidates"])
    attach_source_metrics(candidates, snapshot)
    logger.info(f"🧹 Post-processing {len(candidates)} candidates...")

    safety = filter_competitor_candidates(
        candidates,
        state["exclusion_list"],
        allow_text_mentions=settings.RECS_ALLOW_TEXT_MENTIONS,
        allowed_sources=snapshot.source_domains
    )
    candidates = safety.kept
    state["removed"].extend(safety.removed)

    if settings.RECS_QUALITY_CONTRACT:
        quality = filter_low_quality(candidates)
        candidates = quality.kept
        state["removed"].extend(quality.removed)
    else:
        logger.info("⏭️  Quality contract disabled")

    if not candidates:
        state["candidates"] = []
        return _fail(state, FILTERED_OUT_MESSAGE)

    if settings.RECS_DETERMINISTIC_RANKING:
        candidates = rank_candidates(candidates, snapshot.trends)
    else:
        logger.info("⏭️  Deterministic ranking disabled")

    state["candidates"] = candidates
    logger.info(f"✓ {len(candidates)} candidates after post-processing ({len(state['removed'])} removed)")
    return state


def persist(state: RecommendationState) -> RecommendationState:
    """Node: Persist the generation and its candidates."""
    snapshot = state["snapshot"]
    output = state.get("output")

    generation = Generation(
        subject_id=state["subject_id"],
        maturity=state["maturity"],
        strategy=state["strategy"],
        backend=output.backend if output else None,
        tier=output.tier if output else None,
        candidates=state["candidates"]
    )

    result = persist_generation(
        state["store"],
        generation,
        state["exclusion_list"],
        allowed_sources=snapshot.source_domains
    )
    state["removed"].extend(result.removed)

    if not result.success:
        state["candidates"] = []
        return _fail(state, result.message)

    state["generation_id"] = result.generation_id
    state["candidates"] = result.candidates
    state["success"] = True
    return state


def finalize(state: RecommendationState) -> RecommendationState:
    """Node: Finalize and mark as completed."""
    if state.get("success"):
        logger.info(
            f"✅ Recommendation workflow complete: {len(state['candidates'])} candidates "
            f"(generation {state['generation_id']})"
        )
    else:
        logger.warning(f"⚠️  Recommendation workflow finished without a generation: {state.get('message')}")
    state["completed"] = True
    return state
