"""
LangGraph workflow definition for recommendation generation.
"""

import logging
from typing import List, Optional

from langgraph.graph import StateGraph, START, END

from agents.recommendation_agent.backends import GenerationBackend
from agents.recommendation_agent.models import ProgressCallback, RecommendationState
from agents.recommendation_agent.nodes import (
    gather_context,
    classify_subject_maturity,
    generate_candidates,
    parse_candidates,
    post_process,
    persist,
    finalize
)
from config.settings import settings
from models.schemas import GenerationResult
from storage.telemetry_store import TelemetryStore, get_telemetry_store
from utils.cache import cache_generation_summary, schedule_background

logger = logging.getLogger(__name__)

# Singleton graph instance
_graph = None


def should_continue(next_node: str):
    """Build a conditional edge that short-circuits to finalize on failure."""
    def route(state: RecommendationState) -> str:
        if state.get("failed", False):
            return "finalize"
        return next_node
    return route


def route_after_generation(state: RecommendationState) -> str:
    """Conditional edge: Only direct output needs parsing."""
    if state.get("failed", False):
        return "finalize"
    if state.get("strategy") == "direct":
        return "parse_candidates"
    return "post_process"


def create_recommendation_graph():
    """Create the LangGraph workflow for recommendation generation."""
    workflow = StateGraph(RecommendationState)

    # Add nodes
    workflow.add_node("gather_context", gather_context)
    workflow.add_node("classify_maturity", classify_subject_maturity)
    workflow.add_node("generate_candidates", generate_candidates)
    workflow.add_node("parse_candidates", parse_candidates)
    workflow.add_node("post_process", post_process)
    workflow.add_node("persist", persist)
    workflow.add_node("finalize", finalize)

    # Define edges (workflow)
    workflow.add_edge(START, "gather_context")

    workflow.add_conditional_edges(
        "gather_context",
        should_continue("classify_maturity"),
        {
            "classify_maturity": "classify_maturity",
            "finalize": "finalize"
        }
    )

    workflow.add_edge("classify_maturity", "generate_candidates")

    workflow.add_conditional_edges(
        "generate_candidates",
        route_after_generation,
        {
            "parse_candidates": "parse_candidates",
            "post_process": "post_process",
            "finalize": "finalize"
        }
    )

    workflow.add_conditional_edges(
        "parse_candidates",
        should_continue("post_process"),
        {
            "post_process": "post_process",
            "finalize": "finalize"
        }
    )

    workflow.add_conditional_edges(
        "post_process",
        should_continue("persist"),
        {
            "persist": "persist",
            "finalize": "finalize"
        }
    )

    workflow.add_edge("persist", "finalize")
    workflow.add_edge("finalize", END)

    return workflow.compile()


def get_recommendation_graph():
    """Get or create the recommendation graph."""
    global _graph
    if _graph is None:
        _graph = create_recommendation_graph()
    return _graph


def run_recommendation_workflow(
    subject_id: str,
    store: Optional[TelemetryStore] = None,
    backends: Optional[List[GenerationBackend]] = None,
    progress_callback: Optional[ProgressCallback] = None
) -> RecommendationState:
    """
    Run the recommendation workflow with optional progress streaming.

    Args:
        subject_id: Subject (brand) identifier
        store: Telemetry Store (default: configured store singleton)
        backends: Ordered generation backends (default: configured chain)
        progress_callback: Optional callback function(step, status, message, data) for progress updates

    Returns:
        Final workflow state
    """
    graph = get_recommendation_graph()

    initial_state = {
        "subject_id": subject_id,
        "store": store or get_telemetry_store(),
        "backends": backends,
        "snapshot": None,
        "exclusion_list": None,
        "maturity": None,
        "strategy": None,
        "output": None,
        "audit_candidates": [],
        "candidates": [],
        "removed": [],
        "generation_id": None,
        "success": False,
        "message": None,
        "errors": [],
        "failed": False,
        "completed": False
    }

    state = initial_state
    for step_output in graph.stream(initial_state):
        node_name = list(step_output.keys())[0]
        state = step_output[node_name]

        if progress_callback:
            if state.get("failed") and node_name != "finalize":
                progress_callback(node_name, "failed", state.get("message") or "Failed", None)
            elif node_name == "gather_context":
                progress_callback("context", "completed", "Brand context gathered", None)
            elif node_name == "classify_maturity":
                progress_callback(
                    "maturity", "completed", f"Data maturity: {state.get('maturity')}",
                    {"maturity": state.get("maturity"), "strategy": state.get("strategy")}
                )
            elif node_name == "generate_candidates":
                progress_callback("generation", "completed", "Candidates generated", None)
            elif node_name == "parse_candidates":
                num_parsed = len(state.get("candidates", []))
                progress_callback("parsing", "completed", f"Recovered {num_parsed} candidates", None)
            elif node_name == "post_process":
                num_kept = len(state.get("candidates", []))
                progress_callback("post_processing", "completed", f"{num_kept} candidates passed filters", None)
            elif node_name == "persist":
                progress_callback(
                    "persistence", "completed", "Generation saved",
                    {"generation_id": state.get("generation_id")}
                )
            elif node_name == "finalize":
                progress_callback("recommendations", "completed", "Recommendation generation complete", None)

    return state


def generate_recommendations(
    subject_id: str,
    store: Optional[TelemetryStore] = None,
    backends: Optional[List[GenerationBackend]] = None,
    progress_callback: Optional[ProgressCallback] = None
) -> GenerationResult:
    """
    Generate, filter, rank and persist recommendations for a subject.

    Entry point for the recommendation agent. Never raises for pipeline
    failures; they are reported on the result.

    Args:
        subject_id: Subject (brand) identifier
        store: Telemetry Store (default: configured store singleton)
        backends: Ordered generation backends (default: preferred backend then configured chain)
        progress_callback: Optional progress callback

    Returns:
        GenerationResult
    """
    state = run_recommendation_workflow(subject_id, store, backends, progress_callback)
    output = state.get("output")

    result = GenerationResult(
        success=state.get("success", False),
        generation_id=state.get("generation_id"),
        maturity=state.get("maturity"),
        candidates=state.get("candidates", []) if state.get("success") else [],
        message=state.get("message"),
        strategy=state.get("strategy"),
        backend=output.backend if output else None,
        removed=state.get("removed", []),
        errors=state.get("errors", [])
    )

    if result.success and settings.CACHE_GENERATION_SUMMARY:
        summary = {
            "generation_id": result.generation_id,
            "maturity": result.maturity,
            "strategy": result.strategy,
            "candidate_count": len(result.candidates),
        }
        schedule_background(cache_generation_summary, subject_id, summary)

    return result
