"""
State and failure messages for the recommendation graph.
"""

from typing import Any, Callable, Dict, List, Optional

from typing_extensions import TypedDict

from models.schemas import (
    Candidate,
    ExclusionList,
    GenerationOutput,
    RemovedCandidate,
    TelemetrySnapshot,
)


CONTEXT_FAILURE_MESSAGE = "Failed to gather brand context: {error}"
NO_OUTPUT_MESSAGE = "No output from any generation backend."
NO_CANDIDATES_MESSAGE = "No recoverable candidates in generation output."
FILTERED_OUT_MESSAGE = "All candidates were removed by safety and quality filters."
PERSISTENCE_FAILURE_MESSAGE = "Failed to persist generation: {error}"


class RecommendationState(TypedDict):
    """State for the recommendation graph."""
    # Input
    subject_id: str
    store: Any  # TelemetryStore
    backends: Optional[List[Any]]  # GenerationBackend list; None builds the configured chain

    # Context
    snapshot: Optional[TelemetrySnapshot]
    exclusion_list: Optional[ExclusionList]
    maturity: Optional[str]

    # Generation
    strategy: Optional[str]
    output: Optional[GenerationOutput]
    audit_candidates: List[Candidate]
    candidates: List[Candidate]
    removed: List[RemovedCandidate]

    # Output
    generation_id: Optional[str]
    success: bool
    message: Optional[str]

    # Metadata
    errors: List[str]
    failed: bool
    completed: bool


ProgressCallback = Callable[[str, str, str, Optional[Dict[str, Any]]], None]
