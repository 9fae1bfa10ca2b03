"""
Data models and schemas for the Brand Recommendation Engine.

This module defines the Pydantic models used for telemetry snapshots,
in-flight recommendation candidates, filter results, persisted generations
and API requests/responses.
"""

from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any, Literal


Maturity = Literal["cold_start", "low_data", "normal"]
FocusArea = Literal["visibility", "share_of_voice", "sentiment"]
Priority = Literal["High", "Medium", "Low"]
Effort = Literal["Low", "Medium", "High"]
CandidateSource = Literal["llm", "cold_start_template", "domain_audit"]
TrendDirection = Literal["up", "down", "stable"]


# Telemetry Models

class Trend(BaseModel):
    """Period-over-period movement of a single metric."""
    current: float = Field(..., description="Average value in the current window")
    previous: float = Field(..., description="Average value in the previous window")
    change_percent: float = Field(..., description="Percent change, rounded to one decimal")
    direction: TrendDirection = Field(..., description="up, down or stable (|change| < 2%)")


class SourceMetric(BaseModel):
    """Aggregated citation metrics for one source domain."""
    domain: str = Field(..., description="Normalized source domain", examples=["techradar.com"])
    mention_rate: float = Field(0.0, description="Share of responses mentioning the subject (%)")
    share_of_voice: float = Field(0.0, description="Subject share of voice on this source (%)")
    sentiment: float = Field(0.0, description="Average sentiment (-1..1 or 0..100)")
    citations: int = Field(0, description="Number of citations in the window")
    impact_score: float = Field(0.0, description="Composite impact score (0-10)")
    visibility: float = Field(0.0, description="Subject visibility on this source (0-100)")


class CompetitorSummary(BaseModel):
    """Benchmark metrics for one competitor."""
    name: str
    domain: Optional[str] = None
    visibility: Optional[float] = None
    share_of_voice: Optional[float] = None
    sentiment: Optional[float] = None


class KeywordCount(BaseModel):
    keyword: str
    count: int


class TelemetrySnapshot(BaseModel):
    """
    One subject's aggregated telemetry for a rolling window.

    Built fresh per generation request and never mutated afterwards;
    downstream stages only read from it.
    """
    model_config = ConfigDict(frozen=True)

    subject_id: str
    subject_name: str
    subject_domain: Optional[str] = None
    industry: Optional[str] = None
    summary: Optional[str] = None
    preferred_backend: Optional[str] = None
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None

    visibility: Optional[float] = None
    share_of_voice: Optional[float] = None
    sentiment: Optional[float] = None
    trends: Dict[str, Trend] = Field(default_factory=dict)

    sources: List[SourceMetric] = Field(default_factory=list)
    competitors: List[CompetitorSummary] = Field(default_factory=list)
    competitor_averages: Dict[str, float] = Field(default_factory=dict)

    top_keywords: List[KeywordCount] = Field(default_factory=list)
    narrative: List[str] = Field(default_factory=list)
    key_quotes: List[str] = Field(default_factory=list)

    domain_audit: Optional[Dict[str, Any]] = None

    @property
    def total_citations(self) -> int:
        return sum(source.citations for source in self.sources)

    @property
    def source_domains(self) -> List[str]:
        return [source.domain for source in self.sources]


class ExclusionList(BaseModel):
    """Normalized competitor identifiers plus the subject whitelist."""
    model_config = ConfigDict(frozen=True)

    names: frozenset = Field(default_factory=frozenset)
    domains: frozenset = Field(default_factory=frozenset)
    name_variations: frozenset = Field(default_factory=frozenset)
    base_domains: frozenset = Field(default_factory=frozenset)
    subject_name: Optional[str] = Field(None, description="Normalized subject name (whitelisted)")
    subject_domain: Optional[str] = Field(None, description="Normalized subject domain (whitelisted)")


# Candidate Models

class Candidate(BaseModel):
    """An in-flight recommendation record moving through the pipeline."""
    action: str = ""
    citation_source: str = ""
    focus_area: FocusArea = "visibility"
    priority: Priority = "Medium"
    effort: Effort = "Medium"
    kpi: str = "Visibility Index"
    reason: str = ""
    explanation: str = ""
    expected_boost: str = ""
    timeline: str = "2-4 weeks"
    confidence: int = Field(70, ge=0, le=100)
    focus_sources: Optional[str] = None
    content_focus: Optional[str] = None
    content: Optional[str] = Field(None, description="Long-form generated prose, if any")
    how_to_fix: List[str] = Field(default_factory=list)
    source: CandidateSource = "llm"

    # Attached source metrics
    impact_score: Optional[float] = None
    mention_rate: Optional[float] = None
    share_of_voice: Optional[float] = None
    sentiment: Optional[float] = None
    visibility_score: Optional[float] = None
    citation_count: int = 0

    # Ranking
    calculated_score: Optional[float] = None
    strategic_role: Optional[str] = None

    # Persistence
    id: Optional[str] = None
    status: str = "pending"


class RemovedCandidate(BaseModel):
    """A candidate dropped by a filter stage, with every reason it failed."""
    candidate: Candidate
    reasons: List[str]
    stage: str


class FilterResult(BaseModel):
    kept: List[Candidate] = Field(default_factory=list)
    removed: List[RemovedCandidate] = Field(default_factory=list)


class RecoveryResult(BaseModel):
    """Records recovered from raw generation text and the strategy that worked."""
    records: List[Dict[str, Any]] = Field(default_factory=list)
    strategy: Optional[str] = None

    @property
    def recovered(self) -> bool:
        return bool(self.records)


class GenerationOutput(BaseModel):
    """Raw text returned by the first backend tier that produced output."""
    text: str
    backend: str
    tier: int


class Generation(BaseModel):
    """One persisted batch of candidates for a subject."""
    id: Optional[str] = None
    subject_id: str
    maturity: Maturity
    strategy: Literal["direct", "cold_start_templates", "cold_start_personalized"]
    backend: Optional[str] = None
    tier: Optional[int] = None
    candidates: List[Candidate] = Field(default_factory=list)
    status: str = "pending"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class GenerationResult(BaseModel):
    """Result of one pipeline invocation."""
    success: bool
    generation_id: Optional[str] = None
    maturity: Optional[Maturity] = None
    candidates: List[Candidate] = Field(default_factory=list)
    message: Optional[str] = None
    strategy: Optional[str] = None
    backend: Optional[str] = None
    removed: List[RemovedCandidate] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


# API Request/Response Models

class GenerateRecommendationsResponse(BaseModel):
    """Response model for the generate endpoint."""
    success: bool = Field(..., description="Whether a generation was persisted")
    generation_id: Optional[str] = Field(None, description="Identifier of the persisted generation")
    maturity: Optional[Maturity] = Field(None, description="Data maturity of the subject", examples=["low_data"])
    message: Optional[str] = Field(None, description="Failure or status message")
    candidates: List[Candidate] = Field(default_factory=list, description="Ranked recommendations")


class CandidateStatusUpdate(BaseModel):
    """Request model for updating a recommendation's workflow status."""
    status: Literal["pending", "approved", "content_generated", "completed", "rejected"] = Field(
        ...,
        description="New workflow status",
        examples=["approved"]
    )


class HealthResponse(BaseModel):
    """Response model for the /health endpoint."""
    status: str = Field(
        ...,
        description="Health status of the system",
        examples=["healthy", "degraded"]
    )
    version: str = Field(
        ...,
        description="Application version",
        examples=["1.0.0"]
    )
