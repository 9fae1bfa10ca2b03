"""
Deterministic ranking of recommendation candidates.

score = 0.4 * impact + 0.3 * confidence - 0.2 * effort_penalty + 0.1 * trend_urgency

Sorting is stable, so candidates with equal scores keep their generation order.
"""

import logging
from typing import Dict, List, Optional

from models.schemas import Candidate, Trend

logger = logging.getLogger(__name__)

IMPACT_WEIGHT = 0.4
CONFIDENCE_WEIGHT = 0.3
EFFORT_WEIGHT = 0.2
URGENCY_WEIGHT = 0.1

EFFORT_PENALTY = {"Low": 0.1, "Medium": 0.5, "High": 1.0}

URGENCY_MIN_CHANGE = 5.0  # percent
URGENCY_FULL_CHANGE = 30.0  # percent at which urgency saturates

FOUNDATION_SOURCES = {"owned-site", "directories"}
QUICK_WIN_MIN_IMPACT = 0.5


def normalized_impact(candidate: Candidate) -> float:
    return min(1.0, max(0.0, (candidate.impact_score or 0.0) / 10.0))


def trend_urgency(candidate: Candidate, trends: Dict[str, Trend]) -> float:
    """Urgency from a falling trend on the candidate's focus dimension."""
    trend = trends.get(candidate.focus_area)
    if trend is None or trend.direction != "down":
        return 0.0
    magnitude = abs(trend.change_percent)
    if magnitude <= URGENCY_MIN_CHANGE:
        return 0.0
    return min(1.0, magnitude / URGENCY_FULL_CHANGE)


def score_candidate(candidate: Candidate, trends: Dict[str, Trend]) -> float:
    score = (
        IMPACT_WEIGHT * normalized_impact(candidate)
        + CONFIDENCE_WEIGHT * (candidate.confidence / 100.0)
        - EFFORT_WEIGHT * EFFORT_PENALTY.get(candidate.effort, EFFORT_PENALTY["Medium"])
        + URGENCY_WEIGHT * trend_urgency(candidate, trends)
    )
    return round(score, 4)


def strategic_role(candidate: Candidate) -> Optional[str]:
    if candidate.source == "domain_audit" or candidate.citation_source in FOUNDATION_SOURCES:
        return "foundation"
    if candidate.effort == "Low" and normalized_impact(candidate) >= QUICK_WIN_MIN_IMPACT:
        return "quick_win"
    if candidate.effort == "High":
        return "strategic_bet"
    return None


def rank_candidates(candidates: List[Candidate], trends: Optional[Dict[str, Trend]] = None) -> List[Candidate]:
    """
    Score every candidate in place and return them sorted by score, descending.

    Args:
        candidates: Candidates in generation order
        trends: Snapshot trends keyed by focus dimension

    Returns:
        New list sorted by calculated_score (ties keep generation order)
    """
    trends = trends or {}
    for candidate in candidates:
        candidate.calculated_score = score_candidate(candidate, trends)
        candidate.strategic_role = strategic_role(candidate)

    ranked = sorted(candidates, key=lambda c: c.calculated_score, reverse=True)

    if ranked:
        logger.info(
            f"🏆 Ranked {len(ranked)} candidates "
            f"(top score {ranked[0].calculated_score}, bottom {ranked[-1].calculated_score})"
        )
    return ranked
