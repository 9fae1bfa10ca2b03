"""
Deterministic quality gate for recommendation candidates.

Every check is independent; a candidate that fails any of them is removed
and carries all of the reasons it failed.
"""

import logging
import re
from typing import List

from config.settings import settings
from models.schemas import Candidate, FilterResult, RemovedCandidate

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERNS = [
    ("bracketed token", re.compile(r"\[\s*[A-Z_][A-Za-z0-9_ :\-]{0,40}\]")),
    ("TBD marker", re.compile(r"\bTBD\b", re.IGNORECASE)),
    ("angle-bracket tag", re.compile(r"<\s*/?\s*[A-Za-z][^<>]{0,60}>")),
    ("lorem ipsum", re.compile(r"lorem ipsum", re.IGNORECASE)),
]

RATIONALE_FIELDS = ("reason", "explanation", "expected_boost")

# Section markers expected in long-form content
REQUIRED_HEADINGS = {
    "direct answer": ("direct answer",),
    "benefits": ("benefits",),
    "faq": ("faq", "frequently asked questions"),
    "call to action": ("call to action", "next steps"),
}
MAX_MISSING_HEADINGS = 1


def find_placeholders(text: str) -> List[str]:
    """Return the kinds of placeholder markers found in a text."""
    if not text:
        return []
    return [label for label, pattern in PLACEHOLDER_PATTERNS if pattern.search(text)]


def missing_headings(content: str) -> List[str]:
    """Return the expected section headings absent from long-form content."""
    lowered = content.lower()
    return [
        heading for heading, markers in REQUIRED_HEADINGS.items()
        if not any(marker in lowered for marker in markers)
    ]


def check_quality(candidate: Candidate) -> List[str]:
    """Return every quality reason a candidate fails (empty list means it passes)."""
    reasons = []
    action = (candidate.action or "").strip()

    if not action:
        reasons.append("action is empty")
    elif len(action) < settings.MIN_ACTION_LENGTH:
        reasons.append(f"action shorter than {settings.MIN_ACTION_LENGTH} characters")

    if not (candidate.citation_source or "").strip():
        reasons.append("citation source is empty")

    for field in RATIONALE_FIELDS:
        for label in find_placeholders(getattr(candidate, field) or ""):
            reasons.append(f"{field} contains placeholder ({label})")

    content = (candidate.content or "").strip()
    if content:
        if len(content) < settings.MIN_CONTENT_LENGTH:
            reasons.append(f"content shorter than {settings.MIN_CONTENT_LENGTH} characters")
        missing = missing_headings(content)
        if len(missing) > MAX_MISSING_HEADINGS:
            reasons.append(f"content missing sections: {', '.join(missing)}")

    return reasons


def filter_low_quality(candidates: List[Candidate], stage: str = "quality") -> FilterResult:
    """
    Remove candidates that fail the deterministic quality checks.

    Args:
        candidates: Candidates to check, in order
        stage: Stage label recorded on removed candidates

    Returns:
        FilterResult with kept candidates (original order) and removed ones
    """
    result = FilterResult()

    for candidate in candidates:
        reasons = check_quality(candidate)
        if reasons:
            result.removed.append(RemovedCandidate(candidate=candidate, reasons=reasons, stage=stage))
            logger.warning(f"🧹 [{stage}] Removed '{candidate.action[:60]}': {'; '.join(reasons)}")
        else:
            result.kept.append(candidate)

    if result.removed:
        logger.info(f"🧹 [{stage}] Kept {len(result.kept)}/{len(candidates)} candidates")

    return result
