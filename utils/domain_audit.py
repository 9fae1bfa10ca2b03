"""
Deterministic recommendations from a domain-readiness audit.

Failed and warning checks from the subject's latest audit become owned-site
candidates with step-by-step fixes. These do not depend on any generation
backend, so they survive a backend outage.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config.settings import settings
from models.schemas import Candidate

logger = logging.getLogger(__name__)

WARNING_SCORE_THRESHOLD = 70

# (key, label, always_checked)
AUDIT_BUCKETS = [
    ("technical_crawlability", "Technical Crawlability", False),
    ("content_quality", "Content Quality", False),
    ("semantic_structure", "Semantic Structure", False),
    ("accessibility_and_brand", "Accessibility & Brand", False),
    ("aeo_optimization", "AEO Optimization", True),
]

HOW_TO_FIX: Dict[str, List[str]] = {
    "HTTPS Availability": [
        "Install a TLS certificate for every hostname",
        "Redirect all HTTP requests to HTTPS with 301 redirects",
        "Update internal links to use https URLs",
    ],
    "Robots.txt Availability": [
        "Serve a robots.txt file at the site root",
        "Allow AI and search crawlers on public content",
        "Reference the sitemap location in robots.txt",
    ],
    "Sitemap Availability": [
        "Generate an XML sitemap covering all indexable pages",
        "Serve it at /sitemap.xml and list it in robots.txt",
        "Regenerate it whenever content changes",
    ],
    "Canonical Tag": [
        "Add a self-referencing canonical link to each page",
        "Use absolute URLs for canonical targets",
        "Point duplicate pages at the preferred version",
    ],
    "LLMs.txt Presence": [
        "Publish an llms.txt file at the site root",
        "Summarize the brand, offerings and key facts in plain text",
        "Link to the most authoritative pages",
    ],
    "Content Freshness": [
        "Expose published and modified dates in structured data",
        "Review and update cornerstone pages on a schedule",
    ],
    "FAQ Content & Schema": [
        "Add a question-and-answer section to key pages",
        "Mark it up with FAQPage structured data",
        "Keep each answer short and self-contained",
    ],
    "Schema.org Markup": [
        "Add JSON-LD structured data to every template",
        "Use Organization, Product or Article types as appropriate",
        "Validate the markup with a rich results testing tool",
    ],
    "Heading Hierarchy": [
        "Use exactly one H1 per page",
        "Structure sections with H2 and H3 headings without skipping levels",
    ],
    "Meta Description Quality": [
        "Write a unique meta description for each page",
        "Keep descriptions between 50 and 160 characters",
    ],
    "Entity Confidence": [
        "Publish complete Organization schema with logo and contact details",
        "Add sameAs links to the brand's official profiles",
    ],
    "Image Alt Text": [
        "Describe every meaningful image in its alt attribute",
        "Use empty alt text for purely decorative images",
    ],
}

GENERIC_FIX = [
    "Review the audit details for this check",
    "Apply the recommended change on the affected pages",
    "Re-run the audit to confirm the fix",
]


def get_how_to_fix_steps(test_name: str) -> List[str]:
    """Look up fix steps by exact test name, then by partial match."""
    if test_name in HOW_TO_FIX:
        return list(HOW_TO_FIX[test_name])

    lowered = test_name.lower()
    for key, steps in HOW_TO_FIX.items():
        if key.lower() in lowered or lowered in key.lower():
            return list(steps)

    return list(GENERIC_FIX)


def _get(data: Dict[str, Any], key: str) -> Any:
    """Read a snake_case key, falling back to its camelCase spelling."""
    if key in data:
        return data[key]
    head, *rest = key.split("_")
    return data.get(head + "".join(part.capitalize() for part in rest))


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_audit_stale(audit: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """An audit without a readable timestamp, or older than the max age, is stale."""
    timestamp = _parse_timestamp(_get(audit, "timestamp"))
    if timestamp is None:
        return True
    now = now or datetime.now(timezone.utc)
    age_days = (now - timestamp).total_seconds() / 86400
    return age_days > settings.DOMAIN_AUDIT_MAX_AGE_DAYS


def _has_critical_failure(tests: List[Dict[str, Any]]) -> bool:
    return any(test.get("status") == "fail" or test.get("score") == 0 for test in tests)


def generate_domain_audit_candidates(
    audit: Optional[Dict[str, Any]],
    visibility: Optional[float] = None
) -> List[Candidate]:
    """
    Turn failed and warning audit checks into candidates.

    A bucket contributes when its score is below 70 or it has a failing
    check; the AEO bucket is always checked. Output is capped.

    Args:
        audit: Latest domain-readiness audit for the subject
        visibility: Subject visibility, attached to each candidate

    Returns:
        Candidates in bucket order, at most MAX_DOMAIN_AUDIT_RECOMMENDATIONS
    """
    if not audit:
        return []

    breakdown = _get(audit, "score_breakdown") or {}
    details = _get(audit, "detailed_results") or {}
    candidates: List[Candidate] = []

    for key, label, always_checked in AUDIT_BUCKETS:
        bucket = _get(details, key) or {}
        tests = bucket.get("tests") or []
        score = _get(breakdown, key)
        below_threshold = score is not None and score < WARNING_SCORE_THRESHOLD

        if not (always_checked or below_threshold or _has_critical_failure(tests)):
            continue

        for test in tests:
            status = test.get("status")
            if status not in ("fail", "warning"):
                continue

            name = test.get("name") or "Unnamed check"
            message = re.sub(r"[<>]", "", test.get("message") or "").strip()

            candidates.append(Candidate(
                action=f"Fix {label} Issue: {name}",
                citation_source="owned-site",
                focus_area="visibility",
                priority="High" if status == "fail" else "Medium",
                effort="Medium",
                kpi="Technical Health",
                reason=f"{label} score is impacted by the failing check: {name}",
                explanation=message or (
                    f"The check \"{name}\" did not pass during the domain audit. Fixing it improves "
                    f"the {label} score and overall technical health."
                ),
                expected_boost="Technical baseline",
                timeline="1-2 weeks",
                confidence=90,
                focus_sources="owned-site",
                content_focus="Technical Optimization",
                how_to_fix=get_how_to_fix_steps(name),
                source="domain_audit",
                visibility_score=round(visibility) if visibility is not None else None,
            ))

    limit = settings.MAX_DOMAIN_AUDIT_RECOMMENDATIONS
    if len(candidates) > limit:
        logger.info(f"✂️  Capped domain audit recommendations to {limit} (found {len(candidates)})")
        candidates = candidates[:limit]

    logger.info(f"🔧 Generated {len(candidates)} domain audit recommendation(s)")
    return candidates
