"""
Prompt builders for recommendation generation.
"""

import json
from typing import List, Optional

from models.schemas import Candidate, TelemetrySnapshot
from utils.helpers import normalize_percent

DIRECT_SYSTEM_MESSAGE = (
    "You are a brand visibility strategist for AI answer engines. "
    "You turn citation telemetry into specific, measurable recommendations."
)

COLD_START_SYSTEM_MESSAGE = (
    "You are a senior marketing consultant. You rewrite baseline tasks into "
    "concrete, brand-specific recommendations."
)


def _sentiment_100(value: Optional[float]) -> Optional[float]:
    """Map -1..1 sentiment onto 0..100; values already on 0..100 pass through."""
    if value is None:
        return None
    if -1 <= value <= 1:
        return round((value + 1) / 2 * 100, 1)
    return round(max(0.0, min(100.0, value)), 1)


def _format_brand_metrics(snapshot: TelemetrySnapshot) -> str:
    lines = []
    visibility = normalize_percent(snapshot.visibility)
    if visibility is not None:
        lines.append(f"- Visibility: {visibility}")
    share_of_voice = normalize_percent(snapshot.share_of_voice)
    if share_of_voice is not None:
        lines.append(f"- Share of voice: {share_of_voice}%")
    sentiment = _sentiment_100(snapshot.sentiment)
    if sentiment is not None:
        lines.append(f"- Sentiment: {sentiment}")

    for metric, trend in snapshot.trends.items():
        lines.append(f"- {metric} trend: {trend.direction} ({trend.change_percent:+.1f}% vs previous period)")

    return "\n".join(lines) if lines else "- No brand metrics available"


def _format_sources(snapshot: TelemetrySnapshot) -> str:
    if not snapshot.sources:
        return "No source data available"

    lines = []
    for idx, source in enumerate(snapshot.sources, 1):
        parts = [
            f"{idx}. {source.domain}",
            f"{source.citations} citations",
            f"impact {source.impact_score}/10",
            f"mention rate {source.mention_rate}%",
            f"share of voice {source.share_of_voice}%",
        ]
        sentiment = _sentiment_100(source.sentiment)
        if sentiment is not None:
            parts.append(f"sentiment {sentiment}")
        lines.append(", ".join(parts))
    return "\n".join(lines)


def _format_benchmark(snapshot: TelemetrySnapshot) -> str:
    averages = snapshot.competitor_averages
    if not averages:
        return "No industry benchmark data available"

    lines = [f"Industry benchmark ({len(snapshot.competitors)} competitors analyzed):"]
    for metric in ("visibility", "share_of_voice", "sentiment"):
        if metric in averages:
            lines.append(f"- Average {metric.replace('_', ' ')}: {averages[metric]}")
    return "\n".join(lines)


def _format_qualitative(snapshot: TelemetrySnapshot) -> str:
    sections = []
    if snapshot.top_keywords:
        keywords = ", ".join(f"{k.keyword} ({k.count})" for k in snapshot.top_keywords)
        sections.append(f"Top keywords in AI answers: {keywords}")
    if snapshot.narrative:
        sections.append(f"How AI answers describe the brand: {' '.join(snapshot.narrative)}")
    if snapshot.key_quotes:
        quotes = "\n".join(f"- {quote}" for quote in snapshot.key_quotes)
        sections.append(f"Representative quotes:\n{quotes}")
    return "\n\n".join(sections) if sections else "No qualitative context available"


def build_direct_prompt(snapshot: TelemetrySnapshot, maturity: str) -> str:
    """
    Build the prompt for data-driven recommendation generation.

    The list of allowed citation sources is the snapshot's (already
    competitor-filtered) source list.
    """
    domains = snapshot.source_domains
    domain_list = "\n".join(f"{i}. {d}" for i, d in enumerate(domains, 1)) if domains else "No sources available"

    competitors = (
        "\n".join(f"- {c.name}" for c in snapshot.competitors)
        if snapshot.competitors else "No competitors identified."
    )

    low_data_guidance = ""
    if maturity == "low_data":
        low_data_guidance = """
LIMITED DATA:
- Evidence for this brand is thin. Do not assume strong signals exist.
- Favor owned-site work and foundational fixes that create measurable signals.
- Keep external work conservative and tied to the allowed sources.
"""

    return f"""Generate 8-12 recommendations that improve how AI answer engines cite and describe {snapshot.subject_name}. Return ONLY a JSON array.

RULES
- citationSource must be copied exactly from the allowed sources list below. Never use any other domain.
- focusArea must be one of: "visibility", "soa", "sentiment"
- priority must be one of: "High", "Medium", "Low"
- effort must be one of: "Low", "Medium", "High"
- confidence is an integer from 0 to 100
- expectedBoost uses a percent range such as "+5-10%"
- timeline is a range such as "2-4 weeks"
- Never recommend publishing on, linking to or promoting a competitor's site.
- Competitors may be named only for differentiation, such as a comparison page on the brand's own site.
- Do not output impactScore, mentionRate, sentiment, visibilityScore or citationCount. They are filled in from source data.
{low_data_guidance}
BRAND
- Name: {snapshot.subject_name}
- Domain: {snapshot.subject_domain or 'Unknown'}
- Industry: {snapshot.industry or 'Not specified'}
{_format_brand_metrics(snapshot)}

{_format_benchmark(snapshot)}

KNOWN COMPETITORS (comparison context only):
{competitors}

SOURCE PERFORMANCE:
{_format_sources(snapshot)}

QUALITATIVE CONTEXT:
{_format_qualitative(snapshot)}

ALLOWED CITATION SOURCES (copy exactly):
{domain_list}

Each recommendation must include: action, citationSource, focusArea, priority, effort,
kpi ("Visibility Index" | "SOA %" | "Sentiment Score"), reason, explanation (4-5 sentences),
expectedBoost, timeline, confidence, focusSources, contentFocus.

Example element:
{{"action": "Publish a structured FAQ on integration setup for {domains[0] if domains else 'example.com'}", "citationSource": "{domains[0] if domains else 'example.com'}", "focusArea": "visibility", "priority": "High", "effort": "Medium", "kpi": "Visibility Index", "reason": "High citation volume with low brand visibility", "explanation": "...", "expectedBoost": "+5-10%", "timeline": "2-4 weeks", "confidence": 75, "focusSources": "{domains[0] if domains else 'example.com'}", "contentFocus": "Setup FAQs"}}

Respond only with the JSON array."""


def build_cold_start_prompt(snapshot: TelemetrySnapshot, templates: List[Candidate]) -> str:
    """Build the prompt that personalizes cold-start templates for a subject."""
    templates_json = json.dumps(
        [
            {
                "action": t.action,
                "citationSource": t.citation_source,
                "focusArea": "soa" if t.focus_area == "share_of_voice" else t.focus_area,
                "priority": t.priority,
                "effort": t.effort,
                "kpi": t.kpi,
                "reason": t.reason,
                "explanation": t.explanation,
                "expectedBoost": t.expected_boost,
                "timeline": t.timeline,
                "confidence": t.confidence,
                "focusSources": t.focus_sources,
                "contentFocus": t.content_focus,
            }
            for t in templates
        ],
        indent=2
    )

    return f"""Brand: {snapshot.subject_name}
Industry: {snapshot.industry or 'Unknown'}
Summary: {snapshot.summary or 'Unknown'}
Data maturity: cold_start

Below are baseline recommendations for a brand with almost no AI visibility data. Improve them:
1. If the brand likely has the basics already, rewrite naive "create X page" items as concrete audit and optimize tasks.
2. Drop items that are clearly redundant for this brand. Keep uncertain ones as audits.
3. Turn each kept item into a specific deliverable with page names, outlines or checklist steps.
4. State success criteria in the explanation: what to measure and when.
5. citationSource must stay "owned-site" or "directories".
6. Keep the same fields as the input.
7. Return 5-10 recommendations as a JSON array only.

Baseline recommendations:
{templates_json}"""
