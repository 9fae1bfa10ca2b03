"""
Telemetry aggregation for one subject.

Reads the subject's metrics, competitors, sources, qualitative entries and
latest domain audit from the Telemetry Store and folds them into an
immutable TelemetrySnapshot plus the run's ExclusionList.
"""

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from config.settings import settings
from models.schemas import (
    CompetitorSummary,
    ExclusionList,
    KeywordCount,
    SourceMetric,
    TelemetrySnapshot,
    Trend,
)
from storage.telemetry_store import TelemetryStore
from utils.competitor_filter import build_exclusion_list, filter_competitor_sources
from utils.domain_audit import is_audit_stale
from utils.helpers import normalize_domain

logger = logging.getLogger(__name__)

METRICS = ("visibility", "share_of_voice", "sentiment")
STABLE_CHANGE_PERCENT = 2.0
MAX_KEYWORDS = 10
MAX_NARRATIVES = 3
MAX_QUOTES = 5
MIN_QUOTE_LENGTH = 20


def average_metrics(rows: List[Dict[str, Any]]) -> Dict[str, Optional[float]]:
    """Average each metric over the rows that carry a value for it."""
    averages: Dict[str, Optional[float]] = {}
    for metric in METRICS:
        values = [row[metric] for row in rows if row.get(metric) is not None]
        averages[metric] = sum(values) / len(values) if values else None
    return averages


def compute_trend(current: Optional[float], previous: Optional[float]) -> Optional[Trend]:
    """Period-over-period trend; None when either side is missing or previous is zero."""
    if current is None or not previous:
        return None
    change = round((current - previous) / abs(previous) * 100, 1)
    if abs(change) < STABLE_CHANGE_PERCENT:
        direction = "stable"
    elif change > 0:
        direction = "up"
    else:
        direction = "down"
    return Trend(
        current=round(current, 2),
        previous=round(previous, 2),
        change_percent=change,
        direction=direction
    )


def _to_source_metric(row: Dict[str, Any]) -> Optional[SourceMetric]:
    domain = normalize_domain(row.get("domain"))
    if not domain:
        return None
    return SourceMetric(
        domain=domain,
        mention_rate=row.get("mention_rate") or 0.0,
        share_of_voice=row.get("share_of_voice", row.get("soa")) or 0.0,
        sentiment=row.get("sentiment") or 0.0,
        citations=int(row.get("citations") or 0),
        impact_score=row.get("impact_score") or 0.0,
        visibility=row.get("visibility") or 0.0,
    )


def _fetch_competitor_summaries(
    store: TelemetryStore,
    subject_id: str,
    competitors: List[Dict[str, Any]],
    start: datetime,
    end: datetime
) -> List[CompetitorSummary]:
    """Fetch competitor metrics in bounded batches; a failed lookup leaves that competitor without metrics."""
    metrics_by_id: Dict[str, Dict[str, Optional[float]]] = {}
    batch_size = max(1, settings.TELEMETRY_BATCH_SIZE)

    for offset in range(0, len(competitors), batch_size):
        batch = competitors[offset:offset + batch_size]
        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            future_to_competitor = {
                executor.submit(store.fetch_competitor_metrics, subject_id, c["id"], start, end): c
                for c in batch
            }
            for future in as_completed(future_to_competitor):
                competitor = future_to_competitor[future]
                try:
                    metrics_by_id[competitor["id"]] = average_metrics(future.result())
                except Exception as e:
                    logger.warning(f"⚠️  Metrics lookup failed for competitor '{competitor.get('name')}': {e}")
                    metrics_by_id[competitor["id"]] = {}

    summaries = []
    for competitor in competitors:
        metrics = metrics_by_id.get(competitor["id"], {})
        summaries.append(CompetitorSummary(
            name=competitor.get("name") or "",
            domain=competitor.get("domain"),
            visibility=metrics.get("visibility"),
            share_of_voice=metrics.get("share_of_voice"),
            sentiment=metrics.get("sentiment"),
        ))
    return summaries


def competitor_averages(competitors: List[CompetitorSummary]) -> Dict[str, float]:
    averages = {}
    for metric in METRICS:
        values = [getattr(c, metric) for c in competitors if getattr(c, metric) is not None]
        if values:
            averages[metric] = round(sum(values) / len(values), 1)
    return averages


def _keyword_text(item: Any) -> Optional[str]:
    if isinstance(item, dict):
        item = item.get("keyword")
    if isinstance(item, str) and item.strip():
        return item.strip().lower()
    return None


def aggregate_qualitative(entries: List[Dict[str, Any]]) -> Tuple[List[KeywordCount], List[str], List[str]]:
    """
    Fold qualitative entries into keywords, narratives and quotes.

    Returns:
        (top keywords by frequency, distinct narratives, quotes longer than 20 chars)
    """
    counts: Counter = Counter()
    narratives: List[str] = []
    quotes: List[str] = []

    for entry in entries:
        for item in entry.get("keywords") or []:
            keyword = _keyword_text(item)
            if keyword:
                counts[keyword] += 1

        narrative = entry.get("narrative")
        if isinstance(narrative, dict):
            narrative = narrative.get("brand_summary")
        if narrative and narrative not in narratives:
            narratives.append(narrative)

        for quote in entry.get("quotes") or []:
            if isinstance(quote, dict):
                text = quote.get("text") or ""
                sentiment = quote.get("sentiment")
                formatted = f"\"{text}\" ({sentiment})" if sentiment else f"\"{text}\""
            else:
                text = str(quote)
                formatted = f"\"{text}\""
            if len(text) > MIN_QUOTE_LENGTH:
                quotes.append(formatted)

    keywords = [KeywordCount(keyword=k, count=c) for k, c in counts.most_common(MAX_KEYWORDS)]
    return keywords, narratives[:MAX_NARRATIVES], quotes[:MAX_QUOTES]


def gather_snapshot(
    store: TelemetryStore,
    subject_id: str,
    window_days: Optional[int] = None,
    as_of: Optional[datetime] = None
) -> Tuple[TelemetrySnapshot, ExclusionList]:
    """
    Build the telemetry snapshot and exclusion list for a subject.

    Args:
        store: Telemetry Store to read from
        subject_id: Subject identifier
        window_days: Rolling window length (default: TELEMETRY_WINDOW_DAYS)
        as_of: End of the current window (default: now, UTC)

    Returns:
        Tuple of (TelemetrySnapshot, ExclusionList)

    Raises:
        SubjectNotFoundError: If the subject does not exist
        TelemetryStoreError: If a required read fails
    """
    window_days = window_days or settings.TELEMETRY_WINDOW_DAYS
    window_end = as_of or datetime.now(timezone.utc)
    window_start = window_end - timedelta(days=window_days)
    previous_start = window_start - timedelta(days=window_days)

    subject = store.get_subject(subject_id)
    subject_name = subject.get("name") or subject_id
    subject_domain = subject.get("domain")
    logger.info(f"📥 Gathering telemetry for {subject_name} ({window_days}-day window)")

    # Subject metrics and trends
    current = average_metrics(store.fetch_metrics(subject_id, window_start, window_end))
    previous = average_metrics(store.fetch_metrics(subject_id, previous_start, window_start))
    trends = {}
    for metric in METRICS:
        trend = compute_trend(current[metric], previous[metric])
        if trend is not None:
            trends[metric] = trend

    # Competitors
    competitor_rows = store.fetch_competitors(subject_id, limit=settings.MAX_COMPETITORS)
    competitors = _fetch_competitor_summaries(store, subject_id, competitor_rows, window_start, window_end)
    exclusion_list = build_exclusion_list(competitors, subject_domain=subject_domain, subject_name=subject_name)

    # Sources: normalized, deduplicated, competitor-owned domains removed
    sources: List[SourceMetric] = []
    seen = set()
    for row in store.fetch_top_sources(subject_id, window_start, window_end, limit=settings.MAX_TOP_SOURCES):
        source = _to_source_metric(row)
        if source is None or source.domain in seen:
            continue
        seen.add(source.domain)
        sources.append(source)
    sources = filter_competitor_sources(sources, exclusion_list)

    # Qualitative context
    entries = store.fetch_qualitative_entries(subject_id, window_start, window_end)
    keywords, narratives, quotes = aggregate_qualitative(entries)

    # Domain audit
    audit = store.fetch_domain_audit(subject_id)
    if audit and is_audit_stale(audit, now=window_end):
        logger.info(f"⏭️  Ignoring domain audit older than {settings.DOMAIN_AUDIT_MAX_AGE_DAYS} days")
        audit = None

    snapshot = TelemetrySnapshot(
        subject_id=subject_id,
        subject_name=subject_name,
        subject_domain=subject_domain,
        industry=subject.get("industry"),
        summary=subject.get("summary"),
        preferred_backend=subject.get("preferred_backend"),
        window_start=window_start,
        window_end=window_end,
        visibility=current["visibility"],
        share_of_voice=current["share_of_voice"],
        sentiment=current["sentiment"],
        trends=trends,
        sources=sources,
        competitors=competitors,
        competitor_averages=competitor_averages(competitors),
        top_keywords=keywords,
        narrative=narratives,
        key_quotes=quotes,
        domain_audit=audit,
    )

    logger.info(
        f"✓ Snapshot ready: {len(sources)} sources, {snapshot.total_citations} citations, "
        f"{len(competitors)} competitors, audit={'yes' if audit else 'no'}"
    )
    return snapshot, exclusion_list
