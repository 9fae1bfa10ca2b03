"""
Tests for telemetry aggregation into a snapshot.
"""

from datetime import datetime, timedelta, timezone

import pytest

from agents.recommendation_agent.aggregator import (
    aggregate_qualitative,
    average_metrics,
    compute_trend,
    gather_snapshot,
)
from storage.telemetry_store import InMemoryTelemetryStore, SubjectNotFoundError


def test_average_metrics_skips_missing_values():
    averages = average_metrics([
        {"visibility": 40.0, "share_of_voice": None},
        {"visibility": 50.0, "sentiment": 0.5},
    ])

    assert averages == {"visibility": 45.0, "share_of_voice": None, "sentiment": 0.5}


def test_compute_trend():
    down = compute_trend(42.0, 50.0)
    assert down.change_percent == -16.0
    assert down.direction == "down"

    assert compute_trend(55.0, 50.0).direction == "up"
    assert compute_trend(50.5, 50.0).direction == "stable"
    assert compute_trend(42.0, None) is None
    assert compute_trend(42.0, 0) is None
    assert compute_trend(None, 50.0) is None


def test_aggregate_qualitative():
    keywords, narratives, quotes = aggregate_qualitative([
        {"keywords": [{"keyword": "Pricing"}, "support", "  "],
         "narrative": {"brand_summary": "Known for fair pricing."},
         "quotes": ["The support team answered within the hour", "short"]},
        {"keywords": ["pricing"], "narrative": "Known for fair pricing.", "quotes": []},
        {"narrative": "Growing fast among startups."},
    ])

    assert [(k.keyword, k.count) for k in keywords] == [("pricing", 2), ("support", 1)]
    assert narratives == ["Known for fair pricing.", "Growing fast among startups."]
    assert quotes == ['"The support team answered within the hour"']


def test_gather_snapshot(store, seed_subject):
    print("\n=== Snapshot ===")

    seed_subject(store)
    snapshot, exclusion_list = gather_snapshot(store, "brand-1", window_days=30)

    print(f"   visibility: {snapshot.visibility}, trends: {list(snapshot.trends)}")
    print(f"   sources: {snapshot.source_domains}")

    assert snapshot.subject_name == "Brightwave"
    assert snapshot.subject_domain == "brightwave.io"
    assert snapshot.industry == "B2B SaaS analytics"
    assert snapshot.visibility == 42.0
    assert snapshot.share_of_voice == 31.0

    # Current window averages 42 against 50 in the previous window
    assert snapshot.trends["visibility"].change_percent == -16.0
    assert snapshot.trends["visibility"].direction == "down"
    assert snapshot.trends["share_of_voice"].direction == "stable"

    assert snapshot.competitor_averages["visibility"] == 45.0
    assert [c.name for c in snapshot.competitors] == ["Acme Analytics", "Northstar Inc"]

    # Competitor-owned source dropped, URL normalized to its host
    assert "acmeanalytics.com" not in snapshot.source_domains
    assert "g2.com" in snapshot.source_domains
    assert snapshot.source_domains[0] == "techradar.com"
    assert len(snapshot.sources) == 6
    assert snapshot.total_citations == 140

    assert [(k.keyword, k.count) for k in snapshot.top_keywords] == [("dashboards", 2), ("pricing", 1)]
    assert snapshot.narrative == ["Brightwave is seen as an affordable analytics tool."]
    assert snapshot.key_quotes == ['"Brightwave made our weekly reporting much faster" (positive)']

    assert "acme analytics" in exclusion_list.names
    assert "northstar.io" in exclusion_list.domains
    assert exclusion_list.subject_domain == "brightwave.io"
    print("✓ Snapshot aggregated")


def test_duplicate_sources_are_collapsed(store, seed_subject):
    seed_subject(store, sources=[
        ("https://www.techradar.com/reviews", 40, 8.5),
        ("techradar.com", 10, 4.0),
        ("zdnet.com", 20, 6.4),
    ])

    snapshot, _ = gather_snapshot(store, "brand-1")

    assert snapshot.source_domains == ["techradar.com", "zdnet.com"]
    assert snapshot.sources[0].citations == 40


def test_stale_audit_is_dropped(store, seed_subject):
    seed_subject(store)
    now = datetime.now(timezone.utc)

    store.set_domain_audit("brand-1", {"timestamp": (now - timedelta(days=200)).isoformat()})
    snapshot, _ = gather_snapshot(store, "brand-1")
    assert snapshot.domain_audit is None

    store.set_domain_audit("brand-1", {"timestamp": (now - timedelta(days=5)).isoformat(), "overall_score": 61})
    snapshot, _ = gather_snapshot(store, "brand-1")
    assert snapshot.domain_audit["overall_score"] == 61


def test_failed_competitor_lookup_is_not_fatal(seed_subject):
    class FlakyStore(InMemoryTelemetryStore):
        def fetch_competitor_metrics(self, subject_id, competitor_id, start, end):
            competitor = next(c for c in self.competitors[subject_id] if c["id"] == competitor_id)
            if competitor["name"] == "Northstar Inc":
                raise ConnectionError("replica unavailable")
            return super().fetch_competitor_metrics(subject_id, competitor_id, start, end)

    store = FlakyStore()
    seed_subject(store)

    snapshot, exclusion_list = gather_snapshot(store, "brand-1")

    northstar = next(c for c in snapshot.competitors if c.name == "Northstar Inc")
    assert northstar.visibility is None
    assert snapshot.competitor_averages["visibility"] == 55.0
    # Still excluded even without metrics
    assert "northstar.io" in exclusion_list.domains


def test_unknown_subject_raises(store):
    with pytest.raises(SubjectNotFoundError):
        gather_snapshot(store, "missing")


if __name__ == "__main__":
    test_average_metrics_skips_missing_values()
    test_compute_trend()
    test_aggregate_qualitative()
