"""
Tests for the pre-persistence safety and quality pass.

Candidates can change between post-processing and the write (a rewritten
citation source, a placeholder slipped into the rationale), so the
persistence step re-checks them before anything reaches the store.
"""

from agents.recommendation_agent.models import FILTERED_OUT_MESSAGE
from agents.recommendation_agent.persistence import persist_generation
from models.schemas import Candidate, CompetitorSummary, Generation
from storage.telemetry_store import InMemoryTelemetryStore, PersistenceError
from utils.competitor_filter import build_exclusion_list

SOURCES = ["techradar.com", "capterra.com", "acmeanalytics.com"]


def _exclusion_list():
    return build_exclusion_list(
        [CompetitorSummary(name="Acme Analytics", domain="acmeanalytics.com")],
        subject_domain="brightwave.io",
        subject_name="Brightwave",
    )


def _generation(candidates):
    return Generation(subject_id="brand-1", maturity="normal", strategy="direct", candidates=candidates)


def _safe_candidate():
    return Candidate(action="Publish an integration guide on techradar.com", citation_source="techradar.com")


def test_competitor_rewritten_after_post_processing_is_dropped():
    print("\n=== Pre-persist safety pass ===")

    store = InMemoryTelemetryStore()
    rewritten = Candidate(action="Answer pricing questions on capterra.com", citation_source="capterra.com")
    rewritten.citation_source = "acmeanalytics.com"

    result = persist_generation(store, _generation([_safe_candidate(), rewritten]), _exclusion_list(), SOURCES)

    print(f"   kept: {[c.citation_source for c in result.candidates]}")
    for removed in result.removed:
        print(f"   removed [{removed.stage}]: {removed.reasons}")

    assert result.success, result.message
    assert [c.citation_source for c in result.candidates] == ["techradar.com"]
    assert len(result.removed) == 1
    assert result.removed[0].stage == "pre_persist_safety"
    assert result.removed[0].candidate.citation_source == "acmeanalytics.com"

    rows = [c for c in store.candidates.values() if c["generation_id"] == result.generation_id]
    assert [row["citation_source"] for row in rows] == ["techradar.com"]
    assert store.generations[result.generation_id]["status"] == "completed"
    print("✓ Only the safe candidate was written")


def test_placeholder_added_after_post_processing_is_dropped():
    store = InMemoryTelemetryStore()
    candidate = _safe_candidate()
    candidate.reason = "Because [Brand Name] needs it"

    result = persist_generation(store, _generation([_safe_candidate(), candidate]), _exclusion_list(), SOURCES)

    assert result.success
    assert len(result.candidates) == 1
    assert result.removed[0].stage == "pre_persist_quality"


def test_all_unsafe_writes_nothing():
    store = InMemoryTelemetryStore()
    unsafe = Candidate(action="Sponsor a webinar with Acme Analytics", citation_source="acmeanalytics.com")

    result = persist_generation(store, _generation([unsafe]), _exclusion_list(), SOURCES)

    assert not result.success
    assert result.message == FILTERED_OUT_MESSAGE
    assert result.generation_id is None
    assert result.removed[0].stage == "pre_persist_safety"
    assert store.generations == {}
    assert store.candidates == {}


def test_failed_candidate_write_keeps_previous_generation_active():
    print("\n=== Failed write keeps the last good generation ===")

    class FlakyStore(InMemoryTelemetryStore):
        fail_candidates = False

        def insert_candidates(self, generation_id, candidates):
            if self.fail_candidates:
                raise PersistenceError("disk full")
            return super().insert_candidates(generation_id, candidates)

    store = FlakyStore()
    first = persist_generation(store, _generation([_safe_candidate()]), _exclusion_list(), SOURCES)
    assert first.success

    store.fail_candidates = True
    second = persist_generation(store, _generation([_safe_candidate()]), _exclusion_list(), SOURCES)

    assert not second.success
    assert second.message == "Failed to persist generation: disk full"
    assert store.generations[first.generation_id]["status"] == "completed"
    assert store.get_latest_generation("brand-1")["id"] == first.generation_id
    assert sorted(g["status"] for g in store.generations.values()) == ["completed", "failed"]
    print("✓ Previous generation is still the latest")


if __name__ == "__main__":
    test_competitor_rewritten_after_post_processing_is_dropped()
    test_placeholder_added_after_post_processing_is_dropped()
    test_all_unsafe_writes_nothing()
    test_failed_candidate_write_keeps_previous_generation_active()
