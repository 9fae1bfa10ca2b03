"""
End-to-end tests for the recommendation workflow.

Runs the full LangGraph pipeline against an in-memory Telemetry Store with
scripted generation backends:
1. Context gathering and maturity classification
2. Generation with fallback (direct or cold start)
3. Recovery, safety and quality filtering, ranking
4. Persistence
"""

from datetime import datetime, timezone

from agents.recommendation_agent import generate_recommendations
from agents.recommendation_agent.models import FILTERED_OUT_MESSAGE, NO_CANDIDATES_MESSAGE, NO_OUTPUT_MESSAGE
from config.settings import settings
from storage.telemetry_store import InMemoryTelemetryStore, PersistenceError

COLD_START_SOURCES = [
    ("techradar.com", 15, 5.0),
    ("capterra.com", 13, 4.0),
    ("reddit.com", 12, 3.0),
]


def _fresh_audit():
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "score_breakdown": {"technical_crawlability": 40},
        "detailed_results": {
            "technical_crawlability": {"tests": [
                {"name": "Sitemap Availability", "status": "fail", "message": "No sitemap found"},
            ]},
        },
    }


def test_normal_flow(store, seed_subject, make_backend, recommendation_json):
    print("\n" + "=" * 80)
    print("Normal maturity flow")
    print("=" * 80)

    seed_subject(store)
    backend = make_backend("primary", response=recommendation_json(
        ["forbes.com", "acmeanalytics.com", "techradar.com", "capterra.com"]
    ))

    result = generate_recommendations("brand-1", store=store, backends=[backend])

    for candidate in result.candidates:
        print(f"   {candidate.calculated_score:.4f}  {candidate.citation_source}: {candidate.action}")

    assert result.success, result.message
    assert result.maturity == "normal"
    assert result.strategy == "direct"
    assert result.backend == "primary"
    assert len(backend.calls) == 1
    assert backend.calls[0].weight == "heavy"
    assert "techradar.com" in backend.calls[0].prompt

    # Competitor-cited candidate removed, the rest ranked by source impact
    assert [c.citation_source for c in result.candidates] == ["techradar.com", "capterra.com", "forbes.com"]
    scores = [c.calculated_score for c in result.candidates]
    assert scores == sorted(scores, reverse=True)
    assert result.candidates[0].impact_score == 8.5
    assert result.candidates[0].citation_count == 40
    assert any(r.candidate.citation_source == "acmeanalytics.com" for r in result.removed)

    # Persisted rows
    assert result.generation_id in store.generations
    assert store.generations[result.generation_id]["status"] == "completed"
    rows = [c for c in store.candidates.values() if c["generation_id"] == result.generation_id]
    assert len(rows) == 3
    assert all(c.id in store.candidates for c in result.candidates)
    print("✅ Normal flow persisted 3 ranked candidates")


def test_new_generation_supersedes_previous(store, seed_subject, make_backend, recommendation_json):
    seed_subject(store)
    backend = make_backend("primary", response=recommendation_json(["techradar.com", "zdnet.com"]))

    first = generate_recommendations("brand-1", store=store, backends=[backend])
    second = generate_recommendations("brand-1", store=store, backends=[backend])

    assert store.generations[first.generation_id]["status"] == "superseded"
    assert store.get_latest_generation("brand-1")["id"] == second.generation_id


def test_cold_start_with_failing_backend_uses_templates(store, seed_subject, make_backend):
    print("\n" + "=" * 80)
    print("Cold start flow")
    print("=" * 80)

    seed_subject(store, visibility=12.0, share_of_voice=8.0, sources=COLD_START_SOURCES)
    backend = make_backend("broken", error=RuntimeError("service unavailable"))

    result = generate_recommendations("brand-1", store=store, backends=[backend])

    print(f"   strategy: {result.strategy}, candidates: {len(result.candidates)}")
    assert result.success, result.message
    assert result.maturity == "cold_start"
    assert result.strategy == "cold_start_templates"
    assert len(result.candidates) >= 1
    assert all(c.source == "cold_start_template" for c in result.candidates)
    assert all(c.citation_source in ("owned-site", "directories") for c in result.candidates)
    assert result.errors == ["Tier 0 (broken) failed: service unavailable"]
    # Personalization is a light request
    assert backend.calls[0].weight == "light"
    print("✅ Templates used as-is")


def test_cold_start_personalization(store, seed_subject, make_backend, recommendation_json):
    seed_subject(store, visibility=12.0, share_of_voice=8.0, sources=COLD_START_SOURCES)
    backend = make_backend("primary", response=recommendation_json(["owned-site", "techradar.com", "directories"]))

    result = generate_recommendations("brand-1", store=store, backends=[backend])

    assert result.success, result.message
    assert result.strategy == "cold_start_personalized"
    assert len(result.candidates) == 3
    # Sources outside the template set are pulled back to it
    assert all(c.citation_source in ("owned-site", "directories") for c in result.candidates)
    assert store.generations[result.generation_id]["strategy"] == "cold_start_personalized"


def test_cold_start_unusable_personalization_falls_back_to_templates(store, seed_subject, make_backend, recommendation_json):
    seed_subject(store, visibility=12.0, share_of_voice=8.0, sources=COLD_START_SOURCES)
    backend = make_backend("primary", response=recommendation_json(
        ["owned-site", "owned-site", "owned-site"],
        action="Add FAQ",
        reason="Because [Brand Name] needs it",
    ))

    result = generate_recommendations("brand-1", store=store, backends=[backend])

    assert result.success, result.message
    assert result.strategy == "cold_start_templates"
    assert result.backend is None
    assert len(result.candidates) >= 1
    assert all(c.action != "Add FAQ" for c in result.candidates)
    assert store.get_latest_generation("brand-1")["id"] == result.generation_id


def test_cold_start_mode_disabled_uses_direct(store, seed_subject, make_backend, recommendation_json, monkeypatch):
    monkeypatch.setattr(settings, "RECS_COLD_START_MODE", False)
    seed_subject(store, visibility=12.0, share_of_voice=8.0, sources=COLD_START_SOURCES)
    backend = make_backend("primary", response=recommendation_json(["techradar.com"]))

    result = generate_recommendations("brand-1", store=store, backends=[backend])

    assert result.maturity == "cold_start"
    assert result.strategy == "direct"
    assert result.success


def test_all_candidates_cite_competitors(store, seed_subject, make_backend, recommendation_json):
    seed_subject(store)
    backend = make_backend("primary", response=recommendation_json(["acmeanalytics.com", "northstar.io"]))

    result = generate_recommendations("brand-1", store=store, backends=[backend])

    assert not result.success
    assert result.message == FILTERED_OUT_MESSAGE
    assert result.candidates == []
    assert len(result.removed) == 2
    assert store.generations == {}


def test_no_backend_output(store, seed_subject, make_backend):
    seed_subject(store)
    backends = [make_backend("a", error=ConnectionError("connection reset")), make_backend("b", response="")]

    result = generate_recommendations("brand-1", store=store, backends=backends)

    assert not result.success
    assert result.message == NO_OUTPUT_MESSAGE
    assert len(result.errors) == 3
    assert store.generations == {}


def test_no_backend_output_with_domain_audit(store, seed_subject, make_backend):
    print("\n" + "=" * 80)
    print("Backend outage with a fresh domain audit")
    print("=" * 80)

    seed_subject(store)
    store.set_domain_audit("brand-1", _fresh_audit())
    backend = make_backend("broken", error=RuntimeError("service unavailable"))

    result = generate_recommendations("brand-1", store=store, backends=[backend])

    assert result.success, result.message
    assert result.backend is None
    assert [c.action for c in result.candidates] == ["Fix Technical Crawlability Issue: Sitemap Availability"]
    assert result.candidates[0].source == "domain_audit"
    assert result.candidates[0].strategic_role == "foundation"
    print("✅ Domain audit candidates persisted without a backend")


def test_unparseable_output(store, seed_subject, make_backend):
    seed_subject(store)
    backend = make_backend("chatty", response="I am unable to produce recommendations right now.")

    result = generate_recommendations("brand-1", store=store, backends=[backend])

    assert not result.success
    assert result.message == NO_CANDIDATES_MESSAGE
    assert "Unparseable output from chatty" in result.errors


def test_unknown_subject(store, make_backend):
    backend = make_backend("primary", response="[]")

    result = generate_recommendations("missing", store=store, backends=[backend])

    assert not result.success
    assert result.message.startswith("Failed to gather brand context:")
    assert result.maturity is None
    assert backend.calls == []


def test_candidate_write_failure_marks_generation_failed(seed_subject, make_backend, recommendation_json):
    class BrokenCandidateStore(InMemoryTelemetryStore):
        def insert_candidates(self, generation_id, candidates):
            raise PersistenceError("disk full")

    store = BrokenCandidateStore()
    seed_subject(store)
    backend = make_backend("primary", response=recommendation_json(["techradar.com"]))

    result = generate_recommendations("brand-1", store=store, backends=[backend])

    assert not result.success
    assert result.message == "Failed to persist generation: disk full"
    assert result.candidates == []
    assert [g["status"] for g in store.generations.values()] == ["failed"]
    assert store.get_latest_generation("brand-1") is None


def test_failed_write_keeps_previous_generation(seed_subject, make_backend, recommendation_json):
    class FlakyStore(InMemoryTelemetryStore):
        fail_candidates = False

        def insert_candidates(self, generation_id, candidates):
            if self.fail_candidates:
                raise PersistenceError("disk full")
            return super().insert_candidates(generation_id, candidates)

    store = FlakyStore()
    seed_subject(store)
    backend = make_backend("primary", response=recommendation_json(["techradar.com"]))

    first = generate_recommendations("brand-1", store=store, backends=[backend])
    store.fail_candidates = True
    second = generate_recommendations("brand-1", store=store, backends=[backend])

    assert first.success and not second.success
    assert store.generations[first.generation_id]["status"] == "completed"
    assert store.get_latest_generation("brand-1")["id"] == first.generation_id


def test_progress_events(store, seed_subject, make_backend, recommendation_json):
    seed_subject(store)
    backend = make_backend("primary", response=recommendation_json(["techradar.com"]))
    events = []

    def progress_callback(step, status, message, data):
        print(f"   [{step}] {status}: {message}")
        events.append((step, status, data))

    result = generate_recommendations("brand-1", store=store, backends=[backend], progress_callback=progress_callback)

    assert [step for step, _, _ in events] == [
        "context", "maturity", "generation", "parsing", "post_processing", "persistence", "recommendations",
    ]
    assert all(status == "completed" for _, status, _ in events)
    assert events[1][2] == {"maturity": "normal", "strategy": "direct"}
    assert events[5][2] == {"generation_id": result.generation_id}


def test_progress_events_on_failure(store, make_backend):
    events = []

    generate_recommendations(
        "missing",
        store=store,
        backends=[make_backend("primary")],
        progress_callback=lambda step, status, message, data: events.append((step, status)),
    )

    assert events == [("gather_context", "failed"), ("recommendations", "completed")]


if __name__ == "__main__":
    import pytest

    pytest.main([__file__, "-v", "-s"])
