"""
API tests for the recommendation endpoints.

Uses FastAPI's TestClient with the store singleton and backend chain
replaced, so no Redis or provider keys are needed.
"""

import json

import pytest
from fastapi.testclient import TestClient

import storage.telemetry_store as telemetry_store
from agents.recommendation_agent import nodes
from src.app import app


@pytest.fixture
def client(store, seed_subject, make_backend, recommendation_json, monkeypatch):
    seed_subject(store)
    backend = make_backend("primary", response=recommendation_json(["techradar.com", "acmeanalytics.com", "zdnet.com"]))

    monkeypatch.setattr(telemetry_store, "_store", store)
    monkeypatch.setattr(nodes, "build_backend_chain", lambda preferred=None: [backend])
    return TestClient(app)


def test_root_and_health(client):
    root = client.get("/").json()
    assert root["endpoints"]["generate"] == "/recommendations/{subject_id}/generate"

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"


def test_generate_and_fetch_latest(client):
    print("\n=== POST /recommendations/brand-1/generate ===")

    response = client.post("/recommendations/brand-1/generate")
    assert response.status_code == 200

    data = response.json()
    print(f"   success: {data['success']}, maturity: {data['maturity']}")
    for candidate in data["candidates"]:
        print(f"   - {candidate['citation_source']}: {candidate['action']}")

    assert data["success"] is True
    assert data["maturity"] == "normal"
    assert [c["citation_source"] for c in data["candidates"]] == ["techradar.com", "zdnet.com"]

    latest = client.get("/recommendations/brand-1/latest")
    assert latest.status_code == 200
    assert latest.json()["id"] == data["generation_id"]
    assert len(latest.json()["candidates"]) == 2


def test_generate_reports_pipeline_failure_in_body(client):
    response = client.post("/recommendations/unknown-brand/generate")

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["message"].startswith("Failed to gather brand context:")


def test_latest_without_generation_is_404(client):
    assert client.get("/recommendations/brand-1/latest").status_code == 404


def test_update_candidate_status(client, store):
    generated = client.post("/recommendations/brand-1/generate").json()
    candidate_id = generated["candidates"][0]["id"]

    response = client.patch(f"/recommendations/{candidate_id}/status", json={"status": "approved"})
    assert response.status_code == 200
    assert response.json() == {"id": candidate_id, "status": "approved"}
    assert store.candidates[candidate_id]["is_approved"] is True

    assert client.patch("/recommendations/nope/status", json={"status": "approved"}).status_code == 404
    assert client.patch(f"/recommendations/{candidate_id}/status", json={"status": "shipped"}).status_code == 422


def test_generate_stream(client):
    print("\n=== POST /recommendations/brand-1/generate/stream ===")

    response = client.post("/recommendations/brand-1/generate/stream")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    events = [
        json.loads(line[len("data: "):])
        for line in response.text.splitlines()
        if line.startswith("data: ")
    ]
    for event in events:
        print(f"   [{event['step']}] {event['status']}: {event['message']}")

    assert events[0]["step"] == "initialize"
    assert "persistence" in [event["step"] for event in events]
    assert events[-1]["step"] == "complete"
    assert events[-1]["status"] == "success"
    assert len(events[-1]["data"]["candidates"]) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
