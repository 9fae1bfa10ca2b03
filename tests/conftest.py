"""
Shared pytest fixtures for the recommendation engine test suite.

Provides:
  - ``store``: a fresh in-memory Telemetry Store.
  - ``make_backend``: the scripted FakeBackend class.
  - ``seed_subject``: seeds a subject with metrics, competitors, sources and
    qualitative entries relative to "now".
  - ``recommendation_json``: builds backend output for a list of sources.
"""

import json
import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from agents.recommendation_agent.backends import GenerationBackend
from storage.telemetry_store import InMemoryTelemetryStore


class FakeBackend(GenerationBackend):
    """Scripted backend: returns a fixed response, raises, or sleeps first."""

    def __init__(self, name, response="", error=None, delay=0.0):
        self.name = name
        self.response = response
        self.error = error
        self.delay = delay
        self.calls = []

    def generate(self, request):
        self.calls.append(request)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


def _recommendation(source, index=0, **overrides):
    record = {
        "action": f"Publish a detailed integration guide for {source} readers (part {index + 1})",
        "citationSource": source,
        "focusArea": "visibility",
        "priority": "High",
        "effort": "Medium",
        "kpi": "Visibility Index",
        "reason": f"{source} is frequently cited but rarely mentions the brand",
        "explanation": "A well-structured guide gives answer engines a citable source that names the brand.",
        "expectedBoost": "+5-10%",
        "timeline": "2-4 weeks",
        "confidence": 75,
        "focusSources": source,
        "contentFocus": "Integration how-to guide",
    }
    record.update(overrides)
    return record


@pytest.fixture
def store():
    return InMemoryTelemetryStore()


@pytest.fixture
def make_backend():
    return FakeBackend


@pytest.fixture
def recommendation_json():
    def build(sources, **overrides):
        return json.dumps([_recommendation(source, i, **overrides) for i, source in enumerate(sources)])
    return build


@pytest.fixture
def seed_subject():
    """
    Seed a subject. Defaults describe a "normal" maturity brand with two
    competitors, one of which also appears among the cited sources.
    """
    def seed(
        store,
        subject_id="brand-1",
        name="Brightwave",
        domain="brightwave.io",
        industry="B2B SaaS analytics",
        visibility=42.0,
        share_of_voice=31.0,
        sentiment=0.4,
        previous_visibility=50.0,
        sources=None,
        competitors=None,
    ):
        now = datetime.now(timezone.utc)
        store.add_subject(subject_id, name, domain, industry=industry, summary=f"{name} builds analytics tools.")
        store.add_metrics(subject_id, [
            {"date": now - timedelta(days=2), "visibility": visibility,
             "share_of_voice": share_of_voice, "sentiment": sentiment},
            {"date": now - timedelta(days=10), "visibility": visibility,
             "share_of_voice": share_of_voice, "sentiment": sentiment},
            {"date": now - timedelta(days=40), "visibility": previous_visibility,
             "share_of_voice": share_of_voice, "sentiment": sentiment},
        ])

        if competitors is None:
            competitors = [
                ("Acme Analytics", "acmeanalytics.com", 55.0),
                ("Northstar Inc", "northstar.io", 35.0),
            ]
        for comp_name, comp_domain, comp_visibility in competitors:
            store.add_competitor(subject_id, comp_name, comp_domain, metrics=[
                {"date": now - timedelta(days=5), "visibility": comp_visibility,
                 "share_of_voice": 20.0, "sentiment": 0.2},
            ])

        if sources is None:
            sources = [
                ("techradar.com", 40, 8.5),
                ("capterra.com", 30, 7.9),
                ("forbes.com", 25, 7.1),
                ("zdnet.com", 20, 6.4),
                ("reddit.com", 15, 5.8),
                ("acmeanalytics.com", 12, 5.5),
                ("www.g2.com/products/brightwave", 10, 5.0),
            ]
        store.add_sources(subject_id, [
            {"domain": source, "citations": citations, "impact_score": impact,
             "mention_rate": 30.0, "share_of_voice": 25.0, "sentiment": 0.3, "visibility": 40.0}
            for source, citations, impact in sources
        ])

        store.add_qualitative(subject_id, [
            {"date": now - timedelta(days=3), "keywords": [{"keyword": "Dashboards"}, {"keyword": "pricing"}],
             "narrative": {"brand_summary": "Brightwave is seen as an affordable analytics tool."},
             "quotes": [{"text": "Brightwave made our weekly reporting much faster", "sentiment": "positive"}]},
            {"date": now - timedelta(days=4), "keywords": ["dashboards"],
             "narrative": "Brightwave is seen as an affordable analytics tool.",
             "quotes": [{"text": "Too short", "sentiment": "neutral"}]},
        ])
        return subject_id

    return seed
