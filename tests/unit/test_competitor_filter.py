"""
Tests for exclusion list building and the competitor safety filter.
"""

from models.schemas import Candidate, CompetitorSummary, SourceMetric
from utils.competitor_filter import (
    build_exclusion_list,
    filter_competitor_candidates,
    filter_competitor_sources,
    generate_name_variations,
    is_competitor_domain,
    is_platform_domain,
)


def _exclusion_list():
    return build_exclusion_list(
        [
            CompetitorSummary(name="Acme Analytics", domain="acmeanalytics.com"),
            {"name": "Northstar Inc", "domain": "https://www.northstar.io/about"},
            {"name": "Brightwave", "domain": "brightwave.io"},  # the subject itself
            {"name": "Tubecast Co", "domain": "youtube.com"},  # platform domain
        ],
        subject_domain="https://brightwave.io",
        subject_name="Brightwave",
    )


def _candidate(citation, action="Publish an in-depth comparison guide", **fields):
    return Candidate(action=action, citation_source=citation, **fields)


def test_name_variations():
    print("\n=== Name variations ===")

    variations = generate_name_variations("Acme Data Corp")
    print(f"   {variations}")
    assert variations == [
        "acme data corp", "acme-data-corp", "acmedatacorp",
        "acme data", "acme-data", "acmedata",
    ]
    # Suffix-stripped form shorter than 3 characters is not kept
    assert "ab" not in generate_name_variations("AB Inc")
    assert generate_name_variations("") == []


def test_exclusion_list_whitelists_subject_and_platforms():
    print("\n=== Exclusion list ===")

    exclusion_list = _exclusion_list()
    print(f"   names: {sorted(exclusion_list.names)}")
    print(f"   base domains: {sorted(exclusion_list.base_domains)}")

    assert "brightwave" not in exclusion_list.names
    assert "brightwave.io" not in exclusion_list.domains
    assert exclusion_list.subject_domain == "brightwave.io"

    # Platform domain skipped, competitor name kept
    assert "youtube.com" not in exclusion_list.domains
    assert "tubecast co" in exclusion_list.names

    assert "acmeanalytics.com" in exclusion_list.domains
    assert "northstar.io" in exclusion_list.domains
    assert "acmeanalytics.net" in exclusion_list.domains
    assert {"acmeanalytics", "northstar"} <= set(exclusion_list.base_domains)
    print("✓ Subject and platforms whitelisted")


def test_domain_matching():
    exclusion_list = _exclusion_list()

    assert is_competitor_domain("acmeanalytics.com", exclusion_list)
    assert is_competitor_domain("https://blog.acmeanalytics.com/post", exclusion_list)
    assert is_competitor_domain("acmeanalytics.co.uk", exclusion_list)
    assert is_competitor_domain("northstar.ai", exclusion_list)

    assert not is_competitor_domain("brightwave.io", exclusion_list)
    assert not is_competitor_domain("docs.brightwave.io", exclusion_list)
    assert not is_competitor_domain("reddit.com", exclusion_list)
    assert not is_competitor_domain("owned-site", exclusion_list)
    assert not is_competitor_domain("techradar.com", exclusion_list)


def test_platform_detection_is_exact():
    assert is_platform_domain("youtube.com")
    assert is_platform_domain("m.youtube.com")
    assert is_platform_domain("https://www.reddit.com/r/analytics")
    assert not is_platform_domain("box.com")
    assert not is_platform_domain("notreddit.com")


def test_filter_removes_competitor_sources():
    print("\n=== Safety filter ===")

    exclusion_list = _exclusion_list()
    candidates = [
        _candidate("techradar.com"),
        _candidate("acmeanalytics.com"),
        _candidate("https://www.northstar.io/pricing"),
        _candidate("owned-site"),
        _candidate("northstar-reviews.net"),
        _candidate("techradar.com", focus_sources="techradar.com, acmeanalytics.com"),
        _candidate("brightwave.io"),
    ]

    result = filter_competitor_candidates(candidates, exclusion_list)
    kept_sources = [c.citation_source for c in result.kept]
    print(f"   kept: {kept_sources}")

    assert kept_sources == ["techradar.com", "owned-site", "brightwave.io"]
    assert len(result.removed) == 4
    assert all(r.stage == "safety" for r in result.removed)
    assert all(r.reasons for r in result.removed)
    assert "competitor domain" in result.removed[0].reasons[0]
    assert "focus source" in result.removed[3].reasons[0]
    print("✓ Competitor-targeting candidates removed")


def test_text_mentions_depend_on_mode():
    exclusion_list = _exclusion_list()
    comparison = _candidate(
        "forbes.com",
        action="Publish a Brightwave vs Acme Analytics comparison on forbes.com",
    )
    own_story = _candidate("forbes.com", action="Pitch a Brightwave customer story to forbes.com editors")

    lenient = filter_competitor_candidates([comparison, own_story], exclusion_list, allow_text_mentions=True)
    assert len(lenient.kept) == 2

    strict = filter_competitor_candidates([comparison, own_story], exclusion_list, allow_text_mentions=False)
    assert [c.action for c in strict.kept] == [own_story.action]
    assert "mentions competitor" in strict.removed[0].reasons[0]


def test_competitor_citation_is_always_removed():
    exclusion_list = build_exclusion_list(
        [{"name": "Competitor", "domain": "competitor.com"}],
        subject_domain="brand.com",
        subject_name="Brand",
    )
    candidate = _candidate("competitor.com")

    for allow_text_mentions in (True, False):
        result = filter_competitor_candidates([candidate], exclusion_list, allow_text_mentions=allow_text_mentions)
        assert result.kept == []
        assert len(result.removed) == 1


def test_allowed_sources():
    exclusion_list = _exclusion_list()
    candidates = [
        _candidate("techradar.com"),
        _candidate("capterra.com"),
        _candidate("directories"),
    ]

    result = filter_competitor_candidates(candidates, exclusion_list, allowed_sources=["techradar.com", "www.forbes.com"])

    assert [c.citation_source for c in result.kept] == ["techradar.com", "directories"]
    assert "not in the available source list" in result.removed[0].reasons[0]


def test_filter_competitor_sources():
    exclusion_list = _exclusion_list()
    sources = [
        SourceMetric(domain="techradar.com"),
        SourceMetric(domain="acmeanalytics.com"),
        SourceMetric(domain="reddit.com"),
        SourceMetric(domain="northstar.io"),
    ]

    kept = filter_competitor_sources(sources, exclusion_list)

    assert [s.domain for s in kept] == ["techradar.com", "reddit.com"]


if __name__ == "__main__":
    test_name_variations()
    test_exclusion_list_whitelists_subject_and_platforms()
    test_domain_matching()
    test_platform_detection_is_exact()
    test_filter_removes_competitor_sources()
    test_text_mentions_depend_on_mode()
    test_competitor_citation_is_always_removed()
    test_allowed_sources()
    test_filter_competitor_sources()
