"""
Competitor exclusion and safety filtering.

Builds a normalized exclusion list from a subject's known competitors and
removes recommendation candidates that would send the subject to publish on
(or promote) a competitor. The subject's own name and domain are whitelisted
and always consulted before anything is excluded.
"""

import logging
import re
from typing import Iterable, List, Optional, Set, Union

from models.schemas import (
    Candidate,
    CompetitorSummary,
    ExclusionList,
    FilterResult,
    RemovedCandidate,
    SourceMetric,
)
from utils.helpers import (
    COMMON_TLDS,
    extract_base_domain,
    normalize_domain,
    normalize_name,
)

logger = logging.getLogger(__name__)

# Content platforms where a subject publishes; never treated as competitors
PLATFORM_DOMAINS = {
    "reddit.com", "youtube.com", "twitter.com", "x.com", "facebook.com",
    "linkedin.com", "instagram.com", "tiktok.com", "quora.com", "medium.com",
    "wordpress.com", "blogger.com", "wikipedia.org", "stackoverflow.com", "github.com",
}
PLATFORM_NAMES = {domain.split(".")[0] for domain in PLATFORM_DOMAINS}

# Pseudo-sources that point at the subject's own properties
RESERVED_SOURCES = {"owned-site", "directories"}

LEGAL_SUFFIX_RE = re.compile(r"\s+(inc|llc|ltd|corp|corporation|company|co|limited)$")
MIN_MATCH_LENGTH = 3

TEXT_FIELDS = ("action", "reason", "explanation", "content_focus", "expected_boost")

CompetitorInput = Union[CompetitorSummary, dict]


def generate_name_variations(name: str) -> List[str]:
    """
    Generate normalized variations of a competitor name.

    Includes the normalized name, the legal-suffix-stripped form (kept only
    when at least 3 characters long) and hyphen, space and concatenated
    separator variants of each.

    Example:
        >>> generate_name_variations("Acme Data Corp")
        ['acme data corp', 'acme-data-corp', 'acmedatacorp', 'acme data', 'acme-data', 'acmedata']
    """
    normalized = normalize_name(name)
    if not normalized:
        return []

    bases = [normalized]
    stripped = LEGAL_SUFFIX_RE.sub("", normalized).strip()
    if stripped and stripped != normalized and len(stripped) >= MIN_MATCH_LENGTH:
        bases.append(stripped)

    variations = []
    for base in bases:
        words = re.split(r"[\s\-_]+", base)
        for variant in (base, "-".join(words), " ".join(words), "".join(words)):
            if len(variant) >= MIN_MATCH_LENGTH and variant not in variations:
                variations.append(variant)

    return variations


def is_platform_domain(domain: str) -> bool:
    """Return True for well-known content platforms (including their subdomains)."""
    normalized = normalize_domain(domain)
    if not normalized:
        return False
    if normalized in PLATFORM_DOMAINS or normalized in PLATFORM_NAMES:
        return True
    return any(normalized.endswith("." + platform) for platform in PLATFORM_DOMAINS)


def _competitor_fields(competitor: CompetitorInput):
    if isinstance(competitor, dict):
        name = competitor.get("name") or competitor.get("competitor_name") or ""
        domain = (
            competitor.get("domain")
            or competitor.get("competitor_url")
            or (competitor.get("metadata") or {}).get("domain")
        )
        return name, domain
    return competitor.name, competitor.domain


def build_exclusion_list(
    competitors: Iterable[CompetitorInput],
    subject_domain: Optional[str] = None,
    subject_name: Optional[str] = None
) -> ExclusionList:
    """
    Build the exclusion list for one generation run.

    Args:
        competitors: Competitor summaries (or dicts with name/domain)
        subject_domain: Subject's own domain (whitelisted)
        subject_name: Subject's own name (whitelisted)

    Returns:
        ExclusionList with normalized names, domains, name variations and
        base domains for TLD-variation matching
    """
    names: Set[str] = set()
    domains: Set[str] = set()
    name_variations: Set[str] = set()
    base_domains: Set[str] = set()

    whitelist_domain = normalize_domain(subject_domain) or None
    whitelist_name = normalize_name(subject_name) or None
    subject_variations = set(generate_name_variations(subject_name)) if subject_name else set()

    for competitor in competitors:
        name, raw_domain = _competitor_fields(competitor)

        normalized_name = normalize_name(name)
        if normalized_name:
            if normalized_name == whitelist_name:
                logger.info(f"✅ Skipping subject name '{normalized_name}' from exclusion list")
            else:
                names.add(normalized_name)
                for variation in generate_name_variations(name):
                    if variation not in subject_variations:
                        name_variations.add(variation)

        domain = normalize_domain(raw_domain)
        if not domain:
            if normalized_name:
                logger.debug(f"No domain for competitor '{name}', excluding by name only")
            continue

        if is_platform_domain(domain):
            logger.warning(f"⚠️  Skipping platform domain '{domain}' for competitor '{name}' (name still excluded)")
            continue

        if whitelist_domain and domain == whitelist_domain:
            logger.info(f"✅ Skipping subject domain '{domain}' from exclusion list")
            continue

        domains.add(domain)

        base = extract_base_domain(domain)
        if base and base != domain and len(base) >= MIN_MATCH_LENGTH:
            base_domains.add(base)
            for tld in COMMON_TLDS:
                variation = f"{base}.{tld}"
                if variation != whitelist_domain and not is_platform_domain(variation):
                    domains.add(variation)

    logger.info(
        f"🛡️  Exclusion list built: {len(names)} names, {len(name_variations)} variations, "
        f"{len(domains)} domains, {len(base_domains)} base domains"
    )

    return ExclusionList(
        names=frozenset(names),
        domains=frozenset(domains),
        name_variations=frozenset(name_variations),
        base_domains=frozenset(base_domains),
        subject_name=whitelist_name,
        subject_domain=whitelist_domain
    )


def is_whitelisted(value: str, exclusion_list: ExclusionList) -> bool:
    """Return True if a source value refers to the subject itself."""
    domain = normalize_domain(value)
    if not domain:
        return False

    subject_domain = exclusion_list.subject_domain
    if subject_domain and (domain == subject_domain or domain.endswith("." + subject_domain)):
        return True

    subject_name = exclusion_list.subject_name
    if subject_name:
        compact = subject_name.replace(" ", "")
        if domain in (subject_name, compact) or extract_base_domain(domain) == compact:
            return True

    return False


def is_competitor_domain(domain: str, exclusion_list: ExclusionList) -> bool:
    """
    Check whether a domain belongs to a competitor.

    Order: subject whitelist, platform whitelist, exact match, base-domain
    (TLD variation) match, then substring match in either direction.
    """
    normalized = normalize_domain(domain)
    if not normalized or normalized in RESERVED_SOURCES:
        return False

    if is_whitelisted(normalized, exclusion_list):
        return False

    if is_platform_domain(normalized):
        return False

    if normalized in exclusion_list.domains:
        return True

    base = extract_base_domain(normalized)
    if base and len(base) >= MIN_MATCH_LENGTH and base in exclusion_list.base_domains:
        return True

    for competitor_domain in exclusion_list.domains:
        if len(competitor_domain) < MIN_MATCH_LENGTH:
            continue
        if competitor_domain in normalized or normalized in competitor_domain:
            return True

    return False


def matching_competitor_name(value: str, exclusion_list: ExclusionList) -> Optional[str]:
    """
    Return the competitor name or variation a source value fuzzy-matches.

    Both the full value and its base label are compared against every name
    and variation of at least 3 characters, as substrings in either direction.
    """
    normalized = normalize_domain(value)
    if not normalized or normalized in RESERVED_SOURCES:
        return None
    if is_whitelisted(normalized, exclusion_list) or is_platform_domain(normalized):
        return None

    probes = {normalized}
    base = extract_base_domain(normalized)
    if base:
        probes.add(base)
    probes = {p for p in probes if len(p) >= MIN_MATCH_LENGTH}

    for name in sorted(exclusion_list.names | exclusion_list.name_variations):
        if len(name) < MIN_MATCH_LENGTH:
            continue
        for probe in probes:
            if name in probe or probe in name:
                return name

    return None


def _mask_subject(text: str, exclusion_list: ExclusionList) -> str:
    masked = text
    for subject_str in (exclusion_list.subject_name, exclusion_list.subject_domain):
        if subject_str and len(subject_str) >= MIN_MATCH_LENGTH:
            masked = masked.replace(subject_str, " [subject] ")
    return masked


def find_competitor_reference(text: Optional[str], exclusion_list: ExclusionList) -> Optional[str]:
    """
    Return the first competitor name, variation or domain mentioned in free text.

    The subject's own name and domain are masked out first so a competitor
    name that is a substring of the subject's name never matches.
    """
    if not text:
        return None

    lowered = " ".join(text.lower().split())
    masked = _mask_subject(lowered, exclusion_list)
    masked_names = _mask_subject(normalize_name(text), exclusion_list)

    for name in sorted(exclusion_list.names | exclusion_list.name_variations):
        if len(name) < MIN_MATCH_LENGTH:
            continue
        if re.search(r"(?<![a-z0-9])" + re.escape(name) + r"(?![a-z0-9])", masked_names):
            return name

    for domain in sorted(exclusion_list.domains):
        if "." in domain and domain in masked:
            return domain

    return None


def _split_sources(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in re.split(r"[,;|]", value) if part.strip()]


def check_candidate(
    candidate: Candidate,
    exclusion_list: ExclusionList,
    allow_text_mentions: bool = True,
    allowed_sources: Optional[Set[str]] = None
) -> List[str]:
    """
    Return every safety reason a candidate fails (empty list means safe).
    """
    reasons = []
    citation = candidate.citation_source or ""
    normalized_citation = normalize_domain(citation)

    if normalized_citation and not is_whitelisted(normalized_citation, exclusion_list):
        if is_competitor_domain(normalized_citation, exclusion_list):
            reasons.append(f"citation source '{normalized_citation}' is a competitor domain")
        else:
            matched = matching_competitor_name(citation, exclusion_list)
            if matched:
                reasons.append(f"citation source '{normalized_citation}' matches competitor name '{matched}'")

    if (
        allowed_sources is not None
        and normalized_citation
        and normalized_citation not in RESERVED_SOURCES
        and normalized_citation not in allowed_sources
        and not is_whitelisted(normalized_citation, exclusion_list)
    ):
        reasons.append(f"citation source '{normalized_citation}' is not in the available source list")

    for focus_source in _split_sources(candidate.focus_sources):
        normalized_focus = normalize_domain(focus_source)
        if normalized_focus == normalized_citation:
            continue
        if is_competitor_domain(focus_source, exclusion_list) or matching_competitor_name(focus_source, exclusion_list):
            reasons.append(f"focus source '{normalized_focus}' targets a competitor")

    if not allow_text_mentions:
        for field in TEXT_FIELDS:
            mention = find_competitor_reference(getattr(candidate, field), exclusion_list)
            if mention:
                reasons.append(f"{field} mentions competitor '{mention}'")

    return reasons


def filter_competitor_candidates(
    candidates: List[Candidate],
    exclusion_list: ExclusionList,
    allow_text_mentions: bool = True,
    allowed_sources: Optional[Iterable[str]] = None,
    stage: str = "safety"
) -> FilterResult:
    """
    Remove candidates that target or promote a competitor.

    Args:
        candidates: Candidates to check, in order
        exclusion_list: Exclusion list for this run
        allow_text_mentions: If True, competitor names may appear in rationale
            text for comparative framing; only sources are checked
        allowed_sources: If given, citation sources must be one of these
            domains (or a reserved pseudo-source)
        stage: Stage label recorded on removed candidates

    Returns:
        FilterResult with kept candidates (original order) and removed ones
    """
    allowed = {normalize_domain(s) for s in allowed_sources} if allowed_sources is not None else None
    result = FilterResult()

    for candidate in candidates:
        reasons = check_candidate(candidate, exclusion_list, allow_text_mentions, allowed)
        if reasons:
            result.removed.append(RemovedCandidate(candidate=candidate, reasons=reasons, stage=stage))
            logger.warning(f"🚫 [{stage}] Removed '{candidate.action[:60]}': {'; '.join(reasons)}")
        else:
            result.kept.append(candidate)

    if result.removed:
        logger.info(f"🛡️  [{stage}] Kept {len(result.kept)}/{len(candidates)} candidates")

    return result


def filter_competitor_sources(
    sources: List[SourceMetric],
    exclusion_list: ExclusionList
) -> List[SourceMetric]:
    """Drop competitor-owned domains from a source list."""
    kept = []
    for source in sources:
        if is_competitor_domain(source.domain, exclusion_list) or matching_competitor_name(source.domain, exclusion_list):
            logger.info(f"🚫 Removed competitor source '{source.domain}' from available sources")
            continue
        kept.append(source)
    return kept
