"""
Utility functions and helpers for the Brand Recommendation Engine.

This module provides common normalization helpers shared by the telemetry
aggregator, the exclusion list builder and the safety filter, plus
identifier generation for persisted records.
"""

import re
import uuid
from typing import Optional


COMMON_TLDS = (
    "com", "net", "org", "io", "co", "ai", "app", "dev", "us", "uk", "in", "de", "fr", "ca", "au"
)

_PUNCTUATION_RE = re.compile(r"[.,;:!?'\"()]")
_WHITESPACE_RE = re.compile(r"\s+")


def generate_id() -> str:
    """
    Generate a unique record identifier.

    Returns:
        str: Unique ID as a string in UUID4 format

    Example:
        >>> generate_id()
        '550e8400-e29b-41d4-a716-446655440000'
    """
    return str(uuid.uuid4())


def normalize_domain(value: Optional[str]) -> str:
    """
    Normalize a URL or domain to a bare lowercase host.

    Strips the protocol, a leading ``www.``, any path, query string,
    fragment and port.

    Args:
        value: URL or domain string

    Returns:
        str: Normalized domain, or empty string if None

    Example:
        >>> normalize_domain("https://www.HelloFresh.com/about?x=1")
        'hellofresh.com'
    """
    if not value:
        return ""

    domain = value.strip().lower()
    domain = re.sub(r"^[a-z][a-z0-9+.-]*://", "", domain)

    if domain.startswith("www."):
        domain = domain[4:]

    domain = re.split(r"[/?#]", domain, maxsplit=1)[0]
    domain = domain.split(":")[0]

    return domain.strip(".")


def extract_base_domain(domain: str) -> str:
    """
    Return the registrable label of a domain without its TLD.

    Example:
        >>> extract_base_domain("shop.acme.co.uk")
        'acme'
        >>> extract_base_domain("acme.com")
        'acme'
    """
    parts = [p for p in normalize_domain(domain).split(".") if p]
    if not parts:
        return ""
    if len(parts) == 1:
        return parts[0]

    # Two-part public suffixes such as co.uk / com.au
    if len(parts) >= 3 and parts[-2] in ("co", "com", "org", "net", "ac", "gov") and len(parts[-1]) == 2:
        return parts[-3]

    return parts[-2]


def normalize_name(name: Optional[str]) -> str:
    """
    Normalize an entity name for matching.

    Lowercases, strips punctuation and collapses whitespace.

    Example:
        >>> normalize_name("  Acme,  Inc. ")
        'acme inc'
    """
    if not name:
        return ""
    cleaned = _PUNCTUATION_RE.sub("", name.lower())
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def normalize_percent(value: Optional[float]) -> Optional[float]:
    """
    Normalize a percentage that may be expressed as 0-1 or 0-100.

    Values at or below 1 are treated as fractions and scaled by 100.
    The result is clamped to 0-100 and rounded to one decimal.

    Example:
        >>> normalize_percent(0.12)
        12.0
        >>> normalize_percent(42)
        42.0
    """
    if value is None:
        return None
    scaled = value * 100 if value <= 1 else value
    return max(0.0, min(100.0, round(scaled, 1)))


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate text to a maximum length with optional suffix.

    Useful for log previews of raw generation output.

    Example:
        >>> truncate_text("This is a very long text", max_length=10)
        'This is...'
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix
