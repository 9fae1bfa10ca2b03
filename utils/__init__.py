# Utilities package

from .helpers import (
    generate_id,
    normalize_domain,
    extract_base_domain,
    normalize_name,
    normalize_percent,
    truncate_text
)

__all__ = [
    "generate_id",
    "normalize_domain",
    "extract_base_domain",
    "normalize_name",
    "normalize_percent",
    "truncate_text"
]
