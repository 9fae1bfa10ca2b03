"""
Data maturity classification.

Labels a subject by how much reliable telemetry exists for it. The label
decides whether recommendations come from a direct generation call or from
the cold-start template set.
"""

import logging

from config.settings import settings
from models.schemas import TelemetrySnapshot, Maturity
from utils.helpers import normalize_percent

logger = logging.getLogger(__name__)


def classify_maturity(snapshot: TelemetrySnapshot) -> Maturity:
    """
    Classify a snapshot as cold_start, low_data or normal.

    A metric that is missing from the snapshot never triggers its rule.

    Args:
        snapshot: Aggregated telemetry for the subject

    Returns:
        "cold_start", "low_data" or "normal"
    """
    visibility = normalize_percent(snapshot.visibility)
    share_of_voice = normalize_percent(snapshot.share_of_voice)
    total_citations = snapshot.total_citations
    unique_domains = len({source.domain for source in snapshot.sources})

    is_cold_start = (
        total_citations < settings.COLD_START_MIN_CITATIONS
        or unique_domains < settings.COLD_START_MIN_DOMAINS
        or (visibility is not None and visibility < settings.COLD_START_MIN_VISIBILITY)
        or (share_of_voice is not None and share_of_voice < settings.COLD_START_MIN_SOA)
    )

    if is_cold_start:
        maturity = "cold_start"
    elif total_citations < settings.LOW_DATA_MIN_CITATIONS or (
        visibility is not None and visibility < settings.LOW_DATA_MIN_VISIBILITY
    ):
        maturity = "low_data"
    else:
        maturity = "normal"

    logger.debug(
        f"Maturity for {snapshot.subject_id}: {maturity} "
        f"(citations={total_citations}, domains={unique_domains}, "
        f"visibility={visibility}, sov={share_of_voice})"
    )
    return maturity
