"""
Telemetry Store interface and in-memory implementation.

The recommendation pipeline reads subject telemetry and writes generations
exclusively through this interface. The in-memory store backs local
development and tests; the Redis store in ``storage.redis_store`` backs
deployed environments.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from models.schemas import Candidate, Generation
from utils.helpers import generate_id

logger = logging.getLogger(__name__)


class TelemetryStoreError(Exception):
    """The telemetry store could not be read."""


class SubjectNotFoundError(TelemetryStoreError):
    """No subject record exists for the requested id."""


class PersistenceError(TelemetryStoreError):
    """A generation or its candidates could not be written."""


def to_datetime(value: Any) -> Optional[datetime]:
    """Coerce a date, datetime or ISO string to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported date value: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def in_window(row: Dict[str, Any], start: datetime, end: datetime) -> bool:
    """Rows without a date are treated as belonging to every window."""
    row_date = to_datetime(row.get("date"))
    if row_date is None:
        return True
    return start <= row_date < end


def rank_sources(rows: List[Dict[str, Any]], limit: int) -> List[Dict[str, Any]]:
    ordered = sorted(
        rows,
        key=lambda r: (r.get("impact_score") or 0, r.get("mention_rate") or 0),
        reverse=True
    )
    return ordered[:limit]


class TelemetryStore(ABC):
    """Read/write contract used by the recommendation pipeline."""

    # Reads

    @abstractmethod
    def get_subject(self, subject_id: str) -> Dict[str, Any]:
        """Return the subject record or raise SubjectNotFoundError."""

    @abstractmethod
    def fetch_metrics(self, subject_id: str, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Return scalar metric rows (visibility, share_of_voice, sentiment) in [start, end)."""

    @abstractmethod
    def fetch_competitors(self, subject_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Return up to ``limit`` competitor records (id, name, domain)."""

    @abstractmethod
    def fetch_competitor_metrics(
        self, subject_id: str, competitor_id: str, start: datetime, end: datetime
    ) -> List[Dict[str, Any]]:
        """Return scalar metric rows for one competitor in [start, end)."""

    @abstractmethod
    def fetch_top_sources(
        self, subject_id: str, start: datetime, end: datetime, limit: int = 10
    ) -> List[Dict[str, Any]]:
        """Return up to ``limit`` source aggregates ordered by impact, then mention rate."""

    @abstractmethod
    def fetch_qualitative_entries(self, subject_id: str, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Return cached qualitative entries (keywords, narrative, quotes)."""

    @abstractmethod
    def fetch_domain_audit(self, subject_id: str) -> Optional[Dict[str, Any]]:
        """Return the latest domain-readiness audit, if any."""

    # Writes

    @abstractmethod
    def insert_generation(self, generation: Generation) -> str:
        """Insert a generation as ``pending``. Returns its id."""

    @abstractmethod
    def activate_generation(self, generation_id: str) -> None:
        """Mark a generation completed and supersede the subject's earlier completed ones."""

    @abstractmethod
    def insert_candidates(self, generation_id: str, candidates: List[Candidate]) -> List[str]:
        """Insert candidate rows in order. Returns ids in the same order."""

    @abstractmethod
    def update_generation_status(self, generation_id: str, status: str) -> None:
        ...

    @abstractmethod
    def update_candidate_status(self, candidate_id: str, status: str) -> None:
        ...

    @abstractmethod
    def get_latest_generation(self, subject_id: str) -> Optional[Dict[str, Any]]:
        """Return the active generation with its candidate rows, if any."""


class InMemoryTelemetryStore(TelemetryStore):
    """
    Dict-backed Telemetry Store.

    Seed helpers (``add_*``) populate telemetry; reads return deep copies so
    callers can never mutate stored rows.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.subjects: Dict[str, Dict[str, Any]] = {}
        self.metrics: Dict[str, List[Dict[str, Any]]] = {}
        self.competitors: Dict[str, List[Dict[str, Any]]] = {}
        self.competitor_metrics: Dict[str, Dict[str, List[Dict[str, Any]]]] = {}
        self.sources: Dict[str, List[Dict[str, Any]]] = {}
        self.qualitative: Dict[str, List[Dict[str, Any]]] = {}
        self.audits: Dict[str, Dict[str, Any]] = {}
        self.generations: Dict[str, Dict[str, Any]] = {}
        self.candidates: Dict[str, Dict[str, Any]] = {}

    # Seeding

    def add_subject(self, subject_id: str, name: str, domain: Optional[str] = None, **fields) -> None:
        self.subjects[subject_id] = {"id": subject_id, "name": name, "domain": domain, **fields}

    def add_metrics(self, subject_id: str, rows: List[Dict[str, Any]]) -> None:
        self.metrics.setdefault(subject_id, []).extend(copy.deepcopy(rows))

    def add_competitor(
        self,
        subject_id: str,
        name: str,
        domain: Optional[str] = None,
        metrics: Optional[List[Dict[str, Any]]] = None,
        competitor_id: Optional[str] = None
    ) -> str:
        competitor_id = competitor_id or generate_id()
        self.competitors.setdefault(subject_id, []).append({"id": competitor_id, "name": name, "domain": domain})
        self.competitor_metrics.setdefault(subject_id, {})[competitor_id] = copy.deepcopy(metrics or [])
        return competitor_id

    def add_sources(self, subject_id: str, rows: List[Dict[str, Any]]) -> None:
        self.sources.setdefault(subject_id, []).extend(copy.deepcopy(rows))

    def add_qualitative(self, subject_id: str, entries: List[Dict[str, Any]]) -> None:
        self.qualitative.setdefault(subject_id, []).extend(copy.deepcopy(entries))

    def set_domain_audit(self, subject_id: str, audit: Dict[str, Any]) -> None:
        self.audits[subject_id] = copy.deepcopy(audit)

    # Reads

    def get_subject(self, subject_id: str) -> Dict[str, Any]:
        subject = self.subjects.get(subject_id)
        if subject is None:
            raise SubjectNotFoundError(f"Subject not found: {subject_id}")
        return copy.deepcopy(subject)

    def fetch_metrics(self, subject_id, start, end):
        return [copy.deepcopy(r) for r in self.metrics.get(subject_id, []) if in_window(r, start, end)]

    def fetch_competitors(self, subject_id, limit=10):
        return copy.deepcopy(self.competitors.get(subject_id, [])[:limit])

    def fetch_competitor_metrics(self, subject_id, competitor_id, start, end):
        rows = self.competitor_metrics.get(subject_id, {}).get(competitor_id, [])
        return [copy.deepcopy(r) for r in rows if in_window(r, start, end)]

    def fetch_top_sources(self, subject_id, start, end, limit=10):
        rows = [r for r in self.sources.get(subject_id, []) if in_window(r, start, end)]
        return copy.deepcopy(rank_sources(rows, limit))

    def fetch_qualitative_entries(self, subject_id, start, end):
        return [copy.deepcopy(e) for e in self.qualitative.get(subject_id, []) if in_window(e, start, end)]

    def fetch_domain_audit(self, subject_id):
        audit = self.audits.get(subject_id)
        return copy.deepcopy(audit) if audit else None

    # Writes

    def insert_generation(self, generation: Generation) -> str:
        generation_id = generation.id or generate_id()
        record = generation.model_dump(exclude={"candidates"})
        record.update({"id": generation_id, "status": "pending"})
        with self._lock:
            self.generations[generation_id] = record
        logger.debug(f"Inserted generation {generation_id} for {generation.subject_id}")
        return generation_id

    def insert_candidates(self, generation_id: str, candidates: List[Candidate]) -> List[str]:
        if generation_id not in self.generations:
            raise PersistenceError(f"Unknown generation: {generation_id}")
        ids = []
        with self._lock:
            for display_order, candidate in enumerate(candidates):
                candidate_id = generate_id()
                row = candidate.model_dump(exclude={"id"})
                row.update({
                    "id": candidate_id,
                    "generation_id": generation_id,
                    "display_order": display_order,
                    "is_approved": False,
                    "is_content_generated": False,
                    "is_completed": False,
                })
                self.candidates[candidate_id] = row
                ids.append(candidate_id)
        return ids

    def activate_generation(self, generation_id: str) -> None:
        with self._lock:
            record = self.generations.get(generation_id)
            if record is None:
                raise PersistenceError(f"Unknown generation: {generation_id}")
            for existing in self.generations.values():
                if existing["subject_id"] == record["subject_id"] and existing["status"] == "completed":
                    existing["status"] = "superseded"
            record["status"] = "completed"

    def update_generation_status(self, generation_id: str, status: str) -> None:
        if generation_id not in self.generations:
            raise PersistenceError(f"Unknown generation: {generation_id}")
        self.generations[generation_id]["status"] = status

    def update_candidate_status(self, candidate_id: str, status: str) -> None:
        row = self.candidates.get(candidate_id)
        if row is None:
            raise PersistenceError(f"Unknown candidate: {candidate_id}")
        row["status"] = status
        row["is_approved"] = status in ("approved", "content_generated", "completed")
        row["is_content_generated"] = status in ("content_generated", "completed")
        row["is_completed"] = status == "completed"

    def get_latest_generation(self, subject_id: str) -> Optional[Dict[str, Any]]:
        active = [
            g for g in self.generations.values()
            if g["subject_id"] == subject_id and g["status"] == "completed"
        ]
        if not active:
            return None
        generation = copy.deepcopy(max(active, key=lambda g: g["created_at"]))
        generation["candidates"] = sorted(
            (copy.deepcopy(c) for c in self.candidates.values() if c["generation_id"] == generation["id"]),
            key=lambda c: c["display_order"]
        )
        return generation


_store: Optional[TelemetryStore] = None


def get_telemetry_store() -> TelemetryStore:
    """Get or create the configured Telemetry Store singleton."""
    global _store
    if _store is None:
        from config.settings import settings

        if settings.TELEMETRY_STORE_BACKEND == "redis":
            from storage.redis_store import RedisTelemetryStore
            _store = RedisTelemetryStore()
        else:
            _store = InMemoryTelemetryStore()
        logger.info(f"Telemetry store initialized: {type(_store).__name__}")
    return _store
