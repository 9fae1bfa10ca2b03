"""
Redis-backed Telemetry Store.

Records are stored as JSON documents:

    {prefix}:subject:{subject_id}                       -> subject record
    {prefix}:metrics:{subject_id}                       -> list of metric rows
    {prefix}:competitors:{subject_id}                   -> list of competitor records
    {prefix}:competitor_metrics:{subject_id}:{comp_id}  -> list of metric rows
    {prefix}:sources:{subject_id}                       -> list of source rows
    {prefix}:qualitative:{subject_id}                   -> list of qualitative entries
    {prefix}:audit:{subject_id}                         -> latest domain audit
    {prefix}:generation:{generation_id}                 -> generation record
    {prefix}:active_generation:{subject_id}             -> active generation id
    {prefix}:generation_candidates:{generation_id}      -> list of candidate ids
    {prefix}:candidate:{candidate_id}                   -> candidate row
"""

import json
import logging
from typing import Any, Dict, List, Optional

import redis

from config.database import get_redis_client
from config.settings import settings
from models.schemas import Candidate, Generation
from storage.telemetry_store import (
    PersistenceError,
    SubjectNotFoundError,
    TelemetryStore,
    TelemetryStoreError,
    in_window,
    rank_sources,
)
from utils.cache import get_cache_key
from utils.helpers import generate_id

logger = logging.getLogger(__name__)


class RedisTelemetryStore(TelemetryStore):
    """Telemetry Store persisted as JSON documents in Redis."""

    def __init__(self, client: Optional[redis.Redis] = None, prefix: Optional[str] = None):
        self._client = client
        self.prefix = prefix or settings.REDIS_KEY_PREFIX

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            try:
                self._client = get_redis_client()
            except ConnectionError as e:
                raise TelemetryStoreError(str(e)) from e
        return self._client

    def _key(self, *parts) -> str:
        return get_cache_key(self.prefix, *parts)

    def _read_json(self, key: str) -> Any:
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            raise TelemetryStoreError(f"Redis read failed for {key}: {e}") from e
        return json.loads(raw) if raw else None

    def _read_list(self, key: str) -> List[Dict[str, Any]]:
        try:
            items = self.client.lrange(key, 0, -1)
        except redis.RedisError as e:
            raise TelemetryStoreError(f"Redis read failed for {key}: {e}") from e
        return [json.loads(item) for item in items]

    def _write(self, operation: str, func, *args):
        try:
            return func(*args)
        except redis.RedisError as e:
            raise PersistenceError(f"Redis {operation} failed: {e}") from e

    # Seeding (used by scripts and fixtures)

    def put_subject(self, subject: Dict[str, Any]) -> None:
        self._write("write", self.client.set, self._key("subject", subject["id"]), json.dumps(subject))

    def append_rows(self, kind: str, subject_id: str, rows: List[Dict[str, Any]], *extra) -> None:
        if rows:
            payload = [json.dumps(row, default=str) for row in rows]
            self._write("write", self.client.rpush, self._key(kind, subject_id, *extra), *payload)

    def put_domain_audit(self, subject_id: str, audit: Dict[str, Any]) -> None:
        self._write("write", self.client.set, self._key("audit", subject_id), json.dumps(audit, default=str))

    # Reads

    def get_subject(self, subject_id: str) -> Dict[str, Any]:
        subject = self._read_json(self._key("subject", subject_id))
        if subject is None:
            raise SubjectNotFoundError(f"Subject not found: {subject_id}")
        return subject

    def fetch_metrics(self, subject_id, start, end):
        return [r for r in self._read_list(self._key("metrics", subject_id)) if in_window(r, start, end)]

    def fetch_competitors(self, subject_id, limit=10):
        return self._read_list(self._key("competitors", subject_id))[:limit]

    def fetch_competitor_metrics(self, subject_id, competitor_id, start, end):
        rows = self._read_list(self._key("competitor_metrics", subject_id, competitor_id))
        return [r for r in rows if in_window(r, start, end)]

    def fetch_top_sources(self, subject_id, start, end, limit=10):
        rows = [r for r in self._read_list(self._key("sources", subject_id)) if in_window(r, start, end)]
        return rank_sources(rows, limit)

    def fetch_qualitative_entries(self, subject_id, start, end):
        return [e for e in self._read_list(self._key("qualitative", subject_id)) if in_window(e, start, end)]

    def fetch_domain_audit(self, subject_id):
        return self._read_json(self._key("audit", subject_id))

    # Writes

    def insert_generation(self, generation: Generation) -> str:
        generation_id = generation.id or generate_id()
        record = generation.model_dump(mode="json", exclude={"candidates"})
        record.update({"id": generation_id, "status": "pending"})
        self._write("insert_generation", self.client.set, self._key("generation", generation_id), json.dumps(record))
        return generation_id

    def activate_generation(self, generation_id: str) -> None:
        key = self._key("generation", generation_id)
        record = self._read_json(key)
        if record is None:
            raise PersistenceError(f"Unknown generation: {generation_id}")
        record["status"] = "completed"

        active_key = self._key("active_generation", record["subject_id"])
        previous_id = self._read_json_id(active_key)

        pipe = self.client.pipeline()
        pipe.set(key, json.dumps(record))
        pipe.set(active_key, generation_id)
        self._write("activate_generation", pipe.execute)

        if previous_id and previous_id != generation_id:
            self.update_generation_status(previous_id, "superseded")

    def _read_json_id(self, key: str) -> Optional[str]:
        try:
            return self.client.get(key)
        except redis.RedisError as e:
            raise PersistenceError(f"Redis read failed for {key}: {e}") from e

    def insert_candidates(self, generation_id: str, candidates: List[Candidate]) -> List[str]:
        ids = [generate_id() for _ in candidates]
        pipe = self.client.pipeline()
        for display_order, (candidate_id, candidate) in enumerate(zip(ids, candidates)):
            row = candidate.model_dump(mode="json", exclude={"id"})
            row.update({
                "id": candidate_id,
                "generation_id": generation_id,
                "display_order": display_order,
                "is_approved": False,
                "is_content_generated": False,
                "is_completed": False,
            })
            pipe.set(self._key("candidate", candidate_id), json.dumps(row))
        if ids:
            pipe.rpush(self._key("generation_candidates", generation_id), *ids)
        self._write("insert_candidates", pipe.execute)
        return ids

    def update_generation_status(self, generation_id: str, status: str) -> None:
        key = self._key("generation", generation_id)
        record = self._read_json(key)
        if record is None:
            raise PersistenceError(f"Unknown generation: {generation_id}")
        record["status"] = status
        self._write("update_generation_status", self.client.set, key, json.dumps(record))

    def update_candidate_status(self, candidate_id: str, status: str) -> None:
        key = self._key("candidate", candidate_id)
        row = self._read_json(key)
        if row is None:
            raise PersistenceError(f"Unknown candidate: {candidate_id}")
        row["status"] = status
        row["is_approved"] = status in ("approved", "content_generated", "completed")
        row["is_content_generated"] = status in ("content_generated", "completed")
        row["is_completed"] = status == "completed"
        self._write("update_candidate_status", self.client.set, key, json.dumps(row))

    def get_latest_generation(self, subject_id: str) -> Optional[Dict[str, Any]]:
        generation_id = self._read_json_id(self._key("active_generation", subject_id))
        if not generation_id:
            return None
        generation = self._read_json(self._key("generation", generation_id))
        if generation is None or generation.get("status") != "completed":
            return None
        try:
            candidate_ids = self.client.lrange(self._key("generation_candidates", generation_id), 0, -1)
        except redis.RedisError as e:
            raise TelemetryStoreError(f"Redis read failed: {e}") from e
        rows = [self._read_json(self._key("candidate", cid)) for cid in candidate_ids]
        generation["candidates"] = [row for row in rows if row]
        return generation
