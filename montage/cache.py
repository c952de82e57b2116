"""
Result cache keyed by a stable fingerprint of the engine inputs.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections import OrderedDict
from typing import Iterable, Optional, Tuple

import structlog
from prometheus_client import Counter

from .config import EngineConfig
from .models import EditDecisionResult

logger = structlog.get_logger(__name__)

CACHE_EVENTS = Counter(
    'montage_cache_events_total',
    'Edit cache lookups and writes',
    ['event']
)


def fingerprint(audio_id: str, video_ids: Iterable[str], config: EngineConfig) -> str:
    """SHA-256 of (audio id, sorted video ids, full config) as canonical JSON"""
    payload = {
        "audio_id": audio_id,
        "video_ids": sorted(video_ids),
        "config": config.model_dump(mode="json"),
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def derived_fingerprint(base: str, config: EngineConfig) -> str:
    """Fingerprint of an edit derived from ``base`` under a new config"""
    payload = {"base": base, "config": config.model_dump(mode="json")}
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class EditCache:
    """
    LRU cache of EditDecisionResults with optional TTL.

    All reads and writes hold one lock, so concurrent callers computing the
    same fingerprint see a single consistent entry.
    """

    def __init__(self, max_entries: int = 64, ttl_seconds: Optional[float] = None):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._entries: "OrderedDict[str, Tuple[float, EditDecisionResult]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[EditDecisionResult]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                CACHE_EVENTS.labels(event="miss").inc()
                return None
            stored_at, result = entry
            if self.ttl_seconds is not None and time.monotonic() - stored_at > self.ttl_seconds:
                del self._entries[key]
                CACHE_EVENTS.labels(event="expired").inc()
                return None
            self._entries.move_to_end(key)
            CACHE_EVENTS.labels(event="hit").inc()
            return result

    def put(self, key: str, result: EditDecisionResult) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic(), result)
            self._entries.move_to_end(key)
            CACHE_EVENTS.labels(event="put").inc()
            self._trim()

    def _trim(self) -> None:
        """Evict least recently used entries beyond max_entries"""
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            CACHE_EVENTS.labels(event="evict").inc()
            logger.debug("cache_evicted", fingerprint=evicted[:12])

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("cache_cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries
