"""In-memory cache for thread analyses."""

import dataclasses
import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from discubot.models.parsed import AnalysisResult, DiscussionThread

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600


@dataclass
class CacheEntry:
    result: AnalysisResult
    cached_at: float
    expires_at: float


class AnalysisCache:
    """Process-local cache of analysis results.

    Keys combine the thread id with a SHA-256 hash of every message in the
    thread and of the analysis options (prompts, domains, task cap), so an
    edited thread or a reconfigured flow misses the cache. Entries expire
    after the TTL.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache.

        Args:
            ttl_seconds: Time-to-live for entries (default: 1 hour)
            clock: Time source, replaceable in tests
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @staticmethod
    def compute_key(
        thread: DiscussionThread, options: Optional[Mapping[str, Any]] = None
    ) -> str:
        content = "|".join(message.content or "" for message in thread.messages)
        if options:
            content += "|" + json.dumps(options, sort_keys=True, default=str)
        digest = hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
        return f"thread_{thread.id}_{digest}"

    def get(
        self, thread: DiscussionThread, options: Optional[Mapping[str, Any]] = None
    ) -> Optional[AnalysisResult]:
        """Cached analysis for a thread, marked cached=True, or None."""
        key = self.compute_key(thread, options)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Cache miss: {key}")
                return None
            if self._clock() >= entry.expires_at:
                logger.debug(f"Cache expired: {key}")
                del self._entries[key]
                return None

        logger.debug(f"Cache hit: {key}")
        return dataclasses.replace(entry.result, cached=True)

    def set(
        self,
        thread: DiscussionThread,
        result: AnalysisResult,
        options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        key = self.compute_key(thread, options)
        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(
                result=result, cached_at=now, expires_at=now + self.ttl_seconds
            )
        logger.debug(f"Cached analysis: {key}")

    def clear(self) -> int:
        """Drop every entry. Returns how many were removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.debug(f"Cleared {count} cached analyses")
        return count

    def cleanup_expired(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now >= e.expires_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired cache entries")
        return len(expired)

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            valid = sum(1 for e in self._entries.values() if now < e.expires_at)
            total = len(self._entries)
        return {
            "total_entries": total,
            "valid_entries": valid,
            "expired_entries": total - valid,
            "ttl_seconds": self.ttl_seconds,
        }
