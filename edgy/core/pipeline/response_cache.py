"""Content-addressable, thread-safe cache for LLM responses.

Keys are SHA-256 digests of the system prompt and each content part.
Text parts hash their full text; image parts hash only
``media_type:length:first 200 base64 chars`` so large screenshots are
not hashed in full.

Entries expire on read after ``ttl`` seconds; a hit bumps the entry's
hit counter without extending its lifetime. When a new key is written
at capacity, the entry with the oldest creation time is evicted first.

Usage:
    cache = ResponseCache(ttl=3600, max_entries=200)
    key = cache.make_key(system_prompt, parts)
    cached = cache.get(key)      # None on miss or expiry
    cache.set(key, response)
"""

import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence

from ..content import ContentPart, ImagePart, LLMResponse

logger = logging.getLogger(__name__)

IMAGE_FINGERPRINT_CHARS = 200


@dataclass
class CacheEntry:
    response: LLMResponse
    created_at: float
    hit_count: int = 0


class ResponseCache:
    """TTL + capacity bounded response cache guarded by a single lock.

    Attributes:
        ttl: Entry lifetime in seconds (default: 3600)
        max_entries: Capacity before eviction (default: 200)
    """

    def __init__(
        self,
        ttl: float = 3600.0,
        max_entries: int = 200,
        clock: Callable[[], float] = time.time,
    ):
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @staticmethod
    def make_key(system_prompt: str, content: Sequence[ContentPart]) -> str:
        """Digest of the prompt and content parts, in order."""
        digest = hashlib.sha256()
        digest.update(system_prompt.encode("utf-8"))
        for part in content:
            if isinstance(part, ImagePart):
                fingerprint = (
                    f"img:{part.media_type}:{len(part.data)}:"
                    f"{part.data[:IMAGE_FINGERPRINT_CHARS]}"
                )
                digest.update(fingerprint.encode("utf-8"))
            else:
                digest.update(part.text.encode("utf-8"))
        return digest.hexdigest()

    def get(self, key: str) -> Optional[LLMResponse]:
        """Return the cached response, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if self._clock() - entry.created_at > self._ttl:
                del self._entries[key]
                logger.debug(f"Response cache entry expired: {key[:12]}")
                return None

            entry.hit_count += 1
            logger.debug(f"Response cache hit: {key[:12]} (hits={entry.hit_count})")
            return entry.response

    def set(self, key: str, response: LLMResponse) -> None:
        """Store a response. Overwrites an existing entry for the same key."""
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_entries:
                oldest_key = min(self._entries, key=lambda k: self._entries[k].created_at)
                del self._entries[oldest_key]
                logger.debug(f"Response cache evicted oldest entry: {oldest_key[:12]}")

            self._entries[key] = CacheEntry(response=response, created_at=self._clock())

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one entry, or every entry when ``key`` is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def clear(self) -> None:
        self.invalidate()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def get_stats(self) -> Dict:
        """Size, capacity, TTL and accumulated hits."""
        with self._lock:
            now = self._clock()
            oldest_age = max((now - e.created_at for e in self._entries.values()), default=0)
            return {
                "size": len(self._entries),
                "max_size": self._max_entries,
                "ttl_seconds": self._ttl,
                "total_hits": sum(e.hit_count for e in self._entries.values()),
                "oldest_entry_age_sec": int(oldest_age),
            }

    @property
    def ttl(self) -> float:
        return self._ttl


_shared_cache: Optional[ResponseCache] = None
_shared_lock = threading.Lock()


def get_response_cache() -> ResponseCache:
    """Process-wide cache sized from settings."""
    global _shared_cache
    with _shared_lock:
        if _shared_cache is None:
            from ..config import get_settings
            settings = get_settings()
            _shared_cache = ResponseCache(
                ttl=settings.cache_ttl_seconds,
                max_entries=settings.cache_max_entries,
            )
        return _shared_cache
