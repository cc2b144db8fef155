import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Union

from databricks.statement.exc import InvalidArgumentError

logger = logging.getLogger(__name__)

TTL = Union[float, int, timedelta]


@dataclass(frozen=True)
class CacheStatistics:
    entries: int
    hits: int
    misses: int
    hit_rate: float
    snapshot_time: datetime

    def __str__(self) -> str:
        return "Entries: {}, Hits: {}, Misses: {}, HitRate: {:.2%}, Snapshot: {}".format(
            self.entries,
            self.hits,
            self.misses,
            self.hit_rate,
            self.snapshot_time.isoformat(),
        )


@dataclass
class _CacheEntry:
    value: Any
    created_at: float
    expires_at: float


def _check_key(key: str) -> None:
    if not isinstance(key, str) or not key.strip():
        raise InvalidArgumentError("Cache key cannot be empty")


def _ttl_seconds(ttl: TTL) -> float:
    if isinstance(ttl, timedelta):
        return ttl.total_seconds()
    return float(ttl)


class ResultCache:
    """
    In-memory key -> value cache with a TTL per entry and hit/miss counters.

    Expired entries are dropped lazily, when the same key is read again. All
    operations hold one lock, so an instance can be shared between threads and
    tasks. Counters only grow for the lifetime of the instance.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss. Expired entries count as misses."""
        _check_key(key)

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if self._clock() < entry.expires_at:
                    self._hits += 1
                    logger.debug("Cache hit for key '%s'", key)
                    return entry.value

                del self._entries[key]
                logger.debug("Cache entry '%s' has expired and was removed", key)

            self._misses += 1
            logger.debug("Cache miss for key '%s'", key)
            return None

    def set(self, key: str, value: Any, ttl: TTL) -> None:
        """
        Store ``value`` under ``key`` for ``ttl`` seconds (or a timedelta).

        Raises:
            InvalidArgumentError: if the key is empty, the value is None or ttl <= 0
        """

        _check_key(key)
        if value is None:
            raise InvalidArgumentError("Cannot cache a None value")
        ttl_seconds = _ttl_seconds(ttl)
        if ttl_seconds <= 0:
            raise InvalidArgumentError("TTL must be greater than zero")

        with self._lock:
            now = self._clock()
            self._entries[key] = _CacheEntry(
                value=value, created_at=now, expires_at=now + ttl_seconds
            )
            logger.debug("Cached value for key '%s' with TTL %ss", key, ttl_seconds)

    def remove(self, key: str) -> bool:
        """Remove ``key``; returns whether an entry was present."""
        _check_key(key)

        with self._lock:
            removed = self._entries.pop(key, None) is not None
            if removed:
                logger.debug("Removed cached value for key '%s'", key)
            return removed

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            logger.info("Cleared %s entries from cache", count)

    def stats(self) -> CacheStatistics:
        with self._lock:
            total = self._hits + self._misses
            return CacheStatistics(
                entries=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                hit_rate=self._hits / total if total else 0.0,
                snapshot_time=datetime.now(tz=timezone.utc),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        # does not touch the counters nor purge expired entries
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[arg-type]
            return entry is not None and self._clock() < entry.expires_at


def make_cache_key(
    query: str, parameters: Optional[Mapping[str, Any]] = None, prefix: str = "stmt"
) -> str:
    """
    Build a stable cache key for a query and its parameters.

    Parameter order does not matter; values are compared by their string form,
    the same way they are bound to the statement.
    """

    if not query or not query.strip():
        raise InvalidArgumentError("Query cannot be empty")

    payload = {
        "query": query.strip(),
        "parameters": sorted(
            (str(name), None if value is None else str(value))
            for name, value in (parameters or {}).items()
        ),
    }
    digest = hashlib.sha256(
        json.dumps(payload, sort_keys=True).encode("utf-8")
    ).hexdigest()
    return f"{prefix}:{digest}"
