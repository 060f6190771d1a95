"""
Byte-budgeted TTL cache over a pluggable store.

Entries are persisted as JSON objects ``{"data": ..., "timestamp": <epoch
ms>, "ttl": <seconds>}``. The cache never raises to its callers: reads that
fail for any reason are misses, and writes report what happened through a
``CacheWriteResult``.

When the store refuses a write for lack of space, entries are evicted
oldest-first by ``timestamp`` until a quarter of the budget has been
reclaimed and usage sits at or below three quarters of it, then the write
is retried exactly once. Only entries carrying a positive numeric
``timestamp`` are eligible; anything else in the store belongs to someone
else and is left alone.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from nearby_explorer.config import CacheConfig, get_config
from nearby_explorer.models import LatLng
from nearby_explorer.services.cache_store import StorageQuotaExceeded

logger = logging.getLogger(__name__)

USER_LOCATION_KEY = "userLocation"

RECLAIM_FRACTION = 0.25
TARGET_USAGE_FRACTION = 0.75


class CacheDomain(Enum):
    PLACES = "places"
    PLACE_DETAIL = "place_detail"
    AIRPORTS = "airports"
    FLIGHTS = "flights"
    USER_LOCATION = "user_location"


def domain_ttls(cache_config: CacheConfig) -> Dict[CacheDomain, int]:
    return {
        CacheDomain.PLACES: cache_config.ttl_places,
        CacheDomain.PLACE_DETAIL: cache_config.ttl_place_detail,
        CacheDomain.AIRPORTS: cache_config.ttl_airports,
        CacheDomain.FLIGHTS: cache_config.ttl_flights,
        CacheDomain.USER_LOCATION: cache_config.ttl_user_location,
    }


def _coord(value: float) -> str:
    text = f"{value:.4f}"
    return "0.0000" if text == "-0.0000" else text


def _center(center: LatLng) -> str:
    rounded = center.rounded(4)
    return f"{_coord(rounded.lat)}_{_coord(rounded.lng)}"


def places_key(center: LatLng, radius: int, category: Optional[str] = None) -> str:
    return f"places_{_center(center)}_{radius}_{category or 'all'}"


def airports_key(center: LatLng, radius: int) -> str:
    return f"airports_{_center(center)}_{radius}"


def flights_key(code: str) -> str:
    return f"flights_{code.strip().upper()}"


def place_key(place_id: str) -> str:
    return f"place_{place_id}"


class CacheWriteRejected(Exception):
    """Internal signal that a write cannot be stored. Mapped into ``CacheWriteResult.reason``."""

    def __init__(self, reason: str, size_bytes: int = 0, message: str = ""):
        super().__init__(message or reason)
        self.reason = reason
        self.size_bytes = size_bytes


@dataclass
class CacheWriteResult:
    stored: bool
    reason: Optional[str] = None
    size_bytes: int = 0
    evicted_keys: List[str] = field(default_factory=list)
    reclaimed_bytes: int = 0
    truncated: bool = False

    def __bool__(self) -> bool:
        return self.stored


@dataclass
class CacheEntry:
    key: str
    payload: Any
    written_at_epoch_millis: int
    size_bytes: int
    ttl: Optional[int] = None


class ResilientCache:
    """Quota-bounded TTL cache. See module docstring for the eviction policy."""

    def __init__(
        self,
        store,
        budget_bytes: Optional[int] = None,
        item_ceiling_bytes: Optional[int] = None,
        compress_threshold: Optional[int] = None,
        clock: Optional[Callable[[], float]] = None,
        ttls: Optional[Dict[CacheDomain, int]] = None,
    ):
        cache_config = get_config().cache_config
        self.store = store
        self.budget_bytes = budget_bytes or cache_config.budget_bytes
        self.item_ceiling_bytes = item_ceiling_bytes or cache_config.item_ceiling_bytes
        self.compress_threshold = compress_threshold or cache_config.compress_threshold
        self.clock = clock or time.time
        self.ttls = ttls or domain_ttls(cache_config)

    @property
    def blocking(self) -> bool:
        """True when store calls are network round-trips that should run off the event loop."""
        return self.store.blocking

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def ttl_for(self, ttl: Union[int, CacheDomain, None]) -> Optional[int]:
        if isinstance(ttl, CacheDomain):
            return self.ttls[ttl]
        return ttl

    # -- reads -------------------------------------------------------------

    def _read_entry(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = self.store.get(key)
        except Exception as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Undecodable cache entry at %s", key)
            return None
        if not isinstance(entry, dict) or "data" not in entry:
            return None
        return entry

    def _is_expired(self, entry: Dict[str, Any], now_ms: int) -> bool:
        timestamp = entry.get("timestamp")
        ttl = entry.get("ttl")
        if not _is_positive_number(timestamp):
            return True
        if ttl is None:
            return False
        if not isinstance(ttl, (int, float)) or isinstance(ttl, bool):
            return True
        return now_ms - timestamp >= ttl * 1000

    def get(self, key: str) -> Any:
        """Return the cached payload, or ``None`` when absent, expired or unreadable."""
        entry = self._read_entry(key)
        if entry is None:
            return None
        if not _is_positive_number(entry.get("timestamp")):
            # not written by us
            return None
        if self._is_expired(entry, self._now_ms()):
            self._safe_delete(key)
            return None
        return entry["data"]

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        entry = self._read_entry(key)
        if entry is None or self._is_expired(entry, self._now_ms()):
            return None
        try:
            size = self.store.size_of(key)
        except Exception:
            size = 0
        return CacheEntry(
            key=key,
            payload=entry["data"],
            written_at_epoch_millis=int(entry["timestamp"]),
            size_bytes=size,
            ttl=entry.get("ttl"),
        )

    # -- writes ------------------------------------------------------------

    def compress(self, payload: Any) -> Tuple[Any, bool]:
        """Truncate list payloads to ``compress_threshold`` items.

        Returns a new object; ``payload`` itself is never modified.
        """
        limit = self.compress_threshold
        if isinstance(payload, list) and len(payload) > limit:
            return payload[:limit], True
        if isinstance(payload, dict) and isinstance(payload.get("data"), list) \
                and len(payload["data"]) > limit:
            copy = dict(payload)
            copy["data"] = payload["data"][:limit]
            return copy, True
        return payload, False

    def _serialize(self, key: str, payload: Any, ttl: Optional[int]) -> Tuple[str, bool]:
        data, truncated = self.compress(payload)
        entry = {"data": data, "timestamp": self._now_ms()}
        if ttl is not None:
            entry["ttl"] = ttl
        try:
            serialized = json.dumps(entry, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise CacheWriteRejected("storage_error", message=f"Payload for {key} is not JSON: {e}")
        size = len(serialized.encode("utf-8"))
        if size > self.item_ceiling_bytes:
            raise CacheWriteRejected(
                "item_too_large", size,
                f"Entry for {key} is {size} bytes, ceiling is {self.item_ceiling_bytes}",
            )
        return serialized, truncated

    def set(self, key: str, payload: Any, ttl: Union[int, CacheDomain, None] = None) -> CacheWriteResult:
        """Persist ``payload`` under ``key``. Never raises."""
        ttl_seconds = self.ttl_for(ttl)
        try:
            serialized, truncated = self._serialize(key, payload, ttl_seconds)
        except CacheWriteRejected as e:
            logger.warning("Cache write rejected (%s): %s", e.reason, e)
            return CacheWriteResult(stored=False, reason=e.reason, size_bytes=e.size_bytes)

        size = len(serialized.encode("utf-8"))
        result = CacheWriteResult(stored=False, size_bytes=size, truncated=truncated)
        try:
            self.store.set(key, serialized, ttl_hint=ttl_seconds)
            result.stored = True
            return result
        except StorageQuotaExceeded as e:
            logger.info("Cache quota reached writing %s: %s", key, e)
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", key, e)
            result.reason = "storage_error"
            return result

        result.evicted_keys, result.reclaimed_bytes = self._evict_oldest()
        try:
            self.store.set(key, serialized, ttl_hint=ttl_seconds)
            result.stored = True
        except StorageQuotaExceeded:
            logger.warning("Cache write for %s abandoned after evicting %d entries",
                           key, len(result.evicted_keys))
            result.reason = "quota_exceeded"
        except Exception as e:
            logger.warning("Cache write failed for %s after eviction: %s", key, e)
            result.reason = "storage_error"
        return result

    def _evict_oldest(self) -> Tuple[List[str], int]:
        """Evict our own entries oldest-first. Returns (evicted keys, reclaimed bytes)."""
        try:
            candidates = self._timestamped_entries()
            usage = self.store.usage_bytes()
        except Exception as e:
            logger.warning("Cache eviction could not scan the store: %s", e)
            return [], 0

        candidates.sort(key=lambda c: c.written_at_epoch_millis)
        reclaim_target = self.budget_bytes * RECLAIM_FRACTION
        usage_target = self.budget_bytes * TARGET_USAGE_FRACTION
        evicted: List[str] = []
        reclaimed = 0
        for entry in candidates:
            if reclaimed >= reclaim_target and usage <= usage_target:
                break
            if self._safe_delete(entry.key):
                evicted.append(entry.key)
                reclaimed += entry.size_bytes
                usage -= entry.size_bytes
        logger.info("Evicted %d cache entries, reclaimed %d bytes", len(evicted), reclaimed)
        return evicted, reclaimed

    def _timestamped_entries(self) -> List[CacheEntry]:
        out = []
        for key in self.store.keys():
            raw = self.store.get(key)
            if raw is None:
                continue
            try:
                entry = json.loads(raw)
            except (TypeError, ValueError):
                continue
            timestamp = entry.get("timestamp") if isinstance(entry, dict) else None
            if _is_positive_number(timestamp):
                out.append(CacheEntry(
                    key=key,
                    payload=entry.get("data"),
                    written_at_epoch_millis=int(timestamp),
                    size_bytes=self.store.size_of(key),
                    ttl=entry.get("ttl"),
                ))
        return out

    # -- maintenance -------------------------------------------------------

    def _safe_delete(self, key: str) -> bool:
        try:
            return bool(self.store.delete(key))
        except Exception as e:
            logger.warning("Cache delete failed for %s: %s", key, e)
            return False

    def delete(self, key: str) -> bool:
        return self._safe_delete(key)

    def clear_expired(self) -> List[str]:
        """Remove our expired entries. Entries without a timestamp are not ours and stay."""
        now_ms = self._now_ms()
        removed = []
        try:
            keys = self.store.keys()
        except Exception as e:
            logger.warning("Cache sweep could not list keys: %s", e)
            return removed
        for key in keys:
            entry = self._read_entry(key)
            if entry is None or not _is_positive_number(entry.get("timestamp")):
                continue
            if self._is_expired(entry, now_ms) and self._safe_delete(key):
                removed.append(key)
        if removed:
            logger.debug("Swept %d expired cache entries", len(removed))
        try:
            self.store.recount()
        except Exception as e:
            logger.warning("Cache usage recount failed: %s", e)
        return removed

    def usage_bytes(self) -> int:
        try:
            return self.store.usage_bytes()
        except Exception as e:
            logger.warning("Cache usage unavailable: %s", e)
            return 0


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0
