"""
Storage media for the resilient cache.

A store is a flat string -> string map with a byte quota. It knows nothing
about entries, TTLs or eviction; when a write would push its total past the
quota it raises ``StorageQuotaExceeded`` and leaves the decision to the
cache.
"""

import logging
from typing import Dict, List, Optional

import redis

logger = logging.getLogger(__name__)


class StorageQuotaExceeded(Exception):
    """A write would push the store past its byte quota."""

    def __init__(self, key: str, needed_bytes: int, usage_bytes: int, quota_bytes: int):
        super().__init__(
            f"Writing {key} needs {needed_bytes} bytes; "
            f"{usage_bytes}/{quota_bytes} bytes already in use"
        )
        self.key = key
        self.needed_bytes = needed_bytes
        self.usage_bytes = usage_bytes
        self.quota_bytes = quota_bytes


def entry_size(key: str, value: str) -> int:
    """Bytes charged against the quota for one key/value pair."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class MemoryStore:
    """In-process store with a byte quota.

    Behaves like browser local storage: writes that do not fit are refused
    outright rather than evicting anything on their own.
    """

    blocking = False

    def __init__(self, quota_bytes: int):
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}
        self._usage = 0

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str, ttl_hint: Optional[int] = None) -> None:
        new_size = entry_size(key, value)
        old_size = entry_size(key, self._data[key]) if key in self._data else 0
        projected = self._usage - old_size + new_size
        if projected > self.quota_bytes:
            raise StorageQuotaExceeded(key, new_size, self._usage, self.quota_bytes)
        self._data[key] = value
        self._usage = projected

    def delete(self, key: str) -> bool:
        value = self._data.pop(key, None)
        if value is None:
            return False
        self._usage -= entry_size(key, value)
        return True

    def keys(self) -> List[str]:
        return list(self._data)

    def size_of(self, key: str) -> int:
        value = self._data.get(key)
        return entry_size(key, value) if value is not None else 0

    def usage_bytes(self) -> int:
        return self._usage

    def clear(self) -> None:
        self._data.clear()
        self._usage = 0

    def recount(self) -> int:
        self._usage = sum(entry_size(k, v) for k, v in self._data.items())
        return self._usage


class RedisStore:
    """Redis-backed store confined to a key prefix.

    The quota is enforced over the keys under ``key_prefix`` only; other data
    in the same database is neither counted nor touched. Usage is kept in a
    counter next to the data and adjusted with INCRBY/DECRBY as values are
    swapped, so a write costs a fixed number of round-trips whatever the
    number of keys. Calls are synchronous (``blocking = True``); async
    callers hand them to a worker thread.

    Redis-side expiry is not used: a key Redis dropped on its own would leave
    the counter behind. Expiry is decided by the cache from each entry's
    timestamp and goes through ``delete``.
    """

    blocking = True

    def __init__(self, client: "redis.Redis", quota_bytes: int, key_prefix: str = "nearby:"):
        self.client = client
        self.quota_bytes = quota_bytes
        self.key_prefix = key_prefix
        # outside the ``key_prefix*`` scan pattern
        self.usage_key = f"_usage:{key_prefix}"

    @classmethod
    def from_url(cls, url: str, quota_bytes: int, key_prefix: str = "nearby:",
                 socket_timeout: float = 5.0, socket_connect_timeout: float = 5.0) -> "RedisStore":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
        )
        return cls(client, quota_bytes, key_prefix)

    def _k(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    @staticmethod
    def _text(value) -> Optional[str]:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def get(self, key: str) -> Optional[str]:
        return self._text(self.client.get(self._k(key)))

    def set(self, key: str, value: str, ttl_hint: Optional[int] = None) -> None:
        new_size = entry_size(key, value)
        usage = self.usage_bytes()
        if usage - self.size_of(key) + new_size > self.quota_bytes:
            raise StorageQuotaExceeded(key, new_size, usage, self.quota_bytes)
        old = self._text(self.client.set(self._k(key), value, get=True))
        old_size = entry_size(key, old) if old is not None else 0
        self.client.incrby(self.usage_key, new_size - old_size)

    def delete(self, key: str) -> bool:
        old = self._text(self.client.getdel(self._k(key)))
        if old is None:
            return False
        self.client.decrby(self.usage_key, entry_size(key, old))
        return True

    def keys(self) -> List[str]:
        prefix_len = len(self.key_prefix)
        return [self._text(raw)[prefix_len:] for raw in self.client.scan_iter(match=f"{self.key_prefix}*")]

    def size_of(self, key: str) -> int:
        length = self.client.strlen(self._k(key))
        if not length:
            return 0
        return len(key.encode("utf-8")) + int(length)

    def usage_bytes(self) -> int:
        return int(self.client.get(self.usage_key) or 0)

    def recount(self) -> int:
        """Rebuild the usage counter from the keys actually present (one SCAN plus STRLEN per key)."""
        total = sum(self.size_of(key) for key in self.keys())
        self.client.set(self.usage_key, total)
        logger.debug("Redis cache usage recounted: %d bytes", total)
        return total

    def clear(self) -> None:
        for key in self.keys():
            self.delete(key)
        self.client.set(self.usage_key, 0)
