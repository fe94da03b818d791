"""TTL key-value store used for viewer credentials, sessions and throttling.

Every operation is a single-key atomic call; nothing here needs a
multi-key transaction. Two implementations share the ``KeyValueStore``
interface:

    RedisKeyValueStore     -- production; shared across workers.
    InMemoryKeyValueStore  -- single-process; takes an injectable clock so
                              expiry can be exercised deterministically.

Services receive a store explicitly (``get_kv_store`` is the FastAPI
dependency) instead of reaching for a module-level client.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis

from .config import settings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Operations the credential layer relies on."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    def delete(self, key: str) -> bool: ...

    def getdel(self, key: str) -> Optional[str]: ...

    def incr(self, key: str, ttl_seconds: int) -> int: ...

    def ttl(self, key: str) -> Optional[int]: ...

    def ping(self) -> bool: ...


class RedisKeyValueStore:
    """Redis-backed store. Expiry is handled natively by Redis."""

    def __init__(self, client: "redis.Redis"):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> Optional[str]:
        return self._client.get(key)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._client.set(key, value, ex=ttl_seconds)

    def delete(self, key: str) -> bool:
        return self._client.delete(key) == 1

    def getdel(self, key: str) -> Optional[str]:
        """Fetch and delete in one MULTI/EXEC block so a value is served once."""
        pipe = self._client.pipeline(transaction=True)
        pipe.get(key)
        pipe.delete(key)
        value, _ = pipe.execute()
        return value

    def incr(self, key: str, ttl_seconds: int) -> int:
        """Increment a counter; the first increment starts its TTL window.

        INCR and EXPIRE NX go out in one MULTI/EXEC block, so a counter can
        never be left without an expiry.
        """
        pipe = self._client.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, ttl_seconds, nx=True)
        count, _ = pipe.execute()
        return count

    def ttl(self, key: str) -> Optional[int]:
        remaining = self._client.ttl(key)
        return remaining if remaining >= 0 else None

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError as e:
            logger.warning("Redis ping failed: %s", e)
            return False


class InMemoryKeyValueStore:
    """Process-local store with lazy expiry.

    ``clock`` returns seconds as a float; defaults to ``time.time``.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[Tuple[str, float]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._data[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> bool:
        with self._lock:
            if self._live(key) is None:
                return False
            del self._data[key]
            return True

    def getdel(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            del self._data[key]
            return entry[0]

    def incr(self, key: str, ttl_seconds: int) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                self._data[key] = ("1", self._clock() + ttl_seconds)
                return 1
            count = int(entry[0]) + 1
            self._data[key] = (str(count), entry[1])
            return count

    def ttl(self, key: str) -> Optional[int]:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            return max(0, int(entry[1] - self._clock()))

    def ping(self) -> bool:
        return True

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


# Lazy singleton, created on first use.
_store: Optional[KeyValueStore] = None
_store_lock = threading.Lock()


def get_kv_store() -> KeyValueStore:
    """FastAPI dependency returning the configured store."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                if settings.redis_url:
                    _store = RedisKeyValueStore.from_url(settings.redis_url)
                    logger.info("Key-value store: redis")
                else:
                    _store = InMemoryKeyValueStore()
                    logger.info("Key-value store: in-process")
    return _store
