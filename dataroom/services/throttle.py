"""Fixed-window counters in the key-value store.

Unlike the HTTP token bucket in ``middleware.request_context`` (per process),
these counters live in the shared store so every worker sees the same count.
"""

from ..core.kv_store import KeyValueStore
from ..exceptions import RateLimitedError


def check_throttle(
    kv: KeyValueStore,
    scope: str,
    identity: str,
    limit: int,
    window_seconds: int = 60,
) -> int:
    """Count one hit for ``identity`` in ``scope``; raise once ``limit`` is exceeded.

    Returns the hit count within the current window.
    """
    key = f"rl:{scope}:{identity}"
    count = kv.incr(key, window_seconds)
    if count > limit:
        raise RateLimitedError(retry_after=kv.ttl(key) or window_seconds)
    return count
