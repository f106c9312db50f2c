"""Fixed-window request throttling for the edge guard.

Counters are keyed by client and route path. A window opens on the first
request with count 1 and lasts ``window_ms``; once it has passed, the next
request starts a new window. Because windows restart rather than decay, a
client can fit up to 2x max_requests around a window boundary.

Two stores implement the same ``hit`` contract:

- InMemoryWindowStore: process local, lost on restart, and fragmented when
  several instances run. Suitable for a single-instance deployment.
- ValkeyWindowStore: shared across instances.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from clients.valkey_client import ValkeyClient
from auth.config import RateLimitConfig, RateLimitPolicy
from utils.timezone import now_epoch_ms

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one request against its window."""

    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int


@dataclass
class _Window:
    count: int
    reset_at_ms: int


class InMemoryWindowStore:
    """Window counters in a lock-protected dict.

    Expired windows are replaced on the key's next hit; a sweep every
    ``sweep_every`` hits drops windows for keys that never come back.
    """

    def __init__(self, sweep_every: int = 1000):
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()
        self._sweep_every = sweep_every
        self._hits = 0

    def hit(self, key: str, policy: RateLimitPolicy, now_ms: int) -> tuple[bool, int, int]:
        """Count one request. Returns (allowed, count, reset_at_ms)."""
        with self._lock:
            self._hits += 1
            if self._hits % self._sweep_every == 0:
                self._sweep(now_ms)

            window = self._windows.get(key)
            if window is None or now_ms > window.reset_at_ms:
                window = _Window(count=1, reset_at_ms=now_ms + policy.window_ms)
                self._windows[key] = window
                return True, window.count, window.reset_at_ms

            if window.count >= policy.max_requests:
                return False, window.count, window.reset_at_ms

            window.count += 1
            return True, window.count, window.reset_at_ms

    def _sweep(self, now_ms: int) -> None:
        expired = [key for key, window in self._windows.items() if now_ms > window.reset_at_ms]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired rate limit windows")

    def __len__(self) -> int:
        return len(self._windows)


class ValkeyWindowStore:
    """Window counters in Valkey: INCR, PEXPIRE on the first hit, PTTL for reset."""

    KEY_PREFIX = "ratelimit:"

    def __init__(self, valkey: ValkeyClient):
        self._valkey = valkey

    def hit(self, key: str, policy: RateLimitPolicy, now_ms: int) -> tuple[bool, int, int]:
        """Count one request. Returns (allowed, count, reset_at_ms)."""
        redis_key = f"{self.KEY_PREFIX}{key}"
        count = self._valkey.incr(redis_key)

        if count == 1:
            self._valkey.pexpire(redis_key, policy.window_ms)
            ttl_ms = policy.window_ms
        else:
            ttl_ms = self._valkey.pttl(redis_key)
            if ttl_ms < 0:
                # Counter lost its expiry (writer died between INCR and PEXPIRE)
                self._valkey.pexpire(redis_key, policy.window_ms)
                ttl_ms = policy.window_ms

        reset_at_ms = now_ms + ttl_ms
        if count > policy.max_requests:
            return False, policy.max_requests, reset_at_ms
        return True, count, reset_at_ms


class RateLimiter:
    """Per-(client, path) fixed-window limiter."""

    def __init__(
        self,
        config: RateLimitConfig,
        store: InMemoryWindowStore | ValkeyWindowStore,
        clock: Callable[[], int] = now_epoch_ms,
    ):
        self._config = config
        self._store = store
        self._clock = clock

    def check(self, client_id: str, path: str) -> RateLimitDecision:
        """Count a request and decide whether it may proceed."""
        policy = self._config.policy_for(path)
        allowed, count, reset_at_ms = self._store.hit(f"{client_id}:{path}", policy, self._clock())

        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_id} on {path}")

        return RateLimitDecision(
            allowed=allowed,
            limit=policy.max_requests,
            remaining=max(0, policy.max_requests - count),
            reset_at_ms=reset_at_ms,
        )


def client_identifier(headers) -> str:
    """
    Derive the rate-limit client key from proxy headers.

    First X-Forwarded-For entry, else X-Real-IP, else "unknown". Clients
    behind a proxy that strips both headers share the "unknown" bucket.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return UNKNOWN_CLIENT


def create_rate_limiter(config: RateLimitConfig, valkey: ValkeyClient | None = None) -> RateLimiter:
    """Build a limiter on the configured backend."""
    if config.backend == "valkey":
        if valkey is None:
            raise ValueError("Valkey rate limit backend requires a ValkeyClient")
        return RateLimiter(config, ValkeyWindowStore(valkey))
    return RateLimiter(config, InMemoryWindowStore(sweep_every=config.sweep_every))
