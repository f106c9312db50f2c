"""Tests for the fixed-window RateLimiter and its stores."""

import pytest

from auth.config import RateLimitConfig, RateLimitPolicy
from auth.rate_limiter import (
    InMemoryWindowStore,
    RateLimiter,
    ValkeyWindowStore,
    client_identifier,
    create_rate_limiter,
)

START_MS = 1_700_000_000_000
CLAIM_PATH = "/api/claim-customer"


class Clock:
    def __init__(self, now_ms: int = START_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def memory_limiter(clock):
    return RateLimiter(RateLimitConfig(), InMemoryWindowStore(), clock=clock)


@pytest.fixture
def valkey_limiter(fake_valkey, clock):
    fake_valkey.now_ms = clock.now_ms
    return RateLimiter(RateLimitConfig(backend="valkey"), ValkeyWindowStore(fake_valkey), clock=clock)


@pytest.fixture(params=["memory", "valkey"])
def limiter(request, memory_limiter, valkey_limiter):
    return memory_limiter if request.param == "memory" else valkey_limiter


def _advance(clock, fake_valkey, milliseconds):
    clock.now_ms += milliseconds
    fake_valkey.now_ms = clock.now_ms


class TestFixedWindow:
    """Behavior shared by both stores."""

    def test_eleventh_claim_in_window_rejected(self, limiter):
        decisions = [limiter.check("1.2.3.4", CLAIM_PATH) for _ in range(11)]

        assert all(d.allowed for d in decisions[:10])
        assert decisions[10].allowed is False
        assert decisions[10].remaining == 0

    def test_remaining_counts_down(self, limiter):
        first = limiter.check("1.2.3.4", CLAIM_PATH)
        second = limiter.check("1.2.3.4", CLAIM_PATH)

        assert (first.limit, first.remaining) == (10, 9)
        assert second.remaining == 8

    def test_reset_is_window_end(self, limiter, clock):
        decision = limiter.check("1.2.3.4", CLAIM_PATH)
        assert decision.reset_at_ms == clock.now_ms + 60000

    def test_window_restarts_after_reset(self, limiter, clock, fake_valkey):
        for _ in range(11):
            limiter.check("1.2.3.4", CLAIM_PATH)

        _advance(clock, fake_valkey, 60001)
        decision = limiter.check("1.2.3.4", CLAIM_PATH)

        assert decision.allowed is True
        assert decision.remaining == 9

    def test_clients_are_independent(self, limiter):
        for _ in range(10):
            limiter.check("1.2.3.4", CLAIM_PATH)

        assert limiter.check("5.6.7.8", CLAIM_PATH).allowed is True

    def test_paths_are_independent(self, limiter):
        for _ in range(11):
            limiter.check("1.2.3.4", CLAIM_PATH)

        assert limiter.check("1.2.3.4", "/api/customers/me").allowed is True

    def test_unlisted_path_uses_default_budget(self, limiter):
        decision = limiter.check("1.2.3.4", "/api/customers/me")
        assert decision.limit == 50


class TestInMemoryWindowStore:
    """Process-local store specifics."""

    def test_rejected_requests_do_not_extend_count(self):
        store = InMemoryWindowStore()
        policy = RateLimitPolicy(window_ms=60000, max_requests=2)

        results = [store.hit("k", policy, START_MS) for _ in range(4)]

        assert [allowed for allowed, _, _ in results] == [True, True, False, False]
        assert results[-1][1] == 2

    def test_window_still_open_at_exact_reset(self):
        store = InMemoryWindowStore()
        policy = RateLimitPolicy(window_ms=60000, max_requests=1)
        store.hit("k", policy, START_MS)

        allowed, _, _ = store.hit("k", policy, START_MS + 60000)

        assert allowed is False

    def test_sweep_drops_expired_windows(self):
        store = InMemoryWindowStore(sweep_every=3)
        policy = RateLimitPolicy(window_ms=1000, max_requests=5)
        store.hit("a", policy, START_MS)
        store.hit("b", policy, START_MS)

        store.hit("c", policy, START_MS + 5000)

        assert len(store) == 1


class TestValkeyWindowStore:
    """Shared-store specifics."""

    def test_first_hit_sets_expiry(self, fake_valkey):
        store = ValkeyWindowStore(fake_valkey)
        store.hit("k", RateLimitPolicy(window_ms=60000, max_requests=5), fake_valkey.now_ms)

        assert fake_valkey.pttl("ratelimit:k") == 60000

    def test_counter_without_expiry_is_repaired(self, fake_valkey):
        fake_valkey.set("ratelimit:k", "1")
        store = ValkeyWindowStore(fake_valkey)

        allowed, count, _ = store.hit("k", RateLimitPolicy(window_ms=60000, max_requests=5), fake_valkey.now_ms)

        assert allowed is True
        assert count == 2
        assert fake_valkey.pttl("ratelimit:k") == 60000


class TestClientIdentifier:
    """Client key from proxy headers."""

    def test_first_forwarded_for_entry(self):
        headers = {"x-forwarded-for": "203.0.113.7, 10.0.0.1", "x-real-ip": "10.0.0.2"}
        assert client_identifier(headers) == "203.0.113.7"

    def test_real_ip_fallback(self):
        assert client_identifier({"x-real-ip": " 198.51.100.4 "}) == "198.51.100.4"

    def test_unknown_without_headers(self):
        assert client_identifier({}) == "unknown"

    def test_blank_forwarded_for_falls_through(self):
        assert client_identifier({"x-forwarded-for": " , 10.0.0.1"}) == "unknown"


class TestCreateRateLimiter:
    def test_memory_backend(self):
        limiter = create_rate_limiter(RateLimitConfig())
        assert isinstance(limiter._store, InMemoryWindowStore)

    def test_valkey_backend(self, fake_valkey):
        limiter = create_rate_limiter(RateLimitConfig(backend="valkey"), fake_valkey)
        assert isinstance(limiter._store, ValkeyWindowStore)

    def test_valkey_backend_requires_client(self):
        with pytest.raises(ValueError, match="ValkeyClient"):
            create_rate_limiter(RateLimitConfig(backend="valkey"))
