"""Tests for the sliding window rate limiter."""

import time

from pairgate.gateway.ratelimit import RateLimiter


class TestRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = RateLimiter(max_requests=3, window_seconds=60)
        assert all(limiter.is_allowed("ip1") for _ in range(3))

    def test_blocks_over_limit(self):
        limiter = RateLimiter(max_requests=2, window_seconds=60)
        limiter.is_allowed("ip1")
        limiter.is_allowed("ip1")
        assert limiter.is_allowed("ip1") is False
        assert limiter.retry_after("ip1") > 0

    def test_different_keys_independent(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        assert limiter.is_allowed("ip1") is True
        assert limiter.is_allowed("ip1") is False
        assert limiter.is_allowed("ip2") is True

    def test_window_reset(self):
        limiter = RateLimiter(max_requests=1, window_seconds=1)
        limiter.is_allowed("ip1")
        assert limiter.is_allowed("ip1") is False

        # Manually age the requests
        limiter.requests["ip1"] = [time.time() - 2]
        assert limiter.is_allowed("ip1") is True

    def test_rejected_requests_not_counted(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.is_allowed("ip1")
        for _ in range(5):
            limiter.is_allowed("ip1")
        assert len(limiter.requests["ip1"]) == 1

    def test_retry_after_unknown_key(self):
        assert RateLimiter(max_requests=1, window_seconds=60).retry_after("nobody") == 0

    def test_stale_keys_forgotten(self, monkeypatch):
        limiter = RateLimiter(max_requests=5, window_seconds=60)
        for i in range(1000):
            limiter.is_allowed(f"ip{i}")
        assert len(limiter.requests) == 1000

        later = time.time() + 3600
        monkeypatch.setattr(time, "time", lambda: later)
        assert limiter.is_allowed("newcomer") is True
        assert list(limiter.requests) == ["newcomer"]

    def test_active_keys_survive_sweep(self, monkeypatch):
        limiter = RateLimiter(max_requests=5, window_seconds=60)
        limiter.is_allowed("old")
        start = time.time()

        monkeypatch.setattr(time, "time", lambda: start + 50)
        limiter.is_allowed("busy")
        monkeypatch.setattr(time, "time", lambda: start + 70)
        limiter.is_allowed("other")
        assert "busy" in limiter.requests
        assert "old" not in limiter.requests
