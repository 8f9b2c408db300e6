"""Tests for per-endpoint request limiting."""
import unittest
from unittest.mock import Mock

from fastapi import HTTPException

from curago_service.rate_limiter import (
    ENDPOINT_LIMITS,
    RateLimitConfig,
    RateLimiter,
    RateLimitManager,
    client_identifier,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def make_request(ip="10.0.0.1", forwarded_for=None):
    request = Mock()
    request.headers = {"X-Forwarded-For": forwarded_for} if forwarded_for else {}
    request.client = Mock(host=ip)
    return request


class TestRateLimiter(unittest.TestCase):
    """Test the RateLimiter class."""

    def test_first_request_allowed(self):
        """Test that the first request is always allowed."""
        limiter = RateLimiter(max_requests=5, window_seconds=60)
        allowed, remaining, retry_after = limiter.is_allowed("127.0.0.1")

        self.assertTrue(allowed)
        self.assertEqual(remaining, 4)
        self.assertEqual(retry_after, 0)

    def test_limit_exceeded(self):
        """Test that requests beyond the limit are denied."""
        clock = FakeClock()
        limiter = RateLimiter(max_requests=3, window_seconds=60, clock=clock)
        for _ in range(3):
            self.assertTrue(limiter.is_allowed("ip")[0])

        clock.now += 10
        allowed, remaining, retry_after = limiter.is_allowed("ip")

        self.assertFalse(allowed)
        self.assertEqual(remaining, 0)
        self.assertEqual(retry_after, 51)

    def test_window_slides(self):
        """Test that old requests expire from the window."""
        clock = FakeClock()
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
        limiter.is_allowed("ip")

        clock.now += 61
        self.assertTrue(limiter.is_allowed("ip")[0])

    def test_identifiers_are_independent(self):
        """Test that different clients have separate limits."""
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        self.assertTrue(limiter.is_allowed("a")[0])
        self.assertTrue(limiter.is_allowed("b")[0])
        self.assertFalse(limiter.is_allowed("a")[0])

    def test_reset(self):
        """Test that reset clears the limit for a client."""
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.is_allowed("a")
        limiter.reset("a")
        self.assertTrue(limiter.is_allowed("a")[0])


class TestRateLimitManager(unittest.TestCase):
    """Test the RateLimitManager class."""

    def test_endpoint_limits(self):
        """Test the configured per-endpoint limits."""
        self.assertEqual(ENDPOINT_LIMITS["chat"].max_requests, 30)
        self.assertEqual(ENDPOINT_LIMITS["ai-symptom-analysis"].max_requests, 10)

    def test_unknown_endpoint_gets_default(self):
        """Test the default limit for unknown endpoints."""
        limiter = RateLimitManager().get_limiter("something-else")
        self.assertEqual(limiter.max_requests, 10)
        self.assertEqual(limiter.window_seconds, 60)

    def test_headers_and_429(self):
        """Test rate-limit headers and the 429 with Retry-After."""
        manager = RateLimitManager({"chat": RateLimitConfig(max_requests=1)})
        request = make_request()

        headers = manager.check_rate_limit("chat", request)
        self.assertEqual(headers["X-RateLimit-Limit"], "1")
        self.assertEqual(headers["X-RateLimit-Remaining"], "0")

        with self.assertRaises(HTTPException) as ctx:
            manager.check_rate_limit("chat", request)
        self.assertEqual(ctx.exception.status_code, 429)
        self.assertIn("Retry-After", ctx.exception.headers)

    def test_forwarded_for_first_hop(self):
        """Test that the first X-Forwarded-For hop identifies the client."""
        request = make_request(ip="10.0.0.1", forwarded_for="203.0.113.7, 10.0.0.1")
        self.assertEqual(client_identifier(request), "203.0.113.7")
        self.assertEqual(client_identifier(make_request(ip="10.0.0.2")), "10.0.0.2")
