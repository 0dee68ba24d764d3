"""
Tests for input sanitizing, identifier checks and rate limiting.
"""
import time

import pytest

from scriptroom.security import (
    RateLimiter,
    generate_session_id,
    is_valid_api_key_format,
    is_valid_session_id,
    sanitize_input,
)


class TestSanitizeInput:
    """Tests for sanitize_input."""

    @pytest.mark.parametrize("raw,expected", [
        ("  plain text  ", "plain text"),
        ("<b>bold</b> move", "bold move"),
        ("before<script>alert('x')</script>after", "beforeafter"),
        ("javascript:alert(1)", "alert(1)"),
        ('img onerror= "x"', 'img  "x"'),
    ])
    def test_strips_vectors(self, raw, expected):
        assert sanitize_input(raw) == expected

    def test_truncates(self):
        assert sanitize_input("x" * 50, max_length=10) == "x" * 10

    @pytest.mark.parametrize("raw", [None, "", 42])
    def test_non_text(self, raw):
        assert sanitize_input(raw) == ""


class TestIdentifiers:
    """Tests for session id and API key format checks."""

    @pytest.mark.parametrize("session_id,valid", [
        ("abc-123_XYZ", True),
        ("a" * 64, True),
        ("a" * 65, False),
        ("has space", False),
        ("../etc", False),
        ("", False),
        (None, False),
    ])
    def test_session_id(self, session_id, valid):
        assert is_valid_session_id(session_id) is valid

    @pytest.mark.parametrize("key,valid", [
        ("fal-key:0123456789abcdef", True),
        ("short", False),
        ("contains spaces in the key value", False),
        (None, False),
    ])
    def test_api_key(self, key, valid):
        assert is_valid_api_key_format(key) is valid

    def test_generated_ids_are_valid_and_unique(self):
        ids = {generate_session_id() for _ in range(20)}
        assert len(ids) == 20
        assert all(is_valid_session_id(i) for i in ids)


class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_allows_up_to_limit(self):
        limiter = RateLimiter(max_requests=3, window_seconds=60)
        assert [limiter.allow("s", now=0) for _ in range(4)] == [True, True, True, False]

    def test_keys_are_independent(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        assert limiter.allow("a", now=0)
        assert limiter.allow("b", now=0)
        assert not limiter.allow("a", now=1)

    def test_window_resets(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        assert limiter.allow("s", now=0)
        assert not limiter.allow("s", now=59)
        assert limiter.allow("s", now=60)

    def test_cleanup_drops_expired(self):
        limiter = RateLimiter(max_requests=5, window_seconds=10, cleanup_interval=0)
        start = time.monotonic()
        limiter.allow("old", now=start)
        limiter.allow("new", now=start + 100)
        assert len(limiter) == 1
