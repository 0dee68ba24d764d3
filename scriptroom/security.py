"""
Security helpers shared by the transport and the orchestration layer.

Input sanitizing, identifier validation and a per-session rate limiter.
"""
import re
import secrets
import threading
import time
import logging
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_INPUT_LENGTH = 10000
MAX_SESSION_ID_LENGTH = 64
MIN_API_KEY_LENGTH = 20

SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
HTML_TAG = re.compile(r"<[^>]*>")
JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
INLINE_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
API_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_:-]+$")


def sanitize_input(value: Optional[str], max_length: int = MAX_INPUT_LENGTH) -> str:
    """Strip markup and script vectors from user-supplied text."""
    if not value or not isinstance(value, str):
        return ""
    value = SCRIPT_TAG.sub("", value)
    value = HTML_TAG.sub("", value)
    value = JS_PROTOCOL.sub("", value)
    value = INLINE_HANDLER.sub("", value)
    return value.strip()[:max_length]


def is_valid_session_id(session_id: Optional[str]) -> bool:
    if not session_id or not isinstance(session_id, str):
        return False
    return len(session_id) <= MAX_SESSION_ID_LENGTH and bool(SESSION_ID_PATTERN.match(session_id))


def is_valid_api_key_format(api_key: Optional[str]) -> bool:
    if not api_key or not isinstance(api_key, str):
        return False
    return len(api_key) >= MIN_API_KEY_LENGTH and bool(API_KEY_PATTERN.match(api_key))


def generate_session_id() -> str:
    return secrets.token_hex(16)


class RateLimiter:
    """
    Fixed-window request counter keyed by client or session.

    Thread-safe. Expired windows are dropped every `cleanup_interval`
    seconds so the table does not grow without bound.
    """

    def __init__(self, max_requests: int = 30, window_seconds: float = 60.0, cleanup_interval: float = 300.0):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.cleanup_interval = cleanup_interval
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._last_cleanup = time.monotonic()
        self._lock = threading.Lock()

    def allow(self, key: str, now: Optional[float] = None) -> bool:
        """Count one request for `key`. Returns False once the window is full."""
        now = time.monotonic() if now is None else now
        with self._lock:
            self._maybe_cleanup(now)

            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0

            if count >= self.max_requests:
                self._windows[key] = (started, count)
                return False

            self._windows[key] = (started, count + 1)
            return True

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.cleanup_interval:
            return
        expired = [k for k, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for key in expired:
            del self._windows[key]
        self._last_cleanup = now
        if expired:
            logger.debug(f"[RATE] Dropped {len(expired)} expired window(s)")

    def __len__(self) -> int:
        return len(self._windows)
