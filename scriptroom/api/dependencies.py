"""
Shared dependencies for API routes.
"""
import logging
from functools import lru_cache
from typing import Optional

from fastapi import Request

from scriptroom.config import config
from scriptroom.orchestration.registry import SessionRegistry
from scriptroom.security import RateLimiter

from .exceptions import RateLimitError
from .streaming import SessionBroadcaster

logger = logging.getLogger(__name__)

_registry: Optional[SessionRegistry] = None


@lru_cache()
def get_broadcaster() -> SessionBroadcaster:
    """Get cached SSE broadcaster."""
    return SessionBroadcaster()


@lru_cache()
def get_rate_limiter() -> RateLimiter:
    """Get cached per-session rate limiter."""
    return RateLimiter(max_requests=config.server.rate_limit_per_minute, window_seconds=60.0)


def _wire_stream(session_id: str, engine) -> None:
    engine.bus.subscribe(get_broadcaster().observer_for(session_id))


def get_registry() -> SessionRegistry:
    """Get or create the session registry singleton."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry(on_create=_wire_stream)
    return _registry


def use_engine_factory(engine_factory) -> SessionRegistry:
    """Replace the registry with one building engines via `engine_factory` (for testing)."""
    global _registry
    _registry = SessionRegistry(engine_factory=engine_factory, on_create=_wire_stream)
    return _registry


def reset_registry() -> None:
    """Reset registry and cached singletons (for testing)."""
    global _registry
    _registry = None
    get_broadcaster.cache_clear()
    get_rate_limiter.cache_clear()


def enforce_rate_limit(key: str) -> None:
    if not get_rate_limiter().allow(key):
        logger.warning(f"[RATE] Limit exceeded for {key}")
        raise RateLimitError()


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"
