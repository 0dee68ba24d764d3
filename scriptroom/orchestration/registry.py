"""
Session Registry - maps session ids to their engines.

Sessions are fully isolated: each one owns its engine, bus, workers and
state. The registry only hands them out.
"""
import logging
from threading import Lock
from typing import Callable, Dict, List, Optional

from scriptroom.services.llm_service import FalReasoningBackend

from .engine import ScriptEngine

logger = logging.getLogger(__name__)

EngineFactory = Callable[[Optional[str]], ScriptEngine]
CreateHook = Callable[[str, ScriptEngine], None]


def default_engine_factory(credential: Optional[str]) -> ScriptEngine:
    """Engine backed by fal.ai with the client's key, or the server key."""
    return ScriptEngine(backend=FalReasoningBackend(api_key=credential), credential=credential)


class SessionRegistry:
    """
    In-memory session registry.
    Thread-safe; engines are created on first use.
    """

    def __init__(
        self,
        engine_factory: Optional[EngineFactory] = None,
        on_create: Optional[CreateHook] = None,
    ):
        self._engines: Dict[str, ScriptEngine] = {}
        self._lock = Lock()
        self._engine_factory = engine_factory or default_engine_factory
        self._on_create = on_create
        logger.info("[REGISTRY] Session registry initialized (in-memory)")

    def get(self, session_id: str) -> Optional[ScriptEngine]:
        with self._lock:
            return self._engines.get(session_id)

    def get_or_create(self, session_id: str, credential: Optional[str] = None) -> ScriptEngine:
        """
        Get the session's engine, creating it with `credential` if missing.

        The credential of an existing session is not replaced.
        """
        with self._lock:
            engine = self._engines.get(session_id)
            if engine is not None:
                return engine

            engine = self._engine_factory(credential)
            # Wired before any other caller can see the engine
            if self._on_create is not None:
                self._on_create(session_id, engine)
            self._engines[session_id] = engine
            logger.info(f"[REGISTRY] Created session {session_id} ({len(self._engines)} active)")
            return engine

    async def reset(self, session_id: str) -> bool:
        """Clear a session's state. Returns False if it does not exist."""
        engine = self.get(session_id)
        if engine is None:
            return False
        await engine.reset()
        return True

    def dispose(self, session_id: str) -> bool:
        """Forget a session entirely."""
        with self._lock:
            if session_id in self._engines:
                del self._engines[session_id]
                logger.info(f"[REGISTRY] Disposed session {session_id}")
                return True
            return False

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._engines)

    def __len__(self) -> int:
        with self._lock:
            return len(self._engines)
