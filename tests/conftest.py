"""
Pytest configuration and fixtures for Script Room tests.
"""
import json
import os
import re
import tempfile
from collections import deque
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Set test environment before importing scriptroom modules
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="scriptroom-test-")
os.environ["FAL_KEY"] = "test-fal-key-0123456789abcdef"
os.environ["VOICE_PROVIDER"] = "local"
os.environ["DELEGATION_DELAY"] = "0"
os.environ["DEBUG"] = "true"

from scriptroom.agents.tools import ToolCall  # noqa: E402
from scriptroom.config import EngineConfig  # noqa: E402
from scriptroom.services.llm_service import InferenceResult, ReasoningBackend  # noqa: E402
from scriptroom.services.voiceover_service import VoiceoverResult  # noqa: E402

ROLE_BY_NAME = {
    "Producer": "orchestrator",
    "Researcher": "researcher",
    "Scriptwriter": "writer",
    "Editor": "critic",
    "Fact-Checker": "factchecker",
    "Creative": "creative",
    "Voice Artist": "voiceover",
}
YOU_ARE = re.compile(r"YOU ARE: (.+?) \(")


def call(name: str, **arguments) -> ToolCall:
    """Build a tool call the way the backend returns it (JSON-encoded arguments)."""
    return ToolCall(name=name, arguments=json.dumps(arguments))


def reply(text: str = "", *calls: ToolCall) -> InferenceResult:
    return InferenceResult(text=text, tool_calls=list(calls))


def role_of(messages) -> str:
    """Which role a backend call was made for, read from the system prompt."""
    match = YOU_ARE.search(messages[0]["content"])
    return ROLE_BY_NAME[match.group(1)] if match else "unknown"


def words(n: int) -> str:
    """Plain narration of exactly n words, in sentences of ten."""
    tokens = ["word"] * n
    sentences = [" ".join(tokens[i:i + 10]) + "." for i in range(0, n, 10)]
    return " ".join(sentences)


class ScriptedBackend(ReasoningBackend):
    """
    Deterministic reasoning backend.

    Replies come from `responder(role, messages)` when given, otherwise
    from the queued `replies`; an Exception in the queue is raised. When
    nothing is left the backend answers with plain text and no actions.
    """

    def __init__(self, replies: Optional[List] = None, responder: Optional[Callable] = None):
        self.replies = deque(replies or [])
        self.responder = responder
        self.calls = []
        self.queries = []

    @property
    def roles(self) -> List[str]:
        return [role for role, _, _ in self.calls]

    async def infer(self, messages, tools=None):
        role = role_of(messages)
        self.calls.append((role, messages, tools))
        if self.responder is not None:
            result = self.responder(role, messages)
        elif self.replies:
            result = self.replies.popleft()
        else:
            result = InferenceResult(text="Noted.")
        if isinstance(result, Exception):
            raise result
        return result

    async def research(self, query, num_results=5):
        self.queries.append((query, num_results))
        return f"Findings about {query}"


class FakeVoiceover:
    """Voiceover service stand-in that records what it was asked to speak."""

    def __init__(self, result: Optional[VoiceoverResult] = None, error: Optional[Exception] = None):
        self.result = result or VoiceoverResult(
            success=True,
            url="https://cdn.example.com/voice.mp3",
            duration=42.0,
            content_type="audio/mpeg",
            chunks=[{"url": "https://cdn.example.com/voice.mp3", "duration": 42.0, "contentType": "audio/mpeg"}],
        )
        self.error = error
        self.requests = []

    async def generate(self, text, voice_style="documentary", on_progress=None):
        self.requests.append((text, voice_style))
        if on_progress:
            on_progress(1, 1)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def engine_config():
    return EngineConfig(delegation_delay=0)


@pytest.fixture
def fake_voiceover():
    return FakeVoiceover()


@pytest.fixture
def make_engine(engine_config, fake_voiceover):
    """Factory: engine over a scripted backend with the fake voiceover service."""
    from scriptroom.orchestration.engine import ScriptEngine

    def _make(backend: ReasoningBackend, voiceover=None, **overrides):
        settings = EngineConfig(**{**engine_config.__dict__, **overrides})
        service = voiceover or fake_voiceover
        return ScriptEngine(backend=backend, engine_config=settings, voiceover_factory=lambda: service)

    return _make


@pytest.fixture
def test_client():
    """Create a test client whose sessions run on a scripted backend."""
    from fastapi.testclient import TestClient

    from scriptroom.api import dependencies
    from scriptroom.api.main import app
    from scriptroom.orchestration.engine import ScriptEngine

    backend = ScriptedBackend(responder=lambda role, messages: reply(
        "What do you need?",
        call("request_user_input", question="How long should the video be?", options=["1 minute", "5 minutes"]),
    ) if role == "orchestrator" and "A new YouTube video project" in messages[-1]["content"] else reply("Noted."))

    dependencies.reset_registry()
    dependencies.use_engine_factory(
        lambda credential: ScriptEngine(
            backend=backend,
            engine_config=EngineConfig(delegation_delay=0),
            voiceover_factory=FakeVoiceover,
        )
    )
    client = TestClient(app)
    client.backend = backend
    yield client
    dependencies.reset_registry()
