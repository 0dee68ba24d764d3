"""
Tests for the fal.ai reasoning backend.

The OpenAI client is replaced by a stand-in exposing
`chat.completions.create`, so no network is touched.
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from scriptroom.services.llm_service import FalReasoningBackend


def completion(content="", tool_calls=None, annotations=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls, annotations=annotations)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_backend(*outcomes):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(outcomes))
    backend = FalReasoningBackend(
        api_key="key-1234567890abcdefghij",
        model="openai/gpt-4.1",
        search_model="openai/gpt-4.1-mini",
        client=client,
    )
    return backend, client.chat.completions.create


class TestInfer:
    """Tests for FalReasoningBackend.infer."""

    @pytest.mark.asyncio
    async def test_text_only(self):
        backend, create = make_backend(completion("Hello"))
        result = await backend.infer([{"role": "user", "content": "hi"}])
        assert result.text == "Hello"
        assert result.tool_calls == []
        assert "tools" not in create.call_args_list[0].kwargs

    @pytest.mark.asyncio
    async def test_tool_calls_mapped(self):
        raw = SimpleNamespace(
            id="call_1",
            function=SimpleNamespace(name="search_web", arguments='{"query": "coffee"}'),
        )
        backend, create = make_backend(completion(None, tool_calls=[raw]))
        result = await backend.infer([{"role": "user", "content": "hi"}], tools=[{"type": "function"}])

        assert result.text == ""
        assert result.tool_calls[0].name == "search_web"
        assert result.tool_calls[0].call_id == "call_1"
        assert create.call_args_list[0].kwargs["tool_choice"] == "auto"

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        backend, _ = make_backend(RuntimeError("503"))
        with pytest.raises(RuntimeError):
            await backend.infer([])


class TestResearch:
    """Tests for FalReasoningBackend.research."""

    @pytest.mark.asyncio
    async def test_web_plugin_with_sources(self):
        annotations = [
            {"type": "url_citation", "url_citation": {"url": "https://a.example", "title": "A"}},
            SimpleNamespace(type="url_citation", url_citation=SimpleNamespace(url="https://b.example", title=None)),
            {"type": "file_citation"},
        ]
        backend, create = make_backend(completion("Coffee is old.", annotations=annotations))
        result = await backend.research("coffee history", num_results=3)

        assert result.startswith("Coffee is old.")
        assert "📚 SOURCES:\n- A: https://a.example\n- https://b.example: https://b.example" in result
        assert create.call_args_list[0].kwargs["extra_body"] == {"plugins": [{"id": "web", "max_results": 3}]}

    @pytest.mark.asyncio
    async def test_falls_back_to_online_model(self):
        backend, create = make_backend(RuntimeError("plugin unsupported"), completion("Fallback findings"))
        assert await backend.research("coffee") == "Fallback findings"
        assert create.call_args_list[1].kwargs["model"] == "openai/gpt-4.1-mini:online"

    @pytest.mark.asyncio
    async def test_never_raises(self):
        backend, _ = make_backend(RuntimeError("down"), RuntimeError("still down"))
        result = await backend.research("coffee")
        assert result == "Search failed: still down. Please research manually."
