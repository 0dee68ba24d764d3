"""
LLM Service - reasoning backend for the agent team.

Workers talk to an OpenAI-compatible chat endpoint (fal.ai's OpenRouter
proxy by default) through `AsyncOpenAI`. The same backend answers web
research queries using the router's web plugin.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from scriptroom.agents.tools import ToolCall
from scriptroom.config import config

logger = logging.getLogger(__name__)


RESEARCH_SYSTEM_PROMPT = """You are a research assistant. Search the web and provide comprehensive,
accurate information with sources. Include specific facts, dates, names and
statistics. Always cite your sources with URLs."""


@dataclass
class InferenceResult:
    """One reasoning turn: free text plus the actions the model requested."""
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)


class ReasoningBackend(ABC):
    """Anything that can take a worker turn and answer research queries."""

    @abstractmethod
    async def infer(
        self,
        messages: List[Dict[str, str]],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> InferenceResult:
        """Run one chat completion. Raises on transport or API failure."""
        pass

    @abstractmethod
    async def research(self, query: str, num_results: int = 5) -> str:
        """Return a textual research summary. Never raises."""
        pass

    async def close(self) -> None:
        pass


class FalReasoningBackend(ReasoningBackend):
    """
    Reasoning backend on fal.ai's OpenRouter proxy.

    fal authenticates with `Authorization: Key <fal key>`, so the OpenAI
    client's own api_key is a placeholder.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        search_model: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key or config.ai.fal_key or ""
        self.model = model or config.ai.agent_model
        self.search_model = search_model or config.ai.search_model
        self.temperature = config.ai.agent_temperature
        self.search_temperature = config.ai.search_temperature

        self.client = client or AsyncOpenAI(
            base_url=base_url or config.ai.llm_base_url,
            api_key="not-needed",
            default_headers={"Authorization": f"Key {self.api_key}"},
        )

        if not self.api_key:
            logger.warning("[LLM] No fal.ai key - backend calls will fail")
        else:
            logger.info(f"[LLM] Backend initialized with {self.model}")

    async def infer(
        self,
        messages: List[Dict[str, str]],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> InferenceResult:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        response = await self.client.chat.completions.create(**kwargs)
        message = response.choices[0].message

        calls = [
            ToolCall(name=call.function.name, arguments=call.function.arguments, call_id=call.id)
            for call in (message.tool_calls or [])
        ]
        return InferenceResult(text=message.content or "", tool_calls=calls)

    async def research(self, query: str, num_results: int = 5) -> str:
        logger.info(f"[SEARCH] {query}")
        messages = [
            {"role": "system", "content": RESEARCH_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f'Search for: "{query}"\n\nProvide detailed findings with specific facts and source URLs.',
            },
        ]

        try:
            response = await self.client.chat.completions.create(
                model=self.search_model,
                messages=messages,
                temperature=self.search_temperature,
                extra_body={"plugins": [{"id": "web", "max_results": num_results}]},
            )
            return self._with_sources(response)
        except Exception as e:
            logger.warning(f"[SEARCH] Web plugin failed, retrying with :online model: {e}")

        try:
            response = await self.client.chat.completions.create(
                model=f"{self.search_model}:online",
                messages=messages,
                temperature=self.search_temperature,
            )
            return response.choices[0].message.content or "No results found."
        except Exception as e:
            logger.error(f"[SEARCH] Search failed: {e}")
            return f"Search failed: {e}. Please research manually."

    @staticmethod
    def _with_sources(response) -> str:
        message = response.choices[0].message
        content = message.content or "No results found."

        citations = []
        for annotation in getattr(message, "annotations", None) or []:
            if isinstance(annotation, dict):
                kind = annotation.get("type")
                cite = annotation.get("url_citation") or {}
                url, title = cite.get("url"), cite.get("title")
            else:
                kind = getattr(annotation, "type", None)
                cite = getattr(annotation, "url_citation", None)
                url, title = getattr(cite, "url", None), getattr(cite, "title", None)
            if kind == "url_citation" and url:
                citations.append(f"- {title or url}: {url}")

        if citations:
            content += "\n\n📚 SOURCES:\n" + "\n".join(citations)
        return content

    async def close(self) -> None:
        await self.client.close()
