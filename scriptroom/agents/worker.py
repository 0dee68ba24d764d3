"""
Worker - one agent role bound to a reasoning backend.

A worker is pure with respect to the session: it reads the bus to build its
prompt, keeps a bounded conversation memory, and returns what the model
said and which actions it requested. It never executes actions itself.
"""
import json
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List

from scriptroom.agents.profiles import RoleProfile, roster_for
from scriptroom.agents.tools import ToolCall, tools_for
from scriptroom.orchestration.events import Event, EventBus
from scriptroom.services.llm_service import ReasoningBackend

logger = logging.getLogger(__name__)


@dataclass
class WorkerReply:
    """What a worker produced in one turn."""
    text: str
    actions: List[ToolCall] = field(default_factory=list)
    failed: bool = False


def format_event(event: Event) -> str:
    sender = event.sender_name or event.sender
    return f"[{sender}] → [{event.recipient}]: {event.body}"


class Worker:
    """
    Agent worker.

    Memory holds the last `memory_turns` user/assistant entries; the
    oldest entries are dropped first.
    """

    def __init__(
        self,
        profile: RoleProfile,
        backend: ReasoningBackend,
        bus: EventBus,
        memory_turns: int = 20,
    ):
        self.profile = profile
        self.backend = backend
        self.bus = bus
        self.memory: Deque[Dict[str, str]] = deque(maxlen=memory_turns)

    @property
    def role_id(self) -> str:
        return self.profile.role_id

    def clear_memory(self) -> None:
        self.memory.clear()

    def build_system_prompt(self, history: int) -> str:
        script = self.bus.script
        script_json = json.dumps(script, indent=2, ensure_ascii=False) if script else "(empty)"
        recent = "\n".join(format_event(e) for e in self.bus.tail(history)) or "(no messages yet)"

        return (
            f"{self.profile.instructions}\n\n"
            f"═══ TEAM ═══\n"
            f"YOU ARE: {self.profile.name} ({self.profile.title})\n"
            f"Your teammates:\n" + "\n".join(roster_for(self.profile.role)) + "\n\n"
            f"═══ CURRENT SCRIPT ═══\n{script_json}\n\n"
            f"═══ RECENT MESSAGES ═══\n{recent}"
        )

    async def act(self, instruction: str, history: int = 10) -> WorkerReply:
        """
        Run one turn for this role.

        Backend failures are turned into an error reply with no actions;
        this method does not raise for them.
        """
        messages = [{"role": "system", "content": self.build_system_prompt(history)}]
        messages.extend(self.memory)
        messages.append({"role": "user", "content": instruction})

        self.bus.set_thinking(self.role_id, True, instruction)
        try:
            result = await self.backend.infer(messages, tools_for(self.profile.capabilities))
        except Exception as e:
            logger.error(f"[{self.role_id.upper()}] Backend call failed: {e}")
            return WorkerReply(text=f"Error occurred: {e}", failed=True)
        finally:
            self.bus.set_thinking(self.role_id, False)

        self.memory.append({"role": "user", "content": instruction})
        self.memory.append({"role": "assistant", "content": result.text or _describe_calls(result.tool_calls)})

        logger.info(
            f"[{self.role_id.upper()}] Replied with {len(result.text)} chars and {len(result.tool_calls)} action(s)"
        )
        return WorkerReply(text=result.text, actions=list(result.tool_calls))


def _describe_calls(calls: List[ToolCall]) -> str:
    if not calls:
        return "(no response)"
    return "Requested actions: " + ", ".join(call.name for call in calls)
