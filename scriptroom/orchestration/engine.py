"""
Control Loop - decides which worker acts next.

The loop is a trampoline over a deque of work items instead of recursion:
a worker's delegations are pushed to the front of the queue in the order
requested, followed by a coordinator follow-up, which reproduces a
depth-first conversation without growing the call stack. Every scheduled
item except the kickoff costs one step; when the budget is spent the loop
stops quietly and leaves the session where it is.
"""
import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

from scriptroom.agents.profiles import COORDINATOR, ROLE_PROFILES, AgentRole
from scriptroom.agents.worker import Worker
from scriptroom.config import EngineConfig, config
from scriptroom.services.llm_service import ReasoningBackend
from scriptroom.services.voiceover_service import VoiceoverService

from .dispatcher import SYSTEM_NAME, ActionDispatcher
from .enums import BROADCAST, SYSTEM, USER, MessageKind, Phase
from .events import EventBus
from .exceptions import SessionNotStartedError
from .quality import count_words, extract_duration_minutes, sanitize_for_voiceover
from .state import SessionState

logger = logging.getLogger(__name__)

# Invoking one of these roles moves the session into the mapped phase.
PHASE_FOR_ROLE = {
    AgentRole.RESEARCHER: Phase.RESEARCHING,
    AgentRole.WRITER: Phase.WRITING,
    AgentRole.CRITIC: Phase.REVIEWING,
    AgentRole.FACTCHECKER: Phase.REVIEWING,
    AgentRole.CREATIVE: Phase.CREATIVE,
    AgentRole.VOICEOVER: Phase.VOICEOVER,
}

SYSTEM_EMOJI, SYSTEM_COLOR = "⚙️", "#6b7280"


@dataclass
class WorkItem:
    """One scheduled worker invocation."""
    role: AgentRole
    message: str = ""
    from_agent: Optional[str] = None
    continuation: bool = False
    kickoff: bool = False
    user_message: Optional[str] = None


class ScriptEngine:
    """
    Orchestration engine for one session.

    Entry points are serialized by an asyncio lock; a session never runs
    two loops at once.
    """

    def __init__(
        self,
        backend: ReasoningBackend,
        engine_config: Optional[EngineConfig] = None,
        voiceover_factory: Optional[Callable[[], VoiceoverService]] = None,
        credential: Optional[str] = None,
    ):
        self.backend = backend
        self.settings = engine_config or config.engine
        self.credential = credential
        self.voiceover_factory = voiceover_factory or self._default_voiceover
        self.bus = EventBus()
        self.workers: Dict[AgentRole, Worker] = {
            role: Worker(profile, backend, self.bus, memory_turns=self.settings.memory_turns)
            for role, profile in ROLE_PROFILES.items()
        }
        self._lock = asyncio.Lock()
        self._new_session()

    def _default_voiceover(self) -> VoiceoverService:
        return VoiceoverService(api_key=self.credential, max_chunk_chars=self.settings.max_chunk_chars)

    def _new_session(self) -> None:
        self.state = SessionState(step_budget=self.settings.step_budget)
        self.dispatcher = ActionDispatcher(
            bus=self.bus,
            state=self.state,
            backend=self.backend,
            voiceover_factory=self.voiceover_factory,
            words_per_minute=self.settings.words_per_minute,
        )
        self.bus.clear()
        for worker in self.workers.values():
            worker.clear_memory()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start(self, topic: str, context: str = "") -> Dict[str, Any]:
        async with self._lock:
            self._new_session()
            self.state.topic = topic
            self.state.running = True
            self.state.phase = Phase.CLARIFYING

            logger.info("=" * 60)
            logger.info(f"[ENGINE] New project: {topic}")
            logger.info("=" * 60)

            self._post_system(f'New project started: "{topic}"')
            self.bus.set_phase(Phase.CLARIFYING.value, Phase.CLARIFYING.description)

            kickoff = WorkItem(role=COORDINATOR, message=self._kickoff_prompt(topic, context), kickoff=True)
            await self._run([kickoff])
            return self.get_state()

    async def respond(self, message: str) -> Dict[str, Any]:
        """Deliver a human reply and resume the loop."""
        async with self._lock:
            if not self.state.running:
                raise SessionNotStartedError("respond")

            self.bus.append(
                sender=USER,
                recipient=COORDINATOR.value,
                body=message,
                kind=MessageKind.INFO,
                sender_name="User",
                sender_emoji="👤",
                sender_color="#ffffff",
            )
            self.state.resume()

            if not self.state.has_target:
                minutes = extract_duration_minutes(message)
                if minutes:
                    envelope = self.state.set_target_duration(
                        minutes,
                        self.settings.words_per_minute,
                        self.settings.envelope_lower,
                        self.settings.envelope_upper,
                    )
                    logger.info(f"[ENGINE] Target duration {minutes:g} min -> {envelope.minimum}-{envelope.maximum} words")
                    self._post_system(
                        f"📏 Target set: {minutes:g} minutes ({envelope.minimum}-{envelope.maximum} words)"
                    )

            await self._run([WorkItem(role=COORDINATOR, continuation=True, user_message=message)])
            return self.get_state()

    async def continue_orchestration(self) -> Dict[str, Any]:
        """Nudge a running session forward by one coordinator turn."""
        async with self._lock:
            if not self.state.running:
                raise SessionNotStartedError("continue")
            if self.state.awaiting_human:
                logger.info("[ENGINE] Continue ignored - waiting for the user")
                return self.get_state()
            await self._run([WorkItem(role=COORDINATOR, continuation=True)])
            return self.get_state()

    async def reset(self) -> None:
        """Clear the session. Bus observers stay wired."""
        # A loop in flight stops at its next step.
        self.state.running = False
        async with self._lock:
            self._new_session()
            logger.info("[ENGINE] Session reset")

    def get_state(self) -> Dict[str, Any]:
        state = self.state.to_dict()
        script = self.bus.script
        state.update({
            "script": script,
            "messages": [event.to_dict() for event in self.bus.tail(len(self.bus))],
            "agents": [profile.public_info() for profile in ROLE_PROFILES.values()],
            "thinking": self.bus.thinking_agents,
            "wordCount": self.script_word_count(script),
        })
        return state

    def script_word_count(self, script: Optional[Dict[str, str]] = None) -> int:
        script = self.bus.script if script is None else script
        return sum(count_words(text) for text in script.values())

    # ------------------------------------------------------------------
    # Trampoline
    # ------------------------------------------------------------------

    async def _run(self, initial: List[WorkItem]) -> None:
        queue: Deque[WorkItem] = deque(initial)

        while queue and self.state.running and not self.state.awaiting_human:
            item = queue.popleft()

            if not item.kickoff:
                if self.state.budget_exhausted:
                    logger.info(f"[ENGINE] Step budget of {self.state.step_budget} reached, stopping")
                    queue.clear()
                    break
                self.state.steps += 1

            if item.continuation and item.user_message is None and self.settings.delegation_delay > 0:
                await asyncio.sleep(self.settings.delegation_delay)

            halted = await self._step(item, queue)
            if halted:
                break

        if queue:
            logger.info(f"[ENGINE] Dropping {len(queue)} pending item(s): loop suspended or stopped")

    async def _step(self, item: WorkItem, queue: Deque[WorkItem]) -> bool:
        worker = self.workers[item.role]
        profile = worker.profile
        is_coordinator = item.role == COORDINATOR

        if not item.continuation and not item.kickoff:
            phase = PHASE_FOR_ROLE.get(item.role)
            if phase is not None:
                self.state.phase = phase
                self.bus.set_phase(phase.value, phase.description)

        if item.kickoff:
            instruction = item.message
        elif item.continuation:
            instruction = self._continuation_prompt(item.user_message)
        else:
            instruction = self._delegation_prompt(item)

        history = self.settings.coordinator_history if is_coordinator else self.settings.worker_history
        logger.info(f"[ENGINE] Step {self.state.steps}/{self.state.step_budget}: {item.role.value}")
        reply = await worker.act(instruction, history=history)

        if reply.failed:
            self._post_system(f"{profile.name} could not respond. {reply.text}", emoji="❌", color="#ef4444")
        elif reply.text:
            self.bus.append(
                sender=profile.role_id,
                recipient=BROADCAST,
                body=reply.text,
                kind=MessageKind.INFO,
                sender_name=profile.name,
                sender_emoji=profile.emoji,
                sender_color=profile.color,
            )

        outcome = await self.dispatcher.dispatch_all(profile, reply.actions)
        if outcome.halt:
            return True

        follow_ups = [
            WorkItem(role=d.role, message=d.message, from_agent=d.from_agent)
            for d in outcome.delegations
        ]
        if not is_coordinator:
            follow_ups.append(WorkItem(role=COORDINATOR, continuation=True))
        queue.extendleft(reversed(follow_ups))
        return False

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def _kickoff_prompt(self, topic: str, context: str) -> str:
        return f"""A new YouTube video project is starting.

TOPIC: {topic}
USER NOTE: {context or '(none)'}

Your task:
1. Use the request_user_input tool to ask the user ALL important questions at once:
   - Target audience (age group, interests)
   - Video tone (educational, entertaining, dramatic, documentary-style)
   - Target duration (any length: 30 seconds, 2 minutes, 10 minutes, etc.)
   - Any specific requirements or preferences

Ask all questions in a single, clear message."""

    def _target_info(self) -> str:
        envelope = self.state.envelope
        if envelope is None:
            return "Target duration: NOT SET YET - Ask user if not specified"
        return (
            f"Target duration: {self.state.target_minutes:g} minutes\n"
            f"Target word count: {envelope.minimum}-{envelope.maximum} words\n"
            f"Current word count: {self.script_word_count()} words"
        )

    def _word_count_check(self) -> str:
        envelope = self.state.envelope
        if envelope is None:
            return "Confirm the target duration with the user before finalizing."
        return (
            f"WORD COUNT CHECK: before finalizing, verify the script is {envelope.minimum}-{envelope.maximum} words.\n"
            "If too long, send it back to @writer to condense. If too short, send it back to @writer to expand."
        )

    def _status_block(self) -> str:
        return (
            f"Current phase: {self.state.phase.value}\n"
            f"Topic: {self.state.topic}\n"
            f"Script sections completed: {len(self.bus.script)}\n"
            f"{self._target_info()}"
        )

    def _continuation_prompt(self, user_message: Optional[str]) -> str:
        if user_message is not None:
            return f"""The user responded: "{user_message}"

{self._status_block()}

Based on the user's response, decide your next action:
1. If you need more clarification, use request_user_input
2. If you have enough info and are clarifying, move to research - task @researcher
3. If research is done, task @writer (restate the word count target)
4. If the script is written, task @critic and @factchecker to review
5. If reviews are positive, task @creative for hooks, titles and thumbnails
6. If everything is approved and inside the target range, use finalize_script
7. After finalizing, task @voiceover to clean the script and generate audio

{self._word_count_check()}

Keep the workflow moving. Take action instead of acknowledging."""

        return f"""Continue the project workflow.

{self._status_block()}

Review recent messages and decide the next step:
1. If an agent completed their task, move to the next phase
2. If the script needs improvement (wrong length, meta-text), send it back with specific feedback
3. If the script is approved and inside the target range, use finalize_script
4. Once the script is finalized, task @voiceover to clean it and generate audio

{self._word_count_check()}
The script must contain ONLY pure narration (no agent messages or meta-text)."""

    def _delegation_prompt(self, item: WorkItem) -> str:
        envelope = self.state.envelope
        if envelope is not None:
            target_info = (
                f"TARGET DURATION: {self.state.target_minutes:g} minutes\n"
                f"TARGET WORD COUNT: {envelope.minimum}-{envelope.maximum} words\n"
                f"CURRENT WORD COUNT: {self.script_word_count()} words"
            )
            word_range = f"{envelope.minimum}-{envelope.maximum}"
        else:
            target_info = "Target duration: Not specified yet"
            word_range = "the target"

        extra = ""
        if item.role == AgentRole.WRITER:
            extra = f"""
CRITICAL INSTRUCTIONS FOR SCRIPT:
1. Write ONLY pure spoken narration - NO agent messages, NO meta-commentary
2. Stay within {word_range} words STRICTLY
3. The script should read exactly as it will be spoken aloud
"""
        elif item.role == AgentRole.CRITIC:
            extra = f"""
CRITICAL CHECKS:
1. Word count must be {word_range} words - REJECT if outside the range
2. Script must contain ONLY pure narration - REJECT agent messages or meta-text
3. No filler, no planning notes, no self-references
"""
        elif item.role == AgentRole.VOICEOVER:
            extra = f"""
YOUR TASK:
1. Take the approved script
2. Make sure no [VISUAL], [EFFECT], [MUSIC] tags, timestamps or section headers remain
3. Use generate_voiceover with the clean, speakable text

PRE-CLEANED SCRIPT:
{self._voiceover_source()}
"""

        return f"""@{item.from_agent} sent you a message: "{item.message}"

Topic: {self.state.topic}
Current phase: {self.state.phase.value}
{target_info}
{extra}
Complete your task thoroughly and share results with the team.
After completing your task, report back to @{COORDINATOR.value}."""

    def _voiceover_source(self) -> str:
        if self.state.final_script is not None:
            text = self.state.final_script.script
        else:
            text = "\n\n".join(self.bus.script.values())
        return sanitize_for_voiceover(text) or "(no script yet)"

    def _post_system(self, body: str, emoji: str = SYSTEM_EMOJI, color: str = SYSTEM_COLOR) -> None:
        self.bus.append(
            sender=SYSTEM,
            recipient=BROADCAST,
            body=body,
            kind=MessageKind.INFO,
            sender_name=SYSTEM_NAME,
            sender_emoji=emoji,
            sender_color=color,
        )
