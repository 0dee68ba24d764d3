"""
Action Dispatcher - executes the actions a worker requested.

The dispatcher is the only place where worker output turns into side
effects: bus events, script mutations, state changes, web research and
voiceover synthesis. It never invokes another worker. Delegations come
back to the control loop as `Delegation` records and the loop decides
when they run.
"""
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, List, Optional

from scriptroom.agents.profiles import AgentRole, RoleProfile, resolve_role
from scriptroom.agents.tools import (
    FinalizeScript,
    GenerateVoiceover,
    RequestUserInput,
    SearchWeb,
    SendMessage,
    ToolCall,
    WriteScriptSection,
    parse_action,
)
from scriptroom.security import sanitize_input

from .enums import BROADCAST, SYSTEM, USER, MessageKind, Phase
from .events import EventBus
from .exceptions import ActionPayloadError, UnknownRoleError
from .quality import (
    count_words,
    estimate_minutes,
    validate_audio_result,
    validate_script,
    validate_voiceover_text,
)
from .state import FinalScript, SessionState

if TYPE_CHECKING:
    from scriptroom.services.voiceover_service import VoiceoverService

logger = logging.getLogger(__name__)

SYSTEM_NAME = "System"
WARN_EMOJI, WARN_COLOR = "⚠️", "#f59e0b"
ERROR_EMOJI, ERROR_COLOR = "❌", "#ef4444"
DONE_EMOJI, DONE_COLOR = "🎬", "#22c55e"
AUDIO_EMOJI, AUDIO_COLOR = "🎙️", "#10b981"


@dataclass
class Delegation:
    """A request for another worker to act, produced by a send_message action."""
    role: AgentRole
    message: str
    from_agent: str


@dataclass
class DispatchOutcome:
    delegations: List[Delegation] = field(default_factory=list)
    halt: bool = False


class ActionDispatcher:
    """
    Executes one worker's requested actions against one session.

    `voiceover_factory` builds the voiceover service lazily so that a
    session without a voiceover step never touches a speech provider.
    """

    def __init__(
        self,
        bus: EventBus,
        state: SessionState,
        backend,
        voiceover_factory: Callable[[], "VoiceoverService"],
        words_per_minute: int = 150,
    ):
        self.bus = bus
        self.state = state
        self.backend = backend
        self.voiceover_factory = voiceover_factory
        self.words_per_minute = words_per_minute

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def dispatch_all(self, sender: RoleProfile, calls: List[ToolCall]) -> DispatchOutcome:
        """
        Execute actions in the order requested.

        Once an action halts the loop, the remaining actions of the same
        reply are skipped.
        """
        outcome = DispatchOutcome()
        for index, call in enumerate(calls):
            if outcome.halt:
                skipped = [c.name for c in calls[index:]]
                logger.info(f"[DISPATCH] Loop halted - skipping {len(skipped)} action(s) from {sender.role_id}: {skipped}")
                break
            result = await self.dispatch(sender, call)
            outcome.delegations.extend(result.delegations)
            outcome.halt = outcome.halt or result.halt
        return outcome

    async def dispatch(self, sender: RoleProfile, call: ToolCall) -> DispatchOutcome:
        if call.name not in sender.capabilities:
            logger.warning(f"[DISPATCH] {sender.role_id} is not allowed to use {call.name}")
            self._post_system(
                sender.role_id,
                f"{sender.name} cannot use '{call.name}'. Available tools: {', '.join(sender.capabilities)}",
            )
            return DispatchOutcome()

        try:
            action = parse_action(call)
        except ActionPayloadError as e:
            logger.warning(f"[DISPATCH] Skipping action from {sender.role_id}: {e.message}")
            self._post_system(sender.role_id, f"Skipped a malformed action from {sender.name}: {e.reason}")
            return DispatchOutcome()

        logger.info(f"[DISPATCH] {sender.role_id} -> {call.name}")

        if isinstance(action, SendMessage):
            return self._send_message(sender, action)
        if isinstance(action, SearchWeb):
            return await self._search_web(sender, action)
        if isinstance(action, WriteScriptSection):
            return self._write_section(sender, action)
        if isinstance(action, RequestUserInput):
            return self._request_user_input(sender, action)
        if isinstance(action, FinalizeScript):
            return self._finalize(sender, action)
        if isinstance(action, GenerateVoiceover):
            return await self._generate_voiceover(sender, action)
        return DispatchOutcome()

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _send_message(self, sender: RoleProfile, action: SendMessage) -> DispatchOutcome:
        recipient = action.to.strip().lstrip("@").lower()

        if recipient == USER:
            self._post_as(sender, USER, action.message, action.type)
            if action.type == MessageKind.QUESTION:
                self.state.suspend(action.message)
                return DispatchOutcome(halt=True)
            return DispatchOutcome()

        if recipient == BROADCAST:
            self._post_as(sender, BROADCAST, action.message, action.type)
            return DispatchOutcome()

        try:
            role = resolve_role(recipient)
        except UnknownRoleError:
            logger.warning(f"[DISPATCH] {sender.role_id} addressed unknown recipient '{action.to}'")
            self._post_system(sender.role_id, f"Message not delivered: unknown recipient '{action.to}'")
            return DispatchOutcome()

        self._post_as(sender, role.value, action.message, action.type)
        return DispatchOutcome(delegations=[Delegation(role=role, message=action.message, from_agent=sender.role_id)])

    async def _search_web(self, sender: RoleProfile, action: SearchWeb) -> DispatchOutcome:
        self.bus.set_thinking(sender.role_id, True, f'Searching: "{action.query[:50]}"')
        try:
            result = await self.backend.research(action.query, action.num_results)
        except Exception as e:
            logger.error(f"[DISPATCH] Research failed: {e}")
            result = f"Search failed: {e}. Please research manually."
        finally:
            self.bus.set_thinking(sender.role_id, False)

        self._post_as(sender, BROADCAST, f'🔍 Search: "{action.query}"\n\n{result}', MessageKind.RESULT)
        return DispatchOutcome()

    def _write_section(self, sender: RoleProfile, action: WriteScriptSection) -> DispatchOutcome:
        snapshot = self.bus.mutate_artifact(action.section, action.content, action.action)

        section_words = count_words(action.content)
        total_words = sum(count_words(text) for text in snapshot.values())
        self._post_as(
            sender,
            BROADCAST,
            f"📝 Script updated: [{action.section}] - {action.action.value}\n"
            f"   📊 This section: {section_words} words (~{estimate_minutes(section_words, self.words_per_minute)} min)\n"
            f"   📊 Total script: {total_words} words (~{estimate_minutes(total_words, self.words_per_minute)} min)",
            MessageKind.INFO,
        )
        return DispatchOutcome()

    def _request_user_input(self, sender: RoleProfile, action: RequestUserInput) -> DispatchOutcome:
        self.state.suspend(action.question, action.options)
        self._post_as(sender, USER, action.question, MessageKind.QUESTION, payload={"options": action.options})
        return DispatchOutcome(halt=True)

    def _finalize(self, sender: RoleProfile, action: FinalizeScript) -> DispatchOutcome:
        validation = validate_script(action.script, self.state.envelope)

        if not validation.valid:
            logger.info(f"[DISPATCH] Finalize rejected: {validation.issues}")
            self._post_system(
                BROADCAST,
                "Script validation failed - cannot finalize:\n\n"
                "❌ Issues:\n" + "\n".join(validation.issues) + "\n\n"
                "⚠️ Warnings:\n" + ("\n".join(validation.warnings) or "None") + "\n\n"
                "Please fix these issues before finalizing.",
                kind=MessageKind.FEEDBACK,
                payload={"validation": validation.to_dict()},
            )
            return DispatchOutcome()

        if self.state.final_script is not None:
            logger.info("[DISPATCH] Finalize ignored - script already finalized")
            self._post_system(
                BROADCAST,
                f'Script already finalized as "{self.state.final_script.title}". Keeping the existing version.',
            )
            return DispatchOutcome()

        record = FinalScript(
            title=sanitize_input(action.title),
            description=sanitize_input(action.description),
            script=action.script,
            duration_estimate=action.duration_estimate or f"~{validation.estimated_duration} minutes",
            word_count=validation.word_count,
        )
        self.state.final_script = record

        body = (
            f"FINAL SCRIPT READY!\n\n📺 {record.title}\n"
            f"⏱️ Estimated duration: {record.duration_estimate}\n"
            f"📝 Word count: {record.word_count} words"
        )
        if validation.warnings:
            body += "\n\n⚠️ Warnings:\n" + "\n".join(validation.warnings)
        body += f"\n\n{record.description}\n\n---\n\n{record.script}"

        self._post_system(
            BROADCAST, body, kind=MessageKind.RESULT, emoji=DONE_EMOJI, color=DONE_COLOR,
            payload={"finalScript": record.to_dict()},
        )
        logger.info(f"[DISPATCH] Script finalized: {record.title} ({record.word_count} words)")
        return DispatchOutcome()

    async def _generate_voiceover(self, sender: RoleProfile, action: GenerateVoiceover) -> DispatchOutcome:
        agent_id = sender.role_id
        self.bus.set_thinking(agent_id, True, "Validating voiceover text...")
        validation = validate_voiceover_text(action.text)

        if not validation.valid:
            self.bus.set_thinking(agent_id, False)
            self._post_system(
                BROADCAST,
                "Voiceover text validation failed:\n" + "\n".join(validation.issues)
                + "\n\nPlease clean the script and try again.",
                kind=MessageKind.FEEDBACK,
                payload={"foundMarkup": validation.found_markup},
            )
            return DispatchOutcome()

        def _progress(index: int, total: int) -> None:
            self.bus.set_thinking(agent_id, True, f"Generating audio... ({index}/{total})")

        try:
            service = self.voiceover_factory()
            result = await service.generate(validation.clean_text, action.voice_style, on_progress=_progress)
            audio_check = validate_audio_result(result)
        except Exception as e:
            logger.error(f"[VOICEOVER] Generation error: {e}")
            self._post_system(
                BROADCAST, f"Voiceover generation error: {e}", emoji=ERROR_EMOJI, color=ERROR_COLOR,
            )
        else:
            if audio_check.valid:
                self.state.audio = result.to_payload()
                seconds = f"{round(result.duration)}s" if result.duration else "N/A"
                self._post_system(
                    BROADCAST,
                    "Voiceover generated successfully!\n\n"
                    f"🎙️ Duration: {seconds}\n"
                    f"📝 Word count: {validation.word_count}\n"
                    f"⏱️ Estimated: ~{validation.estimated_duration} min\n"
                    f"🧩 Chunks: {len(result.chunks)}",
                    kind=MessageKind.RESULT, emoji=AUDIO_EMOJI, color=AUDIO_COLOR,
                    payload={"audioFile": result.to_payload()},
                )
            else:
                self._post_system(BROADCAST, "Voiceover generation issues:\n" + "\n".join(audio_check.issues))
        finally:
            self.bus.set_thinking(agent_id, False)

        self.state.running = False
        self.state.phase = Phase.COMPLETED
        self.bus.set_phase(Phase.COMPLETED.value, Phase.COMPLETED.description)
        return DispatchOutcome(halt=True)

    # ------------------------------------------------------------------
    # Event helpers
    # ------------------------------------------------------------------

    def _post_as(self, sender: RoleProfile, recipient: str, body: str, kind: MessageKind, payload=None) -> None:
        self.bus.append(
            sender=sender.role_id,
            recipient=recipient,
            body=body,
            kind=kind,
            sender_name=sender.name,
            sender_emoji=sender.emoji,
            sender_color=sender.color,
            payload=payload,
        )

    def _post_system(
        self,
        recipient: str,
        body: str,
        kind: MessageKind = MessageKind.INFO,
        emoji: str = WARN_EMOJI,
        color: str = WARN_COLOR,
        payload: Optional[dict] = None,
    ) -> None:
        self.bus.append(
            sender=SYSTEM,
            recipient=recipient,
            body=body,
            kind=kind,
            sender_name=SYSTEM_NAME,
            sender_emoji=emoji,
            sender_color=color,
            payload=payload,
        )
