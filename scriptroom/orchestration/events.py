"""
Event Bus - append-only log of everything a session does.

The bus owns two pieces of state: the ordered event log and the script
artifact (section name -> text). Every change is fanned out synchronously,
in append order, to registered observers. Observers drive the outward SSE
stream; a failing observer is logged and never blocks the mutation.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .enums import MessageKind, NotificationType, ScriptOperation

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Event:
    """A chat event. Immutable once appended."""
    id: str
    timestamp: str
    sender: str
    recipient: str
    body: str
    kind: MessageKind = MessageKind.INFO
    sender_name: str = ""
    sender_emoji: str = ""
    sender_color: str = ""
    payload: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "timestamp": self.timestamp,
            "from": self.sender,
            "fromName": self.sender_name,
            "fromEmoji": self.sender_emoji,
            "fromColor": self.sender_color,
            "to": self.recipient,
            "content": self.body,
            "type": self.kind.value,
        }
        if self.payload:
            data.update(self.payload)
        return data


@dataclass(frozen=True)
class Notification:
    """Outward notification delivered to bus observers."""
    type: NotificationType
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "data": self.data}


Observer = Callable[[Notification], None]


class EventBus:
    """
    Per-session event log and script artifact.

    Only the owning control loop writes to the bus; observers only read.
    """

    def __init__(self):
        self._events: List[Event] = []
        self._script: Dict[str, str] = {}
        self._thinking: set = set()
        self._observers: List[Observer] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer. Returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def _unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def _notify(self, notification: Notification) -> None:
        for observer in list(self._observers):
            try:
                observer(notification)
            except Exception:
                logger.exception(f"[BUS] Observer failed on {notification.type.value} notification")

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------

    def append(
        self,
        sender: str,
        recipient: str,
        body: str,
        kind: MessageKind = MessageKind.INFO,
        sender_name: str = "",
        sender_emoji: str = "",
        sender_color: str = "",
        payload: Optional[Dict[str, Any]] = None,
    ) -> Event:
        """Append an event, assigning its id and timestamp."""
        event = Event(
            id=uuid.uuid4().hex,
            timestamp=_utc_now(),
            sender=sender,
            recipient=recipient,
            body=body,
            kind=kind,
            sender_name=sender_name,
            sender_emoji=sender_emoji,
            sender_color=sender_color,
            payload=dict(payload) if payload else None,
        )
        self._events.append(event)
        self._notify(Notification(NotificationType.MESSAGE, event.to_dict()))
        return event

    def tail(self, n: int = 50) -> List[Event]:
        """Return the n most recent events, oldest first."""
        if n <= 0:
            return []
        return list(self._events[-n:])

    def __len__(self) -> int:
        return len(self._events)

    # ------------------------------------------------------------------
    # Status notifications (not part of the log)
    # ------------------------------------------------------------------

    def set_thinking(self, agent_id: str, active: bool, context: str = "") -> None:
        if active:
            self._thinking.add(agent_id)
        else:
            self._thinking.discard(agent_id)
        self._notify(Notification(NotificationType.THINKING, {
            "agentId": agent_id,
            "isThinking": active,
            "context": context[:100],
            "timestamp": _utc_now(),
        }))

    @property
    def thinking_agents(self) -> List[str]:
        return sorted(self._thinking)

    def set_phase(self, phase: str, description: str = "") -> None:
        self._notify(Notification(NotificationType.PHASE, {
            "phase": phase,
            "description": description,
            "timestamp": _utc_now(),
        }))

    # ------------------------------------------------------------------
    # Script artifact
    # ------------------------------------------------------------------

    def mutate_artifact(self, section: str, content: str, op: ScriptOperation) -> Dict[str, str]:
        """Apply one section mutation and return the new snapshot."""
        if op == ScriptOperation.DELETE:
            self._script.pop(section, None)
        else:
            self._script[section] = content or ""
        snapshot = self.script
        self._notify(Notification(NotificationType.SCRIPT, snapshot))
        return snapshot

    @property
    def script(self) -> Dict[str, str]:
        """Copy of the current script; callers never see partial updates."""
        return dict(self._script)

    def clear(self) -> None:
        """Drop log, script and thinking state. Observers stay wired."""
        self._events = []
        self._script = {}
        self._thinking.clear()
