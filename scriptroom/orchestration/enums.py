"""
Orchestration enumerations.

Defines the workflow phases, message kinds and script operations
shared by the event bus, the dispatcher and the control loop.
"""
from enum import Enum


class Phase(str, Enum):
    """
    Workflow phases of a script session.

    A session moves idle -> clarifying -> researching -> writing ->
    reviewing -> creative -> voiceover -> completed. Waiting for the
    human is tracked separately and can happen in any phase.
    """
    IDLE = "idle"
    CLARIFYING = "clarifying"
    RESEARCHING = "researching"
    WRITING = "writing"
    REVIEWING = "reviewing"
    CREATIVE = "creative"
    VOICEOVER = "voiceover"
    COMPLETED = "completed"

    @property
    def description(self) -> str:
        """Human-readable phase description for the event stream."""
        descriptions = {
            self.IDLE: "Waiting for a topic",
            self.CLARIFYING: "Gathering requirements",
            self.RESEARCHING: "Researching topic",
            self.WRITING: "Writing script",
            self.REVIEWING: "Reviewing script",
            self.CREATIVE: "Creating hooks and titles",
            self.VOICEOVER: "Preparing voiceover",
            self.COMPLETED: "Project complete",
        }
        return descriptions.get(self, "")


class MessageKind(str, Enum):
    """Kind tag carried by every chat event."""
    INFO = "info"
    QUESTION = "question"
    TASK = "task"
    RESULT = "result"
    FEEDBACK = "feedback"
    APPROVAL = "approval"

    @classmethod
    def coerce(cls, value: str) -> "MessageKind":
        """Map a free-form kind onto the closed set, defaulting to INFO."""
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.INFO


class ScriptOperation(str, Enum):
    """Mutation applied to a script section."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class NotificationType(str, Enum):
    """Outward notification kinds published by the event bus."""
    MESSAGE = "message"
    SCRIPT = "script"
    THINKING = "thinking"
    PHASE = "phase"


# Sentinel participants that are not workers
SYSTEM = "system"
USER = "user"
BROADCAST = "all"
