"""
Orchestration layer: event bus, quality gates, dispatcher and control loop.
"""
from .enums import MessageKind, NotificationType, Phase, ScriptOperation
from .events import Event, EventBus, Notification
from .exceptions import (
    ActionPayloadError,
    OrchestrationError,
    SessionNotStartedError,
    UnknownRoleError,
)

__all__ = [
    "MessageKind",
    "NotificationType",
    "Phase",
    "ScriptOperation",
    "Event",
    "EventBus",
    "Notification",
    "ActionPayloadError",
    "OrchestrationError",
    "SessionNotStartedError",
    "UnknownRoleError",
]
