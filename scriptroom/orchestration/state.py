"""
Session state owned by one control loop.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .enums import Phase
from .quality import WordEnvelope


@dataclass(frozen=True)
class FinalScript:
    """Approved script record. Set once per session, cleared only by reset."""
    title: str
    description: str
    script: str
    duration_estimate: str
    word_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "script": self.script,
            "duration_estimate": self.duration_estimate,
            "wordCount": self.word_count,
        }


@dataclass
class PendingQuestion:
    question: str
    options: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"question": self.question, "options": self.options}


@dataclass
class SessionState:
    """Mutable per-session orchestration state."""
    topic: Optional[str] = None
    running: bool = False
    phase: Phase = Phase.IDLE
    awaiting_human: bool = False
    pending_question: Optional[PendingQuestion] = None
    target_minutes: Optional[float] = None
    envelope: Optional[WordEnvelope] = None
    steps: int = 0
    step_budget: int = 30
    final_script: Optional[FinalScript] = None
    audio: Optional[Dict[str, Any]] = None

    def set_target_duration(
        self,
        minutes: float,
        words_per_minute: int,
        lower,
        upper,
    ) -> WordEnvelope:
        """Set the duration and its derived envelope together."""
        envelope = WordEnvelope.from_minutes(minutes, words_per_minute, lower, upper)
        self.target_minutes = minutes
        self.envelope = envelope
        return envelope

    @property
    def has_target(self) -> bool:
        return self.target_minutes is not None

    @property
    def budget_exhausted(self) -> bool:
        return self.steps >= self.step_budget

    def suspend(self, question: str, options: Optional[List[str]] = None) -> None:
        self.awaiting_human = True
        self.pending_question = PendingQuestion(question=question, options=options)

    def resume(self) -> None:
        self.awaiting_human = False
        self.pending_question = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "isRunning": self.running,
            "currentPhase": self.phase.value,
            "waitingForUser": self.awaiting_human,
            "pendingQuestion": self.pending_question.to_dict() if self.pending_question else None,
            "targetDuration": self.target_minutes,
            "targetWordCount": self.envelope.to_dict() if self.envelope else None,
            "steps": self.steps,
            "stepBudget": self.step_budget,
            "finalScript": self.final_script.to_dict() if self.final_script else None,
            "audio": self.audio,
        }
