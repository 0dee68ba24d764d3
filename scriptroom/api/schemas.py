"""
Pydantic schemas for API requests and responses.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

MIN_TOPIC_LENGTH = 3


class StartProjectRequest(BaseModel):
    """Start (or restart) a script project."""
    topic: str = Field(..., description="Video topic")
    context: Optional[str] = Field(default="", description="Extra notes for the producer")
    session_id: Optional[str] = Field(default=None, description="Reuse a session; generated when absent")
    api_key: Optional[str] = Field(default=None, description="Client fal.ai key")

    @field_validator("topic")
    @classmethod
    def topic_not_blank(cls, v: str) -> str:
        if len(v.strip()) < MIN_TOPIC_LENGTH:
            raise ValueError(f"Topic must be at least {MIN_TOPIC_LENGTH} characters")
        return v


class RespondRequest(BaseModel):
    """Human reply to a pending question."""
    session_id: str
    message: str = Field(..., min_length=1)
    api_key: Optional[str] = None


class SessionRequest(BaseModel):
    session_id: str


class ProjectResponse(BaseModel):
    """Session snapshot returned by every project endpoint."""
    success: bool = True
    session_id: str
    state: Dict[str, Any]


class ResetResponse(BaseModel):
    success: bool
    session_id: str


class AgentInfo(BaseModel):
    id: str
    name: str
    emoji: str
    color: str
    role: str


class AgentsResponse(BaseModel):
    agents: List[AgentInfo]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    active_sessions: int
    timestamp: datetime


class ConfigResponse(BaseModel):
    """Public configuration; never includes keys."""
    has_server_key: bool
    agent_model: str
    search_model: str
    voice_provider: str
    step_budget: int
