"""
Project endpoints - the session lifecycle over HTTP.

Every call runs the control loop until it suspends for the user, exhausts
its step budget or completes, then returns the session snapshot. Progress
in between is pushed over the SSE stream at /api/events/{session_id}.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Request

from scriptroom.config import config
from scriptroom.orchestration.engine import ScriptEngine
from scriptroom.security import (
    generate_session_id,
    is_valid_api_key_format,
    is_valid_session_id,
    sanitize_input,
)

from ..dependencies import client_key, enforce_rate_limit, get_broadcaster, get_registry
from ..exceptions import SessionNotFoundError, ValidationError
from ..schemas import (
    ProjectResponse,
    RespondRequest,
    ResetResponse,
    SessionRequest,
    StartProjectRequest,
)
from ..streaming import event_stream

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Project"])


def _check_session_id(session_id: Optional[str]) -> str:
    if not is_valid_session_id(session_id):
        raise ValidationError("Invalid session ID format")
    return session_id


def _check_api_key(api_key: Optional[str]) -> Optional[str]:
    if api_key:
        if not is_valid_api_key_format(api_key):
            raise ValidationError("Invalid API key format")
        return api_key
    if not config.ai.has_fal:
        raise ValidationError("API key required", detail="The server has no fal.ai key configured")
    return None


def _existing(session_id: str) -> ScriptEngine:
    engine = get_registry().get(session_id)
    if engine is None:
        raise SessionNotFoundError(session_id)
    return engine


@router.post("/project/start", response_model=ProjectResponse, summary="Start Project")
async def start_project(body: StartProjectRequest, request: Request) -> ProjectResponse:
    """
    Start a project. An existing session with the same id is reset first.
    """
    session_id = _check_session_id(body.session_id) if body.session_id else generate_session_id()
    enforce_rate_limit(body.session_id or client_key(request))
    api_key = _check_api_key(body.api_key)

    topic = sanitize_input(body.topic)
    if len(topic) < 3:
        raise ValidationError("Topic must be at least 3 characters")

    engine = get_registry().get_or_create(session_id, api_key)
    logger.info(f"[API] Starting session {session_id}: {topic[:50]}")
    state = await engine.start(topic, sanitize_input(body.context))
    return ProjectResponse(session_id=session_id, state=state)


@router.post("/project/respond", response_model=ProjectResponse, summary="Answer Question")
async def respond(body: RespondRequest) -> ProjectResponse:
    session_id = _check_session_id(body.session_id)
    enforce_rate_limit(session_id)
    if body.api_key and not is_valid_api_key_format(body.api_key):
        raise ValidationError("Invalid API key format")

    message = sanitize_input(body.message)
    if not message:
        raise ValidationError("Message is empty after sanitizing")

    state = await _existing(session_id).respond(message)
    return ProjectResponse(session_id=session_id, state=state)


@router.post("/project/continue", response_model=ProjectResponse, summary="Continue Workflow")
async def continue_project(body: SessionRequest) -> ProjectResponse:
    session_id = _check_session_id(body.session_id)
    enforce_rate_limit(session_id)
    state = await _existing(session_id).continue_orchestration()
    return ProjectResponse(session_id=session_id, state=state)


@router.get("/project/state/{session_id}", response_model=ProjectResponse, summary="Session State")
async def get_state(session_id: str) -> ProjectResponse:
    session_id = _check_session_id(session_id)
    return ProjectResponse(session_id=session_id, state=_existing(session_id).get_state())


@router.post("/project/reset", response_model=ResetResponse, summary="Reset Project")
async def reset_project(body: SessionRequest) -> ResetResponse:
    session_id = _check_session_id(body.session_id)
    found = await get_registry().reset(session_id)
    if not found:
        raise SessionNotFoundError(session_id)
    return ResetResponse(success=True, session_id=session_id)


@router.get("/events/{session_id}", summary="Event Stream")
async def stream_events(session_id: str, request: Request):
    """
    Server-Sent Events for one session.

    The stream may be opened before the session is started; it carries
    `{type, data}` payloads with type message, script, thinking or phase.
    """
    session_id = _check_session_id(session_id)
    return event_stream(request, get_broadcaster(), session_id)
