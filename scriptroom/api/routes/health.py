"""
Health, configuration and roster endpoints.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, status

from scriptroom import __version__
from scriptroom.agents.profiles import ROLE_PROFILES
from scriptroom.config import config

from ..dependencies import get_registry
from ..schemas import AgentInfo, AgentsResponse, ConfigResponse, HealthResponse

router = APIRouter(prefix="/api", tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health Check",
)
async def health_check() -> HealthResponse:
    """Liveness plus the number of sessions held in memory."""
    return HealthResponse(
        status="healthy",
        service="scriptroom",
        version=__version__,
        active_sessions=len(get_registry()),
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/config",
    response_model=ConfigResponse,
    summary="Configuration Status",
    description="Tells the client whether it must supply its own key. Never exposes keys.",
)
async def config_status() -> ConfigResponse:
    return ConfigResponse(
        has_server_key=config.ai.has_fal,
        agent_model=config.ai.agent_model,
        search_model=config.ai.search_model,
        voice_provider=config.server.voice_provider,
        step_budget=config.engine.step_budget,
    )


@router.get("/agents", response_model=AgentsResponse, summary="Agent Roster")
async def list_agents() -> AgentsResponse:
    return AgentsResponse(agents=[AgentInfo(**p.public_info()) for p in ROLE_PROFILES.values()])
