"""
Application Configuration - Environment Variable Management.
Loads and validates configuration from .env file.
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from project root
PROJECT_ROOT = Path(__file__).parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

if ENV_FILE.exists():
    load_dotenv(ENV_FILE)
    logger.info(f"Loaded environment from {ENV_FILE}")
else:
    logger.warning(f".env file not found at {ENV_FILE}")


DEFAULT_LLM_BASE_URL = "https://fal.run/openrouter/router/openai/v1"
DEFAULT_TTS_MODEL = "fal-ai/elevenlabs/tts/eleven-v3"


@dataclass
class AIConfig:
    """Reasoning and speech backend configuration."""
    fal_key: Optional[str] = None
    agent_model: str = "openai/gpt-4.1"
    search_model: str = "openai/gpt-4.1"
    llm_base_url: str = DEFAULT_LLM_BASE_URL
    agent_temperature: float = 0.7
    search_temperature: float = 0.3
    tts_model: str = DEFAULT_TTS_MODEL

    @property
    def has_fal(self) -> bool:
        return bool(self.fal_key and not self.fal_key.startswith("PASTE_"))


@dataclass
class EngineConfig:
    """Orchestration loop policy."""
    step_budget: int = 30
    words_per_minute: int = 150
    # Envelope = minutes * words_per_minute scaled by these tolerances
    envelope_lower: Decimal = Decimal("0.93")
    envelope_upper: Decimal = Decimal("1.20")
    memory_turns: int = 20
    coordinator_history: int = 15
    worker_history: int = 10
    delegation_delay: float = 0.5
    max_chunk_chars: int = 4000


@dataclass
class ServerConfig:
    """HTTP transport configuration."""
    data_dir: Path
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    rate_limit_per_minute: int = 30
    voice_provider: str = "auto"
    debug: bool = False

    @property
    def voiceover_dir(self) -> Path:
        return self.data_dir / "voiceover"


@dataclass
class AppConfig:
    """Main Application Configuration."""
    ai: AIConfig
    engine: EngineConfig
    server: ServerConfig

    def __post_init__(self):
        """Validate critical configuration."""
        if self.engine.step_budget < 1:
            logger.warning("STEP_BUDGET below 1 - sessions will stop after the kickoff turn")
        if self.engine.envelope_lower >= self.engine.envelope_upper:
            logger.warning("Envelope lower tolerance is not below the upper tolerance")

    def validate(self) -> dict:
        """Validate configuration and return status."""
        return {
            "ai": {
                "fal_configured": self.ai.has_fal,
                "agent_model": self.ai.agent_model,
                "search_model": self.ai.search_model,
            },
            "engine": {
                "step_budget": self.engine.step_budget,
                "words_per_minute": self.engine.words_per_minute,
            },
            "voice_provider": self.server.voice_provider,
        }

    def log_status(self):
        """Log configuration status (without exposing keys)."""
        status = self.validate()

        logger.info("=" * 50)
        logger.info("Configuration Status:")
        logger.info(f"  fal.ai key: {'OK' if status['ai']['fal_configured'] else 'NOT CONFIGURED'}")
        logger.info(f"  Agent model: {status['ai']['agent_model']}")
        logger.info(f"  Search model: {status['ai']['search_model']}")
        logger.info(f"  Step budget: {status['engine']['step_budget']}")
        logger.info(f"  Voice provider: {status['voice_provider']}")
        logger.info(f"  Data Dir: {self.server.data_dir}")
        logger.info("=" * 50)

        if not status["ai"]["fal_configured"]:
            logger.warning("No server fal.ai key - clients must supply their own api_key")


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return ["*"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def load_config() -> AppConfig:
    """Load configuration from environment variables."""
    ai_config = AIConfig(
        fal_key=os.getenv("FAL_KEY"),
        agent_model=os.getenv("AGENT_MODEL", "openai/gpt-4.1"),
        search_model=os.getenv("SEARCH_MODEL", "openai/gpt-4.1"),
        llm_base_url=os.getenv("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
        tts_model=os.getenv("TTS_MODEL", DEFAULT_TTS_MODEL),
    )

    engine_config = EngineConfig(
        step_budget=int(os.getenv("STEP_BUDGET", "30")),
        delegation_delay=float(os.getenv("DELEGATION_DELAY", "0.5")),
    )

    server_config = ServerConfig(
        data_dir=Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data"))),
        allowed_origins=_split_origins(os.getenv("ALLOWED_ORIGINS")),
        rate_limit_per_minute=int(os.getenv("RATE_LIMIT_PER_MINUTE", "30")),
        voice_provider=os.getenv("VOICE_PROVIDER", "auto"),
        debug=os.getenv("DEBUG", "false").lower() == "true",
    )

    return AppConfig(ai=ai_config, engine=engine_config, server=server_config)


# Global config instance
config = load_config()
