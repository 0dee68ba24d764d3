"""
Voice provider factory.
"""
import logging
from typing import Literal, Optional

from scriptroom.config import config

from .base import BaseVoiceProvider
from .elevenlabs import ElevenLabsProvider
from .local import LocalVoiceProvider

logger = logging.getLogger(__name__)

ProviderType = Literal["auto", "elevenlabs", "local"]


class VoiceProviderFactory:
    """Factory for creating voice providers with automatic fallback."""

    @classmethod
    def create(cls, provider: Optional[ProviderType] = None, api_key: Optional[str] = None) -> BaseVoiceProvider:
        provider = provider or config.server.voice_provider
        if provider == "local":
            return LocalVoiceProvider()
        if provider == "elevenlabs":
            return ElevenLabsProvider(api_key=api_key)
        if provider != "auto":
            logger.warning(f"[VOICEOVER] Unknown voice provider '{provider}', using auto")
        return cls._create_auto(api_key)

    @classmethod
    def _create_auto(cls, api_key: Optional[str]) -> BaseVoiceProvider:
        remote = ElevenLabsProvider(api_key=api_key)
        if remote.is_available:
            return remote
        logger.info("[VOICEOVER] No fal.ai key - using local silent-WAV provider")
        return LocalVoiceProvider()


def get_voice_provider(provider: Optional[ProviderType] = None, api_key: Optional[str] = None) -> BaseVoiceProvider:
    """Get a voice provider, falling back to local when no key is configured."""
    return VoiceProviderFactory.create(provider, api_key)
