"""
ElevenLabs voice provider (served through fal.ai).
"""
import logging
from typing import Optional

import fal_client

from scriptroom.config import config

from .base import BaseVoiceProvider, SpeechClip, VoiceSettings
from ..exceptions import ProviderUnavailable, SynthesisFailed

logger = logging.getLogger(__name__)


class ElevenLabsProvider(BaseVoiceProvider):
    """ElevenLabs TTS through fal.ai's queue API."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self._api_key = api_key or config.ai.fal_key
        self._model = model or config.ai.tts_model

    @property
    def name(self) -> str:
        return "elevenlabs"

    @property
    def is_available(self) -> bool:
        return bool(self._api_key and not self._api_key.startswith("PASTE_"))

    async def synthesize(self, text: str, voice: VoiceSettings) -> SpeechClip:
        if not self.is_available:
            raise ProviderUnavailable(self.name, "Missing FAL_KEY")

        client = fal_client.AsyncClient(key=self._api_key)
        result = await client.subscribe(
            self._model,
            arguments={
                "text": text,
                "voice": voice.voice_id,
                "stability": voice.stability,
                "similarity_boost": voice.similarity_boost,
                "speed": voice.speed,
            },
        )

        audio = (result or {}).get("audio") or {}
        url = audio.get("url")
        if not url:
            raise SynthesisFailed(self.name, "response contained no audio URL")

        logger.info(f"[VOICEOVER] ElevenLabs chunk ready: {url}")
        return SpeechClip(
            url=url,
            duration=audio.get("duration") or result.get("duration"),
            content_type=audio.get("content_type") or "audio/mpeg",
        )
