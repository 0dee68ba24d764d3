"""
Base class for voice/TTS providers.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class VoiceSettings:
    """Voice id and delivery settings for one narration style."""
    voice_id: str
    stability: float
    similarity_boost: float
    speed: float


VOICE_STYLES: Dict[str, VoiceSettings] = {
    "documentary": VoiceSettings("NOpBlnGInO9m6vDvFkFC", stability=0.5, similarity_boost=0.75, speed=0.95),
    "energetic": VoiceSettings("pNInz6obpgDQGcFmaJgB", stability=0.4, similarity_boost=0.8, speed=1.1),
    "calm": VoiceSettings("EXAVITQu4vr4xnSDxMaL", stability=0.7, similarity_boost=0.7, speed=0.9),
    "dramatic": VoiceSettings("VR6AewLTigWG4xSOukaG", stability=0.3, similarity_boost=0.85, speed=0.85),
    "conversational": VoiceSettings("ThT5KcBeYPX3keUQqHPh", stability=0.5, similarity_boost=0.75, speed=1.0),
}

DEFAULT_STYLE = "documentary"


def get_voice_settings(style: Optional[str]) -> VoiceSettings:
    """Unknown styles fall back to documentary."""
    return VOICE_STYLES.get((style or "").lower(), VOICE_STYLES[DEFAULT_STYLE])


@dataclass
class SpeechClip:
    """One synthesized chunk of audio."""
    url: str
    duration: Optional[float] = None
    content_type: str = "audio/mpeg"


class BaseVoiceProvider(ABC):
    """Abstract base class for voice/TTS providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        pass

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is available."""
        pass

    @abstractmethod
    async def synthesize(self, text: str, voice: VoiceSettings) -> SpeechClip:
        """
        Synthesize speech from text.

        Args:
            text: Text to synthesize (already cleaned, at most one chunk)
            voice: Voice id and delivery settings

        Returns:
            SpeechClip with a URL the client can fetch

        Raises:
            ProviderUnavailable: provider cannot be used
            SynthesisFailed: provider returned no usable audio
        """
        pass
