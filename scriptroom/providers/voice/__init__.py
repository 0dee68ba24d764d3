"""
Voice/TTS providers.
"""
from .base import BaseVoiceProvider, SpeechClip, VoiceSettings, VOICE_STYLES, get_voice_settings
from .elevenlabs import ElevenLabsProvider
from .local import LocalVoiceProvider
from .factory import VoiceProviderFactory, get_voice_provider

__all__ = [
    "BaseVoiceProvider",
    "SpeechClip",
    "VoiceSettings",
    "VOICE_STYLES",
    "get_voice_settings",
    "ElevenLabsProvider",
    "LocalVoiceProvider",
    "VoiceProviderFactory",
    "get_voice_provider",
]
