"""
Voiceover Service - chunked speech synthesis for a finished script.

Long narrations are split on sentence boundaries into chunks the provider
accepts, synthesized in order and reported as one result. Failures are
returned in the result; `generate` never raises.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from scriptroom.config import config
from scriptroom.providers.exceptions import ProviderError
from scriptroom.providers.voice import BaseVoiceProvider, get_voice_provider, get_voice_settings

logger = logging.getLogger(__name__)

SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

ProgressCallback = Callable[[int, int], None]


@dataclass
class VoiceoverResult:
    """Outcome of a voiceover run. The first chunk stands for the whole result."""
    success: bool
    url: Optional[str] = None
    duration: Optional[float] = None
    content_type: Optional[str] = None
    chunks: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "duration": self.duration,
            "contentType": self.content_type,
            "chunks": list(self.chunks),
        }


def _hard_split(sentence: str, max_chars: int) -> List[str]:
    """Split one overlong sentence on whitespace, or mid-word as a last resort."""
    pieces: List[str] = []
    current = ""
    for word in sentence.split():
        while len(word) > max_chars:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(word[:max_chars])
            word = word[max_chars:]
        candidate = f"{current} {word}" if current else word
        if len(candidate) > max_chars:
            pieces.append(current)
            current = word
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces


def split_into_chunks(text: str, max_chars: int = 4000) -> List[str]:
    """
    Split text into chunks of at most `max_chars` characters.

    Sentences are never split unless a single sentence is longer than
    the limit on its own.
    """
    text = (text or "").strip()
    if not text:
        return []
    if len(text) <= max_chars:
        return [text]

    chunks: List[str] = []
    current = ""
    for sentence in SENTENCE_SPLIT.split(text):
        if not sentence:
            continue
        if len(sentence) > max_chars:
            if current:
                chunks.append(current)
                current = ""
            chunks.extend(_hard_split(sentence, max_chars))
            continue
        candidate = f"{current} {sentence}" if current else sentence
        if len(candidate) > max_chars:
            chunks.append(current)
            current = sentence
        else:
            current = candidate
    if current:
        chunks.append(current)
    return chunks


class VoiceoverService:
    """Turns cleaned narration into audio through a voice provider."""

    def __init__(
        self,
        provider: Optional[BaseVoiceProvider] = None,
        api_key: Optional[str] = None,
        max_chunk_chars: Optional[int] = None,
    ):
        self.provider = provider or get_voice_provider(api_key=api_key)
        self.max_chunk_chars = max_chunk_chars or config.engine.max_chunk_chars

    async def generate(
        self,
        text: str,
        voice_style: str = "documentary",
        on_progress: Optional[ProgressCallback] = None,
    ) -> VoiceoverResult:
        chunks = split_into_chunks(text, self.max_chunk_chars)
        if not chunks:
            return VoiceoverResult(success=False, error="No text to synthesize")

        voice = get_voice_settings(voice_style)
        logger.info(
            f"[VOICEOVER] {self.provider.name}: {len(text)} chars in {len(chunks)} chunk(s), style={voice_style}"
        )

        clips = []
        for index, chunk in enumerate(chunks, start=1):
            if on_progress:
                on_progress(index, len(chunks))
            try:
                clip = await self.provider.synthesize(chunk, voice)
            except ProviderError as e:
                logger.error(f"[VOICEOVER] Chunk {index}/{len(chunks)} failed: {e}")
                return VoiceoverResult(success=False, error=e.message)
            except Exception as e:
                logger.error(f"[VOICEOVER] Chunk {index}/{len(chunks)} failed: {e}")
                return VoiceoverResult(success=False, error=str(e) or type(e).__name__)
            clips.append(clip)

        durations = [clip.duration for clip in clips if clip.duration is not None]
        first = clips[0]
        return VoiceoverResult(
            success=True,
            url=first.url,
            duration=round(sum(durations), 2) if durations else None,
            content_type=first.content_type,
            chunks=[
                {"url": clip.url, "duration": clip.duration, "contentType": clip.content_type}
                for clip in clips
            ],
        )
