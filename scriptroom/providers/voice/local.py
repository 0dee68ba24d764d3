"""
Local voice provider - REQUIRED fallback.
"""
import struct
import uuid
from pathlib import Path
from typing import Optional

import aiofiles

from scriptroom.config import config

from .base import BaseVoiceProvider, SpeechClip, VoiceSettings


class LocalVoiceProvider(BaseVoiceProvider):
    """Local voice provider. Writes silent WAV files sized to the text."""

    SAMPLE_RATE = 22050
    CHANNELS = 1
    BITS_PER_SAMPLE = 16
    WORDS_PER_SECOND = 2.5
    URL_PREFIX = "/audio"

    def __init__(self, output_dir: Optional[Path] = None):
        self._output_dir = output_dir or config.server.voiceover_dir
        self._output_dir.mkdir(parents=True, exist_ok=True)

    @property
    def name(self) -> str:
        return "local"

    @property
    def is_available(self) -> bool:
        return True

    async def synthesize(self, text: str, voice: VoiceSettings) -> SpeechClip:
        duration = self._calculate_duration(text, voice.speed)
        filename = f"{uuid.uuid4().hex}.wav"
        await self._write_silent_wav(self._output_dir / filename, duration)
        return SpeechClip(
            url=f"{self.URL_PREFIX}/{filename}",
            duration=round(duration, 2),
            content_type="audio/wav",
        )

    def _calculate_duration(self, text: str, speed: float = 1.0) -> float:
        if not text or not text.strip():
            return 1.0
        word_count = len(text.split())
        duration = word_count / (self.WORDS_PER_SECOND * (speed or 1.0))
        return max(1.0, min(duration, 600.0))

    def _wav_header(self, data_size: int) -> bytes:
        bytes_per_sample = self.BITS_PER_SAMPLE // 8
        byte_rate = self.SAMPLE_RATE * self.CHANNELS * bytes_per_sample
        block_align = self.CHANNELS * bytes_per_sample
        return (
            b"RIFF" + struct.pack("<I", 36 + data_size) + b"WAVE"
            + b"fmt " + struct.pack("<IHHIIHH", 16, 1, self.CHANNELS, self.SAMPLE_RATE,
                                    byte_rate, block_align, self.BITS_PER_SAMPLE)
            + b"data" + struct.pack("<I", data_size)
        )

    async def _write_silent_wav(self, output_path: Path, duration: float) -> None:
        num_samples = int(self.SAMPLE_RATE * duration)
        data_size = num_samples * self.CHANNELS * (self.BITS_PER_SAMPLE // 8)

        async with aiofiles.open(output_path, "wb") as f:
            await f.write(self._wav_header(data_size))
            await f.write(b"\x00" * data_size)
