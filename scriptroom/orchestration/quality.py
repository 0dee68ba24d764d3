"""
Quality gates for scripts, voiceover text and synthesized audio.

Every gate is a pure function driven by a pattern table. Gates only check
what a regex or a word count can prove; content judgement is left to the
critic and fact-checker workers.
"""
import math
import re
from dataclasses import dataclass, field
from decimal import Decimal
from fractions import Fraction
from typing import TYPE_CHECKING, List, Optional, Pattern, Tuple, Union

if TYPE_CHECKING:
    from scriptroom.services.voiceover_service import VoiceoverResult

WORDS_PER_MINUTE = 150

Number = Union[int, float, Decimal, Fraction]


# ═══════════════════════════════════════════════════════════════════════════════
# PATTERN TABLES
# ═══════════════════════════════════════════════════════════════════════════════

# Script gate: any match means the script still carries agent chatter.
META_COMMENTARY_PATTERNS: List[Tuple[Pattern, str]] = [
    (re.compile(r"@\w+"), "agent @mention"),
    (re.compile(r"I'll now write", re.IGNORECASE), "first-person planning ('I'll now write')"),
    (re.compile(r"In this section I will", re.IGNORECASE), "first-person planning ('In this section I will')"),
    (re.compile(r"Let me (start|write|explain)", re.IGNORECASE), "first-person planning ('Let me ...')"),
    (re.compile(r"Now let's move on", re.IGNORECASE), "phase self-reference ('Now let's move on')"),
    (re.compile(r"Section \d+ should", re.IGNORECASE), "planning note ('Section N should')"),
    (re.compile(r"I'm writing this", re.IGNORECASE), "self-reference ('I'm writing this')"),
    (re.compile(r"Done with (intro|section|hook)", re.IGNORECASE), "coordination text ('Done with ...')"),
]

# Voiceover gate: markup that must never reach the speech backend.
FORBIDDEN_MARKUP_PATTERNS: List[Tuple[Pattern, str]] = [
    (re.compile(r"\[VISUAL[^\]]*\]", re.IGNORECASE), "[VISUAL] direction"),
    (re.compile(r"\[EFFECT[^\]]*\]", re.IGNORECASE), "[EFFECT] direction"),
    (re.compile(r"\[MUSIC[^\]]*\]", re.IGNORECASE), "[MUSIC] direction"),
    (re.compile(r"\[B-ROLL[^\]]*\]", re.IGNORECASE), "[B-ROLL] direction"),
    (re.compile(r"\[CUT[^\]]*\]", re.IGNORECASE), "[CUT] direction"),
    (re.compile(r"\[SOUND[^\]]*\]", re.IGNORECASE), "[SOUND] direction"),
    (re.compile(r"\[\d+:\d+\s*[-–]\s*\d+:\d+\]"), "timestamp"),
    (re.compile(r"@\w+"), "agent @mention"),
]

# Normalisations applied silently after the forbidden markup is removed.
SECTION_HEADER_PATTERN = re.compile(
    r"\[(?:HOOK|INTRO|SECTION\s*\d*|CLIMAX|CONCLUSION|OUTRO)\]", re.IGNORECASE
)
PAUSE_PATTERN = re.compile(r"\[PAUSE\]", re.IGNORECASE)
STAGE_DIRECTION_PATTERN = re.compile(r"\[[A-Z][A-Z\s]*:[^\]]*\]", re.IGNORECASE)
WHITESPACE_RUN = re.compile(r"\s{2,}")
SENTENCE_END = re.compile(r"[.!?]+")

# Duration phrases in free-form human text. Seconds are tried first.
SECONDS_PATTERN = re.compile(r"(\d+(?:\.\d+)?)[\s-]*(?:seconds?|secs?)\b", re.IGNORECASE)
MINUTES_PATTERN = re.compile(r"(\d+(?:\.\d+)?)[\s-]*(?:minutes?|mins?)\b", re.IGNORECASE)

MIN_SCRIPT_WORDS = 10
SHORT_SCRIPT_WARNING_WORDS = 50
LONG_SENTENCE_WORDS = 50
MIN_VOICEOVER_WORDS = 5
MAX_VOICEOVER_WORDS = 10000
MIN_AUDIO_SECONDS = 1
MAX_AUDIO_SECONDS = 3600


# ═══════════════════════════════════════════════════════════════════════════════
# WORD COUNTS AND DURATION
# ═══════════════════════════════════════════════════════════════════════════════

def count_words(text: Optional[str]) -> int:
    """Whitespace-delimited word count."""
    if not text:
        return 0
    return len(text.split())


def estimate_minutes(word_count: int, words_per_minute: int = WORDS_PER_MINUTE) -> float:
    """Spoken duration in minutes, rounded to one decimal."""
    return round(word_count / words_per_minute, 1)


@dataclass(frozen=True)
class WordEnvelope:
    """Accepted [minimum, maximum] word range for a target duration."""
    minimum: int
    maximum: int

    @classmethod
    def from_minutes(
        cls,
        minutes: Number,
        words_per_minute: int = WORDS_PER_MINUTE,
        lower: Number = Decimal("0.93"),
        upper: Number = Decimal("1.20"),
    ) -> "WordEnvelope":
        """
        Derive the envelope from a duration.

        Arithmetic is rational so that e.g. 30 seconds (0.5 min) or 20
        seconds (1/3 min) never pick up float rounding at the boundaries.
        """
        if minutes <= 0:
            raise ValueError(f"Duration must be positive, got {minutes}")
        base = _as_fraction(minutes) * words_per_minute
        return cls(
            minimum=math.floor(base * _as_fraction(lower)),
            maximum=math.ceil(base * _as_fraction(upper)),
        )

    def contains(self, word_count: int) -> bool:
        return self.minimum <= word_count <= self.maximum

    def to_dict(self) -> dict:
        return {"min": self.minimum, "max": self.maximum}


def _as_fraction(value: Number) -> Fraction:
    if isinstance(value, float):
        # Seconds-derived minutes have a denominator of 60
        return Fraction(value).limit_denominator(3600)
    return Fraction(value)


def extract_duration_minutes(message: str) -> Optional[float]:
    """
    Find a target duration in a human message.

    "make it 45 seconds" -> 0.75, "a 2 minute video" -> 2.0.
    Returns None when nothing usable is mentioned.
    """
    if not message:
        return None

    match = SECONDS_PATTERN.search(message)
    if match:
        seconds = float(match.group(1))
        if seconds > 0:
            return seconds / 60

    match = MINUTES_PATTERN.search(message)
    if match:
        minutes = float(match.group(1))
        if minutes > 0:
            return minutes

    return None


# ═══════════════════════════════════════════════════════════════════════════════
# SCRIPT GATE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ScriptValidation:
    """Outcome of the script gate."""
    valid: bool
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    word_count: int = 0
    estimated_duration: float = 0.0

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "wordCount": self.word_count,
            "estimatedDuration": self.estimated_duration,
        }


def validate_script(script: Optional[str], envelope: Optional[WordEnvelope]) -> ScriptValidation:
    """
    Check a final script against the length envelope and purity rules.

    Without an envelope (duration not yet known) only the purity and
    minimum-content rules apply.
    """
    if not script or not isinstance(script, str):
        return ScriptValidation(valid=False, issues=["Script is empty or invalid"])

    issues: List[str] = []
    warnings: List[str] = []
    word_count = count_words(script)

    if envelope is not None:
        if word_count < envelope.minimum:
            issues.append(f"Script too short: {word_count} words (minimum: {envelope.minimum})")
        if word_count > envelope.maximum:
            issues.append(f"Script too long: {word_count} words (maximum: {envelope.maximum})")

    for pattern, description in META_COMMENTARY_PATTERNS:
        if pattern.search(script):
            issues.append(
                f"Script contains meta-commentary or agent messages: {description} (pattern: {pattern.pattern})"
            )

    if word_count < MIN_SCRIPT_WORDS:
        issues.append("Script has insufficient content")

    if 0 < word_count < SHORT_SCRIPT_WARNING_WORDS:
        warnings.append("Script is very short - may not be engaging")

    sentence_count = len(SENTENCE_END.findall(script))
    if sentence_count > 0 and word_count / sentence_count > LONG_SENTENCE_WORDS:
        warnings.append("Some sentences may be too long for natural speech")

    return ScriptValidation(
        valid=not issues,
        issues=issues,
        warnings=warnings,
        word_count=word_count,
        estimated_duration=estimate_minutes(word_count),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# VOICEOVER GATE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class VoiceoverValidation:
    """Outcome of the voiceover-text gate, including the cleaned text."""
    valid: bool
    clean_text: str = ""
    issues: List[str] = field(default_factory=list)
    found_markup: List[str] = field(default_factory=list)
    word_count: int = 0
    estimated_duration: float = 0.0


def _normalise_speech(text: str) -> str:
    text = PAUSE_PATTERN.sub("...", text)
    text = SECTION_HEADER_PATTERN.sub("", text)
    return WHITESPACE_RUN.sub(" ", text).strip()


def validate_voiceover_text(text: Optional[str]) -> VoiceoverValidation:
    """
    Strip unspeakable markup and report what was found.

    Finding forbidden markup fails the gate even though the cleaned text
    is returned: the caller must ask for a cleaner script instead of
    silently speaking an auto-fixed one.
    """
    if not text or not isinstance(text, str):
        return VoiceoverValidation(valid=False, issues=["Voiceover text is empty"])

    issues: List[str] = []
    found: List[str] = []
    clean_text = text

    for pattern, description in FORBIDDEN_MARKUP_PATTERNS:
        if pattern.search(text):
            found.append(description)
            issues.append(f"Text contains non-speakable content: {description} (pattern: {pattern.pattern})")
        clean_text = pattern.sub("", clean_text)

    clean_text = _normalise_speech(clean_text)
    word_count = count_words(clean_text)

    if word_count < MIN_VOICEOVER_WORDS:
        issues.append("Voiceover text too short after cleaning")
    if word_count > MAX_VOICEOVER_WORDS:
        issues.append(f"Voiceover text too long (max {MAX_VOICEOVER_WORDS} words)")

    return VoiceoverValidation(
        valid=not issues,
        clean_text=clean_text,
        issues=issues,
        found_markup=found,
        word_count=word_count,
        estimated_duration=estimate_minutes(word_count),
    )


def sanitize_for_voiceover(text: Optional[str]) -> str:
    """
    Aggressive cleanup used when handing a script to the voiceover worker.

    Unlike the gate this never reports anything; it removes every stage
    direction it recognises.
    """
    if not text:
        return ""
    for pattern, _ in FORBIDDEN_MARKUP_PATTERNS:
        text = pattern.sub("", text)
    text = SECTION_HEADER_PATTERN.sub("", text)
    text = PAUSE_PATTERN.sub("...", text)
    text = STAGE_DIRECTION_PATTERN.sub("", text)
    return WHITESPACE_RUN.sub(" ", text).strip()


# ═══════════════════════════════════════════════════════════════════════════════
# AUDIO GATE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class AudioValidation:
    valid: bool
    issues: List[str] = field(default_factory=list)
    url: Optional[str] = None
    duration: Optional[float] = None


def validate_audio_result(result: Optional["VoiceoverResult"]) -> AudioValidation:
    """Check a synthesis result has a URL and a plausible duration."""
    if result is None:
        return AudioValidation(valid=False, issues=["No audio result returned"])

    if not result.success:
        return AudioValidation(valid=False, issues=[result.error or "Audio generation failed"])

    issues: List[str] = []
    if not result.url:
        issues.append("No audio URL in result")

    duration = result.duration
    if duration is not None:
        if duration <= MIN_AUDIO_SECONDS:
            issues.append(f"Audio duration too short (<= {MIN_AUDIO_SECONDS} second)")
        elif duration > MAX_AUDIO_SECONDS:
            issues.append("Audio duration too long (> 1 hour)")

    return AudioValidation(valid=not issues, issues=issues, url=result.url, duration=duration)
