"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from errors import InvalidRateError

MIN_RATE = 0.0
MAX_RATE = 1.0
DEFAULT_RATE = 0.5


class RecognitionState(str, Enum):
    IDLE = "IDLE"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PlaybackState(str, Enum):
    STOPPED = "STOPPED"
    SPEAKING = "SPEAKING"
    PAUSED = "PAUSED"


class SpeechEventKind(str, Enum):
    STARTED = "started"
    FINISHED = "finished"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass(frozen=True)
class ImageBuffer:
    data: bytes
    source: str = ""


@dataclass
class TextCandidate:
    """One detected text region with ``(text, confidence)`` alternatives."""

    alternatives: list[tuple[str, float]] = field(default_factory=list)

    @classmethod
    def single(cls, text: str, confidence: float = 1.0) -> TextCandidate:
        return cls(alternatives=[(text, confidence)])

    def top(self) -> Optional[str]:
        if not self.alternatives:
            return None
        text, _ = max(self.alternatives, key=lambda alt: alt[1])
        return text


@dataclass(frozen=True)
class RecognitionOptions:
    accurate: bool = True
    language_correction: bool = True


@dataclass
class RecognitionJob:
    job_id: int
    state: RecognitionState = RecognitionState.PROCESSING
    result_text: Optional[str] = None
    error: str = ""


@dataclass(frozen=True)
class RecognitionSnapshot:
    recognized_text: str
    is_processing: bool
    state: RecognitionState
    job_id: int


@dataclass(frozen=True)
class VoiceProfile:
    identifier: str
    name: str
    language: str


def validate_rate(rate: float) -> float:
    """Return ``rate`` as float or raise ``InvalidRateError`` when out of range."""
    try:
        value = float(rate)
    except (TypeError, ValueError) as exc:
        raise InvalidRateError(f"rate must be a number, got {rate!r}") from exc
    if not MIN_RATE <= value <= MAX_RATE:
        raise InvalidRateError(f"rate {value} is outside [{MIN_RATE}, {MAX_RATE}]")
    return value


@dataclass(frozen=True)
class SpeechRequest:
    text: str
    voice: Optional[VoiceProfile] = None
    rate: float = DEFAULT_RATE
    pitch: float = 1.0
    volume: float = 1.0

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError("SpeechRequest text must not be empty")
        validate_rate(self.rate)


@dataclass(frozen=True)
class PlaybackSnapshot:
    state: PlaybackState
    utterance_id: int

    @property
    def is_speaking(self) -> bool:
        return self.state == PlaybackState.SPEAKING


@dataclass
class SpeechEvent:
    kind: str
    utterance_id: int
    code: str = ""
    message: str = ""
