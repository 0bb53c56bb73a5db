"""Core data models for the app."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    IDLE = "IDLE"
    CAPTURING = "CAPTURING"
    TRANSLATING = "TRANSLATING"
    SPEAKING = "SPEAKING"
    FAILED = "FAILED"


ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.IDLE: frozenset({SessionStatus.CAPTURING}),
    SessionStatus.FAILED: frozenset({SessionStatus.CAPTURING}),
    SessionStatus.CAPTURING: frozenset({SessionStatus.TRANSLATING, SessionStatus.FAILED}),
    SessionStatus.TRANSLATING: frozenset({SessionStatus.SPEAKING, SessionStatus.FAILED}),
    SessionStatus.SPEAKING: frozenset({SessionStatus.IDLE, SessionStatus.FAILED}),
}


def can_start(status: SessionStatus) -> bool:
    return status in (SessionStatus.IDLE, SessionStatus.FAILED)


@dataclass(frozen=True)
class Frame:
    data: str
    mime_type: str = "image/jpeg"

    def __post_init__(self) -> None:
        if not self.data:
            raise ValueError("frame data must not be empty")
        if not self.mime_type.startswith("image/"):
            raise ValueError(f"unsupported frame mime type: {self.mime_type!r}")

    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class TranslationResult:
    text: str
    confidence: float
    sentiment: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.text.strip():
            raise ValueError("translation text must not be empty")
        if math.isnan(self.confidence) or not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TranslationResult":
        """Build a result from the provider's JSON object.

        An out-of-range confidence is a provider defect: it is logged and
        clamped into [0, 1]. ``sentiment`` stays ``None`` when the provider
        omits it, an empty string is kept as-is.
        """
        text = str(payload.get("text") or "").strip()
        raw_confidence = payload.get("confidence", 0.0)
        try:
            confidence = float(raw_confidence)
        except (TypeError, ValueError):
            logger.warning("Non-numeric confidence %r from provider, using 0", raw_confidence)
            confidence = 0.0
        if math.isnan(confidence):
            logger.warning("NaN confidence from provider, using 0")
            confidence = 0.0
        elif not 0.0 <= confidence <= 1.0:
            clamped = min(1.0, max(0.0, confidence))
            logger.warning("Confidence %s outside [0, 1], clamped to %s", confidence, clamped)
            confidence = clamped

        sentiment = payload.get("sentiment")
        if sentiment is not None:
            sentiment = str(sentiment)
        return cls(text=text, confidence=confidence, sentiment=sentiment)

    def confidence_percent(self) -> int:
        return round(self.confidence * 100)


@dataclass
class AudioPayload:
    pcm16_bytes: bytes
    sample_rate: int = 22050
    channels: int = 1

    @property
    def duration_s(self) -> float:
        bytes_per_second = self.sample_rate * self.channels * 2
        if bytes_per_second <= 0:
            return 0.0
        return len(self.pcm16_bytes) / bytes_per_second


@dataclass
class Session:
    session_id: int = 0
    status: SessionStatus = SessionStatus.IDLE
    frames: list[Frame] = field(default_factory=list)
    result: Optional[TranslationResult] = None
    error: Optional[str] = None
