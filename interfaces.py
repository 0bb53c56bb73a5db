"""Protocol interfaces used by PipelineController."""

from __future__ import annotations

from typing import Protocol, Sequence

from models import AudioPayload, Frame, TranslationResult


class CaptureProvider(Protocol):
    async def capture(self, duration_ms: int) -> list[Frame]: ...


class TranslationProvider(Protocol):
    async def translate(self, frames: Sequence[Frame]) -> TranslationResult: ...


class SpeechProvider(Protocol):
    async def synthesize(self, text: str) -> AudioPayload: ...

    async def play(self, payload: AudioPayload) -> None: ...

