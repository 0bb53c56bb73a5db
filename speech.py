"""Speech output: DashScope synthesis and sounddevice playback."""

from __future__ import annotations

import asyncio
import logging
import os
import threading

from errors import AUTH_FAILED, PLAYBACK_FAILED, SPEECH_FAILED, StageError, classify_provider_error
from models import AudioPayload

logger = logging.getLogger(__name__)

try:
    import dashscope
    from dashscope.audio.tts_v2 import AudioFormat, SpeechSynthesizer
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore
    AudioFormat = None  # type: ignore
    SpeechSynthesizer = None  # type: ignore

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

SYNTH_SAMPLE_RATE = 22050


class DashscopeSpeechSynthesizer:
    def __init__(
        self,
        api_key: str,
        model: str = "cosyvoice-v1",
        voice: str = "longxiaochun",
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._voice = voice

    def set_api_key(self, api_key: str) -> None:
        self._api_key = api_key

    async def synthesize(self, text: str) -> AudioPayload:
        return await asyncio.to_thread(self._synthesize_blocking, text)

    def _synthesize_blocking(self, text: str) -> AudioPayload:
        if not text.strip():
            raise StageError(SPEECH_FAILED, "Nothing to speak.")
        if dashscope is None or SpeechSynthesizer is None:
            raise StageError(SPEECH_FAILED, "dashscope is not installed")

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise StageError(AUTH_FAILED, "No API key configured")
        dashscope.api_key = api_key

        try:
            synthesizer = SpeechSynthesizer(
                model=self._model,
                voice=self._voice,
                format=AudioFormat.PCM_22050HZ_MONO_16BIT,
            )
            audio = synthesizer.call(text)
        except Exception as exc:
            raise StageError(classify_provider_error(exc, SPEECH_FAILED), str(exc)) from exc

        if not audio:
            raise StageError(SPEECH_FAILED, "Speech synthesis returned no audio.")
        logger.debug("Synthesized %d bytes of audio", len(audio))
        return AudioPayload(pcm16_bytes=bytes(audio), sample_rate=SYNTH_SAMPLE_RATE, channels=1)


class SoundDevicePlayer:
    def __init__(self) -> None:
        self._interrupted = threading.Event()

    async def play(self, payload: AudioPayload) -> None:
        self._interrupted.clear()
        await asyncio.to_thread(self._play_blocking, payload)

    def stop(self) -> None:
        """Interrupt the current playback; the pending play() fails."""
        self._interrupted.set()
        if sd is not None:
            sd.stop()

    def _play_blocking(self, payload: AudioPayload) -> None:
        if sd is None or np is None:
            raise StageError(PLAYBACK_FAILED, "sounddevice is not installed")
        pcm = payload.pcm16_bytes
        frame_bytes = 2 * payload.channels
        if not pcm or payload.channels <= 0 or len(pcm) % frame_bytes:
            raise StageError(PLAYBACK_FAILED, "Audio payload is malformed.")

        samples = np.frombuffer(pcm, dtype=np.int16)
        if payload.channels > 1:
            samples = samples.reshape(-1, payload.channels)
        try:
            sd.play(samples, samplerate=payload.sample_rate)
            sd.wait()
        except Exception as exc:
            raise StageError(PLAYBACK_FAILED, str(exc)) from exc
        if self._interrupted.is_set():
            raise StageError(PLAYBACK_FAILED, "Playback interrupted.")


class SpeechOutput:
    """Synthesizer and player combined into one speech provider."""

    def __init__(self, synthesizer: DashscopeSpeechSynthesizer, player: SoundDevicePlayer) -> None:
        self._synthesizer = synthesizer
        self._player = player

    async def synthesize(self, text: str) -> AudioPayload:
        return await self._synthesizer.synthesize(text)

    async def play(self, payload: AudioPayload) -> None:
        await self._player.play(payload)

    def stop(self) -> None:
        self._player.stop()
