"""Tests for speech synthesis and playback."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from errors import AUTH_FAILED, NETWORK_ERROR, PLAYBACK_FAILED, SPEECH_FAILED, StageError
from models import AudioPayload
from speech import DashscopeSpeechSynthesizer, SoundDevicePlayer, SpeechOutput


# ---------------------------------------------------------------
# DashscopeSpeechSynthesizer
# ---------------------------------------------------------------

@patch("speech.AudioFormat")
@patch("speech.SpeechSynthesizer")
@patch("speech.dashscope")
def test_synthesize_returns_pcm_payload(
    mock_ds: MagicMock, mock_synth_cls: MagicMock, mock_format: MagicMock
) -> None:
    mock_synth_cls.return_value.call.return_value = b"\x01\x00" * 100
    synthesizer = DashscopeSpeechSynthesizer(api_key="test-key", voice="longxiaochun")

    payload = asyncio.run(synthesizer.synthesize("Hello"))

    assert payload.pcm16_bytes == b"\x01\x00" * 100
    assert payload.sample_rate == 22050
    assert payload.channels == 1
    assert mock_ds.api_key == "test-key"
    mock_synth_cls.return_value.call.assert_called_once_with("Hello")
    assert mock_synth_cls.call_args.kwargs["voice"] == "longxiaochun"


@patch("speech.SpeechSynthesizer")
@patch("speech.dashscope")
def test_synthesize_blank_text_fails(mock_ds: MagicMock, mock_synth_cls: MagicMock) -> None:
    synthesizer = DashscopeSpeechSynthesizer(api_key="test-key")

    with pytest.raises(StageError) as info:
        asyncio.run(synthesizer.synthesize("   "))

    assert info.value.code == SPEECH_FAILED
    mock_synth_cls.assert_not_called()


@patch("speech.AudioFormat", MagicMock())
@patch("speech.SpeechSynthesizer")
@patch("speech.dashscope", MagicMock())
def test_synthesize_empty_audio_fails(mock_synth_cls: MagicMock) -> None:
    mock_synth_cls.return_value.call.return_value = None
    synthesizer = DashscopeSpeechSynthesizer(api_key="test-key")

    with pytest.raises(StageError) as info:
        asyncio.run(synthesizer.synthesize("Hello"))

    assert info.value.code == SPEECH_FAILED


@patch("speech.AudioFormat", MagicMock())
@patch("speech.SpeechSynthesizer")
@patch("speech.dashscope", MagicMock())
def test_synthesize_sdk_error_is_classified(mock_synth_cls: MagicMock) -> None:
    mock_synth_cls.return_value.call.side_effect = TimeoutError("websocket timeout")
    synthesizer = DashscopeSpeechSynthesizer(api_key="test-key")

    with pytest.raises(StageError) as info:
        asyncio.run(synthesizer.synthesize("Hello"))

    assert info.value.code == NETWORK_ERROR


@patch("speech.SpeechSynthesizer", MagicMock())
@patch("speech.dashscope", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_synthesize_without_api_key_fails() -> None:
    synthesizer = DashscopeSpeechSynthesizer(api_key="")

    with pytest.raises(StageError) as info:
        asyncio.run(synthesizer.synthesize("Hello"))

    assert info.value.code == AUTH_FAILED


# ---------------------------------------------------------------
# SoundDevicePlayer
# ---------------------------------------------------------------

@patch("speech.sd")
def test_play_decodes_pcm_and_waits(mock_sd: MagicMock) -> None:
    player = SoundDevicePlayer()
    payload = AudioPayload(pcm16_bytes=np.arange(8, dtype=np.int16).tobytes(), sample_rate=24000)

    asyncio.run(player.play(payload))

    samples = mock_sd.play.call_args.args[0]
    assert samples.dtype == np.int16
    assert samples.tolist() == list(range(8))
    assert mock_sd.play.call_args.kwargs["samplerate"] == 24000
    mock_sd.wait.assert_called_once()


@patch("speech.sd")
def test_play_stereo_reshapes_channels(mock_sd: MagicMock) -> None:
    player = SoundDevicePlayer()
    payload = AudioPayload(pcm16_bytes=np.zeros(8, dtype=np.int16).tobytes(), channels=2)

    asyncio.run(player.play(payload))

    assert mock_sd.play.call_args.args[0].shape == (4, 2)


@pytest.mark.parametrize("pcm", [b"", b"\x00\x00\x00"])
@patch("speech.sd")
def test_play_rejects_malformed_payload(mock_sd: MagicMock, pcm: bytes) -> None:
    player = SoundDevicePlayer()

    with pytest.raises(StageError) as info:
        asyncio.run(player.play(AudioPayload(pcm16_bytes=pcm)))

    assert info.value.code == PLAYBACK_FAILED
    mock_sd.play.assert_not_called()


@patch("speech.sd")
def test_stop_interrupts_playback(mock_sd: MagicMock) -> None:
    player = SoundDevicePlayer()
    mock_sd.wait.side_effect = lambda: player._interrupted.set()

    with pytest.raises(StageError, match="interrupted"):
        asyncio.run(player.play(AudioPayload(pcm16_bytes=b"\x00\x00" * 4)))


@patch("speech.sd")
def test_device_error_becomes_playback_failure(mock_sd: MagicMock) -> None:
    mock_sd.play.side_effect = RuntimeError("PortAudio device unavailable")
    player = SoundDevicePlayer()

    with pytest.raises(StageError) as info:
        asyncio.run(player.play(AudioPayload(pcm16_bytes=b"\x00\x00" * 4)))

    assert info.value.code == PLAYBACK_FAILED
    assert "PortAudio" in str(info.value)


@patch("speech.sd", None)
def test_play_without_sounddevice_fails() -> None:
    player = SoundDevicePlayer()
    with pytest.raises(StageError, match="not installed"):
        asyncio.run(player.play(AudioPayload(pcm16_bytes=b"\x00\x00")))


# ---------------------------------------------------------------
# SpeechOutput
# ---------------------------------------------------------------

def test_speech_output_delegates() -> None:
    payload = AudioPayload(pcm16_bytes=b"\x00\x00")
    synthesizer = MagicMock()
    player = MagicMock()

    async def fake_synthesize(text: str) -> AudioPayload:
        return payload

    async def fake_play(p: AudioPayload) -> None:
        return None

    synthesizer.synthesize.side_effect = fake_synthesize
    player.play.side_effect = fake_play
    output = SpeechOutput(synthesizer, player)

    async def scenario() -> None:
        audio = await output.synthesize("Hello")
        await output.play(audio)

    asyncio.run(scenario())
    output.stop()

    synthesizer.synthesize.assert_called_once_with("Hello")
    player.play.assert_called_once_with(payload)
    player.stop.assert_called_once()
