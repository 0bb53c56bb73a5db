"""Tests for DashscopeSignTranslator."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from errors import AUTH_FAILED, MALFORMED_RESPONSE, NETWORK_ERROR, TRANSLATION_FAILED, StageError
from models import Frame, TranslationResult
from translator import DashscopeSignTranslator, _parse_reply


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _frames(n: int = 2) -> list[Frame]:
    return [Frame(data=f"aW1n{i}") for i in range(n)]


def _response(text: str, status_code: int = 200) -> dict:
    return {
        "status_code": status_code,
        "output": {"choices": [{"message": {"content": [{"text": text}]}}]},
    }


def _translate(adapter: DashscopeSignTranslator, frames: list[Frame]) -> TranslationResult:
    return asyncio.run(adapter.translate(frames))


# ---------------------------------------------------------------
# _parse_reply
# ---------------------------------------------------------------

def test_parse_reply_plain_json() -> None:
    result = _parse_reply('{"text": "Hello", "confidence": 0.92}')
    assert result.text == "Hello"
    assert result.sentiment is None


def test_parse_reply_strips_code_fence() -> None:
    result = _parse_reply('```json\n{"text": "Thank you", "sentiment": "warm", "confidence": 0.8}\n```')
    assert result.text == "Thank you"
    assert result.sentiment == "warm"


def test_parse_reply_rejects_non_json() -> None:
    with pytest.raises(StageError) as info:
        _parse_reply("I think they said hello")
    assert info.value.code == MALFORMED_RESPONSE


def test_parse_reply_rejects_empty_text() -> None:
    with pytest.raises(StageError) as info:
        _parse_reply('{"text": "", "confidence": 0.1}')
    assert info.value.code == MALFORMED_RESPONSE


# ---------------------------------------------------------------
# translate()
# ---------------------------------------------------------------

@patch("translator.dashscope")
def test_successful_translation_sends_all_frames(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = _response(
        '{"text": "Hello", "confidence": 0.92, "sentiment": "cheerful"}'
    )
    adapter = DashscopeSignTranslator(api_key="test-key", model="qwen-vl-max")

    result = _translate(adapter, _frames(3))

    assert result == TranslationResult(text="Hello", confidence=0.92, sentiment="cheerful")
    kwargs = mock_ds.MultiModalConversation.call.call_args.kwargs
    assert kwargs["api_key"] == "test-key"
    assert kwargs["model"] == "qwen-vl-max"
    content = kwargs["messages"][0]["content"]
    images = [part["image"] for part in content if "image" in part]
    assert images == [f.data_uri() for f in _frames(3)]
    assert "text" in content[-1]


def test_empty_frames_violates_precondition() -> None:
    adapter = DashscopeSignTranslator(api_key="test-key")
    with pytest.raises(ValueError):
        _translate(adapter, [])


@patch("translator.dashscope", MagicMock())
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": ""}, clear=False)
def test_missing_api_key_raises_auth_error() -> None:
    adapter = DashscopeSignTranslator(api_key="")
    with pytest.raises(StageError) as info:
        _translate(adapter, _frames())
    assert info.value.code == AUTH_FAILED


@patch("translator.dashscope")
@patch.dict("os.environ", {"DASHSCOPE_API_KEY": "env-key"}, clear=False)
def test_api_key_falls_back_to_environment(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = _response('{"text": "Yes", "confidence": 0.5}')
    adapter = DashscopeSignTranslator(api_key="")

    _translate(adapter, _frames())

    assert mock_ds.MultiModalConversation.call.call_args.kwargs["api_key"] == "env-key"


@patch("translator.dashscope")
def test_network_error_maps_correctly(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.side_effect = ConnectionError("network timeout")
    adapter = DashscopeSignTranslator(api_key="test-key")

    with pytest.raises(StageError) as info:
        _translate(adapter, _frames())

    assert info.value.code == NETWORK_ERROR
    assert str(info.value) == "network timeout"


@patch("translator.dashscope")
def test_non_200_status_surfaces_provider_message(mock_ds: MagicMock) -> None:
    response = _response("")
    response["status_code"] = 429
    response["message"] = "quota exceeded"
    mock_ds.MultiModalConversation.call.return_value = response
    adapter = DashscopeSignTranslator(api_key="test-key")

    with pytest.raises(StageError) as info:
        _translate(adapter, _frames())

    assert info.value.code == TRANSLATION_FAILED
    assert str(info.value) == "quota exceeded"


@patch("translator.dashscope")
def test_unauthorized_status_maps_to_auth_failed(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = {
        "status_code": 401,
        "message": "Invalid API-key provided.",
        "output": None,
    }
    adapter = DashscopeSignTranslator(api_key="bad-key")

    with pytest.raises(StageError) as info:
        _translate(adapter, _frames())

    assert info.value.code == AUTH_FAILED


@patch("translator.dashscope")
def test_empty_reply_is_malformed(mock_ds: MagicMock) -> None:
    mock_ds.MultiModalConversation.call.return_value = {"status_code": 200, "output": {"choices": []}}
    adapter = DashscopeSignTranslator(api_key="test-key")

    with pytest.raises(StageError) as info:
        _translate(adapter, _frames())

    assert info.value.code == MALFORMED_RESPONSE


@patch("translator.dashscope", None)
def test_dashscope_not_installed_raises() -> None:
    adapter = DashscopeSignTranslator(api_key="test-key")
    with pytest.raises(StageError, match="not installed"):
        _translate(adapter, _frames())
