"""Sign language translation provider using DashScope vision models.

Captured frames are sent to a Qwen-VL model as a sequence of base64 image
parts together with an instruction prompt. The model is asked to answer
with a single JSON object ``{"text", "sentiment", "confidence"}`` which is
parsed into a :class:`TranslationResult`.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from typing import Any, Sequence

from errors import (
    AUTH_FAILED,
    MALFORMED_RESPONSE,
    TRANSLATION_FAILED,
    StageError,
    classify_provider_error,
)
from models import Frame, TranslationResult

logger = logging.getLogger(__name__)

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

TRANSLATION_PROMPT = (
    "You are an expert sign language interpreter. The images are consecutive "
    "frames of a person signing, in capture order. Translate the signing into "
    "a natural spoken English sentence, paying attention to hand shapes, "
    "movement and facial expression. Reply with only a JSON object of the form "
    '{"text": "<translation>", "sentiment": "<emotional tone, omit if unclear>", '
    '"confidence": <number between 0 and 1>}.'
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def _parse_reply(reply: str) -> TranslationResult:
    """Parse the model's reply text into a TranslationResult."""
    body = reply.strip()
    match = _FENCE_RE.match(body)
    if match:
        body = match.group(1)
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise StageError(MALFORMED_RESPONSE, f"Translation reply is not JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise StageError(MALFORMED_RESPONSE)
    try:
        return TranslationResult.from_payload(payload)
    except ValueError as exc:
        raise StageError(MALFORMED_RESPONSE, "Could not understand the signing.") from exc


class DashscopeSignTranslator:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen-vl-max",
        request_timeout_s: float = 30.0,
        prompt: str = TRANSLATION_PROMPT,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s
        self._prompt = prompt

    def set_api_key(self, api_key: str) -> None:
        self._api_key = api_key

    async def translate(self, frames: Sequence[Frame]) -> TranslationResult:
        if not frames:
            raise ValueError("translate() requires at least one frame")
        return await asyncio.to_thread(self._translate_blocking, list(frames))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _translate_blocking(self, frames: list[Frame]) -> TranslationResult:
        if dashscope is None:
            raise StageError(TRANSLATION_FAILED, "dashscope is not installed")

        api_key = self._api_key or os.getenv("DASHSCOPE_API_KEY", "")
        if not api_key:
            raise StageError(AUTH_FAILED, "No API key configured")

        content: list[dict[str, str]] = [{"image": frame.data_uri()} for frame in frames]
        content.append({"text": self._prompt})
        logger.debug("Sending %d frames to %s", len(frames), self._model)
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=api_key,
                model=self._model,
                messages=[{"role": "user", "content": content}],
                result_format="message",
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            raise StageError(classify_provider_error(exc, TRANSLATION_FAILED), str(exc)) from exc

        status_code = self._field(response, "status_code")
        if status_code is not None and status_code != 200:
            message = str(self._field(response, "message") or f"request failed with status {status_code}")
            code = classify_provider_error(Exception(f"{status_code} {message}"), TRANSLATION_FAILED)
            raise StageError(code, message)

        reply = self._extract_text(response)
        if not reply:
            raise StageError(MALFORMED_RESPONSE, "Translation reply was empty.")
        return _parse_reply(reply)

    @staticmethod
    def _field(response: object, name: str) -> Any:
        if isinstance(response, dict):
            return response.get(name)
        return getattr(response, name, None)

    def _extract_text(self, response: object) -> str:
        """Pull the reply text out of a DashScope response dict."""
        output = self._field(response, "output")
        if not isinstance(output, dict):
            return ""
        choices = output.get("choices", [])
        if not choices:
            return ""
        message = choices[0].get("message", {})
        content = message.get("content", [])
        if isinstance(content, str):
            return content
        parts = [str(part.get("text", "")) for part in content if isinstance(part, dict)]
        return "".join(parts)
