"""Shared error codes and user-facing messages."""

from __future__ import annotations

NO_FRAMES = "NO_FRAMES"
CAPTURE_FAILED = "CAPTURE_FAILED"
PERMISSION_DENIED = "PERMISSION_DENIED"
TRANSLATION_FAILED = "TRANSLATION_FAILED"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
SPEECH_FAILED = "SPEECH_FAILED"
PLAYBACK_FAILED = "PLAYBACK_FAILED"
CANCELLED = "CANCELLED"

ERROR_MESSAGES = {
    NO_FRAMES: "No frames captured.",
    CAPTURE_FAILED: "Camera capture failed.",
    PERMISSION_DENIED: "Camera access is required, check permission settings.",
    TRANSLATION_FAILED: "Something went wrong during translation.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    MALFORMED_RESPONSE: "Translation response format is invalid.",
    SPEECH_FAILED: "Speech synthesis failed.",
    PLAYBACK_FAILED: "Audio playback failed.",
    CANCELLED: "Session cancelled.",
}


class StageError(Exception):
    """Raised by a collaborator when its pipeline stage cannot complete."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or ERROR_MESSAGES.get(code, code))
        self.code = code
        self.message = message


def message_for(exc: BaseException, fallback_code: str) -> str:
    """Return a non-empty user-facing message for ``exc``."""
    text = str(exc).strip()
    if text:
        return text
    code = getattr(exc, "code", None) or fallback_code
    return ERROR_MESSAGES.get(code) or ERROR_MESSAGES[fallback_code]


def code_for(exc: BaseException, fallback_code: str) -> str:
    return getattr(exc, "code", None) or fallback_code


def classify_provider_error(exc: BaseException, default_code: str) -> str:
    """Map an SDK/network exception to a standard error code."""
    low = str(exc).lower()
    if "401" in low or "403" in low or "auth" in low or "api key" in low:
        return AUTH_FAILED
    if (
        isinstance(exc, (ConnectionError, TimeoutError))
        or "timeout" in low
        or "network" in low
        or "connection" in low
    ):
        return NETWORK_ERROR
    return default_code
