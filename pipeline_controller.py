"""State-machine based capture -> translate -> speak orchestration.

The controller runs on a single asyncio event loop. ``start()`` is the only
mutating entry point; each stage is awaited before the next one begins, and
every stage failure lands the session in ``FAILED`` with a readable message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Sequence

from errors import (
    CANCELLED,
    CAPTURE_FAILED,
    ERROR_MESSAGES,
    MALFORMED_RESPONSE,
    NO_FRAMES,
    PLAYBACK_FAILED,
    SPEECH_FAILED,
    TRANSLATION_FAILED,
    StageError,
    code_for,
    message_for,
)
from interfaces import CaptureProvider, SpeechProvider, TranslationProvider
from models import (
    ALLOWED_TRANSITIONS,
    Frame,
    Session,
    SessionStatus,
    TranslationResult,
    can_start,
)

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionStatus, SessionStatus], None]
ResultCallback = Callable[[TranslationResult], None]
ErrorCallback = Callable[[str, str], None]


class PipelineController:
    def __init__(
        self,
        capture: CaptureProvider,
        translator: TranslationProvider,
        speech: SpeechProvider,
        recording_duration_ms: int = 5000,
        on_state_change: Optional[StateCallback] = None,
        on_result: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        if recording_duration_ms <= 0:
            raise ValueError("recording_duration_ms must be positive")
        self._capture = capture
        self._translator = translator
        self._speech = speech
        self._recording_duration_ms = recording_duration_ms
        self._on_state_change = on_state_change
        self._on_result = on_result
        self._on_error = on_error

        self._session = Session()
        self._next_session_id = 1
        self._task: Optional[asyncio.Task[None]] = None

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def result(self) -> Optional[TranslationResult]:
        return self._session.result

    @property
    def error(self) -> Optional[str]:
        return self._session.error

    @property
    def frames(self) -> tuple[Frame, ...]:
        return tuple(self._session.frames)

    @property
    def session_id(self) -> int:
        return self._session.session_id

    @property
    def is_busy(self) -> bool:
        return not can_start(self._session.status)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Begin a new session; must be called on the event loop thread.

        Returns ``False`` without touching the current session when one is
        already in flight.
        """
        if not can_start(self._session.status):
            logger.debug(
                "start() ignored, session %d is %s",
                self._session.session_id,
                self._session.status.value,
            )
            return False
        loop = asyncio.get_running_loop()

        session = Session(session_id=self._next_session_id, status=self._session.status)
        self._next_session_id += 1
        self._session = session
        self._transition(session, SessionStatus.CAPTURING)
        self._task = loop.create_task(self._run(session))
        return True

    async def wait(self) -> None:
        """Wait until the in-flight session (if any) has finished."""
        task = self._task
        if task is None or task.done():
            return
        await asyncio.wait({task})

    def cancel(self, reason: str = "") -> bool:
        """Abort the in-flight session; it ends in ``FAILED``."""
        session = self._session
        if can_start(session.status):
            return False
        self._safe_abort_capture()
        self._safe_stop_playback()
        self._fail(session, CANCELLED, reason or ERROR_MESSAGES[CANCELLED])
        task = self._task
        if task is not None and not task.done():
            task.cancel()
        return True

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(self, session: Session) -> None:
        try:
            frames = await self._capture.capture(self._recording_duration_ms)
        except Exception as exc:
            self._fail_stage(session, "capture", exc, CAPTURE_FAILED)
            return
        if not self._handle_capture_complete(session, frames):
            return

        try:
            result = await self._translator.translate(list(session.frames))
            if not isinstance(result, TranslationResult):
                raise StageError(MALFORMED_RESPONSE, f"unexpected translation result {result!r}")
        except Exception as exc:
            self._fail_stage(session, "translation", exc, TRANSLATION_FAILED)
            return
        if not self._handle_translation_complete(session, result):
            return

        try:
            audio = await self._speech.synthesize(result.text)
        except Exception as exc:
            self._fail_stage(session, "speech synthesis", exc, SPEECH_FAILED)
            return
        if not self._is_current(session, SessionStatus.SPEAKING):
            return
        try:
            await self._speech.play(audio)
        except Exception as exc:
            self._fail_stage(session, "playback", exc, PLAYBACK_FAILED)
            return
        self._handle_speech_complete(session)

    def _handle_capture_complete(self, session: Session, frames: Optional[Sequence[Frame]]) -> bool:
        if not self._is_current(session, SessionStatus.CAPTURING):
            return False
        frames = list(frames or [])
        if not frames:
            logger.info("Session %d captured no frames", session.session_id)
            self._fail(session, NO_FRAMES, ERROR_MESSAGES[NO_FRAMES])
            return False
        session.frames = frames
        logger.info("Session %d captured %d frames", session.session_id, len(frames))
        self._transition(session, SessionStatus.TRANSLATING)
        return True

    def _handle_translation_complete(self, session: Session, result: TranslationResult) -> bool:
        if not self._is_current(session, SessionStatus.TRANSLATING):
            return False
        session.result = result
        self._transition(session, SessionStatus.SPEAKING)
        self._notify(self._on_result, result)
        return True

    def _handle_speech_complete(self, session: Session) -> None:
        if not self._is_current(session, SessionStatus.SPEAKING):
            return
        self._transition(session, SessionStatus.IDLE)

    def _fail_stage(self, session: Session, stage: str, exc: Exception, fallback_code: str) -> None:
        logger.error("Session %d: %s stage failed", session.session_id, stage, exc_info=exc)
        if not self._is_current(session):
            return
        self._fail(session, code_for(exc, fallback_code), message_for(exc, fallback_code))

    def _fail(self, session: Session, code: str, message: str) -> None:
        self._transition(session, SessionStatus.FAILED, error=message)
        self._notify(self._on_error, code, message)

    def _is_current(self, session: Session, status: Optional[SessionStatus] = None) -> bool:
        if session is not self._session:
            return False
        if status is not None and session.status != status:
            return False
        return not can_start(session.status)

    def _transition(
        self,
        session: Session,
        to_status: SessionStatus,
        error: Optional[str] = None,
    ) -> None:
        from_status = session.status
        if to_status not in ALLOWED_TRANSITIONS[from_status]:
            raise RuntimeError(f"illegal transition {from_status.value} -> {to_status.value}")
        session.error = error if to_status == SessionStatus.FAILED else None
        session.status = to_status
        logger.info("Session %d: %s -> %s", session.session_id, from_status.value, to_status.value)
        self._notify(self._on_state_change, from_status, to_status)

    def _notify(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Observer callback %r failed", callback)

    def _safe_abort_capture(self) -> None:
        abort = getattr(self._capture, "abort", None)
        if abort is None:
            return
        try:
            abort()
        except Exception:
            logger.warning("Capture abort failed", exc_info=True)

    def _safe_stop_playback(self) -> None:
        stop = getattr(self._speech, "stop", None)
        if stop is None:
            return
        try:
            stop()
        except Exception:
            logger.warning("Playback stop failed", exc_info=True)
