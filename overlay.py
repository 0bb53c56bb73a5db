"""Overlay window showing pipeline status and the latest transcript."""

from __future__ import annotations

from typing import Optional

from models import SessionStatus, TranslationResult

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QWidget, QVBoxLayout
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

STATUS_TEXT = {
    SessionStatus.CAPTURING: "🎥 Recording... keep hands and face visible",
    SessionStatus.TRANSLATING: "🧠 Translating signs...",
    SessionStatus.SPEAKING: "🔊 Speaking",
}

_BASE_STYLE = "font-size: 18px; padding: 16px; border-radius: 12px;"
_NORMAL_STYLE = "color: white; background: rgba(0,0,0,190);" + _BASE_STYLE
_ERROR_STYLE = "color: #FF6B6B; background: rgba(0,0,0,210);" + _BASE_STYLE


def format_transcript(result: TranslationResult) -> str:
    """Render a translation result the way the overlay shows it."""
    lines = [f"“{result.text}”", f"{result.confidence_percent()}% confidence"]
    if result.sentiment:
        lines.append(f"Tone: {result.sentiment}")
    return "\n".join(lines)


def overlay_text(status: SessionStatus, result: Optional[TranslationResult] = None) -> Optional[str]:
    """Text for a status, with the transcript once one is available."""
    if result is not None and status == SessionStatus.SPEAKING:
        return f"{STATUS_TEXT[status]}\n{format_transcript(result)}"
    if result is not None and status == SessionStatus.IDLE:
        return format_transcript(result)
    return STATUS_TEXT.get(status)


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(600)

        self._label = QLabel("")
        self._label.setWordWrap(True)
        self._label.setStyleSheet(_NORMAL_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._label)
        self.setLayout(layout)

        self._hide_timer: Optional[QTimer] = None

    def _center_top(self) -> None:
        """Position the window at the top center of the primary screen."""
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        x = geom.x() + (geom.width() - self.width()) // 2
        y = geom.y() + 40
        self.move(x, y)

    def set_text(self, text: str) -> None:
        self._cancel_hide_timer()
        self._label.setText(text)
        self._center_top()
        self.show()

    def show_status(
        self,
        status: SessionStatus,
        result: Optional[TranslationResult] = None,
        hide_after_ms: int = 6000,
    ) -> None:
        text = overlay_text(status, result)
        if text is None:
            return
        self._label.setStyleSheet(_NORMAL_STYLE)
        self.set_text(text)
        # no auto-hide until playback has finished
        if status == SessionStatus.IDLE:
            self.hide_with_delay(hide_after_ms)

    def show_result(self, result: TranslationResult) -> None:
        self.show_status(SessionStatus.SPEAKING, result)

    def show_error(self, text: str, hide_after_ms: int = 4000) -> None:
        self._label.setStyleSheet(_ERROR_STYLE)
        self.set_text(f"⚠️ {text}")
        self.hide_with_delay(hide_after_ms)

    def hide_with_delay(self, delay_ms: int = 400) -> None:
        self._cancel_hide_timer()
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self.hide)
            self._hide_timer.start(delay_ms)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
