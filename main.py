"""Application entrypoint."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

from capture import OpenCVFrameCapture
from config import JsonConfigStore
from hotkey import GlobalHotkeyAdapter
from loop_thread import EventLoopThread
from models import SessionStatus, TranslationResult
from overlay import OverlayWindow
from pipeline_controller import PipelineController
from speech import DashscopeSpeechSynthesizer, SoundDevicePlayer, SpeechOutput
from translator import DashscopeSignTranslator

try:
    from PySide6.QtCore import QObject, Signal, QSize
    from PySide6.QtGui import QAction, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


STATUS_ICONS = {
    SessionStatus.IDLE: "#888888",         # grey
    SessionStatus.CAPTURING: "#FF4444",    # red
    SessionStatus.TRANSLATING: "#4C7DFF",  # blue
    SessionStatus.SPEAKING: "#34C77B",     # green
    SessionStatus.FAILED: "#FF8800",       # orange
}

STATUS_TOOLTIPS = {
    SessionStatus.IDLE: "Echo-Sign — Ready",
    SessionStatus.CAPTURING: "Echo-Sign — Recording...",
    SessionStatus.TRANSLATING: "Echo-Sign — Translating...",
    SessionStatus.SPEAKING: "Echo-Sign — Speaking...",
    SessionStatus.FAILED: "Echo-Sign — Failed, record again to retry",
}


class UIBridge(QObject):
    state_signal = Signal(str, str)  # from_status, to_status
    result_signal = Signal(object)
    error_signal = Signal(str)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.overlay = OverlayWindow()
        self._last_result: Optional[TranslationResult] = None
        self.ui = UIBridge()
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.result_signal.connect(self._on_result_ui)
        self.ui.error_signal.connect(self._on_error_ui)

        api_key = self.config_store.get_api_key()
        self.translator = DashscopeSignTranslator(
            api_key=api_key,
            model=self.config_store.get_vision_model(),
        )
        self.synthesizer = DashscopeSpeechSynthesizer(
            api_key=api_key,
            model=self.config_store.get_tts_model(),
            voice=self.config_store.get_tts_voice(),
        )
        self.loop_thread = EventLoopThread()
        self.controller = PipelineController(
            capture=OpenCVFrameCapture(camera_index=self.config_store.get_camera_index()),
            translator=self.translator,
            speech=SpeechOutput(self.synthesizer, SoundDevicePlayer()),
            recording_duration_ms=self.config_store.get_recording_duration_ms(),
            on_state_change=self._on_state_change,
            on_result=self._on_result,
            on_error=self._on_error,
        )
        self.hotkey = GlobalHotkeyAdapter(hotkey_name=self.config_store.get_hotkey())

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(STATUS_ICONS[SessionStatus.IDLE]))
        self.tray.setToolTip(STATUS_TOOLTIPS[SessionStatus.IDLE])
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        seconds = self.config_store.get_recording_duration_ms() / 1000
        self.record_action = QAction(f"Record {seconds:g}s Message", menu)
        self.record_action.triggered.connect(self._request_start)
        menu.addAction(self.record_action)

        menu.addSeparator()
        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._set_hotkey)
        menu.addAction(hotkey_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        self.translator.set_api_key(value)
        self.synthesizer.set_api_key(value)
        QMessageBox.information(None, "Saved", "API Key saved and applied.")

    def _set_hotkey(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Hotkey", "Use pynput key format, e.g. Key.f9"
        )
        if not ok or not value:
            return
        self.config_store.set_hotkey(value)
        QMessageBox.information(None, "Saved", "Hotkey saved. Restart app to apply.")

    def _request_start(self) -> None:
        self.loop_thread.call(self.controller.start)

    # ------------------------------------------------------------------
    # Controller callbacks (called on the loop thread → emit signals)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_status: SessionStatus, to_status: SessionStatus) -> None:
        self.ui.state_signal.emit(from_status.value, to_status.value)

    def _on_result(self, result: TranslationResult) -> None:
        self.ui.result_signal.emit(result)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(message)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_state_change_ui(self, from_status: str, to_status: str) -> None:
        status = SessionStatus(to_status)
        self.tray.setIcon(_create_icon(STATUS_ICONS[status]))
        self.tray.setToolTip(STATUS_TOOLTIPS[status])
        self.record_action.setEnabled(status in (SessionStatus.IDLE, SessionStatus.FAILED))
        if status == SessionStatus.CAPTURING:
            self._last_result = None
        self.overlay.show_status(status, self._last_result)

    def _on_result_ui(self, result: TranslationResult) -> None:
        self._last_result = result
        self.overlay.show_result(result)

    def _on_error_ui(self, message: str) -> None:
        self.overlay.show_error(message)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.loop_thread.start()
        try:
            self.hotkey.start(on_trigger=self._request_start)
        except Exception as exc:
            logger.warning("Hotkey disabled: %s", exc)
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        return self.app.exec()

    async def _shutdown_pipeline(self) -> None:
        self.controller.cancel()
        await self.controller.wait()

    def quit(self) -> None:
        self.hotkey.stop()
        try:
            self.loop_thread.submit(self._shutdown_pipeline()).result(timeout=2.0)
        except Exception:
            logger.warning("Pipeline did not shut down cleanly", exc_info=True)
        self.loop_thread.stop()
        self.app.quit()


def main() -> int:
    logging.basicConfig(
        level=os.getenv("ECHO_SIGN_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
