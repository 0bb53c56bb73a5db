"""Simple JSON-based config store."""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULTS = {
    "api_key": "",
    "hotkey": "Key.f9",
    "recording_duration_ms": 5000,
    "vision_model": "qwen-vl-max",
    "tts_model": "cosyvoice-v1",
    "tts_voice": "longxiaochun",
    "camera_index": 0,
}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "echo_sign" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        return self._get_str("api_key")

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_hotkey(self) -> str:
        return self._get_str("hotkey")

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def get_recording_duration_ms(self) -> int:
        value = self._get_int("recording_duration_ms")
        if value <= 0:
            return int(DEFAULTS["recording_duration_ms"])
        return value

    def set_recording_duration_ms(self, duration_ms: int) -> None:
        self._set("recording_duration_ms", int(duration_ms))

    def get_vision_model(self) -> str:
        return self._get_str("vision_model")

    def get_tts_model(self) -> str:
        return self._get_str("tts_model")

    def get_tts_voice(self) -> str:
        return self._get_str("tts_voice")

    def get_camera_index(self) -> int:
        return self._get_int("camera_index")

    def _get_str(self, name: str) -> str:
        data = self._read_all()
        return str(data.get(name, DEFAULTS[name]))

    def _get_int(self, name: str) -> int:
        data = self._read_all()
        value = data.get(name, DEFAULTS[name])
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Invalid %s=%r in config, using default", name, value)
            return int(DEFAULTS[name])

    def _set(self, name: str, value: object) -> None:
        data = self._read_all()
        data[name] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Config file %s is unreadable, using defaults", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
