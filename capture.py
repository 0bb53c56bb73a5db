"""Webcam capture provider."""

from __future__ import annotations

import asyncio
import base64
import logging
import threading
import time
from typing import Any, Optional

from errors import CAPTURE_FAILED, PERMISSION_DENIED, StageError
from models import Frame

logger = logging.getLogger(__name__)

try:
    import cv2
except Exception:  # pragma: no cover
    cv2 = None  # type: ignore


class OpenCVFrameCapture:
    def __init__(
        self,
        camera_index: int = 0,
        frame_interval_ms: int = 500,
        jpeg_quality: int = 70,
        max_width: int = 640,
    ) -> None:
        self.camera_index = camera_index
        self.frame_interval_ms = frame_interval_ms
        self.jpeg_quality = jpeg_quality
        self.max_width = max_width
        self.dropped_frames = 0
        self._abort_event = threading.Event()
        self._lock = threading.Lock()

    async def capture(self, duration_ms: int) -> list[Frame]:
        # one event per capture window
        abort_event = threading.Event()
        self._abort_event = abort_event
        return await asyncio.to_thread(self._capture_blocking, duration_ms, abort_event)

    def abort(self) -> None:
        """End the current capture window early."""
        self._abort_event.set()

    def _capture_blocking(
        self, duration_ms: int, abort_event: Optional[threading.Event] = None
    ) -> list[Frame]:
        abort_event = abort_event or self._abort_event
        if cv2 is None:
            raise StageError(CAPTURE_FAILED, "opencv is not installed")
        with self._lock:
            camera = cv2.VideoCapture(self.camera_index)
            try:
                if not camera.isOpened():
                    raise StageError(PERMISSION_DENIED)
                return self._sample(camera, duration_ms, abort_event)
            finally:
                camera.release()

    def _sample(self, camera: Any, duration_ms: int, abort_event: threading.Event) -> list[Frame]:
        frames: list[Frame] = []
        interval_s = self.frame_interval_ms / 1000.0
        deadline = time.monotonic() + duration_ms / 1000.0
        next_sample = time.monotonic()

        while not abort_event.is_set():
            now = time.monotonic()
            if now >= deadline:
                break
            ok, image = camera.read()
            if not ok:
                raise StageError(CAPTURE_FAILED, "Camera stopped delivering frames.")
            if now < next_sample:
                continue
            next_sample = now + interval_s
            frame = self._encode(image)
            if frame is None:
                self.dropped_frames += 1
                continue
            frames.append(frame)

        logger.debug("Sampled %d frames (%d dropped)", len(frames), self.dropped_frames)
        return frames

    def _encode(self, image: Any) -> Frame | None:
        height, width = image.shape[:2]
        if width > self.max_width:
            scale = self.max_width / float(width)
            image = cv2.resize(image, (self.max_width, int(height * scale)))
        ok, buf = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        if not ok:
            return None
        return Frame(data=base64.b64encode(buf.tobytes()).decode("ascii"), mime_type="image/jpeg")
