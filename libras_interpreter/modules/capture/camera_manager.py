"""
Camera capture for the interpreter's frame source.
Synchronous by default; optional threaded buffering keeps the latest
frame ready so a slow tick never queues stale frames.
"""

import time
import threading
import logging
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class Frame:
    """Captured frame with metadata. ``image`` is BGR and never mirrored."""
    image: np.ndarray
    timestamp: float
    frame_id: int

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]

    @property
    def timestamp_ms(self) -> int:
        return int(self.timestamp * 1000)

    @property
    def rgb(self) -> np.ndarray:
        """Convert BGR to RGB."""
        return cv2.cvtColor(self.image, cv2.COLOR_BGR2RGB)


class CameraManager:
    """Camera capture with optional threaded frame acquisition."""

    def __init__(self, config: dict):
        self._device_id = config.get("device_id", 0)
        self._width = config.get("width", 640)
        self._height = config.get("height", 480)
        self._fps = config.get("fps", 60)
        self._backend = config.get("backend", "auto")
        self._buffer_size = config.get("buffer_size", 1)
        self._warmup_frames = config.get("warmup_frames", 5)
        self._threaded = config.get("threaded", False)

        self._cap = None
        self._frame: Optional[Frame] = None
        self._frame_id = 0
        self._lock = threading.Lock()
        self._running = False
        self._thread = None
        self._capture_times = []

    def open(self) -> bool:
        """Open the capture device and negotiate its resolution.

        Returns:
            False if the device is unavailable
        """
        backend_map = {
            "v4l2": cv2.CAP_V4L2,
            "gstreamer": cv2.CAP_GSTREAMER,
            "auto": cv2.CAP_ANY,
        }
        backend = backend_map.get(self._backend, cv2.CAP_ANY)

        self._cap = cv2.VideoCapture(self._device_id, backend)
        if not self._cap.isOpened():
            logger.error("Failed to open camera %s with backend %s", self._device_id, self._backend)
            self._cap.release()
            self._cap = None
            return False

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        self._cap.set(cv2.CAP_PROP_FPS, self._fps)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self._buffer_size)

        # The driver may not honour the request; the surface follows what it gives.
        actual_w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        actual_fps = self._cap.get(cv2.CAP_PROP_FPS)
        logger.info(
            "Camera opened: %dx%d @ %.0f FPS (requested %dx%d @ %d)",
            actual_w, actual_h, actual_fps,
            self._width, self._height, self._fps,
        )
        if actual_w > 0 and actual_h > 0:
            self._width, self._height = actual_w, actual_h

        if self._warmup_frames:
            logger.info("Camera warmup: discarding %d frames...", self._warmup_frames)
            for _ in range(self._warmup_frames):
                self._cap.read()

        self._running = True
        if self._threaded:
            self.start_async()
        return True

    def start_async(self):
        """Start threaded frame capture."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._capture_loop, daemon=True)
        self._thread.start()
        logger.info("Async capture started")

    def _capture_loop(self):
        """Background capture thread - always holds the latest frame."""
        while self._running:
            frame = self._grab()
            if frame is not None:
                with self._lock:
                    self._frame = frame
            else:
                time.sleep(0.001)

    def _grab(self) -> Optional[Frame]:
        if self._cap is None:
            return None
        start = time.perf_counter()
        ret, image = self._cap.read()
        elapsed_ms = (time.perf_counter() - start) * 1000

        if not ret or image is None:
            return None

        self._frame_id += 1
        self._capture_times.append(elapsed_ms)
        if len(self._capture_times) > 100:
            self._capture_times = self._capture_times[-100:]
        return Frame(image=image, timestamp=time.monotonic(), frame_id=self._frame_id)

    def read(self) -> Optional[Frame]:
        """Get the current frame.

        Threaded mode returns the latest buffered frame (non-blocking);
        synchronous mode captures one now.

        Returns:
            Frame or None if no frame is available
        """
        if not self._running:
            return None
        if self._threaded:
            with self._lock:
                return self._frame
        frame = self._grab()
        if frame is None:
            logger.warning("Failed to capture frame")
        return frame

    @property
    def avg_capture_time_ms(self) -> float:
        """Average frame capture time in ms."""
        if not self._capture_times:
            return 0.0
        return sum(self._capture_times) / len(self._capture_times)

    @property
    def resolution(self) -> tuple:
        return (self._width, self._height)

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def stop(self):
        """Stop capture and release the camera."""
        self._running = False
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None
        if self._cap:
            self._cap.release()
            self._cap = None
        logger.info("Camera stopped")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.stop()
