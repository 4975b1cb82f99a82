"""
Core inference pipeline for the Libras interpreter.

Architecture (one tick):
    Camera -> HandDetector -> Canvas (clear + frame)
           -> Renderer (all hands)
           -> FeatureEncoder (first hand) -> SignClassifier -> EventBus

Model handles are created once during initialize() and reused by every
tick. The loop runs until stop() sets the cancellation token; a tick only
starts after the previous one has returned, so frames never queue up.
"""

import logging
import threading
from typing import Callable, Optional

from libras_interpreter.core.errors import CameraUnavailableError, PipelineStateError
from libras_interpreter.core.events import EventBus, Events
from libras_interpreter.core.types import PipelineState, TickResult
from libras_interpreter.modules.recognition.feature_encoder import encode
from libras_interpreter.modules.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)


class Pipeline:
    """Per-frame hand sign interpretation loop.

    Lifecycle: UNINITIALIZED -> INITIALIZING -> RUNNING -> STOPPED.
    STOPPED is terminal; a stopped pipeline can't be restarted.
    """

    def __init__(
        self,
        camera,
        detector,
        classifier,
        renderer,
        canvas,
        event_bus=None,
        performance_monitor=None,
        config=None,
    ):
        self._camera = camera
        self._detector = detector
        self._classifier = classifier
        self._renderer = renderer
        self._canvas = canvas
        self._bus = event_bus or EventBus()
        self._perf = performance_monitor or PerformanceMonitor()

        config = config or {}
        self._max_consecutive_failures = config.get("max_consecutive_failures", 0)

        self._state = PipelineState.UNINITIALIZED
        self._cancel = threading.Event()
        self._consecutive_failures = 0
        self._tick_count = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def initialize(self):
        """Acquire camera, detector and classifier, in that order.

        Raises:
            CameraUnavailableError: If the camera can't be opened
            ModelLoadError: If a model fails to load
            PipelineStateError: If called more than once
        """
        if self._state is not PipelineState.UNINITIALIZED:
            raise PipelineStateError("Cannot initialize pipeline in state %s" % self._state.value)
        self._state = PipelineState.INITIALIZING
        logger.info("Initializing pipeline...")

        try:
            if not self._camera.open():
                self._bus.emit(Events.CAMERA_ERROR, error="camera unavailable")
                raise CameraUnavailableError(
                    "Camera could not be opened. Check the device and its permissions."
                )

            width, height = self._camera.resolution
            self._canvas.resize(width, height)

            self._detector.initialize()
            self._classifier.load()
        except Exception:
            logger.error("Pipeline initialization failed")
            self.close()
            raise

        if self._cancel.is_set():
            # stop() arrived while models were loading
            self.close()
            return

        self._state = PipelineState.RUNNING
        self._bus.emit(Events.PIPELINE_STARTED, resolution=(width, height))
        logger.info("Pipeline running (%dx%d)", width, height)

    def stop(self):
        """Cancel the loop. Idempotent; a tick already in flight still finishes."""
        self._cancel.set()
        if self._state is not PipelineState.STOPPED:
            self._state = PipelineState.STOPPED
            self._bus.emit(Events.PIPELINE_STOPPED, ticks=self._tick_count)
            logger.info("Pipeline stopped after %d ticks", self._tick_count)

    def close(self):
        """Stop and release every model and device handle."""
        self.stop()
        self._camera.stop()
        self._detector.close()
        self._classifier.close()

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, *args):
        self.close()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self, on_tick: Optional[Callable[[TickResult], None]] = None):
        """Run ticks until cancelled.

        Args:
            on_tick: Called with every tick's result (e.g. to display it)

        Raises:
            PipelineStateError: If the pipeline is not running
            Exception: The last tick error, once max_consecutive_failures is hit
        """
        if self._state is not PipelineState.RUNNING:
            raise PipelineStateError("Cannot run pipeline in state %s" % self._state.value)

        while not self._cancel.is_set():
            try:
                result = self.tick()
            except Exception as e:
                self._handle_tick_failure(e)
                continue

            self._consecutive_failures = 0
            if on_tick is not None and not self._cancel.is_set():
                on_tick(result)

    def _handle_tick_failure(self, error: Exception):
        self._consecutive_failures += 1
        self._perf.record_failure()
        logger.exception("Tick %d failed", self._tick_count)
        self._bus.emit(Events.TICK_FAILED, error=error, frame_id=self._tick_count)

        limit = self._max_consecutive_failures
        if limit and self._consecutive_failures >= limit:
            logger.error("%d consecutive tick failures, giving up", self._consecutive_failures)
            self.stop()
            raise error

    def tick(self) -> TickResult:
        """Execute one frame: estimate, redraw, render, classify.

        A cancelled pipeline returns an empty result without touching the
        camera, models or surface.
        """
        result = TickResult()
        if self._cancel.is_set():
            return result
        if self._state is not PipelineState.RUNNING:
            raise PipelineStateError("Cannot tick pipeline in state %s" % self._state.value)

        self._tick_count += 1

        with self._perf.measure("total"):
            with self._perf.measure("capture"):
                frame = self._camera.read()

            if frame is None:
                return result
            result.frame_id = frame.frame_id

            # --- Estimation always sees the unflipped frame ---
            with self._perf.measure("estimation"):
                hands = self._detector.estimate(frame, flip_horizontal=False)

            result.hands = hands
            result.hand_count = len(hands)

            # --- Background ---
            with self._perf.measure("render"):
                self._canvas.clear_rect(0, 0, frame.width, frame.height)
                self._canvas.draw_image(frame.image, 0, 0, frame.width, frame.height)

                if hands:
                    self._renderer.render(hands, self._canvas)

            # --- Classification: first hand in detector order ---
            if hands:
                self._bus.emit(Events.HANDS_DETECTED, hands=hands, frame_id=frame.frame_id)
                primary = hands[0]
                with self._perf.measure("classification"):
                    features = encode(primary.keypoints)
                    prediction = self._classifier.execute(features)
                result.prediction = prediction
                self._bus.emit(Events.PREDICTION, prediction=prediction,
                               hand=primary, frame_id=frame.frame_id)

            result.frame = self._canvas.image

        self._perf.tick()
        result.latency_ms = self._perf.total_latency_ms
        return result
