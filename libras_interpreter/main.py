#!/usr/bin/env python3
"""
Libras Interpreter - real-time sign recognition from a webcam.
Application entry point.

Usage:
    libras-interpreter                       # Interpret signs
    libras-interpreter --mode preview        # Camera only, no models
    libras-interpreter --labels --debug      # Show keypoint names, verbose logs
    libras-interpreter --config my.yaml --camera 1

Keys:
    q/ESC  quit
    l      toggle keypoint labels
    p      print performance report
"""

import sys
import signal
import argparse
import logging

import cv2

from libras_interpreter import __version__
from libras_interpreter.core.errors import CameraUnavailableError, LibrasError
from libras_interpreter.core.events import EventBus
from libras_interpreter.core.pipeline import Pipeline
from libras_interpreter.core.types import PipelineState
from libras_interpreter.modules.capture.camera_manager import CameraManager
from libras_interpreter.modules.utils.config import Config
from libras_interpreter.modules.utils.logger import setup_logging, PredictionLogger
from libras_interpreter.modules.utils.performance_monitor import PerformanceMonitor
from libras_interpreter.modules.visualization.canvas import Canvas
from libras_interpreter.modules.visualization.renderer import Renderer, RendererConfig

logger = logging.getLogger(__name__)


class LibrasInterpreter:
    """Application wiring camera, models, pipeline and the display window."""

    def __init__(self, config: Config, mode: str = "interpret"):
        self._config = config
        self._mode = mode

        self._bus = EventBus()
        self._perf = PerformanceMonitor(
            window_size=config.get("performance.metrics_window", 100)
        )
        self._camera = CameraManager(config.camera)
        self._canvas = Canvas(
            config.get("camera.width", 640), config.get("camera.height", 480)
        )
        self._renderer = Renderer(RendererConfig.from_dict(config.renderer))
        self._prediction_logger = PredictionLogger().attach(self._bus)

        self._window_name = config.get("display.window_name", "Libras Interpreter")
        self._mirror = config.get("display.mirror", True)
        self._show_window = config.get("display.enabled", True)

        self._pipeline = None
        self._running = False

        logger.info("LibrasInterpreter initialized (mode=%s)", mode)

    def _build_pipeline(self) -> Pipeline:
        # Model backends are imported lazily so preview mode needs neither.
        from libras_interpreter.modules.detection.hand_detector import (
            HandDetector, HandDetectorConfig,
        )
        from libras_interpreter.modules.recognition.classifier import (
            SignClassifier, ClassifierConfig,
        )

        return Pipeline(
            camera=self._camera,
            detector=HandDetector(HandDetectorConfig.from_dict(self._config.detector)),
            classifier=SignClassifier(ClassifierConfig.from_dict(self._config.classifier)),
            renderer=self._renderer,
            canvas=self._canvas,
            event_bus=self._bus,
            performance_monitor=self._perf,
            config=self._config.pipeline,
        )

    def start(self) -> int:
        """Run the selected mode until quit. Returns a process exit code."""
        try:
            if self._mode == "preview":
                self._run_preview()
            else:
                self._run_interpreter()
        except LibrasError as e:
            logger.error("%s", e)
            return 1
        finally:
            self._shutdown()
        return 0

    def _run_interpreter(self):
        self._pipeline = self._build_pipeline()
        self._pipeline.initialize()
        if self._pipeline.state is not PipelineState.RUNNING:
            # Quit requested while models were loading
            logger.info("Stopped during startup")
            return
        self._running = True
        logger.info("Starting main loop")
        self._pipeline.run(on_tick=self._on_tick)

    def _run_preview(self):
        """Camera-only loop: clear and redraw the frame every tick."""
        if not self._camera.open():
            raise CameraUnavailableError(
                "Camera could not be opened. Check the device and its permissions."
            )
        self._canvas.resize(*self._camera.resolution)
        self._running = True
        logger.info("Starting preview loop")

        while self._running:
            with self._perf.measure("total"):
                frame = self._camera.read()
                if frame is not None:
                    self._canvas.clear_rect(0, 0, frame.width, frame.height)
                    self._canvas.draw_image(frame.image, 0, 0, frame.width, frame.height)
            if frame is not None:
                self._perf.tick()
                self._show(self._canvas.image)
            self._handle_keys()

    def _on_tick(self, result):
        if result.frame is not None:
            self._show(result.frame)
        self._handle_keys()

    def _show(self, image):
        if not self._show_window:
            return
        # Presentation-only mirror; detection already ran on the raw frame.
        cv2.imshow(self._window_name, cv2.flip(image, 1) if self._mirror else image)

    def _handle_keys(self):
        key = cv2.waitKey(1) & 0xFF
        if key in (ord("q"), 27):
            self.request_stop()
        elif key == ord("l"):
            self._renderer.toggle_labels()
        elif key == ord("p"):
            self._perf.print_report()

    def request_stop(self):
        self._running = False
        if self._pipeline is not None:
            self._pipeline.stop()

    def _shutdown(self):
        """Release devices, models and windows."""
        logger.info("Shutting down...")
        self._running = False
        if self._pipeline is not None:
            self._pipeline.close()
        else:
            self._camera.stop()
        if self._show_window:
            cv2.destroyAllWindows()

        self._perf.print_report()
        logger.info("Predictions surfaced: %d, failed ticks: %d",
                    self._prediction_logger.total_predictions,
                    self._prediction_logger.total_failures)
        logger.info("Shutdown complete.")

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self.request_stop()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Libras Interpreter - real-time sign recognition from a webcam"
    )
    parser.add_argument(
        "--mode", choices=["interpret", "preview"],
        default="interpret", help="Operating mode"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--camera", type=int, default=None,
        help="Camera device ID"
    )
    parser.add_argument(
        "--labels", action="store_true",
        help="Draw keypoint names next to each landmark"
    )
    parser.add_argument(
        "--debug", action="store_true",
        help="Enable debug logging"
    )
    return parser.parse_args(argv)


def build_overrides(args) -> dict:
    """Translate CLI flags into config overrides."""
    overrides = {}
    if args.camera is not None:
        overrides.setdefault("camera", {})["device_id"] = args.camera
    if args.labels:
        overrides.setdefault("renderer", {})["show_labels"] = True
    if args.debug:
        overrides.setdefault("logging", {})["level"] = "DEBUG"
    return overrides


def main(argv=None):
    args = parse_args(argv)

    config = Config()
    config.load(config_path=args.config)
    config.update(build_overrides(args))

    log_cfg = config.get_section("logging")
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 60)
    logger.info("  LIBRAS INTERPRETER  v%s", __version__)
    logger.info("  Mode: %s", args.mode)
    logger.info("=" * 60)

    app = LibrasInterpreter(config, mode=args.mode)

    signal.signal(signal.SIGINT, app.handle_signal)
    signal.signal(signal.SIGTERM, app.handle_signal)

    return app.start()


if __name__ == "__main__":
    sys.exit(main())
