"""
Logging setup and the prediction log sink.
"""

import os
import logging
import logging.handlers

from libras_interpreter.core.events import EventBus, Events


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure console and optional rotating-file logging."""
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-25s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Remove existing handlers
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(root_logger.level)
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class PredictionLogger:
    """Logs every prediction the pipeline surfaces. Keeps counts only."""

    def __init__(self):
        self.logger = logging.getLogger("prediction_events")
        self._predictions = 0
        self._failures = 0

    def attach(self, bus: EventBus):
        bus.subscribe(Events.PREDICTION, self.log_prediction)
        bus.subscribe(Events.TICK_FAILED, self.log_failure)
        return self

    def log_prediction(self, prediction=None, hand=None, frame_id=None, **kwargs):
        self._predictions += 1
        self.logger.info(
            "Frame %-6s | Hand: %-5s | %r",
            frame_id if frame_id is not None else "-",
            hand.handedness if hand is not None else "-",
            prediction,
        )

    def log_failure(self, error=None, frame_id=None, **kwargs):
        self._failures += 1
        self.logger.warning("Frame %s | tick failed: %s", frame_id, error)

    @property
    def total_predictions(self):
        return self._predictions

    @property
    def total_failures(self):
        return self._failures
