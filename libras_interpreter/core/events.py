"""
Lightweight event bus used as the pipeline's output sink.

Predictions and per-tick failures are published here instead of being
returned through the render loop, so logging, UI overlays and tests can
observe them without the pipeline knowing who listens.

Usage:
    bus = EventBus()
    bus.subscribe(Events.PREDICTION, my_handler)
    bus.emit(Events.PREDICTION, prediction=prediction, hand=hand)
"""

import logging
import threading
from collections import defaultdict
from typing import Callable

logger = logging.getLogger(__name__)


class EventBus:
    """Thread-safe publish/subscribe event bus.

    Dispatch is synchronous, highest priority first. A failing handler is
    logged and skipped; it never breaks the pipeline tick that emitted.
    """

    def __init__(self):
        self._listeners = defaultdict(list)  # event_name -> [(priority, callback)]
        self._lock = threading.Lock()
        self._enabled = True

    def subscribe(self, event_name: str, callback: Callable, priority: int = 0):
        """Register a listener for an event.

        Args:
            event_name: Event to listen for
            callback: Function to call. Receives **kwargs from emit().
            priority: Higher priority callbacks run first (default 0)
        """
        with self._lock:
            self._listeners[event_name].append((priority, callback))
            # Stable sort keeps subscription order among equal priorities
            self._listeners[event_name].sort(key=lambda x: -x[0])
        logger.debug("Subscribed to '%s': %s (priority=%d)",
                     event_name, getattr(callback, "__name__", callback), priority)

    def unsubscribe(self, event_name: str, callback: Callable):
        """Remove a listener for an event."""
        with self._lock:
            self._listeners[event_name] = [
                (p, cb) for p, cb in self._listeners[event_name] if cb is not callback
            ]

    def emit(self, event_name: str, **kwargs):
        """Emit an event to all registered listeners.

        Args:
            event_name: Event name to emit
            **kwargs: Data passed to all listeners
        """
        if not self._enabled:
            return

        with self._lock:
            listeners = list(self._listeners.get(event_name, []))

        for _, callback in listeners:
            try:
                callback(**kwargs)
            except Exception:
                logger.exception("Event handler error [%s -> %s]",
                                 event_name, getattr(callback, "__name__", callback))

    def set_enabled(self, enabled: bool):
        self._enabled = enabled

    def clear(self, event_name: str = None):
        """Remove all listeners, optionally for a specific event."""
        with self._lock:
            if event_name:
                self._listeners.pop(event_name, None)
            else:
                self._listeners.clear()

    @property
    def listener_count(self) -> int:
        """Total number of registered listeners."""
        with self._lock:
            return sum(len(cbs) for cbs in self._listeners.values())


# =============================================================================
# Standard Event Names (constants to avoid typos)
# =============================================================================

class Events:
    """Standard event names used throughout the system."""

    # Per-tick
    HANDS_DETECTED = "hands_detected"
    PREDICTION = "prediction"
    TICK_FAILED = "tick_failed"

    # Lifecycle
    PIPELINE_STARTED = "pipeline_started"
    PIPELINE_STOPPED = "pipeline_stopped"
    CAMERA_ERROR = "camera_error"
