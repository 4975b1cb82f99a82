"""
Shared domain types for the Libras interpreter.

Centralizes enums and data classes used across modules to keep the
detector, encoder, classifier and renderer decoupled from each other.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

import numpy as np


# =============================================================================
# Landmark naming
# =============================================================================

LEFT = "Left"
RIGHT = "Right"

NUM_KEYPOINTS = 21

# Index order is fixed: 0 wrist, 1-4 thumb, 5-8 index, 9-12 middle,
# 13-16 ring, 17-20 pinky. The classifier's input names derive from these.
KEYPOINT_NAMES = (
    "wrist",
    "thumb_cmc",
    "thumb_mcp",
    "thumb_ip",
    "thumb_tip",
    "index_finger_mcp",
    "index_finger_pip",
    "index_finger_dip",
    "index_finger_tip",
    "middle_finger_mcp",
    "middle_finger_pip",
    "middle_finger_dip",
    "middle_finger_tip",
    "ring_finger_mcp",
    "ring_finger_pip",
    "ring_finger_dip",
    "ring_finger_tip",
    "pinky_finger_mcp",
    "pinky_finger_pip",
    "pinky_finger_dip",
    "pinky_finger_tip",
)


# =============================================================================
# Data Containers
# =============================================================================

class Keypoint(NamedTuple):
    """A named landmark in pixel coordinates of the unflipped frame."""
    name: str
    x: float
    y: float
    z: Optional[float] = None


@dataclass
class Hand:
    """One detected hand for one frame.

    Only ``handedness`` and ``keypoints`` are consumed by the pipeline;
    ``payload`` carries whatever the detector returned, untouched.
    """
    handedness: str
    keypoints: List[Keypoint]
    score: float = 0.0
    payload: Any = None

    def keypoint(self, index: int) -> Keypoint:
        return self.keypoints[index]


class Prediction:
    """Opaque classifier output surfaced to the caller.

    Uses __slots__ since one is created per classified frame.
    """

    __slots__ = ("outputs", "raw", "timestamp")

    def __init__(self, outputs: Dict[str, np.ndarray], raw: Any = None):
        self.outputs = outputs
        self.raw = raw
        self.timestamp = time.time()

    def __repr__(self):
        shapes = ", ".join(
            "%s%s" % (name, tuple(np.shape(value)))
            for name, value in sorted(self.outputs.items())
        )
        return "Prediction(%s)" % shapes


class PipelineState(Enum):
    """Lifecycle of the inference pipeline. STOPPED is terminal."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    RUNNING = "running"
    STOPPED = "stopped"


class TickResult:
    """Result of a single pipeline tick."""

    __slots__ = (
        "frame", "frame_id", "hands", "hand_count",
        "prediction", "latency_ms", "timestamp",
    )

    def __init__(self):
        self.frame = None
        self.frame_id = 0
        self.hands: List[Hand] = []
        self.hand_count = 0
        self.prediction: Optional[Prediction] = None
        self.latency_ms = 0.0
        self.timestamp = time.time()

    @property
    def hand_detected(self) -> bool:
        return self.hand_count > 0
