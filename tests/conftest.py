"""
Shared fixtures for the test suite.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Allow running the tests from a source checkout without installing.
sys.path.insert(0, str(Path(__file__).parent.parent))

from libras_interpreter.core.types import Hand, Keypoint, KEYPOINT_NAMES
from libras_interpreter.modules.capture.camera_manager import Frame


def create_mock_hand(handedness: str = "Right", base_x: float = 320.0,
                     base_y: float = 400.0) -> Hand:
    """
    Create a 21-keypoint hand in pixel coordinates.

    Fingers fan out upward from the wrist; each joint is 20 px above
    the previous one.
    """
    keypoints = [Keypoint(name=KEYPOINT_NAMES[0], x=base_x, y=base_y, z=0.0)]
    for finger in range(5):
        finger_x = base_x - 60 + finger * 30
        for joint in range(4):
            idx = 1 + finger * 4 + joint
            keypoints.append(Keypoint(
                name=KEYPOINT_NAMES[idx],
                x=finger_x,
                y=base_y - 40 - joint * 20,
                z=-0.01 * joint,
            ))
    return Hand(handedness=handedness, keypoints=keypoints, score=0.9)


@pytest.fixture
def make_hand():
    return create_mock_hand


@pytest.fixture
def frame():
    """A black 640x480 frame."""
    return Frame(image=np.zeros((480, 640, 3), dtype=np.uint8), timestamp=1.0, frame_id=1)


class RecordingSurface:
    """Drawing surface that records every call together with the active styles."""

    def __init__(self):
        self.calls = []
        self.fill_style = None
        self.stroke_style = None
        self.line_width = None
        self.depth = 0

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs, self.fill_style))

    def fill_circle(self, x, y, radius):
        self._record("fill_circle", x, y, radius)

    def stroke_path(self, points, close=False):
        self._record("stroke_path", list(points), close=close)

    def save(self):
        self.depth += 1
        self._record("save")

    def restore(self):
        self.depth -= 1
        self._record("restore")

    def translate(self, tx, ty):
        self._record("translate", tx, ty)

    def rotate(self, angle):
        self._record("rotate", angle)

    def scale(self, sx, sy):
        self._record("scale", sx, sy)

    def fill_text(self, text, x, y):
        self._record("fill_text", text, x, y)

    def names(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def surface():
    return RecordingSurface()
