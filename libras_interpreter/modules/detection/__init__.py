"""Hand landmark detection and finger geometry.

The MediaPipe-backed detector lives in ``hand_detector`` and is imported
explicitly so geometry can be used without MediaPipe loaded.
"""
from .geometry import FINGER_LOOKUP_INDICES, FINGER_NAMES, finger_path

__all__ = ["FINGER_LOOKUP_INDICES", "FINGER_NAMES", "finger_path"]
