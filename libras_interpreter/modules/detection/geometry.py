"""
Finger skeleton lookup for the 21-point hand model.

Each finger path starts at the wrist (0) and walks through that finger's
four joints, so the five paths together cover indices 1-20 exactly once.
"""

from typing import Dict, List, Tuple

from libras_interpreter.core.types import Hand, Keypoint

# Insertion order is the draw order.
FINGER_LOOKUP_INDICES: Dict[str, Tuple[int, ...]] = {
    "thumb": (0, 1, 2, 3, 4),
    "index_finger": (0, 5, 6, 7, 8),
    "middle_finger": (0, 9, 10, 11, 12),
    "ring_finger": (0, 13, 14, 15, 16),
    "pinky": (0, 17, 18, 19, 20),
}

FINGER_NAMES = tuple(FINGER_LOOKUP_INDICES)


def finger_path(hand: Hand, finger: str) -> List[Keypoint]:
    """Resolve the ordered keypoints forming ``finger`` on ``hand``."""
    return [hand.keypoints[idx] for idx in FINGER_LOOKUP_INDICES[finger]]
