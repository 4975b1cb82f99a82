"""
Keypoint -> classifier input encoding.

The classifier was exported with one named input per coordinate
(``wrist_x``, ``wrist_y``, ...), each a rank-1 tensor holding a single
value. Coordinates are passed through in raw pixels; any normalisation is
the model's business.
"""

from typing import Dict, Iterable

import numpy as np

from libras_interpreter.core.types import Keypoint


def feature_key(name: str, axis: str) -> str:
    return "%s_%s" % (name, axis)


def encode(keypoints: Iterable[Keypoint]) -> Dict[str, np.ndarray]:
    """Encode one hand's keypoints into the classifier's named inputs.

    Args:
        keypoints: Keypoints of a single hand, names must be unique

    Returns:
        Dict mapping ``{name}_x`` / ``{name}_y`` to float32 arrays of shape (1,)

    Raises:
        ValueError: If two keypoints share a name
    """
    features = {}
    for keypoint in keypoints:
        key_x = feature_key(keypoint.name, "x")
        if key_x in features:
            raise ValueError("Duplicate keypoint name: %r" % keypoint.name)
        features[key_x] = np.array([keypoint.x], dtype=np.float32)
        features[feature_key(keypoint.name, "y")] = np.array([keypoint.y], dtype=np.float32)
    return features
