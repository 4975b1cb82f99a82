"""
Libras sign classifier backed by a TensorFlow SavedModel.

The model is a decision forest exported with one named input per
landmark coordinate (see :mod:`feature_encoder`). It is treated as a black
box: features in, a mapping of output tensors out.

Requirements:
    - tensorflow
    - tensorflow_decision_forests (only to register the forest ops when
      ``decision_forest`` is enabled)
"""

import os
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from libras_interpreter.core.errors import ModelLoadError
from libras_interpreter.core.types import Prediction

logger = logging.getLogger(__name__)

try:
    import tensorflow as tf
    TF_AVAILABLE = True
except ImportError:
    TF_AVAILABLE = False
    logger.info("TensorFlow not available, SignClassifier disabled")


@dataclass
class ClassifierConfig:
    """Configuration for the sign classifier."""
    model_path: str = "models/libras_tfdf"
    signature: str = "serving_default"
    decision_forest: bool = True

    @classmethod
    def from_dict(cls, d: dict) -> "ClassifierConfig":
        return cls(
            model_path=d.get("model_path", "models/libras_tfdf"),
            signature=d.get("signature", "serving_default"),
            decision_forest=d.get("decision_forest", True),
        )


class SignClassifier:
    """Loads the sign model once and runs it on encoded features.

    Usage::

        classifier = SignClassifier(ClassifierConfig(model_path="models/libras_tfdf"))
        classifier.load()
        prediction = classifier.execute(encode(hand.keypoints))
    """

    def __init__(self, config: Optional[ClassifierConfig] = None):
        self.config = config or ClassifierConfig()
        self._model = None
        self._fn = None

    @property
    def is_loaded(self) -> bool:
        return self._fn is not None

    def load(self):
        """Load the SavedModel. Idempotent.

        Raises:
            ModelLoadError: If TensorFlow is missing or the model can't be loaded
        """
        if self._fn is not None:
            return

        if not TF_AVAILABLE:
            raise ModelLoadError(
                "TensorFlow is required for SignClassifier. "
                "Install with: pip install 'libras-interpreter[tensorflow]'"
            )

        path = self.config.model_path
        if "://" not in path and not os.path.isdir(path):
            raise ModelLoadError("Classifier model not found: %s" % path)

        if self.config.decision_forest:
            try:
                import tensorflow_decision_forests  # noqa: F401  (registers forest ops)
            except ImportError as e:
                raise ModelLoadError(
                    "tensorflow_decision_forests is required to load %s" % path
                ) from e

        try:
            self._model = tf.saved_model.load(path)
        except (OSError, ValueError, tf.errors.OpError) as e:
            raise ModelLoadError("Failed to load classifier from %s: %s" % (path, e)) from e

        signatures = getattr(self._model, "signatures", {})
        if self.config.signature in signatures:
            self._fn = signatures[self.config.signature]
        else:
            self._fn = self._model
        logger.info("Classifier loaded from %s (signature=%s)", path,
                    self.config.signature if self.config.signature in signatures else "__call__")

    def execute(self, features: Dict[str, np.ndarray]) -> Prediction:
        """Run the model on one hand's encoded features."""
        if self._fn is None:
            self.load()

        tensors = {name: tf.constant(value) for name, value in features.items()}
        if self._fn is self._model:
            raw = self._fn(tensors)
        else:
            raw = self._fn(**tensors)
        return Prediction(outputs=_to_numpy(raw), raw=raw)

    def close(self):
        if self._fn is not None:
            logger.info("Classifier released")
        self._model = None
        self._fn = None


def _to_numpy(raw) -> Dict[str, np.ndarray]:
    """Flatten a model result into a name -> ndarray mapping."""
    if isinstance(raw, dict):
        return {name: np.asarray(value) for name, value in raw.items()}
    if isinstance(raw, (list, tuple)):
        return {"output_%d" % i: np.asarray(value) for i, value in enumerate(raw)}
    return {"output_0": np.asarray(raw)}
