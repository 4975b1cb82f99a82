"""
Tests for the sign classifier adapter
=====================================

These tests stub the TensorFlow module so they run without it installed.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest

from libras_interpreter.core.errors import ModelLoadError
from libras_interpreter.core.types import Prediction
from libras_interpreter.modules.recognition import classifier as classifier_module
from libras_interpreter.modules.recognition.classifier import (
    ClassifierConfig, SignClassifier, _to_numpy,
)


@pytest.fixture
def fake_tf(monkeypatch):
    """Minimal stand-in for the tensorflow module used by SignClassifier."""
    tf = SimpleNamespace(
        constant=lambda value: value,
        saved_model=SimpleNamespace(load=MagicMock()),
        errors=SimpleNamespace(OpError=RuntimeError),
    )
    monkeypatch.setattr(classifier_module, "tf", tf, raising=False)
    monkeypatch.setattr(classifier_module, "TF_AVAILABLE", True)
    return tf


class TestClassifierConfig:

    def test_defaults(self):
        config = ClassifierConfig.from_dict({})
        assert config.signature == "serving_default"
        assert config.decision_forest is True

    def test_from_dict(self):
        config = ClassifierConfig.from_dict({"model_path": "/m", "decision_forest": False})
        assert config.model_path == "/m"
        assert config.decision_forest is False


class TestSignClassifier:

    def test_requires_tensorflow(self, monkeypatch):
        monkeypatch.setattr(classifier_module, "TF_AVAILABLE", False)
        with pytest.raises(ModelLoadError):
            SignClassifier().load()

    def test_missing_model_dir(self, fake_tf, tmp_path):
        config = ClassifierConfig(model_path=str(tmp_path / "nope"), decision_forest=False)
        with pytest.raises(ModelLoadError):
            SignClassifier(config).load()
        fake_tf.saved_model.load.assert_not_called()

    def test_load_once_and_execute_signature(self, fake_tf, tmp_path):
        signature = MagicMock(return_value={"probabilities": [[0.2, 0.8]]})
        fake_tf.saved_model.load.return_value = SimpleNamespace(
            signatures={"serving_default": signature},
        )
        clf = SignClassifier(ClassifierConfig(model_path=str(tmp_path), decision_forest=False))

        clf.load()
        clf.load()
        features = {"wrist_x": np.array([1.0], dtype=np.float32)}
        prediction = clf.execute(features)

        fake_tf.saved_model.load.assert_called_once_with(str(tmp_path))
        signature.assert_called_once_with(wrist_x=features["wrist_x"])
        assert isinstance(prediction, Prediction)
        np.testing.assert_allclose(prediction.outputs["probabilities"], [[0.2, 0.8]])

    def test_execute_loads_lazily_and_falls_back_to_call(self, fake_tf, tmp_path):
        model = MagicMock(return_value=[np.array([3])])
        model.signatures = {}
        fake_tf.saved_model.load.return_value = model
        clf = SignClassifier(ClassifierConfig(model_path=str(tmp_path), decision_forest=False))

        prediction = clf.execute({"wrist_x": np.array([1.0])})

        assert clf.is_loaded
        model.assert_called_once()
        assert list(prediction.outputs) == ["output_0"]

    def test_load_error_wrapped(self, fake_tf, tmp_path):
        fake_tf.saved_model.load.side_effect = OSError("corrupt")
        clf = SignClassifier(ClassifierConfig(model_path=str(tmp_path), decision_forest=False))
        with pytest.raises(ModelLoadError):
            clf.load()

    def test_close(self, fake_tf, tmp_path):
        fake_tf.saved_model.load.return_value = SimpleNamespace(signatures={})
        clf = SignClassifier(ClassifierConfig(model_path=str(tmp_path), decision_forest=False))
        clf.load()
        clf.close()
        assert not clf.is_loaded


class TestToNumpy:

    def test_dict(self):
        out = _to_numpy({"a": [1, 2]})
        assert isinstance(out["a"], np.ndarray)

    def test_sequence(self):
        assert set(_to_numpy((1, 2))) == {"output_0", "output_1"}

    def test_single_tensor(self):
        assert set(_to_numpy(np.zeros(3))) == {"output_0"}


class TestPrediction:

    def test_repr_lists_output_shapes(self):
        prediction = Prediction(outputs={"probabilities": np.zeros((1, 20))})
        assert repr(prediction) == "Prediction(probabilities(1, 20))"
