"""
Tests for the inference pipeline
================================
"""

from unittest.mock import MagicMock, Mock

import numpy as np
import pytest

from libras_interpreter.core.errors import (
    CameraUnavailableError, ModelLoadError, PipelineStateError,
)
from libras_interpreter.core.events import EventBus, Events
from libras_interpreter.core.pipeline import Pipeline
from libras_interpreter.core.types import PipelineState, Prediction
from libras_interpreter.modules.recognition.feature_encoder import encode


@pytest.fixture
def camera(frame):
    cam = Mock()
    cam.open.return_value = True
    cam.resolution = (640, 480)
    cam.read.return_value = frame
    return cam


@pytest.fixture
def detector():
    det = Mock()
    det.estimate.return_value = []
    return det


@pytest.fixture
def classifier():
    clf = Mock()
    clf.execute.return_value = Prediction(outputs={"probabilities": np.array([[0.1, 0.9]])})
    return clf


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def make_pipeline(camera, detector, classifier, bus):
    def factory(config=None):
        return Pipeline(
            camera=camera,
            detector=detector,
            classifier=classifier,
            renderer=Mock(),
            canvas=MagicMock(),
            event_bus=bus,
            config=config,
        )
    return factory


@pytest.fixture
def pipeline(make_pipeline):
    p = make_pipeline()
    p.initialize()
    return p


def record(bus, event_name):
    seen = []
    bus.subscribe(event_name, lambda **kwargs: seen.append(kwargs))
    return seen


class TestLifecycle:

    def test_starts_uninitialized(self, make_pipeline):
        assert make_pipeline().state is PipelineState.UNINITIALIZED

    def test_initialize_brings_up_dependencies_in_order(self, make_pipeline, camera,
                                                        detector, classifier):
        order = []
        camera.open.side_effect = lambda: order.append("camera") or True
        detector.initialize.side_effect = lambda: order.append("detector")
        classifier.load.side_effect = lambda: order.append("classifier")

        pipeline = make_pipeline()
        pipeline.initialize()

        assert order == ["camera", "detector", "classifier"]
        assert pipeline.state is PipelineState.RUNNING

    def test_canvas_sized_to_camera(self, pipeline):
        pipeline._canvas.resize.assert_called_once_with(640, 480)

    def test_camera_unavailable_is_fatal(self, make_pipeline, camera, detector, bus):
        camera.open.return_value = False
        errors = record(bus, Events.CAMERA_ERROR)
        pipeline = make_pipeline()

        with pytest.raises(CameraUnavailableError):
            pipeline.initialize()

        assert pipeline.state is PipelineState.STOPPED
        detector.initialize.assert_not_called()
        assert len(errors) == 1

    def test_model_failure_releases_resources(self, make_pipeline, camera, classifier):
        classifier.load.side_effect = ModelLoadError("missing")
        pipeline = make_pipeline()

        with pytest.raises(ModelLoadError):
            pipeline.initialize()

        assert pipeline.state is PipelineState.STOPPED
        camera.stop.assert_called()

    def test_stop_during_initialize_is_honored(self, make_pipeline, camera, detector,
                                               classifier, bus):
        started = record(bus, Events.PIPELINE_STARTED)
        pipeline = make_pipeline()
        classifier.load.side_effect = pipeline.stop

        pipeline.initialize()

        assert pipeline.state is PipelineState.STOPPED
        assert pipeline.cancelled
        camera.stop.assert_called_once()
        detector.close.assert_called_once()
        classifier.close.assert_called_once()
        assert started == []
        with pytest.raises(PipelineStateError):
            pipeline.run()

    def test_initialize_twice_rejected(self, pipeline):
        with pytest.raises(PipelineStateError):
            pipeline.initialize()

    def test_stopped_is_terminal(self, pipeline):
        pipeline.stop()
        assert pipeline.state is PipelineState.STOPPED
        with pytest.raises(PipelineStateError):
            pipeline.initialize()
        with pytest.raises(PipelineStateError):
            pipeline.run()

    def test_run_requires_running(self, make_pipeline):
        with pytest.raises(PipelineStateError):
            make_pipeline().run()

    def test_stop_is_idempotent(self, pipeline, bus):
        stopped = record(bus, Events.PIPELINE_STOPPED)
        pipeline.stop()
        pipeline.stop()
        assert len(stopped) == 1

    def test_close_releases_handles(self, pipeline, camera, detector, classifier):
        pipeline.close()
        camera.stop.assert_called_once()
        detector.close.assert_called_once()
        classifier.close.assert_called_once()

    def test_context_manager(self, make_pipeline, camera):
        with make_pipeline() as pipeline:
            assert pipeline.state is PipelineState.RUNNING
        assert pipeline.state is PipelineState.STOPPED
        camera.stop.assert_called_once()


class TestTick:

    def test_zero_hands_redraws_frame_only(self, pipeline, frame, classifier, bus):
        predictions = record(bus, Events.PREDICTION)
        result = pipeline.tick()

        canvas = pipeline._canvas
        canvas.clear_rect.assert_called_once_with(0, 0, 640, 480)
        canvas.draw_image.assert_called_once_with(frame.image, 0, 0, 640, 480)
        pipeline._renderer.render.assert_not_called()
        classifier.execute.assert_not_called()
        assert predictions == []
        assert result.hand_count == 0
        assert result.prediction is None
        assert result.frame is canvas.image

    def test_estimation_never_flips(self, pipeline, detector, frame):
        pipeline.tick()
        detector.estimate.assert_called_once_with(frame, flip_horizontal=False)

    def test_clear_happens_before_render(self, pipeline, detector, make_hand):
        detector.estimate.return_value = [make_hand()]
        calls = []
        pipeline._canvas.draw_image.side_effect = lambda *a: calls.append("frame")
        pipeline._renderer.render.side_effect = lambda *a, **k: calls.append("hands")

        pipeline.tick()
        assert calls == ["frame", "hands"]

    def test_classifies_first_hand_in_detector_order(self, pipeline, detector,
                                                     classifier, make_hand, bus):
        left = make_hand("Left", base_x=100)
        right = make_hand("Right", base_x=500)
        detector.estimate.return_value = [left, right]
        predictions = record(bus, Events.PREDICTION)

        result = pipeline.tick()

        features = classifier.execute.call_args[0][0]
        assert features.keys() == encode(left.keypoints).keys()
        assert features["wrist_x"][0] == 100
        assert predictions[0]["hand"] is left
        assert predictions[0]["prediction"] is classifier.execute.return_value
        assert result.prediction is classifier.execute.return_value

    def test_all_hands_rendered_in_detector_order(self, pipeline, detector, make_hand):
        hands = [make_hand("Left"), make_hand("Right")]
        detector.estimate.return_value = hands

        pipeline.tick()

        rendered = pipeline._renderer.render.call_args[0][0]
        assert rendered == hands
        assert rendered[0].handedness == "Left"

    def test_no_frame_yet(self, pipeline, camera, detector):
        camera.read.return_value = None
        result = pipeline.tick()
        assert result.frame is None
        detector.estimate.assert_not_called()

    def test_cancelled_tick_skips_body(self, pipeline, camera):
        pipeline.stop()
        camera.read.reset_mock()

        result = pipeline.tick()

        camera.read.assert_not_called()
        assert result.frame is None

    def test_tick_before_initialize_rejected(self, make_pipeline):
        with pytest.raises(PipelineStateError):
            make_pipeline().tick()

    def test_latency_recorded(self, pipeline):
        result = pipeline.tick()
        assert result.latency_ms >= 0.0
        assert pipeline._perf.frame_count == 1


class TestRunLoop:

    def test_runs_until_cancelled(self, pipeline):
        results = []

        def on_tick(result):
            results.append(result)
            if len(results) == 3:
                pipeline.stop()

        pipeline.run(on_tick=on_tick)

        assert len(results) == 3
        assert pipeline.tick_count == 3
        assert pipeline.state is PipelineState.STOPPED

    def test_empty_detections_keep_looping(self, pipeline, classifier):
        ticks = []
        pipeline.run(on_tick=lambda r: ticks.append(r) or (len(ticks) == 5 and pipeline.stop()))
        assert len(ticks) == 5
        classifier.execute.assert_not_called()

    def test_failed_tick_is_logged_and_loop_continues(self, pipeline, detector, bus):
        failures = record(bus, Events.TICK_FAILED)
        calls = {"n": 0}

        def estimate(frame, flip_horizontal=False):
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("detector glitch")
            if calls["n"] == 3:
                pipeline.stop()
            return []

        detector.estimate.side_effect = estimate
        pipeline.run()

        assert calls["n"] == 3
        assert len(failures) == 1
        assert isinstance(failures[0]["error"], RuntimeError)

    def test_classifier_failure_does_not_stop_loop(self, pipeline, detector, classifier,
                                                   make_hand):
        detector.estimate.return_value = [make_hand()]
        classifier.execute.side_effect = [RuntimeError("bad model"), Prediction(outputs={})]
        ticks = []

        pipeline.run(on_tick=lambda r: ticks.append(r) or pipeline.stop())

        assert len(ticks) == 1
        assert ticks[0].prediction is not None

    def test_consecutive_failure_limit(self, make_pipeline, detector):
        detector.estimate.side_effect = RuntimeError("camera unplugged")
        pipeline = make_pipeline(config={"max_consecutive_failures": 3})
        pipeline.initialize()

        with pytest.raises(RuntimeError):
            pipeline.run()

        assert detector.estimate.call_count == 3
        assert pipeline.state is PipelineState.STOPPED

    def test_on_tick_not_called_after_cancel(self, pipeline, detector):
        seen = []

        def estimate(frame, flip_horizontal=False):
            pipeline.stop()
            return []

        detector.estimate.side_effect = estimate
        pipeline.run(on_tick=seen.append)
        assert seen == []
