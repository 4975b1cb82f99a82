"""
Hand Landmark Detector - MediaPipe Tasks API
=============================================

Wraps MediaPipe's HandLandmarker and adapts its output to the
interpreter's :class:`~libras_interpreter.core.types.Hand` type: named
keypoints in pixel coordinates, ordered wrist-first.
"""

import logging
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import mediapipe as mp
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from libras_interpreter.core.errors import ModelLoadError
from libras_interpreter.core.types import Hand, Keypoint, KEYPOINT_NAMES, RIGHT

logger = logging.getLogger(__name__)

# Model variant -> downloadable asset
MODEL_VARIANTS = {
    "full": "https://storage.googleapis.com/mediapipe-models/hand_landmarker/hand_landmarker/float16/1/hand_landmarker.task",
}
DEFAULT_MODEL_DIR = Path(__file__).resolve().parent.parent.parent.parent / "models"


@dataclass
class HandDetectorConfig:
    """Configuration for the landmark detector."""
    model_type: str = "full"
    model_path: str = ""
    model_url: str = ""
    max_num_hands: int = 2
    min_detection_confidence: float = 0.5
    min_presence_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    running_mode: str = "VIDEO"  # IMAGE or VIDEO

    @classmethod
    def from_dict(cls, d: dict) -> "HandDetectorConfig":
        """Create config from dictionary."""
        return cls(
            model_type=d.get("model_type", "full"),
            model_path=d.get("model_path", ""),
            model_url=d.get("model_url", ""),
            max_num_hands=d.get("max_num_hands", 2),
            min_detection_confidence=d.get("min_detection_confidence", 0.5),
            min_presence_confidence=d.get("min_presence_confidence", 0.5),
            min_tracking_confidence=d.get("min_tracking_confidence", 0.5),
            running_mode=d.get("running_mode", "VIDEO"),
        )

    def resolve_model_url(self) -> str:
        if self.model_url:
            return self.model_url
        try:
            return MODEL_VARIANTS[self.model_type]
        except KeyError:
            raise ValueError("Unknown hand landmarker variant %r (known: %s)"
                             % (self.model_type, ", ".join(sorted(MODEL_VARIANTS))))

    def resolve_model_path(self) -> Path:
        if self.model_path:
            return Path(self.model_path)
        return DEFAULT_MODEL_DIR / ("hand_landmarker_%s.task" % self.model_type)


def download_model(url: str, save_path: Path):
    """Download the hand landmarker asset if not present.

    Raises:
        ModelLoadError: If the download fails
    """
    if save_path.exists():
        logger.info("Model already exists at %s", save_path)
        return
    save_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading hand landmarker model to %s...", save_path)
    try:
        urllib.request.urlretrieve(url, save_path)
    except OSError as e:
        raise ModelLoadError("Failed to download %s: %s" % (url, e)) from e
    logger.info("Model download complete")


def hands_from_result(result, width: int, height: int,
                      flip_horizontal: bool = False) -> List[Hand]:
    """Convert a HandLandmarkerResult into Hands with pixel keypoints.

    Hands keep the detector's order. With ``flip_horizontal`` the x axis of
    the output is mirrored; the input image is never touched.
    """
    hands = []
    for i, hand_landmarks in enumerate(result.hand_landmarks):
        handedness, score = RIGHT, 0.0
        if result.handedness and len(result.handedness) > i and result.handedness[i]:
            category = result.handedness[i][0]
            handedness, score = category.category_name, category.score

        keypoints = []
        for name, lm in zip(KEYPOINT_NAMES, hand_landmarks):
            x = lm.x * width
            if flip_horizontal:
                x = width - x
            keypoints.append(Keypoint(name=name, x=x, y=lm.y * height, z=lm.z))

        hands.append(Hand(
            handedness=handedness,
            keypoints=keypoints,
            score=score,
            payload=hand_landmarks,
        ))
    return hands


class HandDetector:
    """
    Landmark detector backed by MediaPipe HandLandmarker.

    The landmarker is created once by :meth:`initialize` and reused for
    every frame until :meth:`close`.

    Example:
        >>> detector = HandDetector(HandDetectorConfig())
        >>> detector.initialize()
        >>> hands = detector.estimate(frame, flip_horizontal=False)
        >>> detector.close()
    """

    def __init__(self, config: Optional[HandDetectorConfig] = None):
        self.config = config or HandDetectorConfig()
        self._landmarker: Optional[vision.HandLandmarker] = None
        self._last_timestamp_ms = -1

    @property
    def is_initialized(self) -> bool:
        return self._landmarker is not None

    def initialize(self):
        """Create the landmarker. Idempotent.

        Raises:
            ModelLoadError: If the model asset can't be fetched or loaded
        """
        if self._landmarker is not None:
            return

        model_path = self.config.resolve_model_path()
        if not model_path.exists():
            download_model(self.config.resolve_model_url(), model_path)

        if self.config.running_mode == "IMAGE":
            running_mode = vision.RunningMode.IMAGE
        else:
            running_mode = vision.RunningMode.VIDEO

        options = vision.HandLandmarkerOptions(
            base_options=python.BaseOptions(model_asset_path=str(model_path)),
            running_mode=running_mode,
            num_hands=self.config.max_num_hands,
            min_hand_detection_confidence=self.config.min_detection_confidence,
            min_hand_presence_confidence=self.config.min_presence_confidence,
            min_tracking_confidence=self.config.min_tracking_confidence,
        )
        try:
            self._landmarker = vision.HandLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise ModelLoadError("Failed to create HandLandmarker: %s" % e) from e

        logger.info("HandLandmarker initialized (variant=%s, max_hands=%d, mode=%s)",
                    self.config.model_type, self.config.max_num_hands,
                    self.config.running_mode)

    def estimate(self, frame, flip_horizontal: bool = False) -> List[Hand]:
        """
        Estimate hands in a frame.

        Args:
            frame: Frame from the frame source (BGR image, unflipped)
            flip_horizontal: Mirror output x coordinates

        Returns:
            Detected hands in detector order; empty when none are found
        """
        if self._landmarker is None:
            self.initialize()

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame.rgb)

        if self.config.running_mode == "IMAGE":
            result = self._landmarker.detect(mp_image)
        else:
            # VIDEO mode rejects non-increasing timestamps, e.g. a re-read buffered frame
            timestamp_ms = max(frame.timestamp_ms, self._last_timestamp_ms + 1)
            self._last_timestamp_ms = timestamp_ms
            result = self._landmarker.detect_for_video(mp_image, timestamp_ms)

        return hands_from_result(result, frame.width, frame.height, flip_horizontal)

    def close(self):
        """Release MediaPipe resources."""
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
            logger.info("HandLandmarker closed")

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, *args):
        self.close()
