"""
2D drawing context over an OpenCV image.

Mirrors the subset of an HTML canvas context the renderer needs:
clear/draw image, filled circles, polylines, text, and a current affine
transform with save()/restore() scoping. All coordinates passed in are in
user space and mapped through the current transform before OpenCV draws
them in pixel space.
"""

import math
import logging
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

Color = Tuple[int, int, int]


class Canvas:
    """Drawing surface backed by a BGR ``numpy`` image.

    Example:
        >>> canvas = Canvas(640, 480)
        >>> canvas.draw_image(frame.image, 0, 0, 640, 480)
        >>> canvas.fill_style = (255, 0, 0)
        >>> canvas.fill_circle(320, 240, 4)
        >>> cv2.imshow("libras", canvas.image)
    """

    def __init__(self, width: int = 640, height: int = 480):
        self._image = np.zeros((height, width, 3), dtype=np.uint8)
        self._transform = np.eye(3, dtype=np.float64)
        self._stack: List[tuple] = []

        # Styles (BGR)
        self.fill_style: Color = (0, 0, 0)
        self.stroke_style: Color = (0, 0, 0)
        self.line_width: int = 1
        self.font_scale: float = 0.4
        self.font = cv2.FONT_HERSHEY_SIMPLEX

    # ------------------------------------------------------------------
    # Surface
    # ------------------------------------------------------------------

    @property
    def image(self) -> np.ndarray:
        return self._image

    @property
    def width(self) -> int:
        return self._image.shape[1]

    @property
    def height(self) -> int:
        return self._image.shape[0]

    def resize(self, width: int, height: int):
        """Reallocate the surface. Clears its content and resets state."""
        self._image = np.zeros((height, width, 3), dtype=np.uint8)
        self._transform = np.eye(3, dtype=np.float64)
        self._stack.clear()
        logger.debug("Canvas resized to %dx%d", width, height)

    def clear_rect(self, x: int, y: int, w: int, h: int):
        """Reset a rectangle (pixel space) to black."""
        x0, y0 = max(0, int(x)), max(0, int(y))
        x1, y1 = min(self.width, int(x + w)), min(self.height, int(y + h))
        if x1 > x0 and y1 > y0:
            self._image[y0:y1, x0:x1] = 0

    def draw_image(self, image: np.ndarray, x: int, y: int,
                   w: Optional[int] = None, h: Optional[int] = None):
        """Copy ``image`` into the surface at (x, y), scaled to w x h."""
        w = int(w if w is not None else image.shape[1])
        h = int(h if h is not None else image.shape[0])
        if image.shape[1] != w or image.shape[0] != h:
            image = cv2.resize(image, (w, h), interpolation=cv2.INTER_LINEAR)

        x0, y0 = int(x), int(y)
        x1, y1 = min(self.width, x0 + w), min(self.height, y0 + h)
        if x1 <= max(x0, 0) or y1 <= max(y0, 0):
            return
        sx0, sy0 = max(0, -x0), max(0, -y0)
        self._image[max(y0, 0):y1, max(x0, 0):x1] = \
            image[sy0:sy0 + (y1 - max(y0, 0)), sx0:sx0 + (x1 - max(x0, 0))]

    # ------------------------------------------------------------------
    # Transform
    # ------------------------------------------------------------------

    def save(self):
        """Push the current transform and styles."""
        self._stack.append((
            self._transform.copy(), self.fill_style, self.stroke_style,
            self.line_width, self.font_scale,
        ))

    def restore(self):
        """Pop the last saved transform and styles. No-op on an empty stack."""
        if not self._stack:
            return
        (self._transform, self.fill_style, self.stroke_style,
         self.line_width, self.font_scale) = self._stack.pop()

    def translate(self, tx: float, ty: float):
        self._apply(np.array([[1, 0, tx], [0, 1, ty], [0, 0, 1]], dtype=np.float64))

    def rotate(self, angle: float):
        """Rotate by ``angle`` radians (clockwise on screen, y points down)."""
        c, s = math.cos(angle), math.sin(angle)
        self._apply(np.array([[c, -s, 0], [s, c, 0], [0, 0, 1]], dtype=np.float64))

    def scale(self, sx: float, sy: float):
        self._apply(np.array([[sx, 0, 0], [0, sy, 0], [0, 0, 1]], dtype=np.float64))

    def reset_transform(self):
        self._transform = np.eye(3, dtype=np.float64)

    @property
    def transform(self) -> np.ndarray:
        return self._transform.copy()

    def _apply(self, matrix: np.ndarray):
        self._transform = self._transform @ matrix

    def _to_pixel(self, x: float, y: float) -> Tuple[int, int]:
        px, py, _ = self._transform @ np.array([x, y, 1.0])
        return int(round(px)), int(round(py))

    def _scale_factor(self) -> float:
        return math.sqrt(abs(np.linalg.det(self._transform[:2, :2])))

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def fill_circle(self, x: float, y: float, radius: float):
        center = self._to_pixel(x, y)
        r = max(1, int(round(radius * self._scale_factor())))
        cv2.circle(self._image, center, r, self.fill_style, -1, cv2.LINE_AA)

    def stroke_path(self, points: Sequence[Tuple[float, float]], close: bool = False):
        """Stroke an open polyline through ``points`` (closed if ``close``)."""
        if len(points) < 2:
            return
        pts = np.array([self._to_pixel(x, y) for x, y in points], dtype=np.int32)
        thickness = max(1, int(round(self.line_width * self._scale_factor())))
        cv2.polylines(self._image, [pts.reshape(-1, 1, 2)], close,
                      self.stroke_style, thickness, cv2.LINE_AA)

    def fill_text(self, text: str, x: float, y: float):
        """Draw ``text`` with its baseline origin at (x, y) in user space.

        The glyphs are rasterised into a mask and warped through the current
        transform, so rotations and mirrored scales apply to the text too.
        """
        (tw, th), baseline = cv2.getTextSize(text, self.font, self.font_scale, 1)
        patch_h = th + baseline
        if tw <= 0 or patch_h <= 0:
            return

        mask = np.zeros((patch_h, tw), dtype=np.uint8)
        cv2.putText(mask, text, (0, th), self.font, self.font_scale, 255, 1, cv2.LINE_AA)

        # Patch pixel (u, v) sits at user point (x + u, y - th + v).
        offset = np.array([[1, 0, x], [0, 1, y - th], [0, 0, 1]], dtype=np.float64)
        affine = (self._transform @ offset)[:2]
        warped = cv2.warpAffine(mask, affine, (self.width, self.height),
                                flags=cv2.INTER_LINEAR, borderValue=0)
        self._image[warped > 127] = self.fill_style
