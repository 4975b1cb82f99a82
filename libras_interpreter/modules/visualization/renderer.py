"""
Hand Skeleton Renderer
======================

Draws detected hands onto a 2D drawing surface: a dot per keypoint, one
open polyline per finger, and optional keypoint labels.

The window showing the surface is mirrored for the user, so labels are
drawn pre-mirrored to read correctly after that flip.
"""

import math
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from libras_interpreter.core.types import Hand, Keypoint, LEFT
from libras_interpreter.modules.detection.geometry import FINGER_NAMES, finger_path

logger = logging.getLogger(__name__)


@dataclass
class RendererConfig:
    """Renderer settings. Colors are BGR."""
    show_labels: bool = False
    left_color: Tuple[int, int, int] = (0, 0, 0)          # Black
    right_color: Tuple[int, int, int] = (255, 0, 0)       # Blue
    stroke_color: Tuple[int, int, int] = (255, 255, 255)  # White
    line_width: int = 2
    point_radius: float = 4
    label_offset_x: float = -10

    @classmethod
    def from_dict(cls, config: dict) -> "RendererConfig":
        """Create config from dictionary (YAML parsed)."""
        colors = config.get("colors", {})
        return cls(
            show_labels=config.get("show_labels", False),
            left_color=tuple(colors.get("left", [0, 0, 0])),
            right_color=tuple(colors.get("right", [255, 0, 0])),
            stroke_color=tuple(colors.get("stroke", [255, 255, 255])),
            line_width=config.get("line_width", 2),
            point_radius=config.get("point_radius", 4),
            label_offset_x=config.get("label_offset_x", -10),
        )


def sort_by_handedness(hands: Sequence[Hand]) -> list:
    """Return hands in draw order: descending handedness label, stable.

    "Right" sorts before "Left"; hands sharing a label keep input order.
    """
    return sorted(hands, key=lambda hand: hand.handedness, reverse=True)


class Renderer:
    """
    Draws hand skeletons on a drawing surface.

    The surface only needs the canvas-style calls used below; see
    :class:`~libras_interpreter.modules.visualization.canvas.Canvas`.

    Example:
        >>> renderer = Renderer(RendererConfig(show_labels=True))
        >>> renderer.render(hands, canvas)
    """

    def __init__(self, config: Optional[RendererConfig] = None):
        self.config = config or RendererConfig()

    @property
    def show_labels(self) -> bool:
        return self.config.show_labels

    def toggle_labels(self) -> bool:
        self.config.show_labels = not self.config.show_labels
        logger.info("Keypoint labels %s", "on" if self.config.show_labels else "off")
        return self.config.show_labels

    def render(self, hands: Sequence[Hand], surface, show_labels: Optional[bool] = None):
        """
        Draw all hands on the surface.

        Args:
            hands: Detected hands, in detector order (not modified)
            surface: Drawing surface, mutated in place
            show_labels: Override the configured label setting
        """
        if not hands:
            return

        if show_labels is None:
            show_labels = self.config.show_labels

        for hand in sort_by_handedness(hands):
            self.draw_hand(hand, surface, show_labels)

    def draw_hand(self, hand: Hand, surface, show_labels: bool = False):
        cfg = self.config
        surface.fill_style = cfg.left_color if hand.handedness == LEFT else cfg.right_color
        surface.stroke_style = cfg.stroke_color
        surface.line_width = cfg.line_width

        for keypoint in hand.keypoints:
            surface.fill_circle(keypoint.x, keypoint.y, cfg.point_radius)
            if show_labels:
                self.draw_mirrored_text(keypoint, surface)

        for finger in FINGER_NAMES:
            self.draw_path(finger_path(hand, finger), surface)

    def draw_mirrored_text(self, keypoint: Keypoint, surface):
        """Draw the keypoint name mirrored about its own vertical axis."""
        surface.save()
        try:
            surface.translate(keypoint.x + self.config.label_offset_x, keypoint.y)
            surface.rotate(-math.pi)
            surface.scale(1, -1)
            surface.fill_text(keypoint.name, 0, 0)
        finally:
            surface.restore()

    @staticmethod
    def draw_path(points: Sequence[Keypoint], surface, close_path: bool = False):
        surface.stroke_path([(p.x, p.y) for p in points], close=close_path)
