"""Camera frame source."""
from .camera_manager import CameraManager, Frame

__all__ = ["CameraManager", "Frame"]
