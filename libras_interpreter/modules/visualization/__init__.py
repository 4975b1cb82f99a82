"""Drawing surface and hand skeleton renderer."""
from .canvas import Canvas
from .renderer import Renderer, RendererConfig

__all__ = ["Canvas", "Renderer", "RendererConfig"]
