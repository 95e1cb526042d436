"""
Presentation of detection results.
"""

from .overlay import OverlayRenderer, RenderConfig

__all__ = ["OverlayRenderer", "RenderConfig"]
