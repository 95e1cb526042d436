"""
Typed models for the object detector.
"""

from .frame import Frame, Plane, RgbRaster, YUV_420_888
from .detection import Detection, BoundingBox
from .config import (
    Config,
    CameraConfig,
    ModelConfig,
    DetectorConfig,
    DisplayConfig,
)

__all__ = [
    # Frame
    "Frame",
    "Plane",
    "RgbRaster",
    "YUV_420_888",
    # Detection
    "Detection",
    "BoundingBox",
    # Config
    "Config",
    "CameraConfig",
    "ModelConfig",
    "DetectorConfig",
    "DisplayConfig",
]
