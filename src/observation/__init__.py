"""
Observation layer for pluggable camera sources.

Each source implements the ObservationSource interface and returns planar
YUV `Frame` objects.
"""

from __future__ import annotations

from typing import Any, Dict

from .base import ObservationSource, ObservationConfig
from .opencv_source import OpenCVSource, OpenCVSourceConfig


def create_source_from_config(camera_cfg: Dict[str, Any], source_id: str = "camera") -> ObservationSource:
    """Build the source selected by camera.backend ("opencv" or "picamera2")."""
    backend = camera_cfg.get("backend", "opencv")
    if backend == "picamera2":
        from .picamera2_source import Picamera2Source, Picamera2SourceConfig

        return Picamera2Source(Picamera2SourceConfig.from_camera_config(camera_cfg, source_id=source_id))
    if backend == "opencv":
        return OpenCVSource(OpenCVSourceConfig.from_camera_config(camera_cfg, source_id=source_id))
    raise ValueError(f"Unsupported camera backend: {backend!r}")


__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
    "create_source_from_config",
]
