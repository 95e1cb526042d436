"""
Picamera2-based observation source.

Supports Raspberry Pi CSI cameras via libcamera/Picamera2, configured for a
YUV420 main stream so frames reach the pipeline without an RGB round trip.

Requirements:
  - Raspberry Pi with camera module
  - Picamera2 installed: sudo apt install -y python3-picamera2
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from models.frame import Frame, Plane
from .base import ObservationSource, ObservationConfig


@dataclass
class Picamera2SourceConfig(ObservationConfig):
    """
    Configuration for Picamera2-based observation sources.

    Attributes:
        buffer_count: libcamera buffers; requests hold one until the frame is released.
    """
    buffer_count: int = 4

    @classmethod
    def from_camera_config(cls, camera_cfg: Dict[str, Any], source_id: str = "picamera2") -> "Picamera2SourceConfig":
        """Adapter: Create Picamera2SourceConfig from the camera config dict."""
        resolution = camera_cfg.get("resolution")
        if resolution:
            resolution = tuple(resolution)

        return cls(
            source_id=source_id,
            resolution=resolution,
            fps=camera_cfg.get("fps"),
            rotation_degrees=camera_cfg.get("rotation_degrees", 0) or 0,
            buffer_count=camera_cfg.get("buffer_count", 4),
        )


def yuv420_planes(buffer: np.ndarray, width: int, height: int, stride: int) -> tuple:
    """
    Split a padded I420 buffer into Y, U, V planes.

    Luma rows are `stride` bytes apart, chroma rows `stride // 2`.
    """
    flat = np.asarray(buffer, dtype=np.uint8).reshape(-1)
    chroma_stride = stride // 2
    y_size = stride * height
    c_size = chroma_stride * ((height + 1) // 2)
    return (
        Plane(flat[:y_size], row_stride=stride),
        Plane(flat[y_size:y_size + c_size], row_stride=chroma_stride),
        Plane(flat[y_size + c_size:y_size + 2 * c_size], row_stride=chroma_stride),
    )


class Picamera2Source(ObservationSource):
    """
    Picamera2-based observation source for Raspberry Pi CSI cameras.

    Each frame keeps its capture request alive; closing the frame releases
    the request back to libcamera.
    """

    def __init__(self, config: Picamera2SourceConfig):
        super().__init__(config)
        self._picam_config = config
        self._picam2: Any = None
        self._size = (0, 0)
        self._stride = 0

    def open(self) -> None:
        if self._is_open:
            return

        try:
            from picamera2 import Picamera2  # type: ignore
        except ImportError as e:
            raise ImportError(
                "Picamera2 is not available. This backend only works on Raspberry Pi OS. "
                "Install with `sudo apt install -y python3-picamera2` or use backend 'opencv'."
            ) from e

        self._picam2 = Picamera2()

        resolution = self._picam_config.resolution or (1280, 720)
        fps = self._picam_config.fps or 30

        video_config = self._picam2.create_video_configuration(
            main={"size": resolution, "format": "YUV420"},
            controls={"FrameRate": fps},
            buffer_count=self._picam_config.buffer_count,
        )
        self._picam2.configure(video_config)
        main = self._picam2.camera_configuration()["main"]
        self._size = tuple(main["size"])
        self._stride = int(main.get("stride") or self._size[0])
        self._picam2.start()

        self._is_open = True
        self._frame_index = 0

        logging.info(
            f"Picamera2Source opened: source_id={self.source_id}, "
            f"size={self._size}, stride={self._stride}, fps={fps}"
        )

    def read(self) -> Optional[Frame]:
        if not self._is_open or self._picam2 is None:
            return None

        try:
            request = self._picam2.capture_request()
        except Exception as e:
            logging.error(f"Error capturing frame from Picamera2: {e}")
            return None

        try:
            buffer = request.make_array("main")
        except Exception as e:
            request.release()
            logging.error(f"Error mapping Picamera2 buffer: {e}")
            return None

        width, height = self._size
        self._frame_index += 1
        return Frame(
            width=width,
            height=height,
            planes=yuv420_planes(buffer, width, height, self._stride),
            rotation_degrees=self.rotation_degrees,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
            release=request.release,
        )

    def close(self) -> None:
        if self._picam2 is not None:
            try:
                self._picam2.stop()
            except Exception as e:
                logging.warning(f"Error stopping Picamera2: {e}")
            try:
                self._picam2.close()
            except Exception as e:
                logging.warning(f"Error closing Picamera2: {e}")
            self._picam2 = None
        self._is_open = False
        logging.info(f"Picamera2Source closed: source_id={self.source_id}")
