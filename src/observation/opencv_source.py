"""
OpenCV-based observation source.

Supports:
- USB webcams (device_id as int, e.g., 0)
- Video files (device_id as file path)

OpenCV hands back BGR images; they are packed into I420 so the rest of the
system sees the same planar YUV frames a mobile camera would deliver.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import cv2
import numpy as np

from models.frame import Frame
from .base import ObservationSource, ObservationConfig


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV-based observation sources.

    Attributes:
        device_id: Camera index (int) or file path (str).
        buffer_size: OpenCV capture buffer size (1 keeps only the latest frame).
        max_retries: Maximum retries for camera initialization.
    """
    device_id: Union[int, str] = 0
    buffer_size: int = 1
    max_retries: int = 3

    @classmethod
    def from_camera_config(cls, camera_cfg: Dict[str, Any], source_id: str = "camera") -> "OpenCVSourceConfig":
        """
        Adapter: Create OpenCVSourceConfig from the camera config dict.
        """
        resolution = camera_cfg.get("resolution")
        if resolution:
            resolution = tuple(resolution)

        return cls(
            source_id=source_id,
            resolution=resolution,
            fps=camera_cfg.get("fps"),
            rotation_degrees=camera_cfg.get("rotation_degrees", 0) or 0,
            device_id=camera_cfg.get("device_id", 0),
            buffer_size=camera_cfg.get("buffer_size", 1),
            max_retries=camera_cfg.get("max_retries", 3),
        )


def bgr_to_frame(
    image: np.ndarray,
    rotation_degrees: int = 0,
    timestamp: float = 0.0,
    frame_index: int = 0,
    source: Optional[str] = None,
) -> Frame:
    """Pack a BGR image into an I420 Frame. Width and height are cropped to even values."""
    h, w = image.shape[:2]
    h -= h % 2
    w -= w % 2
    i420 = cv2.cvtColor(image[:h, :w], cv2.COLOR_BGR2YUV_I420)
    return Frame.from_i420(
        i420,
        width=w,
        height=h,
        rotation_degrees=rotation_degrees,
        timestamp=timestamp,
        frame_index=frame_index,
        source=source,
    )


class OpenCVSource(ObservationSource):
    """
    OpenCV-based observation source for cameras and video files.

    Example:
        config = OpenCVSourceConfig(device_id=0, resolution=(1280, 720))
        with OpenCVSource(config) as source:
            for frame in source:
                analyzer.submit(frame)
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._consecutive_failures = 0

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_file(self) -> bool:
        return isinstance(self.device_id, str) and os.path.exists(self.device_id)

    def open(self) -> None:
        if self._is_open:
            return

        self._initialize(retry_count=0)
        self._is_open = True
        self._frame_index = 0

        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, "
            f"device={self.device_id}, resolution={self._opencv_config.resolution}"
        )

    def _initialize(self, retry_count: int = 0) -> None:
        """Initialize or reinitialize the capture device."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None

        if retry_count > 0:
            wait_time = min(2 ** retry_count, 10)
            logging.info(
                f"Retrying initialization (attempt {retry_count + 1}/"
                f"{self._opencv_config.max_retries}) after {wait_time}s"
            )
            time.sleep(wait_time)

        self._cap = cv2.VideoCapture(self.device_id)

        if not self._cap.isOpened():
            if retry_count < self._opencv_config.max_retries - 1:
                logging.warning(f"Failed to open device {self.device_id}, retrying...")
                return self._initialize(retry_count + 1)
            raise RuntimeError(
                f"Failed to open device {self.device_id} after "
                f"{self._opencv_config.max_retries} attempts"
            )

        if isinstance(self.device_id, int) and self._opencv_config.resolution:
            w, h = self._opencv_config.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if self._opencv_config.fps:
                self._cap.set(cv2.CAP_PROP_FPS, self._opencv_config.fps)
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self._opencv_config.buffer_size)

        self._consecutive_failures = 0

    def read(self) -> Optional[Frame]:
        if not self._is_open or self._cap is None:
            return None

        ret, image = self._cap.read()

        if not ret or image is None:
            self._consecutive_failures += 1
            if self.is_file:
                logging.info("End of video file reached")
                return None
            if self._consecutive_failures <= 3:
                logging.warning(
                    f"Failed to read frame (failures: {self._consecutive_failures}), reinitializing..."
                )
                try:
                    self._initialize()
                except RuntimeError:
                    logging.error("Reinitialization failed")
            return None

        self._consecutive_failures = 0
        self._frame_index += 1
        return bgr_to_frame(
            image,
            rotation_degrees=self.rotation_degrees,
            timestamp=time.time(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        self._is_open = False
        logging.info(f"OpenCVSource closed: source_id={self.source_id}")
