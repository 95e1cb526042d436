"""
ObservationSource interface for pluggable camera sources.

Sources deliver planar YUV 4:2:0 `Frame` objects, each stamped with the
rotation that makes it upright. Whoever reads a frame owns it and must
close() it once its pixels have been consumed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional

from models.frame import Frame


@dataclass
class ObservationConfig:
    """
    Base configuration for observation sources.

    Attributes:
        source_id: Unique identifier for this source (e.g., "back-camera").
        resolution: Target resolution as (width, height). None = use source default.
        fps: Target frames per second. None = use source default.
        rotation_degrees: Sensor rotation to upright stamped on every frame.
    """
    source_id: str = "default"
    resolution: Optional[tuple[int, int]] = None
    fps: Optional[int] = None
    rotation_degrees: int = 0


class ObservationSource(ABC):
    """
    Abstract base class for observation sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to initialize the source
        3. Call read() repeatedly to get frames
        4. Call close() to release resources

    Can also be used as a context manager:
        with OpenCVSource(config) as source:
            for frame in source:
                analyzer.submit(frame)
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def rotation_degrees(self) -> int:
        return self._config.rotation_degrees

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames read since open."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Open/initialize the source.

        Raises:
            RuntimeError: If the source cannot be opened.
        """

    @abstractmethod
    def read(self) -> Optional[Frame]:
        """
        Read the next frame.

        Returns None if no frame is available (end of file, camera error).
        """

    @abstractmethod
    def close(self) -> None:
        """Release the source. Safe to call multiple times."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[Frame]:
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")

        while True:
            frame = self.read()
            if frame is None:
                break
            yield frame
