"""
Frame model for captured camera frames.

A Frame carries a planar YUV 4:2:0 capture as the camera delivered it: one
flat byte buffer per plane plus the plane's row and pixel strides. Frames are
exclusively owned by whoever is processing them and must be released back to
the camera source as soon as their pixels have been consumed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

# Interleaved 8-bit RGB, shape (height, width, 3).
RgbRaster = np.ndarray

YUV_420_888 = "YUV_420_888"


@dataclass(frozen=True)
class Plane:
    """
    One image plane.

    Attributes:
        buffer: Flat uint8 buffer holding the plane bytes (may include row padding).
        row_stride: Bytes between the start of two consecutive rows.
        pixel_stride: Bytes between two horizontally adjacent samples.
    """
    buffer: np.ndarray
    row_stride: int
    pixel_stride: int = 1

    @classmethod
    def from_bytes(cls, data: bytes, row_stride: int, pixel_stride: int = 1) -> "Plane":
        """Wrap a bytes-like object without copying."""
        return cls(
            buffer=np.frombuffer(data, dtype=np.uint8),
            row_stride=row_stride,
            pixel_stride=pixel_stride,
        )


@dataclass
class Frame:
    """
    A single camera capture.

    Attributes:
        width: Frame width in pixels.
        height: Frame height in pixels.
        planes: Luma plane followed by the two chroma planes (U, V).
        pixel_format: Layout identifier; only YUV_420_888 is supported downstream.
        rotation_degrees: Clockwise rotation needed to make the frame upright.
        timestamp: Unix timestamp when the frame was captured.
        frame_index: Sequential frame number since the source was opened.
        source: Identifier for the camera source.
        release: Hook returning the underlying buffer to the camera source.
    """
    width: int
    height: int
    planes: Sequence[Plane]
    pixel_format: str = YUV_420_888
    rotation_degrees: int = 0
    timestamp: float = 0.0
    frame_index: int = 0
    source: Optional[str] = None
    release: Optional[Callable[[], None]] = field(default=None, repr=False)
    _closed: bool = field(default=False, init=False, repr=False)

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the frame. Safe to call more than once; the hook runs once."""
        if self._closed:
            return
        self._closed = True
        if self.release is not None:
            self.release()

    def __enter__(self) -> "Frame":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @classmethod
    def from_i420(
        cls,
        data: np.ndarray,
        width: int,
        height: int,
        rotation_degrees: int = 0,
        timestamp: float = 0.0,
        frame_index: int = 0,
        source: Optional[str] = None,
        release: Optional[Callable[[], None]] = None,
    ) -> "Frame":
        """
        Adapter: split a contiguous I420 buffer (Y, then U, then V) into planes.

        Accepts either the flat buffer or the (height * 3 / 2, width) array that
        OpenCV and Picamera2 return.
        """
        flat = np.ascontiguousarray(data, dtype=np.uint8).reshape(-1)
        chroma_w = (width + 1) // 2
        chroma_h = (height + 1) // 2
        y_size = width * height
        c_size = chroma_w * chroma_h
        if flat.size < y_size + 2 * c_size:
            raise ValueError(
                f"I420 buffer too small for {width}x{height}: {flat.size} bytes"
            )
        planes = (
            Plane(flat[:y_size], row_stride=width),
            Plane(flat[y_size:y_size + c_size], row_stride=chroma_w),
            Plane(flat[y_size + c_size:y_size + 2 * c_size], row_stride=chroma_w),
        )
        return cls(
            width=width,
            height=height,
            planes=planes,
            rotation_degrees=rotation_degrees,
            timestamp=timestamp,
            frame_index=frame_index,
            source=source,
            release=release,
        )
