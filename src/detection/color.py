"""
YUV 4:2:0 to RGB conversion.

Camera frames arrive as three planes (Y, U, V) with chroma subsampled by two
in each dimension. Each plane carries its own row stride, which may be larger
than the visible width because of padding, and its own pixel stride (1 for
planar I420, 2 when the chroma planes are views into an interleaved UV buffer).
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from models.frame import YUV_420_888, Frame, Plane, RgbRaster
from .errors import InvalidDimensions, UnsupportedFormat

# BT.601 video range
_Y_OFFSET = 16.0
_C_OFFSET = 128.0
_Y_GAIN = 1.164
_R_FROM_V = 1.596
_G_FROM_U = 0.391
_G_FROM_V = 0.813
_B_FROM_U = 2.018

_CHROMA_SUBSAMPLING = 2


def _sample_plane(plane: Plane, rows: int, cols: int, name: str) -> np.ndarray:
    """Gather a (rows, cols) sample grid from a strided flat buffer."""
    buf = np.asarray(plane.buffer, dtype=np.uint8).reshape(-1)
    if plane.row_stride <= 0 or plane.pixel_stride <= 0:
        raise InvalidDimensions(
            f"{name} plane has non-positive stride "
            f"(row_stride={plane.row_stride}, pixel_stride={plane.pixel_stride})"
        )
    if (cols - 1) * plane.pixel_stride + 1 > plane.row_stride and rows > 1:
        raise InvalidDimensions(
            f"{name} plane row_stride {plane.row_stride} shorter than {cols} samples"
        )
    needed = (rows - 1) * plane.row_stride + (cols - 1) * plane.pixel_stride + 1
    if buf.size < needed:
        raise InvalidDimensions(f"{name} plane holds {buf.size} bytes, need {needed}")

    offsets = (
        np.arange(rows, dtype=np.intp)[:, None] * plane.row_stride
        + np.arange(cols, dtype=np.intp)[None, :] * plane.pixel_stride
    )
    return buf[offsets]


def _chroma_size(width: int, height: int) -> Tuple[int, int]:
    s = _CHROMA_SUBSAMPLING
    return (width + s - 1) // s, (height + s - 1) // s


def yuv_to_rgb(frame: Frame) -> RgbRaster:
    """
    Convert a YUV_420_888 frame into a newly allocated RGB raster.

    Raises:
        UnsupportedFormat: pixel format is not YUV_420_888 or there are not three planes.
        InvalidDimensions: width/height <= 0 or a plane is too small for them.
    """
    if frame.pixel_format != YUV_420_888 or len(frame.planes) != 3:
        raise UnsupportedFormat(
            f"expected {YUV_420_888} with 3 planes, got {frame.pixel_format} "
            f"with {len(frame.planes)} planes"
        )
    width, height = frame.width, frame.height
    if width <= 0 or height <= 0:
        raise InvalidDimensions(f"frame size must be positive, got {width}x{height}")

    y_plane, u_plane, v_plane = frame.planes
    chroma_w, chroma_h = _chroma_size(width, height)

    y = _sample_plane(y_plane, height, width, "Y").astype(np.float32)
    u = _sample_plane(u_plane, chroma_h, chroma_w, "U").astype(np.float32)
    v = _sample_plane(v_plane, chroma_h, chroma_w, "V").astype(np.float32)

    # Every destination pixel (r, c) reads chroma sample (r // 2, c // 2).
    s = _CHROMA_SUBSAMPLING
    u = np.repeat(np.repeat(u, s, axis=0), s, axis=1)[:height, :width]
    v = np.repeat(np.repeat(v, s, axis=0), s, axis=1)[:height, :width]

    c = _Y_GAIN * (y - _Y_OFFSET)
    d = u - _C_OFFSET
    e = v - _C_OFFSET

    rgb = np.empty((height, width, 3), dtype=np.float32)
    rgb[..., 0] = c + _R_FROM_V * e
    rgb[..., 1] = c - _G_FROM_U * d - _G_FROM_V * e
    rgb[..., 2] = c + _B_FROM_U * d
    return np.clip(np.rint(rgb), 0, 255).astype(np.uint8)


class YuvToRgbConverter:
    """Stateless converter object; kept so the pipeline can take it as a collaborator."""

    def convert(self, frame: Frame) -> RgbRaster:
        return yuv_to_rgb(frame)
