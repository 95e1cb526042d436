"""
Per-frame detection errors.

Every error here is frame-fatal but never pipeline-fatal: the worker drops the
offending frame and moves on to the next one.
"""

from __future__ import annotations

from typing import Union


class DetectionError(Exception):
    """Base class for errors that abort processing of a single frame."""


class UnsupportedFormat(DetectionError, ValueError):
    """Frame pixel format or plane layout is not planar YUV 4:2:0."""


class InvalidDimensions(DetectionError, ValueError):
    """Frame width/height is non-positive or a plane is too small for it."""


class InvalidRotation(DetectionError, ValueError):
    """Rotation is not one of 0, 90, 180, 270."""


class LabelIndexOutOfRange(DetectionError, IndexError):
    """Model emitted a class index outside the label table."""

    def __init__(self, index: Union[int, float], table_size: int):
        super().__init__(f"class index {index} outside label table of size {table_size}")
        self.index = index
        self.table_size = table_size


class UnsortedScores(DetectionError, ValueError):
    """Model scores are not non-increasing while order verification is on."""


class InferenceFailure(DetectionError, RuntimeError):
    """The inference engine raised or returned outputs of the wrong shape."""
