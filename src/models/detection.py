"""
Detection models for object detection results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in destination-view pixel coordinates.

    Attributes:
        left: Left edge x coordinate.
        top: Top edge y coordinate.
        right: Right edge x coordinate.
        bottom: Bottom edge y coordinate.
    """
    left: float
    top: float
    right: float
    bottom: float

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (left, top, right, bottom) tuple."""
        return (self.left, self.top, self.right, self.bottom)

    def as_int_tuple(self) -> Tuple[int, int, int, int]:
        """Return as integer (left, top, right, bottom) tuple."""
        return (int(self.left), int(self.top), int(self.right), int(self.bottom))

    @classmethod
    def from_normalized(
        cls,
        box: np.ndarray,
        view_width: int,
        view_height: int,
    ) -> "BoundingBox":
        """
        Map a normalized [top, left, bottom, right] model box into view pixels.

        The horizontal components live at indices 1 and 3 and scale by the
        view width; the vertical ones at 0 and 2 scale by the view height.
        A box emitted with swapped corners is reordered so that left <= right
        and top <= bottom.
        """
        x0, x1 = float(box[1]) * view_width, float(box[3]) * view_width
        y0, y1 = float(box[0]) * view_height, float(box[2]) * view_height
        return cls(
            left=min(x0, x1),
            top=min(y0, y1),
            right=max(x0, x1),
            bottom=max(y0, y1),
        )


@dataclass(frozen=True)
class Detection:
    """
    A single decoded detection.

    Attributes:
        score: Detection confidence score (0-1).
        label: Human-readable class label.
        bbox: Bounding box in destination-view pixel coordinates.
    """
    score: float
    label: str
    bbox: BoundingBox

    @property
    def left(self) -> float:
        return self.bbox.left

    @property
    def top(self) -> float:
        return self.bbox.top

    @property
    def right(self) -> float:
        return self.bbox.right

    @property
    def bottom(self) -> float:
        return self.bbox.bottom

    @property
    def caption(self) -> str:
        """Overlay caption, e.g. ``"person 87.50%"``."""
        return f"{self.label} {self.score * 100:,.2f}%"

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "label": self.label,
            "bbox": list(self.bbox.as_tuple()),
        }

