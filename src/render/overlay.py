"""
Detection overlay renderer.

Draws the per-frame detection list onto a view-sized canvas: one colored box
per detection (by rank) with a "label score%" caption just above its top-left
corner. Without a preview image the canvas is transparent-black, like an
overlay layer composited over a separate camera preview.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from models.detection import Detection

# BGR: red, green, cyan, blue
DEFAULT_PALETTE: Tuple[Tuple[int, int, int], ...] = (
    (0, 0, 255),
    (0, 255, 0),
    (255, 255, 0),
    (255, 0, 0),
)


@dataclass(frozen=True)
class RenderConfig:
    """Overlay drawing parameters."""
    view_size: Tuple[int, int] = (1080, 1920)
    box_thickness: int = 7
    font_scale: float = 1.5
    font_thickness: int = 2
    caption_offset: int = 5
    palette: Sequence[Tuple[int, int, int]] = field(default_factory=lambda: DEFAULT_PALETTE)
    window_name: str = "Object Detector"


class OverlayRenderer:
    """
    Renders detections and keeps the latest overlay for display.

    `on_detections` is meant to be registered as the analyzer listener; it runs
    on the worker thread, while `show` runs on the main thread.
    """

    def __init__(self, config: RenderConfig = RenderConfig()):
        self.config = config
        self._lock = threading.Lock()
        self._latest: List[Detection] = []

    @property
    def latest(self) -> List[Detection]:
        with self._lock:
            return list(self._latest)

    def on_detections(self, detections: List[Detection]) -> None:
        with self._lock:
            self._latest = list(detections)

    def color_for(self, rank: int) -> Tuple[int, int, int]:
        palette = self.config.palette
        return tuple(palette[rank % len(palette)])

    def draw(self, detections: Sequence[Detection], background: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Draw detections on a copy of `background` (BGR), or on a blank canvas.

        The background is stretched to the view size first, since detection
        boxes are already in view coordinates.
        """
        view_w, view_h = self.config.view_size
        if background is None:
            canvas = np.zeros((view_h, view_w, 3), dtype=np.uint8)
        else:
            canvas = cv2.resize(background, (view_w, view_h), interpolation=cv2.INTER_LINEAR)

        cfg = self.config
        for rank, det in enumerate(detections):
            color = self.color_for(rank)
            left, top, right, bottom = det.bbox.as_int_tuple()
            cv2.rectangle(canvas, (left, top), (right, bottom), color, thickness=cfg.box_thickness)
            cv2.putText(
                canvas,
                det.caption,
                (left, top - cfg.caption_offset),
                cv2.FONT_HERSHEY_SIMPLEX,
                cfg.font_scale,
                color,
                thickness=cfg.font_thickness,
                lineType=cv2.LINE_AA,
            )
        return canvas

    def show(self, background: Optional[np.ndarray] = None) -> bool:
        """
        Display the latest overlay in an OpenCV window.

        Returns False if the user pressed 'q'.
        """
        cv2.imshow(self.config.window_name, self.draw(self.latest, background))
        key = cv2.waitKey(1) & 0xFF
        return key != ord("q")

    def close(self) -> None:
        try:
            cv2.destroyWindow(self.config.window_name)
        except cv2.error as e:
            logging.debug(f"No window to close: {e}")
