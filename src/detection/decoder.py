"""
SSD output decoding.

The exported model emits a fixed number of detection slots already sorted by
score, highest first. Decoding walks the slots in order and stops at the first
score below the threshold: that early stop is the selection policy, not just
a shortcut, so the scores are never re-sorted here.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from inference.backend import RawOutputs
from models.detection import BoundingBox, Detection
from .errors import InferenceFailure, LabelIndexOutOfRange, UnsortedScores


@dataclass(frozen=True)
class DecoderConfig:
    """
    Attributes:
        score_threshold: Minimum score kept (inclusive).
        max_results: Cap applied after threshold filtering.
        max_detections: Fixed number of slots emitted by the model.
        verify_score_order: Raise UnsortedScores if the slots are not non-increasing.
    """
    score_threshold: float = 0.5
    max_results: int = 4
    max_detections: int = 10
    verify_score_order: bool = False


def valid_count(raw: RawOutputs, max_detections: int) -> int:
    """Number of slots to inspect: round(count), clamped to [0, max_detections]."""
    count = float(raw.count[0])
    if not math.isfinite(count) or count <= 0:
        return 0
    return min(int(round(count)), max_detections, len(raw.score))


def check_score_order(scores: np.ndarray) -> None:
    if scores.size > 1 and np.any(np.diff(scores) > 0):
        raise UnsortedScores(f"model scores are not sorted descending: {scores.tolist()}")


def resolve_label(labels: Sequence[str], class_index: float) -> str:
    if not math.isfinite(class_index):
        raise LabelIndexOutOfRange(class_index, len(labels))
    idx = int(class_index)
    if idx < 0 or idx >= len(labels):
        raise LabelIndexOutOfRange(idx, len(labels))
    return labels[idx]


def decode(
    raw: RawOutputs,
    labels: Sequence[str],
    score_threshold: float,
    view_width: int,
    view_height: int,
    max_results: int,
    max_detections: int = 10,
    verify_score_order: bool = False,
) -> List[Detection]:
    """
    Turn raw model outputs into view-space detections.

    Args:
        raw: The four model outputs for one frame.
        labels: Label table indexed by class index.
        score_threshold: Slots scoring below this end the scan.
        view_width: Destination view width in pixels.
        view_height: Destination view height in pixels.
        max_results: Maximum number of detections returned.

    Returns:
        Detections in score-descending order, at most max_results long.

    Raises:
        LabelIndexOutOfRange: a kept slot names a class outside `labels` or a
            non-finite class index.
        UnsortedScores: verify_score_order is set and the scores are out of order.
        InferenceFailure: a kept slot carries a non-finite box.
    """
    n = valid_count(raw, max_detections)
    if n == 0:
        return []
    if verify_score_order:
        check_score_order(raw.score[:n])

    detections: List[Detection] = []
    for i in range(n):
        score = float(raw.score[i])
        # A non-finite score ends the scan like any low score.
        if not math.isfinite(score) or score < score_threshold:
            break
        box = raw.boxes[i]
        if not np.all(np.isfinite(box)):
            raise InferenceFailure(f"slot {i} has a non-finite box: {box.tolist()}")
        detections.append(
            Detection(
                score=score,
                label=resolve_label(labels, raw.class_index[i]),
                bbox=BoundingBox.from_normalized(box, view_width, view_height),
            )
        )

    if len(detections) > max_results:
        logging.debug(f"Truncating {len(detections)} detections to {max_results}")
    return detections[:max_results]


class DetectionDecoder:
    """Holds the decoding constants; `decode` itself stays pure."""

    def __init__(self, config: DecoderConfig = DecoderConfig()):
        if config.max_results < 0:
            raise ValueError("max_results must be >= 0")
        self.config = config

    def decode(
        self,
        raw: RawOutputs,
        labels: Sequence[str],
        view_width: int,
        view_height: int,
    ) -> List[Detection]:
        cfg = self.config
        return decode(
            raw,
            labels,
            score_threshold=cfg.score_threshold,
            view_width=view_width,
            view_height=view_height,
            max_results=cfg.max_results,
            max_detections=cfg.max_detections,
            verify_score_order=cfg.verify_score_order,
        )
