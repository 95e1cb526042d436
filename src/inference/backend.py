"""
Inference backend interface.

Backends are fixed-shape tensor-in/tensor-out executors. They own whatever
output buffers their runtime fills in place and hand back a typed RawOutputs
copy, so no caller ever aliases runtime memory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Tuple

import numpy as np

from detection.errors import InferenceFailure


@dataclass(frozen=True)
class ModelSpec:
    """
    Fixed input/output contract of the detection model artifact.

    Attributes:
        input_width: Model input width in pixels.
        input_height: Model input height in pixels.
        channels: Input channels (RGB).
        input_dtype: "uint8" for quantized models, "float32" otherwise.
        max_detections: Fixed number of detection slots in every output tensor.
    """
    input_width: int = 300
    input_height: int = 300
    channels: int = 3
    input_dtype: str = "uint8"
    max_detections: int = 10

    @property
    def input_shape(self) -> Tuple[int, int, int]:
        """Return (height, width, channels)."""
        return (self.input_height, self.input_width, self.channels)


@dataclass(frozen=True)
class RawOutputs:
    """
    The four SSD post-processing outputs for one image, batch axis removed.

    Attributes:
        boxes: (N, 4) normalized [top, left, bottom, right].
        class_index: (N,) class indices as floats.
        score: (N,) scores, descending by export convention.
        count: (1,) number of valid slots, as a float.
    """
    boxes: np.ndarray
    class_index: np.ndarray
    score: np.ndarray
    count: np.ndarray

    @classmethod
    def from_arrays(cls, boxes, class_index, score, count) -> "RawOutputs":
        """Adapter: copy runtime arrays, dropping a leading batch axis of 1."""

        def _unbatch(a, ndim: int) -> np.ndarray:
            arr = np.array(a, dtype=np.float32, copy=True)
            if arr.ndim == ndim + 1 and arr.shape[0] == 1:
                arr = arr[0]
            return arr

        return cls(
            boxes=_unbatch(boxes, 2),
            class_index=_unbatch(class_index, 1),
            score=_unbatch(score, 1),
            count=_unbatch(count, 1).reshape(-1),
        )

    def validate(self, max_detections: int) -> None:
        """Raise InferenceFailure unless every array has its declared shape."""
        n = max_detections
        expected = {
            "boxes": (self.boxes, (n, 4)),
            "class_index": (self.class_index, (n,)),
            "score": (self.score, (n,)),
            "count": (self.count, (1,)),
        }
        for name, (arr, shape) in expected.items():
            if tuple(arr.shape) != shape:
                raise InferenceFailure(f"output '{name}' has shape {tuple(arr.shape)}, expected {shape}")


class InferenceBackend(Protocol):
    def run(self, tensor: np.ndarray) -> RawOutputs:
        ...


def run_inference(backend: InferenceBackend, tensor: np.ndarray, spec: ModelSpec) -> RawOutputs:
    """
    Single boundary call into the engine.

    Any exception raised by the backend, and any output of the wrong shape,
    surfaces as InferenceFailure.
    """
    try:
        raw = backend.run(tensor)
    except InferenceFailure:
        raise
    except Exception as e:
        logging.debug(f"Inference backend raised: {e!r}")
        raise InferenceFailure(f"inference failed: {e}") from e

    if not isinstance(raw, RawOutputs):
        raise InferenceFailure(f"backend returned {type(raw).__name__}, expected RawOutputs")
    raw.validate(spec.max_detections)
    return raw
