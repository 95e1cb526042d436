"""
TensorFlow Lite inference backend for SSD MobileNet style detectors.

Requirements:
  - tensorflow (provides tf.lite.Interpreter): pip install tensorflow

GPU/NNAPI delegates would plug in at Interpreter construction
(`experimental_delegates=`); only the CPU path is wired here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import numpy as np

from .backend import InferenceBackend, ModelSpec, RawOutputs

PathLike = Union[str, Path]

# Output tensor order of the exported SSD post-processing op.
DEFAULT_OUTPUT_ORDER = ("boxes", "class_index", "score", "count")


@dataclass(frozen=True)
class TfliteConfig:
    """
    Configuration for TFLite inference.

    - model_path: path to the .tflite artifact
    - num_threads: interpreter CPU threads (None = runtime default)
    - output_order: which RawOutputs field each output tensor index maps to
    """

    model_path: str
    num_threads: Optional[int] = None
    output_order: Sequence[str] = DEFAULT_OUTPUT_ORDER


class TfliteBackend(InferenceBackend):
    """
    Fixed-shape TFLite executor.

    Expects an (H, W, C) tensor matching ModelSpec; adds the batch axis, invokes
    the interpreter, and copies the four outputs into a RawOutputs.
    """

    def __init__(self, cfg: TfliteConfig, spec: ModelSpec = ModelSpec()):
        try:
            import tensorflow as tf  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "TensorFlow is required for the TFLite backend. Install with `pip install tensorflow`."
            ) from e

        self.cfg = cfg
        self.spec = spec
        self.model_path = Path(cfg.model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))
        if sorted(cfg.output_order) != sorted(DEFAULT_OUTPUT_ORDER):
            raise ValueError(f"output_order must be a permutation of {DEFAULT_OUTPUT_ORDER}")

        self._interpreter: Any = tf.lite.Interpreter(
            model_path=str(self.model_path),
            num_threads=cfg.num_threads,
        )
        self._interpreter.allocate_tensors()
        self._input = self._interpreter.get_input_details()[0]
        self._outputs = self._interpreter.get_output_details()
        self._check_contract()

        logging.info(
            f"TFLite model loaded: {self.model_path.name}, "
            f"input={tuple(self._input['shape'])} {np.dtype(self._input['dtype']).name}, "
            f"outputs={len(self._outputs)}"
        )

    def _check_contract(self) -> None:
        shape = tuple(int(d) for d in self._input["shape"])
        expected = (1, *self.spec.input_shape)
        if shape != expected:
            raise ValueError(f"model input shape {shape} does not match {expected}")
        dtype = np.dtype(self._input["dtype"]).name
        if dtype != self.spec.input_dtype:
            raise ValueError(f"model input dtype {dtype} does not match {self.spec.input_dtype}")
        if len(self._outputs) != 4:
            raise ValueError(f"expected 4 model outputs, got {len(self._outputs)}")

    def run(self, tensor: np.ndarray) -> RawOutputs:
        batch = np.ascontiguousarray(tensor[None, ...], dtype=self._input["dtype"])
        self._interpreter.set_tensor(self._input["index"], batch)
        self._interpreter.invoke()

        by_name = {
            name: self._interpreter.get_tensor(detail["index"])
            for name, detail in zip(self.cfg.output_order, self._outputs)
        }
        return RawOutputs.from_arrays(**by_name)
