"""
Per-frame detection pipeline.

frame -> RGB raster -> model input tensor -> raw outputs -> detections.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from detection.color import YuvToRgbConverter
from detection.decoder import DetectionDecoder
from detection.preprocess import FramePreprocessor, Transform, check_rotation
from inference.backend import InferenceBackend, ModelSpec, run_inference
from models.detection import Detection
from models.frame import Frame


class DetectionPipeline:
    """
    Runs one frame through conversion, preprocessing, inference and decoding.

    All collaborators are built once at startup and passed in; the pipeline
    keeps no cross-frame state other than the last rotation it saw, which it
    uses to avoid rebuilding the preprocessing transforms every frame.

    Example:
        pipeline = DetectionPipeline(converter, preprocessor, backend, decoder, labels, (1080, 1920))
        detections = pipeline.process(frame, frame.rotation_degrees)
    """

    def __init__(
        self,
        converter: YuvToRgbConverter,
        preprocessor: FramePreprocessor,
        backend: InferenceBackend,
        decoder: DetectionDecoder,
        labels: Sequence[str],
        view_size: Tuple[int, int],
        spec: Optional[ModelSpec] = None,
    ):
        self.converter = converter
        self.preprocessor = preprocessor
        self.backend = backend
        self.decoder = decoder
        self.labels = tuple(labels)
        self.view_size = view_size
        self.spec = spec or preprocessor.spec
        self._rotation: Optional[int] = None
        self._transforms: Tuple[Transform, ...] = ()

    @property
    def rotation(self) -> Optional[int]:
        """Last rotation the transforms were built for."""
        return self._rotation

    def _transforms_for(self, rotation_degrees: int) -> Tuple[Transform, ...]:
        if rotation_degrees != self._rotation:
            self._transforms = self.preprocessor.transforms_for(rotation_degrees)
            self._rotation = rotation_degrees
            logging.debug(f"Preprocessing reconfigured for rotation={rotation_degrees}")
        return self._transforms

    def process(self, frame: Frame, rotation_degrees: int) -> List[Detection]:
        """
        Detect objects in one frame.

        The frame is released as soon as its pixels have been converted, and
        in any case before this method returns or raises.

        Raises:
            DetectionError: any frame-fatal error (bad format, rotation,
                label index, inference failure).
        """
        try:
            check_rotation(rotation_degrees)
            raster = self.converter.convert(frame)
        finally:
            frame.close()

        transforms = self._transforms_for(rotation_degrees)
        tensor = self.preprocessor.apply(transforms, raster)
        raw = run_inference(self.backend, tensor, self.spec)

        view_w, view_h = self.view_size
        return self.decoder.decode(raw, self.labels, view_w, view_h)
