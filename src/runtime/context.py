from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from detection.color import YuvToRgbConverter
from detection.decoder import DecoderConfig, DetectionDecoder
from detection.labels import LabelTable, load_labels
from detection.preprocess import FramePreprocessor, NormalizeConfig
from inference.backend import InferenceBackend, ModelSpec
from models.config import Config
from pipeline.detection import DetectionPipeline
from render.overlay import OverlayRenderer, RenderConfig


@dataclass
class RuntimeContext:
    """Process-wide state built once at startup and passed explicitly; avoids global singletons."""

    config: Config
    spec: ModelSpec
    labels: LabelTable
    backend: InferenceBackend
    pipeline: DetectionPipeline
    renderer: OverlayRenderer


def model_spec_from_config(config: Config) -> ModelSpec:
    m = config.model
    return ModelSpec(
        input_width=m.input_width,
        input_height=m.input_height,
        input_dtype=m.input_dtype,
        max_detections=m.max_detections,
    )


def create_backend(config: Config, spec: ModelSpec) -> InferenceBackend:
    from inference.tflite_backend import TfliteBackend, TfliteConfig

    return TfliteBackend(
        TfliteConfig(model_path=config.model.path, num_threads=config.model.num_threads),
        spec,
    )


def build_runtime(
    config: Config,
    backend: Optional[InferenceBackend] = None,
    labels: Optional[LabelTable] = None,
) -> RuntimeContext:
    """
    Load labels and the model and wire the detection pipeline.

    `backend` and `labels` may be injected (tests, alternative runtimes);
    otherwise they are loaded from the paths in `config.model`.
    """
    spec = model_spec_from_config(config)
    if labels is None:
        labels = load_labels(config.model.labels_path)
    if backend is None:
        backend = create_backend(config, spec)

    view_size: Tuple[int, int] = tuple(config.display.view_size)
    preprocessor = FramePreprocessor(
        spec,
        NormalizeConfig(mean=config.model.normalize_mean, std=config.model.normalize_std),
    )
    decoder = DetectionDecoder(
        DecoderConfig(
            score_threshold=config.detector.score_threshold,
            max_results=config.detector.max_results,
            max_detections=spec.max_detections,
            verify_score_order=config.detector.verify_score_order,
        )
    )
    pipeline = DetectionPipeline(
        YuvToRgbConverter(),
        preprocessor,
        backend,
        decoder,
        labels,
        view_size,
        spec,
    )
    renderer = OverlayRenderer(
        RenderConfig(
            view_size=view_size,
            box_thickness=config.display.box_thickness,
            font_scale=config.display.font_scale,
        )
    )
    logging.info(
        f"Runtime ready: labels={len(labels)}, input={spec.input_shape} {spec.input_dtype}, "
        f"view={view_size}, threshold={config.detector.score_threshold}"
    )
    return RuntimeContext(
        config=config,
        spec=spec,
        labels=labels,
        backend=backend,
        pipeline=pipeline,
        renderer=renderer,
    )
