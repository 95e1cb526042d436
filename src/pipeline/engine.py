"""
Pipeline engine for the object detector.

Pulls frames from an ObservationSource and pushes them into the keep-latest
FrameAnalyzer, which runs detection on its own worker thread and hands the
results to the overlay renderer. Display (if enabled) runs here, on the
calling thread.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np

from detection.color import yuv_to_rgb
from detection.errors import DetectionError, InferenceFailure
from detection.preprocess import rotate
from models.frame import Frame
from observation import ObservationSource, create_source_from_config
from render.overlay import OverlayRenderer
from runtime.context import RuntimeContext
from .analyzer import FrameAnalyzer


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        max_consecutive_failures: Max frame read failures before stopping.
        read_retry_delay: Seconds to wait after a failed read.
        stats_log_interval: Seconds between status log messages.
        display: Show the overlay in an OpenCV window.
    """
    max_consecutive_failures: int = 10
    read_retry_delay: float = 0.5
    stats_log_interval: float = 60.0
    display: bool = False


@dataclass
class PipelineStats:
    """Runtime statistics for the engine loop."""
    frame_count: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)
    consecutive_failures: int = 0
    last_inference_failure: Optional[str] = None


def frame_to_bgr(frame: Frame) -> Optional[np.ndarray]:
    """
    Upright BGR preview for display; None if the frame cannot be converted.

    Detection boxes are in upright view space, so the preview gets the same
    rotation the preprocessor applies before inference.
    """
    try:
        upright = rotate(yuv_to_rgb(frame), frame.rotation_degrees)
        return np.ascontiguousarray(upright[..., ::-1])
    except DetectionError as e:
        logging.debug(f"No preview for frame {frame.frame_index}: {e}")
        return None


class PipelineEngine:
    """
    Main loop: source -> analyzer -> renderer.

    Example:
        source = OpenCVSource(OpenCVSourceConfig(device_id=0))
        analyzer = FrameAnalyzer(ctx.pipeline, ctx.renderer.on_detections)
        engine = PipelineEngine(source, analyzer, ctx.renderer, PipelineConfig(display=True))
        engine.run()
    """

    def __init__(
        self,
        source: ObservationSource,
        analyzer: FrameAnalyzer,
        renderer: OverlayRenderer,
        config: PipelineConfig,
    ):
        self.source = source
        self.analyzer = analyzer
        self.renderer = renderer
        self.config = config
        self.stats = PipelineStats()
        self._running = False
        if analyzer.on_failure is None:
            analyzer.on_failure = self._on_inference_failure

    def run(self) -> None:
        """
        Run the main loop until stopped, the user quits, or the source is exhausted.
        """
        self._running = True
        self.stats = PipelineStats()

        try:
            self.analyzer.start()
            self.source.open()
            logging.info(f"Pipeline started: source={self.source.source_id}")

            while self._running:
                frame = self.source.read()

                if frame is None:
                    self.stats.consecutive_failures += 1
                    if self.stats.consecutive_failures >= self.config.max_consecutive_failures:
                        logging.error(
                            f"Too many consecutive failures ({self.stats.consecutive_failures}), stopping"
                        )
                        break
                    logging.warning(
                        f"Frame read failed ({self.stats.consecutive_failures}/"
                        f"{self.config.max_consecutive_failures})"
                    )
                    time.sleep(self.config.read_retry_delay)
                    continue

                self.stats.consecutive_failures = 0
                self.stats.frame_count += 1

                preview = frame_to_bgr(frame) if self.config.display else None
                self.analyzer.submit(frame)

                if self.config.display:
                    if not self.renderer.show(preview):
                        break  # User pressed 'q'

                self._handle_periodic_tasks()

        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        except Exception as e:
            logging.exception(f"Pipeline error: {e}")
        finally:
            self._cleanup()

    def stop(self) -> None:
        """Signal the engine to stop after the current frame."""
        self._running = False

    def _on_inference_failure(self, error: InferenceFailure) -> None:
        self.stats.last_inference_failure = str(error)
        logging.error(f"Inference engine keeps failing: {error}")

    def _handle_periodic_tasks(self) -> None:
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            a = self.analyzer.stats
            logging.info(
                f"Pipeline stats: frames={self.stats.frame_count}, processed={a.processed}, "
                f"dropped={a.dropped}, replaced={a.replaced}"
            )
            self.stats.last_stats_log_time = now

    def _cleanup(self) -> None:
        self._running = False

        try:
            self.analyzer.stop()
        except Exception as e:
            logging.warning(f"Error stopping analyzer: {e}")

        try:
            self.source.close()
        except Exception as e:
            logging.warning(f"Error closing source: {e}")

        if self.config.display:
            self.renderer.close()

        logging.info("Pipeline stopped")


def create_engine_from_config(
    config: Dict[str, Any],
    ctx: RuntimeContext,
    display: bool = False,
) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the config dict.

    Args:
        config: Full application config dict.
        ctx: RuntimeContext with the pipeline and renderer.
        display: Enable display window.
    """
    camera_cfg = config.get("camera", {})
    source = create_source_from_config(camera_cfg, source_id="main-camera")

    detector_cfg = config.get("detector", {}) or {}
    analyzer = FrameAnalyzer(
        ctx.pipeline,
        ctx.renderer.on_detections,
        max_consecutive_failures=detector_cfg.get("max_consecutive_failures", 10),
    )
    return PipelineEngine(source, analyzer, ctx.renderer, PipelineConfig(display=display))
