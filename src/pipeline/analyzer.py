"""
Keep-latest frame analyzer.

The camera pushes frames with `submit`; one worker thread runs the detection
pipeline on the newest frame and hands the result to a listener. There is no
queue: a frame still waiting when a newer one arrives is released and
replaced, so frame delivery never blocks on inference.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from detection.errors import DetectionError, InferenceFailure
from models.detection import Detection
from models.frame import Frame
from .detection import DetectionPipeline

DetectionListener = Callable[[List[Detection]], None]
FailureCallback = Callable[[InferenceFailure], None]


@dataclass
class AnalyzerStats:
    """Runtime counters for the analyzer."""
    processed: int = 0
    dropped: int = 0
    replaced: int = 0
    inference_failures: int = 0
    consecutive_failures: int = 0


class FrameAnalyzer:
    """
    Single-worker, single-slot frame analyzer.

    Args:
        pipeline: The per-frame detection pipeline.
        listener: Receives each frame's detections (called on the worker thread).
        max_consecutive_failures: Inference failures in a row before `on_failure` fires.
        on_failure: Called with the last InferenceFailure once the limit is reached.
    """

    def __init__(
        self,
        pipeline: DetectionPipeline,
        listener: DetectionListener,
        max_consecutive_failures: int = 10,
        on_failure: Optional[FailureCallback] = None,
    ):
        self.pipeline = pipeline
        self.listener = listener
        self.max_consecutive_failures = max_consecutive_failures
        self.on_failure = on_failure
        self.stats = AnalyzerStats()
        self._cond = threading.Condition()
        self._pending: Optional[Frame] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._cond:
            if self._running:
                return
            self._running = True
        self._thread = threading.Thread(target=self._run, name="frame-analyzer", daemon=True)
        self._thread.start()
        logging.info("Frame analyzer started")

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        """Stop the worker; a frame still waiting in the slot is released unprocessed."""
        with self._cond:
            self._running = False
            pending, self._pending = self._pending, None
            self._cond.notify_all()
        if pending is not None:
            pending.close()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logging.info(
            f"Frame analyzer stopped: processed={self.stats.processed}, "
            f"dropped={self.stats.dropped}, replaced={self.stats.replaced}"
        )

    def submit(self, frame: Frame) -> bool:
        """
        Offer a frame to the worker without blocking.

        Returns False (and releases the frame) if the analyzer is not running.
        """
        replaced: Optional[Frame] = None
        with self._cond:
            if not self._running:
                accepted = False
            else:
                replaced, self._pending = self._pending, frame
                if replaced is not None:
                    self.stats.replaced += 1
                self._cond.notify()
                accepted = True
        if not accepted:
            frame.close()
        if replaced is not None:
            replaced.close()
        return accepted

    def _next_frame(self) -> Optional[Frame]:
        with self._cond:
            while self._running and self._pending is None:
                self._cond.wait()
            if not self._running:
                return None
            frame, self._pending = self._pending, None
            return frame

    def _run(self) -> None:
        while True:
            frame = self._next_frame()
            if frame is None:
                break
            try:
                self.analyze(frame)
            except Exception:
                self.stats.dropped += 1
                logging.exception(f"Unexpected error analyzing frame {frame.frame_index}")

    def analyze(self, frame: Frame) -> Optional[List[Detection]]:
        """
        Process one frame synchronously and deliver the result.

        Returns the detections, or None if the frame was dropped.
        """
        try:
            detections = self.pipeline.process(frame, frame.rotation_degrees)
        except InferenceFailure as e:
            self._record_inference_failure(frame, e)
            return None
        except DetectionError as e:
            self.stats.dropped += 1
            logging.warning(f"Dropping frame {frame.frame_index}: {type(e).__name__}: {e}")
            return None
        finally:
            frame.close()

        self.stats.processed += 1
        self.stats.consecutive_failures = 0
        logging.debug(f"frame={frame.frame_index} detections={len(detections)}")

        try:
            self.listener(detections)
        except Exception as e:
            logging.warning(f"Listener error: {e}")
        return detections

    def _record_inference_failure(self, frame: Frame, error: InferenceFailure) -> None:
        self.stats.dropped += 1
        self.stats.inference_failures += 1
        self.stats.consecutive_failures += 1
        logging.warning(
            f"Inference failed on frame {frame.frame_index} "
            f"({self.stats.consecutive_failures}/{self.max_consecutive_failures}): {error}"
        )
        if self.stats.consecutive_failures >= self.max_consecutive_failures:
            logging.error(
                f"Too many consecutive inference failures ({self.stats.consecutive_failures})"
            )
            self.stats.consecutive_failures = 0
            if self.on_failure is not None:
                self.on_failure(error)
