"""
Tests for the keep-latest frame analyzer.
"""

import threading

import numpy as np
import pytest

from detection.color import YuvToRgbConverter
from detection.decoder import DetectionDecoder
from detection.errors import InferenceFailure
from detection.preprocess import FramePreprocessor
from inference.backend import ModelSpec
from pipeline.analyzer import FrameAnalyzer
from pipeline.detection import DetectionPipeline

TIMEOUT = 5.0


@pytest.fixture
def build_analyzer(labels):
    def _build(backend, listener=None, **kwargs):
        pipeline = DetectionPipeline(
            YuvToRgbConverter(),
            FramePreprocessor(ModelSpec()),
            backend,
            DetectionDecoder(),
            labels,
            (1000, 2000),
        )
        return FrameAnalyzer(pipeline, listener or (lambda dets: None), **kwargs)

    return _build


class GatedBackend:
    """Blocks inside `run` until the test opens the gate."""

    def __init__(self, raw):
        self.raw = raw
        self.entered = threading.Event()
        self.gate = threading.Event()
        self.calls = 0

    def run(self, tensor):
        self.calls += 1
        self.entered.set()
        self.gate.wait(TIMEOUT)
        return self.raw


class TestAnalyze:
    """Synchronous per-frame handling."""

    def test_listener_receives_detections(self, build_analyzer, make_raw, fake_backend_cls, gray_frame):
        received = []
        analyzer = build_analyzer(fake_backend_cls(make_raw([0.9], classes=[2])), received.append)

        dets = analyzer.analyze(gray_frame)

        assert [d.label for d in dets] == ["car"]
        assert received == [dets]
        assert analyzer.stats.processed == 1
        assert gray_frame.closed

    def test_empty_result_still_delivered(self, build_analyzer, make_raw, fake_backend_cls, gray_frame):
        received = []
        analyzer = build_analyzer(fake_backend_cls(make_raw([0.1])), received.append)
        analyzer.analyze(gray_frame)
        assert received == [[]]

    def test_bad_frame_dropped_and_next_processed(self, build_analyzer, make_raw, fake_backend_cls, make_frame):
        received = []
        analyzer = build_analyzer(fake_backend_cls(make_raw([0.9])), received.append)

        bad = make_frame(np.full((8, 8), 128))
        bad.pixel_format = "NV21"
        assert analyzer.analyze(bad) is None
        assert bad.closed
        assert analyzer.stats.dropped == 1
        assert received == []

        good = make_frame(np.full((8, 8), 128))
        assert analyzer.analyze(good) is not None
        assert analyzer.stats.processed == 1
        assert len(received) == 1

    def test_bad_rotation_dropped(self, build_analyzer, make_raw, fake_backend_cls, make_frame):
        analyzer = build_analyzer(fake_backend_cls(make_raw([0.9])))
        frame = make_frame(np.full((8, 8), 128), rotation_degrees=45)
        assert analyzer.analyze(frame) is None
        assert analyzer.stats.dropped == 1

    def test_label_out_of_range_drops_whole_frame(self, build_analyzer, make_raw, fake_backend_cls, gray_frame):
        received = []
        raw = make_raw([0.9, 0.8], classes=[0, 42])
        analyzer = build_analyzer(fake_backend_cls(raw), received.append)
        assert analyzer.analyze(gray_frame) is None
        assert received == []

    @pytest.mark.parametrize("index", [float("nan"), float("inf")])
    def test_non_finite_class_index_drops_frame(
        self, build_analyzer, make_raw, fake_backend_cls, gray_frame, index
    ):
        received = []
        analyzer = build_analyzer(fake_backend_cls(make_raw([0.9], classes=[index])), received.append)
        assert analyzer.analyze(gray_frame) is None
        assert analyzer.stats.dropped == 1
        assert analyzer.stats.processed == 0
        assert received == []

    def test_listener_error_is_contained(self, build_analyzer, make_raw, fake_backend_cls, gray_frame):
        def broken(dets):
            raise RuntimeError("display gone")

        analyzer = build_analyzer(fake_backend_cls(make_raw([0.9])), broken)
        assert analyzer.analyze(gray_frame) is not None
        assert analyzer.stats.processed == 1


class TestInferenceFailures:
    def test_failure_reported_after_limit(self, build_analyzer, fake_backend_cls, make_frame):
        failures = []
        analyzer = build_analyzer(
            fake_backend_cls(error=RuntimeError("npu reset")),
            max_consecutive_failures=3,
            on_failure=failures.append,
        )

        for _ in range(2):
            analyzer.analyze(make_frame(np.full((8, 8), 128)))
        assert failures == []
        assert analyzer.stats.consecutive_failures == 2

        analyzer.analyze(make_frame(np.full((8, 8), 128)))
        assert len(failures) == 1
        assert isinstance(failures[0], InferenceFailure)
        assert analyzer.stats.consecutive_failures == 0
        assert analyzer.stats.inference_failures == 3

    def test_success_resets_counter(self, build_analyzer, make_raw, fake_backend_cls, make_frame):
        failures = []
        backend = fake_backend_cls(error=RuntimeError("flaky"))
        analyzer = build_analyzer(backend, max_consecutive_failures=2, on_failure=failures.append)

        analyzer.analyze(make_frame(np.full((8, 8), 128)))
        backend.error = None
        backend.raw = make_raw([0.9])
        analyzer.analyze(make_frame(np.full((8, 8), 128)))
        backend.error = RuntimeError("flaky")
        analyzer.analyze(make_frame(np.full((8, 8), 128)))

        assert failures == []
        assert analyzer.stats.consecutive_failures == 1

    def test_non_finite_box_counts_as_failure(self, build_analyzer, make_raw, fake_backend_cls, gray_frame):
        raw = make_raw([0.9], classes=[0], boxes=[[0.1, float("nan"), 0.6, 0.8]])
        analyzer = build_analyzer(fake_backend_cls(raw), max_consecutive_failures=5)
        assert analyzer.analyze(gray_frame) is None
        assert analyzer.stats.inference_failures == 1
        assert analyzer.stats.consecutive_failures == 1
        assert gray_frame.closed

    def test_without_callback(self, build_analyzer, fake_backend_cls, make_frame):
        analyzer = build_analyzer(fake_backend_cls(error=RuntimeError("x")), max_consecutive_failures=1)
        assert analyzer.analyze(make_frame(np.full((8, 8), 128))) is None
        assert analyzer.stats.dropped == 1


class TestKeepLatest:
    """Worker thread and single-slot replacement."""

    def test_submit_before_start_releases_frame(self, build_analyzer, make_raw, fake_backend_cls, gray_frame):
        analyzer = build_analyzer(fake_backend_cls(make_raw([0.9])))
        assert analyzer.submit(gray_frame) is False
        assert gray_frame.closed

    def test_worker_processes_submitted_frame(self, build_analyzer, make_raw, fake_backend_cls, gray_frame):
        done = threading.Event()
        analyzer = build_analyzer(fake_backend_cls(make_raw([0.9])), lambda dets: done.set())
        analyzer.start()
        try:
            assert analyzer.submit(gray_frame)
            assert done.wait(TIMEOUT)
        finally:
            analyzer.stop()
        assert analyzer.stats.processed == 1

    def test_pending_frame_replaced_by_newer(self, build_analyzer, make_raw, make_frame):
        backend = GatedBackend(make_raw([0.9]))
        results = []
        second_done = threading.Event()

        def listener(dets):
            results.append(dets)
            if len(results) == 2:
                second_done.set()

        analyzer = build_analyzer(backend, listener)
        analyzer.start()
        try:
            first = make_frame(np.full((8, 8), 128), frame_index=1)
            analyzer.submit(first)
            assert backend.entered.wait(TIMEOUT)

            # Worker is busy with the first frame; these two compete for the slot
            stale = make_frame(np.full((8, 8), 128), frame_index=2)
            newest = make_frame(np.full((8, 8), 128), frame_index=3)
            analyzer.submit(stale)
            analyzer.submit(newest)

            assert stale.closed
            assert not newest.closed
            assert analyzer.stats.replaced == 1

            backend.gate.set()
            assert second_done.wait(TIMEOUT)
        finally:
            analyzer.stop()

        assert backend.calls == 2
        assert newest.closed
        assert analyzer.stats.processed == 2

    def test_stop_releases_pending_frame(self, build_analyzer, make_raw, make_frame):
        backend = GatedBackend(make_raw([0.9]))
        analyzer = build_analyzer(backend)
        analyzer.start()

        analyzer.submit(make_frame(np.full((8, 8), 128)))
        assert backend.entered.wait(TIMEOUT)
        pending = make_frame(np.full((8, 8), 128))
        analyzer.submit(pending)

        analyzer.stop(timeout=0.1)
        backend.gate.set()

        assert pending.closed
        assert not analyzer.is_running
        assert analyzer.submit(make_frame(np.full((8, 8), 128))) is False

    def test_start_is_idempotent(self, build_analyzer, make_raw, fake_backend_cls):
        analyzer = build_analyzer(fake_backend_cls(make_raw([0.9])))
        analyzer.start()
        thread = analyzer._thread
        analyzer.start()
        assert analyzer._thread is thread
        analyzer.stop()
