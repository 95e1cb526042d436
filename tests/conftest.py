"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from inference.backend import RawOutputs  # noqa: E402
from models.frame import Frame, Plane  # noqa: E402


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  backend: "opencv"
  device_id: 0
  resolution: [640, 480]
  fps: 30
  rotation_degrees: 90

model:
  path: "models/detect.tflite"
  labels_path: "models/labels.txt"

detector:
  score_threshold: 0.5
  max_results: 4

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "backend": "opencv",
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
            "rotation_degrees": 90,
        },
        "model": {
            "path": "models/detect.tflite",
            "labels_path": "models/labels.txt",
            "input_width": 300,
            "input_height": 300,
            "input_dtype": "uint8",
            "max_detections": 10,
        },
        "detector": {
            "score_threshold": 0.5,
            "max_results": 4,
        },
        "display": {
            "view_size": [1000, 2000],
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def labels():
    return ("person", "bicycle", "car", "dog", "cat")


@pytest.fixture
def make_frame():
    """
    Factory for YUV_420_888 frames.

    Planes are given as 2-D uint8 arrays (rows x samples); each plane's row
    stride is its array width. Released frames are appended to `released`.
    """
    released = []

    def _make(
        y: np.ndarray,
        u: np.ndarray = None,
        v: np.ndarray = None,
        rotation_degrees: int = 0,
        frame_index: int = 0,
    ) -> Frame:
        y = np.asarray(y, dtype=np.uint8)
        h, w = y.shape
        ch, cw = (h + 1) // 2, (w + 1) // 2
        if u is None:
            u = np.full((ch, cw), 128, dtype=np.uint8)
        if v is None:
            v = np.full((ch, cw), 128, dtype=np.uint8)
        u = np.asarray(u, dtype=np.uint8)
        v = np.asarray(v, dtype=np.uint8)

        frame = Frame(
            width=w,
            height=h,
            planes=(
                Plane(y.reshape(-1).copy(), row_stride=w),
                Plane(u.reshape(-1).copy(), row_stride=u.shape[1]),
                Plane(v.reshape(-1).copy(), row_stride=v.shape[1]),
            ),
            rotation_degrees=rotation_degrees,
            frame_index=frame_index,
        )
        frame.release = lambda: released.append(frame)
        return frame

    _make.released = released
    return _make


@pytest.fixture
def gray_frame(make_frame):
    """A 64x48 mid-gray frame."""
    return make_frame(np.full((48, 64), 128, dtype=np.uint8))


@pytest.fixture
def make_raw():
    """Factory for RawOutputs padded to 10 slots."""

    def _make(scores, classes=None, boxes=None, count=None, slots: int = 10) -> RawOutputs:
        n = len(scores)
        score = np.zeros(slots, dtype=np.float32)
        score[:n] = scores
        class_index = np.zeros(slots, dtype=np.float32)
        if classes is not None:
            class_index[:n] = classes
        box_arr = np.zeros((slots, 4), dtype=np.float32)
        if boxes is not None:
            box_arr[:n] = boxes
        else:
            box_arr[:n] = [0.1, 0.2, 0.6, 0.8]
        cnt = np.array([n if count is None else count], dtype=np.float32)
        return RawOutputs(boxes=box_arr, class_index=class_index, score=score, count=cnt)

    return _make


class FakeBackend:
    """Inference backend returning canned outputs and recording its inputs."""

    def __init__(self, raw: RawOutputs = None, error: Exception = None):
        self.raw = raw
        self.error = error
        self.inputs = []

    def run(self, tensor):
        self.inputs.append(tensor)
        if self.error is not None:
            raise self.error
        return self.raw


@pytest.fixture
def fake_backend_cls():
    return FakeBackend
