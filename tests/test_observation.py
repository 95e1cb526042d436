"""
Tests for the observation layer.
"""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from detection.color import yuv_to_rgb
from observation import (
    ObservationConfig,
    OpenCVSource,
    OpenCVSourceConfig,
    create_source_from_config,
)
from observation.opencv_source import bgr_to_frame
from observation.picamera2_source import Picamera2Source, Picamera2SourceConfig, yuv420_planes
from models.frame import Frame


class TestObservationConfig:
    def test_defaults(self):
        config = ObservationConfig()
        assert config.source_id == "default"
        assert config.resolution is None
        assert config.rotation_degrees == 0

    def test_opencv_from_camera_config(self):
        config = OpenCVSourceConfig.from_camera_config(
            {"device_id": 2, "resolution": [640, 480], "fps": 15, "rotation_degrees": 270},
            source_id="back",
        )
        assert config.source_id == "back"
        assert config.device_id == 2
        assert config.resolution == (640, 480)
        assert config.fps == 15
        assert config.rotation_degrees == 270
        assert config.buffer_size == 1

    def test_picamera2_from_camera_config(self):
        config = Picamera2SourceConfig.from_camera_config({"resolution": [1280, 720], "rotation_degrees": 90})
        assert config.resolution == (1280, 720)
        assert config.rotation_degrees == 90
        assert config.buffer_count == 4


class TestCreateSource:
    def test_opencv(self):
        source = create_source_from_config({"backend": "opencv", "rotation_degrees": 180}, source_id="cam")
        assert isinstance(source, OpenCVSource)
        assert source.source_id == "cam"
        assert source.rotation_degrees == 180
        assert not source.is_open

    def test_default_backend(self):
        assert isinstance(create_source_from_config({}), OpenCVSource)

    def test_picamera2(self):
        source = create_source_from_config({"backend": "picamera2"})
        assert isinstance(source, Picamera2Source)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_source_from_config({"backend": "gstreamer"})


class TestBgrToFrame:
    def test_round_trip_color(self):
        bgr = np.zeros((8, 8, 3), dtype=np.uint8)
        bgr[:] = (40, 120, 200)
        frame = bgr_to_frame(bgr, rotation_degrees=90, frame_index=3, source="cam")

        assert frame.size == (8, 8)
        assert frame.rotation_degrees == 90
        assert frame.frame_index == 3
        rgb = yuv_to_rgb(frame)
        assert np.abs(rgb[0, 0].astype(int) - np.array([200, 120, 40])).max() <= 3

    def test_odd_size_cropped(self):
        frame = bgr_to_frame(np.zeros((7, 9, 3), dtype=np.uint8))
        assert frame.size == (8, 6)
        assert yuv_to_rgb(frame).shape == (6, 8, 3)


class TestOpenCVSource:
    def test_read_before_open(self):
        source = OpenCVSource(OpenCVSourceConfig())
        assert source.read() is None

    def test_iterate_requires_open(self):
        source = OpenCVSource(OpenCVSourceConfig())
        with pytest.raises(RuntimeError):
            next(iter(source))

    def test_reads_frames_from_capture(self):
        cap = MagicMock()
        cap.isOpened.return_value = True
        cap.read.return_value = (True, np.full((4, 6, 3), 128, dtype=np.uint8))

        with patch("observation.opencv_source.cv2.VideoCapture", return_value=cap):
            source = OpenCVSource(OpenCVSourceConfig(source_id="cam", rotation_degrees=90))
            with source:
                frame = source.read()

        assert isinstance(frame, Frame)
        assert frame.size == (6, 4)
        assert frame.rotation_degrees == 90
        assert frame.frame_index == 1
        assert frame.source == "cam"
        cap.release.assert_called()

    def test_open_fails_after_retries(self):
        cap = MagicMock()
        cap.isOpened.return_value = False

        with patch("observation.opencv_source.cv2.VideoCapture", return_value=cap), \
                patch("observation.opencv_source.time.sleep"):
            source = OpenCVSource(OpenCVSourceConfig(max_retries=2))
            with pytest.raises(RuntimeError):
                source.open()


class TestPicamera2:
    def test_yuv420_planes_with_padding(self):
        width, height, stride = 6, 4, 8
        y = np.full((height, stride), 255, dtype=np.uint8)
        y[:, :width] = 128
        chroma = np.full((height // 2, stride // 2), 255, dtype=np.uint8)
        chroma[:, :width // 2] = 128
        buffer = np.concatenate([y.reshape(-1), chroma.reshape(-1), chroma.reshape(-1)])

        planes = yuv420_planes(buffer, width, height, stride)
        assert planes[0].row_stride == 8
        assert planes[1].row_stride == 4

        frame = Frame(width=width, height=height, planes=planes)
        assert np.all(yuv_to_rgb(frame) == 130)

    def test_read_wraps_request(self):
        request = MagicMock()
        request.make_array.return_value = np.full((6, 4), 128, dtype=np.uint8)
        camera = MagicMock()
        camera.capture_request.return_value = request

        source = Picamera2Source(Picamera2SourceConfig(resolution=(4, 4), rotation_degrees=270))
        source._picam2 = camera
        source._size = (4, 4)
        source._stride = 4
        source._is_open = True

        frame = source.read()
        assert frame.size == (4, 4)
        assert frame.rotation_degrees == 270
        request.release.assert_not_called()
        frame.close()
        request.release.assert_called_once()
