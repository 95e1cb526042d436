"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class CameraConfig:
    """Camera configuration."""
    backend: str = "opencv"
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 30
    rotation_degrees: int = 0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            backend=d.get("backend", "opencv"),
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 30),
            rotation_degrees=d.get("rotation_degrees", 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backend": self.backend,
            "device_id": self.device_id,
            "resolution": self.resolution,
            "fps": self.fps,
            "rotation_degrees": self.rotation_degrees,
        }


@dataclass
class ModelConfig:
    """Model artifact and input contract."""
    path: str = "models/ssd_mobilenet_v1.tflite"
    labels_path: str = "models/coco_dataset_labels.txt"
    input_width: int = 300
    input_height: int = 300
    input_dtype: str = "uint8"
    max_detections: int = 10
    num_threads: Optional[int] = None
    # Quantized model: values pass through unchanged.
    normalize_mean: float = 0.0
    normalize_std: float = 1.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelConfig":
        return cls(
            path=d.get("path", "models/ssd_mobilenet_v1.tflite"),
            labels_path=d.get("labels_path", "models/coco_dataset_labels.txt"),
            input_width=d.get("input_width", 300),
            input_height=d.get("input_height", 300),
            input_dtype=d.get("input_dtype", "uint8"),
            max_detections=d.get("max_detections", 10),
            num_threads=d.get("num_threads"),
            normalize_mean=d.get("normalize_mean", 0.0),
            normalize_std=d.get("normalize_std", 1.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "path": self.path,
            "labels_path": self.labels_path,
            "input_width": self.input_width,
            "input_height": self.input_height,
            "input_dtype": self.input_dtype,
            "max_detections": self.max_detections,
            "normalize_mean": self.normalize_mean,
            "normalize_std": self.normalize_std,
        }
        if self.num_threads is not None:
            d["num_threads"] = self.num_threads
        return d


@dataclass
class DetectorConfig:
    """Decoding and per-frame failure policy."""
    score_threshold: float = 0.5
    max_results: int = 4
    verify_score_order: bool = False
    max_consecutive_failures: int = 10

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectorConfig":
        return cls(
            score_threshold=d.get("score_threshold", 0.5),
            max_results=d.get("max_results", 4),
            verify_score_order=d.get("verify_score_order", False),
            max_consecutive_failures=d.get("max_consecutive_failures", 10),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score_threshold": self.score_threshold,
            "max_results": self.max_results,
            "verify_score_order": self.verify_score_order,
            "max_consecutive_failures": self.max_consecutive_failures,
        }


@dataclass
class DisplayConfig:
    """Overlay view settings."""
    view_size: List[int] = field(default_factory=lambda: [1280, 720])
    box_thickness: int = 7
    font_scale: float = 1.5

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DisplayConfig":
        return cls(
            view_size=d.get("view_size", [1280, 720]),
            box_thickness=d.get("box_thickness", 7),
            font_scale=d.get("font_scale", 1.5),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "view_size": self.view_size,
            "box_thickness": self.box_thickness,
            "font_scale": self.font_scale,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    log_path: str = "logs/object_detector.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {})),
            model=ModelConfig.from_dict(d.get("model", {})),
            detector=DetectorConfig.from_dict(d.get("detector", {})),
            display=DisplayConfig.from_dict(d.get("display", {}) or {}),
            log_path=d.get("log_path", "logs/object_detector.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary."""
        return {
            "camera": self.camera.to_dict(),
            "model": self.model.to_dict(),
            "detector": self.detector.to_dict(),
            "display": self.display.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
