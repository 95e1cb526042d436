"""
Frame preprocessing: resize -> rotate -> normalize.

Each step is a pure function over a NumPy raster. `build_transforms` returns
the steps for a given rotation as an ordered tuple so the pipeline can cache
it and only rebuild when the sensor rotation changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Callable, Tuple

import cv2
import numpy as np

from inference.backend import ModelSpec
from models.frame import RgbRaster
from .errors import InvalidDimensions, InvalidRotation

Transform = Callable[[np.ndarray], np.ndarray]

VALID_ROTATIONS = (0, 90, 180, 270)


def check_rotation(rotation_degrees: int) -> int:
    if isinstance(rotation_degrees, bool) or rotation_degrees not in VALID_ROTATIONS:
        raise InvalidRotation(f"rotation must be one of {VALID_ROTATIONS}, got {rotation_degrees!r}")
    return int(rotation_degrees)


def resize_bilinear(raster: np.ndarray, width: int, height: int) -> np.ndarray:
    """Stretch to (width, height); aspect ratio is not preserved."""
    if raster.shape[1] == width and raster.shape[0] == height:
        return raster
    return cv2.resize(raster, (width, height), interpolation=cv2.INTER_LINEAR)


def rotate(raster: np.ndarray, rotation_degrees: int) -> np.ndarray:
    """Rotate by -rotation_degrees, i.e. clockwise by rotation_degrees."""
    k = check_rotation(rotation_degrees) // 90
    if k == 0:
        return raster
    return np.ascontiguousarray(np.rot90(raster, k=-k))


def unrotate(raster: np.ndarray, rotation_degrees: int) -> np.ndarray:
    """Geometric inverse of `rotate`."""
    k = check_rotation(rotation_degrees) // 90
    if k == 0:
        return raster
    return np.ascontiguousarray(np.rot90(raster, k=k))


def normalize(raster: np.ndarray, mean: float, std: float, dtype: str) -> np.ndarray:
    """
    Apply (v - mean) / std per channel value.

    With mean=0 and std=1 on a uint8 model the values pass through untouched.
    """
    if dtype == "uint8":
        return raster.astype(np.uint8, copy=False)
    return (raster.astype(np.float32) - np.float32(mean)) / np.float32(std)


@dataclass(frozen=True)
class NormalizeConfig:
    mean: float = 0.0
    std: float = 1.0

    def __post_init__(self) -> None:
        if self.std == 0:
            raise ValueError("normalize std must be non-zero")

    @property
    def is_identity(self) -> bool:
        return self.mean == 0.0 and self.std == 1.0


def build_transforms(spec: ModelSpec, rotation_degrees: int, norm: NormalizeConfig) -> Tuple[Transform, ...]:
    """
    Ordered transform chain for one rotation.

    For 90/270 the resize target is transposed so that the rotated output
    always lands on the model input shape.
    """
    rotation_degrees = check_rotation(rotation_degrees)
    if rotation_degrees in (90, 270):
        resize_w, resize_h = spec.input_height, spec.input_width
    else:
        resize_w, resize_h = spec.input_width, spec.input_height

    return (
        partial(resize_bilinear, width=resize_w, height=resize_h),
        partial(rotate, rotation_degrees=rotation_degrees),
        partial(normalize, mean=norm.mean, std=norm.std, dtype=spec.input_dtype),
    )


def apply_transforms(transforms: Tuple[Transform, ...], raster: np.ndarray) -> np.ndarray:
    out = raster
    for transform in transforms:
        out = transform(out)
    return out


class FramePreprocessor:
    """
    Turns an RGB raster into the model input tensor.

    Example:
        pre = FramePreprocessor(ModelSpec())
        tensor = pre.preprocess(rgb, rotation_degrees=90)   # (300, 300, 3) uint8
    """

    def __init__(self, spec: ModelSpec, norm: NormalizeConfig = NormalizeConfig()):
        if spec.input_dtype not in ("uint8", "float32"):
            raise ValueError(f"unsupported model input dtype: {spec.input_dtype}")
        if spec.input_dtype == "uint8" and not norm.is_identity:
            raise ValueError("a uint8 model input cannot carry non-trivial mean/std normalization")
        self.spec = spec
        self.norm = norm

    def transforms_for(self, rotation_degrees: int) -> Tuple[Transform, ...]:
        return build_transforms(self.spec, rotation_degrees, self.norm)

    def apply(self, transforms: Tuple[Transform, ...], raster: RgbRaster) -> np.ndarray:
        if raster.ndim != 3 or raster.shape[2] != self.spec.channels:
            raise InvalidDimensions(
                f"expected raster of shape (H, W, {self.spec.channels}), got {raster.shape}"
            )
        if raster.shape[0] <= 0 or raster.shape[1] <= 0:
            raise InvalidDimensions(f"raster must be non-empty, got {raster.shape}")
        tensor = apply_transforms(transforms, raster)
        assert tensor.shape == self.spec.input_shape, tensor.shape
        return tensor

    def preprocess(self, raster: RgbRaster, rotation_degrees: int) -> np.ndarray:
        return self.apply(self.transforms_for(rotation_degrees), raster)
