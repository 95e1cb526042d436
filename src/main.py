"""
Real-time object detector.

Reads frames from the camera, runs the SSD MobileNet detector on the newest
frame, and draws the top detections as an overlay.

Usage:
    python src/main.py --config config/config.yaml --display

Arguments:
    --config: Path to configuration file
    --display: Show the detection overlay in a window
"""

import os
import sys
import argparse
import logging
import yaml
from typing import Dict, Any, Tuple, Optional

from models.config import Config
from ops.logging import setup_logging
from pipeline.engine import create_engine_from_config
from runtime.context import build_runtime

VALID_ROTATIONS = (0, 90, 180, 270)
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'model', 'detector', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera', {}) or {}
    backend = camera.get('backend', 'opencv')
    if backend not in ('opencv', 'picamera2'):
        return False, "camera.backend must be one of: opencv, picamera2"
    device_id = camera.get('device_id', 0)
    if not isinstance(device_id, (int, str)) or isinstance(device_id, bool):
        return False, "camera.device_id must be an integer (index) or string (path)"
    if isinstance(device_id, int) and device_id < 0:
        return False, "camera.device_id integer must be non-negative"
    if 'resolution' in camera:
        res = camera['resolution']
        if not isinstance(res, list) or len(res) != 2 or not all(_is_positive_int(x) for x in res):
            return False, "camera.resolution must be a list of two positive integers [width, height]"
    if 'fps' in camera and not _is_positive_int(camera['fps']):
        return False, "camera.fps must be a positive integer"
    if camera.get('rotation_degrees', 0) not in VALID_ROTATIONS:
        return False, "camera.rotation_degrees must be one of: 0, 90, 180, 270"

    # Model
    model = config.get('model', {}) or {}
    for key in ('path', 'labels_path'):
        if not isinstance(model.get(key), str) or not model.get(key):
            return False, f"model.{key} is required"
    for key in ('input_width', 'input_height', 'max_detections'):
        if key in model and not _is_positive_int(model[key]):
            return False, f"model.{key} must be a positive integer"
    dtype = model.get('input_dtype', 'uint8')
    if dtype not in ('uint8', 'float32'):
        return False, "model.input_dtype must be one of: uint8, float32"
    mean = model.get('normalize_mean', 0.0)
    std = model.get('normalize_std', 1.0)
    if not _is_number(mean) or not _is_number(std):
        return False, "model.normalize_mean and model.normalize_std must be numbers"
    if std == 0:
        return False, "model.normalize_std must be non-zero"
    if dtype == 'uint8' and (mean != 0 or std != 1):
        return False, "uint8 models require normalize_mean=0 and normalize_std=1"

    # Detector
    detector = config.get('detector', {}) or {}
    threshold = detector.get('score_threshold', 0.5)
    if not _is_number(threshold) or not (0 <= threshold <= 1):
        return False, "detector.score_threshold must be between 0 and 1"
    if 'max_results' in detector and not _is_positive_int(detector['max_results']):
        return False, "detector.max_results must be a positive integer"
    if 'max_consecutive_failures' in detector and not _is_positive_int(detector['max_consecutive_failures']):
        return False, "detector.max_consecutive_failures must be a positive integer"

    # Display
    display = config.get('display', {}) or {}
    if 'view_size' in display:
        size = display['view_size']
        if not isinstance(size, list) or len(size) != 2 or not all(_is_positive_int(x) for x in size):
            return False, "display.view_size must be a list of two positive integers [width, height]"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Real-time camera object detector')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--display', action='store_true',
                        help='Show the detection overlay')
    args = parser.parse_args()

    config = load_config(args.config)

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config['log_path'], config['log_level'])
    logging.info("Starting object detector")

    try:
        ctx = build_runtime(Config.from_dict(config))
    except (ImportError, FileNotFoundError, ValueError) as e:
        logging.error(f"Failed to initialize detector: {e}")
        sys.exit(1)

    engine = create_engine_from_config(config=config, ctx=ctx, display=args.display)
    engine.run()

    logging.info("Object detector stopped")


if __name__ == "__main__":
    main()
