"""
Logging setup for the detector process.
"""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(message)s"


def setup_logging(log_path: str, log_level: str) -> None:
    """Log to `log_path` and stderr; creates the log directory if needed."""
    log_dir = os.path.dirname(log_path)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler(),
        ],
        force=True,
    )
    # TensorFlow is chatty at INFO.
    logging.getLogger("tensorflow").setLevel(logging.WARNING)
