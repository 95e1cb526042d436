"""
Label table loading.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Tuple, Union

LabelTable = Tuple[str, ...]


def load_labels(path: Union[str, Path]) -> LabelTable:
    """
    Load one label per line; line N is the label for class index N.

    Blank lines inside the file keep their slot (as an empty label) so indices
    stay aligned; trailing blank lines are dropped.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Label file not found: {p}")

    lines = [line.strip() for line in p.read_text(encoding="utf-8").splitlines()]
    while lines and not lines[-1]:
        lines.pop()

    logging.info(f"Loaded {len(lines)} labels from {p}")
    return tuple(lines)
