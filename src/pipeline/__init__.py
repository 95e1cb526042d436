"""
Pipeline module for the object detector.

- DetectionPipeline: one frame through convert -> preprocess -> infer -> decode
- FrameAnalyzer: keep-latest single-worker delivery of frames to the pipeline
- PipelineEngine: camera loop feeding the analyzer and the renderer
"""

from .detection import DetectionPipeline
from .analyzer import AnalyzerStats, FrameAnalyzer

__all__ = [
    "DetectionPipeline",
    "AnalyzerStats",
    "FrameAnalyzer",
]
