"""
Inference backends.

Runtimes (TensorFlow Lite) are imported lazily by each backend so the core
pre/post-processing stays usable without them installed.
"""
