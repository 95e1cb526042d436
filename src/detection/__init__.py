"""
Per-frame detection core.

- color: YUV 4:2:0 -> RGB conversion
- preprocess: resize -> rotate -> normalize into the model input tensor
- decoder: raw SSD outputs -> thresholded, ranked, view-space detections
- labels: label table loading
- errors: frame-fatal error taxonomy

Submodules are imported directly (e.g. ``from detection.decoder import decode``).
"""
