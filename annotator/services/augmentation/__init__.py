"""
Augmentation Service

Flips, rotation and photometric adjustments applied consistently to an image
and its annotations, plus letterbox preprocessing for square model inputs.

Usage:
    from annotator.services.augmentation import AugmentationConfig, AugmentationEngine

    engine = AugmentationEngine()
    result = engine.apply(blob, AugmentationConfig(flip_horizontal=True, rotation=90), annotations)

    result.blob          # PNG bytes
    result.size          # (width, height) of the expanded canvas
    result.annotations   # re-derived annotations, ids preserved
"""
from .types import AugmentationConfig, AugmentationResult
from .geometry import build_affine, output_size, transform_annotation, transform_annotations
from .photometric import adjust
from .engine import AugmentationEngine, AugmentationJob, BatchReport, decode_image
from .letterbox import Padding, adjust_annotations, compute_padding, letterbox, needs_letterbox, recommended_size

__all__ = [
    "AugmentationConfig",
    "AugmentationResult",
    "build_affine",
    "output_size",
    "transform_annotation",
    "transform_annotations",
    "adjust",
    "AugmentationEngine",
    "AugmentationJob",
    "BatchReport",
    "decode_image",
    "Padding",
    "adjust_annotations",
    "compute_padding",
    "letterbox",
    "needs_letterbox",
    "recommended_size",
]
