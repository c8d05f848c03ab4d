"""
Letterbox preprocessing

Pads (and optionally resizes) an image onto a square canvas for training
pipelines that expect square inputs, and moves the annotations with it.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageColor

from ... import config
from ..annotation.models import Annotation
from .geometry import transform_annotations

logger = logging.getLogger(__name__)

STRATEGY_RESIZE = "resize"
STRATEGY_PAD = "pad"


@dataclass(frozen=True)
class Padding:
    """Placement of the source image on the square canvas"""
    left: int
    right: int
    top: int
    bottom: int
    target_size: int
    original_width: int
    original_height: int
    draw_width: int
    draw_height: int
    strategy: str = STRATEGY_RESIZE

    @property
    def scale_x(self) -> float:
        return self.draw_width / self.original_width

    @property
    def scale_y(self) -> float:
        return self.draw_height / self.original_height

    def matrix(self) -> np.ndarray:
        """Affine matrix mapping source coordinates onto the square canvas"""
        return np.array([
            [self.scale_x, 0.0, float(self.left)],
            [0.0, self.scale_y, float(self.top)],
            [0.0, 0.0, 1.0],
        ])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "left": self.left,
            "right": self.right,
            "top": self.top,
            "bottom": self.bottom,
            "target_size": self.target_size,
            "original_width": self.original_width,
            "original_height": self.original_height,
            "draw_width": self.draw_width,
            "draw_height": self.draw_height,
            "strategy": self.strategy,
        }


def needs_letterbox(width: int, height: int) -> bool:
    return width != height


def recommended_size(width: int, height: int, sizes: Sequence[int] = config.LETTERBOX_STANDARD_SIZES) -> int:
    """
    Smallest standard size that fits the image

    Images larger than every standard size are rounded up to the next
    multiple of the stride.
    """
    max_dim = max(width, height)
    for size in sizes:
        if size >= max_dim:
            return size
    return int(math.ceil(max_dim / config.LETTERBOX_STRIDE) * config.LETTERBOX_STRIDE)


def compute_padding(width: int, height: int, target_size: Optional[int] = None,
                    strategy: str = STRATEGY_RESIZE) -> Padding:
    """
    Placement of a width x height image centered on a square canvas

    Args:
        width: Source width
        height: Source height
        target_size: Side of the square (the larger source side if None)
        strategy: 'resize' scales the image to fit first; 'pad' keeps the
            source size and only pads

    Raises:
        ValueError: On an unknown strategy or a canvas too small for 'pad'
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image size must be positive, got {width}x{height}")
    size = target_size or max(width, height)

    if strategy == STRATEGY_RESIZE:
        scale = min(size / width, size / height)
        draw_w, draw_h = int(round(width * scale)), int(round(height * scale))
    elif strategy == STRATEGY_PAD:
        if size < max(width, height):
            raise ValueError(f"Target size {size} is smaller than the image ({width}x{height})")
        draw_w, draw_h = width, height
    else:
        raise ValueError(f"Unknown letterbox strategy: '{strategy}'. Available: {STRATEGY_RESIZE}, {STRATEGY_PAD}")

    left = (size - draw_w) // 2
    top = (size - draw_h) // 2
    return Padding(
        left=left,
        right=size - left - draw_w,
        top=top,
        bottom=size - top - draw_h,
        target_size=size,
        original_width=width,
        original_height=height,
        draw_width=draw_w,
        draw_height=draw_h,
        strategy=strategy,
    )


def letterbox(
    image: Image.Image,
    target_size: Optional[int] = None,
    padding_color: str = "#000000",
    strategy: str = STRATEGY_RESIZE,
) -> Tuple[Image.Image, Padding]:
    """
    Center an image on a square canvas

    Returns:
        (square image in the source mode, padding info)
    """
    padding = compute_padding(image.width, image.height, target_size, strategy)
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")

    fill = ImageColor.getrgb(padding_color)
    if image.mode == "RGBA" and len(fill) == 3:
        fill = fill + (255,)
    elif image.mode == "RGB":
        fill = fill[:3]

    canvas = Image.new(image.mode, (padding.target_size, padding.target_size), fill)
    drawn = image
    if (padding.draw_width, padding.draw_height) != image.size:
        drawn = image.resize((padding.draw_width, padding.draw_height), Image.Resampling.BILINEAR)
    canvas.paste(drawn, (padding.left, padding.top))

    logger.debug(
        f"Letterboxed {image.width}x{image.height} -> {padding.target_size}x{padding.target_size} "
        f"({padding.strategy})"
    )
    return canvas, padding


def adjust_annotations(annotations: Sequence[Annotation], padding: Padding) -> List[Annotation]:
    """Move (and scale) annotations onto the letterboxed canvas"""
    kept, _ = transform_annotations(annotations, padding.matrix(), padding.target_size, padding.target_size)
    return kept
