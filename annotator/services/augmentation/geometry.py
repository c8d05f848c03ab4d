"""
Geometric augmentation

One 3x3 affine matrix describes the whole recipe (flips, then rotation about
the image center into an expanded canvas). Pixels and every annotation kind
go through the same matrix, so image and labels can never drift apart.
"""
import copy
import logging
import math
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..annotation.geometry import bounds_intersect, bounds_of, clip_bounds, normalize_angle
from ..annotation.models import (
    Annotation,
    BoxAnnotation,
    KeypointAnnotation,
    MaskAnnotation,
    OrientedBoxAnnotation,
    PolygonAnnotation,
    Visibility,
)
from ..annotation.raster import MaskRaster
from .types import AugmentationConfig

logger = logging.getLogger(__name__)

Size = Tuple[int, int]


def exact_cos_sin(degrees: float) -> Tuple[float, float]:
    """cos/sin of an angle in degrees, exact for multiples of 90"""
    angle = normalize_angle(degrees)
    if angle % 90 == 0:
        return {0: (1.0, 0.0), 90: (0.0, 1.0), 180: (-1.0, 0.0), 270: (0.0, -1.0)}[int(angle)]
    rad = math.radians(angle)
    return math.cos(rad), math.sin(rad)


def output_size(width: int, height: int, rotation: float) -> Size:
    """Size of the expanded canvas that holds the whole rotated image"""
    cos, sin = exact_cos_sin(rotation)
    return (
        int(round(width * abs(cos) + height * abs(sin))),
        int(round(width * abs(sin) + height * abs(cos))),
    )


def _translation(tx: float, ty: float) -> np.ndarray:
    return np.array([[1.0, 0.0, tx], [0.0, 1.0, ty], [0.0, 0.0, 1.0]])


def build_affine(width: int, height: int, augmentation: AugmentationConfig) -> Tuple[np.ndarray, int, int]:
    """
    Affine matrix of a recipe in continuous image coordinates

    Args:
        width: Source image width
        height: Source image height
        augmentation: Recipe (only geometry is used)

    Returns:
        (3x3 matrix mapping source -> output, output width, output height)
    """
    out_w, out_h = output_size(width, height, augmentation.rotation)
    cos, sin = exact_cos_sin(augmentation.rotation)

    flip = np.diag([
        -1.0 if augmentation.flip_horizontal else 1.0,
        -1.0 if augmentation.flip_vertical else 1.0,
        1.0,
    ])
    # Clockwise on screen with y pointing down
    rotate = np.array([[cos, -sin, 0.0], [sin, cos, 0.0], [0.0, 0.0, 1.0]])

    # Flips mirror about the source center, rotation maps the source center
    # onto the output center
    matrix = _translation(out_w / 2, out_h / 2) @ rotate @ flip @ _translation(-width / 2, -height / 2)
    return matrix, out_w, out_h


def apply_point(matrix: np.ndarray, x: float, y: float) -> Tuple[float, float]:
    return (
        float(matrix[0, 0] * x + matrix[0, 1] * y + matrix[0, 2]),
        float(matrix[1, 0] * x + matrix[1, 1] * y + matrix[1, 2]),
    )


def apply_points(matrix: np.ndarray, points: Sequence[Tuple[float, float]]) -> List[Tuple[float, float]]:
    return [apply_point(matrix, x, y) for x, y in points]


def pixel_matrix(matrix: np.ndarray, src_origin: Tuple[float, float] = (0, 0),
                 dst_origin: Tuple[float, float] = (0, 0)) -> np.ndarray:
    """
    Convert a continuous-coordinate matrix to the 2x3 pixel-index form cv2 expects

    Pixel (col, row) of a buffer anchored at src_origin has its center at
    (origin + col + 0.5, origin + row + 0.5).
    """
    sx, sy = src_origin
    dx, dy = dst_origin
    indexed = _translation(-dx - 0.5, -dy - 0.5) @ matrix @ _translation(sx + 0.5, sy + 0.5)
    return indexed[:2]


def warp_pixels(array: np.ndarray, matrix: np.ndarray, out_w: int, out_h: int) -> np.ndarray:
    """
    Resample an image array (H, W, C) into the output canvas

    Areas not covered by the source are zero (transparent for RGBA).
    """
    border = (0,) * array.shape[2] if array.ndim == 3 else 0
    return cv2.warpAffine(
        array,
        pixel_matrix(matrix),
        (out_w, out_h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=border,
    )


def warp_mask(raster: MaskRaster, matrix: np.ndarray, out_w: int, out_h: int) -> Optional[MaskRaster]:
    """
    Resample a mask raster into the output canvas

    Only the region covered by the transformed buffer is allocated.

    Returns:
        New trimmed raster, or None if nothing of the mask lands on the canvas
    """
    if raster.is_empty():
        return None

    ox, oy = raster.origin
    corners = [(ox, oy), (ox + raster.width, oy), (ox + raster.width, oy + raster.height), (ox, oy + raster.height)]
    bx, by, bw, bh = bounds_of(apply_points(matrix, corners))
    x0, y0 = max(0, math.floor(bx)), max(0, math.floor(by))
    x1, y1 = min(out_w, math.ceil(bx + bw)), min(out_h, math.ceil(by + bh))
    if x1 <= x0 or y1 <= y0:
        return None

    warped = cv2.warpAffine(
        raster.data,
        pixel_matrix(matrix, (ox, oy), (x0, y0)),
        (x1 - x0, y1 - y0),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=0,
    )
    result = MaskRaster.from_array(warped, origin=(x0, y0), image_size=(out_w, out_h))
    if result.is_empty():
        return None
    return result


def transform_annotation(annotation: Annotation, matrix: np.ndarray, out_w: int, out_h: int) -> Optional[Annotation]:
    """
    Re-derive one annotation in the output canvas

    The id and class are preserved. Returns None when the annotation ends up
    entirely outside the canvas.
    """
    canvas = (0.0, 0.0, float(out_w), float(out_h))

    if isinstance(annotation, BoxAnnotation):
        # Enclosing axis-aligned box of the transformed corners
        x, y, w, h = clip_bounds(bounds_of(apply_points(matrix, annotation.corners())), out_w, out_h)
        if w <= 0 or h <= 0:
            return None
        return BoxAnnotation(id=annotation.id, class_id=annotation.class_id, x=x, y=y, width=w, height=h)

    if isinstance(annotation, OrientedBoxAnnotation):
        cx, cy = apply_point(matrix, annotation.cx, annotation.cy)
        # Orientation follows the transformed local x axis; a flip mirrors the
        # frame but the rectangle is symmetric about it
        cos, sin = exact_cos_sin(annotation.angle)
        ax = matrix[0, 0] * cos + matrix[0, 1] * sin
        ay = matrix[1, 0] * cos + matrix[1, 1] * sin
        bx = -matrix[0, 0] * sin + matrix[0, 1] * cos
        by = -matrix[1, 0] * sin + matrix[1, 1] * cos
        result = OrientedBoxAnnotation(
            id=annotation.id,
            class_id=annotation.class_id,
            cx=cx,
            cy=cy,
            width=annotation.width * math.hypot(ax, ay),
            height=annotation.height * math.hypot(bx, by),
            angle=round(math.degrees(math.atan2(ay, ax)), 9),
        )
        return result if bounds_intersect(result.bounds(), canvas) else None

    if isinstance(annotation, PolygonAnnotation):
        result = PolygonAnnotation(
            id=annotation.id,
            class_id=annotation.class_id,
            points=apply_points(matrix, annotation.vertices()),
            closed=annotation.closed,
        )
        return result if bounds_intersect(result.bounds(), canvas) else None

    if isinstance(annotation, KeypointAnnotation):
        result = copy.deepcopy(annotation)
        for kp in result.keypoints:
            if not kp.is_placed:
                continue
            x, y = apply_point(matrix, kp.x, kp.y)
            if 0 <= x <= out_w and 0 <= y <= out_h:
                kp.x, kp.y = x, y
            else:
                kp.x, kp.y, kp.visibility = None, None, Visibility.ABSENT
        return None if result.is_degenerate() else result

    if isinstance(annotation, MaskAnnotation):
        raster = warp_mask(annotation.raster, matrix, out_w, out_h)
        if raster is None:
            return None
        return MaskAnnotation(id=annotation.id, class_id=annotation.class_id, raster=raster)

    raise TypeError(f"Unsupported annotation type: {type(annotation).__name__}")


def transform_annotations(
    annotations: Sequence[Annotation],
    matrix: np.ndarray,
    out_w: int,
    out_h: int,
) -> Tuple[List[Annotation], List[int]]:
    """
    Re-derive a list of annotations

    Returns:
        (kept annotations in input order, ids of dropped annotations)
    """
    kept, dropped = [], []
    for annotation in annotations:
        result = transform_annotation(annotation, matrix, out_w, out_h)
        if result is None:
            dropped.append(annotation.id)
        else:
            kept.append(result)
    if dropped:
        logger.info(f"Dropped {len(dropped)} annotation(s) outside the augmented image: {dropped}")
    return kept, dropped
