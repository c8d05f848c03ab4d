"""
Overlay rendering

The render pass is a read-only consumer of the store: it maps geometry to
canvas space through the CoordinateTransformer and draws into an RGBA
overlay with Pillow. Derived drawing data (colored mask tiles) lives in a
RenderCache side table keyed by annotation id, never on the annotations.
"""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageColor, ImageDraw

from ..annotation.events import ANNOTATIONS_CHANGED, AnnotationEvent
from ..annotation.models import (
    Annotation,
    AnnotationClass,
    BoxAnnotation,
    KeypointAnnotation,
    MaskAnnotation,
    OrientedBoxAnnotation,
    PolygonAnnotation,
    Visibility,
    resolve_class,
)
from ..annotation.store import AnnotationStore
from .transform import CoordinateTransformer

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

MASK_ALPHA = 0.5
FILL_ALPHA = 40
KEYPOINT_RADIUS = 4
HANDLE_RADIUS = 4


class RenderCache:
    """
    Per-annotation derived render data

    Entries are dropped whenever the store reports the annotation updated or
    removed, so stale data is never drawn.
    """

    def __init__(self, store: Optional[AnnotationStore] = None):
        self._entries: Dict[int, Dict[str, Any]] = {}
        self._unsubscribe = None
        if store is not None:
            self._unsubscribe = store.events.on(ANNOTATIONS_CHANGED, self._on_change)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, annotation_id: int) -> bool:
        return annotation_id in self._entries

    def get(self, annotation_id: int, key: str, factory: Callable[[], Any]) -> Any:
        """Cached value for (annotation, key), computed by factory on a miss"""
        entry = self._entries.setdefault(annotation_id, {})
        if key not in entry:
            entry[key] = factory()
        return entry[key]

    def invalidate(self, annotation_id: int) -> None:
        self._entries.pop(annotation_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, event: AnnotationEvent) -> None:
        # Every kind invalidates: undo can re-add an id with different geometry
        for annotation_id in event.annotation_ids:
            self.invalidate(annotation_id)


def hex_to_rgb(color: str) -> RGB:
    return ImageColor.getrgb(color)[:3]


class OverlayRenderer:
    """Draws annotations into a transparent canvas-sized overlay"""

    def __init__(
        self,
        classes: List[AnnotationClass],
        cache: Optional[RenderCache] = None,
        line_width: int = 2,
    ):
        self.classes = classes
        self.cache = cache if cache is not None else RenderCache()
        self.line_width = line_width

    def color_for(self, class_id: int) -> RGB:
        """Class color; stale class ids use the placeholder color"""
        return hex_to_rgb(resolve_class(self.classes, class_id).color)

    def render(
        self,
        annotations: Iterable[Annotation],
        transformer: CoordinateTransformer,
        size: Optional[Tuple[int, int]] = None,
        selected_id: Optional[int] = None,
        preview: Optional[Annotation] = None,
    ) -> Image.Image:
        """
        Render an overlay

        Args:
            annotations: Annotations in drawing order (the store iterates in creation order)
            transformer: View mapping image -> canvas space
            size: Overlay size (viewport size of the transformer if None)
            selected_id: Annotation drawn with handles
            preview: Uncommitted geometry from the active tool, drawn last

        Returns:
            RGBA image
        """
        if size is None:
            size = (int(transformer.viewport_width), int(transformer.viewport_height))
        overlay = Image.new("RGBA", size, (0, 0, 0, 0))

        for annotation in annotations:
            if preview is not None and isinstance(preview, MaskAnnotation) and annotation.id == preview.id:
                # Mask being edited: the working copy replaces the stored one
                continue
            self._draw(overlay, annotation, transformer, selected=annotation.id == selected_id)

        if preview is not None:
            self._draw(overlay, preview, transformer, selected=False, cached=False)
        return overlay

    def _draw(
        self,
        overlay: Image.Image,
        annotation: Annotation,
        transformer: CoordinateTransformer,
        selected: bool,
        cached: bool = True,
    ) -> None:
        color = self.color_for(annotation.class_id)
        if isinstance(annotation, MaskAnnotation):
            self._draw_mask(overlay, annotation, transformer, color, cached)
            return

        draw = ImageDraw.Draw(overlay, "RGBA")
        to_canvas = transformer.to_canvas_space

        if isinstance(annotation, (BoxAnnotation, OrientedBoxAnnotation)):
            corners = [to_canvas(x, y) for x, y in annotation.corners()]
            draw.polygon(corners, outline=color + (255,), fill=color + (FILL_ALPHA,) if selected else None)
            if selected:
                self._draw_handles(draw, corners, color)

        elif isinstance(annotation, PolygonAnnotation):
            points = [to_canvas(x, y) for x, y in annotation.vertices()]
            if annotation.closed and len(points) >= 3:
                draw.polygon(points, outline=color + (255,), fill=color + (FILL_ALPHA,))
            elif len(points) >= 2:
                draw.line(points, fill=color + (255,), width=self.line_width)
            if selected or not annotation.closed:
                self._draw_handles(draw, points, color)

        elif isinstance(annotation, KeypointAnnotation):
            self._draw_keypoints(draw, annotation, transformer, color, selected)

    def _draw_handles(self, draw: ImageDraw.ImageDraw, points: List[Tuple[float, float]], color: RGB) -> None:
        r = HANDLE_RADIUS
        for x, y in points:
            draw.rectangle([x - r, y - r, x + r, y + r], fill=(255, 255, 255, 255), outline=color + (255,))

    def _draw_keypoints(
        self,
        draw: ImageDraw.ImageDraw,
        annotation: KeypointAnnotation,
        transformer: CoordinateTransformer,
        color: RGB,
        selected: bool,
    ) -> None:
        skeleton = resolve_class(self.classes, annotation.class_id).get_skeleton()
        keypoints = annotation.keypoints
        canvas = [
            transformer.to_canvas_space(kp.x, kp.y) if kp.is_placed else None
            for kp in keypoints
        ]

        # Bones only between two labeled joints
        for a, b in skeleton.connections:
            if a < len(keypoints) and b < len(keypoints) and keypoints[a].is_labeled and keypoints[b].is_labeled:
                draw.line([canvas[a], canvas[b]], fill=color + (255,), width=self.line_width)

        r = KEYPOINT_RADIUS
        for kp, point in zip(keypoints, canvas):
            if point is None or kp.visibility == Visibility.ABSENT:
                continue
            x, y = point
            fill = color + (255,) if kp.visibility == Visibility.VISIBLE else None
            draw.ellipse([x - r, y - r, x + r, y + r], fill=fill, outline=color + (255,))

        if selected:
            bx, by, bw, bh = annotation.bounds()
            corners = [(bx, by), (bx + bw, by), (bx + bw, by + bh), (bx, by + bh)]
            draw.polygon([transformer.to_canvas_space(x, y) for x, y in corners], outline=color + (128,))

    def _mask_tile(self, annotation: MaskAnnotation, color: RGB) -> Image.Image:
        """Colored RGBA tile of the mask raster at image resolution"""
        raster = annotation.raster
        tile = np.zeros((raster.height, raster.width, 4), dtype=np.uint8)
        tile[..., :3] = color
        tile[..., 3] = (raster.data.astype(np.float32) * MASK_ALPHA).astype(np.uint8)
        return Image.fromarray(tile)

    def _draw_mask(
        self,
        overlay: Image.Image,
        annotation: MaskAnnotation,
        transformer: CoordinateTransformer,
        color: RGB,
        cached: bool,
    ) -> None:
        raster = annotation.raster
        if raster.width == 0 or raster.height == 0:
            return
        if cached:
            tile = self.cache.get(annotation.id, f"mask_tile:{color}", lambda: self._mask_tile(annotation, color))
        else:
            tile = self._mask_tile(annotation, color)

        # PIL wants the output -> input mapping: canvas -> image -> tile
        inverse = transformer.inverse_matrix()
        inverse[0, :] -= raster.origin_x * inverse[2, :]
        inverse[1, :] -= raster.origin_y * inverse[2, :]
        coefficients = tuple(inverse[0, :]) + tuple(inverse[1, :])
        placed = tile.transform(overlay.size, Image.Transform.AFFINE, coefficients, resample=Image.Resampling.NEAREST)
        overlay.alpha_composite(placed)
