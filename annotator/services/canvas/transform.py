"""
Coordinate transformation between canvas (screen) and image space

Canvas point = zoom * rotate_about_image_center(image point) + pan

Rotation only affects display; stored geometry stays in unrotated image space.
"""
import math
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np

from ... import config
from ..annotation.geometry import normalize_angle, rotate_point

Vec2 = Tuple[float, float]


@dataclass(frozen=True)
class CoordinateTransformer:
    """
    Immutable view state plus the two mappings derived from it

    View changes return a new transformer, so a pointer sequence can hold on
    to the transformer it started with.

    Attributes:
        image_width, image_height: Image size in pixels (rotation pivot is its center)
        viewport_width, viewport_height: Canvas size; its center anchors keyboard zoom
        zoom: Canvas pixels per image pixel, clamped to [min_zoom, max_zoom]
        pan_x, pan_y: Canvas offset of the (rotated) image origin
        rotation: Display rotation in degrees, clockwise
    """
    image_width: float
    image_height: float
    viewport_width: float = 0.0
    viewport_height: float = 0.0
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    rotation: float = 0.0
    min_zoom: float = config.MIN_ZOOM
    max_zoom: float = config.MAX_ZOOM

    def __post_init__(self):
        object.__setattr__(self, "zoom", self._clamp(self.zoom))
        object.__setattr__(self, "rotation", normalize_angle(self.rotation))

    def _clamp(self, zoom: float) -> float:
        return max(self.min_zoom, min(self.max_zoom, zoom))

    @property
    def image_center(self) -> Vec2:
        return self.image_width / 2, self.image_height / 2

    @property
    def viewport_center(self) -> Vec2:
        return self.viewport_width / 2, self.viewport_height / 2

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    def to_canvas_space(self, x: float, y: float) -> Vec2:
        """Map an image-space point to canvas pixels"""
        cx, cy = self.image_center
        rx, ry = rotate_point(x, y, cx, cy, self.rotation)
        return rx * self.zoom + self.pan_x, ry * self.zoom + self.pan_y

    def to_image_space(self, x: float, y: float) -> Vec2:
        """Map a canvas point (e.g. pointer position) to image space"""
        cx, cy = self.image_center
        rx = (x - self.pan_x) / self.zoom
        ry = (y - self.pan_y) / self.zoom
        return rotate_point(rx, ry, cx, cy, -self.rotation)

    def scale_to_image(self, length: float) -> float:
        """Convert a canvas-pixel length (tolerance, handle size) to image pixels"""
        return length / self.zoom

    def scale_to_canvas(self, length: float) -> float:
        return length * self.zoom

    def matrix(self) -> np.ndarray:
        """3x3 homogeneous image -> canvas matrix"""
        cx, cy = self.image_center
        rad = math.radians(self.rotation)
        cos, sin = math.cos(rad), math.sin(rad)
        to_origin = np.array([[1, 0, -cx], [0, 1, -cy], [0, 0, 1]], dtype=np.float64)
        rotate = np.array([[cos, -sin, 0], [sin, cos, 0], [0, 0, 1]], dtype=np.float64)
        back = np.array([[1, 0, cx], [0, 1, cy], [0, 0, 1]], dtype=np.float64)
        view = np.array([[self.zoom, 0, self.pan_x], [0, self.zoom, self.pan_y], [0, 0, 1]], dtype=np.float64)
        return view @ back @ rotate @ to_origin

    def inverse_matrix(self) -> np.ndarray:
        return np.linalg.inv(self.matrix())

    # ------------------------------------------------------------------
    # View changes
    # ------------------------------------------------------------------

    def zoomed(self, factor: float, anchor: Optional[Vec2] = None) -> "CoordinateTransformer":
        """
        Zoom by a factor keeping the image point under the anchor fixed

        Args:
            factor: Multiplier applied to the current zoom (result is clamped)
            anchor: Canvas point to keep fixed (viewport center if None)
        """
        return self.zoom_to(self.zoom * factor, anchor)

    def zoom_to(self, zoom: float, anchor: Optional[Vec2] = None) -> "CoordinateTransformer":
        new_zoom = self._clamp(zoom)
        ax, ay = anchor if anchor is not None else self.viewport_center
        ratio = new_zoom / self.zoom
        return replace(
            self,
            zoom=new_zoom,
            pan_x=ax - (ax - self.pan_x) * ratio,
            pan_y=ay - (ay - self.pan_y) * ratio,
        )

    def zoom_in(self, anchor: Optional[Vec2] = None) -> "CoordinateTransformer":
        return self.zoomed(config.ZOOM_STEP, anchor)

    def zoom_out(self, anchor: Optional[Vec2] = None) -> "CoordinateTransformer":
        return self.zoomed(1 / config.ZOOM_STEP, anchor)

    def wheel(self, delta_y: float, anchor: Vec2) -> "CoordinateTransformer":
        """Wheel zoom toward the cursor (negative delta zooms in)"""
        factor = config.WHEEL_ZOOM_OUT if delta_y > 0 else config.WHEEL_ZOOM_IN
        return self.zoomed(factor, anchor)

    def panned(self, dx: float, dy: float) -> "CoordinateTransformer":
        return replace(self, pan_x=self.pan_x + dx, pan_y=self.pan_y + dy)

    def rotated(self, degrees: float) -> "CoordinateTransformer":
        """Rotate the display about the image center"""
        return replace(self, rotation=self.rotation + degrees)

    def with_viewport(self, width: float, height: float) -> "CoordinateTransformer":
        return replace(self, viewport_width=width, viewport_height=height)

    def displayed_size(self) -> Vec2:
        """Extent of the rotated image in image pixels"""
        rad = math.radians(self.rotation)
        cos, sin = abs(math.cos(rad)), abs(math.sin(rad))
        w, h = self.image_width, self.image_height
        return w * cos + h * sin, w * sin + h * cos

    def fitted(self, viewport_width: Optional[float] = None, viewport_height: Optional[float] = None) -> "CoordinateTransformer":
        """
        Fit the (rotated) image into the viewport with a margin, centered
        """
        vw = self.viewport_width if viewport_width is None else viewport_width
        vh = self.viewport_height if viewport_height is None else viewport_height
        shown_w, shown_h = self.displayed_size()
        if vw <= 0 or vh <= 0 or shown_w <= 0 or shown_h <= 0:
            return replace(self, viewport_width=vw, viewport_height=vh)

        zoom = self._clamp(min(vw / shown_w, vh / shown_h) * config.FIT_MARGIN)
        cx, cy = self.image_center
        # The image center is the rotation pivot, so it maps to center * zoom + pan
        return replace(
            self,
            viewport_width=vw,
            viewport_height=vh,
            zoom=zoom,
            pan_x=vw / 2 - cx * zoom,
            pan_y=vh / 2 - cy * zoom,
        )
