"""
Mask Raster - single-channel coverage buffer for brush-painted masks

The buffer only covers the region that has actually been painted (clipped to
the image bounds), so memory grows with the mask rather than with the image.
Coverage is stored as uint8: 0 = outside, 255 = fully inside, with an
anti-aliased rim at brush edges.
"""
import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np
from PIL import Image

from ... import config
from ...utils import base64_to_image, image_to_base64

logger = logging.getLogger(__name__)

Region = Tuple[int, int, int, int]  # x0, y0, x1, y1 (exclusive), image space


class MaskRaster:
    """
    Coverage buffer anchored at an integer origin in image space

    Paint and erase are per-pixel max/min operations with a deterministic
    disc, so repeating a dab is idempotent and the result depends only on the
    input sequence.
    """

    def __init__(
        self,
        image_size: Optional[Tuple[int, int]] = None,
        origin: Tuple[int, int] = (0, 0),
        data: Optional[np.ndarray] = None,
    ):
        """
        Initialize raster

        Args:
            image_size: (width, height) of the parent image; painting is clipped
                to it. None disables clipping.
            origin: Image-space position of the buffer's top-left pixel
            data: Optional initial coverage buffer (2D uint8)
        """
        self.image_size = image_size
        self.origin_x, self.origin_y = int(origin[0]), int(origin[1])
        if data is None:
            self._data = np.zeros((0, 0), dtype=np.uint8)
        else:
            data = np.asarray(data)
            if data.ndim != 2:
                raise ValueError(f"Mask data must be 2D, got shape {data.shape}")
            self._data = np.ascontiguousarray(data, dtype=np.uint8)

    # ------------------------------------------------------------------
    # Buffer access
    # ------------------------------------------------------------------

    @property
    def data(self) -> np.ndarray:
        """Coverage buffer (rows = y, columns = x), relative to origin"""
        return self._data

    @property
    def origin(self) -> Tuple[int, int]:
        return self.origin_x, self.origin_y

    @property
    def width(self) -> int:
        return self._data.shape[1]

    @property
    def height(self) -> int:
        return self._data.shape[0]

    def is_empty(self) -> bool:
        """True when no pixel has any coverage"""
        return self._data.size == 0 or not self._data.any()

    def coverage_at(self, x: float, y: float) -> int:
        """Coverage (0-255) of the pixel containing image point (x, y)"""
        col = math.floor(x) - self.origin_x
        row = math.floor(y) - self.origin_y
        if 0 <= row < self.height and 0 <= col < self.width:
            return int(self._data[row, col])
        return 0

    def contains(self, x: float, y: float, threshold: int = config.MASK_COVERAGE_THRESHOLD) -> bool:
        return self.coverage_at(x, y) >= threshold

    def bounds(self) -> Optional[Tuple[int, int, int, int]]:
        """
        Tight image-space bounds of covered pixels

        Returns:
            (x, y, width, height) or None if the mask is empty
        """
        if self.is_empty():
            return None
        rows = np.flatnonzero(self._data.any(axis=1))
        cols = np.flatnonzero(self._data.any(axis=0))
        return (
            self.origin_x + int(cols[0]),
            self.origin_y + int(rows[0]),
            int(cols[-1] - cols[0] + 1),
            int(rows[-1] - rows[0] + 1),
        )

    # ------------------------------------------------------------------
    # Painting
    # ------------------------------------------------------------------

    def paint(self, x: float, y: float, radius: float) -> None:
        """Paint a disc of the given radius centered at image point (x, y)"""
        self.stroke([(x, y)], radius, erase=False)

    def erase(self, x: float, y: float, radius: float) -> None:
        """Clear a disc of the given radius centered at image point (x, y)"""
        self.stroke([(x, y)], radius, erase=True)

    def stroke(self, points: Sequence[Tuple[float, float]], radius: float, erase: bool = False) -> None:
        """
        Apply a sequence of brush dabs

        The buffer is grown once to cover every dab before any is applied.

        Args:
            points: Image-space dab centers
            radius: Brush radius in image pixels
            erase: Clear instead of paint
        """
        if radius <= 0 or not points:
            return

        regions = [r for r in (self._dab_region(px, py, radius) for px, py in points) if r is not None]
        if not regions:
            return

        if not erase:
            self._ensure_region(
                min(r[0] for r in regions),
                min(r[1] for r in regions),
                max(r[2] for r in regions),
                max(r[3] for r in regions),
            )

        for (px, py), region in zip(points, regions):
            self._apply_dab(px, py, radius, region, erase)

    def interpolate(self, x1: float, y1: float, x2: float, y2: float) -> List[Tuple[float, float]]:
        """
        Dab centers between two pointer samples (inclusive)

        Spacing is two image pixels, matching the brush sampling of the editor.
        """
        dist = math.hypot(x2 - x1, y2 - y1)
        steps = max(1, int(dist // 2))
        return [(x1 + (x2 - x1) * i / steps, y1 + (y2 - y1) * i / steps) for i in range(steps + 1)]

    def _dab_region(self, x: float, y: float, radius: float) -> Optional[Region]:
        x0 = math.floor(x - radius - 1)
        y0 = math.floor(y - radius - 1)
        x1 = math.ceil(x + radius + 1)
        y1 = math.ceil(y + radius + 1)
        if self.image_size is not None:
            width, height = self.image_size
            x0, y0 = max(x0, 0), max(y0, 0)
            x1, y1 = min(x1, width), min(y1, height)
        if x1 <= x0 or y1 <= y0:
            return None
        return x0, y0, x1, y1

    def _ensure_region(self, x0: int, y0: int, x1: int, y1: int) -> None:
        """Grow the buffer so it covers the image-space region [x0, x1) x [y0, y1)"""
        if self._data.size == 0:
            self.origin_x, self.origin_y = x0, y0
            self._data = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
            return

        cur_x1 = self.origin_x + self.width
        cur_y1 = self.origin_y + self.height
        nx0, ny0 = min(x0, self.origin_x), min(y0, self.origin_y)
        nx1, ny1 = max(x1, cur_x1), max(y1, cur_y1)
        if (nx0, ny0, nx1, ny1) == (self.origin_x, self.origin_y, cur_x1, cur_y1):
            return

        grown = np.zeros((ny1 - ny0, nx1 - nx0), dtype=np.uint8)
        oy, ox = self.origin_y - ny0, self.origin_x - nx0
        grown[oy:oy + self.height, ox:ox + self.width] = self._data
        self._data = grown
        self.origin_x, self.origin_y = nx0, ny0

    def _apply_dab(self, x: float, y: float, radius: float, region: Region, erase: bool) -> None:
        # Intersect the dab region with the current buffer
        x0 = max(region[0], self.origin_x)
        y0 = max(region[1], self.origin_y)
        x1 = min(region[2], self.origin_x + self.width)
        y1 = min(region[3], self.origin_y + self.height)
        if x1 <= x0 or y1 <= y0:
            return

        # Coverage of each pixel center by the disc, 1px linear rim
        xs = np.arange(x0, x1, dtype=np.float64) + 0.5
        ys = np.arange(y0, y1, dtype=np.float64) + 0.5
        dist = np.hypot(xs[np.newaxis, :] - x, ys[:, np.newaxis] - y)
        coverage = np.clip(radius + 0.5 - dist, 0.0, 1.0)
        dab = np.round(coverage * 255).astype(np.uint8)

        rows = slice(y0 - self.origin_y, y1 - self.origin_y)
        cols = slice(x0 - self.origin_x, x1 - self.origin_x)
        if erase:
            np.minimum(self._data[rows, cols], 255 - dab, out=self._data[rows, cols])
        else:
            np.maximum(self._data[rows, cols], dab, out=self._data[rows, cols])

    # ------------------------------------------------------------------
    # Whole-buffer operations
    # ------------------------------------------------------------------

    def trim(self) -> None:
        """Crop the buffer to its covered pixels"""
        bounds = self.bounds()
        if bounds is None:
            self._data = np.zeros((0, 0), dtype=np.uint8)
            return
        x, y, w, h = bounds
        row0, col0 = y - self.origin_y, x - self.origin_x
        self._data = self._data[row0:row0 + h, col0:col0 + w].copy()
        self.origin_x, self.origin_y = x, y

    def translate(self, dx: int, dy: int) -> None:
        """Move the mask by whole pixels"""
        self.origin_x += int(dx)
        self.origin_y += int(dy)

    def copy(self) -> "MaskRaster":
        return MaskRaster(image_size=self.image_size, origin=self.origin, data=self._data.copy())

    def release(self) -> None:
        """Drop the pixel buffer (called when the owning annotation is deleted)"""
        self._data = np.zeros((0, 0), dtype=np.uint8)

    def to_array(self, width: int, height: int) -> np.ndarray:
        """Render coverage into a full (height, width) image-space array"""
        full = np.zeros((height, width), dtype=np.uint8)
        x0, y0 = max(self.origin_x, 0), max(self.origin_y, 0)
        x1 = min(self.origin_x + self.width, width)
        y1 = min(self.origin_y + self.height, height)
        if x1 > x0 and y1 > y0:
            full[y0:y1, x0:x1] = self._data[y0 - self.origin_y:y1 - self.origin_y,
                                            x0 - self.origin_x:x1 - self.origin_x]
        return full

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_data(self) -> Dict[str, Any]:
        """
        Serialize to the persisted mask shape

        Returns:
            Dict with PNG data URL of the trimmed coverage plus its placement
        """
        trimmed = self.copy()
        trimmed.trim()
        if trimmed.width == 0:
            return {"imageData": "", "x": 0, "y": 0, "width": 0, "height": 0}
        return {
            "imageData": image_to_base64(Image.fromarray(trimmed.data)),
            "x": trimmed.origin_x,
            "y": trimmed.origin_y,
            "width": trimmed.width,
            "height": trimmed.height,
        }

    @classmethod
    def from_data(cls, data: Dict[str, Any], image_size: Optional[Tuple[int, int]] = None) -> "MaskRaster":
        """
        Deserialize from the persisted mask shape

        Colored RGBA masks use their alpha channel as coverage.

        Raises:
            ValueError: If the image data cannot be decoded
        """
        origin = (int(data.get("x", 0)), int(data.get("y", 0)))
        if not data.get("imageData"):
            return cls(image_size=image_size, origin=origin)

        image = base64_to_image(data["imageData"])
        if image.mode in ("RGBA", "LA", "PA"):
            coverage = image.getchannel("A")
        else:
            coverage = image.convert("L")

        width, height = int(data.get("width", coverage.width)), int(data.get("height", coverage.height))
        if coverage.size != (width, height):
            coverage = coverage.resize((width, height), Image.Resampling.NEAREST)
        return cls(image_size=image_size, origin=origin, data=np.array(coverage, dtype=np.uint8))

    @classmethod
    def from_array(
        cls,
        array: np.ndarray,
        origin: Tuple[int, int] = (0, 0),
        image_size: Optional[Tuple[int, int]] = None,
    ) -> "MaskRaster":
        """Wrap an existing coverage array (copied, then trimmed)"""
        raster = cls(image_size=image_size, origin=origin, data=np.array(array, dtype=np.uint8))
        raster.trim()
        return raster

    # ------------------------------------------------------------------
    # Export-time polygon conversion
    # ------------------------------------------------------------------

    def to_polygons(self, threshold: int = config.MASK_COVERAGE_THRESHOLD) -> List[List[Tuple[float, float]]]:
        """
        Trace outer contours of the covered region

        Only meant for export writers; editing never goes through polygons.

        Returns:
            List of image-space vertex lists (each with at least 3 vertices)
        """
        if self.is_empty():
            return []
        binary = (self._data >= threshold).astype(np.uint8)
        contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

        polygons = []
        for contour in contours:
            if len(contour) < 3:
                continue
            polygons.append([
                (float(px + self.origin_x), float(py + self.origin_y))
                for px, py in contour.reshape(-1, 2)
            ])
        return polygons

    @classmethod
    def from_polygon(
        cls,
        points: Sequence[Tuple[float, float]],
        image_size: Optional[Tuple[int, int]] = None,
    ) -> "MaskRaster":
        """Rasterize a polygon into a new mask (used when importing polygon exports)"""
        if len(points) < 3:
            return cls(image_size=image_size)

        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        x0, y0 = math.floor(min(xs)), math.floor(min(ys))
        x1, y1 = math.ceil(max(xs)) + 1, math.ceil(max(ys)) + 1
        if image_size is not None:
            x0, y0 = max(x0, 0), max(y0, 0)
            x1, y1 = min(x1, image_size[0]), min(y1, image_size[1])
        if x1 <= x0 or y1 <= y0:
            return cls(image_size=image_size)

        buffer = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
        shifted = np.array([[round(px - x0), round(py - y0)] for px, py in points], dtype=np.int32)
        cv2.fillPoly(buffer, [shifted], 255)
        return cls.from_array(buffer, origin=(x0, y0), image_size=image_size)

    def __repr__(self) -> str:
        return f"MaskRaster(origin={self.origin}, size=({self.width}, {self.height}))"
