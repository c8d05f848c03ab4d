"""
Polygon drawing tool

Each click adds a vertex. Clicking near the first vertex or pressing Enter
closes the polygon; Escape discards it.
"""
import logging
from typing import List, Optional, Tuple

from .... import config
from ...annotation.geometry import distance
from ...annotation.models import PolygonAnnotation
from .base import Button, CreationTool, KeyEvent, PointerEvent, ToolState

logger = logging.getLogger(__name__)


class PolygonTool(CreationTool):
    """Click-to-add-vertex polygon drawing"""

    name = "polygon"

    def __init__(self, machine):
        super().__init__(machine)
        self._points: List[Tuple[float, float]] = []
        self._cursor: Optional[Tuple[float, float]] = None

    @property
    def busy(self) -> bool:
        return bool(self._points)

    @property
    def points(self) -> List[Tuple[float, float]]:
        return list(self._points)

    def on_pointer_down(self, x: float, y: float, event: PointerEvent) -> None:
        if event.button != Button.PRIMARY:
            return
        if not self._points:
            if not self.can_start():
                return
            self.machine.set_state(ToolState.DRAWING)

        # Snap distance is in canvas pixels
        if len(self._points) >= config.MIN_POLYGON_POINTS:
            fx, fy = self._points[0]
            if distance(x, y, fx, fy) <= self.machine.tolerance(config.POLYGON_SNAP_DISTANCE):
                self.close()
                return

        self._points.append((x, y))

    def on_pointer_move(self, x: float, y: float, event: PointerEvent) -> None:
        self._cursor = (x, y)

    def on_key(self, event: KeyEvent) -> bool:
        if not self._points:
            return False
        if event.key == "Enter":
            self.close()
            return True
        if event.key == "Escape":
            self.cancel()
            return True
        return False

    def close(self) -> bool:
        """
        Close and commit the polygon being drawn

        Returns:
            False if there are too few vertices (drawing continues)
        """
        if len(self._points) < config.MIN_POLYGON_POINTS:
            logger.warning(f"A polygon needs at least {config.MIN_POLYGON_POINTS} points")
            return False
        polygon = PolygonAnnotation(
            class_id=self.machine.current_class_id,
            points=list(self._points),
            closed=True,
        )
        self.cancel()
        # Zero-area polygons are refused by the store
        return self.machine.commit(polygon) is not None

    def cancel(self) -> None:
        self._points = []
        self.machine.set_idle()

    def preview(self) -> Optional[PolygonAnnotation]:
        if not self._points:
            return None
        points = list(self._points)
        if self._cursor is not None:
            points.append(self._cursor)
        return PolygonAnnotation(class_id=self.machine.current_class_id, points=points, closed=False)
