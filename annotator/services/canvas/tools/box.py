"""
Axis-aligned box drawing tool
"""
from typing import Optional, Tuple

from ...annotation.models import BoxAnnotation
from .base import Button, CreationTool, PointerEvent, ToolState


class BoxTool(CreationTool):
    """Drag from one corner to the opposite corner; release commits"""

    name = "bbox"

    def __init__(self, machine):
        super().__init__(machine)
        self._start: Optional[Tuple[float, float]] = None
        self._current: Optional[BoxAnnotation] = None

    @property
    def busy(self) -> bool:
        return self._current is not None

    def _box_to(self, x: float, y: float) -> BoxAnnotation:
        sx, sy = self._start
        # Negative extents are normalized by the annotation itself
        return BoxAnnotation(
            class_id=self.machine.current_class_id,
            x=sx,
            y=sy,
            width=x - sx,
            height=y - sy,
        )

    def on_pointer_down(self, x: float, y: float, event: PointerEvent) -> None:
        if event.button != Button.PRIMARY or not self.can_start():
            return
        self._start = (x, y)
        self._current = self._box_to(x, y)
        self.machine.set_state(ToolState.DRAWING)

    def on_pointer_move(self, x: float, y: float, event: PointerEvent) -> None:
        if self._current is not None:
            self._current = self._box_to(x, y)

    def on_pointer_up(self, x: float, y: float, event: PointerEvent) -> None:
        if self._current is None:
            return
        box = self._box_to(x, y)
        self.cancel()
        # Boxes below the minimum size are refused by the store
        self.machine.commit(box)

    def cancel(self) -> None:
        self._start = None
        self._current = None
        self.machine.set_idle()

    def preview(self) -> Optional[BoxAnnotation]:
        return self._current
