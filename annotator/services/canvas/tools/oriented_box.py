"""
Oriented box drawing tool

Boxes are drawn axis-aligned (angle 0) and rotated afterwards with the
select tool's rotation handle or the r / R keys.
"""
from typing import Optional, Tuple

from ...annotation.models import OrientedBoxAnnotation
from .base import Button, CreationTool, PointerEvent, ToolState


class OrientedBoxTool(CreationTool):
    """Drag corner to corner; the box is stored by center, size and angle"""

    name = "obb"

    def __init__(self, machine):
        super().__init__(machine)
        self._start: Optional[Tuple[float, float]] = None
        self._current: Optional[OrientedBoxAnnotation] = None

    @property
    def busy(self) -> bool:
        return self._current is not None

    def _box_to(self, x: float, y: float) -> OrientedBoxAnnotation:
        sx, sy = self._start
        return OrientedBoxAnnotation(
            class_id=self.machine.current_class_id,
            cx=(sx + x) / 2,
            cy=(sy + y) / 2,
            width=abs(x - sx),
            height=abs(y - sy),
            angle=0.0,
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
        self.machine.commit(box)

    def cancel(self) -> None:
        self._start = None
        self._current = None
        self.machine.set_idle()

    def preview(self) -> Optional[OrientedBoxAnnotation]:
        return self._current
