"""
Pan tool - dragging moves the view, never the annotations
"""
from .base import Button, PointerEvent, Tool


class PanTool(Tool):

    name = "pan"

    @property
    def busy(self) -> bool:
        return self.machine.panning

    def on_pointer_down(self, x: float, y: float, event: PointerEvent) -> None:
        if event.button == Button.PRIMARY:
            self.machine.begin_pan(event)

    def cancel(self) -> None:
        self.machine.end_pan()
