"""
Mask brush tool

Paints into a working MaskRaster copy. Nothing reaches the store until the
mask is committed (Enter, or 'n' which also starts a fresh mask).

Keys:
    Enter  commit the mask (empty masks are discarded)
    n      commit and start a new mask
    e      toggle erase mode
    [ / ]  shrink / grow the brush
    Escape discard the working mask
"""
import logging
from typing import Optional, Tuple

from .... import config
from ...annotation.models import MaskAnnotation
from ...annotation.raster import MaskRaster
from .base import Button, CreationTool, KeyEvent, PointerEvent, ToolState

logger = logging.getLogger(__name__)


class MaskTool(CreationTool):
    """Freehand mask painting with a round brush"""

    name = "mask"
    idle_state = ToolState.MASKING

    def __init__(self, machine):
        super().__init__(machine)
        self._raster: Optional[MaskRaster] = None
        self._editing_id: Optional[int] = None
        self._editing_class_id: Optional[int] = None
        self._last: Optional[Tuple[float, float]] = None

    @property
    def busy(self) -> bool:
        return self._raster is not None

    @property
    def editing_id(self) -> Optional[int]:
        """Id of the stored mask loaded for editing, if any"""
        return self._editing_id

    @property
    def radius(self) -> float:
        return self.machine.brush_size / 2

    def activate(self) -> None:
        self.machine.set_state(ToolState.MASKING, brush_active=False)

    def on_pointer_down(self, x: float, y: float, event: PointerEvent) -> None:
        if event.button != Button.PRIMARY:
            return
        if self._raster is None:
            if not self.can_start():
                return
            self._raster = MaskRaster(image_size=self.machine.image_size)
        self.machine.set_state(ToolState.MASKING, brush_active=True)
        self._last = (x, y)
        self._raster.stroke([(x, y)], self.radius, erase=self.machine.erase_mode)

    def on_pointer_move(self, x: float, y: float, event: PointerEvent) -> None:
        if self._last is None:
            return
        lx, ly = self._last
        self._raster.stroke(self._raster.interpolate(lx, ly, x, y), self.radius, erase=self.machine.erase_mode)
        self._last = (x, y)

    def on_pointer_up(self, x: float, y: float, event: PointerEvent) -> None:
        if self._last is None:
            return
        self._last = None
        self.machine.set_state(ToolState.MASKING, brush_active=False)

    def on_key(self, event: KeyEvent) -> bool:
        key = event.key
        if key in ("Enter", "n"):
            # The next stroke starts a fresh raster
            self.commit()
            return True
        if key == "e":
            self.machine.erase_mode = not self.machine.erase_mode
            return True
        if key == "[":
            self.machine.set_brush_size(self.machine.brush_size - config.BRUSH_SIZE_STEP)
            return True
        if key == "]":
            self.machine.set_brush_size(self.machine.brush_size + config.BRUSH_SIZE_STEP)
            return True
        if key == "Escape" and self.busy:
            self.cancel()
            return True
        return False

    def load(self, annotation_id: int) -> None:
        """
        Edit an existing mask

        The stored mask is untouched until commit; cancelling keeps it as is.
        """
        annotation = self.machine.store.get(annotation_id)
        if not isinstance(annotation, MaskAnnotation):
            raise ValueError(f"Annotation {annotation_id} is not a mask")
        self.cancel()
        self._raster = annotation.raster.copy()
        self._raster.image_size = self.machine.image_size
        self._editing_id = annotation_id
        self._editing_class_id = annotation.class_id
        self.machine.select(annotation_id)

    def commit(self) -> Optional[MaskAnnotation]:
        """
        Store the working mask

        Returns:
            The stored mask, or None if nothing was stored
        """
        if self._raster is None:
            return None
        raster, editing_id = self._raster, self._editing_id
        class_id = self._editing_class_id if editing_id is not None else self.machine.current_class_id
        self._reset()

        raster.trim()
        if editing_id is not None and editing_id in self.machine.store:
            if raster.is_empty():
                # Erasing a mask completely deletes it
                self.machine.store.remove(editing_id)
                return None
            return self.machine.store.update(editing_id, {"raster": raster})

        return self.machine.commit(MaskAnnotation(class_id=class_id, raster=raster))

    def cancel(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._raster = None
        self._editing_id = None
        self._editing_class_id = None
        self._last = None
        self.machine.set_idle()

    def preview(self) -> Optional[MaskAnnotation]:
        if self._raster is None:
            return None
        class_id = self._editing_class_id if self._editing_id is not None else self.machine.current_class_id
        return MaskAnnotation(id=self._editing_id or 0, class_id=class_id, raster=self._raster)
