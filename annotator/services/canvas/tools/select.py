"""
Selection and editing tool

Pressing on a handle of the selected annotation resizes / rotates / moves
that handle; pressing on an annotation body selects and moves it. Edits are
applied live while dragging and recorded as a single undo step on release.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .... import config
from ...annotation.geometry import rotate_point, to_local
from ...annotation.models import (
    Annotation,
    BoxAnnotation,
    Keypoint,
    KeypointAnnotation,
    MaskAnnotation,
    OrientedBoxAnnotation,
    Point,
    PolygonAnnotation,
)
from .base import Button, EditHandle, HandleKind, KeyEvent, PointerEvent, Tool, ToolState
from .keypoint import cycle_joint_visibility

logger = logging.getLogger(__name__)

HANDLE_POSITIONS = ("nw", "n", "ne", "e", "se", "s", "sw", "w")


def handle_offsets(width: float, height: float) -> Dict[str, Tuple[float, float]]:
    """Resize handle positions relative to a rectangle's center"""
    hw, hh = width / 2, height / 2
    return {
        "nw": (-hw, -hh),
        "n": (0.0, -hh),
        "ne": (hw, -hh),
        "e": (hw, 0.0),
        "se": (hw, hh),
        "s": (0.0, hh),
        "sw": (-hw, hh),
        "w": (-hw, 0.0),
    }


def rotation_handle_position(obb: OrientedBoxAnnotation, zoom: float) -> Tuple[float, float]:
    """Image-space position of the rotation handle above an oriented box"""
    offset = max(obb.width, obb.height) / 2 + config.ROTATION_HANDLE_OFFSET / zoom
    return rotate_point(obb.cx, obb.cy - offset, obb.cx, obb.cy, obb.angle)


@dataclass
class _Drag:
    annotation_id: int
    handle: EditHandle
    start: Tuple[float, float]
    before: Annotation
    start_angle: float = 0.0
    applied: Tuple[float, float] = (0.0, 0.0)
    moved: bool = False


class SelectTool(Tool):
    """Select, move, resize and rotate existing annotations"""

    name = "select"

    def __init__(self, machine):
        super().__init__(machine)
        self._drag: Optional[_Drag] = None

    @property
    def busy(self) -> bool:
        return self._drag is not None

    # ------------------------------------------------------------------
    # Hit testing
    # ------------------------------------------------------------------

    def handle_at(self, annotation: Annotation, x: float, y: float) -> Optional[EditHandle]:
        """Handle of a selected annotation under an image-space point"""
        threshold = self.machine.tolerance(config.HANDLE_SIZE * 2)

        if isinstance(annotation, BoxAnnotation):
            cx = annotation.x + annotation.width / 2
            cy = annotation.y + annotation.height / 2
            for position, (ox, oy) in handle_offsets(annotation.width, annotation.height).items():
                if abs(x - (cx + ox)) <= threshold and abs(y - (cy + oy)) <= threshold:
                    return EditHandle(HandleKind.RESIZE, position=position)

        elif isinstance(annotation, OrientedBoxAnnotation):
            hx, hy = rotation_handle_position(annotation, self.machine.transformer.zoom)
            rotate_threshold = self.machine.tolerance(config.ROTATION_HANDLE_THRESHOLD)
            if abs(x - hx) <= rotate_threshold and abs(y - hy) <= rotate_threshold:
                return EditHandle(HandleKind.ROTATE)
            lx, ly = to_local(x, y, annotation.cx, annotation.cy, annotation.angle)
            for position, (ox, oy) in handle_offsets(annotation.width, annotation.height).items():
                if abs(lx - ox) <= threshold and abs(ly - oy) <= threshold:
                    return EditHandle(HandleKind.RESIZE, position=position)

        elif isinstance(annotation, PolygonAnnotation):
            index = annotation.vertex_at(x, y, threshold)
            if index is not None:
                return EditHandle(HandleKind.VERTEX, index=index)

        elif isinstance(annotation, KeypointAnnotation):
            index = annotation.keypoint_at(x, y, self.machine.tolerance(config.KEYPOINT_HIT_RADIUS))
            if index is not None:
                return EditHandle(HandleKind.KEYPOINT, index=index)

        return None

    # ------------------------------------------------------------------
    # Pointer handling
    # ------------------------------------------------------------------

    def on_pointer_down(self, x: float, y: float, event: PointerEvent) -> None:
        if event.button == Button.SECONDARY:
            self._delete_vertex_at(x, y)
            return
        if event.button != Button.PRIMARY:
            return

        selected = self.machine.selected_annotation()
        if selected is not None:
            handle = self.handle_at(selected, x, y)
            if handle is not None:
                self._start_drag(selected, handle, x, y)
                return

        hit = self.machine.store.find_at(x, y, tolerance=self.machine.tolerance(config.KEYPOINT_HIT_RADIUS))
        if hit is None:
            self.machine.clear_selection()
            return

        self.machine.select(hit.id)
        handle = self.handle_at(hit, x, y) if isinstance(hit, KeypointAnnotation) else None
        self._start_drag(hit, handle or EditHandle(HandleKind.MOVE), x, y)

    def _start_drag(self, annotation: Annotation, handle: EditHandle, x: float, y: float) -> None:
        drag = _Drag(annotation.id, handle, (x, y), annotation.copy())
        if handle.kind == HandleKind.ROTATE:
            drag.start_angle = math.degrees(math.atan2(y - annotation.cy, x - annotation.cx))
        if handle.kind == HandleKind.KEYPOINT:
            self.machine.selected_joint = handle.index
        self._drag = drag
        self.machine.set_state(ToolState.EDITING, handle=handle)

    def on_pointer_move(self, x: float, y: float, event: PointerEvent) -> None:
        drag = self._drag
        if drag is None:
            return
        sx, sy = drag.start
        if (x, y) == (sx, sy) and not drag.moved:
            return
        drag.moved = True

        annotation = self.machine.store.get(drag.annotation_id)
        if drag.handle.kind == HandleKind.MOVE:
            self._move(drag, annotation, x - sx, y - sy)
        else:
            patch = self._handle_patch(drag, x, y)
            self.machine.store.update(drag.annotation_id, patch, record=False)

    def _move(self, drag: _Drag, annotation: Annotation, dx: float, dy: float) -> None:
        if isinstance(annotation, MaskAnnotation):
            # Masks move in whole pixels; track the applied integer offset
            dx, dy = round(dx), round(dy)
        step_x, step_y = dx - drag.applied[0], dy - drag.applied[1]
        if step_x or step_y:
            annotation.translate(step_x, step_y)
            drag.applied = (dx, dy)
            self.machine.store.update(drag.annotation_id, {}, record=False)

    def _handle_patch(self, drag: _Drag, x: float, y: float) -> Dict[str, Any]:
        origin = drag.before
        handle = drag.handle

        if handle.kind == HandleKind.RESIZE and isinstance(origin, BoxAnnotation):
            return self._resize_box(origin, handle.position, x, y)

        if handle.kind == HandleKind.RESIZE and isinstance(origin, OrientedBoxAnnotation):
            # Symmetric about the center
            lx, ly = to_local(x, y, origin.cx, origin.cy, origin.angle)
            width, height = origin.width, origin.height
            if handle.position in ("nw", "ne", "se", "sw", "e", "w"):
                width = abs(lx) * 2
            if handle.position in ("nw", "ne", "se", "sw", "n", "s"):
                height = abs(ly) * 2
            return {
                "width": max(width, config.MIN_OBB_SIZE),
                "height": max(height, config.MIN_OBB_SIZE),
            }

        if handle.kind == HandleKind.ROTATE and isinstance(origin, OrientedBoxAnnotation):
            current = math.degrees(math.atan2(y - origin.cy, x - origin.cx))
            return {"angle": origin.angle + current - drag.start_angle}

        if handle.kind == HandleKind.VERTEX and isinstance(origin, PolygonAnnotation):
            points = [Point(p.x, p.y) for p in origin.points]
            points[handle.index] = Point(x, y)
            return {"points": points}

        if handle.kind == HandleKind.KEYPOINT and isinstance(origin, KeypointAnnotation):
            keypoints = [Keypoint(kp.x, kp.y, kp.visibility) for kp in origin.keypoints]
            keypoints[handle.index] = Keypoint(x, y, keypoints[handle.index].visibility)
            return {"keypoints": keypoints}

        return {}

    @staticmethod
    def _resize_box(origin: BoxAnnotation, position: str, x: float, y: float) -> Dict[str, float]:
        left, top = origin.x, origin.y
        right, bottom = origin.x + origin.width, origin.y + origin.height
        if "w" in position:
            left = x
        if "e" in position:
            right = x
        if "n" in position:
            top = y
        if "s" in position:
            bottom = y
        # Dragging past the opposite edge flips the box; normalize() fixes signs
        return {"x": left, "y": top, "width": right - left, "height": bottom - top}

    def on_pointer_up(self, x: float, y: float, event: PointerEvent) -> None:
        drag = self._drag
        if drag is None:
            return
        self._drag = None
        self.machine.set_idle()
        if not drag.moved or drag.annotation_id not in self.machine.store:
            return
        if self.machine.store.get(drag.annotation_id).is_degenerate():
            logger.warning(f"Edit would leave annotation {drag.annotation_id} degenerate; reverted")
            self._restore(drag)
            return
        self.machine.store.record_update(drag.annotation_id, drag.before)

    def on_double_click(self, x: float, y: float, event: PointerEvent) -> None:
        hit = self.machine.store.find_at(x, y)
        if isinstance(hit, MaskAnnotation):
            self.machine.edit_mask(hit.id)

    def _delete_vertex_at(self, x: float, y: float) -> None:
        selected = self.machine.selected_annotation()
        if not isinstance(selected, PolygonAnnotation):
            return
        index = selected.vertex_at(x, y, self.machine.tolerance(config.HANDLE_SIZE * 2))
        if index is None:
            return
        if len(selected.points) <= config.MIN_POLYGON_POINTS:
            logger.warning(f"A polygon needs at least {config.MIN_POLYGON_POINTS} points")
            return
        points = [Point(p.x, p.y) for i, p in enumerate(selected.points) if i != index]
        self.machine.store.update(selected.id, {"points": points})

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def on_key(self, event: KeyEvent) -> bool:
        if event.key == "Escape" and self._drag is not None:
            self.cancel()
            return True
        if event.key in ("r", "R"):
            selected = self.machine.selected_annotation()
            if isinstance(selected, OrientedBoxAnnotation) and self._drag is None:
                step = -config.OBB_ROTATE_STEP if event.key == "R" else config.OBB_ROTATE_STEP
                self.machine.store.update(selected.id, {"angle": selected.angle + step})
                return True
            return False
        if event.key == "t":
            return cycle_joint_visibility(self.machine)
        return False

    def cancel(self) -> None:
        """Abandon a drag, restoring the annotation to where it started"""
        drag = self._drag
        self._drag = None
        if drag is not None and drag.moved and drag.annotation_id in self.machine.store:
            self._restore(drag)
        self.machine.set_idle()

    def _restore(self, drag: _Drag) -> None:
        restore = drag.before.copy()
        patch = {name: getattr(restore, name) for name in restore.editable_fields()}
        self.machine.store.update(drag.annotation_id, patch, record=False)
