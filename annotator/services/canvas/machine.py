"""
Tool state machine

Routes pointer and keyboard input to the active tool, owns view state
(through the CoordinateTransformer), the selection, the current class and
brush settings, and publishes a declarative PresentationState whenever any of
them change. It never draws anything itself.

States:
    idle      no operation in progress
    drawing   a creation tool is building new geometry
    editing   the select tool is dragging a handle of an annotation
    panning   the view is being dragged
    masking   the mask tool is active (brush_active while a stroke is down)
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from ... import config
from ...errors import DegenerateAnnotationError, InvariantViolation
from ..annotation.events import ANNOTATIONS_CHANGED, PRESENTATION_CHANGED, AnnotationEvent, ChangeKind, EventBus
from ..annotation.models import Annotation, AnnotationClass
from ..annotation.project import ProjectType
from ..annotation.store import AnnotationStore
from .tools import Button, EditHandle, KeyEvent, PointerEvent, Tool, ToolFactory, ToolState
from .transform import CoordinateTransformer

logger = logging.getLogger(__name__)

TOOLS_BY_PROJECT_TYPE: Dict[ProjectType, Tuple[str, ...]] = {
    ProjectType.BBOX: ("bbox", "select", "pan"),
    ProjectType.OBB: ("obb", "select", "pan"),
    ProjectType.POLYGON: ("polygon", "select", "pan"),
    ProjectType.MASK: ("mask", "select", "pan"),
    ProjectType.KEYPOINTS: ("keypoint", "select", "pan"),
}


@dataclass(frozen=True)
class PresentationState:
    """Everything a view needs to present the editor, as plain values"""
    tool: str
    state: ToolState
    handle: Optional[EditHandle]
    brush_active: bool
    selected_id: Optional[int]
    selected_joint: Optional[int]
    current_class_id: Optional[int]
    zoom: float
    rotation: float
    show_mask_controls: bool
    brush_size: int
    erase_mode: bool
    can_undo: bool
    can_redo: bool
    tools: Tuple[str, ...]


class ToolStateMachine:
    """
    Single active tool plus the shared editing state it operates on

    Example:
        machine = ToolStateMachine(store, transformer, classes, ProjectType.BBOX)
        machine.pointer_down(PointerEvent(100, 100))
        machine.pointer_move(PointerEvent(200, 180))
        machine.pointer_up(PointerEvent(200, 180))   # commits a box
    """

    def __init__(
        self,
        store: AnnotationStore,
        transformer: CoordinateTransformer,
        classes: Optional[List[AnnotationClass]] = None,
        project_type: Optional[ProjectType] = None,
        events: Optional[EventBus] = None,
    ):
        """
        Initialize machine

        Args:
            store: Annotations of the open image
            transformer: Initial view
            classes: Project class list (shared, read live)
            project_type: Restricts the available tools; all tools if None
            events: Bus for presentation updates (the store's bus if None)
        """
        self.store = store
        self.transformer = transformer
        self.classes: List[AnnotationClass] = classes if classes is not None else []
        self.project_type = ProjectType(project_type) if project_type is not None else None
        self.events = events if events is not None else store.events

        if self.project_type is not None:
            self.available_tools: Tuple[str, ...] = TOOLS_BY_PROJECT_TYPE[self.project_type]
        else:
            self.available_tools = tuple(ToolFactory.available_tools())

        self._current_class_id: Optional[int] = None
        self.selected_id: Optional[int] = None
        self.selected_joint: Optional[int] = None
        self.brush_size = config.DEFAULT_BRUSH_SIZE
        self.erase_mode = False

        self.state = ToolState.IDLE
        self.handle: Optional[EditHandle] = None
        self.brush_active = False

        self._pointer_down = False
        self._pan_last: Optional[Tuple[float, float]] = None
        self._state_before_pan: Optional[Tuple[ToolState, Optional[EditHandle], bool]] = None
        self._last_presentation: Optional[PresentationState] = None

        self._unsubscribe = self.store.events.on(ANNOTATIONS_CHANGED, self._on_store_change)

        self.tool: Tool = ToolFactory.create(self.available_tools[0], self)
        self.tool.activate()
        self._publish()

    # ------------------------------------------------------------------
    # Shared state used by tools
    # ------------------------------------------------------------------

    @property
    def image_size(self) -> Tuple[int, int]:
        return int(self.transformer.image_width), int(self.transformer.image_height)

    @property
    def current_class_id(self) -> Optional[int]:
        """Current class, falling back to the first class if the chosen one is gone"""
        ids = [c.id for c in self.classes]
        if self._current_class_id in ids:
            return self._current_class_id
        return ids[0] if ids else None

    @property
    def current_class(self) -> Optional[AnnotationClass]:
        class_id = self.current_class_id
        return next((c for c in self.classes if c.id == class_id), None)

    @property
    def panning(self) -> bool:
        return self._pan_last is not None

    def tolerance(self, canvas_pixels: float) -> float:
        """Canvas-pixel tolerance expressed in image pixels"""
        return self.transformer.scale_to_image(canvas_pixels)

    def set_state(self, state: ToolState, handle: Optional[EditHandle] = None, brush_active: bool = False) -> None:
        self.state = state
        self.handle = handle
        self.brush_active = brush_active

    def set_idle(self) -> None:
        self.set_state(self.tool.idle_state)

    def selected_annotation(self) -> Optional[Annotation]:
        if self.selected_id is None or self.selected_id not in self.store:
            return None
        return self.store.get(self.selected_id)

    def select(self, annotation_id: int) -> None:
        if annotation_id != self.selected_id:
            self.selected_joint = None
        self.selected_id = annotation_id

    def clear_selection(self) -> None:
        self.selected_id = None
        self.selected_joint = None

    def commit(self, annotation: Annotation) -> Optional[Annotation]:
        """
        Add a finished annotation to the store and select it

        Returns:
            The stored annotation, or None if it was too small / empty
        """
        try:
            stored = self.store.add(annotation)
        except DegenerateAnnotationError as e:
            logger.info(f"Discarded annotation: {e}")
            return None
        self.select(stored.id)
        return stored

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def set_tool(self, name: str) -> None:
        """
        Switch the active tool, discarding any uncommitted work

        Raises:
            ValueError: If the tool is not available for this project type
        """
        if name not in self.available_tools:
            raise ValueError(
                f"Tool '{name}' is not available. "
                f"Available tools: {', '.join(self.available_tools)}"
            )
        if name == self.tool.name:
            return
        self.tool.cancel()
        self.end_pan()
        self.tool = ToolFactory.create(name, self)
        self.set_idle()
        self.tool.activate()
        self._publish()

    def set_class(self, class_id: int) -> None:
        if not any(c.id == class_id for c in self.classes):
            raise ValueError(f"Unknown class: {class_id}")
        self._current_class_id = class_id
        self._publish()

    def select_class_index(self, index: int) -> bool:
        """Pick the n-th class (0-based); False if there is no such class"""
        if not 0 <= index < len(self.classes):
            return False
        self.set_class(self.classes[index].id)
        return True

    def set_brush_size(self, size: int) -> None:
        self.brush_size = max(config.MIN_BRUSH_SIZE, min(config.MAX_BRUSH_SIZE, int(size)))
        self._publish()

    def delete_selected(self) -> bool:
        """Delete the selected annotation (one undo step)"""
        if self.selected_id is None or self.selected_id not in self.store:
            return False
        if self.tool.busy:
            self.tool.cancel()
        self.store.remove(self.selected_id)
        self.clear_selection()
        self._publish()
        return True

    def edit_mask(self, annotation_id: int) -> bool:
        """Load a stored mask into the mask tool"""
        if "mask" not in self.available_tools:
            logger.warning("Mask editing is not available for this project")
            return False
        self.set_tool("mask")
        self.tool.load(annotation_id)
        self._publish()
        return True

    def undo(self) -> bool:
        if self.tool.busy:
            self.tool.cancel()
        done = self.store.undo()
        self._publish()
        return done

    def redo(self) -> bool:
        if self.tool.busy:
            self.tool.cancel()
        done = self.store.redo()
        self._publish()
        return done

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def set_transformer(self, transformer: CoordinateTransformer) -> None:
        self.transformer = transformer
        self._publish()

    def zoom_in(self) -> None:
        self.set_transformer(self.transformer.zoom_in())

    def zoom_out(self) -> None:
        self.set_transformer(self.transformer.zoom_out())

    def fit(self) -> None:
        self.set_transformer(self.transformer.fitted())

    def wheel(self, delta_y: float, x: float, y: float) -> None:
        """Wheel zoom anchored at canvas point (x, y)"""
        self.set_transformer(self.transformer.wheel(delta_y, (x, y)))

    def rotate_view(self, degrees: float) -> None:
        self.set_transformer(self.transformer.rotated(degrees))

    def begin_pan(self, event: PointerEvent) -> None:
        """Start dragging the view from a canvas position"""
        self._state_before_pan = (self.state, self.handle, self.brush_active)
        self._pan_last = (event.x, event.y)
        self.set_state(ToolState.PANNING)

    def end_pan(self) -> None:
        if self._pan_last is None:
            return
        self._pan_last = None
        state, handle, brush_active = self._state_before_pan
        self._state_before_pan = None
        self.set_state(state, handle, brush_active)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def _to_image(self, event: PointerEvent) -> Tuple[float, float]:
        return self.transformer.to_image_space(event.x, event.y)

    def pointer_down(self, event: PointerEvent) -> None:
        """
        Raises:
            InvariantViolation: If a previous press has not been released
        """
        if self._pointer_down:
            raise InvariantViolation(f"Pointer down while {self.state.value} is in flight")
        self._pointer_down = True

        # Middle button or Ctrl+drag pans from any tool
        if event.button == Button.MIDDLE or (event.button == Button.PRIMARY and event.ctrl):
            self.begin_pan(event)
        else:
            x, y = self._to_image(event)
            self.tool.on_pointer_down(x, y, event)
        self._publish()

    def pointer_move(self, event: PointerEvent) -> None:
        if self._pan_last is not None:
            lx, ly = self._pan_last
            self._pan_last = (event.x, event.y)
            self.transformer = self.transformer.panned(event.x - lx, event.y - ly)
        else:
            x, y = self._to_image(event)
            self.tool.on_pointer_move(x, y, event)
        self._publish()

    def pointer_up(self, event: PointerEvent) -> None:
        if not self._pointer_down:
            return
        self._pointer_down = False
        if self._pan_last is not None:
            self.end_pan()
        else:
            x, y = self._to_image(event)
            self.tool.on_pointer_up(x, y, event)
        self._publish()

    def double_click(self, event: PointerEvent) -> None:
        x, y = self._to_image(event)
        self.tool.on_double_click(x, y, event)
        self._publish()

    def key(self, event: Union[KeyEvent, str]) -> bool:
        """
        Handle a key press

        The active tool gets the first chance to consume the key.

        Returns:
            True if the key did something
        """
        if isinstance(event, str):
            event = KeyEvent(event)
        handled = self._handle_key(event)
        self._publish()
        return handled

    def _handle_key(self, event: KeyEvent) -> bool:
        key = event.key

        if event.ctrl and key.lower() == "z":
            return self.redo() if event.shift else self.undo()
        if event.ctrl and key.lower() == "y":
            return self.redo()

        if self.tool.on_key(event):
            return True

        if key == "Escape":
            if self.tool.busy:
                self.tool.cancel()
            else:
                self.clear_selection()
            return True
        if key in ("Delete", "Backspace", "d"):
            return self.delete_selected()
        if len(key) == 1 and key in "123456789":
            return self.select_class_index(int(key) - 1)
        if key in ("+", "="):
            self.zoom_in()
            return True
        if key == "-":
            self.zoom_out()
            return True
        if key == "0":
            self.fit()
            return True
        return False

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def presentation(self) -> PresentationState:
        return PresentationState(
            tool=self.tool.name,
            state=self.state,
            handle=self.handle,
            brush_active=self.brush_active,
            selected_id=self.selected_id,
            selected_joint=self.selected_joint,
            current_class_id=self.current_class_id,
            zoom=self.transformer.zoom,
            rotation=self.transformer.rotation,
            show_mask_controls=self.tool.name == "mask",
            brush_size=self.brush_size,
            erase_mode=self.erase_mode,
            can_undo=self.store.can_undo,
            can_redo=self.store.can_redo,
            tools=self.available_tools,
        )

    def _publish(self) -> None:
        state = self.presentation()
        if state != self._last_presentation:
            self._last_presentation = state
            self.events.emit(PRESENTATION_CHANGED, state)

    def _on_store_change(self, event: AnnotationEvent) -> None:
        if event.kind == ChangeKind.REMOVED and self.selected_id in event.annotation_ids:
            self.clear_selection()

    def close(self) -> None:
        """Discard uncommitted work and stop listening to the store"""
        self.tool.cancel()
        self._unsubscribe()
