"""
Base classes for editing tools

A tool receives pointer input already mapped to image space by the state
machine, and reports its progress through the machine's state.
"""
import logging
from abc import ABC
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, ClassVar, Optional

from ...annotation.models import Annotation

if TYPE_CHECKING:
    from ..machine import ToolStateMachine

logger = logging.getLogger(__name__)


class Button(IntEnum):
    """Pointer buttons (DOM numbering)"""
    PRIMARY = 0
    MIDDLE = 1
    SECONDARY = 2


@dataclass(frozen=True)
class PointerEvent:
    """
    Pointer input in canvas coordinates

    Attributes:
        x, y: Canvas position
        button: Pressed button
        ctrl, shift, alt: Modifier keys held
    """
    x: float
    y: float
    button: Button = Button.PRIMARY
    ctrl: bool = False
    shift: bool = False
    alt: bool = False


@dataclass(frozen=True)
class KeyEvent:
    """Keyboard input; ``key`` follows DOM key names ('a', 'Enter', 'Escape', ...)"""
    key: str
    ctrl: bool = False
    shift: bool = False
    alt: bool = False


class ToolState(str, Enum):
    """Interaction state of the active tool"""
    IDLE = "idle"
    DRAWING = "drawing"
    EDITING = "editing"
    PANNING = "panning"
    MASKING = "masking"


class HandleKind(str, Enum):
    MOVE = "move"
    RESIZE = "resize"
    ROTATE = "rotate"
    VERTEX = "vertex"
    KEYPOINT = "keypoint"


@dataclass(frozen=True)
class EditHandle:
    """
    Part of a selected annotation being dragged

    Attributes:
        kind: Type of edit
        position: Compass position of a resize handle ('nw', 'n', ..., 'w')
        index: Vertex or joint index
    """
    kind: HandleKind
    position: Optional[str] = None
    index: Optional[int] = None


class Tool(ABC):
    """
    Base class for all editing tools

    Every handler receives image-space coordinates. Handlers that are not
    relevant to a tool are no-ops.
    """

    name: ClassVar[str]
    creates_annotations: ClassVar[bool] = False
    idle_state: ClassVar[ToolState] = ToolState.IDLE

    def __init__(self, machine: "ToolStateMachine"):
        self.machine = machine

    @property
    def busy(self) -> bool:
        """True while an operation is in progress and not yet committed"""
        return False

    def activate(self) -> None:
        """Called when the tool becomes the active tool"""

    def on_pointer_down(self, x: float, y: float, event: PointerEvent) -> None:
        pass

    def on_pointer_move(self, x: float, y: float, event: PointerEvent) -> None:
        pass

    def on_pointer_up(self, x: float, y: float, event: PointerEvent) -> None:
        pass

    def on_double_click(self, x: float, y: float, event: PointerEvent) -> None:
        pass

    def on_key(self, event: KeyEvent) -> bool:
        """
        Handle a key press

        Returns:
            True if the key was consumed
        """
        return False

    def cancel(self) -> None:
        """Discard the in-progress operation without committing it"""

    def preview(self) -> Optional[Annotation]:
        """Uncommitted geometry to draw on top of the store"""
        return None


class CreationTool(Tool):
    """Tool that creates annotations of the current class"""

    creates_annotations: ClassVar[bool] = True

    def can_start(self) -> bool:
        """Refuse to start creating annotations while the class list is empty"""
        if self.machine.current_class_id is None:
            logger.warning("Add at least one class before annotating")
            return False
        return True
