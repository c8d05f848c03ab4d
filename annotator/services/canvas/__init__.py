"""
Canvas Service

Coordinate mapping, the tool state machine and overlay rendering for the
annotation editor.

Usage:
    from annotator.services.canvas import CoordinateTransformer, ToolStateMachine, PointerEvent

    transformer = CoordinateTransformer(image_width=640, image_height=480).fitted(1280, 720)
    machine = ToolStateMachine(store, transformer, project.classes, ProjectType.BBOX)

    machine.pointer_down(PointerEvent(300, 200))
    machine.pointer_move(PointerEvent(420, 330))
    machine.pointer_up(PointerEvent(420, 330))
"""
from .transform import CoordinateTransformer
from .tools import (
    Button,
    EditHandle,
    HandleKind,
    KeyEvent,
    PointerEvent,
    Tool,
    ToolFactory,
    ToolState,
)
from .machine import TOOLS_BY_PROJECT_TYPE, PresentationState, ToolStateMachine
from .render import OverlayRenderer, RenderCache

__all__ = [
    "CoordinateTransformer",
    "Button",
    "EditHandle",
    "HandleKind",
    "KeyEvent",
    "PointerEvent",
    "Tool",
    "ToolFactory",
    "ToolState",
    "TOOLS_BY_PROJECT_TYPE",
    "PresentationState",
    "ToolStateMachine",
    "OverlayRenderer",
    "RenderCache",
]
