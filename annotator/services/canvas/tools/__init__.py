"""
Editing tools for the annotation canvas

Architecture:
- Tool: receives image-space pointer input from the ToolStateMachine
- CreationTool: tools that create annotations (refuse to start without classes)
- ToolFactory: name -> tool class registry
"""
from .base import (
    Button,
    CreationTool,
    EditHandle,
    HandleKind,
    KeyEvent,
    PointerEvent,
    Tool,
    ToolState,
)
from .factory import ToolFactory
from .box import BoxTool
from .oriented_box import OrientedBoxTool
from .polygon import PolygonTool
from .keypoint import KeypointTool
from .mask import MaskTool
from .select import SelectTool
from .pan import PanTool

# Register tools
ToolFactory.register_tool(BoxTool.name, BoxTool)
ToolFactory.register_tool(OrientedBoxTool.name, OrientedBoxTool)
ToolFactory.register_tool(PolygonTool.name, PolygonTool)
ToolFactory.register_tool(KeypointTool.name, KeypointTool)
ToolFactory.register_tool(MaskTool.name, MaskTool)
ToolFactory.register_tool(SelectTool.name, SelectTool)
ToolFactory.register_tool(PanTool.name, PanTool)

__all__ = [
    "Button",
    "CreationTool",
    "EditHandle",
    "HandleKind",
    "KeyEvent",
    "PointerEvent",
    "Tool",
    "ToolState",
    "ToolFactory",
    "BoxTool",
    "OrientedBoxTool",
    "PolygonTool",
    "KeypointTool",
    "MaskTool",
    "SelectTool",
    "PanTool",
]
