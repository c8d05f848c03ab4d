"""
Tool Factory - creates editing tools by name
"""
from typing import TYPE_CHECKING, Dict, List, Type

from .base import Tool

if TYPE_CHECKING:
    from ..machine import ToolStateMachine


class ToolFactory:
    """
    Factory for creating tool instances

    Tools register themselves under their name (see tools/__init__.py).
    """

    _tools: Dict[str, Type[Tool]] = {}

    @classmethod
    def create(cls, name: str, machine: "ToolStateMachine") -> Tool:
        """
        Create a tool bound to a state machine

        Args:
            name: Tool name (e.g., 'bbox', 'select')
            machine: Machine the tool reports to

        Returns:
            Tool instance

        Raises:
            ValueError: If no tool is registered under this name
        """
        if name not in cls._tools:
            available = ', '.join(cls._tools.keys()) or 'none'
            raise ValueError(
                f"Unknown tool: '{name}'. "
                f"Available tools: {available}"
            )
        return cls._tools[name](machine)

    @classmethod
    def available_tools(cls) -> List[str]:
        """Get list of registered tool names"""
        return sorted(cls._tools.keys())

    @classmethod
    def register_tool(cls, name: str, tool_class: Type[Tool]):
        """Register a tool class"""
        cls._tools[name] = tool_class
