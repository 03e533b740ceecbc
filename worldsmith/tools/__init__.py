"""Tools for the conversational agent."""

from worldsmith.tools.base import ToolContext, ToolDefinition, ToolSchema
from worldsmith.tools.dispatcher import ToolDispatcher
from worldsmith.tools.registry import ToolsRegistry, build_default_registry

__all__ = ["ToolContext", "ToolDefinition", "ToolDispatcher", "ToolSchema", "ToolsRegistry", "build_default_registry"]
