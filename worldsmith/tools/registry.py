"""Tools registry for managing agent tools."""

from typing import TYPE_CHECKING

from worldsmith.tools.base import ToolDefinition, ToolSchema
from worldsmith.utils.logging import get_logger

if TYPE_CHECKING:
    from worldsmith.services.memory import LongTermMemoryStore
    from worldsmith.services.persistence import ConversationPersistence

logger = get_logger(__name__)


class ToolsRegistry:
    """Registry mapping tool names to their definitions."""

    def __init__(self, tools: list[ToolDefinition] | None = None):
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a tool, replacing any tool with the same name."""
        if tool.name in self._tools:
            logger.warning(f"Replacing already registered tool: {tool.name}")
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def get_tool_schemas(self) -> list[ToolSchema]:
        """Get the sanitized tool catalogue sent with every model call."""
        return [
            ToolSchema(name=tool.name, description=tool.description, json_schema=tool.get_json_schema())
            for tool in self._tools.values()
        ]

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def build_default_registry(persistence: "ConversationPersistence", memory: "LongTermMemoryStore") -> ToolsRegistry:
    """Registry with the built-in tools."""
    from worldsmith.tools.arithmetic import create_add_tool
    from worldsmith.tools.history import create_summarize_history_tool

    return ToolsRegistry(
        [
            create_add_tool(),
            create_summarize_history_tool(persistence, memory),
        ]
    )
