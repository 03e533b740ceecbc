"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from worldsmith.tools.schema import sanitize_schema


@dataclass(frozen=True)
class ToolContext:
    """Per-turn context handed to every tool handler."""

    session_id: str


ToolHandler = Callable[[BaseModel, ToolContext], Awaitable[Any]]


@dataclass
class ToolDefinition:
    """Definition of a tool available to the agent."""

    name: str
    description: str
    input_schema_class: type[BaseModel]
    handler: ToolHandler

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input, sanitized for providers."""
        return sanitize_schema(self.input_schema_class.model_json_schema())

    def parse_input(self, raw_input: dict[str, Any]) -> BaseModel:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    async def invoke(self, raw_input: dict[str, Any], context: ToolContext) -> Any:
        """Validate arguments and run the handler."""
        return await self.handler(self.parse_input(raw_input), context)


@dataclass(frozen=True)
class ToolSchema:
    """Tool catalogue entry advertised to the model provider."""

    name: str
    description: str
    json_schema: dict[str, Any]

    def to_openai_function(self) -> dict[str, Any]:
        """Function-tool format accepted by LangChain `bind_tools` for every provider."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.json_schema,
            },
        }
