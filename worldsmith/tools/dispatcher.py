"""Tool call dispatch."""

from pydantic import ValidationError

from worldsmith.models.messages import ToolCall, ToolResult
from worldsmith.tools.base import ToolContext
from worldsmith.tools.registry import ToolsRegistry
from worldsmith.utils.logging import get_logger

logger = get_logger(__name__)


class ToolDispatcher:
    """Executes tool calls against a registry.

    Expected failures (unknown tool, bad arguments, a raising tool) come back
    as error results so the model can react to them. Nothing is raised.
    """

    def __init__(self, registry: ToolsRegistry):
        self.registry = registry

    async def dispatch(self, call: ToolCall, context: ToolContext) -> ToolResult | None:
        """Execute a single tool call.

        Returns:
            The tool result, or None when the call has no id and was skipped
        """
        if not call.id:
            logger.warning(
                f"Skipping tool call '{call.name}' without an id in session {context.session_id}; "
                "the model will not see a result for it"
            )
            return None

        tool = self.registry.get_tool(call.name)
        if tool is None:
            available = ", ".join(self.registry.get_tool_names())
            logger.error(f"Unknown tool requested: {call.name}")
            return ToolResult(
                tool_call_id=call.id,
                content=f"Tool {call.name} not found. Available tools: {available}",
                status="error",
            )

        logger.debug(f"Executing tool: {call.name} with input: {call.arguments}")
        try:
            result = await tool.invoke(call.arguments, context)
        except ValidationError as e:
            logger.warning(f"Tool {call.name} rejected its arguments: {e}")
            return ToolResult(
                tool_call_id=call.id,
                content=f"Invalid arguments for tool {call.name}: {e}",
                status="error",
            )
        except Exception as e:
            logger.error(f"Tool {call.name} failed: {e}", exc_info=True)
            return ToolResult(
                tool_call_id=call.id,
                content=f"Error executing tool {call.name}: {e}",
                status="error",
            )

        content = str(result)
        logger.debug(f"Tool {call.name} succeeded: {content[:100]}")
        return ToolResult(tool_call_id=call.id, content=content, status="success")
