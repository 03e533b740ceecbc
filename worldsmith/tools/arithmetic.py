"""Arithmetic tool."""

from pydantic import BaseModel, Field

from worldsmith.tools.base import ToolContext, ToolDefinition


class AddInput(BaseModel):
    """Input schema for the add tool."""

    a: int | float = Field(..., description="First number")
    b: int | float = Field(..., description="Second number")


async def _add(params: AddInput, context: ToolContext) -> int | float:  # noqa: RUF029
    return params.a + params.b


def create_add_tool() -> ToolDefinition:
    return ToolDefinition(
        name="add",
        description="Add two numbers. a: First number; b: Second number",
        input_schema_class=AddInput,
        handler=_add,
    )
