"""Conversation recall tool."""

from pydantic import BaseModel, Field

from worldsmith.services.memory import LongTermMemoryStore
from worldsmith.services.persistence import ConversationPersistence
from worldsmith.tools.base import ToolContext, ToolDefinition

DESCRIPTION = """Look back over this conversation.

Returns the long-term memory summary of older turns (if any) followed by a
transcript of the most recent messages. Use it when the user refers to
something established earlier that is no longer in view.

Parameters:
- limit: how many recent messages to include (1-50, default 10)"""


class SummarizeHistoryInput(BaseModel):
    """Input schema for the summarize_history tool."""

    limit: int = Field(default=10, ge=1, le=50, description="Number of recent messages to include")


def create_summarize_history_tool(
    persistence: ConversationPersistence, memory: LongTermMemoryStore
) -> ToolDefinition:
    async def summarize_history_handler(params: SummarizeHistoryInput, context: ToolContext) -> str:
        summary = await memory.get_summary(context.session_id)
        records = await persistence.get_history(context.session_id, limit=params.limit)

        sections = []
        if summary:
            sections.append(f"Long-term memory:\n{summary}")
        if records:
            transcript = "\n".join(
                f"{'User' if record.role == 'user' else 'Assistant'}: {record.content}" for record in records
            )
            sections.append(f"Recent messages:\n{transcript}")

        if not sections:
            return "There is no earlier conversation in this session."
        return "\n\n".join(sections)

    return ToolDefinition(
        name="summarize_history",
        description=DESCRIPTION,
        input_schema_class=SummarizeHistoryInput,
        handler=summarize_history_handler,
    )
