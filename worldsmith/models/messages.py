"""Message and tool-call data models used inside a turn."""

from typing import Any, Literal

from pydantic import BaseModel, Field

MessageRole = Literal["system", "user", "assistant", "tool"]
ToolStatus = Literal["success", "error"]


class ToolCall(BaseModel):
    """A tool call requested by the assistant.

    `id` may be missing when a provider omits it; such calls are skipped
    by the dispatcher.
    """

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    id: str | None = None


class ToolResult(BaseModel):
    """Result of executing a tool call."""

    tool_call_id: str
    content: str
    status: ToolStatus = "success"

    @property
    def is_error(self) -> bool:
        return self.status == "error"


class Message(BaseModel):
    """A unit of conversation.

    `is_history` marks messages rehydrated from storage. It only drives
    ordering inside a turn and is never persisted.
    """

    role: MessageRole
    content: str | list[Any] = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None
    status: ToolStatus | None = None
    is_history: bool = False

    # Provider-specific response fields, read by the tool-call repair pass
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str, is_history: bool = False) -> "Message":
        return cls(role="user", content=content, is_history=is_history)

    @classmethod
    def assistant(cls, content: str | list[Any], tool_calls: list[ToolCall] | None = None) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tool_calls or [])

    @classmethod
    def from_tool_result(cls, result: ToolResult, tool_name: str) -> "Message":
        return cls(
            role="tool",
            content=result.content,
            tool_call_id=result.tool_call_id,
            name=tool_name,
            status=result.status,
        )


class PartialMessage(BaseModel):
    """One increment of a streamed model response.

    Intermediate parts carry a content fragment. The last part of a stream
    carries the aggregated assistant `message`.
    """

    content: str | list[Any] = ""
    message: Message | None = None
