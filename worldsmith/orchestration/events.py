"""Internal event feed produced by the turn orchestrator."""

from dataclasses import dataclass, field

from worldsmith.models.messages import Message, ToolCall, ToolResult


@dataclass
class ModelStart:
    """A model invocation is about to start."""

    model_name: str
    messages: list[Message]
    tool_names: list[str] = field(default_factory=list)


@dataclass
class ModelToken:
    """An incremental piece of model text."""

    text: str


@dataclass
class ModelFallback:
    """Streaming failed; text streamed so far for this invocation is void."""

    model_name: str
    error: str


@dataclass
class ModelEnd:
    """A model invocation completed."""

    model_name: str
    message: Message


@dataclass
class ToolStart:
    call: ToolCall


@dataclass
class ToolEnd:
    call: ToolCall
    result: ToolResult


@dataclass
class TurnFinished:
    """The turn reached its terminal state."""

    message: Message
    model_call_count: int


AgentEvent = ModelStart | ModelToken | ModelFallback | ModelEnd | ToolStart | ToolEnd | TurnFinished
