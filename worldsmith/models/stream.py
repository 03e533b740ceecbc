"""UI-facing stream chunk protocol.

A turn emits any number of `text_delta` and `agent_log` chunks followed by
exactly one terminal chunk: `done` on success or `stream_error` on failure.
An `agent_log` node_exit whose data info is "stream fallback" voids the
`text_delta` chunks of the current model call; the deltas that follow it
repeat the answer in full.
Field names on the wire are camelCase to match the renderer.
"""

import time
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from worldsmith.models.content import ContentPart

AgentLogType = Literal["node_enter", "node_exit", "tool_start", "tool_end"]


def _now_ms() -> int:
    return int(time.time() * 1000)


class TextDeltaChunk(BaseModel):
    """Incremental model text."""

    type: Literal["text_delta"] = "text_delta"
    content: str


class AgentLogChunk(BaseModel):
    """Node transition or tool activity inside the turn."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["agent_log"] = "agent_log"
    sub_type: AgentLogType = Field(alias="subType")
    node_name: str = Field(alias="nodeName")
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: int = Field(default_factory=_now_ms)


class StreamErrorChunk(BaseModel):
    """Transport-level failure. Terminates the stream."""

    type: Literal["stream_error"] = "stream_error"
    message: str


class DoneChunk(BaseModel):
    """Successful end of a turn carrying the structured final answer."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["done"] = "done"
    full_content: list[ContentPart] = Field(default_factory=list, alias="fullContent")


StreamChunk = Annotated[
    TextDeltaChunk | AgentLogChunk | StreamErrorChunk | DoneChunk,
    Field(discriminator="type"),
]

TERMINAL_CHUNK_TYPES = frozenset({"done", "stream_error"})


def dump_chunk(chunk: BaseModel) -> dict[str, Any]:
    """Serialize a chunk the way the renderer expects it."""
    return chunk.model_dump(by_alias=True, exclude_none=True)
