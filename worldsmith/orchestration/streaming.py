"""Translation of orchestrator events into UI stream chunks."""

import inspect
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from pydantic import BaseModel

from worldsmith.models.messages import Message
from worldsmith.models.stream import (
    AgentLogChunk,
    DoneChunk,
    StreamErrorChunk,
    TextDeltaChunk,
)
from worldsmith.orchestration.cancellation import CancellationToken
from worldsmith.orchestration.errors import TurnError
from worldsmith.orchestration.events import (
    AgentEvent,
    ModelEnd,
    ModelFallback,
    ModelStart,
    ModelToken,
    ToolEnd,
    ToolStart,
    TurnFinished,
)
from worldsmith.services.persistence import ConversationPersistence
from worldsmith.utils.content import content_to_parts, content_to_text, safe_json
from worldsmith.utils.logging import get_logger, get_session_logger

logger = get_logger(__name__)

ChunkSink = Callable[[BaseModel], Awaitable[None] | None]

NO_TEXT_CONTENT = "(No Text Content)"
STREAM_FALLBACK_INFO = "stream fallback"


def _prompt_for_display(messages: list[Message]) -> list[dict[str, str]]:
    return [
        {
            "role": message.role,
            "content": message.content if isinstance(message.content, str) else safe_json(message.content),
        }
        for message in messages
    ]


class StreamEventTranslator:
    """Consumes one turn's event feed and pushes stream chunks to a sink.

    Guarantees exactly one terminal chunk per turn: `done` after the final
    answer was persisted, or a single `stream_error` when anything failed,
    in which case no assistant message is persisted. An answer without text
    is never stored.
    """

    def __init__(
        self,
        sink: ChunkSink,
        persistence: ConversationPersistence,
        session_id: str,
        cancel_token: CancellationToken | None = None,
    ):
        self.sink = sink
        self.persistence = persistence
        self.session_id = session_id
        self.log = get_session_logger(logger, session_id)
        self.cancel_token = cancel_token or CancellationToken()
        self.full_text = ""
        self.finished: TurnFinished | None = None
        self.answer: str | None = None
        self.terminated = False

    async def consume(self, events: AsyncIterator[AgentEvent]) -> str | None:
        """Translate every event, then finish the turn.

        Returns:
            The answer text, or None when the turn ended with stream_error
        """
        try:
            async for event in events:
                await self._handle(event)

            final_text = self._final_text()
            self.cancel_token.raise_if_cancelled()
            if final_text.strip():
                await self.persistence.save_assistant_message(final_text, self.session_id)
            else:
                self.log.warning("Turn ended without answer text, nothing persisted")
            self.answer = final_text
            await self._terminate(DoneChunk(full_content=content_to_parts(final_text)))
        except Exception as e:
            self.log.error(f"Turn failed: {e}", exc_info=not _is_expected(e))
            await self.fail(str(e) or type(e).__name__)
        return self.answer

    async def fail(self, message: str) -> None:
        """Emit the single stream_error of a turn (no-op once terminated)."""
        if self.terminated:
            return
        try:
            await self._terminate(StreamErrorChunk(message=message))
        except Exception as e:
            logger.error(f"Could not deliver stream_error to the sink: {e}", exc_info=True)

    async def _handle(self, event: AgentEvent) -> None:
        match event:
            case ModelStart():
                # Each invocation starts a fresh answer buffer
                self.full_text = ""
                await self._emit(
                    AgentLogChunk(
                        sub_type="node_enter",
                        node_name=event.model_name,
                        data={
                            "info": "AI Processing Start",
                            "prompt": _prompt_for_display(event.messages),
                            "available_tools": event.tool_names,
                        },
                    )
                )
            case ModelToken():
                if not event.text:
                    return
                self.full_text += event.text
                await self._emit(TextDeltaChunk(content=event.text))
            case ModelFallback():
                # Deltas sent before this log are void; the invoke answer follows
                self.full_text = ""
                await self._emit(
                    AgentLogChunk(
                        sub_type="node_exit",
                        node_name=event.model_name,
                        data={"info": STREAM_FALLBACK_INFO, "error": event.error},
                    )
                )
            case ModelEnd():
                await self._emit(
                    AgentLogChunk(
                        sub_type="node_exit",
                        node_name=event.model_name,
                        data={
                            "info": "AI Processing Complete",
                            "result": content_to_text(event.message.content) or NO_TEXT_CONTENT,
                            "tool_calls": [call.model_dump() for call in event.message.tool_calls],
                        },
                    )
                )
            case ToolStart():
                await self._emit(
                    AgentLogChunk(
                        sub_type="tool_start",
                        node_name=event.call.name,
                        data={"input": event.call.arguments, "tool_call_id": event.call.id},
                    )
                )
            case ToolEnd():
                await self._emit(
                    AgentLogChunk(
                        sub_type="tool_end",
                        node_name=event.call.name,
                        data={
                            "output": event.result.content,
                            "status": event.result.status,
                            "tool_call_id": event.result.tool_call_id,
                        },
                    )
                )
            case TurnFinished():
                self.finished = event

    def _final_text(self) -> str:
        if self.full_text:
            return self.full_text
        if self.finished is not None:
            return content_to_text(self.finished.message.content)
        return ""

    async def _emit(self, chunk: BaseModel) -> None:
        result: Any = self.sink(chunk)
        if inspect.isawaitable(result):
            await result

    async def _terminate(self, chunk: BaseModel) -> None:
        self.terminated = True
        await self._emit(chunk)


def _is_expected(error: Exception) -> bool:
    return isinstance(error, TurnError)
