"""Shared fixtures and model stubs for the test suite."""

from collections.abc import AsyncIterator

import pytest

from worldsmith.clients.tokens import TokenEstimator
from worldsmith.models.messages import Message, PartialMessage, ToolCall
from worldsmith.orchestration.context import ContextAssembler
from worldsmith.orchestration.orchestrator import TurnOrchestrator
from worldsmith.services.memory import LongTermMemoryStore
from worldsmith.services.persistence import ConversationPersistence, InMemoryMessageRepository
from worldsmith.services.session_manager import InMemorySessionManager
from worldsmith.tools.base import ToolSchema
from worldsmith.tools.dispatcher import ToolDispatcher
from worldsmith.tools.registry import ToolsRegistry, build_default_registry
from worldsmith.utils.content import content_to_text


class ScriptedModel:
    """Chat model provider replaying a fixed list of responses.

    Each entry is an assistant `Message` or an exception to raise. Streamed
    text is split in two fragments so callers see several deltas.
    """

    def __init__(
        self,
        responses: list[Message | Exception],
        model_name: str = "scripted-model",
        fail_stream: bool = False,
    ):
        self.responses = list(responses)
        self.model_name = model_name
        self.fail_stream = fail_stream
        self.calls: list[list[Message]] = []
        self.tools_seen: list[list[ToolSchema] | None] = []
        self.invoke_count = 0
        self.stream_count = 0

    def _next(self, messages: list[Message], tools: list[ToolSchema] | None) -> Message:
        self.calls.append(list(messages))
        self.tools_seen.append(tools)
        if not self.responses:
            raise RuntimeError("ScriptedModel ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response.model_copy(deep=True)

    async def invoke(self, messages: list[Message], tools: list[ToolSchema] | None = None) -> Message:
        self.invoke_count += 1
        return self._next(messages, tools)

    async def stream(
        self, messages: list[Message], tools: list[ToolSchema] | None = None
    ) -> AsyncIterator[PartialMessage]:
        self.stream_count += 1
        if self.fail_stream:
            yield PartialMessage(content="partial ")
            raise RuntimeError("stream interrupted")

        message = self._next(messages, tools)
        text = content_to_text(message.content)
        middle = len(text) // 2
        for fragment in (text[:middle], text[middle:]):
            if fragment:
                yield PartialMessage(content=fragment)
        yield PartialMessage(message=message)


def tool_request(name: str, arguments: dict, call_id: str | None = "call_1", content: str = "") -> Message:
    """Assistant message asking for a single tool call."""
    return Message.assistant(content, tool_calls=[ToolCall(name=name, arguments=arguments, id=call_id)])


async def collect_events(events: AsyncIterator) -> list:
    return [event async for event in events]


@pytest.fixture
def repository():
    return InMemoryMessageRepository()


@pytest.fixture
def persistence(repository):
    return ConversationPersistence(repository)


@pytest.fixture
def memory():
    return LongTermMemoryStore()


@pytest.fixture
def registry(persistence, memory):
    return build_default_registry(persistence, memory)


@pytest.fixture
def session_manager():
    return InMemorySessionManager()


@pytest.fixture
def token_estimator():
    """Character-based estimator, no tiktoken download."""
    return TokenEstimator(model_hint=None, max_message_tokens=2000)


@pytest.fixture
def make_orchestrator(persistence, memory, registry):
    """Factory building an orchestrator around a scripted model."""

    def _make(
        model: ScriptedModel,
        tools: ToolsRegistry | None = None,
        max_model_calls: int = 25,
        streaming: bool = True,
        history_limit: int = 20,
    ) -> TurnOrchestrator:
        assembler = ContextAssembler(persistence, memory=memory, history_limit=history_limit)
        return TurnOrchestrator(
            assembler,
            ToolDispatcher(tools if tools is not None else registry),
            model,
            max_model_calls=max_model_calls,
            streaming=streaming,
        )

    return _make
