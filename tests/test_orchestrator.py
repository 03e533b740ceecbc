"""Tests for the turn orchestrator state machine."""

from collections.abc import AsyncIterator

import pytest
from conftest import ScriptedModel, collect_events, tool_request
from pydantic import BaseModel

from worldsmith.models.messages import Message, PartialMessage
from worldsmith.orchestration.cancellation import CancellationToken
from worldsmith.orchestration.errors import ToolLoopLimitError, TurnCancelledError
from worldsmith.orchestration.events import (
    ModelEnd,
    ModelFallback,
    ModelStart,
    ModelToken,
    ToolEnd,
    ToolStart,
    TurnFinished,
)
from worldsmith.orchestration.state import TurnPhase, order_messages
from worldsmith.tools.base import ToolContext, ToolDefinition
from worldsmith.tools.registry import ToolsRegistry


class EmptyInput(BaseModel):
    pass


async def _explode(params: EmptyInput, context: ToolContext) -> str:
    raise RuntimeError("boom")


class TestSimpleTurn:
    """Turns that end after a single model call."""

    @pytest.mark.asyncio
    async def test_plain_answer_terminates_after_one_call(self, make_orchestrator):
        """Test that an answer without tool calls ends the turn."""
        model = ScriptedModel([Message.assistant("Hello there")])
        orchestrator = make_orchestrator(model)

        events = await collect_events(orchestrator.run("Hi", "s1"))

        assert len(model.calls) == 1
        assert isinstance(events[0], ModelStart)
        assert isinstance(events[-2], ModelEnd)
        assert isinstance(events[-1], TurnFinished)
        assert events[-1].model_call_count == 1
        assert events[-1].message.content == "Hello there"
        assert "".join(e.text for e in events if isinstance(e, ModelToken)) == "Hello there"

    @pytest.mark.asyncio
    async def test_prompt_shape(self, make_orchestrator):
        """Test that the first model call sees system prompt then the user input."""
        model = ScriptedModel([Message.assistant("ok")])
        orchestrator = make_orchestrator(model)

        await collect_events(orchestrator.run("Describe the capital", "s1"))

        prompt = model.calls[0]
        assert [m.role for m in prompt] == ["system", "user"]
        assert prompt[-1].content == "Describe the capital"

    @pytest.mark.asyncio
    async def test_tool_catalogue_sent_with_every_call(self, make_orchestrator):
        """Test that the registered tools are advertised to the model."""
        model = ScriptedModel([Message.assistant("ok")])
        orchestrator = make_orchestrator(model)

        events = await collect_events(orchestrator.run("Hi", "s1"))

        assert [t.name for t in model.tools_seen[0]] == ["add", "summarize_history"]
        assert events[0].tool_names == ["add", "summarize_history"]

    @pytest.mark.asyncio
    async def test_invoke_mode_without_streaming(self, make_orchestrator):
        """Test that streaming=False uses invoke and reports the text once."""
        model = ScriptedModel([Message.assistant("Whole answer")])
        orchestrator = make_orchestrator(model, streaming=False)

        events = await collect_events(orchestrator.run("Hi", "s1"))

        assert model.invoke_count == 1
        assert model.stream_count == 0
        assert [e.text for e in events if isinstance(e, ModelToken)] == ["Whole answer"]


class TestToolLoop:
    """Turns that go through tool execution."""

    @pytest.mark.asyncio
    async def test_tool_result_fed_back_to_model(self, make_orchestrator):
        """Test the model -> tools -> model cycle with the add tool."""
        model = ScriptedModel(
            [
                tool_request("add", {"a": 2, "b": 3}),
                Message.assistant("The sum is 5"),
            ]
        )
        orchestrator = make_orchestrator(model)

        events = await collect_events(orchestrator.run("What is 2 + 3?", "s1"))

        assert len(model.calls) == 2
        second_prompt = model.calls[1]
        assert [m.role for m in second_prompt] == ["system", "user", "assistant", "tool"]
        tool_message = second_prompt[-1]
        assert tool_message.content == "5"
        assert tool_message.tool_call_id == "call_1"
        assert tool_message.name == "add"

        starts = [e for e in events if isinstance(e, ToolStart)]
        ends = [e for e in events if isinstance(e, ToolEnd)]
        assert [s.call.name for s in starts] == ["add"]
        assert ends[0].result.status == "success"
        assert events[-1].model_call_count == 2
        assert events[-1].message.content == "The sum is 5"

    @pytest.mark.asyncio
    async def test_multiple_calls_run_in_request_order(self, make_orchestrator):
        """Test that several tool calls from one message run sequentially."""
        request = tool_request("add", {"a": 1, "b": 1}, call_id="call_a")
        request.tool_calls.append(tool_request("add", {"a": 2, "b": 2}, call_id="call_b").tool_calls[0])
        model = ScriptedModel([request, Message.assistant("2 and 4")])
        orchestrator = make_orchestrator(model)

        events = await collect_events(orchestrator.run("Add twice", "s1"))

        ends = [e for e in events if isinstance(e, ToolEnd)]
        assert [e.result.tool_call_id for e in ends] == ["call_a", "call_b"]
        assert [e.result.content for e in ends] == ["2", "4"]

    @pytest.mark.asyncio
    async def test_unknown_tool_becomes_error_result(self, make_orchestrator):
        """Test that an unknown tool does not end the turn."""
        model = ScriptedModel([tool_request("teleport", {}), Message.assistant("Sorry, I can't do that")])
        orchestrator = make_orchestrator(model)

        events = await collect_events(orchestrator.run("Teleport me", "s1"))

        result = next(e for e in events if isinstance(e, ToolEnd)).result
        assert result.is_error
        assert result.content == "Tool teleport not found. Available tools: add, summarize_history"
        assert len(model.calls) == 2
        assert model.calls[1][-1].status == "error"

    @pytest.mark.asyncio
    async def test_raising_tool_becomes_error_result(self, make_orchestrator):
        """Test that a tool raising an exception is reported back to the model."""
        tools = ToolsRegistry(
            [ToolDefinition(name="explode", description="Fails", input_schema_class=EmptyInput, handler=_explode)]
        )
        model = ScriptedModel([tool_request("explode", {}), Message.assistant("It failed")])
        orchestrator = make_orchestrator(model, tools=tools)

        events = await collect_events(orchestrator.run("Go", "s1"))

        result = next(e for e in events if isinstance(e, ToolEnd)).result
        assert result.status == "error"
        assert result.content == "Error executing tool explode: boom"
        assert isinstance(events[-1], TurnFinished)
        assert len(model.calls) == 2

    @pytest.mark.asyncio
    async def test_only_calls_without_id_end_the_turn(self, make_orchestrator):
        """Test that a response whose tool calls all lack an id terminates the turn."""
        model = ScriptedModel(
            [tool_request("add", {"a": 1, "b": 2}, call_id=None, content="Adding"), Message.assistant("unused")]
        )
        orchestrator = make_orchestrator(model)

        events = await collect_events(orchestrator.run("Add", "s1"))

        assert not [e for e in events if isinstance(e, ToolStart | ToolEnd)]
        assert len(model.calls) == 1
        assert isinstance(events[-1], TurnFinished)
        assert events[-1].message.tool_calls == []
        assert events[-1].message.content == "Adding"

    @pytest.mark.asyncio
    async def test_calls_without_id_dropped_before_next_call(self, make_orchestrator):
        """Test that the follow-up prompt only carries tool calls that have results."""
        request = tool_request("add", {"a": 1, "b": 2}, call_id="call_ok")
        request.tool_calls.append(tool_request("add", {"a": 5, "b": 5}, call_id=None).tool_calls[0])
        model = ScriptedModel([request, Message.assistant("It is 3")])
        orchestrator = make_orchestrator(model)

        events = await collect_events(orchestrator.run("Add", "s1"))

        assert [e.call.id for e in events if isinstance(e, ToolStart)] == ["call_ok"]
        assistant = model.calls[1][2]
        assert [c.id for c in assistant.tool_calls] == ["call_ok"]
        assert [m.tool_call_id for m in model.calls[1] if m.role == "tool"] == ["call_ok"]

    @pytest.mark.asyncio
    async def test_calls_reported_in_metadata_are_repaired(self, make_orchestrator):
        """Test that a function_call left in provider metadata is executed."""
        message = Message.assistant("")
        message.metadata = {"function_call": {"name": "add", "arguments": '{"a": 1, "b": 2}'}}
        model = ScriptedModel([message, Message.assistant("It is 3")])
        orchestrator = make_orchestrator(model)

        events = await collect_events(orchestrator.run("1 + 2?", "s1"))

        ends = [e for e in events if isinstance(e, ToolEnd)]
        assert len(ends) == 1
        assert ends[0].result.content == "3"
        assert ends[0].call.id.startswith("call_")

    @pytest.mark.asyncio
    async def test_loop_cap_raises(self, make_orchestrator):
        """Test that a model requesting tools forever is stopped."""
        model = ScriptedModel([tool_request("add", {"a": 1, "b": 1}, call_id=f"call_{i}") for i in range(5)])
        orchestrator = make_orchestrator(model, max_model_calls=3)

        with pytest.raises(ToolLoopLimitError, match="Stopped after 3 model calls"):
            await collect_events(orchestrator.run("Loop", "s1"))

        assert len(model.calls) == 3


class TestOrdering:
    """Tests for message ordering before model calls."""

    def test_order_messages_is_stable_partition(self):
        """Test system, then history, then current-turn messages, each group in order."""
        messages = [
            Message.user("now"),
            Message.user("old 1", is_history=True),
            Message.system("persona"),
            Message.assistant("old 2").model_copy(update={"is_history": True}),
            Message.assistant("reply"),
        ]

        ordered = order_messages(messages)

        assert [m.content for m in ordered] == ["persona", "old 1", "old 2", "now", "reply"]
        assert order_messages(ordered) == ordered

    @pytest.mark.asyncio
    async def test_history_precedes_current_turn(self, make_orchestrator, persistence):
        """Test that rehydrated history sits between the system prompt and the input."""
        await persistence.save_user_message("Name the river", "s1")
        await persistence.save_assistant_message("The Silverrun", "s1")
        await persistence.save_user_message("Where does it flow?", "s1")

        model = ScriptedModel([Message.assistant("To the sea")])
        orchestrator = make_orchestrator(model)
        await collect_events(orchestrator.run("Where does it flow?", "s1"))

        prompt = model.calls[0]
        assert [m.content for m in prompt[1:]] == ["Name the river", "The Silverrun", "Where does it flow?"]
        assert [m.is_history for m in prompt[1:]] == [True, True, False]

    def test_phase_values(self):
        """Test the state machine phases."""
        assert TurnPhase.TERMINAL == "terminal"
        assert len(TurnPhase) == 5


class TestStreamFallback:
    """Tests for the stream-to-invoke fallback."""

    @pytest.mark.asyncio
    async def test_failed_stream_falls_back_to_invoke(self, make_orchestrator):
        """Test that a broken stream is retried once through invoke."""
        model = ScriptedModel([Message.assistant("Recovered answer")], fail_stream=True)
        orchestrator = make_orchestrator(model)

        events = await collect_events(orchestrator.run("Hi", "s1"))

        kinds = [type(e) for e in events]
        assert ModelFallback in kinds
        assert kinds.index(ModelFallback) < kinds.index(ModelEnd)
        assert model.invoke_count == 1
        assert events[-1].message.content == "Recovered answer"
        assert events[-1].model_call_count == 1

    @pytest.mark.asyncio
    async def test_invoke_failure_after_stream_failure_propagates(self, make_orchestrator):
        """Test that the error surfaces when the fallback fails too."""
        model = ScriptedModel([RuntimeError("provider down")], fail_stream=True)
        orchestrator = make_orchestrator(model)

        with pytest.raises(RuntimeError, match="provider down"):
            await collect_events(orchestrator.run("Hi", "s1"))


class CancellingModel(ScriptedModel):
    """Cancels the token after the first streamed fragment."""

    def __init__(self, token: CancellationToken):
        super().__init__([Message.assistant("never finished")])
        self.token = token

    async def stream(self, messages, tools=None) -> AsyncIterator[PartialMessage]:
        self.stream_count += 1
        yield PartialMessage(content="Once upon")
        self.token.cancel()
        yield PartialMessage(content=" a time")


class TestCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, make_orchestrator):
        """Test that a cancelled token stops the turn before any model call."""
        token = CancellationToken()
        token.cancel()
        model = ScriptedModel([Message.assistant("unused")])
        orchestrator = make_orchestrator(model)

        with pytest.raises(TurnCancelledError, match="Turn cancelled"):
            await collect_events(orchestrator.run("Hi", "s1", token))

        assert model.calls == []

    @pytest.mark.asyncio
    async def test_cancelled_mid_stream_skips_fallback(self, make_orchestrator):
        """Test that cancellation during streaming is not treated as a stream failure."""
        token = CancellationToken()
        model = CancellingModel(token)
        orchestrator = make_orchestrator(model)

        events = []
        with pytest.raises(TurnCancelledError):
            async for event in orchestrator.run("Tell a story", "s1", token):
                events.append(event)

        assert model.invoke_count == 0
        assert not [e for e in events if isinstance(e, ModelFallback)]
