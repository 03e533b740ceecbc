"""Turn orchestrator: the context → model → tools → model state machine."""

from collections.abc import AsyncIterator

from worldsmith.clients.chat_model import ChatModelProvider
from worldsmith.models.messages import Message, ToolCall
from worldsmith.orchestration.cancellation import CancellationToken
from worldsmith.orchestration.context import ContextAssembler
from worldsmith.orchestration.errors import ToolLoopLimitError
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
from worldsmith.orchestration.repair import repair_tool_calls
from worldsmith.orchestration.state import ConversationState, TurnPhase
from worldsmith.tools.base import ToolContext
from worldsmith.tools.dispatcher import ToolDispatcher
from worldsmith.utils.content import content_to_text
from worldsmith.utils.logging import get_logger, get_session_logger

logger = get_logger(__name__)

DEFAULT_MAX_MODEL_CALLS = 25


class TurnOrchestrator:
    """Drives one turn as an explicit finite-state machine.

    Phases::

        CONTEXT_ASSEMBLY -> MODEL_INVOCATION -> ROUTE_DECISION
        ROUTE_DECISION   -> TOOL_EXECUTION -> MODEL_INVOCATION
        ROUTE_DECISION   -> TERMINAL

    `run` is an async generator yielding the internal event feed. Tool calls
    run sequentially in request order. The number of model calls per turn is
    capped by `max_model_calls`.
    """

    def __init__(
        self,
        context_assembler: ContextAssembler,
        dispatcher: ToolDispatcher,
        model: ChatModelProvider,
        max_model_calls: int = DEFAULT_MAX_MODEL_CALLS,
        streaming: bool = True,
    ):
        """Initialize the orchestrator.

        Args:
            context_assembler: Builds the prompt for the turn
            dispatcher: Executes requested tool calls
            model: Language-model provider
            max_model_calls: Model calls allowed per turn before giving up
            streaming: Use the provider's token stream (falls back to invoke on failure)
        """
        self.context_assembler = context_assembler
        self.dispatcher = dispatcher
        self.model = model
        self.max_model_calls = max_model_calls
        self.streaming = streaming

    async def run(
        self, user_text: str, session_id: str, cancel_token: CancellationToken | None = None
    ) -> AsyncIterator[AgentEvent]:
        """Run a turn to completion, yielding events as they happen.

        Raises:
            TurnCancelledError: If the token is cancelled at a suspension point
            ToolLoopLimitError: If the model call cap is hit
        """
        token = cancel_token or CancellationToken()
        state = ConversationState(session_id=session_id)
        phase = TurnPhase.CONTEXT_ASSEMBLY
        log = get_session_logger(logger, session_id)
        log.info("Starting turn")

        while phase is not TurnPhase.TERMINAL:
            token.raise_if_cancelled()
            log.debug(f"Entering phase {phase}")

            if phase is TurnPhase.CONTEXT_ASSEMBLY:
                state.messages = await self.context_assembler.assemble(user_text, session_id)
                phase = TurnPhase.MODEL_INVOCATION

            elif phase is TurnPhase.MODEL_INVOCATION:
                if state.model_call_count >= self.max_model_calls:
                    log.warning(f"Hit the cap of {self.max_model_calls} model calls")
                    raise ToolLoopLimitError(self.max_model_calls)
                async for event in self._invoke_model(state, token):
                    yield event
                phase = TurnPhase.ROUTE_DECISION

            elif phase is TurnPhase.ROUTE_DECISION:
                phase = self._route(state)

            elif phase is TurnPhase.TOOL_EXECUTION:
                async for event in self._execute_tools(state, token):
                    yield event
                phase = TurnPhase.MODEL_INVOCATION

        answer = state.last_assistant_message() or Message.assistant("")
        log.info(
            f"Turn finished after {state.model_call_count} model call(s), "
            f"{state.tool_cycle_count} tool cycle(s)"
        )
        yield TurnFinished(message=answer, model_call_count=state.model_call_count)

    async def _invoke_model(self, state: ConversationState, token: CancellationToken) -> AsyncIterator[AgentEvent]:
        messages = state.reorder()
        tools = self.dispatcher.registry.get_tool_schemas()
        model_name = self.model.model_name
        yield ModelStart(model_name=model_name, messages=list(messages), tool_names=[t.name for t in tools])

        message: Message | None = None
        if self.streaming:
            try:
                async for part in self.model.stream(messages, tools):
                    token.raise_if_cancelled()
                    if part.message is not None:
                        message = part.message
                        continue
                    text = content_to_text(part.content)
                    if text:
                        yield ModelToken(text=text)
            except Exception as e:
                if token.cancelled:
                    raise
                logger.error(f"Streaming from {model_name} failed, falling back to invoke: {e}", exc_info=True)
                yield ModelFallback(model_name=model_name, error=str(e))
                message = None

        if message is None:
            token.raise_if_cancelled()
            message = await self.model.invoke(messages, tools)
            text = content_to_text(message.content)
            if text:
                yield ModelToken(text=text)

        state.model_call_count += 1
        # Repair before routing so calls reported only in metadata still run
        repair_tool_calls(message)
        state.append(message)
        yield ModelEnd(model_name=model_name, message=message)

    def _route(self, state: ConversationState) -> TurnPhase:
        last = state.messages[-1] if state.messages else None
        if last is None or last.role != "assistant":
            return TurnPhase.TERMINAL
        if not last.tool_calls:
            return TurnPhase.TERMINAL

        # Every call left on the message must get a tool result
        runnable = [call for call in last.tool_calls if call.id]
        if len(runnable) < len(last.tool_calls):
            get_session_logger(logger, state.session_id).warning(
                f"Dropping {len(last.tool_calls) - len(runnable)} tool call(s) without an id"
            )
            last.tool_calls = runnable
        if not runnable:
            return TurnPhase.TERMINAL

        logger.info(f"Model requested {len(runnable)} tool call(s): {[c.name for c in runnable]}")
        return TurnPhase.TOOL_EXECUTION

    async def _execute_tools(self, state: ConversationState, token: CancellationToken) -> AsyncIterator[AgentEvent]:
        calls: list[ToolCall] = list(state.messages[-1].tool_calls)
        context = ToolContext(session_id=state.session_id)
        state.tool_cycle_count += 1

        for call in calls:
            token.raise_if_cancelled()
            yield ToolStart(call=call)
            result = await self.dispatcher.dispatch(call, context)
            if result is None:
                continue
            state.append(Message.from_tool_result(result, call.name))
            yield ToolEnd(call=call, result=result)
