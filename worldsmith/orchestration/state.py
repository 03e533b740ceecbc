"""Turn state for the orchestrator."""

from enum import StrEnum

from pydantic import BaseModel, Field

from worldsmith.models.messages import Message


class TurnPhase(StrEnum):
    """States of the turn state machine."""

    CONTEXT_ASSEMBLY = "context_assembly"
    MODEL_INVOCATION = "model_invocation"
    ROUTE_DECISION = "route_decision"
    TOOL_EXECUTION = "tool_execution"
    TERMINAL = "terminal"


def order_messages(messages: list[Message]) -> list[Message]:
    """Stable partition: system messages, then history, then everything else.

    Relative order inside each group is preserved, so applying it to an
    already ordered list is a no-op.
    """
    system = [m for m in messages if m.role == "system"]
    history = [m for m in messages if m.role != "system" and m.is_history]
    current = [m for m in messages if m.role != "system" and not m.is_history]
    return [*system, *history, *current]


class ConversationState(BaseModel):
    """Working set of a single turn.

    `messages` is append-only within a turn; only `order_messages` may
    rearrange it, right before each model call.
    """

    session_id: str
    messages: list[Message] = Field(default_factory=list)
    model_call_count: int = 0
    tool_cycle_count: int = 0

    def append(self, message: Message) -> None:
        self.messages.append(message)

    def reorder(self) -> list[Message]:
        self.messages = order_messages(self.messages)
        return self.messages

    def last_assistant_message(self) -> Message | None:
        for message in reversed(self.messages):
            if message.role == "assistant":
                return message
        return None
