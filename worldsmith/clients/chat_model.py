"""Chat model provider boundary and its LangChain implementation."""

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from anthropic import APIError
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    AIMessageChunk,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from worldsmith.clients.rate_limiter import ModelRateLimiter
from worldsmith.clients.tokens import TokenEstimator
from worldsmith.config import AgentSettings
from worldsmith.models.messages import Message, PartialMessage, ToolCall
from worldsmith.tools.base import ToolSchema
from worldsmith.utils.content import content_to_text
from worldsmith.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ChatModelProvider(Protocol):
    """Interface of the language-model provider."""

    model_name: str

    async def invoke(self, messages: list[Message], tools: list[ToolSchema] | None = None) -> Message:
        """Return the complete assistant message for a prompt."""
        ...

    def stream(self, messages: list[Message], tools: list[ToolSchema] | None = None) -> AsyncIterator[PartialMessage]:
        """Yield content fragments, then a final part carrying the aggregated message."""
        ...


@dataclass
class ModelClientConfig:
    """Configuration for the chat model client."""

    max_retries: int = 3
    retry_delay: float = 1.0
    requests_per_minute: int = 50
    tokens_per_minute: int = 40_000


def to_langchain_message(message: Message) -> BaseMessage:
    """Convert a turn message into its LangChain counterpart."""
    if message.role == "system":
        return SystemMessage(content=message.content)
    if message.role == "user":
        return HumanMessage(content=message.content)
    if message.role == "assistant":
        return AIMessage(
            content=message.content,
            tool_calls=[
                {"name": call.name, "args": call.arguments, "id": call.id, "type": "tool_call"}
                for call in message.tool_calls
            ],
        )
    return ToolMessage(
        content=message.content,
        tool_call_id=message.tool_call_id or "",
        name=message.name,
        status=message.status or "success",
    )


def from_langchain_message(message: BaseMessage) -> Message:
    """Convert a LangChain AI message (or aggregated chunk) into an assistant message."""
    tool_calls = [
        ToolCall(name=call["name"], arguments=call.get("args") or {}, id=call.get("id"))
        for call in getattr(message, "tool_calls", None) or []
    ]
    metadata: dict[str, Any] = {
        **(getattr(message, "response_metadata", None) or {}),
        **(message.additional_kwargs or {}),
    }
    return Message(role="assistant", content=message.content, tool_calls=tool_calls, metadata=metadata)


class ChatModelClient:
    """Provider client around a LangChain chat model with retries and rate limiting."""

    def __init__(
        self,
        model: BaseChatModel,
        config: ModelClientConfig | None = None,
        token_estimator: TokenEstimator | None = None,
        rate_limiter: ModelRateLimiter | None = None,
    ):
        """Initialize the client.

        Args:
            model: LangChain chat model
            config: Client configuration
            token_estimator: Used to size requests for the rate limiter
            rate_limiter: Shared rate limiter (a private one is created when omitted)
        """
        self.model = model
        self.config = config or ModelClientConfig()
        self.token_estimator = token_estimator or TokenEstimator()
        self.rate_limiter = rate_limiter or ModelRateLimiter(
            self.config.requests_per_minute, self.config.tokens_per_minute
        )
        self.model_name = _model_name(model)

    async def invoke(self, messages: list[Message], tools: list[ToolSchema] | None = None) -> Message:
        runnable = self._bind(tools)
        lc_messages = [to_langchain_message(m) for m in messages]
        await self._check_rate_limit(messages, tools)

        logger.debug(f"Invoking {self.model_name} with {len(messages)} messages, {len(tools or [])} tools")
        response = await self._request_with_retries(lambda: runnable.ainvoke(lc_messages))
        return from_langchain_message(response)

    async def stream(
        self, messages: list[Message], tools: list[ToolSchema] | None = None
    ) -> AsyncIterator[PartialMessage]:
        runnable = self._bind(tools)
        lc_messages = [to_langchain_message(m) for m in messages]
        await self._check_rate_limit(messages, tools)

        logger.debug(f"Streaming {self.model_name} with {len(messages)} messages, {len(tools or [])} tools")
        aggregate: AIMessageChunk | None = None
        async for chunk in runnable.astream(lc_messages):
            # Summing chunks merges tool_call_chunks into complete tool calls
            aggregate = chunk if aggregate is None else aggregate + chunk
            yield PartialMessage(content=chunk.content)

        if aggregate is None:
            yield PartialMessage(message=Message.assistant(""))
            return
        yield PartialMessage(message=from_langchain_message(aggregate))

    def _bind(self, tools: list[ToolSchema] | None):
        if not tools:
            return self.model
        return self.model.bind_tools([tool.to_openai_function() for tool in tools])

    async def _check_rate_limit(self, messages: list[Message], tools: list[ToolSchema] | None) -> None:
        text = "".join(content_to_text(m.content) for m in messages)
        if tools:
            text += "".join(t.name + t.description + json.dumps(t.json_schema) for t in tools)
        estimated_tokens = self.token_estimator.estimate(text)
        logger.debug(f"Estimated tokens: {estimated_tokens}")
        await self.rate_limiter.check_rate_limit(estimated_tokens)

    async def _request_with_retries(self, call: Callable[[], Awaitable[T]]) -> T:
        """Execute a provider request with retry logic."""
        for attempt in range(self.config.max_retries):
            try:
                return await call()

            except APIError as e:
                status_code = getattr(e, "status_code", None)
                if status_code == 429:
                    retry_after = 60
                    response = getattr(e, "response", None)
                    if response is not None and hasattr(response, "headers"):
                        retry_after = int(response.headers.get("retry-after", 60))

                    if retry_after < 120 and attempt < self.config.max_retries - 1:
                        logger.warning(f"Provider rate limited the request, retrying in {retry_after}s")
                        await asyncio.sleep(retry_after)
                        continue

                elif status_code is not None and status_code >= 500 and attempt < self.config.max_retries - 1:
                    await asyncio.sleep(self.config.retry_delay * (2**attempt))
                    continue

                raise

            except Exception:
                if attempt < self.config.max_retries - 1:
                    await asyncio.sleep(self.config.retry_delay * (2**attempt))
                    continue
                raise

        raise RuntimeError(f"Failed to complete request after {self.config.max_retries} attempts")


def _model_name(model: BaseChatModel) -> str:
    for attribute in ("model", "model_name"):
        value = getattr(model, attribute, None)
        if isinstance(value, str) and value:
            return value
    return type(model).__name__


def create_chat_model(settings: AgentSettings) -> BaseChatModel:
    """Create the default Anthropic chat model.

    Raises:
        ValueError: If no API key is configured
    """
    if not settings.anthropic_api_key:
        raise ValueError("ANTHROPIC_API_KEY environment variable is required")

    return ChatAnthropic(
        model=settings.model,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        api_key=settings.anthropic_api_key,
    )
