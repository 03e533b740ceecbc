"""Wiring of the engine components for the HTTP layer."""

from functools import lru_cache

from worldsmith.clients.chat_model import ChatModelClient, ChatModelProvider, ModelClientConfig, create_chat_model
from worldsmith.clients.tokens import TokenEstimator
from worldsmith.config import AgentSettings
from worldsmith.orchestration.context import ContextAssembler
from worldsmith.orchestration.orchestrator import TurnOrchestrator
from worldsmith.services.conversation import ConversationService
from worldsmith.services.memory import HistoryCompressor, LongTermMemoryStore
from worldsmith.services.persistence import (
    ConversationPersistence,
    InMemoryMessageRepository,
    MessageRepository,
    SqliteMessageRepository,
)
from worldsmith.services.session_manager import InMemorySessionManager
from worldsmith.tools.dispatcher import ToolDispatcher
from worldsmith.tools.registry import build_default_registry
from worldsmith.utils.logging import get_logger

logger = get_logger(__name__)


def build_conversation_service(
    settings: AgentSettings,
    model: ChatModelProvider | None = None,
    repository: MessageRepository | None = None,
    token_estimator: TokenEstimator | None = None,
) -> ConversationService:
    """Assemble a conversation service from settings.

    Args:
        settings: Engine settings
        model: Provider to use instead of the configured Anthropic model
        repository: Message store to use instead of the configured one
        token_estimator: Estimator to use instead of the tiktoken-backed default
    """
    if repository is None:
        if settings.database_path:
            logger.info(f"Using SQLite message store at {settings.database_path}")
            repository = SqliteMessageRepository(settings.database_path)
        else:
            logger.info("Using in-memory message store")
            repository = InMemoryMessageRepository()

    if token_estimator is None:
        token_estimator = TokenEstimator(max_message_tokens=settings.max_message_tokens)
    if model is None:
        model = ChatModelClient(create_chat_model(settings), ModelClientConfig(), token_estimator=token_estimator)

    persistence = ConversationPersistence(repository)
    memory = LongTermMemoryStore()
    registry = build_default_registry(persistence, memory)
    assembler = ContextAssembler(
        persistence,
        memory=memory,
        persona_path=settings.persona_path,
        history_limit=settings.history_limit,
    )
    orchestrator = TurnOrchestrator(
        assembler,
        ToolDispatcher(registry),
        model,
        max_model_calls=settings.max_model_calls,
    )
    logger.info(f"Conversation engine ready with model {model.model_name} and tools {registry.get_tool_names()}")

    return ConversationService(
        orchestrator,
        persistence,
        InMemorySessionManager(session_timeout_minutes=settings.session_timeout_minutes),
        token_estimator=token_estimator,
        memory=memory,
        compressor=HistoryCompressor(model),
        archive_keep_recent=settings.history_limit,
    )


@lru_cache
def get_settings() -> AgentSettings:
    return AgentSettings.from_env()


@lru_cache
def get_conversation_service() -> ConversationService:
    """Process-wide conversation service, built on first use."""
    return build_conversation_service(get_settings())
