"""Conversation service: runs turns for sessions and exposes history operations."""

import asyncio
from collections.abc import AsyncIterator

from pydantic import BaseModel

from worldsmith.clients.tokens import TokenEstimator
from worldsmith.models.content import ErrorPart
from worldsmith.models.conversation import ConversationResponse
from worldsmith.models.session import Session
from worldsmith.models.stream import StreamErrorChunk
from worldsmith.orchestration.cancellation import CancellationToken
from worldsmith.orchestration.errors import SessionBusyError
from worldsmith.orchestration.events import AgentEvent
from worldsmith.orchestration.orchestrator import TurnOrchestrator
from worldsmith.orchestration.streaming import ChunkSink, StreamEventTranslator
from worldsmith.services.memory import HistoryCompressor, LongTermMemoryStore
from worldsmith.services.persistence import ArchiveResult, ConversationPersistence, PersistedMessage
from worldsmith.services.session_manager import InMemorySessionManager
from worldsmith.utils.content import content_to_parts
from worldsmith.utils.logging import get_logger

logger = get_logger(__name__)


class ConversationService:
    """Entry point for everything the UI can ask of the engine.

    A turn persists the user message, runs the orchestrator and translates
    its events into stream chunks. Turns on the same session never overlap:
    a second turn while one is running raises `SessionBusyError`.
    """

    def __init__(
        self,
        orchestrator: TurnOrchestrator,
        persistence: ConversationPersistence,
        session_manager: InMemorySessionManager,
        token_estimator: TokenEstimator | None = None,
        memory: LongTermMemoryStore | None = None,
        compressor: HistoryCompressor | None = None,
        archive_keep_recent: int = 20,
    ):
        """Initialize the conversation service.

        Args:
            orchestrator: Runs a single turn
            persistence: Message store adapter
            session_manager: Tracks sessions and their running turns
            token_estimator: Validates user input size, None disables validation
            memory: Long-term memory cleared together with the history
            compressor: Used by `archive`, None disables archiving
            archive_keep_recent: Records kept out of the summary by `archive`
        """
        self.orchestrator = orchestrator
        self.persistence = persistence
        self.session_manager = session_manager
        self.token_estimator = token_estimator
        self.memory = memory
        self.compressor = compressor
        self.archive_keep_recent = archive_keep_recent

        logger.info("ConversationService initialized")

    def start_turn(self, text: str, session_id: str | None = None) -> Session:
        """Validate a new turn and resolve its session.

        Nothing is persisted here, so a rejected message leaves no trace.

        Raises:
            ValueError: If the message exceeds the token limit
            SessionBusyError: If the session already runs a turn
        """
        if self.token_estimator is not None:
            self.token_estimator.validate_message_tokens(text)

        session = self.session_manager.get_or_create_session(session_id)
        if session.turn_active:
            logger.warning(f"Rejecting concurrent turn for session {session.session_id}")
            raise SessionBusyError(session.session_id)
        return session

    async def run_turn(self, text: str, session: Session, sink: ChunkSink) -> str | None:
        """Run one turn for an already validated session, pushing chunks to `sink`.

        Returns:
            The persisted answer, or None when the turn ended with stream_error
        """
        if session.turn_active:
            translator = StreamEventTranslator(sink, self.persistence, session.session_id)
            await translator.fail(str(SessionBusyError(session.session_id)))
            return None

        async with session.lock:
            token = session.begin_turn()
            logger.info(f"Processing message for session {session.session_id}: {text[:50]}...")
            translator = StreamEventTranslator(sink, self.persistence, session.session_id, token)
            try:
                return await translator.consume(self._turn_events(text, session.session_id, token))
            finally:
                session.end_turn()

    async def send_message(self, text: str, session_id: str | None, sink: ChunkSink) -> Session:
        """Validate and run a turn, pushing chunks to `sink`.

        Raises:
            ValueError: If the message exceeds the token limit
            SessionBusyError: If the session already runs a turn
        """
        session = self.start_turn(text, session_id)
        await self.run_turn(text, session, sink)
        return session

    async def stream_turn(self, text: str, session: Session) -> AsyncIterator[BaseModel]:
        """Run a turn in the background and yield its chunks as they arrive.

        Closing the iterator early cancels the turn.
        """
        queue: asyncio.Queue[BaseModel | None] = asyncio.Queue()

        async def produce() -> None:
            try:
                await self.run_turn(text, session, queue.put_nowait)
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(produce())
        try:
            while (chunk := await queue.get()) is not None:
                yield chunk
            await task
        finally:
            if not task.done():
                logger.info(f"Stream for session {session.session_id} closed early, cancelling the turn")
                session.cancel_turn()
                task.cancel()

    async def collect(self, text: str, session_id: str | None = None) -> ConversationResponse:
        """Run a turn and return the whole reply at once.

        Raises:
            ValueError: If the message exceeds the token limit
            SessionBusyError: If the session already runs a turn
        """
        session = self.start_turn(text, session_id)
        return await self.run_and_collect(text, session)

    async def run_and_collect(self, text: str, session: Session) -> ConversationResponse:
        """Run a turn for a validated session and collect its reply."""
        chunks: list[BaseModel] = []
        answer = await self.run_turn(text, session, chunks.append)

        if answer is None:
            error = next((c for c in chunks if isinstance(c, StreamErrorChunk)), None)
            message = error.message if error else "Unknown error"
            return ConversationResponse(
                response="",
                session_id=session.session_id,
                parts=[ErrorPart(message=message)],
                error=message,
            )
        return ConversationResponse(response=answer, session_id=session.session_id, parts=content_to_parts(answer))

    def cancel(self, session_id: str) -> bool:
        """Signal the running turn of a session to stop."""
        return self.session_manager.cancel_turn(session_id)

    def has_session(self, session_id: str) -> bool:
        return self.session_manager.get_session(session_id) is not None

    async def get_history(self, session_id: str, limit: int = 50) -> list[PersistedMessage]:
        return await self.persistence.get_history(session_id, limit)

    async def clear_history(self, session_id: str) -> int:
        """Delete the persisted history and long-term memory of a session."""
        deleted = await self.persistence.clear(session_id)
        if self.memory is not None:
            await self.memory.clear(session_id)
        return deleted

    async def archive(self, session_id: str) -> ArchiveResult:
        """Fold older turns of a session into its long-term memory.

        Raises:
            RuntimeError: If no compressor or memory store is configured
        """
        if self.compressor is None or self.memory is None:
            raise RuntimeError("History archiving is not configured")
        return await self.persistence.archive(
            session_id, self.compressor, self.memory, keep_recent=self.archive_keep_recent
        )

    async def _turn_events(self, text: str, session_id: str, token: CancellationToken) -> AsyncIterator[AgentEvent]:
        # Persisting inside the feed turns a store failure into stream_error
        await self.persistence.save_user_message(text, session_id)
        async for event in self.orchestrator.run(text, session_id, token):
            yield event
