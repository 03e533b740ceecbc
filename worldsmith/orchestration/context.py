"""Context assembly: the ordered prompt for a turn."""

import asyncio
from pathlib import Path

from worldsmith.models.messages import Message
from worldsmith.services.memory import LongTermMemoryStore
from worldsmith.services.persistence import ConversationPersistence, PersistedMessage
from worldsmith.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PERSONA = (
    "You are an intelligent assistant powered by Worldsmith. "
    "Your goal is to help the user edit and create their worlds."
)
MEMORY_HEADING = "Long-term memory:"


class ContextAssembler:
    """Builds `[system, *history (oldest first), current user]` for a turn.

    Every step fails soft: an unreadable persona falls back to the default,
    a failing memory or history lookup contributes nothing.
    """

    def __init__(
        self,
        persistence: ConversationPersistence,
        memory: LongTermMemoryStore | None = None,
        persona_path: Path | str | None = None,
        history_limit: int = 20,
    ):
        self.persistence = persistence
        self.memory = memory
        self.persona_path = Path(persona_path) if persona_path else None
        self.history_limit = history_limit

    async def assemble(self, user_text: str, session_id: str) -> list[Message]:
        persona = await self.load_persona()
        summary = await self._load_summary(session_id)
        system_content = f"{persona}\n\n{MEMORY_HEADING}\n{summary}" if summary else persona

        history = await self.load_history(user_text, session_id)
        logger.debug(f"Assembled context for session {session_id}: {len(history)} history messages")
        return [Message.system(system_content), *history, Message.user(user_text)]

    async def load_persona(self) -> str:
        if self.persona_path is None:
            return DEFAULT_PERSONA
        try:
            text = await asyncio.to_thread(self.persona_path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to load persona from {self.persona_path}: {e}")
            return DEFAULT_PERSONA
        return text.strip() or DEFAULT_PERSONA

    async def _load_summary(self, session_id: str) -> str:
        if self.memory is None:
            return ""
        try:
            return (await self.memory.get_summary(session_id)).strip()
        except Exception as e:
            logger.error(f"Failed to load long-term memory for session {session_id}: {e}", exc_info=True)
            return ""

    async def load_history(self, user_text: str, session_id: str) -> list[Message]:
        """Recent persisted turns, oldest first, tagged as history.

        One extra record is fetched because the current input was persisted
        just before the turn started and is filtered out here. Records without
        text are skipped.
        """
        try:
            records = await self.persistence.find_recent(session_id, self.history_limit + 1)
        except Exception as e:
            logger.error(f"Failed to load history for session {session_id}: {e}", exc_info=True)
            return []

        valid = [
            record
            for record in records
            if record.content.strip() and not _is_current_input(record, user_text)
        ]
        valid = valid[: self.history_limit]
        valid.reverse()
        return [_to_history_message(record) for record in valid]


def _is_current_input(record: PersistedMessage, user_text: str) -> bool:
    # Also drops an earlier message that repeats the input word for word
    return record.role == "user" and record.content == user_text


def _to_history_message(record: PersistedMessage) -> Message:
    if record.role == "user":
        return Message(role="user", content=record.content, is_history=True)
    return Message(role="assistant", content=record.content, is_history=True)
