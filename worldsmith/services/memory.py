"""Long-term memory: compressed summaries of older turns."""

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

from worldsmith.models.messages import Message
from worldsmith.utils.content import content_to_text
from worldsmith.utils.logging import get_logger

if TYPE_CHECKING:
    from worldsmith.clients.chat_model import ChatModelProvider
    from worldsmith.services.persistence import PersistedMessage

logger = get_logger(__name__)

COMPRESSOR_PROMPT = """You compress conversation history for a world-building assistant.

You receive the current long-term summary (possibly empty) and a batch of older messages.
Rewrite the summary so it also covers the new messages. Keep:
- facts the user established about their world (places, nations, characters, rules)
- decisions and open tasks
- the user's stated preferences

Answer with the updated summary only, as concise markdown."""


@dataclass
class MemoryEntry:
    summary: str = ""
    archived_through: int = 0


class LongTermMemoryStore:
    """In-memory store of per-session summaries."""

    def __init__(self) -> None:
        self._entries: dict[str, MemoryEntry] = {}

    async def get_summary(self, session_id: str) -> str:
        entry = self._entries.get(session_id)
        return entry.summary if entry else ""

    async def get_archived_through(self, session_id: str) -> int:
        """Id of the newest record already folded into the summary (0 if none)."""
        entry = self._entries.get(session_id)
        return entry.archived_through if entry else 0

    async def update(self, session_id: str, summary: str, archived_through: int) -> None:
        self._entries[session_id] = MemoryEntry(summary=summary, archived_through=archived_through)

    async def clear(self, session_id: str) -> None:
        self._entries.pop(session_id, None)


class HistoryCompressor:
    """Folds older messages into a running summary using the chat model."""

    def __init__(self, model: "ChatModelProvider"):
        self.model = model

    async def compress(self, current_summary: str, records: list["PersistedMessage"]) -> str:
        """Return the summary rewritten to also cover `records`.

        Keeps the current summary when the model answers with no text.
        """
        payload = {
            "current_summary": current_summary,
            "messages": [{"role": record.role, "content": record.content} for record in records],
        }
        messages = [
            Message.system(COMPRESSOR_PROMPT),
            Message.user(json.dumps(payload, ensure_ascii=False)),
        ]
        logger.debug(f"Compressing {len(records)} messages into long-term memory")
        response = await self.model.invoke(messages)
        text = content_to_text(response.content).strip()
        if not text:
            logger.warning("History compression returned no text, keeping the previous summary")
            return current_summary
        return text
