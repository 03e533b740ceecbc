"""Request and response models for the HTTP surface."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from worldsmith.models.content import ContentPart


class ConversationRequest(BaseModel):
    """Request model for the conversation endpoints."""

    message: str
    session_id: str | None = None


class ConversationResponse(BaseModel):
    """Collected reply for the non-streaming conversation endpoint.

    A failed turn leaves `response` empty and reports the failure in `error`
    and as an error part.
    """

    response: str
    session_id: str
    parts: list[ContentPart] = Field(default_factory=list)
    error: str | None = None


class HistoryMessage(BaseModel):
    """A persisted message as returned to the UI."""

    id: int
    role: Literal["user", "ai"]
    content: str
    type: str = "text"
    session_id: str
    created_at: datetime


class HistoryResponse(BaseModel):
    """Persisted history for a session, oldest first."""

    session_id: str
    messages: list[HistoryMessage]


class ClearHistoryResponse(BaseModel):
    """Result of clearing a session's history."""

    session_id: str
    deleted: int


class ArchiveResponse(BaseModel):
    """Result of compressing older turns into long-term memory."""

    session_id: str
    archived: int
    summary: str


class CancelResponse(BaseModel):
    """Result of a cancellation request."""

    session_id: str
    cancelled: bool


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
