"""API endpoints for the Worldsmith agent."""

import json
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from worldsmith import __version__
from worldsmith.api.dependencies import get_conversation_service
from worldsmith.models.conversation import (
    ArchiveResponse,
    CancelResponse,
    ClearHistoryResponse,
    ConversationRequest,
    ConversationResponse,
    HealthResponse,
    HistoryMessage,
    HistoryResponse,
)
from worldsmith.models.session import Session
from worldsmith.models.stream import dump_chunk
from worldsmith.orchestration.errors import SessionBusyError
from worldsmith.services.conversation import ConversationService
from worldsmith.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()

Service = Annotated[ConversationService, Depends(get_conversation_service)]

SESSION_HEADER = "X-Session-Id"


def _start_turn(service: ConversationService, request: ConversationRequest) -> Session:
    try:
        return service.start_turn(request.message, request.session_id)
    except ValueError as e:
        logger.warning(f"Message validation error for session {request.session_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e


async def _ndjson(chunks: AsyncIterator) -> AsyncIterator[str]:
    async for chunk in chunks:
        yield json.dumps(dump_chunk(chunk), ensure_ascii=False) + "\n"


@router.post("/conversation/stream", tags=["Conversation"])
async def stream_conversation(request: ConversationRequest, service: Service) -> StreamingResponse:
    """Run a turn and stream its chunks as newline-delimited JSON.

    The stream always ends with exactly one `done` or `stream_error` chunk.
    The session id is returned in the `X-Session-Id` header.
    """
    session = _start_turn(service, request)
    logger.info(f"Streaming turn for session {session.session_id}")
    return StreamingResponse(
        _ndjson(service.stream_turn(request.message, session)),
        media_type="application/x-ndjson",
        headers={SESSION_HEADER: session.session_id},
    )


@router.post("/conversation", response_model=ConversationResponse, tags=["Conversation"])
async def handle_conversation(request: ConversationRequest, service: Service) -> ConversationResponse:
    """Run a turn and return the complete reply with its structured parts."""
    session = _start_turn(service, request)
    try:
        response = await service.run_and_collect(request.message, session)
    except Exception as e:
        logger.error(f"Conversation processing error for session {session.session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process the message") from e
    if response.error:
        logger.warning(f"Turn for session {session.session_id} failed: {response.error}")
    else:
        logger.info(f"Generated response for session {session.session_id}: {response.response[:50]}...")
    return response


@router.post("/conversation/{session_id}/cancel", response_model=CancelResponse, tags=["Conversation"])
async def cancel_conversation(session_id: str, service: Service) -> CancelResponse:
    """Cancel the running turn of a session."""
    if not service.has_session(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return CancelResponse(session_id=session_id, cancelled=service.cancel(session_id))


@router.get("/history", response_model=HistoryResponse, tags=["History"])
async def get_history(
    service: Service,
    session_id: Annotated[str, Query(min_length=1)],
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> HistoryResponse:
    """Persisted messages of a session, oldest first."""
    try:
        records = await service.get_history(session_id, limit)
    except Exception as e:
        logger.error(f"Failed to load history for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to load history") from e
    return HistoryResponse(
        session_id=session_id,
        messages=[HistoryMessage.model_validate(record.as_dict()) for record in records],
    )


@router.delete("/history/{session_id}", response_model=ClearHistoryResponse, tags=["History"])
async def clear_history(session_id: str, service: Service) -> ClearHistoryResponse:
    """Delete the persisted history and long-term memory of a session."""
    try:
        deleted = await service.clear_history(session_id)
    except Exception as e:
        logger.error(f"Failed to clear history for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to clear history") from e
    return ClearHistoryResponse(session_id=session_id, deleted=deleted)


@router.post("/history/{session_id}/archive", response_model=ArchiveResponse, tags=["History"])
async def archive_history(session_id: str, service: Service) -> ArchiveResponse:
    """Compress older turns of a session into its long-term memory."""
    try:
        result = await service.archive(session_id)
    except Exception as e:
        logger.error(f"Failed to archive history for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to archive history") from e
    return ArchiveResponse(session_id=session_id, archived=result.archived, summary=result.summary)


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )
