"""
FastAPI Router for the Agent Chatbot.

Provides REST endpoints for chat sessions and a Server-Sent Events stream
of live chat events per session.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import StreamingResponse

from ..chat_service import ChatService
from ..domain.entities import ChatEvent
from ..domain.exceptions import QueueFullError, SessionNotFoundError, SubscriptionClosed
from ..domain.ports import ISubscription
from .schemas import (
    ChatPageResponse,
    CreateChatRequest,
    MessageResponse,
    SendMessageRequest,
    SendMessageResponse,
    SessionListResponse,
    SessionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

KEEPALIVE_SECONDS = 15.0


# =============================================================================
# Dependencies
# =============================================================================


class ChatDependencies:
    """Container for chat dependencies.

    Injected at application startup.
    """

    service: Optional[ChatService] = None


_deps = ChatDependencies()


def create_chat_dependencies(service: Optional[ChatService]) -> None:
    """Initialize chat dependencies.

    Call this at application startup (and with None on shutdown).

    Args:
        service: The chat service
    """
    _deps.service = service


def get_chat_service() -> ChatService:
    """Get the chat service dependency."""
    if not _deps.service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat not initialized",
        )
    return _deps.service


def _not_found(e: SessionNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


# =============================================================================
# REST Endpoints
# =============================================================================


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    service: ChatService = Depends(get_chat_service),
) -> SessionListResponse:
    """List chat sessions, newest first."""
    sessions = await service.list_sessions()
    return SessionListResponse(
        sessions=[SessionResponse.from_session(s) for s in sessions],
        total=len(sessions),
    )


@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    request: CreateChatRequest,
    service: ChatService = Depends(get_chat_service),
) -> SessionResponse:
    """Create a chat session."""
    try:
        session = await service.create_chat(request.name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return SessionResponse.from_session(session)


@router.get("/sessions/{session_id}", response_model=ChatPageResponse)
async def get_session(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
) -> ChatPageResponse:
    """Get a session with its most recent messages."""
    try:
        page = await service.get_chat_page_data(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)

    return ChatPageResponse(
        id=page.session_id,
        name=page.name,
        messages=[MessageResponse.from_message(m) for m in page.messages],
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
) -> Response:
    """Delete a session and its messages."""
    if not await service.delete_chat(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"chat session {session_id} not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/sessions/{session_id}/messages",
    response_model=SendMessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def send_message(
    session_id: str,
    request: SendMessageRequest,
    service: ChatService = Depends(get_chat_service),
) -> SendMessageResponse:
    """Queue a user message.

    The echo, the streamed answer and the final messages are delivered on
    the session's event stream.
    """
    try:
        await service.send_message(session_id, request.text)
    except SessionNotFoundError as e:
        raise _not_found(e)
    except QueueFullError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=e.message,
            headers={"Retry-After": "5"},
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return SendMessageResponse(session_id=session_id)


# =============================================================================
# Server-Sent Events
# =============================================================================


def format_sse(event: ChatEvent) -> str:
    """Encode a chat event as one SSE frame."""
    payload: dict[str, Any] = event.to_dict()
    return f"event: {event.type.value}\ndata: {json.dumps(payload)}\n\n"


async def sse_events(
    subscription: ISubscription,
    request: Request,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Drain a subscription into SSE frames until the client goes away.

    The subscription is cancelled on every exit path.
    """
    try:
        while True:
            # Check if client disconnected
            if await request.is_disconnected():
                logger.info(f"Client disconnected from event stream {subscription.topic}")
                break

            try:
                event = await asyncio.wait_for(subscription.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            except SubscriptionClosed:
                break

            yield format_sse(event)
    finally:
        subscription.cancel()


@router.get("/sessions/{session_id}/events")
async def stream_events(
    session_id: str,
    request: Request,
    service: ChatService = Depends(get_chat_service),
) -> StreamingResponse:
    """Live chat events for a session (text/event-stream)."""
    try:
        await service.get_session_name(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)

    subscription = service.subscribe_to_messages(session_id)

    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",  # Disable Nginx buffering
    }

    return StreamingResponse(
        sse_events(subscription, request),
        media_type="text/event-stream",
        headers=headers,
    )
