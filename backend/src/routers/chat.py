"""Chat router: blocking and streamed chat endpoints."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from src.copilot_orchestrator.errors import InvalidInput
from src.copilot_orchestrator.loop import Orchestrator
from src.copilot_orchestrator.streaming import encode_sse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class ChatResponse(BaseModel):
    """Response for POST /chat."""

    sessionId: str = Field(..., description="Session the reply belongs to")
    reply: str


class TranscriptEntry(BaseModel):
    role: str
    text: str


class TranscriptResponse(BaseModel):
    sessionId: str
    messages: list[TranscriptEntry]


def get_orchestrator(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


async def _read_chat_body(request: Request) -> tuple[str, str]:
    """Return (sessionId, message), raising InvalidInput for anything else."""
    try:
        body: Any = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        body = {}
    message = body.get("message")
    session_id = body.get("sessionId")
    if not isinstance(message, str) or not message:
        raise InvalidInput("Field 'message' is required and must be a string")
    if not isinstance(session_id, str) or not session_id:
        raise InvalidInput("Field 'sessionId' is required and must be a string")
    return session_id, message


@router.post("", response_model=ChatResponse)
async def chat(request: Request) -> ChatResponse:
    """Run one turn and return the assistant reply."""
    session_id, message = await _read_chat_body(request)
    reply = await get_orchestrator(request).send_message(session_id, message)
    return ChatResponse(sessionId=session_id, reply=reply)


@router.post("/stream")
async def chat_stream(request: Request) -> StreamingResponse:
    """Stream the reply as Server-Sent Events; tool calls never reach the client."""
    session_id, message = await _read_chat_body(request)
    events = get_orchestrator(request).stream_message(session_id, message)

    async def body() -> AsyncIterator[str]:
        async for event in events:
            yield encode_sse(event)

    return StreamingResponse(body(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/{session_id}/transcript", response_model=TranscriptResponse)
async def transcript(session_id: str, request: Request) -> TranscriptResponse:
    """User and assistant messages of a session, oldest first."""
    turns = await get_orchestrator(request).transcript(session_id)
    return TranscriptResponse(
        sessionId=session_id,
        messages=[
            TranscriptEntry(role="user" if t.kind == "user" else "assistant", text=t.text)
            for t in turns
        ],
    )
