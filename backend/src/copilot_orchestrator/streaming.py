"""Streaming demultiplexer: loop events in, ordered client-visible events out.

Only ``assistant-text`` fragments reach the client. Tool-call construction
(``tool-internal``) is dropped. The stream ends with exactly one terminal
event, ``StreamComplete`` or ``StreamError``; after an error it is not
resumable, a new turn has to be started.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterable, Iterator
from dataclasses import dataclass
from typing import Union

from .errors import OrchestratorError
from .models import Phase, ResponseFragment

# ---------------------------------------------------------------------------
# Loop events (produced by the orchestration loop)
# ---------------------------------------------------------------------------


@dataclass
class FragmentEvent:
    fragment: ResponseFragment


@dataclass
class TurnCompleted:
    reply: str


@dataclass
class TurnFailed:
    error: OrchestratorError


LoopEvent = Union[FragmentEvent, TurnCompleted, TurnFailed]

# ---------------------------------------------------------------------------
# Stream events (consumed by the transport)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextIncrement:
    content: str


@dataclass(frozen=True)
class StreamComplete:
    pass


@dataclass(frozen=True)
class StreamError:
    message: str
    code: str = "internal_error"


StreamEvent = Union[TextIncrement, StreamComplete, StreamError]

_UNTERMINATED = StreamError(message="Stream ended unexpectedly")


def transform(event: LoopEvent) -> StreamEvent | None:
    """Map one loop event to its client event, or None when it is filtered out."""
    if isinstance(event, FragmentEvent):
        fragment = event.fragment
        if fragment.phase is Phase.ASSISTANT_TEXT and fragment.delta:
            return TextIncrement(content=fragment.delta)
        return None
    if isinstance(event, TurnCompleted):
        return StreamComplete()
    if isinstance(event, TurnFailed):
        return StreamError(message=event.error.public_message, code=event.error.code)
    raise TypeError(f"Unexpected loop event: {event!r}")


def demultiplex_sync(events: Iterable[LoopEvent]) -> Iterator[StreamEvent]:
    """Pure transform over an already materialized event sequence."""
    for event in events:
        out = transform(event)
        if out is None:
            continue
        yield out
        if not isinstance(out, TextIncrement):
            return
    yield _UNTERMINATED


async def demultiplex(events: AsyncIterator[LoopEvent]) -> AsyncIterator[StreamEvent]:
    """Async twin of ``demultiplex_sync``; closes ``events`` when done."""
    try:
        async for event in events:
            out = transform(event)
            if out is None:
                continue
            yield out
            if not isinstance(out, TextIncrement):
                return
        yield _UNTERMINATED
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()


def encode_sse(event: StreamEvent) -> str:
    """Server-Sent-Events framing: ``data: <JSON>\\n\\n``."""
    if isinstance(event, TextIncrement):
        payload: dict[str, object] = {"content": event.content, "node": "assistant"}
    elif isinstance(event, StreamComplete):
        payload = {"done": True}
    else:
        payload = {"error": event.message}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"
