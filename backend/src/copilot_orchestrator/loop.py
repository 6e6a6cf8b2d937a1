"""Main agent and tool loop orchestrator."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass, field

from .agents import ROAD_COMPANION_AGENT, AgentConfig
from .config import DEFAULT_MAX_TOOL_CYCLES, DEFAULT_TOOL_TIMEOUT, DISPLAY_TIMEZONE
from .errors import (
    InvalidInput,
    ModelResponseMalformed,
    OrchestratorError,
    ToolCycleLimitExceeded,
    TurnCancelled,
)
from .llm import ModelAdapter
from .models import (
    AssistantMessage,
    FailureNotice,
    FinalText,
    ModelResponse,
    Phase,
    ResponseFragment,
    ToolInvocation,
    Turn,
    UserMessage,
    visible_transcript,
)
from .session_store import SessionStore
from .streaming import (
    FragmentEvent,
    LoopEvent,
    StreamEvent,
    TurnCompleted,
    TurnFailed,
    demultiplex,
)
from .system_prompt_loader import render_system_prompt
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

# Joins the visible text of separate model calls within one reply
PART_SEPARATOR = "\n\n"


class LoopState(str, enum.Enum):
    AWAITING_MODEL = "awaiting_model"
    RESPONDING = "responding"
    REQUESTING_TOOLS = "requesting_tools"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    FAILED = "failed"


@dataclass
class LoopOptions:
    """Options for the agent loop."""

    max_tool_cycles: int = DEFAULT_MAX_TOOL_CYCLES
    tool_timeout: float | None = DEFAULT_TOOL_TIMEOUT
    display_timezone: str = DISPLAY_TIMEZONE
    failure_notice: str = "Sorry, something went wrong on my side. Could you say that again?"
    cycle_limit_notice: str = "Sorry, I couldn't finish that request. Let's try it another way."


@dataclass
class TurnOutcome:
    """Result of processing one user message."""

    session_id: str
    state: LoopState
    reply: str = ""
    error: OrchestratorError | None = None
    tool_cycles: int = 0
    turns: list[Turn] = field(default_factory=list)


class TurnControl:
    """Lets the caller of a streamed turn stop it after the fact."""

    def __init__(self) -> None:
        self.cancelled = False
        self._run: _TurnRun | None = None

    def attach(self, run: _TurnRun) -> None:
        self._run = run
        if self.cancelled:
            run.cancel()

    def cancel(self) -> None:
        self.cancelled = True
        if self._run is not None:
            self._run.cancel()


def _require_input(session_id: str, text: str) -> None:
    if not isinstance(text, str) or not text:
        raise InvalidInput("Field 'message' is required and must be a string")
    if not isinstance(session_id, str) or not session_id:
        raise InvalidInput("Field 'sessionId' is required and must be a string")


class _TurnRun:
    """One user message moving through the state machine.

    ``turns`` accumulates what will be appended to the session: the user
    message, complete ToolInvocation/ToolResult batches, then either the
    AssistantMessage or a FailureNotice.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        history: list[Turn],
        text: str,
        *,
        streaming: bool,
        emit: Callable[[LoopEvent], None],
    ) -> None:
        self.orchestrator = orchestrator
        self.history = history
        self.streaming = streaming
        self.emit = emit
        self.state = LoopState.AWAITING_MODEL
        self.turns: list[Turn] = [UserMessage(text=text)]
        self.parts: list[str] = []
        self.cycles = 0
        self.cancel_requested = False
        self.system_prompt = orchestrator.render_prompt()
        self._model_task: asyncio.Future[ModelResponse] | None = None

    def cancel(self) -> None:
        """Stop after the current step. In-flight tool calls still complete."""
        self.cancel_requested = True
        if self._model_task is not None and not self._model_task.done():
            self._model_task.cancel()

    def _transition(self, state: LoopState) -> None:
        logger.debug("turn state %s -> %s (cycle %d)", self.state.value, state.value, self.cycles)
        self.state = state

    async def run(self) -> str:
        orch = self.orchestrator
        while True:
            self._transition(LoopState.AWAITING_MODEL)
            if self.cancel_requested:
                raise TurnCancelled()
            response = await self._call_model()
            if response.text:
                self.parts.append(response.text)

            if isinstance(response, FinalText):
                self._transition(LoopState.RESPONDING)
                reply = PART_SEPARATOR.join(self.parts)
                blocks = [{"type": "text", "text": p} for p in self.parts] if len(self.parts) > 1 else None
                self.turns.append(AssistantMessage(text=reply, content_blocks=blocks))
                self._transition(LoopState.DONE)
                return reply

            self._transition(LoopState.REQUESTING_TOOLS)
            if self.cycles >= orch.options.max_tool_cycles:
                raise ToolCycleLimitExceeded(
                    f"Model kept requesting tools after {self.cycles} cycles"
                )
            self.cycles += 1

            self._transition(LoopState.EXECUTING_TOOLS)
            logger.info(
                "Cycle %d: running %s", self.cycles, ", ".join(c.name for c in response.calls)
            )
            results = await asyncio.gather(
                *(orch.registry.execute(call, orch.options.tool_timeout) for call in response.calls)
            )
            self.turns.extend(
                ToolInvocation(
                    call_id=call.call_id,
                    tool_name=call.name,
                    arguments=call.arguments,
                    preamble=response.text if i == 0 else "",
                )
                for i, call in enumerate(response.calls)
            )
            self.turns.extend(results)

    async def _call_model(self) -> ModelResponse:
        history = self.history + self.turns
        orch = self.orchestrator
        if self.streaming:
            coro = self._stream_model(history)
        else:
            coro = orch.adapter.invoke(history, self.system_prompt, orch.tool_descriptors)
        self._model_task = asyncio.ensure_future(coro)
        try:
            return await self._model_task
        except asyncio.CancelledError:
            if self.cancel_requested and self._model_task.cancelled():
                raise TurnCancelled() from None
            raise
        finally:
            self._model_task = None

    async def _stream_model(self, history: list[Turn]) -> ModelResponse:
        orch = self.orchestrator
        separated = not self.parts
        fragments = orch.adapter.invoke_streaming(history, self.system_prompt, orch.tool_descriptors)
        async with aclosing(fragments):
            async for fragment in fragments:
                if fragment.done and fragment.response is not None:
                    return fragment.response
                if fragment.phase is Phase.ASSISTANT_TEXT and fragment.delta and not separated:
                    separated = True
                    self.emit(FragmentEvent(ResponseFragment(delta=PART_SEPARATOR)))
                self.emit(FragmentEvent(fragment))
        raise ModelResponseMalformed("Model stream ended without a terminal fragment")

    def fail(self, error: OrchestratorError, session_id: str) -> TurnOutcome:
        self._transition(LoopState.FAILED)
        logger.warning("Turn failed for session %s: %s (%s)", session_id, error.message, error.code)
        options = self.orchestrator.options
        notice = (
            options.cycle_limit_notice
            if isinstance(error, ToolCycleLimitExceeded)
            else options.failure_notice
        )
        self.turns.append(FailureNotice(text=notice, error_code=error.code))
        return TurnOutcome(
            session_id=session_id,
            state=LoopState.FAILED,
            error=error,
            tool_cycles=self.cycles,
            turns=self.turns,
        )


class Orchestrator:
    """
    Drives the model/tool cycle for one agent.

    For each user message: lock the session, load its history, alternate model
    calls and tool batches until the model answers (or the turn fails), then
    append everything the turn produced in one atomic write.
    """

    def __init__(
        self,
        store: SessionStore,
        registry: ToolRegistry,
        adapter: ModelAdapter,
        agent: AgentConfig = ROAD_COMPANION_AGENT,
        options: LoopOptions | None = None,
        prompt_renderer: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self.agent = agent
        self._tool_source = registry
        self.registry = registry.subset(agent.tool_names)
        self.tool_descriptors = self.registry.descriptors()
        self.adapter = adapter
        self.options = options or LoopOptions()
        self._prompt_renderer = prompt_renderer
        self._tasks: set[asyncio.Task[TurnOutcome]] = set()

    def render_prompt(self) -> str:
        if self._prompt_renderer is not None:
            return self._prompt_renderer()
        return render_system_prompt(self.agent, tz_name=self.options.display_timezone)

    async def send_message(self, session_id: str, text: str) -> str:
        """Process one message and return the reply; raises the turn's error on failure."""
        outcome = await self.process_message(session_id, text)
        if outcome.error is not None:
            raise outcome.error
        return outcome.reply

    async def process_message(
        self,
        session_id: str,
        text: str,
        *,
        streaming: bool = False,
        emit: Callable[[LoopEvent], None] | None = None,
        control: TurnControl | None = None,
    ) -> TurnOutcome:
        """Run one user message to Done or Failed. Never raises past input validation."""
        _require_input(session_id, text)
        emit = emit or (lambda event: None)
        try:
            async with self.store.session(session_id) as history:
                run = _TurnRun(self, history, text, streaming=streaming, emit=emit)
                if control is not None:
                    control.attach(run)
                try:
                    reply = await run.run()
                    outcome = TurnOutcome(
                        session_id=session_id,
                        state=LoopState.DONE,
                        reply=reply,
                        tool_cycles=run.cycles,
                        turns=run.turns,
                    )
                except OrchestratorError as exc:
                    outcome = run.fail(exc, session_id)
                except asyncio.CancelledError:
                    run.fail(TurnCancelled(), session_id)
                    await self.store.append(session_id, run.turns, expected_length=len(history))
                    raise
                except Exception as exc:
                    logger.exception("Unexpected error while processing session %s", session_id)
                    outcome = run.fail(OrchestratorError(str(exc)), session_id)
                await self.store.append(session_id, run.turns, expected_length=len(history))
        except OrchestratorError as exc:
            outcome = TurnOutcome(session_id=session_id, state=LoopState.FAILED, error=exc)
        except Exception as exc:
            logger.exception("Could not store turn for session %s", session_id)
            outcome = TurnOutcome(session_id=session_id, state=LoopState.FAILED, error=OrchestratorError(str(exc)))

        if outcome.error is None:
            emit(TurnCompleted(reply=outcome.reply))
        else:
            emit(TurnFailed(error=outcome.error))
        return outcome

    async def stream_events(self, session_id: str, text: str) -> AsyncIterator[LoopEvent]:
        """Run the turn in its own task and yield its events in order.

        Closing the iterator early stops further emission: an in-flight model
        call is abandoned, dispatched tools finish and are recorded, and the
        session lock is released when the task winds down.
        """
        queue: asyncio.Queue[LoopEvent] = asyncio.Queue()
        control = TurnControl()
        task = asyncio.create_task(
            self.process_message(session_id, text, streaming=True, emit=queue.put_nowait, control=control)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(
            lambda t: queue.put_nowait(TurnFailed(error=TurnCancelled())) if t.cancelled() else None
        )
        finished = False
        try:
            while True:
                event = await queue.get()
                if isinstance(event, (TurnCompleted, TurnFailed)):
                    finished = True
                yield event
                if finished:
                    return
        finally:
            if not finished:
                logger.info("Stream for session %s closed by the caller", session_id)
                control.cancel()

    def stream_message(self, session_id: str, text: str) -> AsyncIterator[StreamEvent]:
        """Validate, then return the demultiplexed stream of the turn."""
        _require_input(session_id, text)
        return demultiplex(self.stream_events(session_id, text))

    async def transcript(self, session_id: str) -> list[UserMessage | AssistantMessage]:
        return visible_transcript(await self.store.load(session_id))

    async def aclose(self) -> None:
        """Wait for in-flight turns, then release the store and every client."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.store.close()
        await self.adapter.aclose()
        await self._tool_source.aclose()
