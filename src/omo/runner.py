import asyncio
import inspect
import json
import logging
import os
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum

from omo.errors import StreamTimeoutError
from omo.events import (
    EventBus,
    Listener,
    ResponseEndEvent,
    StreamEvent,
    ThinkingEvent,
    TokenEvent,
    ToolEndEvent,
    ToolStartEvent,
)
from omo.instrumentation import (
    chat_span,
    completion_span,
    record_error,
    record_round,
    tool_span,
)
from omo.message import (
    TOOL_CALL_PLACEHOLDER,
    Message,
    MessageRole,
    tool_error_message,
    tool_result_message,
)
from omo.prompt import FileInstructionsLoader, InstructionsLoader
from omo.provider import DEFAULT_MODEL, ModelProvider, ResponsesRequest
from omo.session import Session
from omo.sse import SSEDecoder
from omo.streaming import PendingToolCall, StreamRecord, ToolCallAccumulator
from omo.tools import ToolRegistry

logger = logging.getLogger(__name__)

FINAL_ROUND_DIRECTIVE = (
    "You have used every tool round available for this message. "
    "Do not call any more tools; reply to the user now."
)
MAX_ROUNDS_MESSAGE = "Maximum tool rounds reached. Please try again."


class TurnState(Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DISPATCHING = "dispatching"


@dataclass
class _ToolOutcome:
    """Result of executing a single tool call."""

    output: str
    error: str | None = None


class Runner:
    """Drives one conversation's request/stream/tool loop.

    Each ``chat()`` call appends the user message to the session
    transcript, then repeats rounds until the model answers without
    requesting tools.  Every round sends the full transcript, freshly
    loaded instructions and the full tool schema.  Tool calls run one at
    a time, in the order the server emitted them, and their results are
    appended to the transcript as user entries before the next round.

    ``chat()`` drains ``iter()``, forwarding each event to ``events``.
    A Runner owns its transcript and must not be shared between
    conversations or driven by concurrent ``chat()`` calls.

    Args:
        provider: Source of the response byte stream.
        tools: Tools the model may call.
        instructions: Supplies the instructions string for each round.
        model: Model identifier sent with every request.
        cwd: Working directory injected into tool calls.
        session: Existing session to continue; a new one by default.
        max_rounds: Maximum provider round-trips per ``chat()`` call, or
            ``None`` for no limit.
        read_timeout: Seconds to wait for each chunk of the response
            stream, or ``None`` to wait indefinitely.
    """

    def __init__(
        self,
        provider: ModelProvider,
        tools: ToolRegistry | None = None,
        instructions: InstructionsLoader | None = None,
        model: str = DEFAULT_MODEL,
        cwd: str | None = None,
        session: Session | None = None,
        max_rounds: int | None = None,
        read_timeout: float | None = None,
    ):
        if max_rounds is not None and max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.provider = provider
        self.tools = tools or ToolRegistry()
        self.instructions = instructions or FileInstructionsLoader()
        self.model = model
        self.cwd = cwd or os.getcwd()
        self.session = session or Session()
        self.max_rounds = max_rounds
        self.read_timeout = read_timeout
        self.events = EventBus()
        self.state = TurnState.IDLE

    @property
    def transcript(self) -> list[Message]:
        return self.session.transcript

    def on(self, kind: str, listener: Listener) -> None:
        self.events.on(kind, listener)

    def reset(self) -> None:
        """Start a fresh transcript."""
        self.session = Session()

    async def chat(self, user_message: str) -> str:
        """Run the loop until a final reply and return its text."""
        full_text = ""
        async for event in self.iter(user_message):
            await self.events.emit(event)
            if isinstance(event, ResponseEndEvent):
                full_text = event.full_text
        return full_text

    async def iter(self, user_message: str) -> AsyncIterator[StreamEvent]:
        """Run the loop, yielding notification events as it proceeds."""
        self.transcript.append(Message(role=MessageRole.USER, content=user_message))

        async with chat_span(self.session.session_id, self.model) as span:
            try:
                round_index = 0
                while True:
                    round_index += 1
                    final_round = (
                        self.max_rounds is not None
                        and round_index >= self.max_rounds
                    )

                    self.state = TurnState.REQUESTING
                    yield ThinkingEvent(status=True)
                    request = await self._build_request(final_round)

                    acc = ToolCallAccumulator()
                    async with completion_span(self.model, round_index) as round_span:
                        try:
                            async for event in self._stream_round(request, acc):
                                yield event
                        except Exception as e:
                            record_error(round_span, e)
                            raise
                        calls = acc.finalize()
                        record_round(round_span, len(calls), len(acc.text))

                    # No tool calls: final text response
                    if not calls:
                        self.state = TurnState.FINALIZING
                        self.transcript.append(
                            Message(role=MessageRole.ASSISTANT, content=acc.text)
                        )
                        yield ResponseEndEvent(full_text=acc.text)
                        return

                    if final_round:
                        logger.warning(
                            f"Model requested {len(calls)} tool call(s) after "
                            f"{round_index} rounds; stopping"
                        )
                        self.state = TurnState.FINALIZING
                        self.transcript.append(
                            Message(role=MessageRole.ASSISTANT, content=MAX_ROUNDS_MESSAGE)
                        )
                        yield ResponseEndEvent(full_text=MAX_ROUNDS_MESSAGE)
                        return

                    self.state = TurnState.DISPATCHING
                    self.transcript.append(Message(
                        role=MessageRole.ASSISTANT,
                        content=acc.text or TOOL_CALL_PLACEHOLDER,
                    ))
                    for call in calls:
                        async for event in self._dispatch(call):
                            yield event
            except Exception as e:
                record_error(span, e)
                raise
            finally:
                self.state = TurnState.IDLE

    # ------------------------------------------------------------------
    # Request / stream
    # ------------------------------------------------------------------

    async def _build_request(self, final_round: bool) -> ResponsesRequest:
        instructions = self.instructions.load_instructions(self.cwd)
        if inspect.isawaitable(instructions):
            instructions = await instructions
        if final_round:
            instructions = f"{instructions}\n\n{FINAL_ROUND_DIRECTIVE}"
        return ResponsesRequest.build(
            model=self.model,
            instructions=instructions,
            transcript=self.transcript,
            tools=self.tools.list_schemas(),
        )

    async def _stream_round(
        self, request: ResponsesRequest, acc: ToolCallAccumulator,
    ) -> AsyncIterator[StreamEvent]:
        decoder = SSEDecoder()
        thinking = True
        self.state = TurnState.STREAMING
        try:
            async with (
                aclosing(self.provider.stream(request)) as chunks,
                aclosing(self._read_chunks(chunks)) as reader,
            ):
                async for chunk in reader:
                    if thinking:
                        thinking = False
                        yield ThinkingEvent(status=False)
                    for payload in decoder.feed(chunk):
                        delta = acc.feed(StreamRecord.from_payload(payload))
                        if delta is not None:
                            yield TokenEvent(text=delta)
                    if acc.done:
                        break
        except Exception:
            # Clear the indicator before the failure reaches listeners.
            if thinking:
                yield ThinkingEvent(status=False)
            raise
        if thinking:
            yield ThinkingEvent(status=False)

    async def _read_chunks(self, chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        iterator = aiter(chunks)
        while True:
            try:
                if self.read_timeout is None:
                    chunk = await anext(iterator)
                else:
                    chunk = await asyncio.wait_for(anext(iterator), self.read_timeout)
            except StopAsyncIteration:
                return
            except asyncio.TimeoutError as e:
                raise StreamTimeoutError(
                    f"No data from model endpoint for {self.read_timeout:g}s"
                ) from e
            yield chunk

    # ------------------------------------------------------------------
    # Tool execution
    # ------------------------------------------------------------------

    async def _dispatch(self, call: PendingToolCall) -> AsyncIterator[StreamEvent]:
        yield ToolStartEvent(name=call.name, args=_preview_arguments(call.arguments))
        outcome = await self._execute_one(call)
        if outcome.error is not None:
            self.transcript.append(tool_error_message(call.name, outcome.error))
        else:
            self.transcript.append(tool_result_message(call.name, outcome.output))
        yield ToolEndEvent(name=call.name, result=outcome.output, error=outcome.error)

    async def _execute_one(self, call: PendingToolCall) -> _ToolOutcome:
        async with tool_span(call.name, call.id) as span:
            try:
                output = await self.tools.invoke(call.name, call.arguments, self.cwd)
            except Exception as e:
                logger.error(f"Tool {call.name} raised: {e}")
                record_error(span, e)
                return _ToolOutcome(output="", error=str(e) or type(e).__name__)
        return _ToolOutcome(output=output)


def _preview_arguments(raw_arguments: str) -> dict:
    """Best-effort parse of a tool call's arguments for notifications."""
    try:
        arguments = json.loads(raw_arguments or "{}")
    except json.JSONDecodeError:
        return {}
    return arguments if isinstance(arguments, dict) else {}
