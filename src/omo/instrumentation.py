"""Optional OpenTelemetry tracing for conversation turns.

Call ``omo.instrumentation.instrument()`` once at startup, after
configuring a TracerProvider.  Requires ``opentelemetry-api``
(``pip install omo[otel]``); without it every span helper is a no-op.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "omo") -> None:
    """Enable OpenTelemetry spans for chat turns, rounds and tool calls.

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install omo[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured; spans will be discarded."
        )
    else:
        logger.info("omo instrumentation enabled")


def uninstrument() -> None:
    global _tracer
    _tracer = None


@asynccontextmanager
async def chat_span(session_id: str, model: str):
    """Wrap one ``chat()`` call in an ``invoke_agent`` span."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        "invoke_agent omo",
        attributes={
            "gen_ai.operation.name": "invoke_agent",
            "gen_ai.conversation.id": session_id,
            "gen_ai.request.model": model,
        },
    ) as span:
        yield span


@asynccontextmanager
async def completion_span(model: str, round_index: int):
    """Wrap one request/stream round in a ``chat`` span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"chat {model}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.provider.name": "openai",
            "gen_ai.request.model": model,
            "omo.round": round_index,
        },
    ) as span:
        yield span


@asynccontextmanager
async def tool_span(tool_name: str, call_id: str):
    """Wrap a tool execution in an ``execute_tool`` span."""
    if _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(
        f"execute_tool {tool_name}",
        attributes={
            "gen_ai.operation.name": "execute_tool",
            "gen_ai.tool.name": tool_name,
            "gen_ai.tool.call.id": call_id,
        },
    ) as span:
        yield span


def record_round(span, tool_calls: int, text_chars: int) -> None:
    """Annotate a round's span with what the model produced."""
    if span is None:
        return
    span.set_attribute("omo.round.tool_calls", tool_calls)
    span.set_attribute("omo.round.text_chars", text_chars)


def record_error(span, exception: BaseException) -> None:
    """Mark *span* as failed with *exception*; no-op when tracing is off."""
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
