"""Notification events emitted while a conversation turn runs.

The :class:`Runner` yields these from ``iter()`` and forwards them to an
:class:`EventBus`.  They are pure notifications: nothing in the turn loop
depends on how, or whether, a listener reacts.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar

logger = logging.getLogger(__name__)


@dataclass
class StreamEvent:
    """Base for all notification events."""

    type: ClassVar[str] = ""

    def to_dict(self) -> dict:
        return {"type": self.type, **asdict(self)}


@dataclass
class ThinkingEvent(StreamEvent):
    """The model is (``True``) or is no longer (``False``) composing."""

    type: ClassVar[str] = "thinking"
    status: bool = False


@dataclass
class TokenEvent(StreamEvent):
    """Text delta from the response stream."""

    type: ClassVar[str] = "token"
    text: str = ""


@dataclass
class ToolStartEvent(StreamEvent):
    type: ClassVar[str] = "tool_start"
    name: str = ""
    args: dict = field(default_factory=dict)


@dataclass
class ToolEndEvent(StreamEvent):
    """A tool finished.  ``error`` is set instead of ``result`` on failure."""

    type: ClassVar[str] = "tool_end"
    name: str = ""
    result: str = ""
    error: str | None = None


@dataclass
class ResponseEndEvent(StreamEvent):
    """Final event of a ``chat()`` call, carrying the full reply text."""

    type: ClassVar[str] = "response_end"
    full_text: str = ""

    def to_dict(self) -> dict:
        return {"type": self.type, "fullText": self.full_text}


Listener = Callable[[StreamEvent], Any]


class EventBus:
    """Registry of listeners keyed by event type name.

    Listeners may be plain callables or coroutine functions.  A listener
    that raises is logged and skipped.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, kind: str, listener: Listener) -> None:
        self._listeners.setdefault(kind, []).append(listener)

    def off(self, kind: str, listener: Listener) -> None:
        listeners = self._listeners.get(kind, [])
        if listener in listeners:
            listeners.remove(listener)

    async def emit(self, event: StreamEvent) -> None:
        for listener in list(self._listeners.get(event.type, [])):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Listener for {event.type} raised: {e}")
