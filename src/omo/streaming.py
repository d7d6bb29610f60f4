"""Streaming primitives for Responses API output.

Decoded SSE payloads are classified into :class:`StreamRecord` objects.
The :class:`ToolCallAccumulator` folds them into the assistant's text and
reassembles tool calls whose arguments arrive in fragments, keyed by the
server-assigned output slot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from omo.errors import StreamError


class RecordKind(Enum):
    TEXT_DELTA = "text_delta"
    TOOL_CALL_OPENED = "tool_call_opened"
    TOOL_CALL_ARGUMENTS_DELTA = "tool_call_arguments_delta"
    COMPLETED = "completed"
    ERROR = "error"
    OTHER = "other"


_KINDS_BY_TYPE = {
    "response.output_text.delta": RecordKind.TEXT_DELTA,
    "response.function_call_arguments.delta": RecordKind.TOOL_CALL_ARGUMENTS_DELTA,
    "response.completed": RecordKind.COMPLETED,
    "response.done": RecordKind.COMPLETED,
    "error": RecordKind.ERROR,
}


@dataclass
class StreamRecord:
    """A decoded stream payload tagged with its kind."""

    kind: RecordKind
    payload: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> StreamRecord:
        event_type = payload.get("type")
        if event_type == "response.output_item.added":
            item = payload.get("item") or {}
            if item.get("type") == "function_call":
                return cls(RecordKind.TOOL_CALL_OPENED, payload)
            return cls(RecordKind.OTHER, payload)
        return cls(_KINDS_BY_TYPE.get(event_type, RecordKind.OTHER), payload)

    @property
    def slot(self) -> int:
        index = self.payload.get("output_index")
        return index if index is not None else 0

    @property
    def delta(self) -> str:
        return self.payload.get("delta") or ""


@dataclass
class PendingToolCall:
    """A tool call being reassembled from its output slot."""

    slot: int
    id: str = ""
    name: str = ""
    arguments: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.name.strip())


class ToolCallAccumulator:
    """Folds stream records into response text and pending tool calls."""

    def __init__(self) -> None:
        self._pending: dict[int, PendingToolCall] = {}
        self.text = ""
        self.has_text = False
        self.done = False

    def feed(self, record: StreamRecord) -> str | None:
        """Apply *record*; return the text delta it carried, if any.

        Raises:
            StreamError: If *record* is an explicit error record.
        """
        if record.kind is RecordKind.TEXT_DELTA:
            self.has_text = True
            self.text += record.delta
            return record.delta
        if record.kind is RecordKind.TOOL_CALL_OPENED:
            slot = record.slot
            item = record.payload.get("item") or {}
            # A new announcement resets the slot, discarding earlier fragments.
            self._pending[slot] = PendingToolCall(
                slot=slot,
                id=item.get("call_id") or item.get("id") or f"call_{slot}",
                name=item.get("name") or "",
            )
        elif record.kind is RecordKind.TOOL_CALL_ARGUMENTS_DELTA:
            slot = record.slot
            if slot not in self._pending:
                self._pending[slot] = PendingToolCall(slot=slot)
            self._pending[slot].arguments += record.delta
        elif record.kind is RecordKind.COMPLETED:
            self.done = True
        elif record.kind is RecordKind.ERROR:
            raise StreamError(record.payload.get("message") or "API error")
        return None

    def finalize(self) -> list[PendingToolCall]:
        """Return named tool calls in slot order."""
        return [
            self._pending[slot] for slot in sorted(self._pending)
            if self._pending[slot].is_complete
        ]
