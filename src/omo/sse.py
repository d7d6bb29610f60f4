"""Server-Sent Events decoding and encoding.

:class:`SSEDecoder` turns raw chunks from the model endpoint into JSON
payloads.  :func:`sse_generator` goes the other way, relaying
notification events to an HTTP client.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterator

from omo.events import StreamEvent

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = "\n\n"
DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


class SSEDecoder:
    """Incremental decoder for ``data:``-line event streams.

    Chunks are buffered until a blank-line block boundary is seen, so a
    block may be split across any number of chunks (including in the
    middle of a multi-byte UTF-8 character).
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")()

    def feed(self, chunk: bytes | str) -> list[dict]:
        """Buffer *chunk* and return the payloads of every completed block."""
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer += chunk

        records: list[dict] = []
        idx = self._buffer.find(BLOCK_SEPARATOR)
        while idx != -1:
            block = self._buffer[:idx]
            self._buffer = self._buffer[idx + len(BLOCK_SEPARATOR):]
            records.extend(_decode_block(block))
            idx = self._buffer.find(BLOCK_SEPARATOR)
        return records

    @property
    def pending(self) -> str:
        """Buffered text not yet terminated by a block boundary."""
        return self._buffer


def _decode_block(block: str) -> list[dict]:
    records = []
    for line in block.split("\n"):
        if not line.startswith(DATA_PREFIX):
            continue
        data = line[len(DATA_PREFIX):].strip()
        if not data or data == DONE_MARKER:
            continue
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Skipping non-JSON data line: {data[:80]!r}")
            continue
        if not isinstance(payload, dict):
            logger.debug(f"Skipping non-object data line: {data[:80]!r}")
            continue
        records.append(payload)
    return records


async def aiter_records(
    byte_stream: AsyncIterator[bytes | str],
) -> AsyncIterator[dict]:
    """Decode an async chunk iterator into JSON payloads, lazily."""
    decoder = SSEDecoder()
    async for chunk in byte_stream:
        for record in decoder.feed(chunk):
            yield record
    if decoder.pending.strip():
        logger.debug("Discarding unterminated trailing event block")


async def sse_generator(
    event_stream: AsyncIterator[StreamEvent],
) -> AsyncIterator[str]:
    """Convert a StreamEvent async iterator into SSE-formatted strings.

    A failure of the underlying turn is sent to the client as an
    ``{"type": "error", "message": ...}`` record before ``[DONE]``.
    """
    try:
        async for event in event_stream:
            yield f"data: {json.dumps(event.to_dict())}\n\n"
    except Exception as e:
        logger.error(f"Event stream failed: {e}")
        error = {"type": "error", "message": str(e) or type(e).__name__}
        yield f"data: {json.dumps(error)}\n\n"
    yield f"data: {DONE_MARKER}\n\n"
