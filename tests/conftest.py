import json

import pytest

from omo.message import Message
from omo.prompt import StaticInstructions
from omo.provider import ModelProvider, ResponsesRequest
from omo.runner import Runner
from omo.tools import ToolRegistry, tool


# ---------------------------------------------------------------------------
# SSE payload builders (mirror the Responses API stream shape)
# ---------------------------------------------------------------------------

def sse(payload: dict | str) -> bytes:
    """Encode one event block."""
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {data}\n\n".encode()


def text_delta(text: str, slot: int = 0) -> dict:
    return {"type": "response.output_text.delta", "output_index": slot, "delta": text}


def call_opened(name: str, slot: int = 0, call_id: str | None = None) -> dict:
    item = {"type": "function_call", "name": name}
    if call_id is not None:
        item["call_id"] = call_id
    return {"type": "response.output_item.added", "output_index": slot, "item": item}


def args_delta(delta: str, slot: int = 0) -> dict:
    return {
        "type": "response.function_call_arguments.delta",
        "output_index": slot,
        "delta": delta,
    }


def completed() -> dict:
    return {"type": "response.completed", "response": {}}


def text_round(text: str) -> list[bytes]:
    """Chunks for a round that answers with text only."""
    return [sse(text_delta(text)), sse(completed())]


def tool_round(*calls: tuple[str, dict], text: str | None = None) -> list[bytes]:
    """Chunks for a round requesting each ``(name, args)`` call in order."""
    chunks = []
    if text:
        chunks.append(sse(text_delta(text)))
    for slot, (name, args) in enumerate(calls, start=1 if text else 0):
        chunks.append(sse(call_opened(name, slot=slot, call_id=f"call_{name}")))
        chunks.append(sse(args_delta(json.dumps(args), slot=slot)))
    chunks.append(sse(completed()))
    return chunks


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------

class MockProvider(ModelProvider):
    """Provider that replays pre-queued rounds of chunks. No network calls."""

    def __init__(self, rounds: list[list[bytes]] | None = None):
        self.rounds: list[list[bytes]] = list(rounds or [])
        self.requests: list[ResponsesRequest] = []

    async def stream(self, request: ResponsesRequest):
        self.requests.append(request.model_copy(deep=True))
        for chunk in self.rounds.pop(0):
            yield chunk


class RecordingInstructions:
    """Instructions loader that counts calls and can change between rounds."""

    def __init__(self, texts: list[str] | None = None):
        self.texts = list(texts or ["You are helpful."])
        self.calls: list[str] = []

    async def load_instructions(self, cwd: str) -> str:
        self.calls.append(cwd)
        index = min(len(self.calls), len(self.texts)) - 1
        return self.texts[index]


def transcript_contents(transcript: list[Message]) -> list[tuple[str, str]]:
    return [(m.role.value, m.content) for m in transcript]


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

@tool
def echo(text: str):
    """Echo text back."""
    return text


@tool
def explode():
    """Always fails."""
    raise RuntimeError("boom")


@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def registry():
    return ToolRegistry([echo, explode])


@pytest.fixture
def make_runner(mock_provider, registry, tmp_path):
    """Factory fixture building a Runner over the mock provider."""
    def _make(tools=None, instructions=None, **kwargs):
        return Runner(
            provider=kwargs.pop("provider", mock_provider),
            tools=tools if tools is not None else registry,
            instructions=instructions or StaticInstructions("You are helpful."),
            model="mock-model",
            cwd=str(tmp_path),
            **kwargs,
        )
    return _make
