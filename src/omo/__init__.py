from omo.coding_tools import default_tools
from omo.errors import OmoError, StreamError, StreamTimeoutError, ToolArgumentError, TransportError
from omo.events import EventBus
from omo.instrumentation import instrument, uninstrument
from omo.message import Message, MessageRole
from omo.provider import CodexProvider, ModelProvider
from omo.runner import Runner, TurnState
from omo.session import Session
from omo.tools import Tool, ToolRegistry, tool

__all__ = [
    "CodexProvider",
    "EventBus",
    "Message",
    "MessageRole",
    "ModelProvider",
    "OmoError",
    "Runner",
    "Session",
    "StreamError",
    "StreamTimeoutError",
    "Tool",
    "ToolArgumentError",
    "ToolRegistry",
    "TransportError",
    "TurnState",
    "default_tools",
    "instrument",
    "tool",
    "uninstrument",
]
