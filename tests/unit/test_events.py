import pytest

from omo.events import (
    EventBus,
    ResponseEndEvent,
    ThinkingEvent,
    TokenEvent,
    ToolEndEvent,
    ToolStartEvent,
)


def test_event_dicts_carry_type():
    assert ThinkingEvent(status=True).to_dict() == {"type": "thinking", "status": True}
    assert TokenEvent(text="a").to_dict() == {"type": "token", "text": "a"}
    assert ToolStartEvent(name="bash", args={"command": "ls"}).to_dict() == {
        "type": "tool_start", "name": "bash", "args": {"command": "ls"},
    }
    assert ToolEndEvent(name="bash", error="boom").to_dict() == {
        "type": "tool_end", "name": "bash", "result": "", "error": "boom",
    }
    assert ResponseEndEvent(full_text="done").to_dict() == {
        "type": "response_end", "fullText": "done",
    }


class TestEventBus:
    @pytest.mark.asyncio
    async def test_dispatches_by_type(self):
        bus = EventBus()
        tokens, thinking = [], []
        bus.on("token", tokens.append)
        bus.on("thinking", thinking.append)

        await bus.emit(TokenEvent(text="x"))

        assert tokens == [TokenEvent(text="x")]
        assert thinking == []

    @pytest.mark.asyncio
    async def test_async_listener_awaited(self):
        bus = EventBus()
        seen = []

        async def listener(event):
            seen.append(event.full_text)

        bus.on("response_end", listener)
        await bus.emit(ResponseEndEvent(full_text="bye"))
        assert seen == ["bye"]

    @pytest.mark.asyncio
    async def test_off_removes_listener(self):
        bus = EventBus()
        seen = []
        bus.on("token", seen.append)
        bus.off("token", seen.append)
        await bus.emit(TokenEvent(text="x"))
        assert seen == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_others(self, caplog):
        bus = EventBus()
        seen = []

        def broken(event):
            raise ValueError("listener bug")

        bus.on("token", broken)
        bus.on("token", seen.append)
        await bus.emit(TokenEvent(text="x"))

        assert seen == [TokenEvent(text="x")]
        assert "listener bug" in caplog.text
