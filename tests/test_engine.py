"""Tests for the dispatch engine routing rules."""

import asyncio
import re
from pathlib import Path
from typing import List

import pytest

from xchat.dispatch.engine import DispatchEngine
from xchat.handlers.base import BaseHandler
from xchat.models import SendTo, ServerEndpoint, TailedLine
from xchat.outbound.queue import OutboundQueues


class ChatHandler(BaseHandler):
    """Formats ``say: <player>: <message>`` as ``<server>@<player>: <message>``."""

    pattern = re.compile(r"^say: (.+): (.+)$")

    def __init__(self, send_to=SendTo.OTHER_SERVERS):
        super().__init__(send_to=send_to)
        self.calls: List[str] = []

    async def handle(self, line, source):
        self.calls.append(line)
        match = self.pattern.match(line)
        if match is None:
            return []
        return [f"{source.display_name}@{match.group(1)}: {match.group(2)}"]


class FixedHandler(BaseHandler):
    def __init__(self, messages, send_to):
        super().__init__(send_to=send_to)
        self.messages = messages

    async def handle(self, line, source):
        return list(self.messages)


class FailingHandler(BaseHandler):
    name = "failing"

    async def handle(self, line, source):
        raise RuntimeError("handler exploded")


def make_endpoint(name: str, port: int) -> ServerEndpoint:
    return ServerEndpoint(
        host="127.0.0.1",
        port=port,
        log_path=Path(f"/tmp/{name}.log"),
        rcon_password="secret",
        display_name=name,
        active=True,
    )


@pytest.fixture
def endpoints():
    return [make_endpoint("A", 27960), make_endpoint("B", 27961), make_endpoint("C", 27962)]


@pytest.fixture
def queues(endpoints):
    return OutboundQueues(endpoints)


class TestDestinations:
    """Test destination set computation."""

    def test_each_policy(self, endpoints, queues):
        a, b, c = endpoints
        engine = DispatchEngine(endpoints, [], queues)

        assert engine.destinations(a, SendTo.NONE) == []
        assert engine.destinations(a, SendTo.ORIGINAL_SERVER) == [a]
        assert engine.destinations(a, SendTo.OTHER_SERVERS) == [b, c]
        assert engine.destinations(a, SendTo.ALL_SERVERS) == [a, b, c]

    def test_other_servers_excludes_source_for_every_endpoint(self, endpoints, queues):
        engine = DispatchEngine(endpoints, [], queues)
        for source in endpoints:
            targets = engine.destinations(source, SendTo.OTHER_SERVERS)
            assert all(target is not source for target in targets)
            assert source in engine.destinations(source, SendTo.ALL_SERVERS)

    def test_identical_endpoints_are_distinct(self):
        first = make_endpoint("same", 1)
        second = make_endpoint("same", 1)
        engine = DispatchEngine([first, second], [], OutboundQueues([first, second]))

        assert engine.destinations(first, SendTo.OTHER_SERVERS) == [second]


class TestProcessLine:
    """Test running handlers on tailed lines."""

    @pytest.mark.asyncio
    async def test_end_to_end_two_servers(self):
        a = make_endpoint("A", 27960)
        b = make_endpoint("B", 27961)
        queues = OutboundQueues([a, b])
        engine = DispatchEngine([a, b], [ChatHandler()], queues)

        await engine.process_line(a, "say: Alice: hello")

        assert queues[b].snapshot() == ["A@Alice: hello"]
        assert queues[a].snapshot() == []

    @pytest.mark.asyncio
    async def test_blank_line_never_reaches_handlers(self, endpoints, queues):
        handler = ChatHandler()
        engine = DispatchEngine(endpoints, [handler], queues)

        for line in ["", "   ", "\t\r"]:
            assert await engine.process_line(endpoints[0], line) == []

        assert handler.calls == []

    @pytest.mark.asyncio
    async def test_empty_result_contributes_nothing(self, endpoints, queues):
        engine = DispatchEngine(endpoints, [ChatHandler()], queues)

        events = await engine.process_line(endpoints[0], "not chat")

        assert events == []
        assert all(len(queue) == 0 for queue in queues)

    @pytest.mark.asyncio
    async def test_send_to_none_queues_nothing(self, endpoints, queues):
        engine = DispatchEngine(
            endpoints, [FixedHandler(["x"], SendTo.NONE)], queues
        )

        events = await engine.process_line(endpoints[1], "anything")

        assert len(events) == 1
        assert all(len(queue) == 0 for queue in queues)

    @pytest.mark.asyncio
    async def test_original_server_only(self, endpoints, queues):
        a, b, c = endpoints
        engine = DispatchEngine(
            endpoints, [FixedHandler(["pong"], SendTo.ORIGINAL_SERVER)], queues
        )

        await engine.process_line(b, "ping")

        assert queues[b].snapshot() == ["pong"]
        assert queues[a].snapshot() == []
        assert queues[c].snapshot() == []

    @pytest.mark.asyncio
    async def test_messages_keep_handler_order(self, endpoints, queues):
        a, b, c = endpoints
        engine = DispatchEngine(
            endpoints,
            [
                FixedHandler(["1", "2"], SendTo.OTHER_SERVERS),
                FixedHandler(["3"], SendTo.ALL_SERVERS),
            ],
            queues,
        )

        await engine.process_line(a, "line")

        assert queues[a].snapshot() == ["3"]
        assert queues[b].snapshot() == ["1", "2", "3"]
        assert queues[c].snapshot() == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_duplicate_output_is_not_deduplicated(self, endpoints, queues):
        a, b, _ = endpoints
        engine = DispatchEngine(
            endpoints,
            [FixedHandler(["same"], SendTo.OTHER_SERVERS)] * 2,
            queues,
        )

        await engine.process_line(a, "line")

        assert queues[b].snapshot() == ["same", "same"]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self, endpoints, queues, caplog):
        a, b, _ = endpoints
        engine = DispatchEngine(endpoints, [FailingHandler(), ChatHandler()], queues)

        await engine.process_line(a, "say: Alice: still here")

        assert queues[b].snapshot() == ["A@Alice: still here"]
        assert any("Handler failing failed" in r.message for r in caplog.records)


class TestRun:
    """Test consuming the tail channel."""

    @pytest.mark.asyncio
    async def test_run_consumes_channel_in_order(self, endpoints, queues):
        a, b, _ = endpoints
        engine = DispatchEngine(endpoints, [ChatHandler()], queues)
        channel: asyncio.Queue = asyncio.Queue()
        for text in ["first", "second", "third"]:
            channel.put_nowait(TailedLine(source=a, line=f"say: Alice: {text}"))

        task = asyncio.create_task(engine.run(channel))
        await asyncio.wait_for(channel.join(), timeout=1.0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert queues[b].snapshot() == [
            "A@Alice: first",
            "A@Alice: second",
            "A@Alice: third",
        ]
