"""Tests for the outbound queue and rate-limited sender."""

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from xchat.models import ServerEndpoint
from xchat.outbound.queue import OutboundQueue, OutboundQueues
from xchat.outbound.sender import OutboundSender

from .fixtures.game_server import FakeGameServer


def make_endpoint(port: int = 27960, active: bool = True) -> ServerEndpoint:
    return ServerEndpoint(
        host="127.0.0.1",
        port=port,
        log_path=Path("/tmp/server.log"),
        rcon_password="secret",
        active=active,
    )


class TestOutboundQueue:
    """Test FIFO behaviour of a single queue."""

    def test_fifo(self):
        queue = OutboundQueue(make_endpoint())
        queue.put("one")
        queue.extend(["two", "three"])

        assert [queue.pop(), queue.pop(), queue.pop()] == ["one", "two", "three"]
        assert queue.pop() is None

    def test_no_eviction(self):
        queue = OutboundQueue(make_endpoint())
        queue.extend(str(i) for i in range(10_000))
        assert len(queue) == 10_000


class TestOutboundSenderTick:
    """Test a single scheduling tick with a mocked socket."""

    @pytest.fixture
    def endpoint(self):
        return make_endpoint()

    @pytest.fixture
    def queues(self, endpoint):
        return OutboundQueues([endpoint])

    @pytest.fixture
    def channel(self):
        return MagicMock()

    @pytest.fixture
    def sender(self, queues, endpoint, channel):
        sender = OutboundSender(queues, interval=0.01)
        sender._channels[endpoint] = channel
        return sender

    def test_tick_sends_one_escaped_message(self, sender, queues, endpoint, channel):
        queues[endpoint].extend(['He said "hi"; bye\\', "second", "third"])

        assert sender.tick(queues[endpoint]) == 'He said "hi"; bye\\'

        channel.send.assert_called_once_with(
            b'\xff\xff\xff\xffrcon secret qsay "He said hi bye"'
        )
        assert queues[endpoint].snapshot() == ["second", "third"]

    def test_ticks_preserve_order(self, sender, queues, endpoint, channel):
        queues[endpoint].extend(["a", "b", "c"])

        for _ in range(5):
            sender.tick(queues[endpoint])

        sent = [call.args[0] for call in channel.send.call_args_list]
        assert sent == [
            b'\xff\xff\xff\xffrcon secret qsay "a"',
            b'\xff\xff\xff\xffrcon secret qsay "b"',
            b'\xff\xff\xff\xffrcon secret qsay "c"',
        ]

    def test_empty_queue_sends_nothing(self, sender, queues, endpoint, channel):
        assert sender.tick(queues[endpoint]) is None
        channel.send.assert_not_called()

    def test_inactive_endpoint_keeps_backlog(self, sender, queues, endpoint, channel):
        endpoint.active = False
        queues[endpoint].extend(["x", "y"])

        for _ in range(3):
            assert sender.tick(queues[endpoint]) is None

        channel.send.assert_not_called()
        assert queues[endpoint].snapshot() == ["x", "y"]

    def test_send_error_is_logged_and_message_dropped(
        self, sender, queues, endpoint, channel, caplog
    ):
        channel.send.side_effect = OSError("network down")
        queues[endpoint].extend(["lost", "next"])

        assert sender.tick(queues[endpoint]) == "lost"

        assert queues[endpoint].snapshot() == ["next"]
        assert "OSError: network down" in caplog.text
        assert "secret" not in caplog.text


class TestOutboundSenderLoop:
    """Test the ticker tasks against a loopback UDP server."""

    @pytest.mark.asyncio
    async def test_one_message_per_tick(self):
        server = await FakeGameServer.start()
        endpoint = make_endpoint(server.port)
        queues = OutboundQueues([endpoint])
        queues[endpoint].extend(["m1", "m2", "m3"])
        sender = OutboundSender(queues, interval=0.2)
        try:
            await sender.start()

            await asyncio.sleep(0.3)
            assert len(server.rcon_packets) == 1

            packets = await server.wait_for_rcon(3, timeout=2.0)
            assert packets == [
                b'\xff\xff\xff\xffrcon secret qsay "m1"',
                b'\xff\xff\xff\xffrcon secret qsay "m2"',
                b'\xff\xff\xff\xffrcon secret qsay "m3"',
            ]
        finally:
            await sender.stop()
            server.close()

    @pytest.mark.asyncio
    async def test_stop_cancels_tickers(self):
        endpoint = make_endpoint(active=False)
        sender = OutboundSender(OutboundQueues([endpoint]), interval=0.05)

        await sender.start()
        tasks = list(sender._tasks.values())
        await sender.stop()

        assert tasks and all(task.done() for task in tasks)
        assert sender._channels == {}
