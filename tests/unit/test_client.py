"""
Tests for the reconnecting StreamClient.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from market_stream.client import StreamClient
from market_stream.config import AppConfig
from market_stream.core.exceptions import ProtocolViolation, TransportFault
from market_stream.stream import CloseReason, UserCommand
from tests.mocks import MockConnection, MockConnector, wait_until


def make_config(**reconnect) -> AppConfig:
    return AppConfig(
        stream={
            "initial_topics": ["btcusdt@trade"],
            "request_timeout": 0.1,
            "close_timeout": 0.2,
        },
        reconnect={"delay": 1.0, "max_delay": 4.0, **reconnect},
    )


def failing_connection() -> MockConnection:
    connection = MockConnection(auto_respond=True)
    connection.fail()
    return connection


class TestStreamClient:
    """Session supervision and backoff."""

    @pytest.mark.asyncio
    async def test_quit_stops_without_reconnect(self):
        connection = MockConnection(auto_respond=True)
        commands: asyncio.Queue = asyncio.Queue()
        sleep = AsyncMock()
        client = StreamClient(
            make_config(),
            commands=commands,
            connector=MockConnector(connection),
            sleep=sleep,
        )

        task = asyncio.create_task(client.run())
        await wait_until(lambda: connection.server_topics == {"btcusdt@trade"})
        await commands.put(UserCommand.quit())
        reason = await asyncio.wait_for(task, timeout=2.0)

        assert reason is CloseReason.QUIT
        assert client.sessions_started == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reconnects_with_desired_topics(self):
        first = MockConnection(auto_respond=True)
        second = MockConnection(auto_respond=True)
        commands: asyncio.Queue = asyncio.Queue()
        connector = MockConnector(first, second)
        client = StreamClient(
            make_config(),
            commands=commands,
            connector=connector,
            sleep=AsyncMock(),
        )

        task = asyncio.create_task(client.run())
        await wait_until(lambda: first.server_topics == {"btcusdt@trade"})
        await commands.put(UserCommand.add("ethusdt@trade"))
        await wait_until(lambda: len(first.server_topics) == 2)
        first.fail()

        await wait_until(lambda: second.server_topics == {"btcusdt@trade", "ethusdt@trade"})
        assert client.sessions_started == 2
        assert second.commands[0]["method"] == "SUBSCRIBE"
        assert second.commands[0]["id"] == 1

        await commands.put(UserCommand.quit())
        assert await asyncio.wait_for(task, timeout=2.0) is CloseReason.QUIT

    @pytest.mark.asyncio
    async def test_exponential_backoff_until_max_attempts(self):
        sleep = AsyncMock()
        refused = TransportFault("refused")
        client = StreamClient(
            make_config(max_attempts=4),
            connector=MockConnector(refused, refused, refused, refused, refused),
            sleep=sleep,
        )

        reason = await asyncio.wait_for(client.run(), timeout=2.0)

        assert reason is CloseReason.CONNECT_FAILED
        assert client.sessions_started == 5
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 4.0, 4.0]

    @pytest.mark.asyncio
    async def test_backoff_resets_after_successful_session(self):
        sleep = AsyncMock()
        refused = TransportFault("refused")
        client = StreamClient(
            make_config(max_attempts=2),
            connector=MockConnector(refused, failing_connection(), refused, refused),
            sleep=sleep,
        )

        await asyncio.wait_for(client.run(), timeout=2.0)

        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 1.0, 2.0]

    @pytest.mark.asyncio
    async def test_reconnect_disabled(self):
        sleep = AsyncMock()
        client = StreamClient(
            make_config(enabled=False),
            connector=MockConnector(failing_connection()),
            sleep=sleep,
        )

        reason = await asyncio.wait_for(client.run(), timeout=2.0)

        assert reason is CloseReason.TRANSPORT_FAULT
        assert client.sessions_started == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_protocol_violation_propagates(self):
        connection = MockConnection(auto_respond=True)
        client = StreamClient(make_config(), connector=MockConnector(connection), sleep=AsyncMock())

        with patch(
            "market_stream.stream.session.PendingRequestTracker.register",
            side_effect=ProtocolViolation("duplicate id"),
        ):
            with pytest.raises(ProtocolViolation):
                await asyncio.wait_for(client.run(), timeout=2.0)
        assert client.sessions_started == 1

    @pytest.mark.asyncio
    async def test_fixed_mode_url(self):
        connector = MockConnector()
        config = AppConfig(
            stream={"mode": "fixed", "symbol": "BTCUSDT", "stream": "aggTrade"},
            reconnect={"enabled": False},
        )
        client = StreamClient(config, connector=connector)

        reason = await client.run()

        assert reason is CloseReason.CONNECT_FAILED
        assert connector.urls == ["wss://stream.binance.com:9443/ws/btcusdt@aggtrade"]

    @pytest.mark.asyncio
    async def test_queued_quit_stops_retry_loop(self):
        commands: asyncio.Queue = asyncio.Queue()
        await commands.put(UserCommand.quit())
        client = StreamClient(make_config(), commands=commands, connector=MockConnector(), sleep=AsyncMock())

        reason = await asyncio.wait_for(client.run(), timeout=1.0)

        assert reason is CloseReason.QUIT
        assert client.sessions_started == 1
        assert commands.empty()

    @pytest.mark.asyncio
    async def test_quit_interrupts_backoff_sleep(self):
        commands: asyncio.Queue = asyncio.Queue()
        client = StreamClient(
            make_config(delay=30.0, max_delay=30.0),
            commands=commands,
            connector=MockConnector(),
        )

        task = asyncio.create_task(client.run())
        await wait_until(lambda: client.sessions_started == 1)
        await commands.put(UserCommand.quit())

        assert await asyncio.wait_for(task, timeout=2.0) is CloseReason.QUIT
        assert client.sessions_started == 1

    @pytest.mark.asyncio
    async def test_end_of_input_during_backoff(self):
        commands: asyncio.Queue = asyncio.Queue()
        await commands.put(None)
        client = StreamClient(make_config(), commands=commands, connector=MockConnector(), sleep=AsyncMock())

        reason = await asyncio.wait_for(client.run(), timeout=1.0)

        assert reason is CloseReason.CHANNEL_CLOSED

    @pytest.mark.asyncio
    async def test_command_read_during_backoff_reaches_next_session(self):
        connection = MockConnection(auto_respond=True)
        commands: asyncio.Queue = asyncio.Queue()
        await commands.put(UserCommand.add("ethusdt@trade"))
        client = StreamClient(
            make_config(),
            commands=commands,
            connector=MockConnector(TransportFault("refused"), connection),
            sleep=AsyncMock(),
        )

        task = asyncio.create_task(client.run())
        await wait_until(lambda: connection.server_topics == {"btcusdt@trade", "ethusdt@trade"})
        assert client.sessions_started == 2

        await commands.put(UserCommand.quit())
        assert await asyncio.wait_for(task, timeout=2.0) is CloseReason.QUIT
