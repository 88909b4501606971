"""
Tests for the websockets transport adapter.
"""

from unittest.mock import AsyncMock

import pytest
import websockets
from websockets.frames import Close

from market_stream.core.exceptions import TransportFault
from market_stream.stream import WebsocketsConnection


@pytest.fixture
def ws() -> AsyncMock:
    return AsyncMock()


class TestWebsocketsConnection:
    """Error mapping and frame pass-through."""

    @pytest.mark.asyncio
    async def test_text_frame(self, ws):
        ws.recv.return_value = '{"ping": "1"}'
        assert await WebsocketsConnection(ws).recv() == '{"ping": "1"}'

    @pytest.mark.asyncio
    async def test_binary_frame_passed_through(self, ws):
        ws.recv.return_value = b"\xff\xfe"
        assert await WebsocketsConnection(ws).recv() == b"\xff\xfe"

    @pytest.mark.asyncio
    async def test_closed_on_recv_carries_close_code(self, ws):
        ws.recv.side_effect = websockets.ConnectionClosed(Close(1001, "going away"), None)

        with pytest.raises(TransportFault) as exc_info:
            await WebsocketsConnection(ws).recv()

        assert exc_info.value.code == 1001

    @pytest.mark.asyncio
    async def test_send_os_error(self, ws):
        ws.send.side_effect = OSError("broken pipe")
        with pytest.raises(TransportFault):
            await WebsocketsConnection(ws).send("{}")

    @pytest.mark.asyncio
    async def test_pong_after_close(self, ws):
        ws.pong.side_effect = websockets.ConnectionClosed(None, None)
        with pytest.raises(TransportFault):
            await WebsocketsConnection(ws).pong("x")

    @pytest.mark.asyncio
    async def test_close_os_error_is_not_raised(self, ws):
        ws.close.side_effect = OSError("reset")
        await WebsocketsConnection(ws).close()
        ws.close.assert_awaited_once()
