"""
Transport adapter over the ``websockets`` asyncio client.

The session only talks to the ``Connection`` protocol, so tests can drive
it with an in-memory fake. Every library error is mapped to
``TransportFault``.
"""

import asyncio
from typing import Awaitable, Callable, Protocol

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.asyncio.client import connect as ws_connect

from market_stream.core import get_logger
from market_stream.core.exceptions import TransportFault

from .constants import DEFAULT_CLOSE_TIMEOUT, DEFAULT_OPEN_TIMEOUT

logger = get_logger(__name__)


class Connection(Protocol):
    """Duplex connection used by the session; inbound frames are text or bytes."""

    async def send(self, text: str) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def pong(self, payload: str = "") -> None: ...

    async def close(self) -> None: ...


Connector = Callable[[str], Awaitable[Connection]]


class WebsocketsConnection:
    """``Connection`` backed by a ``websockets`` client connection."""

    def __init__(self, ws: ClientConnection):
        self._ws = ws

    async def send(self, text: str) -> None:
        try:
            await self._ws.send(text)
        except websockets.ConnectionClosed as e:
            raise TransportFault(f"Connection closed while sending: {e}") from e
        except OSError as e:
            raise TransportFault(f"Send failed: {e}") from e

    async def recv(self) -> str | bytes:
        try:
            return await self._ws.recv()
        except websockets.ConnectionClosed as e:
            raise TransportFault(
                f"Connection closed: {e}",
                code=e.rcvd.code if e.rcvd else None,
            ) from e
        except OSError as e:
            raise TransportFault(f"Receive failed: {e}") from e

    async def pong(self, payload: str = "") -> None:
        try:
            await self._ws.pong(payload)
        except websockets.ConnectionClosed as e:
            raise TransportFault(f"Connection closed while sending pong: {e}") from e
        except OSError as e:
            raise TransportFault(f"Pong failed: {e}") from e

    async def close(self) -> None:
        try:
            await self._ws.close()
        except OSError as e:
            logger.debug(f"Error closing WebSocket: {e}")


async def connect(
    url: str,
    open_timeout: float = DEFAULT_OPEN_TIMEOUT,
    close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
) -> WebsocketsConnection:
    """
    Open a WebSocket connection.

    Args:
        url: Stream endpoint
        open_timeout: Seconds allowed for the opening handshake
        close_timeout: Seconds allowed for the closing handshake

    Returns:
        Connected ``WebsocketsConnection``

    Raises:
        TransportFault: If the connection cannot be established
    """
    logger.info(f"Connecting to {url}")
    try:
        ws = await ws_connect(
            url,
            open_timeout=open_timeout,
            close_timeout=close_timeout,
        )
    except (websockets.InvalidHandshake, websockets.InvalidURI) as e:
        raise TransportFault(f"Handshake with {url} failed: {e}") from e
    except (OSError, asyncio.TimeoutError) as e:
        raise TransportFault(f"Connection to {url} failed: {e}") from e
    logger.info("WebSocket connected")
    return WebsocketsConnection(ws)


def make_connector(
    open_timeout: float = DEFAULT_OPEN_TIMEOUT,
    close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
) -> Connector:
    """Bind handshake timeouts into a single-argument connector."""

    async def _connect(url: str) -> Connection:
        return await connect(url, open_timeout=open_timeout, close_timeout=close_timeout)

    return _connect
