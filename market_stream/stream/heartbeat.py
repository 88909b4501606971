"""
Heartbeat responder.

Answers server pings with a pong carrying the same payload, and sends an
unsolicited empty pong every interval to keep the connection alive.
"""

import time
from typing import Awaitable, Callable, Optional

from market_stream.core import get_logger
from market_stream.core.exceptions import StreamClientError, TransportFault

from .codec import Ping, Pong
from .constants import DEFAULT_HEARTBEAT_INTERVAL

logger = get_logger(__name__)

SendPong = Callable[[Pong], Awaitable[None]]


class HeartbeatResponder:
    """
    Reactive and proactive pong sender.

    Send failures surface as ``TransportFault``; nothing is retried here,
    the session decides what to do with a broken connection.
    """

    def __init__(
        self,
        send_pong: SendPong,
        interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._send_pong = send_pong
        self._interval = interval
        self._clock = clock
        self._next_due = clock() + interval
        self._pongs_sent = 0
        self._pings_answered = 0

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def next_due(self) -> float:
        """Clock time of the next unsolicited pong."""
        return self._next_due

    @property
    def pongs_sent(self) -> int:
        return self._pongs_sent

    @property
    def pings_answered(self) -> int:
        return self._pings_answered

    def is_due(self, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        return now >= self._next_due

    # =========================================================================
    # Actions
    # =========================================================================

    async def on_ping(self, ping: Ping) -> Pong:
        """Answer a ping immediately with the same payload."""
        pong = Pong(ping.payload)
        await self._send(pong)
        self._pings_answered += 1
        logger.debug(f"Answered ping (payload={ping.payload!r})")
        return pong

    async def on_tick(self, now: Optional[float] = None) -> Pong:
        """Send the periodic empty pong and schedule the next one."""
        now = self._clock() if now is None else now
        pong = Pong()
        await self._send(pong)
        self._next_due = now + self._interval
        logger.debug("Sent unsolicited pong")
        return pong

    async def _send(self, pong: Pong) -> None:
        try:
            await self._send_pong(pong)
        except StreamClientError as e:
            if isinstance(e, TransportFault):
                raise
            raise TransportFault(f"Failed to send pong: {e.message}") from e
        except (OSError, RuntimeError) as e:
            raise TransportFault(f"Failed to send pong: {e}") from e
        self._pongs_sent += 1
