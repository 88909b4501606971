"""
Reconnecting stream client.

Runs successive ``StreamSession`` instances. Each new session starts with a
fresh tracker, registry and accumulator and re-subscribes the topics the
previous session wanted. Sessions are separated by an exponential backoff.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from market_stream.config import AppConfig
from market_stream.core import get_logger
from market_stream.core.models import Topic
from market_stream.stream import (
    CloseReason,
    CommandKind,
    StreamSession,
    UserCommand,
    make_connector,
)
from market_stream.stream.session import EventCallback, OutcomeCallback
from market_stream.stream.transport import Connector

logger = get_logger(__name__)

# Reasons that end the client for good
TERMINAL_REASONS = {CloseReason.QUIT, CloseReason.CHANNEL_CLOSED, CloseReason.CANCELLED}


class StreamClient:
    """
    Supervises stream sessions for one configuration.

    Example:
        >>> config = load_config("config/market_stream.yaml")
        >>> commands = asyncio.Queue()
        >>> client = StreamClient(config, commands=commands, on_event=print)
        >>> await client.run()
    """

    def __init__(
        self,
        config: AppConfig,
        commands: Optional["asyncio.Queue[Optional[UserCommand]]"] = None,
        on_event: Optional[EventCallback] = None,
        on_outcome: Optional[OutcomeCallback] = None,
        connector: Optional[Connector] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize StreamClient.

        Args:
            config: Application configuration
            commands: Queue shared by all sessions
            on_event: Market event callback
            on_outcome: Command outcome callback
            connector: Connection factory (defaults to the websockets transport)
            sleep: Backoff sleep, injectable for tests
        """
        self._config = config
        self._commands = commands
        self._on_event = on_event
        self._on_outcome = on_outcome
        self._connector = connector or make_connector(
            open_timeout=config.stream.open_timeout,
            close_timeout=config.stream.close_timeout,
        )
        self._sleep = sleep

        self._session: Optional[StreamSession] = None
        self._sessions_started = 0
        self._attempts = 0
        self._current_delay = config.reconnect.delay
        self._desired: tuple[Topic, ...] = tuple(Topic(t) for t in config.stream.initial_topics)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def session(self) -> Optional[StreamSession]:
        """The current (or last) session."""
        return self._session

    @property
    def sessions_started(self) -> int:
        return self._sessions_started

    @property
    def desired_topics(self) -> tuple[Topic, ...]:
        return self._desired

    # =========================================================================
    # Supervision
    # =========================================================================

    def _new_session(self) -> StreamSession:
        stream = self._config.stream
        if stream.mode == "fixed":
            return StreamSession(
                url=stream.fixed_endpoint,
                connector=self._connector,
                commands=self._commands,
                settings=stream.session_settings(),
                on_event=self._on_event,
                on_outcome=self._on_outcome,
                fixed_topic=stream.fixed_topic,
            )
        return StreamSession(
            url=stream.endpoint,
            connector=self._connector,
            commands=self._commands,
            initial_topics=self._desired,
            settings=stream.session_settings(),
            on_event=self._on_event,
            on_outcome=self._on_outcome,
        )

    async def run(self) -> CloseReason:
        """
        Run sessions until quit, end of input, or reconnect gives up.

        Returns:
            Close reason of the last session

        Raises:
            ProtocolViolation: Propagated from the session
        """
        reconnect = self._config.reconnect

        while True:
            self._session = self._new_session()
            self._sessions_started += 1
            reason = await self._session.run()

            if self._config.stream.mode == "dynamic":
                self._desired = self._session.desired_topics()

            if reason in TERMINAL_REASONS:
                logger.info(f"Stream client stopped ({reason.value})")
                return reason

            if reason is CloseReason.TRANSPORT_FAULT:
                # The session got through the handshake, start the backoff over
                self._attempts = 0
                self._current_delay = reconnect.delay

            if not reconnect.enabled:
                logger.warning(f"Session ended ({reason.value}); reconnect disabled")
                return reason

            if reconnect.max_attempts and self._attempts >= reconnect.max_attempts:
                logger.error(f"Max reconnection attempts ({reconnect.max_attempts}) reached")
                return reason

            self._attempts += 1
            limit = reconnect.max_attempts or "unlimited"
            logger.info(
                f"Reconnection attempt {self._attempts}/{limit} in {self._current_delay}s"
            )
            stop = await self._backoff(self._current_delay)
            if stop is not None:
                logger.info(f"Stream client stopped during backoff ({stop.value})")
                return stop
            self._current_delay = min(self._current_delay * 2, reconnect.max_delay)

            if self._desired:
                logger.info(f"Resubscribing to {len(self._desired)} streams")

    async def _backoff(self, delay: float) -> Optional[CloseReason]:
        """
        Sleep before the next attempt while watching the command queue.

        Returns:
            QUIT or CHANNEL_CLOSED if the user stopped the client during the
            wait, otherwise None. Other commands read meanwhile are put back
            for the next session in arrival order.
        """
        if self._commands is None:
            await self._sleep(delay)
            return None

        held: list[Optional[UserCommand]] = []
        sleeper = asyncio.ensure_future(self._sleep(delay))
        getter: Optional[asyncio.Future] = None
        try:
            while True:
                if getter is None:
                    getter = asyncio.ensure_future(self._commands.get())
                await asyncio.wait({sleeper, getter}, return_when=asyncio.FIRST_COMPLETED)

                # Commands win over an elapsed delay
                if getter.done():
                    command, getter = getter.result(), None
                    if command is None:
                        return CloseReason.CHANNEL_CLOSED
                    if command.kind is CommandKind.QUIT:
                        return CloseReason.QUIT
                    held.append(command)
                    continue

                sleeper.result()
                return None
        finally:
            pending = [t for t in (sleeper, getter) if t is not None]
            for task in pending:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            if getter is not None and not getter.cancelled() and getter.exception() is None:
                held.append(getter.result())
            for command in held:
                self._commands.put_nowait(command)
