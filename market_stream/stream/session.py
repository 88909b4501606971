"""
Stream session state machine.

One ``StreamSession`` owns one connection together with its registry,
tracker, stats accumulator and heartbeat responder. A single task runs
``run()``, racing the connection, the user command queue and the timer
deadlines with ``asyncio.wait(..., FIRST_COMPLETED)``; exactly one
completed source is handled before the next wait.

States: CONNECTING -> ACTIVE -> CLOSING -> CLOSED. There is no reconnect
inside a session; see ``market_stream.client.StreamClient``.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from market_stream.core import get_logger
from market_stream.core.exceptions import (
    CommandError,
    DecodeError,
    ProtocolViolation,
    StreamClientError,
    TransportFault,
    ValidationError,
)
from market_stream.core.models import MarketEvent, Topic, normalize_topics

from .codec import (
    Command,
    CommandResponse,
    EventPush,
    FrameCodec,
    Intent,
    Ping,
    Pong,
    UnrecognizedPush,
)
from .commands import HELP_TEXT, CommandKind, UserCommand
from .constants import (
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_STATS_INTERVAL,
    Method,
)
from .heartbeat import HeartbeatResponder
from .registry import SubscriptionRegistry
from .stats import UNRECOGNIZED_TAG, StatsAccumulator, StatsSnapshot
from .tracker import CommandOutcome, PendingRequestTracker
from .transport import Connection, Connector

logger = get_logger(__name__)

EventCallback = Callable[[MarketEvent], Any]
OutcomeCallback = Callable[[CommandOutcome], Any]


class SessionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class CloseReason(str, Enum):
    """Why a session left ACTIVE."""

    QUIT = "quit"
    CHANNEL_CLOSED = "channel_closed"
    CONNECT_FAILED = "connect_failed"
    TRANSPORT_FAULT = "transport_fault"
    PROTOCOL_VIOLATION = "protocol_violation"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class SessionSettings:
    """
    Timing policy for one session.

    Attributes:
        request_timeout: Seconds before an unanswered request is swept
        heartbeat_interval: Seconds between unsolicited pongs
        stats_interval: Seconds between stats log lines
        close_timeout: Seconds allowed for the closing handshake
    """

    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL
    stats_interval: float = DEFAULT_STATS_INTERVAL
    close_timeout: float = DEFAULT_CLOSE_TIMEOUT


@dataclass(frozen=True)
class SessionStatus:
    """Point-in-time view of a session for status queries."""

    state: SessionState
    url: str
    active_topics: tuple[Topic, ...]
    desired_topics: tuple[Topic, ...]
    pending_ids: tuple[int, ...]
    server_subscriptions: Optional[tuple[str, ...]]
    stats: StatsSnapshot


class StreamSession:
    """
    Drives one connection from handshake to close.

    Example:
        >>> commands = asyncio.Queue()
        >>> session = StreamSession(
        ...     url="wss://stream.binance.com:9443/ws",
        ...     connector=make_connector(),
        ...     commands=commands,
        ...     initial_topics=["btcusdt@trade"],
        ...     on_event=print,
        ... )
        >>> reason = await session.run()
    """

    def __init__(
        self,
        url: str,
        connector: Connector,
        commands: Optional["asyncio.Queue[Optional[UserCommand]]"] = None,
        initial_topics: Iterable[str] = (),
        settings: Optional[SessionSettings] = None,
        on_event: Optional[EventCallback] = None,
        on_outcome: Optional[OutcomeCallback] = None,
        fixed_topic: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
        codec: Optional[FrameCodec] = None,
    ):
        """
        Initialize StreamSession.

        Args:
            url: Endpoint to connect to
            connector: Coroutine function returning a ``Connection``
            commands: Queue of user commands; ``None`` items close the session
            initial_topics: Topics subscribed right after the handshake
            settings: Timing policy
            on_event: Called with every decoded market event
            on_outcome: Called with every settled command outcome
            fixed_topic: Direct-URL mode; the single implicit topic
            clock: Monotonic time source
            codec: Frame codec
        """
        self._url = url
        self._connector = connector
        self._commands = commands
        self._settings = settings or SessionSettings()
        self._on_event = on_event
        self._on_outcome = on_outcome
        self._clock = clock
        self._codec = codec or FrameCodec()

        self._fixed_topic = Topic(fixed_topic) if fixed_topic is not None else None
        if self._fixed_topic is not None:
            self._initial_topics: tuple[Topic, ...] = (self._fixed_topic,)
            self._registry = SubscriptionRegistry([self._fixed_topic])
        else:
            self._initial_topics = normalize_topics(initial_topics)
            self._registry = SubscriptionRegistry()
        self._desired: dict[Topic, None] = dict.fromkeys(self._initial_topics)

        self._tracker = PendingRequestTracker(
            timeout=self._settings.request_timeout,
            clock=clock,
        )
        self._stats = StatsAccumulator(clock=clock)
        self._heartbeat: Optional[HeartbeatResponder] = None
        self._connection: Optional[Connection] = None
        self._server_subscriptions: Optional[tuple[str, ...]] = None

        self._state = SessionState.CONNECTING
        self._close_reason: Optional[CloseReason] = None
        self._next_stats_report = math.inf
        self._recv_task: Optional[asyncio.Task] = None
        self._command_task: Optional[asyncio.Task] = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def close_reason(self) -> Optional[CloseReason]:
        return self._close_reason

    @property
    def is_fixed(self) -> bool:
        return self._fixed_topic is not None

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    @property
    def tracker(self) -> PendingRequestTracker:
        return self._tracker

    @property
    def server_subscriptions(self) -> Optional[tuple[str, ...]]:
        """Result of the last confirmed LIST_SUBSCRIPTIONS, if any."""
        return self._server_subscriptions

    def active_topics(self) -> tuple[Topic, ...]:
        return self._registry.snapshot()

    def desired_topics(self) -> tuple[Topic, ...]:
        """Requested topics, ignoring requests the server rejected."""
        return tuple(self._desired)

    def stats(self) -> StatsSnapshot:
        return self._stats.snapshot()

    def status(self) -> SessionStatus:
        return SessionStatus(
            state=self._state,
            url=self._url,
            active_topics=self._registry.snapshot(),
            desired_topics=self.desired_topics(),
            pending_ids=tuple(self._tracker.pending_ids()),
            server_subscriptions=self._server_subscriptions,
            stats=self._stats.snapshot(),
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run(self) -> CloseReason:
        """
        Connect, serve until a close condition, then shut down.

        Returns:
            Why the session closed

        Raises:
            ProtocolViolation: Correlation bookkeeping was broken
        """
        if self._state is not SessionState.CONNECTING:
            raise RuntimeError(f"Session already started (state={self._state.value})")

        try:
            self._connection = await self._connector(self._url)
        except TransportFault as e:
            logger.error(f"Connection failed: {e}")
            self._close_reason = CloseReason.CONNECT_FAILED
            self._state = SessionState.CLOSED
            return self._close_reason

        now = self._clock()
        self._state = SessionState.ACTIVE
        self._stats = StatsAccumulator(start_time=now, clock=self._clock)
        self._heartbeat = HeartbeatResponder(
            self._send_pong,
            interval=self._settings.heartbeat_interval,
            clock=self._clock,
        )
        self._next_stats_report = now + self._settings.stats_interval
        logger.info(f"Session active on {self._url}")

        violation: Optional[ProtocolViolation] = None
        try:
            if not self.is_fixed and self._initial_topics:
                await self._issue(Intent.subscribe(self._initial_topics))
            self._close_reason = await self._serve()
        except ProtocolViolation as e:
            logger.critical(f"Protocol violation, halting session: {e}")
            self._close_reason = CloseReason.PROTOCOL_VIOLATION
            violation = e
        except TransportFault as e:
            logger.warning(f"Transport fault: {e}")
            self._close_reason = CloseReason.TRANSPORT_FAULT
        except asyncio.CancelledError:
            self._close_reason = CloseReason.CANCELLED
            raise
        finally:
            await self._shutdown()

        if violation is not None:
            raise violation
        return self._close_reason

    async def _serve(self) -> CloseReason:
        while True:
            await self._fire_due_timers(self._clock())

            if self._recv_task is None:
                self._recv_task = asyncio.create_task(self._connection.recv())
            if self._commands is not None and self._command_task is None:
                self._command_task = asyncio.create_task(self._commands.get())

            waits = {t for t in (self._recv_task, self._command_task) if t is not None}
            timeout = max(0.0, self._next_deadline() - self._clock())
            done, _ = await asyncio.wait(
                waits,
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if not done:
                continue

            if self._recv_task in done:
                task, self._recv_task = self._recv_task, None
                await self._handle_frame(task.result(), self._clock())
                continue

            task, self._command_task = self._command_task, None
            command = task.result()
            if command is None:
                logger.info("Command channel closed")
                return CloseReason.CHANNEL_CLOSED
            if command.kind is CommandKind.QUIT:
                logger.info("Quit requested")
                return CloseReason.QUIT
            await self._handle_command(command)

    async def _shutdown(self) -> None:
        self._state = SessionState.CLOSING
        logger.info(f"Closing session ({self._close_reason.value if self._close_reason else 'unknown'})")

        self._requeue_unhandled_command()
        tasks = [t for t in (self._recv_task, self._command_task) if t is not None]
        self._recv_task = self._command_task = None
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        for outcome in self._tracker.drain():
            self._settle(outcome)

        if self._connection is not None:
            try:
                await asyncio.wait_for(self._connection.close(), timeout=self._settings.close_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Close handshake timed out after {self._settings.close_timeout}s")
            except TransportFault as e:
                logger.debug(f"Error closing connection: {e}")

        self._state = SessionState.CLOSED
        logger.info("Session closed")

    def _requeue_unhandled_command(self) -> None:
        # A command taken off the queue but not handled belongs to the next session
        task = self._command_task
        if task is None or not task.done() or task.cancelled() or task.exception() is not None:
            return
        self._commands.put_nowait(task.result())

    # =========================================================================
    # Timers
    # =========================================================================

    def _next_deadline(self) -> float:
        deadlines = [self._heartbeat.next_due, self._next_stats_report]
        expiry = self._tracker.next_expiry()
        if expiry is not None:
            deadlines.append(expiry)
        return min(deadlines)

    async def _fire_due_timers(self, now: float) -> None:
        if self._heartbeat.is_due(now):
            await self._heartbeat.on_tick(now)

        expiry = self._tracker.next_expiry()
        if expiry is not None and now >= expiry:
            for outcome in self._tracker.sweep(now):
                self._settle(outcome)

        if now >= self._next_stats_report:
            self._log_stats(now)
            self._next_stats_report = now + self._settings.stats_interval

    def _log_stats(self, now: float) -> None:
        snapshot = self._stats.snapshot()
        logger.info(
            f"Messages received: {snapshot.total_messages}, "
            f"Frequency: {snapshot.frequency(now):.2f} msg/s"
        )

    # =========================================================================
    # Inbound Frames
    # =========================================================================

    async def _handle_frame(self, raw: str | bytes, arrival_time: float) -> None:
        try:
            frame = self._codec.decode(raw)
        except DecodeError as e:
            logger.warning(f"Dropping undecodable frame: {e}")
            return

        if isinstance(frame, EventPush):
            self._stats.record(frame.event, arrival_time)
            await self._dispatch_event(frame.event)
        elif isinstance(frame, CommandResponse):
            outcome = self._tracker.resolve(frame)
            if outcome is not None:
                self._settle(outcome)
        elif isinstance(frame, Ping):
            await self._heartbeat.on_ping(frame)
        elif isinstance(frame, UnrecognizedPush):
            self._stats.record(UNRECOGNIZED_TAG, arrival_time)
            logger.debug(f"Unrecognized push: {frame.raw}")

    async def _dispatch_event(self, event: MarketEvent) -> None:
        if self._on_event is None:
            return
        try:
            result = self._on_event(event)
            if asyncio.iscoroutine(result):
                await result
        except StreamClientError:
            raise
        except Exception as e:
            logger.error(f"Event callback error for {event.symbol}: {e}")

    async def _send_pong(self, pong: Pong) -> None:
        await self._connection.pong(pong.payload)

    # =========================================================================
    # Commands
    # =========================================================================

    async def _handle_command(self, command: UserCommand) -> None:
        kind = command.kind

        if kind is CommandKind.HELP:
            logger.info(f"\n{HELP_TEXT}")
            return

        if kind is CommandKind.LIST:
            logger.info(f"Desired topics: {list(self.desired_topics())}")
            logger.info(f"Active topics: {list(self._registry.snapshot())}")
            return

        if self.is_fixed:
            logger.warning(f"'{kind.value}' is not available in fixed stream mode")
            return

        try:
            if kind is CommandKind.ADD:
                intent = Intent.subscribe(command.topics)
                for topic in intent.topics:
                    self._desired[topic] = None
            elif kind is CommandKind.DELETE:
                intent = Intent.unsubscribe(command.topics)
                for topic in intent.topics:
                    self._desired.pop(topic, None)
            else:
                intent = Intent.list_subscriptions()
        except ValidationError as e:
            logger.warning(f"Invalid command: {e.message}")
            return

        await self._issue(intent)

    async def _issue(self, intent: Intent) -> int:
        request_id = self._tracker.register(intent)
        frame = self._codec.encode(Command(request_id, intent))
        logger.info(f"Sending {intent.describe()} id={request_id}")
        await self._connection.send(frame)
        return request_id

    def _settle(self, outcome: CommandOutcome) -> None:
        intent = outcome.intent

        if outcome.ok:
            if intent.method is Method.SUBSCRIBE:
                added = self._registry.apply_subscribe(intent.topics)
                logger.info(f"Subscribed id={outcome.request_id}: {list(added) or 'no change'}")
            elif intent.method is Method.UNSUBSCRIBE:
                removed = self._registry.apply_unsubscribe(intent.topics)
                logger.info(f"Unsubscribed id={outcome.request_id}: {list(removed) or 'no change'}")
            else:
                result = outcome.result if isinstance(outcome.result, list) else []
                self._server_subscriptions = tuple(str(t) for t in result)
                logger.info(f"Server subscriptions: {list(self._server_subscriptions)}")
        else:
            logger.error(f"{intent.describe()} failed: {outcome.error}")
            if isinstance(outcome.error, CommandError):
                self._roll_back_desired(intent)

        self._notify_outcome(outcome)

    def _roll_back_desired(self, intent: Intent) -> None:
        if intent.method is Method.SUBSCRIBE:
            for topic in intent.topics:
                if topic not in self._registry:
                    self._desired.pop(topic, None)
        elif intent.method is Method.UNSUBSCRIBE:
            for topic in intent.topics:
                if topic in self._registry:
                    self._desired[topic] = None

    def _notify_outcome(self, outcome: CommandOutcome) -> None:
        if self._on_outcome is None:
            return
        try:
            self._on_outcome(outcome)
        except StreamClientError:
            raise
        except Exception as e:
            logger.error(f"Outcome callback error for id={outcome.request_id}: {e}")
