"""
Binance public stream protocol: codec, correlation, session loop.
"""

from .codec import (
    Command,
    CommandResponse,
    EventPush,
    Frame,
    FrameCodec,
    Intent,
    Ping,
    Pong,
    ServerError,
    UnrecognizedPush,
    decode,
    encode,
)
from .commands import HELP_TEXT, CommandKind, UserCommand, parse_user_command, start_console_reader
from .constants import Method, base_url, fixed_stream_url
from .heartbeat import HeartbeatResponder
from .registry import SubscriptionRegistry
from .session import CloseReason, SessionSettings, SessionState, SessionStatus, StreamSession
from .stats import StatsAccumulator, StatsSnapshot
from .tracker import CommandOutcome, PendingRequest, PendingRequestTracker
from .transport import Connection, WebsocketsConnection, connect, make_connector

__all__ = [
    # Codec
    "FrameCodec",
    "Frame",
    "Command",
    "Intent",
    "CommandResponse",
    "ServerError",
    "EventPush",
    "Ping",
    "Pong",
    "UnrecognizedPush",
    "decode",
    "encode",
    "Method",
    # Correlation
    "PendingRequest",
    "PendingRequestTracker",
    "CommandOutcome",
    "SubscriptionRegistry",
    # Stats / heartbeat
    "StatsAccumulator",
    "StatsSnapshot",
    "HeartbeatResponder",
    # Session
    "StreamSession",
    "SessionSettings",
    "SessionState",
    "SessionStatus",
    "CloseReason",
    # Commands
    "UserCommand",
    "CommandKind",
    "parse_user_command",
    "start_console_reader",
    "HELP_TEXT",
    # Transport
    "Connection",
    "WebsocketsConnection",
    "connect",
    "make_connector",
    "base_url",
    "fixed_stream_url",
]
