"""
Core module for the market stream client.

Provides logging utilities, the exception hierarchy and the data models.
"""

from .exceptions import (
    CommandError,
    DecodeError,
    ProtocolViolation,
    RequestTimeoutError,
    StreamClientError,
    TransportFault,
    ValidationError,
)
from .logger import configure_logging, get_logger, setup_logger
from .models import (
    AggTradeEvent,
    EventType,
    KlineEvent,
    KlineInterval,
    MarketEvent,
    TickerEvent,
    Topic,
    TradeEvent,
    normalize_topics,
)

__all__ = [
    # Logging
    "setup_logger",
    "get_logger",
    "configure_logging",
    # Exceptions
    "StreamClientError",
    "DecodeError",
    "CommandError",
    "RequestTimeoutError",
    "TransportFault",
    "ProtocolViolation",
    "ValidationError",
    # Models
    "Topic",
    "normalize_topics",
    "EventType",
    "KlineInterval",
    "MarketEvent",
    "TradeEvent",
    "AggTradeEvent",
    "TickerEvent",
    "KlineEvent",
]
