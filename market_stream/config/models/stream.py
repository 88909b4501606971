"""
Stream Configuration Models.

Connection endpoint, subscription mode and timing policy for the stream
client, plus the reconnect policy used between sessions.
"""

from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator

from market_stream.core.exceptions import ValidationError as TopicValidationError
from market_stream.core.models import Topic
from market_stream.stream.constants import (
    DEFAULT_CLOSE_TIMEOUT,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_INITIAL_TOPICS,
    DEFAULT_MAX_RECONNECT_DELAY,
    DEFAULT_OPEN_TIMEOUT,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_STATS_INTERVAL,
    DEFAULT_STREAM,
    DEFAULT_SYMBOL,
    base_url,
    fixed_stream_url,
)
from market_stream.stream.session import SessionSettings

from .base import BaseConfig


class StreamConfig(BaseConfig):
    """
    Stream connection configuration.

    Example:
        >>> config = StreamConfig(
        ...     testnet=True,
        ...     initial_topics=["btcusdt@trade", "ethusdt@kline_1m"],
        ...     request_timeout=3,
        ... )
        >>> config.endpoint
        'wss://testnet.binance.vision/ws'
    """

    testnet: bool = Field(
        default=False,
        description="Use testnet endpoints",
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Override the WebSocket base URL",
    )
    mode: Literal["dynamic", "fixed"] = Field(
        default="dynamic",
        description="dynamic: runtime SUBSCRIBE/UNSUBSCRIBE; fixed: single direct-URL stream",
    )
    initial_topics: list[str] = Field(
        default_factory=lambda: list(DEFAULT_INITIAL_TOPICS),
        description="Topics subscribed when a dynamic session starts",
    )
    symbol: str = Field(
        default=DEFAULT_SYMBOL,
        description="Symbol for fixed mode",
    )
    stream: str = Field(
        default=DEFAULT_STREAM,
        description="Stream name for fixed mode (trade, aggTrade, ticker, kline_1m, ...)",
    )

    # Timing policy (seconds)
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)
    heartbeat_interval: float = Field(default=DEFAULT_HEARTBEAT_INTERVAL, gt=0)
    stats_interval: float = Field(default=DEFAULT_STATS_INTERVAL, gt=0)
    close_timeout: float = Field(default=DEFAULT_CLOSE_TIMEOUT, gt=0)
    open_timeout: float = Field(default=DEFAULT_OPEN_TIMEOUT, gt=0)

    @field_validator("initial_topics", mode="before")
    @classmethod
    def validate_initial_topics(cls, v):
        """Accept a comma separated string and normalize each topic."""
        if v is None:
            return []
        if isinstance(v, str):
            v = [part for part in v.split(",") if part.strip()]
        try:
            topics = [Topic(item) for item in v]
        except TopicValidationError as e:
            raise ValueError(e.message) from e
        return [str(topic) for topic in dict.fromkeys(topics)]

    @field_validator("symbol", "stream")
    @classmethod
    def validate_fixed_parts(cls, v: str) -> str:
        if not v or any(ch.isspace() for ch in v) or "@" in v:
            raise ValueError(f"invalid value: {v!r}")
        return v

    @model_validator(mode="after")
    def validate_fixed_topic(self) -> "StreamConfig":
        try:
            Topic.for_symbol(self.symbol, self.stream)
        except TopicValidationError as e:
            raise ValueError(e.message) from e
        return self

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("base_url must start with ws:// or wss://")
        return v.rstrip("/")

    @property
    def endpoint(self) -> str:
        """Base WebSocket URL for the dynamic mode."""
        return self.base_url or base_url(self.testnet)

    @property
    def fixed_topic(self) -> Topic:
        return Topic.for_symbol(self.symbol, self.stream)

    @property
    def fixed_endpoint(self) -> str:
        """Direct-URL endpoint for the fixed mode."""
        return fixed_stream_url(self.endpoint, self.fixed_topic)

    def session_settings(self) -> SessionSettings:
        return SessionSettings(
            request_timeout=self.request_timeout,
            heartbeat_interval=self.heartbeat_interval,
            stats_interval=self.stats_interval,
            close_timeout=self.close_timeout,
        )


class ReconnectConfig(BaseConfig):
    """
    Reconnect policy between sessions.

    Delays double after each failed attempt up to ``max_delay``.
    """

    enabled: bool = Field(
        default=True,
        description="Start a new session after a transport fault",
    )
    delay: float = Field(
        default=DEFAULT_RECONNECT_DELAY,
        gt=0,
        description="Initial delay in seconds",
    )
    max_delay: float = Field(
        default=DEFAULT_MAX_RECONNECT_DELAY,
        gt=0,
        description="Maximum delay in seconds",
    )
    max_attempts: int = Field(
        default=0,
        ge=0,
        description="Consecutive failed attempts before giving up (0 = unlimited)",
    )

    @model_validator(mode="after")
    def validate_delays(self) -> "ReconnectConfig":
        if self.max_delay < self.delay:
            raise ValueError("max_delay must be >= delay")
        return self
