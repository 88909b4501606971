"""
Data models for the market stream client.

Topic names plus frozen Pydantic v2 models for the public market-data
events (trade, aggregated trade, 24h ticker, kline). Every price and
quantity is an exact ``Decimal``.
"""

import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from pydantic import BaseModel, ConfigDict, computed_field

from .exceptions import ValidationError
from .utils import timestamp_to_datetime, to_decimal


# =============================================================================
# Topic
# =============================================================================


# "1M" (month) and "1m" (minute) differ only by case
_MONTHLY_SUFFIX = re.compile(r"_\d+M$")


class Topic(str):
    """
    Stream name such as ``btcusdt@trade``.

    Lower-cased and stripped at construction; equality is plain string
    equality, so topics can be used directly in sets and JSON payloads.
    """

    __slots__ = ()

    def __new__(cls, value: str) -> "Topic":
        if isinstance(value, Topic):
            return value
        if not isinstance(value, str):
            raise ValidationError(f"Topic must be a string, got {type(value).__name__}")
        if _MONTHLY_SUFFIX.search(value.strip()):
            raise ValidationError(f"Monthly interval streams are case sensitive: {value!r}")
        normalized = value.strip().lower()
        if not normalized:
            raise ValidationError("Topic must not be empty")
        if any(ch.isspace() for ch in normalized):
            raise ValidationError(f"Topic must not contain whitespace: {value!r}")
        return super().__new__(cls, normalized)

    @classmethod
    def for_symbol(cls, symbol: str, stream: str = "trade") -> "Topic":
        """Build ``<symbol>@<stream>``."""
        return cls(f"{symbol.strip()}@{stream.strip()}")

    @property
    def symbol(self) -> str:
        """Symbol part before ``@`` (whole name if there is none)."""
        return self.partition("@")[0]

    @property
    def stream(self) -> str:
        """Stream part after ``@``; empty if there is none."""
        return self.partition("@")[2]

    def __repr__(self) -> str:
        return f"Topic({str.__repr__(self)})"


def normalize_topics(topics: Any) -> tuple[Topic, ...]:
    """Normalize one topic or an iterable of topics, dropping duplicates in order."""
    if isinstance(topics, str):
        topics = [topics]
    seen: dict[Topic, None] = {}
    for topic in topics:
        seen.setdefault(Topic(topic), None)
    return tuple(seen)


# =============================================================================
# Enums
# =============================================================================


class EventType(str, Enum):
    """Event type tag, matching the ``e`` field of the payload."""

    TRADE = "trade"
    AGG_TRADE = "aggTrade"
    TICKER = "24hrTicker"
    KLINE = "kline"


class KlineInterval(str, Enum):
    """
    Kline/candlestick interval.

    ``1M`` is one month. Topics are lower-cased, so ``Topic`` refuses
    ``kline_1M`` rather than turning it into the one-minute stream.
    """

    s1 = "1s"
    m1 = "1m"
    m3 = "3m"
    m5 = "5m"
    m15 = "15m"
    m30 = "30m"
    h1 = "1h"
    h2 = "2h"
    h4 = "4h"
    h6 = "6h"
    h8 = "8h"
    h12 = "12h"
    d1 = "1d"
    d3 = "3d"
    w1 = "1w"
    mo1 = "1M"


# =============================================================================
# Base Model Configuration
# =============================================================================


class StreamBaseModel(BaseModel):
    """Base model for stream events: immutable once constructed."""

    model_config = ConfigDict(
        frozen=True,
        from_attributes=True,
    )


class MarketEventBase(StreamBaseModel):
    """Fields shared by every event variant."""

    # Keys whose presence identifies the payload shape
    shape: ClassVar[frozenset[str]] = frozenset()

    event_type: EventType
    symbol: str
    event_time: datetime

    @classmethod
    def matches(cls, data: dict) -> bool:
        """True if the payload carries every key of this variant's shape."""
        return cls.shape.issubset(data.keys())


# =============================================================================
# Trade Models
# =============================================================================


class TradeEvent(MarketEventBase):
    """Raw trade (``<symbol>@trade``)."""

    shape: ClassVar[frozenset[str]] = frozenset({"s", "t", "p", "q", "T"})

    event_type: EventType = EventType.TRADE
    trade_id: int
    price: Decimal
    quantity: Decimal
    trade_time: datetime
    is_buyer_maker: bool = False
    buyer_order_id: Optional[int] = None
    seller_order_id: Optional[int] = None

    @computed_field
    @property
    def notional(self) -> Decimal:
        """Trade value (price * quantity)."""
        return self.price * self.quantity

    @classmethod
    def from_binance(cls, data: dict) -> "TradeEvent":
        """
        Create TradeEvent from a Binance trade payload.

        ``b``/``a`` (order ids) were dropped from newer payloads and are optional.
        """
        return cls(
            symbol=data["s"],
            event_time=timestamp_to_datetime(data.get("E", data["T"])),
            trade_id=int(data["t"]),
            price=to_decimal(data["p"]),
            quantity=to_decimal(data["q"]),
            trade_time=timestamp_to_datetime(data["T"]),
            is_buyer_maker=bool(data.get("m", False)),
            buyer_order_id=data.get("b"),
            seller_order_id=data.get("a"),
        )


class AggTradeEvent(MarketEventBase):
    """Aggregated trade (``<symbol>@aggTrade``)."""

    shape: ClassVar[frozenset[str]] = frozenset({"s", "a", "p", "q", "f", "l", "T"})

    event_type: EventType = EventType.AGG_TRADE
    agg_trade_id: int
    price: Decimal
    quantity: Decimal
    first_trade_id: int
    last_trade_id: int
    trade_time: datetime
    is_buyer_maker: bool = False

    @computed_field
    @property
    def trade_count(self) -> int:
        """Number of raw trades folded into this aggregate."""
        return self.last_trade_id - self.first_trade_id + 1

    @classmethod
    def from_binance(cls, data: dict) -> "AggTradeEvent":
        """Create AggTradeEvent from a Binance aggTrade payload."""
        return cls(
            symbol=data["s"],
            event_time=timestamp_to_datetime(data.get("E", data["T"])),
            agg_trade_id=int(data["a"]),
            price=to_decimal(data["p"]),
            quantity=to_decimal(data["q"]),
            first_trade_id=int(data["f"]),
            last_trade_id=int(data["l"]),
            trade_time=timestamp_to_datetime(data["T"]),
            is_buyer_maker=bool(data.get("m", False)),
        )


# =============================================================================
# Ticker Model
# =============================================================================


class TickerEvent(MarketEventBase):
    """Rolling 24h ticker (``<symbol>@ticker``)."""

    shape: ClassVar[frozenset[str]] = frozenset(
        {"s", "c", "b", "B", "a", "A", "o", "h", "l", "v", "q", "O", "C"}
    )

    event_type: EventType = EventType.TICKER
    price_change: Decimal
    price_change_percent: Decimal
    weighted_avg_price: Decimal
    last_price: Decimal
    last_quantity: Decimal
    best_bid: Decimal
    best_bid_qty: Decimal
    best_ask: Decimal
    best_ask_qty: Decimal
    open: Decimal
    high: Decimal
    low: Decimal
    volume: Decimal
    quote_volume: Decimal
    open_time: datetime
    close_time: datetime
    first_trade_id: Optional[int] = None
    last_trade_id: Optional[int] = None
    trades_count: int = 0

    @computed_field
    @property
    def spread(self) -> Decimal:
        """Bid-ask spread (ask - bid)."""
        return self.best_ask - self.best_bid

    @classmethod
    def from_binance(cls, data: dict) -> "TickerEvent":
        """Create TickerEvent from a Binance 24hrTicker payload."""
        return cls(
            symbol=data["s"],
            event_time=timestamp_to_datetime(data.get("E", data["C"])),
            price_change=to_decimal(data.get("p", "0")),
            price_change_percent=to_decimal(data.get("P", "0")),
            weighted_avg_price=to_decimal(data.get("w", "0")),
            last_price=to_decimal(data["c"]),
            last_quantity=to_decimal(data.get("Q", "0")),
            best_bid=to_decimal(data["b"]),
            best_bid_qty=to_decimal(data["B"]),
            best_ask=to_decimal(data["a"]),
            best_ask_qty=to_decimal(data["A"]),
            open=to_decimal(data["o"]),
            high=to_decimal(data["h"]),
            low=to_decimal(data["l"]),
            volume=to_decimal(data["v"]),
            quote_volume=to_decimal(data["q"]),
            open_time=timestamp_to_datetime(data["O"]),
            close_time=timestamp_to_datetime(data["C"]),
            first_trade_id=data.get("F"),
            last_trade_id=data.get("L"),
            trades_count=int(data.get("n", 0)),
        )


# =============================================================================
# Kline Model
# =============================================================================


class KlineEvent(MarketEventBase):
    """Kline/candlestick update (``<symbol>@kline_<interval>``)."""

    shape: ClassVar[frozenset[str]] = frozenset({"k"})

    event_type: EventType = EventType.KLINE
    interval: KlineInterval
    open_time: datetime
    close_time: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    quote_volume: Decimal = Decimal("0")
    trades_count: int = 0
    is_closed: bool = False

    @classmethod
    def matches(cls, data: dict) -> bool:
        return isinstance(data.get("k"), dict)

    @computed_field
    @property
    def is_bullish(self) -> bool:
        """True if bullish candle (close > open)."""
        return self.close > self.open

    @computed_field
    @property
    def range(self) -> Decimal:
        """Price range (high - low)."""
        return self.high - self.low

    @classmethod
    def from_binance(cls, data: dict) -> "KlineEvent":
        """Create KlineEvent from a Binance kline payload."""
        k = data["k"]
        return cls(
            symbol=data.get("s") or k["s"],
            event_time=timestamp_to_datetime(data.get("E", k["T"])),
            interval=KlineInterval(k["i"]),
            open_time=timestamp_to_datetime(k["t"]),
            close_time=timestamp_to_datetime(k["T"]),
            open=to_decimal(k["o"]),
            high=to_decimal(k["h"]),
            low=to_decimal(k["l"]),
            close=to_decimal(k["c"]),
            volume=to_decimal(k["v"]),
            quote_volume=to_decimal(k.get("q", "0")),
            trades_count=int(k.get("n", 0)),
            is_closed=bool(k.get("x", False)),
        )


MarketEvent = Union[TradeEvent, AggTradeEvent, TickerEvent, KlineEvent]

# Tried in order, first matching shape wins. A ticker shares "a", "l" and "q"
# with the aggregated trade, so the more specific shapes come first.
EVENT_VARIANTS: tuple[type[MarketEventBase], ...] = (
    KlineEvent,
    TickerEvent,
    AggTradeEvent,
    TradeEvent,
)
