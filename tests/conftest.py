"""
Pytest configuration and fixtures for market stream tests.
"""

import pytest

from market_stream.stream import SessionSettings
from tests.mocks import MockConnection


# =============================================================================
# Sample Payloads (as pushed by Binance)
# =============================================================================


@pytest.fixture
def trade_payload() -> dict:
    return {
        "e": "trade",
        "E": 1704067200123,
        "s": "BTCUSDT",
        "t": 3370034463,
        "p": "42150.01000000",
        "q": "0.00150000",
        "T": 1704067200120,
        "m": True,
        "M": True,
    }


@pytest.fixture
def agg_trade_payload() -> dict:
    return {
        "e": "aggTrade",
        "E": 1704067200456,
        "s": "ETHUSDT",
        "a": 1034920372,
        "p": "2281.52000000",
        "q": "1.25000000",
        "f": 1265841213,
        "l": 1265841216,
        "T": 1704067200450,
        "m": False,
        "M": True,
    }


@pytest.fixture
def ticker_payload() -> dict:
    return {
        "e": "24hrTicker",
        "E": 1704067200000,
        "s": "BTCUSDT",
        "p": "512.30000000",
        "P": "1.231",
        "w": "41900.55000000",
        "x": "41637.70000000",
        "c": "42150.00000000",
        "Q": "0.01000000",
        "b": "42149.99000000",
        "B": "3.20000000",
        "a": "42150.00000000",
        "A": "1.05000000",
        "o": "41637.70000000",
        "h": "42400.00000000",
        "l": "41500.00000000",
        "v": "25678.12300000",
        "q": "1075938472.55000000",
        "O": 1703980800000,
        "C": 1704067199999,
        "F": 3360000000,
        "L": 3370034463,
        "n": 10034464,
    }


@pytest.fixture
def kline_payload() -> dict:
    return {
        "e": "kline",
        "E": 1704067260000,
        "s": "BTCUSDT",
        "k": {
            "t": 1704067200000,
            "T": 1704067259999,
            "s": "BTCUSDT",
            "i": "1m",
            "f": 3370034463,
            "L": 3370035100,
            "o": "42150.00000000",
            "c": "42180.50000000",
            "h": "42200.00000000",
            "l": "42120.10000000",
            "v": "35.40000000",
            "n": 638,
            "x": True,
            "q": "1492871.20000000",
            "V": "20.10000000",
            "Q": "847650.00000000",
            "B": "0",
        },
    }


# =============================================================================
# Session Fixtures
# =============================================================================


@pytest.fixture
def fast_settings() -> SessionSettings:
    """Short timeouts so session tests finish quickly."""
    return SessionSettings(
        request_timeout=0.1,
        heartbeat_interval=30.0,
        stats_interval=30.0,
        close_timeout=0.2,
    )


@pytest.fixture
def server() -> MockConnection:
    """Connection that acknowledges commands like the real server."""
    return MockConnection(auto_respond=True)
