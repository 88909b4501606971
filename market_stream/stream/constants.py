"""
Binance public stream constants and protocol defaults.
"""

from enum import Enum


# =============================================================================
# Base URLs
# =============================================================================

SPOT_WS_URL = "wss://stream.binance.com:9443/ws"
SPOT_WS_TESTNET_URL = "wss://testnet.binance.vision/ws"


# =============================================================================
# Command Methods
# =============================================================================


class Method(str, Enum):
    """On-wire command method names."""

    SUBSCRIBE = "SUBSCRIBE"
    UNSUBSCRIBE = "UNSUBSCRIBE"
    LIST_SUBSCRIPTIONS = "LIST_SUBSCRIPTIONS"


# =============================================================================
# Policy Defaults (seconds)
# =============================================================================

DEFAULT_REQUEST_TIMEOUT = 5.0
DEFAULT_HEARTBEAT_INTERVAL = 30.0
DEFAULT_STATS_INTERVAL = 5.0
DEFAULT_CLOSE_TIMEOUT = 5.0
DEFAULT_OPEN_TIMEOUT = 10.0
DEFAULT_RECONNECT_DELAY = 3.0
DEFAULT_MAX_RECONNECT_DELAY = 60.0

DEFAULT_INITIAL_TOPICS = ("ethusdt@trade",)
DEFAULT_SYMBOL = "ethusdt"
DEFAULT_STREAM = "trade"


def base_url(testnet: bool = False) -> str:
    """Spot stream endpoint for mainnet or testnet."""
    return SPOT_WS_TESTNET_URL if testnet else SPOT_WS_URL


def fixed_stream_url(base: str, topic: str) -> str:
    """Direct-URL endpoint for a single stream, e.g. ``.../ws/ethusdt@trade``."""
    return f"{base.rstrip('/')}/{topic}"
