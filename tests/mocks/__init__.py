# Mock classes for testing
"""In-memory stand-ins for the WebSocket transport."""

from .connection_mock import MockConnection, MockConnector, wait_until

__all__ = [
    "MockConnection",
    "MockConnector",
    "wait_until",
]
