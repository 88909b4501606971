"""
Custom exceptions for the market stream client.

Exception hierarchy:
    StreamClientError (base)
    ├── DecodeError
    ├── CommandError
    ├── RequestTimeoutError
    ├── TransportFault
    ├── ProtocolViolation
    └── ValidationError
"""

from typing import Any


class StreamClientError(Exception):
    """Base exception for all stream client errors."""

    default_message = "Stream client error occurred"

    def __init__(
        self,
        message: str | None = None,
        code: str | int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.default_message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.code is not None:
            parts.append(f"[{self.code}]")
        if self.details:
            parts.append(f"Details: {self.details}")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r})"
        )


class DecodeError(StreamClientError):
    """Inbound frame has malformed top-level syntax."""

    default_message = "Failed to decode frame"

    def __init__(
        self,
        message: str | None = None,
        raw: str | None = None,
        code: str | int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, details)
        self.raw = raw


class CommandError(StreamClientError):
    """Server answered a command with an error result."""

    default_message = "Command rejected by server"

    def __init__(
        self,
        message: str | None = None,
        request_id: int | None = None,
        code: str | int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code, details)
        self.request_id = request_id

    def __str__(self) -> str:
        base = super().__str__()
        if self.request_id is not None:
            return f"{base} id={self.request_id}"
        return base


class RequestTimeoutError(StreamClientError):
    """A pending request received no response within the timeout."""

    default_message = "Request timed out"

    def __init__(
        self,
        message: str | None = None,
        request_id: int | None = None,
        timeout: float | None = None,
        code: str | int | None = None,
        details: dict[str, Any] | None = None,
    ):
        if message is None and request_id is not None and timeout is not None:
            message = f"No response for request id={request_id} within {timeout}s"
        super().__init__(message, code, details)
        self.request_id = request_id
        self.timeout = timeout


class TransportFault(StreamClientError):
    """Sending or receiving on the connection failed."""

    default_message = "Connection fault"


class ProtocolViolation(StreamClientError):
    """Correlation bookkeeping invariant was broken."""

    default_message = "Protocol violation"


class ValidationError(StreamClientError):
    """Invalid topic or user command."""

    default_message = "Validation failed"
