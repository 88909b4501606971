"""
Pending-request tracker.

Correlates outgoing commands with the server responses that acknowledge
them. Every command gets a fresh, monotonically increasing id; a response
resolves its entry, and entries older than the timeout are swept as
failed requests.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from market_stream.core import get_logger
from market_stream.core.exceptions import (
    CommandError,
    ProtocolViolation,
    RequestTimeoutError,
    StreamClientError,
)

from .codec import CommandResponse, Intent
from .constants import DEFAULT_REQUEST_TIMEOUT

logger = get_logger(__name__)


@dataclass(frozen=True)
class PendingRequest:
    """An in-flight command awaiting its response."""

    request_id: int
    intent: Intent
    issued_at: float


@dataclass(frozen=True)
class CommandOutcome:
    """
    Structured result of a command, reported to the user interface.

    Attributes:
        request: The request this outcome settles
        result: Server result payload (``None`` for (un)subscribe acks)
        error: ``CommandError`` or ``RequestTimeoutError`` when the command failed
    """

    request: PendingRequest
    result: Any = None
    error: Optional[StreamClientError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def request_id(self) -> int:
        return self.request.request_id

    @property
    def intent(self) -> Intent:
        return self.request.intent


class PendingRequestTracker:
    """
    Maps correlation ids to pending requests.

    Example:
        >>> tracker = PendingRequestTracker(timeout=5.0)
        >>> request_id = tracker.register(Intent.subscribe(["btcusdt@trade"]))
        >>> outcome = tracker.resolve(CommandResponse(request_id))
        >>> outcome.ok
        True
    """

    def __init__(
        self,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
        first_id: int = 1,
    ):
        """
        Initialize PendingRequestTracker.

        Args:
            timeout: Seconds a request may stay unanswered before it is swept
            clock: Monotonic time source
            first_id: First correlation id handed out
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._timeout = timeout
        self._clock = clock
        self._next_id = first_id
        self._pending: dict[int, PendingRequest] = {}

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def timeout(self) -> float:
        return self._timeout

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: int) -> bool:
        return request_id in self._pending

    def get(self, request_id: int) -> Optional[PendingRequest]:
        return self._pending.get(request_id)

    def pending_ids(self) -> list[int]:
        return sorted(self._pending)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def register(self, intent: Intent, now: Optional[float] = None) -> int:
        """
        Allocate a fresh correlation id and store the pending entry.

        Returns:
            The id to embed in the outgoing frame
        """
        request_id = self._next_id
        self._next_id += 1
        self.track(request_id, intent, now)
        return request_id

    def track(self, request_id: int, intent: Intent, now: Optional[float] = None) -> PendingRequest:
        """
        Store a pending entry under an explicit id.

        Raises:
            ProtocolViolation: If the id is already in flight
        """
        if request_id in self._pending:
            raise ProtocolViolation(
                f"Correlation id {request_id} is already in flight",
                details={
                    "in_flight": self._pending[request_id].intent.describe(),
                    "new": intent.describe(),
                },
            )
        request = PendingRequest(
            request_id=request_id,
            intent=intent,
            issued_at=self._clock() if now is None else now,
        )
        self._pending[request_id] = request
        # Keep auto-allocated ids ahead of explicitly tracked ones
        self._next_id = max(self._next_id, request_id + 1)
        return request

    def resolve(self, response: CommandResponse) -> Optional[CommandOutcome]:
        """
        Settle the pending entry matching the response.

        Returns:
            The outcome, or ``None`` for a stray or late response
        """
        request = self._pending.pop(response.request_id, None)
        if request is None:
            logger.warning(
                f"Received response for unknown request id={response.request_id}: "
                f"result={response.result!r} error={response.error!r}"
            )
            return None

        if response.error is not None:
            error = CommandError(
                response.error.msg or "Command rejected by server",
                request_id=request.request_id,
                code=response.error.code,
                details={"intent": request.intent.describe()},
            )
            return CommandOutcome(request=request, error=error)

        return CommandOutcome(request=request, result=response.result)

    def sweep(self, now: Optional[float] = None) -> list[CommandOutcome]:
        """
        Remove and report every entry older than the timeout.

        Returns:
            Failed outcomes carrying ``RequestTimeoutError``, oldest first
        """
        now = self._clock() if now is None else now
        expired = [
            request
            for request in self._pending.values()
            if now - request.issued_at >= self._timeout
        ]
        return [self._expire(request) for request in sorted(expired, key=lambda r: r.request_id)]

    def drain(self, reason: str = "session closing") -> list[CommandOutcome]:
        """Expire every pending entry regardless of age."""
        requests = sorted(self._pending.values(), key=lambda r: r.request_id)
        return [self._expire(request, reason) for request in requests]

    def next_expiry(self) -> Optional[float]:
        """Clock time at which the oldest pending entry times out."""
        if not self._pending:
            return None
        return min(r.issued_at for r in self._pending.values()) + self._timeout

    def _expire(self, request: PendingRequest, reason: Optional[str] = None) -> CommandOutcome:
        del self._pending[request.request_id]
        error = RequestTimeoutError(
            request_id=request.request_id,
            timeout=self._timeout,
            details={"intent": request.intent.describe(), **({"reason": reason} if reason else {})},
        )
        return CommandOutcome(request=request, error=error)
