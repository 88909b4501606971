"""
Frame codec for the Binance public stream protocol.

Inbound text frames decode into a closed set of frame variants:

- ``CommandResponse``: anything carrying a top-level ``id``
- ``Ping``: a ``ping`` control member
- ``EventPush``: a payload whose shape matches a known market event
- ``UnrecognizedPush``: everything else that is still a JSON object

Only malformed top-level syntax raises ``DecodeError``; unknown shapes are
tolerated so protocol additions never break the session.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from market_stream.core import get_logger
from market_stream.core.exceptions import DecodeError, ValidationError
from market_stream.core.models import EVENT_VARIANTS, MarketEvent, Topic, normalize_topics

from .constants import Method

logger = get_logger(__name__)


# =============================================================================
# Commands
# =============================================================================


@dataclass(frozen=True)
class Intent:
    """What an outgoing command asks the server to do."""

    method: Method
    topics: tuple[Topic, ...] = ()

    @classmethod
    def subscribe(cls, topics) -> "Intent":
        topics = normalize_topics(topics)
        if not topics:
            raise ValidationError("SUBSCRIBE needs at least one topic")
        return cls(Method.SUBSCRIBE, topics)

    @classmethod
    def unsubscribe(cls, topics) -> "Intent":
        topics = normalize_topics(topics)
        if not topics:
            raise ValidationError("UNSUBSCRIBE needs at least one topic")
        return cls(Method.UNSUBSCRIBE, topics)

    @classmethod
    def list_subscriptions(cls) -> "Intent":
        return cls(Method.LIST_SUBSCRIPTIONS)

    def describe(self) -> str:
        if self.topics:
            return f"{self.method.value} {list(self.topics)}"
        return self.method.value


@dataclass(frozen=True)
class Command:
    """An intent bound to its correlation id, ready to be encoded."""

    request_id: int
    intent: Intent

    @property
    def method(self) -> Method:
        return self.intent.method

    @property
    def topics(self) -> tuple[Topic, ...]:
        return self.intent.topics


# =============================================================================
# Frames
# =============================================================================


@dataclass(frozen=True)
class ServerError:
    """Error object returned in place of a result."""

    code: int
    msg: str


@dataclass(frozen=True)
class CommandResponse:
    """Server reply correlated to a command by ``request_id``."""

    request_id: int
    result: Any = None
    error: Optional[ServerError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class EventPush:
    """A decoded market event, with the stream name for combined streams."""

    event: MarketEvent
    stream: Optional[str] = None


@dataclass(frozen=True)
class Ping:
    """Server liveness check."""

    payload: str = ""


@dataclass(frozen=True)
class Pong:
    """Reply to a ``Ping``, or an unsolicited keep-alive."""

    payload: str = ""


@dataclass(frozen=True)
class UnrecognizedPush:
    """A well-formed push whose shape matches no known event."""

    raw: dict = field(default_factory=dict)


Frame = Union[EventPush, CommandResponse, Ping, UnrecognizedPush]


# =============================================================================
# Codec
# =============================================================================


class FrameCodec:
    """
    Stateless encoder/decoder for stream frames.

    Example:
        >>> codec = FrameCodec()
        >>> codec.encode(Command(1, Intent.subscribe(["btcusdt@trade"])))
        '{"method": "SUBSCRIBE", "params": ["btcusdt@trade"], "id": 1}'
        >>> codec.decode('{"result": null, "id": 1}')
        CommandResponse(request_id=1, result=None, error=None)
    """

    def decode(self, raw: str | bytes) -> Frame:
        """
        Decode one inbound text frame.

        Raises:
            DecodeError: Invalid JSON, non-object top level, or a response
                whose ``id`` is not an integer
        """
        data = self._load_object(raw)

        if "id" in data:
            return self._decode_response(data)

        if "ping" in data:
            payload = data["ping"]
            return Ping("" if payload is None else str(payload))

        stream = None
        payload = data
        if isinstance(data.get("stream"), str) and isinstance(data.get("data"), dict):
            stream = data["stream"]
            payload = data["data"]

        event = self._decode_event(payload)
        if event is None:
            return UnrecognizedPush(data)
        return EventPush(event, stream)

    def encode(self, command: Command) -> str:
        """Render a command as an on-wire JSON text frame."""
        message: dict[str, Any] = {"method": command.method.value}
        if command.method is not Method.LIST_SUBSCRIPTIONS:
            message["params"] = list(command.topics)
        message["id"] = command.request_id
        return json.dumps(message)

    def decode_command(self, raw: str | bytes) -> Command:
        """
        Parse an encoded command frame back into a ``Command``.

        Raises:
            DecodeError: If the frame is not a well-formed command
        """
        data = self._load_object(raw)
        request_id = self._request_id(data)

        try:
            method = Method(data.get("method"))
        except ValueError as e:
            raise DecodeError(f"Unknown method: {data.get('method')!r}") from e

        if method is Method.LIST_SUBSCRIPTIONS:
            return Command(request_id, Intent.list_subscriptions())

        params = data.get("params")
        if not isinstance(params, list) or not all(isinstance(p, str) for p in params):
            raise DecodeError(f"{method.value} params must be a list of strings")
        try:
            if method is Method.SUBSCRIBE:
                intent = Intent.subscribe(params)
            else:
                intent = Intent.unsubscribe(params)
        except ValidationError as e:
            raise DecodeError(str(e.message)) from e
        return Command(request_id, intent)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load_object(self, raw: str | bytes) -> dict:
        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(f"Frame is not valid UTF-8: {e}") from e
        try:
            data = json.loads(raw)
        except (ValueError, TypeError) as e:
            # JSONDecodeError is a ValueError, as is an integer literal over the digit limit
            raise DecodeError(f"Invalid JSON: {e}", raw=raw if isinstance(raw, str) else None) from e
        except RecursionError as e:
            raise DecodeError("JSON nested too deeply") from e
        if not isinstance(data, dict):
            raise DecodeError(f"Expected a JSON object, got {type(data).__name__}", raw=raw)
        return data

    def _request_id(self, data: dict) -> int:
        request_id = data.get("id")
        if isinstance(request_id, bool) or not isinstance(request_id, int):
            raise DecodeError(f"Non-integer request id: {request_id!r}", details={"frame": data})
        return request_id

    def _decode_response(self, data: dict) -> CommandResponse:
        request_id = self._request_id(data)

        error = data.get("error")
        if error is not None:
            if isinstance(error, dict):
                return CommandResponse(
                    request_id,
                    error=ServerError(_as_code(error.get("code")), str(error.get("msg", ""))),
                )
            return CommandResponse(request_id, error=ServerError(-1, str(error)))

        # Binance also reports request errors as top-level code/msg
        if "code" in data and "msg" in data and "result" not in data:
            return CommandResponse(request_id, error=ServerError(_as_code(data["code"]), str(data["msg"])))

        return CommandResponse(request_id, result=data.get("result"))

    def _decode_event(self, payload: dict) -> Optional[MarketEvent]:
        for variant in EVENT_VARIANTS:
            if not variant.matches(payload):
                continue
            try:
                return variant.from_binance(payload)
            except (KeyError, TypeError, ValueError, OverflowError, OSError) as e:
                logger.debug(f"Payload looked like {variant.__name__} but failed to parse: {e}")
                return None
        return None


def _as_code(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return -1


_default_codec = FrameCodec()


def decode(raw: str | bytes) -> Frame:
    """Decode with the shared stateless codec."""
    return _default_codec.decode(raw)


def encode(command: Command) -> str:
    """Encode with the shared stateless codec."""
    return _default_codec.encode(command)
