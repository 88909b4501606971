"""
Tests for the frame codec.
"""

import json
import sys

import pytest

from market_stream.core.exceptions import DecodeError, ValidationError
from market_stream.core.models import AggTradeEvent, KlineEvent, TickerEvent, TradeEvent
from market_stream.stream import (
    Command,
    CommandResponse,
    EventPush,
    FrameCodec,
    Intent,
    Method,
    Ping,
    ServerError,
    UnrecognizedPush,
    decode,
    encode,
)


@pytest.fixture
def codec() -> FrameCodec:
    return FrameCodec()


# =============================================================================
# Response Decoding
# =============================================================================


class TestDecodeResponses:
    """Frames with a top-level id are command responses."""

    def test_null_result(self, codec):
        frame = codec.decode('{"result": null, "id": 1}')
        assert frame == CommandResponse(request_id=1, result=None)
        assert frame.ok

    def test_list_result(self, codec):
        frame = codec.decode('{"result": ["btcusdt@trade"], "id": 3}')
        assert frame.result == ["btcusdt@trade"]

    def test_error_object(self, codec):
        frame = codec.decode('{"error": {"code": 2, "msg": "Invalid request"}, "id": 7}')
        assert frame == CommandResponse(request_id=7, error=ServerError(2, "Invalid request"))
        assert not frame.ok

    def test_top_level_code_and_msg(self, codec):
        frame = codec.decode('{"code": 3, "msg": "Invalid JSON", "id": 4}')
        assert frame.error == ServerError(3, "Invalid JSON")

    def test_unparseable_error_code(self, codec):
        frame = codec.decode('{"error": {"code": "x", "msg": "bad"}, "id": 5}')
        assert frame.error.code == -1

    def test_id_takes_precedence_over_event_shape(self, codec, trade_payload):
        frame = codec.decode(json.dumps({**trade_payload, "id": 9}))
        assert isinstance(frame, CommandResponse)

    @pytest.mark.parametrize("request_id", ['"1"', "1.5", "null", "true"])
    def test_non_integer_id_is_decode_error(self, codec, request_id):
        with pytest.raises(DecodeError):
            codec.decode(f'{{"result": null, "id": {request_id}}}')


# =============================================================================
# Push Decoding
# =============================================================================


class TestDecodePushes:
    """Pings, events and unknown pushes."""

    def test_ping(self, codec):
        assert codec.decode('{"ping": "abc"}') == Ping("abc")

    def test_ping_without_payload(self, codec):
        assert codec.decode('{"ping": null}') == Ping("")

    @pytest.mark.parametrize(
        "fixture_name, event_class",
        [
            ("trade_payload", TradeEvent),
            ("agg_trade_payload", AggTradeEvent),
            ("ticker_payload", TickerEvent),
            ("kline_payload", KlineEvent),
        ],
    )
    def test_event_discrimination(self, codec, request, fixture_name, event_class):
        payload = request.getfixturevalue(fixture_name)
        frame = codec.decode(json.dumps(payload))
        assert isinstance(frame, EventPush)
        assert isinstance(frame.event, event_class)
        assert frame.stream is None

    def test_shape_wins_over_event_tag(self, codec, trade_payload):
        # Discrimination is structural; a wrong "e" tag does not matter
        frame = codec.decode(json.dumps({**trade_payload, "e": "something"}))
        assert isinstance(frame.event, TradeEvent)

    def test_combined_stream_is_unwrapped(self, codec, trade_payload):
        frame = codec.decode(json.dumps({"stream": "btcusdt@trade", "data": trade_payload}))
        assert isinstance(frame, EventPush)
        assert frame.stream == "btcusdt@trade"
        assert frame.event.symbol == "BTCUSDT"

    def test_unknown_shape(self, codec):
        frame = codec.decode('{"e": "depthUpdate", "s": "BTCUSDT", "U": 1, "u": 2}')
        assert isinstance(frame, UnrecognizedPush)
        assert frame.raw["e"] == "depthUpdate"

    def test_matching_shape_with_bad_values(self, codec, trade_payload):
        frame = codec.decode(json.dumps({**trade_payload, "p": "not-a-price"}))
        assert isinstance(frame, UnrecognizedPush)

    def test_bytes_input(self, codec):
        assert codec.decode(b'{"ping": "1"}') == Ping("1")


class TestDecodeErrors:
    """Only malformed top-level syntax raises."""

    @pytest.mark.parametrize("raw", ["{not json", "", "[1, 2]", '"text"', "42"])
    def test_malformed(self, codec, raw):
        with pytest.raises(DecodeError):
            codec.decode(raw)

    def test_invalid_utf8(self, codec):
        with pytest.raises(DecodeError):
            codec.decode(b"\xff\xfe")

    def test_deeply_nested(self, codec):
        with pytest.raises(DecodeError):
            codec.decode("[" * 100000 + "]" * 100000)

    @pytest.mark.skipif(
        not hasattr(sys, "get_int_max_str_digits"), reason="no integer digit limit"
    )
    def test_oversized_integer(self, codec):
        with pytest.raises(DecodeError):
            codec.decode('{"x": 1' + "0" * 5000 + "}")


# =============================================================================
# Encoding
# =============================================================================


class TestEncode:
    """Outgoing command frames."""

    def test_subscribe(self, codec):
        text = codec.encode(Command(1, Intent.subscribe(["btcusdt@trade"])))
        assert json.loads(text) == {"method": "SUBSCRIBE", "params": ["btcusdt@trade"], "id": 1}

    def test_unsubscribe(self, codec):
        text = codec.encode(Command(2, Intent.unsubscribe(["btcusdt@trade", "ethusdt@trade"])))
        assert json.loads(text) == {
            "method": "UNSUBSCRIBE",
            "params": ["btcusdt@trade", "ethusdt@trade"],
            "id": 2,
        }

    def test_list_subscriptions_has_no_params(self, codec):
        text = codec.encode(Command(3, Intent.list_subscriptions()))
        assert json.loads(text) == {"method": "LIST_SUBSCRIPTIONS", "id": 3}

    def test_empty_subscribe_rejected(self):
        with pytest.raises(ValidationError):
            Intent.subscribe([])

    def test_module_level_helpers(self):
        assert decode(encode(Command(5, Intent.list_subscriptions()))) == CommandResponse(5)


class TestCommandRoundTrip:
    """decode_command(encode(cmd)) == cmd."""

    @pytest.mark.parametrize(
        "command",
        [
            Command(1, Intent.subscribe(["btcusdt@trade", "ethusdt@kline_1m"])),
            Command(2, Intent.unsubscribe(["btcusdt@trade"])),
            Command(3, Intent.list_subscriptions()),
        ],
    )
    def test_round_trip(self, codec, command):
        assert codec.decode_command(codec.encode(command)) == command

    def test_unknown_method(self, codec):
        with pytest.raises(DecodeError):
            codec.decode_command('{"method": "PING", "id": 1}')

    def test_params_must_be_strings(self, codec):
        with pytest.raises(DecodeError):
            codec.decode_command('{"method": "SUBSCRIBE", "params": [1], "id": 1}')

    def test_empty_params(self, codec):
        with pytest.raises(DecodeError):
            codec.decode_command('{"method": "UNSUBSCRIBE", "params": [], "id": 1}')

    def test_method_enum(self, codec):
        command = codec.decode_command('{"method": "SUBSCRIBE", "params": ["A@trade"], "id": 8}')
        assert command.method is Method.SUBSCRIBE
        assert command.topics == ("a@trade",)
