import msgspec
import pytest

from exchanges.integrations.bybit.rest import BybitExceptionHandlerStrategy
from exchanges.integrations.bybit.utils import (
    format_decimal, from_order_type, from_side, parse_float, parse_int, to_order_status, to_side
)
from exchanges.structs import OrderStatus, OrderType, Side
from infrastructure.exceptions.exchange import ExchangeRejectedError, NetworkError, RateLimitError


@pytest.fixture
def handler():
    return BybitExceptionHandlerStrategy()


def body(ret_code, ret_msg="error"):
    return msgspec.json.encode({"retCode": ret_code, "retMsg": ret_msg}).decode()


class TestHttpErrors:

    def test_429_is_rate_limit(self, handler):
        error = handler.handle_error(429, "Too Many Requests")
        assert isinstance(error, RateLimitError)
        assert error.status_code == 429

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_5xx_is_network_error(self, handler, status):
        error = handler.handle_error(status, "<html>Bad Gateway</html>")
        assert type(error) is NetworkError
        assert error.message.startswith(f"HTTP {status}")

    def test_4xx_is_rejection_with_ret_msg(self, handler):
        error = handler.handle_error(403, body(10005, "Permission denied"))
        assert isinstance(error, ExchangeRejectedError)
        assert error.reason == "Permission denied"
        assert error.api_code == 10005

    def test_rate_limit_ret_code_inside_4xx(self, handler):
        assert isinstance(handler.handle_error(403, body(10018)), RateLimitError)


class TestPayloadErrors:

    def test_success_envelope_passes(self, handler):
        assert handler.check_payload({"retCode": 0, "retMsg": "OK", "result": {}}) is None

    def test_non_envelope_passes(self, handler):
        assert handler.check_payload([1, 2, 3]) is None
        assert handler.check_payload(None) is None

    @pytest.mark.parametrize("ret_code, expected", [
        (10006, RateLimitError),
        (10018, RateLimitError),
        (10000, NetworkError),
        (10016, NetworkError),
        (10001, ExchangeRejectedError),
        (110007, ExchangeRejectedError),
    ])
    def test_ret_code_mapping(self, handler, ret_code, expected):
        error = handler.check_payload({"retCode": ret_code, "retMsg": "msg"})
        assert type(error) is expected
        assert error.api_code == ret_code

    def test_rejection_is_not_retryable(self, handler):
        error = handler.check_payload({"retCode": 170131, "retMsg": "Insufficient balance."})
        assert not isinstance(error, NetworkError)


class TestWireMapping:

    @pytest.mark.parametrize("wire, status", [
        ("New", OrderStatus.ACKNOWLEDGED),
        ("PartiallyFilled", OrderStatus.PARTIALLY_FILLED),
        ("Filled", OrderStatus.FILLED),
        ("Cancelled", OrderStatus.CANCELLED),
        ("PartiallyFilledCanceled", OrderStatus.CANCELLED),
        ("Rejected", OrderStatus.REJECTED),
        ("Created", None),
    ])
    def test_order_status(self, wire, status):
        assert to_order_status(wire) == status

    def test_side_round_trip(self):
        assert to_side("Buy") == Side.BUY
        assert to_side("sell") == Side.SELL
        assert to_side("long") is None
        assert to_side(1) is None
        assert from_side(Side.SELL) == "Sell"
        assert from_order_type(OrderType.LIMIT) == "Limit"

    @pytest.mark.parametrize("value, text", [
        (65000.0, "65000"),
        (0.1, "0.1"),
        (1e-05, "0.00001"),
        (0, "0"),
    ])
    def test_format_decimal(self, value, text):
        assert format_decimal(value) == text

    def test_parse_helpers(self):
        assert parse_float("0.015") == 0.015
        assert parse_float("") is None
        assert parse_float("abc") is None
        assert parse_int("1700000000000") == 1700000000000
        assert parse_int(None) is None
