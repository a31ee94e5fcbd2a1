"""
Tests for OrderGateway: local validation, REST submission outcomes,
stream-driven lifecycle transitions and order retention.
"""

import asyncio
import itertools

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, Mock

from config.exchanges import ExchangeConfigBuilder
from config.structs import OrderGatewayConfig
from exchanges.integrations.bybit.order_gateway import ALLOWED_TRANSITIONS, OrderGateway
from exchanges.integrations.bybit.rest import BybitPrivateRest
from exchanges.structs import OrderSpec, OrderStatus, OrderType, Side
from helpers.fake_clock import FakeClock
from infrastructure.exceptions.exchange import (
    ExchangeRejectedError, InvalidOrderSpecError, NetworkError, OrderNotFoundError
)


def order_message(client_order_id, status, updated_time, order_id="1001", cum_qty="0",
                  avg_price="", reject_reason=""):
    return {
        "topic": "order",
        "id": "msg-1",
        "creationTime": updated_time,
        "data": [{
            "orderId": order_id,
            "orderLinkId": client_order_id,
            "symbol": "ETHUSDT",
            "orderStatus": status,
            "cumExecQty": cum_qty,
            "avgPrice": avg_price,
            "rejectReason": reject_reason,
            "updatedTime": str(updated_time),
        }],
    }


def execution_message(client_order_id, exec_qty, leaves_qty, exec_time, order_id="1001", price="2000"):
    return {
        "topic": "execution",
        "data": [{
            "orderId": order_id,
            "orderLinkId": client_order_id,
            "symbol": "ETHUSDT",
            "execId": f"exec-{exec_time}",
            "execQty": exec_qty,
            "execPrice": price,
            "leavesQty": leaves_qty,
            "execTime": str(exec_time),
        }],
    }


MARKET_BUY = OrderSpec(symbol="ETHUSDT", side="Buy", order_type="Market", quantity=0.1)


@pytest.fixture
def rest():
    order_ids = itertools.count(1001)
    rest = Mock()
    rest.place_order = AsyncMock(side_effect=lambda payload: {"orderId": str(next(order_ids)),
                                                             "orderLinkId": payload["orderLinkId"]})
    rest.cancel_order = AsyncMock(return_value={"orderId": "1001"})
    return rest


@pytest.fixture
def clock():
    return FakeClock(start=1_700_000_000.0)


@pytest_asyncio.fixture
async def gateway(rest, clock):
    gateway = OrderGateway(rest, OrderGatewayConfig(retry_delay=0.0, retention_seconds=60.0), clock=clock)
    statuses = []
    gateway.on_order_update(lambda order: statuses.append(order.status))
    gateway.statuses = statuses
    yield gateway
    await gateway.close()


class TestValidation:

    @pytest.mark.parametrize("spec", [
        OrderSpec(symbol="ETHUSDT", side="Buy", order_type="Market", quantity=0),
        OrderSpec(symbol="ETHUSDT", side="Buy", order_type="Market", quantity=-1.0),
        OrderSpec(symbol="ETHUSDT", side="Buy", order_type="Market", quantity=float("nan")),
        OrderSpec(symbol="ETHUSDT", side="Buy", order_type="Market", quantity=True),
        OrderSpec(symbol="ETHUSDT", side="Buy", order_type="Limit", quantity=1.0),
        OrderSpec(symbol="ETHUSDT", side="Buy", order_type="Limit", quantity=1.0, price=0),
        OrderSpec(symbol="ETHUSDT", side="Buy", order_type="Market", quantity=1.0, price=2000.0),
        OrderSpec(symbol="ETHUSDT", side="Hold", order_type="Market", quantity=1.0),
        OrderSpec(symbol="ETHUSDT", side="Buy", order_type="StopLimit", quantity=1.0),
        OrderSpec(symbol="", side="Buy", order_type="Market", quantity=1.0),
    ])
    @pytest.mark.asyncio
    async def test_invalid_spec_rejected_before_network(self, gateway, rest, spec):
        with pytest.raises(InvalidOrderSpecError):
            gateway.submit_order(spec)

        await gateway.flush()
        rest.place_order.assert_not_called()
        assert gateway.active_orders() == []

    @pytest.mark.asyncio
    async def test_error_names_offending_field(self, gateway):
        with pytest.raises(InvalidOrderSpecError) as exc_info:
            gateway.submit_order(OrderSpec(symbol="ETHUSDT", side=Side.BUY,
                                           order_type=OrderType.LIMIT, quantity=1.0))
        assert exc_info.value.field == "price"

    @pytest.mark.asyncio
    async def test_enum_and_string_specs_accepted(self, gateway):
        first = gateway.submit_order(OrderSpec(symbol="BTCUSDT", side=Side.SELL,
                                               order_type=OrderType.LIMIT, quantity=0.5, price=65000.0))
        second = gateway.submit_order(OrderSpec(symbol="BTCUSDT", side="sell",
                                                order_type="limit", quantity=0.5, price=65000.0))
        await gateway.flush()
        assert gateway.get_order(first).side == Side.SELL
        assert gateway.get_order(second).order_type == OrderType.LIMIT


class TestSubmission:

    @pytest.mark.asyncio
    async def test_market_order_lifecycle(self, gateway, rest):
        client_order_id = gateway.submit_order(MARKET_BUY)

        assert gateway.get_order(client_order_id).status == OrderStatus.PENDING

        await gateway.flush()
        order = gateway.get_order(client_order_id)
        assert order.status == OrderStatus.SUBMITTED
        assert order.order_id == "1001"

        payload = rest.place_order.await_args.args[0]
        assert payload == {
            "category": "spot",
            "symbol": "ETHUSDT",
            "side": "Buy",
            "orderType": "Market",
            "qty": "0.1",
            "timeInForce": "IOC",
            "orderLinkId": client_order_id,
        }

        await gateway.handle_order_message(
            order_message(client_order_id, "Filled", 1_700_000_000_500, cum_qty="0.1", avg_price="2000.5")
        )
        order = gateway.get_order(client_order_id)
        assert order.status == OrderStatus.FILLED
        assert order.filled_quantity == pytest.approx(0.1)
        assert order.average_price == pytest.approx(2000.5)
        assert gateway.statuses == [OrderStatus.SUBMITTED, OrderStatus.FILLED]

    @pytest.mark.asyncio
    async def test_limit_payload(self, gateway, rest):
        gateway.submit_order(OrderSpec(symbol="BTCUSDT", side="Sell", order_type="Limit",
                                       quantity=0.001, price=65000.0))
        await gateway.flush()

        payload = rest.place_order.await_args.args[0]
        assert payload["price"] == "65000"
        assert payload["qty"] == "0.001"
        assert payload["timeInForce"] == "GTC"
        assert payload["side"] == "Sell"

    @pytest.mark.asyncio
    async def test_client_order_ids_unique(self, rest, clock):
        candidates = iter(["dup", "dup", "dup", "other"])
        gateway = OrderGateway(rest, OrderGatewayConfig(id_prefix="dca-"), clock=clock,
                               id_factory=lambda: next(candidates))
        try:
            first = gateway.submit_order(MARKET_BUY)
            second = gateway.submit_order(MARKET_BUY)
            assert first == "dca-dup"
            assert second == "dca-other"
        finally:
            await gateway.close()

    @pytest.mark.asyncio
    async def test_default_ids_are_distinct(self, gateway):
        ids = {gateway.submit_order(MARKET_BUY) for _ in range(50)}
        assert len(ids) == 50
        await gateway.flush()

    @pytest.mark.asyncio
    async def test_network_error_retried_once_with_same_id(self, gateway, rest):
        rest.place_order.side_effect = [NetworkError(503, "timeout"), {"orderId": "2002"}]

        client_order_id = gateway.submit_order(MARKET_BUY)
        await gateway.flush()

        assert rest.place_order.await_count == 2
        link_ids = [call.args[0]["orderLinkId"] for call in rest.place_order.await_args_list]
        assert link_ids == [client_order_id, client_order_id]
        assert gateway.get_order(client_order_id).status == OrderStatus.SUBMITTED
        assert gateway.get_order(client_order_id).order_id == "2002"

    @pytest.mark.asyncio
    async def test_repeated_network_error_rejects(self, gateway, rest):
        rest.place_order.side_effect = NetworkError(503, "connection reset")

        client_order_id = gateway.submit_order(MARKET_BUY)
        await gateway.flush()

        order = gateway.get_order(client_order_id)
        assert rest.place_order.await_count == 2
        assert order.status == OrderStatus.REJECTED
        assert order.reject_reason.startswith("network error")
        assert gateway.statuses == [OrderStatus.REJECTED]

    @pytest.mark.asyncio
    async def test_exchange_rejection_not_retried(self, gateway, rest):
        rest.place_order.side_effect = ExchangeRejectedError(200, "Insufficient balance", 170131)

        client_order_id = gateway.submit_order(MARKET_BUY)
        await gateway.flush()

        order = gateway.get_order(client_order_id)
        assert rest.place_order.await_count == 1
        assert order.status == OrderStatus.REJECTED
        assert order.reject_reason == "Insufficient balance"

    @pytest.mark.asyncio
    async def test_unexpected_failure_rejects(self, gateway, rest):
        rest.place_order.side_effect = KeyError("orderId")

        client_order_id = gateway.submit_order(MARKET_BUY)
        await gateway.flush()

        order = gateway.get_order(client_order_id)
        assert rest.place_order.await_count == 1
        assert order.status == OrderStatus.REJECTED
        assert order.reject_reason.startswith("submission failed: KeyError")
        assert gateway.statuses == [OrderStatus.REJECTED]

    @pytest.mark.asyncio
    async def test_malformed_envelope_rejects(self, clock):
        config = ExchangeConfigBuilder(environ={}).build({"api_key": "key", "api_secret": "secret"})
        rest_manager = Mock()
        rest_manager.post = AsyncMock(return_value={"unexpected": True})
        gateway = OrderGateway(BybitPrivateRest(config, rest_manager=rest_manager),
                               OrderGatewayConfig(retry_delay=0.0), clock=clock)
        try:
            client_order_id = gateway.submit_order(MARKET_BUY)
            await gateway.flush()

            order = gateway.get_order(client_order_id)
            assert order.status == OrderStatus.REJECTED
            assert order.reject_reason.startswith("Unexpected response")
        finally:
            await gateway.close()


class TestStreamEvents:

    @pytest.mark.asyncio
    async def test_terminal_status_never_overwritten(self, gateway):
        client_order_id = gateway.submit_order(MARKET_BUY)
        await gateway.flush()

        await gateway.handle_order_message(order_message(client_order_id, "Filled", 100, cum_qty="0.1"))
        await gateway.handle_order_message(order_message(client_order_id, "Cancelled", 200))
        await gateway.handle_order_message(order_message(client_order_id, "New", 300))

        assert gateway.get_order(client_order_id).status == OrderStatus.FILLED

    @pytest.mark.asyncio
    async def test_stale_events_ignored(self, gateway):
        client_order_id = gateway.submit_order(MARKET_BUY)
        await gateway.flush()

        await gateway.handle_order_message(
            order_message(client_order_id, "PartiallyFilled", 200, cum_qty="0.05"))
        await gateway.handle_order_message(order_message(client_order_id, "Filled", 100, cum_qty="0.1"))

        order = gateway.get_order(client_order_id)
        assert order.status == OrderStatus.PARTIALLY_FILLED
        assert order.filled_quantity == pytest.approx(0.05)

    @pytest.mark.asyncio
    async def test_full_limit_lifecycle(self, gateway):
        client_order_id = gateway.submit_order(OrderSpec(symbol="ETHUSDT", side="Buy", order_type="Limit",
                                                         quantity=1.0, price=2000.0))
        await gateway.flush()

        await gateway.handle_order_message(order_message(client_order_id, "New", 100))
        await gateway.handle_execution_message(execution_message(client_order_id, "0.4", "0.6", 200))
        await gateway.handle_execution_message(execution_message(client_order_id, "0.6", "0", 300))

        order = gateway.get_order(client_order_id)
        assert order.status == OrderStatus.FILLED
        assert order.filled_quantity == pytest.approx(1.0)
        assert gateway.statuses == [
            OrderStatus.SUBMITTED,
            OrderStatus.ACKNOWLEDGED,
            OrderStatus.PARTIALLY_FILLED,
            OrderStatus.FILLED,
        ]

    @pytest.mark.asyncio
    async def test_stream_event_before_rest_response(self, gateway, rest):
        release = asyncio.Event()

        async def slow_place_order(payload):
            await release.wait()
            return {"orderId": "1001"}

        rest.place_order.side_effect = slow_place_order
        client_order_id = gateway.submit_order(MARKET_BUY)
        await asyncio.sleep(0)

        await gateway.handle_order_message(order_message(client_order_id, "New", 100))
        release.set()
        await gateway.flush()

        order = gateway.get_order(client_order_id)
        assert order.status == OrderStatus.ACKNOWLEDGED
        assert order.order_id == "1001"
        assert gateway.statuses == [OrderStatus.SUBMITTED, OrderStatus.ACKNOWLEDGED]

    @pytest.mark.asyncio
    async def test_events_matched_by_exchange_order_id(self, gateway):
        client_order_id = gateway.submit_order(MARKET_BUY)
        await gateway.flush()

        await gateway.handle_order_message(order_message("", "Cancelled", 100, order_id="1001"))

        assert gateway.get_order(client_order_id).status == OrderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_stream_rejection_records_reason(self, gateway):
        client_order_id = gateway.submit_order(MARKET_BUY)
        await gateway.flush()

        await gateway.handle_order_message(
            order_message(client_order_id, "Rejected", 100, reject_reason="EC_NoImmediateQtyToFill"))

        order = gateway.get_order(client_order_id)
        assert order.status == OrderStatus.REJECTED
        assert order.reject_reason == "EC_NoImmediateQtyToFill"

    @pytest.mark.asyncio
    async def test_unknown_orders_ignored(self, gateway):
        await gateway.handle_order_message(order_message("someone-else", "Filled", 100, order_id="9"))
        await gateway.handle_execution_message(execution_message("someone-else", "1", "0", 100, order_id="9"))
        assert gateway.active_orders() == []

    @pytest.mark.asyncio
    async def test_failing_update_handler_does_not_block_transition(self, gateway):
        gateway.on_order_update(Mock(side_effect=RuntimeError("observer bug")))

        client_order_id = gateway.submit_order(MARKET_BUY)
        await gateway.flush()

        assert gateway.get_order(client_order_id).status == OrderStatus.SUBMITTED

    def test_transitions_never_leave_terminal_states(self):
        for status in (OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED):
            assert ALLOWED_TRANSITIONS[status] == frozenset()
        assert OrderStatus.ACKNOWLEDGED not in ALLOWED_TRANSITIONS[OrderStatus.PARTIALLY_FILLED]

    @pytest.mark.asyncio
    async def test_bind_stream_routes_private_topics(self, gateway):
        subscriptions = Mock()
        subscriptions.subscribe = AsyncMock()

        await gateway.bind_stream(subscriptions)

        keys = [call.args[0] for call in subscriptions.add_handler.call_args_list]
        assert keys == ["order", "execution"]
        subscriptions.subscribe.assert_awaited_once_with(["order", "execution"])


class TestCancelAndQuery:

    @pytest.mark.asyncio
    async def test_cancel_unknown_order(self, gateway):
        with pytest.raises(OrderNotFoundError):
            await gateway.cancel_order("does-not-exist")

    @pytest.mark.asyncio
    async def test_cancel_terminal_order(self, gateway):
        client_order_id = gateway.submit_order(MARKET_BUY)
        await gateway.flush()
        await gateway.handle_order_message(order_message(client_order_id, "Filled", 100, cum_qty="0.1"))

        with pytest.raises(OrderNotFoundError):
            await gateway.cancel_order(client_order_id)

    @pytest.mark.asyncio
    async def test_cancel_sends_request_and_waits_for_stream(self, gateway, rest):
        client_order_id = gateway.submit_order(OrderSpec(symbol="ETHUSDT", side="Buy", order_type="Limit",
                                                         quantity=1.0, price=1500.0))
        await gateway.flush()

        await gateway.cancel_order(client_order_id)

        rest.cancel_order.assert_awaited_once_with(symbol="ETHUSDT", order_id="1001", order_link_id=None)
        assert gateway.get_order(client_order_id).status == OrderStatus.SUBMITTED

        await gateway.handle_order_message(order_message(client_order_id, "Cancelled", 100))
        assert gateway.get_order(client_order_id).status == OrderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_get_order_returns_copy(self, gateway):
        client_order_id = gateway.submit_order(MARKET_BUY)
        snapshot = gateway.get_order(client_order_id)
        snapshot.status = OrderStatus.FILLED
        snapshot.filled_quantity = 99.0

        order = gateway.get_order(client_order_id)
        assert order.status == OrderStatus.PENDING
        assert order.filled_quantity == 0.0
        await gateway.flush()

    @pytest.mark.asyncio
    async def test_terminal_orders_evicted_after_retention(self, gateway, clock):
        client_order_id = gateway.submit_order(MARKET_BUY)
        await gateway.flush()
        await gateway.handle_order_message(order_message(client_order_id, "Filled", 100, cum_qty="0.1"))

        clock.advance(30)
        gateway.submit_order(MARKET_BUY)
        assert gateway.get_order(client_order_id).status == OrderStatus.FILLED

        clock.advance(31)
        gateway.submit_order(MARKET_BUY)
        with pytest.raises(OrderNotFoundError):
            gateway.get_order(client_order_id)
        await gateway.flush()

    @pytest.mark.asyncio
    async def test_evicted_ids_released(self, rest, clock):
        candidates = iter(["a", "a", "b", "a"])
        gateway = OrderGateway(rest, OrderGatewayConfig(retention_seconds=10.0), clock=clock,
                               id_factory=lambda: next(candidates))
        try:
            first = gateway.submit_order(MARKET_BUY)
            await gateway.flush()
            await gateway.handle_order_message(order_message(first, "Filled", 100, cum_qty="0.1"))
            assert gateway.submit_order(MARKET_BUY) == "b"

            clock.advance(11)
            assert gateway.submit_order(MARKET_BUY) == "a"
            await gateway.flush()
        finally:
            await gateway.close()

    @pytest.mark.asyncio
    async def test_active_orders_exclude_terminal(self, gateway):
        live = gateway.submit_order(MARKET_BUY)
        done = gateway.submit_order(MARKET_BUY)
        await gateway.flush()
        await gateway.handle_order_message(order_message(done, "Cancelled", 100, order_id="x"))

        assert [o.client_order_id for o in gateway.active_orders()] == [live]
