"""
Bybit Order Gateway

Submits market and limit orders through the private REST client and
tracks each order's lifecycle from both the REST response and the
private stream's `order` and `execution` topics.

Every order gets a locally generated client order id (sent as
orderLinkId) that never changes and correlates REST responses with
stream events. Status transitions follow

    Pending -> Submitted -> Acknowledged -> PartiallyFilled -> Filled
    Submitted, Acknowledged or PartiallyFilled -> Cancelled
    Pending, Submitted or Acknowledged -> Rejected

and a terminal status (Filled, Cancelled, Rejected) is never overwritten.
All mutations of one order are serialized by a per-order lock.
"""

import asyncio
import math
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import msgspec

from config.structs import OrderGatewayConfig
from infrastructure.exceptions.exchange import (
    ExchangeError, ExchangeRejectedError, ExchangeRestError, InvalidOrderSpecError,
    NetworkError, OrderNotFoundError
)
from infrastructure.logging import LoggerInterface, get_exchange_logger
from exchanges.structs import ClientOrderId, Order, OrderId, OrderSpec, OrderStatus, OrderType, Side, TimeInForce
from exchanges.integrations.bybit.structs.exchange import BybitExecutionEvent, BybitOrderEvent
from exchanges.integrations.bybit.utils import (
    format_decimal, from_order_type, from_side, from_time_in_force, parse_float, parse_int,
    to_order_status, to_order_type, to_side
)
from utils.task_utils import TaskManager, invoke_handler

OrderUpdateHandler = Callable[[Order], Union[None, Awaitable[None]]]

ALLOWED_TRANSITIONS: Dict[OrderStatus, frozenset] = {
    OrderStatus.PENDING: frozenset({OrderStatus.SUBMITTED, OrderStatus.REJECTED}),
    OrderStatus.SUBMITTED: frozenset({
        OrderStatus.ACKNOWLEDGED, OrderStatus.PARTIALLY_FILLED, OrderStatus.FILLED,
        OrderStatus.CANCELLED, OrderStatus.REJECTED,
    }),
    OrderStatus.ACKNOWLEDGED: frozenset({
        OrderStatus.PARTIALLY_FILLED, OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED,
    }),
    OrderStatus.PARTIALLY_FILLED: frozenset({
        OrderStatus.PARTIALLY_FILLED, OrderStatus.FILLED, OrderStatus.CANCELLED,
    }),
    OrderStatus.FILLED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def validate_order_spec(spec: OrderSpec):
    """
    Check an order request locally and return its (side, order_type).

    Raises:
        InvalidOrderSpecError: naming the offending field
    """
    if not isinstance(spec.symbol, str) or not spec.symbol.strip():
        raise InvalidOrderSpecError("symbol must be a non-empty string", "symbol")

    side = to_side(spec.side)
    if side is None:
        raise InvalidOrderSpecError(f"side must be Buy or Sell, got {spec.side!r}", "side")

    order_type = to_order_type(spec.order_type)
    if order_type is None:
        raise InvalidOrderSpecError(f"order type must be Market or Limit, got {spec.order_type!r}",
                                    "order_type")

    if not _is_positive_number(spec.quantity):
        raise InvalidOrderSpecError(f"quantity must be > 0, got {spec.quantity!r}", "quantity")

    if order_type == OrderType.LIMIT:
        if spec.price is None:
            raise InvalidOrderSpecError("price is required for Limit orders", "price")
        if not _is_positive_number(spec.price):
            raise InvalidOrderSpecError(f"price must be > 0, got {spec.price!r}", "price")
    elif spec.price is not None:
        raise InvalidOrderSpecError("price must not be set for Market orders", "price")

    return side, order_type


class OrderGateway:
    """
    Order submission and lifecycle tracking.

    Args:
        rest_client: Object exposing async place_order(dict) and
            cancel_order(symbol, order_id=None, order_link_id=None)
        config: Category, retention window and retry delay
        logger: Injected logger
        clock: Wall clock in seconds for created/updated timestamps
        id_factory: Returns a candidate client order id; uuid4 hex by default
    """

    def __init__(
        self,
        rest_client,
        config: Optional[OrderGatewayConfig] = None,
        logger: Optional[LoggerInterface] = None,
        clock: Callable[[], float] = time.time,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self._rest = rest_client
        self.config = config or OrderGatewayConfig()
        self.logger = logger or get_exchange_logger('bybit', 'orders')
        self._clock = clock
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

        self._orders: Dict[ClientOrderId, Order] = {}
        self._locks: Dict[ClientOrderId, asyncio.Lock] = {}
        self._by_exchange_id: Dict[OrderId, ClientOrderId] = {}
        self._update_handlers: List[OrderUpdateHandler] = []
        self._tasks = TaskManager("order_gateway")

    def on_order_update(self, handler: OrderUpdateHandler) -> OrderUpdateHandler:
        """Observe every status transition. Handlers receive a snapshot."""
        self._update_handlers.append(handler)
        return handler

    # Submission

    def submit_order(self, spec: OrderSpec) -> ClientOrderId:
        """
        Validate the spec, start tracking a Pending order and send it.

        Must be called from a running event loop; the REST request runs in
        the background.

        Raises:
            InvalidOrderSpecError: The spec failed local validation. Nothing
                was tracked or sent.
        """
        side, order_type = validate_order_spec(spec)
        self._evict_expired()

        client_order_id = self._new_client_order_id()
        now = self._clock()
        order = Order(
            client_order_id=client_order_id,
            symbol=spec.symbol,
            side=side,
            order_type=order_type,
            quantity=float(spec.quantity),
            price=float(spec.price) if spec.price is not None else None,
            created_at=now,
            last_updated_at=now,
        )
        self._orders[client_order_id] = order
        self._locks[client_order_id] = asyncio.Lock()

        self.logger.audit("order_created", correlation_id=client_order_id, symbol=spec.symbol,
                          side=side.name, order_type=order_type.name, quantity=order.quantity,
                          price=order.price)

        task = self._tasks.create_task(self._submit(client_order_id, self._build_payload(order)),
                                       name=f"submit.{client_order_id}")
        task.add_done_callback(self._log_task_failure)
        return client_order_id

    def _new_client_order_id(self) -> ClientOrderId:
        while True:
            candidate = f"{self.config.id_prefix}{self._id_factory()}"
            # Unique among tracked orders
            if candidate not in self._orders:
                return ClientOrderId(candidate)
            self.logger.warning("Client order id collision, regenerating", client_order_id=candidate)

    def _build_payload(self, order: Order) -> Dict[str, Any]:
        tif = TimeInForce.GTC if order.order_type == OrderType.LIMIT else TimeInForce.IOC
        payload = {
            'category': self.config.category,
            'symbol': order.symbol,
            'side': from_side(order.side),
            'orderType': from_order_type(order.order_type),
            'qty': format_decimal(order.quantity),
            'timeInForce': from_time_in_force(tif),
            'orderLinkId': order.client_order_id,
        }
        if order.price is not None:
            payload['price'] = format_decimal(order.price)
        return payload

    async def _submit(self, client_order_id: ClientOrderId, payload: Dict[str, Any]) -> None:
        retried = False
        while True:
            try:
                result = await self._rest.place_order(payload)
            except NetworkError as e:
                if not retried:
                    retried = True
                    self.logger.warning("Order submission failed, retrying once",
                                        correlation_id=client_order_id, error=str(e))
                    # Same orderLinkId, so the exchange rejects a duplicate if the first attempt landed
                    await asyncio.sleep(self.config.retry_delay)
                    continue
                await self._reject(client_order_id, f"network error: {e.message}")
                return
            except ExchangeRejectedError as e:
                await self._reject(client_order_id, e.reason)
                return
            except ExchangeRestError as e:
                await self._reject(client_order_id, e.message)
                return
            except Exception as e:
                self.logger.error("Order submission failed unexpectedly",
                                  correlation_id=client_order_id, error=repr(e))
                await self._reject(client_order_id, f"submission failed: {e!r}")
                return

            await self._accept(client_order_id, result)
            return

    async def _accept(self, client_order_id: ClientOrderId, result: Any) -> None:
        lock = self._locks.get(client_order_id)
        if lock is None:
            return
        async with lock:
            order = self._orders.get(client_order_id)
            if order is None:
                return
            exchange_id = result.get('orderId') if isinstance(result, dict) else None
            self._link_exchange_id(order, exchange_id)
            await self._transition(order, OrderStatus.SUBMITTED, source="rest")

    async def _reject(self, client_order_id: ClientOrderId, reason: str) -> None:
        lock = self._locks.get(client_order_id)
        if lock is None:
            return
        async with lock:
            order = self._orders.get(client_order_id)
            if order is None:
                return
            if OrderStatus.REJECTED not in ALLOWED_TRANSITIONS[order.status]:
                self.logger.warning("REST failure after stream progress, keeping status",
                                    correlation_id=client_order_id, status=order.status.name, reason=reason)
                return
            order.reject_reason = reason
            await self._transition(order, OrderStatus.REJECTED, source="rest")

    # Cancellation and queries

    async def cancel_order(self, client_order_id: str) -> None:
        """
        Request cancellation. The Cancelled status arrives with the stream event.

        Raises:
            OrderNotFoundError: Unknown, evicted or already terminal order
            NetworkError, ExchangeRejectedError: The cancel request failed
        """
        order = self._orders.get(ClientOrderId(client_order_id))
        if order is None or order.is_done:
            raise OrderNotFoundError(client_order_id)

        await self._rest.cancel_order(
            symbol=order.symbol,
            order_id=order.order_id,
            order_link_id=None if order.order_id else order.client_order_id,
        )
        self.logger.audit("order_cancel_requested", correlation_id=client_order_id, symbol=order.symbol)

    def get_order(self, client_order_id: str) -> Order:
        """Return a copy of the tracked order."""
        order = self._orders.get(ClientOrderId(client_order_id))
        if order is None:
            raise OrderNotFoundError(client_order_id)
        return msgspec.structs.replace(order)

    def active_orders(self) -> List[Order]:
        return [msgspec.structs.replace(o) for o in self._orders.values() if not o.is_done]

    async def flush(self) -> None:
        """Wait for in-flight submissions to resolve."""
        await self._tasks.wait_all()

    async def close(self) -> None:
        await self._tasks.shutdown(logger=self.logger)

    # Stream events

    async def bind_stream(self, subscriptions) -> None:
        """Route the private `order` and `execution` topics into this gateway."""
        subscriptions.add_handler('order', self.handle_order_message)
        subscriptions.add_handler('execution', self.handle_execution_message)
        await subscriptions.subscribe(['order', 'execution'])

    async def handle_order_message(self, message: Dict[str, Any]) -> None:
        for item in message.get('data') or []:
            try:
                event = msgspec.convert(item, BybitOrderEvent)
            except msgspec.ValidationError as e:
                self.logger.warning("Malformed order event", error=str(e))
                continue
            await self._apply_order_event(event)

    async def handle_execution_message(self, message: Dict[str, Any]) -> None:
        for item in message.get('data') or []:
            try:
                event = msgspec.convert(item, BybitExecutionEvent)
            except msgspec.ValidationError as e:
                self.logger.warning("Malformed execution event", error=str(e))
                continue
            await self._apply_execution_event(event)

    async def _apply_order_event(self, event: BybitOrderEvent) -> None:
        status = to_order_status(event.orderStatus)
        if status is None:
            self.logger.warning("Unknown order status", status=event.orderStatus, order_id=event.orderId)
            return

        async with self._locked_order(event.orderId, event.orderLinkId) as order:
            if order is None:
                return
            event_time = parse_int(event.updatedTime) or 0
            if not self._prepare_event(order, event.orderId, event_time, status):
                return

            filled = parse_float(event.cumExecQty)
            if filled is not None:
                order.filled_quantity = max(order.filled_quantity, filled)
            average_price = parse_float(event.avgPrice)
            if average_price:
                order.average_price = average_price
            if status == OrderStatus.REJECTED:
                order.reject_reason = event.rejectReason or "rejected by exchange"

            order.last_event_time = event_time
            await self._transition(order, status, source="stream")

    async def _apply_execution_event(self, event: BybitExecutionEvent) -> None:
        leaves = parse_float(event.leavesQty)
        status = OrderStatus.FILLED if leaves == 0 else OrderStatus.PARTIALLY_FILLED

        async with self._locked_order(event.orderId, event.orderLinkId) as order:
            if order is None:
                return
            event_time = parse_int(event.execTime) or 0
            if not self._prepare_event(order, event.orderId, event_time, status):
                return

            if leaves is not None:
                order.filled_quantity = max(order.filled_quantity, order.quantity - leaves)
            else:
                order.filled_quantity += parse_float(event.execQty) or 0.0
            price = parse_float(event.execPrice)
            if price and order.average_price is None:
                order.average_price = price

            order.last_event_time = event_time
            await self._transition(order, status, source="stream")

    def _prepare_event(self, order: Order, exchange_id: str, event_time: int, status: OrderStatus) -> bool:
        """Common gate for stream events. Returns False when the event must be ignored."""
        if order.last_event_time is not None and event_time < order.last_event_time:
            self.logger.debug("Ignoring stale event", correlation_id=order.client_order_id,
                              event_time=event_time, last_event_time=order.last_event_time)
            return False
        self._link_exchange_id(order, exchange_id)
        if order.is_done:
            if status != order.status:
                self.logger.debug("Ignoring event for terminal order", correlation_id=order.client_order_id,
                                  status=order.status.name, event_status=status.name)
            return False
        if status == order.status and status != OrderStatus.PARTIALLY_FILLED:
            order.last_event_time = event_time
            return False
        return True

    def _locked_order(self, exchange_id: str, link_id: str) -> "_OrderLock":
        client_order_id = self._resolve(exchange_id, link_id)
        return _OrderLock(self, client_order_id)

    def _resolve(self, exchange_id: str, link_id: str) -> Optional[ClientOrderId]:
        if exchange_id and exchange_id in self._by_exchange_id:
            return self._by_exchange_id[OrderId(exchange_id)]
        if link_id and link_id in self._orders:
            return ClientOrderId(link_id)
        return None

    def _link_exchange_id(self, order: Order, exchange_id: Optional[str]) -> None:
        if exchange_id and order.order_id is None:
            order.order_id = OrderId(exchange_id)
            self._by_exchange_id[order.order_id] = order.client_order_id

    # Transitions

    async def _transition(self, order: Order, status: OrderStatus, source: str) -> bool:
        # A stream event can overtake the REST response; step through Submitted first
        if order.status == OrderStatus.PENDING and status not in ALLOWED_TRANSITIONS[OrderStatus.PENDING]:
            await self._transition(order, OrderStatus.SUBMITTED, source)

        if status not in ALLOWED_TRANSITIONS[order.status]:
            self.logger.debug("Ignoring transition", correlation_id=order.client_order_id,
                              status=order.status.name, requested=status.name, source=source)
            return False

        previous = order.status
        order.status = status
        order.last_updated_at = self._clock()

        self.logger.audit("order_status_changed", correlation_id=order.client_order_id,
                          symbol=order.symbol, previous=previous.name, status=status.name,
                          source=source, reason=order.reject_reason)

        snapshot = msgspec.structs.replace(order)
        for handler in list(self._update_handlers):
            try:
                await invoke_handler(handler, snapshot)
            except Exception as e:
                self.logger.error("Order update handler failed",
                                  correlation_id=order.client_order_id, error=repr(e))
        return True

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [
            cid for cid, order in self._orders.items()
            if order.is_done and now - order.last_updated_at >= self.config.retention_seconds
        ]
        for cid in expired:
            order = self._orders.pop(cid)
            self._locks.pop(cid, None)
            if order.order_id is not None:
                self._by_exchange_id.pop(order.order_id, None)
        if expired:
            self.logger.debug("Evicted terminal orders", count=len(expired))

    def _log_task_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("Order submission task crashed", task=task.get_name(), error=repr(error))


class _OrderLock:
    """Async context manager yielding the order under its lock, or None if untracked."""

    def __init__(self, gateway: OrderGateway, client_order_id: Optional[ClientOrderId]):
        self._gateway = gateway
        self._client_order_id = client_order_id
        self._lock: Optional[asyncio.Lock] = None

    async def __aenter__(self) -> Optional[Order]:
        if self._client_order_id is None:
            return None
        self._lock = self._gateway._locks.get(self._client_order_id)
        if self._lock is None:
            return None
        await self._lock.acquire()
        return self._gateway._orders.get(self._client_order_id)

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._lock is not None:
            self._lock.release()
