from typing import Optional

from msgspec import Struct

from .enums import OrderStatus, OrderType, Side, TERMINAL_STATUSES
from .types import ClientOrderId, OrderId


class OrderSpec(Struct, frozen=True):
    """What the caller wants traded. Validated before an Order exists."""
    symbol: str
    side: Side
    order_type: OrderType
    quantity: float
    price: Optional[float] = None


class Order(Struct):
    """
    Locally tracked order.

    client_order_id never changes once assigned and is the correlation key
    between the REST submission and stream events. order_id is filled in
    once the exchange reports it.
    """
    client_order_id: ClientOrderId
    symbol: str
    side: Side
    order_type: OrderType
    quantity: float
    created_at: float
    last_updated_at: float
    price: Optional[float] = None
    status: OrderStatus = OrderStatus.PENDING
    order_id: Optional[OrderId] = None
    filled_quantity: float = 0.0
    average_price: Optional[float] = None
    reject_reason: Optional[str] = None
    last_event_time: Optional[int] = None

    @property
    def is_done(self) -> bool:
        """Check if order reached a terminal status."""
        return self.status in TERMINAL_STATUSES

    @property
    def remaining_quantity(self) -> float:
        return max(self.quantity - self.filled_quantity, 0.0)
