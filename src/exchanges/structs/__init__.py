from .common import Order, OrderSpec
from .enums import Side, OrderType, OrderStatus, TimeInForce, TERMINAL_STATUSES
from .types import OrderId, ClientOrderId, Topic

__all__ = [
    "Order",
    "OrderSpec",
    "Side",
    "OrderType",
    "OrderStatus",
    "TimeInForce",
    "TERMINAL_STATUSES",
    "OrderId",
    "ClientOrderId",
    "Topic",
]
