"""
Bybit Direct Utility Functions

Plain mapping functions between Bybit wire values and the unified enums.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

from exchanges.structs.enums import OrderStatus, OrderType, Side, TimeInForce

_BYBIT_ORDER_STATUS_MAP = {
    'New': OrderStatus.ACKNOWLEDGED,
    'Untriggered': OrderStatus.ACKNOWLEDGED,
    'Triggered': OrderStatus.ACKNOWLEDGED,
    'PartiallyFilled': OrderStatus.PARTIALLY_FILLED,
    'Filled': OrderStatus.FILLED,
    'Cancelled': OrderStatus.CANCELLED,
    'PartiallyFilledCanceled': OrderStatus.CANCELLED,
    'Deactivated': OrderStatus.CANCELLED,
    'Rejected': OrderStatus.REJECTED,
}

_BYBIT_SIDE_MAP = {
    'buy': Side.BUY,
    'sell': Side.SELL,
}

_BYBIT_ORDER_TYPE_MAP = {
    'market': OrderType.MARKET,
    'limit': OrderType.LIMIT,
}

_UNIFIED_TO_BYBIT_TIF = {
    TimeInForce.GTC: 'GTC',
    TimeInForce.IOC: 'IOC',
    TimeInForce.FOK: 'FOK',
}


def to_order_status(bybit_status: str) -> Optional[OrderStatus]:
    """None for statuses with no local meaning."""
    return _BYBIT_ORDER_STATUS_MAP.get(bybit_status)


def to_side(value) -> Optional[Side]:
    if isinstance(value, Side):
        return value
    if isinstance(value, str):
        return _BYBIT_SIDE_MAP.get(value.lower())
    return None


def from_side(side: Side) -> str:
    return 'Buy' if side == Side.BUY else 'Sell'


def to_order_type(value) -> Optional[OrderType]:
    if isinstance(value, OrderType):
        return value
    if isinstance(value, str):
        return _BYBIT_ORDER_TYPE_MAP.get(value.lower())
    return None


def from_order_type(order_type: OrderType) -> str:
    return 'Market' if order_type == OrderType.MARKET else 'Limit'


def from_time_in_force(tif: TimeInForce) -> str:
    return _UNIFIED_TO_BYBIT_TIF.get(tif, 'GTC')


def format_decimal(value: float) -> str:
    """Plain decimal string without exponent, e.g. 0.1 -> '0.1', 1e-05 -> '0.00001'."""
    text = format(Decimal(str(value)).normalize(), 'f')
    return text if text else "0"


def parse_float(value) -> Optional[float]:
    if value in (None, ''):
        return None
    try:
        return float(Decimal(str(value)))
    except (InvalidOperation, ValueError):
        return None


def parse_int(value) -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
