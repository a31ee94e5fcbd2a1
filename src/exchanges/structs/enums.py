from enum import IntEnum


class OrderStatus(IntEnum):
    """Order lifecycle status as tracked locally."""
    PENDING = 0
    SUBMITTED = 1
    ACKNOWLEDGED = 2
    PARTIALLY_FILLED = 3
    FILLED = 4
    CANCELLED = 5
    REJECTED = 6


TERMINAL_STATUSES = frozenset({OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED})


class OrderType(IntEnum):
    """Order type definitions."""
    LIMIT = 1
    MARKET = 2


class Side(IntEnum):
    """Order side."""
    BUY = 1
    SELL = 2


class TimeInForce(IntEnum):
    """Time in force for orders."""
    GTC = 1  # Good Till Cancelled
    IOC = 2  # Immediate or Cancel
    FOK = 3  # Fill or Kill
