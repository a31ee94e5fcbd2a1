"""Dollar-cost averaging: a fixed-size order placed on a fixed interval."""

from typing import List, Optional

from msgspec import Struct

from exchanges.integrations.bybit.order_gateway import validate_order_spec
from exchanges.structs import ClientOrderId, OrderSpec, OrderType, Side
from infrastructure.logging import LoggerInterface, get_logger
from trading.scheduled_runner import ScheduledJob, ScheduledOrderRunner


class DcaPlan(Struct, frozen=True):
    """Recurring order parameters. Limit plans carry a fixed price."""
    symbol: str
    quantity: float
    interval_ms: int
    side: Side = Side.BUY
    order_type: OrderType = OrderType.MARKET
    price: Optional[float] = None

    def to_order_spec(self) -> OrderSpec:
        return OrderSpec(
            symbol=self.symbol,
            side=self.side,
            order_type=self.order_type,
            quantity=self.quantity,
            price=self.price,
        )


class DcaRun:
    """A running plan: the scheduled job plus the client order ids it produced."""

    def __init__(self, plan: DcaPlan, gateway, logger: LoggerInterface):
        self.plan = plan
        self.gateway = gateway
        self.logger = logger
        self.order_ids: List[ClientOrderId] = []
        self.job: Optional[ScheduledJob] = None

    def place_order(self) -> ClientOrderId:
        client_order_id = self.gateway.submit_order(self.plan.to_order_spec())
        self.order_ids.append(client_order_id)
        self.logger.info("DCA order submitted", symbol=self.plan.symbol, side=self.plan.side.name,
                         quantity=self.plan.quantity, correlation_id=client_order_id,
                         count=len(self.order_ids))
        return client_order_id

    def cancel(self) -> None:
        if self.job is not None:
            self.job.cancel()


def start_dca(
    runner: ScheduledOrderRunner,
    gateway,
    symbol: str,
    quantity: float,
    interval_ms: int,
    side: Side = Side.BUY,
    order_type: OrderType = OrderType.MARKET,
    price: Optional[float] = None,
    fire_immediately: bool = True,
    logger: Optional[LoggerInterface] = None,
) -> DcaRun:
    """Schedule a recurring order through gateway.

    The plan is validated once up front by building its order spec; an
    invalid plan raises InvalidOrderSpecError before anything is scheduled.
    """
    plan = DcaPlan(symbol=symbol, quantity=quantity, interval_ms=interval_ms,
                   side=side, order_type=order_type, price=price)
    validate_order_spec(plan.to_order_spec())

    run = DcaRun(plan, gateway, logger or get_logger('trading.dca'))
    run.job = runner.schedule(interval_ms, run.place_order, fire_immediately=fire_immediately)
    return run
