from typing import Any, List, Optional

import msgspec


class BybitResponse(msgspec.Struct):
    """Envelope of every v5 REST response."""
    retCode: int
    retMsg: str = ""
    result: Any = None
    retExtInfo: Any = None
    time: Optional[int] = None


class BybitOrderEvent(msgspec.Struct):
    """One entry of an `order` topic push. Numeric fields arrive as strings."""
    orderId: str = ""
    orderLinkId: str = ""
    symbol: str = ""
    orderStatus: str = ""
    cumExecQty: str = "0"
    avgPrice: str = ""
    rejectReason: str = ""
    updatedTime: str = "0"


class BybitExecutionEvent(msgspec.Struct):
    """One entry of an `execution` topic push."""
    orderId: str = ""
    orderLinkId: str = ""
    symbol: str = ""
    execId: str = ""
    execQty: str = "0"
    execPrice: str = ""
    leavesQty: str = ""
    execTime: str = "0"


class BybitStreamMessage(msgspec.Struct):
    """Private stream data frame."""
    topic: str
    data: List[Any] = []
    id: str = ""
    creationTime: Optional[int] = None
