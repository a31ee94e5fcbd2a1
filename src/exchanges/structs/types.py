from typing import NewType

OrderId = NewType("OrderId", str)
ClientOrderId = NewType("ClientOrderId", str)
Topic = NewType("Topic", str)
