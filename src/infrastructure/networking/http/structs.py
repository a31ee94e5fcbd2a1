from enum import Enum


class HTTPMethod(Enum):
    """HTTP methods used by the REST transport."""
    GET = "GET"
    POST = "POST"
