"""
HTTP Networking Utilities
"""

from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

import msgspec


def canonical_query(params: Optional[Mapping[str, Any]]) -> str:
    """URL-encoded query string with keys sorted ascending. None values are dropped."""
    if not params:
        return ""
    items = sorted((k, _stringify(v)) for k, v in params.items() if v is not None)
    return urlencode(items)


def canonical_body(json_data: Optional[Dict[str, Any]]) -> bytes:
    """JSON body with keys sorted, encoded once so the signed bytes are the sent bytes."""
    if json_data is None:
        return b""
    return msgspec.json.encode(json_data, order="sorted")


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
