"""
Observability: log formatters and request correlation ids.
"""

from .context import get_request_id, new_request_id, request_scope
from .logging import PROMOTED_FIELDS, HumanFormatter, JSONFormatter, configure_logging
from .middleware import REQUEST_ID_HEADER, CorrelationIdMiddleware

__all__ = [
    "configure_logging",
    "JSONFormatter",
    "HumanFormatter",
    "PROMOTED_FIELDS",
    "get_request_id",
    "new_request_id",
    "request_scope",
    "CorrelationIdMiddleware",
    "REQUEST_ID_HEADER",
]
