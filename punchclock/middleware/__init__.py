"""
HTTP middleware

Applied outermost first: CORS, correlation IDs, clock headers, metrics,
error handling, request validation.
"""

from .correlation import CorrelationIdMiddleware, get_correlation_id
from .error_handler import ErrorHandlerMiddleware, store_error_handler
from .headers import ClockHeadersMiddleware
from .observability import MetricsMiddleware
from .validation import ValidationMiddleware

__all__ = [
    "CorrelationIdMiddleware",
    "get_correlation_id",
    "ErrorHandlerMiddleware",
    "store_error_handler",
    "ClockHeadersMiddleware",
    "MetricsMiddleware",
    "ValidationMiddleware",
]
