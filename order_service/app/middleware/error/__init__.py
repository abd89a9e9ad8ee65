"""
Error middleware for Order Service.
"""

from .error_handler import (
    ErrorBoundaryMiddleware,
    OrderServiceErrorHandler,
    map_exception,
    setup_order_error_handling,
)

__all__ = [
    "ErrorBoundaryMiddleware",
    "OrderServiceErrorHandler",
    "map_exception",
    "setup_order_error_handling",
]
