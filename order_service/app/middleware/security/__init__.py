"""
Security middleware for Order Service.
"""

from .cors_middleware import CorsHeadersMiddleware, cors_headers
from .validation_middleware import RequestValidationMiddleware, read_json_body

__all__ = [
    "CorsHeadersMiddleware",
    "cors_headers",
    "RequestValidationMiddleware",
    "read_json_body",
]
