"""
Order Service exception taxonomy and API error codes.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"


class OrderServiceError(Exception):
    """Base class for errors raised by the order service"""


class OrderNotFoundError(OrderServiceError, LookupError):
    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class OrderBuildError(OrderServiceError, ValueError):
    """A required order field was missing when building an order"""


class DocumentNotFoundError(OrderServiceError, LookupError):
    def __init__(self, table_name: str, key: Any):
        super().__init__(f"Document not found in {table_name}: {key}")
        self.table_name = table_name
        self.key = key


class ConditionalCheckFailedError(OrderServiceError):
    """A conditional write was rejected by the document store"""


class ConcurrentModificationError(ConditionalCheckFailedError):
    def __init__(self, key: Any, expected_version: int, actual_version: Any):
        super().__init__(
            f"Version conflict for {key}: expected {expected_version}, "
            f"found {actual_version}"
        )
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version


class InvalidContinuationTokenError(OrderServiceError, ValueError):
    """A continuation token could not be decoded"""


class InvalidRequestError(OrderServiceError, ValueError):
    """Request could not be parsed into the expected shape"""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class EventPublishError(OrderServiceError):
    """The event bus reported one or more failed entries"""

    def __init__(self, message: str, failed_entries: Sequence[Any] = ()):
        super().__init__(message)
        self.failed_entries = list(failed_entries)


class MessageDeliveryError(OrderServiceError):
    """The queue or notification transport rejected a message"""


class BatchProcessingError(OrderServiceError):
    def __init__(self, failed_message_ids: Sequence[str]):
        super().__init__(f"Failed to process {len(failed_message_ids)} messages")
        self.failed_message_ids = list(failed_message_ids)
