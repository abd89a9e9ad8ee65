from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.order import Order, OrderPatch
from ..utils.retry import RetryPolicy
from .document_repository import DocumentRepository

CUSTOMER_ID_INDEX = "CustomerIdIndex"

# OrderPatch field -> stored document attribute
ORDER_PATCH_ATTRIBUTES: Dict[str, str] = {
    "updated_at": "updatedAt",
    "version": "version",
    "items": "items",
    "total_amount": "totalAmount",
    "status": "status",
    "shipping_address": "shippingAddress",
}


class OrderRepository(DocumentRepository[Order]):
    """Orders keyed by ``orderId`` with a customer secondary index"""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        table_name: str = "Orders",
        customer_index_name: str = CUSTOMER_ID_INDEX,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        super().__init__(
            session_maker,
            table_name=table_name,
            model=Order,
            primary_key="orderId",
            indexes={customer_index_name: "customerId"},
            updatable_attributes=frozenset(ORDER_PATCH_ATTRIBUTES.values()),
            retry_policy=retry_policy,
        )
        self.customer_index_name = customer_index_name

    def translate_patch(self, patch: Any) -> Dict[str, Any]:
        if not isinstance(patch, OrderPatch):
            return super().translate_patch(patch)

        document = patch.to_updates()
        updates = {}
        for field_name, attribute in ORDER_PATCH_ATTRIBUTES.items():
            if field_name in patch.model_fields_set:
                updates[attribute] = document[attribute]
        return super().translate_patch(updates)
