"""
Unit tests for the document store repositories, run against in-memory SQLite.
"""

from datetime import datetime, timezone
from typing import Optional
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import BaseModel

from order_service.app.core.exceptions import (
    ConcurrentModificationError,
    ConditionalCheckFailedError,
    DocumentNotFoundError,
    InvalidContinuationTokenError,
)
from order_service.app.models.order import (
    Address,
    OrderBuilder,
    OrderItem,
    OrderPatch,
    OrderStatus,
)
from order_service.app.repository.base import (
    QueryParams,
    decode_continuation_token,
    encode_continuation_token,
)
from order_service.app.repository.document_repository import DocumentRepository
from order_service.app.repository.order_repository import CUSTOMER_ID_INDEX
from order_service.app.utils.retry import RetryPolicy


class Widget(BaseModel):
    widgetId: str
    owner: str
    size: int = 1
    version: int = 1
    note: Optional[str] = None


def build_order(order_id: str, customer_id: str = "customer-123"):
    return (
        OrderBuilder()
        .with_order_id(order_id)
        .with_customer_id(customer_id)
        .with_customer_email("test@example.com")
        .with_items([OrderItem(product_id="p-1", name="Widget", quantity=1, price=10)])
        .with_shipping_address(
            Address(street="1 Main St", city="Boston", state="MA", zip_code="02101")
        )
        .build()
    )


class TestContinuationTokens:
    def test_token_round_trip(self):
        token = encode_continuation_token({"orderId": "o-1", "customerId": "c-1"})

        assert decode_continuation_token(token) == {
            "orderId": "o-1",
            "customerId": "c-1",
        }

    @pytest.mark.parametrize("token", ["not base64!", "WzEsMl0=", "e30"])
    def test_malformed_tokens(self, token):
        # "WzEsMl0=" is a JSON list, "e30" is unpadded
        with pytest.raises(InvalidContinuationTokenError):
            decode_continuation_token(token)


class TestDocumentRepository:
    @pytest.fixture
    def repository(self, database_manager, fast_retry_policy):
        return DocumentRepository(
            database_manager.async_session_maker,
            table_name="Widgets",
            model=Widget,
            primary_key="widgetId",
            indexes={"OwnerIndex": "owner"},
            retry_policy=fast_retry_policy,
        )

    @pytest.mark.asyncio
    async def test_save_and_find(self, repository):
        await repository.save(Widget(widgetId="w-1", owner="alice", size=3))

        found = await repository.find_by_id("w-1")

        assert found == Widget(widgetId="w-1", owner="alice", size=3)

    @pytest.mark.asyncio
    async def test_missing_item_is_none(self, repository):
        assert await repository.find_by_id("absent") is None

    @pytest.mark.asyncio
    async def test_save_overwrites_by_default(self, repository):
        await repository.save(Widget(widgetId="w-1", owner="alice"))
        await repository.save(Widget(widgetId="w-1", owner="bob"))

        assert (await repository.find_by_id("w-1")).owner == "bob"

    @pytest.mark.asyncio
    async def test_conditional_save_rejects_existing_key(self, repository):
        await repository.save(Widget(widgetId="w-1", owner="alice"), if_not_exists=True)

        with pytest.raises(ConditionalCheckFailedError):
            await repository.save(
                Widget(widgetId="w-1", owner="bob"), if_not_exists=True
            )

        assert (await repository.find_by_id("w-1")).owner == "alice"

    @pytest.mark.asyncio
    async def test_tables_are_isolated(self, repository, database_manager):
        other = DocumentRepository(
            database_manager.async_session_maker,
            table_name="Gadgets",
            model=Widget,
            primary_key="widgetId",
        )
        await repository.save(Widget(widgetId="shared", owner="alice"))

        assert await other.find_by_id("shared") is None
        assert (await other.find_all()).count == 0

    @pytest.mark.asyncio
    async def test_update_merges_attributes(self, repository):
        await repository.save(Widget(widgetId="w-1", owner="alice", size=1))

        updated = await repository.update("w-1", {"size": 5, "note": "resized"})

        assert updated.size == 5
        assert updated.note == "resized"
        assert updated.owner == "alice"
        assert (await repository.find_by_id("w-1")).size == 5

    @pytest.mark.asyncio
    async def test_update_missing_item(self, repository):
        with pytest.raises(DocumentNotFoundError):
            await repository.update("absent", {"size": 2})

    @pytest.mark.asyncio
    async def test_update_with_stale_version_is_rejected(self, repository):
        await repository.save(Widget(widgetId="w-1", owner="alice", version=2))

        with pytest.raises(ConcurrentModificationError) as exc_info:
            await repository.update("w-1", {"size": 9, "version": 2}, expected_version=1)

        assert exc_info.value.actual_version == 2
        assert (await repository.find_by_id("w-1")).size == 1

    @pytest.mark.asyncio
    async def test_update_with_current_version(self, repository):
        await repository.save(Widget(widgetId="w-1", owner="alice", version=2))

        updated = await repository.update(
            "w-1", {"size": 9, "version": 3}, expected_version=2
        )

        assert updated.version == 3

    @pytest.mark.parametrize(
        "patch_value, message",
        [
            ({}, "at least one attribute"),
            ({"widgetId": "w-2"}, "Primary key"),
        ],
    )
    def test_invalid_patches(self, repository, patch_value, message):
        with pytest.raises(ValueError, match=message):
            repository.translate_patch(patch_value)

    @pytest.mark.asyncio
    async def test_delete(self, repository):
        await repository.save(Widget(widgetId="w-1", owner="alice"))

        await repository.delete("w-1")
        await repository.delete("w-1")

        assert await repository.find_by_id("w-1") is None

    @pytest.mark.asyncio
    async def test_find_all_paginates_in_key_order(self, repository):
        for key in ["w-3", "w-1", "w-5", "w-2", "w-4"]:
            await repository.save(Widget(widgetId=key, owner="alice"))

        first = await repository.find_all(QueryParams(limit=2))
        second = await repository.find_all(
            QueryParams(limit=2, continuation_token=first.continuation_token)
        )
        third = await repository.find_all(
            QueryParams(limit=2, continuation_token=second.continuation_token)
        )

        assert [w.widgetId for w in first.items] == ["w-1", "w-2"]
        assert [w.widgetId for w in second.items] == ["w-3", "w-4"]
        assert [w.widgetId for w in third.items] == ["w-5"]
        assert third.continuation_token is None
        assert decode_continuation_token(first.continuation_token) == {
            "widgetId": "w-2"
        }

    @pytest.mark.asyncio
    async def test_exact_page_has_no_token(self, repository):
        for key in ["w-1", "w-2"]:
            await repository.save(Widget(widgetId=key, owner="alice"))

        page = await repository.find_all(QueryParams(limit=2))

        assert page.count == 2
        assert page.continuation_token is None

    @pytest.mark.asyncio
    async def test_find_all_without_limit_returns_everything(self, repository):
        for index in range(3):
            await repository.save(Widget(widgetId=f"w-{index}", owner="alice"))

        page = await repository.find_all()

        assert page.count == 3
        assert page.continuation_token is None

    @pytest.mark.asyncio
    async def test_query_by_index(self, repository):
        await repository.save(Widget(widgetId="w-1", owner="alice"))
        await repository.save(Widget(widgetId="w-2", owner="bob"))
        await repository.save(Widget(widgetId="w-3", owner="alice"))

        result = await repository.query_by_index(
            "OwnerIndex", "owner = :owner", {":owner": "alice"}, QueryParams(limit=1)
        )

        assert [w.widgetId for w in result.items] == ["w-1"]
        assert decode_continuation_token(result.continuation_token) == {
            "widgetId": "w-1",
            "owner": "alice",
        }

        rest = await repository.query_by_index(
            "OwnerIndex",
            "owner = :owner",
            {":owner": "alice"},
            QueryParams(limit=1, continuation_token=result.continuation_token),
        )
        assert [w.widgetId for w in rest.items] == ["w-3"]
        assert rest.continuation_token is None

    @pytest.mark.asyncio
    async def test_query_by_integer_attribute(self, database_manager):
        repository = DocumentRepository(
            database_manager.async_session_maker,
            table_name="Widgets",
            model=Widget,
            primary_key="widgetId",
            indexes={"SizeIndex": "size"},
        )
        await repository.save(Widget(widgetId="w-1", owner="alice", size=2))
        await repository.save(Widget(widgetId="w-2", owner="alice", size=3))

        result = await repository.query_by_index("SizeIndex", "size = :s", {":s": 3})

        assert [w.widgetId for w in result.items] == ["w-2"]

    @pytest.mark.parametrize(
        "index_name, condition, values",
        [
            ("MissingIndex", "owner = :owner", {":owner": "alice"}),
            ("OwnerIndex", "size = :owner", {":owner": "alice"}),
            ("OwnerIndex", "owner > :owner", {":owner": "alice"}),
            ("OwnerIndex", "owner = :owner", {":other": "alice"}),
        ],
    )
    @pytest.mark.asyncio
    async def test_rejected_key_conditions(
        self, repository, index_name, condition, values
    ):
        with pytest.raises(ValueError):
            await repository.query_by_index(index_name, condition, values)

    @pytest.mark.asyncio
    async def test_token_without_primary_key_is_rejected(self, repository):
        token = encode_continuation_token({"owner": "alice"})

        with pytest.raises(InvalidContinuationTokenError):
            await repository.find_all(QueryParams(limit=1, continuation_token=token))

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, repository):
        policy = RetryPolicy(max_retries=2, initial_delay_ms=1)
        repository.retry_policy = policy
        failing = AsyncMock(
            side_effect=[RuntimeError("flaky"), [{"widgetId": "w-1", "owner": "a"}]]
        )

        with patch.object(repository, "_read_page", failing):
            page = await repository.find_all(QueryParams(limit=5))

        assert failing.await_count == 2
        assert page.items[0].widgetId == "w-1"

    @pytest.mark.asyncio
    async def test_conditional_failures_are_not_retried(self, repository):
        await repository.save(Widget(widgetId="w-1", owner="alice"))

        with patch(
            "order_service.app.utils.retry.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            with pytest.raises(ConditionalCheckFailedError):
                await repository.save(
                    Widget(widgetId="w-1", owner="bob"), if_not_exists=True
                )

        sleep.assert_not_awaited()


class TestOrderRepository:
    @pytest.mark.asyncio
    async def test_round_trip(self, order_repository):
        order = build_order("order-1")

        await order_repository.save(order, if_not_exists=True)

        assert await order_repository.find_by_id("order-1") == order

    @pytest.mark.asyncio
    async def test_patch_translation_uses_supplied_fields_only(self, order_repository):
        patch_value = OrderPatch(
            updated_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
            version=2,
            status=OrderStatus.SHIPPED,
        )

        updates = order_repository.translate_patch(patch_value)

        assert set(updates) == {"updatedAt", "version", "status"}
        assert updates["status"] == "SHIPPED"

    def test_unknown_attributes_are_rejected(self, order_repository):
        with pytest.raises(ValueError, match="not updatable"):
            order_repository.translate_patch({"customerId": "someone-else"})

    @pytest.mark.asyncio
    async def test_update_applies_patch(self, order_repository):
        order = build_order("order-1")
        await order_repository.save(order)
        patch_value = OrderPatch(
            updated_at=datetime.now(timezone.utc),
            version=2,
            status=OrderStatus.PROCESSING,
        )

        updated = await order_repository.update(
            "order-1", patch_value, expected_version=1
        )

        assert updated.version == 2
        assert updated.status == OrderStatus.PROCESSING
        assert updated.items == order.items

    @pytest.mark.asyncio
    async def test_query_customer_index(self, order_repository):
        await order_repository.save(build_order("order-1", "customer-a"))
        await order_repository.save(build_order("order-2", "customer-b"))
        await order_repository.save(build_order("order-3", "customer-a"))

        result = await order_repository.query_by_index(
            CUSTOMER_ID_INDEX, "customerId = :customerId", {":customerId": "customer-a"}
        )

        assert [o.order_id for o in result.items] == ["order-1", "order-3"]
