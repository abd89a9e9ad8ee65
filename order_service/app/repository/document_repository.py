"""
Generic repository over the JSON document store.

Each logical table lives in the ``documents`` table keyed by
``(table_name, document_key)``. Secondary indexes are equality lookups on one
document attribute and scans walk documents in primary-key order, resuming
from the last evaluated key carried in the continuation token.
"""

import re
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    FrozenSet,
    Generic,
    List,
    Mapping,
    Optional,
    Tuple,
    Type,
    TypeVar,
)

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.exceptions import (
    ConcurrentModificationError,
    ConditionalCheckFailedError,
    DocumentNotFoundError,
    InvalidContinuationTokenError,
)
from ..models.document import DocumentRecord
from ..utils.logging import setup_order_logging
from ..utils.retry import RetryPolicy, retry_with_policy
from .base import (
    PaginatedResult,
    QueryParams,
    Repository,
    decode_continuation_token,
    encode_continuation_token,
)

logger = setup_order_logging("order_document_repository")

ModelT = TypeVar("ModelT", bound=BaseModel)
R = TypeVar("R")

_KEY_CONDITION = re.compile(r"^\s*([A-Za-z_][\w]*)\s*=\s*(:[A-Za-z_]\w*)\s*$")

# Deterministic store outcomes; retrying them cannot change the result.
_NON_RETRYABLE = (ConditionalCheckFailedError, DocumentNotFoundError)


class DocumentRepository(Repository[ModelT, str], Generic[ModelT]):
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        table_name: str,
        model: Type[ModelT],
        primary_key: str,
        indexes: Optional[Mapping[str, str]] = None,
        updatable_attributes: Optional[FrozenSet[str]] = None,
        version_attribute: str = "version",
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.session_maker = session_maker
        self.table_name = table_name
        self.model = model
        self.primary_key = primary_key
        self.indexes = dict(indexes or {})
        self.updatable_attributes = updatable_attributes
        self.version_attribute = version_attribute
        self.retry_policy = retry_policy or RetryPolicy()

    # ------------------------------------------------------------------
    # Repository operations
    # ------------------------------------------------------------------

    async def find_by_id(self, id: str) -> Optional[ModelT]:
        log_data = self._log_data("find_by_id", id=id)
        logger.info("Finding item by ID", extra=log_data)

        async def get_item() -> Optional[Dict[str, Any]]:
            async with self.session_maker() as session:
                record = await session.get(DocumentRecord, (self.table_name, str(id)))
                return dict(record.body) if record is not None else None

        body = await self._with_retry(get_item, "Error finding item by ID", log_data)
        if body is None:
            logger.info("Item not found", extra=log_data)
            return None
        return self._to_entity(body)

    async def find_all(
        self, params: Optional[QueryParams] = None
    ) -> PaginatedResult[ModelT]:
        params = params or QueryParams()
        log_data = self._log_data("find_all", limit=params.limit)
        logger.info("Finding all items", extra=log_data)

        start_key = self._start_key(params.continuation_token)
        page = await self._with_retry(
            lambda: self._read_page(None, None, start_key, params.limit),
            "Error finding all items",
            log_data,
        )
        return self._to_result(page, params.limit, None)

    async def save(self, entity: ModelT, if_not_exists: bool = False) -> ModelT:
        body = self._to_document(entity)
        key = self._key_of(body)
        log_data = self._log_data("save", id=key, if_not_exists=if_not_exists)
        logger.info("Saving item", extra=log_data)

        async def put_item() -> None:
            async with self.session_maker() as session:
                try:
                    async with session.begin():
                        if if_not_exists:
                            existing = await session.get(
                                DocumentRecord, (self.table_name, key)
                            )
                            if existing is not None:
                                raise ConditionalCheckFailedError(
                                    f"Item already exists in {self.table_name}: {key}"
                                )
                            session.add(self._to_record(key, body))
                        else:
                            await session.merge(self._to_record(key, body))
                except IntegrityError as e:
                    raise ConditionalCheckFailedError(
                        f"Item already exists in {self.table_name}: {key}"
                    ) from e

        await self._with_retry(put_item, "Error saving item", log_data)
        return entity

    async def update(
        self, id: str, patch: Any, expected_version: Optional[int] = None
    ) -> ModelT:
        updates = self.translate_patch(patch)
        log_data = self._log_data(
            "update",
            id=id,
            attributes=sorted(updates),
            expected_version=expected_version,
        )
        logger.info("Updating item", extra=log_data)

        async def update_item() -> Dict[str, Any]:
            async with self.session_maker() as session:
                async with session.begin():
                    record = await session.get(
                        DocumentRecord,
                        (self.table_name, str(id)),
                        with_for_update=True,
                    )
                    if record is None:
                        raise DocumentNotFoundError(self.table_name, id)

                    current_version = record.body.get(self.version_attribute)
                    if (
                        expected_version is not None
                        and current_version != expected_version
                    ):
                        raise ConcurrentModificationError(
                            id, expected_version, current_version
                        )

                    record.body = {**record.body, **updates}
                    return dict(record.body)

        body = await self._with_retry(update_item, "Error updating item", log_data)
        return self._to_entity(body)

    async def delete(self, id: str) -> None:
        log_data = self._log_data("delete", id=id)
        logger.info("Deleting item", extra=log_data)

        async def delete_item() -> None:
            async with self.session_maker() as session:
                async with session.begin():
                    await session.execute(
                        delete(DocumentRecord).where(
                            DocumentRecord.table_name == self.table_name,
                            DocumentRecord.document_key == str(id),
                        )
                    )

        await self._with_retry(delete_item, "Error deleting item", log_data)

    async def query_by_index(
        self,
        index_name: str,
        key_condition: str,
        condition_values: Mapping[str, Any],
        params: Optional[QueryParams] = None,
    ) -> PaginatedResult[ModelT]:
        params = params or QueryParams()
        log_data = self._log_data(
            "query_by_index", index_name=index_name, key_condition=key_condition
        )
        logger.info("Querying by index", extra=log_data)

        attribute, value = self._parse_key_condition(
            index_name, key_condition, condition_values
        )
        start_key = self._start_key(params.continuation_token)
        page = await self._with_retry(
            lambda: self._read_page(attribute, value, start_key, params.limit),
            "Error querying by index",
            log_data,
        )
        return self._to_result(page, params.limit, attribute)

    # ------------------------------------------------------------------
    # Patch translation
    # ------------------------------------------------------------------

    def translate_patch(self, patch: Any) -> Dict[str, Any]:
        """Turn a patch into document attribute assignments"""
        if isinstance(patch, BaseModel):
            updates = patch.model_dump(mode="json", by_alias=True, exclude_unset=True)
        else:
            updates = dict(patch)

        if not updates:
            raise ValueError("Update requires at least one attribute")
        if self.primary_key in updates:
            raise ValueError(f"Primary key {self.primary_key} cannot be updated")
        if self.updatable_attributes is not None:
            unknown = set(updates) - self.updatable_attributes
            if unknown:
                raise ValueError(
                    f"Attributes not updatable on {self.table_name}: "
                    f"{', '.join(sorted(unknown))}"
                )
        return updates

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _with_retry(
        self,
        operation: Callable[[], Awaitable[R]],
        error_message: str,
        log_data: Dict[str, Any],
    ) -> R:
        try:
            return await retry_with_policy(
                operation, self.retry_policy, logger, non_retryable=_NON_RETRYABLE
            )
        except Exception as e:
            logger.error(
                error_message,
                extra={**log_data, "error": str(e), "error_type": type(e).__name__},
            )
            raise

    async def _read_page(
        self,
        attribute: Optional[str],
        value: Any,
        start_key: Optional[str],
        limit: Optional[int],
    ) -> List[Dict[str, Any]]:
        stmt = select(DocumentRecord.body).where(
            DocumentRecord.table_name == self.table_name
        )
        if attribute is not None:
            stmt = stmt.where(_attribute_equals(attribute, value))
        if start_key is not None:
            stmt = stmt.where(DocumentRecord.document_key > start_key)
        stmt = stmt.order_by(DocumentRecord.document_key)
        if limit is not None:
            # One extra row tells whether another page exists
            stmt = stmt.limit(limit + 1)

        async with self.session_maker() as session:
            result = await session.execute(stmt)
            return [dict(body) for body in result.scalars().all()]

    def _to_result(
        self,
        bodies: List[Dict[str, Any]],
        limit: Optional[int],
        index_attribute: Optional[str],
    ) -> PaginatedResult[ModelT]:
        token = None
        if limit is not None and len(bodies) > limit:
            bodies = bodies[:limit]
            last = bodies[-1]
            cursor = {self.primary_key: last[self.primary_key]}
            if index_attribute is not None:
                cursor[index_attribute] = last.get(index_attribute)
            token = encode_continuation_token(cursor)

        items = [self._to_entity(body) for body in bodies]
        return PaginatedResult(items=items, continuation_token=token, count=len(items))

    def _start_key(self, continuation_token: Optional[str]) -> Optional[str]:
        if continuation_token is None:
            return None
        cursor = decode_continuation_token(continuation_token)
        if self.primary_key not in cursor:
            raise InvalidContinuationTokenError(
                f"Continuation token does not carry {self.primary_key}"
            )
        return str(cursor[self.primary_key])

    def _parse_key_condition(
        self,
        index_name: str,
        key_condition: str,
        condition_values: Mapping[str, Any],
    ) -> Tuple[str, Any]:
        if index_name not in self.indexes:
            raise ValueError(f"Unknown index {index_name} on {self.table_name}")

        match = _KEY_CONDITION.match(key_condition)
        if match is None:
            raise ValueError(f"Unsupported key condition: {key_condition}")

        attribute, placeholder = match.groups()
        if attribute != self.indexes[index_name]:
            raise ValueError(
                f"Index {index_name} is keyed on {self.indexes[index_name]}, "
                f"not {attribute}"
            )
        if placeholder not in condition_values:
            raise ValueError(f"No value bound for {placeholder}")
        return attribute, condition_values[placeholder]

    def _key_of(self, body: Mapping[str, Any]) -> str:
        key = body.get(self.primary_key)
        if key in (None, ""):
            raise ValueError(f"Item is missing primary key {self.primary_key}")
        return str(key)

    def _to_record(self, key: str, body: Dict[str, Any]) -> DocumentRecord:
        return DocumentRecord(table_name=self.table_name, document_key=key, body=body)

    def _to_document(self, entity: ModelT) -> Dict[str, Any]:
        return entity.model_dump(mode="json", by_alias=True, exclude_none=True)

    def _to_entity(self, body: Mapping[str, Any]) -> ModelT:
        return self.model.model_validate(body)

    def _log_data(self, operation: str, **fields: Any) -> Dict[str, Any]:
        return {"table_name": self.table_name, "operation": operation, **fields}


def _attribute_equals(attribute: str, value: Any):
    element = DocumentRecord.body[attribute]
    if isinstance(value, bool):
        return element.as_boolean() == value
    if isinstance(value, int):
        return element.as_integer() == value
    if isinstance(value, float):
        return element.as_float() == value
    return element.as_string() == str(value)
