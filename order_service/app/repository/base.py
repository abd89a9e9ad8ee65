"""
Storage-agnostic repository contract.

Services depend on ``Repository``; the document-store adapter in
``document_repository`` is one implementation of it.
"""

import base64
import binascii
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Mapping, Optional, TypeVar

from ..core.exceptions import InvalidContinuationTokenError

T = TypeVar("T")
ID = TypeVar("ID")


@dataclass(frozen=True)
class QueryParams:
    limit: Optional[int] = None
    continuation_token: Optional[str] = None


@dataclass
class PaginatedResult(Generic[T]):
    items: List[T] = field(default_factory=list)
    continuation_token: Optional[str] = None
    count: int = 0


def encode_continuation_token(last_evaluated_key: Mapping[str, Any]) -> str:
    """Serialise a resume cursor into an opaque base64 token"""
    raw = json.dumps(dict(last_evaluated_key), separators=(",", ":"), sort_keys=True)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_continuation_token(token: str) -> Dict[str, Any]:
    try:
        cursor = json.loads(base64.b64decode(token.encode("ascii"), validate=True))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidContinuationTokenError(f"Invalid continuation token: {e}") from e
    if not isinstance(cursor, dict):
        raise InvalidContinuationTokenError("Invalid continuation token")
    return cursor


class Repository(ABC, Generic[T, ID]):
    @abstractmethod
    async def find_by_id(self, id: ID) -> Optional[T]:
        ...

    @abstractmethod
    async def find_all(self, params: Optional[QueryParams] = None) -> PaginatedResult[T]:
        ...

    @abstractmethod
    async def save(self, entity: T, if_not_exists: bool = False) -> T:
        ...

    @abstractmethod
    async def update(
        self, id: ID, patch: Any, expected_version: Optional[int] = None
    ) -> T:
        ...

    @abstractmethod
    async def delete(self, id: ID) -> None:
        ...

    @abstractmethod
    async def query_by_index(
        self,
        index_name: str,
        key_condition: str,
        condition_values: Mapping[str, Any],
        params: Optional[QueryParams] = None,
    ) -> PaginatedResult[T]:
        ...
