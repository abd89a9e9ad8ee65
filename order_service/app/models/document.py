from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import OrderServiceBase


class DocumentRecord(OrderServiceBase):
    """
    One JSON document of a logical table in the document store.

    Documents are addressed by ``(table_name, document_key)``; the body holds
    the entity exactly as the repository serialised it.
    """

    __tablename__ = "documents"

    table_name: Mapped[str] = mapped_column(String(100), primary_key=True)
    document_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    body: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    written_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

