from sqlalchemy.orm import DeclarativeBase


class OrderServiceBase(DeclarativeBase):
    """Base class for all Order Service database models."""

    pass
