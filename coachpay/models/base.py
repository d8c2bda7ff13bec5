"""
Declarative base, shared column types and the timestamped id model.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, Numeric, func
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Rupee amounts to the paisa, and percentages such as 30.00 or 0.01
Money = Numeric(12, 2)
Percent = Numeric(5, 2)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """created_at set by the database, updated_at on every UPDATE."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class BaseModel(Base, TimestampMixin):
    """
    Integer id plus timestamps.

    Server defaults are fetched on INSERT so that rows can be read after a
    flush without a lazy load on the async session.
    """

    __abstract__ = True
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


def enum_column(enum_cls):
    """Enum column storing member values ("auto", "pan"), not names."""
    return SQLAlchemyEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
    )
