"""
Module: jewel_kernel.db.base
Responsibility: Declarative base for the SQLAlchemy ORM records that back
    the persistence sink.  Provides the type annotation map so every model
    gets consistent column types.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel DB layer.  MUST NOT import from services or engines.

Invariants enforced:
    - Decimal maps to Numeric(18, 4); money columns are whole rupees and use
      BigInteger.
    - datetime maps to DateTime(timezone=True) -- always timezone-aware.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all jewel kernel records."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 4),
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }


class TimestampedBase(Base):
    """Abstract base adding created_at / updated_at audit columns."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
