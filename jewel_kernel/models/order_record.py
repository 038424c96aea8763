"""
OrderRecord -- whole-order JSON document storage.

Orders are replaced wholesale by the application layer, so the store keeps
the full encoded aggregate in one JSON column and lifts a few fields into
indexed columns for lookups.
"""

from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from jewel_kernel.db.base import TimestampedBase


class OrderRecord(TimestampedBase):
    """Persisted order document."""

    __tablename__ = "orders"
    __table_args__ = (
        Index("idx_orders_contact", "customer_contact"),
        Index("idx_orders_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    customer_contact: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    protection_status: Mapped[str] = mapped_column(String(16), nullable=False)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<OrderRecord {self.id} {self.status}/{self.protection_status}>"
