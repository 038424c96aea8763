"""
MessageRecord -- outbound/inbound customer message log.

Rows name the order they concern; rows without one are matched by
contact.  Autopilot spacing checks read from here.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jewel_kernel.db.base import Base


class MessageRecord(Base):
    """One logged customer message."""

    __tablename__ = "message_log"
    __table_args__ = (
        Index("idx_message_log_order_ts", "order_id", "sent_at"),
        Index("idx_message_log_contact", "contact_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False)
    customer_contact: Mapped[str] = mapped_column(String(32), nullable=False)
    contact_key: Mapped[str] = mapped_column(String(10), nullable=False)
    direction: Mapped[str] = mapped_column(String(8), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
