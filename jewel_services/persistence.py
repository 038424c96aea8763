"""
jewel_services.persistence -- SQLAlchemy-backed order store and message log.

Responsibility:
    ``SqlOrderStore`` is the persistence sink: it accepts a whole replaced
    Order and upserts its JSON document.  ``SqlMessageHistory`` keeps the
    outbound message log the autopilot spacing checks read from.

Architecture position:
    Services -- the only code that talks to storage.  Engines never see a
    session.

Invariants enforced:
    - Orders are stored whole; a save always overwrites the full document.
    - Timestamps read back from SQLite (which drops the offset) are
      re-attached to UTC.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from jewel_kernel.domain.codec import order_from_dict, order_to_dict
from jewel_kernel.domain.order import Order
from jewel_kernel.logging_config import get_logger
from jewel_kernel.models import MessageRecord, OrderRecord
from jewel_services.messaging import (
    MessageDirection,
    MessageLogEntry,
    MessageStatus,
    normalize_contact,
)

logger = get_logger("services.persistence")


def _aware(ts: datetime) -> datetime:
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=UTC)


class SqlOrderStore:
    """
    Persistence sink for orders.

    Contract:
        Receives a session factory via constructor injection; each call
        runs in its own short transaction.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def save(self, order: Order) -> None:
        """Insert or overwrite the stored document for ``order``."""
        session = self._session_factory()
        try:
            record = session.get(OrderRecord, order.id)
            document = order_to_dict(order)
            if record is None:
                record = OrderRecord(
                    id=order.id,
                    customer_contact=order.customer_contact,
                    status=order.status.value,
                    protection_status=order.payment_plan.protection_status.value,
                    document=document,
                )
                session.add(record)
            else:
                record.customer_contact = order.customer_contact
                record.status = order.status.value
                record.protection_status = order.payment_plan.protection_status.value
                record.document = document
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        logger.debug("order_saved", extra={"order_id": order.id, "status": order.status.value})

    def get(self, order_id: str) -> Order | None:
        session = self._session_factory()
        try:
            record = session.get(OrderRecord, order_id)
            return order_from_dict(record.document) if record is not None else None
        finally:
            session.close()

    def load_all(self) -> list[Order]:
        session = self._session_factory()
        try:
            records = session.execute(select(OrderRecord).order_by(OrderRecord.id)).scalars().all()
            orders = sorted((order_from_dict(r.document) for r in records), key=lambda o: o.created_at)
        finally:
            session.close()
        logger.info("orders_loaded", extra={"count": len(orders)})
        return orders


class SqlMessageHistory:
    """Message log stored in the ``message_log`` table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def record(self, entry: MessageLogEntry) -> None:
        session = self._session_factory()
        try:
            session.add(MessageRecord(
                order_id=entry.order_id,
                customer_name=entry.customer_name,
                customer_contact=entry.customer_contact,
                contact_key=entry.contact_key,
                direction=entry.direction.value,
                status=entry.status.value,
                kind=entry.kind,
                message=entry.message,
                sent_at=entry.timestamp,
            ))
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def outbound_for_order(self, order_id: str, contact: str | None = None) -> list[MessageLogEntry]:
        match = MessageRecord.order_id == order_id
        if contact:
            match = or_(
                match,
                (MessageRecord.order_id.is_(None))
                & (MessageRecord.contact_key == normalize_contact(contact)),
            )
        stmt = (
            select(MessageRecord)
            .where(
                match,
                MessageRecord.direction == MessageDirection.OUTBOUND.value,
                MessageRecord.status == MessageStatus.SENT.value,
            )
            .order_by(MessageRecord.sent_at.desc(), MessageRecord.id.desc())
        )
        session = self._session_factory()
        try:
            rows = session.execute(stmt).scalars().all()
            return [
                MessageLogEntry(
                    order_id=r.order_id,
                    customer_contact=r.customer_contact,
                    customer_name=r.customer_name,
                    message=r.message,
                    timestamp=_aware(r.sent_at),
                    direction=MessageDirection(r.direction),
                    status=MessageStatus(r.status),
                    kind=r.kind,
                )
                for r in rows
            ]
        finally:
            session.close()

    def last_outbound_at(self, order_id: str, contact: str | None = None) -> datetime | None:
        entries = self.outbound_for_order(order_id, contact)
        return entries[0].timestamp if entries else None
