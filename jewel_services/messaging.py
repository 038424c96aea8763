"""
jewel_services.messaging -- Outbound message transport and message history.

Responsibility:
    Define the narrow transport interface the autopilot sends through,
    the log-entry shape every send produces, and an in-memory message
    history that answers "when did we last contact this order?".

Architecture position:
    Services -- adapters around the excluded messaging collaborator
    (WhatsApp/SMS gateway).  The core only needs success/failure and a
    log entry.

Invariants enforced:
    - History is keyed by order id.  ``normalize_contact`` (last 10 digits)
      is used only as a fallback for entries written without an order id.
    - ``outbound_for_order`` is sorted newest first.
    - Entries are append-only.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol, runtime_checkable

from jewel_kernel.domain.clock import Clock, SystemClock
from jewel_kernel.logging_config import get_logger

logger = get_logger("services.messaging")

_NON_DIGITS = re.compile(r"\D")


class MessageDirection(str, Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"


class MessageStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


def normalize_contact(contact: str) -> str:
    """Last 10 digits of a phone number, ignoring formatting and country code.

    >>> normalize_contact("+91 98450-12345")
    '9845012345'
    """
    return _NON_DIGITS.sub("", contact or "")[-10:]


@dataclass(frozen=True)
class MessageLogEntry:
    order_id: str | None
    customer_contact: str
    customer_name: str
    message: str
    timestamp: datetime
    direction: MessageDirection = MessageDirection.OUTBOUND
    status: MessageStatus = MessageStatus.SENT
    kind: str = ""

    @property
    def contact_key(self) -> str:
        return normalize_contact(self.customer_contact)


@dataclass(frozen=True)
class SendResult:
    success: bool
    log_entry: MessageLogEntry | None = None
    error: str | None = None


@runtime_checkable
class MessageTransport(Protocol):
    """Anything that can deliver a text to a customer contact.

    Gateways report a rejected delivery either as ``success=False`` or by
    raising ``MessageSendError``.
    """

    def send(
        self,
        to_contact: str,
        text: str,
        customer_name: str,
        order_id: str | None = None,
        kind: str = "",
    ) -> SendResult: ...


@runtime_checkable
class MessageHistory(Protocol):
    def record(self, entry: MessageLogEntry) -> None: ...

    def outbound_for_order(self, order_id: str, contact: str | None = None) -> list[MessageLogEntry]: ...

    def last_outbound_at(self, order_id: str, contact: str | None = None) -> datetime | None: ...


class InMemoryMessageHistory:
    """Thread-safe append-only message log held in memory."""

    def __init__(self, entries: list[MessageLogEntry] | None = None):
        self._entries: list[MessageLogEntry] = list(entries or [])
        self._lock = threading.Lock()

    def record(self, entry: MessageLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> list[MessageLogEntry]:
        with self._lock:
            return list(self._entries)

    def outbound_for_order(self, order_id: str, contact: str | None = None) -> list[MessageLogEntry]:
        """Outbound entries for ``order_id``, newest first.

        Entries with no order id match on the normalized contact instead.
        """
        key = normalize_contact(contact) if contact else None
        with self._lock:
            matches = [
                e for e in self._entries
                if e.direction == MessageDirection.OUTBOUND
                and e.status == MessageStatus.SENT
                and (
                    e.order_id == order_id
                    or (e.order_id is None and key is not None and e.contact_key == key)
                )
            ]
        return sorted(matches, key=lambda e: e.timestamp, reverse=True)

    def last_outbound_at(self, order_id: str, contact: str | None = None) -> datetime | None:
        entries = self.outbound_for_order(order_id, contact)
        return entries[0].timestamp if entries else None


class LoggingTransport:
    """
    Transport that writes each message to the structured log instead of a
    gateway.  Used for dry runs and as the default in development.

    ``fail_contacts`` lets callers simulate delivery failures for specific
    numbers.
    """

    def __init__(self, clock: Clock | None = None, fail_contacts: frozenset[str] = frozenset()):
        self._clock = clock or SystemClock()
        self._fail = frozenset(normalize_contact(c) for c in fail_contacts)
        self.sent: list[MessageLogEntry] = []

    def send(
        self,
        to_contact: str,
        text: str,
        customer_name: str,
        order_id: str | None = None,
        kind: str = "",
    ) -> SendResult:
        if normalize_contact(to_contact) in self._fail:
            logger.warning(
                "message_send_failed",
                extra={"order_id": order_id, "contact": to_contact, "kind": kind},
            )
            return SendResult(success=False, error="delivery rejected")

        entry = MessageLogEntry(
            order_id=order_id,
            customer_contact=to_contact,
            customer_name=customer_name,
            message=text,
            timestamp=self._clock.now(),
            kind=kind,
        )
        self.sent.append(entry)
        logger.info(
            "message_sent",
            extra={"order_id": order_id, "contact": to_contact, "kind": kind},
        )
        return SendResult(success=True, log_entry=entry)
