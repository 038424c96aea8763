"""
jewel_services.autopilot_runner -- Executes one autopilot cycle.

Responsibility:
    Scan every open order, ask the pure ``decide`` engine what to do, commit
    the resulting order update through the order book, then hand any
    message to the transport and record it in message history.

Architecture position:
    Services -- orchestration over ``jewel_engines.autopilot``.  The batch
    scheduler calls ``run_cycle``; nothing here owns a timer.

Invariants enforced:
    - Cycles never overlap: a second ``run_cycle`` while one is running
      returns a skipped report immediately.
    - State first, message second: a lapse is committed before its notice
      is sent and is never rolled back by a send failure.
    - Each order is re-read from the book before it is decided, and a lapse
      is re-decided on the stored value inside ``OrderBook.update``.  A
      payment recorded mid-cycle is never overwritten and a lapse the
      payment cured is neither committed nor announced.
    - ``warning_count`` is incremented only after a confirmed send.
    - Only successful sends are written to message history, so spacing is
      always measured from the last message that actually went out.
    - Transport errors and per-order failures are logged and counted;
      they never escape ``run_cycle``.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from uuid import uuid4

from jewel_config.schema import ShopSettings
from jewel_engines.autopilot import (
    AutopilotAction,
    AutopilotDecision,
    OutboundMessage,
    decide,
    register_warning_sent,
)
from jewel_kernel.domain.clock import Clock, SystemClock
from jewel_kernel.domain.order import Order
from jewel_kernel.exceptions import MessageSendError
from jewel_kernel.logging_config import LogContext, get_logger
from jewel_services.activity import ActivityLog, ActivityType, ErrorSeverity
from jewel_services.messaging import (
    MessageHistory,
    MessageLogEntry,
    MessageTransport,
    SendResult,
)
from jewel_services.order_book import OrderBook

logger = get_logger("services.autopilot")


@dataclass
class CycleReport:
    """Counters for one autopilot cycle."""

    cycle_id: str
    started_at: datetime
    skipped: bool = False
    orders_scanned: int = 0
    warnings_sent: int = 0
    lapses: int = 0
    lapse_notices_sent: int = 0
    quotes_sent: int = 0
    send_failures: int = 0
    order_errors: int = 0

    @property
    def messages_sent(self) -> int:
        return self.warnings_sent + self.lapse_notices_sent + self.quotes_sent


class AutopilotRunner:
    """
    Runs autopilot cycles against the order book.

    Contract:
        Receives the order book, message history, transport, a settings
        provider and a clock via constructor injection.  The settings
        provider is called once per cycle so rate updates are picked up.
    """

    def __init__(
        self,
        book: OrderBook,
        history: MessageHistory,
        transport: MessageTransport,
        settings: Callable[[], ShopSettings],
        clock: Clock | None = None,
        activity: ActivityLog | None = None,
    ):
        self._book = book
        self._history = history
        self._transport = transport
        self._settings = settings
        self._clock = clock or SystemClock()
        self._activity = activity or ActivityLog(self._clock)
        self._cycle_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._cycle_lock.locked()

    def run_cycle(self) -> CycleReport:
        """Run one scan over all open orders.  Never raises."""
        report = CycleReport(cycle_id=uuid4().hex[:12], started_at=self._clock.now())
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("autopilot_cycle_skipped", extra={"reason": "cycle_in_progress"})
            return replace(report, skipped=True)

        try:
            with LogContext.bind(cycle_id=report.cycle_id):
                settings = self._settings()
                for order in self._book.open_orders():
                    report.orders_scanned += 1
                    try:
                        with LogContext.bind(order_id=order.id):
                            self._process(order.id, settings, report)
                    except Exception as exc:
                        report.order_errors += 1
                        logger.exception("autopilot_order_failed", extra={"order_id": order.id})
                        self._activity.log_error(
                            "autopilot", f"{order.id}: {exc}", ErrorSeverity.HIGH
                        )
                logger.info(
                    "autopilot_cycle_completed",
                    extra={
                        "orders_scanned": report.orders_scanned,
                        "warnings_sent": report.warnings_sent,
                        "lapses": report.lapses,
                        "quotes_sent": report.quotes_sent,
                        "send_failures": report.send_failures,
                        "order_errors": report.order_errors,
                    },
                )
        finally:
            self._cycle_lock.release()
        return report

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _process(self, order_id: str, settings: ShopSettings, report: CycleReport) -> None:
        # Re-read: earlier sends in this cycle may have let counter writes land.
        order = self._book.find(order_id)
        if order is None or not order.is_open:
            return
        now = self._clock.now()
        last_contact = self._history.last_outbound_at(order.id, order.customer_contact)
        decision = decide(order, last_contact, settings, now)
        if not decision.has_effect:
            return

        if decision.updated_order is not None:
            decision = self._commit(order_id, last_contact, settings, now)
            if decision is None:
                return
            if decision.action == AutopilotAction.LAPSE:
                report.lapses += 1

        if decision.message is None:
            return
        if not self._send(decision.message):
            report.send_failures += 1
            return

        if decision.action == AutopilotAction.GRACE_WARNING:
            milestone_id = decision.message.milestone_id
            self._book.update(order_id, lambda o: register_warning_sent(o, milestone_id))
            report.warnings_sent += 1
        elif decision.action == AutopilotAction.LAPSE:
            report.lapse_notices_sent += 1
        elif decision.action == AutopilotAction.DYNAMIC_QUOTE:
            report.quotes_sent += 1

    def _commit(
        self,
        order_id: str,
        last_contact: datetime | None,
        settings: ShopSettings,
        now: datetime,
    ) -> AutopilotDecision | None:
        """
        Decide again on the stored order inside the book's update and keep
        the result.  Returns None when the current order no longer calls for
        a state change, so nothing is committed and nothing is sent.
        """
        committed: list[AutopilotDecision] = []

        def apply(current: Order) -> Order:
            if not current.is_open:
                return current
            fresh = decide(current, last_contact, settings, now)
            if fresh.updated_order is None:
                return current
            committed.append(fresh)
            return fresh.updated_order

        self._book.update(order_id, apply)
        if not committed:
            logger.info("autopilot_decision_superseded", extra={"order_id": order_id})
            return None

        decision = committed[0]
        if decision.action == AutopilotAction.LAPSE:
            snapshot = decision.updated_order.original_snapshot
            self._activity.log_activity(
                ActivityType.PROTECTION_LAPSED,
                f"Protection lapsed on {order_id}: {snapshot.reason if snapshot else ''}",
                order_id=order_id,
            )
        return decision

    def _send(self, message: OutboundMessage) -> bool:
        """Send through the transport; True only on confirmed delivery."""
        try:
            result: SendResult = self._transport.send(
                message.contact,
                message.text,
                message.customer_name,
                order_id=message.order_id,
                kind=message.kind.value,
            )
        except MessageSendError as exc:
            result = SendResult(success=False, error=exc.reason)
        except Exception:
            logger.exception(
                "autopilot_send_raised",
                extra={"order_id": message.order_id, "kind": message.kind.value},
            )
            self._activity.log_error("autopilot", f"send to {message.order_id} raised", ErrorSeverity.MEDIUM)
            return False

        if not result.success:
            logger.warning(
                "autopilot_send_failed",
                extra={"order_id": message.order_id, "kind": message.kind.value, "error": result.error},
            )
            self._activity.log_error(
                "autopilot",
                f"send to {message.order_id} failed: {result.error or 'unknown'}",
                ErrorSeverity.MEDIUM,
            )
            return False

        entry = result.log_entry or MessageLogEntry(
            order_id=message.order_id,
            customer_contact=message.contact,
            customer_name=message.customer_name,
            message=message.text,
            timestamp=self._clock.now(),
            kind=message.kind.value,
        )
        if entry.order_id is None:
            entry = replace(entry, order_id=message.order_id)
        self._history.record(entry)
        logger.info(
            "autopilot_message_sent",
            extra={"order_id": message.order_id, "kind": message.kind.value, "tone": message.tone},
        )
        return True
