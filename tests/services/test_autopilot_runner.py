"""
Tests for AutopilotRunner.

Covers:
- Warning spacing driven by message history across cycles
- Lapse committed before the notice and kept when the notice fails
- warning_count bumped only on confirmed delivery
- Post-lapse follow-up interval
- Overlapping cycles skipped
- Transport and per-order failures contained
- Counter writes that land mid-cycle are kept
- An accepted reprice is not lapsed again for the same installment
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from jewel_config.schema import ShopSettings
from jewel_engines.lifecycle import cancel_order
from jewel_engines.protection import lapse_order
from jewel_kernel.domain.clock import DeterministicClock
from jewel_kernel.domain.order import ProtectionStatus
from jewel_kernel.exceptions import MessageSendError
from jewel_services.activity import ActivityLog, ActivityType
from jewel_services.autopilot_runner import AutopilotRunner
from jewel_services.messaging import InMemoryMessageHistory, LoggingTransport, MessageLogEntry
from jewel_services.order_book import OrderBook
from jewel_services.order_service import OrderService

from tests.factories import make_plain_order

DUE = datetime(2024, 1, 1, tzinfo=UTC)
SETTINGS = ShopSettings(current_gold_rate_24k=Decimal("8000"))
CONTACT = "9845012345"


class RaisingTransport:
    def send(self, to_contact, text, customer_name, order_id=None, kind=""):
        raise ConnectionError("gateway unreachable")


class RejectingTransport:
    def send(self, to_contact, text, customer_name, order_id=None, kind=""):
        raise MessageSendError(to_contact, "number not on WhatsApp")


class BrokenHistory(InMemoryMessageHistory):
    """History whose lookup fails for one order."""

    def __init__(self, bad_order_id):
        super().__init__()
        self._bad = bad_order_id

    def last_outbound_at(self, order_id, contact=None):
        if order_id == self._bad:
            raise RuntimeError("history unavailable")
        return super().last_outbound_at(order_id, contact)


class PayingTransport(LoggingTransport):
    """Transport that lets a counter payment land while it sends."""

    def __init__(self, clock, on_send):
        super().__init__(clock)
        self._on_send = on_send

    def send(self, to_contact, text, customer_name, order_id=None, kind=""):
        self._on_send(order_id)
        return super().send(to_contact, text, customer_name, order_id=order_id, kind=kind)


class PayingHistory(InMemoryMessageHistory):
    """History whose lookup for one order races with a counter payment."""

    def __init__(self, order_id, pay):
        super().__init__()
        self._order_id = order_id
        self._pay = pay

    def last_outbound_at(self, order_id, contact=None):
        if order_id == self._order_id:
            self._pay()
        return super().last_outbound_at(order_id, contact)


def _sent_entry(order_id, ts):
    return MessageLogEntry(
        order_id=order_id,
        customer_contact=CONTACT,
        customer_name="Ravi Kumar",
        message="earlier message",
        timestamp=ts,
    )


class RunnerTestBase:
    def setup_method(self):
        self.clock = DeterministicClock(DUE + timedelta(hours=10))
        self.book = OrderBook()
        self.history = InMemoryMessageHistory()
        self.activity = ActivityLog(self.clock)
        self.order = self.book.add(make_plain_order([10000, 30000, 30000, 30000], order_id="A"))

    def runner(self, transport=None, history=None):
        return AutopilotRunner(
            self.book,
            history if history is not None else self.history,
            transport if transport is not None else LoggingTransport(self.clock),
            settings=lambda: SETTINGS,
            clock=self.clock,
            activity=self.activity,
        )


class TestGraceWarnings(RunnerTestBase):
    """Warnings inside the grace window."""

    def test_sends_and_records(self):
        transport = LoggingTransport(self.clock)
        report = self.runner(transport).run_cycle()

        assert report.warnings_sent == 1
        assert report.messages_sent == 1
        assert len(transport.sent) == 1
        assert self.history.last_outbound_at("A") == self.clock.now()
        assert self.book.get("A").payment_plan.milestones[0].warning_count == 1

    def test_spacing_read_from_history(self):
        runner = self.runner()
        runner.run_cycle()
        self.clock.advance(hours=1)

        second = runner.run_cycle()
        assert second.warnings_sent == 0

        self.clock.advance(hours=3)
        third = runner.run_cycle()
        assert third.warnings_sent == 1
        assert self.book.get("A").payment_plan.milestones[0].warning_count == 2

    def test_fresh_runner_respects_existing_history(self):
        """A restart does not resend: spacing comes from history, not runner state."""
        self.runner().run_cycle()

        report = self.runner().run_cycle()

        assert report.warnings_sent == 0

    def test_failed_send_does_not_count_warning(self):
        transport = LoggingTransport(self.clock, fail_contacts=frozenset({CONTACT}))
        report = self.runner(transport).run_cycle()

        assert report.warnings_sent == 0
        assert report.send_failures == 1
        assert self.book.get("A").payment_plan.milestones[0].warning_count == 0
        assert self.history.last_outbound_at("A") is None
        assert self.activity.errors[0].source == "autopilot"

    def test_transport_exception_contained(self):
        report = self.runner(RaisingTransport()).run_cycle()

        assert report.send_failures == 1
        assert report.order_errors == 0
        assert self.book.get("A").payment_plan.milestones[0].warning_count == 0

    def test_send_error_treated_as_failed_delivery(self):
        report = self.runner(RejectingTransport()).run_cycle()

        assert report.send_failures == 1
        assert self.history.last_outbound_at("A") is None
        assert "number not on WhatsApp" in self.activity.errors[0].message


class TestLapse(RunnerTestBase):
    """Grace expired."""

    def setup_method(self):
        super().setup_method()
        self.clock.set_time(DUE + timedelta(hours=30))

    def test_lapse_and_notice(self):
        transport = LoggingTransport(self.clock)
        report = self.runner(transport).run_cycle()
        order = self.book.get("A")

        assert report.lapses == 1
        assert report.lapse_notices_sent == 1
        assert order.payment_plan.protection_status == ProtectionStatus.LAPSED
        assert order.original_snapshot.original_total == 100000
        assert transport.sent[0].kind == "LAPSE"
        assert self.activity.activities[0].action_type == ActivityType.PROTECTION_LAPSED.value

    def test_lapse_kept_when_notice_fails(self):
        transport = LoggingTransport(self.clock, fail_contacts=frozenset({CONTACT}))
        report = self.runner(transport).run_cycle()

        assert report.lapses == 1
        assert report.lapse_notices_sent == 0
        assert report.send_failures == 1
        assert self.book.get("A").payment_plan.protection_status == ProtectionStatus.LAPSED

    def test_lapse_happens_once(self):
        runner = self.runner()
        runner.run_cycle()
        self.clock.advance(hours=1)

        report = runner.run_cycle()

        assert report.lapses == 0
        assert report.quotes_sent == 0


class TestDynamicQuote(RunnerTestBase):
    """Follow-ups on lapsed orders."""

    def setup_method(self):
        super().setup_method()
        now = DUE + timedelta(days=10)
        self.clock.set_time(now)
        self.book.replace(lapse_order(self.order, DUE + timedelta(hours=30)))

    def test_quote_after_interval(self):
        self.history.record(_sent_entry("A", self.clock.now() - timedelta(days=4)))
        transport = LoggingTransport(self.clock)

        report = self.runner(transport).run_cycle()

        assert report.quotes_sent == 1
        assert transport.sent[0].kind == "DYNAMIC_QUOTE"
        assert self.book.get("A").total_amount == 100000

    def test_no_quote_inside_interval(self):
        self.history.record(_sent_entry("A", self.clock.now() - timedelta(days=1)))

        report = self.runner().run_cycle()

        assert report.quotes_sent == 0
        assert report.messages_sent == 0


class TestConcurrentCounterWrites(RunnerTestBase):
    """Payments and reprices recorded while a cycle is running."""

    def setup_method(self):
        super().setup_method()
        self.clock.set_time(DUE + timedelta(hours=30))
        self.service = OrderService(self.book, SETTINGS, clock=self.clock, activity=self.activity)

    def test_payment_during_another_send_is_kept(self):
        self.book.add(make_plain_order([10000, 30000], order_id="C"))

        def pay_a(order_id):
            if order_id == "C":
                self.service.record_payment("A", 5000, "UPI")

        report = self.runner(PayingTransport(self.clock, pay_a)).run_cycle()
        order = self.book.get("A")

        assert report.lapses == 2
        assert order.total_paid == 5000
        assert order.payment_plan.protection_status == ProtectionStatus.LAPSED

    def test_payment_before_commit_is_kept(self):
        history = PayingHistory("A", lambda: self.service.record_payment("A", 5000, "UPI"))

        report = self.runner(history=history).run_cycle()
        order = self.book.get("A")

        assert report.lapses == 1
        assert order.total_paid == 5000
        assert order.payment_plan.protection_status == ProtectionStatus.LAPSED

    def test_curing_payment_before_commit_cancels_lapse(self):
        history = PayingHistory("A", lambda: self.service.record_payment("A", 10000, "CASH"))
        transport = LoggingTransport(self.clock)

        report = self.runner(transport, history).run_cycle()
        order = self.book.get("A")

        assert report.lapses == 0
        assert transport.sent == []
        assert order.total_paid == 10000
        assert order.payment_plan.protection_status == ProtectionStatus.ACTIVE

    def test_accepted_rate_not_lapsed_again(self):
        transport = LoggingTransport(self.clock)
        runner = self.runner(transport)
        runner.run_cycle()
        self.service.accept_new_rate("A")
        self.clock.advance(seconds=300)

        report = runner.run_cycle()
        order = self.book.get("A")

        assert report.lapses == 0
        assert order.payment_plan.protection_status == ProtectionStatus.ACTIVE
        assert [m.kind for m in transport.sent] == ["LAPSE"]

    def test_accepted_rate_lapses_after_new_grace_window(self):
        runner = self.runner()
        runner.run_cycle()
        accepted_at = self.clock.now()
        self.service.accept_new_rate("A")
        self.clock.set_time(accepted_at + timedelta(hours=SETTINGS.grace_period_hours))

        report = runner.run_cycle()

        assert report.lapses == 1
        assert self.book.get("A").payment_plan.protection_status == ProtectionStatus.LAPSED


class TestCycleGuards(RunnerTestBase):
    def test_overlapping_cycle_skipped(self):
        runner = self.runner()
        runner._cycle_lock.acquire()
        try:
            assert runner.is_running
            report = runner.run_cycle()
        finally:
            runner._cycle_lock.release()

        assert report.skipped
        assert report.orders_scanned == 0
        assert not runner.is_running

    def test_order_failure_does_not_stop_cycle(self):
        self.book.add(make_plain_order([10000, 30000], order_id="B"))
        runner = self.runner(history=BrokenHistory("A"))

        report = runner.run_cycle()

        assert report.orders_scanned == 2
        assert report.order_errors == 1
        assert report.warnings_sent == 1
        assert "history unavailable" in self.activity.errors[0].message

    def test_closed_orders_not_scanned(self):
        self.book.update("A", lambda o: cancel_order(o, self.clock.now()))

        report = self.runner().run_cycle()

        assert report.orders_scanned == 0
