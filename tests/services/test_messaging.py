"""Tests for message history and the logging transport."""

from datetime import UTC, datetime, timedelta

from jewel_kernel.domain.clock import DeterministicClock
from jewel_services.messaging import (
    InMemoryMessageHistory,
    LoggingTransport,
    MessageDirection,
    MessageLogEntry,
    MessageStatus,
    MessageTransport,
    normalize_contact,
)

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def _entry(order_id, ts, contact="+91 98450 12345", **kw):
    return MessageLogEntry(
        order_id=order_id,
        customer_contact=contact,
        customer_name="Asha",
        message="hi",
        timestamp=ts,
        **kw,
    )


class TestNormalizeContact:
    def test_strips_formatting_and_country_code(self):
        assert normalize_contact("+91 98450-12345") == "9845012345"

    def test_short_number_kept(self):
        assert normalize_contact("12345") == "12345"

    def test_empty(self):
        assert normalize_contact("") == ""


class TestInMemoryMessageHistory:
    """History queries keyed by order id."""

    def setup_method(self):
        self.history = InMemoryMessageHistory()

    def test_newest_first(self):
        self.history.record(_entry("A", T0))
        self.history.record(_entry("A", T0 + timedelta(hours=5)))
        self.history.record(_entry("A", T0 + timedelta(hours=2)))

        stamps = [e.timestamp for e in self.history.outbound_for_order("A")]
        assert stamps == [T0 + timedelta(hours=5), T0 + timedelta(hours=2), T0]

    def test_keyed_by_order_not_phone(self):
        """Two orders for the same customer keep separate histories."""
        self.history.record(_entry("A", T0 + timedelta(hours=5)))
        self.history.record(_entry("B", T0))

        assert self.history.last_outbound_at("B", "+91 98450 12345") == T0

    def test_entries_without_order_match_on_contact(self):
        self.history.record(_entry(None, T0, contact="098450 12345"))

        assert self.history.last_outbound_at("A", "+91 9845012345") == T0
        assert self.history.last_outbound_at("A") is None

    def test_inbound_and_failed_ignored(self):
        self.history.record(_entry("A", T0, direction=MessageDirection.INBOUND))
        self.history.record(_entry("A", T0, status=MessageStatus.FAILED))

        assert self.history.last_outbound_at("A") is None


class TestLoggingTransport:
    def setup_method(self):
        self.clock = DeterministicClock(T0)

    def test_send_returns_log_entry(self, captured_logs):
        transport = LoggingTransport(self.clock)
        result = transport.send("9845012345", "hello", "Asha", order_id="A", kind="GRACE_WARNING")

        assert result.success
        assert result.log_entry.order_id == "A"
        assert result.log_entry.timestamp == T0
        assert result.log_entry.direction == MessageDirection.OUTBOUND
        assert any(r["message"] == "message_sent" for r in captured_logs())

    def test_simulated_failure(self):
        transport = LoggingTransport(self.clock, fail_contacts=frozenset({"+91 98450 12345"}))
        result = transport.send("9845012345", "hello", "Asha")

        assert not result.success
        assert result.log_entry is None
        assert transport.sent == []

    def test_satisfies_protocol(self):
        assert isinstance(LoggingTransport(self.clock), MessageTransport)
