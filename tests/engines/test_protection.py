"""
Tests for the gold-rate protection state machine.

Covers:
- Phase classification around the due instant and grace limit
- Automatic lapse with a one-shot snapshot
- Manual revocation
"""

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from jewel_engines.milestones import project_statuses
from jewel_engines.protection import (
    ProtectionPhase,
    evaluate_protection,
    grace_ends_at,
    lapse_order,
    revoke_protection,
)
from jewel_kernel.domain.order import (
    GRACE_EXPIRED_REASON,
    MANUAL_REVOCATION_REASON,
    OrderStatus,
    ProtectionStatus,
)
from jewel_kernel.exceptions import OrderClosedError

from tests.factories import make_plain_order

DUE = datetime(2024, 1, 1, tzinfo=UTC)


class TestEvaluateProtection:
    """Tests for evaluate_protection."""

    def setup_method(self):
        self.order = make_plain_order([10000, 30000, 30000, 30000])

    def test_before_due(self):
        assert evaluate_protection(self.order, DUE - timedelta(hours=1), 24) == ProtectionPhase.NOT_DUE

    def test_exactly_at_due_is_not_overdue(self):
        assert evaluate_protection(self.order, DUE, 24) == ProtectionPhase.NOT_DUE

    def test_inside_grace(self):
        assert evaluate_protection(self.order, DUE + timedelta(hours=10), 24) == ProtectionPhase.GRACE

    def test_grace_limit_is_expired(self):
        assert evaluate_protection(self.order, DUE + timedelta(hours=24), 24) == ProtectionPhase.EXPIRED

    def test_thirty_hours_overdue_is_expired(self):
        assert evaluate_protection(self.order, DUE + timedelta(hours=30), 24) == ProtectionPhase.EXPIRED

    def test_clock_follows_earliest_unpaid_milestone(self):
        paid = self.order.with_plan(
            milestones=project_statuses(self.order.payment_plan.milestones, 10000)
        )
        # ADV is paid; M1 is due 2024-02-01
        now = datetime(2024, 1, 20, tzinfo=UTC)
        assert evaluate_protection(paid, now, 24) == ProtectionPhase.NOT_DUE

    def test_lapsed_order(self):
        lapsed = self.order.with_plan(protection_status=ProtectionStatus.LAPSED)

        assert evaluate_protection(lapsed, DUE + timedelta(days=10), 24) == ProtectionPhase.LAPSED

    def test_warning_treated_as_active(self):
        warned = self.order.with_plan(protection_status=ProtectionStatus.WARNING)

        assert evaluate_protection(warned, DUE + timedelta(hours=30), 24) == ProtectionPhase.EXPIRED

    def test_closed_or_unprotected_not_applicable(self):
        cancelled = replace(self.order, status=OrderStatus.CANCELLED)
        unprotected = self.order.with_plan(rate_protection=False)
        late = DUE + timedelta(days=3)

        assert evaluate_protection(cancelled, late, 24) == ProtectionPhase.NOT_APPLICABLE
        assert evaluate_protection(unprotected, late, 24) == ProtectionPhase.NOT_APPLICABLE

    def test_fully_scheduled_paid_not_applicable(self):
        done = self.order.with_plan(
            milestones=project_statuses(self.order.payment_plan.milestones, 100000)
        )

        assert evaluate_protection(done, DUE + timedelta(days=400), 24) == ProtectionPhase.NOT_APPLICABLE

    def test_grace_ends_at(self):
        assert grace_ends_at(self.order, 24) == DUE + timedelta(hours=24)

    def test_reset_restarts_grace_for_overdue_milestone(self):
        reset_at = DUE + timedelta(hours=30)
        reset = self.order.with_plan(protection_reset_at=reset_at)

        assert evaluate_protection(reset, reset_at + timedelta(minutes=5), 24) == ProtectionPhase.GRACE
        assert evaluate_protection(reset, reset_at + timedelta(hours=24), 24) == ProtectionPhase.EXPIRED
        assert grace_ends_at(reset, 24) == reset_at + timedelta(hours=24)

    def test_reset_before_due_date_ignored(self):
        reset = self.order.with_plan(protection_reset_at=DUE - timedelta(days=5))

        assert evaluate_protection(reset, DUE + timedelta(hours=30), 24) == ProtectionPhase.EXPIRED


class TestLapseOrder:
    """Tests for the automatic lapse transition."""

    def setup_method(self):
        self.order = make_plain_order([10000, 30000, 30000, 30000])
        self.now = DUE + timedelta(hours=30)

    def test_lapse_writes_snapshot(self):
        lapsed = lapse_order(self.order, self.now)

        assert lapsed.payment_plan.protection_status == ProtectionStatus.LAPSED
        assert lapsed.original_snapshot.reason == GRACE_EXPIRED_REASON
        assert lapsed.original_snapshot.original_total == 100000
        assert lapsed.original_snapshot.items == self.order.items
        assert lapsed.original_snapshot.taken_at == self.now

    def test_input_not_mutated(self):
        lapse_order(self.order, self.now)

        assert self.order.payment_plan.protection_status == ProtectionStatus.ACTIVE
        assert self.order.original_snapshot is None

    def test_second_lapse_is_noop(self):
        once = lapse_order(self.order, self.now)
        twice = lapse_order(once, self.now + timedelta(days=2))

        assert twice is once
        assert twice.original_snapshot.taken_at == self.now

    def test_existing_snapshot_never_overwritten(self):
        revoked = revoke_protection(self.order, self.now)
        reactivated = revoked.with_plan(protection_status=ProtectionStatus.ACTIVE)
        lapsed = lapse_order(reactivated, self.now + timedelta(days=5))

        assert lapsed.original_snapshot == revoked.original_snapshot
        assert lapsed.original_snapshot.reason == MANUAL_REVOCATION_REASON

    def test_lapse_logged(self, captured_logs):
        lapse_order(self.order, self.now)

        records = [r for r in captured_logs() if r["message"] == "protection_lapsed"]
        assert records and records[0]["order_id"] == self.order.id


class TestRevokeProtection:
    """Tests for manual revocation."""

    def setup_method(self):
        self.order = make_plain_order([10000, 30000, 30000, 30000])

    def test_revoke_before_due(self):
        """Manual revocation ignores grace-period math."""
        revoked = revoke_protection(self.order, DUE - timedelta(days=1))

        assert revoked.payment_plan.protection_status == ProtectionStatus.LAPSED
        assert revoked.original_snapshot.reason == MANUAL_REVOCATION_REASON

    def test_revoke_replaces_automatic_snapshot(self):
        lapsed = lapse_order(self.order, DUE + timedelta(hours=30))
        revoked = revoke_protection(lapsed, DUE + timedelta(days=2))

        assert revoked.original_snapshot.reason == MANUAL_REVOCATION_REASON

    def test_revoke_twice_keeps_first_manual_snapshot(self):
        first = revoke_protection(self.order, DUE)
        second = revoke_protection(first, DUE + timedelta(days=1))

        assert second.original_snapshot == first.original_snapshot

    @pytest.mark.parametrize("status", [OrderStatus.CANCELLED, OrderStatus.DELIVERED])
    def test_closed_order_rejected(self, status):
        with pytest.raises(OrderClosedError):
            revoke_protection(replace(self.order, status=status), DUE)
