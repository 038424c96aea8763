"""Tests for milestone status projection."""

from hypothesis import given, settings
from hypothesis import strategies as st

from jewel_engines.milestones import (
    milestone_status,
    next_due_milestone,
    project_statuses,
)
from jewel_kernel.domain.order import MilestoneStatus

from tests.factories import make_milestones

PAID = MilestoneStatus.PAID
PARTIAL = MilestoneStatus.PARTIAL
PENDING = MilestoneStatus.PENDING

_RANK = {PENDING: 0, PARTIAL: 1, PAID: 2}


class TestProjectStatuses:
    """Tests for project_statuses."""

    def setup_method(self):
        self.milestones = make_milestones([10000, 30000, 30000, 30000])

    def test_forty_thousand_paid(self):
        """40000 against [10000, 30000, 30000, 30000] pays the first two."""
        projected = project_statuses(self.milestones, 40000)

        assert [m.status for m in projected] == [PAID, PAID, PENDING, PENDING]

    def test_partial_bucket(self):
        projected = project_statuses(self.milestones, 45000)

        assert [m.status for m in projected] == [PAID, PAID, PARTIAL, PENDING]

    def test_nothing_paid(self):
        projected = project_statuses(self.milestones, 0)

        assert all(m.status == PENDING for m in projected)

    def test_overpayment_pays_everything(self):
        projected = project_statuses(self.milestones, 250000)

        assert all(m.status == PAID for m in projected)

    def test_rederived_not_patched(self):
        """A PAID status is recomputed downwards when the paid total is lower."""
        paid = project_statuses(self.milestones, 100000)
        again = project_statuses(paid, 10000)

        assert [m.status for m in again] == [PAID, PENDING, PENDING, PENDING]

    def test_only_status_changes(self):
        projected = project_statuses(self.milestones, 40000)

        for before, after in zip(self.milestones, projected):
            assert (before.id, before.due_date, before.target_amount, before.cumulative_target) == (
                after.id, after.due_date, after.target_amount, after.cumulative_target,
            )

    def test_sorted_by_due_date(self):
        shuffled = (self.milestones[2], self.milestones[0], self.milestones[3], self.milestones[1])
        projected = project_statuses(shuffled, 0)

        assert [m.id for m in projected] == ["ADV", "M1", "M2", "M3"]

    def test_zero_target_milestone_is_paid(self):
        ms = make_milestones([10000, 0])

        assert milestone_status(ms[1], 10000) == PAID


class TestNextDueMilestone:
    def test_earliest_unpaid(self):
        projected = project_statuses(make_milestones([10000, 30000, 30000]), 10000)

        assert next_due_milestone(projected).id == "M1"

    def test_none_when_all_paid(self):
        projected = project_statuses(make_milestones([10000, 30000]), 40000)

        assert next_due_milestone(projected) is None


class TestStatusMonotonicity:
    """A larger total paid never reports a milestone as less paid."""

    @given(
        targets=st.lists(st.integers(min_value=0, max_value=500_000), min_size=1, max_size=13),
        p1=st.integers(min_value=0, max_value=7_000_000),
        extra=st.integers(min_value=1, max_value=7_000_000),
    )
    @settings(max_examples=200, deadline=None)
    def test_monotonic(self, targets, p1, extra):
        ms = make_milestones(targets)
        low = project_statuses(ms, p1)
        high = project_statuses(ms, p1 + extra)

        for a, b in zip(low, high):
            assert _RANK[b.status] >= _RANK[a.status]
