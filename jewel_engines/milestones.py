"""
Module: jewel_engines.milestones
Responsibility:
    Derive each milestone's payment status from the cumulative amount paid.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Status is re-derived from scratch on every call, never patched, so it
      is the same regardless of payment order or repricing history.
    - Monotonic: a larger total paid never reports a milestone as less paid.
    - Only ``status`` changes; ids, dates, targets and warning counts are
      carried over untouched.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from jewel_kernel.domain.order import Milestone, MilestoneStatus


def sort_by_due_date(milestones: Sequence[Milestone]) -> tuple[Milestone, ...]:
    """Stable sort on due date; equal dates keep their schedule order."""
    return tuple(sorted(milestones, key=lambda m: m.due_date))


def milestone_status(milestone: Milestone, total_paid: int) -> MilestoneStatus:
    """PAID at or past the cumulative target, PARTIAL once into the bucket."""
    if total_paid >= milestone.cumulative_target:
        return MilestoneStatus.PAID
    if total_paid > milestone.cumulative_target - milestone.target_amount:
        return MilestoneStatus.PARTIAL
    return MilestoneStatus.PENDING


def project_statuses(milestones: Sequence[Milestone], total_paid: int) -> tuple[Milestone, ...]:
    """Return the milestones in due-date order with statuses re-derived."""
    projected = []
    for m in sort_by_due_date(milestones):
        status = milestone_status(m, total_paid)
        projected.append(m if status == m.status else replace(m, status=status))
    return tuple(projected)


def next_due_milestone(milestones: Sequence[Milestone]) -> Milestone | None:
    """Earliest milestone that is not yet PAID."""
    for m in sort_by_due_date(milestones):
        if not m.is_paid:
            return m
    return None
