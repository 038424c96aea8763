"""
Module: jewel_engines.schedule
Responsibility:
    Generate the installment schedule for a payable total: an advance due
    on the start date followed by one installment per month.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The start date is passed
    in; the engine never reads the clock.

Invariants enforced:
    - The target amounts sum exactly to round(payable_total).
    - Any rounding remainder lands in the final bucket, never an earlier
      one.
    - Identical inputs always yield identical milestones (ids included).

Failure modes:
    - InvalidPlanError for months < 1 or advance outside 0..100.
    - ScheduleIntegrityError if the sum check ever fails (a defect).
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from jewel_engines.tracer import traced_engine
from jewel_kernel.domain.order import Milestone, MilestoneStatus
from jewel_kernel.domain.values import round_money, to_decimal
from jewel_kernel.exceptions import InvalidPlanError, ScheduleIntegrityError

ADVANCE_MILESTONE_ID = "ADV"


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    return start + relativedelta(months=months)


def split_evenly(amount: int, count: int) -> list[int]:
    """Split ``amount`` into ``count`` buckets; the last absorbs the remainder.

    >>> split_evenly(90000, 3)
    [30000, 30000, 30000]
    >>> split_evenly(100, 3)
    [33, 33, 34]
    """
    if count < 1:
        raise InvalidPlanError("count", count, "must be at least 1")
    per_bucket = round_money(Decimal(amount) / count)
    return [per_bucket] * (count - 1) + [amount - per_bucket * (count - 1)]


def with_cumulative_targets(milestones: list[Milestone], base: int = 0) -> tuple[Milestone, ...]:
    """Rewrite cumulative targets as ``base`` plus the running sum of targets."""
    running = base
    out = []
    for m in milestones:
        running += m.target_amount
        out.append(replace(m, cumulative_target=running))
    return tuple(out)


def validate_plan_shape(advance_pct: Decimal | int | str, months: int) -> Decimal:
    """Check months >= 1 and 0 <= advance % <= 100; returns advance as Decimal."""
    if not isinstance(months, int) or months < 1:
        raise InvalidPlanError("months", months, "must be at least 1")
    pct = to_decimal(advance_pct)
    if pct < 0 or pct > 100:
        raise InvalidPlanError("advance_pct", pct, "must be between 0 and 100")
    return pct


@traced_engine(
    "schedule", "1.0",
    fingerprint_fields=("payable_total", "advance_pct", "months", "start_date"),
)
def generate_schedule(
    payable_total: Decimal | int,
    advance_pct: Decimal | int,
    months: int,
    start_date: date,
) -> tuple[Milestone, ...]:
    """
    Build the advance plus ``months`` monthly installments.

    Preconditions:
        months >= 1, 0 <= advance_pct <= 100.
    Postconditions:
        Milestone 0 (``ADV``) is due on ``start_date``; milestone i (``Mi``)
        is due i months later.  Every milestone is PENDING with zero
        warnings, and the targets sum to round(payable_total).
    """
    pct = validate_plan_shape(advance_pct, months)
    total = round_money(payable_total)

    advance = round_money(Decimal(total) * pct / Decimal("100"))
    installments = split_evenly(total - advance, months)

    drafts = [Milestone(
        id=ADVANCE_MILESTONE_ID,
        due_date=start_date,
        target_amount=advance,
        cumulative_target=advance,
        status=MilestoneStatus.PENDING,
        description="Advance",
    )]
    for i, amount in enumerate(installments, start=1):
        drafts.append(Milestone(
            id=f"M{i}",
            due_date=add_months(start_date, i),
            target_amount=amount,
            cumulative_target=0,
            status=MilestoneStatus.PENDING,
            description=f"Installment {i} of {months}",
        ))

    milestones = with_cumulative_targets(drafts)
    actual = milestones[-1].cumulative_target
    if actual != total:
        raise ScheduleIntegrityError(expected=total, actual=actual)
    return milestones
