"""
Module: jewel_engines.repricing
Responsibility:
    Reprice an order at a new 24K market rate and spread the new
    outstanding balance over the milestones that are not yet paid.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Returns a new Order; the
    input is never mutated.

Algorithm:
    1. Reprice every item at the new rate.
    2. new total = sum of finals; new net payable = max(0, total - exchange).
    3. remaining = new net payable - total paid (payments are history).
    4. PAID milestones are kept byte-for-byte; every other milestone is
       rebuilt.  With nothing left to rebuild but a positive remaining
       balance, one adjustment milestone is added on the last due date.
    5. remaining is split evenly with the last bucket absorbing the
       remainder; cumulative targets restart from total paid.
    6. Protection resets to ACTIVE at the new rate, the order is ACTIVE
       again (COMPLETED if the new price is already covered), and the
       pre-reprice schedule is kept as ``original_milestones`` once.
       Rebuilt milestones keep their due dates; an accepted reprice
       records ``protection_reset_at`` so grace restarts from that instant.

Invariants enforced:
    - Paid milestones are unchanged.
    - sum(rebuilt targets) == remaining, exactly.
    - Repricing twice at the same rate gives identical totals.

Failure modes:
    - InvalidRateError when the rate or a purity factor is missing or <= 0.
    - OrderClosedError on delivered orders (``accept_new_rate``).
    - ProtectionNotLapsedError from ``accept_new_rate`` on a protected order
      unless forced.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from jewel_engines.milestones import project_statuses, sort_by_due_date
from jewel_engines.pricing import price_item, validate_rate
from jewel_engines.schedule import split_evenly, with_cumulative_targets
from jewel_engines.tracer import traced_engine
from jewel_kernel.domain.order import (
    Milestone,
    MilestoneStatus,
    Order,
    OrderStatus,
    ProtectionStatus,
)
from jewel_kernel.exceptions import OrderClosedError, ProtectionNotLapsedError
from jewel_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from jewel_config.schema import ShopSettings

logger = get_logger("engines.repricing")

ADJUSTMENT_DESCRIPTION = "Rate Adjustment"


@dataclass(frozen=True)
class MarketQuote:
    """What the order would cost at a given market rate, without committing it."""

    order_id: str
    rate_24k: Decimal
    original_total: int
    repriced_total: int
    repriced_net_payable: int
    total_paid: int

    @property
    def difference(self) -> int:
        return self.repriced_total - self.original_total

    @property
    def remaining_balance(self) -> int:
        return max(0, self.repriced_net_payable - self.total_paid)


def _adjustment_milestone(order: Order) -> Milestone:
    last_due: date = order.payment_plan.last_due_date or order.created_at.date()
    return Milestone(
        id=f"ADJ-{len(order.payment_plan.milestones) + 1}",
        due_date=last_due,
        target_amount=0,
        cumulative_target=0,
        status=MilestoneStatus.PENDING,
        description=ADJUSTMENT_DESCRIPTION,
    )


def redistribute(
    milestones: tuple[Milestone, ...],
    remaining: int,
    total_paid: int,
    order: Order,
) -> tuple[tuple[Milestone, ...], tuple[Milestone, ...]]:
    """Split into (kept paid milestones, rebuilt pending milestones)."""
    ordered = sort_by_due_date(milestones)
    paid = [m for m in ordered if m.status == MilestoneStatus.PAID]
    pending = [m for m in ordered if m.status != MilestoneStatus.PAID]

    if not pending:
        if remaining <= 0:
            return tuple(paid), ()
        pending = [_adjustment_milestone(order)]

    amounts = split_evenly(remaining, len(pending))
    drafts = [
        replace(m, target_amount=amount, status=MilestoneStatus.PENDING, warning_count=0)
        for m, amount in zip(pending, amounts)
    ]
    return tuple(paid), with_cumulative_targets(drafts, base=total_paid)


@traced_engine("repricing", "1.0", fingerprint_fields=("new_rate_24k",))
def reprice(order: Order, new_rate_24k: Decimal, settings: ShopSettings) -> Order:
    """Return ``order`` repriced at ``new_rate_24k``.  Pure; see module docs."""
    rate = validate_rate(new_rate_24k, settings)

    items = tuple(price_item(i, rate, settings) for i in order.items)
    new_total = sum(i.final_amount for i in items)
    new_net = max(0, new_total - order.exchange_value)

    total_paid = order.total_paid
    remaining = new_net - total_paid

    plan = order.payment_plan
    paid, rebuilt = redistribute(plan.milestones, remaining, total_paid, order)
    milestones = paid + project_statuses(rebuilt, total_paid)
    milestones = sort_by_due_date(milestones)

    original_milestones = plan.original_milestones
    if original_milestones is None:
        original_milestones = plan.milestones

    status = OrderStatus.COMPLETED if total_paid >= new_net - 1 else OrderStatus.ACTIVE

    return replace(
        order,
        items=items,
        total_amount=new_total,
        net_payable=new_net,
        gold_rate_at_booking=rate,
        status=status,
        payment_plan=replace(
            plan,
            milestones=milestones,
            original_milestones=original_milestones,
            protection_status=ProtectionStatus.ACTIVE,
            protection_rate_booked=rate,
            protection_deadline=milestones[-1].due_date if milestones else plan.protection_deadline,
        ),
    )


def quote_at_market(order: Order, rate_24k: Decimal, settings: ShopSettings) -> MarketQuote:
    """Hypothetical reprice used by follow-up nudges.  Commits nothing."""
    repriced = reprice(order, rate_24k, settings)
    original_total = (
        order.original_snapshot.original_total
        if order.original_snapshot is not None
        else order.total_amount
    )
    return MarketQuote(
        order_id=order.id,
        rate_24k=repriced.gold_rate_at_booking,
        original_total=original_total,
        repriced_total=repriced.total_amount,
        repriced_net_payable=repriced.net_payable,
        total_paid=order.total_paid,
    )


def accept_new_rate(
    order: Order,
    new_rate_24k: Decimal,
    settings: ShopSettings,
    force: bool = False,
    now: datetime | None = None,
) -> Order:
    """
    Customer-confirmed move to the market rate.

    Only a LAPSED order may be repriced unless ``force`` is set (the
    customer volunteers to move to today's rate).  A cancelled order comes
    back to ACTIVE here; a delivered one is final.  When ``now`` is given
    it is stored as ``protection_reset_at`` and the grace window of any
    already overdue installment restarts from it.
    """
    if order.status == OrderStatus.DELIVERED:
        raise OrderClosedError(order.id, order.status.value)
    status = order.payment_plan.protection_status
    if status != ProtectionStatus.LAPSED and not force:
        raise ProtectionNotLapsedError(order.id, status.value)

    repriced = reprice(order, new_rate_24k, settings)
    if now is not None:
        repriced = repriced.with_plan(protection_reset_at=now)
    logger.info(
        "order_repriced",
        extra={
            "order_id": order.id,
            "old_total": order.total_amount,
            "new_total": repriced.total_amount,
            "new_rate_24k": repriced.gold_rate_at_booking,
            "forced": force,
            "protection_reset_at": now,
        },
    )
    return repriced
