"""
Dashboard read models over a set of orders.  Pure; ``now`` is passed in.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from jewel_engines.milestones import next_due_milestone as _next_due
from jewel_kernel.domain.order import Milestone, Order, ProtectionStatus


@dataclass(frozen=True)
class CollectionSummary:
    open_orders: int
    overdue_orders: int
    lapsed_orders: int
    total_outstanding: int
    total_collected: int


def outstanding_balance(order: Order) -> int:
    return order.outstanding


def next_due_milestone(order: Order) -> Milestone | None:
    return _next_due(order.payment_plan.milestones)


def is_overdue(order: Order, now: datetime) -> bool:
    milestone = next_due_milestone(order)
    return order.is_open and milestone is not None and milestone.due_at < now


def collection_summary(orders: Iterable[Order], now: datetime) -> CollectionSummary:
    """Counts and totals for the collections dashboard.

    Cancelled orders contribute what was collected but nothing outstanding.
    """
    open_orders = overdue = lapsed = outstanding = collected = 0
    for order in orders:
        collected += order.total_paid
        if not order.is_open:
            continue
        open_orders += 1
        outstanding += order.outstanding
        if is_overdue(order, now):
            overdue += 1
        if order.payment_plan.protection_status == ProtectionStatus.LAPSED:
            lapsed += 1
    return CollectionSummary(
        open_orders=open_orders,
        overdue_orders=overdue,
        lapsed_orders=lapsed,
        total_outstanding=outstanding,
        total_collected=collected,
    )
