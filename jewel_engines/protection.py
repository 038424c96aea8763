"""
Module: jewel_engines.protection
Responsibility:
    Gold-rate protection state machine: classify where an order sits
    relative to its next due date and grace window, and perform the lapse
    and revocation transitions.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  "now" is always passed in.

States:
    ACTIVE --(grace expired / manual revocation)--> LAPSED
    ACTIVE --(informational)--> WARNING --> LAPSED
    LAPSED --(accept new rate, see repricing)--> ACTIVE

Invariants enforced:
    - Automatic transitions only move forward; nothing here reverts LAPSED.
    - ``original_snapshot`` is written at most once by an automatic lapse.
      A manual revocation may write a new snapshot, and only when the
      existing one carries a different reason.
    - WARNING is treated as ACTIVE for grace and lapse evaluation.
    - After a reprice the grace window starts at the later of the due
      date and the reprice instant.

Failure modes:
    - OrderClosedError when revoking protection on a cancelled or
      delivered order.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from enum import Enum

from jewel_engines.milestones import next_due_milestone
from jewel_kernel.domain.order import (
    GRACE_EXPIRED_REASON,
    MANUAL_REVOCATION_REASON,
    Milestone,
    Order,
    OrderSnapshot,
    ProtectionStatus,
)
from jewel_kernel.exceptions import OrderClosedError
from jewel_kernel.logging_config import get_logger

logger = get_logger("engines.protection")


class ProtectionPhase(str, Enum):
    """Where an open order sits on the protection timeline at a given moment."""

    NOT_APPLICABLE = "NOT_APPLICABLE"  # closed, fully scheduled-paid, or unprotected
    NOT_DUE = "NOT_DUE"
    GRACE = "GRACE"
    EXPIRED = "EXPIRED"  # past grace, still protected: lapse is due
    LAPSED = "LAPSED"


def is_protected(order: Order) -> bool:
    return order.payment_plan.protection_status in (
        ProtectionStatus.ACTIVE,
        ProtectionStatus.WARNING,
    )


def grace_starts_at(order: Order, milestone: Milestone) -> datetime:
    reset_at = order.payment_plan.protection_reset_at
    if reset_at is not None and reset_at > milestone.due_at:
        return reset_at
    return milestone.due_at


def evaluate_protection(order: Order, now: datetime, grace_period_hours: int) -> ProtectionPhase:
    """
    Classify ``order`` at ``now``.

    The clock starts at the beginning (UTC) of the earliest unpaid
    milestone's due date, or at the last reprice when that is later.
    Strictly after it and strictly before start + grace is GRACE; at or
    beyond start + grace is EXPIRED.
    """
    if order.is_closed or not order.payment_plan.rate_protection:
        return ProtectionPhase.NOT_APPLICABLE
    milestone = next_due_milestone(order.payment_plan.milestones)
    if milestone is None:
        return ProtectionPhase.NOT_APPLICABLE
    if not is_protected(order):
        return ProtectionPhase.LAPSED

    start = grace_starts_at(order, milestone)
    if now <= start:
        return ProtectionPhase.NOT_DUE
    if now < start + timedelta(hours=grace_period_hours):
        return ProtectionPhase.GRACE
    return ProtectionPhase.EXPIRED


def grace_ends_at(order: Order, grace_period_hours: int) -> datetime | None:
    """End of the grace window for the earliest unpaid milestone."""
    milestone = next_due_milestone(order.payment_plan.milestones)
    if milestone is None:
        return None
    return grace_starts_at(order, milestone) + timedelta(hours=grace_period_hours)


def take_snapshot(order: Order, now: datetime, reason: str) -> OrderSnapshot:
    """Capture the order's current total, rate and items."""
    return OrderSnapshot(
        taken_at=now,
        original_total=order.total_amount,
        original_rate=order.gold_rate_at_booking,
        items=order.items,
        reason=reason,
    )


def lapse_order(order: Order, now: datetime, reason: str = GRACE_EXPIRED_REASON) -> Order:
    """
    Automatic lapse: flip protection to LAPSED and snapshot once.

    Returns ``order`` itself (same object) when it is already lapsed with a
    snapshot, so a repeated run is a no-op.  An existing snapshot is never
    overwritten here.
    """
    plan = order.payment_plan
    already_lapsed = plan.protection_status == ProtectionStatus.LAPSED
    if already_lapsed and order.original_snapshot is not None:
        return order

    snapshot = order.original_snapshot
    if snapshot is None:
        snapshot = take_snapshot(order, now, reason)

    logger.info(
        "protection_lapsed",
        extra={
            "order_id": order.id,
            "reason": reason,
            "snapshot_total": snapshot.original_total,
            "snapshot_reason": snapshot.reason,
        },
    )
    return replace(
        order,
        original_snapshot=snapshot,
        payment_plan=replace(plan, protection_status=ProtectionStatus.LAPSED),
    )


def revoke_protection(order: Order, now: datetime) -> Order:
    """
    Manual revocation: force LAPSED regardless of grace-period math.

    Writes a "Manual Revocation" snapshot unless one with that same reason
    already exists.
    """
    if order.is_closed:
        raise OrderClosedError(order.id, order.status.value)

    snapshot = order.original_snapshot
    if snapshot is None or snapshot.reason != MANUAL_REVOCATION_REASON:
        snapshot = take_snapshot(order, now, MANUAL_REVOCATION_REASON)

    logger.info(
        "protection_revoked",
        extra={"order_id": order.id, "snapshot_total": snapshot.original_total},
    )
    return replace(
        order,
        original_snapshot=snapshot,
        payment_plan=replace(order.payment_plan, protection_status=ProtectionStatus.LAPSED),
    )
