"""
Module: jewel_kernel.domain.order
Responsibility:
    The order aggregate and its owned values: jewelry items, payments, the
    payment plan with its milestones, and the pre-lapse snapshot.

Architecture position:
    Kernel > Domain -- pure values, zero I/O.

Invariants enforced:
    - Every value is a frozen dataclass; collections are tuples.  Changes
      are expressed as ``dataclasses.replace`` producing a new Order, so
      the single writer can detect change by identity.
    - ``Order.total_paid`` is always derived from ``payments``.
    - Money fields are whole rupees (``int``); rates, weights and
      percentages are ``Decimal``.

Failure modes:
    - ValueError from ``__post_init__`` on structurally impossible values
      (negative weight, negative payment).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum

GRACE_EXPIRED_REASON = "Grace Period Expired"
MANUAL_REVOCATION_REASON = "Manual Revocation"


class Purity(str, Enum):
    """Gold purity grades priced off the 24K market rate."""

    K18 = "18K"
    K22 = "22K"
    K24 = "24K"


class OrderStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    OVERDUE = "OVERDUE"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class MilestoneStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class ProtectionStatus(str, Enum):
    """Gold-rate protection state.  Moves forward only, except on reset."""

    ACTIVE = "ACTIVE"
    WARNING = "WARNING"
    LAPSED = "LAPSED"


class ProductionStatus(str, Enum):
    DESIGNING = "DESIGNING"
    PRODUCTION = "PRODUCTION"
    QUALITY_CHECK = "QUALITY_CHECK"
    READY = "READY"
    DELIVERED = "DELIVERED"


CLOSED_ORDER_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.DELIVERED})


@dataclass(frozen=True)
class StoneEntry:
    """One stone line on an item (already totalled by the counter staff)."""

    description: str
    total: Decimal


@dataclass(frozen=True)
class JewelryItem:
    """
    One priced line of an order.

    Input fields describe the piece; computed fields are written only by
    the pricing engine and always recomputed together.
    """

    id: str
    category: str
    purity: Purity
    net_weight: Decimal
    wastage_pct: Decimal = Decimal("0")
    making_charge_per_gram: Decimal = Decimal("0")
    stone_charges: Decimal = Decimal("0")
    stone_entries: tuple[StoneEntry, ...] = ()
    metal_color: str = "Yellow Gold"
    customization_details: str = ""
    huid: str | None = None
    size: str | None = None
    production_status: ProductionStatus = ProductionStatus.DESIGNING

    # Computed by the pricing engine
    metal_value: int = 0
    wastage_value: int = 0
    labor_value: int = 0
    stone_total: int = 0
    tax_amount: int = 0
    final_amount: int = 0

    def __post_init__(self) -> None:
        if self.net_weight < 0:
            raise ValueError("net_weight cannot be negative")


@dataclass(frozen=True)
class Milestone:
    """
    One scheduled installment.

    ``cumulative_target`` is the running sum of targets up to and including
    this milestone; the status projector compares total paid against it.
    """

    id: str
    due_date: date
    target_amount: int
    cumulative_target: int
    status: MilestoneStatus = MilestoneStatus.PENDING
    warning_count: int = 0
    description: str = ""

    @property
    def due_at(self) -> datetime:
        """Start of the due date in UTC; grace is measured from here."""
        return datetime.combine(self.due_date, time.min, tzinfo=timezone.utc)

    @property
    def is_paid(self) -> bool:
        return self.status == MilestoneStatus.PAID


@dataclass(frozen=True)
class Payment:
    """Money received.  Append-only, never edited."""

    id: str
    paid_at: datetime
    amount: int
    method: str
    note: str = ""

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("payment amount cannot be negative")


@dataclass(frozen=True)
class PaymentPlan:
    """Financing terms for one order."""

    months: int
    advance_pct: Decimal
    milestones: tuple[Milestone, ...]
    interest_pct: Decimal = Decimal("0")
    rate_protection: bool = True
    protection_rate_booked: Decimal = Decimal("0")
    protection_deadline: date | None = None
    protection_limit: Decimal = Decimal("0")
    protection_status: ProtectionStatus = ProtectionStatus.ACTIVE
    protection_reset_at: datetime | None = None  # grace restarts here after a reprice
    original_milestones: tuple[Milestone, ...] | None = None
    template_name: str | None = None

    @property
    def last_due_date(self) -> date | None:
        if not self.milestones:
            return None
        return max(m.due_date for m in self.milestones)


@dataclass(frozen=True)
class OrderSnapshot:
    """Pre-lapse state kept for audit and dispute resolution."""

    taken_at: datetime
    original_total: int
    original_rate: Decimal
    items: tuple[JewelryItem, ...]
    reason: str


@dataclass(frozen=True)
class Order:
    """
    Aggregate root.  Owns its items, payments and plan outright.

    Never mutated in place: every change yields a new Order via
    ``dataclasses.replace``.
    """

    id: str
    customer_name: str
    customer_contact: str
    items: tuple[JewelryItem, ...]
    payment_plan: PaymentPlan
    total_amount: int
    net_payable: int
    gold_rate_at_booking: Decimal
    created_at: datetime
    payments: tuple[Payment, ...] = ()
    status: OrderStatus = OrderStatus.ACTIVE
    exchange_value: int = 0
    customer_email: str | None = None
    share_token: str = ""
    original_snapshot: OrderSnapshot | None = None

    @property
    def total_paid(self) -> int:
        return sum(p.amount for p in self.payments)

    @property
    def outstanding(self) -> int:
        return max(0, self.net_payable - self.total_paid)

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_ORDER_STATUSES

    @property
    def is_fully_paid(self) -> bool:
        return self.total_paid >= self.net_payable - 1

    @property
    def milestones(self) -> tuple[Milestone, ...]:
        return self.payment_plan.milestones

    @property
    def pending_milestones(self) -> tuple[Milestone, ...]:
        return tuple(m for m in self.payment_plan.milestones if not m.is_paid)

    @property
    def is_open(self) -> bool:
        """Has at least one unpaid milestone and is not cancelled or delivered."""
        return not self.is_closed and bool(self.pending_milestones)

    def with_plan(self, **changes) -> Order:
        """Return a copy with the payment plan fields replaced."""
        return replace(self, payment_plan=replace(self.payment_plan, **changes))

    def item(self, item_id: str) -> JewelryItem | None:
        for it in self.items:
            if it.id == item_id:
                return it
        return None
