"""
Pure domain layer.

This module contains the order aggregate and value helpers with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock
- I/O

All domain objects are immutable and deterministic.
"""

from jewel_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from jewel_kernel.domain.order import (
    GRACE_EXPIRED_REASON,
    MANUAL_REVOCATION_REASON,
    JewelryItem,
    Milestone,
    MilestoneStatus,
    Order,
    OrderSnapshot,
    OrderStatus,
    Payment,
    PaymentPlan,
    ProductionStatus,
    ProtectionStatus,
    Purity,
    StoneEntry,
)
from jewel_kernel.domain.values import (
    format_inr,
    money_equal,
    round_money,
    to_decimal,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "GRACE_EXPIRED_REASON",
    "MANUAL_REVOCATION_REASON",
    "JewelryItem",
    "Milestone",
    "MilestoneStatus",
    "Order",
    "OrderSnapshot",
    "OrderStatus",
    "Payment",
    "PaymentPlan",
    "ProductionStatus",
    "ProtectionStatus",
    "Purity",
    "StoneEntry",
    "format_inr",
    "money_equal",
    "round_money",
    "to_decimal",
]
