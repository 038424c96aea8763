"""
Customer message templates for the autopilot.

Grace-period warnings escalate through four tones in rotation; the tone is
picked from the milestone's warning count, so the fifth warning is polite
again.  All amounts are formatted with Indian digit grouping.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from jewel_kernel.domain.order import Milestone, Order
from jewel_kernel.domain.values import format_inr


class WarningTone(str, Enum):
    POLITE = "POLITE"
    FIRM = "FIRM"
    URGENT = "URGENT"
    FINAL = "FINAL"


WARNING_ROTATION: tuple[WarningTone, ...] = (
    WarningTone.POLITE,
    WarningTone.FIRM,
    WarningTone.URGENT,
    WarningTone.FINAL,
)


def warning_tone(warning_count: int) -> WarningTone:
    return WARNING_ROTATION[warning_count % len(WARNING_ROTATION)]


def _first_name(order: Order) -> str:
    return order.customer_name.split()[0] if order.customer_name.strip() else "Customer"


def render_grace_warning(
    order: Order,
    milestone: Milestone,
    grace_ends_at: datetime,
    shop_name: str,
) -> str:
    """Warning sent while the milestone is overdue but still inside grace."""
    name = _first_name(order)
    due = format_inr(max(0, milestone.cumulative_target - order.total_paid))
    rate = format_inr(order.payment_plan.protection_rate_booked)
    deadline = grace_ends_at.strftime("%d %b %Y %H:%M UTC")
    tone = warning_tone(milestone.warning_count)

    if tone == WarningTone.POLITE:
        return (
            f"Hello {name}, a gentle reminder from {shop_name}: your installment "
            f"of {due} for order {order.id} was due on "
            f"{milestone.due_date:%d %b %Y}. Kindly pay before {deadline} to keep "
            f"your booked gold rate of {rate}/g."
        )
    if tone == WarningTone.FIRM:
        return (
            f"Dear {name}, your installment of {due} for order {order.id} is "
            f"overdue. Your protected rate of {rate}/g remains valid only until "
            f"{deadline}. Please complete the payment to avoid repricing."
        )
    if tone == WarningTone.URGENT:
        return (
            f"URGENT: {name}, order {order.id} has {due} overdue. Gold rate "
            f"protection at {rate}/g ends at {deadline}. After that your order "
            f"will be repriced at the prevailing market rate."
        )
    return (
        f"FINAL NOTICE: {name}, this is the last reminder for order {order.id}. "
        f"Pay {due} before {deadline} or the booked rate of {rate}/g will be "
        f"withdrawn. - {shop_name}"
    )


def render_lapse_notice(order: Order, shop_name: str) -> str:
    """One-time notice sent immediately after the lapse transition."""
    name = _first_name(order)
    original = order.original_snapshot.original_total if order.original_snapshot else order.total_amount
    return (
        f"Dear {name}, the grace period for order {order.id} has ended and gold "
        f"rate protection has lapsed. Your original total of {format_inr(original)} "
        f"will be recalculated at the current market rate. Please contact "
        f"{shop_name} to continue your order."
    )


def render_dynamic_quote(
    order: Order,
    original_total: int,
    market_total: int,
    remaining_balance: int,
    shop_name: str,
) -> str:
    """Post-lapse nudge contrasting the original and the market-rate total."""
    name = _first_name(order)
    diff = market_total - original_total
    if diff > 0:
        movement = f"an increase of {format_inr(diff)}"
    elif diff < 0:
        movement = f"a saving of {format_inr(-diff)}"
    else:
        movement = "no change"
    return (
        f"Hello {name}, an update on order {order.id} from {shop_name}: at today's "
        f"gold rate the order total is {format_inr(market_total)} against the "
        f"original {format_inr(original_total)} ({movement}). Remaining balance "
        f"at today's rate: {format_inr(remaining_balance)}. Reply to lock this rate."
    )
