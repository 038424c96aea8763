"""
Module: jewel_engines.autopilot
Responsibility:
    Decide, for one order at one instant, which autopilot branch applies and
    what it should do: send a grace-period warning, lapse protection, or
    send a post-lapse market quote.  Returns intents; performs nothing.

Architecture position:
    Engines -- pure decision layer, zero I/O.  The runner in
    ``jewel_services.autopilot_runner`` commits the order updates and hands
    the messages to a transport.

Branches (mutually exclusive, picked from the protection phase):
    GRACE          -> GRACE_WARNING  if the last outbound message is at least
                                     ``min_warning_spacing_hours`` old.
    EXPIRED        -> LAPSE          unconditionally, plus a lapse notice.
    LAPSED         -> DYNAMIC_QUOTE  if the last outbound message is at least
                                     ``follow_up_interval_days`` old.
    anything else  -> NONE

Invariants enforced:
    - Spacing is computed from the caller-supplied last contact time, which
      the runner reads from message history.  No in-memory run flag.
    - A decision never increments ``warning_count``; that happens only after
      a confirmed send (``register_warning_sent``).
    - The dynamic quote never commits a reprice.
    - Only orders with rate protection enabled are considered.

Usage:
    last = history.last_outbound_at(order.id)
    decision = decide(order, last, settings, now)
    if decision.updated_order is not None:
        # re-decide on the stored value so concurrent writes survive
        book.update(order.id, lambda cur: decide(cur, last, settings, now).updated_order or cur)
    if decision.message is not None:
        transport.send(decision.message.contact, decision.message.text, ...)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable

from jewel_engines.messages import (
    render_dynamic_quote,
    render_grace_warning,
    render_lapse_notice,
    warning_tone,
)
from jewel_engines.milestones import next_due_milestone
from jewel_engines.protection import (
    ProtectionPhase,
    evaluate_protection,
    grace_ends_at,
    lapse_order,
)
from jewel_engines.repricing import quote_at_market
from jewel_engines.tracer import traced_engine
from jewel_kernel.domain.order import Order

if TYPE_CHECKING:
    from jewel_config.schema import ShopSettings


class AutopilotAction(str, Enum):
    NONE = "NONE"
    GRACE_WARNING = "GRACE_WARNING"
    LAPSE = "LAPSE"
    DYNAMIC_QUOTE = "DYNAMIC_QUOTE"


@dataclass(frozen=True)
class OutboundMessage:
    """A message the runner should hand to the transport."""

    order_id: str
    customer_name: str
    contact: str
    text: str
    kind: AutopilotAction
    milestone_id: str | None = None
    tone: str | None = None


@dataclass(frozen=True)
class AutopilotDecision:
    """Outcome of one order's evaluation.

    ``updated_order`` must be committed before ``message`` is sent.
    """

    order_id: str
    action: AutopilotAction
    phase: ProtectionPhase
    updated_order: Order | None = None
    message: OutboundMessage | None = None
    reason: str = ""

    @property
    def has_effect(self) -> bool:
        return self.updated_order is not None or self.message is not None


def _spacing_elapsed(last_contact_at: datetime | None, now: datetime, spacing: timedelta) -> bool:
    if last_contact_at is None:
        return True
    return now - last_contact_at >= spacing


def _skip(order: Order, phase: ProtectionPhase, action: AutopilotAction, reason: str) -> AutopilotDecision:
    return AutopilotDecision(order_id=order.id, action=action, phase=phase, reason=reason)


@traced_engine("autopilot", "1.0", fingerprint_fields=("last_contact_at", "now"))
def decide(
    order: Order,
    last_contact_at: datetime | None,
    settings: ShopSettings,
    now: datetime,
) -> AutopilotDecision:
    """
    Evaluate one order.

    Args:
        order: Current order value.
        last_contact_at: Timestamp of the most recent outbound message for
            this order, or None if it was never contacted.
        settings: Grace, spacing and follow-up intervals plus today's rate.
        now: Evaluation instant (timezone-aware UTC).
    """
    phase = evaluate_protection(order, now, settings.grace_period_hours)

    if phase == ProtectionPhase.GRACE:
        spacing = timedelta(hours=settings.min_warning_spacing_hours)
        if not _spacing_elapsed(last_contact_at, now, spacing):
            return _skip(order, phase, AutopilotAction.NONE, "warning_spacing_not_elapsed")
        milestone = next_due_milestone(order.payment_plan.milestones)
        text = render_grace_warning(
            order,
            milestone,
            grace_ends_at(order, settings.grace_period_hours),
            settings.shop_name,
        )
        return AutopilotDecision(
            order_id=order.id,
            action=AutopilotAction.GRACE_WARNING,
            phase=phase,
            message=OutboundMessage(
                order_id=order.id,
                customer_name=order.customer_name,
                contact=order.customer_contact,
                text=text,
                kind=AutopilotAction.GRACE_WARNING,
                milestone_id=milestone.id,
                tone=warning_tone(milestone.warning_count).value,
            ),
            reason="inside_grace_period",
        )

    if phase == ProtectionPhase.EXPIRED:
        lapsed = lapse_order(order, now)
        return AutopilotDecision(
            order_id=order.id,
            action=AutopilotAction.LAPSE,
            phase=phase,
            updated_order=lapsed,
            message=OutboundMessage(
                order_id=order.id,
                customer_name=order.customer_name,
                contact=order.customer_contact,
                text=render_lapse_notice(lapsed, settings.shop_name),
                kind=AutopilotAction.LAPSE,
            ),
            reason="grace_period_expired",
        )

    if phase == ProtectionPhase.LAPSED:
        spacing = timedelta(days=settings.follow_up_interval_days)
        if not _spacing_elapsed(last_contact_at, now, spacing):
            return _skip(order, phase, AutopilotAction.NONE, "follow_up_interval_not_elapsed")
        quote = quote_at_market(order, settings.current_gold_rate_24k, settings)
        text = render_dynamic_quote(
            order,
            original_total=quote.original_total,
            market_total=quote.repriced_total,
            remaining_balance=quote.remaining_balance,
            shop_name=settings.shop_name,
        )
        return AutopilotDecision(
            order_id=order.id,
            action=AutopilotAction.DYNAMIC_QUOTE,
            phase=phase,
            message=OutboundMessage(
                order_id=order.id,
                customer_name=order.customer_name,
                contact=order.customer_contact,
                text=text,
                kind=AutopilotAction.DYNAMIC_QUOTE,
            ),
            reason="post_lapse_follow_up",
        )

    return _skip(order, phase, AutopilotAction.NONE, phase.value.lower())


def plan_cycle(
    orders: Iterable[Order],
    last_contact_at: Callable[[Order], datetime | None],
    settings: ShopSettings,
    now: datetime,
) -> list[AutopilotDecision]:
    """Decide for every open order; returns only decisions with an effect."""
    decisions = []
    for order in orders:
        if not order.is_open:
            continue
        decision = decide(order, last_contact_at(order), settings, now)
        if decision.has_effect:
            decisions.append(decision)
    return decisions


def register_warning_sent(order: Order, milestone_id: str) -> Order:
    """Bump the warning count of ``milestone_id`` after a confirmed send."""
    milestones = tuple(
        replace(m, warning_count=m.warning_count + 1) if m.id == milestone_id else m
        for m in order.payment_plan.milestones
    )
    return order.with_plan(milestones=milestones)
