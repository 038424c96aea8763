"""
Module: jewel_engines.lifecycle
Responsibility:
    Order lifecycle transitions other than protection and repricing:
    building a new order from a booking request, recording payments,
    cancellation, handover and item production updates.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Ids, share tokens and
    "now" are supplied by the caller (``jewel_services.order_service``).

Transitions:
    ACTIVE/OVERDUE --payment--> ACTIVE | OVERDUE | COMPLETED
    any open       --cancel---> CANCELLED (protection LAPSED)
    COMPLETED      --handover-> DELIVERED

Invariants enforced:
    - Payments are append-only; milestone statuses are re-projected from
      the full payment total after every payment.
    - COMPLETED when total paid >= net payable - 1.
    - CANCELLED and DELIVERED orders accept no payments.

Failure modes:
    - InvalidItemError / InvalidPlanError / InvalidRateError / ValidationError
      when a booking request is incomplete.
    - InvalidPaymentError for amount <= 0.
    - OrderClosedError when touching a cancelled or delivered order.
    - InvalidOrderTransitionError for a handover with dues outstanding.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from jewel_engines.milestones import project_statuses
from jewel_engines.pricing import price_cart, validate_item, validate_rate
from jewel_engines.schedule import generate_schedule
from jewel_kernel.domain.order import (
    JewelryItem,
    Order,
    OrderStatus,
    Payment,
    PaymentPlan,
    ProductionStatus,
    ProtectionStatus,
)
from jewel_kernel.domain.values import round_money, to_decimal
from jewel_kernel.exceptions import (
    InvalidOrderTransitionError,
    InvalidPaymentError,
    InvalidPlanError,
    OrderClosedError,
    ValidationError,
)
from jewel_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from jewel_config.schema import ShopSettings

logger = get_logger("engines.lifecycle")


@dataclass(frozen=True)
class OrderRequest:
    """What the counter submits to book an order.

    ``market_rate_24k`` defaults to the settings' current rate.
    """

    customer_name: str
    customer_contact: str
    items: tuple[JewelryItem, ...]
    months: int
    advance_pct: Decimal
    interest_pct: Decimal = Decimal("0")
    rate_protection: bool = True
    exchange_value: int = 0
    customer_email: str | None = None
    template_name: str | None = None
    market_rate_24k: Decimal | None = None


def validate_request(request: OrderRequest) -> None:
    if not request.customer_name.strip():
        raise ValidationError("Customer name is required")
    if not request.customer_contact.strip():
        raise ValidationError("Customer contact is required")
    if not request.items:
        raise InvalidPlanError("items", 0, "an order needs at least one item")
    if request.exchange_value < 0:
        raise InvalidPlanError("exchange_value", request.exchange_value, "cannot be negative")
    for item in request.items:
        validate_item(item)


def build_order(
    request: OrderRequest,
    settings: ShopSettings,
    now: datetime,
    order_id: str,
    share_token: str,
) -> Order:
    """Price the cart and lay out the schedule for a new ACTIVE order."""
    validate_request(request)
    rate = validate_rate(
        request.market_rate_24k if request.market_rate_24k is not None else settings.current_gold_rate_24k,
        settings,
    )

    items, total = price_cart(request.items, rate, settings)
    net_payable = max(0, total - request.exchange_value)
    milestones = generate_schedule(net_payable, request.advance_pct, request.months, now.date())

    plan = PaymentPlan(
        months=request.months,
        advance_pct=to_decimal(request.advance_pct),
        milestones=milestones,
        interest_pct=to_decimal(request.interest_pct),
        rate_protection=request.rate_protection,
        protection_rate_booked=rate,
        protection_deadline=milestones[-1].due_date,
        protection_limit=settings.protection_limit,
        protection_status=ProtectionStatus.ACTIVE,
        template_name=request.template_name,
    )
    return Order(
        id=order_id,
        customer_name=request.customer_name.strip(),
        customer_contact=request.customer_contact.strip(),
        items=items,
        payment_plan=plan,
        total_amount=total,
        net_payable=net_payable,
        gold_rate_at_booking=rate,
        created_at=now,
        exchange_value=request.exchange_value,
        customer_email=request.customer_email,
        share_token=share_token,
    )


def derive_status(order: Order, now: datetime) -> OrderStatus:
    """COMPLETED, OVERDUE or ACTIVE from payments and due dates."""
    if order.is_fully_paid:
        return OrderStatus.COMPLETED
    if any(not m.is_paid and m.due_at < now for m in order.payment_plan.milestones):
        return OrderStatus.OVERDUE
    return OrderStatus.ACTIVE


def record_payment(
    order: Order,
    payment_id: str,
    amount: Decimal | int,
    method: str,
    paid_at: datetime,
    now: datetime,
    note: str = "",
) -> Order:
    """Append a payment and re-derive milestone and order statuses."""
    if order.is_closed:
        raise OrderClosedError(order.id, order.status.value)
    rupees = round_money(amount)
    if rupees <= 0:
        raise InvalidPaymentError(order.id, amount, "must be greater than zero")

    payment = Payment(id=payment_id, paid_at=paid_at, amount=rupees, method=method, note=note)
    paid = replace(order, payments=order.payments + (payment,))
    paid = paid.with_plan(milestones=project_statuses(paid.payment_plan.milestones, paid.total_paid))
    paid = replace(paid, status=derive_status(paid, now))

    logger.info(
        "payment_recorded",
        extra={
            "order_id": order.id,
            "payment_id": payment_id,
            "amount": rupees,
            "total_paid": paid.total_paid,
            "status": paid.status.value,
        },
    )
    return paid


def cancel_order(order: Order, now: datetime) -> Order:
    """Refund & cancel.  Protection lapses with the order."""
    if order.status == OrderStatus.DELIVERED:
        raise OrderClosedError(order.id, order.status.value)
    if order.status == OrderStatus.CANCELLED:
        return order
    logger.info(
        "order_cancelled",
        extra={"order_id": order.id, "total_paid": order.total_paid, "at": now},
    )
    return replace(
        order,
        status=OrderStatus.CANCELLED,
        payment_plan=replace(order.payment_plan, protection_status=ProtectionStatus.LAPSED),
    )


def hand_over(order: Order) -> Order:
    """Deliver a fully paid order; every item is marked DELIVERED."""
    if order.is_closed:
        raise OrderClosedError(order.id, order.status.value)
    if not order.is_fully_paid:
        raise InvalidOrderTransitionError(
            order.id,
            order.status.value,
            OrderStatus.DELIVERED.value,
            f"{order.outstanding} still outstanding",
        )
    logger.info("order_delivered", extra={"order_id": order.id})
    return replace(
        order,
        status=OrderStatus.DELIVERED,
        items=tuple(replace(i, production_status=ProductionStatus.DELIVERED) for i in order.items),
    )


def update_item_status(order: Order, item_id: str, status: ProductionStatus) -> Order:
    if order.is_closed:
        raise OrderClosedError(order.id, order.status.value)
    if order.item(item_id) is None:
        raise ValidationError(f"Order {order.id} has no item {item_id}")
    return replace(
        order,
        items=tuple(
            replace(i, production_status=status) if i.id == item_id else i
            for i in order.items
        ),
    )
