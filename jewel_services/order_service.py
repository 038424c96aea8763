"""
jewel_services.order_service -- Counter-side order operations.

Responsibility:
    Thin orchestration over the lifecycle, protection and repricing
    engines: read the current order from the book, apply the pure
    ``Order -> Order`` transition, replace it, and record the activity.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  Supplies
    the clock, ids and settings the engines take as arguments.

Invariants enforced:
    - Every state change goes through ``OrderBook.update`` (copy-on-write).
    - Validation errors propagate to the caller before anything is stored.

Usage:
    service = OrderService(book, settings, clock=SystemClock())
    order = service.book_order(OrderRequest(...))
    service.record_payment(order.id, 10000, "UPI")
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from jewel_config.schema import ShopSettings
from jewel_engines.lifecycle import (
    OrderRequest,
    build_order,
    cancel_order,
    hand_over,
    record_payment,
    update_item_status,
)
from jewel_engines.protection import revoke_protection
from jewel_engines.repricing import MarketQuote, accept_new_rate, quote_at_market
from jewel_engines.summary import CollectionSummary, collection_summary
from jewel_kernel.domain.clock import Clock, SystemClock
from jewel_kernel.domain.order import Order, ProductionStatus
from jewel_kernel.domain.values import format_inr
from jewel_kernel.logging_config import LogContext, get_logger
from jewel_services.activity import ActivityLog, ActivityType
from jewel_services.order_book import OrderBook

logger = get_logger("services.orders")


def new_order_id() -> str:
    return f"ORD-{uuid4().hex[:12].upper()}"


def new_share_token() -> str:
    return uuid4().hex[:8]


class OrderService:
    """
    Order operations for the shop counter.

    Contract:
        Receives the order book, settings and clock via constructor
        injection.  ``settings`` may be swapped when the market rate feed
        publishes a new rate.
    """

    def __init__(
        self,
        book: OrderBook,
        settings: ShopSettings,
        clock: Clock | None = None,
        activity: ActivityLog | None = None,
    ):
        self._book = book
        self._settings = settings
        self._clock = clock or SystemClock()
        self._activity = activity or ActivityLog(self._clock)

    @property
    def settings(self) -> ShopSettings:
        return self._settings

    def update_settings(self, settings: ShopSettings) -> None:
        self._settings = settings

    def set_market_rate(self, rate_24k: Decimal) -> None:
        self._settings = self._settings.with_rate(rate_24k)
        logger.info("market_rate_updated", extra={"rate_24k": rate_24k})

    # -------------------------------------------------------------------------
    # Booking and payments
    # -------------------------------------------------------------------------

    def book_order(self, request: OrderRequest) -> Order:
        now = self._clock.now()
        order = build_order(request, self._settings, now, new_order_id(), new_share_token())
        self._book.add(order)
        with LogContext.bind(order_id=order.id):
            logger.info(
                "order_booked",
                extra={
                    "total_amount": order.total_amount,
                    "net_payable": order.net_payable,
                    "rate_24k": order.gold_rate_at_booking,
                    "milestones": len(order.payment_plan.milestones),
                },
            )
        self._activity.log_activity(
            ActivityType.ORDER_CREATED,
            f"Order {order.id} for {order.customer_name}",
            order_id=order.id,
        )
        return order

    def record_payment(
        self,
        order_id: str,
        amount: Decimal | int,
        method: str,
        paid_at: datetime | None = None,
        note: str = "",
    ) -> Order:
        now = self._clock.now()
        payment_id = f"PAY-{uuid4().hex[:12].upper()}"
        order = self._book.update(
            order_id,
            lambda o: record_payment(o, payment_id, amount, method, paid_at or now, now, note),
        )
        self._activity.log_activity(
            ActivityType.PAYMENT_RECORDED,
            f"{format_inr(amount)} received on {order_id} via {method}",
            order_id=order_id,
        )
        return order

    # -------------------------------------------------------------------------
    # Protection and repricing
    # -------------------------------------------------------------------------

    def revoke_protection(self, order_id: str) -> Order:
        order = self._book.update(order_id, lambda o: revoke_protection(o, self._clock.now()))
        self._activity.log_activity(
            ActivityType.PROTECTION_LAPSED,
            f"Protection revoked manually on {order_id}",
            order_id=order_id,
        )
        return order

    def quote(self, order_id: str, rate_24k: Decimal | None = None) -> MarketQuote:
        rate = rate_24k if rate_24k is not None else self._settings.current_gold_rate_24k
        return quote_at_market(self._book.get(order_id), rate, self._settings)

    def accept_new_rate(
        self,
        order_id: str,
        rate_24k: Decimal | None = None,
        force: bool = False,
    ) -> Order:
        rate = rate_24k if rate_24k is not None else self._settings.current_gold_rate_24k
        now = self._clock.now()
        order = self._book.update(
            order_id, lambda o: accept_new_rate(o, rate, self._settings, force=force, now=now)
        )
        self._activity.log_activity(
            ActivityType.ORDER_REPRICED,
            f"Order {order_id} repriced at {format_inr(rate)}/g, new total {format_inr(order.total_amount)}",
            order_id=order_id,
        )
        return order

    # -------------------------------------------------------------------------
    # Closing
    # -------------------------------------------------------------------------

    def cancel_order(self, order_id: str) -> Order:
        order = self._book.update(order_id, lambda o: cancel_order(o, self._clock.now()))
        self._activity.log_activity(
            ActivityType.ORDER_CANCELLED,
            f"Order {order_id} cancelled, {format_inr(order.total_paid)} to refund",
            order_id=order_id,
        )
        return order

    def hand_over(self, order_id: str) -> Order:
        order = self._book.update(order_id, hand_over)
        self._activity.log_activity(
            ActivityType.ORDER_DELIVERED,
            f"Order {order_id} handed over",
            order_id=order_id,
        )
        return order

    def update_item_status(self, order_id: str, item_id: str, status: ProductionStatus) -> Order:
        return self._book.update(order_id, lambda o: update_item_status(o, item_id, status))

    def summary(self) -> CollectionSummary:
        return collection_summary(self._book.all(), self._clock.now())
