"""
jewel_services.order_book -- The single mutable collection of orders.

Responsibility:
    Hold every Order, replace them wholesale, notify subscribers of each
    change and forward every replaced order to the persistence sink.

Architecture position:
    Services -- the designated writer.  Engines return new Order values;
    only the order book swaps them in.

Invariants enforced:
    - Orders are never mutated in place; ``replace`` swaps the whole value.
    - A replace with the identical object is a no-op (no notification, no
      persist).
    - Subscriber and sink failures are logged and never undo the swap.

Failure modes:
    - OrderNotFoundError on ``get``/``replace``/``update`` of an unknown id.
    - OrderAlreadyExistsError on ``add`` of a duplicate id.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

from jewel_kernel.domain.order import Order
from jewel_kernel.exceptions import OrderAlreadyExistsError, OrderNotFoundError
from jewel_kernel.logging_config import get_logger

logger = get_logger("services.order_book")

Subscriber = Callable[[Order], None]
PersistenceSink = Callable[[Order], None]


class OrderBook:
    """
    In-memory order state container.

    Contract:
        - ``add`` inserts a new order, newest first in ``all()``.
        - ``replace`` swaps an existing order by id.
        - ``update(order_id, fn)`` applies an ``Order -> Order`` function
          under the book lock and replaces the result.
        - ``subscribe`` returns an unsubscribe callable.
    """

    def __init__(self, orders: Iterable[Order] = (), sink: PersistenceSink | None = None):
        self._orders: dict[str, Order] = {}
        for order in orders:
            self._orders[order.id] = order
        self._sink = sink
        self._subscribers: list[Subscriber] = []
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, order_id: str) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def find(self, order_id: str) -> Order | None:
        with self._lock:
            return self._orders.get(order_id)

    def all(self) -> list[Order]:
        with self._lock:
            orders = list(self._orders.values())
        return list(reversed(orders))

    def open_orders(self) -> list[Order]:
        return [o for o in self.all() if o.is_open]

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)

    def __contains__(self, order_id: object) -> bool:
        with self._lock:
            return order_id in self._orders

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add(self, order: Order) -> Order:
        with self._lock:
            if order.id in self._orders:
                raise OrderAlreadyExistsError(order.id)
            self._orders[order.id] = order
        self._publish(order)
        return order

    def replace(self, order: Order) -> Order:
        """Swap in ``order`` for the stored order with the same id."""
        with self._lock:
            current = self._orders.get(order.id)
            if current is None:
                raise OrderNotFoundError(order.id)
            if current is order:
                return order
            self._orders[order.id] = order
        self._publish(order)
        return order

    def update(self, order_id: str, fn: Callable[[Order], Order]) -> Order:
        """Apply ``fn`` to the current order and replace it with the result."""
        with self._lock:
            return self.replace(fn(self.get(order_id)))

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _publish(self, order: Order) -> None:
        if self._sink is not None:
            try:
                self._sink(order)
            except Exception:
                logger.exception("order_persist_failed", extra={"order_id": order.id})
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(order)
            except Exception:
                logger.exception("order_subscriber_failed", extra={"order_id": order.id})
