"""
AutopilotOrchestrator -- DI container for the order core and its autopilot.

Contract:
    Wires the order store, order book, message history, order service,
    autopilot runner and scheduler around one clock and one settings
    object.  Single place where all dependencies are composed.

Architecture: jewel_batch (top-level).  Nothing in kernel, engines or
    services imports from jewel_batch.

Invariants enforced:
    - Clock injection: every component receives the same Clock.
    - Orders are loaded from the store before the first autopilot cycle.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.orm import Session

from jewel_config.schema import ShopSettings
from jewel_kernel.domain.clock import Clock, SystemClock
from jewel_kernel.logging_config import get_logger
from jewel_services.activity import ActivityLog
from jewel_services.autopilot_runner import AutopilotRunner
from jewel_services.messaging import MessageTransport
from jewel_services.order_book import OrderBook
from jewel_services.order_service import OrderService
from jewel_services.persistence import SqlMessageHistory, SqlOrderStore

from jewel_batch.scheduler import AutopilotScheduler

logger = get_logger("batch.orchestrator")


class AutopilotOrchestrator:
    """DI container for the order core.

    Contract:
        - ``from_session_factory()`` loads persisted orders and wires
          everything.
        - ``create_scheduler()`` returns an AutopilotScheduler.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
    """

    def __init__(
        self,
        book: OrderBook,
        service: OrderService,
        runner: AutopilotRunner,
        activity: ActivityLog,
        clock: Clock,
    ) -> None:
        self.book = book
        self.service = service
        self.runner = runner
        self.activity = activity
        self._clock = clock

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_session_factory(
        cls,
        session_factory: Callable[[], Session],
        settings: ShopSettings,
        transport: MessageTransport,
        clock: Clock | None = None,
    ) -> AutopilotOrchestrator:
        """Load orders from storage and build a fully wired orchestrator.

        Args:
            session_factory: Callable returning new SQLAlchemy sessions.
            settings: Initial shop settings.
            transport: Outbound message transport.
            clock: Optional clock for deterministic testing.
        """
        effective_clock = clock or SystemClock()
        store = SqlOrderStore(session_factory)
        history = SqlMessageHistory(session_factory)
        activity = ActivityLog(effective_clock)

        book = OrderBook(store.load_all(), sink=store.save)
        service = OrderService(book, settings, clock=effective_clock, activity=activity)
        runner = AutopilotRunner(
            book,
            history,
            transport,
            settings=lambda: service.settings,
            clock=effective_clock,
            activity=activity,
        )
        logger.info("orchestrator_ready", extra={"orders": len(book)})
        return cls(book, service, runner, activity, effective_clock)

    # -------------------------------------------------------------------------
    # Scheduler
    # -------------------------------------------------------------------------

    def create_scheduler(self, tick_interval_seconds: int = 3600) -> AutopilotScheduler:
        return AutopilotScheduler(self.runner, tick_interval_seconds=tick_interval_seconds)
