"""
AutopilotScheduler -- In-process polling scheduler for autopilot cycles.

Contract:
    Runs ``AutopilotRunner.run_cycle`` on a configurable interval in a
    background thread, or once on demand after the initial data load.

Architecture: jewel_batch.  Uses jewel_services.autopilot_runner for the
    cycle itself; owns only timing and the has-run guard.

Invariants enforced:
    - Ticks are serialized: the runner's cycle lock rejects overlaps, and
      the loop never starts a tick before the previous one returned.
    - ``run_once_after_load`` fires at most once per scheduler instance.
    - Graceful shutdown (respects the stop signal between ticks).
    - A failing tick is logged and never kills the loop.
"""

from __future__ import annotations

import threading

from jewel_kernel.logging_config import get_logger
from jewel_services.autopilot_runner import AutopilotRunner, CycleReport

logger = get_logger("batch.scheduler")


class AutopilotScheduler:
    """Polling scheduler for the autopilot.

    Contract:
        - ``tick()`` runs one cycle (public for testing).
        - ``start()`` / ``stop()`` for background thread operation.
        - ``run_once_after_load()`` for the session-start run.

    Non-goals:
        - NOT a distributed scheduler (no leader election).
    """

    def __init__(self, runner: AutopilotRunner, tick_interval_seconds: int = 3600):
        self._runner = runner
        self._tick_interval = tick_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._has_run = False
        self._guard = threading.Lock()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> CycleReport | None:
        """Run one autopilot cycle.  Returns None if the cycle raised."""
        try:
            return self._runner.run_cycle()
        except Exception:
            logger.exception("scheduler_tick_failed")
            return None

    def run_once_after_load(self) -> CycleReport | None:
        """Run the first cycle after orders are loaded; later calls do nothing."""
        with self._guard:
            if self._has_run:
                logger.info("autopilot_already_ran")
                return None
            self._has_run = True
        return self.tick()

    @property
    def has_run(self) -> bool:
        return self._has_run

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="autopilot-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current tick to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background polling loop. Exits when stop_event is set."""
        while not self._stop_event.is_set():
            with self._guard:
                self._has_run = True
            self.tick()
            # Wait for interval or until stopped
            self._stop_event.wait(timeout=self._tick_interval)
