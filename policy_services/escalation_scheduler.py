"""
EscalationScheduler -- In-process polling runner for the escalation sweep.

Contract:
    Calls ``EscalationSweeper.process_escalations()`` every
    ``sweep_interval_seconds`` on a background thread, or once per
    ``tick()`` when driven by hand.

Architecture: policy_services.  Owns no state beyond its thread; the
    sweep itself is idempotent and guarded by the sweeper's own lock.

Invariants enforced:
    - A failing sweep is logged and never escapes the loop.
    - Graceful shutdown: ``stop()`` sets the stop signal and joins the
      thread; a sweep in progress completes first.
"""

from __future__ import annotations

import threading

from policy_kernel.domain.approval import EscalationResult
from policy_kernel.logging_config import get_logger
from policy_services.escalation_service import EscalationSweeper

logger = get_logger("services.escalation_scheduler")


class EscalationScheduler:
    """Background thread that sweeps overdue approval requests.

    Contract:
        - ``tick()`` runs one sweep and returns its results.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler (no leader election).
        - Does NOT retry a failed sweep before the next interval.
    """

    def __init__(
        self,
        sweeper: EscalationSweeper,
        sweep_interval_seconds: float = 60,
    ):
        self._sweeper = sweeper
        self._interval = sweep_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> list[EscalationResult]:
        """Run one sweep (public for testing).  Failures yield no results."""
        try:
            return self._sweeper.process_escalations()
        except Exception:
            logger.exception("escalation_tick_failed")
            return []

    def start(self) -> None:
        """Start sweeping in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="escalation-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("escalation_scheduler_started", extra={"sweep_interval": self._interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current sweep to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("escalation_scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._interval)
