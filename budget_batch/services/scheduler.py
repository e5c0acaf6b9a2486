"""
BudgetScheduler -- in-process polling driver for the budget engine.

Contract:
    Every ``tick_interval_seconds`` runs one reconciliation pass:
    status reconciliation -> transitions (including gap self-heal) ->
    orphan reconciliation.  ``tick()`` is public so the engine facade and
    tests can run a pass synchronously.

Architecture: budget_batch/services.  Uses the kernel services; each step
    runs in its own ``session_scope`` so a failure rolls back only that
    step's writes.

Invariants enforced:
    - Single-flight: ticks never overlap.  A tick requested while another
      is running returns ``TickResult(skipped=True)`` immediately.
    - The timezone is read from settings at the start of every tick.
    - All timestamps come from the injected Clock.
    - A failing step is logged and the loop keeps running; if status
      reconciliation fails the rest of the tick is skipped, since the
      later steps depend on settled statuses.
    - start() and stop() are idempotent.
"""

from __future__ import annotations

import threading
import time
from datetime import tzinfo
from typing import Callable
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budget_kernel.db.engine import session_scope
from budget_kernel.domain.calendar import DEFAULT_TIMEZONE, resolve_timezone
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.exceptions import BudgetKernelError
from budget_kernel.logging_config import LogContext, get_logger
from budget_kernel.services.orphan_reconciler import OrphanReconciler
from budget_kernel.services.period_service import PeriodService
from budget_kernel.services.settings_service import SettingsService
from budget_kernel.services.transition_orchestrator import TransitionOrchestrator

from budget_batch.domain.types import TickResult, TickStep

logger = get_logger("batch.scheduler")

DEFAULT_TICK_INTERVAL_SECONDS = 300


class BudgetScheduler:
    """Background polling loop for budget period maintenance.

    Contract:
        - ``tick()`` runs one pass and returns a TickResult.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a general-purpose job scheduler.
        - NOT distributed: one scheduler per store.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        run_on_start: bool = True,
        skip_vacation_orphans: bool = False,
        default_timezone: str = DEFAULT_TIMEZONE,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._tick_interval = tick_interval_seconds
        self._run_on_start = run_on_start
        self._skip_vacation_orphans = skip_vacation_orphans
        self._default_timezone = default_timezone
        self._orchestrator = TransitionOrchestrator(session_factory, self._clock)
        self._tick_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> TickResult:
        """Run one reconciliation pass (public for testing and manual runs)."""
        tick_id = uuid4().hex[:12]
        started_at = self._clock.now()

        if not self._tick_lock.acquire(blocking=False):
            logger.info("tick_skipped_in_flight", extra={"skipped_tick_id": tick_id})
            return TickResult(tick_id=tick_id, started_at=started_at, skipped=True)

        try:
            with LogContext.bind(tick_id=tick_id, actor="scheduler"):
                return self._run_tick(tick_id)
        finally:
            self._tick_lock.release()

    def start(self) -> None:
        """Start the loop in a background thread.  No-op if already running."""
        with self._lifecycle_lock:
            if self._thread is not None and self._thread.is_alive():
                return

            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run_loop,
                name="budget-scheduler",
                daemon=True,
            )
            self._thread.start()
        logger.info(
            "scheduler_started",
            extra={
                "tick_interval": self._tick_interval,
                "run_on_start": self._run_on_start,
            },
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current tick to finish.  No-op if stopped.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        with self._lifecycle_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            if thread.is_alive():
                thread.join(timeout=timeout)
            self._thread = None
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background polling loop.  Exits when stop_event is set."""
        if not self._run_on_start:
            self._stop_event.wait(timeout=self._tick_interval)
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            # Wait for interval or until stopped
            self._stop_event.wait(timeout=self._tick_interval)

    def _run_tick(self, tick_id: str) -> TickResult:
        started = time.monotonic()
        now = self._clock.now()
        failed: list[TickStep] = []
        status_changes = ()
        transition = None
        matches = ()

        zone_name, tz = self._read_timezone()

        try:
            with session_scope(self._session_factory) as session:
                status_changes = PeriodService(session, self._clock).reconcile_statuses(now, tz)
        except (BudgetKernelError, SQLAlchemyError):
            logger.exception("tick_step_failed", extra={"step": TickStep.STATUS.value})
            failed.append(TickStep.STATUS)

        if not failed:
            transition = self._orchestrator.run(now, tz, just_completed=status_changes)
            if transition.error is not None:
                failed.append(TickStep.TRANSITIONS)

            try:
                with session_scope(self._session_factory) as session:
                    matches = OrphanReconciler(session).run(
                        tz, skip_vacation_budgets=self._skip_vacation_orphans
                    )
            except (BudgetKernelError, SQLAlchemyError):
                logger.exception("tick_step_failed", extra={"step": TickStep.ORPHANS.value})
                failed.append(TickStep.ORPHANS)

        result = TickResult(
            tick_id=tick_id,
            started_at=now,
            timezone=zone_name,
            status_changes=status_changes,
            transition=transition,
            orphan_matches=matches,
            failed_steps=tuple(failed),
        )
        logger.info(
            "tick_completed",
            extra={
                "timezone": zone_name,
                "status_changes": len(status_changes),
                "completed_periods": len(result.completed_periods),
                "transition": transition.kind.value if transition else None,
                "orphans_attached": len(matches),
                "failed_steps": [s.value for s in failed],
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return result

    def _read_timezone(self) -> tuple[str, tzinfo]:
        try:
            with session_scope(self._session_factory) as session:
                name = SettingsService(session, self._default_timezone).get_timezone_name()
        except SQLAlchemyError:
            logger.exception(
                "timezone_read_failed",
                extra={"fallback": self._default_timezone},
            )
            name = self._default_timezone
        return name, resolve_timezone(name)
