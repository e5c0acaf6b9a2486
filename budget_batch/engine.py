"""
BudgetEngine -- composition root and HTTP-facing surface of the engine.

Contract:
    Wires the kernel services, selectors and the BudgetScheduler around one
    session factory and one Clock, and exposes the operations the HTTP
    layer calls.  Every mutating call runs in its own ``session_scope``:
    it commits fully or not at all.

Architecture: budget_batch (top-level).  The single place where engine
    dependencies are composed; reads budget_config, which the kernel never
    does.

Invariants enforced:
    - The timezone is read from settings on every call that needs it.
    - User-initiated flag changes and their period insert share one
      transaction, so a lost race with a scheduler tick surfaces as a
      rejected insert (PeriodOverlapError), never as corrupted state.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from budget_kernel.db.engine import build_engine, create_tables, session_scope
from budget_kernel.domain.calendar import COMMON_TIMEZONES
from budget_kernel.domain.clock import Clock, SystemClock
from budget_kernel.domain.dtos import (
    BudgetInfo,
    BudgetPeriodInfo,
    BudgetTrend,
    PeriodSummary,
)
from budget_kernel.domain.generator import (
    generate_forward,
    generate_retroactive,
    plan_successor_period,
)
from budget_kernel.logging_config import LogContext, configure_logging, get_logger
from budget_kernel.selectors.budget_selector import BudgetSelector
from budget_kernel.services.budget_service import BudgetService
from budget_kernel.services.orphan_reconciler import OrphanReconciler
from budget_kernel.services.period_service import PeriodService
from budget_kernel.services.settings_service import SettingsService

from budget_batch.domain.types import TickResult
from budget_batch.services.scheduler import BudgetScheduler
from budget_config.schema import EngineConfig

logger = get_logger("batch.engine")


class BudgetEngine:
    """DI container and facade for the budget period engine.

    Contract:
        - ``from_config()`` creates a fully wired engine with its own
          database engine and tables.
        - Mutations return DTOs; reads return DTOs with derived spend.
        - ``start()`` / ``stop()`` delegate to the scheduler.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
        - Does NOT authenticate or authorize callers.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or EngineConfig()
        self._scheduler = BudgetScheduler(
            session_factory=session_factory,
            clock=self._clock,
            tick_interval_seconds=self._config.tick_interval_seconds,
            run_on_start=self._config.run_on_start,
            skip_vacation_orphans=self._config.orphans_skip_vacation_budgets,
            default_timezone=self._config.default_timezone,
        )

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
    ) -> BudgetEngine:
        """Create an engine for ``config.database_url`` and ensure its tables exist."""
        config = config or EngineConfig()
        configure_logging(level=config.log_level)
        engine = build_engine(config.database_url)
        create_tables(engine)
        logger.info(
            "budget_engine_initialized",
            extra={"dialect": engine.dialect.name},
        )
        return cls(
            sessionmaker(bind=engine, expire_on_commit=False),
            clock=clock,
            config=config,
        )

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def create_budget(
        self,
        data: Mapping[str, Any],
        activate: bool = False,
        retroactive: bool = False,
    ) -> BudgetInfo:
        """
        Create a budget, optionally activating it with its first period(s).

        With ``retroactive`` the initial period is the one containing now
        and orphan expenses inside it are attached immediately.

        Raises:
            BudgetValidationError: With every violated rule.
        """
        with LogContext.bind(actor="user"), session_scope(self._session_factory) as session:
            budgets, periods = self._services(session)
            budget = budgets.create_budget(data)
            if not (activate or retroactive):
                return budget

            now = self._clock.now()
            tz = self._settings(session).get_timezone()
            if activate:
                budgets.activate(budget.id)

            if retroactive:
                created = periods.create_period(generate_retroactive(budget, now, tz))
                OrphanReconciler(session).attach_expenses_in_range(created, tz)
            else:
                for candidate in generate_forward(
                    budget, now, self._config.forward_period_count, tz
                ):
                    periods.create_period(candidate)
            return budgets.get_budget(budget.id)

    def update_budget(self, budget_id: UUID, changes: Mapping[str, Any]) -> BudgetInfo:
        with LogContext.bind(actor="user"), session_scope(self._session_factory) as session:
            budgets, _ = self._services(session)
            return budgets.update_budget(budget_id, changes)

    def delete_budget(self, budget_id: UUID) -> int:
        """Delete an inactive budget; returns the number of expenses detached."""
        with LogContext.bind(actor="user"), session_scope(self._session_factory) as session:
            budgets, _ = self._services(session)
            return budgets.delete_budget(budget_id)

    def get_budget(self, budget_id: UUID) -> BudgetInfo:
        with session_scope(self._session_factory) as session:
            return BudgetService(session).get_budget(budget_id)

    def list_budgets(self) -> list[BudgetInfo]:
        with session_scope(self._session_factory) as session:
            return BudgetService(session).list_budgets()

    def activate_budget_now(self, budget_id: UUID) -> BudgetPeriodInfo | None:
        """
        Make a budget active immediately.

        Deactivates the previous active budget, clears the target's upcoming
        flag and creates the period containing now unless one already
        reaches today.

        Returns:
            The period created, or None when an existing one was kept.
        """
        with LogContext.bind(actor="user", budget_id=budget_id), session_scope(
            self._session_factory
        ) as session:
            budgets, periods = self._services(session)
            budgets.activate(budget_id)
            budget = budgets.get_budget(budget_id)
            tz = self._settings(session).get_timezone()
            candidate = plan_successor_period(
                budget,
                periods.list_periods(budget_id),
                self._clock.now(),
                tz,
                contiguous=False,
            )
            return periods.create_period(candidate) if candidate else None

    def schedule_as_upcoming(self, budget_id: UUID) -> BudgetInfo:
        """Queue a budget to take over when the active period completes."""
        with LogContext.bind(actor="user", budget_id=budget_id), session_scope(
            self._session_factory
        ) as session:
            budgets, _ = self._services(session)
            budgets.schedule_as_upcoming(budget_id)
            return budgets.get_budget(budget_id)

    def toggle_vacation_mode(self, budget_id: UUID, on: bool) -> BudgetInfo:
        """
        Suspend or resume automatic continuation.

        Clearing vacation mode does not create a period here; the next pass
        heals the gap using now as its reference.
        """
        with LogContext.bind(actor="user", budget_id=budget_id), session_scope(
            self._session_factory
        ) as session:
            budgets, _ = self._services(session)
            return budgets.set_vacation_mode(budget_id, on)

    # -------------------------------------------------------------------------
    # Reconciliation and settings
    # -------------------------------------------------------------------------

    def run_reconciliation_now(self) -> TickResult:
        """Run exactly one scheduler pass, synchronously."""
        return self._scheduler.tick()

    def set_timezone(self, name: str) -> str:
        """
        Raises:
            InvalidTimezoneError: If ``name`` is not a known IANA zone.
        """
        with LogContext.bind(actor="user"), session_scope(self._session_factory) as session:
            self._settings(session).set_timezone(name)
            return name

    def get_timezone(self) -> str:
        with session_scope(self._session_factory) as session:
            return self._settings(session).get_timezone_name()

    @staticmethod
    def common_timezones() -> tuple[tuple[str, str], ...]:
        return COMMON_TIMEZONES

    # -------------------------------------------------------------------------
    # Read accessors
    # -------------------------------------------------------------------------

    def current_period(self) -> PeriodSummary | None:
        with session_scope(self._session_factory) as session:
            return BudgetSelector(session).current_period()

    def periods_for_budget(self, budget_id: UUID | None = None) -> list[PeriodSummary]:
        with session_scope(self._session_factory) as session:
            return BudgetSelector(session).periods_for_budget(budget_id)

    def budget_history(self, limit: int = 10) -> list[PeriodSummary]:
        with session_scope(self._session_factory) as session:
            return BudgetSelector(session).budget_history(limit)

    def budget_trends(self, limit: int = 12) -> list[BudgetTrend]:
        with session_scope(self._session_factory) as session:
            return BudgetSelector(session).budget_trends(limit)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        self._scheduler.start()

    def stop(self, timeout: float = 30.0) -> None:
        self._scheduler.stop(timeout)

    @property
    def is_running(self) -> bool:
        return self._scheduler.is_running

    @property
    def scheduler(self) -> BudgetScheduler:
        return self._scheduler

    @property
    def config(self) -> EngineConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _services(self, session: Session) -> tuple[BudgetService, PeriodService]:
        periods = PeriodService(session, self._clock)
        return BudgetService(session, periods), periods

    def _settings(self, session: Session) -> SettingsService:
        return SettingsService(session, self._config.default_timezone)
