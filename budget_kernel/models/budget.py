"""
Module: budget_kernel.models.budget
Responsibility: ORM persistence for recurring budgets and their concrete
    periods.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - amount > 0, start_weekday in [0, 6], duration_days in [7, 28]
      (CHECK constraints mirroring domain.validation).
    - start_date <= end_date for every period.
    - uq_budget_period_range: UNIQUE(budget_id, start_date, end_date) is the
      last-resort guard when two writers race past the overlap check.
    - Deleting a budget deletes its periods (ORM cascade plus ON DELETE
      CASCADE).

Non-goals:
    - This model does NOT enforce non-overlapping date ranges; that is
      checked by PeriodService before insertion.
    - At most one active / upcoming budget is maintained by BudgetService,
      not by a constraint.
    - actual_spent is never stored; selectors derive it from expenses.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_kernel.db.base import TimestampedBase, UUIDString
from budget_kernel.db.types import Money, ShortText
from budget_kernel.domain.dtos import PeriodStatus


class Budget(TimestampedBase):
    """
    A recurring spending rule: ``amount`` every ``duration_days`` days
    starting on ``start_weekday`` (0 = Sunday).
    """

    __tablename__ = "budgets"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_budget_amount_positive"),
        CheckConstraint(
            "start_weekday >= 0 AND start_weekday <= 6",
            name="ck_budget_start_weekday",
        ),
        CheckConstraint(
            "duration_days >= 7 AND duration_days <= 28",
            name="ck_budget_duration_days",
        ),
        Index("idx_budget_is_active", "is_active"),
        Index("idx_budget_is_upcoming", "is_upcoming"),
    )

    name: Mapped[str] = mapped_column(ShortText, nullable=False)

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    start_weekday: Mapped[int] = mapped_column(Integer, nullable=False)

    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_upcoming: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Suspends automatic continuation while set
    vacation_mode: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    periods: Mapped[list["BudgetPeriod"]] = relationship(
        back_populates="budget",
        cascade="all, delete-orphan",
        order_by="BudgetPeriod.start_date",
    )

    def __repr__(self) -> str:
        flags = [
            name
            for name, on in (
                ("active", self.is_active),
                ("upcoming", self.is_upcoming),
                ("vacation", self.vacation_mode),
            )
            if on
        ]
        return f"<Budget {self.name!r} {self.amount}/{self.duration_days}d {','.join(flags)}>"


class BudgetPeriod(TimestampedBase):
    """
    One concrete, inclusive date window of a budget.

    ``target_amount`` is copied from the budget at creation so later budget
    edits do not rewrite historical targets.
    """

    __tablename__ = "budget_periods"

    __table_args__ = (
        UniqueConstraint(
            "budget_id", "start_date", "end_date", name="uq_budget_period_range"
        ),
        CheckConstraint("start_date <= end_date", name="ck_budget_period_dates"),
        CheckConstraint(
            "status IN ('upcoming', 'active', 'completed')",
            name="ck_budget_period_status",
        ),
        Index("idx_budget_period_budget", "budget_id"),
        Index("idx_budget_period_dates", "start_date", "end_date"),
        Index("idx_budget_period_status", "status"),
    )

    budget_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("budgets.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Period boundaries (inclusive, local calendar dates)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    target_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=PeriodStatus.UPCOMING.value,
        nullable=False,
    )

    budget: Mapped[Budget] = relationship(back_populates="periods")

    def __repr__(self) -> str:
        return f"<BudgetPeriod {self.start_date}..{self.end_date}: {self.status}>"

    def contains_date(self, check_date: date) -> bool:
        """Check if a date falls within this period."""
        return self.start_date <= check_date <= self.end_date
