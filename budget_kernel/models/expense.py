"""
Module: budget_kernel.models.expense
Responsibility: Minimal ORM shape of the expense table owned by the
    expense-entry layer.  The budget engine only ever writes
    ``budget_period_id``.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - budget_period_id is nullable; NULL marks an orphan expense.
    - ON DELETE SET NULL: removing a period detaches, never deletes, its
      expenses.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from budget_kernel.db.base import TimestampedBase, UTCDateTime, UUIDString
from budget_kernel.db.types import LongText, Money


class Expense(TimestampedBase):
    __tablename__ = "expenses"

    __table_args__ = (
        Index("idx_expense_budget_period", "budget_period_id"),
        Index("idx_expense_timestamp", "timestamp"),
    )

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    description: Mapped[str | None] = mapped_column(LongText, nullable=True)

    # Normalised to UTC on write; always read back aware UTC
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    budget_period_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("budget_periods.id", ondelete="SET NULL"),
        nullable=True,
    )

    @property
    def is_orphan(self) -> bool:
        return self.budget_period_id is None

    def __repr__(self) -> str:
        return f"<Expense {self.amount} at {self.timestamp.isoformat()}>"
