"""Database layer - engine, base classes, and column types."""

from budget_kernel.db.base import UUID, Base, TimestampedBase, UTCDateTime, UUIDString
from budget_kernel.db.engine import build_engine, create_tables, session_scope
from budget_kernel.db.types import LongText, Money, ShortText, round_money

__all__ = [
    "build_engine",
    "session_scope",
    "create_tables",
    "Base",
    "TimestampedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
    "Money",
    "ShortText",
    "LongText",
    "round_money",
]
