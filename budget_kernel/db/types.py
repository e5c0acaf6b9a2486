"""
Module: budget_kernel.db.types
Responsibility: Annotated type aliases for budget columns and the money
    rounding helper, so models and services share one precision definition.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money is Numeric(14, 2) everywhere.  No floats for amounts.
    - round_money() is the only sanctioned rounding for derived totals.
"""

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Numeric, String

# Currency amount with cent precision
Money = Numeric(14, 2)

# Budget / setting names
ShortText = String(200)

# Free-text expense description
LongText = String(1000)

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)


def round_money(value: Decimal | int | str) -> Decimal:
    """Round an amount to cents using ROUND_HALF_UP."""
    return Decimal(value).quantize(_QUANTUM, rounding=DEFAULT_ROUNDING)
