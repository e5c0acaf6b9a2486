"""
Budget Kernel - recurring budget period engine.

Turns a recurring budget rule ("500 every 7 days starting Monday") into a
sequence of non-overlapping periods and keeps them consistent with the clock:
- Timezone-aware period boundaries
- Exactly one active budget, at most one queued successor
- Idempotent status reconciliation
- Retroactive attachment of orphan expenses
"""

__version__ = "0.1.0"
