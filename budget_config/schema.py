"""
Configuration Schema (``budget_config.schema``).

Responsibility
--------------
Frozen dataclass for the engine's runtime settings and its structural
validation.  Every field has a default so an empty YAML file yields a
working in-memory configuration.

Invariants enforced
-------------------
* Immutable after load (frozen dataclass).
* ``validate()`` reports every problem at once, never only the first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from budget_kernel.domain.calendar import is_valid_timezone

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class EngineConfig:
    """Runtime configuration for the budget period engine."""

    database_url: str = "sqlite:///budget.db"
    tick_interval_seconds: float = 300
    run_on_start: bool = True
    # Periods created when a budget is activated at creation time
    forward_period_count: int = 1
    orphans_skip_vacation_budgets: bool = False
    log_level: str = "INFO"
    # Used until a timezone is stored in user_settings
    default_timezone: str = "UTC"

    def validate(self) -> list[str]:
        errors = []
        if not isinstance(self.database_url, str) or not self.database_url.strip():
            errors.append("database_url must be a non-empty string")
        if not isinstance(self.tick_interval_seconds, (int, float)) or isinstance(
            self.tick_interval_seconds, bool
        ) or self.tick_interval_seconds <= 0:
            errors.append("tick_interval_seconds must be a positive number")
        if not isinstance(self.run_on_start, bool):
            errors.append("run_on_start must be a boolean")
        if (
            not isinstance(self.forward_period_count, int)
            or isinstance(self.forward_period_count, bool)
            or self.forward_period_count < 1
        ):
            errors.append("forward_period_count must be an integer >= 1")
        if not isinstance(self.orphans_skip_vacation_budgets, bool):
            errors.append("orphans_skip_vacation_budgets must be a boolean")
        if str(self.log_level).upper() not in LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        if not is_valid_timezone(self.default_timezone):
            errors.append(f"default_timezone is not a valid IANA zone: {self.default_timezone!r}")
        return errors

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(str(self.log_level).upper())
