"""
budget_config -- single public entrypoint for engine configuration.

Responsibility:
    ``get_engine_config()`` is the only way runtime code obtains settings.
    It reads the packaged defaults, the YAML file named by ``path`` or the
    ``BUDGET_ENGINE_CONFIG`` environment variable, and ``BUDGET_ENGINE_*``
    overrides.

Architecture position:
    Configuration sits beside budget_batch and above budget_kernel.  The
    kernel MUST NEVER import from budget_config; the engine facade passes
    plain values down.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from budget_config.loader import load_engine_config
from budget_config.schema import EngineConfig

_logger = logging.getLogger("budget_kernel.config")

CONFIG_PATH_ENV = "BUDGET_ENGINE_CONFIG"


def get_engine_config(path: Path | str | None = None) -> EngineConfig:
    """
    Load the engine configuration.

    Args:
        path: YAML override file.  Falls back to ``$BUDGET_ENGINE_CONFIG``.

    Raises:
        FileNotFoundError: The override file does not exist.
        ValueError: The merged configuration is invalid.
    """
    if path is None:
        path = os.environ.get(CONFIG_PATH_ENV) or None
    config = load_engine_config(path)
    _logger.info(
        "BUDGET_CONFIG_TRACE",
        extra={
            "config_path": str(path) if path else None,
            "tick_interval_seconds": config.tick_interval_seconds,
            "forward_period_count": config.forward_period_count,
            "default_timezone": config.default_timezone,
            "log_level": config.log_level,
        },
    )
    return config


__all__ = ["EngineConfig", "get_engine_config", "load_engine_config"]
