"""
Configuration Loader (``budget_config.loader``).

Responsibility
--------------
Loads the packaged defaults, an optional YAML override file, and
``BUDGET_ENGINE_*`` environment variables, in that order of precedence
(last wins), into an ``EngineConfig``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys, uncoercible environment values or invalid settings
  -> ``ValueError`` listing every problem.
"""

from __future__ import annotations

import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from budget_config.schema import EngineConfig

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_PREFIX = "BUDGET_ENGINE_"

_FIELD_TYPES: dict[str, type] = {
    "database_url": str,
    "tick_interval_seconds": float,
    "run_on_start": bool,
    "forward_period_count": int,
    "orphans_skip_vacation_budgets": bool,
    "log_level": str,
    "default_timezone": str,
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its ``engine`` section.

    A file without an ``engine`` key is read as a flat mapping.  An empty
    file yields an empty dict.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    section = data.get("engine", data)
    if not isinstance(section, dict):
        raise ValueError(f"{path}: 'engine' must be a mapping")
    return dict(section)


def _coerce(name: str, raw: str) -> Any:
    target = _FIELD_TYPES[name]
    if target is bool:
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f"{ENV_PREFIX}{name.upper()}: not a boolean: {raw!r}")
    if target is int:
        try:
            return int(raw)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}{name.upper()}: not an integer: {raw!r}") from None
    if target is float:
        try:
            return float(raw)
        except ValueError:
            raise ValueError(f"{ENV_PREFIX}{name.upper()}: not a number: {raw!r}") from None
    return raw


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Values of ``BUDGET_ENGINE_<FIELD>`` variables, coerced to field types."""
    result: dict[str, Any] = {}
    problems = []
    for name in _FIELD_TYPES:
        key = f"{ENV_PREFIX}{name.upper()}"
        if key not in environ:
            continue
        try:
            result[name] = _coerce(name, environ[key])
        except ValueError as exc:
            problems.append(str(exc))
    if problems:
        raise ValueError("Invalid engine configuration: " + "; ".join(problems))
    return result


def parse_engine_config(data: Mapping[str, Any]) -> EngineConfig:
    """
    Build and validate an EngineConfig from a flat mapping.

    Raises:
        ValueError: Unknown keys or invalid values, all listed.
    """
    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown engine configuration keys: {', '.join(unknown)}")

    config = EngineConfig(**dict(data))
    errors = config.validate()
    if errors:
        raise ValueError("Invalid engine configuration: " + "; ".join(errors))
    return config


def load_engine_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """
    Defaults, then ``path`` (if given), then environment overrides.

    Args:
        path: Optional YAML override file.
        environ: Environment mapping; defaults to ``os.environ``.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data.update(load_yaml_file(Path(path)))
    data.update(env_overrides(os.environ if environ is None else environ))
    return parse_engine_config(data)
