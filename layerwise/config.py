"""Planner tunables.

Values resolve in order: ``LAYERWISE_*`` environment variable, then
``~/.layerwise/config.json``, then the built-in default.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_ENV_PREFIX = "LAYERWISE_"


@dataclass(frozen=True)
class PlannerSettings:
    gpu_overhead: int = 0  # bytes reserved per GPU beyond the vendor minimum
    context_cache_ttl: float = 300.0  # seconds
    vram_budget_fraction: float = 0.8
    min_context: int = 512
    default_context: int = 4096
    efficiency_core_mhz: float = 3000.0


def _config_path() -> Path:
    base = os.environ.get("LAYERWISE_CONFIG_DIR")
    root = Path(base) if base else Path.home() / ".layerwise"
    return root / "config.json"


def load_config() -> dict[str, Any]:
    """Load the local config from ``~/.layerwise/config.json``."""
    path = _config_path()
    if path.exists():
        try:
            data = json.loads(path.read_text())
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Persist config to ``~/.layerwise/config.json``."""
    path = _config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config, indent=2) + "\n")


def load_settings() -> PlannerSettings:
    """Resolve :class:`PlannerSettings` from env vars, config file and defaults."""
    file_config = load_config()
    defaults = PlannerSettings()
    values: dict[str, Any] = {}

    for f in fields(PlannerSettings):
        default = getattr(defaults, f.name)
        cast = type(default)
        raw = os.environ.get(_ENV_PREFIX + f.name.upper())
        source = "env"
        if raw is None:
            raw = file_config.get(f.name)
            source = "config file"
        if raw is None:
            continue
        try:
            value = cast(raw)
        except (TypeError, ValueError):
            logger.warning(
                "Ignoring invalid %s value for %s: %r", source, f.name, raw
            )
            continue
        if value < 0:
            logger.warning("Ignoring negative %s value for %s: %r", source, f.name, raw)
            continue
        values[f.name] = value

    return PlannerSettings(**values)
