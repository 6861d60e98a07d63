"""
Engine configuration for paramsim.

A single :class:`EngineConfig` dataclass carries every tunable default used by
the resolution, simulation and sensitivity engines: inner run counts for
nested simulations, the resimulation budget for bound repair, probability
tolerance for discrete outcomes, and thread fan-out settings.

Usage
-----
    >>> config = EngineConfig()
    >>> config = config.copy_with_overrides({"random_seed": 42, "max_workers": 2})

Loading overrides from disk:

    >>> config = load_engine_config("engine.json")

The JSON file holds an ``overrides`` mapping of field names to values.
"""

from __future__ import annotations

import copy
import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass
class EngineConfig:
    """Tunable defaults for resolving and composing simulation parameters."""

    random_seed: Optional[int] = None

    # Inner run counts used when a nested simulation is summarised per trial
    summary_run_count: int = 10000
    dependent_summary_run_count: int = 1000

    max_resimulations: int = 10
    probability_tolerance: float = 0.01

    use_parallel: bool = True
    parallel_threshold: int = 64
    max_workers: int = (
        min(8, os.cpu_count() - 1) if os.cpu_count() and os.cpu_count() > 1 else 1
    )

    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.summary_run_count < 1 or self.dependent_summary_run_count < 1:
            raise ValueError("Summary run counts must be at least 1.")
        if self.max_resimulations < 0:
            raise ValueError("max_resimulations cannot be negative.")
        if self.max_workers < 1:
            self.max_workers = 1

    @property
    def parallel_enabled(self) -> bool:
        return self.use_parallel and self.max_workers > 1

    def snapshot(self) -> Dict[str, Any]:
        """Return a deep-copied, JSON-safe representation of the configuration."""
        return asdict(self)

    def copy_with_overrides(self, overrides: Optional[Dict[str, Any]] = None) -> "EngineConfig":
        """Return a new config with the provided overrides merged in."""
        new_cfg = copy.deepcopy(self)
        if overrides:
            _apply_overrides(new_cfg, overrides)
        new_cfg.__post_init__()
        return new_cfg


def _apply_overrides(config: EngineConfig, overrides: Dict[str, Any]) -> None:
    """Merge ``overrides`` into ``config``, rejecting unknown attributes."""
    for key, value in overrides.items():
        if not hasattr(config, key):
            raise KeyError(f"Unknown configuration attribute '{key}' in engine override.")
        setattr(config, key, copy.deepcopy(value))


def load_engine_config(
    path: str | os.PathLike[str],
    base: Optional[EngineConfig] = None,
) -> EngineConfig:
    """Load engine overrides from a JSON file and apply them to ``base``."""
    file_path = Path(path).expanduser().resolve()
    if not file_path.exists():
        raise FileNotFoundError(f"Engine configuration file not found: {file_path}")
    with file_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    overrides = payload.get("overrides", payload) if isinstance(payload, dict) else None
    if not isinstance(overrides, dict):
        raise ValueError(f"Engine configuration {file_path} must define an 'overrides' dictionary.")
    return (base or EngineConfig()).copy_with_overrides(overrides)


_DEFAULT_CONFIG: Optional[EngineConfig] = None


def get_default_config() -> EngineConfig:
    global _DEFAULT_CONFIG
    if _DEFAULT_CONFIG is None:
        _DEFAULT_CONFIG = EngineConfig()
    return _DEFAULT_CONFIG


__all__ = ["EngineConfig", "load_engine_config", "get_default_config"]
