from __future__ import annotations

import json
from pathlib import Path

import pytest

from paramsim.config import EngineConfig, get_default_config, load_engine_config


def test_overrides_return_new_config() -> None:
    base = EngineConfig()
    updated = base.copy_with_overrides({"random_seed": 42, "max_workers": 2})
    assert updated.random_seed == 42 and updated.max_workers == 2
    assert base.random_seed is None


def test_unknown_override_rejected() -> None:
    with pytest.raises(KeyError):
        EngineConfig().copy_with_overrides({"no_such_field": 1})


def test_invalid_values_rejected() -> None:
    with pytest.raises(ValueError):
        EngineConfig(summary_run_count=0)
    with pytest.raises(ValueError):
        EngineConfig().copy_with_overrides({"max_resimulations": -1})


def test_parallel_needs_more_than_one_worker() -> None:
    assert not EngineConfig(use_parallel=True, max_workers=1).parallel_enabled
    assert EngineConfig(use_parallel=True, max_workers=2).parallel_enabled
    assert not EngineConfig(use_parallel=False, max_workers=4).parallel_enabled


def test_snapshot_is_json_safe() -> None:
    snapshot = EngineConfig(random_seed=3).snapshot()
    assert json.loads(json.dumps(snapshot))["random_seed"] == 3


def test_load_from_file(tmp_path: Path) -> None:
    path = tmp_path / "engine.json"
    path.write_text(json.dumps({"overrides": {"summary_run_count": 250, "use_parallel": False}}))
    config = load_engine_config(path)
    assert config.summary_run_count == 250
    assert config.use_parallel is False


def test_load_missing_or_malformed_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_engine_config(tmp_path / "absent.json")
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"overrides": [1, 2]}))
    with pytest.raises(ValueError):
        load_engine_config(bad)


def test_default_config_is_shared() -> None:
    assert get_default_config() is get_default_config()
