"""End-to-end smoke runs through the command-line entry point."""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd

from paramsim.cli import run_cli

CAPM_SCENARIO = {
    "expression": "Rf + (B * (Rm - Rf))",
    "parameters": [
        {"type": "precomputed", "name": "Rf", "values": [0.01, 0.02, 0.03]},
        {
            "type": "distribution",
            "name": "B",
            "distribution": {"dist": "uniform", "params": {"low": 0.8, "high": 1.4}},
        },
        {"type": "precomputed", "name": "Rm", "values": [0.05, 0.07, 0.09]},
    ],
}


def _write_scenario(tmp_path: Path, payload: dict) -> Path:
    path = tmp_path / "scenario.json"
    path.write_text(json.dumps(payload))
    return path


def test_smoke_run(tmp_path: Path) -> None:
    scenario = _write_scenario(tmp_path, {
        "expression": "x + y",
        "parameters": [
            {"type": "constant", "name": "x", "value": 1},
            {"type": "distribution", "name": "y", "distribution": {"dist": "normal", "params": {"mean": 0, "std": 1}}},
        ],
    })
    out_dir = tmp_path / "run"
    artefacts = run_cli(argv=[str(scenario), "--runs", "50", "--results-dir", str(out_dir), "--random-seed", "3"])
    assert artefacts is not None
    assert (out_dir / "results.csv").exists(), "Trial table missing"
    assert (out_dir / "summary.json").exists(), "Summary missing"
    assert (out_dir / "config_snapshot.json").exists(), "Config snapshot missing"
    frame = pd.read_csv(out_dir / "results.csv")
    assert list(frame.columns) == ["x", "y", "result"]
    assert len(frame) == 50
    snapshot = json.loads((out_dir / "config_snapshot.json").read_text())
    assert snapshot["config"]["random_seed"] == 3


def test_smoke_exhaustive_sensitivity(tmp_path: Path) -> None:
    scenario = _write_scenario(tmp_path, CAPM_SCENARIO)
    out_dir = tmp_path / "sweep"
    artefacts = run_cli(argv=[
        str(scenario), "--task", "sensitivity", "--exhaustive", "--multithreaded",
        "--runs", "20", "--results-dir", str(out_dir), "--no-plot", "--set", "max_workers=2",
    ])
    assert artefacts is not None and artefacts["effects_plot"] is None
    summary = pd.read_csv(out_dir / "sensitivity_summary.csv")
    assert len(summary) == 9
    effects = pd.read_csv(out_dir / "sensitivity_effects.csv")
    assert set(effects["parameter"]) == {"Rf", "Rm"}


def test_configuration_error_returns_none(tmp_path: Path) -> None:
    scenario = _write_scenario(tmp_path, CAPM_SCENARIO)
    assert run_cli(argv=[str(scenario), "--set", "not_a_field=1"]) is None
    assert run_cli(argv=[str(scenario), "--config-file", str(tmp_path / "absent.json")]) is None
