"""Command-line entry point: run a scenario file or sweep its precomputed factors."""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from .config import EngineConfig, load_engine_config
from .exceptions import SimulationError
from .scenario import build_simulation, load_scenario
from .sensitivity import ExhaustiveSensitivitySimulation, SensitivitySimulation, SensitivitySimulationResults
from .simulation import SimulationResults

try:  # pragma: no cover - optional graphical dependency
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
except ModuleNotFoundError:  # pragma: no cover - gracefully degrade when unavailable
    plt = None  # type: ignore[assignment]


def _coerce_value(value: str) -> Any:
    for cast in (int, float):
        try:
            return cast(value)
        except (ValueError, TypeError):
            continue
    lowered = value.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered in {"none", "null"}:
        return None
    return value


def _parse_overrides(set_args: Optional[List[str]]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for arg in set_args or []:
        if "=" not in arg:
            print(f"[CLI] Ignoring malformed override '{arg}' (expected KEY=VALUE).")
            continue
        key, raw_value = arg.split("=", 1)
        overrides[key.strip()] = _coerce_value(raw_value.strip())
    return overrides


def _persist_config_snapshot(
    results_directory: Path,
    config: EngineConfig,
    cli_args: Optional[Dict[str, Any]],
) -> Path:
    """Store the engine configuration alongside simulation results."""
    payload = {
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "cli_args": cli_args or {},
        "config": config.snapshot(),
    }
    snapshot_path = results_directory / "config_snapshot.json"
    with snapshot_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True, default=str)
    return snapshot_path


def _plot_sensitivity_effects(effects_df: pd.DataFrame, output_dir: Path) -> Optional[Path]:
    if plt is None:
        print("[CLI] Matplotlib is unavailable; skipping sensitivity effects plot.")
        return None
    if effects_df.empty:
        return None
    subset = effects_df.sort_values("normalized_effect", ascending=False)
    fig, ax = plt.subplots(figsize=(9, 3))
    ax.bar(subset["parameter"], subset["normalized_effect"], color="#3498db")
    ax.set_title(f"{subset['metric'].iloc[0]} sensitivity")
    ax.set_ylabel("Normalized effect")
    ax.set_xlabel("Parameter")
    ax.set_ylim(0, 1)
    fig.tight_layout()
    plot_path = output_dir / "sensitivity_effects.png"
    fig.savefig(plot_path, dpi=200, bbox_inches="tight")
    plt.close(fig)
    return plot_path


def _default_results_dir(task: str) -> Path:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return Path(f"./{task}_results_{timestamp}")


def run_scenario(
    scenario_path: str,
    runs: int,
    config: EngineConfig,
    output_dir: Optional[str] = None,
    cli_args: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Run a scenario once and write its trials and summary statistics."""
    simulation = build_simulation(load_scenario(scenario_path), config)
    root_dir = Path(output_dir) if output_dir else _default_results_dir("run")
    root_dir.mkdir(parents=True, exist_ok=True)
    snapshot_path = _persist_config_snapshot(root_dir, config, cli_args)
    print(f"[Run] Simulating '{simulation.expression}' over {runs} trials")
    results: SimulationResults = simulation.simulate(runs)

    results_path = root_dir / "results.csv"
    results.to_frame().to_csv(results_path, index=False)
    summary = {key: float(value) for key, value in results.describe().items()}
    interval = results.confidence_interval()
    summary["ci95_lower"] = interval.lower_bound
    summary["ci95_upper"] = interval.upper_bound
    summary_path = root_dir / "summary.json"
    with summary_path.open("w", encoding="utf-8") as handle:
        json.dump(summary, handle, indent=2)
    print(f"[Run] mean={results.mean:.6g} median={results.median:.6g} sd={results.standard_deviation:.6g}")
    print(f"[Run] {interval}")
    print(f"[Run] Results written to {root_dir}")
    return {
        "results_directory": str(root_dir),
        "results_csv": str(results_path),
        "summary_json": str(summary_path),
        "config_snapshot": str(snapshot_path),
    }


def run_sensitivity_sweep(
    scenario_path: str,
    runs: int,
    config: EngineConfig,
    exhaustive: bool = False,
    multithreaded: bool = False,
    metric: str = "mean",
    output_dir: Optional[str] = None,
    plot: bool = True,
    cli_args: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Sweep a scenario's precomputed factors and write summary and effects tables."""
    simulation = build_simulation(load_scenario(scenario_path), config)
    root_dir = Path(output_dir) if output_dir else _default_results_dir("sensitivity")
    root_dir.mkdir(parents=True, exist_ok=True)
    snapshot_path = _persist_config_snapshot(root_dir, config, cli_args)
    print(f"[Sensitivity] Configuration snapshot stored in: {snapshot_path}")

    sweep: SensitivitySimulationResults
    if exhaustive:
        runner = ExhaustiveSensitivitySimulation(simulation)
        print(f"[Sensitivity] Running {runner.number_of_scenarios} exhaustive scenarios x {runs} trials")
        sweep = runner.simulate_multithreaded(runs) if multithreaded else runner.simulate(runs)
    else:
        runner = SensitivitySimulation(simulation)
        print(f"[Sensitivity] Running {runner.number_of_factors} paired scenarios x {runs} trials")
        sweep = runner.simulate(runs)

    summary_df = sweep.summary_frame()
    summary_path = root_dir / "sensitivity_summary.csv"
    summary_df.to_csv(summary_path, index=False)
    effects_df = sweep.factor_effects(metric)
    effects_path = root_dir / "sensitivity_effects.csv"
    effects_df.to_csv(effects_path, index=False)
    plot_path = _plot_sensitivity_effects(effects_df, root_dir) if plot else None

    best_key, best = sweep.highest_mean
    worst_key, worst = sweep.lowest_mean
    print(f"[Sensitivity] Highest mean {best.mean:.6g} at {best_key}")
    print(f"[Sensitivity] Lowest mean {worst.mean:.6g} at {worst_key}")
    return {
        "results_directory": str(root_dir),
        "summary_csv": str(summary_path),
        "effects_csv": str(effects_path),
        "effects_plot": str(plot_path) if plot_path else None,
        "config_snapshot": str(snapshot_path),
    }


def _parse_cli_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="paramsim scenario runner and sensitivity sweeper")
    parser.add_argument(
        "--task",
        choices=["run", "sensitivity"],
        default="run",
        help="Run the scenario once, or sweep its precomputed factor parameters.",
    )
    parser.add_argument("scenario", help="Path to a JSON scenario file.")
    parser.add_argument("--runs", type=int, default=1000, help="Trials per simulation (default: 1000).")
    parser.add_argument("--results-dir", help="Output directory for generated artefacts.")
    parser.add_argument("--random-seed", type=int, help="Seed for reproducible runs.")
    parser.add_argument("--config-file", help="JSON file with engine configuration overrides.")
    parser.add_argument(
        "--set",
        action="append",
        metavar="KEY=VALUE",
        help="Override an engine configuration attribute (repeatable).",
    )
    parser.add_argument(
        "--exhaustive",
        action="store_true",
        help="Sensitivity: run every combination of factor levels instead of pairing them.",
    )
    parser.add_argument(
        "--multithreaded",
        action="store_true",
        help="Sensitivity: run exhaustive scenarios on a thread pool.",
    )
    parser.add_argument(
        "--metric",
        default="mean",
        help="Sensitivity: statistic used for the factor effects table (default: mean).",
    )
    parser.add_argument("--no-plot", action="store_true", help="Skip the sensitivity effects plot.")
    parser.add_argument("--log-level", help="Logging level (default: engine config log_level).")
    return parser.parse_args(argv)


def run_cli(
    base_config: Optional[EngineConfig] = None,
    argv: Optional[Iterable[str]] = None,
) -> Optional[Dict[str, Any]]:
    """Parse CLI arguments and dispatch the requested task.

    Returns the task's artefact dictionary, or ``None`` when configuration fails.
    """
    args = _parse_cli_args(argv)
    base_cfg = base_config or EngineConfig()
    try:
        if args.config_file:
            base_cfg = load_engine_config(args.config_file, base_cfg)
        overrides = _parse_overrides(args.set)
        if args.random_seed is not None:
            overrides["random_seed"] = args.random_seed
        if overrides:
            base_cfg = base_cfg.copy_with_overrides(overrides)
    except (FileNotFoundError, ValueError, KeyError) as exc:
        print(f"[CLI] Configuration error: {exc}")
        return None

    logging.basicConfig(
        level=(args.log_level or base_cfg.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cli_args = vars(args)
    try:
        if args.task == "sensitivity":
            return run_sensitivity_sweep(
                args.scenario,
                args.runs,
                base_cfg,
                exhaustive=args.exhaustive,
                multithreaded=args.multithreaded,
                metric=args.metric,
                output_dir=args.results_dir,
                plot=not args.no_plot,
                cli_args=cli_args,
            )
        return run_scenario(args.scenario, args.runs, base_cfg, output_dir=args.results_dir, cli_args=cli_args)
    except (SimulationError, FileNotFoundError, ValueError) as exc:
        print(f"[CLI] {args.task} task failed: {exc}")
        raise


def main(argv: Optional[Iterable[str]] = None) -> None:  # pragma: no cover - thin wrapper
    run_cli(argv=argv)


if __name__ == "__main__":  # pragma: no cover
    main()


__all__ = ["run_cli", "run_scenario", "run_sensitivity_sweep", "main"]
