"""
Sensitivity analysis over precomputed factor parameters.

Every :class:`~paramsim.parameters.PrecomputedParameter` in a simulation is
treated as a factor whose values are levels to sweep, not a per-trial vector.
Each scenario substitutes one level per factor as a constant and runs the
full simulation.

* :class:`SensitivitySimulation` pairs the factors up: scenario ``f`` uses the
  ``f``-th value of every factor, so all factors must be the same length.
* :class:`ExhaustiveSensitivitySimulation` runs the Cartesian product of all
  factor levels, optionally across a thread pool.

Scenario keys read ``"name1 = v1; name2 = v2"`` with factors in declaration
order. Results of the multithreaded run are keyed in lexicographic order of
those strings, so ``"a = 10"`` sorts before ``"a = 2"``.
"""

from __future__ import annotations

import itertools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .config import EngineConfig
from .exceptions import (
    InvalidParameterError,
    MissingPrecomputedParameterError,
    ParameterInExpressionError,
    PrecomputedValueCountError,
    UnresolvedVariableError,
)
from .expressions import Expression, parse_expression
from .parameters import ConstantParameter, Parameter, PrecomputedParameter
from .resolution import ResolutionContext
from .simulation import Simulation, SimulationResults, validate_parameters

logger = logging.getLogger(__name__)

ScenarioFactors = Dict[str, float]

_SUMMARY_COLUMNS = (
    "mean",
    "median",
    "standard_deviation",
    "minimum",
    "lower_quartile",
    "upper_quartile",
    "maximum",
)


def format_factor_value(value: float) -> str:
    """Render a level for a scenario key: ``1`` rather than ``1.0``, ``0.5`` as is."""
    number = float(value)
    if number.is_integer() and abs(number) < 1e15:
        return str(int(number))
    return repr(number)


def scenario_key(assignment: ScenarioFactors) -> str:
    return "; ".join(f"{name} = {format_factor_value(value)}" for name, value in assignment.items())


def factor_parameters(parameters: Sequence[Parameter]) -> List[PrecomputedParameter]:
    return [p for p in parameters if isinstance(p, PrecomputedParameter)]


def _scenario_parameters(parameters: Sequence[Parameter], assignment: ScenarioFactors) -> List[Parameter]:
    """Copy of ``parameters`` with every factor replaced by its scenario constant."""
    return [
        ConstantParameter(p.name, assignment[p.name]) if isinstance(p, PrecomputedParameter) else p
        for p in parameters
    ]


def _run_scenario(
    expression: Expression,
    parameters: Sequence[Parameter],
    assignment: ScenarioFactors,
    number_of_simulations: int,
    config: EngineConfig,
    context: ResolutionContext,
) -> SimulationResults:
    scenario = Simulation(expression, _scenario_parameters(parameters, assignment), config=config)
    return scenario.simulate(number_of_simulations, random_state=context.rng)


def _store(results: Dict[str, SimulationResults], key: str, value: SimulationResults) -> None:
    if key in results:
        raise InvalidParameterError(f"Scenario '{key}' appears more than once; factor levels must be distinct.")
    results[key] = value


class SensitivitySimulation:
    """Paired sweep: scenario ``f`` takes the ``f``-th value of every factor.

    Raises
    ------
    MissingPrecomputedParameterError
        If the simulation has no precomputed factor parameters.
    PrecomputedValueCountError
        If the factors have differing numbers of values.
    """

    def __init__(self, simulation: Simulation) -> None:
        factors = factor_parameters(simulation.parameters)
        if not factors:
            raise MissingPrecomputedParameterError(
                "The simulation needs at least one PrecomputedParameter to run a sensitivity analysis."
            )
        length = len(factors[0])
        for factor in factors[1:]:
            if len(factor) != length:
                raise PrecomputedValueCountError(
                    f"'{factor.name}' has {len(factor)} values but '{factors[0].name}' has {length}; "
                    "paired factors must have the same number of values."
                )
        self.simulation = simulation
        self._factors = factors
        self.number_of_factors = length

    def scenarios(self) -> Iterator[ScenarioFactors]:
        for index in range(self.number_of_factors):
            yield {factor.name: float(factor.values[index]) for factor in self._factors}

    def simulate(
        self,
        number_of_simulations: int,
        random_state: "np.random.Generator | int | None" = None,
    ) -> "SensitivitySimulationResults":
        simulation = self.simulation
        context = simulation.resolution_context(random_state)
        results: Dict[str, SimulationResults] = {}
        factors: Dict[str, ScenarioFactors] = {}
        for assignment in self.scenarios():
            key = scenario_key(assignment)
            logger.info("Running sensitivity scenario %s", key)
            _store(results, key, _run_scenario(
                simulation.expression, simulation.parameters, assignment,
                number_of_simulations, simulation.config, context,
            ))
            factors[key] = assignment
        return SensitivitySimulationResults(
            results, simulation.parameters, simulation.expression, number_of_simulations,
            exhaustive=False, multithreaded=False, config=simulation.config,
            scenario_factors=factors, context=context,
        )


class ExhaustiveSensitivitySimulation:
    """Every combination of one level from each factor, in factor declaration order."""

    def __init__(self, simulation: Simulation) -> None:
        factors = factor_parameters(simulation.parameters)
        if not factors:
            raise MissingPrecomputedParameterError(
                "The simulation needs at least one PrecomputedParameter to run an exhaustive sensitivity analysis."
            )
        self.simulation = simulation
        self._factors = factors

    @property
    def number_of_scenarios(self) -> int:
        count = 1
        for factor in self._factors:
            count *= len(factor)
        return count

    def scenarios(self) -> Iterator[ScenarioFactors]:
        names = [factor.name for factor in self._factors]
        levels = [[float(v) for v in factor.values] for factor in self._factors]
        for combo in itertools.product(*levels):
            yield dict(zip(names, combo))

    def simulate(
        self,
        number_of_simulations: int,
        random_state: "np.random.Generator | int | None" = None,
    ) -> "SensitivitySimulationResults":
        simulation = self.simulation
        context = simulation.resolution_context(random_state)
        results: Dict[str, SimulationResults] = {}
        factors: Dict[str, ScenarioFactors] = {}
        total = self.number_of_scenarios
        for index, assignment in enumerate(self.scenarios()):
            key = scenario_key(assignment)
            logger.info("Running exhaustive scenario %d/%d: %s", index + 1, total, key)
            _store(results, key, _run_scenario(
                simulation.expression, simulation.parameters, assignment,
                number_of_simulations, simulation.config, context,
            ))
            factors[key] = assignment
        return SensitivitySimulationResults(
            results, simulation.parameters, simulation.expression, number_of_simulations,
            exhaustive=True, multithreaded=False, config=simulation.config,
            scenario_factors=factors, context=context,
        )

    def simulate_multithreaded(
        self,
        number_of_simulations: int,
        random_state: "np.random.Generator | int | None" = None,
    ) -> "SensitivitySimulationResults":
        """Run every scenario on a thread pool; keys come back lexicographically sorted."""
        simulation = self.simulation
        config = simulation.config
        context = simulation.resolution_context(random_state)
        assignments = list(self.scenarios())
        children = context.spawn(len(assignments))
        collected: Dict[str, SimulationResults] = {}
        factors: Dict[str, ScenarioFactors] = {}
        lock = threading.Lock()

        def _task(index: int) -> None:
            # Each task works from its own snapshot of the inputs
            local_parameters = simulation.parameters
            local_assignment = dict(assignments[index])
            key = scenario_key(local_assignment)
            outcome = _run_scenario(
                simulation.expression, local_parameters, local_assignment,
                number_of_simulations, config, children[index],
            )
            with lock:
                _store(collected, key, outcome)
                factors[key] = local_assignment

        logger.info("Running %d scenarios across %d threads", len(assignments), config.max_workers)
        with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
            list(executor.map(_task, range(len(assignments))))

        ordered = {key: collected[key] for key in sorted(collected)}
        return SensitivitySimulationResults(
            ordered, simulation.parameters, simulation.expression, number_of_simulations,
            exhaustive=True, multithreaded=True, config=config,
            scenario_factors={key: factors[key] for key in ordered}, context=context,
        )


class SensitivitySimulationResults:
    """Scenario key to :class:`SimulationResults`, plus cross-scenario summaries and edits."""

    def __init__(
        self,
        results: Dict[str, SimulationResults],
        parameters: Sequence[Parameter],
        expression: Expression,
        number_of_simulations: int,
        exhaustive: bool,
        multithreaded: bool,
        config: EngineConfig,
        scenario_factors: Optional[Dict[str, ScenarioFactors]] = None,
        context: Optional[ResolutionContext] = None,
    ) -> None:
        self.results = results
        self._parameters: List[Parameter] = list(parameters)
        self._expression = expression
        self.number_of_simulations = number_of_simulations
        self.exhaustive = exhaustive
        self.multithreaded = multithreaded
        self.config = config
        self.scenario_factors = scenario_factors or {}
        self._context = context

    @property
    def parameters(self) -> List[Parameter]:
        return list(self._parameters)

    @property
    def expression(self) -> Expression:
        return self._expression

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results.items())

    # ------------------------------------------------------------------
    # Cross-scenario extremes (first scenario in key order wins ties)
    # ------------------------------------------------------------------
    def _extreme(self, attribute: str, highest: bool) -> Tuple[str, SimulationResults]:
        keys = list(self.results)
        values = np.array([getattr(self.results[key], attribute) for key in keys], dtype=np.float64)
        # Undefined statistics (NaN) never win; if all are undefined the first scenario is returned
        if np.isnan(values).all():
            index = 0
        else:
            index = int(np.nanargmax(values) if highest else np.nanargmin(values))
        return keys[index], self.results[keys[index]]

    @property
    def highest_mean(self) -> Tuple[str, SimulationResults]:
        return self._extreme("mean", highest=True)

    @property
    def highest_median(self) -> Tuple[str, SimulationResults]:
        return self._extreme("median", highest=True)

    @property
    def highest_standard_deviation(self) -> Tuple[str, SimulationResults]:
        return self._extreme("standard_deviation", highest=True)

    @property
    def lowest_mean(self) -> Tuple[str, SimulationResults]:
        return self._extreme("mean", highest=False)

    @property
    def lowest_median(self) -> Tuple[str, SimulationResults]:
        return self._extreme("median", highest=False)

    @property
    def lowest_standard_deviation(self) -> Tuple[str, SimulationResults]:
        return self._extreme("standard_deviation", highest=False)

    @property
    def best_possible_outcome(self) -> Tuple[str, SimulationResults]:
        return self._extreme("maximum", highest=True)

    @property
    def worst_possible_outcome(self) -> Tuple[str, SimulationResults]:
        return self._extreme("minimum", highest=False)

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------
    def summary_frame(self) -> pd.DataFrame:
        """One row per scenario: key, factor levels, and summary statistics."""
        records = []
        for key, result in self.results.items():
            record: Dict[str, object] = {"scenario": key}
            record.update(self.scenario_factors.get(key, {}))
            for column in _SUMMARY_COLUMNS:
                record[column] = getattr(result, column)
            records.append(record)
        return pd.DataFrame(records)

    def factor_effects(self, statistic: str = "mean") -> pd.DataFrame:
        """Spread of ``statistic`` across each factor's levels and its share of the total spread."""
        summary_df = self.summary_frame()
        if statistic not in summary_df.columns:
            raise KeyError(f"Unknown statistic '{statistic}'. Available: {', '.join(_SUMMARY_COLUMNS)}")
        names = [factor.name for factor in factor_parameters(self._parameters)]
        spreads: Dict[str, float] = {}
        total_range = 0.0
        for name in names:
            grouped = summary_df.groupby(name)[statistic].mean() if name in summary_df.columns else pd.Series(dtype=float)
            spread = 0.0 if grouped.empty else float(grouped.max() - grouped.min())
            spreads[name] = spread
            total_range += spread
        effect_rows = []
        for name in names:
            contribution = spreads[name] / total_range if total_range > 0 else 0.0
            effect_rows.append({
                "metric": statistic,
                "parameter": name,
                "normalized_effect": contribution,
                "range": spreads[name],
            })
        return pd.DataFrame(effect_rows, columns=["metric", "parameter", "normalized_effect", "range"])

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def _index_of(self, parameter: Union[Parameter, str]) -> int:
        name = parameter if isinstance(parameter, str) else parameter.name
        for index, existing in enumerate(self._parameters):
            if existing.name == name:
                return index
        raise InvalidParameterError(f"Parameter '{name}' is not part of this sensitivity analysis.")

    def _rerun(self, parameters: Sequence[Parameter], expression: Expression) -> "SensitivitySimulationResults":
        """Run the whole scenario set for ``parameters``; the set itself depends on the factors."""
        base = Simulation(expression, list(parameters), config=self.config)
        random_state = self._context.rng if self._context is not None else None
        if self.exhaustive:
            runner = ExhaustiveSensitivitySimulation(base)
            if self.multithreaded:
                return runner.simulate_multithreaded(self.number_of_simulations, random_state=random_state)
            return runner.simulate(self.number_of_simulations, random_state=random_state)
        return SensitivitySimulation(base).simulate(self.number_of_simulations, random_state=random_state)

    def _commit(
        self,
        parameters: List[Parameter],
        expression: Expression,
        fresh: Optional["SensitivitySimulationResults"] = None,
    ) -> None:
        self._parameters = parameters
        self._expression = expression
        if fresh is not None:
            self.results = fresh.results
            self.scenario_factors = fresh.scenario_factors

    def recompute_expression(self, expression: Union[str, Expression]) -> "SensitivitySimulationResults":
        parsed = parse_expression(expression)
        missing = parsed.free_names - {p.name for p in self._parameters}
        if missing:
            raise UnresolvedVariableError(
                f"Expression '{parsed}' references unbound variable(s): {', '.join(sorted(missing))}"
            )
        for result in self.results.values():
            result.recompute_expression(parsed)
        self._expression = parsed
        return self

    def add_parameter(self, parameter: Parameter) -> "SensitivitySimulationResults":
        """Add a parameter; a new factor re-runs every scenario, anything else is resolved per scenario."""
        if any(existing.name == parameter.name for existing in self._parameters):
            raise InvalidParameterError(f"Parameter '{parameter.name}' already exists.")
        candidate = self._parameters + [parameter]
        if isinstance(parameter, PrecomputedParameter):
            self._commit(candidate, self._expression, self._rerun(candidate, self._expression))
            return self
        validate_parameters([parameter], self.number_of_simulations)
        for result in self.results.values():
            result.add_parameter(parameter)
        self._commit(candidate, self._expression)
        return self

    def remove_parameter(self, parameter: Union[Parameter, str]) -> "SensitivitySimulationResults":
        index = self._index_of(parameter)
        removed = self._parameters[index]
        if self._expression.references(removed.name):
            raise ParameterInExpressionError(
                f"Cannot remove '{removed.name}': the expression '{self._expression}' still references it."
            )
        candidate = self._parameters[:index] + self._parameters[index + 1:]
        if isinstance(removed, PrecomputedParameter):
            self._commit(candidate, self._expression, self._rerun(candidate, self._expression))
            return self
        for result in self.results.values():
            result.remove_parameter(removed.name)
        self._commit(candidate, self._expression)
        return self

    def replace_parameter(
        self,
        old_parameter: Union[Parameter, str],
        new_parameter: Parameter,
    ) -> "SensitivitySimulationResults":
        """Swap a parameter; factor changes re-run every scenario, other changes update each scenario."""
        index = self._index_of(old_parameter)
        old = self._parameters[index]
        if new_parameter.name != old.name and any(p.name == new_parameter.name for p in self._parameters):
            raise InvalidParameterError(f"Parameter '{new_parameter.name}' already exists.")
        candidate = list(self._parameters)
        candidate[index] = new_parameter
        expression = self._expression.rename(old.name, new_parameter.name)
        if isinstance(old, PrecomputedParameter) or isinstance(new_parameter, PrecomputedParameter):
            self._commit(candidate, expression, self._rerun(candidate, expression))
            return self
        validate_parameters([new_parameter], self.number_of_simulations)
        for result in self.results.values():
            result.replace_parameter(old.name, new_parameter)
        self._commit(candidate, expression)
        return self

    def regenerate(self, number_of_simulations: Optional[int] = None) -> "SensitivitySimulationResults":
        """Re-run every scenario's trials, across the thread pool if the analysis was multithreaded."""
        count = self.number_of_simulations if number_of_simulations is None else number_of_simulations
        children = list(self.results.values())
        if self.multithreaded:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                list(executor.map(lambda result: result.regenerate(count), children))
        else:
            for result in children:
                result.regenerate(count)
        self.number_of_simulations = count
        return self

    def __repr__(self) -> str:
        return (
            f"SensitivitySimulationResults(scenarios={len(self.results)}, n={self.number_of_simulations}, "
            f"exhaustive={self.exhaustive}, multithreaded={self.multithreaded})"
        )


__all__ = [
    "SensitivitySimulation",
    "ExhaustiveSensitivitySimulation",
    "SensitivitySimulationResults",
    "scenario_key",
    "format_factor_value",
    "factor_parameters",
]
