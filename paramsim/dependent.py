"""
Dependent (path) simulations.

Each trial's result feeds the next one. The expression is evaluated
sequentially with two bindings: ``value`` (the previous trial's result, or
the start value for the first trial) and the change parameter's value for
the current trial.

    >>> growth = DependentSimulation(100.0, "value * (1 + r)", DistributionParameter("r", normal(0.01, 0.02)))
    >>> path = growth.simulate(12)
    >>> path.ending_value
"""

from __future__ import annotations

import logging
from typing import Optional, Union

import numpy as np
import pandas as pd
from numpy.random import Generator

from . import statistics
from .config import EngineConfig, get_default_config
from .exceptions import InvalidParameterError
from .expressions import Expression, parse_expression
from .models import DependentReturnType
from .parameters import Parameter
from .resolution import ResolutionContext, make_context, resolve
from .simulation import _read_only, _validate_count, validate_parameters

logger = logging.getLogger(__name__)

PREVIOUS_VALUE = "value"


def _check_change_parameter(parameter: Parameter) -> None:
    if parameter.name == PREVIOUS_VALUE:
        raise InvalidParameterError(
            f"'{PREVIOUS_VALUE}' is bound to the previous result and cannot name the change parameter."
        )


def _replay(expression: Expression, start_value: float, name: str, changes: np.ndarray) -> np.ndarray:
    results = np.empty(changes.shape[0], dtype=np.float64)
    current = float(start_value)
    for index, change in enumerate(changes):
        current = expression.evaluate_scalar({PREVIOUS_VALUE: current, name: change})
        results[index] = current
    return _read_only(results)


class DependentSimulation:
    """A start value carried forward through ``expression`` one trial at a time."""

    def __init__(
        self,
        start_value: float,
        expression: Union[str, Expression],
        change_parameter: Parameter,
        config: Optional[EngineConfig] = None,
    ) -> None:
        _check_change_parameter(change_parameter)
        self.start_value = float(start_value)
        self._expression = parse_expression(expression)
        self.change_parameter = change_parameter
        self.config = config or get_default_config()
        self._rng = np.random.default_rng(self.config.random_seed)

    @property
    def expression(self) -> Expression:
        return self._expression

    def simulate(
        self,
        number_of_simulations: int,
        random_state: "Generator | int | None" = None,
    ) -> "DependentSimulationResults":
        count = _validate_count(number_of_simulations)
        validate_parameters([self.change_parameter], count)
        if random_state is None:
            context = ResolutionContext(self._rng, self.config)
        else:
            context = make_context(random_state, self.config)
        changes = resolve(self.change_parameter, count, context)
        return DependentSimulationResults(
            self.start_value, self._expression, self.change_parameter, changes, context
        )

    def __repr__(self) -> str:
        return (
            f"DependentSimulation(start={self.start_value:g}, {self._expression.text!r}, "
            f"change={self.change_parameter.name})"
        )


class DependentSimulationResults:
    """One simulated path and the change values that drove it."""

    def __init__(
        self,
        initial_value: float,
        expression: Expression,
        change_parameter: Parameter,
        change_values: np.ndarray,
        context: ResolutionContext,
    ) -> None:
        self._initial_value = float(initial_value)
        self._expression = expression
        self._change_parameter = change_parameter
        self._change_values = _read_only(np.asarray(change_values, dtype=np.float64))
        self._context = context
        self._replay()

    def _replay(self) -> None:
        self._results = _replay(
            self._expression, self._initial_value, self._change_parameter.name, self._change_values
        )

    @property
    def initial_value(self) -> float:
        return self._initial_value

    @property
    def expression(self) -> Expression:
        return self._expression

    @property
    def change_parameter(self) -> Parameter:
        return self._change_parameter

    @property
    def results(self) -> np.ndarray:
        return self._results

    @property
    def change_values(self) -> np.ndarray:
        return self._change_values

    @property
    def number_of_periods(self) -> int:
        return int(self._results.shape[0])

    @property
    def ending_value(self) -> float:
        return float(self._results[-1])

    @property
    def lowest_value(self) -> float:
        return statistics.minimum(self._results)

    @property
    def highest_value(self) -> float:
        return statistics.maximum(self._results)

    @property
    def value_range(self) -> str:
        return f"{self.lowest_value:g} - {self.highest_value:g}"

    @property
    def range_size(self) -> float:
        return self.highest_value - self.lowest_value

    @property
    def smallest_change(self) -> float:
        return statistics.minimum(self._change_values)

    @property
    def largest_change(self) -> float:
        return statistics.maximum(self._change_values)

    @property
    def average_change(self) -> float:
        return statistics.mean(self._change_values)

    @property
    def standard_deviation_of_changes(self) -> float:
        return statistics.standard_deviation(self._change_values)

    def get_summary_statistic(self, return_type: DependentReturnType) -> float:
        return statistics.dependent_statistic(self._results, self._change_values, return_type)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "period": np.arange(1, self.number_of_periods + 1),
                self._change_parameter.name: self._change_values,
                PREVIOUS_VALUE: self._results,
            }
        )

    def recompute_expression(self, expression: Union[str, Expression]) -> "DependentSimulationResults":
        """Swap the expression and replay the path over the existing change values."""
        self._expression = parse_expression(expression)
        self._replay()
        return self

    def replace_initial_value(self, initial_value: float) -> "DependentSimulationResults":
        self._initial_value = float(initial_value)
        self._replay()
        return self

    def replace_parameter(self, change_parameter: Parameter) -> "DependentSimulationResults":
        """Swap the change parameter, rebinding the expression if its name differs, and resample."""
        _check_change_parameter(change_parameter)
        old_name = self._change_parameter.name
        count = self.number_of_periods
        validate_parameters([change_parameter], count)
        changes = resolve(change_parameter, count, self._context)
        if change_parameter.name != old_name:
            self._expression = self._expression.rename(old_name, change_parameter.name)
        self._change_parameter = change_parameter
        self._change_values = _read_only(np.asarray(changes, dtype=np.float64))
        self._replay()
        return self

    def regenerate(self, number_of_simulations: Optional[int] = None) -> "DependentSimulationResults":
        count = self.number_of_periods if number_of_simulations is None else _validate_count(number_of_simulations)
        validate_parameters([self._change_parameter], count)
        changes = resolve(self._change_parameter, count, self._context)
        self._change_values = _read_only(np.asarray(changes, dtype=np.float64))
        self._replay()
        logger.debug("Regenerated dependent path at %d periods", count)
        return self

    def __repr__(self) -> str:
        return (
            f"DependentSimulationResults(start={self._initial_value:g}, periods={self.number_of_periods}, "
            f"ending={self.ending_value:.6g})"
        )


__all__ = ["DependentSimulation", "DependentSimulationResults", "PREVIOUS_VALUE"]
