"""
Standard simulations: resolve every parameter, then evaluate the expression per trial.

A :class:`Simulation` is a reusable description (expression plus parameters).
Each call to :meth:`Simulation.simulate` produces a :class:`SimulationResults`
that owns its raw per-parameter vectors and the derived result vector, and
supports in-place edits (swap the expression, add, remove or replace a
parameter, regenerate at a new trial count) that keep every vector the same
length.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from numpy.random import Generator

from . import statistics
from .config import EngineConfig, get_default_config
from .exceptions import (
    EmptyBagError,
    InvalidParameterError,
    ParameterInExpressionError,
    PrecomputedValueCountError,
    RandomBagItemCountError,
)
from .expressions import Expression, parse_expression
from .models import ConfidenceInterval, ConfidenceLevel, RandomBagReplacement, SimulationReturnType
from .parameters import Parameter, PrecomputedParameter, RandomBagParameter
from .resolution import ResolutionContext, make_context, resolve

logger = logging.getLogger(__name__)


def _validate_count(number_of_simulations: int) -> int:
    if isinstance(number_of_simulations, bool) or int(number_of_simulations) != number_of_simulations:
        raise ValueError(f"Number of simulations must be an integer, got {number_of_simulations!r}.")
    if number_of_simulations < 1:
        raise ValueError(f"Number of simulations must be at least 1, got {number_of_simulations}.")
    return int(number_of_simulations)


def _check_unique_names(parameters: Sequence[Parameter]) -> None:
    seen = set()
    for parameter in parameters:
        if parameter.name in seen:
            raise InvalidParameterError(f"Duplicate parameter name '{parameter.name}'.")
        seen.add(parameter.name)


def validate_parameters(parameters: Sequence[Parameter], sample_count: int) -> None:
    """Fail fast on count mismatches before any parameter is resolved."""
    for parameter in parameters:
        if isinstance(parameter, PrecomputedParameter) and len(parameter) != sample_count:
            raise PrecomputedValueCountError(
                f"Precomputed parameter '{parameter.name}' has {len(parameter)} values; "
                f"{sample_count} simulations requested."
            )
        if isinstance(parameter, RandomBagParameter):
            if parameter.is_empty:
                raise EmptyBagError(f"Random bag '{parameter.name}' is empty.")
            if (
                parameter.replacement is RandomBagReplacement.NEVER
                and sample_count > parameter.number_of_items
            ):
                raise RandomBagItemCountError(
                    f"Random bag '{parameter.name}' holds {parameter.number_of_items} items; "
                    f"{sample_count} draws without replacement requested."
                )


def _read_only(values: np.ndarray) -> np.ndarray:
    values = np.asarray(values)
    values.flags.writeable = False
    return values


def _evaluate(
    expression: Expression,
    parameters: Sequence[Parameter],
    raw_data: Sequence[np.ndarray],
    sample_count: int,
) -> np.ndarray:
    bindings = {parameter.name: values for parameter, values in zip(parameters, raw_data)}
    return _read_only(expression.evaluate(bindings, count=sample_count))


class Simulation:
    """An expression over named parameters, evaluated once per trial.

    Parameters
    ----------
    expression:
        Infix expression text (``"a + b * c"``) or a parsed :class:`Expression`.
    *parameters:
        Parameter variants; names must be unique. A single list is also accepted.
    config:
        Engine settings. ``config.random_seed`` seeds the simulation's own generator.
    """

    def __init__(
        self,
        expression: Union[str, Expression],
        *parameters: Parameter,
        config: Optional[EngineConfig] = None,
    ) -> None:
        if len(parameters) == 1 and isinstance(parameters[0], (list, tuple)):
            parameters = tuple(parameters[0])
        self._expression = parse_expression(expression)
        self._parameters: List[Parameter] = list(parameters)
        _check_unique_names(self._parameters)
        self.config = config or get_default_config()
        self._rng = np.random.default_rng(self.config.random_seed)

    @property
    def expression(self) -> Expression:
        return self._expression

    @property
    def parameters(self) -> List[Parameter]:
        return list(self._parameters)

    def resolution_context(self, random_state: "Generator | int | None" = None) -> ResolutionContext:
        """Context for a run: the simulation's own generator unless ``random_state`` is given."""
        if random_state is None:
            return ResolutionContext(self._rng, self.config)
        return make_context(random_state, self.config)

    def simulate(
        self,
        number_of_simulations: int,
        random_state: "Generator | int | None" = None,
    ) -> "SimulationResults":
        """Resolve every parameter at ``number_of_simulations`` and evaluate the expression.

        ``random_state`` overrides the simulation's own generator for this run.
        """
        count = _validate_count(number_of_simulations)
        validate_parameters(self._parameters, count)
        context = self.resolution_context(random_state)
        raw_data = [resolve(parameter, count, context) for parameter in self._parameters]
        return SimulationResults(self._expression, self._parameters, raw_data, context, count)

    def __repr__(self) -> str:
        names = ", ".join(p.name for p in self._parameters)
        return f"Simulation({self._expression.text!r}, [{names}])"


class SimulationResults:
    """Raw per-parameter vectors plus the per-trial results of one simulation run.

    Stored arrays are read-only; mutation happens only through the methods
    below, each of which returns ``self``.
    """

    def __init__(
        self,
        expression: Expression,
        parameters: Sequence[Parameter],
        raw_data: Sequence[np.ndarray],
        context: ResolutionContext,
        sample_count: int,
    ) -> None:
        self._expression = expression
        self._parameters: List[Parameter] = list(parameters)
        self._raw_data: List[np.ndarray] = [_read_only(values) for values in raw_data]
        self._context = context
        self._count = sample_count
        self._results = _evaluate(expression, self._parameters, self._raw_data, sample_count)

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------
    @property
    def expression(self) -> Expression:
        return self._expression

    @property
    def parameters(self) -> List[Parameter]:
        return list(self._parameters)

    @property
    def raw_data(self) -> List[np.ndarray]:
        return list(self._raw_data)

    @property
    def results(self) -> np.ndarray:
        return self._results

    @property
    def number_of_simulations(self) -> int:
        if self._raw_data:
            return int(self._raw_data[0].shape[0])
        return int(self._results.shape[0])

    @property
    def first(self) -> float:
        return float(self._results[0])

    @property
    def last(self) -> float:
        return float(self._results[-1])

    def values_for(self, name: str) -> np.ndarray:
        return self._raw_data[self._index_of(name)]

    def to_frame(self) -> pd.DataFrame:
        """Raw data columns per parameter plus a ``result`` column, one row per trial."""
        columns: Dict[str, np.ndarray] = {
            parameter.name: values for parameter, values in zip(self._parameters, self._raw_data)
        }
        columns["result"] = self._results
        return pd.DataFrame(columns)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    @property
    def minimum(self) -> float:
        return statistics.minimum(self._results)

    @property
    def lower_quartile(self) -> float:
        return statistics.lower_quartile(self._results)

    @property
    def mean(self) -> float:
        return statistics.mean(self._results)

    @property
    def median(self) -> float:
        return statistics.median(self._results)

    @property
    def upper_quartile(self) -> float:
        return statistics.upper_quartile(self._results)

    @property
    def maximum(self) -> float:
        return statistics.maximum(self._results)

    @property
    def variance(self) -> float:
        return statistics.variance(self._results)

    @property
    def standard_deviation(self) -> float:
        return statistics.standard_deviation(self._results)

    @property
    def kurtosis(self) -> float:
        return statistics.kurtosis(self._results)

    @property
    def skewness(self) -> float:
        return statistics.skewness(self._results)

    def confidence_interval(self, level: ConfidenceLevel | float = ConfidenceLevel.NINETY_FIVE) -> ConfidenceInterval:
        return statistics.confidence_interval(self._results, level)

    def get_summary_statistic(self, return_type: SimulationReturnType) -> float:
        return statistics.summary_statistic(self._results, return_type)

    def describe(self) -> pd.Series:
        return statistics.describe(self._results)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def _index_of(self, parameter: Union[Parameter, str]) -> int:
        name = parameter if isinstance(parameter, str) else parameter.name
        for index, existing in enumerate(self._parameters):
            if existing.name == name:
                return index
        raise InvalidParameterError(f"Parameter '{name}' is not part of this simulation.")

    def _reevaluate(self) -> None:
        self._results = _evaluate(self._expression, self._parameters, self._raw_data, self._count)

    def recompute_expression(self, expression: Union[str, Expression]) -> "SimulationResults":
        """Swap the expression and rederive results from the existing raw data."""
        parsed = parse_expression(expression)
        results = _evaluate(parsed, self._parameters, self._raw_data, self._count)
        self._expression = parsed
        self._results = results
        return self

    def add_parameter(self, parameter: Parameter) -> "SimulationResults":
        """Resolve only ``parameter`` at the current trial count and append it."""
        if any(existing.name == parameter.name for existing in self._parameters):
            raise InvalidParameterError(f"Parameter '{parameter.name}' already exists.")
        validate_parameters([parameter], self._count)
        values = _read_only(resolve(parameter, self._count, self._context))
        self._parameters.append(parameter)
        self._raw_data.append(values)
        self._reevaluate()
        return self

    def remove_parameter(self, parameter: Union[Parameter, str]) -> "SimulationResults":
        """Drop a parameter the expression no longer references."""
        index = self._index_of(parameter)
        name = self._parameters[index].name
        if self._expression.references(name):
            raise ParameterInExpressionError(
                f"Cannot remove '{name}': the expression '{self._expression}' still references it."
            )
        del self._parameters[index]
        del self._raw_data[index]
        self._reevaluate()
        return self

    def replace_parameter(
        self,
        old_parameter: Union[Parameter, str],
        new_parameter: Parameter,
    ) -> "SimulationResults":
        """Re-resolve only the replaced parameter; rebind the expression if the name changes."""
        index = self._index_of(old_parameter)
        old_name = self._parameters[index].name
        if new_parameter.name != old_name and any(
            existing.name == new_parameter.name for existing in self._parameters
        ):
            raise InvalidParameterError(f"Parameter '{new_parameter.name}' already exists.")
        validate_parameters([new_parameter], self._count)
        values = _read_only(resolve(new_parameter, self._count, self._context))
        self._parameters[index] = new_parameter
        self._raw_data[index] = values
        if new_parameter.name != old_name:
            self._expression = self._expression.rename(old_name, new_parameter.name)
        self._reevaluate()
        return self

    def regenerate(self, number_of_simulations: Optional[int] = None) -> "SimulationResults":
        """Re-resolve every parameter at ``number_of_simulations`` (default: current count)."""
        count = self._count if number_of_simulations is None else _validate_count(number_of_simulations)
        validate_parameters(self._parameters, count)
        raw_data = [_read_only(resolve(parameter, count, self._context)) for parameter in self._parameters]
        self._raw_data = raw_data
        self._count = count
        self._reevaluate()
        logger.debug("Regenerated %d parameters at %d simulations", len(raw_data), count)
        return self

    def __len__(self) -> int:
        return self.number_of_simulations

    def __repr__(self) -> str:
        return (
            f"SimulationResults(expression={self._expression.text!r}, "
            f"n={self.number_of_simulations}, mean={self.mean:.6g})"
        )


__all__ = ["Simulation", "SimulationResults", "validate_parameters"]
