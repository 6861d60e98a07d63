"""
Parameter variants.

A parameter is a named, declarative description of how to produce one value
per trial. The set of variants is closed: :data:`PARAMETER_TYPES` lists every
class the resolution engine knows how to resolve.

=====================================  ===============================================
Variant                                Per-trial value
=====================================  ===============================================
:class:`ConstantParameter`             the same value every trial
:class:`DiscreteParameter`             one of a finite set of weighted outcomes
:class:`DistributionParameter`         a draw from a probability distribution
:class:`DistributionFunctionParameter` cdf/pdf/ppf/... evaluated at another parameter
:class:`PrecomputedParameter`          a caller-supplied vector, one value per trial
:class:`ConditionalParameter`          first matching outcome on another parameter
:class:`RandomBagParameter`            draws from a multiset with a replacement rule
:class:`SimulationParameter`           a nested simulation's results or a statistic
:class:`DependentSimulationParameter`  a nested path simulation's results or a statistic
:class:`QualitativeInterpretationParameter`  a categorical outcome mapped to a number
=====================================  ===============================================
"""

from __future__ import annotations

import keyword
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Union

import numpy as np

from .config import get_default_config
from .distributions import Sampler
from .exceptions import InvalidParameterError, InvalidProbabilityError
from .models import (
    ComparisonOperator,
    DependentReturnType,
    DistributionFunctionType,
    ParameterConstraint,
    RandomBagReplacement,
    SimulationReturnType,
)
from .sampling import cumulative_probabilities

if TYPE_CHECKING:
    from .dependent import DependentSimulation
    from .qualitative import QualitativeParameterType
    from .simulation import Simulation


def validate_name(name: str) -> str:
    if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
        raise InvalidParameterError(
            f"Invalid parameter name {name!r}: names must be identifiers that do not start with a digit."
        )
    if name == "pi":
        raise InvalidParameterError("'pi' is reserved for the constant and cannot name a parameter.")
    return name


@dataclass(eq=False)
class ConstantParameter:
    name: str
    value: float

    def __post_init__(self) -> None:
        validate_name(self.name)


@dataclass(frozen=True, slots=True)
class DiscreteOutcome:
    value: float
    probability: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.probability <= 1.0:
            raise InvalidProbabilityError(
                f"Outcome probability {self.probability} lies outside [0, 1]."
            )


@dataclass(eq=False)
class DiscreteParameter:
    """Weighted finite outcomes; ties resolve to the earliest declared outcome."""

    name: str
    outcomes: List[DiscreteOutcome]
    tolerance: Optional[float] = field(default=None, repr=False)
    cumulative: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        validate_name(self.name)
        self.outcomes = list(self.outcomes)
        if self.tolerance is None:
            self.tolerance = get_default_config().probability_tolerance
        self.cumulative = cumulative_probabilities([o.probability for o in self.outcomes], self.tolerance)

    @property
    def values(self) -> np.ndarray:
        return np.asarray([o.value for o in self.outcomes])

    @classmethod
    def from_pairs(
        cls, name: str, pairs: Dict[float, float], tolerance: Optional[float] = None
    ) -> "DiscreteParameter":
        """Build from a ``{value: probability}`` mapping."""
        return cls(name, [DiscreteOutcome(value, prob) for value, prob in pairs.items()], tolerance)


@dataclass(eq=False)
class DistributionParameter:
    name: str
    sampler: Sampler
    constraint: Optional[ParameterConstraint] = None

    def __post_init__(self) -> None:
        validate_name(self.name)


@dataclass(eq=False)
class DistributionFunctionParameter:
    """A distribution function evaluated at the values of ``location_parameter``."""

    name: str
    sampler: Sampler
    function: DistributionFunctionType
    location_parameter: "Parameter"

    def __post_init__(self) -> None:
        validate_name(self.name)


@dataclass(eq=False)
class PrecomputedParameter:
    """Caller-supplied values; the vector length must equal the trial count."""

    name: str
    values: np.ndarray

    def __post_init__(self) -> None:
        validate_name(self.name)
        values = np.array(self.values, dtype=np.float64).reshape(-1)
        values.flags.writeable = False
        self.values = values

    def __len__(self) -> int:
        return int(self.values.shape[0])


@dataclass(frozen=True, slots=True)
class ConditionalOutcome:
    """``return_value`` applies when ``reference <operator> threshold`` holds.

    ``tolerance`` widens the equality operators to an absolute closeness check.
    """

    operator: ComparisonOperator
    threshold: float
    return_value: Union[float, str]
    tolerance: float = 0.0

    def matches(self, values: np.ndarray) -> np.ndarray:
        values = np.asarray(values, dtype=np.float64)
        op = self.operator
        if op is ComparisonOperator.EQUAL:
            return np.abs(values - self.threshold) <= self.tolerance
        if op is ComparisonOperator.NOT_EQUAL:
            return np.abs(values - self.threshold) > self.tolerance
        if op is ComparisonOperator.LESS_THAN:
            return values < self.threshold
        if op is ComparisonOperator.LESS_THAN_OR_EQUAL:
            return values <= self.threshold
        if op is ComparisonOperator.GREATER_THAN:
            return values > self.threshold
        if op is ComparisonOperator.GREATER_THAN_OR_EQUAL:
            return values >= self.threshold
        raise InvalidParameterError(f"Unknown comparison operator {op!r}.")


@dataclass(eq=False)
class ConditionalParameter:
    """First matching outcome (in declaration order) on the reference values, else the default."""

    name: str
    reference_parameter: "Parameter"
    default_value: float
    outcomes: List[ConditionalOutcome] = field(default_factory=list)

    def __post_init__(self) -> None:
        validate_name(self.name)
        self.outcomes = list(self.outcomes)


@dataclass(eq=False)
class RandomBagParameter:
    """A multiset of values with counts, drawn under a replacement rule."""

    name: str
    contents: Dict[float, int] = field(default_factory=dict)
    replacement: RandomBagReplacement = RandomBagReplacement.AFTER_EACH_PICK

    def __post_init__(self) -> None:
        validate_name(self.name)
        contents = dict(self.contents)
        self.contents = {}
        for value, count in contents.items():
            self.add(value, count)

    @property
    def number_of_items(self) -> int:
        return sum(self.contents.values())

    @property
    def is_empty(self) -> bool:
        return self.number_of_items == 0

    def add(self, value: float, count: int = 1) -> "RandomBagParameter":
        if int(count) != count or count < 1:
            raise InvalidParameterError(f"Item count must be a positive integer, got {count!r}.")
        self.contents[value] = self.contents.get(value, 0) + int(count)
        return self

    def remove(self, value: float, count: int = 1) -> "RandomBagParameter":
        """Remove up to ``count`` copies of ``value``."""
        if value not in self.contents:
            raise InvalidParameterError(f"Value {value!r} is not in random bag '{self.name}'.")
        remaining = self.contents[value] - int(count)
        if remaining > 0:
            self.contents[value] = remaining
        else:
            del self.contents[value]
        return self

    def remove_all(self, value: float) -> "RandomBagParameter":
        self.contents.pop(value, None)
        return self

    def empty(self) -> "RandomBagParameter":
        self.contents.clear()
        return self

    def contents_to_array(self) -> np.ndarray:
        """Every item in the bag, repeated by its count, in insertion order."""
        if not self.contents:
            return np.empty(0, dtype=np.float64)
        values = list(self.contents.keys())
        counts = list(self.contents.values())
        return np.repeat(np.asarray(values), counts)

    def to_discrete(self) -> DiscreteParameter:
        """The equivalent weighted draw when every pick is put back."""
        total = self.number_of_items
        outcomes = [DiscreteOutcome(value, count / total) for value, count in self.contents.items()]
        return DiscreteParameter(self.name, outcomes)


@dataclass(eq=False)
class SimulationParameter:
    """A nested standard simulation.

    With :attr:`SimulationReturnType.RESULTS` the inner simulation runs once at
    the outer trial count and its result vector is used directly. Any other
    return type runs the inner simulation once per outer trial with
    ``summary_run_count`` trials and contributes that statistic.
    """

    name: str
    simulation: "Simulation"
    return_type: SimulationReturnType = SimulationReturnType.RESULTS
    summary_run_count: Optional[int] = None
    constraint: Optional[ParameterConstraint] = None

    def __post_init__(self) -> None:
        validate_name(self.name)
        if self.summary_run_count is None:
            self.summary_run_count = get_default_config().summary_run_count
        if self.summary_run_count < 1:
            raise InvalidParameterError("summary_run_count must be at least 1.")


@dataclass(eq=False)
class DependentSimulationParameter:
    """A nested dependent (path) simulation.

    When a constraint is given without an explicit return type the parameter
    summarises each path by its ending value.
    """

    name: str
    dependent_simulation: "DependentSimulation"
    return_type: Optional[DependentReturnType] = None
    summary_run_count: Optional[int] = None
    constraint: Optional[ParameterConstraint] = None

    def __post_init__(self) -> None:
        validate_name(self.name)
        if self.return_type is None:
            self.return_type = (
                DependentReturnType.ENDING_VALUE if self.constraint is not None else DependentReturnType.RESULTS
            )
        if self.summary_run_count is None:
            self.summary_run_count = get_default_config().dependent_summary_run_count
        if self.summary_run_count < 1:
            raise InvalidParameterError("summary_run_count must be at least 1.")


@dataclass(eq=False)
class QualitativeInterpretationParameter:
    """Maps each categorical outcome of a qualitative parameter to a number."""

    name: str
    qualitative_parameter: "QualitativeParameterType"
    interpretation: Dict[str, float] = field(default_factory=dict)
    default_value: float = 0.0

    def __post_init__(self) -> None:
        validate_name(self.name)
        for outcome, value in self.interpretation.items():
            if not isinstance(value, (int, float)) or math.isnan(float(value)):
                raise InvalidParameterError(
                    f"Interpretation of '{outcome}' must be a number, got {value!r}."
                )


Parameter = Union[
    ConstantParameter,
    DiscreteParameter,
    DistributionParameter,
    DistributionFunctionParameter,
    PrecomputedParameter,
    ConditionalParameter,
    RandomBagParameter,
    SimulationParameter,
    DependentSimulationParameter,
    QualitativeInterpretationParameter,
]

PARAMETER_TYPES = (
    ConstantParameter,
    DiscreteParameter,
    DistributionParameter,
    DistributionFunctionParameter,
    PrecomputedParameter,
    ConditionalParameter,
    RandomBagParameter,
    SimulationParameter,
    DependentSimulationParameter,
    QualitativeInterpretationParameter,
)


__all__ = [
    "validate_name",
    "ConstantParameter",
    "DiscreteOutcome",
    "DiscreteParameter",
    "DistributionParameter",
    "DistributionFunctionParameter",
    "PrecomputedParameter",
    "ConditionalOutcome",
    "ConditionalParameter",
    "RandomBagParameter",
    "SimulationParameter",
    "DependentSimulationParameter",
    "QualitativeInterpretationParameter",
    "Parameter",
    "PARAMETER_TYPES",
]
