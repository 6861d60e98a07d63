"""Enumerations and small value objects shared across the engines."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from .exceptions import InvalidConfidenceLevelError, InvalidConstraintError


class ComparisonOperator(Enum):
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="


class ConstraintViolationResolution(Enum):
    """How a sample outside a constraint's bounds is repaired."""

    CLOSEST_BOUND = "closest_bound"
    DEFAULT_VALUE = "default_value"
    RESIMULATE = "resimulate"


class RandomBagReplacement(Enum):
    """When drawn items are returned to a random bag."""

    AFTER_EACH_PICK = "after_each_pick"
    WHEN_EMPTY = "when_empty"
    NEVER = "never"


class DistributionFunctionType(Enum):
    CUMULATIVE_DISTRIBUTION = "cdf"
    DENSITY = "pdf"
    DENSITY_LN = "logpdf"
    INVERSE_CUMULATIVE_DISTRIBUTION = "ppf"
    PROBABILITY = "pmf"
    PROBABILITY_LN = "logpmf"


class SimulationReturnType(Enum):
    """What a nested standard simulation contributes per outer trial."""

    RESULTS = "results"
    MINIMUM = "minimum"
    LOWER_QUARTILE = "lower_quartile"
    MEAN = "mean"
    MEDIAN = "median"
    UPPER_QUARTILE = "upper_quartile"
    MAXIMUM = "maximum"
    VARIANCE = "variance"
    STANDARD_DEVIATION = "standard_deviation"
    KURTOSIS = "kurtosis"
    SKEWNESS = "skewness"


class DependentReturnType(Enum):
    """What a nested dependent simulation contributes per outer trial."""

    RESULTS = "results"
    ENDING_VALUE = "ending_value"
    LOWEST_VALUE = "lowest_value"
    HIGHEST_VALUE = "highest_value"
    RANGE_SIZE = "range_size"
    SMALLEST_CHANGE = "smallest_change"
    LARGEST_CHANGE = "largest_change"
    AVERAGE_CHANGE = "average_change"
    STANDARD_DEVIATION_OF_CHANGES = "standard_deviation_of_changes"


class ConfidenceLevel(Enum):
    EIGHTY = 0.80
    EIGHTY_FIVE = 0.85
    NINETY = 0.90
    NINETY_FIVE = 0.95
    NINETY_NINE = 0.99
    NINETY_NINE_POINT_FIVE = 0.995
    NINETY_NINE_POINT_NINE = 0.999

    @property
    def z_score(self) -> float:
        return Z_SCORES[self]

    @classmethod
    def from_value(cls, value: "ConfidenceLevel | float") -> "ConfidenceLevel":
        """Accept an enum member, a fraction (0.95) or a percentage (95)."""
        if isinstance(value, cls):
            return value
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            raise InvalidConfidenceLevelError(f"Unknown confidence level {value!r}.") from None
        if numeric > 1.0:
            numeric /= 100.0
        for level in cls:
            if math.isclose(level.value, numeric, abs_tol=1e-9):
                return level
        raise InvalidConfidenceLevelError(
            f"Unknown confidence level {value!r}. Available: "
            + ", ".join(f"{level.value:g}" for level in cls)
        )


Z_SCORES: Dict[ConfidenceLevel, float] = {
    ConfidenceLevel.EIGHTY: 1.282,
    ConfidenceLevel.EIGHTY_FIVE: 1.440,
    ConfidenceLevel.NINETY: 1.645,
    ConfidenceLevel.NINETY_FIVE: 1.960,
    ConfidenceLevel.NINETY_NINE: 2.576,
    ConfidenceLevel.NINETY_NINE_POINT_FIVE: 2.807,
    ConfidenceLevel.NINETY_NINE_POINT_NINE: 3.291,
}


@dataclass(frozen=True, slots=True)
class ParameterConstraint:
    """Inclusive bounds on a parameter's samples plus the repair policy.

    Parameters
    ----------
    lower_bound, upper_bound:
        Inclusive bounds; at least one must be given.
    resolution:
        Policy applied to each violating sample.
    max_resimulations:
        Attempt budget for :attr:`ConstraintViolationResolution.RESIMULATE`.
    default_value:
        Replacement for ``DEFAULT_VALUE`` and fallback for ``RESIMULATE``.
        Must lie inside the bounds so repeated repair is a no-op.
    """

    lower_bound: Optional[float] = None
    upper_bound: Optional[float] = None
    resolution: ConstraintViolationResolution = ConstraintViolationResolution.CLOSEST_BOUND
    max_resimulations: int = 10
    default_value: Optional[float] = None

    def __post_init__(self) -> None:
        if self.lower_bound is None and self.upper_bound is None:
            raise InvalidConstraintError("A constraint needs a lower bound, an upper bound, or both.")
        if (
            self.lower_bound is not None
            and self.upper_bound is not None
            and self.lower_bound > self.upper_bound
        ):
            raise InvalidConstraintError(
                f"Lower bound {self.lower_bound} exceeds upper bound {self.upper_bound}."
            )
        if self.max_resimulations < 0:
            raise InvalidConstraintError("max_resimulations cannot be negative.")
        needs_default = self.resolution in (
            ConstraintViolationResolution.DEFAULT_VALUE,
            ConstraintViolationResolution.RESIMULATE,
        )
        if needs_default:
            if self.default_value is None:
                raise InvalidConstraintError(
                    f"Resolution {self.resolution.name} requires a default value."
                )
            if self.is_violated(self.default_value):
                raise InvalidConstraintError(
                    f"Default value {self.default_value} lies outside the constraint bounds."
                )

    def violates_lower(self, value: float) -> bool:
        return self.lower_bound is not None and value < self.lower_bound

    def violates_upper(self, value: float) -> bool:
        return self.upper_bound is not None and value > self.upper_bound

    def is_violated(self, value: float) -> bool:
        return self.violates_lower(value) or self.violates_upper(value)


@dataclass(frozen=True, slots=True)
class ConfidenceInterval:
    level: ConfidenceLevel
    lower_bound: float
    upper_bound: float

    @property
    def z_score(self) -> float:
        return self.level.z_score

    @property
    def range(self) -> float:
        return self.upper_bound - self.lower_bound

    def __str__(self) -> str:
        return f"{self.level.value:.1%} CI [{self.lower_bound:g}, {self.upper_bound:g}]"


__all__ = [
    "ComparisonOperator",
    "ConstraintViolationResolution",
    "RandomBagReplacement",
    "DistributionFunctionType",
    "SimulationReturnType",
    "DependentReturnType",
    "ConfidenceLevel",
    "Z_SCORES",
    "ParameterConstraint",
    "ConfidenceInterval",
]
