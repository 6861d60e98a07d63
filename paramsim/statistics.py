"""
Summary statistics over per-trial result vectors.

Sample (n-1) variance and standard deviation, bias-corrected skewness and
excess kurtosis, and quartiles by the median-unbiased quantile estimator.
Statistics that are undefined for a vector this short come back as NaN.
"""

from __future__ import annotations

import math
from typing import Callable, Dict

import numpy as np
import pandas as pd
from scipy import stats

from .exceptions import InvalidSummaryStatisticError
from .models import ConfidenceInterval, ConfidenceLevel, DependentReturnType, SimulationReturnType


def _as_array(values) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def minimum(values) -> float:
    return float(np.min(_as_array(values)))


def maximum(values) -> float:
    return float(np.max(_as_array(values)))


def mean(values) -> float:
    return float(np.mean(_as_array(values)))


def median(values) -> float:
    return float(np.median(_as_array(values)))


def lower_quartile(values) -> float:
    return float(np.quantile(_as_array(values), 0.25, method="median_unbiased"))


def upper_quartile(values) -> float:
    return float(np.quantile(_as_array(values), 0.75, method="median_unbiased"))


def variance(values) -> float:
    data = _as_array(values)
    if data.size < 2:
        return math.nan
    return float(np.var(data, ddof=1))


def standard_deviation(values) -> float:
    data = _as_array(values)
    if data.size < 2:
        return math.nan
    return float(np.std(data, ddof=1))


def skewness(values) -> float:
    data = _as_array(values)
    if data.size < 3:
        return math.nan
    return float(stats.skew(data, bias=False))


def kurtosis(values) -> float:
    """Excess kurtosis (normal data gives 0)."""
    data = _as_array(values)
    if data.size < 4:
        return math.nan
    return float(stats.kurtosis(data, fisher=True, bias=False))


def confidence_interval(values, level: ConfidenceLevel | float = ConfidenceLevel.NINETY_FIVE) -> ConfidenceInterval:
    """Normal-approximation interval ``mean +/- z * s / sqrt(n)``."""
    level = ConfidenceLevel.from_value(level)
    data = _as_array(values)
    centre = mean(data)
    half_width = level.z_score * standard_deviation(data) / math.sqrt(data.size)
    return ConfidenceInterval(level, centre - half_width, centre + half_width)


_SIMULATION_STATISTICS: Dict[SimulationReturnType, Callable[[np.ndarray], float]] = {
    SimulationReturnType.MINIMUM: minimum,
    SimulationReturnType.LOWER_QUARTILE: lower_quartile,
    SimulationReturnType.MEAN: mean,
    SimulationReturnType.MEDIAN: median,
    SimulationReturnType.UPPER_QUARTILE: upper_quartile,
    SimulationReturnType.MAXIMUM: maximum,
    SimulationReturnType.VARIANCE: variance,
    SimulationReturnType.STANDARD_DEVIATION: standard_deviation,
    SimulationReturnType.KURTOSIS: kurtosis,
    SimulationReturnType.SKEWNESS: skewness,
}


def summary_statistic(values, return_type: SimulationReturnType) -> float:
    """Scalar statistic named by ``return_type``.

    Raises
    ------
    InvalidSummaryStatisticError
        For :attr:`SimulationReturnType.RESULTS` or anything that is not a scalar statistic.
    """
    func = _SIMULATION_STATISTICS.get(return_type)
    if func is None:
        raise InvalidSummaryStatisticError(
            f"Cannot return {return_type}. Only statistics that return a single number are available."
        )
    return func(_as_array(values))


def dependent_statistic(results, change_values, return_type: DependentReturnType) -> float:
    """Scalar statistic of a dependent path (``results``) and its per-period changes."""
    path = _as_array(results)
    changes = _as_array(change_values)
    if return_type is DependentReturnType.ENDING_VALUE:
        return float(path[-1])
    if return_type is DependentReturnType.LOWEST_VALUE:
        return minimum(path)
    if return_type is DependentReturnType.HIGHEST_VALUE:
        return maximum(path)
    if return_type is DependentReturnType.RANGE_SIZE:
        return maximum(path) - minimum(path)
    if return_type is DependentReturnType.SMALLEST_CHANGE:
        return minimum(changes)
    if return_type is DependentReturnType.LARGEST_CHANGE:
        return maximum(changes)
    if return_type is DependentReturnType.AVERAGE_CHANGE:
        return mean(changes)
    if return_type is DependentReturnType.STANDARD_DEVIATION_OF_CHANGES:
        return standard_deviation(changes)
    raise InvalidSummaryStatisticError(
        f"Cannot return {return_type}. Only statistics that return a single number are available."
    )


def describe(values) -> pd.Series:
    """All scalar statistics as a labelled series."""
    data = _as_array(values)
    record = {"count": float(data.size)}
    for return_type, func in _SIMULATION_STATISTICS.items():
        record[return_type.value] = func(data)
    return pd.Series(record, name="statistic")


__all__ = [
    "minimum",
    "maximum",
    "mean",
    "median",
    "lower_quartile",
    "upper_quartile",
    "variance",
    "standard_deviation",
    "skewness",
    "kurtosis",
    "confidence_interval",
    "summary_statistic",
    "dependent_statistic",
    "describe",
]
