"""
Sampler adapter over frozen :mod:`scipy.stats` distributions.

Every draw takes an explicit :class:`numpy.random.Generator`; no module-level
random state is consulted. Discrete families yield integer samples, continuous
families yield floats.

Distributions can be built directly (``normal(0, 1)``) or from the
``{"dist": ..., "params": {...}}`` notation used by scenario files::

    >>> sampler = from_spec({"dist": "uniform", "params": {"low": 0.1, "high": 0.8}})
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, Mapping

import numpy as np
from numpy.random import Generator
from scipy import stats

from .exceptions import DistributionFunctionFailureError, InvalidParameterError
from .models import DistributionFunctionType


class Sampler:
    """A frozen scipy distribution plus the draw and evaluation calls the engines need."""

    __slots__ = ("frozen", "label")

    def __init__(self, frozen: Any, label: str | None = None) -> None:
        if not hasattr(frozen, "dist") or not hasattr(frozen, "rvs"):
            raise TypeError(f"Expected a frozen scipy.stats distribution, got {type(frozen).__name__}.")
        self.frozen = frozen
        self.label = label or frozen.dist.name

    @property
    def is_discrete(self) -> bool:
        return isinstance(self.frozen.dist, stats.rv_discrete)

    def samples(self, count: int, rng: Generator) -> np.ndarray:
        draws = np.asarray(self.frozen.rvs(size=count, random_state=rng))
        if self.is_discrete:
            return draws.astype(np.int64, copy=False)
        return draws.astype(np.float64, copy=False)

    def sample(self, rng: Generator) -> float | int:
        value = self.frozen.rvs(random_state=rng)
        if self.is_discrete:
            return int(value)
        return float(value)

    def evaluate(self, function: DistributionFunctionType, values: np.ndarray) -> np.ndarray:
        """Apply a cdf/pdf/ppf/pmf style function elementwise to ``values``.

        Raises
        ------
        DistributionFunctionFailureError
            If the function does not apply to this family, or any location
            produces an undefined (NaN) value.
        """
        locations = np.asarray(values, dtype=np.float64)
        method = self._resolve_function(function)
        try:
            with np.errstate(all="ignore"):
                output = np.asarray(method(locations), dtype=np.float64)
        except (ValueError, TypeError, ArithmeticError) as exc:
            raise DistributionFunctionFailureError(
                f"{function.name} of {self.label} failed: {exc}"
            ) from exc
        failed = np.isnan(output) & ~np.isnan(locations)
        if failed.any():
            first = locations[np.argmax(failed)]
            raise DistributionFunctionFailureError(
                f"{function.name} of {self.label} is undefined at location {first:g}."
            )
        return output

    def _resolve_function(self, function: DistributionFunctionType) -> Callable[[np.ndarray], Any]:
        discrete_only = {DistributionFunctionType.PROBABILITY, DistributionFunctionType.PROBABILITY_LN}
        continuous_only = {DistributionFunctionType.DENSITY, DistributionFunctionType.DENSITY_LN}
        if self.is_discrete and function in continuous_only:
            raise DistributionFunctionFailureError(
                f"{function.name} is not defined for the discrete distribution {self.label}."
            )
        if not self.is_discrete and function in discrete_only:
            raise DistributionFunctionFailureError(
                f"{function.name} is not defined for the continuous distribution {self.label}."
            )
        return getattr(self.frozen, function.value)

    def __repr__(self) -> str:
        args = ", ".join(str(arg) for arg in self.frozen.args)
        kwds = ", ".join(f"{key}={value}" for key, value in self.frozen.kwds.items())
        inner = ", ".join(part for part in (args, kwds) if part)
        return f"Sampler({self.label}({inner}))"


def normal(mean: float = 0.0, std: float = 1.0) -> Sampler:
    return Sampler(stats.norm(loc=mean, scale=std), "normal")


def uniform(low: float = 0.0, high: float = 1.0) -> Sampler:
    if high < low:
        raise InvalidParameterError(f"Uniform upper bound {high} is below lower bound {low}.")
    return Sampler(stats.uniform(loc=low, scale=high - low), "uniform")


def discrete_uniform(low: int, high: int) -> Sampler:
    """Integers drawn uniformly from the inclusive range ``[low, high]``."""
    if high < low:
        raise InvalidParameterError(f"Discrete uniform upper bound {high} is below lower bound {low}.")
    return Sampler(stats.randint(int(low), int(high) + 1), "discrete_uniform")


def lognormal(mean: float = 0.0, sigma: float = 1.0) -> Sampler:
    # mean/sigma describe the underlying normal, matching numpy's lognormal
    return Sampler(stats.lognorm(s=sigma, scale=math.exp(mean)), "lognormal")


def beta(a: float = 1.0, b: float = 1.0) -> Sampler:
    return Sampler(stats.beta(a, b), "beta")


def exponential(rate: float = 1.0) -> Sampler:
    return Sampler(stats.expon(scale=1.0 / rate), "exponential")


def poisson(lam: float = 1.0) -> Sampler:
    return Sampler(stats.poisson(lam), "poisson")


def binomial(n: int, p: float) -> Sampler:
    return Sampler(stats.binom(int(n), p), "binomial")


_FACTORIES: Dict[str, Callable[..., Sampler]] = {
    "normal": normal,
    "uniform": uniform,
    "discrete_uniform": discrete_uniform,
    "lognormal": lognormal,
    "beta": beta,
    "exponential": exponential,
    "poisson": poisson,
    "binomial": binomial,
}


def from_spec(spec: Mapping[str, Any]) -> Sampler:
    """Build a sampler from ``{"dist": name, "params": {...}}``.

    Names outside the built-in factories fall through to any distribution
    :mod:`scipy.stats` exposes under that name, with ``params`` passed as
    keyword arguments (``{"dist": "gamma", "params": {"a": 2.0}}``).
    """
    if "dist" not in spec:
        raise InvalidParameterError(f"Distribution spec {dict(spec)!r} is missing a 'dist' entry.")
    name = str(spec["dist"]).strip().lower()
    params = dict(spec.get("params") or {})
    factory = _FACTORIES.get(name)
    try:
        if factory is not None:
            return factory(**params)
        family = getattr(stats, name, None)
        if not isinstance(family, (stats.rv_continuous, stats.rv_discrete)):
            raise InvalidParameterError(
                f"Unknown distribution '{name}'. Built-in: {', '.join(sorted(_FACTORIES))}"
            )
        return Sampler(family(**params), name)
    except TypeError as exc:
        raise InvalidParameterError(f"Invalid parameters for distribution '{name}': {exc}") from exc


__all__ = [
    "Sampler",
    "normal",
    "uniform",
    "discrete_uniform",
    "lognormal",
    "beta",
    "exponential",
    "poisson",
    "binomial",
    "from_spec",
]
