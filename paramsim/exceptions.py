"""Error hierarchy raised by the resolution, simulation and sensitivity engines."""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for every error raised by paramsim."""


class PrecomputedValueCountError(SimulationError, ValueError):
    """A precomputed vector does not match the requested trial count."""


class EmptyBagError(SimulationError, ValueError):
    """A random bag with no items was asked for draws."""


class RandomBagItemCountError(SimulationError, ValueError):
    """A no-replacement bag was asked for more draws than it holds."""


class RandomBagReplacementRuleError(SimulationError, ValueError):
    """The bag's replacement policy is not one the engine understands."""


class ParameterInExpressionError(SimulationError, ValueError):
    """A parameter cannot be removed while the expression still references it."""


class InvalidParameterError(SimulationError, ValueError):
    """Unknown parameter variant, missing parameter, or invalid parameter name."""


class InvalidResolutionError(SimulationError, ValueError):
    """The constraint's violation policy is not recognised."""


class MissingPrecomputedParameterError(SimulationError, ValueError):
    """A sensitivity analysis needs at least one precomputed factor parameter."""


class InvalidProbabilityError(SimulationError, ValueError):
    """An outcome probability lies outside [0, 1] or the outcomes do not sum to 1."""


class InvalidSummaryStatisticError(SimulationError, ValueError):
    """A scalar statistic was required but a non-scalar return type was given."""


class InvalidConstraintError(SimulationError, ValueError):
    """A bound constraint is malformed."""


class DistributionFunctionFailureError(SimulationError):
    """A sampler's cdf/pdf/ppf/pmf could not be evaluated at the given locations."""


class InvalidConfidenceLevelError(SimulationError, ValueError):
    """The requested confidence level has no tabulated z-score."""


class ExpressionSyntaxError(SimulationError, ValueError):
    """Expression text could not be parsed."""


class UnresolvedVariableError(SimulationError, KeyError):
    """An expression was evaluated with one of its variables left unbound."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return str(self.args[0]) if self.args else ""


__all__ = [
    "SimulationError",
    "PrecomputedValueCountError",
    "EmptyBagError",
    "RandomBagItemCountError",
    "RandomBagReplacementRuleError",
    "ParameterInExpressionError",
    "InvalidParameterError",
    "InvalidResolutionError",
    "MissingPrecomputedParameterError",
    "InvalidProbabilityError",
    "InvalidSummaryStatisticError",
    "InvalidConstraintError",
    "DistributionFunctionFailureError",
    "InvalidConfidenceLevelError",
    "ExpressionSyntaxError",
    "UnresolvedVariableError",
]
