"""
Categorical (string-valued) parameters.

These only exist to feed :class:`~paramsim.parameters.QualitativeInterpretationParameter`,
which maps each categorical outcome to a number. They follow the same drawing
rules as their numeric counterparts: weighted outcomes with cumulative
thresholds, random bags with a replacement rule, and first-match conditionals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Union

import numpy as np

from .config import get_default_config
from .exceptions import InvalidParameterError, InvalidProbabilityError
from .models import RandomBagReplacement
from .parameters import ConditionalOutcome, validate_name
from .sampling import bag_indices, choose_outcome_indices, cumulative_probabilities

if TYPE_CHECKING:
    from .parameters import Parameter
    from .resolution import ResolutionContext


@dataclass(frozen=True, slots=True)
class QualitativeOutcome:
    value: str
    probability: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.probability <= 1.0:
            raise InvalidProbabilityError(
                f"Outcome probability {self.probability} lies outside [0, 1]."
            )


@dataclass(eq=False)
class QualitativeParameter:
    name: str
    outcomes: List[QualitativeOutcome]
    tolerance: Optional[float] = field(default=None, repr=False)
    cumulative: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        validate_name(self.name)
        self.outcomes = list(self.outcomes)
        if self.tolerance is None:
            self.tolerance = get_default_config().probability_tolerance
        self.cumulative = cumulative_probabilities([o.probability for o in self.outcomes], self.tolerance)


@dataclass(eq=False)
class QualitativeRandomBagParameter:
    name: str
    contents: Dict[str, int] = field(default_factory=dict)
    replacement: RandomBagReplacement = RandomBagReplacement.AFTER_EACH_PICK

    def __post_init__(self) -> None:
        validate_name(self.name)
        for value, count in self.contents.items():
            if int(count) != count or count < 1:
                raise InvalidParameterError(f"Item count for {value!r} must be a positive integer.")

    @property
    def number_of_items(self) -> int:
        return sum(self.contents.values())

    def contents_to_array(self) -> np.ndarray:
        return np.repeat(np.asarray(list(self.contents.keys()), dtype=object), list(self.contents.values()))


@dataclass(eq=False)
class QualitativeConditionalParameter:
    """Categorical outcome chosen by comparing a numeric reference parameter."""

    name: str
    reference_parameter: "Parameter"
    default_value: str
    outcomes: List[ConditionalOutcome] = field(default_factory=list)

    def __post_init__(self) -> None:
        validate_name(self.name)
        self.outcomes = list(self.outcomes)


QualitativeParameterType = Union[
    QualitativeParameter,
    QualitativeRandomBagParameter,
    QualitativeConditionalParameter,
]


def resolve_qualitative(
    parameter: QualitativeParameterType,
    count: int,
    context: "ResolutionContext",
) -> np.ndarray:
    """Resolve a categorical parameter into an object array of ``count`` strings."""
    if isinstance(parameter, QualitativeParameter):
        labels = np.asarray([o.value for o in parameter.outcomes], dtype=object)
        return labels[choose_outcome_indices(parameter.cumulative, count, context.rng)]
    if isinstance(parameter, QualitativeRandomBagParameter):
        if parameter.replacement is RandomBagReplacement.AFTER_EACH_PICK and parameter.contents:
            total = parameter.number_of_items
            cumulative = cumulative_probabilities([c / total for c in parameter.contents.values()])
            labels = np.asarray(list(parameter.contents.keys()), dtype=object)
            return labels[choose_outcome_indices(cumulative, count, context.rng)]
        items = parameter.contents_to_array()
        return items[bag_indices(items.shape[0], count, parameter.replacement, context.rng)]
    if isinstance(parameter, QualitativeConditionalParameter):
        from .resolution import resolve

        reference = resolve(parameter.reference_parameter, count, context)
        output = np.full(count, parameter.default_value, dtype=object)
        unmatched = np.ones(count, dtype=bool)
        for outcome in parameter.outcomes:
            hit = unmatched & outcome.matches(reference)
            output[hit] = outcome.return_value
            unmatched &= ~hit
        return output
    raise InvalidParameterError(
        f"Unknown qualitative parameter type {type(parameter).__name__}."
    )


__all__ = [
    "QualitativeOutcome",
    "QualitativeParameter",
    "QualitativeRandomBagParameter",
    "QualitativeConditionalParameter",
    "QualitativeParameterType",
    "resolve_qualitative",
]
