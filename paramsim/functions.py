"""
Function simulations: call an arbitrary Python callable once per trial.

Each positional input becomes one argument column of length ``n``:

* parameter variants are resolved (qualitative ones too);
* :class:`ListOfInputs` supplies its values as-is, one per trial;
* nested :class:`FunctionSimulation` objects are simulated at ``n`` trials;
* a :class:`~paramsim.distributions.Sampler` is drawn ``n`` times;
* anything else is passed unchanged to every call.

    >>> hypotenuse = FunctionSimulation(lambda a, b: (a ** 2 + b ** 2) ** 0.5, 3, 4)
    >>> hypotenuse.simulate(10)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence

import numpy as np
from numpy.random import Generator

from .config import EngineConfig, get_default_config
from .distributions import Sampler
from .exceptions import PrecomputedValueCountError
from .parameters import PARAMETER_TYPES
from .qualitative import (
    QualitativeConditionalParameter,
    QualitativeParameter,
    QualitativeRandomBagParameter,
    resolve_qualitative,
)
from .resolution import ResolutionContext, make_context, resolve
from .simulation import _validate_count, validate_parameters

logger = logging.getLogger(__name__)

_QUALITATIVE_TYPES = (QualitativeParameter, QualitativeRandomBagParameter, QualitativeConditionalParameter)


class ListOfInputs:
    """Explicit per-trial inputs; the length must equal the trial count."""

    def __init__(self, inputs: Sequence[Any]) -> None:
        self.inputs = list(inputs)

    def __len__(self) -> int:
        return len(self.inputs)

    def __repr__(self) -> str:
        return f"ListOfInputs({len(self.inputs)} inputs)"


def input_values(obj: Any, count: int, context: ResolutionContext, passthrough: bool = False) -> List[Any]:
    """Expand one function input into ``count`` per-trial arguments."""
    if isinstance(obj, ListOfInputs):
        if len(obj) != count:
            raise PrecomputedValueCountError(
                f"ListOfInputs holds {len(obj)} inputs; {count} simulations requested."
            )
        return list(obj.inputs)
    if not passthrough:
        if isinstance(obj, PARAMETER_TYPES):
            return list(resolve(obj, count, context))
        if isinstance(obj, _QUALITATIVE_TYPES):
            return list(resolve_qualitative(obj, count, context))
    if isinstance(obj, FunctionSimulation):
        return list(obj.simulate(count, random_state=context.rng))
    if isinstance(obj, Sampler):
        return list(obj.samples(count, context.rng))
    return [obj] * count


class FunctionSimulation:
    """``function`` applied trial by trial to the expanded ``inputs``.

    Parameters
    ----------
    function:
        Any callable taking one positional argument per input.
    *inputs:
        Parameters, samplers, :class:`ListOfInputs`, nested function
        simulations, or plain values.
    passthrough:
        Hand parameter objects to ``function`` unresolved instead of
        resolving them per trial.
    config:
        Engine settings. ``config.random_seed`` seeds the simulation's own generator.
    """

    def __init__(
        self,
        function: Callable[..., Any],
        *inputs: Any,
        passthrough: bool = False,
        config: Optional[EngineConfig] = None,
    ) -> None:
        if not callable(function):
            raise TypeError(f"Expected a callable, got {type(function).__name__}.")
        self.function = function
        self.inputs = list(inputs)
        self.passthrough = passthrough
        self.config = config or get_default_config()
        self._rng = np.random.default_rng(self.config.random_seed)

    def simulate(
        self,
        number_of_simulations: int,
        random_state: "Generator | int | None" = None,
    ) -> np.ndarray:
        """Return the ``number_of_simulations`` function outputs, one per trial."""
        count = _validate_count(number_of_simulations)
        if not self.passthrough:
            validate_parameters([obj for obj in self.inputs if isinstance(obj, PARAMETER_TYPES)], count)
        if random_state is None:
            context = ResolutionContext(self._rng, self.config)
        else:
            context = make_context(random_state, self.config)
        columns = [input_values(obj, count, context, self.passthrough) for obj in self.inputs]
        logger.debug("Calling %r over %d trials with %d inputs", self.function, count, len(columns))
        if not columns:
            return np.asarray([self.function() for _ in range(count)])
        return np.asarray([self.function(*arguments) for arguments in zip(*columns)])

    def __repr__(self) -> str:
        name = getattr(self.function, "__name__", type(self.function).__name__)
        return f"FunctionSimulation({name}, inputs={len(self.inputs)}, passthrough={self.passthrough})"


__all__ = ["FunctionSimulation", "ListOfInputs", "input_values"]
