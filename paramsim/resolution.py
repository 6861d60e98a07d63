"""
Parameter resolution engine.

:func:`resolve` turns any parameter variant into a vector of exactly
``sample_count`` per-trial values. Dispatch goes through a registry keyed by
variant type, with one resolver per class in
:data:`~paramsim.parameters.PARAMETER_TYPES`.

Nested simulations summarised by a statistic run once per outer trial. Those
runs fan out across a thread pool; each trial writes into its own pre-sized
slot and owns a child generator spawned from the caller's, so the result does
not depend on thread scheduling.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

import numpy as np
from numpy.random import Generator

from .config import EngineConfig, get_default_config
from .constraints import apply_constraint
from .exceptions import EmptyBagError, InvalidParameterError, PrecomputedValueCountError
from .models import DependentReturnType, RandomBagReplacement, SimulationReturnType
from .parameters import (
    ConditionalParameter,
    ConstantParameter,
    DependentSimulationParameter,
    DiscreteParameter,
    DistributionFunctionParameter,
    DistributionParameter,
    Parameter,
    PrecomputedParameter,
    QualitativeInterpretationParameter,
    RandomBagParameter,
    SimulationParameter,
)
from .qualitative import resolve_qualitative
from .sampling import bag_indices, choose_outcome_indices
from .statistics import dependent_statistic, summary_statistic

logger = logging.getLogger(__name__)


@dataclass
class ResolutionContext:
    """Random source and engine settings threaded through a resolution."""

    rng: Generator
    config: EngineConfig

    def spawn(self, count: int) -> List["ResolutionContext"]:
        return [ResolutionContext(child, self.config) for child in self.rng.spawn(count)]


def make_context(
    random_state: "Generator | int | None" = None,
    config: Optional[EngineConfig] = None,
) -> ResolutionContext:
    """Build a context from a generator, a seed, or the config's ``random_seed``."""
    config = config or get_default_config()
    if isinstance(random_state, Generator):
        rng = random_state
    elif random_state is not None:
        rng = np.random.default_rng(random_state)
    else:
        rng = np.random.default_rng(config.random_seed)
    return ResolutionContext(rng, config)


def fan_out(
    func: Callable[[ResolutionContext], float],
    count: int,
    context: ResolutionContext,
) -> np.ndarray:
    """Call ``func`` once per trial with an independent child context.

    Results land in a pre-sized slot array indexed by trial number. The call
    returns only after every trial has finished.
    """
    children = context.spawn(count)
    slots = np.empty(count, dtype=np.float64)
    config = context.config
    if config.parallel_enabled and count >= config.parallel_threshold:
        def _run(index: int) -> None:
            slots[index] = func(children[index])

        with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
            # list() propagates the first worker exception after the join
            list(executor.map(_run, range(count)))
    else:
        for index, child in enumerate(children):
            slots[index] = func(child)
    return slots


ResolverFn = Callable[[Any, int, ResolutionContext], np.ndarray]
_RESOLVERS: Dict[Type[Any], ResolverFn] = {}


def _register(parameter_type: Type[Any]) -> Callable[[ResolverFn], ResolverFn]:
    def decorator(func: ResolverFn) -> ResolverFn:
        _RESOLVERS[parameter_type] = func
        return func

    return decorator


def registered_types() -> tuple:
    return tuple(_RESOLVERS)


def resolve(parameter: Parameter, sample_count: int, context: ResolutionContext) -> np.ndarray:
    """Resolve ``parameter`` into exactly ``sample_count`` per-trial values.

    Raises
    ------
    InvalidParameterError
        If ``parameter`` is not one of the known variants.
    """
    resolver = _RESOLVERS.get(type(parameter))
    if resolver is None:
        raise InvalidParameterError(
            f"Cannot resolve object of type {type(parameter).__name__}; it is not a parameter variant."
        )
    logger.debug("Resolving %s '%s' at %d samples", type(parameter).__name__, parameter.name, sample_count)
    values = resolver(parameter, sample_count, context)
    if values.shape != (sample_count,):
        raise AssertionError(
            f"Resolver for {type(parameter).__name__} produced shape {values.shape}, expected ({sample_count},)"
        )
    return values


@_register(ConstantParameter)
def _resolve_constant(parameter: ConstantParameter, count: int, context: ResolutionContext) -> np.ndarray:
    return np.full(count, parameter.value)


@_register(DiscreteParameter)
def _resolve_discrete(parameter: DiscreteParameter, count: int, context: ResolutionContext) -> np.ndarray:
    return parameter.values[choose_outcome_indices(parameter.cumulative, count, context.rng)]


@_register(DistributionParameter)
def _resolve_distribution(parameter: DistributionParameter, count: int, context: ResolutionContext) -> np.ndarray:
    samples = parameter.sampler.samples(count, context.rng)
    if parameter.constraint is None:
        return samples
    return apply_constraint(samples, parameter.constraint, lambda: parameter.sampler.sample(context.rng))


@_register(DistributionFunctionParameter)
def _resolve_distribution_function(
    parameter: DistributionFunctionParameter, count: int, context: ResolutionContext
) -> np.ndarray:
    locations = resolve(parameter.location_parameter, count, context)
    return parameter.sampler.evaluate(parameter.function, locations)


@_register(PrecomputedParameter)
def _resolve_precomputed(parameter: PrecomputedParameter, count: int, context: ResolutionContext) -> np.ndarray:
    if len(parameter) != count:
        raise PrecomputedValueCountError(
            f"Precomputed parameter '{parameter.name}' has {len(parameter)} values; {count} requested."
        )
    return parameter.values.copy()


@_register(ConditionalParameter)
def _resolve_conditional(parameter: ConditionalParameter, count: int, context: ResolutionContext) -> np.ndarray:
    reference = resolve(parameter.reference_parameter, count, context)
    output = np.full(count, parameter.default_value, dtype=np.float64)
    unmatched = np.ones(count, dtype=bool)
    for outcome in parameter.outcomes:
        hit = unmatched & outcome.matches(reference)
        output[hit] = outcome.return_value
        unmatched &= ~hit
    return output


@_register(RandomBagParameter)
def _resolve_random_bag(parameter: RandomBagParameter, count: int, context: ResolutionContext) -> np.ndarray:
    if parameter.is_empty:
        raise EmptyBagError(f"Random bag '{parameter.name}' is empty.")
    if parameter.replacement is RandomBagReplacement.AFTER_EACH_PICK:
        return _resolve_discrete(parameter.to_discrete(), count, context)
    items = parameter.contents_to_array()
    return items[bag_indices(items.shape[0], count, parameter.replacement, context.rng)]


@_register(SimulationParameter)
def _resolve_simulation(parameter: SimulationParameter, count: int, context: ResolutionContext) -> np.ndarray:
    simulation = parameter.simulation
    if parameter.return_type is SimulationReturnType.RESULTS:
        if parameter.constraint is not None:
            logger.warning(
                "Constraint on '%s' ignored: nested results are used as-is", parameter.name
            )
        return simulation.simulate(count, random_state=context.rng).results.copy()

    runs = parameter.summary_run_count
    return_type = parameter.return_type

    def _statistic(child: ResolutionContext) -> float:
        return summary_statistic(simulation.simulate(runs, random_state=child.rng).results, return_type)

    values = fan_out(_statistic, count, context)
    if parameter.constraint is None:
        return values
    return apply_constraint(values, parameter.constraint, lambda: _statistic(context))


@_register(DependentSimulationParameter)
def _resolve_dependent_simulation(
    parameter: DependentSimulationParameter, count: int, context: ResolutionContext
) -> np.ndarray:
    dependent = parameter.dependent_simulation
    if parameter.return_type is DependentReturnType.RESULTS:
        if parameter.constraint is not None:
            logger.warning(
                "Constraint on '%s' ignored: nested results are used as-is", parameter.name
            )
        return dependent.simulate(count, random_state=context.rng).results.copy()

    runs = parameter.summary_run_count
    return_type = parameter.return_type

    def _statistic(child: ResolutionContext) -> float:
        path = dependent.simulate(runs, random_state=child.rng)
        return dependent_statistic(path.results, path.change_values, return_type)

    values = fan_out(_statistic, count, context)
    if parameter.constraint is None:
        return values
    return apply_constraint(values, parameter.constraint, lambda: _statistic(context))


@_register(QualitativeInterpretationParameter)
def _resolve_interpretation(
    parameter: QualitativeInterpretationParameter, count: int, context: ResolutionContext
) -> np.ndarray:
    labels = resolve_qualitative(parameter.qualitative_parameter, count, context)
    lookup = parameter.interpretation
    default = parameter.default_value
    return np.fromiter((lookup.get(label, default) for label in labels), dtype=np.float64, count=count)


__all__ = [
    "ResolutionContext",
    "make_context",
    "fan_out",
    "resolve",
    "registered_types",
]
