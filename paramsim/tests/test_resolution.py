from __future__ import annotations

import logging

import numpy as np
import pytest

from paramsim import distributions
from paramsim.config import EngineConfig
from paramsim.dependent import DependentSimulation
from paramsim.exceptions import (
    DistributionFunctionFailureError,
    EmptyBagError,
    InvalidParameterError,
    PrecomputedValueCountError,
    RandomBagItemCountError,
    RandomBagReplacementRuleError,
)
from paramsim.models import (
    ComparisonOperator,
    ConstraintViolationResolution,
    DependentReturnType,
    DistributionFunctionType,
    ParameterConstraint,
    RandomBagReplacement,
    SimulationReturnType,
)
from paramsim.parameters import (
    PARAMETER_TYPES,
    ConditionalOutcome,
    ConditionalParameter,
    ConstantParameter,
    DependentSimulationParameter,
    DiscreteParameter,
    DistributionFunctionParameter,
    DistributionParameter,
    PrecomputedParameter,
    QualitativeInterpretationParameter,
    RandomBagParameter,
    SimulationParameter,
)
from paramsim.qualitative import QualitativeOutcome, QualitativeParameter, QualitativeRandomBagParameter
from paramsim.resolution import make_context, registered_types, resolve
from paramsim.simulation import Simulation


def test_every_variant_has_a_resolver() -> None:
    assert set(registered_types()) == set(PARAMETER_TYPES)


def test_unknown_object_is_rejected(context) -> None:
    with pytest.raises(InvalidParameterError):
        resolve(object(), 10, context)


def test_constant_fills_every_trial(context) -> None:
    values = resolve(ConstantParameter("c", 3.5), 100, context)
    assert values.shape == (100,)
    assert np.all(values == 3.5)


def test_discrete_frequencies_converge(context) -> None:
    param = DiscreteParameter.from_pairs("d", {1: 0.2, 2: 0.3, 3: 0.5})
    values = resolve(param, 100_000, context)
    for outcome, probability in ((1, 0.2), (2, 0.3), (3, 0.5)):
        assert np.mean(values == outcome) == pytest.approx(probability, abs=0.02)


def test_discrete_zero_probability_outcome_never_drawn(context) -> None:
    param = DiscreteParameter.from_pairs("d", {10: 0.0, 20: 1.0})
    assert np.all(resolve(param, 1000, context) == 20)


def test_precomputed_length_must_match(context) -> None:
    param = PrecomputedParameter("p", [1.0, 2.0, 3.0])
    with pytest.raises(PrecomputedValueCountError):
        resolve(param, 4, context)
    values = resolve(param, 3, context)
    assert values.tolist() == [1.0, 2.0, 3.0]
    values[0] = 99.0
    assert param.values[0] == 1.0


def test_bag_without_replacement_respects_multiplicity(context) -> None:
    bag = RandomBagParameter("bag", {1: 2, 2: 1, 3: 3}, RandomBagReplacement.NEVER)
    with pytest.raises(RandomBagItemCountError):
        resolve(bag, 7, context)
    drawn = resolve(bag, 6, context)
    assert sorted(drawn.tolist()) == [1, 1, 2, 3, 3, 3]
    partial = resolve(bag, 4, context)
    for value, count in bag.contents.items():
        assert np.sum(partial == value) <= count


def test_bag_when_empty_refills_whole_bag(context) -> None:
    bag = RandomBagParameter("bag", {1: 1, 2: 1, 3: 1, 4: 1}, RandomBagReplacement.WHEN_EMPTY)
    drawn = resolve(bag, 10, context)
    assert drawn.shape == (10,)
    assert sorted(drawn[:4].tolist()) == [1, 2, 3, 4]
    assert sorted(drawn[4:8].tolist()) == [1, 2, 3, 4]
    assert set(drawn[8:].tolist()) <= {1, 2, 3, 4}


def test_bag_after_each_pick_behaves_like_discrete(context) -> None:
    bag = RandomBagParameter("bag", {0: 1, 1: 3})
    drawn = resolve(bag, 50_000, context)
    assert np.mean(drawn == 1) == pytest.approx(0.75, abs=0.02)


def test_empty_bag_and_unknown_rule(context) -> None:
    with pytest.raises(EmptyBagError):
        resolve(RandomBagParameter("bag"), 5, context)
    bag = RandomBagParameter("bag", {1: 2})
    bag.replacement = "sometimes"
    with pytest.raises(RandomBagReplacementRuleError):
        resolve(bag, 1, context)


def test_conditional_first_match_wins(context) -> None:
    param = ConditionalParameter(
        "cond",
        PrecomputedParameter("ref", [0.0, 1.0, 5.0, 10.0]),
        default_value=-1.0,
        outcomes=[
            ConditionalOutcome(ComparisonOperator.GREATER_THAN_OR_EQUAL, 5.0, 100.0),
            ConditionalOutcome(ComparisonOperator.GREATER_THAN_OR_EQUAL, 1.0, 50.0),
        ],
    )
    assert resolve(param, 4, context).tolist() == [-1.0, 50.0, 100.0, 100.0]


def test_conditional_equality_tolerance(context) -> None:
    reference = PrecomputedParameter("ref", [0.1 + 0.2, 0.5])
    exact = ConditionalParameter("a", reference, 0.0, [ConditionalOutcome(ComparisonOperator.EQUAL, 0.3, 1.0)])
    loose = ConditionalParameter(
        "b", reference, 0.0, [ConditionalOutcome(ComparisonOperator.EQUAL, 0.3, 1.0, tolerance=1e-9)]
    )
    assert resolve(exact, 2, context).tolist() == [0.0, 0.0]
    assert resolve(loose, 2, context).tolist() == [1.0, 0.0]


def test_distribution_function_evaluates_at_locations(context) -> None:
    param = DistributionFunctionParameter(
        "p", distributions.normal(0.0, 1.0), DistributionFunctionType.CUMULATIVE_DISTRIBUTION,
        ConstantParameter("z", 0.0),
    )
    assert resolve(param, 3, context) == pytest.approx([0.5, 0.5, 0.5])


def test_distribution_function_failures_are_wrapped(context) -> None:
    bad_location = DistributionFunctionParameter(
        "q", distributions.normal(), DistributionFunctionType.INVERSE_CUMULATIVE_DISTRIBUTION,
        ConstantParameter("u", 1.5),
    )
    with pytest.raises(DistributionFunctionFailureError):
        resolve(bad_location, 2, context)
    wrong_family = DistributionFunctionParameter(
        "r", distributions.normal(), DistributionFunctionType.PROBABILITY, ConstantParameter("k", 1.0),
    )
    with pytest.raises(DistributionFunctionFailureError):
        resolve(wrong_family, 2, context)


def test_closest_bound_keeps_in_bounds_samples(config) -> None:
    sampler = distributions.normal(0.0, 1.0)
    raw = sampler.samples(5000, np.random.default_rng(99))
    param = DistributionParameter("x", sampler, ParameterConstraint(lower_bound=-0.5, upper_bound=0.5))
    repaired = resolve(param, 5000, make_context(np.random.default_rng(99), config))
    assert repaired.min() >= -0.5 and repaired.max() <= 0.5
    inside = (raw >= -0.5) & (raw <= 0.5)
    assert np.array_equal(repaired[inside], raw[inside])


def test_integer_samples_clamp_to_integer_bounds(context) -> None:
    param = DistributionParameter(
        "die", distributions.discrete_uniform(1, 10), ParameterConstraint(lower_bound=2.5, upper_bound=7.5)
    )
    values = resolve(param, 2000, context)
    assert np.issubdtype(values.dtype, np.integer)
    assert values.min() >= 3 and values.max() <= 7


def test_nested_results_reuse_inner_vector(context) -> None:
    inner = Simulation("x * 2", ConstantParameter("x", 3.0))
    values = resolve(SimulationParameter("s", inner), 25, context)
    assert values.shape == (25,)
    assert np.all(values == 6.0)


def test_nested_results_ignore_constraint(context, caplog) -> None:
    inner = Simulation("x", ConstantParameter("x", 10.0))
    param = SimulationParameter("s", inner, constraint=ParameterConstraint(upper_bound=5.0))
    with caplog.at_level(logging.WARNING, logger="paramsim.resolution"):
        values = resolve(param, 10, context)
    assert np.all(values == 10.0)
    assert "ignored" in caplog.text


def test_nested_summary_statistic_per_trial(context) -> None:
    inner = Simulation("x", DiscreteParameter.from_pairs("x", {0: 0.5, 1: 0.5}))
    param = SimulationParameter("s", inner, SimulationReturnType.MEAN, summary_run_count=200)
    values = resolve(param, 30, context)
    assert values.shape == (30,)
    assert np.all((values >= 0.0) & (values <= 1.0))
    assert len(np.unique(values)) > 1


def test_nested_summary_constraint_repairs_statistic(context) -> None:
    inner = Simulation("x", DistributionParameter("x", distributions.normal(0.0, 1.0)))
    param = SimulationParameter(
        "s", inner, SimulationReturnType.MAXIMUM, summary_run_count=50,
        constraint=ParameterConstraint(upper_bound=1.0),
    )
    assert resolve(param, 20, context).max() <= 1.0


def test_parallel_fan_out_matches_serial() -> None:
    inner = Simulation("x", DistributionParameter("x", distributions.normal(0.0, 1.0)))
    param = SimulationParameter("s", inner, SimulationReturnType.MEAN, summary_run_count=20)
    serial = EngineConfig(use_parallel=False)
    parallel = EngineConfig(use_parallel=True, max_workers=4, parallel_threshold=1)
    a = resolve(param, 16, make_context(5, serial))
    b = resolve(param, 16, make_context(5, parallel))
    assert np.array_equal(a, b)


def test_nested_dependent_ending_value(context) -> None:
    path = DependentSimulation(0.0, "value + step", ConstantParameter("step", 1.0))
    param = DependentSimulationParameter("p", path, DependentReturnType.ENDING_VALUE, summary_run_count=5)
    assert np.all(resolve(param, 8, context) == 5.0)


def test_nested_dependent_results_mode(context) -> None:
    path = DependentSimulation(10.0, "value - step", ConstantParameter("step", 2.0))
    values = resolve(DependentSimulationParameter("p", path), 3, context)
    assert values.tolist() == [8.0, 6.0, 4.0]


def test_qualitative_interpretation_maps_outcomes(context) -> None:
    coin = QualitativeParameter("coin", [QualitativeOutcome("heads", 0.5), QualitativeOutcome("tails", 0.5)])
    param = QualitativeInterpretationParameter("payoff", coin, {"heads": 1.0, "tails": 0.0})
    values = resolve(param, 20_000, context)
    assert set(np.unique(values).tolist()) <= {0.0, 1.0}
    assert values.mean() == pytest.approx(0.5, abs=0.02)


def test_qualitative_interpretation_default_for_unmapped(context) -> None:
    bag = QualitativeRandomBagParameter("card", {"ace": 1, "king": 1}, RandomBagReplacement.NEVER)
    param = QualitativeInterpretationParameter("score", bag, {"ace": 11.0}, default_value=-1.0)
    assert sorted(resolve(param, 2, context).tolist()) == [-1.0, 11.0]


class RecordingSimulation(Simulation):
    """Remembers the trial count of every run."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.counts = []

    def simulate(self, number_of_simulations, random_state=None):
        self.counts.append(number_of_simulations)
        return super().simulate(number_of_simulations, random_state=random_state)


def test_nested_summary_resimulation_uses_summary_run_count(context) -> None:
    inner = RecordingSimulation("x", DistributionParameter("x", distributions.normal(0.0, 1.0)))
    param = SimulationParameter(
        "s", inner, SimulationReturnType.MAXIMUM, summary_run_count=7,
        constraint=ParameterConstraint(
            upper_bound=1.0,
            resolution=ConstraintViolationResolution.RESIMULATE,
            max_resimulations=3,
            default_value=0.0,
        ),
    )
    values = resolve(param, 20, context)
    assert values.max() <= 1.0
    # The maximum of 7 standard normals exceeds 1 most of the time, so redraws happen
    assert len(inner.counts) > 20
    assert set(inner.counts) == {7}
