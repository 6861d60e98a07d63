from __future__ import annotations

import numpy as np
import pytest

from paramsim.dependent import DependentSimulation
from paramsim.exceptions import InvalidConstraintError, InvalidParameterError, InvalidProbabilityError
from paramsim.models import (
    ConstraintViolationResolution,
    DependentReturnType,
    ParameterConstraint,
    RandomBagReplacement,
)
from paramsim.parameters import (
    ConstantParameter,
    DependentSimulationParameter,
    DiscreteOutcome,
    DiscreteParameter,
    PrecomputedParameter,
    RandomBagParameter,
    SimulationParameter,
)
from paramsim.simulation import Simulation


@pytest.mark.parametrize("name", ["1abc", "", "a b", "for", "pi"])
def test_invalid_names_rejected(name: str) -> None:
    with pytest.raises(InvalidParameterError):
        ConstantParameter(name, 1.0)


def test_discrete_probabilities_must_sum_to_one() -> None:
    with pytest.raises(InvalidProbabilityError):
        DiscreteParameter("d", [DiscreteOutcome(1, 0.5), DiscreteOutcome(2, 0.4)])


def test_discrete_probability_outside_unit_interval() -> None:
    with pytest.raises(InvalidProbabilityError):
        DiscreteOutcome(1, 1.5)
    with pytest.raises(InvalidProbabilityError):
        DiscreteOutcome(1, -0.1)


def test_discrete_cumulative_thresholds_end_at_one() -> None:
    param = DiscreteParameter.from_pairs("d", {1: 0.333, 2: 0.333, 3: 0.333})
    assert param.cumulative[-1] == 1.0
    assert np.all(np.diff(param.cumulative) >= 0)


def test_precomputed_values_are_read_only() -> None:
    param = PrecomputedParameter("p", [1, 2, 3])
    assert len(param) == 3
    assert param.values.dtype == np.float64
    with pytest.raises(ValueError):
        param.values[0] = 10.0


def test_random_bag_mutation_api() -> None:
    bag = RandomBagParameter("bag", {1: 2, 2: 1}, RandomBagReplacement.NEVER)
    assert bag.number_of_items == 3
    bag.add(3, 2).remove(1)
    assert bag.contents == {1: 1, 2: 1, 3: 2}
    assert sorted(bag.contents_to_array().tolist()) == [1, 2, 3, 3]
    bag.remove_all(3)
    assert bag.number_of_items == 2
    bag.empty()
    assert bag.is_empty
    assert bag.contents_to_array().size == 0


def test_random_bag_rejects_bad_counts_and_missing_values() -> None:
    bag = RandomBagParameter("bag")
    with pytest.raises(InvalidParameterError):
        bag.add(1, 0)
    with pytest.raises(InvalidParameterError):
        bag.remove(5)


def test_random_bag_to_discrete_weights() -> None:
    bag = RandomBagParameter("bag", {"x": 1, "y": 3})
    discrete = bag.to_discrete()
    assert [o.probability for o in discrete.outcomes] == [0.25, 0.75]


def test_constraint_validation() -> None:
    with pytest.raises(InvalidConstraintError):
        ParameterConstraint()
    with pytest.raises(InvalidConstraintError):
        ParameterConstraint(lower_bound=2.0, upper_bound=1.0)
    with pytest.raises(InvalidConstraintError):
        ParameterConstraint(lower_bound=0.0, resolution=ConstraintViolationResolution.DEFAULT_VALUE)
    with pytest.raises(InvalidConstraintError):
        ParameterConstraint(
            lower_bound=0.0, resolution=ConstraintViolationResolution.RESIMULATE, default_value=-1.0
        )
    ok = ParameterConstraint(upper_bound=5.0)
    assert ok.is_violated(6.0) and not ok.is_violated(5.0)


def test_nested_parameter_defaults() -> None:
    inner = Simulation("x", ConstantParameter("x", 1.0))
    nested = SimulationParameter("s", inner)
    assert nested.summary_run_count == 10000

    path = DependentSimulation(0.0, "value + x", ConstantParameter("x", 1.0))
    plain = DependentSimulationParameter("p", path)
    assert plain.return_type is DependentReturnType.RESULTS
    assert plain.summary_run_count == 1000

    constrained = DependentSimulationParameter("q", path, constraint=ParameterConstraint(lower_bound=0.0))
    assert constrained.return_type is DependentReturnType.ENDING_VALUE
