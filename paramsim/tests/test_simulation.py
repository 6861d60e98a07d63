from __future__ import annotations

import numpy as np
import pytest

import paramsim.simulation as simulation_module
from paramsim import distributions
from paramsim.exceptions import (
    InvalidParameterError,
    ParameterInExpressionError,
    PrecomputedValueCountError,
    UnresolvedVariableError,
)
from paramsim.parameters import ConstantParameter, DistributionParameter, PrecomputedParameter
from paramsim.simulation import Simulation
from paramsim.templates import capm, dice_roll


def _abc(config) -> Simulation:
    return Simulation(
        "a + b + c",
        ConstantParameter("a", 1.0),
        ConstantParameter("b", 2.0),
        ConstantParameter("c", 3.0),
        config=config,
    )


def test_constant_sum_every_trial(config) -> None:
    results = _abc(config).simulate(100)
    assert len(results) == 100
    assert np.all(results.results == 6.0)
    assert results.first == results.last == 6.0
    assert results.mean == 6.0


def test_results_are_read_only(config) -> None:
    results = _abc(config).simulate(5)
    with pytest.raises(ValueError):
        results.results[0] = 0.0
    with pytest.raises(ValueError):
        results.raw_data[0][0] = 0.0


def test_single_list_of_parameters_accepted(config) -> None:
    sim = Simulation("x * y", [ConstantParameter("x", 2.0), ConstantParameter("y", 4.0)], config=config)
    assert sim.simulate(3).results.tolist() == [8.0, 8.0, 8.0]


def test_seeded_runs_repeat(config) -> None:
    sim = Simulation("x", DistributionParameter("x", distributions.normal()), config=config)
    a = sim.simulate(50, random_state=11).results
    b = sim.simulate(50, random_state=11).results
    assert np.array_equal(a, b)


def test_recompute_expression_reuses_raw_data(config) -> None:
    results = _abc(config).simulate(10)
    raw_before = [values.copy() for values in results.raw_data]
    results.recompute_expression("a * b * c")
    assert np.all(results.results == 6.0)
    results.recompute_expression("a - b")
    assert np.all(results.results == -1.0)
    for before, after in zip(raw_before, results.raw_data):
        assert np.array_equal(before, after)


def test_failed_recompute_keeps_previous_expression(config) -> None:
    results = _abc(config).simulate(5)
    with pytest.raises(UnresolvedVariableError):
        results.recompute_expression("a + missing")
    assert str(results.expression) == "a + b + c"
    assert np.all(results.results == 6.0)


def test_add_parameter_resolves_only_new_one(config) -> None:
    results = _abc(config).simulate(10)
    results.add_parameter(ConstantParameter("d", 4.0)).recompute_expression("a + b + c + d")
    assert np.all(results.results == 10.0)
    assert results.values_for("d").shape == (10,)
    with pytest.raises(InvalidParameterError):
        results.add_parameter(ConstantParameter("d", 1.0))


def test_remove_parameter_requires_unreferenced(config) -> None:
    results = _abc(config).simulate(10)
    with pytest.raises(ParameterInExpressionError):
        results.remove_parameter("c")
    results.recompute_expression("a + b").remove_parameter("c")
    assert [p.name for p in results.parameters] == ["a", "b"]
    results.regenerate()
    assert np.all(results.results == 3.0)
    assert "c" not in results.to_frame().columns


def test_replace_parameter_renames_expression(config) -> None:
    results = _abc(config).simulate(10)
    results.replace_parameter("c", ConstantParameter("z", 12.0))
    assert results.expression.free_names == frozenset({"a", "b", "z"})
    assert np.all(results.results == 15.0)


def test_regenerate_at_new_count(config) -> None:
    results = _abc(config).simulate(10).regenerate(50)
    assert results.number_of_simulations == 50
    assert all(values.shape == (50,) for values in results.raw_data)
    assert results.results.shape == (50,)


def test_unbound_variable(config) -> None:
    sim = Simulation("a + missing", ConstantParameter("a", 1.0), config=config)
    with pytest.raises(UnresolvedVariableError):
        sim.simulate(5)


def test_duplicate_parameter_names(config) -> None:
    with pytest.raises(InvalidParameterError):
        Simulation("a", ConstantParameter("a", 1.0), ConstantParameter("a", 2.0), config=config)


@pytest.mark.parametrize("count", [0, -1, 2.5])
def test_invalid_trial_count(config, count) -> None:
    with pytest.raises(ValueError):
        _abc(config).simulate(count)


def test_count_errors_raise_before_any_resolution(config, monkeypatch) -> None:
    calls = []
    original = simulation_module.resolve

    def recording_resolve(parameter, count, context):
        calls.append(parameter.name)
        return original(parameter, count, context)

    monkeypatch.setattr(simulation_module, "resolve", recording_resolve)
    sim = Simulation(
        "a + p", ConstantParameter("a", 1.0), PrecomputedParameter("p", [1.0, 2.0]), config=config
    )
    with pytest.raises(PrecomputedValueCountError):
        sim.simulate(3)
    assert calls == []


def test_frame_has_parameter_and_result_columns(config) -> None:
    frame = _abc(config).simulate(4).to_frame()
    assert list(frame.columns) == ["a", "b", "c", "result"]
    assert len(frame) == 4


def test_dice_roll_range(config) -> None:
    results = dice_roll(6, number_of_dice=2, config=config).simulate(2000)
    assert results.minimum >= 2 and results.maximum <= 12
    assert results.mean == pytest.approx(7.0, abs=0.3)


def test_capm_template(config) -> None:
    sim = capm(
        ConstantParameter("Rf", 0.01), ConstantParameter("B", 1.2), ConstantParameter("Rm", 0.08), config=config
    )
    assert sim.simulate(3).results == pytest.approx([0.094, 0.094, 0.094])
