"""
JSON scenario files.

A scenario describes one simulation::

    {
      "expression": "Rf + (B * (Rm - Rf))",
      "parameters": [
        {"type": "precomputed", "name": "Rf", "values": [0.01, 0.02, 0.03]},
        {"type": "distribution", "name": "B",
         "distribution": {"dist": "normal", "params": {"mean": 1.0, "std": 0.2}},
         "constraint": {"lower": 0.0, "resolution": "closest_bound"}},
        {"type": "constant", "name": "Rm", "value": 0.07}
      ]
    }

Every parameter spec carries a ``type`` and a ``name``; the remaining keys
depend on the type (see :data:`PARAMETER_BUILDERS`). Nested simulations and
reference parameters are given as nested specs.
"""

from __future__ import annotations

import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar

from .config import EngineConfig, get_default_config
from .dependent import DependentSimulation
from .distributions import from_spec
from .exceptions import InvalidParameterError
from .models import (
    ComparisonOperator,
    ConstraintViolationResolution,
    DependentReturnType,
    DistributionFunctionType,
    ParameterConstraint,
    RandomBagReplacement,
    SimulationReturnType,
)
from .parameters import (
    ConditionalOutcome,
    ConditionalParameter,
    ConstantParameter,
    DependentSimulationParameter,
    DiscreteOutcome,
    DiscreteParameter,
    DistributionFunctionParameter,
    DistributionParameter,
    Parameter,
    PrecomputedParameter,
    QualitativeInterpretationParameter,
    RandomBagParameter,
    SimulationParameter,
)
from .qualitative import (
    QualitativeConditionalParameter,
    QualitativeOutcome,
    QualitativeParameter,
    QualitativeParameterType,
    QualitativeRandomBagParameter,
)
from .simulation import Simulation

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def _enum(enum_cls: Type[E], raw: Any) -> E:
    """Look up an enum member by name or value, case-insensitively."""
    if isinstance(raw, enum_cls):
        return raw
    text = str(raw).strip()
    for member in enum_cls:
        if text.upper() == member.name or text.lower() == str(member.value).lower():
            return member
    raise InvalidParameterError(
        f"Unknown {enum_cls.__name__} '{raw}'. Expected one of: {', '.join(m.name.lower() for m in enum_cls)}"
    )


def _require(spec: Mapping[str, Any], key: str) -> Any:
    if key not in spec:
        raise InvalidParameterError(f"Parameter spec {spec.get('name', '<unnamed>')!r} is missing '{key}'.")
    return spec[key]


def _number(raw: Any) -> float:
    value = float(raw)
    return int(value) if value.is_integer() and not isinstance(raw, float) else value


def build_constraint(spec: Optional[Mapping[str, Any]], config: EngineConfig) -> Optional[ParameterConstraint]:
    if not spec:
        return None
    return ParameterConstraint(
        lower_bound=spec.get("lower"),
        upper_bound=spec.get("upper"),
        resolution=_enum(ConstraintViolationResolution, spec.get("resolution", "closest_bound")),
        max_resimulations=int(spec.get("max_resimulations", config.max_resimulations)),
        default_value=spec.get("default"),
    )


def _bag_contents(raw: Any, numeric: bool) -> Dict[Any, int]:
    # Accept {"value": count} or [{"value": v, "count": c}, ...]
    if isinstance(raw, Mapping):
        items = raw.items()
    else:
        items = ((entry["value"], entry.get("count", 1)) for entry in raw)
    return {(_number(value) if numeric else str(value)): int(count) for value, count in items}


def _conditional_outcomes(raw: List[Mapping[str, Any]], numeric: bool) -> List[ConditionalOutcome]:
    outcomes = []
    for entry in raw:
        value = _require(entry, "value")
        outcomes.append(ConditionalOutcome(
            operator=_enum(ComparisonOperator, _require(entry, "operator")),
            threshold=float(_require(entry, "threshold")),
            return_value=float(value) if numeric else str(value),
            tolerance=float(entry.get("tolerance", 0.0)),
        ))
    return outcomes


def _build_constant(spec, config):
    return ConstantParameter(spec["name"], _number(_require(spec, "value")))


def _build_discrete(spec, config):
    outcomes = [
        DiscreteOutcome(_number(entry["value"]), float(entry["probability"]))
        for entry in _require(spec, "outcomes")
    ]
    return DiscreteParameter(spec["name"], outcomes, tolerance=config.probability_tolerance)


def _build_distribution(spec, config):
    return DistributionParameter(
        spec["name"], from_spec(_require(spec, "distribution")), build_constraint(spec.get("constraint"), config)
    )


def _build_distribution_function(spec, config):
    return DistributionFunctionParameter(
        spec["name"],
        from_spec(_require(spec, "distribution")),
        _enum(DistributionFunctionType, _require(spec, "function")),
        build_parameter(_require(spec, "location"), config),
    )


def _build_precomputed(spec, config):
    return PrecomputedParameter(spec["name"], _require(spec, "values"))


def _build_conditional(spec, config):
    return ConditionalParameter(
        spec["name"],
        build_parameter(_require(spec, "reference"), config),
        float(spec.get("default", 0.0)),
        _conditional_outcomes(spec.get("outcomes", []), numeric=True),
    )


def _build_random_bag(spec, config):
    return RandomBagParameter(
        spec["name"],
        _bag_contents(_require(spec, "contents"), numeric=True),
        _enum(RandomBagReplacement, spec.get("replacement", "after_each_pick")),
    )


def _build_simulation(spec, config):
    return SimulationParameter(
        spec["name"],
        build_simulation(_require(spec, "simulation"), config),
        _enum(SimulationReturnType, spec.get("return_type", "results")),
        spec.get("summary_run_count", config.summary_run_count),
        build_constraint(spec.get("constraint"), config),
    )


def _build_dependent_simulation(spec, config):
    dependent = DependentSimulation(
        float(_require(spec, "start_value")),
        _require(spec, "expression"),
        build_parameter(_require(spec, "change_parameter"), config),
        config=config,
    )
    return_type = spec.get("return_type")
    return DependentSimulationParameter(
        spec["name"],
        dependent,
        _enum(DependentReturnType, return_type) if return_type is not None else None,
        spec.get("summary_run_count", config.dependent_summary_run_count),
        build_constraint(spec.get("constraint"), config),
    )


def _qualitative(kind: str, name: str, spec: Mapping[str, Any], config: EngineConfig) -> QualitativeParameterType:
    if kind == "qualitative":
        outcomes = [
            QualitativeOutcome(str(entry["value"]), float(entry["probability"]))
            for entry in _require(spec, "outcomes")
        ]
        return QualitativeParameter(name, outcomes, tolerance=config.probability_tolerance)
    if kind == "qualitative_random_bag":
        return QualitativeRandomBagParameter(
            name,
            _bag_contents(_require(spec, "contents"), numeric=False),
            _enum(RandomBagReplacement, spec.get("replacement", "after_each_pick")),
        )
    if kind == "qualitative_conditional":
        return QualitativeConditionalParameter(
            name,
            build_parameter(_require(spec, "reference"), config),
            str(_require(spec, "default")),
            _conditional_outcomes(spec.get("outcomes", []), numeric=False),
        )
    raise InvalidParameterError(f"Unknown qualitative parameter type '{kind}'.")


def build_qualitative(spec: Mapping[str, Any], config: Optional[EngineConfig] = None) -> QualitativeParameterType:
    config = config or get_default_config()
    if not isinstance(spec, Mapping):
        raise InvalidParameterError(f"Qualitative spec must be an object, got {type(spec).__name__}.")
    kind = str(_require(spec, "type")).strip().lower()
    name = _require(spec, "name")
    try:
        return _qualitative(kind, name, spec, config)
    except (KeyError, TypeError) as exc:
        raise InvalidParameterError(f"Malformed '{kind}' parameter spec {name!r}: {exc}") from exc


def _build_interpretation(spec, config):
    return QualitativeInterpretationParameter(
        spec["name"],
        build_qualitative(_require(spec, "qualitative"), config),
        {str(k): float(v) for k, v in _require(spec, "interpretation").items()},
        float(spec.get("default", 0.0)),
    )


PARAMETER_BUILDERS: Dict[str, Callable[[Mapping[str, Any], EngineConfig], Parameter]] = {
    "constant": _build_constant,
    "discrete": _build_discrete,
    "distribution": _build_distribution,
    "distribution_function": _build_distribution_function,
    "precomputed": _build_precomputed,
    "conditional": _build_conditional,
    "random_bag": _build_random_bag,
    "simulation": _build_simulation,
    "dependent_simulation": _build_dependent_simulation,
    "qualitative_interpretation": _build_interpretation,
}


def build_parameter(spec: Mapping[str, Any], config: Optional[EngineConfig] = None) -> Parameter:
    """Build one parameter from its JSON spec."""
    config = config or get_default_config()
    if not isinstance(spec, Mapping):
        raise InvalidParameterError(f"Parameter spec must be an object, got {type(spec).__name__}.")
    kind = str(_require(spec, "type")).strip().lower()
    builder = PARAMETER_BUILDERS.get(kind)
    if builder is None:
        raise InvalidParameterError(
            f"Unknown parameter type '{kind}'. Available: {', '.join(PARAMETER_BUILDERS)}"
        )
    _require(spec, "name")
    try:
        return builder(spec, config)
    except (KeyError, TypeError) as exc:
        raise InvalidParameterError(f"Malformed '{kind}' parameter spec {spec.get('name')!r}: {exc}") from exc


def build_simulation(payload: Mapping[str, Any], config: Optional[EngineConfig] = None) -> Simulation:
    config = config or get_default_config()
    parameters = [build_parameter(spec, config) for spec in payload.get("parameters", [])]
    return Simulation(_require(payload, "expression"), parameters, config=config)


def load_scenario(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """Read a scenario file; raises like :func:`~paramsim.config.load_engine_config`."""
    file_path = Path(path).expanduser().resolve()
    if not file_path.exists():
        raise FileNotFoundError(f"Scenario file not found: {file_path}")
    with file_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict) or "expression" not in payload:
        raise ValueError(f"Scenario file {file_path} must be an object with an 'expression' entry.")
    logger.info("Loaded scenario %s with %d parameters", file_path.name, len(payload.get("parameters", [])))
    return payload


__all__ = [
    "PARAMETER_BUILDERS",
    "build_constraint",
    "build_parameter",
    "build_qualitative",
    "build_simulation",
    "load_scenario",
]
