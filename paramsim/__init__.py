"""Public API for the paramsim package.

Parameter resolution and composition engine for Monte Carlo simulation:
heterogeneous parameters resolved into per-trial vectors, repaired against
bound constraints, composed through an arithmetic expression, nested inside
other simulations, and swept for sensitivity analysis.
"""

__version__ = "1.0.0"
__author__ = "paramsim contributors"

from .cli import run_cli, run_scenario, run_sensitivity_sweep
from .config import EngineConfig, get_default_config, load_engine_config
from .dependent import DependentSimulation, DependentSimulationResults
from .distributions import (
    Sampler,
    beta,
    binomial,
    discrete_uniform,
    exponential,
    from_spec,
    lognormal,
    normal,
    poisson,
    uniform,
)
from .exceptions import (
    DistributionFunctionFailureError,
    EmptyBagError,
    ExpressionSyntaxError,
    InvalidConfidenceLevelError,
    InvalidConstraintError,
    InvalidParameterError,
    InvalidProbabilityError,
    InvalidResolutionError,
    InvalidSummaryStatisticError,
    MissingPrecomputedParameterError,
    ParameterInExpressionError,
    PrecomputedValueCountError,
    RandomBagItemCountError,
    RandomBagReplacementRuleError,
    SimulationError,
    UnresolvedVariableError,
)
from .expressions import Expression, parse_expression
from .functions import FunctionSimulation, ListOfInputs
from .models import (
    ComparisonOperator,
    ConfidenceInterval,
    ConfidenceLevel,
    ConstraintViolationResolution,
    DependentReturnType,
    DistributionFunctionType,
    ParameterConstraint,
    RandomBagReplacement,
    SimulationReturnType,
)
from .parameters import (
    PARAMETER_TYPES,
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
    QualitativeRandomBagParameter,
)
from .resolution import ResolutionContext, make_context, resolve
from .scenario import build_parameter, build_simulation, load_scenario
from .sensitivity import (
    ExhaustiveSensitivitySimulation,
    SensitivitySimulation,
    SensitivitySimulationResults,
)
from .simulation import Simulation, SimulationResults
from .templates import capm, dice_roll

__all__ = [
    "__version__",
    "__author__",
    # engines
    "Simulation",
    "SimulationResults",
    "DependentSimulation",
    "DependentSimulationResults",
    "FunctionSimulation",
    "ListOfInputs",
    "SensitivitySimulation",
    "ExhaustiveSensitivitySimulation",
    "SensitivitySimulationResults",
    "resolve",
    "make_context",
    "ResolutionContext",
    # parameters
    "Parameter",
    "PARAMETER_TYPES",
    "ConstantParameter",
    "DiscreteOutcome",
    "DiscreteParameter",
    "DistributionParameter",
    "DistributionFunctionParameter",
    "PrecomputedParameter",
    "ConditionalOutcome",
    "ConditionalParameter",
    "RandomBagParameter",
    "SimulationParameter",
    "DependentSimulationParameter",
    "QualitativeInterpretationParameter",
    "QualitativeOutcome",
    "QualitativeParameter",
    "QualitativeRandomBagParameter",
    "QualitativeConditionalParameter",
    # models
    "ComparisonOperator",
    "ConfidenceInterval",
    "ConfidenceLevel",
    "ConstraintViolationResolution",
    "DependentReturnType",
    "DistributionFunctionType",
    "ParameterConstraint",
    "RandomBagReplacement",
    "SimulationReturnType",
    # distributions and expressions
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
    "Expression",
    "parse_expression",
    # config, scenarios, templates, cli
    "EngineConfig",
    "get_default_config",
    "load_engine_config",
    "build_parameter",
    "build_simulation",
    "load_scenario",
    "capm",
    "dice_roll",
    "run_cli",
    "run_scenario",
    "run_sensitivity_sweep",
    # errors
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
