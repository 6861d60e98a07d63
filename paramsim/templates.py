"""Ready-made simulations for common setups.

Each returns an unrun :class:`~paramsim.simulation.Simulation`, usable on its
own or nested inside a :class:`~paramsim.parameters.SimulationParameter`.
"""

from __future__ import annotations

from typing import Optional

from .config import EngineConfig
from .distributions import discrete_uniform
from .exceptions import InvalidParameterError
from .parameters import DistributionParameter, Parameter
from .simulation import Simulation


def capm(
    risk_free_rate: Parameter,
    beta: Parameter,
    market_return: Parameter,
    config: Optional[EngineConfig] = None,
) -> Simulation:
    """Capital asset pricing model: ``Rf + B * (Rm - Rf)`` over the given parameters."""
    rf, b, rm = risk_free_rate.name, beta.name, market_return.name
    expression = f"{rf} + ({b} * ({rm} - {rf}))"
    return Simulation(expression, risk_free_rate, beta, market_return, config=config)


def dice_roll(number_of_sides: int, number_of_dice: int = 1, config: Optional[EngineConfig] = None) -> Simulation:
    """Sum of ``number_of_dice`` fair dice named ``die0``, ``die1``, ..."""
    if number_of_sides < 1 or number_of_dice < 1:
        raise InvalidParameterError("Dice need at least one side and at least one die.")
    names = [f"die{i}" for i in range(number_of_dice)]
    dice = [DistributionParameter(name, discrete_uniform(1, number_of_sides)) for name in names]
    return Simulation(" + ".join(names), dice, config=config)


__all__ = ["capm", "dice_roll"]
