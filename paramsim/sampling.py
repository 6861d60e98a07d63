"""Index-drawing primitives shared by numeric and qualitative parameters."""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.random import Generator

from .exceptions import (
    EmptyBagError,
    InvalidProbabilityError,
    RandomBagItemCountError,
    RandomBagReplacementRuleError,
)
from .models import RandomBagReplacement


def cumulative_probabilities(probabilities: Sequence[float], tolerance: float = 0.01) -> np.ndarray:
    """Validate outcome probabilities and return their cumulative thresholds.

    The thresholds are non-decreasing and the last one is exactly 1.0, so a
    uniform draw in [0, 1) always selects an outcome.
    """
    probs = np.asarray(probabilities, dtype=np.float64)
    if probs.size == 0:
        raise InvalidProbabilityError("At least one outcome is required.")
    bad = (probs < 0.0) | (probs > 1.0) | np.isnan(probs)
    if bad.any():
        raise InvalidProbabilityError(
            f"Outcome probability {probs[np.argmax(bad)]} lies outside [0, 1]."
        )
    total = float(probs.sum())
    if abs(total - 1.0) > tolerance:
        raise InvalidProbabilityError(
            f"Outcome probabilities sum to {total:.4f}; expected 1 within {tolerance:g}."
        )
    cumulative = np.minimum(np.cumsum(probs), 1.0)
    cumulative[-1] = 1.0
    cumulative.flags.writeable = False
    return cumulative


def choose_outcome_indices(cumulative: np.ndarray, count: int, rng: Generator) -> np.ndarray:
    """Index of the first outcome whose threshold is >= each uniform draw."""
    draws = rng.random(count)
    return np.searchsorted(cumulative, draws, side="left")


def bag_indices(size: int, count: int, replacement: RandomBagReplacement, rng: Generator) -> np.ndarray:
    """Positions into a flattened bag of ``size`` items for ``count`` draws.

    ``AFTER_EACH_PICK`` is not handled here; it reduces to a discrete draw.
    """
    if size == 0:
        raise EmptyBagError("Cannot draw from an empty random bag.")
    if count == 0:
        return np.empty(0, dtype=np.int64)
    if replacement is RandomBagReplacement.NEVER:
        if count > size:
            raise RandomBagItemCountError(
                f"Requested {count} draws without replacement from a bag of {size} items."
            )
        return rng.permutation(size)[:count]
    if replacement is RandomBagReplacement.WHEN_EMPTY:
        refills = -(-count // size)
        return np.concatenate([rng.permutation(size) for _ in range(refills)])[:count]
    raise RandomBagReplacementRuleError(f"Unknown random bag replacement rule {replacement!r}.")


__all__ = ["cumulative_probabilities", "choose_outcome_indices", "bag_indices"]
