"""Bound-constraint repair for resolved sample vectors."""

from __future__ import annotations

import logging
import math
from typing import Callable

import numpy as np

from .exceptions import InvalidResolutionError
from .models import ConstraintViolationResolution, ParameterConstraint

logger = logging.getLogger(__name__)


def violation_mask(samples: np.ndarray, constraint: ParameterConstraint) -> np.ndarray:
    values = np.asarray(samples)
    mask = np.zeros(values.shape, dtype=bool)
    if constraint.lower_bound is not None:
        mask |= values < constraint.lower_bound
    if constraint.upper_bound is not None:
        mask |= values > constraint.upper_bound
    return mask


def apply_constraint(
    samples: np.ndarray,
    constraint: ParameterConstraint,
    resample: Callable[[], float],
) -> np.ndarray:
    """Return a repaired copy of ``samples`` with every value inside the bounds.

    Samples already within the bounds are kept unchanged. ``resample`` draws
    one fresh value and is only called by the ``RESIMULATE`` policy.

    Raises
    ------
    InvalidResolutionError
        If the constraint carries an unknown resolution policy.
    """
    policy = constraint.resolution
    if not isinstance(policy, ConstraintViolationResolution):
        raise InvalidResolutionError(f"Unknown constraint violation resolution {policy!r}.")
    repaired = np.array(samples, copy=True)
    mask = violation_mask(repaired, constraint)
    if not mask.any():
        return repaired

    if policy is ConstraintViolationResolution.CLOSEST_BOUND:
        return _clamp(repaired, constraint)

    if np.issubdtype(repaired.dtype, np.integer) and not float(constraint.default_value).is_integer():
        repaired = repaired.astype(np.float64)

    if policy is ConstraintViolationResolution.DEFAULT_VALUE:
        repaired[mask] = constraint.default_value
        return repaired

    fallbacks = 0
    for index in np.flatnonzero(mask):
        replacement = constraint.default_value
        for _ in range(constraint.max_resimulations):
            candidate = resample()
            if not constraint.is_violated(candidate):
                replacement = candidate
                break
        else:
            fallbacks += 1
        repaired[index] = replacement
    if fallbacks:
        logger.warning(
            "%d of %d resimulated samples stayed out of bounds after %d attempts; used default %s",
            fallbacks, int(mask.sum()), constraint.max_resimulations, constraint.default_value,
        )
    return repaired


def _clamp(values: np.ndarray, constraint: ParameterConstraint) -> np.ndarray:
    lower, upper = constraint.lower_bound, constraint.upper_bound
    if np.issubdtype(values.dtype, np.integer):
        int_lower = math.ceil(lower) if lower is not None else None
        int_upper = math.floor(upper) if upper is not None else None
        if int_lower is not None and int_upper is not None and int_lower > int_upper:
            # No integer fits between the bounds
            values = values.astype(np.float64)
        else:
            lower, upper = int_lower, int_upper
    # Lower bound is checked first, so a value below it never reaches the upper check
    if lower is not None:
        values[values < lower] = lower
    if upper is not None:
        values[values > upper] = upper
    return values


__all__ = ["apply_constraint", "violation_mask"]
