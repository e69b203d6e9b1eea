"""
Error taxonomy and eager input checks.

All checks in this module run before a sampler draws a single random number,
so a failed call never leaves partial state behind.
"""

from __future__ import annotations

from enum import Enum
from numbers import Integral
from typing import Any

import numpy as np

from .constants import INTEGER_SIZE_TOL, SEED_MAX


class ErrorKind(str, Enum):
    """Reason attached to a :class:`ValidationError`."""

    OUT_OF_RANGE = "out_of_range"
    MISMATCHED_DIMENSIONS = "mismatched_dimensions"
    NON_FINITE = "non_finite"
    EMPTY_POPULATION = "empty_population"
    INVALID_PARAMETER = "invalid_parameter"
    INVALID_SIZE = "invalid_size"


class ValidationError(ValueError):
    """Malformed caller input, detected before any sampling work."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.INVALID_PARAMETER):
        super().__init__(message)
        self.kind = kind


class DegenerateBalanceWarning(UserWarning):
    """The cube method could not keep every balancing constraint.

    Issued when the balancing walk stalls (rank deficiency or numerical
    breakdown) and the residual units were decided by independent
    Bernoulli draws. The returned sample is valid; only balance suffers.
    """


class MaxIterationsError(RuntimeError):
    """A rejective design exceeded its iteration budget."""

    def __init__(self, max_iterations: int):
        super().__init__(f"no sample accepted after {max_iterations} iterations")
        self.max_iterations = max_iterations


def check_positive_int(value: Any, name: str, *, allow_zero: bool = False) -> int:
    """Return ``value`` as int, or raise if it is not a (non-)negative integer."""
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    lower = 0 if allow_zero else 1
    if value < lower:
        bound = "non-negative" if allow_zero else "positive"
        raise ValidationError(f"{name} must be {bound}, got {value}")
    return int(value)


def check_eps(eps: float) -> float:
    if not np.isfinite(eps) or not 0.0 <= eps < 0.5:
        raise ValidationError(f"eps must be in [0, 0.5), got {eps}")
    return float(eps)


def check_seed(seed: Any) -> int | None:
    """Validate a seed: None or an integer in [0, 2**64)."""
    if seed is None:
        return None
    if isinstance(seed, bool) or not isinstance(seed, Integral):
        raise ValidationError(f"seed must be a non-negative integer, got {seed!r}")
    if not 0 <= seed <= SEED_MAX:
        raise ValidationError(f"seed must be in [0, 2**64), got {seed}")
    return int(seed)


def check_integer_size(total: float, what: str = "probabilities") -> int:
    """Return ``round(total)`` if ``total`` is an integer up to rounding error."""
    size = int(round(total))
    if abs(total - size) > INTEGER_SIZE_TOL * max(1.0, abs(total)):
        raise ValidationError(
            f"{what} must sum to an integer, got {total:.10g}",
            kind=ErrorKind.INVALID_SIZE,
        )
    return size
