"""
Balsam: balanced and spatially balanced probability sampling.

Main API functions:
- sample_pivotal: Local pivotal method (spatially balanced samples)
- sample_cube: Cube method (balanced samples, flight + landing)
- sample_poisson / sample_sampford / sample_pareto / sample_brewer:
  Classical unequal-probability designs
- sample_with_replacement: Multinomial draws
- ht_estimate, ratio_estimate, balance_deviation, calibrate_weights:
  Horvitz-Thompson point estimation helpers
- Design: Validated population with a single ``sample`` entry point
"""

import logging

from .cube import CubeSampler, sample_cube
from .design import Design
from .estimate import (
    balance_deviation,
    calibrate_weights,
    ht_estimate,
    ht_weights,
    ratio_estimate,
)
from .kdtree import EmptyIndexError, SpatialIndex
from .pivotal import PivotalSampler, sample_pivotal
from .population import AuxiliaryMatrix, Decision, ProbabilityVector
from .results import SamplingResult
from .rng import RandomSource
from .unequal import (
    sample_brewer,
    sample_pareto,
    sample_poisson,
    sample_sampford,
    sample_with_replacement,
)
from .validation import (
    DegenerateBalanceWarning,
    ErrorKind,
    MaxIterationsError,
    ValidationError,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Samplers
    "sample_pivotal",
    "sample_cube",
    "sample_poisson",
    "sample_sampford",
    "sample_pareto",
    "sample_brewer",
    "sample_with_replacement",
    "PivotalSampler",
    "CubeSampler",
    "Design",
    # Building blocks
    "ProbabilityVector",
    "AuxiliaryMatrix",
    "Decision",
    "SpatialIndex",
    "RandomSource",
    "SamplingResult",
    # Estimation
    "ht_weights",
    "ht_estimate",
    "ratio_estimate",
    "balance_deviation",
    "calibrate_weights",
    # Errors
    "ValidationError",
    "ErrorKind",
    "DegenerateBalanceWarning",
    "MaxIterationsError",
    "EmptyIndexError",
]
