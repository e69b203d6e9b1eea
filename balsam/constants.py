"""
Named tunables shared across balsam.

Every public sampler exposes these as keyword-only defaults, so callers
override them per call rather than through global configuration.
"""

from __future__ import annotations

# Probabilities within EPS_DEFAULT of 0 or 1 are treated as decided.
EPS_DEFAULT: float = 1e-10

# Guard against division by (near) zero probabilities.
DIVISION_EPS: float = 1e-12

# k-d tree
LEAF_SIZE_DEFAULT: int = 16
REBUILD_FRACTION: float = 0.25

# Cube method
DIRECTION_TOL: float = 1e-12
NULL_SPACE_RTOL: float | None = None  # None -> max(shape) * machine eps

# Rejective designs (Sampford)
MAX_REJECTIONS_DEFAULT: int = 1_000

# Calibration
SMALL_RIDGE: float = 1e-10

# Tolerance when checking that an expected sample size is an integer
INTEGER_SIZE_TOL: float = 1e-9

# Largest admissible seed (seeds are unsigned 64-bit integers)
SEED_MAX: int = 2**64 - 1
