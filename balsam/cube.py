"""
Cube method for balanced sampling.

The vector of inclusion probabilities performs a random walk inside the
affine subspace where every Horvitz-Thompson estimate of a balancing total is
exact. Each step moves to a face of the unit cube, deciding at least one
unit, and is a martingale step so marginal probabilities are preserved
(flight phase). When no direction is left, constraints are relaxed one at a
time and the walk continues (landing phase).

The flight uses the fast variant: only ``active + 1`` undecided units enter
each step, which keeps every null-space computation tiny.

References
----------
Deville, J.-C., & Tillé, Y. (2004). Efficient balanced sampling: the cube
method. Biometrika, 91(4), 893-912.

Chauvet, G., & Tillé, Y. (2006). A fast algorithm for balanced sampling.
Computational Statistics, 21(1), 53-62.
"""

from __future__ import annotations

import logging
import warnings
from typing import Any

import numpy as np

from .constants import DIRECTION_TOL, EPS_DEFAULT
from .estimate import ht_total_deviation
from .linalg import matrix_rank, null_space
from .population import (
    AuxiliaryMatrix,
    DecisionState,
    MatrixInput,
    ProbabilityInput,
    ProbabilityVector,
    check_population,
)
from .results import SamplingResult, make_result
from .rng import RandomSource, stream_from
from .validation import DegenerateBalanceWarning, check_eps, check_positive_int

logger = logging.getLogger(__name__)

SIZE_LABEL = "fixed_size"


def balancing_matrix(
    probabilities: ProbabilityVector,
    balancing: AuxiliaryMatrix,
    *,
    fixed_size: bool = False,
) -> tuple[np.ndarray, list[int], list[Any]]:
    """
    Build ``A`` with ``A[k, c] = x[k, c] / pi[k]``.

    A non-zero constant column asks for a fixed sample size, so its
    constraint is rewritten as ``sum_k I_k = sum_k pi_k`` (a column of ones
    in ``A``). ``fixed_size=True`` appends such a column when none exists.

    Returns
    -------
    A : ndarray, shape (N, c)
    size_columns : list of int
        Columns of ``A`` that encode the sample-size constraint.
    labels : list
        Name of every constraint, for diagnostics.
    """
    x = balancing.values
    pi = probabilities.values
    A = x / pi[:, None]
    constant = np.all(x == x[0], axis=0) & (x[0] != 0.0)
    A[:, constant] = 1.0
    size_columns = [int(c) for c in np.flatnonzero(constant)]
    labels = list(balancing.columns)

    if fixed_size and not size_columns:
        A = np.hstack([A, np.ones((A.shape[0], 1))])
        size_columns.append(A.shape[1] - 1)
        labels.append(SIZE_LABEL)
    return A, size_columns, labels


class CubeSampler:
    """
    Flight and landing phases of the cube method.

    Parameters
    ----------
    probabilities : ProbabilityVector
    balancing : AuxiliaryMatrix
        Balancing variables ``x`` (one column per constraint).
    fixed_size : bool
        Add a sample-size constraint if ``balancing`` has no constant column.
    eps : float
        Probabilities within ``eps`` of 0 or 1 count as decided.
    max_iterations : int or None
        Upper bound on walk steps; when exhausted the residual units fall
        back to independent Bernoulli draws. ``None`` means
        ``N + n_constraints``, which a healthy walk never reaches since
        every step decides at least one unit.
    """

    method = "cube"

    def __init__(
        self,
        probabilities: ProbabilityVector,
        balancing: AuxiliaryMatrix,
        *,
        fixed_size: bool = False,
        eps: float = EPS_DEFAULT,
        max_iterations: int | None = None,
    ):
        self.probabilities = probabilities
        self.balancing = balancing
        self.eps = eps
        self.A, self.size_columns, self.labels = balancing_matrix(
            probabilities, balancing, fixed_size=fixed_size
        )
        if max_iterations is None:
            max_iterations = len(probabilities) + self.n_constraints
        self.max_iterations = max_iterations
        # sum_k |A[k, c]| pi_k, i.e. the scale of each constrained total
        self._scale = np.abs(self.A).T @ probabilities.values

    @property
    def n_constraints(self) -> int:
        return int(self.A.shape[1])

    # ------------------------------------------------------------------

    def run(self, rng: RandomSource) -> tuple[DecisionState, dict[str, Any]]:
        state = DecisionState(self.probabilities, eps=self.eps)
        forced = state.settle_all()
        N = len(self.probabilities)
        draws_before = rng.draws

        active = list(range(self.n_constraints))
        undecided = state.undecided()
        rank = matrix_rank(self.A[undecided]) if undecided.size else 0
        if rank < len(active) and undecided.size > rank:
            logger.debug(
                "cube: balancing matrix has rank %d for %d constraints", rank, len(active)
            )

        dropped: list[int] = []
        work: list[int] = []
        cursor = 0
        flight_steps = 0
        landing_steps = 0
        iterations = 0
        degenerate_reason: str | None = None
        unbalanced: list[int] = []
        fallback_units: list[int] = []

        while state.n_undecided > 0:
            if iterations >= self.max_iterations:
                degenerate_reason = f"iteration limit {self.max_iterations} reached"
                break

            work = [k for k in work if state.is_undecided(k)]
            while len(work) < len(active) + 1 and cursor < N:
                if state.is_undecided(cursor):
                    work.append(cursor)
                cursor += 1

            try:
                basis = null_space(self.A[np.ix_(work, active)].T)
            except np.linalg.LinAlgError:
                degenerate_reason = "null-space computation did not converge"
                break

            if basis.shape[1] == 0:
                # every undecided unit is in `work` and no direction is left
                c = self._constraint_to_drop(state, work, active)
                active.remove(c)
                dropped.append(c)
                logger.info(
                    "cube landing: relaxing constraint %r with %d units undecided",
                    self.labels[c],
                    state.n_undecided,
                )
                continue

            iterations += 1
            if not self._step(state, work, basis, rng):
                degenerate_reason = "walk direction could not move any unit"
                break
            if dropped:
                landing_steps += 1
            else:
                flight_steps += 1

        if degenerate_reason is not None:
            unbalanced = list(active)
            fallback_units = [int(k) for k in state.undecided()]
            for k in fallback_units:
                state.decide(k, rng.uniform() < state.p[k])
            logger.warning(
                "cube: %s; %d units decided by Bernoulli draws",
                degenerate_reason,
                len(fallback_units),
            )

        selected = state.included()
        deviation = ht_total_deviation(
            self.balancing.values, self.probabilities.values, selected
        )
        diagnostics = {
            "forced": len(forced),
            "flight_steps": flight_steps,
            "landing_steps": landing_steps,
            "dropped_constraints": [self.labels[c] for c in dropped],
            "rank": rank,
            "degenerate": degenerate_reason is not None,
            "degenerate_reason": degenerate_reason,
            "unbalanced_constraints": [self.labels[c] for c in unbalanced],
            "fallback_units": fallback_units,
            "balance_deviation": dict(zip(self.balancing.columns, deviation.tolist())),
            "draws": rng.draws - draws_before,
        }
        logger.debug(
            "cube: %d units, %d flight steps, %d landing steps, dropped %s",
            N,
            flight_steps,
            landing_steps,
            diagnostics["dropped_constraints"],
        )
        return state, diagnostics

    def _step(
        self, state: DecisionState, work: list[int], basis: np.ndarray, rng: RandomSource
    ) -> bool:
        """One martingale step along a random null-space direction."""
        p = state.p[work]
        u = basis @ rng.normal(basis.shape[1])
        norm = float(np.linalg.norm(u))
        if not np.isfinite(norm) or norm == 0.0:
            return False
        u /= norm
        u[np.abs(u) < DIRECTION_TOL] = 0.0
        pos = u > 0.0
        neg = u < 0.0
        if not (pos.any() or neg.any()):
            return False

        # largest moves along +u and -u that stay inside [0, 1]^n
        lam1 = min(
            np.min((1.0 - p[pos]) / u[pos], initial=np.inf),
            np.min(p[neg] / -u[neg], initial=np.inf),
        )
        lam2 = min(
            np.min(p[pos] / u[pos], initial=np.inf),
            np.min((1.0 - p[neg]) / -u[neg], initial=np.inf),
        )
        if not (0.0 < lam1 < np.inf and 0.0 < lam2 < np.inf):
            return False

        if rng.uniform() < lam2 / (lam1 + lam2):
            new = p + lam1 * u
        else:
            new = p - lam2 * u
        new = np.clip(new, 0.0, 1.0)
        state.p[work] = new

        if not state.settle(work):
            # rounding kept the binding unit a hair away from the face
            k = int(np.argmin(np.minimum(new, 1.0 - new)))
            state.decide(work[k], new[k] >= 0.5)
        return True

    def _constraint_to_drop(
        self, state: DecisionState, work: list[int], active: list[int]
    ) -> int:
        """
        Pick the active constraint whose relaxation costs least.

        Sample-size constraints are kept until nothing else is left. Among the
        rest, the one with the smallest residual imbalance
        ``sum_k |A[k, c]| min(p_k, 1 - p_k)`` relative to its total scale goes
        first; exact ties drop the highest column.
        """
        candidates = [c for c in active if c not in self.size_columns] or active
        p = state.p[work]
        slack = np.minimum(p, 1.0 - p)

        def cost(c: int) -> tuple[float, int]:
            residual = float(np.abs(self.A[work, c]) @ slack)
            scale = float(self._scale[c])
            return (residual / scale if scale > 0.0 else 0.0, -c)

        return min(candidates, key=cost)

    def sample(self, rng: RandomSource, *, seed: int | None = None) -> SamplingResult:
        state, diagnostics = self.run(rng)
        if diagnostics["degenerate"]:
            warnings.warn(
                DegenerateBalanceWarning(
                    f"balance not achieved for constraints "
                    f"{diagnostics['unbalanced_constraints']}: "
                    f"{diagnostics['degenerate_reason']}; "
                    f"{len(diagnostics['fallback_units'])} units decided independently"
                ),
                stacklevel=3,
            )
        return make_result(
            state.included(),
            self.probabilities.to_series(),
            self.method,
            seed,
            diagnostics,
        )


def sample_cube(
    probabilities: ProbabilityInput,
    balancing_vars: MatrixInput,
    seed: int | RandomSource | None = None,
    *,
    fixed_size: bool = False,
    eps: float = EPS_DEFAULT,
    max_iterations: int | None = None,
) -> SamplingResult:
    """
    Draw a balanced sample with the cube method.

    Examples
    --------
    >>> import numpy as np
    >>> from balsam import sample_cube
    >>> pi = np.full(10, 0.4)
    >>> x = np.column_stack([np.ones(10), np.arange(10.0)])
    >>> result = sample_cube(pi, x, seed=3)
    >>> len(result)
    4

    Parameters
    ----------
    probabilities : array-like or pd.Series, shape (N,)
        Inclusion probabilities in ``(0, 1]``.
    balancing_vars : array-like or pd.DataFrame, shape (N, d)
        Variables whose HT estimates should match their totals. A constant
        column (e.g. all ones) requests a fixed sample size.
    seed : int, RandomSource or None
        Seed of the random stream (``0 <= seed < 2**64``), or a stream.
    fixed_size : bool
        Add the sample-size constraint explicitly.
    max_iterations : int or None
        Step budget before the Bernoulli fallback kicks in; ``None`` sizes
        it to the population.

    Returns
    -------
    SamplingResult
        ``diagnostics`` reports flight/landing steps, relaxed constraints and
        the HT deviation of every balancing total.

    Warns
    -----
    DegenerateBalanceWarning
        When the walk broke down and residual units were decided
        independently.
    """
    pv, bal = check_population(probabilities, balancing_vars, name="balancing_vars")
    eps = check_eps(eps)
    if max_iterations is not None:
        max_iterations = check_positive_int(max_iterations, "max_iterations", allow_zero=True)
    rng, seed_value = stream_from(seed)

    sampler = CubeSampler(
        pv, bal, fixed_size=bool(fixed_size), eps=eps, max_iterations=max_iterations
    )
    return sampler.sample(rng, seed=seed_value)
