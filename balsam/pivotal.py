"""
Local pivotal method for spatially balanced sampling.

Two nearby undecided units repeatedly meet and trade probability mass until
at least one of them is settled at 0 or 1. Because neighbours compete, the
final sample avoids clusters in coordinate space while every unit keeps its
prescribed marginal inclusion probability.

References
----------
Grafström, A., Lundström, N. L. P., & Schelin, L. (2012). Spatially balanced
sampling through the pivotal method. Biometrics, 68(2), 514-520.
"""

from __future__ import annotations

import logging

import numpy as np

from .constants import EPS_DEFAULT, LEAF_SIZE_DEFAULT
from .kdtree import SpatialIndex
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
from .validation import check_eps, check_positive_int

logger = logging.getLogger(__name__)


def pivot(p: np.ndarray, i: int, j: int, u: float) -> None:
    """
    Combine the probabilities of units ``i`` and ``j`` in place.

    ``u`` is a single uniform variate. Afterwards at least one of ``p[i]`` and
    ``p[j]`` is exactly 0 or 1, and ``E[p_new] = p_old`` for both units.
    """
    pi, pj = float(p[i]), float(p[j])
    total = pi + pj
    if total < 1.0:
        if u < pj / total:
            p[i], p[j] = 0.0, total
        else:
            p[i], p[j] = total, 0.0
    else:
        if u < (1.0 - pj) / (2.0 - total):
            p[i], p[j] = 1.0, total - 1.0
        else:
            p[i], p[j] = total - 1.0, 1.0


class PivotalSampler:
    """
    Local pivotal method (ascending visiting order, nearest-neighbour pairing).

    Parameters
    ----------
    probabilities : ProbabilityVector
    coordinates : AuxiliaryMatrix
        Positions of the units in the space the sample should spread over.
    eps : float
        Probabilities within ``eps`` of 0 or 1 count as decided.
    leaf_size : int
        Bucket size of the underlying :class:`~balsam.kdtree.SpatialIndex`.
    """

    method = "pivotal"

    def __init__(
        self,
        probabilities: ProbabilityVector,
        coordinates: AuxiliaryMatrix,
        *,
        eps: float = EPS_DEFAULT,
        leaf_size: int = LEAF_SIZE_DEFAULT,
    ):
        self.probabilities = probabilities
        self.coordinates = coordinates
        self.eps = eps
        self.leaf_size = leaf_size

    def run(self, rng: RandomSource) -> tuple[DecisionState, dict]:
        state = DecisionState(self.probabilities, eps=self.eps)
        forced = state.settle_all()
        n_forced_in = sum(1 for u in forced if state.p[u] == 1.0)

        index = SpatialIndex.build(
            self.coordinates.values, units=state.undecided(), leaf_size=self.leaf_size
        )
        draws_before = rng.draws
        resolutions = 0
        residual_draw = False

        for i in range(len(self.probabilities)):
            while state.is_undecided(i):
                neighbours = index.nearest_neighbors(i, 1)
                if not neighbours:
                    # i is the last live unit: expected size was not an integer
                    state.decide(i, rng.uniform() < state.p[i])
                    index.remove(i)
                    residual_draw = True
                    break

                j = neighbours[0]
                pivot(state.p, i, j, rng.uniform())
                resolutions += 1
                for unit in state.settle((i, j)):
                    index.remove(unit)

        diagnostics = {
            "forced_included": n_forced_in,
            "forced_excluded": len(forced) - n_forced_in,
            "resolutions": resolutions,
            "residual_draw": residual_draw,
            "draws": rng.draws - draws_before,
        }
        logger.debug(
            "pivotal: %d units, %d resolutions, %d draws",
            len(self.probabilities),
            resolutions,
            diagnostics["draws"],
        )
        return state, diagnostics

    def sample(self, rng: RandomSource, *, seed: int | None = None) -> SamplingResult:
        state, diagnostics = self.run(rng)
        return make_result(
            state.included(),
            self.probabilities.to_series(),
            self.method,
            seed,
            diagnostics,
        )


def sample_pivotal(
    probabilities: ProbabilityInput,
    coordinates: MatrixInput,
    seed: int | RandomSource | None = None,
    *,
    eps: float = EPS_DEFAULT,
    leaf_size: int = LEAF_SIZE_DEFAULT,
) -> SamplingResult:
    """
    Draw a spatially balanced sample with the local pivotal method.

    Examples
    --------
    >>> from balsam import sample_pivotal
    >>> coords = [[0, 0], [0, 1], [1, 0], [1, 1]]
    >>> result = sample_pivotal([0.5] * 4, coords, seed=1)
    >>> len(result)
    2

    Parameters
    ----------
    probabilities : array-like or pd.Series, shape (N,)
        Inclusion probabilities in ``(0, 1]``.
    coordinates : array-like or pd.DataFrame, shape (N, d)
        Auxiliary coordinates used to find neighbours.
    seed : int, RandomSource or None
        Seed of the random stream (``0 <= seed < 2**64``), or a stream.

    Returns
    -------
    SamplingResult
        Selected unit positions plus diagnostics.

    Raises
    ------
    ValidationError
        On malformed input, before any random number is drawn.
    """
    pv, coords = check_population(probabilities, coordinates, name="coordinates")
    eps = check_eps(eps)
    leaf_size = check_positive_int(leaf_size, "leaf_size")
    rng, seed_value = stream_from(seed)

    sampler = PivotalSampler(pv, coords, eps=eps, leaf_size=leaf_size)
    return sampler.sample(rng, seed=seed_value)
