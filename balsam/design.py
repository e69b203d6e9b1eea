"""
Object-oriented entry point bundling a validated population.

``Design`` validates its inputs once and then dispatches to the samplers,
so repeated draws (e.g. in a simulation study) skip re-validation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import numpy as np
import pandas as pd

from .constants import EPS_DEFAULT, LEAF_SIZE_DEFAULT
from .cube import CubeSampler
from .estimate import balance_deviation, calibrate_weights, ht_estimate
from .pivotal import PivotalSampler
from .population import (
    AuxiliaryMatrix,
    MatrixInput,
    ProbabilityInput,
    ProbabilityVector,
    check_population,
)
from .results import SamplingResult
from .rng import RandomSource, stream_from
from .unequal import sample_brewer, sample_pareto, sample_poisson, sample_sampford
from .validation import ValidationError, check_eps, check_positive_int

logger = logging.getLogger(__name__)

SAMPLING_METHODS = ("pivotal", "cube", "poisson", "sampford", "pareto", "brewer")


class Design:
    """
    A finite population ready to be sampled.

    Parameters
    ----------
    probabilities : array-like or pd.Series, shape (N,)
        Inclusion probabilities in ``(0, 1]``.
    coordinates : array-like or pd.DataFrame, shape (N, d), optional
        Spread space for the pivotal method.
    balancing : array-like or pd.DataFrame, shape (N, p), optional
        Balancing variables for the cube method.

    Examples
    --------
    >>> import numpy as np
    >>> from balsam import Design
    >>> rng = np.random.default_rng(0)
    >>> xy = rng.uniform(size=(100, 2))
    >>> design = Design(np.full(100, 0.1), coordinates=xy, balancing=xy)
    >>> spread = design.sample("pivotal", seed=7)
    >>> balanced = design.sample("cube", seed=7, fixed_size=True)
    """

    def __init__(
        self,
        probabilities: ProbabilityInput,
        coordinates: MatrixInput | None = None,
        balancing: MatrixInput | None = None,
    ):
        self._pv = ProbabilityVector.from_input(probabilities)
        self._coords: AuxiliaryMatrix | None = None
        self._balancing: AuxiliaryMatrix | None = None
        if coordinates is not None:
            _, self._coords = check_population(probabilities, coordinates, name="coordinates")
        if balancing is not None:
            _, self._balancing = check_population(probabilities, balancing, name="balancing")

        self._dispatch: dict[str, Callable[..., SamplingResult]] = {
            "pivotal": self._sample_pivotal,
            "cube": self._sample_cube,
            "poisson": sample_poisson,
            "sampford": sample_sampford,
            "pareto": sample_pareto,
            "brewer": sample_brewer,
        }

    def __repr__(self) -> str:
        return (
            f"Design(n_units={self.n_units}, expected_size={self.expected_size:.4g}, "
            f"coordinates={self._coords is not None}, balancing={self._balancing is not None})"
        )

    @property
    def n_units(self) -> int:
        return len(self._pv)

    @property
    def expected_size(self) -> float:
        return self._pv.expected_size

    @property
    def probabilities(self) -> pd.Series:
        return self._pv.to_series()

    @property
    def diagnostics(self) -> dict[str, Any]:
        p = self._pv.values
        return {
            "n_units": self.n_units,
            "expected_size": self.expected_size,
            "integer_size": bool(abs(self.expected_size - round(self.expected_size)) < 1e-9),
            "n_certain": int(np.count_nonzero(p >= 1.0)),
            "coordinate_dims": None if self._coords is None else self._coords.n_dims,
            "balancing_dims": None if self._balancing is None else self._balancing.n_dims,
        }

    def sample(
        self,
        method: str = "pivotal",
        seed: int | RandomSource | None = None,
        **kwargs: Any,
    ) -> SamplingResult:
        """
        Draw one sample.

        Parameters
        ----------
        method : {'pivotal', 'cube', 'poisson', 'sampford', 'pareto', 'brewer'}
        seed : int, RandomSource or None
        **kwargs
            Passed to the chosen sampler (``eps``, ``leaf_size``,
            ``fixed_size``, ``max_iterations``...).
        """
        try:
            sampler = self._dispatch[method]
        except KeyError:
            raise ValidationError(
                f"Unknown sampling method: {method!r}. Choose from {SAMPLING_METHODS}"
            ) from None
        logger.debug("Design.sample(method=%s)", method)
        return sampler(self._pv, seed=seed, **kwargs)

    def _sample_pivotal(
        self,
        pv: ProbabilityVector,
        seed: int | RandomSource | None = None,
        *,
        eps: float = EPS_DEFAULT,
        leaf_size: int = LEAF_SIZE_DEFAULT,
    ) -> SamplingResult:
        if self._coords is None:
            raise ValidationError("Must provide 'coordinates' for pivotal sampling")
        eps = check_eps(eps)
        leaf_size = check_positive_int(leaf_size, "leaf_size")
        rng, seed_value = stream_from(seed)
        sampler = PivotalSampler(pv, self._coords, eps=eps, leaf_size=leaf_size)
        return sampler.sample(rng, seed=seed_value)

    def _sample_cube(
        self,
        pv: ProbabilityVector,
        seed: int | RandomSource | None = None,
        *,
        fixed_size: bool = False,
        eps: float = EPS_DEFAULT,
        max_iterations: int | None = None,
    ) -> SamplingResult:
        if self._balancing is None:
            raise ValidationError("Must provide 'balancing' for cube sampling")
        eps = check_eps(eps)
        if max_iterations is not None:
            max_iterations = check_positive_int(max_iterations, "max_iterations", allow_zero=True)
        rng, seed_value = stream_from(seed)
        sampler = CubeSampler(
            pv, self._balancing, fixed_size=bool(fixed_size), eps=eps, max_iterations=max_iterations
        )
        return sampler.sample(rng, seed=seed_value)

    def estimate(self, y: pd.Series | np.ndarray, result: SamplingResult) -> float:
        """Horvitz-Thompson estimate of the total of ``y`` from ``result``."""
        return ht_estimate(y, result)

    def balance(self, result: SamplingResult, *, relative: bool = False) -> pd.Series:
        """HT deviation of every balancing total for ``result``."""
        if self._balancing is None:
            raise ValidationError("Must provide 'balancing' to measure balance")
        return balance_deviation(self._balancing, result, relative=relative)

    def calibrate_weights(self, result: SamplingResult, **kwargs: Any) -> pd.Series:
        """Calibrate the HT weights of ``result`` on the balancing variables."""
        if self._balancing is None:
            raise ValidationError("Must provide 'balancing' to calibrate weights")
        return calibrate_weights(result, self._balancing, **kwargs)
