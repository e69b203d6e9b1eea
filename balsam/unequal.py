"""
Classical unequal-probability designs without auxiliary information.

These share the probability validation and random streams of the balanced
samplers. ``sample_poisson`` also serves as the independent Bernoulli
baseline the spatial and balanced designs are compared against.
"""

from __future__ import annotations

import logging

import numpy as np

from .constants import EPS_DEFAULT, MAX_REJECTIONS_DEFAULT
from .population import DecisionState, ProbabilityInput, ProbabilityVector
from .results import SamplingResult, make_result
from .rng import RandomSource, stream_from
from .validation import (
    ErrorKind,
    MaxIterationsError,
    ValidationError,
    check_eps,
    check_integer_size,
    check_positive_int,
)

logger = logging.getLogger(__name__)


def _draw_one(weights: np.ndarray, u: float) -> int:
    """Position drawn with probability proportional to ``weights``."""
    cum = np.cumsum(weights)
    pos = int(np.searchsorted(cum, u * cum[-1], side="right"))
    return min(pos, weights.size - 1)


def _split_forced(pv: ProbabilityVector, eps: float) -> tuple[list[int], np.ndarray]:
    """Units that are certain to be included, and the remaining candidates."""
    forced = np.flatnonzero(pv.values >= 1.0 - eps)
    rest = np.flatnonzero(pv.values < 1.0 - eps)
    return [int(k) for k in forced], rest


def sample_poisson(
    probabilities: ProbabilityInput,
    seed: int | RandomSource | None = None,
    *,
    eps: float = EPS_DEFAULT,
) -> SamplingResult:
    """
    Poisson sampling: every unit is an independent Bernoulli trial.

    Units with probability 1 are included without consuming a draw; the
    others consume one uniform each, in ascending unit order.
    """
    pv = ProbabilityVector.from_input(probabilities)
    eps = check_eps(eps)
    rng, seed_value = stream_from(seed)

    state = DecisionState(pv, eps=eps)
    forced = state.settle_all()
    undecided = state.undecided()
    u = rng.uniforms(undecided.size)
    for k, v in zip(undecided, u):
        state.decide(int(k), bool(v < state.p[k]))

    return make_result(
        state.included(),
        pv.to_series(),
        "poisson",
        seed_value,
        {"forced": len(forced), "draws": int(undecided.size)},
    )


def sample_with_replacement(
    draw_probabilities: ProbabilityInput,
    n: int,
    seed: int | RandomSource | None = None,
) -> SamplingResult:
    """
    ``n`` independent draws with replacement.

    ``draw_probabilities`` must sum to 1. The returned ``sample`` may contain
    the same position several times.
    """
    pv = ProbabilityVector.from_input(draw_probabilities)
    n = check_positive_int(n, "n", allow_zero=True)
    if abs(pv.expected_size - 1.0) > 1e-9:
        raise ValidationError(
            f"draw probabilities must sum to 1, got {pv.expected_size:.10g}",
            kind=ErrorKind.INVALID_SIZE,
        )
    rng, seed_value = stream_from(seed)

    cum = np.cumsum(pv.values)
    rvs = np.sort(rng.uniforms(n)) * cum[-1]
    picks = np.minimum(np.searchsorted(cum, rvs, side="right"), len(pv) - 1)

    return make_result(picks, pv.to_series(), "with_replacement", seed_value, {"draws": n})


def sample_sampford(
    probabilities: ProbabilityInput,
    seed: int | RandomSource | None = None,
    *,
    eps: float = EPS_DEFAULT,
    max_iterations: int = MAX_REJECTIONS_DEFAULT,
) -> SamplingResult:
    """
    Sampford's rejective design (fixed size, exact inclusion probabilities).

    A Poisson sample of size ``n - 1`` is completed by one unit drawn
    proportionally to ``pi``; the attempt is accepted when that unit is new.

    Raises
    ------
    ValidationError
        If the probabilities do not sum to an integer.
    MaxIterationsError
        If no attempt is accepted within ``max_iterations``.
    """
    pv = ProbabilityVector.from_input(probabilities)
    eps = check_eps(eps)
    max_iterations = check_positive_int(max_iterations, "max_iterations")
    size = check_integer_size(pv.expected_size)
    rng, seed_value = stream_from(seed)

    forced, rest = _split_forced(pv, eps)
    n = size - len(forced)
    p = pv.values[rest]
    draws_before = rng.draws
    diagnostics = {"forced": len(forced), "attempts": 0}

    if n <= 0 or rest.size == 0:
        chosen = np.empty(0, dtype=np.intp)
    elif n == 1:
        chosen = np.array([rest[_draw_one(p, rng.uniform())]])
        diagnostics["attempts"] = 1
    else:
        for attempt in range(1, max_iterations + 1):
            hits = rng.uniforms(p.size) < p
            if np.count_nonzero(hits) != n - 1:
                continue
            extra = _draw_one(p, rng.uniform())
            if hits[extra]:
                continue
            hits[extra] = True
            chosen = rest[hits]
            diagnostics["attempts"] = attempt
            break
        else:
            raise MaxIterationsError(max_iterations)

    diagnostics["draws"] = rng.draws - draws_before
    logger.debug("sampford: accepted after %d attempts", diagnostics["attempts"])
    selected = np.concatenate([np.asarray(forced, dtype=np.intp), chosen])
    return make_result(selected, pv.to_series(), "sampford", seed_value, diagnostics)


def sample_pareto(
    probabilities: ProbabilityInput,
    seed: int | RandomSource | None = None,
    *,
    eps: float = EPS_DEFAULT,
) -> SamplingResult:
    """
    Pareto order sampling (fixed size, approximately exact probabilities).

    Each unit gets the ranking variable ``q = u (1 - p) / (p (1 - u))``; the
    ``n`` smallest are selected, ties resolved by unit order.

    References
    ----------
    Rosén, B. (2000). A user's guide to Pareto pi-ps sampling.
    R & D Report 2000:6, Statistics Sweden.
    """
    pv = ProbabilityVector.from_input(probabilities)
    eps = check_eps(eps)
    size = check_integer_size(pv.expected_size)
    rng, seed_value = stream_from(seed)

    forced, rest = _split_forced(pv, eps)
    n = size - len(forced)
    p = pv.values[rest]
    u = rng.uniforms(rest.size)
    with np.errstate(divide="ignore", invalid="ignore"):
        q = (u * (1.0 - p)) / (p * (1.0 - u))
    q[~np.isfinite(q)] = np.inf

    order = np.argsort(q, kind="stable")
    selected = np.concatenate([np.asarray(forced, dtype=np.intp), rest[order[: max(n, 0)]]])
    return make_result(
        selected, pv.to_series(), "pareto", seed_value, {"forced": len(forced), "draws": int(rest.size)}
    )


def sample_brewer(
    probabilities: ProbabilityInput,
    seed: int | RandomSource | None = None,
    *,
    eps: float = EPS_DEFAULT,
) -> SamplingResult:
    """
    Brewer's draw-by-draw design (fixed size, exact inclusion probabilities).

    At draw ``i`` (``r = n - i`` draws left) a remaining unit is chosen with
    probability proportional to ``p (n_d - p) / (n_d - r p)``, where ``n_d``
    is the probability mass not yet selected.
    """
    pv = ProbabilityVector.from_input(probabilities)
    eps = check_eps(eps)
    size = check_integer_size(pv.expected_size)
    rng, seed_value = stream_from(seed)

    forced, rest = _split_forced(pv, eps)
    n = size - len(forced)
    remaining_mass = float(pv.values[rest].sum())
    candidates = list(rest)
    chosen: list[int] = []

    for i in range(max(n, 0)):
        left = n - i
        p = pv.values[candidates]
        with np.errstate(divide="ignore", invalid="ignore"):
            w = p * (remaining_mass - p) / (remaining_mass - left * p)
        w = np.where(np.isfinite(w) & (w > 0.0), w, 0.0)
        if not np.any(w > 0.0):
            w = p.copy()
        pick = _draw_one(w, rng.uniform())
        unit = int(candidates.pop(pick))
        chosen.append(unit)
        remaining_mass -= float(pv.values[unit])

    selected = np.asarray(forced + chosen, dtype=np.intp)
    return make_result(
        selected, pv.to_series(), "brewer", seed_value, {"forced": len(forced), "draws": max(n, 0)}
    )
