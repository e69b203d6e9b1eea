"""
Horvitz-Thompson point estimation and weight calibration.

Only point estimates live here; variance estimation is deliberately absent.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeAlias

import numpy as np
import pandas as pd

from .constants import DIVISION_EPS, SMALL_RIDGE
from .population import AuxiliaryMatrix, MatrixInput, ProbabilityVector
from .results import SamplingResult
from .validation import ErrorKind, ValidationError

ValueInput: TypeAlias = pd.Series | np.ndarray | Sequence[float]


def ht_total_deviation(
    x: np.ndarray, pi: np.ndarray, selected: np.ndarray
) -> np.ndarray:
    """HT estimate of each column total of ``x`` minus the true total."""
    selected = np.asarray(selected, dtype=np.intp)
    estimate = (x[selected] / pi[selected, None]).sum(axis=0)
    return estimate - x.sum(axis=0)


def _sample_values(y: ValueInput, result: SamplingResult, name: str = "y") -> np.ndarray:
    """Values of ``y`` for the sampled units (population- or sample-length input)."""
    values = np.asarray(y.to_numpy() if isinstance(y, pd.Series) else y, dtype=float)
    if values.ndim != 1:
        raise ValidationError(
            f"{name} must be one-dimensional", kind=ErrorKind.MISMATCHED_DIMENSIONS
        )
    n_pop, n_sample = len(result.probabilities), len(result.sample)
    if values.size == n_pop:
        return values[result.sample.to_numpy()]
    if values.size == n_sample:
        return values
    raise ValidationError(
        f"{name} has length {values.size}; expected {n_pop} (population) "
        f"or {n_sample} (sample)",
        kind=ErrorKind.MISMATCHED_DIMENSIONS,
    )


def ht_weights(result: SamplingResult) -> pd.Series:
    """Design weights ``1/pi`` of the sampled units."""
    return result.weights()


def ht_estimate(y: ValueInput, result: SamplingResult) -> float:
    """
    Horvitz-Thompson estimate of the population total of ``y``.

    ``y`` may cover the whole population (only sampled entries are read) or
    just the sample, in sample order.
    """
    values = _sample_values(y, result)
    pi = result.probabilities.to_numpy(dtype=float)[result.sample.to_numpy()]
    return float(np.sum(values / pi))


def ratio_estimate(
    y: ValueInput, x: ValueInput, result: SamplingResult, x_total: float
) -> float:
    """Ratio estimator ``t_x * HT(y) / HT(x)`` of the total of ``y``."""
    if not np.isfinite(x_total) or x_total < 0:
        raise ValidationError(
            f"x_total must be a non-negative finite number, got {x_total}",
            kind=ErrorKind.OUT_OF_RANGE,
        )
    denom = ht_estimate(x, result)
    if abs(denom) < DIVISION_EPS:
        raise ValidationError("HT estimate of x is zero; ratio is undefined")
    return ht_estimate(y, result) / denom * float(x_total)


def balance_deviation(
    balancing_vars: MatrixInput, result: SamplingResult, *, relative: bool = False
) -> pd.Series:
    """
    HT estimate minus true total for every balancing column.

    With ``relative=True`` the deviation is divided by the absolute total
    (columns with a zero total are left absolute).
    """
    aux = AuxiliaryMatrix.from_input(balancing_vars, name="balancing_vars")
    pi = result.probabilities.to_numpy(dtype=float)
    if aux.n_units != pi.size:
        raise ValidationError(
            f"balancing_vars has {aux.n_units} rows but the result covers {pi.size} units",
            kind=ErrorKind.MISMATCHED_DIMENSIONS,
        )
    dev = ht_total_deviation(aux.values, pi, result.sample.to_numpy())
    if relative:
        totals = np.abs(aux.values.sum(axis=0))
        dev = np.where(totals > 0, dev / np.where(totals > 0, totals, 1.0), dev)
    return pd.Series(dev, index=aux.columns, name="balance_deviation")


def calibrate_weights(
    result: SamplingResult,
    balancing_vars: MatrixInput,
    pop_totals: np.ndarray | None = None,
    *,
    ridge: float = SMALL_RIDGE,
    nonneg: bool = True,
) -> pd.Series:
    """
    Chi-square (GREG) calibration of the HT weights of a sample.

    Solves ``min sum (w - d)^2 / d  s.t.  X_S^T w = t`` where ``d = 1/pi``.
    Useful after the cube method had to relax constraints in its landing
    phase: the calibrated weights restore exact balance on ``X``.

    Parameters
    ----------
    result : SamplingResult
    balancing_vars : array-like, shape (N, p)
        Auxiliary variables of the whole population.
    pop_totals : ndarray, shape (p,), optional
        Known totals; defaults to the column sums of ``balancing_vars``.
    ridge : float
        Ridge added to the normal equations for numerical stability.
    nonneg : bool
        Clip weights at a tiny positive value (may slightly break calibration).

    Returns
    -------
    pd.Series
        Calibrated weights indexed by the labels of the sampled units.

    Notes
    -----
    Closed form: ``w = d + D X_S (X_S^T D X_S + ridge I)^{-1} (t - X_S^T d)``
    with ``D = diag(d)``.

    References
    ----------
    Deville, J.-C., & Särndal, C.-E. (1992). Calibration estimators in survey
    sampling. Journal of the American Statistical Association, 87(418), 376-382.
    """
    aux = AuxiliaryMatrix.from_input(balancing_vars, name="balancing_vars")
    pv = ProbabilityVector.from_input(result.probabilities)
    if aux.n_units != len(pv):
        raise ValidationError(
            f"balancing_vars has {aux.n_units} rows but the result covers {len(pv)} units",
            kind=ErrorKind.MISMATCHED_DIMENSIONS,
        )

    sel = result.sample.to_numpy()
    d = 1.0 / (pv.values[sel] + DIVISION_EPS)  # (n,)
    Xs = aux.values[sel]  # (n, p)

    if pop_totals is None:
        t = aux.values.sum(axis=0)
    else:
        t = np.asarray(pop_totals, dtype=float)
        if t.shape != (aux.n_dims,):
            raise ValidationError(
                f"pop_totals must have shape ({aux.n_dims},)",
                kind=ErrorKind.MISMATCHED_DIMENSIONS,
            )

    DXs = Xs * d[:, None]
    A = Xs.T @ DXs + ridge * np.eye(aux.n_dims)
    rhs = t - Xs.T @ d

    try:
        lam = np.linalg.solve(A, rhs)
    except np.linalg.LinAlgError:
        # singular even with the ridge: use the pseudoinverse solution
        lam = np.linalg.lstsq(A, rhs, rcond=None)[0]

    w = d + DXs @ lam
    if nonneg:
        w = np.maximum(w, DIVISION_EPS)

    return pd.Series(w, index=result.labels, name="calibrated_weights")
