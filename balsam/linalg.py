"""
Small linear-algebra kernel used by the cube method.

Only what balancing needs: an orthonormal null-space basis of a small
constraint block, and the numerical rank of a tall balancing matrix. Both
apply the same singular-value cutoff.
"""

from __future__ import annotations

import numpy as np
import scipy.linalg

from .constants import NULL_SPACE_RTOL


def _svd(a: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    # gesvd: gesdd may fail to converge on badly scaled blocks
    _, s, vh = scipy.linalg.svd(
        a, full_matrices=True, lapack_driver="gesvd", check_finite=False
    )
    return s, vh


def _rank_from_singular_values(s: np.ndarray, shape: tuple[int, int], rtol: float | None) -> int:
    if s.size == 0 or s[0] == 0.0:
        return 0
    if rtol is None:
        rtol = max(shape) * np.finfo(float).eps
    return int(np.count_nonzero(s > rtol * s[0]))


def matrix_rank(a: np.ndarray, *, rtol: float | None = NULL_SPACE_RTOL) -> int:
    """Numerical rank of ``a`` (singular values above ``rtol * s_max``)."""
    a = np.atleast_2d(np.asarray(a, dtype=float))
    if a.size == 0:
        return 0
    # singular values only; never materialise the (N, N) U factor
    s = scipy.linalg.svd(a, full_matrices=False, compute_uv=False, check_finite=False)
    return _rank_from_singular_values(s, a.shape, rtol)


def null_space(a: np.ndarray, *, rtol: float | None = NULL_SPACE_RTOL) -> np.ndarray:
    """
    Orthonormal basis of ``{u : a @ u = 0}``.

    Parameters
    ----------
    a : ndarray, shape (m, n)
        Constraint matrix; ``m`` may be zero, in which case the whole space
        ``R^n`` is returned.

    Returns
    -------
    ndarray, shape (n, q)
        Columns form an orthonormal basis; ``q == 0`` when only the zero
        vector satisfies the constraints.

    Raises
    ------
    numpy.linalg.LinAlgError
        If the SVD does not converge.
    """
    a = np.asarray(a, dtype=float)
    if a.ndim == 1:
        a = a[None, :]
    m, n = a.shape
    if m == 0 or n == 0:
        return np.eye(n)
    s, vh = _svd(a)
    rank = _rank_from_singular_values(s, (m, n), rtol)
    return vh[rank:].T.copy()
