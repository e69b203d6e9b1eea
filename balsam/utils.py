"""
Common helpers for balsam.

Index alignment for pandas inputs and a couple of spread measures used to
judge how well a sample covers its coordinate space.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from scipy.spatial import cKDTree
from scipy.spatial.distance import pdist


def align_indices(*frames: pd.DataFrame | pd.Series | None) -> bool:
    """
    Check that all pandas inputs share the same index.

    Non-pandas arguments (``None``, arrays) are ignored.

    Returns
    -------
    bool
        True if all pandas indices are equal, False otherwise.
    """
    indices = [f.index for f in frames if isinstance(f, (pd.DataFrame, pd.Series))]
    if len(indices) < 2:
        return True
    first = indices[0]
    return all(idx.equals(first) for idx in indices[1:])


def min_pairwise_distance(points: np.ndarray, sample: pd.Index | np.ndarray) -> float:
    """
    Smallest Euclidean distance between two distinct sampled units.

    Returns ``inf`` for samples with fewer than two units.
    """
    pts = np.asarray(points, dtype=float)
    if pts.ndim == 1:
        pts = pts[:, None]
    sel = np.asarray(sample, dtype=np.intp)
    if sel.size < 2:
        return float("inf")
    return float(pdist(pts[sel]).min())


def mean_nearest_distance(points: np.ndarray, sample: pd.Index | np.ndarray) -> float:
    """
    Average distance from each sampled unit to its nearest sampled neighbour.

    Larger values mean a better spread sample. Returns ``nan`` for samples
    with fewer than two units.
    """
    pts = np.asarray(points, dtype=float)
    if pts.ndim == 1:
        pts = pts[:, None]
    sel = np.asarray(sample, dtype=np.intp)
    if sel.size < 2:
        return float("nan")
    sub = pts[sel]
    # k=2: the first hit is the point itself
    dist, _ = cKDTree(sub).query(sub, k=2)
    return float(dist[:, 1].mean())
