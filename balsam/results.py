"""
Result containers returned by the samplers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd


@dataclass(slots=True)
class SamplingResult:
    """
    Outcome of one sampling call.

    Attributes
    ----------
    sample : pd.Index
        Sorted positions (``0..N-1``) of the selected units, named
        ``"sampled_units"``. For with-replacement designs positions may repeat.
    probabilities : pd.Series
        The prescribed inclusion probabilities, indexed by the caller's labels.
    method : str
        Name of the design that produced the sample.
    seed : int or None
        Seed the random stream was created from (None when a stream or no
        seed was supplied).
    diagnostics : dict
        Design-specific counters (draws, steps, dropped constraints, ...).
    """

    sample: pd.Index
    probabilities: pd.Series
    method: str
    seed: int | None = None
    diagnostics: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.sample)

    def __contains__(self, unit: object) -> bool:
        return unit in self.sample

    @property
    def size(self) -> int:
        return len(self.sample)

    @property
    def labels(self) -> pd.Index:
        """Caller labels of the selected units."""
        return self.probabilities.index[self.sample.to_numpy()]

    def to_set(self) -> set[int]:
        return {int(u) for u in self.sample}

    def indicators(self) -> np.ndarray:
        """Boolean inclusion indicator per unit, shape (N,)."""
        out = np.zeros(len(self.probabilities), dtype=bool)
        out[self.sample.to_numpy()] = True
        return out

    def weights(self) -> pd.Series:
        """Horvitz-Thompson design weights 1/pi of the selected units."""
        pi = self.probabilities.to_numpy(dtype=float)[self.sample.to_numpy()]
        return pd.Series(1.0 / pi, index=self.labels, name="ht_weights")


def make_result(
    selected: np.ndarray,
    probabilities: pd.Series,
    method: str,
    seed: int | None,
    diagnostics: dict[str, Any],
) -> SamplingResult:
    sample = pd.Index(np.sort(np.asarray(selected, dtype=np.intp)), name="sampled_units")
    return SamplingResult(
        sample=sample,
        probabilities=probabilities,
        method=method,
        seed=seed,
        diagnostics=diagnostics,
    )
