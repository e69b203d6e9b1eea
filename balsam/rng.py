"""
Explicit, seedable random streams.

Samplers never touch numpy's global state: every call receives (or builds)
its own :class:`RandomSource`, so a fixed seed reproduces a sample exactly
and independent calls can run in parallel.
"""

from __future__ import annotations

import numpy as np

from .validation import check_seed


class RandomSource:
    """Uniform/normal variates from a PCG64 generator, with a draw counter."""

    __slots__ = ("_rng", "_seed_seq", "draws")

    def __init__(self, seed: int | np.random.SeedSequence | None = None):
        if isinstance(seed, np.random.SeedSequence):
            seq = seed
        else:
            seq = np.random.SeedSequence(check_seed(seed))
        self._seed_seq = seq
        self._rng = np.random.Generator(np.random.PCG64(seq))
        self.draws = 0

    @classmethod
    def coerce(cls, seed: int | RandomSource | None) -> RandomSource:
        """Return ``seed`` if it already is a stream, otherwise build one."""
        if isinstance(seed, RandomSource):
            return seed
        return cls(seed)

    def uniform(self) -> float:
        """One variate on [0, 1)."""
        self.draws += 1
        return float(self._rng.random())

    def uniforms(self, size: int) -> np.ndarray:
        self.draws += size
        return self._rng.random(size)

    def normal(self, size: int) -> np.ndarray:
        self.draws += size
        return self._rng.standard_normal(size)

    def spawn(self, n: int) -> list[RandomSource]:
        """Independent child streams, e.g. one per worker."""
        return [RandomSource(child) for child in self._seed_seq.spawn(n)]

    def __repr__(self) -> str:
        return f"RandomSource(entropy={self._seed_seq.entropy}, draws={self.draws})"


def stream_from(seed: int | RandomSource | None) -> tuple[RandomSource, int | None]:
    """Build the stream for one call and the seed to report in its result."""
    if isinstance(seed, RandomSource):
        return seed, None
    seed = check_seed(seed)
    return RandomSource(seed), seed
