"""
Classical unequal-probability designs.
"""

import numpy as np
import pytest

from balsam import (
    ErrorKind,
    MaxIterationsError,
    ValidationError,
    sample_brewer,
    sample_pareto,
    sample_poisson,
    sample_sampford,
    sample_with_replacement,
)

PI = np.array([0.2, 0.3, 0.4, 0.5, 0.6, 0.2, 0.3, 0.4, 0.5, 0.6])  # sums to 4


def frequencies(sampler, pi, reps=2000, **kwargs):
    counts = np.zeros(len(pi))
    for s in range(reps):
        counts += sampler(pi, seed=s, **kwargs).indicators()
    return counts / reps


class TestPoisson:
    def test_frequencies(self):
        np.testing.assert_allclose(frequencies(sample_poisson, PI), PI, atol=0.05)

    def test_certain_units_consume_no_draws(self):
        result = sample_poisson([1.0, 0.3, 1.0, 0.4], seed=1)
        assert {0, 2} <= result.to_set()
        assert result.diagnostics == {"forced": 2, "draws": 2}
        assert result.method == "poisson"


@pytest.mark.parametrize("sampler", [sample_sampford, sample_pareto, sample_brewer])
class TestFixedSizeDesigns:
    def test_fixed_size(self, sampler):
        for s in range(30):
            result = sampler(PI, seed=s)
            assert len(result) == 4
            assert len(set(result.sample)) == 4

    def test_frequencies(self, sampler):
        np.testing.assert_allclose(frequencies(sampler, PI), PI, atol=0.05)

    def test_certain_unit(self, sampler):
        pi = np.array([1.0, 0.5, 0.5, 0.5, 0.5])
        for s in range(10):
            result = sampler(pi, seed=s)
            assert 0 in result
            assert len(result) == 3

    def test_rejects_fractional_size(self, sampler):
        with pytest.raises(ValidationError) as exc:
            sampler([0.3, 0.4], seed=1)
        assert exc.value.kind is ErrorKind.INVALID_SIZE

    def test_deterministic(self, sampler):
        assert sampler(PI, seed=99).sample.equals(sampler(PI, seed=99).sample)


def test_sampford_iteration_budget():
    # with 40 units at 0.5 an acceptance within one attempt is unlikely
    pi = np.full(40, 0.5)
    with pytest.raises(MaxIterationsError) as exc:
        for s in range(50):
            sample_sampford(pi, seed=s, max_iterations=1)
    assert exc.value.max_iterations == 1


def test_sampford_reports_attempts():
    result = sample_sampford(PI, seed=3)
    assert result.diagnostics["attempts"] >= 1
    assert result.diagnostics["draws"] >= 11


class TestWithReplacement:
    def test_size_and_counts(self):
        p = np.array([0.1, 0.2, 0.3, 0.4])
        counts = np.zeros(4)
        for s in range(500):
            result = sample_with_replacement(p, 5, seed=s)
            assert len(result) == 5
            counts += np.bincount(result.sample.to_numpy(), minlength=4)
        np.testing.assert_allclose(counts / 2500, p, atol=0.03)

    def test_must_sum_to_one(self):
        with pytest.raises(ValidationError) as exc:
            sample_with_replacement([0.5, 0.6], 2, seed=1)
        assert exc.value.kind is ErrorKind.INVALID_SIZE

    def test_zero_draws(self):
        assert len(sample_with_replacement([0.5, 0.5], 0, seed=1)) == 0
