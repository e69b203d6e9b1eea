"""
Horvitz-Thompson and ratio estimation, balance and calibration.
"""

import numpy as np
import pandas as pd
import pytest

from balsam import (
    ErrorKind,
    ValidationError,
    balance_deviation,
    calibrate_weights,
    ht_estimate,
    ht_weights,
    ratio_estimate,
    sample_cube,
    sample_pivotal,
    sample_poisson,
)

from .data_synth import make_balancing


def test_ht_unbiased_under_pivotal(population):
    pi, coords = population
    y = coords["x0"].to_numpy() * 10 + 1
    estimates = [ht_estimate(y, sample_pivotal(pi, coords, seed=s)) for s in range(300)]
    assert np.mean(estimates) == pytest.approx(y.sum(), rel=0.05)


def test_sample_length_values():
    pi = np.array([0.5, 0.5, 1.0])
    result = sample_poisson(pi, seed=2)
    y = np.array([2.0, 4.0, 6.0])
    assert ht_estimate(y, result) == pytest.approx(ht_estimate(y[result.sample], result))


def test_wrong_length_values():
    result = sample_poisson([0.5, 0.5, 1.0], seed=2)
    with pytest.raises(ValidationError) as exc:
        ht_estimate(np.ones(7), result)
    assert exc.value.kind is ErrorKind.MISMATCHED_DIMENSIONS


def test_weights():
    pi = pd.Series([0.5, 0.25, 1.0], index=["a", "b", "c"])
    result = sample_poisson(pi, seed=0)
    w = ht_weights(result)
    assert w.name == "ht_weights"
    np.testing.assert_allclose(w.to_numpy(), 1.0 / pi[w.index].to_numpy())


def test_ratio_exact_for_proportional_y():
    rng = np.random.default_rng(1)
    x = rng.uniform(1.0, 3.0, 50)
    result = sample_poisson(np.full(50, 0.3), seed=4)
    assert ratio_estimate(2.0 * x, x, result, x.sum()) == pytest.approx(2.0 * x.sum())


def test_ratio_rejects_bad_total():
    result = sample_poisson(np.full(5, 0.5), seed=4)
    with pytest.raises(ValidationError):
        ratio_estimate(np.ones(5), np.ones(5), result, np.nan)


class TestBalanceDeviation:
    def test_census_is_exact(self):
        x = np.arange(12.0).reshape(6, 2)
        result = sample_poisson(np.ones(6), seed=0)
        dev = balance_deviation(x, result)
        np.testing.assert_allclose(dev.to_numpy(), 0.0)
        assert dev.name == "balance_deviation"

    def test_relative(self):
        pi, x = make_balancing(n=60, expected_size=12, random_state=2)
        result = sample_poisson(pi, seed=3)
        absolute = balance_deviation(x, result)
        relative = balance_deviation(x, result, relative=True)
        np.testing.assert_allclose(relative.to_numpy(), absolute.to_numpy() / x.sum().to_numpy())

    def test_row_mismatch(self):
        result = sample_poisson(np.full(4, 0.5), seed=0)
        with pytest.raises(ValidationError):
            balance_deviation(np.ones((5, 1)), result)


class TestCalibration:
    def test_hits_totals(self, balancing_data):
        pi, x = balancing_data
        result = sample_poisson(pi, seed=8)
        w = calibrate_weights(result, x, nonneg=False)
        Xs = x.to_numpy()[result.sample.to_numpy()]
        np.testing.assert_allclose(Xs.T @ w.to_numpy(), x.sum().to_numpy(), rtol=1e-6)
        assert w.name == "calibrated_weights"
        assert w.index.equals(result.labels)

    def test_custom_totals(self, balancing_data):
        pi, x = balancing_data
        result = sample_cube(pi, x, seed=8)
        totals = x.sum().to_numpy() * 1.01
        w = calibrate_weights(result, x, totals)
        Xs = x.to_numpy()[result.sample.to_numpy()]
        np.testing.assert_allclose(Xs.T @ w.to_numpy(), totals, rtol=1e-6)

    def test_totals_shape_checked(self, balancing_data):
        pi, x = balancing_data
        result = sample_poisson(pi, seed=8)
        with pytest.raises(ValidationError):
            calibrate_weights(result, x, np.ones(2))

    def test_close_to_design_weights_after_cube(self, balancing_data):
        pi, x = balancing_data
        result = sample_cube(pi, x, seed=2)
        w = calibrate_weights(result, x)
        np.testing.assert_allclose(w.to_numpy(), ht_weights(result).to_numpy(), rtol=0.2)
        assert (w > 0).all()
