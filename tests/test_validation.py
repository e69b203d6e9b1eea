"""
Input validation: every malformed input is rejected with the right kind,
before any random number is drawn.
"""

import numpy as np
import pandas as pd
import pytest

from balsam import (
    AuxiliaryMatrix,
    ErrorKind,
    ProbabilityVector,
    RandomSource,
    ValidationError,
    sample_cube,
    sample_pivotal,
)
from balsam.validation import check_eps, check_integer_size, check_positive_int, check_seed


class TestProbabilityVector:
    def test_empty(self):
        with pytest.raises(ValidationError) as exc:
            ProbabilityVector.from_input([])
        assert exc.value.kind is ErrorKind.EMPTY_POPULATION

    @pytest.mark.parametrize("bad", [[0.5, 1.2], [0.0, 0.5], [-0.1, 0.5]])
    def test_out_of_range(self, bad):
        with pytest.raises(ValidationError) as exc:
            ProbabilityVector.from_input(bad)
        assert exc.value.kind is ErrorKind.OUT_OF_RANGE

    @pytest.mark.parametrize("bad", [[np.nan, 0.5], [0.5, np.inf]])
    def test_non_finite(self, bad):
        with pytest.raises(ValidationError) as exc:
            ProbabilityVector.from_input(bad)
        assert exc.value.kind is ErrorKind.NON_FINITE

    def test_two_dimensional(self):
        with pytest.raises(ValidationError) as exc:
            ProbabilityVector.from_input([[0.5, 0.5]])
        assert exc.value.kind is ErrorKind.MISMATCHED_DIMENSIONS

    def test_one_is_allowed(self):
        pv = ProbabilityVector.from_input([1.0, 0.25, 0.75])
        assert len(pv) == 3
        assert pv.expected_size == pytest.approx(2.0)

    def test_keeps_series_labels(self):
        s = pd.Series([0.2, 0.8], index=["a", "b"])
        pv = ProbabilityVector.from_input(s)
        assert list(pv.index) == ["a", "b"]
        assert pv.to_series().name == "pi"

    def test_values_are_read_only(self):
        pv = ProbabilityVector.from_input(np.array([0.5, 0.5]))
        with pytest.raises(ValueError):
            pv.values[0] = 0.1


class TestAuxiliaryMatrix:
    def test_ragged_rows(self):
        with pytest.raises(ValidationError) as exc:
            AuxiliaryMatrix.from_input([[0.0, 1.0], [1.0]])
        assert exc.value.kind is ErrorKind.MISMATCHED_DIMENSIONS

    def test_non_finite(self):
        with pytest.raises(ValidationError) as exc:
            AuxiliaryMatrix.from_input([[0.0, 1.0], [np.inf, 1.0]])
        assert exc.value.kind is ErrorKind.NON_FINITE

    def test_no_rows(self):
        with pytest.raises(ValidationError) as exc:
            AuxiliaryMatrix.from_input(np.empty((0, 2)))
        assert exc.value.kind is ErrorKind.EMPTY_POPULATION

    def test_no_columns(self):
        with pytest.raises(ValidationError) as exc:
            AuxiliaryMatrix.from_input(np.empty((3, 0)))
        assert exc.value.kind is ErrorKind.MISMATCHED_DIMENSIONS

    def test_vector_becomes_one_column(self):
        am = AuxiliaryMatrix.from_input([1.0, 2.0, 3.0])
        assert am.values.shape == (3, 1)
        assert am.n_dims == 1


def test_row_count_mismatch():
    with pytest.raises(ValidationError) as exc:
        sample_pivotal([0.5, 0.5, 0.5], [[0, 0], [0, 1], [1, 0], [1, 1]], seed=1)
    assert exc.value.kind is ErrorKind.MISMATCHED_DIMENSIONS


def test_index_mismatch():
    pi = pd.Series([0.5, 0.5], index=["a", "b"])
    coords = pd.DataFrame([[0.0], [1.0]], index=["a", "c"])
    with pytest.raises(ValidationError, match="align"):
        sample_pivotal(pi, coords, seed=1)


def test_failed_validation_draws_nothing():
    rng = RandomSource(3)
    with pytest.raises(ValidationError):
        sample_pivotal([0.5, np.nan], [[0.0], [1.0]], seed=rng)
    with pytest.raises(ValidationError):
        sample_cube([0.5, 0.5], [[1.0], [np.inf]], seed=rng)
    assert rng.draws == 0


class TestParameters:
    @pytest.mark.parametrize("seed", [-1, 2**64, 1.5, "7", True])
    def test_bad_seed(self, seed):
        with pytest.raises(ValidationError) as exc:
            check_seed(seed)
        assert exc.value.kind is ErrorKind.INVALID_PARAMETER

    def test_seed_bounds(self):
        assert check_seed(0) == 0
        assert check_seed(2**64 - 1) == 2**64 - 1
        assert check_seed(None) is None

    def test_bad_seed_in_sampler(self):
        with pytest.raises(ValidationError):
            sample_pivotal([0.5, 0.5], [[0.0], [1.0]], seed=-5)

    @pytest.mark.parametrize("eps", [-1e-3, 0.5, np.nan])
    def test_bad_eps(self, eps):
        with pytest.raises(ValidationError):
            check_eps(eps)

    def test_positive_int(self):
        assert check_positive_int(3, "k") == 3
        assert check_positive_int(0, "k", allow_zero=True) == 0
        with pytest.raises(ValidationError):
            check_positive_int(0, "k")
        with pytest.raises(ValidationError):
            check_positive_int(2.0, "k")

    def test_integer_size(self):
        assert check_integer_size(0.1 + 0.2 + 0.7) == 1
        with pytest.raises(ValidationError) as exc:
            check_integer_size(2.5)
        assert exc.value.kind is ErrorKind.INVALID_SIZE
