import tracemalloc

import numpy as np

from balsam.linalg import matrix_rank, null_space


def test_null_space_is_orthonormal():
    rng = np.random.default_rng(0)
    a = rng.normal(size=(3, 7))
    basis = null_space(a)
    assert basis.shape == (7, 4)
    np.testing.assert_allclose(a @ basis, 0.0, atol=1e-10)
    np.testing.assert_allclose(basis.T @ basis, np.eye(4), atol=1e-10)


def test_null_space_of_row_of_ones():
    basis = null_space(np.ones(3))
    assert basis.shape == (3, 2)
    np.testing.assert_allclose(basis.sum(axis=0), 0.0, atol=1e-12)


def test_null_space_without_constraints():
    np.testing.assert_array_equal(null_space(np.empty((0, 3))), np.eye(3))


def test_full_rank_square_has_trivial_null_space():
    assert null_space(np.eye(3)).shape == (3, 0)


def test_rank_deficient():
    z = np.arange(1.0, 6.0)
    a = np.column_stack([np.ones(5), z, 2.0 * z, np.zeros(5)])
    assert matrix_rank(a) == 2
    assert null_space(a.T).shape == (5, 3)
    assert matrix_rank(np.zeros((3, 3))) == 0


def test_rank_of_tall_matrix_needs_no_square_factor():
    rng = np.random.default_rng(1)
    x = np.column_stack([np.ones(5000), rng.uniform(size=5000), rng.uniform(size=5000)])
    tracemalloc.start()
    try:
        rank = matrix_rank(x)
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()
    assert rank == 3
    # a full U factor alone would be 5000 * 5000 * 8 bytes
    assert peak < 10 * x.nbytes
