import numpy as np
import pytest

from .data_synth import make_balancing, make_grid, make_population


@pytest.fixture
def square():
    """Four units on the corners of the unit square, all with probability 0.5."""
    coords = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
    return np.full(4, 0.5), coords


@pytest.fixture
def population():
    return make_population(n=150, d=2, expected_size=30, random_state=11)


@pytest.fixture
def grid():
    return make_grid(10)


@pytest.fixture
def balancing_data():
    return make_balancing(n=120, expected_size=24, random_state=5)
