"""
Spatial index: exact neighbours, index-ordered ties, physical removal.
"""

import numpy as np
import pytest

from balsam import EmptyIndexError, SpatialIndex


def brute_force(points, live, query, k, exclude=-1):
    live = np.array([u for u in live if u != exclude], dtype=np.intp)
    diff = points[live] - query
    d2 = np.einsum("ij,ij->i", diff, diff)
    order = sorted(zip(d2.tolist(), live.tolist()))
    return [u for _, u in order[:k]]


@pytest.fixture
def lattice_points():
    # integer coordinates: lots of exact ties and coincident points
    rng = np.random.default_rng(17)
    return rng.integers(0, 8, size=(300, 2)).astype(float)


class TestQueries:
    def test_matches_brute_force(self, lattice_points):
        index = SpatialIndex.build(lattice_points, leaf_size=4)
        live = range(len(lattice_points))
        for unit in range(0, 300, 7):
            for k in (1, 3, 10):
                expected = brute_force(lattice_points, live, lattice_points[unit], k, unit)
                assert index.nearest_neighbors(unit, k) == expected

    def test_query_arbitrary_point(self, lattice_points):
        index = SpatialIndex.build(lattice_points, leaf_size=5)
        q = np.array([3.5, 3.5])
        assert index.query(q, 6) == brute_force(lattice_points, range(300), q, 6)

    def test_query_wrong_dimension(self, lattice_points):
        index = SpatialIndex.build(lattice_points)
        with pytest.raises(ValueError):
            index.query([1.0, 2.0, 3.0])

    def test_equidistant_picks_lowest_index(self):
        points = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
        index = SpatialIndex.build(points, leaf_size=1)
        assert index.nearest_neighbors(0) == [1]
        assert index.nearest_neighbors(3) == [1]
        assert index.nearest_neighbors(3, 2) == [1, 2]

    def test_coincident_points(self):
        points = np.zeros((20, 3))
        index = SpatialIndex.build(points, leaf_size=2)
        assert index.n_nodes == 1
        assert index.nearest_neighbors(5, 3) == [0, 1, 2]
        assert index.nearest_neighbors(0, 2) == [1, 2]

    def test_subset_of_units(self, lattice_points):
        units = list(range(0, 300, 3))
        index = SpatialIndex.build(lattice_points, units=units, leaf_size=4)
        assert len(index) == 100
        assert index.live_units() == units
        assert index.nearest_neighbors(0, 4) == brute_force(
            lattice_points, units, lattice_points[0], 4, 0
        )

    def test_one_dimensional_points(self):
        index = SpatialIndex.build(np.array([5.0, 1.0, 3.0, 2.0]), leaf_size=1)
        assert index.dimension == 1
        assert index.nearest_neighbors(1, 2) == [3, 2]


class TestRemoval:
    def test_removed_units_are_never_returned(self, lattice_points):
        rng = np.random.default_rng(2)
        index = SpatialIndex.build(lattice_points, leaf_size=4)
        live = set(range(300))
        for unit in rng.permutation(300)[:220]:
            index.remove(int(unit))
            live.discard(int(unit))
            probe = int(rng.choice(sorted(live)))
            got = index.nearest_neighbors(probe, 5)
            assert set(got) <= live
            assert got == brute_force(lattice_points, sorted(live), lattice_points[probe], 5, probe)
        assert len(index) == 80
        assert int(unit) not in index

    def test_remove_twice(self):
        index = SpatialIndex.build(np.arange(5.0))
        index.remove(2)
        with pytest.raises(KeyError):
            index.remove(2)

    def test_remove_all(self, lattice_points):
        index = SpatialIndex.build(lattice_points[:50], leaf_size=3)
        assert index.n_nodes > 1
        for unit in range(50):
            index.remove(unit)
        assert len(index) == 0
        assert index.n_nodes == 0
        with pytest.raises(EmptyIndexError):
            index.nearest_neighbors(0)
        with pytest.raises(EmptyIndexError):
            index.query([0.0, 0.0])

    def test_last_unit_has_no_neighbour(self):
        index = SpatialIndex.build(np.arange(3.0))
        index.remove(0)
        index.remove(2)
        assert index.nearest_neighbors(1) == []

    def test_rebuild_shrinks_tree(self, lattice_points):
        index = SpatialIndex.build(lattice_points, leaf_size=4)
        before = index.n_nodes
        for unit in range(240):
            index.remove(unit)
        assert index.n_nodes < before
        assert index.live_units() == list(range(240, 300))
        assert index.nearest_neighbors(250, 3) == brute_force(
            lattice_points, range(240, 300), lattice_points[250], 3, 250
        )

    def test_contains(self):
        index = SpatialIndex.build(np.arange(4.0))
        index.remove(1)
        assert 0 in index
        assert 1 not in index
        assert -1 not in index
        assert 10 not in index
