"""
Dynamic k-d tree over the live units of a population.

Nodes live in an arena of parallel lists addressed by integer id. Internal
nodes carry a split (dimension, value); leaves carry a bucket of unit ids.
Removing a unit unlinks it from its bucket; an emptied leaf is released and
its parent spliced out, so every internal node keeps exactly two children and
a removed unit can never be reached by a later search.
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterable

import numpy as np

from .constants import LEAF_SIZE_DEFAULT, REBUILD_FRACTION
from .validation import check_positive_int

logger = logging.getLogger(__name__)

NO_NODE = -1


class EmptyIndexError(LookupError):
    """Neighbour query against an index without live units."""


class SpatialIndex:
    """
    Nearest-neighbour structure supporting physical removal.

    Use :meth:`build` to construct one. Distances are Euclidean; results are
    ordered by ``(distance, unit)`` so that equidistant and coincident points
    come back in ascending unit order.
    """

    def __init__(self, points: np.ndarray, *, leaf_size: int = LEAF_SIZE_DEFAULT):
        data = np.asarray(points, dtype=float)
        if data.ndim == 1:
            data = data[:, None]
        self._data = data
        self._leaf_size = check_positive_int(leaf_size, "leaf_size")

        # arena
        self._split_dim: list[int] = []
        self._split_value: list[float] = []
        self._left: list[int] = []
        self._right: list[int] = []
        self._parent: list[int] = []
        self._bucket: list[list[int] | None] = []
        self._free: list[int] = []

        self._leaf_of = np.full(data.shape[0], NO_NODE, dtype=np.intp)
        self._root = NO_NODE
        self._size = 0
        self._built_size = 0

    @classmethod
    def build(
        cls,
        points: np.ndarray,
        *,
        units: Iterable[int] | None = None,
        leaf_size: int = LEAF_SIZE_DEFAULT,
    ) -> SpatialIndex:
        """
        Build an index over ``units`` (default: every row of ``points``).

        Parameters
        ----------
        points : ndarray, shape (N, d)
            Coordinates of the whole population; row ``k`` belongs to unit ``k``.
        units : iterable of int, optional
            Subset of rows to index.
        leaf_size : int
            Maximum bucket size before a node is split.
        """
        index = cls(points, leaf_size=leaf_size)
        if units is None:
            ids = np.arange(index._data.shape[0], dtype=np.intp)
        else:
            ids = np.unique(np.fromiter(units, dtype=np.intp))
        index._load(ids)
        return index

    # ------------------------------------------------------------------
    # construction

    def _load(self, ids: np.ndarray) -> None:
        self._root = self._grow(ids, NO_NODE) if ids.size else NO_NODE
        self._size = int(ids.size)
        self._built_size = self._size

    def _alloc(self, parent: int) -> int:
        if self._free:
            node = self._free.pop()
            self._split_dim[node] = -1
            self._split_value[node] = 0.0
            self._left[node] = NO_NODE
            self._right[node] = NO_NODE
            self._parent[node] = parent
            self._bucket[node] = None
            return node
        self._split_dim.append(-1)
        self._split_value.append(0.0)
        self._left.append(NO_NODE)
        self._right.append(NO_NODE)
        self._parent.append(parent)
        self._bucket.append(None)
        return len(self._parent) - 1

    def _release(self, node: int) -> None:
        self._bucket[node] = None
        self._left[node] = NO_NODE
        self._right[node] = NO_NODE
        self._parent[node] = NO_NODE
        self._free.append(node)

    def _grow(self, ids: np.ndarray, parent: int) -> int:
        node = self._alloc(parent)
        pts = self._data[ids]
        spread = pts.max(axis=0) - pts.min(axis=0)
        if ids.size <= self._leaf_size or spread.max() <= 0.0:
            # small enough, or every point coincides
            bucket = sorted(int(u) for u in ids)
            self._bucket[node] = bucket
            self._leaf_of[bucket] = node
            return node

        dim = int(np.argmax(spread))
        mid = ids.size // 2
        order = np.argpartition(pts[:, dim], mid)
        self._split_dim[node] = dim
        self._split_value[node] = float(pts[order[mid], dim])
        left = self._grow(ids[order[:mid]], node)
        right = self._grow(ids[order[mid:]], node)
        self._left[node] = left
        self._right[node] = right
        return node

    # ------------------------------------------------------------------
    # queries

    def __len__(self) -> int:
        return self._size

    def __contains__(self, unit: object) -> bool:
        try:
            unit = int(unit)  # type: ignore[call-overload]
        except (TypeError, ValueError):
            return False
        return bool(0 <= unit < self._leaf_of.size and self._leaf_of[unit] != NO_NODE)

    @property
    def n_nodes(self) -> int:
        """Number of nodes currently linked into the tree."""
        return len(self._parent) - len(self._free)

    @property
    def dimension(self) -> int:
        return int(self._data.shape[1])

    def live_units(self) -> list[int]:
        return [int(u) for u in np.flatnonzero(self._leaf_of != NO_NODE)]

    def nearest_neighbors(self, unit: int, k: int = 1) -> list[int]:
        """
        The ``k`` nearest live units to ``unit``, excluding ``unit`` itself.

        Raises
        ------
        EmptyIndexError
            If the index holds no live units.
        """
        k = check_positive_int(k, "k")
        return self._search(self._data[unit], k, exclude=int(unit))

    def query(self, point: np.ndarray, k: int = 1) -> list[int]:
        """The ``k`` nearest live units to an arbitrary ``point``."""
        k = check_positive_int(k, "k")
        q = np.asarray(point, dtype=float).reshape(-1)
        if q.size != self.dimension:
            raise ValueError(f"point has {q.size} coordinates, index has {self.dimension}")
        return self._search(q, k, exclude=NO_NODE)

    def _search(self, point: np.ndarray, k: int, exclude: int) -> list[int]:
        if self._root == NO_NODE:
            raise EmptyIndexError("spatial index is empty")

        # max-heap on (distance, unit) through negation
        heap: list[tuple[float, int]] = []
        data = self._data
        # (node, lower bound on squared distance to anything below it)
        stack: list[tuple[int, float]] = [(self._root, 0.0)]

        while stack:
            node, bound = stack.pop()
            if len(heap) == k and bound > -heap[0][0]:
                continue

            bucket = self._bucket[node]
            if bucket is not None:
                diff = data[bucket] - point
                d2 = np.einsum("ij,ij->i", diff, diff)
                for dist, unit in zip(d2.tolist(), bucket):
                    if unit == exclude:
                        continue
                    if len(heap) < k:
                        heapq.heappush(heap, (-dist, -unit))
                    elif (dist, unit) < (-heap[0][0], -heap[0][1]):
                        heapq.heapreplace(heap, (-dist, -unit))
                continue

            gap = float(point[self._split_dim[node]]) - self._split_value[node]
            if gap <= 0.0:
                near, far = self._left[node], self._right[node]
            else:
                near, far = self._right[node], self._left[node]
            stack.append((far, max(bound, gap * gap)))
            stack.append((near, bound))

        ordered = sorted((-d, -u) for d, u in heap)
        return [u for _, u in ordered]

    # ------------------------------------------------------------------
    # removal

    def remove(self, unit: int) -> None:
        """
        Physically delete ``unit`` from the tree.

        Raises
        ------
        KeyError
            If ``unit`` is not live.
        """
        unit = int(unit)
        leaf = int(self._leaf_of[unit])
        if leaf == NO_NODE:
            raise KeyError(f"unit {unit} is not in the index")

        bucket = self._bucket[leaf]
        bucket.remove(unit)  # type: ignore[union-attr]
        self._leaf_of[unit] = NO_NODE
        self._size -= 1

        if not bucket:
            self._prune(leaf)

        if (
            self._size > self._leaf_size
            and self._size <= REBUILD_FRACTION * self._built_size
        ):
            self._rebuild()

    def _prune(self, leaf: int) -> None:
        parent = self._parent[leaf]
        self._release(leaf)
        if parent == NO_NODE:
            self._root = NO_NODE
            return

        sibling = self._right[parent] if self._left[parent] == leaf else self._left[parent]
        grand = self._parent[parent]
        self._parent[sibling] = grand
        if grand == NO_NODE:
            self._root = sibling
        elif self._left[grand] == parent:
            self._left[grand] = sibling
        else:
            self._right[grand] = sibling
        self._release(parent)

    def _rebuild(self) -> None:
        live = np.flatnonzero(self._leaf_of != NO_NODE).astype(np.intp)
        logger.debug("rebuilding spatial index with %d live units", live.size)
        self._free = list(range(len(self._parent) - 1, -1, -1))
        for node in range(len(self._parent)):
            self._bucket[node] = None
        self._leaf_of[:] = NO_NODE
        self._load(live)
