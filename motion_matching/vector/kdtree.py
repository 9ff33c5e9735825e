"""
Balanced k-d tree with weighted metrics and predicate-filtered exact k-NN search.
"""

import heapq
from typing import List, Optional, Sequence
import numpy as np

from .distance import DistanceType
from .index import ISpatialIndex, RowPredicate
from .types import Neighbor


class _Node:
    __slots__ = ("dim", "split", "left", "right", "start", "stop")

    def __init__(self, start: int, stop: int):
        self.dim = -1
        self.split = 0.0
        self.left = None
        self.right = None
        self.start = start
        self.stop = stop

    @property
    def is_leaf(self) -> bool:
        return self.left is None


class KdTree(ISpatialIndex):
    """
    k-d tree over pose rows.

    The build splits at the median of the dimension with the largest spread, so the
    tree is balanced; leaves hold up to ``leaf_size`` rows. Points are reordered into
    tree order once at build time and leaves refer to contiguous slices. A built tree
    is read-only; ``with_distance`` derives a tree with another metric.

    Search keeps the per-axis gaps between the query and the current cell and
    updates the cell's lower bound incrementally. Subtrees are pruned on that
    geometric bound only, the predicate is applied to candidate rows, so a filter
    never hides a subtree that could hold an accepted point.
    """

    def __init__(self, distance_type: int = DistanceType.MANHATTAN, weights: Optional[Sequence[float]] = None,
                 leaf_size: int = 8):
        super().__init__(distance_type, weights)
        if leaf_size < 1:
            raise ValueError("leaf_size must be >= 1")
        self.leaf_size = leaf_size
        self._root: Optional[_Node] = None

    def build(self, points: np.ndarray, categories: Optional[np.ndarray] = None,
              rows: Optional[np.ndarray] = None) -> None:
        self._store(points, categories, rows)
        count = len(self._rows)
        if count == 0:
            self._root = None
            return

        order = np.arange(count)
        self._root = self._build_node(order, 0, count)
        # Reorder storage so every leaf is a contiguous slice
        self._points = self._points[order]
        self._categories = self._categories[order]
        self._rows = self._rows[order]
        self._freeze()

    def _build_node(self, order: np.ndarray, start: int, stop: int) -> _Node:
        node = _Node(start, stop)
        if stop - start <= self.leaf_size or self._dimension == 0:
            return node

        cell = self._points[order[start:stop]]
        spread = cell.max(axis=0) - cell.min(axis=0)
        dim = int(np.argmax(spread))
        if spread[dim] <= 0.0:
            # All points coincide; nothing left to split
            return node

        mid = (stop - start) // 2
        partition = np.argpartition(cell[:, dim], mid, kind="introselect")
        order[start:stop] = order[start:stop][partition]

        node.dim = dim
        node.split = float(self._points[order[start + mid], dim])
        node.left = self._build_node(order, start, start + mid)
        node.right = self._build_node(order, start + mid, stop)
        return node

    def k_nearest(self, query, k: int = 1, predicate: Optional[RowPredicate] = None) -> List[Neighbor]:
        query = self._prepare_query(query)
        if query is None or k <= 0 or self._root is None:
            return []

        # Max-heap on distance; the sequence number keeps the first-found hit on ties
        heap = []
        state = {"seq": 0}
        gaps = np.zeros(self._dimension, dtype=np.float64)
        # One metric for the whole traversal
        distance = self.distance
        self._search(self._root, query, k, predicate, distance, heap, state, gaps, 0.0)

        hits = sorted((-neg_dist, -neg_seq, row) for neg_dist, neg_seq, row in heap)
        return [Neighbor(row, float(dist)) for dist, _, row in hits]

    def _search(self, node: _Node, query: np.ndarray, k: int, predicate, distance, heap, state, gaps,
                bound: float) -> None:
        if node.is_leaf:
            self._scan_leaf(node, query, k, predicate, distance, heap, state)
            return

        diff = float(query[node.dim]) - node.split
        if diff < 0.0:
            near, far = node.left, node.right
        else:
            near, far = node.right, node.left

        self._search(near, query, k, predicate, distance, heap, state, gaps, bound)

        old_gap = gaps[node.dim]
        new_gap = abs(diff)
        far_bound = distance.update_bound(bound, old_gap, new_gap, node.dim)
        if len(heap) < k or far_bound <= -heap[0][0]:
            gaps[node.dim] = new_gap
            self._search(far, query, k, predicate, distance, heap, state, gaps, far_bound)
            gaps[node.dim] = old_gap

    def _scan_leaf(self, node: _Node, query: np.ndarray, k: int, predicate, distance, heap, state) -> None:
        distances = distance.batch(self._points[node.start:node.stop], query)
        for offset, value in enumerate(distances):
            value = float(value)
            if len(heap) >= k and value >= -heap[0][0]:
                continue
            position = node.start + offset
            row = int(self._rows[position])
            if predicate is not None and not predicate(row, int(self._categories[position])):
                continue
            state["seq"] += 1
            entry = (-value, -state["seq"], row)
            if len(heap) < k:
                heapq.heappush(heap, entry)
            else:
                heapq.heapreplace(heap, entry)

    def depth(self) -> int:
        """Height of the tree; 0 for an empty tree."""
        def _depth(node):
            if node is None:
                return 0
            if node.is_leaf:
                return 1
            return 1 + max(_depth(node.left), _depth(node.right))
        return _depth(self._root)
