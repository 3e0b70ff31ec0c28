# -*- coding: utf-8 -*-
"""Static k-d tree over point positions.

The tree is built once from an (N, >=3) array; only the first three columns
(x, y, z) take part in splitting and distances. Nodes live in one arena, a
list of ``(point, axis, left, right)`` tuples addressed by integer handle;
numpy arrays are used only while partitioning during the build. Construction
and every query walk the tree with an explicit stack, so depth never touches
the interpreter's recursion limit.

Queries:
    nearest(q)      -> (index, distance)
    k_nearest(q, k) -> indices sorted by ascending distance
    radius(q, r)    -> indices with distance < r (order not significant)
"""


from __future__ import annotations
import math
from bisect import bisect_right
from typing import List, Optional, Sequence, Tuple

import numpy as np

DIMENSION = 3
_NO_NODE = -1
# plane distance marker for children visited unconditionally
_ALWAYS = -1.0


class KDTree:
    """Balanced k-d tree with exact nearest, k-nearest and radius search.

    Attributes:
        root: Handle of the root node, -1 for an empty tree.
        node_point: Point index stored at each node handle.
        node_axis: Split axis (depth mod 3) of each node handle.
        node_left: Left child handle, -1 when absent.
        node_right: Right child handle, -1 when absent.

    The ``node_*`` attributes are read-only array views of the arena.
    """

    def __init__(self, points: Optional[np.ndarray] = None) -> None:
        self.clear()
        if points is not None:
            self.build(points)

    # ------------------------------ Build ------------------------------

    def clear(self) -> None:
        """Drop the tree; ``build`` must run again before any query."""
        self.root = _NO_NODE
        self._pts: List[List[float]] = []
        self._nodes: List[Tuple[int, int, int, int]] = []
        self._built = False

    def build(self, points: np.ndarray) -> None:
        """Build the tree from a point array.

        Each node takes the median point (position ``(n - 1) // 2`` after an
        nth-element style partition) along axis ``depth % 3``; the lower half
        becomes the left subtree, the upper half the right subtree.

        Args:
            points: Array of shape (N, >=3); rows are point indices.

        Raises:
            ValueError: If the array has fewer than three columns.
        """
        self.clear()
        xyz = np.asarray(points, dtype=np.float64)
        if xyz.size == 0:
            xyz = np.zeros((0, DIMENSION), dtype=np.float64)
        if xyz.ndim != 2 or xyz.shape[1] < DIMENSION:
            raise ValueError(
                f"points must have shape (N, >={DIMENSION}), got {xyz.shape}"
            )
        xyz = np.ascontiguousarray(xyz[:, :DIMENSION])
        n = int(xyz.shape[0])

        node_point = np.full(n, _NO_NODE, dtype=np.int64)
        node_axis = np.full(n, _NO_NODE, dtype=np.int64)
        node_left = np.full(n, _NO_NODE, dtype=np.int64)
        node_right = np.full(n, _NO_NODE, dtype=np.int64)
        order = np.arange(n, dtype=np.int64)

        root = _NO_NODE
        next_handle = 0
        # (parent handle, 0=left / 1=right, lo, hi, depth)
        stack = [(_NO_NODE, 0, 0, n, 0)] if n > 0 else []
        while stack:
            parent, side, lo, hi, depth = stack.pop()
            axis = depth % DIMENSION
            mid = (hi - lo - 1) // 2
            if hi - lo > 1:
                seg = order[lo:hi]
                part = np.argpartition(xyz[seg, axis], mid, kind="introselect")
                order[lo:hi] = seg[part]
            m = lo + mid

            handle = next_handle
            next_handle += 1
            node_point[handle] = order[m]
            node_axis[handle] = axis
            if parent == _NO_NODE:
                root = handle
            elif side == 0:
                node_left[parent] = handle
            else:
                node_right[parent] = handle

            if hi > m + 1:
                stack.append((handle, 1, m + 1, hi, depth + 1))
            if m > lo:
                stack.append((handle, 0, lo, m, depth + 1))

        self.root = root
        # plain lists keep per-node access in the query loops cheap
        self._pts = xyz.tolist()
        self._nodes = list(
            zip(
                node_point.tolist(),
                node_axis.tolist(),
                node_left.tolist(),
                node_right.tolist(),
            )
        )
        self._built = True

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def is_built(self) -> bool:
        return self._built

    def _arena_column(self, col: int) -> np.ndarray:
        return np.array([node[col] for node in self._nodes], dtype=np.int64)

    @property
    def node_point(self) -> np.ndarray:
        return self._arena_column(0)

    @property
    def node_axis(self) -> np.ndarray:
        return self._arena_column(1)

    @property
    def node_left(self) -> np.ndarray:
        return self._arena_column(2)

    @property
    def node_right(self) -> np.ndarray:
        return self._arena_column(3)

    def validate(self) -> bool:
        """Check the ordering invariant for every node.

        Every point in a node's left subtree must not exceed the node's
        coordinate on the node's axis, and every point in the right subtree
        must not fall below it.

        Returns:
            True when the whole tree satisfies the invariant.
        """
        self._check_built()
        if self.root == _NO_NODE:
            return True
        pts = self._pts
        inf = math.inf
        stack = [(self.root, (-inf, -inf, -inf), (inf, inf, inf))]
        visited = 0
        while stack:
            handle, lower, upper = stack.pop()
            visited += 1
            idx, axis, left, right = self._nodes[handle]
            p = pts[idx]
            for d in range(DIMENSION):
                if p[d] < lower[d] or p[d] > upper[d]:
                    return False
            split = p[axis]
            if left != _NO_NODE:
                new_upper = list(upper)
                new_upper[axis] = split
                stack.append((left, lower, tuple(new_upper)))
            if right != _NO_NODE:
                new_lower = list(lower)
                new_lower[axis] = split
                stack.append((right, tuple(new_lower), upper))
        return visited == len(self)

    # ------------------------------ Queries ------------------------------

    def _check_built(self) -> None:
        assert self._built, "KDTree.build() must run before queries"

    @staticmethod
    def _query_xyz(query: Sequence[float]) -> Tuple[float, float, float]:
        q = np.asarray(query, dtype=np.float64).reshape(-1)
        assert q.shape[0] >= DIMENSION, "query needs at least x, y, z"
        return float(q[0]), float(q[1]), float(q[2])

    def _distance(self, q: Tuple[float, float, float], idx: int) -> float:
        p = self._pts[idx]
        dx = q[0] - p[0]
        dy = q[1] - p[1]
        dz = q[2] - p[2]
        return math.sqrt(dx * dx + dy * dy + dz * dz)

    def nearest(self, query: Sequence[float]) -> Tuple[int, float]:
        """Find the exact nearest indexed point.

        Args:
            query: Sequence whose first three values are x, y, z.

        Returns:
            Tuple of the point index and its distance; (-1, inf) when empty.
        """
        self._check_built()
        q = self._query_xyz(query)
        best_idx = _NO_NODE
        best_dist = math.inf
        stack = [(self.root, _ALWAYS)] if self.root != _NO_NODE else []
        while stack:
            handle, plane = stack.pop()
            if plane != _ALWAYS and not plane < best_dist:
                continue
            idx, axis, left, right = self._nodes[handle]
            dist = self._distance(q, idx)
            if dist < best_dist:
                best_dist = dist
                best_idx = idx
            split = self._pts[idx][axis]
            near, far = (left, right) if q[axis] < split else (right, left)
            # far side is pushed first so it pops after the near subtree
            if far != _NO_NODE:
                stack.append((far, abs(q[axis] - split)))
            if near != _NO_NODE:
                stack.append((near, _ALWAYS))
        return best_idx, best_dist

    def k_nearest(self, query: Sequence[float], k: int) -> List[int]:
        """Find the k nearest indexed points.

        Equal distances keep the order in which the points were visited.

        Args:
            query: Sequence whose first three values are x, y, z.
            k: Number of neighbours requested.

        Returns:
            Up to ``k`` point indices, nearest first.
        """
        self._check_built()
        k = int(k)
        if k <= 0 or self.root == _NO_NODE:
            return []
        q = self._query_xyz(query)
        dists: List[float] = []
        found: List[int] = []
        stack = [(self.root, _ALWAYS)]
        while stack:
            handle, plane = stack.pop()
            if plane != _ALWAYS and len(dists) >= k and not plane < dists[-1]:
                continue
            idx, axis, left, right = self._nodes[handle]
            dist = self._distance(q, idx)
            pos = bisect_right(dists, dist)
            if pos < k:
                dists.insert(pos, dist)
                found.insert(pos, idx)
                if len(dists) > k:
                    del dists[k:]
                    del found[k:]
            split = self._pts[idx][axis]
            near, far = (left, right) if q[axis] < split else (right, left)
            if far != _NO_NODE:
                stack.append((far, abs(q[axis] - split)))
            if near != _NO_NODE:
                stack.append((near, _ALWAYS))
        return found

    def radius(self, query: Sequence[float], r: float) -> List[int]:
        """Find every indexed point strictly closer than ``r``.

        A query taken from the indexed points finds itself at distance 0.

        Args:
            query: Sequence whose first three values are x, y, z.
            r: Search radius.

        Returns:
            Point indices in visit order.
        """
        self._check_built()
        q = self._query_xyz(query)
        r = float(r)
        out: List[int] = []
        stack = [self.root] if self.root != _NO_NODE else []
        while stack:
            handle = stack.pop()
            idx, axis, left, right = self._nodes[handle]
            if self._distance(q, idx) < r:
                out.append(idx)
            split = self._pts[idx][axis]
            near, far = (left, right) if q[axis] < split else (right, left)
            if far != _NO_NODE and abs(q[axis] - split) < r:
                stack.append(far)
            if near != _NO_NODE:
                stack.append(near)
        return out
