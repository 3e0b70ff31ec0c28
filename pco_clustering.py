# -*- coding: utf-8 -*-
"""Radius clustering and normal-driven subdivision.

A cluster is a list of point indices whose first entry is the cluster's
centroid (the point that will survive export). Clusters are produced in two
stages:

1. ``initialize_clusters`` sweeps the points in index order; every point not
   yet claimed becomes a centroid and claims the unclaimed points within the
   space interval around it.
2. ``subdivide_clusters`` splits every cluster whose members' normals
   disagree by at least the normal threshold into two, one nearest-seed pass
   per split, until no cluster needs splitting.
"""


from __future__ import annotations
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from pco_kdtree import KDTree
from pco_pointstore import NORMAL, PointStore

Cluster = List[int]

# normal thresholds within this of 1 disable splitting
NT_DISABLED_EPS = 1e-9


# ------------------------------ Initial clusters ------------------------------


def initialize_clusters(
    store: PointStore, tree: KDTree, space_interval: float
) -> List[Cluster]:
    """Partition the points into clusters with a greedy radius sweep.

    A point is marked the moment it is promoted to centroid, so it is placed
    at index 0 of its cluster and skipped when its own radius query returns
    it again at distance 0.

    Args:
        store: Point store; ``is_centroid`` and ``is_marked`` are updated.
        tree: Index built over ``store.data``.
        space_interval: Radius (DT) around each centroid.

    Returns:
        Clusters in the order their centroids were discovered.
    """
    clusters: List[Cluster] = []
    xyz = store.xyz
    marked = store.is_marked
    for i in range(len(store)):
        if marked[i]:
            continue
        store.is_centroid[i] = True
        marked[i] = True
        cluster = [i]
        for j in tree.radius(xyz[i], space_interval):
            if not marked[j]:
                marked[j] = True
                cluster.append(j)
        clusters.append(cluster)
    return clusters


# ------------------------------ Subdivision ------------------------------


def normal_deviation(p: Sequence[float], q: Sequence[float]) -> float:
    """Normalised distance between the normals of two point records.

    ``sqrt(|n_p - n_q|^2 / 2)``: 0 for equal unit normals, 1 when they are
    perpendicular, sqrt(2) when they point in opposite directions.

    Args:
        p: Nine-field point record.
        q: Nine-field point record.
    """
    a = np.asarray(p, dtype=np.float64)[NORMAL]
    b = np.asarray(q, dtype=np.float64)[NORMAL]
    diff = a - b
    return math.sqrt(float(np.dot(diff, diff)) / 2.0)


def select_split_pair(
    store: PointStore, cluster: Sequence[int], normal_threshold: float
) -> Optional[Tuple[int, int]]:
    """Pick the two members whose normals disagree the most.

    Args:
        store: Point store holding the normals.
        cluster: Point indices, centroid first.
        normal_threshold: Deviation (NT) at which a cluster must split.

    Returns:
        Positions ``(i, j)`` with ``i < j`` inside ``cluster`` when the largest
        pairwise deviation reaches the threshold, otherwise None. The first
        pair in row-major order wins among equal deviations.
    """
    m = len(cluster)
    if m <= 1 or normal_threshold >= 1.0 - NT_DISABLED_EPS:
        return None
    normals = store.normals[np.asarray(cluster, dtype=np.int64)]
    best = -1.0
    pair = None
    for i in range(m - 1):
        diff = normals[i + 1 :] - normals[i]
        dev = np.sqrt((diff * diff).sum(axis=1) / 2.0)
        j = int(np.argmax(dev))
        if dev[j] > best:
            best = float(dev[j])
            pair = (i, i + 1 + j)
    if pair is not None and best >= normal_threshold:
        return pair
    return None


def split_cluster(
    store: PointStore, cluster: Sequence[int], pair: Tuple[int, int]
) -> Tuple[Cluster, Cluster]:
    """Split a cluster around two seed members.

    Every other member joins the seed it is positionally closer to; equal
    distances go to the first seed. There is no re-centering pass.

    Args:
        store: Point store holding the positions.
        cluster: Point indices, centroid first.
        pair: Positions of the two seeds inside ``cluster``.

    Returns:
        Two clusters, each starting with its seed.
    """
    i, j = pair
    seed_a = int(cluster[i])
    seed_b = int(cluster[j])
    child_a: Cluster = [seed_a]
    child_b: Cluster = [seed_b]
    rest = [int(c) for pos, c in enumerate(cluster) if pos != i and pos != j]
    if not rest:
        return child_a, child_b

    xyz = store.xyz
    pts = xyz[rest]
    da = pts - xyz[seed_a]
    db = pts - xyz[seed_b]
    to_a = (da * da).sum(axis=1) <= (db * db).sum(axis=1)
    for idx, first in zip(rest, to_a.tolist()):
        if first:
            child_a.append(idx)
        else:
            child_b.append(idx)
    return child_a, child_b


def subdivide_cluster(
    store: PointStore,
    cluster: Sequence[int],
    normal_threshold: float,
    final: Optional[List[Cluster]] = None,
) -> List[Cluster]:
    """Split a cluster until every piece passes the normal threshold.

    Uses a work stack instead of recursion; leaves are emitted depth first
    with the first child's leaves before the second child's. Each split moves
    the centroid flag from the parent's centroid to the two seeds.

    Args:
        store: Point store; ``is_centroid`` is updated.
        cluster: Point indices, centroid first.
        normal_threshold: Deviation (NT) at which a cluster must split.
        final: Optional list the leaves are appended to.

    Returns:
        The list holding the leaf clusters.
    """
    if final is None:
        final = []
    stack: List[Cluster] = [list(cluster)]
    while stack:
        current = stack.pop()
        pair = select_split_pair(store, current, normal_threshold)
        if pair is None:
            final.append(current)
            continue
        child_a, child_b = split_cluster(store, current, pair)
        store.is_centroid[current[0]] = False
        store.is_centroid[child_a[0]] = True
        store.is_centroid[child_b[0]] = True
        stack.append(child_b)
        stack.append(child_a)
    return final


def subdivide_clusters(
    store: PointStore, clusters: Sequence[Sequence[int]], normal_threshold: float
) -> List[Cluster]:
    """Run ``subdivide_cluster`` over every initial cluster in order."""
    final: List[Cluster] = []
    for cluster in clusters:
        subdivide_cluster(store, cluster, normal_threshold, final)
    return final
