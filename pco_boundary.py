# -*- coding: utf-8 -*-
"""Boundary detection for clusters on the edge of the sampled surface.

A cluster deep inside a densely sampled area is surrounded by neighbouring
centroids; near a hole or the edge of the scan it is not. Not part of the
default pipeline.
"""


from __future__ import annotations
import math
from typing import List, Sequence

from pco_kdtree import KDTree
from pco_pointstore import PointStore

# six face neighbours on a cubic lattice plus the cluster's own centroid
BOUNDARY_CENTROID_LIMIT = 7


def count_nearby_centroids(
    store: PointStore, tree: KDTree, cluster: Sequence[int], space_interval: float
) -> int:
    """Count centroids within ``sqrt(3) * space_interval`` of a cluster's centroid.

    The cluster's own centroid is included in the count.
    """
    centre = store.xyz[cluster[0]]
    found = tree.radius(centre, math.sqrt(3.0) * space_interval)
    flags = store.is_centroid
    return sum(1 for idx in found if flags[idx])


def is_boundary_cluster(
    store: PointStore, tree: KDTree, cluster: Sequence[int], space_interval: float
) -> bool:
    """Return True when fewer than seven centroids surround the cluster."""
    if len(cluster) == 0:
        return False
    count = count_nearby_centroids(store, tree, cluster, space_interval)
    return count < BOUNDARY_CENTROID_LIMIT


def classify_boundary_clusters(
    store: PointStore,
    tree: KDTree,
    clusters: Sequence[Sequence[int]],
    space_interval: float,
) -> List[bool]:
    """Classify every cluster; the result is aligned with ``clusters``."""
    return [
        is_boundary_cluster(store, tree, cluster, space_interval)
        for cluster in clusters
    ]
