"""Tests for radius clustering and normal-driven subdivision."""

from __future__ import annotations

import math

import numpy as np
import pytest

from pco_clustering import (
    initialize_clusters,
    normal_deviation,
    select_split_pair,
    split_cluster,
    subdivide_cluster,
    subdivide_clusters,
)
from pco_kdtree import KDTree

from conftest import make_random_store, make_store


def _tilted_normal(deviation: float) -> list:
    """Unit normal whose deviation from +Z equals ``deviation``."""
    cos_t = 1.0 - deviation * deviation
    return [math.sqrt(1.0 - cos_t * cos_t), 0.0, cos_t]


def _max_pair_deviation(store, cluster) -> float:
    best = 0.0
    for a in range(len(cluster)):
        for b in range(a + 1, len(cluster)):
            best = max(
                best,
                normal_deviation(store.data[cluster[a]], store.data[cluster[b]]),
            )
    return best


@pytest.fixture
def four_point_store():
    up = [0.0, 0.0, 1.0]
    tilted = _tilted_normal(0.9)
    return make_store(
        [[0.0, 0.0, 0.0], [0.1, 0.0, 0.0], [0.5, 0.0, 0.0], [0.6, 0.0, 0.0]],
        normals=[up, up, tilted, tilted],
    )


class TestInitializeClusters:

    def test_close_pair_shares_a_cluster(self):
        store = make_store([[0.0, 0.0, 0.0], [0.5, 0.0, 0.0]])
        clusters = initialize_clusters(store, KDTree(store.data), 1.0)
        assert clusters == [[0, 1]]

    def test_distant_pair_gets_two_clusters(self):
        store = make_store([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
        clusters = initialize_clusters(store, KDTree(store.data), 1.0)
        assert clusters == [[0], [1]]
        assert store.is_centroid.tolist() == [True, True]

    def test_exactly_at_interval_is_excluded(self):
        store = make_store([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
        clusters = initialize_clusters(store, KDTree(store.data), 1.0)
        assert clusters == [[0], [1]]

    def test_partition_invariant(self, random_store, random_tree):
        clusters = initialize_clusters(random_store, random_tree, 1.5)
        members = [idx for c in clusters for idx in c]
        assert sorted(members) == list(range(len(random_store)))
        assert random_store.is_marked.all()
        for c in clusters:
            assert random_store.is_centroid[c[0]]
            assert not random_store.is_centroid[c[1:]].any()
        assert int(random_store.is_centroid.sum()) == len(clusters)

    def test_centroids_discovered_in_index_order(self, random_store, random_tree):
        clusters = initialize_clusters(random_store, random_tree, 2.0)
        heads = [c[0] for c in clusters]
        assert heads == sorted(heads)
        assert heads[0] == 0

    def test_members_within_interval_of_centroid(self, random_store, random_tree):
        dt = 1.2
        clusters = initialize_clusters(random_store, random_tree, dt)
        xyz = random_store.xyz
        for c in clusters:
            d = np.linalg.norm(xyz[c] - xyz[c[0]], axis=1)
            assert np.all(d < dt)

    def test_empty_store(self):
        store = make_store(np.zeros((0, 3)))
        assert initialize_clusters(store, KDTree(store.data), 1.0) == []


class TestNormalDeviation:

    def test_identical_normals(self):
        p = [0, 0, 0, 0, 0, 0, 0.0, 1.0, 0.0]
        assert normal_deviation(p, p) == 0.0

    def test_perpendicular_normals(self):
        p = [0, 0, 0, 0, 0, 0, 1.0, 0.0, 0.0]
        q = [0, 0, 0, 0, 0, 0, 0.0, 1.0, 0.0]
        assert normal_deviation(p, q) == pytest.approx(1.0)

    def test_opposite_normals(self):
        p = [0, 0, 0, 0, 0, 0, 0.0, 0.0, 1.0]
        q = [0, 0, 0, 0, 0, 0, 0.0, 0.0, -1.0]
        assert normal_deviation(p, q) == pytest.approx(math.sqrt(2.0))

    def test_tilted_helper(self):
        p = [0, 0, 0, 0, 0, 0, 0.0, 0.0, 1.0]
        q = [0, 0, 0, 0, 0, 0] + _tilted_normal(0.9)
        assert normal_deviation(p, q) == pytest.approx(0.9)


class TestSelectSplitPair:

    def test_single_member(self, four_point_store):
        assert select_split_pair(four_point_store, [0], 0.5) is None

    def test_threshold_of_one_disables_splitting(self, four_point_store):
        assert select_split_pair(four_point_store, [0, 1, 2, 3], 1.0) is None

    @pytest.mark.parametrize("nt", [0.01, 0.5, 0.99])
    def test_identical_normals_never_split(self, nt):
        store = make_store([[float(i), 0.0, 0.0] for i in range(6)])
        assert select_split_pair(store, list(range(6)), nt) is None

    def test_returns_positions_of_most_divergent_pair(self, four_point_store):
        assert select_split_pair(four_point_store, [0, 1, 2, 3], 0.5) == (0, 2)

    def test_positions_not_point_indices(self, four_point_store):
        assert select_split_pair(four_point_store, [3, 1], 0.5) == (0, 1)

    def test_below_threshold(self, four_point_store):
        assert select_split_pair(four_point_store, [0, 1, 2, 3], 0.95) is None

    def test_deviation_equal_to_threshold_splits(self):
        store = make_store(
            [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]],
            normals=[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]],
        )
        assert select_split_pair(store, [0, 1], 1.0 - 1e-6) == (0, 1)


class TestSplitCluster:

    def test_seeds_lead_children(self, four_point_store):
        a, b = split_cluster(four_point_store, [0, 1, 2, 3], (0, 2))
        assert a == [0, 1]
        assert b == [2, 3]

    def test_tie_goes_to_first_seed(self):
        store = make_store([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
        a, b = split_cluster(store, [1, 0, 2], (1, 2))
        assert a == [0, 1]
        assert b == [2]

    def test_two_member_cluster(self, four_point_store):
        assert split_cluster(four_point_store, [1, 3], (0, 1)) == ([1], [3])

    def test_conserves_members(self, random_store):
        cluster = list(range(40))
        a, b = split_cluster(random_store, cluster, (5, 17))
        assert a[0] == 5 and b[0] == 17
        assert sorted(a + b) == cluster


class TestSubdivide:

    def test_four_point_scenario(self, four_point_store):
        store = four_point_store
        store.is_centroid[0] = True
        final = subdivide_cluster(store, [0, 1, 2, 3], 0.5)
        assert final == [[0, 1], [2, 3]]
        assert store.is_centroid.tolist() == [True, False, True, False]

    def test_leaf_is_copied_unchanged(self, four_point_store):
        final = subdivide_cluster(four_point_store, [2, 3], 0.5)
        assert final == [[2, 3]]

    def test_old_centroid_flag_cleared(self, four_point_store):
        store = four_point_store
        store.is_centroid[1] = True
        final = subdivide_cluster(store, [1, 0, 3, 2], 0.5)
        heads = sorted(c[0] for c in final)
        assert store.is_centroid[heads].all()
        assert int(store.is_centroid.sum()) == len(final)

    def test_splitting_invariant_and_size_conservation(self, random_store, random_tree):
        nt = 0.5
        initial = initialize_clusters(random_store, random_tree, 2.5)
        final = subdivide_clusters(random_store, initial, nt)
        for c in final:
            assert len(c) <= 1 or _max_pair_deviation(random_store, c) < nt
        assert sum(len(c) for c in final) == sum(len(c) for c in initial)
        assert sorted(i for c in final for i in c) == list(range(len(random_store)))

    def test_centroid_flags_match_final_heads(self, random_store, random_tree):
        initial = initialize_clusters(random_store, random_tree, 2.5)
        final = subdivide_clusters(random_store, initial, 0.4)
        expected = np.zeros(len(random_store), dtype=bool)
        expected[[c[0] for c in final]] = True
        assert np.array_equal(random_store.is_centroid, expected)

    def test_zero_threshold_splits_to_singletons(self):
        store = make_random_store(n=12, seed=3)
        final = subdivide_cluster(store, list(range(12)), 0.0)
        assert len(final) == 12
        assert all(len(c) == 1 for c in final)

    def test_large_cluster_does_not_recurse(self):
        # alternating normals force a split chain as deep as the cluster,
        # deeper than the default recursion limit
        n = 1100
        xyz = np.stack([np.arange(float(n)), np.zeros(n), np.zeros(n)], axis=1)
        normals = np.tile([[0.0, 0.0, 1.0], [1.0, 0.0, 0.0]], (n // 2, 1))
        store = make_store(xyz, normals=normals)
        final = subdivide_cluster(store, list(range(n)), 0.5)
        assert sum(len(c) for c in final) == n
        for c in final:
            assert len({tuple(store.normals[i]) for i in c}) == 1

    def test_no_split_keeps_order(self):
        store = make_random_store(n=20, seed=4)
        initial = [[0, 3, 5], [1], [2, 4]]
        assert subdivide_clusters(store, initial, 1.0) == initial
