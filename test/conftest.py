"""Shared fixtures and synthetic cloud factories for optimizer tests."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pytest

from pco_kdtree import KDTree
from pco_pointstore import PointStore


# ---------------------------------------------------------------------------
# Synthetic data factories
# ---------------------------------------------------------------------------

def make_store(
    xyz: Sequence[Sequence[float]],
    normals: Optional[Sequence[Sequence[float]]] = None,
    rgb: Optional[Sequence[Sequence[float]]] = None,
) -> PointStore:
    """Point store from explicit positions (normals default to +Z)."""
    return PointStore.from_arrays(
        np.asarray(xyz, dtype=np.float64),
        rgb=None if rgb is None else np.asarray(rgb, dtype=np.float64),
        normals=None if normals is None else np.asarray(normals, dtype=np.float64),
    )


def random_unit_normals(rng: np.random.Generator, n: int) -> np.ndarray:
    v = rng.normal(size=(n, 3))
    return v / np.linalg.norm(v, axis=1, keepdims=True)


def make_random_store(n: int = 300, seed: int = 0, scale: float = 10.0) -> PointStore:
    """Uniform random cloud in a cube with random unit normals."""
    rng = np.random.default_rng(seed)
    xyz = rng.uniform(0.0, scale, size=(n, 3))
    rgb = rng.integers(0, 256, size=(n, 3)).astype(np.float64)
    return PointStore.from_arrays(xyz, rgb, random_unit_normals(rng, n))


def brute_distances(xyz: np.ndarray, query: Sequence[float]) -> np.ndarray:
    q = np.asarray(query, dtype=np.float64)[:3]
    diff = xyz - q
    return np.sqrt((diff * diff).sum(axis=1))


@pytest.fixture
def random_store() -> PointStore:
    return make_random_store()


@pytest.fixture
def random_tree(random_store) -> KDTree:
    return KDTree(random_store.data)
