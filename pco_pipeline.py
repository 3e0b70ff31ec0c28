# -*- coding: utf-8 -*-
"""Pipeline context and driver for point cloud simplification.

The context owns everything one run needs; each stage reads and writes only
its own fields:

    store            written by import; flags by initialize and subdivide
    tree             written by build
    initial_clusters written by initialize
    final_clusters   written by subdivide
"""


from __future__ import annotations
import time
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from pco_clustering import Cluster, initialize_clusters, subdivide_clusters
from pco_kdtree import KDTree
from pco_params import (
    ErrorKind,
    validate_normal_threshold,
    validate_space_interval,
)
from pco_pointstore import PointStore


@dataclass
class PipelineContext:
    """State of a single simplification run.

    Attributes:
        store: Points being simplified.
        space_interval: Cluster radius (DT), validated.
        normal_threshold: Normal deviation split threshold (NT), validated.
        tree: Spatial index over ``store``; None until built.
        initial_clusters: Output of the radius sweep.
        final_clusters: Leaves of the subdivision.
        parameter_errors: Parameters that fell back to their defaults.
    """

    store: PointStore
    space_interval: float
    normal_threshold: float
    tree: Optional[KDTree] = None
    initial_clusters: List[Cluster] = field(default_factory=list)
    final_clusters: List[Cluster] = field(default_factory=list)
    parameter_errors: List[str] = field(default_factory=list)

    @classmethod
    def create(
        cls, store: PointStore, space_interval=None, normal_threshold=None
    ) -> "PipelineContext":
        """Build a context, substituting defaults for invalid parameters."""
        dt, dt_err = validate_space_interval(space_interval)
        nt, nt_err = validate_normal_threshold(normal_threshold)
        errors = []
        if dt_err is ErrorKind.INVALID_PARAMETER:
            errors.append("space_interval")
        if nt_err is ErrorKind.INVALID_PARAMETER:
            errors.append("normal_threshold")
        return cls(
            store=store,
            space_interval=dt,
            normal_threshold=nt,
            parameter_errors=errors,
        )

    def centroid_points(self) -> np.ndarray:
        """Records of every final cluster's centroid, in cluster order."""
        return self.store.centroid_rows(self.final_clusters)


def build_index(ctx: PipelineContext) -> KDTree:
    print(
        "[tree] building k-d tree over "
        f"{len(ctx.store):,} points (may take a while for large clouds)"
    )
    t0 = time.perf_counter()
    ctx.tree = KDTree(ctx.store.data)
    print(f"[tree] done in {time.perf_counter() - t0:.2f}s")
    return ctx.tree


def run_initialization(ctx: PipelineContext) -> List[Cluster]:
    assert ctx.tree is not None, "build_index() must run first"
    print(f"[cluster] space-interval={ctx.space_interval:.6g}")
    t0 = time.perf_counter()
    ctx.initial_clusters = initialize_clusters(
        ctx.store, ctx.tree, ctx.space_interval
    )
    print(
        f"[cluster] {len(ctx.initial_clusters):,} initial clusters "
        f"in {time.perf_counter() - t0:.2f}s"
    )
    return ctx.initial_clusters


def run_subdivision(ctx: PipelineContext) -> List[Cluster]:
    print(f"[subdivide] normal-threshold={ctx.normal_threshold:.6g}")
    t0 = time.perf_counter()
    ctx.final_clusters = subdivide_clusters(
        ctx.store, ctx.initial_clusters, ctx.normal_threshold
    )
    split = len(ctx.final_clusters) - len(ctx.initial_clusters)
    print(
        f"[subdivide] {len(ctx.final_clusters):,} final clusters "
        f"(+{split:,} from splits) in {time.perf_counter() - t0:.2f}s"
    )
    return ctx.final_clusters


def run_pipeline(ctx: PipelineContext) -> List[Cluster]:
    """Build the index, cluster, and subdivide; returns the final clusters."""
    ctx.store.reset_flags()
    build_index(ctx)
    run_initialization(ctx)
    run_subdivision(ctx)
    n = len(ctx.store)
    kept = len(ctx.final_clusters)
    ratio = (100.0 * kept / n) if n else 0.0
    print(f"[result] {n:,} -> {kept:,} points ({ratio:.3g}%)")
    return ctx.final_clusters
