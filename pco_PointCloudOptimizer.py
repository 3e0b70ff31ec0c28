#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Simplify a PLY point cloud with normals to one point per cluster.

Points are grouped around centroids within a space interval, clusters whose
normals disagree are split, and the surviving centroids are written as an
ASCII PLY (x, y, z, red, green, blue, nx, ny, nz).

Dependencies: numpy, plyfile
    pip install numpy plyfile
"""


from __future__ import annotations
import argparse
import os
from typing import List, Optional

from pco_boundary import classify_boundary_clusters
from pco_params import DEFAULT_NORMAL_THRESHOLD, DEFAULT_SPACE_INTERVAL
from pco_pipeline import PipelineContext, run_pipeline
from pco_plyio import (
    DEFAULT_FILE_NAME,
    default_output_name,
    load_point_cloud,
    normalize_ply_name,
    save_point_cloud_ascii,
)
from pco_pointstore import compute_point_cloud_stats, print_point_cloud_stats


def _resolve(path: str) -> str:
    path = os.path.expanduser(path)
    if not os.path.isabs(path):
        path = os.path.abspath(path)
    return path


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the pco_PointCloudOptimizer CLI.

    Args:
        argv: Optional argument vector to parse instead of sys.argv.

    Returns:
        Process exit code.
    """
    ap = argparse.ArgumentParser(
        prog="pco_PointCloudOptimizer",
        description=(
            "Point cloud optimizer (radius clustering with normal-based "
            "cluster splitting, one centroid kept per cluster)"
        ),
    )
    ap.add_argument(
        "-i",
        "--in",
        dest="input",
        default=None,
        help=(
            f"Input PLY file path (default: {DEFAULT_FILE_NAME}). "
            "'.ply' is appended when missing."
        ),
    )
    ap.add_argument(
        "-o",
        "--out",
        dest="output",
        default=None,
        help=(
            "Output PLY (ASCII). "
            "Defaults to <input>_optimized.ply next to the input."
        ),
    )
    ap.add_argument(
        "-d",
        "--space-interval",
        dest="space_interval",
        default=None,
        help=(
            "Cluster radius DT (> 0). Invalid or missing values fall back to "
            f"{DEFAULT_SPACE_INTERVAL:g}."
        ),
    )
    ap.add_argument(
        "-n",
        "--normal-threshold",
        dest="normal_threshold",
        default=None,
        help=(
            "Normal vector deviation threshold NT in [0, 1]; 1 disables "
            "splitting. Invalid or missing values fall back to "
            f"{DEFAULT_NORMAL_THRESHOLD:g}."
        ),
    )
    ap.add_argument(
        "--stats-only",
        action="store_true",
        help="Only display point cloud statistics; nothing is written.",
    )
    ap.add_argument(
        "--report-boundary",
        action="store_true",
        help=(
            "After clustering, count clusters with fewer than 7 centroids "
            "within sqrt(3)*DT (boundary clusters)."
        ),
    )

    args = ap.parse_args(argv)

    in_path = _resolve(normalize_ply_name(args.input))

    # 1) Load
    print(f"[load] importing and parsing {in_path}")
    loaded = load_point_cloud(in_path)
    if not loaded.ok:
        print(f"[error] {loaded.message}")
        return 1
    store = loaded.value
    print(f"[load] base: {in_path}  points={len(store):,}")

    stats = compute_point_cloud_stats(store)
    print_point_cloud_stats(stats, include_interval_hint=args.space_interval is None)
    if args.stats_only:
        print("[info] --stats-only; statistics only.")
        return 0

    # 2) Cluster
    ctx = PipelineContext.create(store, args.space_interval, args.normal_threshold)
    run_pipeline(ctx)

    if args.report_boundary:
        flags = classify_boundary_clusters(
            ctx.store, ctx.tree, ctx.final_clusters, ctx.space_interval
        )
        print(
            f"[boundary] {sum(flags):,} of {len(flags):,} clusters "
            "lie on a boundary"
        )

    # 3) Save
    if args.output:
        out_path = _resolve(normalize_ply_name(args.output))
    else:
        out_path = default_output_name(in_path)
    saved = save_point_cloud_ascii(out_path, ctx.centroid_points())
    if not saved.ok:
        print(f"[error] {saved.message}")
        return 1
    print(
        f"[save] {out_path}  points={len(ctx.final_clusters):,}  (ascii)"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
