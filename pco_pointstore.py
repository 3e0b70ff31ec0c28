# -*- coding: utf-8 -*-
"""Point store shared by the index and the clustering stages.

Each point is one row of nine floats (x, y, z, r, g, b, nx, ny, nz). The row
number is the point's identity for the whole run; the two flag arrays are the
only state that changes after import.
"""


from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

FIELD_NAMES = ("x", "y", "z", "red", "green", "blue", "nx", "ny", "nz")
XYZ = slice(0, 3)
RGB = slice(3, 6)
NORMAL = slice(6, 9)
NORMAL_LENGTH_TOL = 1e-3


# ------------------------------ Utilities ------------------------------


def _fmt3(a) -> str:
    return f"({float(a[0]):.6g}, {float(a[1]):.6g}, {float(a[2]):.6g})"


@dataclass
class PointStore:
    """Flat collection of points with per-point clustering flags.

    Attributes:
        data: Array of shape (N, 9) with position, color and normal.
        is_centroid: Boolean array, True for current cluster representatives.
        is_marked: Boolean array, True once a point has joined a cluster.
    """

    data: np.ndarray
    is_centroid: np.ndarray = field(default=None)
    is_marked: np.ndarray = field(default=None)

    def __post_init__(self) -> None:
        data = np.asarray(self.data, dtype=np.float64)
        if data.ndim != 2 or data.shape[1] != len(FIELD_NAMES):
            if data.size == 0:
                data = np.zeros((0, len(FIELD_NAMES)), dtype=np.float64)
            else:
                raise ValueError(
                    f"point data must have shape (N, {len(FIELD_NAMES)}), "
                    f"got {data.shape}"
                )
        self.data = data
        n = data.shape[0]
        if self.is_centroid is None:
            self.is_centroid = np.zeros(n, dtype=bool)
        if self.is_marked is None:
            self.is_marked = np.zeros(n, dtype=bool)

    @classmethod
    def from_arrays(
        cls,
        xyz: np.ndarray,
        rgb: Optional[np.ndarray] = None,
        normals: Optional[np.ndarray] = None,
    ) -> "PointStore":
        """Assemble a store from separate position, color and normal arrays.

        Args:
            xyz: Array of shape (N, 3) with point coordinates.
            rgb: Optional (N, 3) colors; white when omitted.
            normals: Optional (N, 3) unit normals; +Z when omitted.

        Returns:
            New point store with cleared flags.

        Raises:
            ValueError: If the arrays have mismatched lengths.
        """
        xyz = np.asarray(xyz, dtype=np.float64).reshape(-1, 3)
        n = xyz.shape[0]
        if rgb is None:
            rgb = np.full((n, 3), 255.0)
        if normals is None:
            normals = np.tile(np.array([0.0, 0.0, 1.0]), (n, 1))
        rgb = np.asarray(rgb, dtype=np.float64).reshape(-1, 3)
        normals = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
        if rgb.shape[0] != n or normals.shape[0] != n:
            raise ValueError("xyz, rgb and normals must have the same number of rows")
        return cls(np.concatenate([xyz, rgb, normals], axis=1))

    def __len__(self) -> int:
        return int(self.data.shape[0])

    @property
    def xyz(self) -> np.ndarray:
        return self.data[:, XYZ]

    @property
    def rgb(self) -> np.ndarray:
        return self.data[:, RGB]

    @property
    def normals(self) -> np.ndarray:
        return self.data[:, NORMAL]

    def reset_flags(self) -> None:
        self.is_centroid[:] = False
        self.is_marked[:] = False

    def centroid_rows(self, clusters: Sequence[Sequence[int]]) -> np.ndarray:
        """Return the full records of each cluster's centroid (member 0)."""
        idx = np.asarray([c[0] for c in clusters if len(c) > 0], dtype=np.int64)
        return self.data[idx]


@dataclass
class PointCloudStats:
    """Summary of a loaded cloud used to sanity check it and size DT.

    Attributes:
        count: Number of points in the cloud.
        xyz_min: Minimum coordinates along each axis.
        xyz_max: Maximum coordinates along each axis.
        spacing: Average edge of the cell one point occupies inside the
            bounding box, flat axes ignored (0 for an empty or single-point
            cloud).
        non_unit_normals: Points whose normal length is off by more than
            ``NORMAL_LENGTH_TOL``; normal deviation assumes unit normals.
    """

    count: int
    xyz_min: np.ndarray
    xyz_max: np.ndarray
    spacing: float
    non_unit_normals: int

    @property
    def suggested_interval(self) -> float:
        """Space interval reaching the nearest lattice neighbours (2x spacing)."""
        return 2.0 * self.spacing


def compute_point_cloud_stats(store: PointStore) -> PointCloudStats:
    """Compute bounds, average spacing and normal sanity for a store.

    Flat axes (extent 0, e.g. a planar scan) are dropped from the spacing
    estimate so a 2-D patch still gets a usable hint.
    """
    n = len(store)
    if n == 0:
        zeros = np.zeros(3, dtype=np.float64)
        return PointCloudStats(0, zeros, zeros, 0.0, 0)

    xyz = store.xyz
    xyz_min = xyz.min(axis=0)
    xyz_max = xyz.max(axis=0)
    extent = xyz_max - xyz_min
    live = extent[extent > 1e-9]
    spacing = float(np.prod(live) / n) ** (1.0 / live.size) if live.size else 0.0

    lengths = np.linalg.norm(store.normals, axis=1)
    non_unit = int(np.count_nonzero(np.abs(lengths - 1.0) > NORMAL_LENGTH_TOL))
    return PointCloudStats(n, xyz_min, xyz_max, spacing, non_unit)


def print_point_cloud_stats(
    stats: PointCloudStats,
    include_interval_hint: bool = True,
) -> None:
    """Display point cloud statistics.

    Args:
        stats: Computed statistics for the point cloud.
        include_interval_hint: Whether to suggest a space interval.
    """
    print(f"input_points={stats.count:,}")
    print(f"[bounds] min={_fmt3(stats.xyz_min)}  max={_fmt3(stats.xyz_max)}")
    if stats.non_unit_normals:
        print(
            f"[warn] {stats.non_unit_normals:,} normals are not unit length; "
            "normal deviation assumes unit normals"
        )
    if include_interval_hint and stats.spacing > 0.0:
        print(
            f"[hint] spacing~{stats.spacing:.6g}  "
            f"space-interval~{stats.suggested_interval:.6g}"
        )
