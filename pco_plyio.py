# -*- coding: utf-8 -*-
"""Load and save nine-field PLY point clouds.

Input may be ASCII or binary PLY with a vertex element carrying x, y, z, a
normal triple and optionally a color triple. Output is always ASCII PLY with
the vertex properties x, y, z, red, green, blue, nx, ny, nz in that order.

Both entry points return a :class:`pco_params.StageResult` instead of raising
on I/O or format problems.
"""


from __future__ import annotations
import os
from typing import Optional, Tuple

import numpy as np
from plyfile import PlyData, PlyElement, PlyParseError

from pco_params import ErrorKind, StageResult
from pco_pointstore import PointStore

PLY_EXTENSION = ".ply"
DEFAULT_FILE_NAME = "PointCloud" + PLY_EXTENSION
OUTPUT_SUFFIX = "_optimized"

VERTEX_DTYPE = [
    ("x", "f4"),
    ("y", "f4"),
    ("z", "f4"),
    ("red", "u1"),
    ("green", "u1"),
    ("blue", "u1"),
    ("nx", "f4"),
    ("ny", "f4"),
    ("nz", "f4"),
]

# Candidate color field triplets
COLOR_FIELDS = (
    ("red", "green", "blue"),
    ("r", "g", "b"),
    ("diffuse_red", "diffuse_green", "diffuse_blue"),
)
NORMAL_FIELDS = (
    ("nx", "ny", "nz"),
    ("normal_x", "normal_y", "normal_z"),
)


# ------------------------------ File names ------------------------------


def normalize_ply_name(name: Optional[str]) -> str:
    """Return a PLY file name, appending the extension when it is missing.

    Args:
        name: User supplied file name; empty or None selects the default.
    """
    value = (name or "").strip()
    if not value:
        return DEFAULT_FILE_NAME
    if not value.lower().endswith(PLY_EXTENSION):
        value += PLY_EXTENSION
    return value


def default_output_name(input_path: str) -> str:
    """Derive ``<stem>_optimized.ply`` next to the input file."""
    stem, _ = os.path.splitext(input_path)
    return stem + OUTPUT_SUFFIX + PLY_EXTENSION


# ------------------------------ Load ------------------------------


def _find_vertex_data(ply: PlyData):
    """Return vertex data containing XYZ fields from a PLY structure.

    Args:
        ply: Parsed PLY data.

    Returns:
        Structured array with x, y, z columns, or None if unavailable.
    """
    for el in getattr(ply, "elements", []):
        if el.name == "vertex":
            return el.data
    for el in getattr(ply, "elements", []):
        data = getattr(el, "data", None)
        names = (
            getattr(data.dtype, "names", None) if data is not None else None
        )
        if names and all(k in names for k in ("x", "y", "z")):
            return data
    return None


def _pick_triplet(names, candidates) -> Optional[Tuple[str, str, str]]:
    for a, b, c in candidates:
        if a in names and b in names and c in names:
            return a, b, c
    return None


def _extract_points_from_structured(v) -> np.ndarray:
    """Extract an (N, 9) point array from a structured NumPy array.

    Args:
        v: Structured array produced by plyfile.

    Returns:
        Float64 array with position, color (0-255) and normal columns.

    Raises:
        ValueError: If the array lacks position or normal fields.
    """
    names = v.dtype.names or ()
    if not all(k in names for k in ("x", "y", "z")):
        raise ValueError("Could not find x, y, z fields")
    normal_fields = _pick_triplet(names, NORMAL_FIELDS)
    if normal_fields is None:
        raise ValueError("Could not find nx, ny, nz fields")

    n = len(v)
    out = np.empty((n, 9), dtype=np.float64)
    for col, key in enumerate(("x", "y", "z")):
        out[:, col] = v[key].astype(np.float64)

    color_fields = _pick_triplet(names, COLOR_FIELDS)
    if color_fields is None:
        out[:, 3:6] = 255.0
    else:
        for col, key in enumerate(color_fields, start=3):
            channel = v[key]
            if channel.dtype.kind == "f":
                channel = np.round(np.clip(channel, 0.0, 1.0) * 255.0)
            out[:, col] = channel.astype(np.float64)

    for col, key in enumerate(normal_fields, start=6):
        out[:, col] = v[key].astype(np.float64)
    return out


def load_point_cloud(path: str) -> StageResult:
    """Load a PLY file into a point store.

    Args:
        path: Path to the PLY file.

    Returns:
        Result holding a :class:`PointStore`, or ``ErrorKind.IMPORT_FAILURE``
        when the file is missing, unreadable or lacks the required fields.
    """
    try:
        ply = PlyData.read(path)
        vdata = _find_vertex_data(ply)
        if vdata is None:
            raise ValueError("Could not find a vertex element with x, y, z")
        data = _extract_points_from_structured(vdata)
    except (OSError, ValueError, PlyParseError) as exc:
        return StageResult(
            error=ErrorKind.IMPORT_FAILURE,
            message=f"File {path} was not successfully imported or parsed: {exc}",
        )
    return StageResult(value=PointStore(data))


# ------------------------------ Save ------------------------------


def save_point_cloud_ascii(path: str, data: np.ndarray) -> StageResult:
    """Write nine-field point records to an ASCII PLY file.

    Colors are rounded and clipped to 0-255.

    Args:
        path: Destination path for the PLY file.
        data: Array of shape (N, 9).

    Returns:
        Result holding the written path, or ``ErrorKind.EXPORT_FAILURE``
        when the destination cannot be written.

    Raises:
        ValueError: If data does not have nine columns.
    """
    data = np.asarray(data, dtype=np.float64)
    if data.size == 0:
        data = data.reshape(0, 9)
    if data.ndim != 2 or data.shape[1] != 9:
        raise ValueError(f"data must have shape (N, 9), got {data.shape}")

    arr = np.empty(data.shape[0], dtype=VERTEX_DTYPE)
    for col, (key, kind) in enumerate(VERTEX_DTYPE):
        values = data[:, col]
        if kind == "u1":
            values = np.clip(np.round(values), 0, 255)
        arr[key] = values.astype(kind, copy=False)

    el = PlyElement.describe(arr, "vertex")
    try:
        PlyData([el], text=True).write(path)
    except OSError as exc:
        return StageResult(
            error=ErrorKind.EXPORT_FAILURE,
            message=f"Could not write {path}: {exc}",
        )
    return StageResult(value=path)
