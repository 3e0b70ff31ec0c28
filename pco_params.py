# -*- coding: utf-8 -*-
"""Run parameters and stage results for the point cloud optimizer.

Stages that can fail for reasons outside the program's control (reading or
writing a PLY file, user supplied thresholds) report the failure through a
:class:`StageResult` instead of raising, so the driver decides whether to
abort or carry on with a default.
"""


from __future__ import annotations
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

DEFAULT_SPACE_INTERVAL = 1.0
DEFAULT_NORMAL_THRESHOLD = 0.5


class ErrorKind(Enum):
    """Failure categories reported by pipeline stages."""

    IMPORT_FAILURE = "import-failure"
    EXPORT_FAILURE = "export-failure"
    INVALID_PARAMETER = "invalid-parameter"


@dataclass
class StageResult:
    """Outcome of a pipeline stage.

    Attributes:
        value: Payload produced by the stage (None on failure).
        error: Failure category, or None when the stage succeeded.
        message: Human readable detail for logs.
    """

    value: Any = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


def _as_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(out):
        return None
    return out


def validate_space_interval(value) -> Tuple[float, Optional[ErrorKind]]:
    """Validate the space interval (DT).

    Args:
        value: Raw value from the command line (number, string or None).

    Returns:
        Tuple of the usable interval and ``ErrorKind.INVALID_PARAMETER`` when
        the default had to be substituted, otherwise None.
    """
    dt = _as_float(value)
    if dt is None or dt <= 0.0:
        print(
            f"[warn] invalid space interval {value!r} (must be > 0); "
            f"using default {DEFAULT_SPACE_INTERVAL:.6g}"
        )
        return DEFAULT_SPACE_INTERVAL, ErrorKind.INVALID_PARAMETER
    return dt, None


def validate_normal_threshold(value) -> Tuple[float, Optional[ErrorKind]]:
    """Validate the normal vector deviation threshold (NT).

    Args:
        value: Raw value from the command line (number, string or None).

    Returns:
        Tuple of the usable threshold and ``ErrorKind.INVALID_PARAMETER`` when
        the default had to be substituted, otherwise None.
    """
    nt = _as_float(value)
    if nt is None or nt < 0.0 or nt > 1.0:
        print(
            f"[warn] invalid normal threshold {value!r} (must be in [0, 1]); "
            f"using default {DEFAULT_NORMAL_THRESHOLD:.6g}"
        )
        return DEFAULT_NORMAL_THRESHOLD, ErrorKind.INVALID_PARAMETER
    return nt, None
