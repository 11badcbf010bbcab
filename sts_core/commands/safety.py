# sts_core/commands/safety.py
# Last bounds check on a validated parameter record, after the spoken-word overrides.
from typing import Tuple

from .schema import CreationParams, ModifyParams, MoveParams, RotateParams, ScaleParams


def is_allowed(params) -> Tuple[bool, str]:
    """Final invariant check on a parameter record before it mutates the scene."""
    if isinstance(params, CreationParams):
        if not 0.1 <= params.size <= 0.15:
            return False, f"size {params.size} outside [0.1, 0.15]"
        if not 1 <= params.count <= 5:
            return False, f"count {params.count} outside [1, 5]"
        if not 0.0 <= params.roughness <= 1.0:
            return False, f"roughness {params.roughness} outside [0, 1]"

    elif isinstance(params, MoveParams):
        if params.axis not in ("x", "y", "z"):
            return False, f"unknown axis {params.axis}"
        if not 0.0 <= params.distance <= 2.0:
            return False, f"distance {params.distance} outside [0, 2]"

    elif isinstance(params, RotateParams):
        if not 0.0 <= params.degrees <= 360.0:
            return False, f"degrees {params.degrees} outside [0, 360]"

    elif isinstance(params, ScaleParams):
        if not 0.1 <= params.factor <= 10.0:
            return False, f"factor {params.factor} outside [0.1, 10]"

    elif isinstance(params, ModifyParams):
        if params.roughness is not None and not 0.0 <= params.roughness <= 1.0:
            return False, f"roughness {params.roughness} outside [0, 1]"

    return True, ""
