"""
Pool volume calculation.

Dimensions are in meters; volumes are reported in liters, rounded to the
nearest 10 liters since nobody doses chlorine by the single liter.
"""

import math
from typing import Optional

from .models import Pool, PoolShape, VolumeMode


CIRCULAR_FACTOR = 0.785  # pi / 4
OVAL_FACTOR = 0.89
LITERS_PER_CUBIC_METER = 1000


def calculate_volume(
    shape: PoolShape,
    length: Optional[float],
    width: Optional[float],
    average_depth: Optional[float],
    mode: VolumeMode = VolumeMode.AUTO,
) -> Optional[int]:
    """
    Compute pool volume in liters from its geometry.

    Returns None when the volume is manual or the geometry is incomplete.
    """
    if mode == VolumeMode.MANUAL:
        return None
    if not _positive(average_depth):
        return None

    if shape == PoolShape.QUADRILATERAL:
        if not (_positive(length) and _positive(width)):
            return None
        cubic_meters = length * width * average_depth
    elif shape == PoolShape.CIRCULAR:
        if not _positive(length):
            return None
        cubic_meters = length * length * average_depth * CIRCULAR_FACTOR
    elif shape == PoolShape.OVAL:
        if not (_positive(length) and _positive(width)):
            return None
        cubic_meters = length * width * average_depth * OVAL_FACTOR
    else:
        return None

    liters = _round_to_ten(cubic_meters * LITERS_PER_CUBIC_METER)
    if liters <= 0:
        return None
    return liters


def apply_volume(pool: Pool) -> Pool:
    """
    Refresh the stored volume of an auto-mode pool.

    Manual pools are returned untouched. An auto pool with incomplete
    geometry ends up with no volume rather than a stale one.
    """
    if pool.volume_mode == VolumeMode.MANUAL:
        return pool

    pool.volume = calculate_volume(
        pool.shape,
        pool.length,
        pool.width,
        pool.average_depth,
        pool.volume_mode,
    )
    return pool


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0


def _round_to_ten(liters: float) -> int:
    # Half away from zero; round() would use banker's rounding
    return int(math.floor(liters / 10 + 0.5)) * 10
