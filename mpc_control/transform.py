"""Conversion between world coordinates and the vehicle-local frame.

In the local frame the vehicle sits at the origin with its heading along +x;
+y points to the vehicle's left.
"""

from typing import Tuple

import numpy as np
import numpy.typing as npt


def world_to_vehicle(
    ptsx: npt.ArrayLike, ptsy: npt.ArrayLike, px: float, py: float, psi: float
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Express world-frame points in the vehicle's local frame.

    Each point is translated by (-px, -py) and rotated by -psi:
        local_x = dx * cos(-psi) - dy * sin(-psi)
        local_y = dx * sin(-psi) + dy * cos(-psi)

    Point order is preserved.

    Args:
        ptsx: World x-coordinates
        ptsy: World y-coordinates
        px: Vehicle world x position
        py: Vehicle world y position
        psi: Vehicle heading (radians)

    Returns:
        Tuple of (local_x, local_y) arrays
    """
    dx = np.asarray(ptsx, dtype=float) - px
    dy = np.asarray(ptsy, dtype=float) - py

    cos_psi = np.cos(-psi)
    sin_psi = np.sin(-psi)

    local_x = dx * cos_psi - dy * sin_psi
    local_y = dx * sin_psi + dy * cos_psi
    return local_x, local_y


def vehicle_to_world(
    local_x: npt.ArrayLike, local_y: npt.ArrayLike, px: float, py: float, psi: float
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Inverse of ``world_to_vehicle``: rotate by +psi, then translate by (px, py)."""
    lx = np.asarray(local_x, dtype=float)
    ly = np.asarray(local_y, dtype=float)

    cos_psi = np.cos(psi)
    sin_psi = np.sin(psi)

    world_x = lx * cos_psi - ly * sin_psi + px
    world_y = lx * sin_psi + ly * cos_psi + py
    return world_x, world_y
