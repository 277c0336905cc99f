"""World to vehicle frame conversion of waypoints.

The vehicle frame places the vehicle at the origin with its heading along +x
and +y to its left.
"""

from typing import Sequence, Tuple, Union

import numpy as np
import numpy.typing as npt

from .errors import InsufficientWaypoints
from .model import Pose

ArrayLike = Union[Sequence[float], npt.NDArray[np.float64]]


def _as_points(xs: ArrayLike, ys: ArrayLike) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    xs = np.asarray(xs, dtype=np.float64).ravel()
    ys = np.asarray(ys, dtype=np.float64).ravel()
    if xs.shape != ys.shape:
        raise ValueError(f"Waypoint x/y lengths differ: {xs.size} != {ys.size}")
    if xs.size < 2:
        raise InsufficientWaypoints(f"At least 2 waypoints required, got {xs.size}")
    return xs, ys


def to_vehicle_frame(
    pose: Pose, world_x: ArrayLike, world_y: ArrayLike
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Transform world-frame waypoints into the vehicle frame.

    Translates by -(x, y) and rotates by -psi:
        local_x =  cos(psi) * (wx - x) + sin(psi) * (wy - y)
        local_y = -sin(psi) * (wx - x) + cos(psi) * (wy - y)

    Args:
        pose: Current vehicle pose in the world frame.
        world_x: Waypoint x coordinates.
        world_y: Waypoint y coordinates.

    Returns:
        Tuple of (local_x, local_y) arrays.

    Raises:
        InsufficientWaypoints: If fewer than 2 waypoints are given.
        ValueError: If the coordinate arrays differ in length.
    """
    wx, wy = _as_points(world_x, world_y)
    cos_psi = np.cos(pose.psi)
    sin_psi = np.sin(pose.psi)
    dx = wx - pose.x
    dy = wy - pose.y
    local_x = cos_psi * dx + sin_psi * dy
    local_y = -sin_psi * dx + cos_psi * dy
    return local_x, local_y


def to_world_frame(
    pose: Pose, local_x: ArrayLike, local_y: ArrayLike
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Transform vehicle-frame points back into the world frame.

    Exact inverse of to_vehicle_frame for the same pose.
    """
    lx, ly = _as_points(local_x, local_y)
    cos_psi = np.cos(pose.psi)
    sin_psi = np.sin(pose.psi)
    world_x = cos_psi * lx - sin_psi * ly + pose.x
    world_y = sin_psi * lx + cos_psi * ly + pose.y
    return world_x, world_y
