"""
Kinematic bicycle model of the controlled vehicle.

This module holds the value types shared by the control pipeline (pose, state
and actuation) and the discrete-time kinematic bicycle update used both for
latency compensation and by the offline simulator.

Sign convention: a positive steering angle turns the vehicle clockwise (to
the right), so heading changes by -v * steer * dt / Lf.
"""

import math
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt


@dataclass(frozen=True)
class Pose:
    """Vehicle pose in the world frame."""

    x: float
    y: float
    psi: float


@dataclass(frozen=True)
class Telemetry:
    """One telemetry update from the vehicle.

    Attributes:
        ptsx: World x of the upcoming waypoints.
        ptsy: World y of the upcoming waypoints.
        pose: Vehicle pose in the world frame.
        speed: Current speed.
        steering_angle: Steering currently applied (radians, outbound sign).
        throttle: Throttle currently applied.
    """

    ptsx: npt.NDArray[np.float64]
    ptsy: npt.NDArray[np.float64]
    pose: Pose
    speed: float
    steering_angle: float = 0.0
    throttle: float = 0.0


@dataclass(frozen=True)
class Actuation:
    """Steering angle (radians) and normalised throttle in [-1, 1]."""

    steer: float = 0.0
    throttle: float = 0.0


@dataclass(frozen=True)
class VehicleState:
    """Optimizer state expressed in the vehicle frame at the decision instant.

    Attributes:
        x: Longitudinal position.
        y: Lateral position (positive = left).
        psi: Heading relative to the local +x axis.
        v: Speed.
        cte: Cross-track error, reference(x) - y.
        epsi: Heading error, psi - atan(reference'(x)).
    """

    x: float
    y: float
    psi: float
    v: float
    cte: float
    epsi: float

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.psi, self.v, self.cte, self.epsi], dtype=np.float64)

    @classmethod
    def from_array(cls, values: np.ndarray) -> "VehicleState":
        x, y, psi, v, cte, epsi = (float(value) for value in values)
        return cls(x=x, y=y, psi=psi, v=v, cte=cte, epsi=epsi)


def heading_rate(speed: float, steer: float, wheelbase: float) -> float:
    """
    Yaw rate of the kinematic bicycle.

    Args:
        speed: Forward speed
        steer: Steering angle in radians (positive = right turn)
        wheelbase: Front axle to centre of gravity, Lf

    Returns:
        float: Heading rate in rad/s (negative for a right turn)
    """
    return -speed * steer / wheelbase


def world_step(pose: Pose, speed: float, actuation: Actuation, dt: float, wheelbase: float) -> tuple[Pose, float]:
    """
    Advance a world-frame pose and speed by one step of the bicycle model.

    Args:
        pose: Current world pose
        speed: Current speed
        actuation: Steering/throttle applied over the step
        dt: Step length in seconds
        wheelbase: Front axle to centre of gravity, Lf

    Returns:
        tuple[Pose, float]: (next pose, next speed)
    """
    x = pose.x + speed * math.cos(pose.psi) * dt
    y = pose.y + speed * math.sin(pose.psi) * dt
    psi = pose.psi + heading_rate(speed, actuation.steer, wheelbase) * dt
    v = speed + actuation.throttle * dt
    return Pose(x=x, y=y, psi=psi), v
