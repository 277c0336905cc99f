"""Offline closed-loop simulation.

Drives an MPCController against a world-frame kinematic bicycle on one of the
reference tracks, without a simulator process or a network connection. The
plant reproduces the actuation latency the controller compensates for: each
new command only engages `latency` seconds into the control period, and the
previous command stays in effect until then.

Used by the tests and by the weight-tuning sweep in the analysis package.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from .config import ControllerConfig
from .controller import STATUS_OK, MPCController
from .model import Actuation, Pose, Telemetry, world_step
from .track import DEFAULT_WINDOW, Track, lookahead_waypoints

logger = logging.getLogger(__name__)

PLANT_SUBSTEP = 0.01
"""Integration step of the simulated vehicle (s)."""


@dataclass
class SimulationResult:
    """Recorded closed-loop run.

    Attributes:
        track: Name of the track driven.
        time: Time of each control cycle (s).
        x: World x at each cycle.
        y: World y at each cycle.
        psi: Heading at each cycle.
        speed: Speed at each cycle.
        cte: Distance to the track at each cycle (m).
        steering: Normalised steering command of each cycle.
        throttle: Throttle command of each cycle.
        statuses: Controller status of each cycle.
        solve_times: Solve time of each cycle (s).
        completed: Whether an open track was driven to its end.
    """

    track: str
    time: List[float] = field(default_factory=list)
    x: List[float] = field(default_factory=list)
    y: List[float] = field(default_factory=list)
    psi: List[float] = field(default_factory=list)
    speed: List[float] = field(default_factory=list)
    cte: List[float] = field(default_factory=list)
    steering: List[float] = field(default_factory=list)
    throttle: List[float] = field(default_factory=list)
    statuses: List[str] = field(default_factory=list)
    solve_times: List[float] = field(default_factory=list)
    completed: bool = False

    @property
    def cycles(self) -> int:
        return len(self.time)

    @property
    def mean_abs_cte(self) -> float:
        return float(np.mean(np.abs(self.cte))) if self.cte else math.nan

    @property
    def max_abs_cte(self) -> float:
        return float(np.max(np.abs(self.cte))) if self.cte else math.nan

    @property
    def fallback_count(self) -> int:
        return sum(1 for status in self.statuses if status != STATUS_OK)

    @property
    def mean_speed(self) -> float:
        return float(np.mean(self.speed)) if self.speed else math.nan


def _advance(
    pose: Pose, speed: float, actuation: Actuation, duration: float, wheelbase: float
) -> Tuple[Pose, float]:
    """Integrate the plant for `duration` seconds holding one actuation."""
    remaining = duration
    while remaining > 1e-12:
        dt = min(PLANT_SUBSTEP, remaining)
        pose, speed = world_step(pose, speed, actuation, dt, wheelbase)
        speed = max(speed, 0.0)
        remaining -= dt
    return pose, speed


def simulate(
    config: ControllerConfig,
    track: Track,
    steps: int = 200,
    initial_speed: Optional[float] = None,
    lateral_offset: float = 0.0,
    window: int = DEFAULT_WINDOW,
    controller: Optional[MPCController] = None,
) -> SimulationResult:
    """Run the controller against the simulated vehicle.

    Args:
        config: Vehicle profile for the controller and the plant.
        track: Reference track.
        steps: Maximum number of control cycles.
        initial_speed: Starting speed. Defaults to the reference speed.
        lateral_offset: Starting offset to the left of the track (m).
        window: Number of waypoints streamed per cycle.
        controller: Controller to drive; a new one is built if None.

    Returns:
        The recorded run.
    """
    controller = controller or MPCController(config)
    period = max(config.dt, config.latency)

    pose = track.start_pose(lateral_offset)
    speed = config.reference_speed if initial_speed is None else initial_speed
    applied = Actuation()
    progress = 0

    result = SimulationResult(track=track.name)
    for step in range(steps):
        progress = track.nearest_index(pose.x, pose.y, hint=progress if step else None)
        if not track.closed and progress >= len(track) - config.fit_degree - 1:
            result.completed = True
            break

        ptsx, ptsy = lookahead_waypoints(track, pose.x, pose.y, count=window, start=progress)
        telemetry = Telemetry(
            ptsx=ptsx,
            ptsy=ptsy,
            pose=pose,
            speed=speed,
            steering_angle=config.steering_sign * applied.steer,
            throttle=applied.throttle,
        )
        command = controller.step(telemetry)

        result.time.append(step * period)
        result.x.append(pose.x)
        result.y.append(pose.y)
        result.psi.append(pose.psi)
        result.speed.append(speed)
        result.cte.append(track.distance_to(pose.x, pose.y))
        result.steering.append(command.steering)
        result.throttle.append(command.throttle)
        result.statuses.append(command.status)
        result.solve_times.append(command.solve_time)

        # The previous command stays in effect until the new one engages
        pose, speed = _advance(pose, speed, applied, config.latency, config.wheelbase)
        applied = command.actuation
        pose, speed = _advance(pose, speed, applied, period - config.latency, config.wheelbase)

    logger.debug(
        f"Simulated {result.cycles} cycles on {track.name}: "
        f"mean |cte| {result.mean_abs_cte:.3f}m, {result.fallback_count} fallbacks"
    )
    return result
