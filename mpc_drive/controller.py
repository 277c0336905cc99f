"""Per-session control loop.

This module runs the full pipeline once per telemetry update:

    telemetry -> vehicle frame -> reference fit -> latency compensation
              -> horizon solve -> first actuation + display trajectories

and applies the failure policy when the fit or the solve fails. The last
commanded actuation is the only state carried between cycles.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .config import TERM_ORANGE, TERM_RESET, ControllerConfig
from .errors import DegenerateFit, InsufficientWaypoints, SolveDivergence
from .frame import to_vehicle_frame
from .latency import compensate_latency
from .model import Actuation, Telemetry, VehicleState
from .optimizer import HorizonOptimizer, HorizonSolution
from .polynomial import ReferencePolynomial, fit_polynomial

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_HOLD = "hold"
STATUS_DECELERATE = "decelerate"
STATUS_FIT_FAILED = "fit_failed"


@dataclass(frozen=True)
class ControlCommand:
    """Outbound command and the diagnostics of the cycle that produced it.

    Attributes:
        steering: Normalised steering in [-1, 1] (positive = right with the
            default steering_sign).
        throttle: Normalised throttle/brake in [-1, 1].
        actuation: The same command in model units (radians, internal sign).
        status: "ok", "hold", "decelerate" or "fit_failed".
        mpc_x: Predicted trajectory x, vehicle frame.
        mpc_y: Predicted trajectory y, vehicle frame.
        next_x: Reference curve sample x, vehicle frame.
        next_y: Reference curve sample y, vehicle frame.
        cte: Cross-track error of the solved initial state (NaN if unknown).
        epsi: Heading error of the solved initial state (NaN if unknown).
        cost: Objective value (NaN without a solution).
        iterations: Solver iterations (0 without a solution).
        solve_time: Solve time in seconds (0 without a solution).
        time_limit: Solver budget of the profile that produced it (s).
    """

    steering: float
    throttle: float
    actuation: Actuation
    status: str
    mpc_x: List[float] = field(default_factory=list)
    mpc_y: List[float] = field(default_factory=list)
    next_x: List[float] = field(default_factory=list)
    next_y: List[float] = field(default_factory=list)
    cte: float = math.nan
    epsi: float = math.nan
    cost: float = math.nan
    iterations: int = 0
    solve_time: float = 0.0
    time_limit: float = math.nan


class MPCController:
    """Receding-horizon controller for one vehicle session.

    Attributes:
        config: Immutable vehicle profile.
        optimizer: Horizon solver owned by this session.
        last_actuation: Last commanded actuation, or None before the first cycle.
        consecutive_divergences: Number of solve failures since the last success.
    """

    def __init__(
        self, config: Optional[ControllerConfig] = None, optimizer: Optional[HorizonOptimizer] = None
    ) -> None:
        self.config = config or ControllerConfig()
        self.optimizer = optimizer or HorizonOptimizer(self.config)
        self.last_actuation: Optional[Actuation] = None
        self.consecutive_divergences: int = 0

    def reset(self) -> None:
        """Forget the carried actuation and divergence history."""
        self.last_actuation = None
        self.consecutive_divergences = 0

    def _previous_actuation(self, telemetry: Telemetry) -> Actuation:
        if self.last_actuation is not None:
            return self.last_actuation
        # First cycle: seed from what the vehicle reports it is applying
        return Actuation(
            steer=self.config.steering_sign * telemetry.steering_angle,
            throttle=telemetry.throttle,
        )

    def step(self, telemetry: Telemetry) -> ControlCommand:
        """Compute the next command from one telemetry update.

        Args:
            telemetry: Current waypoints, pose, speed and applied actuation.

        Returns:
            The command to send, with display trajectories and diagnostics.
        """
        cfg = self.config
        previous = self._previous_actuation(telemetry)

        try:
            local_x, local_y = to_vehicle_frame(telemetry.pose, telemetry.ptsx, telemetry.ptsy)
            reference = fit_polynomial(
                local_x, local_y, degree=cfg.fit_degree, condition_limit=cfg.fit_condition_limit
            )
        except (InsufficientWaypoints, DegenerateFit) as e:
            logger.warning(f"{TERM_ORANGE}Reference fit failed ({e}); holding last actuation{TERM_RESET}")
            return self._emit(previous, STATUS_FIT_FAILED)

        state = compensate_latency(telemetry.speed, previous, reference, cfg.latency, cfg.wheelbase)

        try:
            solution = self.optimizer.solve(state, reference, previous)
        except SolveDivergence as e:
            return self._on_divergence(previous, reference, state, e)

        self.consecutive_divergences = 0
        return self._emit(solution.first_actuation, STATUS_OK, reference, state, solution)

    def _on_divergence(
        self,
        previous: Actuation,
        reference: ReferencePolynomial,
        state: VehicleState,
        error: SolveDivergence,
    ) -> ControlCommand:
        fallback = self.config.fallback
        self.consecutive_divergences += 1

        if self.consecutive_divergences <= fallback.hold_cycles:
            logger.warning(
                f"{TERM_ORANGE}Solve diverged ({error}); holding last actuation "
                f"[{self.consecutive_divergences}/{fallback.hold_cycles}]{TERM_RESET}"
            )
            return self._emit(previous, STATUS_HOLD, reference, state)

        brake = float(np.clip(fallback.brake_throttle, self.config.accel_min, self.config.accel_max))
        logger.error(
            f"Solve diverged {self.consecutive_divergences} cycles in a row ({error}); "
            f"commanding deceleration (throttle {brake:.2f})"
        )
        return self._emit(Actuation(steer=previous.steer, throttle=brake), STATUS_DECELERATE, reference, state)

    def _emit(
        self,
        actuation: Actuation,
        status: str,
        reference: Optional[ReferencePolynomial] = None,
        state: Optional[VehicleState] = None,
        solution: Optional[HorizonSolution] = None,
    ) -> ControlCommand:
        cfg = self.config
        self.last_actuation = actuation

        steering = cfg.steering_sign * float(np.clip(actuation.steer / cfg.max_steer, -1.0, 1.0))
        throttle = float(np.clip(actuation.throttle, -1.0, 1.0))

        next_x: List[float] = []
        next_y: List[float] = []
        if reference is not None:
            xs = np.arange(cfg.reference_samples) * cfg.reference_spacing
            next_x = xs.tolist()
            next_y = reference.sample(xs).tolist()

        mpc_x: List[float] = []
        mpc_y: List[float] = []
        cost = math.nan
        iterations = 0
        solve_time = 0.0
        if solution is not None:
            mpc_x = solution.predicted_x.tolist()
            mpc_y = solution.predicted_y.tolist()
            cost = solution.cost
            iterations = solution.iterations
            solve_time = solution.solve_time

        return ControlCommand(
            steering=steering,
            throttle=throttle,
            actuation=actuation,
            status=status,
            mpc_x=mpc_x,
            mpc_y=mpc_y,
            next_x=next_x,
            next_y=next_y,
            cte=state.cte if state is not None else math.nan,
            epsi=state.epsi if state is not None else math.nan,
            cost=cost,
            iterations=iterations,
            solve_time=solve_time,
            time_limit=cfg.time_limit,
        )
