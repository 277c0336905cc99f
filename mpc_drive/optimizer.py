"""Receding-horizon optimizer for trajectory tracking.

This module formulates, once per session, a nonlinear program over N future
states and N - 1 actuations and re-solves it every control cycle with a new
initial condition and reference polynomial:

    minimise   sum_k  w_cte cte_k^2 + w_epsi epsi_k^2 + w_v (v_k - v_ref)^2
             + sum_k  w_steer steer_k^2 + w_accel a_k^2
             + sum_k  w_dsteer (steer_k+1 - steer_k)^2 + w_da (a_k+1 - a_k)^2

    subject to state_0 = latency-compensated state
               state_k+1 = bicycle(state_k, steer_k, a_k)
               |steer_k| <= max_steer,  accel_min <= a_k <= accel_max

All states and actuations are decision variables (direct multiple shooting).
The problem is built with CasADi's Opti stack and solved by IPOPT.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import casadi as ca
import numpy as np
import numpy.typing as npt

from .config import ControllerConfig
from .errors import SolveDivergence
from .model import Actuation, VehicleState
from .polynomial import ReferencePolynomial

logger = logging.getLogger(__name__)

STATE_DIM = 6
"""[x, y, psi, v, cte, epsi]"""

ACTUATION_DIM = 2
"""[steer, accel]"""

WALL_TIME_EXCEEDED = "Maximum_WallTime_Exceeded"
"""Status of a solve that overran the wall-clock budget."""


@dataclass(frozen=True)
class HorizonSolution:
    """Result of one horizon solve.

    Attributes:
        states: Predicted states, shape (N, 6), columns x, y, psi, v, cte, epsi.
        actuations: Planned actuations, shape (N - 1, 2), columns steer, accel.
        cost: Objective value at the solution.
        iterations: Solver iterations used.
        solve_time: Wall-clock time of the solve (s).
        status: Solver return status.
    """

    states: npt.NDArray[np.float64]
    actuations: npt.NDArray[np.float64]
    cost: float
    iterations: int
    solve_time: float
    status: str

    @property
    def first_actuation(self) -> Actuation:
        """The actuation applied this cycle; the rest of the plan is discarded."""
        return Actuation(steer=float(self.actuations[0, 0]), throttle=float(self.actuations[0, 1]))

    @property
    def predicted_x(self) -> npt.NDArray[np.float64]:
        return self.states[:, 0]

    @property
    def predicted_y(self) -> npt.NDArray[np.float64]:
        return self.states[:, 1]


def _polynomial(coefficients, x):
    """Value and slope of an ascending-power polynomial, symbolic or numeric."""
    value = coefficients[0]
    slope = 0
    for power in range(1, coefficients.shape[0]):
        value = value + coefficients[power] * x**power
        slope = slope + power * coefficients[power] * x ** (power - 1)
    return value, slope


def bicycle_step(state, steer, accel, coefficients, dt: float, wheelbase: float):
    """One step of the horizon dynamics.

    Works on CasADi symbols and on plain floats, so the same equations drive
    the constraints and the numeric initial guess.
    """
    x, y, psi, v, cte, epsi = (state[i] for i in range(STATE_DIM))
    f, slope = _polynomial(coefficients, x)
    yaw = -v * steer * dt / wheelbase
    if isinstance(x, (ca.MX, ca.SX, ca.DM)):
        cos, sin, atan = ca.cos, ca.sin, ca.atan
    else:
        cos, sin, atan = np.cos, np.sin, np.arctan
    return [
        x + v * cos(psi) * dt,
        y + v * sin(psi) * dt,
        psi + yaw,
        v + accel * dt,
        (f - y) + v * sin(epsi) * dt,
        (psi - atan(slope)) + yaw,
    ]


class HorizonOptimizer:
    """Constrained nonlinear horizon solver for one vehicle session.

    The Opti problem is built once at construction; each call to solve()
    only updates its parameters. An instance must not be shared between
    sessions.
    """

    def __init__(self, config: ControllerConfig) -> None:
        """Build the horizon problem.

        Args:
            config: Vehicle profile providing the horizon, weights and bounds.
        """
        self.config = config
        self.horizon = config.horizon
        self._coefficient_count = config.fit_degree + 1
        self._build()

    def _build(self) -> None:
        cfg = self.config
        weights = cfg.weights
        n = self.horizon

        opti = ca.Opti()
        X = opti.variable(STATE_DIM, n)
        U = opti.variable(ACTUATION_DIM, n - 1)
        x0 = opti.parameter(STATE_DIM)
        coefficients = opti.parameter(self._coefficient_count)

        # Initial condition
        opti.subject_to(X[:, 0] == x0)

        # Dynamics
        for k in range(n - 1):
            successor = bicycle_step(
                X[:, k], U[0, k], U[1, k], coefficients, cfg.dt, cfg.wheelbase
            )
            opti.subject_to(X[:, k + 1] == ca.vertcat(*successor))

        # Actuator bounds
        opti.subject_to(opti.bounded(-cfg.max_steer, U[0, :], cfg.max_steer))
        opti.subject_to(opti.bounded(cfg.accel_min, U[1, :], cfg.accel_max))

        cost = 0
        for k in range(n):
            cost += weights.cte * X[4, k] ** 2
            cost += weights.epsi * X[5, k] ** 2
            cost += weights.speed * (X[3, k] - cfg.reference_speed) ** 2
        for k in range(n - 1):
            cost += weights.steer * U[0, k] ** 2
            cost += weights.accel * U[1, k] ** 2
        for k in range(n - 2):
            cost += weights.steer_rate * (U[0, k + 1] - U[0, k]) ** 2
            cost += weights.accel_rate * (U[1, k + 1] - U[1, k]) ** 2
        opti.minimize(cost)

        opts = {
            "print_time": False,
            "ipopt.print_level": 0,
            "ipopt.sb": "yes",
            "ipopt.max_iter": cfg.max_iter,
            "ipopt.max_cpu_time": cfg.time_limit,
            "ipopt.max_wall_time": cfg.time_limit,
            "ipopt.tol": cfg.tolerance,
        }
        opti.solver("ipopt", opts)

        self._opti = opti
        self._X = X
        self._U = U
        self._x0 = x0
        self._coefficients = coefficients

    def _coefficient_vector(self, reference: ReferencePolynomial) -> npt.NDArray[np.float64]:
        values = np.zeros(self._coefficient_count)
        count = min(self._coefficient_count, reference.coefficients.size)
        values[:count] = reference.coefficients[:count]
        return values

    def initial_guess(
        self, state: VehicleState, reference: ReferencePolynomial, actuation: Actuation
    ) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Roll the model forward holding one actuation.

        Returns:
            Tuple of (states (6, N), actuations (2, N - 1)).
        """
        cfg = self.config
        steer = float(np.clip(actuation.steer, -cfg.max_steer, cfg.max_steer))
        accel = float(np.clip(actuation.throttle, cfg.accel_min, cfg.accel_max))
        coefficients = self._coefficient_vector(reference)

        states = np.zeros((STATE_DIM, self.horizon))
        states[:, 0] = state.as_array()
        for k in range(self.horizon - 1):
            states[:, k + 1] = bicycle_step(
                states[:, k], steer, accel, coefficients, cfg.dt, cfg.wheelbase
            )
        actuations = np.tile([[steer], [accel]], (1, self.horizon - 1))
        return states, actuations

    def _last_status(self) -> Optional[str]:
        try:
            return str(self._opti.stats().get("return_status"))
        except RuntimeError:
            return None

    def solve(
        self,
        state: VehicleState,
        reference: ReferencePolynomial,
        previous: Actuation = Actuation(),
    ) -> HorizonSolution:
        """Solve the horizon from a latency-compensated state.

        Args:
            state: Initial state, fixed as the first predicted state.
            reference: Reference polynomial in the same vehicle frame.
            previous: Last applied actuation, used to seed the initial guess.

        Returns:
            The predicted state and actuation trajectories.

        Raises:
            SolveDivergence: If the solver fails, exceeds its budget, or
                returns non-finite values.
        """
        cfg = self.config
        opti = self._opti

        opti.set_value(self._x0, state.as_array())
        opti.set_value(self._coefficients, self._coefficient_vector(reference))
        guess_states, guess_actuations = self.initial_guess(state, reference, previous)
        opti.set_initial(self._X, guess_states)
        opti.set_initial(self._U, guess_actuations)

        start = time.perf_counter()
        try:
            sol = opti.solve()
        except RuntimeError as e:
            status = self._last_status()
            raise SolveDivergence(f"Horizon solve failed: {status or e}", status=status) from e
        solve_time = time.perf_counter() - start
        if solve_time > cfg.time_limit:
            raise SolveDivergence(
                f"Horizon solve took {solve_time * 1000:.1f}ms, over the {cfg.time_limit * 1000:.0f}ms budget",
                status=WALL_TIME_EXCEEDED,
            )

        stats = sol.stats()
        status = str(stats.get("return_status"))
        if not stats.get("success", False):
            raise SolveDivergence(f"Horizon solve did not converge: {status}", status=status)

        states = np.asarray(sol.value(self._X), dtype=np.float64).reshape(STATE_DIM, self.horizon)
        actuations = np.asarray(sol.value(self._U), dtype=np.float64).reshape(
            ACTUATION_DIM, self.horizon - 1
        )
        if not (np.all(np.isfinite(states)) and np.all(np.isfinite(actuations))):
            raise SolveDivergence("Horizon solve returned non-finite values", status=status)

        # IPOPT may relax bounds by ~1e-8; report exact compliance
        actuations[0] = np.clip(actuations[0], -cfg.max_steer, cfg.max_steer)
        actuations[1] = np.clip(actuations[1], cfg.accel_min, cfg.accel_max)

        solution = HorizonSolution(
            states=states.T.copy(),
            actuations=actuations.T.copy(),
            cost=float(sol.value(opti.f)),
            iterations=int(stats.get("iter_count", 0)),
            solve_time=solve_time,
            status=status,
        )
        logger.debug(
            f"Solved horizon in {solve_time * 1000:.1f}ms "
            f"({solution.iterations} iterations, cost {solution.cost:.3f})"
        )
        return solution
