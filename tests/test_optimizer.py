"""
Tests for the constrained horizon solver.
"""

from dataclasses import replace

import numpy as np
import pytest

from mpc_drive.errors import SolveDivergence
from mpc_drive.model import Actuation, VehicleState
from mpc_drive.optimizer import (
    ACTUATION_DIM,
    STATE_DIM,
    WALL_TIME_EXCEEDED,
    HorizonOptimizer,
    bicycle_step,
)
from mpc_drive.polynomial import ReferencePolynomial

STRAIGHT = ReferencePolynomial([0.0, 0.0, 0.0, 0.0])


def test_equilibrium_gives_near_zero_actuation(config):
    """On the path at the reference speed nothing needs to change."""
    config = config.with_weights(steer_rate=0.0, accel_rate=0.0)
    optimizer = HorizonOptimizer(config)
    state = VehicleState(x=0.0, y=0.0, psi=0.0, v=config.reference_speed, cte=0.0, epsi=0.0)

    solution = optimizer.solve(state, STRAIGHT)

    np.testing.assert_allclose(solution.actuations, 0.0, atol=1e-4)
    np.testing.assert_allclose(solution.states[:, 4], 0.0, atol=1e-4)


def test_solution_shapes_and_initial_state(config):
    optimizer = HorizonOptimizer(config)
    state = VehicleState(x=1.0, y=0.0, psi=0.0, v=8.0, cte=0.5, epsi=-0.05)

    solution = optimizer.solve(state, ReferencePolynomial([0.5, 0.0, 0.0, 0.0]))

    assert solution.states.shape == (config.horizon, STATE_DIM)
    assert solution.actuations.shape == (config.horizon - 1, ACTUATION_DIM)
    np.testing.assert_allclose(solution.states[0], state.as_array(), atol=1e-6)
    assert solution.predicted_x.shape == (config.horizon,)
    assert solution.iterations > 0
    assert np.isfinite(solution.cost)


@pytest.mark.parametrize(
    "cte, epsi, speed",
    [
        (5.0, 0.0, 10.0),
        (-5.0, 0.4, 10.0),
        (0.0, -0.6, 25.0),
        (3.0, 0.3, 2.0),
    ],
)
def test_actuations_respect_bounds(config, cte, epsi, speed):
    """Large errors drive the actuators into, never past, their limits."""
    optimizer = HorizonOptimizer(config)
    state = VehicleState(x=0.0, y=0.0, psi=0.0, v=speed, cte=cte, epsi=epsi)
    reference = ReferencePolynomial([cte, -np.tan(epsi), 0.0, 0.0])

    solution = optimizer.solve(state, reference)
    steer = solution.actuations[:, 0]
    accel = solution.actuations[:, 1]

    assert np.all(np.abs(steer) <= config.max_steer)
    assert np.all(accel >= config.accel_min)
    assert np.all(accel <= config.accel_max)


def test_path_to_the_right_steers_right(config):
    optimizer = HorizonOptimizer(config)
    state = VehicleState(x=0.0, y=0.0, psi=0.0, v=10.0, cte=-8.0, epsi=0.0)

    solution = optimizer.solve(state, ReferencePolynomial([-8.0, 0.0, 0.0, 0.0]))

    assert solution.first_actuation.steer > 0.0


def test_predicted_states_follow_model(config):
    """Dynamics are hard constraints: each predicted state follows from the last."""
    optimizer = HorizonOptimizer(config)
    reference = ReferencePolynomial([1.0, 0.05, -0.002, 0.0001])
    state = VehicleState(x=0.5, y=0.0, psi=0.0, v=9.0, cte=1.0, epsi=-0.05)

    solution = optimizer.solve(state, reference)

    for k in range(config.horizon - 1):
        steer, accel = solution.actuations[k]
        expected = bicycle_step(
            solution.states[k], steer, accel, reference.coefficients, config.dt, config.wheelbase
        )
        np.testing.assert_allclose(solution.states[k + 1], expected, atol=1e-5)


def test_initial_guess_holds_actuation(config):
    optimizer = HorizonOptimizer(config)
    state = VehicleState(x=0.0, y=0.0, psi=0.0, v=10.0, cte=0.0, epsi=0.0)

    states, actuations = optimizer.initial_guess(state, STRAIGHT, Actuation(steer=1.0, throttle=0.3))

    assert states.shape == (STATE_DIM, config.horizon)
    # Steering is clipped to its bound before the rollout
    np.testing.assert_allclose(actuations[0], config.max_steer)
    np.testing.assert_allclose(actuations[1], 0.3)
    assert states[2, -1] < 0.0


def test_optimizer_is_reusable(config):
    """The problem is built once and re-solved with new parameters."""
    optimizer = HorizonOptimizer(config)
    left = optimizer.solve(
        VehicleState(0.0, 0.0, 0.0, 10.0, 1.0, 0.0), ReferencePolynomial([1.0, 0.0, 0.0, 0.0])
    )
    right = optimizer.solve(
        VehicleState(0.0, 0.0, 0.0, 10.0, -1.0, 0.0), ReferencePolynomial([-1.0, 0.0, 0.0, 0.0])
    )

    assert left.first_actuation.steer < 0.0
    assert right.first_actuation.steer > 0.0


def test_iteration_limit_raises_divergence(config):
    optimizer = HorizonOptimizer(replace(config, max_iter=1))
    state = VehicleState(x=0.0, y=0.0, psi=0.0, v=10.0, cte=5.0, epsi=0.2)

    with pytest.raises(SolveDivergence) as excinfo:
        optimizer.solve(state, ReferencePolynomial([5.0, -0.2, 0.0, 0.0]))

    assert excinfo.value.status == "Maximum_Iterations_Exceeded"


class SlowClock:
    """Stands in for the time module: every reading is `step` seconds after the last."""

    def __init__(self, step: float) -> None:
        self.now = 0.0
        self.step = step

    def perf_counter(self) -> float:
        self.now += self.step
        return self.now


def test_overrunning_the_time_budget_raises_divergence(config, monkeypatch):
    optimizer = HorizonOptimizer(config)
    monkeypatch.setattr("mpc_drive.optimizer.time", SlowClock(config.time_limit + 1.0))

    with pytest.raises(SolveDivergence) as excinfo:
        optimizer.solve(VehicleState(0.0, 0.0, 0.0, 10.0, 0.0, 0.0), STRAIGHT)

    assert excinfo.value.status == WALL_TIME_EXCEEDED
    assert "budget" in str(excinfo.value)
