"""
Tests for latency compensation and the bicycle model it uses.
"""

import math

import pytest

from mpc_drive.latency import compensate_latency, measurement_errors
from mpc_drive.model import Actuation, Pose, heading_rate, world_step
from mpc_drive.polynomial import ReferencePolynomial

WHEELBASE = 2.67


def test_zero_interval_returns_measured_state():
    """With no latency the state is the measurement itself."""
    reference = ReferencePolynomial([0.7, 0.2, -0.01, 0.0005])
    cte, epsi = measurement_errors(reference)

    state = compensate_latency(12.0, Actuation(0.0, 0.0), reference, latency=0.0, wheelbase=WHEELBASE)

    assert state.x == 0.0
    assert state.y == 0.0
    assert state.psi == 0.0
    assert state.v == 12.0
    assert state.cte == pytest.approx(cte)
    assert state.epsi == pytest.approx(epsi)


def test_measurement_errors():
    reference = ReferencePolynomial([-1.0, 0.5, 0.0, 0.0])
    cte, epsi = measurement_errors(reference)

    assert cte == pytest.approx(-1.0)
    assert epsi == pytest.approx(-math.atan(0.5))


def test_straight_steer_advances_x_exactly():
    """Zero steering keeps the heading and moves x by v * dt."""
    reference = ReferencePolynomial([0.0, 0.0, 0.0, 0.0])
    state = compensate_latency(20.0, Actuation(0.0, 0.0), reference, latency=0.1, wheelbase=WHEELBASE)

    assert state.x == 20.0 * 0.1
    assert state.y == 0.0
    assert state.psi == 0.0
    assert state.v == 20.0


def test_throttle_changes_speed():
    reference = ReferencePolynomial([0.0, 0.0, 0.0, 0.0])
    state = compensate_latency(10.0, Actuation(0.0, 0.5), reference, latency=0.2, wheelbase=WHEELBASE)

    assert state.v == pytest.approx(10.1)


def test_positive_steer_turns_right():
    reference = ReferencePolynomial([0.0, 0.0, 0.0, 0.0])
    state = compensate_latency(10.0, Actuation(0.1, 0.0), reference, latency=0.1, wheelbase=WHEELBASE)

    assert state.psi == pytest.approx(-10.0 * 0.1 * 0.1 / WHEELBASE)
    assert state.psi < 0.0
    # Heading error accumulates the heading change
    assert state.epsi == pytest.approx(state.psi)


def test_heading_error_grows_cross_track_error():
    """Cross-track error advances by v * sin(epsi) * dt over the delay."""
    reference = ReferencePolynomial([0.0, -0.1, 0.0, 0.0])
    cte, epsi = measurement_errors(reference)
    assert epsi > 0.0

    state = compensate_latency(10.0, Actuation(0.0, 0.0), reference, latency=0.1, wheelbase=WHEELBASE)

    assert state.cte == pytest.approx(cte + 10.0 * math.sin(epsi) * 0.1)
    assert state.cte > cte


def test_heading_rate_sign():
    assert heading_rate(10.0, 0.1, WHEELBASE) < 0.0
    assert heading_rate(10.0, -0.1, WHEELBASE) > 0.0
    assert heading_rate(0.0, 0.3, WHEELBASE) == 0.0


def test_world_step_straight():
    pose, speed = world_step(Pose(1.0, 2.0, math.pi / 2), 5.0, Actuation(0.0, 1.0), 0.1, WHEELBASE)

    assert pose.x == pytest.approx(1.0)
    assert pose.y == pytest.approx(2.5)
    assert pose.psi == pytest.approx(math.pi / 2)
    assert speed == pytest.approx(5.1)
