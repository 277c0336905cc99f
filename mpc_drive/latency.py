"""Actuation latency compensation.

A command computed from a measurement only takes effect one latency interval
later. Solving from the measured state would make every command stale by that
interval, which shows up as oscillation at speed. Instead the measured state
is projected forward through the kinematic bicycle model, holding the last
commanded actuation, and the horizon is solved from the projected state.
"""

import math
from typing import Tuple

from .model import Actuation, VehicleState, heading_rate
from .polynomial import ReferencePolynomial


def measurement_errors(reference: ReferencePolynomial) -> Tuple[float, float]:
    """Cross-track and heading error at the measurement instant.

    The vehicle sits at the local origin with zero heading, so
    cte = f(0) - 0 and epsi = 0 - atan(f'(0)).

    Returns:
        Tuple of (cte, epsi).
    """
    cte = reference.evaluate(0.0)
    epsi = -math.atan(reference.derivative(0.0))
    return cte, epsi


def compensate_latency(
    speed: float,
    actuation: Actuation,
    reference: ReferencePolynomial,
    latency: float,
    wheelbase: float,
) -> VehicleState:
    """Project the local-frame state forward by the actuation latency.

    One step of the kinematic bicycle model from x = y = psi = 0:
        x'    = v * dt
        y'    = 0
        psi'  = -v * steer * dt / Lf
        v'    = v + throttle * dt
        cte'  = cte + v * sin(epsi) * dt
        epsi' = epsi + psi'

    Args:
        speed: Measured speed.
        actuation: Last commanded actuation, still in effect during the latency.
        reference: Reference polynomial in the measurement's vehicle frame.
        latency: Latency interval in seconds.
        wheelbase: Front axle to centre of gravity, Lf.

    Returns:
        The state at the instant the next command engages.
    """
    cte, epsi = measurement_errors(reference)
    psi = heading_rate(speed, actuation.steer, wheelbase) * latency
    return VehicleState(
        x=speed * latency,
        y=0.0,
        psi=psi,
        v=speed + actuation.throttle * latency,
        cte=cte + speed * math.sin(epsi) * latency,
        epsi=epsi + psi,
    )
