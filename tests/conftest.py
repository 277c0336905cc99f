"""Shared fixtures for the controller tests."""

import numpy as np
import pytest

from mpc_drive.config import ControllerConfig
from mpc_drive.model import Pose, Telemetry


@pytest.fixture
def config() -> ControllerConfig:
    """Short horizon at city speed with a solver budget that never binds on CI."""
    return ControllerConfig(
        horizon=10,
        reference_speed=10.0,
        time_limit=5.0,
        max_iter=500,
    )


@pytest.fixture(autouse=True)
def _no_run_dir(monkeypatch):
    monkeypatch.delenv("RUN_DIR", raising=False)


def straight_telemetry(lateral_offset: float = 0.0, speed: float = 10.0, count: int = 6) -> Telemetry:
    """Vehicle heading +x at y = lateral_offset, waypoints along y = 0."""
    ptsx = np.arange(count, dtype=np.float64) * 10.0
    return Telemetry(
        ptsx=ptsx,
        ptsy=np.zeros(count),
        pose=Pose(x=0.0, y=lateral_offset, psi=0.0),
        speed=speed,
        steering_angle=0.0,
        throttle=0.0,
    )
