"""Configuration parameters for the receding-horizon controller.

This module centralizes all configuration parameters including:
- Physical vehicle parameters
- Horizon and latency timing
- Cost function weights (the "feel" of the controller)
- Solver budget and failure fallback policy
- WebSocket server parameters

The module-level constants are documented defaults. Runtime code never reads
them directly: they seed the immutable dataclasses below, which are passed to
each controller at construction so several vehicle profiles can coexist in one
process.
"""

import logging
import math
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

# ============================================================================
# Physical Vehicle Parameters
# ============================================================================

WHEELBASE = 2.67
"""Distance from the front axle to the centre of gravity, Lf (meters).

Fixed by the vehicle. The kinematic bicycle model turns at a rate of
v * steer / Lf, so this value scales every heading prediction."""

MAX_STEER = math.radians(25.0)
"""Maximum steering angle (radians). Physical actuator limit.

Also the normalisation constant for the outbound command: a steering angle of
MAX_STEER is sent as 1.0."""

ACCEL_MIN = -1.0
"""Lower bound on normalised throttle/brake (full brake)."""

ACCEL_MAX = 1.0
"""Upper bound on normalised throttle/brake (full throttle)."""

STEERING_SIGN = 1.0
"""Sign applied to the outbound normalised steering command (+1 or -1).

With +1, positive steering means a clockwise (right) turn, which is the
convention used internally by the model. Set to -1 for a vehicle whose
actuator expects positive = left."""


# ============================================================================
# Timing Parameters
# ============================================================================

ACTUATION_LATENCY = 0.1
"""Delay between a telemetry measurement and the command taking effect (s).

The measured state is projected forward by this interval before solving.
Matches the 100 ms actuation delay of the reference simulator."""

HORIZON_STEPS = 10
"""Number of predicted states N in the horizon.

Tuning rationale:
- 10 steps at 0.1 s gives a 1 s preview, enough for cruising curves
- Longer horizons add cost per solve without improving the first command
- Shorter horizons (< 6) make the controller short-sighted in curves
"""

STEP_INTERVAL = 0.1
"""Interval dt between predicted states (s)."""

REFERENCE_SPEED = 40.0
"""Cruising speed the cost function pulls towards (telemetry speed units)."""


# ============================================================================
# Cost Function Weights
# ============================================================================

WEIGHT_CTE = 2000.0
"""Weight on squared cross-track error.

Tuning rationale:
- Dominant term: lateral position is what the driver notices first
- Paired with WEIGHT_EPSI so heading and position settle together
"""

WEIGHT_EPSI = 2000.0
"""Weight on squared heading error."""

WEIGHT_SPEED = 1.0
"""Weight on squared deviation from REFERENCE_SPEED.

Kept small so the car slows rather than cut corners when errors grow."""

WEIGHT_STEER = 5.0
"""Weight on squared steering magnitude (control effort)."""

WEIGHT_ACCEL = 5.0
"""Weight on squared throttle magnitude (control effort)."""

WEIGHT_STEER_RATE = 200.0
"""Weight on squared change of steering between consecutive steps.

Tuning rationale:
- Large relative to WEIGHT_STEER: suppresses solver-induced chatter
- Too large (> 2000) makes the car late into curves
"""

WEIGHT_ACCEL_RATE = 10.0
"""Weight on squared change of throttle between consecutive steps."""


# ============================================================================
# Solver Parameters
# ============================================================================

SOLVER_MAX_ITER = 100
"""Maximum IPOPT iterations per solve."""

SOLVER_TIME_LIMIT = 0.1
"""CPU time budget per solve (s).

Same order as the transport round trip. Exceeding it is treated as a
divergence and triggers the fallback policy."""

SOLVER_TOLERANCE = 1e-6
"""IPOPT convergence tolerance."""

FIT_DEGREE = 3
"""Degree of the reference polynomial fit to the local waypoints."""

FIT_CONDITION_LIMIT = 1e12
"""Largest acceptable condition estimate of the triangular fit factor.

Above this, the waypoints are treated as a degenerate fit (for example a
path that runs nearly perpendicular to the vehicle)."""


# ============================================================================
# Fallback Policy
# ============================================================================

FALLBACK_HOLD_CYCLES = 1
"""Consecutive solve divergences answered by holding the last actuation."""

FALLBACK_BRAKE_THROTTLE = -0.5
"""Throttle commanded once divergence persists past FALLBACK_HOLD_CYCLES."""


# ============================================================================
# Display Parameters
# ============================================================================

REFERENCE_SAMPLE_COUNT = 20
"""Number of reference curve points sent for display."""

REFERENCE_SAMPLE_SPACING = 2.5
"""Longitudinal spacing of displayed reference points (local x units)."""


# ============================================================================
# Visualization Colors
# ============================================================================

PLOT_ORANGE = "#f74823"
"""Primary plot color - driven trajectory, commands."""

PLOT_BLUE = "#2374f7"
"""Secondary plot color - reference, predictions."""

PLOT_CREAM = "#fffdee"
"""Text and labels on dark backgrounds."""

PLOT_TAUPE = "#686a5f"
"""Guides, limits and secondary elements."""

PLOT_AMBER = "#ffa726"
"""Highlights: fallback markers, budget lines."""

PLOT_NAVY = "#0d1b2a"
"""Dark background color."""


# ============================================================================
# Terminal Colors
# ============================================================================

TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for warnings and fallback notices."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for status lines."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# WebSocket Configuration
# ============================================================================

WS_HOST = "0.0.0.0"
"""Interface the control server binds to."""

WS_PORT = 4567
"""Port the simulator connects to."""

WS_ACTUATION_DELAY = 0.1
"""Delay inserted before each reply to emulate real actuation latency (s)."""


# ============================================================================
# Immutable configuration structures
# ============================================================================


@dataclass(frozen=True)
class CostWeights:
    """Relative weights of the horizon cost terms."""

    cte: float = WEIGHT_CTE
    epsi: float = WEIGHT_EPSI
    speed: float = WEIGHT_SPEED
    steer: float = WEIGHT_STEER
    accel: float = WEIGHT_ACCEL
    steer_rate: float = WEIGHT_STEER_RATE
    accel_rate: float = WEIGHT_ACCEL_RATE

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not math.isfinite(value) or value < 0.0:
                raise ValueError(f"Cost weight '{f.name}' must be finite and >= 0, got {value}")


@dataclass(frozen=True)
class FallbackConfig:
    """Policy applied when the horizon solve diverges."""

    hold_cycles: int = FALLBACK_HOLD_CYCLES
    brake_throttle: float = FALLBACK_BRAKE_THROTTLE

    def __post_init__(self) -> None:
        if self.hold_cycles < 0:
            raise ValueError(f"hold_cycles must be >= 0, got {self.hold_cycles}")
        if self.brake_throttle > 0.0:
            raise ValueError(f"brake_throttle must be <= 0, got {self.brake_throttle}")


@dataclass(frozen=True)
class ControllerConfig:
    """Fixed model parameters of one vehicle profile.

    Attributes:
        wheelbase: Front axle to centre of gravity, Lf.
        max_steer: Steering bound in radians; also the output normalisation.
        accel_min: Lower throttle bound.
        accel_max: Upper throttle bound.
        latency: Actuation latency compensated before each solve (s).
        horizon: Number of predicted states N (N - 1 actuations).
        dt: Step interval of the horizon (s).
        reference_speed: Speed the cost pulls towards.
        weights: Cost function weights.
        fallback: Divergence fallback policy.
        steering_sign: Sign of the outbound steering command.
        fit_degree: Degree of the reference polynomial.
        fit_condition_limit: Condition estimate above which a fit is degenerate.
        max_iter: Solver iteration limit.
        time_limit: Solver CPU time limit (s).
        tolerance: Solver convergence tolerance.
        reference_samples: Number of reference points returned for display.
        reference_spacing: Spacing of displayed reference points.
    """

    wheelbase: float = WHEELBASE
    max_steer: float = MAX_STEER
    accel_min: float = ACCEL_MIN
    accel_max: float = ACCEL_MAX
    latency: float = ACTUATION_LATENCY
    horizon: int = HORIZON_STEPS
    dt: float = STEP_INTERVAL
    reference_speed: float = REFERENCE_SPEED
    weights: CostWeights = field(default_factory=CostWeights)
    fallback: FallbackConfig = field(default_factory=FallbackConfig)
    steering_sign: float = STEERING_SIGN
    fit_degree: int = FIT_DEGREE
    fit_condition_limit: float = FIT_CONDITION_LIMIT
    max_iter: int = SOLVER_MAX_ITER
    time_limit: float = SOLVER_TIME_LIMIT
    tolerance: float = SOLVER_TOLERANCE
    reference_samples: int = REFERENCE_SAMPLE_COUNT
    reference_spacing: float = REFERENCE_SAMPLE_SPACING

    def __post_init__(self) -> None:
        if self.wheelbase <= 0.0:
            raise ValueError(f"wheelbase must be > 0, got {self.wheelbase}")
        if self.max_steer <= 0.0:
            raise ValueError(f"max_steer must be > 0, got {self.max_steer}")
        if self.accel_min >= self.accel_max:
            raise ValueError(
                f"accel bounds inverted: [{self.accel_min}, {self.accel_max}]"
            )
        if self.accel_min < -1.0 or self.accel_max > 1.0:
            raise ValueError("accel bounds must lie within the normalised range [-1, 1]")
        if self.latency < 0.0:
            raise ValueError(f"latency must be >= 0, got {self.latency}")
        if self.horizon < 2:
            raise ValueError(f"horizon must be >= 2, got {self.horizon}")
        if self.dt <= 0.0:
            raise ValueError(f"dt must be > 0, got {self.dt}")
        if self.steering_sign not in (1.0, -1.0):
            raise ValueError(f"steering_sign must be +1 or -1, got {self.steering_sign}")
        if self.fit_degree < 1:
            raise ValueError(f"fit_degree must be >= 1, got {self.fit_degree}")
        if self.max_iter < 1 or self.time_limit <= 0.0:
            raise ValueError("solver budget must be positive")

    def with_weights(self, **weights: float) -> "ControllerConfig":
        """Return a copy with some cost weights replaced."""
        return replace(self, weights=replace(self.weights, **weights))


@dataclass(frozen=True)
class ServerConfig:
    """WebSocket endpoint and session behaviour."""

    host: str = WS_HOST
    port: int = WS_PORT
    actuation_delay: float = WS_ACTUATION_DELAY
    record: bool = False
    output_dir: str = "."


def config_from_mapping(data: Dict[str, Any]) -> ControllerConfig:
    """Build a ControllerConfig from a plain mapping.

    Nested ``weights`` and ``fallback`` mappings are accepted. Angles may be
    given in degrees with a ``max_steer_deg`` key.

    Raises:
        ValueError: If the mapping contains unknown keys.
    """
    data = dict(data)
    known = {f.name for f in fields(ControllerConfig)}

    if "max_steer_deg" in data:
        data["max_steer"] = math.radians(float(data.pop("max_steer_deg")))

    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown controller parameters: {sorted(unknown)}")

    weights = data.pop("weights", None) or {}
    fallback = data.pop("fallback", None) or {}
    unknown_weights = set(weights) - {f.name for f in fields(CostWeights)}
    if unknown_weights:
        raise ValueError(f"Unknown cost weights: {sorted(unknown_weights)}")
    unknown_fallback = set(fallback) - {f.name for f in fields(FallbackConfig)}
    if unknown_fallback:
        raise ValueError(f"Unknown fallback parameters: {sorted(unknown_fallback)}")

    return ControllerConfig(
        weights=CostWeights(**weights),
        fallback=FallbackConfig(**fallback),
        **data,
    )


def load_profile(profile_path: Optional[Union[str, Path]] = None) -> ControllerConfig:
    """Load a vehicle profile from a YAML file or use defaults.

    Args:
        profile_path: Path to a YAML profile. If None or missing, defaults
            are returned.

    Returns:
        Controller configuration for the profile.
    """
    if profile_path is None:
        return ControllerConfig()

    profile_path = Path(profile_path)
    if not profile_path.exists():
        logger.warning(f"Profile not found at {profile_path}, using defaults")
        return ControllerConfig()

    with open(profile_path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Profile {profile_path} must contain a mapping")

    config = config_from_mapping(data.get("controller", data))
    logger.info(f"Loaded vehicle profile from {profile_path}")
    return config
