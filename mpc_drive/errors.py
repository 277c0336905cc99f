"""Failure kinds raised by the control pipeline.

Fit and solve failures are caught by the controller and mapped onto the
fallback policy; telemetry failures are caught by the session loop. None of
them terminates a session.
"""

from typing import Optional


class ControlError(Exception):
    """Base class for recoverable control pipeline failures."""


class InsufficientWaypoints(ControlError):
    """Fewer than two waypoints were supplied."""


class DegenerateFit(ControlError):
    """The reference polynomial fit is rank deficient or ill-conditioned."""


class SolveDivergence(ControlError):
    """The horizon solve did not converge within its iteration or time budget.

    Attributes:
        status: Solver return status, when one is available.
    """

    def __init__(self, message: str, status: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status


class MalformedTelemetry(ControlError):
    """A telemetry payload is missing required fields or holds invalid values."""
