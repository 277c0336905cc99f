"""Reference tracks for offline closed-loop runs.

A track is a world-frame polyline resampled at a fixed arc-length spacing.
The simulator hands the controller a short window of upcoming track points
each cycle, the way the driving simulator streams its waypoints.

Available shapes:
- straight line
- circle
- Lemniscate of Gerono (figure eight), scaled to road size
- sinusoidal lane weave
"""

import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np
import numpy.typing as npt

from .model import Pose

DEFAULT_SPACING = 8.0
"""Arc-length spacing between consecutive track points (m)."""

DEFAULT_WINDOW = 8
"""Number of upcoming points streamed to the controller each cycle."""


@dataclass(frozen=True)
class Track:
    """World-frame reference polyline.

    Attributes:
        name: Short identifier used in reports.
        x: Point x coordinates.
        y: Point y coordinates.
        closed: Whether the last point connects back to the first.
    """

    name: str
    x: npt.NDArray[np.float64]
    y: npt.NDArray[np.float64]
    closed: bool = False

    def __len__(self) -> int:
        return int(self.x.size)

    @property
    def length(self) -> float:
        """Total arc length (m)."""
        segments = np.hypot(np.diff(self.x), np.diff(self.y))
        total = float(np.sum(segments))
        if self.closed:
            total += math.hypot(self.x[0] - self.x[-1], self.y[0] - self.y[-1])
        return total

    def heading(self, index: int) -> float:
        """Direction of travel leaving point `index` (radians)."""
        n = len(self)
        nxt = (index + 1) % n if self.closed else min(index + 1, n - 1)
        prv = index if nxt != index else index - 1
        return math.atan2(self.y[nxt] - self.y[prv], self.x[nxt] - self.x[prv])

    def start_pose(self, lateral_offset: float = 0.0) -> Pose:
        """Pose at the first point, aligned with the track.

        Args:
            lateral_offset: Shift to the left of the track (m).
        """
        psi = self.heading(0)
        return Pose(
            x=float(self.x[0]) - lateral_offset * math.sin(psi),
            y=float(self.y[0]) + lateral_offset * math.cos(psi),
            psi=psi,
        )

    def nearest_index(self, x: float, y: float, hint: Optional[int] = None, span: int = 20) -> int:
        """Index of the track point closest to (x, y).

        Args:
            x: Query x.
            y: Query y.
            hint: Last known index. When given, only points from hint - 2 to
                hint + span are searched, which keeps self-crossing tracks on
                the branch being driven.
            span: Forward search window used with a hint.
        """
        if hint is None:
            return int(np.argmin(np.hypot(self.x - x, self.y - y)))

        n = len(self)
        if self.closed:
            candidates = (hint + np.arange(-2, span + 1)) % n
        else:
            candidates = np.arange(max(hint - 2, 0), min(hint + span + 1, n))
        best = np.argmin(np.hypot(self.x[candidates] - x, self.y[candidates] - y))
        return int(candidates[best])

    def distance_to(self, x: float, y: float) -> float:
        """Shortest distance from (x, y) to the polyline (m)."""
        ax, ay = self.x, self.y
        if self.closed:
            bx, by = np.roll(ax, -1), np.roll(ay, -1)
        else:
            ax, ay, bx, by = ax[:-1], ay[:-1], ax[1:], ay[1:]

        dx, dy = bx - ax, by - ay
        seg_len_sq = dx**2 + dy**2
        t = np.where(seg_len_sq > 0.0, ((x - ax) * dx + (y - ay) * dy) / np.maximum(seg_len_sq, 1e-12), 0.0)
        t = np.clip(t, 0.0, 1.0)
        return float(np.min(np.hypot(ax + t * dx - x, ay + t * dy - y)))


def _resample(x: npt.NDArray[np.float64], y: npt.NDArray[np.float64], spacing: float) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Resample a dense polyline at constant arc-length spacing."""
    s = np.concatenate(([0.0], np.cumsum(np.hypot(np.diff(x), np.diff(y)))))
    samples = np.arange(0.0, s[-1], spacing)
    return np.interp(samples, s, x), np.interp(samples, s, y)


def straight_track(length: float = 2000.0, heading: float = 0.0, spacing: float = DEFAULT_SPACING) -> Track:
    """Straight line from the origin.

    Args:
        length: Track length (m).
        heading: Direction of the line (radians).
        spacing: Point spacing (m).
    """
    s = np.arange(0.0, length + spacing, spacing)
    return Track("straight", s * math.cos(heading), s * math.sin(heading))


def circle_track(radius: float = 60.0, clockwise: bool = False, spacing: float = DEFAULT_SPACING) -> Track:
    """Closed circle starting at the origin heading along +x.

    Args:
        radius: Circle radius (m).
        clockwise: Turn direction.
        spacing: Point spacing (m).
    """
    count = max(8, int(round(2.0 * math.pi * radius / spacing)))
    theta = np.linspace(0.0, 2.0 * math.pi, count, endpoint=False)
    side = -1.0 if clockwise else 1.0
    x = radius * np.sin(theta)
    y = side * radius * (1.0 - np.cos(theta))
    return Track("circle", x, y, closed=True)


def lemniscate_track(scale: float = 160.0, spacing: float = DEFAULT_SPACING) -> Track:
    """Closed Lemniscate of Gerono, starting from its lower tip.

    The curve is defined by:
        x = -scale * sin(k) * cos(k)
        y = scale * (sin(k) + 1)
    for k in [-pi/2, 3pi/2). The tightest turn has radius scale / 4.

    Args:
        scale: Size of the figure eight (m).
        spacing: Point spacing (m).
    """
    k = np.linspace(-math.pi / 2.0, 3.0 * math.pi / 2.0, 4000, endpoint=False)
    dense_x = -scale * np.sin(k) * np.cos(k)
    dense_y = scale * (np.sin(k) + 1.0)
    x, y = _resample(dense_x, dense_y, spacing)
    return Track("lemniscate", x, y, closed=True)


def sinusoidal_track(
    length: float = 2000.0, amplitude: float = 6.0, wavelength: float = 240.0, spacing: float = DEFAULT_SPACING
) -> Track:
    """Lane weave y = amplitude * sin(2 pi x / wavelength) along +x.

    Args:
        length: Longitudinal extent (m).
        amplitude: Lateral amplitude (m).
        wavelength: Distance between crests (m).
        spacing: Point spacing (m).
    """
    dense_x = np.linspace(0.0, length, int(length) * 4 + 1)
    dense_y = amplitude * np.sin(2.0 * math.pi * dense_x / wavelength)
    x, y = _resample(dense_x, dense_y, spacing)
    return Track("sinusoidal", x, y)


TRACKS: Dict[str, Callable[[], Track]] = {
    "straight": straight_track,
    "circle": circle_track,
    "lemniscate": lemniscate_track,
    "sinusoidal": sinusoidal_track,
}


def get_track(name: str) -> Track:
    """Build a default-sized track by name.

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        return TRACKS[name]()
    except KeyError:
        raise ValueError(f"Unknown track '{name}', choose from {sorted(TRACKS)}") from None


def lookahead_waypoints(
    track: Track, x: float, y: float, count: int = DEFAULT_WINDOW, start: Optional[int] = None
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """World-frame window of track points starting at the nearest one.

    On open tracks the window is cut short near the end, so it can hold fewer
    than `count` points.

    Args:
        track: Reference track.
        x: Vehicle world x.
        y: Vehicle world y.
        count: Window size.
        start: First index of the window; found by nearest search if None.

    Returns:
        Tuple of (ptsx, ptsy).
    """
    if start is None:
        start = track.nearest_index(x, y)
    if track.closed:
        indices = (start + np.arange(count)) % len(track)
    else:
        indices = np.arange(start, min(start + count, len(track)))
    return track.x[indices].copy(), track.y[indices].copy()
