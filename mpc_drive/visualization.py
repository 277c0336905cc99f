"""
Visualization of recorded control runs.

Loads the telemetry and command CSVs written by the DataCollector and plots:
- the driven world trajectory, colored by time
- cross-track and heading error over time
- steering and throttle commands, with fallback cycles marked
- solve time against the solver budget
"""

from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from .config import SOLVER_TIME_LIMIT
from .controller import STATUS_OK
from .plot_styles import (
    PLOT_AMBER,
    PLOT_BLUE,
    PLOT_ORANGE,
    PLOT_TAUPE,
    RUN_CMAP,
    add_legend,
    create_figure,
    load_csv_columns,
    save_figure,
    style_axis,
)


def _relative_time(timestamps: np.ndarray) -> np.ndarray:
    valid = timestamps[~np.isnan(timestamps)]
    return timestamps - valid[0] if valid.size else timestamps


def plot_trajectory(telemetry: Dict[str, np.ndarray], title: str = "Driven Trajectory") -> Figure:
    """Plot the world-frame path of the vehicle.

    Args:
        telemetry: Columns of telemetry.csv.
        title: Plot title.

    Returns:
        Matplotlib figure object.
    """
    fig, axes = create_figure(figsize=(10, 8))
    ax = axes[0, 0]

    x, y = telemetry["x"], telemetry["y"]
    t = _relative_time(telemetry["timestamp"])
    valid = ~(np.isnan(x) | np.isnan(y))
    x, y, t = x[valid], y[valid], t[valid]

    if x.size:
        ax.plot(x, y, "-", color=PLOT_ORANGE, linewidth=1.5, alpha=0.6, label="Trajectory", zorder=1)
        scatter = ax.scatter(x, y, c=t, cmap=RUN_CMAP, s=12, alpha=0.8, zorder=3)
        fig.colorbar(scatter, ax=ax, label="Time (s)")
        ax.plot(x[0], y[0], "o", color=PLOT_BLUE, markersize=8, label="Start", zorder=5, markeredgecolor="black")
        ax.plot(x[-1], y[-1], "o", color=PLOT_ORANGE, markersize=8, label="End", zorder=5, markeredgecolor="black")

    style_axis(ax, title=title, xlabel="X Position (m)", ylabel="Y Position (m)")
    ax.set_aspect("equal", adjustable="datalim")
    add_legend(ax)
    fig.tight_layout()
    return fig


def _mark_fallbacks(ax, t: np.ndarray, statuses: List[str]) -> None:
    fallback_times = [ti for ti, status in zip(t, statuses) if status != STATUS_OK]
    for i, ti in enumerate(fallback_times):
        ax.axvline(ti, color=PLOT_AMBER, alpha=0.4, linewidth=1.0, label="Fallback" if i == 0 else None)


def plot_tracking_errors(commands: Dict[str, np.ndarray], statuses: List[str], title: str = "Tracking Error") -> Figure:
    """Plot cross-track and heading error per cycle.

    Args:
        commands: Columns of commands.csv.
        statuses: Status column of commands.csv.
        title: Figure title.

    Returns:
        Matplotlib figure object.
    """
    fig, axes = create_figure(2, 1, figsize=(12, 7), title=title)
    ax_cte, ax_epsi = axes[0, 0], axes[1, 0]
    t = _relative_time(commands["timestamp"])

    ax_cte.plot(t, commands["cte"], color=PLOT_ORANGE, label="cte")
    ax_cte.axhline(0.0, color=PLOT_TAUPE, linewidth=0.8)
    _mark_fallbacks(ax_cte, t, statuses)
    style_axis(ax_cte, ylabel="Cross-track error (m)")
    add_legend(ax_cte)

    ax_epsi.plot(t, np.degrees(commands["epsi"]), color=PLOT_BLUE, label="epsi")
    ax_epsi.axhline(0.0, color=PLOT_TAUPE, linewidth=0.8)
    style_axis(ax_epsi, xlabel="Time (s)", ylabel="Heading error (deg)")
    add_legend(ax_epsi)

    fig.tight_layout()
    return fig


def plot_commands(commands: Dict[str, np.ndarray], statuses: List[str], title: str = "Commands") -> Figure:
    """Plot normalised steering and throttle commands.

    Args:
        commands: Columns of commands.csv.
        statuses: Status column of commands.csv.
        title: Figure title.

    Returns:
        Matplotlib figure object.
    """
    fig, axes = create_figure(2, 1, figsize=(12, 7), title=title)
    ax_steer, ax_throttle = axes[0, 0], axes[1, 0]
    t = _relative_time(commands["timestamp"])

    ax_steer.step(t, commands["steering"], where="post", color=PLOT_ORANGE, label="Steering")
    ax_throttle.step(t, commands["throttle"], where="post", color=PLOT_BLUE, label="Throttle")
    for ax in (ax_steer, ax_throttle):
        ax.axhline(1.0, color=PLOT_TAUPE, linestyle=":", linewidth=0.8)
        ax.axhline(-1.0, color=PLOT_TAUPE, linestyle=":", linewidth=0.8)
        ax.set_ylim(-1.1, 1.1)
        _mark_fallbacks(ax, t, statuses)

    style_axis(ax_steer, ylabel="Steering [-1, 1]")
    style_axis(ax_throttle, xlabel="Time (s)", ylabel="Throttle [-1, 1]")
    add_legend(ax_steer)
    add_legend(ax_throttle)

    fig.tight_layout()
    return fig


def plot_solve_times(
    commands: Dict[str, np.ndarray], time_limit: float = SOLVER_TIME_LIMIT, title: str = "Solve Time"
) -> Figure:
    """Plot per-cycle solve time against the solver budget.

    Args:
        commands: Columns of commands.csv.
        time_limit: Solver budget (s).
        title: Plot title.

    Returns:
        Matplotlib figure object.
    """
    fig, axes = create_figure(figsize=(12, 4))
    ax = axes[0, 0]
    t = _relative_time(commands["timestamp"])

    ax.plot(t, commands["solve_time_ms"], color=PLOT_ORANGE, label="Solve time")
    ax.axhline(time_limit * 1000.0, color=PLOT_AMBER, linestyle="--", label="Budget")
    style_axis(ax, title=title, xlabel="Time (s)", ylabel="Solve time (ms)")
    add_legend(ax)

    fig.tight_layout()
    return fig


def recorded_time_limit(commands: Dict[str, np.ndarray]) -> float:
    """Solver budget (s) recorded with a run, or the default for older runs."""
    recorded = commands.get("time_limit_ms", np.array([]))
    recorded = recorded[np.isfinite(recorded)]
    if recorded.size == 0:
        return SOLVER_TIME_LIMIT
    return float(recorded[-1]) / 1000.0


def plot_run_summary(
    run_dir: Path, save_plots: bool = False, show_plots: bool = True, time_limit: Optional[float] = None
) -> None:
    """Generate all plots for a recorded run.

    Args:
        run_dir: Directory containing telemetry.csv and commands.csv.
        save_plots: If True, save plots as PNG files in the run directory.
        show_plots: If True, display plots interactively.
        time_limit: Solver budget drawn on the solve-time plot. Defaults to the
            budget recorded in commands.csv, then to the default profile's.

    Raises:
        FileNotFoundError: If required CSV files are not found.
    """
    telemetry, _ = load_csv_columns(run_dir / "telemetry.csv")
    commands, statuses = load_csv_columns(run_dir / "commands.csv")
    run_name = run_dir.name
    if time_limit is None:
        time_limit = recorded_time_limit(commands)

    figures = {
        "trajectory.png": plot_trajectory(telemetry, title=f"{run_name} - Trajectory"),
        "tracking_error.png": plot_tracking_errors(commands, statuses, title=f"{run_name} - Tracking Error"),
        "commands.png": plot_commands(commands, statuses, title=f"{run_name} - Commands"),
        "solve_time.png": plot_solve_times(
            commands, time_limit=time_limit, title=f"{run_name} - Solve Time"
        ),
    }

    if save_plots:
        for filename, fig in figures.items():
            save_figure(fig, run_dir / filename)

    if show_plots:
        plt.show()
    else:
        for fig in figures.values():
            plt.close(fig)
