"""Shared plotting utilities and styles for controller run visualizations.

This module provides:
- Color scheme and colormap
- CSV loading into numpy arrays
- Dark-mode axis styling

All visualization code imports from this module to keep figures consistent.
"""

import csv
from pathlib import Path
from typing import Dict, List, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.colors import LinearSegmentedColormap
from matplotlib.figure import Figure

from .config import PLOT_AMBER, PLOT_BLUE, PLOT_CREAM, PLOT_NAVY, PLOT_ORANGE, PLOT_TAUPE

__all__ = [
    "PLOT_ORANGE",
    "PLOT_BLUE",
    "PLOT_CREAM",
    "PLOT_TAUPE",
    "PLOT_AMBER",
    "PLOT_NAVY",
    "RUN_CMAP",
    "load_csv_columns",
    "style_axis",
    "add_legend",
    "create_figure",
    "save_figure",
]

RUN_CMAP = LinearSegmentedColormap.from_list("run", [PLOT_ORANGE, PLOT_BLUE])
"""Colormap from orange (start of run) to blue (end of run)."""


# ============================================================================
# CSV Data Loading
# ============================================================================


def load_csv_columns(csv_path: Path) -> Tuple[Dict[str, np.ndarray], List[str]]:
    """Load a run CSV into numeric columns plus its raw status column.

    Numeric values become floats; empty or non-numeric values become NaN.
    A ``status`` column, if present, is returned separately as strings.

    Args:
        csv_path: Path to CSV file.

    Returns:
        Tuple of (numeric columns by name, status strings).

    Raises:
        FileNotFoundError: If the CSV file does not exist.

    Example:
        >>> columns, statuses = load_csv_columns(Path("commands.csv"))
        >>> columns["cte"].shape
        (412,)
    """
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    data: Dict[str, List[float]] = {}
    statuses: List[str] = []
    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        for name in reader.fieldnames or []:
            if name != "status":
                data[name] = []
        for row in reader:
            for key, value in row.items():
                if key == "status":
                    statuses.append(value)
                    continue
                try:
                    data[key].append(float(value))
                except (ValueError, TypeError):
                    data[key].append(np.nan)

    return {key: np.array(values) for key, values in data.items()}, statuses


# ============================================================================
# Plot Styling Functions
# ============================================================================


def style_axis(ax: Axes, title: str = "", xlabel: str = "", ylabel: str = "") -> None:
    """Apply the dark-mode styling to one axis.

    Args:
        ax: Matplotlib axis to style.
        title: Plot title (optional).
        xlabel: X-axis label (optional).
        ylabel: Y-axis label (optional).
    """
    if title:
        ax.set_title(title, fontweight="bold", color=PLOT_CREAM)
    if xlabel:
        ax.set_xlabel(xlabel, color=PLOT_CREAM)
    if ylabel:
        ax.set_ylabel(ylabel, color=PLOT_CREAM)

    ax.grid(True, alpha=0.2, color=PLOT_CREAM, linestyle="--", linewidth=0.5)
    ax.set_facecolor(PLOT_NAVY)
    ax.tick_params(colors=PLOT_CREAM, which="both")
    for spine in ax.spines.values():
        spine.set_edgecolor(PLOT_TAUPE)


def add_legend(ax: Axes, loc: str = "best", **kwargs) -> None:
    """Add a dark-mode legend.

    Args:
        ax: Matplotlib axis to add legend to.
        loc: Legend location (default: "best").
        **kwargs: Additional keyword arguments passed to ax.legend().
    """
    legend_kwargs = {
        "loc": loc,
        "framealpha": 0.9,
        "facecolor": PLOT_NAVY,
        "edgecolor": PLOT_TAUPE,
        "labelcolor": PLOT_CREAM,
    }
    legend_kwargs.update(kwargs)
    ax.legend(**legend_kwargs)


# ============================================================================
# Figure Creation Helpers
# ============================================================================


def create_figure(
    nrows: int = 1, ncols: int = 1, figsize: Tuple[float, float] = (12, 8), title: str = ""
) -> Tuple[Figure, np.ndarray]:
    """Create a dark-mode figure.

    Returns:
        Tuple of (figure, 2-D array of axes).
    """
    fig, axes = plt.subplots(nrows, ncols, figsize=figsize, facecolor=PLOT_NAVY, squeeze=False)
    if title:
        fig.suptitle(title, fontsize=14, fontweight="bold", color=PLOT_CREAM)
    return fig, axes


def save_figure(fig: Figure, filepath: Path, dpi: int = 150) -> None:
    """Save a figure with consistent settings."""
    fig.savefig(filepath, dpi=dpi, bbox_inches="tight", facecolor=fig.get_facecolor())
