"""Cost-weight tuning for the receding-horizon controller.

This package drives the offline simulator over several tracks for each
candidate configuration and ranks the configurations by mean absolute
cross-track error.

Quick Start:
    >>> from analysis import WeightSweep
    >>> sweep = WeightSweep(parameters={"cte": [500.0, 2000.0]}, steps=100)
    >>> sweep.run()
    >>> sweep.save_results()

Command Line:
    # Run a sweep
    python -m analysis.cli sweep --param cte=500,2000 --steps 150

    # Generate statistical report
    python -m analysis.cli stats results/weight_sweep_*.csv
"""

from analysis.statistics import (
    Statistics,
    compare_configurations,
    compute_statistics,
    generate_report,
    load_sweep_results,
    rank_configurations,
)
from analysis.sweep import ConfigResult, RunResult, WeightSweep, apply_overrides

__all__ = [
    "WeightSweep",
    "RunResult",
    "ConfigResult",
    "apply_overrides",
    "Statistics",
    "compute_statistics",
    "load_sweep_results",
    "rank_configurations",
    "compare_configurations",
    "generate_report",
]
