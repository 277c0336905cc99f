"""Cost-weight sweep over the offline simulator.

Each configuration is a set of overrides applied to a base ControllerConfig,
either cost weights (``cte``, ``steer_rate``, ...) or controller fields
(``horizon``, ``dt``, ``reference_speed``, ...). Every configuration is
driven over a fixed set of tracks and starting offsets, and each run is
scored by its mean absolute cross-track error.

Nothing is written to disk or to the config module while the sweep runs;
overrides only exist in the immutable config handed to each simulation.
"""

import csv
import logging
import math
import statistics
from dataclasses import dataclass, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from mpc_drive.config import ControllerConfig, CostWeights
from mpc_drive.simulator import simulate
from mpc_drive.track import get_track

logger = logging.getLogger(__name__)

WEIGHT_FIELDS = {f.name for f in fields(CostWeights)}
CONTROLLER_FIELDS = {f.name for f in fields(ControllerConfig)} - {"weights", "fallback"}
INTEGER_FIELDS = {"horizon", "fit_degree", "max_iter", "reference_samples"}

RESULT_COLUMNS = [
    "config_name",
    "param_names",
    "param_values",
    "mean",
    "std_dev",
    "median",
    "min",
    "max",
    "q1",
    "q3",
    "iqr",
    "num_runs",
    "num_failures",
    "fallbacks",
    "is_valid",
    "consistency_score",
    "all_scores",
]


@dataclass
class RunResult:
    """One simulated run of one configuration."""

    track: str
    lateral_offset: float
    score: float
    max_cte: float
    fallbacks: int
    cycles: int
    success: bool
    error_message: Optional[str] = None


@dataclass
class ConfigResult:
    """Aggregated mean-|cte| scores of one configuration."""

    config_name: str
    params: Dict[str, Any]
    scores: List[float]
    num_runs: int
    num_failures: int
    fallbacks: int
    invalid_threshold: float = 2.0

    @property
    def mean(self) -> float:
        return statistics.mean(self.scores) if self.scores else float("inf")

    @property
    def std_dev(self) -> float:
        return statistics.stdev(self.scores) if len(self.scores) > 1 else 0.0

    @property
    def median(self) -> float:
        return statistics.median(self.scores) if self.scores else float("inf")

    @property
    def min_score(self) -> float:
        return min(self.scores, default=float("inf"))

    @property
    def max_score(self) -> float:
        return max(self.scores, default=float("inf"))

    @property
    def quartiles(self) -> Tuple[float, float]:
        if len(self.scores) < 2:
            return self.median, self.median
        q1, _, q3 = statistics.quantiles(self.scores, n=4)
        return q1, q3

    @property
    def is_valid(self) -> bool:
        """Valid if every run finished and stayed under the threshold."""
        return self.num_failures == 0 and bool(self.scores) and self.max_score <= self.invalid_threshold

    def consistency_score(self) -> float:
        """Mean plus a variance penalty (lower is better)."""
        return self.mean + 2 * self.std_dev

    def __str__(self) -> str:
        status = "VALID" if self.is_valid else "INVALID"
        return (
            f"{self.config_name:40s} | "
            f"Mean |cte|: {self.mean:6.3f}m | "
            f"Std: {self.std_dev:5.3f}m | "
            f"Max: {self.max_score:6.3f}m | "
            f"Fallbacks: {self.fallbacks:3d} | "
            f"Failures: {self.num_failures}/{self.num_runs} | "
            f"{status}"
        )


def apply_overrides(base: ControllerConfig, params: Dict[str, Any]) -> ControllerConfig:
    """Return a copy of `base` with weight and controller overrides applied.

    Raises:
        ValueError: If a name is unknown or a value is invalid for its field.
    """
    weights: Dict[str, float] = {}
    controller: Dict[str, Any] = {}
    for name, value in params.items():
        if name in WEIGHT_FIELDS:
            weights[name] = float(value)
        elif name in CONTROLLER_FIELDS:
            controller[name] = int(value) if name in INTEGER_FIELDS else float(value)
        else:
            raise ValueError(
                f"Unknown sweep parameter '{name}'; use a cost weight {sorted(WEIGHT_FIELDS)} "
                f"or a controller field {sorted(CONTROLLER_FIELDS)}"
            )
    return replace(base, weights=replace(base.weights, **weights), **controller)


class WeightSweep:
    """Sweep cost weights and controller fields through the simulator.

    Example:
        sweep = WeightSweep(parameters={"cte": [500.0, 2000.0], "steer_rate": [50.0, 200.0]})
        sweep.run()
        sweep.save_results(Path("results/weight_sweep.csv"))
    """

    def __init__(
        self,
        parameters: Optional[Dict[str, List[Any]]] = None,
        tracks: Sequence[str] = ("straight", "sinusoidal", "circle"),
        lateral_offsets: Sequence[float] = (0.0, 1.0),
        steps: int = 150,
        invalid_threshold: float = 2.0,
        base_config: Optional[ControllerConfig] = None,
    ) -> None:
        """Initialize the sweep.

        Args:
            parameters: Parameter name to list of values, swept one at a time.
            tracks: Track names driven by every configuration.
            lateral_offsets: Starting offsets driven on every track (m).
            steps: Control cycles per run.
            invalid_threshold: Mean |cte| above which a run makes its
                configuration invalid (m).
            base_config: Configuration the overrides apply to.
        """
        self.parameters = parameters or {}
        self.tracks = list(tracks)
        self.lateral_offsets = list(lateral_offsets)
        self.steps = steps
        self.invalid_threshold = invalid_threshold
        self.base_config = base_config or ControllerConfig()

        self.results: List[ConfigResult] = []
        self.configurations: List[Tuple[str, Dict[str, Any]]] = []

    @property
    def runs_per_config(self) -> int:
        return len(self.tracks) * len(self.lateral_offsets)

    def add_parameter(self, name: str, values: List[Any]) -> None:
        """Add a parameter to sweep one value at a time."""
        self.parameters[name] = values

    def add_configuration(self, name: str, params: Dict[str, Any]) -> None:
        """Add an explicit combination of overrides."""
        self.configurations.append((name, params))

    def run_single_test(self, config: ControllerConfig, track_name: str, lateral_offset: float) -> RunResult:
        """Simulate one track and score it."""
        result = simulate(config, get_track(track_name), steps=self.steps, lateral_offset=lateral_offset)
        score = result.mean_abs_cte
        success = result.cycles > 0 and math.isfinite(score)
        return RunResult(
            track=track_name,
            lateral_offset=lateral_offset,
            score=score,
            max_cte=result.max_abs_cte,
            fallbacks=result.fallback_count,
            cycles=result.cycles,
            success=success,
            error_message=None if success else "no control cycles",
        )

    def test_configuration(self, config_name: str, params: Dict[str, Any]) -> ConfigResult:
        """Run every track and offset for one configuration."""
        print(f"\n{'=' * 70}")
        print(f"Testing: {config_name}")
        print(f"{'=' * 70}")

        try:
            config = apply_overrides(self.base_config, params)
        except ValueError as e:
            logger.error(f"Skipping {config_name}: {e}")
            return ConfigResult(
                config_name, params, [], self.runs_per_config, self.runs_per_config, 0, self.invalid_threshold
            )

        scores: List[float] = []
        failures = 0
        fallbacks = 0
        for track_name in self.tracks:
            for offset in self.lateral_offsets:
                print(f"  {track_name} (offset {offset:+.1f}m)...", end=" ", flush=True)
                run = self.run_single_test(config, track_name, offset)
                fallbacks += run.fallbacks
                if run.success:
                    scores.append(run.score)
                    print(f"{run.score:.3f}m ({run.fallbacks} fallbacks)")
                else:
                    failures += 1
                    print(f"FAILED ({run.error_message})")

        result = ConfigResult(
            config_name=config_name,
            params=params,
            scores=scores,
            num_runs=self.runs_per_config,
            num_failures=failures,
            fallbacks=fallbacks,
            invalid_threshold=self.invalid_threshold,
        )
        print(f"\n  {'✓ VALID' if result.is_valid else '✗ INVALID'}")
        print(f"  Mean |cte|: {result.mean:.3f}m ± {result.std_dev:.3f}m")
        return result

    def run(self) -> List[ConfigResult]:
        """Test the explicit configurations, or each parameter value in turn.

        Raises:
            ValueError: If neither configurations nor parameters were given.
        """
        if self.configurations:
            plan = list(self.configurations)
        elif self.parameters:
            plan = [
                (f"{name}={value}", {name: value})
                for name, values in self.parameters.items()
                for value in values
            ]
        else:
            raise ValueError("Must either add configurations via add_configuration() or specify parameters")

        print("\n" + "=" * 70)
        print("WEIGHT SWEEP")
        print("=" * 70)
        print(f"Tracks: {', '.join(self.tracks)} | Offsets: {self.lateral_offsets} | Steps: {self.steps}")

        for config_name, params in plan:
            self.results.append(self.test_configuration(config_name, params))
        return self.results

    def save_results(self, filepath: Optional[Path] = None) -> Path:
        """Write results to CSV.

        Args:
            filepath: Output path. If None, a timestamped file in results/.

        Returns:
            Path of the CSV file.
        """
        if filepath is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filepath = Path("results") / f"weight_sweep_{timestamp}.csv"
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(RESULT_COLUMNS)
            for result in self.results:
                q1, q3 = result.quartiles
                writer.writerow(
                    [
                        result.config_name,
                        ";".join(result.params.keys()),
                        ";".join(str(v) for v in result.params.values()),
                        f"{result.mean:.6f}",
                        f"{result.std_dev:.6f}",
                        f"{result.median:.6f}",
                        f"{result.min_score:.6f}",
                        f"{result.max_score:.6f}",
                        f"{q1:.6f}",
                        f"{q3:.6f}",
                        f"{q3 - q1:.6f}",
                        result.num_runs,
                        result.num_failures,
                        result.fallbacks,
                        result.is_valid,
                        f"{result.consistency_score():.6f}",
                        ";".join(f"{s:.6f}" for s in result.scores),
                    ]
                )

        print(f"\n✓ Results saved to {filepath}")
        return filepath

    def print_summary(self, top_n: int = 10) -> None:
        """Print the best valid configurations."""
        valid = [r for r in self.results if r.is_valid]
        print("\n" + "=" * 80)
        print("WEIGHT SWEEP COMPLETE")
        print("=" * 80)
        print(f"\nConfigurations tested: {len(self.results)} ({len(valid)} valid)")

        if valid:
            print(f"\nTOP {min(top_n, len(valid))} CONFIGURATIONS (by consistency)\n")
            for i, result in enumerate(sorted(valid, key=lambda r: r.consistency_score())[:top_n], 1):
                print(f"{i}. {result}")
