"""Statistics and reports for weight-sweep results.

Reads the CSV written by WeightSweep.save_results and provides:
- descriptive statistics with an approximate 95% confidence interval
- ranking of valid configurations by any numeric column
- a pairwise comparison against a baseline configuration
- a plain-text report
"""

import csv
import math
import statistics
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

NUMERIC_COLUMNS = ("mean", "std_dev", "median", "min", "max", "q1", "q3", "iqr", "consistency_score")


@dataclass
class Statistics:
    """Descriptive summary of one sample of scores."""

    mean: float
    std: float
    median: float
    min: float
    max: float
    q1: float
    q3: float
    iqr: float
    ci_95_lower: float
    ci_95_upper: float
    n: int

    def __str__(self) -> str:
        return (
            f"Mean: {self.mean:.3f} ± {self.std:.3f} | "
            f"Median: {self.median:.3f} | "
            f"Range: [{self.min:.3f}, {self.max:.3f}] | "
            f"IQR: {self.iqr:.3f} | "
            f"95% CI: [{self.ci_95_lower:.3f}, {self.ci_95_upper:.3f}] | "
            f"N={self.n}"
        )


def _t_critical(n: int) -> float:
    # Normal value for large samples, widened for small ones
    return 1.96 if n > 30 else 2.0 + (30 - n) * 0.05


def compute_statistics(data: List[float]) -> Optional[Statistics]:
    """Summarise the finite values of a sample.

    Args:
        data: Scores; infinite and NaN values are ignored.

    Returns:
        Statistics, or None if no finite value remains.
    """
    finite = [x for x in data if math.isfinite(x)]
    if not finite:
        return None

    n = len(finite)
    mean = statistics.mean(finite)
    std = statistics.stdev(finite) if n > 1 else 0.0
    q1, q3 = (float(q) for q in np.percentile(finite, [25, 75]))
    half_width = _t_critical(n) * std / math.sqrt(n) if n > 1 else 0.0

    return Statistics(
        mean=mean,
        std=std,
        median=statistics.median(finite),
        min=min(finite),
        max=max(finite),
        q1=q1,
        q3=q3,
        iqr=q3 - q1,
        ci_95_lower=mean - half_width,
        ci_95_upper=mean + half_width,
        n=n,
    )


def load_sweep_results(csv_path: Path) -> List[Dict[str, Any]]:
    """Load a weight-sweep CSV into result dictionaries.

    Args:
        csv_path: CSV written by WeightSweep.save_results.

    Returns:
        One dictionary per configuration with typed values and a ``scores``
        list.
    """
    results = []
    with open(csv_path, newline="") as f:
        for row in csv.DictReader(f):
            result: Dict[str, Any] = {
                "config_name": row["config_name"],
                "param_names": [p for p in row.get("param_names", "").split(";") if p],
                "param_values": [p for p in row.get("param_values", "").split(";") if p],
                "num_runs": int(row["num_runs"]),
                "num_failures": int(row["num_failures"]),
                "fallbacks": int(row.get("fallbacks") or 0),
                "is_valid": row["is_valid"].strip().lower() == "true",
                "scores": [float(s) for s in row.get("all_scores", "").split(";") if s],
            }
            for column in NUMERIC_COLUMNS:
                result[column] = float(row[column]) if row.get(column) else math.nan
            results.append(result)
    return results


def rank_configurations(
    results: List[Dict[str, Any]], metric: str = "consistency_score", ascending: bool = True
) -> List[Dict[str, Any]]:
    """Sort the valid configurations by one metric.

    Args:
        results: Result dictionaries from load_sweep_results.
        metric: Column to rank by (``mean``, ``max``, ``fallbacks``, ...).
        ascending: True when lower is better.
    """
    valid = [r for r in results if r["is_valid"]]
    return sorted(valid, key=lambda r: r[metric], reverse=not ascending)


def compare_configurations(candidate: Dict[str, Any], baseline: Dict[str, Any]) -> Dict[str, Any]:
    """Compare a candidate configuration against a baseline.

    Returns:
        Dictionary with mean/median differences, improvement percentage and,
        when both have more than one score, a Welch t statistic.
    """
    comparison: Dict[str, Any] = {
        "mean_diff": candidate["mean"] - baseline["mean"],
        "median_diff": candidate["median"] - baseline["median"],
        "improvement_pct": (
            (baseline["mean"] - candidate["mean"]) / baseline["mean"] * 100.0 if baseline["mean"] > 0 else 0.0
        ),
        "t_statistic": None,
        "likely_significant": None,
    }

    n1, n2 = len(candidate["scores"]), len(baseline["scores"])
    if n1 > 1 and n2 > 1:
        se = math.sqrt(candidate["std_dev"] ** 2 / n1 + baseline["std_dev"] ** 2 / n2)
        t_stat = abs(candidate["mean"] - baseline["mean"]) / se if se > 0 else 0.0
        comparison["t_statistic"] = t_stat
        comparison["likely_significant"] = t_stat > 2.0
    return comparison


def _section(lines: List[str], title: str) -> None:
    lines.append("\n" + "=" * 80)
    lines.append(title)
    lines.append("=" * 80)


def generate_report(csv_path: Path, output_path: Optional[Path] = None, top_n: int = 10) -> str:
    """Build a text report of a weight sweep.

    Args:
        csv_path: Sweep CSV.
        output_path: Optional path to also write the report to.
        top_n: Number of configurations listed per ranking.

    Returns:
        The report text.
    """
    results = load_sweep_results(csv_path)
    valid = [r for r in results if r["is_valid"]]

    lines = ["=" * 80, "WEIGHT SWEEP REPORT", "=" * 80]
    lines.append(f"\nSource: {csv_path}")
    lines.append(f"Configurations: {len(results)} ({len(valid)} valid, {len(results) - len(valid)} invalid)")

    if valid:
        _section(lines, "OVERALL MEAN |CTE| (all valid configurations)")
        overall = compute_statistics([s for r in valid for s in r["scores"]])
        if overall:
            lines.append(f"\n{overall}")

        _section(lines, f"TOP {top_n} BY CONSISTENCY (mean + 2 std)")
        for i, result in enumerate(rank_configurations(results)[:top_n], 1):
            params = dict(zip(result["param_names"], result["param_values"]))
            lines.append(f"\n{i}. {result['config_name']}  {params}")
            stats = compute_statistics(result["scores"])
            if stats:
                lines.append(f"   {stats}")

        _section(lines, f"TOP {top_n} BY WORST RUN")
        for i, result in enumerate(rank_configurations(results, metric="max")[:top_n], 1):
            lines.append(
                f"\n{i}. {result['config_name']}: max {result['max']:.3f}m, "
                f"mean {result['mean']:.3f}m, {result['fallbacks']} fallbacks"
            )

        baseline = next((r for r in results if "baseline" in r["config_name"].lower()), None)
        best = rank_configurations(results)[0]
        if baseline is not None and baseline is not best:
            comparison = compare_configurations(best, baseline)
            _section(lines, "BEST VS BASELINE")
            lines.append(f"\nBest: {best['config_name']} ({best['mean']:.3f}m ± {best['std_dev']:.3f}m)")
            lines.append(f"Baseline: {baseline['config_name']} ({baseline['mean']:.3f}m ± {baseline['std_dev']:.3f}m)")
            lines.append(f"Improvement: {comparison['improvement_pct']:.1f}%")
            if comparison["likely_significant"] is not None:
                verdict = "YES" if comparison["likely_significant"] else "NO"
                lines.append(f"Likely significant: {verdict} (t={comparison['t_statistic']:.2f})")
    else:
        lines.append("\nNo valid configurations found!")

    lines.append("\n" + "=" * 80)
    report = "\n".join(lines)

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report)
        print(f"✓ Report saved to {output_path}")
    return report
