"""
Tests for the weight sweep and its reports.
"""

import math

import pytest

from analysis.cli import main as analysis_main
from analysis.cli import parse_param_specs
from analysis.statistics import (
    compare_configurations,
    compute_statistics,
    generate_report,
    load_sweep_results,
    rank_configurations,
)
from analysis.sweep import ConfigResult, WeightSweep, apply_overrides


def test_apply_overrides(config):
    tuned = apply_overrides(config, {"cte": 50, "horizon": 8.0, "reference_speed": 12})

    assert tuned.weights.cte == 50.0
    assert tuned.horizon == 8
    assert isinstance(tuned.horizon, int)
    assert tuned.reference_speed == 12.0
    assert tuned.weights.epsi == config.weights.epsi


def test_apply_overrides_rejects_unknown_names(config):
    with pytest.raises(ValueError, match="Unknown sweep parameter"):
        apply_overrides(config, {"gain": 1.0})


def test_config_result_statistics():
    result = ConfigResult("cte=500", {"cte": 500.0}, [0.1, 0.2, 0.3, 0.4], 4, 0, 1)

    assert result.mean == pytest.approx(0.25)
    assert result.median == pytest.approx(0.25)
    assert result.min_score == 0.1
    assert result.max_score == 0.4
    assert result.is_valid
    assert result.consistency_score() == pytest.approx(result.mean + 2 * result.std_dev)


def test_config_result_validity():
    assert not ConfigResult("a", {}, [0.1, 3.0], 2, 0, 0).is_valid
    assert not ConfigResult("b", {}, [0.1], 2, 1, 0).is_valid
    empty = ConfigResult("c", {}, [], 2, 2, 0)
    assert not empty.is_valid
    assert empty.mean == float("inf")


def test_sweep_requires_configurations():
    with pytest.raises(ValueError):
        WeightSweep().run()


def test_small_sweep_round_trip(config, tmp_path):
    ws = WeightSweep(tracks=("straight",), lateral_offsets=(0.0, 0.5), steps=5, base_config=config)
    ws.add_configuration("baseline", {})
    ws.add_configuration("cte=500", {"cte": 500.0})
    ws.add_configuration("bogus", {"not_a_weight": 1.0})

    results = ws.run()

    assert [r.config_name for r in results] == ["baseline", "cte=500", "bogus"]
    assert len(results[0].scores) == 2
    assert results[0].is_valid
    assert not results[2].is_valid

    csv_path = ws.save_results(tmp_path / "sweep.csv")
    loaded = load_sweep_results(csv_path)

    assert [r["config_name"] for r in loaded] == ["baseline", "cte=500", "bogus"]
    assert loaded[1]["param_names"] == ["cte"]
    assert loaded[0]["scores"] == pytest.approx(results[0].scores, abs=1e-6)
    assert loaded[2]["is_valid"] is False

    report = generate_report(csv_path, tmp_path / "report.txt", top_n=2)
    assert "WEIGHT SWEEP REPORT" in report
    assert "Configurations: 3 (2 valid" in report
    assert (tmp_path / "report.txt").read_text() == report


def test_parameter_sweep_plan(config):
    ws = WeightSweep(parameters={"steer_rate": [10.0, 100.0]}, tracks=("straight",), lateral_offsets=(0.0,), steps=3, base_config=config)

    results = ws.run()

    assert [r.config_name for r in results] == ["steer_rate=10.0", "steer_rate=100.0"]


def test_compute_statistics_ignores_non_finite():
    stats = compute_statistics([1.0, 2.0, 3.0, math.inf, math.nan])

    assert stats.n == 3
    assert stats.mean == pytest.approx(2.0)
    assert stats.ci_95_lower < 2.0 < stats.ci_95_upper
    assert compute_statistics([math.nan]) is None


def test_rank_and_compare():
    results = [
        {"config_name": "baseline", "is_valid": True, "consistency_score": 0.5, "mean": 0.4, "median": 0.4,
         "std_dev": 0.05, "scores": [0.35, 0.4, 0.45]},
        {"config_name": "better", "is_valid": True, "consistency_score": 0.3, "mean": 0.2, "median": 0.2,
         "std_dev": 0.05, "scores": [0.15, 0.2, 0.25]},
        {"config_name": "broken", "is_valid": False, "consistency_score": 0.1, "mean": 0.1, "median": 0.1,
         "std_dev": 0.0, "scores": [0.1]},
    ]

    ranked = rank_configurations(results)
    assert [r["config_name"] for r in ranked] == ["better", "baseline"]

    comparison = compare_configurations(ranked[0], ranked[1])
    assert comparison["improvement_pct"] == pytest.approx(50.0)
    assert comparison["likely_significant"] is True


def test_parse_param_specs():
    assert parse_param_specs(["cte=1,2", "dt=0.05"]) == {"cte": [1.0, 2.0], "dt": [0.05]}
    with pytest.raises(ValueError):
        parse_param_specs(["cte"])
    with pytest.raises(ValueError):
        parse_param_specs(["cte=a,b"])


def test_cli_stats_missing_file(tmp_path):
    assert analysis_main(["stats", str(tmp_path / "missing.csv")]) == 1


def test_cli_sweep_without_parameters():
    assert analysis_main(["sweep"]) == 1
