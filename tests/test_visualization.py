"""
Tests for run plotting, using the non-interactive backend.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from mpc_drive.controller import STATUS_HOLD, STATUS_OK, ControlCommand
from mpc_drive.data_collector import DataCollector
from mpc_drive.model import Actuation, Pose, Telemetry
from mpc_drive.plot_results import find_latest_run, main as plot_main
from mpc_drive.plot_styles import load_csv_columns
from mpc_drive.config import SOLVER_TIME_LIMIT
from mpc_drive.visualization import plot_run_summary, recorded_time_limit


@pytest.fixture
def recorded_run(tmp_path):
    run_dir = tmp_path / "results" / "run_20250101_120000_s1"
    with DataCollector(run_dir=str(run_dir)) as collector:
        for i in range(12):
            telemetry = Telemetry(
                ptsx=np.arange(6, dtype=np.float64),
                ptsy=np.zeros(6),
                pose=Pose(float(i), 0.1 * i, 0.0),
                speed=10.0,
            )
            status = STATUS_HOLD if i == 5 else STATUS_OK
            command = ControlCommand(
                steering=0.1,
                throttle=0.2,
                actuation=Actuation(0.04, 0.2),
                status=status,
                cte=0.0 if status == STATUS_HOLD else 0.1 * i,
                epsi=0.01,
                cost=1.0,
                iterations=5,
                solve_time=0.003,
                time_limit=0.25,
            )
            collector.log_telemetry(100.0 + 0.1 * i, telemetry)
            collector.log_command(100.05 + 0.1 * i, command)
    return run_dir


def test_load_csv_columns(recorded_run):
    columns, statuses = load_csv_columns(recorded_run / "commands.csv")

    assert columns["steering"].shape == (12,)
    assert statuses[5] == STATUS_HOLD
    assert "status" not in columns


def test_load_csv_columns_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_csv_columns(tmp_path / "nope.csv")


def test_plot_run_summary_saves_figures(recorded_run):
    plot_run_summary(recorded_run, save_plots=True, show_plots=False)

    for name in ("trajectory.png", "tracking_error.png", "commands.png", "solve_time.png"):
        assert (recorded_run / name).stat().st_size > 0


def test_find_latest_run(recorded_run, tmp_path):
    older = tmp_path / "results" / "run_20240101_000000"
    older.mkdir()

    assert find_latest_run(tmp_path / "results") == recorded_run


def test_find_latest_run_requires_runs(tmp_path):
    with pytest.raises(FileNotFoundError):
        find_latest_run(tmp_path)


def test_plot_cli_saves_named_run(recorded_run, tmp_path):
    plot_main(["--results-dir", str(tmp_path / "results"), "--run", recorded_run.name, "--save", "--no-show"])

    assert (recorded_run / "commands.png").exists()


def test_plot_cli_unknown_run(tmp_path):
    (tmp_path / "results").mkdir()
    with pytest.raises(SystemExit):
        plot_main(["--results-dir", str(tmp_path / "results"), "--run", "run_missing", "--no-show"])


def test_solve_time_budget_comes_from_the_run(recorded_run):
    commands, _ = load_csv_columns(recorded_run / "commands.csv")

    assert recorded_time_limit(commands) == pytest.approx(0.25)


def test_solve_time_budget_defaults_without_a_recording():
    commands = {"time_limit_ms": np.array([np.nan, np.nan])}

    assert recorded_time_limit(commands) == SOLVER_TIME_LIMIT
    assert recorded_time_limit({}) == SOLVER_TIME_LIMIT
