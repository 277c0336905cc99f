"""CSV recording of telemetry and control commands.

Each recorded session gets its own run directory:

    results/run_YYYYMMDD_HHMMSS[_<session>]/
        telemetry.csv   - pose, speed and applied actuation per update
        commands.csv    - outbound command, fallback status and solver stats

The files are flushed after every row so a run can be plotted while it is
still in progress.
"""

import csv
import logging
import math
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO

from .config import TERM_BLUE, TERM_RESET
from .controller import ControlCommand
from .model import Telemetry

logger = logging.getLogger(__name__)

TELEMETRY_COLUMNS = ["timestamp", "x", "y", "psi", "speed", "steering_angle", "throttle", "waypoints"]
COMMAND_COLUMNS = [
    "timestamp",
    "status",
    "steering",
    "throttle",
    "steer_rad",
    "cte",
    "epsi",
    "cost",
    "iterations",
    "solve_time_ms",
    "time_limit_ms",
]


class DataCollector:
    """Manages CSV file creation and logging for one control session.

    Attributes:
        run_dir: Directory path for this run's output files.
        telemetry_output_path: Path of the telemetry CSV.
        commands_output_path: Path of the commands CSV.
    """

    def __init__(
        self, output_dir: str = ".", run_dir: Optional[str] = None, suffix: Optional[str] = None
    ) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates a timestamped
                directory. Can also be set via the RUN_DIR environment variable.
            suffix: Appended to the timestamped directory name so concurrent
                sessions do not share a directory.

        Raises:
            ValueError: If output_dir exists and is not a directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self.telemetry_csv_file: Optional[TextIO] = None
        self.telemetry_csv_writer: Any = None
        self.commands_csv_file: Optional[TextIO] = None
        self.commands_csv_writer: Any = None

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            name = f"run_{timestamp}" if suffix is None else f"run_{timestamp}_{suffix}"
            self.run_dir = output_path / "results" / name

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.telemetry_output_path: Path = self.run_dir / "telemetry.csv"
        self.commands_output_path: Path = self.run_dir / "commands.csv"

    def setup(self) -> None:
        """Open both CSV files and write their headers."""
        self.telemetry_csv_file = open(self.telemetry_output_path, "w", newline="")
        self.telemetry_csv_writer = csv.writer(self.telemetry_csv_file)
        self.telemetry_csv_writer.writerow(TELEMETRY_COLUMNS)
        self.telemetry_csv_file.flush()

        self.commands_csv_file = open(self.commands_output_path, "w", newline="")
        self.commands_csv_writer = csv.writer(self.commands_csv_file)
        self.commands_csv_writer.writerow(COMMAND_COLUMNS)
        self.commands_csv_file.flush()

    def log_telemetry(self, timestamp: float, telemetry: Telemetry) -> None:
        """Log one telemetry update.

        Args:
            timestamp: Receive time (seconds).
            telemetry: Parsed telemetry.
        """
        self.telemetry_csv_writer.writerow(
            [
                timestamp,
                telemetry.pose.x,
                telemetry.pose.y,
                telemetry.pose.psi,
                telemetry.speed,
                telemetry.steering_angle,
                telemetry.throttle,
                telemetry.ptsx.size,
            ]
        )
        if self.telemetry_csv_file:
            self.telemetry_csv_file.flush()

    def log_command(self, timestamp: float, command: ControlCommand) -> None:
        """Log one outbound command with its solver diagnostics.

        Args:
            timestamp: Send time (seconds).
            command: Command produced by the controller.
        """
        self.commands_csv_writer.writerow(
            [
                timestamp,
                command.status,
                command.steering,
                command.throttle,
                command.actuation.steer,
                "" if math.isnan(command.cte) else command.cte,
                "" if math.isnan(command.epsi) else command.epsi,
                "" if math.isnan(command.cost) else command.cost,
                command.iterations,
                command.solve_time * 1000.0,
                "" if math.isnan(command.time_limit) else command.time_limit * 1000.0,
            ]
        )
        if self.commands_csv_file:
            self.commands_csv_file.flush()

    def cleanup(self) -> None:
        """Close the CSV files and log the output location."""
        if self.telemetry_csv_file:
            self.telemetry_csv_file.close()
        if self.commands_csv_file:
            self.commands_csv_file.close()

        logger.info(f"{TERM_BLUE}✓ Saved run data to {self.run_dir}{TERM_RESET}")

    def __enter__(self) -> "DataCollector":
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()
