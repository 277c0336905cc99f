"""Command-line interface for weight sweeps and their reports."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from analysis import statistics, sweep
from mpc_drive.config import load_profile


def parse_param_specs(specs: List[str]) -> Dict[str, List[float]]:
    """Parse ``NAME=v1,v2,...`` specifications.

    Raises:
        ValueError: On a malformed specification.
    """
    parameters: Dict[str, List[float]] = {}
    for spec in specs:
        if "=" not in spec:
            raise ValueError(f"Invalid parameter specification: {spec} (expected NAME=v1,v2,...)")
        name, values_str = spec.split("=", 1)
        try:
            parameters[name.strip()] = [float(v) for v in values_str.split(",") if v.strip()]
        except ValueError:
            raise ValueError(f"Invalid values for {name}: {values_str}") from None
    return parameters


def run_sweep(args: argparse.Namespace) -> int:
    """Run a weight sweep from command line arguments."""
    try:
        parameters = parse_param_specs(args.param or [])
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    if not parameters:
        print("Error: No parameters specified!")
        print("Example: --param cte=500,1000,2000 --param steer_rate=50,200")
        return 1

    ws = sweep.WeightSweep(
        tracks=args.tracks.split(","),
        steps=args.steps,
        invalid_threshold=args.threshold,
        base_config=load_profile(args.profile),
    )
    ws.add_configuration("baseline", {})
    for name, values in parameters.items():
        for value in values:
            ws.add_configuration(f"{name}={value}", {name: value})

    try:
        ws.run()
    except KeyboardInterrupt:
        print("\n\nInterrupted by user.")
        return 1

    csv_path = ws.save_results(Path(args.output) if args.output else None)
    ws.print_summary(top_n=args.top)

    if args.report:
        statistics.generate_report(csv_path, csv_path.with_suffix(".txt"), top_n=args.top)

    print(f"\n✓ Sweep complete! Results saved to {csv_path}")
    return 0


def run_stats(args: argparse.Namespace) -> int:
    """Print or save the report of an existing sweep CSV."""
    csv_path = Path(args.csv)
    if not csv_path.exists():
        print(f"Error: File not found: {csv_path}")
        return 1

    output_path = Path(args.output) if args.output else None
    report = statistics.generate_report(csv_path, output_path, top_n=args.top)
    if not output_path:
        print(report)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the analysis CLI.

    Returns:
        Exit code (0 for success)
    """
    parser = argparse.ArgumentParser(
        description="Cost-weight sweeps for the receding-horizon controller",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sweep the cross-track weight
  python -m analysis.cli sweep --param cte=500,1000,2000 --steps 150

  # Sweep two weights on a custom profile and write a report
  python -m analysis.cli sweep --profile profiles/default.yaml \\
    --param cte=500,2000 --param steer_rate=50,200 --report

  # Report on existing results
  python -m analysis.cli stats results/weight_sweep_20250101_120000.csv
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    sweep_parser = subparsers.add_parser("sweep", help="Run a weight sweep in the simulator")
    sweep_parser.add_argument(
        "--param", action="append", help="Parameter to sweep: NAME=v1,v2,v3 (can specify multiple)"
    )
    sweep_parser.add_argument("--profile", default=None, help="Base YAML vehicle profile")
    sweep_parser.add_argument(
        "--tracks", default="straight,sinusoidal,circle", help="Comma-separated track names"
    )
    sweep_parser.add_argument("--steps", type=int, default=150, help="Control cycles per run (default: 150)")
    sweep_parser.add_argument(
        "--threshold", type=float, default=2.0, help="Invalid mean |cte| threshold in meters (default: 2.0)"
    )
    sweep_parser.add_argument("--output", "-o", help="Output CSV path (default: auto-generated in results/)")
    sweep_parser.add_argument("--report", action="store_true", help="Write a text report next to the CSV")
    sweep_parser.add_argument("--top", type=int, default=10, help="Configurations to show (default: 10)")

    stats_parser = subparsers.add_parser("stats", help="Generate a report from a sweep CSV")
    stats_parser.add_argument("csv", help="Path to sweep results CSV file")
    stats_parser.add_argument("--output", "-o", help="Write the report here instead of printing it")
    stats_parser.add_argument("--top", type=int, default=10, help="Configurations to show (default: 10)")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.command == "sweep":
        return run_sweep(args)
    if args.command == "stats":
        return run_stats(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
