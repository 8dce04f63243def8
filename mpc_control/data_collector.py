"""Data collection and CSV logging for controller cycles.

This module provides CSV data logging for:
- Cycle data (telemetry pose, applied and commanded actuators, errors,
  acceptance and rejection reason)
- Solver diagnostics (status, convergence, cost, iterations, solve time)
"""

import csv
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO

from .config import TERM_BLUE, TERM_RESET

CYCLE_HEADERS = [
    "timestamp",
    "x",
    "y",
    "psi",
    "speed",
    "steering_applied",
    "throttle_applied",
    "steering_cmd",
    "throttle_cmd",
    "cte",
    "epsi",
    "accepted",
    "reason",
]

SOLVER_HEADERS = [
    "timestamp",
    "status",
    "converged",
    "cost",
    "iterations",
    "solve_time_ms",
]


class DataCollector:
    """Manages CSV file creation and logging for controller data.

    This class handles all data logging responsibilities:
    - Creates timestamped output directories
    - Initializes CSV files with headers
    - Writes one row per cycle, and one solver row per solved cycle
    - Ensures proper cleanup on shutdown

    Attributes:
        run_dir: Directory path for this run's output files.
        cycle_csv_file: File handle for cycle data CSV.
        solver_csv_file: File handle for solver diagnostics CSV.
    """

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates timestamped
                directory. Can also be set via RUN_DIR environment variable.

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self.cycle_csv_file: Optional[TextIO] = None
        self.cycle_csv_writer: Any = None
        self.solver_csv_file: Optional[TextIO] = None
        self.solver_csv_writer: Any = None

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            # Create timestamped directory: results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.cycle_output_path: Path = self.run_dir / "cycles.csv"
        self.solver_output_path: Path = self.run_dir / "solver.csv"

    def setup(self) -> None:
        """Initialize CSV files with headers.

        Must be called before writing data.
        """
        self.cycle_csv_file = open(self.cycle_output_path, "w", newline="")
        self.cycle_csv_writer = csv.writer(self.cycle_csv_file)
        self.cycle_csv_writer.writerow(CYCLE_HEADERS)
        self.cycle_csv_file.flush()

        self.solver_csv_file = open(self.solver_output_path, "w", newline="")
        self.solver_csv_writer = csv.writer(self.solver_csv_file)
        self.solver_csv_writer.writerow(SOLVER_HEADERS)
        self.solver_csv_file.flush()

        logging.info(f"{TERM_BLUE}✓ Initialized data collection to {self.run_dir}/{TERM_RESET}")

    def log_cycle(self, timestamp: float, result: Any) -> None:
        """Log one pipeline cycle.

        Fields unavailable for a rejected cycle are written as empty strings.

        Args:
            timestamp: Current time (seconds).
            result: CycleResult from the pipeline.
        """
        telemetry = result.telemetry
        state = result.state

        if telemetry is not None:
            pose = [
                telemetry.x,
                telemetry.y,
                telemetry.psi,
                telemetry.speed,
                telemetry.steering_angle,
                telemetry.throttle,
            ]
        else:
            pose = [""] * 6

        errors = [float(state[4]), float(state[5])] if state is not None else ["", ""]

        self.cycle_csv_writer.writerow(
            [timestamp]
            + pose
            + [result.command.steering_angle, result.command.throttle]
            + errors
            + [int(result.accepted), result.reason]
        )
        if self.cycle_csv_file:
            self.cycle_csv_file.flush()

        if result.solution is not None:
            self.log_solver(timestamp, result.solution)

    def log_solver(self, timestamp: float, solution: Any) -> None:
        """Log solver diagnostics for one solve.

        Args:
            timestamp: Current time (seconds).
            solution: MPCSolution from the optimizer.
        """
        self.solver_csv_writer.writerow(
            [
                timestamp,
                solution.status,
                int(solution.converged),
                solution.cost,
                solution.iterations,
                solution.solve_time * 1000.0,
            ]
        )
        if self.solver_csv_file:
            self.solver_csv_file.flush()

    def cleanup(self) -> None:
        """Close all CSV files and log final output location."""
        if self.cycle_csv_file:
            self.cycle_csv_file.close()
        if self.solver_csv_file:
            self.solver_csv_file.close()

        logging.info(f"{TERM_BLUE}✓ Saved cycle data to {self.run_dir}/{TERM_RESET}")

    def __enter__(self) -> "DataCollector":
        """Context manager entry point.

        Returns:
            Self reference for use in with statement.
        """
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit point - ensures cleanup is called."""
        self.cleanup()
