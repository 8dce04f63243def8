"""
Visualization utilities for recorded controller runs.

This module loads the cycle and solver CSV files written by the data collector
and plots tracking errors, actuator commands, speed and solve time.
"""

import csv
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from .config import PLOT_BLUE, PLOT_CREAM, PLOT_DARK_BLUE, PLOT_ORANGE, SOLVE_TIME_BUDGET


def load_csv_data(filepath: Path) -> Tuple[List[str], List[List[str]]]:
    """Load a CSV file as headers and rows of strings.

    Args:
        filepath: Path to the CSV file.

    Returns:
        Tuple of (headers, rows).

    Raises:
        FileNotFoundError: If the CSV file does not exist.
        ValueError: If the file has no header row.
    """
    if not filepath.exists():
        raise FileNotFoundError(f"CSV file not found: {filepath}")

    with open(filepath, "r", newline="") as f:
        reader = csv.reader(f)
        try:
            headers = next(reader)
        except StopIteration:
            raise ValueError(f"CSV file is empty: {filepath}") from None
        rows = list(reader)

    return headers, rows


def load_csv_to_dict(filepath: Path, numeric: Optional[List[str]] = None) -> Dict[str, np.ndarray]:
    """Load selected numeric columns of a CSV file into arrays.

    Empty or unparsable cells become NaN.

    Args:
        filepath: Path to the CSV file.
        numeric: Columns to load. Default: all columns.

    Returns:
        Dictionary mapping column name to float array.
    """
    headers, rows = load_csv_data(filepath)
    columns = numeric if numeric is not None else headers

    data: Dict[str, np.ndarray] = {}
    for name in columns:
        if name not in headers:
            raise ValueError(f"Column '{name}' not found in {filepath.name}")
        idx = headers.index(name)
        values = []
        for row in rows:
            try:
                values.append(float(row[idx]) if idx < len(row) and row[idx] else np.nan)
            except ValueError:
                values.append(np.nan)
        data[name] = np.array(values)

    return data


def _style_axis(ax: Axes, title: str, ylabel: str) -> None:
    ax.set_facecolor(PLOT_DARK_BLUE)
    for spine in ax.spines.values():
        spine.set_color(PLOT_CREAM)
    ax.tick_params(colors=PLOT_CREAM, which="both")
    ax.xaxis.label.set_color(PLOT_CREAM)
    ax.yaxis.label.set_color(PLOT_CREAM)
    ax.set_title(title, color=PLOT_CREAM)
    ax.set_ylabel(ylabel)
    ax.grid(True, alpha=0.2, color=PLOT_CREAM)


def _legend(ax: Axes) -> None:
    legend = ax.legend(facecolor=PLOT_DARK_BLUE, edgecolor=PLOT_CREAM)
    plt.setp(legend.get_texts(), color=PLOT_CREAM)


def plot_cycles(
    cycles: Dict[str, np.ndarray], title: str = "MPC Run", save_path: Optional[Path] = None
) -> Figure:
    """Plot errors, actuators and speed over time.

    Args:
        cycles: Arrays from cycles.csv ('timestamp', 'cte', 'epsi',
            'steering_cmd', 'throttle_cmd', 'speed', 'accepted').
        title: Plot title prefix.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib figure object.
    """
    fig, (ax1, ax2, ax3) = plt.subplots(3, 1, figsize=(12, 10), sharex=True, facecolor=PLOT_DARK_BLUE)

    t = cycles["timestamp"]
    if len(t) > 0:
        t = t - t[0]

    ax1.plot(t, cycles["cte"], label="cte", color=PLOT_ORANGE)
    ax1.plot(t, cycles["epsi"], label="epsi (rad)", color=PLOT_BLUE)
    _style_axis(ax1, f"{title} - Tracking Errors", "Error")
    _legend(ax1)

    ax2.plot(t, cycles["steering_cmd"], label="steering (normalized)", color=PLOT_ORANGE)
    ax2.plot(t, cycles["throttle_cmd"], label="throttle", color=PLOT_BLUE)
    rejected = cycles["accepted"] == 0
    if np.any(rejected):
        ax2.scatter(t[rejected], cycles["steering_cmd"][rejected], marker="x", color=PLOT_CREAM, label="rejected")
    ax2.set_ylim(-1.1, 1.1)
    _style_axis(ax2, f"{title} - Commands", "Command")
    _legend(ax2)

    ax3.plot(t, cycles["speed"], label="speed", color=PLOT_ORANGE)
    _style_axis(ax3, f"{title} - Speed", "Speed")
    ax3.set_xlabel("Time (s)")
    _legend(ax3)

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_solver(
    solver: Dict[str, np.ndarray],
    budget_ms: Optional[float] = None,
    title: str = "MPC Run",
    save_path: Optional[Path] = None,
) -> Figure:
    """Plot solve time per cycle, with the budget as a reference line."""
    fig, ax = plt.subplots(figsize=(12, 4), facecolor=PLOT_DARK_BLUE)

    t = solver["timestamp"]
    if len(t) > 0:
        t = t - t[0]

    ax.plot(t, solver["solve_time_ms"], label="solve time", color=PLOT_ORANGE)
    if budget_ms is not None:
        ax.axhline(budget_ms, color=PLOT_BLUE, linestyle="--", label="budget")
    _style_axis(ax, f"{title} - Solver", "Solve time (ms)")
    ax.set_xlabel("Time (s)")
    _legend(ax)

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_run_summary(run_dir: Path, save_plots: bool = False, show_plots: bool = True) -> None:
    """Generate summary plots for a complete run.

    Args:
        run_dir: Directory containing cycles.csv and solver.csv.
        save_plots: If True, save plots to run directory.
        show_plots: If True, display plots interactively.

    Raises:
        FileNotFoundError: If required CSV files are not found.
    """
    cycles = load_csv_to_dict(
        run_dir / "cycles.csv",
        ["timestamp", "cte", "epsi", "steering_cmd", "throttle_cmd", "speed", "accepted"],
    )
    solver = load_csv_to_dict(run_dir / "solver.csv", ["timestamp", "solve_time_ms"])

    run_name = run_dir.name
    plot_cycles(
        cycles, title=run_name, save_path=run_dir / "cycles.png" if save_plots else None
    )
    plot_solver(
        solver,
        budget_ms=SOLVE_TIME_BUDGET * 1000.0,
        title=run_name,
        save_path=run_dir / "solver.png" if save_plots else None,
    )

    if show_plots:
        plt.show()
    else:
        plt.close("all")
