#!/usr/bin/env python3
"""
Plot and summarize recorded controller runs.

Runs are the ``run_*`` directories the data collector creates under a results
directory. Without ``--run``, the most recent one is used.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .config import SOLVE_TIME_BUDGET, TERM_BLUE, TERM_ORANGE, TERM_RESET
from .visualization import load_csv_to_dict, plot_run_summary


def find_runs(results_dir: Path) -> List[Path]:
    """Run directories under ``results_dir``, oldest first.

    Raises:
        FileNotFoundError: If ``results_dir`` does not exist.
    """
    if not results_dir.is_dir():
        raise FileNotFoundError(f"Results directory not found: {results_dir}")
    return sorted(p for p in results_dir.iterdir() if p.is_dir() and p.name.startswith("run_"))


def resolve_run(results_dir: Path, name: Optional[str] = None) -> Path:
    """Pick a run by name, or the latest run.

    Raises:
        FileNotFoundError: If the named run, or any run, is missing.
    """
    if name:
        run_dir = results_dir / name
        if not run_dir.is_dir():
            raise FileNotFoundError(f"Run directory not found: {run_dir}")
        return run_dir

    runs = find_runs(results_dir)
    if not runs:
        raise FileNotFoundError(f"No run directories found in {results_dir}")
    return runs[-1]


def summarize_run(run_dir: Path) -> Dict[str, float]:
    """Aggregate statistics for one recorded run.

    Args:
        run_dir: Directory containing cycles.csv and solver.csv.

    Returns:
        Dictionary with cycle counts, acceptance rate, RMS tracking errors
        over accepted cycles, and solve-time statistics (ms).
    """
    cycles = load_csv_to_dict(run_dir / "cycles.csv", ["cte", "epsi", "accepted"])
    solver = load_csv_to_dict(run_dir / "solver.csv", ["converged", "solve_time_ms"])

    accepted = cycles["accepted"] == 1
    n_cycles = len(cycles["accepted"])
    solve_ms = solver["solve_time_ms"]

    def rms(values: np.ndarray) -> float:
        return float(np.sqrt(np.mean(values**2))) if len(values) else float("nan")

    return {
        "cycles": n_cycles,
        "rejected": int(n_cycles - np.count_nonzero(accepted)),
        "acceptance_rate": float(np.mean(accepted)) if n_cycles else float("nan"),
        "cte_rms": rms(cycles["cte"][accepted]),
        "epsi_rms": rms(cycles["epsi"][accepted]),
        "solves": len(solve_ms),
        "converged_rate": float(np.mean(solver["converged"] == 1)) if len(solve_ms) else float("nan"),
        "solve_ms_mean": float(np.mean(solve_ms)) if len(solve_ms) else float("nan"),
        "solve_ms_max": float(np.max(solve_ms)) if len(solve_ms) else float("nan"),
        "over_budget": int(np.count_nonzero(solve_ms > SOLVE_TIME_BUDGET * 1000.0)),
    }


def _log_summary(run_dir: Path, summary: Dict[str, float]) -> None:
    logging.info(f"{TERM_BLUE}{run_dir.name}{TERM_RESET}")
    logging.info(
        f"  cycles: {summary['cycles']} ({summary['rejected']} rejected, "
        f"{summary['acceptance_rate'] * 100:.1f}% accepted)"
    )
    logging.info(f"  RMS cte: {summary['cte_rms']:.3f}   RMS epsi: {summary['epsi_rms']:.4f} rad")
    logging.info(
        f"  solve: mean {summary['solve_ms_mean']:.1f}ms, max {summary['solve_ms_max']:.1f}ms, "
        f"{summary['converged_rate'] * 100:.1f}% converged"
    )
    if summary["over_budget"]:
        logging.info(f"  {TERM_ORANGE}{summary['over_budget']} solves over budget{TERM_RESET}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Plot and summarize recorded MPC controller runs",
        epilog="Example: python -m mpc_control.plot_results --save --no-show",
    )
    parser.add_argument("--run", help="Run directory name (default: most recent)")
    parser.add_argument(
        "--results-dir", default="results", help="Directory holding run_* folders (default: results)"
    )
    parser.add_argument("--save", action="store_true", help="Write cycles.png and solver.png into the run")
    parser.add_argument("--no-show", action="store_true", help="Skip interactive display")
    parser.add_argument("--summary", action="store_true", help="Print statistics only, no plots")
    parser.add_argument("--list", action="store_true", help="List recorded runs and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point. Returns the process exit code."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = build_parser().parse_args(argv)
    results_dir = Path(args.results_dir)

    try:
        if args.list:
            runs = find_runs(results_dir)
            if not runs:
                logging.info(f"No runs in {results_dir}")
            for run in runs:
                logging.info(run.name)
            return 0

        run_dir = resolve_run(results_dir, args.run)
        _log_summary(run_dir, summarize_run(run_dir))
        if not args.summary:
            plot_run_summary(run_dir=run_dir, save_plots=args.save, show_plots=not args.no_show)
            if args.save:
                logging.info(f"{TERM_BLUE}✓ Saved plots to {run_dir}/{TERM_RESET}")
    except (FileNotFoundError, ValueError) as e:
        logging.error(f"Error: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
