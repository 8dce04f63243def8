"""Model predictive trajectory optimizer.

This module formulates the receding-horizon tracking problem as a nonlinear
program and solves it with IPOPT through CasADi:

- Decision variables: states s_0..s_N (6 each) and actuators a_0..a_{N-1}
  (steering, throttle), stacked as [s_0, ..., s_N, a_0, ..., a_{N-1}]
- Equality constraints: s_0 equals the latency-compensated state, and every
  transition follows the kinematic bicycle model
- Bounds: steering within ±25°, throttle within ±1, states free
- Objective: weighted squared cte, epsi, speed error, actuator magnitude and
  actuator rate

The problem is built symbolically once per optimizer; each solve only swaps
the parameter vector (initial state and polynomial coefficients), so the
polynomial is a frozen input for the whole horizon.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence

import casadi as ca
import numpy as np
import numpy.typing as npt

from .config import STATE_LIMIT, MPCConfig
from .model import bicycle_step

BEST_ITERATE_STATUSES = frozenset(
    {
        "Solved_To_Acceptable_Level",
        "Maximum_Iterations_Exceeded",
        "Maximum_CpuTime_Exceeded",
        "Maximum_WallTime_Exceeded",
    }
)
"""IPOPT statuses that still leave a usable (if not optimal) iterate."""


class OptimizationError(RuntimeError):
    """Raised when a solve yields no usable actuator values."""


@dataclass
class MPCSolution:
    """Result of one solve.

    Attributes:
        states: (N+1, 6) predicted states, row t = (x, y, psi, v, cte, epsi)
        actuators: (N, 2) planned actuators, row t = (steering rad, throttle)
        cost: Objective value at the returned iterate
        status: IPOPT return status
        converged: True if IPOPT reported success
        iterations: IPOPT iteration count
        solve_time: Wall-clock solve duration (seconds)
    """

    states: npt.NDArray[np.float64]
    actuators: npt.NDArray[np.float64]
    cost: float
    status: str
    converged: bool
    iterations: int
    solve_time: float

    @property
    def steering(self) -> float:
        """Immediate steering command (radians)."""
        return float(self.actuators[0, 0])

    @property
    def throttle(self) -> float:
        """Immediate throttle command."""
        return float(self.actuators[0, 1])

    @property
    def predicted_x(self) -> npt.NDArray[np.float64]:
        """Predicted local x for steps 1..N."""
        return self.states[1:, 0]

    @property
    def predicted_y(self) -> npt.NDArray[np.float64]:
        """Predicted local y for steps 1..N."""
        return self.states[1:, 1]

    def to_vector(self) -> npt.NDArray[np.float64]:
        """Flat solution vector [steering, throttle, x_1, y_1, ..., x_N, y_N]."""
        points = np.column_stack([self.predicted_x, self.predicted_y]).ravel()
        return np.concatenate([[self.steering, self.throttle], points])


class MPCOptimizer:
    """Nonlinear MPC solver with an owned warm-start buffer.

    The warm-start buffer holds the previous cycle's full decision vector;
    the next solve starts from it shifted forward by one step.
    It is cleared by ``reset_warm_start`` and whenever a solve fails, so a
    failed or skipped cycle never seeds the next one.

    Attributes:
        config: Immutable horizon, model, weight and solver configuration.
        use_warm_start: If False, every solve starts from the neutral guess.
    """

    def __init__(self, config: Optional[MPCConfig] = None, use_warm_start: bool = True) -> None:
        """Build the symbolic problem and the IPOPT solver.

        Args:
            config: Optimizer configuration. Default: ``MPCConfig()``.
            use_warm_start: Seed each solve with the previous solution. Default: True.
        """
        self.config = config if config is not None else MPCConfig()
        self.use_warm_start = use_warm_start
        self._warm_start: Optional[npt.NDArray[np.float64]] = None

        self._solver = self._build_solver()
        self._lbx, self._ubx = self._build_bounds()

    @property
    def has_warm_start(self) -> bool:
        return self._warm_start is not None

    def reset_warm_start(self) -> None:
        """Discard the cached solution; the next solve uses the neutral guess."""
        self._warm_start = None

    def _build_solver(self) -> ca.Function:
        cfg = self.config
        n = cfg.horizon
        n_coeffs = cfg.poly_degree + 1

        # Decision variables and parameters
        X = ca.SX.sym("X", 6, n + 1)
        U = ca.SX.sym("U", 2, n)
        P = ca.SX.sym("P", 6 + n_coeffs)
        coeffs = [P[6 + i] for i in range(n_coeffs)]

        cost = 0
        # Tracking and reference speed
        for t in range(n + 1):
            cost += cfg.w_cte * X[4, t] ** 2
            cost += cfg.w_epsi * X[5, t] ** 2
            cost += cfg.w_speed * (X[3, t] - cfg.ref_speed) ** 2

        # Actuator magnitude
        for t in range(n):
            cost += cfg.w_steering * U[0, t] ** 2
            cost += cfg.w_throttle * U[1, t] ** 2

        # Actuator rate
        for t in range(n - 1):
            cost += cfg.w_steering_rate * (U[0, t + 1] - U[0, t]) ** 2
            cost += cfg.w_throttle_rate * (U[1, t + 1] - U[1, t]) ** 2

        g = [X[:, 0] - P[0:6]]
        for t in range(n):
            state = [X[i, t] for i in range(6)]
            next_state = bicycle_step(state, U[0, t], U[1, t], coeffs, cfg.dt, cfg.lf, ops=ca)
            g.append(X[:, t + 1] - ca.vertcat(*next_state))

        nlp = {
            "x": ca.vertcat(ca.reshape(X, -1, 1), ca.reshape(U, -1, 1)),
            "f": cost,
            "g": ca.vertcat(*g),
            "p": P,
        }

        opts = {
            "ipopt.print_level": 0,
            "ipopt.sb": "yes",
            "ipopt.max_iter": cfg.max_iter,
            "ipopt.max_cpu_time": cfg.max_cpu_time,
            "ipopt.max_wall_time": cfg.time_budget,
            "ipopt.tol": cfg.tol,
            "ipopt.acceptable_tol": cfg.acceptable_tol,
            "print_time": 0,
            "error_on_fail": False,
        }
        return ca.nlpsol("mpc", "ipopt", nlp, opts)

    def _build_bounds(self):
        cfg = self.config
        lbx = np.full(cfg.n_vars, -STATE_LIMIT)
        ubx = np.full(cfg.n_vars, STATE_LIMIT)

        # Actuators are interleaved (steering, throttle) after the states
        lbx[cfg.n_states::2] = -cfg.steering_limit
        ubx[cfg.n_states::2] = cfg.steering_limit
        lbx[cfg.n_states + 1::2] = -cfg.throttle_limit
        ubx[cfg.n_states + 1::2] = cfg.throttle_limit
        return lbx, ubx

    def _initial_guess(self, state: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
        cfg = self.config
        if self.use_warm_start and self._warm_start is not None:
            # Previous plan advanced one step, last step repeated
            states = self._warm_start[: cfg.n_states].reshape(cfg.horizon + 1, 6)
            actuators = self._warm_start[cfg.n_states :].reshape(cfg.horizon, 2)
            guess = np.concatenate(
                [
                    np.vstack([states[1:], states[-1:]]).ravel(),
                    np.vstack([actuators[1:], actuators[-1:]]).ravel(),
                ]
            )
        else:
            guess = np.zeros(cfg.n_vars)
            guess[: cfg.n_states] = np.tile(state, cfg.horizon + 1)
        guess[:6] = state
        return guess

    def solve(self, state: Sequence[float], coeffs: Sequence[float]) -> MPCSolution:
        """Solve one horizon from the given state.

        Args:
            state: Latency-compensated (x, y, psi, v, cte, epsi)
            coeffs: Reference polynomial, constant term first

        Returns:
            MPCSolution for this cycle. ``converged`` is False when IPOPT
            stopped early but left a usable iterate.

        Raises:
            ValueError: If state or coeffs have the wrong size.
            OptimizationError: If there is no usable iterate.
        """
        cfg = self.config
        x0 = np.asarray(state, dtype=float)
        c = np.asarray(coeffs, dtype=float)

        if x0.shape != (6,):
            raise ValueError(f"State must have 6 entries, got shape {x0.shape}")
        if c.shape != (cfg.poly_degree + 1,):
            raise ValueError(
                f"Expected {cfg.poly_degree + 1} polynomial coefficients, got shape {c.shape}"
            )
        if not (np.all(np.isfinite(x0)) and np.all(np.isfinite(c))):
            self.reset_warm_start()
            raise OptimizationError("Non-finite initial state or coefficients")

        start = time.perf_counter()
        try:
            result = self._solver(
                x0=self._initial_guess(x0),
                lbx=self._lbx,
                ubx=self._ubx,
                lbg=0.0,
                ubg=0.0,
                p=np.concatenate([x0, c]),
            )
        except RuntimeError as e:
            self.reset_warm_start()
            raise OptimizationError(f"Solver raised: {e}") from e
        solve_time = time.perf_counter() - start

        stats = self._solver.stats()
        status = str(stats.get("return_status", "unknown"))
        converged = bool(stats.get("success", False))
        iterations = int(stats.get("iter_count", -1))

        if not converged and status not in BEST_ITERATE_STATUSES:
            self.reset_warm_start()
            raise OptimizationError(f"Solver failed with status {status}")

        z = np.asarray(result["x"].full(), dtype=float).ravel()
        cost = float(result["f"])
        if not (np.all(np.isfinite(z)) and np.isfinite(cost)):
            self.reset_warm_start()
            raise OptimizationError(f"Solver returned non-finite iterate (status {status})")

        if not converged:
            logging.warning(f"Solver stopped early ({status}), using best iterate")
        if solve_time > cfg.time_budget:
            logging.warning(
                f"Solve took {solve_time * 1000:.1f}ms, budget is {cfg.time_budget * 1000:.0f}ms"
            )
        logging.debug(f"Solve: status={status} iter={iterations} cost={cost:.3f} time={solve_time * 1000:.1f}ms")

        if self.use_warm_start:
            self._warm_start = z.copy()

        states = z[: cfg.n_states].reshape(cfg.horizon + 1, 6)
        # IPOPT may relax bounds by its bound_relax_factor
        actuators = z[cfg.n_states:].reshape(cfg.horizon, 2)
        actuators = np.column_stack(
            [
                np.clip(actuators[:, 0], -cfg.steering_limit, cfg.steering_limit),
                np.clip(actuators[:, 1], -cfg.throttle_limit, cfg.throttle_limit),
            ]
        )

        return MPCSolution(
            states=states,
            actuators=actuators,
            cost=cost,
            status=status,
            converged=converged,
            iterations=iterations,
            solve_time=solve_time,
        )
