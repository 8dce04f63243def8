"""Configuration parameters for the MPC trajectory controller.

This module centralizes all configuration parameters including:
- Vehicle geometry and actuator limits
- Horizon length and timestep
- Cost function weights
- Solver limits
- Websocket server settings

Constants are process-wide and never mutated at runtime. The optimizer receives
them bundled in an immutable ``MPCConfig`` so alternate weight profiles can be
built with ``dataclasses.replace`` without touching module state.
"""

import math
from dataclasses import dataclass, fields

# ============================================================================
# Vehicle Parameters
# ============================================================================

LF = 2.67
"""Distance from the vehicle's center of mass to its front axle.

Obtained by measuring the radius formed by driving the simulator vehicle in a
circle at constant steering angle and velocity on flat terrain, then tuning Lf
until a model-simulated circle matched that radius. Larger values make the
heading less sensitive to steering."""

STEERING_LIMIT_DEG = 25.0
"""Steering bound in degrees. Steering is solved in [-25°, 25°]."""

STEERING_LIMIT = math.radians(STEERING_LIMIT_DEG)
"""Steering bound in radians (0.436332).

Also the scale factor between native steering and the normalized [-1, 1]
steering value sent to the simulator."""

THROTTLE_LIMIT = 1.0
"""Throttle / acceleration bound. Throttle is solved and sent in [-1, 1]."""

STATE_LIMIT = 1.0e19
"""Bound applied to unconstrained state variables.

IPOPT treats magnitudes at or above 1e19 as infinite."""


# ============================================================================
# Horizon and Latency
# ============================================================================

HORIZON_STEPS = 10
"""Number of discrete steps N in the prediction horizon.

Tuning rationale:
- 10 steps at 0.1s gives a one second preview
- Longer horizons add variables without improving tracking, since the
  polynomial fit is only trustworthy near the vehicle
"""

TIMESTEP = 0.1
"""Duration dt of one horizon step (seconds)."""

ACTUATION_DELAY_MS = 100
"""Delay between issuing a command and the vehicle acting on it (milliseconds)."""

ACTUATION_DELAY = ACTUATION_DELAY_MS / 1000.0
"""Actuation delay in seconds, used as the latency compensator's timestep."""

REFERENCE_SPEED = 60.0
"""Speed the optimizer drives toward (simulator speed units).

Keeps the solution from trivially stopping the vehicle to zero out the
tracking errors."""


# ============================================================================
# Cost Weights
# ============================================================================

W_CTE = 2000.0
"""Weight of the squared cross-track error."""

W_EPSI = 2000.0
"""Weight of the squared heading error."""

W_SPEED = 1.0
"""Weight of the squared deviation from the reference speed."""

W_STEERING = 50.0
"""Weight of the squared steering magnitude.

Kept well above the throttle weight: heading changes compound through the
path tracking terms."""

W_THROTTLE = 5.0
"""Weight of the squared throttle magnitude."""

W_STEERING_RATE = 200.0
"""Weight of the squared change in steering between consecutive steps."""

W_THROTTLE_RATE = 10.0
"""Weight of the squared change in throttle between consecutive steps."""


# ============================================================================
# Curve Fitting and Display
# ============================================================================

POLY_DEGREE = 3
"""Degree of the reference polynomial fitted to the local waypoints."""

REFERENCE_LINE_POINTS = 25
"""Number of reference line samples sent back for display."""

REFERENCE_LINE_SPACING = 2.5
"""Distance along local x between reference line samples."""


# ============================================================================
# Solver Limits
# ============================================================================

SOLVER_MAX_ITER = 100
"""IPOPT iteration cap per solve."""

SOLVER_MAX_CPU_TIME = 0.5
"""IPOPT CPU time cap per solve (seconds).

The solve is not interruptible from outside; this cap is what keeps a
difficult cycle from hanging the control loop."""

SOLVER_TOL = 1e-6
"""IPOPT convergence tolerance."""

SOLVER_ACCEPTABLE_TOL = 1e-4
"""IPOPT acceptable tolerance for early termination."""

SOLVE_TIME_BUDGET = 0.5
"""Wall-clock budget for one solve (seconds). Overruns are reported."""


# ============================================================================
# Visualization Colors
# ============================================================================

PLOT_ORANGE = "#f74823"
"""Primary color - used for actual / commanded signals."""

PLOT_BLUE = "#2374f7"
"""Secondary color - used for reference and predicted signals."""

PLOT_CREAM = "#fffdee"
"""Light color for text and labels on dark backgrounds."""

PLOT_DARK_BLUE = "#0d1b2a"
"""Dark background color."""

# Terminal color codes (ANSI escape sequences)
TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for orange (RGB: 247, 72, 35)."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for blue (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# Websocket Configuration
# ============================================================================

WS_HOST = "127.0.0.1"
"""Interface the controller listens on for the simulator."""

WS_PORT = 4567
"""Port the simulator connects to."""


@dataclass(frozen=True)
class MPCConfig:
    """Immutable bundle of everything the optimizer and pipeline need.

    Defaults reproduce the module constants above.
    """

    horizon: int = HORIZON_STEPS
    dt: float = TIMESTEP
    lf: float = LF
    delay: float = ACTUATION_DELAY
    steering_limit: float = STEERING_LIMIT
    throttle_limit: float = THROTTLE_LIMIT
    ref_speed: float = REFERENCE_SPEED
    poly_degree: int = POLY_DEGREE

    w_cte: float = W_CTE
    w_epsi: float = W_EPSI
    w_speed: float = W_SPEED
    w_steering: float = W_STEERING
    w_throttle: float = W_THROTTLE
    w_steering_rate: float = W_STEERING_RATE
    w_throttle_rate: float = W_THROTTLE_RATE

    max_iter: int = SOLVER_MAX_ITER
    max_cpu_time: float = SOLVER_MAX_CPU_TIME
    tol: float = SOLVER_TOL
    acceptable_tol: float = SOLVER_ACCEPTABLE_TOL
    time_budget: float = SOLVE_TIME_BUDGET

    def __post_init__(self) -> None:
        if self.horizon < 2:
            raise ValueError(f"horizon must be at least 2 steps, got {self.horizon}")
        if self.poly_degree < 1:
            raise ValueError(f"poly_degree must be at least 1, got {self.poly_degree}")
        for name in ("dt", "lf", "steering_limit", "throttle_limit", "max_cpu_time", "time_budget"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.delay < 0:
            raise ValueError(f"delay must be non-negative, got {self.delay}")
        for f in fields(self):
            if f.name.startswith("w_") and getattr(self, f.name) < 0:
                raise ValueError(f"{f.name} must be non-negative, got {getattr(self, f.name)}")

    @property
    def n_states(self) -> int:
        """Number of state variables s_0..s_N (6 per step)."""
        return 6 * (self.horizon + 1)

    @property
    def n_actuators(self) -> int:
        """Number of actuator variables a_0..a_{N-1} (2 per step)."""
        return 2 * self.horizon

    @property
    def n_vars(self) -> int:
        return self.n_states + self.n_actuators
