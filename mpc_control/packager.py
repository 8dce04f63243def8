"""Conversion of an optimizer solution into the command sent to the simulator.

Steering is normalized to [-1, 1] by dividing by the steering bound; throttle
passes through. The predicted trajectory (green line in the simulator) and a
fixed-stride sample of the reference polynomial (yellow line) are included
for display only; both are in vehicle-local coordinates.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np

from .config import REFERENCE_LINE_POINTS, REFERENCE_LINE_SPACING
from .optimizer import MPCSolution
from .polynomial import polyeval


@dataclass
class SteerCommand:
    """One cycle's output to the simulator."""

    steering_angle: float
    throttle: float
    mpc_x: List[float] = field(default_factory=list)
    mpc_y: List[float] = field(default_factory=list)
    next_x: List[float] = field(default_factory=list)
    next_y: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "steering_angle": self.steering_angle,
            "throttle": self.throttle,
            "mpc_x": self.mpc_x,
            "mpc_y": self.mpc_y,
            "next_x": self.next_x,
            "next_y": self.next_y,
        }


def reference_line(
    coeffs: Sequence[float],
    num_points: int = REFERENCE_LINE_POINTS,
    spacing: float = REFERENCE_LINE_SPACING,
) -> Tuple[List[float], List[float]]:
    """Sample the reference polynomial at x = 0, spacing, 2 * spacing, ...

    Args:
        coeffs: Reference polynomial, constant term first
        num_points: Number of samples
        spacing: Distance between samples along local x

    Returns:
        Tuple of (x values, y values)
    """
    xs = spacing * np.arange(num_points)
    ys = polyeval(np.asarray(coeffs, dtype=float), xs)
    return xs.tolist(), np.asarray(ys, dtype=float).tolist()


def package_command(
    solution: MPCSolution, coeffs: Sequence[float], steering_limit: float
) -> SteerCommand:
    """Build the simulator command from a solution.

    Args:
        solution: Optimizer result for this cycle
        coeffs: Reference polynomial used for the solve
        steering_limit: Steering bound in radians (normalization scale)

    Returns:
        SteerCommand with normalized steering
    """
    next_x, next_y = reference_line(coeffs)

    return SteerCommand(
        steering_angle=solution.steering / steering_limit,
        throttle=solution.throttle,
        mpc_x=solution.predicted_x.tolist(),
        mpc_y=solution.predicted_y.tolist(),
        next_x=next_x,
        next_y=next_y,
    )
