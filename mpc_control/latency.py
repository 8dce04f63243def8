"""Actuation latency compensation.

Commands take effect one actuation delay after they are computed. The state
handed to the optimizer is therefore the measured state advanced by that
delay, using the same bicycle model the optimizer plans with.

All quantities here are in the vehicle-local frame, where the measured pose is
(0, 0, 0). The reference polynomial is assumed not to change within the delay.
"""

import math
from typing import Sequence

import numpy as np
import numpy.typing as npt

from .model import bicycle_step
from .polynomial import polyeval


def initial_state(coeffs: Sequence[float], v: float) -> npt.NDArray[np.float64]:
    """Local state at the moment of measurement.

    Args:
        coeffs: Reference polynomial, constant term first
        v: Measured speed

    Returns:
        Array (x, y, psi, v, cte, epsi) with cte = f(0) and epsi = -atan(f'(0))
    """
    cte0 = float(polyeval(coeffs, 0.0))
    epsi0 = -math.atan(coeffs[1])
    return np.array([0.0, 0.0, 0.0, v, cte0, epsi0])


def compensate(
    coeffs: Sequence[float],
    v: float,
    delta: float,
    a: float,
    delay: float,
    lf: float,
) -> npt.NDArray[np.float64]:
    """Predict the local state after the actuation delay.

    One Euler step of the bicycle model with the delay as timestep, driven by
    the actuator values that are currently applied.

    Args:
        coeffs: Reference polynomial, constant term first
        v: Measured speed
        delta: Currently applied steering (radians)
        a: Currently applied throttle
        delay: Actuation delay (seconds)
        lf: Distance from center of mass to front axle

    Returns:
        Array (x, y, psi, v, cte, epsi) the optimizer should treat as now
    """
    state = initial_state(coeffs, v)
    return np.array(bicycle_step(state, delta, a, coeffs, delay, lf))
