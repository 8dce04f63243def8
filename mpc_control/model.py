"""
Kinematic bicycle model of the vehicle.

This module provides the discrete motion model shared by the latency
compensator and the trajectory optimizer. The same function advances plain
floats (with the ``math`` module) and builds symbolic constraint expressions
(with the ``casadi`` module), so both consumers use exactly one set of
equations.
"""

import math
from typing import Any, Sequence

from .polynomial import polyderiv, polyeval

STATE_FIELDS = ("x", "y", "psi", "v", "cte", "epsi")
"""Order of the entries in a state vector."""


def bicycle_step(
    state: Sequence[Any],
    delta: Any,
    a: Any,
    coeffs: Sequence[Any],
    dt: float,
    lf: float,
    ops: Any = math,
) -> list:
    """
    Advance a state vector by one Euler step of the kinematic bicycle model.

    The discretized equations are:
        x'    = x + v * cos(psi) * dt
        y'    = y + v * sin(psi) * dt
        psi'  = psi - v * delta / Lf * dt
        v'    = v + a * dt
        cte'  = f(x) - y + v * sin(epsi) * dt
        epsi' = psi - atan(f'(x)) - v * delta / Lf * dt

    where f is the reference polynomial. The turn-rate term is negative:
    positive steering turns the vehicle clockwise (to the right).

    Args:
        state: (x, y, psi, v, cte, epsi) at the current step
        delta: Steering angle (radians)
        a: Throttle / acceleration
        coeffs: Reference polynomial coefficients, constant term first
        dt: Step duration (seconds)
        lf: Distance from center of mass to front axle
        ops: Namespace providing ``cos``, ``sin`` and ``atan``; ``math`` for
             numbers or ``casadi`` for symbolic expressions

    Returns:
        list: (x, y, psi, v, cte, epsi) one step later

    Example:
        >>> bicycle_step([0, 0, 0, 10, 0, 0], 0.0, 1.0, [0, 0, 0, 0], 0.1, 2.67)
        [1.0, 0.0, 0.0, 10.1, 0.0, 0.0]
    """
    x, y, psi, v, cte, epsi = state
    turn = v * delta / lf * dt

    return [
        x + v * ops.cos(psi) * dt,
        y + v * ops.sin(psi) * dt,
        psi - turn,
        v + a * dt,
        polyeval(coeffs, x) - y + v * ops.sin(epsi) * dt,
        psi - ops.atan(polyderiv(coeffs, x)) - turn,
    ]
