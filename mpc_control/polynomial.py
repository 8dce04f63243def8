"""Reference path polynomial fitting and evaluation.

Coefficients are stored constant term first, so ``coeffs[0]`` is the value of
the path at the vehicle's local origin (the initial cross-track error) and
``coeffs[1]`` its slope there.

``polyeval`` and ``polyderiv`` use plain arithmetic only; they accept numbers,
numpy arrays and casadi symbols alike.
"""

from typing import Any, Sequence

import numpy as np
import numpy.typing as npt


class CurveFitError(ValueError):
    """Raised when the waypoints cannot determine a polynomial of the requested degree."""


def polyfit(
    xs: npt.ArrayLike, ys: npt.ArrayLike, degree: int = 3
) -> npt.NDArray[np.float64]:
    """Least-squares fit of a polynomial to a set of points.

    Args:
        xs: Point x-coordinates
        ys: Point y-coordinates (same length as xs)
        degree: Polynomial degree

    Returns:
        Array of degree + 1 coefficients, constant term first.

    Raises:
        CurveFitError: If there are fewer than degree + 1 points, fewer than
            degree + 1 distinct x-coordinates, non-finite points, or the
            least-squares solve fails or is not finite.
    """
    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)

    if x.shape != y.shape or x.ndim != 1:
        raise CurveFitError(f"Point arrays must be 1-D and equal length, got {x.shape} and {y.shape}")

    required = degree + 1
    if len(x) < required:
        raise CurveFitError(
            f"Need at least {required} points for a degree {degree} fit, got {len(x)}"
        )
    if len(np.unique(x)) < required:
        raise CurveFitError(
            f"Need at least {required} distinct x values for a degree {degree} fit"
        )

    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        raise CurveFitError("Points contain non-finite coordinates")

    try:
        coeffs = np.polynomial.polynomial.polyfit(x, y, degree)
    except np.linalg.LinAlgError as e:
        raise CurveFitError(f"Least-squares fit failed: {e}") from e

    if not np.all(np.isfinite(coeffs)):
        raise CurveFitError("Polynomial fit produced non-finite coefficients")

    return coeffs


def polyeval(coeffs: Sequence[Any], x: Any) -> Any:
    """Evaluate the polynomial at x (Horner's scheme)."""
    result = coeffs[-1]
    for c in reversed(coeffs[:-1]):
        result = result * x + c
    return result


def polyderiv(coeffs: Sequence[Any], x: Any) -> Any:
    """Evaluate the first derivative of the polynomial at x."""
    degree = len(coeffs) - 1
    if degree < 1:
        return 0.0 * x
    result = degree * coeffs[degree]
    for power in range(degree - 1, 0, -1):
        result = result * x + power * coeffs[power]
    return result
