"""Validation of telemetry messages received from the simulator."""

import math
from dataclasses import dataclass
from typing import Any, Dict, List

SCALAR_FIELDS = ("x", "y", "psi", "speed", "steering_angle", "throttle")


class TelemetryError(ValueError):
    """Raised when a telemetry message is missing fields or inconsistent."""


@dataclass(frozen=True)
class Telemetry:
    """One telemetry event.

    Attributes:
        ptsx: Waypoint world x-coordinates, in path order
        ptsy: Waypoint world y-coordinates, in path order
        x: Vehicle world x position
        y: Vehicle world y position
        psi: Vehicle heading (radians)
        speed: Vehicle speed
        steering_angle: Currently applied steering (radians)
        throttle: Currently applied throttle
    """

    ptsx: List[float]
    ptsy: List[float]
    x: float
    y: float
    psi: float
    speed: float
    steering_angle: float
    throttle: float

    @classmethod
    def from_message(cls, data: Dict[str, Any]) -> "Telemetry":
        """Parse and validate the data object of a telemetry event.

        Args:
            data: Decoded JSON object from the simulator.

        Returns:
            Validated Telemetry.

        Raises:
            TelemetryError: If a field is missing, not numeric or not finite,
                or the waypoint arrays are empty or of different lengths.
        """
        if not isinstance(data, dict):
            raise TelemetryError(f"Telemetry must be an object, got {type(data).__name__}")

        ptsx = _number_list(data, "ptsx")
        ptsy = _number_list(data, "ptsy")
        if len(ptsx) != len(ptsy):
            raise TelemetryError(
                f"Waypoint arrays differ in length: ptsx={len(ptsx)}, ptsy={len(ptsy)}"
            )
        if not ptsx:
            raise TelemetryError("Telemetry contains no waypoints")

        scalars = {name: _number(data, name) for name in SCALAR_FIELDS}
        return cls(ptsx=ptsx, ptsy=ptsy, **scalars)


def _number(data: Dict[str, Any], name: str) -> float:
    if name not in data:
        raise TelemetryError(f"Telemetry missing field '{name}'")
    return _as_finite(data[name], name)


def _number_list(data: Dict[str, Any], name: str) -> List[float]:
    if name not in data:
        raise TelemetryError(f"Telemetry missing field '{name}'")
    values = data[name]
    if not isinstance(values, (list, tuple)):
        raise TelemetryError(f"Field '{name}' must be a list, got {type(values).__name__}")
    return [_as_finite(v, name) for v in values]


def _as_finite(value: Any, name: str) -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TelemetryError(f"Field '{name}' must be numeric, got {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise TelemetryError(f"Field '{name}' is not finite: {value!r}")
    return number
