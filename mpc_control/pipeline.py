"""Per-cycle MPC pipeline.

One telemetry event flows through:
    telemetry → local waypoints → polynomial → delayed state → solve → command

Any rejected cycle (malformed telemetry, underdetermined fit, failed solve)
returns the held command: the last accepted actuator values with no
trajectories, so the vehicle never receives stale or garbage actuation.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np
import numpy.typing as npt

from .component_modes import ComponentMode
from .config import MPCConfig
from .data_collector import DataCollector
from .latency import compensate, initial_state
from .optimizer import MPCOptimizer, MPCSolution, OptimizationError
from .packager import SteerCommand, package_command
from .polynomial import CurveFitError, polyfit
from .telemetry import Telemetry, TelemetryError
from .transform import world_to_vehicle


@dataclass
class CycleResult:
    """Outcome of one pipeline pass.

    Attributes:
        command: Command to send (computed, or held on rejection)
        accepted: False if the cycle was rejected
        reason: Rejection reason, empty if accepted
        telemetry: Parsed telemetry, if parsing succeeded
        coeffs: Reference polynomial, if fitting succeeded
        state: State the optimizer started from, if computed
        solution: Optimizer result, if the solve succeeded
    """

    command: SteerCommand
    accepted: bool
    reason: str = ""
    telemetry: Optional[Telemetry] = None
    coeffs: Optional[npt.NDArray[np.float64]] = None
    state: Optional[npt.NDArray[np.float64]] = None
    solution: Optional[MPCSolution] = None


class MPCPipeline:
    """Runs the full controller once per telemetry event.

    Cycles must be processed strictly in order: the warm start and the
    latency model both assume it.

    Attributes:
        config: Immutable controller configuration.
        component_mode: Active optional stages.
        optimizer: Trajectory optimizer (owns the warm-start buffer).
        data_collector: Optional per-cycle CSV recorder.
        held_steering: Last accepted normalized steering.
        held_throttle: Last accepted throttle.
    """

    def __init__(
        self,
        config: Optional[MPCConfig] = None,
        component_mode: Optional[ComponentMode] = None,
        data_collector: Optional[DataCollector] = None,
    ) -> None:
        self.config = config if config is not None else MPCConfig()
        self.component_mode = component_mode if component_mode is not None else ComponentMode()
        self.optimizer = MPCOptimizer(self.config, use_warm_start=self.component_mode.use_warm_start)
        self.data_collector = data_collector

        self.held_steering: float = 0.0
        self.held_throttle: float = 0.0

        self.cycle_count: int = 0
        self.rejected_count: int = 0

    def held_command(self) -> SteerCommand:
        """Command repeating the last accepted actuator values."""
        return SteerCommand(steering_angle=self.held_steering, throttle=self.held_throttle)

    def run_cycle(self, telemetry: Telemetry) -> CycleResult:
        """Compute the command for one validated telemetry event.

        Args:
            telemetry: Validated telemetry.

        Returns:
            Accepted CycleResult.

        Raises:
            CurveFitError: If the waypoints cannot determine the polynomial.
            OptimizationError: If the solve yields no usable actuators.
        """
        cfg = self.config

        local_x, local_y = world_to_vehicle(
            telemetry.ptsx, telemetry.ptsy, telemetry.x, telemetry.y, telemetry.psi
        )
        coeffs = polyfit(local_x, local_y, cfg.poly_degree)

        if self.component_mode.use_latency_compensation:
            state = compensate(
                coeffs,
                telemetry.speed,
                telemetry.steering_angle,
                telemetry.throttle,
                cfg.delay,
                cfg.lf,
            )
        else:
            state = initial_state(coeffs, telemetry.speed)

        solution = self.optimizer.solve(state, coeffs)
        command = package_command(solution, coeffs, cfg.steering_limit)

        return CycleResult(
            command=command,
            accepted=True,
            telemetry=telemetry,
            coeffs=coeffs,
            state=state,
            solution=solution,
        )

    def process(self, data: Dict[str, Any]) -> CycleResult:
        """Run one cycle on a raw telemetry object, holding actuators on rejection.

        Args:
            data: Decoded telemetry JSON object.

        Returns:
            CycleResult; on rejection, ``command`` is the held command.
        """
        self.cycle_count += 1
        telemetry: Optional[Telemetry] = None

        try:
            telemetry = Telemetry.from_message(data)
            result = self.run_cycle(telemetry)
        except (TelemetryError, CurveFitError, OptimizationError) as e:
            self.rejected_count += 1
            self.optimizer.reset_warm_start()
            logging.warning(f"Cycle {self.cycle_count} rejected: {e}")
            result = CycleResult(
                command=self.held_command(),
                accepted=False,
                reason=str(e),
                telemetry=telemetry,
            )
        else:
            self.held_steering = result.command.steering_angle
            self.held_throttle = result.command.throttle

        if self.data_collector is not None:
            self.data_collector.log_cycle(time.time(), result)

        return result
