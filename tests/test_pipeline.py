"""
End-to-end tests for one controller cycle.
"""

import math

import numpy as np
import pytest

from mpc_control.component_modes import ComponentMode
from mpc_control.config import MPCConfig
from mpc_control.optimizer import OptimizationError
from mpc_control.pipeline import MPCPipeline

TEST_CONFIG = MPCConfig(max_iter=500, max_cpu_time=5.0, time_budget=5.0)


def _make_pipeline(**mode):
    return MPCPipeline(TEST_CONFIG, component_mode=ComponentMode(**mode))


def _straight_message(px=10.0, py=5.0, psi=0.3, speed=0.0):
    """Waypoints every 10 units along the vehicle's heading."""
    ds = np.arange(0.0, 60.0, 10.0)
    return {
        "ptsx": list(px + ds * math.cos(psi)),
        "ptsy": list(py + ds * math.sin(psi)),
        "x": px,
        "y": py,
        "psi": psi,
        "speed": speed,
        "steering_angle": 0.0,
        "throttle": 0.0,
    }


def _left_curve_message(k, speed=20.0):
    """Vehicle at the origin heading +x, road bending left as y = k x^2."""
    xs = np.arange(0.0, 70.0, 10.0)
    return {
        "ptsx": list(xs),
        "ptsy": list(k * xs**2),
        "x": 0.0,
        "y": 0.0,
        "psi": 0.0,
        "speed": speed,
        "steering_angle": 0.0,
        "throttle": 0.0,
    }


def test_straight_line_ahead_goes_straight_and_accelerates():
    pipeline = _make_pipeline()
    result = pipeline.process(_straight_message())

    assert result.accepted
    command = result.command
    assert abs(command.steering_angle) < 1e-2
    assert command.throttle > 0.0
    assert len(command.mpc_x) == TEST_CONFIG.horizon
    assert np.all(np.abs(command.mpc_y) < 1e-2)
    assert len(command.next_x) == 25
    assert np.all(np.abs(command.next_y) < 1e-6)


def test_left_curve_steers_negative_and_more_for_tighter_curves():
    gentle = _make_pipeline().process(_left_curve_message(0.002))
    tight = _make_pipeline().process(_left_curve_message(0.006))

    assert gentle.accepted and tight.accepted
    assert gentle.command.steering_angle < 0.0
    assert tight.command.steering_angle < gentle.command.steering_angle


def test_command_within_normalized_range():
    result = _make_pipeline().process(_left_curve_message(0.02, speed=50.0))
    assert -1.0 <= result.command.steering_angle <= 1.0
    assert -1.0 <= result.command.throttle <= 1.0


def test_latency_compensation_shifts_start_state():
    with_latency = _make_pipeline().process(_straight_message(speed=30.0))
    without = _make_pipeline(use_latency_compensation=False).process(_straight_message(speed=30.0))

    assert with_latency.state[0] == pytest.approx(30.0 * TEST_CONFIG.delay)
    assert without.state[0] == 0.0


def test_accepted_cycle_updates_held_command():
    pipeline = _make_pipeline()
    result = pipeline.process(_left_curve_message(0.004))

    assert pipeline.held_steering == result.command.steering_angle
    assert pipeline.held_throttle == result.command.throttle
    assert pipeline.optimizer.has_warm_start


def test_too_few_waypoints_holds_previous_command():
    pipeline = _make_pipeline()
    first = pipeline.process(_left_curve_message(0.004))

    message = _left_curve_message(0.004)
    message["ptsx"] = message["ptsx"][:3]
    message["ptsy"] = message["ptsy"][:3]
    result = pipeline.process(message)

    assert not result.accepted
    assert result.reason
    assert result.command.steering_angle == first.command.steering_angle
    assert result.command.throttle == first.command.throttle
    assert result.command.mpc_x == []
    assert result.command.next_x == []
    assert pipeline.held_steering == first.command.steering_angle
    assert not pipeline.optimizer.has_warm_start
    assert pipeline.rejected_count == 1
    assert pipeline.cycle_count == 2


def test_malformed_telemetry_is_rejected():
    pipeline = _make_pipeline()
    message = _straight_message()
    del message["psi"]

    result = pipeline.process(message)

    assert not result.accepted
    assert result.telemetry is None
    assert result.command.steering_angle == 0.0
    assert result.command.throttle == 0.0


def test_solver_failure_is_rejected(monkeypatch):
    pipeline = _make_pipeline()

    def failing_solve(state, coeffs):
        raise OptimizationError("Solver failed with status Infeasible_Problem_Detected")

    monkeypatch.setattr(pipeline.optimizer, "solve", failing_solve)
    result = pipeline.process(_straight_message())

    assert not result.accepted
    assert "Infeasible" in result.reason
    assert result.telemetry is not None
    assert result.solution is None


def test_recovers_after_rejection():
    pipeline = _make_pipeline()
    pipeline.process({"ptsx": [0.0], "ptsy": [0.0]})
    result = pipeline.process(_left_curve_message(0.004))
    assert result.accepted
    assert result.command.steering_angle < 0.0


def test_overflowing_waypoints_are_rejected():
    pipeline = _make_pipeline()
    first = pipeline.process(_left_curve_message(0.004))

    result = pipeline.process(
        {
            "ptsx": [1e120, 2e120, 3e120, 4e120],
            "ptsy": [0.0, 1.0, 2.0, 3.0],
            "x": 0.0,
            "y": 0.0,
            "psi": 0.0,
            "speed": 10.0,
            "steering_angle": 0.0,
            "throttle": 0.0,
        }
    )

    assert not result.accepted
    assert result.command.steering_angle == first.command.steering_angle
    assert not pipeline.optimizer.has_warm_start
