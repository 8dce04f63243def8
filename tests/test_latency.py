"""
Tests for the bicycle model and actuation latency compensation.
"""

import math

import pytest

from mpc_control.config import LF
from mpc_control.latency import compensate, initial_state
from mpc_control.model import bicycle_step

DELAY = 0.1


def test_bicycle_step_straight_line():
    """With no heading, steering or error, the vehicle just moves along x."""
    nxt = bicycle_step([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], 0.0, 1.0, [0.0, 0.0, 0.0, 0.0], 0.1, LF)
    assert nxt == pytest.approx([1.0, 0.0, 0.0, 10.1, 0.0, 0.0])


def test_positive_steering_turns_clockwise():
    nxt = bicycle_step([0.0, 0.0, 0.0, 20.0, 0.0, 0.0], 0.2, 0.0, [0.0, 0.0, 0.0, 0.0], 0.1, LF)
    assert nxt[2] < 0.0
    assert nxt[2] == pytest.approx(-20.0 * 0.2 / LF * 0.1)


def test_initial_state_errors_come_from_polynomial():
    coeffs = [1.5, 0.2, 0.01, 0.0]
    state = initial_state(coeffs, 12.0)
    assert list(state[:4]) == [0.0, 0.0, 0.0, 12.0]
    assert state[4] == pytest.approx(1.5)
    assert state[5] == pytest.approx(-math.atan(0.2))


def test_zero_speed_only_changes_speed():
    """At v = 0, nothing moves during the delay; only throttle acts."""
    coeffs = [0.8, -0.1, 0.002, 0.0]
    before = initial_state(coeffs, 0.0)
    after = compensate(coeffs, 0.0, 0.3, 0.5, DELAY, LF)

    assert after[0] == pytest.approx(0.0)
    assert after[1] == pytest.approx(0.0)
    assert after[2] == pytest.approx(0.0)
    assert after[3] == pytest.approx(0.5 * DELAY)
    assert after[4] == pytest.approx(before[4])
    assert after[5] == pytest.approx(before[5])


def test_moving_vehicle_advances_by_model():
    coeffs = [1.0, 0.1, 0.0, 0.0]
    v, delta, a = 20.0, 0.05, 0.3
    epsi0 = -math.atan(0.1)

    state = compensate(coeffs, v, delta, a, DELAY, LF)

    assert state[0] == pytest.approx(v * DELAY)
    assert state[1] == pytest.approx(0.0)
    assert state[2] == pytest.approx(-v * delta / LF * DELAY)
    assert state[3] == pytest.approx(v + a * DELAY)
    assert state[4] == pytest.approx(1.0 + v * math.sin(epsi0) * DELAY)
    assert state[5] == pytest.approx(epsi0 - v * delta / LF * DELAY)


def test_zero_delay_is_identity():
    coeffs = [0.4, -0.3, 0.01, 0.0001]
    before = initial_state(coeffs, 15.0)
    after = compensate(coeffs, 15.0, 0.1, 0.7, 0.0, LF)
    assert list(after) == pytest.approx(list(before))
