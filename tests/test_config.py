"""
Tests for controller configuration.
"""

import dataclasses
import math

import pytest

from mpc_control.config import MPCConfig


def test_defaults():
    cfg = MPCConfig()
    assert cfg.horizon == 10
    assert cfg.dt == pytest.approx(0.1)
    assert cfg.lf == pytest.approx(2.67)
    assert cfg.delay == pytest.approx(0.1)
    assert cfg.steering_limit == pytest.approx(math.radians(25))
    assert cfg.throttle_limit == pytest.approx(1.0)


def test_decision_vector_size():
    cfg = MPCConfig()
    assert cfg.n_states == 6 * 11
    assert cfg.n_actuators == 2 * 10
    assert cfg.n_vars == 86


def test_replace_creates_new_config():
    cfg = MPCConfig()
    short = dataclasses.replace(cfg, horizon=5)
    assert short.horizon == 5
    assert short.n_vars == 6 * 6 + 2 * 5
    assert cfg.horizon == 10


def test_config_is_frozen():
    cfg = MPCConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.horizon = 20


@pytest.mark.parametrize(
    "overrides",
    [
        {"horizon": 1},
        {"dt": 0.0},
        {"lf": -1.0},
        {"delay": -0.1},
        {"steering_limit": 0.0},
        {"w_cte": -1.0},
        {"poly_degree": 0},
    ],
)
def test_invalid_values_raise(overrides):
    with pytest.raises(ValueError):
        MPCConfig(**overrides)
