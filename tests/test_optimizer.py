"""
Tests for the MPC trajectory optimizer.

These run the real IPOPT solver on small problems.
"""

import numpy as np
import pytest

from mpc_control.config import LF, MPCConfig
from mpc_control.model import bicycle_step
from mpc_control.optimizer import MPCOptimizer, MPCSolution, OptimizationError

# Generous limits so slow machines still converge
TEST_CONFIG = MPCConfig(max_iter=500, max_cpu_time=5.0, time_budget=5.0)

STRAIGHT = [0.0, 0.0, 0.0, 0.0]
CURVE = [0.5, -0.05, 0.004, -0.00002]


def _offset_state(cte=2.0, epsi=0.1, v=25.0):
    return [0.0, 0.0, 0.0, v, cte, epsi]


@pytest.fixture(scope="module")
def optimizer():
    return MPCOptimizer(TEST_CONFIG, use_warm_start=False)


def test_on_reference_at_target_speed_needs_no_actuation(optimizer):
    """Zero error at reference speed on a straight line: doing nothing is optimal."""
    state = [0.0, 0.0, 0.0, TEST_CONFIG.ref_speed, 0.0, 0.0]
    solution = optimizer.solve(state, STRAIGHT)

    assert solution.converged
    assert solution.steering == pytest.approx(0.0, abs=1e-3)
    assert solution.throttle == pytest.approx(0.0, abs=1e-3)
    assert solution.cost == pytest.approx(0.0, abs=1e-3)


def test_solution_shapes(optimizer):
    solution = optimizer.solve(_offset_state(), CURVE)
    n = TEST_CONFIG.horizon
    assert solution.states.shape == (n + 1, 6)
    assert solution.actuators.shape == (n, 2)
    assert solution.predicted_x.shape == (n,)
    assert solution.to_vector().shape == (2 + 2 * n,)


def test_first_state_equals_initial_state(optimizer):
    state = _offset_state()
    solution = optimizer.solve(state, CURVE)
    np.testing.assert_allclose(solution.states[0], state, atol=1e-6)


def test_actuators_within_bounds(optimizer):
    """A large offset saturates steering but never beyond the bound."""
    solution = optimizer.solve(_offset_state(cte=8.0, epsi=0.4, v=40.0), CURVE)
    assert np.all(np.abs(solution.actuators[:, 0]) <= TEST_CONFIG.steering_limit)
    assert np.all(np.abs(solution.actuators[:, 1]) <= TEST_CONFIG.throttle_limit)


def test_predicted_states_follow_the_model(optimizer):
    solution = optimizer.solve(_offset_state(), CURVE)
    assert solution.converged

    for t in range(TEST_CONFIG.horizon):
        delta, a = solution.actuators[t]
        expected = bicycle_step(solution.states[t], delta, a, CURVE, TEST_CONFIG.dt, LF)
        np.testing.assert_allclose(solution.states[t + 1], expected, atol=1e-3)


def test_below_reference_speed_accelerates(optimizer):
    solution = optimizer.solve([0.0, 0.0, 0.0, 10.0, 0.0, 0.0], STRAIGHT)
    assert solution.throttle > 0.5


def test_positive_cte_steers_left(optimizer):
    """Reference to the left of the vehicle: steering is negative."""
    solution = optimizer.solve([0.0, 0.0, 0.0, 20.0, 2.0, 0.0], [2.0, 0.0, 0.0, 0.0])
    assert solution.steering < 0.0


def test_iteration_limit_returns_best_iterate():
    cfg = MPCConfig(max_iter=1, max_cpu_time=5.0, time_budget=5.0)
    solution = MPCOptimizer(cfg).solve(_offset_state(cte=3.0), CURVE)
    assert not solution.converged
    assert solution.status == "Maximum_Iterations_Exceeded"
    assert np.all(np.isfinite(solution.actuators))


def test_warm_start_stored_and_reset():
    opt = MPCOptimizer(TEST_CONFIG)
    assert not opt.has_warm_start

    opt.solve(_offset_state(), CURVE)
    assert opt.has_warm_start

    opt.reset_warm_start()
    assert not opt.has_warm_start


def test_warm_start_disabled_never_stores():
    opt = MPCOptimizer(TEST_CONFIG, use_warm_start=False)
    opt.solve(_offset_state(), CURVE)
    assert not opt.has_warm_start


def test_warm_and_cold_solves_agree():
    warm = MPCOptimizer(TEST_CONFIG)
    cold = MPCOptimizer(TEST_CONFIG, use_warm_start=False)
    warm.solve(_offset_state(cte=1.0), CURVE)

    state = _offset_state(cte=0.8, epsi=0.05)
    a = warm.solve(state, CURVE)
    b = cold.solve(state, CURVE)
    assert a.steering == pytest.approx(b.steering, abs=1e-2)
    assert a.throttle == pytest.approx(b.throttle, abs=1e-2)


def test_non_finite_input_clears_warm_start():
    opt = MPCOptimizer(TEST_CONFIG)
    opt.solve(_offset_state(), CURVE)

    with pytest.raises(OptimizationError):
        opt.solve([0.0, 0.0, 0.0, float("nan"), 0.0, 0.0], CURVE)
    assert not opt.has_warm_start


def test_wrong_shapes_raise(optimizer):
    with pytest.raises(ValueError):
        optimizer.solve([0.0, 0.0, 0.0], CURVE)
    with pytest.raises(ValueError):
        optimizer.solve(_offset_state(), [0.0, 1.0])


def test_optimization_error_is_runtime_error():
    assert issubclass(OptimizationError, RuntimeError)


def test_solution_vector_layout():
    states = np.arange(3 * 6, dtype=float).reshape(3, 6)
    actuators = np.array([[0.1, 0.5], [0.2, 0.6]])
    solution = MPCSolution(
        states=states,
        actuators=actuators,
        cost=1.0,
        status="Solve_Succeeded",
        converged=True,
        iterations=5,
        solve_time=0.01,
    )
    np.testing.assert_allclose(solution.to_vector(), [0.1, 0.5, 6.0, 7.0, 12.0, 13.0])


def test_time_limit_returns_best_iterate():
    """A solve cut off by the CPU or wall-clock limit still yields usable actuators."""
    cfg = MPCConfig(max_iter=500, max_cpu_time=1e-6, time_budget=1e-6)
    solution = MPCOptimizer(cfg).solve(_offset_state(cte=3.0), CURVE)

    assert not solution.converged
    assert solution.status in ("Maximum_CpuTime_Exceeded", "Maximum_WallTime_Exceeded")
    assert np.all(np.isfinite(solution.actuators))
    assert np.all(np.abs(solution.actuators[:, 0]) <= cfg.steering_limit)


def test_warm_start_guess_is_previous_plan_shifted_one_step():
    opt = MPCOptimizer(TEST_CONFIG)
    previous = opt.solve(_offset_state(), CURVE)
    n = TEST_CONFIG.horizon

    new_state = np.array(_offset_state(cte=1.5, epsi=0.05))
    guess = opt._initial_guess(new_state)
    states = guess[: TEST_CONFIG.n_states].reshape(n + 1, 6)
    actuators = guess[TEST_CONFIG.n_states :].reshape(n, 2)

    np.testing.assert_allclose(states[0], new_state)
    np.testing.assert_allclose(states[1:n], previous.states[2:], atol=1e-6)
    np.testing.assert_allclose(states[n], previous.states[n], atol=1e-6)
    np.testing.assert_allclose(actuators[:-1], previous.actuators[1:], atol=1e-6)
    np.testing.assert_allclose(actuators[-1], previous.actuators[-1], atol=1e-6)
