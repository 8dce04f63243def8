"""
Tests for component isolation flags.
"""

from mpc_control.component_modes import ComponentMode, parse_component_flags


def test_all_components_enabled_by_default():
    mode, remaining = parse_component_flags([])
    assert mode.use_latency_compensation
    assert mode.use_warm_start
    assert remaining == []


def test_flags_disable_components_and_pass_through_the_rest():
    mode, remaining = parse_component_flags(["--no-latency", "--port", "5000", "--no-warm-start"])
    assert not mode.use_latency_compensation
    assert not mode.use_warm_start
    assert remaining == ["--port", "5000"]


def test_description_lists_active_stages():
    assert "Latency" in str(ComponentMode())
    assert "MPC(warm)" in str(ComponentMode())
    description = str(ComponentMode(use_latency_compensation=False, use_warm_start=False))
    assert "Latency" not in description
    assert "MPC(cold)" in description


def test_to_dict():
    assert ComponentMode(use_warm_start=False).to_dict() == {
        "use_latency_compensation": True,
        "use_warm_start": False,
    }
