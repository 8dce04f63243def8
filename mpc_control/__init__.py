"""MPC Control - Receding-Horizon Trajectory Control for a Simulated Vehicle

Computes steering and throttle commands that track a sparse set of reference
waypoints over a short future horizon, respecting a kinematic bicycle model
and actuator limits.

## Pipeline

Executed once per telemetry event:

### 1. Frame Transformer (transform.py)
Converts world-frame waypoints into the vehicle-local frame (vehicle at the
origin, heading along +x).

### 2. Curve Fitter (polynomial.py)
Fits a degree 3 polynomial to the local waypoints. Its constant term is the
cross-track error at the vehicle; its slope gives the heading error.

### 3. Latency Compensator (latency.py)
Advances the local state by the 100ms actuation delay with one step of the
bicycle model (model.py), so the optimizer plans from where the vehicle will
be when the command takes effect.

### 4. Trajectory Optimizer (optimizer.py)
Solves a nonlinear program over N = 10 steps of dt = 0.1s with IPOPT (via
CasADi): weighted cte, heading error, speed error, actuator magnitude and
actuator rate, subject to the bicycle dynamics and ±25° / ±1 actuator bounds.

### 5. Result Packager (packager.py)
Normalizes steering to [-1, 1] and adds the predicted trajectory and a
sampled reference line for display.

Rejected cycles (malformed telemetry, too few waypoints, failed solve) hold
the previous actuator values.

## Modules

- `config.py` - Constants and the immutable `MPCConfig`
- `telemetry.py` - Telemetry validation
- `pipeline.py` - One full cycle with the failure policy
- `server.py` - Websocket server for the simulator
- `component_modes.py` - Flags to disable latency compensation / warm start
- `data_collector.py` - Per-cycle CSV logging
- `visualization.py`, `plot_results.py` - Post-run plots

## Quick Start

```bash
python -m mpc_control          # listen on ws://127.0.0.1:4567
python -m mpc_control -v --no-record
python -m mpc_control.plot_results --save --no-show
```
"""

__version__ = "0.1.0"

from .config import MPCConfig
from .optimizer import MPCOptimizer, MPCSolution, OptimizationError
from .packager import SteerCommand
from .pipeline import CycleResult, MPCPipeline
from .polynomial import CurveFitError
from .telemetry import Telemetry, TelemetryError

__all__ = [
    "MPCConfig",
    "MPCOptimizer",
    "MPCSolution",
    "OptimizationError",
    "SteerCommand",
    "MPCPipeline",
    "CycleResult",
    "CurveFitError",
    "Telemetry",
    "TelemetryError",
]
