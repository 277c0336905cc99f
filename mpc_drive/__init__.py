"""MPC Drive - Receding-Horizon Trajectory Control for a Kinematic Bicycle

A model-predictive controller that keeps a simulated car on a waypoint track.
Every telemetry update it re-plans a short horizon of steering and throttle
commands and applies only the first one.

## Control Pipeline

### Step 1: Frame Transform (frame.py)
Expresses the upcoming world-frame waypoints in the vehicle frame, with the
vehicle at the origin facing +x.

### Step 2: Reference Fit (polynomial.py)
Fits a cubic y = f(x) to the local waypoints by least squares (Householder QR).

### Step 3: Latency Compensation (latency.py)
Projects the state forward by the actuation latency, holding the last command,
so the plan starts where the vehicle will be when the command engages.

### Step 4: Horizon Solve (optimizer.py)
Minimises tracking error, speed error, actuator effort and actuator rate over
N steps of the bicycle model, subject to steering and throttle bounds
(CasADi + IPOPT).

### Step 5: Control Loop (controller.py)
Chains the steps, returns the first actuation normalised for the simulator and
applies the fallback policy when the fit or the solve fails.

## Modules

### Core Control
- `config.py` - Documented defaults and immutable vehicle profiles
- `model.py` - Value types and the kinematic bicycle
- `frame.py`, `polynomial.py`, `latency.py`, `optimizer.py`, `controller.py`

### Communication & Data
- `protocol.py` - Simulator event framing
- `server.py` - WebSocket server, one control session per connection
- `data_collector.py` - CSV recording of telemetry and commands

### Offline Tools
- `track.py` - Reference tracks
- `simulator.py` - Closed-loop simulation without the simulator process
- `visualization.py`, `plot_results.py` - Plots of recorded runs

## Quick Start

```bash
python -m mpc_drive --record
python -m mpc_drive.plot_results
```
"""

__version__ = "0.1.0"

from .config import ControllerConfig, CostWeights, FallbackConfig, ServerConfig, load_profile
from .controller import ControlCommand, MPCController
from .data_collector import DataCollector
from .model import Actuation, Pose, Telemetry, VehicleState

__all__ = [
    "Actuation",
    "ControlCommand",
    "ControllerConfig",
    "CostWeights",
    "DataCollector",
    "FallbackConfig",
    "MPCController",
    "Pose",
    "ServerConfig",
    "Telemetry",
    "VehicleState",
    "load_profile",
]
