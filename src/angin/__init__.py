"""
angin: JAX-Accelerated 2D Compressible Stratified Atmosphere Solver

A compact, non-hydrostatic dry dynamical core for rising thermals,
density currents, colliding bubbles and internal gravity waves, built to
benchmark decomposed stencil kernels.

The dry Euler equations with gravity in flux form:
    ∂ρ/∂t    + ∇·(ρv)        = 0
    ∂(ρv)/∂t + ∇·(ρvv + pI)  = -ρg ẑ
    ∂(ρθ)/∂t + ∇·(ρθv)       = 0

closed by p = C0 (ρθ)^γ.

Features:
    - JAX CPU/GPU tendencies with 4th-order reconstruction and hyperviscosity
    - Strang-split 3-stage Runge-Kutta time integration
    - 1-D domain decomposition along x with periodic halo exchange
    - Mass and energy conservation diagnostics
    - NetCDF and CSV output, dark-themed plots and animations

License: MIT
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .core.grid import ConfigurationError
from .core.atmosphere import InitialCondition
from .core.weather_system import WeatherSystem, WeatherParams
from .core.integrator import WeatherIntegrator
from .core.metrics import (
    compute_conservation_metrics,
    compute_drift,
    compute_stability_metrics,
)
from .io.config_manager import ConfigManager
from .io.data_handler import DataHandler, OutputError

__all__ = [
    # Core classes
    "WeatherSystem",
    "WeatherParams",
    "WeatherIntegrator",
    "InitialCondition",
    # Config and data
    "ConfigManager",
    "DataHandler",
    # Errors
    "ConfigurationError",
    "OutputError",
    # Metrics functions
    "compute_conservation_metrics",
    "compute_drift",
    "compute_stability_metrics",
]
