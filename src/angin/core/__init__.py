"""
Angin Core Module.

2D compressible stratified atmosphere with JAX-accelerated tendencies.

Components:
    - jax_config: 64-bit JAX setup and GPU check
    - grid: Grid, decomposition and state layout
    - atmosphere: Hydrostatic background and initial conditions
    - WeatherSystem: Run context (partitions, buffers, elapsed time)
    - halo: Ghost-cell exchange
    - tendencies: Flux and tendency evaluation
    - WeatherIntegrator: Strang-split Runge-Kutta time integration
    - metrics: Conservation and stability diagnostics

Example:
    >>> from angin.core import WeatherSystem, WeatherIntegrator
    >>> system = WeatherSystem(nx_glob=100, nz_glob=50, data_spec='density_current')
    >>> system.initialize()
    >>> result = WeatherIntegrator().run(system, sim_time=100.0)
"""

from . import jax_config
from .grid import ConfigurationError, Direction, Grid, StateLayout, Topology, decompose
from .atmosphere import InitialCondition, Background
from .weather_system import WeatherSystem, WeatherParams, Partition
from .integrator import WeatherIntegrator
from . import metrics

__all__ = [
    'ConfigurationError',
    'Direction',
    'Grid',
    'StateLayout',
    'Topology',
    'decompose',
    'InitialCondition',
    'Background',
    'WeatherSystem',
    'WeatherParams',
    'Partition',
    'WeatherIntegrator',
    'metrics',
]
