"""Pytest configuration and fixtures for angin tests."""

import pytest
import numpy as np


@pytest.fixture(scope="session")
def rng():
    """Seeded random generator for reproducibility."""
    return np.random.default_rng(42)


@pytest.fixture
def default_params():
    """Default run parameters."""
    return {
        'nx_glob': 100,
        'nz_glob': 50,
        'xlen': 2.0e4,
        'zlen': 1.0e4,
        'hv_beta': 0.05,
        'cfl': 1.5,
        'max_speed': 450.0,
    }


@pytest.fixture
def small_system():
    """Small rising-thermal system for quick tests."""
    from angin import WeatherSystem

    system = WeatherSystem(nx_glob=20, nz_glob=10, data_spec='thermal')
    system.initialize()
    return system


@pytest.fixture
def partitioned_system():
    """Rising thermal split into three partitions."""
    from angin import WeatherSystem

    system = WeatherSystem(nx_glob=24, nz_glob=10, data_spec='thermal', nranks=3)
    system.initialize()
    return system


@pytest.fixture
def rest_system():
    """Balanced atmosphere at rest (injection variant before any exchange)."""
    from angin import WeatherSystem

    system = WeatherSystem(nx_glob=16, nz_glob=20, data_spec='injection', nranks=2)
    system.initialize()
    return system


@pytest.fixture
def gravity_wave_system():
    """Stably stratified atmosphere with a uniform mean wind."""
    from angin import WeatherSystem

    system = WeatherSystem(nx_glob=20, nz_glob=10, data_spec='gravity_waves')
    system.initialize()
    return system
