"""
Tests for the conservation and stability diagnostics.

Run with: pytest tests/test_metrics.py -v
"""

import numpy as np
import pytest

from angin import (
    WeatherSystem,
    compute_conservation_metrics,
    compute_drift,
    compute_stability_metrics,
)
from angin.core.atmosphere import CV, GAMMA, C0, P0, RD, CP
from angin.core.grid import HALO, ID_DENS


class TestConservationMetrics:
    """Test global mass and energy sums."""

    def test_conservation_metrics_keys(self, small_system):
        metrics = compute_conservation_metrics(small_system)
        for key in ('mass', 'kinetic_energy', 'internal_energy', 'total_energy'):
            assert key in metrics
            assert isinstance(metrics[key], float)

    def test_total_is_sum(self, small_system):
        metrics = compute_conservation_metrics(small_system)
        assert metrics['total_energy'] == pytest.approx(
            metrics['kinetic_energy'] + metrics['internal_energy']
        )

    def test_rest_state_mass(self, rest_system):
        metrics = compute_conservation_metrics(rest_system)
        grid = rest_system.grid
        column = np.sum(rest_system.background.dens_cell[HALO:HALO + grid.nz_glob])

        assert metrics['mass'] == pytest.approx(column * grid.nx_glob * grid.dx * grid.dz, rel=1e-12)
        assert metrics['kinetic_energy'] == 0.0

    def test_internal_energy_formula(self, rest_system):
        metrics = compute_conservation_metrics(rest_system)
        grid = rest_system.grid
        bg = rest_system.background
        rho = bg.dens_cell[HALO:HALO + grid.nz_glob]
        theta = bg.theta_cell[HALO:HALO + grid.nz_glob]
        p = C0 * (rho * theta) ** GAMMA
        temp = theta / (P0 / p) ** (RD / CP)
        expected = np.sum(rho * CV * temp) * grid.nx_glob * grid.dx * grid.dz

        assert metrics['internal_energy'] == pytest.approx(expected, rel=1e-12)

    def test_kinetic_energy_of_mean_wind(self, gravity_wave_system):
        metrics = compute_conservation_metrics(gravity_wave_system)
        assert metrics['kinetic_energy'] > 0.0
        # ke = rho (u^2 + w^2) with u = 15 m/s
        ratio = metrics['kinetic_energy'] / (metrics['mass'] * 15.0**2)
        assert ratio == pytest.approx(1.0, rel=1e-10)

    def test_partitioned_equals_single(self, partitioned_system):
        single = WeatherSystem(nx_glob=24, nz_glob=10, data_spec='thermal').initialize()
        a = compute_conservation_metrics(single)
        b = compute_conservation_metrics(partitioned_system)
        for key in a:
            assert a[key] == pytest.approx(b[key], rel=1e-12)

    def test_explicit_buffers(self, small_system):
        part = small_system.partitions[0]
        perturbed = part.state.copy()
        perturbed[ID_DENS, HALO, HALO] += 1.0

        base = compute_conservation_metrics(small_system)
        other = compute_conservation_metrics(small_system, [perturbed])
        cell_area = small_system.grid.dx * small_system.grid.dz

        assert other['mass'] - base['mass'] == pytest.approx(cell_area, rel=1e-6)

    def test_does_not_mutate_state(self, small_system):
        before = small_system.partitions[0].state.copy()
        compute_conservation_metrics(small_system)
        compute_stability_metrics(small_system)
        np.testing.assert_array_equal(small_system.partitions[0].state, before)

    def test_uninitialized(self):
        system = WeatherSystem(nx_glob=20, nz_glob=10)
        with pytest.raises(ValueError, match="not initialized"):
            compute_conservation_metrics(system)


class TestDrift:
    """Test relative drift."""

    def test_drift_values(self):
        initial = {'mass': 2.0, 'total_energy': 4.0}
        final = {'mass': 2.002, 'total_energy': 3.996}
        drift = compute_drift(initial, final)

        assert drift['mass_drift'] == pytest.approx(1e-3)
        assert drift['energy_drift'] == pytest.approx(-1e-3)

    def test_zero_drift(self, small_system):
        metrics = compute_conservation_metrics(small_system)
        drift = compute_drift(metrics, metrics)
        assert drift['mass_drift'] == 0.0
        assert drift['energy_drift'] == 0.0


class TestStabilityMetrics:
    """Test stability-related metrics."""

    def test_stability_metrics_keys(self, small_system):
        metrics = compute_stability_metrics(small_system)
        expected = [
            'max_u', 'max_w', 'max_sound_speed', 'cfl_x', 'cfl_z',
            'cfl_effective', 'min_density', 'theta_pert_min', 'theta_pert_max',
            'is_finite', 'dt',
        ]
        for key in expected:
            assert key in metrics

    def test_rest_state(self, rest_system):
        metrics = compute_stability_metrics(rest_system)

        assert metrics['max_u'] == 0.0
        assert metrics['max_w'] == 0.0
        assert metrics['is_finite'] is True
        assert metrics['dt'] == pytest.approx(rest_system.dt)
        # Sound speed near the ground is about 347 m/s
        assert 300.0 < metrics['max_sound_speed'] < 400.0
        spacing = min(rest_system.grid.dx, rest_system.grid.dz)
        expected_cfl = metrics['max_sound_speed'] * rest_system.dt / spacing
        assert metrics['cfl_effective'] == pytest.approx(expected_cfl)

    def test_effective_cfl_below_target(self, small_system):
        metrics = compute_stability_metrics(small_system)
        assert 0.0 < metrics['cfl_effective'] < small_system.params.cfl

    def test_thermal_perturbation_range(self, small_system):
        metrics = compute_stability_metrics(small_system)
        assert metrics['theta_pert_max'] > 0.0
        assert metrics['theta_pert_max'] <= 3.0
        assert metrics['theta_pert_min'] == pytest.approx(0.0, abs=1e-10)

    def test_mean_wind(self, gravity_wave_system):
        metrics = compute_stability_metrics(gravity_wave_system, dt=1.0)
        assert metrics['max_u'] == pytest.approx(15.0, rel=1e-10)
        assert metrics['dt'] == 1.0

    def test_non_finite_detected(self, small_system):
        part = small_system.partitions[0]
        corrupted = part.state.copy()
        corrupted[ID_DENS, HALO + 1, HALO + 1] = np.nan

        metrics = compute_stability_metrics(small_system, buffers=[corrupted])
        assert metrics['is_finite'] is False
        assert np.all(np.isfinite(part.state))
