"""
Diagnostics for the stratified atmosphere.

    - Conservation metrics (mass, kinetic + internal energy)
    - Relative drift between two conservation snapshots
    - Stability metrics (wind maxima, sound speed, effective CFL)

All functions are read-only: they reduce over the interior cells of every
partition and never modify a state buffer. Mass is conserved to round-off
by the finite-volume scheme; total energy slowly decreases because the
hyperviscosity is dissipative.
"""

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .atmosphere import C0, CP, CV, GAMMA, P0, RD


def _buffers_of(system, buffers: Optional[Sequence[np.ndarray]]) -> List[np.ndarray]:
    if not system._initialized:
        raise ValueError("Weather system not initialized. Call initialize() first.")
    if buffers is None:
        return [part.state for part in system.partitions]
    return list(buffers)


# ============================================================================
# CONSERVATION METRICS
# ============================================================================

def compute_conservation_metrics(
    system,
    buffers: Optional[Sequence[np.ndarray]] = None
) -> Dict[str, float]:
    """
    Global mass and energy summed over all partitions.

        mass = sum rho dx dz
        ke   = sum rho (u^2 + w^2) dx dz
        ie   = sum rho cv T dx dz,   T = theta / (p0 / p)^(Rd/cp)

    Args:
        system: Initialized WeatherSystem
        buffers: Optional per-partition buffers (defaults to each `state`)

    Returns:
        Dictionary with 'mass', 'kinetic_energy', 'internal_energy' and
        'total_energy'
    """
    cell_area = system.grid.dx * system.grid.dz

    mass = 0.0
    ke = 0.0
    ie = 0.0
    for part, q in zip(system.partitions, _buffers_of(system, buffers)):
        rho, u, w, theta = system.get_primitive(part, q)
        p = C0 * np.power(rho * theta, GAMMA)
        temp = theta / np.power(P0 / p, RD / CP)

        mass += float(np.sum(rho)) * cell_area
        ke += float(np.sum(rho * (u**2 + w**2))) * cell_area
        ie += float(np.sum(rho * CV * temp)) * cell_area

    return {
        'mass': mass,
        'kinetic_energy': ke,
        'internal_energy': ie,
        'total_energy': ke + ie,
    }


def compute_drift(initial: Dict[str, float], final: Dict[str, float]) -> Dict[str, float]:
    """
    Relative drift (final - initial) / initial of mass and total energy.
    """
    return {
        'mass_drift': (final['mass'] - initial['mass']) / initial['mass'],
        'energy_drift': (final['total_energy'] - initial['total_energy']) / initial['total_energy'],
    }


# ============================================================================
# STABILITY METRICS
# ============================================================================

def compute_stability_metrics(
    system,
    dt: Optional[float] = None,
    buffers: Optional[Sequence[np.ndarray]] = None
) -> Dict[str, Any]:
    """
    Compute stability-related metrics.

    The effective CFL number uses the actual signal speed |v| + c_s rather
    than the fixed `max_speed` bound the time step is derived from. A
    non-finite value anywhere in the interior is reported through
    'is_finite'; the run itself is never interrupted.

    Args:
        system: Initialized WeatherSystem
        dt: Time step (defaults to the system's fixed dt)
        buffers: Optional per-partition buffers

    Returns:
        Dictionary of stability metrics
    """
    if dt is None:
        dt = system.dt
    dx, dz = system.grid.dx, system.grid.dz
    theta_bar = system.background.theta_cell

    max_u = 0.0
    max_w = 0.0
    max_cs = 0.0
    cfl_x = 0.0
    cfl_z = 0.0
    min_rho = np.inf
    th_min = np.inf
    th_max = -np.inf
    finite = True

    for part, q in zip(system.partitions, _buffers_of(system, buffers)):
        rho, u, w, theta = system.get_primitive(part, q)
        p = C0 * np.power(rho * theta, GAMMA)
        cs = np.sqrt(GAMMA * p / rho)
        theta_pert = theta - theta_bar[part.layout.rows][:, None]

        finite = finite and bool(np.all(np.isfinite(q[part.layout.interior])))
        max_u = max(max_u, float(np.max(np.abs(u))))
        max_w = max(max_w, float(np.max(np.abs(w))))
        max_cs = max(max_cs, float(np.max(cs)))
        cfl_x = max(cfl_x, float(np.max(np.abs(u) + cs)) * dt / dx)
        cfl_z = max(cfl_z, float(np.max(np.abs(w) + cs)) * dt / dz)
        min_rho = min(min_rho, float(np.min(rho)))
        th_min = min(th_min, float(np.min(theta_pert)))
        th_max = max(th_max, float(np.max(theta_pert)))

    return {
        'max_u': max_u,
        'max_w': max_w,
        'max_sound_speed': max_cs,
        'cfl_x': cfl_x,
        'cfl_z': cfl_z,
        'cfl_effective': max(cfl_x, cfl_z),
        'min_density': min_rho,
        'theta_pert_min': th_min,
        'theta_pert_max': th_max,
        'is_finite': finite,
        'dt': dt,
    }
