"""
Hydrostatic background and initial conditions for a dry stratified atmosphere.

The model state is stored as a perturbation on top of a time-invariant,
hydrostatically balanced vertical profile. Two background profiles are
available:

    constant potential temperature (thermally neutral):
        theta = theta0
        exner = exner0 - g z / (cp theta0)

    constant Brunt-Vaisala frequency N:
        theta = theta0 exp(N^2 z / g)
        exner = exner0 - g^2 / (cp N^2) (theta - theta0) / (theta theta0)

in both cases p = p0 exner^(cp/Rd), rho*theta = (p / C0)^(1/gamma).

Cell averages are built with 3-point Gauss-Legendre quadrature in each
direction.

References:
    Straka, J. M., et al. (1993). Numerical solutions of a non-linear
        density current. Int. J. Numer. Methods Fluids, 17, 1-22.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np

from .grid import (
    ID_DENS, ID_UMOM, ID_WMOM, ID_RHOT,
    ConfigurationError, Grid, StateLayout, Topology,
)


# Physical constants
GRAV = 9.8              # Gravitational acceleration [m/s^2]
CP = 1004.0             # Specific heat of dry air at constant pressure [J/(kg K)]
CV = 717.0              # Specific heat of dry air at constant volume [J/(kg K)]
RD = 287.0              # Dry air gas constant [J/(kg K)]
P0 = 1.0e5              # Surface reference pressure [Pa]
C0 = 27.5629410929725921310572974482    # p = C0 * (rho*theta)**GAMMA
GAMMA = 1.40027894002789400278940027894  # cp / cv

THETA0 = 300.0          # Background potential temperature [K]
EXNER0 = 1.0            # Surface Exner pressure
BV_FREQ_GRAVITY_WAVES = 0.02  # Brunt-Vaisala frequency for the gravity-wave case [1/s]

# Gauss-Legendre quadrature on [0, 1]
QPOINTS = np.array([
    0.112701665379258311482073460022,
    0.500000000000000000000000000000,
    0.887298334620741688517926539980,
])
QWEIGHTS = np.array([
    0.277777777777777777777777777779,
    0.444444444444444444444444444444,
    0.277777777777777777777777777779,
])


class InitialCondition(Enum):
    """Initial-condition variants (integer values are the run selectors)."""

    COLLISION = 1
    THERMAL = 2
    GRAVITY_WAVES = 3
    DENSITY_CURRENT = 5
    INJECTION = 6

    @classmethod
    def parse(cls, selector: Union[int, str, 'InitialCondition']) -> 'InitialCondition':
        """
        Resolve a selector given as enum member, integer or name.

        Raises:
            ConfigurationError: If the selector names no variant
        """
        if isinstance(selector, cls):
            return selector
        if isinstance(selector, (int, np.integer)) and not isinstance(selector, bool):
            try:
                return cls(int(selector))
            except ValueError:
                pass
        elif isinstance(selector, str):
            key = selector.strip().upper().replace('-', '_').replace(' ', '_')
            if key.isdigit():
                return cls.parse(int(key))
            if key in cls.__members__:
                return cls[key]
        valid = ', '.join(f"{m.name.lower()}={m.value}" for m in cls)
        raise ConfigurationError(f"Unknown initial condition {selector!r}; expected one of: {valid}")


# ============================================================================
# Background profiles
# ============================================================================

def pressure(rho_theta):
    """Equation of state p = C0 (rho theta)^gamma."""
    return C0 * np.power(rho_theta, GAMMA)


def hydro_const_theta(z) -> Tuple[np.ndarray, np.ndarray]:
    """
    Hydrostatic background with constant potential temperature.

    Args:
        z: Height(s) [m]

    Returns:
        Tuple of (density, potential temperature)
    """
    z = np.asarray(z, dtype=np.float64)
    theta = np.full_like(z, THETA0)
    exner = EXNER0 - GRAV * z / (CP * THETA0)
    p = P0 * np.power(exner, CP / RD)
    rt = np.power(p / C0, 1.0 / GAMMA)
    return rt / theta, theta


def hydro_const_bvfreq(z, bv_freq0: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Hydrostatic background with constant Brunt-Vaisala frequency.

    Args:
        z: Height(s) [m]
        bv_freq0: Brunt-Vaisala frequency [1/s]

    Returns:
        Tuple of (density, potential temperature)
    """
    z = np.asarray(z, dtype=np.float64)
    theta = THETA0 * np.exp(bv_freq0 * bv_freq0 / GRAV * z)
    exner = EXNER0 - GRAV * GRAV / (CP * bv_freq0 * bv_freq0) * (theta - THETA0) / (theta * THETA0)
    p = P0 * np.power(exner, CP / RD)
    rt = np.power(p / C0, 1.0 / GAMMA)
    return rt / theta, theta


def sample_ellipse_cosine(x, z, amp: float, x0: float, z0: float,
                          xrad: float, zrad: float) -> np.ndarray:
    """cos^2 bump of amplitude `amp` inside the ellipse centred at (x0, z0)."""
    x = np.asarray(x, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    dist = np.sqrt(((x - x0) / xrad) ** 2 + ((z - z0) / zrad) ** 2) * np.pi / 2.0
    return np.where(dist <= np.pi / 2.0, amp * np.cos(dist) ** 2, 0.0)


# ============================================================================
# Initial-condition variants
# ============================================================================

def sample_initial_condition(ic: InitialCondition, x, z, xlen: float = 2.0e4):
    """
    Sample a variant at point(s) (x, z).

    Args:
        ic: Initial-condition variant
        x, z: Coordinates [m] (broadcastable arrays)
        xlen: Domain length in x [m], used to place the bubbles

    Returns:
        Tuple (r, u, w, t, hr, ht): density perturbation, u-wind, w-wind,
        potential temperature perturbation, background density and
        background potential temperature.
    """
    x, z = np.broadcast_arrays(np.asarray(x, dtype=np.float64),
                               np.asarray(z, dtype=np.float64))
    zeros = np.zeros_like(x)
    r = zeros.copy()
    u = zeros.copy()
    w = zeros.copy()
    t = zeros.copy()

    if ic is InitialCondition.GRAVITY_WAVES:
        hr, ht = hydro_const_bvfreq(z, BV_FREQ_GRAVITY_WAVES)
        u = u + 15.0
    else:
        hr, ht = hydro_const_theta(z)

    if ic is InitialCondition.COLLISION:
        t = t + sample_ellipse_cosine(x, z, 20.0, xlen / 2, 2000.0, 2000.0, 2000.0)
        t = t + sample_ellipse_cosine(x, z, -20.0, xlen / 2, 8000.0, 2000.0, 2000.0)
    elif ic is InitialCondition.THERMAL:
        t = t + sample_ellipse_cosine(x, z, 3.0, xlen / 2, 2000.0, 2000.0, 2000.0)
    elif ic is InitialCondition.DENSITY_CURRENT:
        t = t + sample_ellipse_cosine(x, z, -20.0, xlen / 2, 5000.0, 4000.0, 2000.0)

    return r, u, w, t, hr, ht


def gravity_wave_forcing(x, z, xlen: float = 2.0e4) -> np.ndarray:
    """Vertical-velocity perturbation injected by the gravity-wave variant [m/s]."""
    return sample_ellipse_cosine(x, z, 0.01, xlen / 8, 1000.0, 500.0, 500.0)


# ============================================================================
# Background and state construction
# ============================================================================

@dataclass(frozen=True)
class Background:
    """
    Hydrostatic background profiles for one vertical column.

    Attributes:
        dens_cell: Density, vertical cell averages, shape (nz + 2*HALO,)
        dens_theta_cell: rho*theta, vertical cell averages, shape (nz + 2*HALO,)
        dens_int: Density at cell interfaces, shape (nz + 1,)
        dens_theta_int: rho*theta at cell interfaces, shape (nz + 1,)
        pressure_int: Pressure at cell interfaces, shape (nz + 1,)
    """
    dens_cell: np.ndarray
    dens_theta_cell: np.ndarray
    dens_int: np.ndarray
    dens_theta_int: np.ndarray
    pressure_int: np.ndarray

    @property
    def theta_cell(self) -> np.ndarray:
        return self.dens_theta_cell / self.dens_cell


def compute_background(ic: InitialCondition, grid: Grid, k_beg: int = 0,
                       nz: Optional[int] = None) -> Background:
    """
    Build the hydrostatic background profiles.

    Cell-centre values are 3-point vertical quadrature averages (ghost
    rows included); interface values are evaluated exactly.
    """
    if nz is None:
        nz = grid.nz_glob
    dz = grid.dz

    centers = StateLayout(grid.nx_glob, nz).z_centres(k_beg, dz)
    zq = centers[:, None] + (QPOINTS[None, :] - 0.5) * dz
    _, _, _, _, hr, ht = sample_initial_condition(ic, 0.0, zq, grid.xlen)
    dens_cell = np.sum(hr * QWEIGHTS, axis=1)
    dens_theta_cell = np.sum(hr * ht * QWEIGHTS, axis=1)

    z_int = (k_beg + np.arange(nz + 1)) * dz
    _, _, _, _, hr, ht = sample_initial_condition(ic, 0.0, z_int, grid.xlen)
    dens_int = hr
    dens_theta_int = hr * ht

    background = Background(
        dens_cell=dens_cell,
        dens_theta_cell=dens_theta_cell,
        dens_int=dens_int,
        dens_theta_int=dens_theta_int,
        pressure_int=pressure(dens_theta_int),
    )
    for arr in (background.dens_cell, background.dens_theta_cell, background.dens_int,
                background.dens_theta_int, background.pressure_int):
        arr.setflags(write=False)
    return background


def initialize_state(ic: InitialCondition, grid: Grid, topo: Topology) -> np.ndarray:
    """
    Cell-averaged perturbation state for one partition, ghosts included.

    Every cell is integrated over a 3x3 Gauss-Legendre stencil of the
    variant's point samples.

    Returns:
        Array of shape (NUM_VARS, nz + 2*HALO, nx + 2*HALO)
    """
    layout = topo.layout
    state = layout.allocate()
    dx, dz = grid.dx, grid.dz

    center_x = layout.x_centres(topo.i_beg, dx)
    center_z = layout.z_centres(topo.k_beg, dz)

    for kk in range(len(QPOINTS)):
        for ii in range(len(QPOINTS)):
            x = center_x[None, :] + (QPOINTS[ii] - 0.5) * dx
            z = center_z[:, None] + (QPOINTS[kk] - 0.5) * dz
            r, u, w, t, hr, ht = sample_initial_condition(ic, x, z, grid.xlen)
            weight = QWEIGHTS[ii] * QWEIGHTS[kk]

            state[ID_DENS] += r * weight
            state[ID_UMOM] += (r + hr) * u * weight
            state[ID_WMOM] += (r + hr) * w * weight
            state[ID_RHOT] += ((r + hr) * (t + ht) - hr * ht) * weight
    return state


def initialize_forcing(ic: InitialCondition, grid: Grid, topo: Topology,
                       background: Background):
    """
    Fixed z-momentum tendency source for one partition, or None.

    Only the gravity-wave variant carries one: w_pert(x, z) * rho_bar(z)
    over the interior cells.
    """
    if ic is not InitialCondition.GRAVITY_WAVES:
        return None
    layout = topo.layout
    x = layout.x_centres(topo.i_beg, grid.dx, ghosts=False)
    z = layout.z_centres(topo.k_beg, grid.dz, ghosts=False)
    wpert = gravity_wave_forcing(x[None, :], z[:, None], grid.xlen)
    hy_dens = background.dens_cell[layout.rows]
    return wpert * hy_dens[:, None]
