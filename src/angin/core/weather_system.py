"""
2D Dry Stratified Atmosphere System Definition.

Holds everything a run needs besides the integrator itself: the grid, the
1-D decomposition into partitions, the hydrostatic background, each
partition's state buffers and the elapsed model time. Components receive
the system explicitly; nothing is kept in module-level state.

Governing equations (compressible, non-hydrostatic Euler with gravity):
    ∂ρ/∂t     + ∂(ρu)/∂x      + ∂(ρw)/∂z      = 0
    ∂(ρu)/∂t  + ∂(ρu² + p)/∂x + ∂(ρuw)/∂z     = 0
    ∂(ρw)/∂t  + ∂(ρuw)/∂x     + ∂(ρw² + p)/∂z = -ρg
    ∂(ρθ)/∂t  + ∂(ρuθ)/∂x     + ∂(ρwθ)/∂z     = 0

with p = C0 (ρθ)^γ. All prognostic variables are stored as perturbations
from the hydrostatic background.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import numpy as np

from .grid import (
    ID_DENS, ID_UMOM, ID_WMOM, ID_RHOT,
    Grid, Topology, decompose,
)
from .atmosphere import (
    InitialCondition, Background,
    compute_background, initialize_state, initialize_forcing,
)


@dataclass
class WeatherParams:
    """
    Container for run parameters.

    Attributes:
        nx_glob, nz_glob: Global grid resolution
        xlen, zlen: Domain size [m]
        data_spec: Initial-condition variant
        nranks: Number of partitions along x
        hv_beta: Hyperviscosity strength in [0, 1]
        cfl: Courant number used for the fixed time step
        max_speed: Assumed maximum wave speed (sound + wind) [m/s]
        dx, dz: Grid spacing [m]
        dt: Fixed model time step [s]
    """
    nx_glob: int = 100
    nz_glob: int = 50
    xlen: float = 2.0e4
    zlen: float = 1.0e4
    data_spec: InitialCondition = InitialCondition.THERMAL
    nranks: int = 1
    hv_beta: float = 0.05
    cfl: float = 1.5
    max_speed: float = 450.0

    # Derived quantities (computed in __post_init__)
    dx: float = field(init=False)
    dz: float = field(init=False)
    dt: float = field(init=False)

    def __post_init__(self):
        """Compute the grid spacing and CFL-limited time step."""
        self.data_spec = InitialCondition.parse(self.data_spec)
        self.dx = self.xlen / self.nx_glob
        self.dz = self.zlen / self.nz_glob
        self.dt = min(self.dx, self.dz) / self.max_speed * self.cfl

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'nx_glob': self.nx_glob,
            'nz_glob': self.nz_glob,
            'xlen': self.xlen,
            'zlen': self.zlen,
            'data_spec': self.data_spec.name.lower(),
            'nranks': self.nranks,
            'hv_beta': self.hv_beta,
            'cfl': self.cfl,
            'max_speed': self.max_speed,
            'dx': self.dx,
            'dz': self.dz,
            'dt': self.dt,
        }


@dataclass
class Partition:
    """
    One strip of the decomposed domain.

    `state` is the authoritative buffer, `state_tmp` the scratch buffer used
    between Runge-Kutta stages. Both have the haloed layout of `topology`.
    """
    topology: Topology
    state: np.ndarray
    state_tmp: np.ndarray
    forcing: Optional[np.ndarray] = None

    @property
    def layout(self):
        return self.topology.layout


class WeatherSystem:
    """
    2D dry stratified atmosphere on a decomposed finite-volume grid.

    Example:
        >>> system = WeatherSystem(nx_glob=100, nz_glob=50, data_spec='thermal')
        >>> system.initialize()
        >>> print(system)
    """

    def __init__(
        self,
        nx_glob: int = 100,
        nz_glob: int = 50,
        data_spec: Union[int, str, InitialCondition] = InitialCondition.THERMAL,
        nranks: int = 1,
        xlen: float = 2.0e4,
        zlen: float = 1.0e4,
        hv_beta: float = 0.05,
        cfl: float = 1.5,
        max_speed: float = 450.0,
    ):
        """
        Set up the grid, decomposition and background.

        Raises:
            ConfigurationError: On an unknown variant, non-positive grid
                dimensions or an inconsistent decomposition
        """
        self.grid = Grid(nx_glob=nx_glob, nz_glob=nz_glob, xlen=xlen, zlen=zlen)
        self.params = WeatherParams(
            nx_glob=nx_glob, nz_glob=nz_glob, xlen=xlen, zlen=zlen,
            data_spec=data_spec, nranks=nranks, hv_beta=hv_beta,
            cfl=cfl, max_speed=max_speed,
        )
        self.topologies: List[Topology] = decompose(self.grid, nranks)
        self.background: Background = compute_background(self.data_spec, self.grid)

        self.x = (np.arange(nx_glob) + 0.5) * self.grid.dx
        self.z = (np.arange(nz_glob) + 0.5) * self.grid.dz

        self.partitions: List[Partition] = []
        self.etime = 0.0
        self._initialized = False

    @property
    def data_spec(self) -> InitialCondition:
        return self.params.data_spec

    @property
    def dt(self) -> float:
        return self.params.dt

    @property
    def nranks(self) -> int:
        return len(self.topologies)

    def initialize(self) -> 'WeatherSystem':
        """Build every partition's cell-averaged initial state."""
        self.partitions = []
        for topo in self.topologies:
            state = initialize_state(self.data_spec, self.grid, topo)
            self.partitions.append(Partition(
                topology=topo,
                state=state,
                state_tmp=state.copy(),
                forcing=initialize_forcing(self.data_spec, self.grid, topo, self.background),
            ))
        self.etime = 0.0
        self._initialized = True
        return self

    def get_primitive(self, partition: Partition, buffer: Optional[np.ndarray] = None):
        """
        Physical fields over one partition's interior.

        Returns:
            Tuple of (rho, u, w, theta) reconstructed as background + perturbation
        """
        q = partition.state if buffer is None else buffer
        layout = partition.layout
        rows, cols = layout.rows, layout.cols
        hr = self.background.dens_cell[rows][:, None]
        hrt = self.background.dens_theta_cell[rows][:, None]

        rho = q[ID_DENS, rows, cols] + hr
        u = q[ID_UMOM, rows, cols] / rho
        w = q[ID_WMOM, rows, cols] / rho
        theta = (q[ID_RHOT, rows, cols] + hrt) / rho
        return rho, u, w, theta

    def snapshot(self) -> Dict[str, Any]:
        """
        Read-only view of the global interior state for output.

        Returns:
            Dictionary with elapsed time 't' and (nz, nx) arrays 'dens'
            (density perturbation), 'uwnd', 'wwnd' and 'theta' (potential
            temperature perturbation)
        """
        if not self._initialized:
            raise ValueError("Weather system not initialized. Call initialize() first.")

        shape = (self.grid.nz_glob, self.grid.nx_glob)
        fields = {name: np.zeros(shape) for name in ('dens', 'uwnd', 'wwnd', 'theta')}
        theta_bar = self.background.theta_cell[self.partitions[0].layout.rows][:, None]

        for part in self.partitions:
            topo = part.topology
            rho, u, w, theta = self.get_primitive(part)
            sl = (slice(None), slice(topo.i_beg, topo.i_beg + topo.nx))
            fields['dens'][sl] = part.state[ID_DENS, part.layout.rows, part.layout.cols]
            fields['uwnd'][sl] = u
            fields['wwnd'][sl] = w
            fields['theta'][sl] = theta - theta_bar

        for arr in fields.values():
            arr.setflags(write=False)
        fields['t'] = float(self.etime)
        return fields

    def describe(self) -> str:
        """Return detailed description of the system."""
        params = self.params
        return f"""
2D Dry Stratified Atmosphere (compressible, non-hydrostatic)
============================================================
Grid Resolution: {params.nx_glob} × {params.nz_glob}
Domain Size: [{params.xlen:.1f}] × [{params.zlen:.1f}] m
Grid Spacing: dx={params.dx:.3f} m, dz={params.dz:.3f} m
Time Step: dt={params.dt:.6f} s (CFL={params.cfl}, max speed={params.max_speed} m/s)

Decomposition: {self.nranks} partition(s) along x
  columns per partition: {[t.nx for t in self.topologies]}

Numerics:
  4th-order finite-volume reconstruction, hyperviscosity β={params.hv_beta}
  3-stage Runge-Kutta, Strang-split x/z

Initialization: {self.data_spec.name.lower() if self._initialized else 'Not initialized'}
"""

    def __repr__(self) -> str:
        return (
            f"WeatherSystem(nx_glob={self.grid.nx_glob}, nz_glob={self.grid.nz_glob}, "
            f"nranks={self.nranks}, init={self.data_spec.name.lower()})"
        )

    def __str__(self) -> str:
        return self.__repr__()
