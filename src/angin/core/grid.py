"""
Grid, domain decomposition and state layout.

The model state lives on a regular (x, z) grid split into vertical strips
along x. Each strip (partition) stores its cells in a dense array of shape
(NUM_VARS, nz + 2*HALO, nx + 2*HALO): the interior cells surrounded by a
ghost margin of HALO cells on every side.

Variable ordering (first axis of every state array):
    state[ID_DENS] = rho'           (density perturbation)
    state[ID_UMOM] = rho*u          (x-momentum)
    state[ID_WMOM] = rho*w          (z-momentum)
    state[ID_RHOT] = (rho*theta)'   (density * potential temperature perturbation)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

import numpy as np


# Ghost margin width = stencil half-width
HALO = 2
STENCIL_SIZE = 4

NUM_VARS = 4
ID_DENS = 0
ID_UMOM = 1
ID_WMOM = 2
ID_RHOT = 3


class ConfigurationError(ValueError):
    """Invalid run configuration, detected once at startup."""


class Direction(Enum):
    """Spatial direction of a split sub-step."""

    X = 1
    Z = 2

    @property
    def axis(self) -> int:
        """Axis of a state array along which the stencil runs."""
        return 2 if self is Direction.X else 1

    def spacing(self, grid: 'Grid') -> float:
        return grid.dx if self is Direction.X else grid.dz


@dataclass(frozen=True)
class Grid:
    """
    Global grid, fixed for the lifetime of a run.

    Attributes:
        nx_glob, nz_glob: Global cell counts
        xlen, zlen: Domain lengths [m]
        dx, dz: Cell spacing [m]
    """
    nx_glob: int
    nz_glob: int
    xlen: float = 2.0e4
    zlen: float = 1.0e4
    dx: float = field(init=False)
    dz: float = field(init=False)

    def __post_init__(self):
        if self.nx_glob <= 0 or self.nz_glob <= 0:
            raise ConfigurationError(
                f"Grid cell counts must be positive, got "
                f"nx_glob={self.nx_glob}, nz_glob={self.nz_glob}"
            )
        if self.xlen <= 0 or self.zlen <= 0:
            raise ConfigurationError(
                f"Domain lengths must be positive, got xlen={self.xlen}, zlen={self.zlen}"
            )
        object.__setattr__(self, 'dx', self.xlen / self.nx_glob)
        object.__setattr__(self, 'dz', self.zlen / self.nz_glob)


@dataclass(frozen=True)
class Topology:
    """Placement of one partition in the 1-D decomposition along x."""
    rank: int
    nranks: int
    left: int
    right: int
    i_beg: int
    nx: int
    nz: int
    k_beg: int = 0

    @property
    def layout(self) -> 'StateLayout':
        return StateLayout(self.nx, self.nz)


def decompose(grid: Grid, nranks: int = 1) -> List[Topology]:
    """
    Split the grid into `nranks` vertical strips along x.

    The vertical axis is never decomposed. Neighbours wrap around the
    global domain, so a single partition is its own left and right
    neighbour.
    """
    if nranks < 1:
        raise ConfigurationError(f"nranks must be >= 1, got {nranks}")

    nper = grid.nx_glob / nranks
    topologies = []
    for rank in range(nranks):
        i_beg = int(round(nper * rank))
        i_end = int(round(nper * (rank + 1))) - 1
        topologies.append(Topology(
            rank=rank,
            nranks=nranks,
            left=(rank - 1) % nranks,
            right=(rank + 1) % nranks,
            i_beg=i_beg,
            nx=i_end - i_beg + 1,
            nz=grid.nz_glob,
        ))

    validate_topologies(grid, topologies)
    return topologies


def validate_topologies(grid: Grid, topologies: List[Topology]) -> None:
    """
    Check that a set of partitions tiles the grid consistently.

    Raises:
        ConfigurationError: On gaps, overlaps, mismatched neighbours or
            partitions too narrow to fill a neighbour's ghost margin.
    """
    nranks = len(topologies)
    if nranks == 0:
        raise ConfigurationError("At least one partition is required")

    by_rank = sorted(topologies, key=lambda t: t.rank)
    if [t.rank for t in by_rank] != list(range(nranks)):
        raise ConfigurationError("Partition ranks must be 0..nranks-1 without repeats")

    expected_beg = 0
    for topo in by_rank:
        if topo.nranks != nranks:
            raise ConfigurationError(f"Rank {topo.rank} believes nranks={topo.nranks}, expected {nranks}")
        if topo.i_beg != expected_beg:
            raise ConfigurationError(
                f"Rank {topo.rank} starts at i={topo.i_beg}, expected {expected_beg}"
            )
        if topo.nx < HALO:
            raise ConfigurationError(
                f"Rank {topo.rank} has {topo.nx} columns; at least {HALO} are required "
                f"to fill a neighbour's halo"
            )
        if topo.nz != grid.nz_glob or topo.k_beg != 0:
            raise ConfigurationError(f"Rank {topo.rank} must own the full vertical column")
        if topo.right != (topo.rank + 1) % nranks or topo.left != (topo.rank - 1) % nranks:
            raise ConfigurationError(
                f"Rank {topo.rank} has neighbours ({topo.left}, {topo.right}), "
                f"inconsistent with a periodic 1-D decomposition"
            )
        expected_beg += topo.nx

    if expected_beg != grid.nx_glob:
        raise ConfigurationError(
            f"Partitions cover {expected_beg} columns but the grid has {grid.nx_glob}"
        )


class StateLayout:
    """
    Index mapping for a partition's haloed arrays.

    All index arithmetic over ghost margins goes through this class.
    State arrays have shape (NUM_VARS, nz + 2*HALO, nx + 2*HALO) with the
    interior at rows `rows` and columns `cols`.
    """

    def __init__(self, nx: int, nz: int, halo: int = HALO):
        self.nx = nx
        self.nz = nz
        self.halo = halo

    @classmethod
    def of(cls, state: np.ndarray, halo: int = HALO) -> 'StateLayout':
        """Layout of an existing haloed array."""
        return cls(state.shape[2] - 2 * halo, state.shape[1] - 2 * halo, halo)

    @property
    def shape(self) -> Tuple[int, int, int]:
        return (NUM_VARS, self.nz + 2 * self.halo, self.nx + 2 * self.halo)

    @property
    def rows(self) -> slice:
        """Interior rows (z) in haloed coordinates."""
        return slice(self.halo, self.halo + self.nz)

    @property
    def cols(self) -> slice:
        """Interior columns (x) in haloed coordinates."""
        return slice(self.halo, self.halo + self.nx)

    @property
    def interior(self) -> Tuple[slice, slice, slice]:
        return (slice(None), self.rows, self.cols)

    # x margins: ghost columns and the interior columns a neighbour needs
    @property
    def left_ghosts(self) -> slice:
        return slice(0, self.halo)

    @property
    def right_ghosts(self) -> slice:
        return slice(self.nx + self.halo, self.nx + 2 * self.halo)

    @property
    def left_edge(self) -> slice:
        return slice(self.halo, 2 * self.halo)

    @property
    def right_edge(self) -> slice:
        return slice(self.nx, self.nx + self.halo)

    @property
    def z_ghost_sources(self) -> Tuple[Tuple[int, int], ...]:
        """(ghost row, nearest interior row) pairs below and above the interior."""
        bottom, top = self.rows.start, self.rows.stop - 1
        below = tuple((k, bottom) for k in range(0, self.halo))
        above = tuple((k, top) for k in range(self.rows.stop, self.nz + 2 * self.halo))
        return below + above

    def x_centres(self, i_beg: int, dx: float, ghosts: bool = True) -> np.ndarray:
        """Cell-centre x of the haloed columns (interior only with ghosts=False)."""
        i = np.arange(-self.halo, self.nx + self.halo) if ghosts else np.arange(self.nx)
        return (i_beg + i + 0.5) * dx

    def z_centres(self, k_beg: int, dz: float, ghosts: bool = True) -> np.ndarray:
        """Cell-centre heights of the haloed rows (interior only with ghosts=False)."""
        k = np.arange(-self.halo, self.nz + self.halo) if ghosts else np.arange(self.nz)
        return (k_beg + k + 0.5) * dz

    def allocate(self) -> np.ndarray:
        return np.zeros(self.shape, dtype=np.float64)

    def __repr__(self) -> str:
        return f"StateLayout(nx={self.nx}, nz={self.nz}, halo={self.halo})"
