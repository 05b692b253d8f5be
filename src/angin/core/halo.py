"""
Ghost-cell exchange for the decomposed state.

Two policies, one per direction:

    X (periodic): each partition's left ghost columns receive the two
        rightmost interior columns of its left neighbour, its right ghost
        columns the two leftmost interior columns of its right neighbour.
        The exchange is collective: all boundary columns are packed by
        value before any ghost cell is written.

    Z (reflective walls): no communication. Vertical momentum vanishes in
        the ghost rows, horizontal momentum is rescaled with the background
        density, every other variable repeats the nearest interior row.

Only ghost cells are ever written, so an exchange is idempotent.
"""

from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np

from .grid import ID_DENS, ID_UMOM, ID_WMOM, ID_RHOT, NUM_VARS, Direction
from .atmosphere import InitialCondition


# Injection jet: inflow speed and potential temperature at the left wall
INJECTION_SPEED = 50.0   # [m/s]
INJECTION_THETA = 298.0  # [K]


def _pack_x(buffers: Sequence[np.ndarray], partitions) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Copy every partition's leftmost and rightmost interior columns."""
    sends = []
    for part, q in zip(partitions, buffers):
        layout = part.layout
        sends.append((
            q[:, layout.rows, layout.left_edge].copy(),
            q[:, layout.rows, layout.right_edge].copy(),
        ))
    return sends


def _apply_injection(system, part, q: np.ndarray) -> None:
    """Overwrite the left ghost columns inside the injection band."""
    layout = part.layout
    grid = system.grid
    bg = system.background

    z = layout.z_centres(part.topology.k_beg, grid.dz, ghosts=False)
    band = np.abs(z - 3 * grid.zlen / 4) <= grid.zlen / 16
    rows = np.arange(layout.rows.start, layout.rows.stop)[band]
    if rows.size == 0:
        return

    ghosts = layout.left_ghosts
    hr = bg.dens_cell[rows][:, None]
    hrt = bg.dens_theta_cell[rows][:, None]
    dens = q[ID_DENS, rows, ghosts] + hr
    q[ID_UMOM, rows, ghosts] = dens * INJECTION_SPEED
    q[ID_RHOT, rows, ghosts] = dens * INJECTION_THETA - hrt


def exchange_x(system, buffers: Sequence[np.ndarray]) -> None:
    """
    Periodic exchange of the x ghost columns over all partitions.

    Args:
        system: WeatherSystem owning the partitions
        buffers: One haloed state array per partition, in rank order
    """
    partitions = system.partitions
    if len(buffers) != len(partitions):
        raise ValueError(f"Expected {len(partitions)} buffers, got {len(buffers)}")

    sends = _pack_x(buffers, partitions)

    for part, q in zip(partitions, buffers):
        topo = part.topology
        layout = part.layout
        q[:, layout.rows, layout.left_ghosts] = sends[topo.left][1]
        q[:, layout.rows, layout.right_ghosts] = sends[topo.right][0]

    if system.data_spec is InitialCondition.INJECTION:
        for part, q in zip(partitions, buffers):
            if part.topology.i_beg == 0:
                _apply_injection(system, part, q)


def exchange_z(system, buffers: Sequence[np.ndarray]) -> None:
    """Fill the z ghost rows of every partition from its own interior."""
    hr = system.background.dens_cell

    for part, q in zip(system.partitions, buffers):
        for k, src in part.layout.z_ghost_sources:
            for ll in range(NUM_VARS):
                if ll == ID_WMOM:
                    q[ll, k, :] = 0.0
                elif ll == ID_UMOM:
                    q[ll, k, :] = q[ll, src, :] / hr[src] * hr[k]
                else:
                    q[ll, k, :] = q[ll, src, :]


_POLICIES: Dict[Direction, Callable] = {
    Direction.X: exchange_x,
    Direction.Z: exchange_z,
}


def exchange_halo(system, direction: Direction, buffers: Sequence[np.ndarray]) -> None:
    """
    Fill the ghost cells of `buffers` for one direction.

    Args:
        system: WeatherSystem owning the partitions
        direction: Direction.X or Direction.Z
        buffers: One haloed state array per partition, modified in place
    """
    _POLICIES[direction](system, buffers)
