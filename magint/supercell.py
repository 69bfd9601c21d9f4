import logging
from typing import Callable, Dict, Sequence, Tuple

import numpy as np
import numpy.typing as npt

logger = logging.getLogger(__name__)

Tables = Dict[str, npt.NDArray]
Extender = Callable[[Tuple[int, int, int], npt.NDArray, Tables], Tuple[npt.NDArray, Tables]]


def supercell_cells(n_ext: Sequence[int]) -> npt.NDArray[np.int_]:
    """Cell offsets of the supercell, x running fastest: index = x + nx * (y + ny * z)."""
    nx, ny, nz = n_ext
    return np.array(
        [[x, y, z] for z in range(nz) for y in range(ny) for x in range(nx)], dtype=int
    ).reshape(-1, 3)


def _extend_table(
    table: npt.NDArray, cells: npt.NDArray[np.int_], n_ext: npt.NDArray[np.int_], n_atom: int
) -> npt.NDArray:
    if table.shape[1] == 0:
        return table.copy()

    dl = np.array(table[0:3], dtype=float).astype(int)
    atom1 = np.array(table[3], dtype=float).astype(int)
    atom2 = np.array(table[4], dtype=float).astype(int)

    blocks = []
    for c, cell in enumerate(cells):
        # cell of atom2 in supercell coordinates, then folded back into the supercell
        target = cell[:, None] + dl
        new_dl = np.floor_divide(target, n_ext[:, None])
        cell2 = target - new_dl * n_ext[:, None]
        idx2 = cell2[0] + n_ext[0] * (cell2[1] + n_ext[1] * cell2[2])

        block = table.copy()
        block[0:3] = new_dl
        block[3] = atom1 + c * n_atom
        block[4] = atom2 + idx2 * n_atom
        blocks.append(block)
    return np.concatenate(blocks, axis=1)


def extend_lattice(
    n_ext: Tuple[int, int, int], positions: npt.NDArray, tables: Tables
) -> Tuple[npt.NDArray, Tables]:
    """
    Replicate atoms and bond tables over a magnetic supercell.

    Args:
        n_ext: Supercell multiplier along a, b, c.
        positions: Fractional atom positions in the crystallographic cell, (nAtom, 3).
        tables: Bond tables whose first five rows are dl, atom1, atom2.

    Returns:
        Tuple: atom positions in supercell lattice units, (prod(n_ext) * nAtom, 3),
        ordered cell-major, and the replicated tables with atom indices pointing
        into the extended atom list and translations in supercell units.
    """
    n_ext_arr = np.asarray(n_ext, dtype=int)
    cells = supercell_cells(n_ext_arr)
    positions = np.asarray(positions, dtype=float).reshape(-1, 3)
    n_atom = len(positions)

    rr_ext = ((cells[:, None, :] + positions[None, :, :]) / n_ext_arr).reshape(-1, 3)
    extended = {name: _extend_table(table, cells, n_ext_arr, n_atom) for name, table in tables.items()}
    logger.info(
        f"Extended lattice to {tuple(n_ext_arr)} supercell: {len(rr_ext)} atoms, "
        f"{extended['all'].shape[1] if 'all' in extended else 0} bonds."
    )
    return rr_ext, extended
