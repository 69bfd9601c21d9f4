"""
Passes applied to the resolved bond list after classification.

Bond-level passes (zero filter, DM sort) act on `BondRecord` lists so that the
matrix index, group id, column selector and type flag of a bond travel with
it. Table-level passes (conjugate expansion) act on packed column tables.
"""
import logging
from typing import List

import numpy as np
import numpy.typing as npt

from .bonds import BondRecord
from .classify import header_rows
from .linalg import TRANSPOSE_PERMUTATION, ZeroTest

logger = logging.getLogger(__name__)

# Row layout of SS["all"] / SS["dip"]
ALL_TABLE_ROWS: int = 15
PLOT_TABLE_ROWS: int = 18
VALUE_ROWS = slice(5, 14)


def filter_zero_bonds(records: List[BondRecord], zero_test: ZeroTest) -> List[BondRecord]:
    """Drop bonds whose matrix is negligible (sum of squared elements)."""
    kept = [rec for rec in records if not zero_test.is_negligible(rec.values())]
    logger.debug(f"Zero filter removed {len(records) - len(kept)} of {len(records)} bonds.")
    return kept


def sort_dm(records: List[BondRecord], positions: npt.NDArray) -> List[BondRecord]:
    """
    Orient every bond consistently for plotting DM vectors.

    With v = r(atom2) + dl - r(atom1) in lattice units, the components are
    weighted as digits of a number in base ceil(max(v) + 1), x most
    significant. Bonds with a negative weighted sum are flipped (translation
    negated, atoms swapped, matrix transposed), which amounts to requiring
    v_x > 0, then v_y > 0, then v_z > 0.
    """
    if not records:
        return []
    rv = np.array(
        [positions[rec.atom2] + np.array(rec.dl) - positions[rec.atom1] for rec in records]
    )
    base = rv.max() + 1
    mult = np.ceil([base**2, base, 1.0])
    flip = rv @ mult < 0
    logger.debug(f"DM sort flips {int(np.count_nonzero(flip))} of {len(records)} bonds.")
    return [rec.flipped() if f else rec for rec, f in zip(records, flip)]


def pack_all_table(records: List[BondRecord], plotmode: bool = False, symbolic: bool = False) -> npt.NDArray:
    """
    Pack bond records into the SS["all"] table.

    Rows: dl (3), atom1, atom2, J (9, row-major), biquadratic flag. In plot
    mode the flag is preceded by the registry matrix index and the bond group
    id and followed by the coupling table column, so that a plotting layer can
    map every column back to the bond it came from.
    """
    dtype = object if symbolic else float
    n_rows = PLOT_TABLE_ROWS if plotmode else ALL_TABLE_ROWS
    table = np.zeros((n_rows, len(records)), dtype=dtype)
    if not records:
        return table
    table[0:5] = header_rows(records, dtype)
    table[VALUE_ROWS] = np.array([rec.values() for rec in records], dtype=dtype).T
    biquadratic = [float(rec.biquadratic) for rec in records]
    if plotmode:
        table[14] = [rec.mat_idx for rec in records]
        table[15] = [rec.group for rec in records]
        table[16] = biquadratic
        table[17] = [rec.col_sel for rec in records]
    else:
        table[14] = biquadratic
    return table


def conjugate_table(table: npt.NDArray) -> npt.NDArray:
    """
    Append the reversed copy of every bond and halve all matrices.

    The mirrored column has negated dl, swapped atoms and the transposed
    matrix; the remaining rows are copied. Halving both halves keeps the
    summed energy of each bond unchanged.
    """
    if table.shape[1] == 0:
        return table.copy()
    mirrored = table.copy()
    mirrored[0:3] = -table[0:3]
    mirrored[3] = table[4]
    mirrored[4] = table[3]
    mirrored[VALUE_ROWS] = table[VALUE_ROWS][TRANSPOSE_PERMUTATION]
    doubled = np.concatenate([table, mirrored], axis=1)
    doubled[VALUE_ROWS] = doubled[VALUE_ROWS] / 2
    return doubled
