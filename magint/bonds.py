import logging
from dataclasses import dataclass, replace
from typing import List, Tuple

import numpy as np
import numpy.typing as npt

from .linalg import ISOTROPIC, mattype, rotate_tensors
from .model import MAX_MATRIX_SLOTS, SpinModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BondRecord:
    """
    One (bond, assigned matrix) pair.

    Attributes:
        dl: Unit cell translation of atom2.
        atom1, atom2: Atom indices.
        group: Bond group id (`Coupling.idx`).
        mat_idx: Registry index of the assigned matrix.
        col_sel: Position of the originating bond in the coupling table.
        biquadratic: True for biquadratic slots.
        sym: The slot's symmetry flag.
        matrix: The resolved 3x3 interaction matrix.
    """

    dl: Tuple[int, int, int]
    atom1: int
    atom2: int
    group: int
    mat_idx: int
    col_sel: int
    biquadratic: bool
    sym: bool
    matrix: npt.NDArray

    def flipped(self) -> "BondRecord":
        """The same bond seen from atom2: negated translation, swapped atoms, transposed matrix."""
        return replace(
            self,
            dl=tuple(-x for x in self.dl),
            atom1=self.atom2,
            atom2=self.atom1,
            matrix=self.matrix.T.copy(),
        )

    def values(self) -> npt.NDArray:
        """Row-major flattened matrix."""
        return self.matrix.reshape(9)


def enumerate_bonds(model: SpinModel) -> List[BondRecord]:
    """
    Expand the coupling table into one record per assigned matrix slot.

    Records are ordered slot-major: every bond's first assigned slot in table
    order, then every second slot, then every third.
    """
    registry = model.registry
    records = []
    for k in range(MAX_MATRIX_SLOTS):
        for col, coupling in enumerate(model.couplings.couplings):
            slot = coupling.slot(k)
            if slot.index is None:
                continue
            records.append(
                BondRecord(
                    dl=coupling.dl,
                    atom1=coupling.atom1,
                    atom2=coupling.atom2,
                    group=coupling.idx,
                    mat_idx=slot.index,
                    col_sel=col,
                    biquadratic=slot.biquadratic,
                    sym=slot.sym,
                    matrix=registry.mat[slot.index].copy(),
                )
            )
    logger.debug(f"Enumerated {len(records)} bond matrices from {len(model.couplings)} bonds.")
    return records


def apply_bond_symmetry(model: SpinModel, records: List[BondRecord]) -> List[BondRecord]:
    """
    Rotate symmetry-generated, non-isotropic bond matrices with their bond operator.

    A record is rotated when its bond lies inside the symmetry-generated part
    of the table, its slot carries the symmetry flag, and the stored registry
    matrix is not exactly isotropic. Other records are returned unchanged.
    """
    if model.symmetry is None or not records:
        return list(records)

    last_sym = model.couplings.last_sym()
    is_iso = [mattype(m, tol=0) == ISOTROPIC for m in model.registry.mat]

    selected = [
        i
        for i, rec in enumerate(records)
        if rec.col_sel <= last_sym and rec.sym and not is_iso[rec.mat_idx]
    ]
    if not selected:
        return list(records)

    rot_ops = model.symmetry.bond[[records[i].col_sel for i in selected]]
    mats = np.stack([records[i].matrix for i in selected])
    rotated = rotate_tensors(rot_ops, mats)

    result = list(records)
    for i, mat in zip(selected, rotated):
        result[i] = replace(result[i], matrix=mat)
    logger.debug(f"Rotated {len(selected)} of {len(records)} bond matrices.")
    return result
