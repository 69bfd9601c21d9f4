import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import numpy.typing as npt

from .linalg import rotate_tensors, symmetrize
from .model import MatrixRegistry, Sentinel, SpinModel

logger = logging.getLogger(__name__)


@dataclass
class SingleIon:
    """Resolved single-ion data: anisotropy and g-tensors (nAtom, 3, 3) and the field."""

    aniso: npt.NDArray
    g: npt.NDArray
    field: npt.NDArray[np.float64]

    def tile(self, n_cells: int) -> "SingleIon":
        """Repeat the tensors once per supercell cell, cell-major."""
        return SingleIon(
            aniso=np.tile(self.aniso, (n_cells, 1, 1)),
            g=np.tile(self.g, (n_cells, 1, 1)),
            field=self.field.copy(),
        )


def _resolve_tensors(
    registry: MatrixRegistry,
    refs: Sequence[Optional[int]],
    n_atom: int,
    default: Sentinel,
    name: str,
) -> npt.NDArray:
    if len(refs) != n_atom:
        if len(refs):
            logger.warning(
                f"{name}: {len(refs)} assignments for {n_atom} atoms, using the default for every atom."
            )
        return registry.lookup([default] * n_atom)
    tensors = registry.lookup([registry.resolve(ref, default) for ref in refs])
    return symmetrize(tensors)


def resolve_single_ion(model: SpinModel) -> SingleIon:
    """
    Build per-atom anisotropy and g-tensors.

    Unassigned atoms get the zero anisotropy and the g = 2 tensor. Only the
    symmetric part of every tensor is kept. With symmetry enabled each tensor
    is rotated by its site operator, R M R^T.
    """
    registry = model.registry
    aniso = _resolve_tensors(
        registry, model.single_ion.aniso, model.n_atom, Sentinel.ZERO, "Anisotropy"
    )
    g = _resolve_tensors(
        registry, model.single_ion.g, model.n_atom, Sentinel.DEFAULT_G, "g-tensor"
    )

    if model.symmetry is not None:
        aniso = rotate_tensors(model.symmetry.sion, aniso)
        g = rotate_tensors(model.symmetry.sion, g)

    return SingleIon(aniso=aniso, g=g, field=np.asarray(model.single_ion.field, dtype=float))
