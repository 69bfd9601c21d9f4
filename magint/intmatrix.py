"""
Interaction matrix builder.

`intmatrix` lists the bonds of a `SpinModel` and generates the corresponding
exchange matrices by applying the bond symmetry operators to the stored
matrices. It also applies symmetry to the single-ion anisotropies and
g-tensors and can represent bonds, anisotropies and atomic positions in a
magnetic supercell.

Tables in `SS` hold one bond per column. Rows 0-2 are the unit cell
translation, rows 3-4 the indices of the two atoms; the following rows depend
on the table:

* ``all``: the 9 exchange matrix elements ``[Jxx, Jxy, Jxz, Jyx, ..., Jzz]``
  and a biquadratic flag (0 bilinear, 1 biquadratic). In plot mode the flag is
  preceded by the registry matrix index and the bond group id, and followed by
  the position of the bond in the coupling table.
* ``dip``: dipolar matrices only, same layout as ``all``, never merged into it.
* ``iso``: isotropic exchange value.
* ``ani``: ``[Jxx, Jyy, Jzz]`` of diagonal anisotropic exchange.
* ``dm``: DM vector ``[Dx, Dy, Dz]``.
* ``gen``: all 9 elements of a general exchange matrix.
* ``bq``: isotropic value of biquadratic exchange, which is not in ``iso``.

The last five are only computed outside fit mode.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np
import numpy.typing as npt

from .bonds import apply_bond_symmetry, enumerate_bonds
from .classify import classify_bonds
from .dipolar import dipolar_table
from .linalg import mattype, zero_test_for
from .model import SpinModel
from .schema import IntMatrixOptions
from .single_ion import SingleIon, resolve_single_ion
from .supercell import Extender, extend_lattice
from .transforms import conjugate_table, filter_zero_bonds, pack_all_table, sort_dm

logger = logging.getLogger(__name__)


@dataclass
class InteractionMatrices:
    """
    Result of `intmatrix`.

    Attributes:
        SS: Bond tables by category, see the module docstring.
        SI: Single-ion anisotropy and g-tensors, (nAtom, 3, 3) each, and the field.
        RR: Atom positions, (nAtom, 3), in supercell lattice units when extended.
    """

    SS: Dict[str, npt.NDArray]
    SI: SingleIon
    RR: npt.NDArray[np.float64]

    def counts(self) -> Dict[str, int]:
        """Number of bonds per table."""
        return {name: int(table.shape[1]) for name, table in self.SS.items()}

    def as_arrays(self) -> Dict[str, npt.NDArray]:
        """Flat name -> array mapping, suitable for `numpy.savez_compressed`."""
        arrays = {f"SS_{name}": table for name, table in self.SS.items()}
        arrays["SI_aniso"] = self.SI.aniso
        arrays["SI_g"] = self.SI.g
        arrays["SI_field"] = self.SI.field
        arrays["RR"] = self.RR
        return arrays


def intmatrix(
    model: SpinModel,
    options: Optional[IntMatrixOptions] = None,
    extender: Extender = extend_lattice,
    classifier: Callable = mattype,
    **kwargs,
) -> InteractionMatrices:
    """
    Generate the interaction matrices of a spin model.

    Args:
        model (SpinModel): The magnetic model. Not modified.
        options (IntMatrixOptions, optional): Builder switches. Keyword
            arguments (e.g. ``plotmode=True`` or ``sortDM=True``) override it.
        extender (Extender): Supercell replication, called with
            ``(n_ext, positions, tables)``.
        classifier (Callable): Matrix type predicate used for the category tables.

    Returns:
        InteractionMatrices: The SS tables, single-ion data and atom positions.

    Raises:
        pydantic.ValidationError: For unknown or invalid options.
    """
    if options is None:
        options = IntMatrixOptions(**kwargs)
    elif kwargs:
        overrides = IntMatrixOptions(**kwargs).model_dump(exclude_unset=True)
        options = options.model_copy(update=overrides)

    n_ext = tuple(options.n_ext) if options.n_ext is not None else model.n_ext
    n_cells = int(np.prod(n_ext))
    extend = options.extend and n_cells > 1
    plotmode = options.plotmode and not options.fitmode
    symbolic = model.symbolic
    zero_test = zero_test_for(symbolic)

    logger.info(
        f"Building interaction matrices: {model.n_atom} atoms, {len(model.couplings)} bonds, "
        f"symmetry={'on' if model.symmetry is not None else 'off'}, "
        f"{'symbolic' if symbolic else 'numeric'} mode."
    )

    single_ion = resolve_single_ion(model)

    records = enumerate_bonds(model)
    records = apply_bond_symmetry(model, records)

    categories = {}
    if not options.fitmode:
        categories = classify_bonds(records, zero_test, symbolic, classifier)

    dip = dipolar_table(model, single_ion)

    if not options.zero_c:
        records = filter_zero_bonds(records, zero_test)

    if options.sort_dm:
        records = sort_dm(records, model.positions)

    SS = {"all": pack_all_table(records, plotmode, symbolic), "dip": dip}
    SS.update(categories)

    RR = model.positions.copy()
    if extend:
        RR, SS = extender(n_ext, model.positions, SS)
        single_ion = single_ion.tile(n_cells)

    if options.conjugate:
        SS["all"] = conjugate_table(SS["all"])
        SS["dip"] = conjugate_table(SS["dip"])

    result = InteractionMatrices(SS=SS, SI=single_ion, RR=RR)
    logger.info(f"Interaction tables: {result.counts()}")
    return result
