import logging

import numpy as np
import numpy.typing as npt

from .model import SpinModel
from .single_ion import SingleIon

logger = logging.getLogger(__name__)

N_TABLE_ROWS: int = 15


def dipolar_prefactor(mu0: float, muB: float) -> float:
    """-mu0 muB^2 / (4 pi): energy of two Bohr magnetons 1 Angstrom apart, in meV."""
    return -mu0 * muB**2 / (4 * np.pi)


def dipolar_table(model: SpinModel, single_ion: SingleIon) -> npt.NDArray:
    """
    Dipole-dipole interaction matrices for every bond shorter than the cutoff.

    For a bond vector r = |r| n the coupling is

        J = g1^T K g2,   K = -mu0 muB^2 / (4 pi |r|^3) (3 n n^T - I)

    where g1, g2 are the g-tensors of the two atoms. The whole coupling table
    is scanned, independently of the matrix assignments.

    Returns:
        npt.NDArray: (15, nDip) table: dl, atom1, atom2, J (row-major), 0.
    """
    dtype = object if model.symbolic else float
    couplings = model.couplings
    if couplings.rdip <= 0 or len(couplings) == 0:
        return np.zeros((N_TABLE_ROWS, 0), dtype=dtype)

    dl = couplings.dl
    atom1 = couplings.atom1
    atom2 = couplings.atom2

    # bond vectors in the Cartesian frame
    dr = dl + model.positions[atom2] - model.positions[atom1]
    dr_cart = dr @ model.basis
    length = np.linalg.norm(dr_cart, axis=1)

    r_sel = length < couplings.rdip
    n_dip = int(np.count_nonzero(r_sel))
    logger.debug(f"Dipolar cutoff {couplings.rdip} A keeps {n_dip} of {len(couplings)} bonds.")

    n_hat = dr_cart[r_sel] / length[r_sel, None]
    rr_mat = 3 * np.einsum("ni,nj->nij", n_hat, n_hat) - np.eye(3)
    e_dip = dipolar_prefactor(model.units.mu0, model.units.muB)
    rr_mat = e_dip * rr_mat / length[r_sel, None, None] ** 3

    g1_t = np.transpose(single_ion.g[atom1[r_sel]], (0, 2, 1))
    j_dip = np.matmul(np.matmul(g1_t, rr_mat), single_ion.g[atom2[r_sel]])

    table = np.zeros((N_TABLE_ROWS, n_dip), dtype=dtype)
    table[0:3] = dl[r_sel].T
    table[3] = atom1[r_sel]
    table[4] = atom2[r_sel]
    table[5:14] = np.asarray(j_dip).reshape(-1, 9).T
    return table
