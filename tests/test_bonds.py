import numpy as np
import sympy as sp
from numpy.testing import assert_allclose, assert_array_equal

from magint.bonds import apply_bond_symmetry, enumerate_bonds
from magint.model import (
    Coupling,
    CouplingTable,
    MatrixRegistry,
    MatrixSlot,
    SpinModel,
    SymmetryOperators,
)

ROT_Z_90 = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
ROT_Z_30 = np.array(
    [
        [np.cos(np.pi / 6), -np.sin(np.pi / 6), 0.0],
        [np.sin(np.pi / 6), np.cos(np.pi / 6), 0.0],
        [0.0, 0.0, 1.0],
    ]
)
J_ISO = 1.5 * np.eye(3)
J_ANI = np.diag([1.0, 2.0, 3.0])


def make_model(couplings, matrices=(J_ISO, J_ANI), nsym=1, bond_ops=None, symbolic=False):
    positions = np.array([[0.0, 0.0, 0.0], [0.5, 0.0, 0.0]])
    symmetry = None
    if bond_ops is not None:
        symmetry = SymmetryOperators(bond=np.array(bond_ops), sion=np.array([np.eye(3)] * 2))
    return SpinModel(
        positions=positions,
        basis=4.0 * np.eye(3),
        registry=MatrixRegistry(list(matrices), symbolic=symbolic),
        couplings=CouplingTable(couplings=couplings, nsym=nsym),
        symmetry=symmetry,
    )


# --- Tests for enumerate_bonds ---
def test_enumerate_slot_major_order():
    couplings = [
        Coupling(dl=(0, 0, 0), atom1=0, atom2=1, idx=1, slots=(MatrixSlot(0), MatrixSlot(1))),
        Coupling(dl=(1, 0, 0), atom1=1, atom2=0, idx=1, slots=(MatrixSlot(0),)),
    ]
    records = enumerate_bonds(make_model(couplings))
    assert [r.col_sel for r in records] == [0, 1, 0]
    assert [r.mat_idx for r in records] == [0, 0, 1]
    assert records[1].dl == (1, 0, 0)
    assert (records[1].atom1, records[1].atom2) == (1, 0)
    assert_array_equal(records[2].matrix, J_ANI)


def test_enumerate_skips_unassigned_slots():
    couplings = [
        Coupling(
            dl=(0, 0, 0),
            atom1=0,
            atom2=1,
            idx=1,
            slots=(MatrixSlot(None), MatrixSlot(1, biquadratic=True)),
        ),
        Coupling(dl=(0, 1, 0), atom1=0, atom2=0, idx=2),
    ]
    records = enumerate_bonds(make_model(couplings))
    assert len(records) == 1
    assert records[0].mat_idx == 1
    assert records[0].biquadratic


def test_enumerated_matrix_is_a_copy():
    model = make_model([Coupling(dl=(0, 0, 0), atom1=0, atom2=1, slots=(MatrixSlot(1),))])
    records = enumerate_bonds(model)
    records[0].matrix[0, 0] = 99.0
    assert model.registry.mat[1][0, 0] == 1.0


# --- Tests for apply_bond_symmetry ---
def test_symmetry_rotates_only_anisotropic_matrices():
    couplings = [
        Coupling(dl=(0, 0, 0), atom1=0, atom2=1, idx=1, slots=(MatrixSlot(0), MatrixSlot(1))),
    ]
    model = make_model(couplings, bond_ops=[ROT_Z_90])
    records = apply_bond_symmetry(model, enumerate_bonds(model))
    # a 90 degree operator maps c*I onto itself exactly, see the 30 degree case below
    assert_array_equal(records[0].matrix, J_ISO)
    assert_allclose(records[1].matrix, np.diag([2.0, 1.0, 3.0]), atol=1e-14)


def test_isotropic_matrix_is_never_rotated():
    couplings = [Coupling(dl=(0, 0, 0), atom1=0, atom2=1, idx=1, slots=(MatrixSlot(0),))]
    model = make_model(couplings, matrices=[0.7 * np.eye(3)], bond_ops=[ROT_Z_30])
    records = apply_bond_symmetry(model, enumerate_bonds(model))
    # rotating would leave rounding noise on the diagonal
    assert_array_equal(records[0].matrix, 0.7 * np.eye(3))


def test_symmetry_skips_unflagged_and_user_bonds():
    couplings = [
        Coupling(dl=(0, 0, 0), atom1=0, atom2=1, idx=1, slots=(MatrixSlot(1, sym=False),)),
        Coupling(dl=(0, 0, 0), atom1=0, atom2=1, idx=1, slots=(MatrixSlot(1),)),
        Coupling(dl=(1, 0, 0), atom1=0, atom2=1, idx=2, slots=(MatrixSlot(1),)),
    ]
    model = make_model(couplings, nsym=1, bond_ops=[ROT_Z_90] * 3)
    records = apply_bond_symmetry(model, enumerate_bonds(model))
    assert_array_equal(records[0].matrix, J_ANI)
    assert_allclose(records[1].matrix, np.diag([2.0, 1.0, 3.0]), atol=1e-14)
    assert_array_equal(records[2].matrix, J_ANI)


def test_no_symmetry_returns_records_unchanged():
    couplings = [Coupling(dl=(0, 0, 0), atom1=0, atom2=1, slots=(MatrixSlot(1),))]
    model = make_model(couplings)
    records = enumerate_bonds(model)
    assert_array_equal(apply_bond_symmetry(model, records)[0].matrix, J_ANI)


def test_symbolic_isotropic_bond_is_not_rotated():
    J = sp.Symbol("J")
    couplings = [Coupling(dl=(0, 0, 0), atom1=0, atom2=1, idx=1, slots=(MatrixSlot(0),))]
    model = make_model(couplings, matrices=[sp.eye(3) * J], bond_ops=[ROT_Z_90], symbolic=True)
    records = apply_bond_symmetry(model, enumerate_bonds(model))
    assert records[0].matrix[0, 0] == J
    assert records[0].matrix[0, 1] == 0


def test_flipped_record():
    mat = np.arange(9, dtype=float).reshape(3, 3)
    model = make_model(
        [Coupling(dl=(1, -1, 0), atom1=0, atom2=1, slots=(MatrixSlot(0),))], matrices=[mat]
    )
    rec = enumerate_bonds(model)[0].flipped()
    assert rec.dl == (-1, 1, 0)
    assert (rec.atom1, rec.atom2) == (1, 0)
    assert_array_equal(rec.matrix, mat.T)
