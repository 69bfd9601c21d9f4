import numpy as np
import pytest
from numpy.testing import assert_array_equal

from magint.model import (
    Coupling,
    CouplingTable,
    MatrixRegistry,
    MatrixSlot,
    Sentinel,
    SingleIonInput,
    SpinModel,
    SymmetryOperators,
)


def make_model(couplings=(), n_matrices=1, **kwargs):
    return SpinModel(
        positions=np.array([[0.0, 0.0, 0.0], [0.5, 0.5, 0.0]]),
        basis=np.eye(3),
        registry=MatrixRegistry([np.eye(3)] * n_matrices),
        couplings=CouplingTable(couplings=list(couplings), nsym=1),
        **kwargs,
    )


# --- MatrixRegistry ---
def test_registry_labels_and_lookup():
    registry = MatrixRegistry([np.eye(3), np.diag([1.0, 2.0, 3.0])], labels=["J1", "Jd"])
    assert registry.index_of("Jd") == 1
    with pytest.raises(KeyError):
        registry.index_of("J3")
    mats = registry.lookup([1, Sentinel.ZERO, Sentinel.DEFAULT_G])
    assert_array_equal(mats[0], np.diag([1.0, 2.0, 3.0]))
    assert_array_equal(mats[1], np.zeros((3, 3)))
    assert_array_equal(mats[2], 2 * np.eye(3))


def test_registry_default_labels():
    assert MatrixRegistry([np.eye(3)] * 2).labels == ["J1", "J2"]
    with pytest.raises(ValueError):
        MatrixRegistry([np.eye(3)], labels=["J1", "J2"])


def test_resolve_unassigned():
    assert MatrixRegistry.resolve(None, Sentinel.ZERO) is Sentinel.ZERO
    assert MatrixRegistry.resolve(0, Sentinel.ZERO) == 0


# --- Coupling / CouplingTable ---
def test_coupling_slots():
    c = Coupling(dl=[1, 0, 0], atom1=0, atom2=1, slots=[MatrixSlot(0)])
    assert c.dl == (1, 0, 0)
    assert c.slot(0).index == 0
    assert c.slot(2).index is None
    with pytest.raises(ValueError):
        Coupling(dl=(0, 0, 0), atom1=0, atom2=1, slots=[MatrixSlot(0)] * 4)
    with pytest.raises(ValueError):
        Coupling(dl=(0, 0), atom1=0, atom2=1)


def test_last_sym():
    couplings = [
        Coupling(dl=(0, 0, 0), atom1=0, atom2=1, idx=1),
        Coupling(dl=(1, 0, 0), atom1=0, atom2=1, idx=2),
        Coupling(dl=(0, 1, 0), atom1=0, atom2=1, idx=1),
        Coupling(dl=(0, 0, 1), atom1=0, atom2=1, idx=3),
    ]
    assert CouplingTable(couplings, nsym=1).last_sym() == 2
    assert CouplingTable(couplings, nsym=0).last_sym() == -1
    assert CouplingTable([], nsym=1).last_sym() == -1
    assert CouplingTable([]).dl.shape == (0, 3)


# --- SpinModel validation ---
@pytest.mark.parametrize(
    "kwargs",
    [
        {"couplings": [Coupling(dl=(0, 0, 0), atom1=0, atom2=2)]},
        {"couplings": [Coupling(dl=(0, 0, 0), atom1=0, atom2=1, slots=(MatrixSlot(1),))]},
        {"single_ion": SingleIonInput(aniso=[0, 3])},
        {"single_ion": SingleIonInput(field=(0.0, 1.0))},
        {"n_ext": (0, 1, 1)},
        {"symmetry": SymmetryOperators(bond=np.eye(3), sion=np.array([np.eye(3)] * 2))},
        {"symmetry": SymmetryOperators(bond=np.zeros((0, 3, 3)), sion=np.eye(3))},
    ],
)
def test_invalid_model(kwargs):
    with pytest.raises(ValueError):
        make_model(**kwargs)


def test_symmetry_operator_shape():
    with pytest.raises(ValueError):
        SymmetryOperators(bond=np.zeros((2, 2)), sion=np.eye(3))


def test_valid_model():
    model = make_model(
        couplings=[Coupling(dl=(0, 0, 0), atom1=0, atom2=1, slots=(MatrixSlot(0),))],
        single_ion=SingleIonInput(aniso=[None, 0], g=[None, None]),
        n_ext=[2, 1, 1],
    )
    assert model.n_atom == 2
    assert model.n_ext == (2, 1, 1)
    assert not model.symbolic
