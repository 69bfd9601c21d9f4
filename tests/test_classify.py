import numpy as np
import sympy as sp
from numpy.testing import assert_allclose, assert_array_equal

from magint.bonds import BondRecord
from magint.classify import classify_bonds
from magint.linalg import ExactZeroTest, NumericZeroTest


def record(matrix, biquadratic=False, dl=(0, 0, 0), atom1=0, atom2=1):
    return BondRecord(
        dl=dl,
        atom1=atom1,
        atom2=atom2,
        group=1,
        mat_idx=0,
        col_sel=0,
        biquadratic=biquadratic,
        sym=True,
        matrix=np.asarray(matrix),
    )


DM_Z = np.array([[0.0, 1.0, 0.0], [-1.0, 0.0, 0.0], [0.0, 0.0, 0.0]])


def test_table_shapes_for_empty_input():
    tables = classify_bonds([], NumericZeroTest())
    assert tables["iso"].shape == (6, 0)
    assert tables["bq"].shape == (6, 0)
    assert tables["ani"].shape == (8, 0)
    assert tables["dm"].shape == (8, 0)
    assert tables["gen"].shape == (14, 0)


def test_isotropic_bond():
    tables = classify_bonds([record(np.eye(3), dl=(1, 0, -1))], NumericZeroTest())
    assert_array_equal(tables["iso"], [[1], [0], [-1], [0], [1], [1]])
    assert tables["ani"].shape[1] == 0
    assert tables["gen"].shape[1] == 0


def test_dm_vector_extraction_order():
    tables = classify_bonds([record(DM_Z)], NumericZeroTest())
    assert tables["dm"].shape == (8, 1)
    assert_array_equal(tables["dm"][5:, 0], [0.0, 0.0, 1.0])

    dm_x = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 0.3], [0.0, -0.3, 0.0]])
    tables = classify_bonds([record(dm_x)], NumericZeroTest())
    assert_allclose(tables["dm"][5:, 0], [0.3, 0.0, 0.0])


def test_anisotropic_and_general():
    gen = np.array([[1.0, 0.2, 0.0], [0.1, 1.0, 0.0], [0.0, 0.0, 1.0]])
    tables = classify_bonds(
        [record(np.diag([1.0, 2.0, 3.0])), record(gen)], NumericZeroTest()
    )
    assert_array_equal(tables["ani"][5:, 0], [1.0, 2.0, 3.0])
    assert_array_equal(tables["gen"][5:, 0], gen.reshape(9))


def test_biquadratic_overrides_matrix_type():
    tables = classify_bonds(
        [record(0.5 * np.eye(3), biquadratic=True), record(DM_Z, biquadratic=True)],
        NumericZeroTest(),
    )
    assert tables["iso"].shape[1] == 0
    assert tables["dm"].shape[1] == 0
    # the DM matrix has a zero diagonal and is dropped from bq
    assert tables["bq"].shape == (6, 1)
    assert tables["bq"][5, 0] == 0.5


def test_zero_values_are_dropped():
    tables = classify_bonds([record(np.zeros((3, 3))), record(np.eye(3))], NumericZeroTest())
    assert tables["iso"].shape == (6, 1)
    assert tables["iso"][5, 0] == 1.0


def test_custom_classifier():
    tables = classify_bonds([record(np.eye(3))], NumericZeroTest(), classifier=lambda m: 4)
    assert tables["iso"].shape[1] == 0
    assert tables["gen"].shape == (14, 1)


def test_symbolic_classification():
    J, D = sp.symbols("J D")
    iso = np.array(sp.Matrix(sp.eye(3) * J).tolist(), dtype=object)
    dm = np.array([[0, D, 0], [-D, 0, 0], [0, 0, 0]], dtype=object)
    zero_dm = np.array([[0, D - D, 0], [0, 0, 0], [0, 0, 0]], dtype=object)
    tables = classify_bonds(
        [record(iso), record(dm), record(zero_dm)], ExactZeroTest(), symbolic=True
    )
    assert tables["iso"].dtype == object
    assert tables["iso"][5, 0] == J
    assert tables["dm"].shape == (8, 1)
    assert tables["dm"][7, 0] == D
