import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Sequence

import numpy as np
import numpy.typing as npt
import sympy as sp

logger = logging.getLogger(__name__)

# --- Numerical Constants ---
MATTYPE_TOLERANCE: float = 1e-5
ZERO_BOND_TOLERANCE: float = 1e-10

# Flattened 3x3 index permutation that maps M to M^T (row-major).
TRANSPOSE_PERMUTATION: List[int] = [0, 3, 6, 1, 4, 7, 2, 5, 8]

# Matrix types returned by mattype()
ISOTROPIC = 1
ANISOTROPIC = 2
ANTISYMMETRIC = 3
GENERAL = 4
BIQUADRATIC = 5


def is_symbolic_array(arr: npt.NDArray) -> bool:
    """True if the array holds sympy expressions (object dtype)."""
    return np.asarray(arr).dtype == object


def tensor_array(mats: Iterable, symbolic: bool = False) -> npt.NDArray:
    """
    Stack 3x3 matrices into an (n, 3, 3) array.

    Args:
        mats: Iterable of 3x3 matrices (nested lists, NumPy arrays or sympy Matrices).
        symbolic (bool): Build an object array of sympy expressions instead of floats.

    Returns:
        npt.NDArray: Array of shape (n, 3, 3).
    """
    if symbolic:
        stacked = [np.array(sp.Matrix(np.asarray(m, dtype=object)).tolist(), dtype=object) for m in mats]
    else:
        stacked = [np.asarray(m, dtype=float).reshape(3, 3) for m in mats]
    if not stacked:
        return np.zeros((0, 3, 3), dtype=object if symbolic else float)
    return np.stack(stacked)


def symmetrize(mats: npt.NDArray) -> npt.NDArray:
    """Keep only the symmetric part (M + M^T) / 2 of every matrix in an (n, 3, 3) stack."""
    return (mats + np.transpose(mats, (0, 2, 1))) / 2


def rotate_tensors(rot_ops: npt.NDArray, mats: npt.NDArray) -> npt.NDArray:
    """
    Rotate a stack of tensors as R M R^T.

    Args:
        rot_ops (npt.NDArray): Rotation operators, shape (n, 3, 3).
        mats (npt.NDArray): Tensors, shape (n, 3, 3). Object arrays are supported.

    Returns:
        npt.NDArray: Rotated tensors, shape (n, 3, 3).
    """
    if len(mats) == 0:
        return mats.copy()
    rotated = np.matmul(rot_ops, np.matmul(mats, np.transpose(rot_ops, (0, 2, 1))))
    if is_symbolic_array(mats):
        rotated = np.vectorize(sp.expand, otypes=[object])(rotated)
    return rotated


def mattype(mat, tol: float = MATTYPE_TOLERANCE) -> int:
    """
    Classify a 3x3 interaction matrix.

    Returns:
        int: 1 isotropic (scalar times identity), 2 anisotropic diagonal,
        3 antisymmetric (DM), 4 general.
    """
    mat = np.asarray(mat)
    if is_symbolic_array(mat):
        def is_zero(x):
            return sp.simplify(x) == 0
    else:
        def is_zero(x):
            return abs(x) <= tol

    off_diag = [mat[i, j] for i in range(3) for j in range(3) if i != j]
    if all(is_zero(x) for x in off_diag):
        if is_zero(mat[0, 0] - mat[1, 1]) and is_zero(mat[0, 0] - mat[2, 2]):
            return ISOTROPIC
        return ANISOTROPIC

    pairs = [(0, 1), (0, 2), (1, 2)]
    if all(is_zero(mat[i, i]) for i in range(3)) and all(
        is_zero(mat[i, j] + mat[j, i]) for i, j in pairs
    ):
        return ANTISYMMETRIC
    return GENERAL


class ZeroTest(ABC):
    """Decides when interaction values count as zero."""

    @abstractmethod
    def is_zero(self, value) -> bool:
        """Structural zero test used for projected category values."""

    @abstractmethod
    def is_negligible(self, values: Sequence) -> bool:
        """Magnitude test on the sum of squares, used to drop whole bonds."""

    def any_nonzero(self, values: Sequence) -> bool:
        return not all(self.is_zero(v) for v in values)


class ExactZeroTest(ZeroTest):
    """Symbolic mode: a value is zero only if it simplifies to zero."""

    def is_zero(self, value) -> bool:
        return sp.simplify(value) == 0

    def is_negligible(self, values: Sequence) -> bool:
        return self.is_zero(sum(sp.sympify(v) ** 2 for v in values))


class NumericZeroTest(ZeroTest):
    """Numeric mode: exact zero for projections, tolerance on magnitudes."""

    def __init__(self, tolerance: float = ZERO_BOND_TOLERANCE):
        self.tolerance = tolerance

    def is_zero(self, value) -> bool:
        return value == 0

    def is_negligible(self, values: Sequence) -> bool:
        return float(np.sum(np.square(np.asarray(values, dtype=float)))) <= self.tolerance


def zero_test_for(symbolic: bool) -> ZeroTest:
    """Pick the zero-test strategy for the numeric mode."""
    return ExactZeroTest() if symbolic else NumericZeroTest()
