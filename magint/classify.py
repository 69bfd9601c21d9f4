import logging
from typing import Callable, Dict, List

import numpy as np
import numpy.typing as npt

from .bonds import BondRecord
from .linalg import (
    ANISOTROPIC,
    ANTISYMMETRIC,
    BIQUADRATIC,
    GENERAL,
    ISOTROPIC,
    ZeroTest,
    mattype,
)

logger = logging.getLogger(__name__)

# Number of value rows per category, after the 5 header rows (dl, atom1, atom2).
CATEGORY_ROWS: Dict[str, int] = {"iso": 1, "bq": 1, "ani": 3, "dm": 3, "gen": 9}


def _iso(mat):
    return [mat[0, 0]]


def _ani(mat):
    return [mat[0, 0], mat[1, 1], mat[2, 2]]


def _dm(mat):
    return [mat[1, 2], mat[2, 0], mat[0, 1]]


def _gen(mat):
    return list(mat.reshape(9))


CATEGORIES: Dict[str, tuple] = {
    "iso": (ISOTROPIC, _iso),
    "ani": (ANISOTROPIC, _ani),
    "dm": (ANTISYMMETRIC, _dm),
    "gen": (GENERAL, _gen),
    "bq": (BIQUADRATIC, _iso),
}


def header_rows(records: List[BondRecord], dtype) -> npt.NDArray:
    """The shared (5, n) block: dl, atom1, atom2."""
    header = np.zeros((5, len(records)), dtype=dtype)
    for col, rec in enumerate(records):
        header[0:3, col] = rec.dl
        header[3, col] = rec.atom1
        header[4, col] = rec.atom2
    return header


def classify_bonds(
    records: List[BondRecord],
    zero_test: ZeroTest,
    symbolic: bool = False,
    classifier: Callable = mattype,
) -> Dict[str, npt.NDArray]:
    """
    Split resolved bond matrices into the iso/ani/dm/gen/bq tables.

    Every matrix is classified with `classifier`; biquadratic bonds are put in
    `bq` whatever their shape. Each table holds the header rows followed by
    the values that matter for the category:

    * iso, bq: the diagonal scalar
    * ani: Jxx, Jyy, Jzz
    * dm: the DM vector (M[1,2], M[2,0], M[0,1])
    * gen: all nine elements, row-major

    Columns whose category values are all zero are dropped.
    """
    dtype = object if symbolic else float
    types = [BIQUADRATIC if rec.biquadratic else classifier(rec.matrix) for rec in records]

    tables = {}
    for name, (mtype, extract) in CATEGORIES.items():
        n_rows = 5 + CATEGORY_ROWS[name]
        kept = []
        for rec, t in zip(records, types):
            if t != mtype:
                continue
            values = extract(rec.matrix)
            if zero_test.any_nonzero(values):
                kept.append((rec, values))
        table = np.zeros((n_rows, len(kept)), dtype=dtype)
        if kept:
            table[0:5] = header_rows([rec for rec, _ in kept], dtype)
            table[5:] = np.array([values for _, values in kept], dtype=dtype).T
        tables[name] = table
        logger.debug(f"Category '{name}': {len(kept)} bonds.")
    return tables
