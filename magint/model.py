"""
Input model for the interaction-matrix builder.

The classes here describe a magnetic crystal the way the builder consumes it:
magnetic atom positions, the lattice basis, a registry of 3x3 interaction
matrices, the coupling (bond) table with its matrix-slot assignments, the
single-ion assignments and, optionally, the per-bond and per-site symmetry
operators. All of them are treated as read-only by the pipeline.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
import numpy.typing as npt

from .linalg import tensor_array

logger = logging.getLogger(__name__)

# --- Physical Constants ---
MU0: float = 201.335431  # vacuum permeability [T^2 Angstrom^3 / meV]
MU_B: float = 0.057883818066  # Bohr magneton [meV / T]

MAX_MATRIX_SLOTS: int = 3


class Sentinel(Enum):
    """Implicit registry entries used when an atom has no assigned matrix."""

    ZERO = "zero"  # unassigned anisotropy
    DEFAULT_G = "default_g"  # g = 2 * identity


MatrixRef = Union[int, Sentinel]


@dataclass(frozen=True)
class Units:
    mu0: float = MU0
    muB: float = MU_B


class MatrixRegistry:
    """
    Ordered list of 3x3 interaction matrices addressed by 0-based index.

    The zero matrix and the default g-tensor are not part of the list; they are
    reached through `Sentinel` references so that they can never collide with
    a user matrix.
    """

    def __init__(
        self,
        matrices: Sequence = (),
        labels: Optional[Sequence[str]] = None,
        symbolic: bool = False,
    ):
        self.symbolic = symbolic
        self.mat = tensor_array(matrices, symbolic)
        if labels is None:
            labels = [f"J{i + 1}" for i in range(len(self.mat))]
        self.labels: List[str] = list(labels)
        if len(self.labels) != len(self.mat):
            raise ValueError(
                f"Got {len(self.labels)} labels for {len(self.mat)} matrices."
            )

    def __len__(self) -> int:
        return len(self.mat)

    def index_of(self, label: str) -> int:
        try:
            return self.labels.index(label)
        except ValueError:
            raise KeyError(f"No matrix labelled '{label}' in the registry.") from None

    def sentinel_matrix(self, sentinel: Sentinel) -> npt.NDArray:
        if sentinel is Sentinel.ZERO:
            value = np.zeros((3, 3), dtype=int)
        else:
            value = 2 * np.eye(3, dtype=int)
        return tensor_array([value], symbolic=self.symbolic)[0]

    @staticmethod
    def resolve(index: Optional[int], default: Sentinel) -> MatrixRef:
        """Map an unassigned (None) index onto its sentinel."""
        return default if index is None else index

    def lookup(self, refs: Sequence[MatrixRef]) -> npt.NDArray:
        """Gather matrices for a sequence of indices / sentinels as an (n, 3, 3) array."""
        mats = [
            self.sentinel_matrix(ref) if isinstance(ref, Sentinel) else self.mat[ref]
            for ref in refs
        ]
        return tensor_array(mats, self.symbolic)


@dataclass(frozen=True)
class MatrixSlot:
    """One matrix assignment of a bond."""

    index: Optional[int] = None
    biquadratic: bool = False
    sym: bool = True


@dataclass(frozen=True)
class Coupling:
    """A bond from `atom1` in the home cell to `atom2` in cell `dl`."""

    dl: Tuple[int, int, int]
    atom1: int
    atom2: int
    idx: int = 1
    slots: Tuple[MatrixSlot, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "dl", tuple(int(x) for x in self.dl))
        object.__setattr__(self, "slots", tuple(self.slots))
        if len(self.dl) != 3:
            raise ValueError(f"Bond translation must have 3 components, got {self.dl}.")
        if len(self.slots) > MAX_MATRIX_SLOTS:
            raise ValueError(
                f"A bond holds at most {MAX_MATRIX_SLOTS} matrices, got {len(self.slots)}."
            )

    def slot(self, k: int) -> MatrixSlot:
        return self.slots[k] if k < len(self.slots) else MatrixSlot()


@dataclass
class CouplingTable:
    """
    The bond list.

    `nsym` is the largest bond group id generated by symmetry; bonds in later
    groups were added by hand and never get rotated. `rdip` is the dipolar
    cutoff in Angstrom, non-positive to disable dipolar terms.
    """

    couplings: List[Coupling] = field(default_factory=list)
    nsym: int = 0
    rdip: float = 0.0

    def __len__(self) -> int:
        return len(self.couplings)

    @property
    def dl(self) -> npt.NDArray[np.int_]:
        return np.array([c.dl for c in self.couplings], dtype=int).reshape(-1, 3)

    @property
    def atom1(self) -> npt.NDArray[np.int_]:
        return np.array([c.atom1 for c in self.couplings], dtype=int)

    @property
    def atom2(self) -> npt.NDArray[np.int_]:
        return np.array([c.atom2 for c in self.couplings], dtype=int)

    @property
    def idx(self) -> npt.NDArray[np.int_]:
        return np.array([c.idx for c in self.couplings], dtype=int)

    def last_sym(self) -> int:
        """Position of the last symmetry-generated bond, -1 if there is none."""
        generated = np.flatnonzero(self.idx <= self.nsym)
        return int(generated[-1]) if generated.size else -1


@dataclass
class SymmetryOperators:
    """Rotation operators, one per bond (`bond`) and one per magnetic atom (`sion`)."""

    bond: npt.NDArray[np.float64]
    sion: npt.NDArray[np.float64]

    def __post_init__(self):
        self.bond = np.asarray(self.bond, dtype=float).reshape(-1, 3, 3)
        self.sion = np.asarray(self.sion, dtype=float).reshape(-1, 3, 3)


@dataclass
class SingleIonInput:
    """Per-atom anisotropy and g-tensor registry indices (None = unassigned) and the field."""

    aniso: List[Optional[int]] = field(default_factory=list)
    g: List[Optional[int]] = field(default_factory=list)
    field: Tuple[float, float, float] = (0.0, 0.0, 0.0)


@dataclass
class SpinModel:
    """
    Everything the builder reads from a magnetic crystal model.

    Attributes:
        positions: Fractional positions of the magnetic atoms, shape (nAtom, 3).
        basis: Lattice vectors as rows (a, b, c) in Angstrom, shape (3, 3).
        registry: The interaction matrices.
        couplings: The bond table.
        single_ion: Single-ion assignments and the external field.
        symmetry: Symmetry operators, or None when symmetry is disabled.
        n_ext: Magnetic supercell multiplier.
        units: Physical constants for the dipolar term.
    """

    positions: npt.NDArray[np.float64]
    basis: npt.NDArray[np.float64]
    registry: MatrixRegistry
    couplings: CouplingTable = field(default_factory=CouplingTable)
    single_ion: SingleIonInput = field(default_factory=SingleIonInput)
    symmetry: Optional[SymmetryOperators] = None
    n_ext: Tuple[int, int, int] = (1, 1, 1)
    units: Units = field(default_factory=Units)

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=float).reshape(-1, 3)
        self.basis = np.asarray(self.basis, dtype=float).reshape(3, 3)
        self.n_ext = tuple(int(n) for n in self.n_ext)
        self._validate()

    @property
    def symbolic(self) -> bool:
        return self.registry.symbolic

    @property
    def n_atom(self) -> int:
        return len(self.positions)

    def _fail(self, msg: str):
        logger.error(msg)
        raise ValueError(msg)

    def _validate(self):
        n_atom = self.n_atom
        n_mat = len(self.registry)
        for i, c in enumerate(self.couplings.couplings):
            if not (0 <= c.atom1 < n_atom and 0 <= c.atom2 < n_atom):
                self._fail(f"Bond {i} references atoms ({c.atom1}, {c.atom2}) outside 0..{n_atom - 1}.")
            for slot in c.slots:
                if slot.index is not None and not 0 <= slot.index < n_mat:
                    self._fail(f"Bond {i} references matrix {slot.index}, registry has {n_mat}.")
        for name in ("aniso", "g"):
            for ref in getattr(self.single_ion, name):
                if ref is not None and not 0 <= ref < n_mat:
                    self._fail(f"Single-ion {name} references matrix {ref}, registry has {n_mat}.")
        if len(self.single_ion.field) != 3:
            self._fail("External field must have 3 components.")
        if len(self.n_ext) != 3 or any(n < 1 for n in self.n_ext):
            self._fail(f"n_ext must be 3 positive integers, got {self.n_ext}.")
        if self.symmetry is not None:
            if len(self.symmetry.bond) != len(self.couplings):
                self._fail(
                    f"Got {len(self.symmetry.bond)} bond operators for {len(self.couplings)} bonds."
                )
            if len(self.symmetry.sion) != n_atom:
                self._fail(f"Got {len(self.symmetry.sion)} site operators for {n_atom} atoms.")
