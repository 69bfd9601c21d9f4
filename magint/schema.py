from typing import List, Dict, Optional, Union, Literal, Tuple
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from .model import MU0, MU_B, MAX_MATRIX_SLOTS


# --- Primitive Types ---
Vector3 = Union[List[float], Tuple[float, float, float]]
# Matrix elements can be float or string (symbolic)
ParamValue = Union[float, str]
Matrix3 = List[List[ParamValue]]
AtomRef = Union[int, str]


# --- Options ---
class IntMatrixOptions(BaseModel):
    """Switches of the interaction-matrix builder. Camel-case aliases are accepted."""
    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    fitmode: bool = False
    plotmode: bool = False
    sort_dm: bool = Field(default=False, alias='sortDM')
    zero_c: bool = Field(default=False, alias='zeroC')
    extend: bool = True
    conjugate: bool = False
    # None: use the supercell of the model
    n_ext: Optional[Tuple[int, int, int]] = Field(default=None, alias='nExt')

    @field_validator('n_ext')
    @classmethod
    def check_n_ext(cls, v):
        if v is not None and any(n < 1 for n in v):
            raise ValueError(f"nExt must contain positive integers, got {v}")
        return v


# --- Crystal Structure ---
class LatticeParameters(BaseModel):
    a: float
    b: float
    c: float
    alpha: float = 90.0
    beta: float = 90.0
    gamma: float = 90.0

class LatticeConfig(BaseModel):
    lattice_parameters: Optional[LatticeParameters] = None
    # Support raw vector list [[a,0,0], ...]
    lattice_vectors: Optional[List[Vector3]] = None

    @model_validator(mode='after')
    def check_lattice_source(self):
        if not (self.lattice_parameters or self.lattice_vectors):
            raise ValueError("Must provide either 'lattice_parameters' or 'lattice_vectors'.")
        if self.lattice_vectors is not None and len(self.lattice_vectors) != 3:
            raise ValueError("'lattice_vectors' needs exactly 3 vectors.")
        return self

class AtomConfig(BaseModel):
    label: str
    pos: Vector3


# --- Interactions ---
class MatrixConfig(BaseModel):
    """
    A registry matrix.

    `value` is a scalar (heisenberg, J * identity), a 3-vector (diagonal
    [Jxx, Jyy, Jzz] or dm [Dx, Dy, Dz]) or a full 3x3 matrix.
    """
    label: str
    type: Optional[Literal['heisenberg', 'diagonal', 'dm', 'matrix']] = None
    value: Union[ParamValue, List[ParamValue], Matrix3]

    @model_validator(mode='after')
    def infer_type(self):
        v = self.value
        if isinstance(v, (int, float, str)):
            shape = 'scalar'
        elif len(v) == 3 and all(isinstance(row, list) for row in v):
            if any(len(row) != 3 for row in v):
                raise ValueError(f"Matrix '{self.label}' must be 3x3.")
            shape = 'matrix'
        elif len(v) == 3 and not any(isinstance(x, list) for x in v):
            shape = 'vector'
        else:
            raise ValueError(f"Matrix '{self.label}': value must be a scalar, a 3-vector or 3x3.")

        if self.type is None:
            self.type = {'scalar': 'heisenberg', 'vector': 'diagonal', 'matrix': 'matrix'}[shape]
        expected = {'heisenberg': 'scalar', 'diagonal': 'vector', 'dm': 'vector', 'matrix': 'matrix'}
        if expected[self.type] != shape:
            raise ValueError(f"Matrix '{self.label}' of type '{self.type}' needs a {expected[self.type]} value.")
        return self

class SlotConfig(BaseModel):
    matrix: str
    biquadratic: bool = False
    sym: bool = True

class CouplingConfig(BaseModel):
    atom1: AtomRef
    atom2: AtomRef
    dl: Tuple[int, int, int] = (0, 0, 0)
    idx: int = 1
    matrices: List[SlotConfig] = Field(default_factory=list, max_length=MAX_MATRIX_SLOTS)

class SingleIonConfig(BaseModel):
    # atom label -> matrix label
    aniso: Dict[str, str] = Field(default_factory=dict)
    g: Dict[str, str] = Field(default_factory=dict)
    field: Vector3 = [0.0, 0.0, 0.0]

class SymmetryConfig(BaseModel):
    enabled: bool = False
    bond_operators: Optional[List[List[Vector3]]] = None
    site_operators: Optional[List[List[Vector3]]] = None

    @model_validator(mode='after')
    def check_operators(self):
        if self.enabled and (self.bond_operators is None or self.site_operators is None):
            raise ValueError("Symmetry enabled without 'bond_operators' and 'site_operators'.")
        return self

class UnitsConfig(BaseModel):
    mu0: float = MU0
    muB: float = MU_B


# --- Main Configuration ---
class ModelConfig(BaseModel):
    lattice: LatticeConfig
    atoms: List[AtomConfig]
    matrices: List[MatrixConfig] = Field(default_factory=list)
    couplings: List[CouplingConfig] = Field(default_factory=list)
    nsym: int = 0
    rdip: float = 0.0
    n_ext: Tuple[int, int, int] = (1, 1, 1)
    symbolic: bool = False
    units: UnitsConfig = Field(default_factory=UnitsConfig)
    single_ion: SingleIonConfig = Field(default_factory=SingleIonConfig)
    symmetry: SymmetryConfig = Field(default_factory=SymmetryConfig)
    options: IntMatrixOptions = Field(default_factory=IntMatrixOptions)

    @field_validator('n_ext')
    @classmethod
    def check_n_ext(cls, v):
        if any(n < 1 for n in v):
            raise ValueError(f"n_ext must contain positive integers, got {v}")
        return v

    @model_validator(mode='after')
    def check_references(self):
        atom_labels = [a.label for a in self.atoms]
        matrix_labels = [m.label for m in self.matrices]
        if len(set(atom_labels)) != len(atom_labels):
            raise ValueError("Atom labels must be unique.")
        if len(set(matrix_labels)) != len(matrix_labels):
            raise ValueError("Matrix labels must be unique.")

        def check_atom(ref):
            if isinstance(ref, int):
                if not 0 <= ref < len(atom_labels):
                    raise ValueError(f"Atom index {ref} out of range.")
            elif ref not in atom_labels:
                raise ValueError(f"Unknown atom '{ref}'.")

        for c in self.couplings:
            check_atom(c.atom1)
            check_atom(c.atom2)
            for slot in c.matrices:
                if slot.matrix not in matrix_labels:
                    raise ValueError(f"Unknown matrix '{slot.matrix}' in coupling.")
        for section in (self.single_ion.aniso, self.single_ion.g):
            for atom, mat in section.items():
                check_atom(atom)
                if mat not in matrix_labels:
                    raise ValueError(f"Unknown matrix '{mat}' in single_ion.")
        return self
