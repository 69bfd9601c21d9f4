"""
MagInt: interaction matrices of magnetic crystal models.

Builds exchange, single-ion anisotropy, g-tensor and dipolar matrices from a
registry of interaction matrices assigned to bond classes, propagating them
with crystallographic symmetry operators.
"""
from .intmatrix import InteractionMatrices, intmatrix
from .model import (
    Coupling,
    CouplingTable,
    MatrixRegistry,
    MatrixSlot,
    Sentinel,
    SingleIonInput,
    SpinModel,
    SymmetryOperators,
    Units,
)
from .schema import IntMatrixOptions
from .single_ion import SingleIon

__all__ = [
    "Coupling",
    "CouplingTable",
    "IntMatrixOptions",
    "InteractionMatrices",
    "MatrixRegistry",
    "MatrixSlot",
    "Sentinel",
    "SingleIon",
    "SingleIonInput",
    "SpinModel",
    "SymmetryOperators",
    "Units",
    "intmatrix",
]
