#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration Loading Utility for MagInt.

This module provides functions to load and validate a spin model
configuration from a YAML file and to turn it into a `SpinModel`.
"""
import yaml
import logging
from typing import Any, List, Union

import numpy as np
import sympy as sp

from .model import (
    Coupling,
    CouplingTable,
    MatrixRegistry,
    MatrixSlot,
    SingleIonInput,
    SpinModel,
    SymmetryOperators,
    Units,
)
from .schema import MatrixConfig, ModelConfig

logger = logging.getLogger(__name__)


def lattice_vectors_from_parameters(a, b, c, alpha_deg, beta_deg, gamma_deg) -> np.ndarray:
    """Convert lattice parameters to Cartesian vectors (a || x), one vector per row."""
    alpha, beta, gamma = np.radians([alpha_deg, beta_deg, gamma_deg])

    va = np.array([a, 0, 0])
    vb = np.array([b * np.cos(gamma), b * np.sin(gamma), 0])

    cx = c * np.cos(beta)
    cy = (c * b * np.cos(alpha) - vb[0] * cx) / vb[1]
    cz = np.sqrt(c**2 - cx**2 - cy**2)

    vc = np.array([cx, cy, cz])
    return np.array([va, vb, vc])


def load_model_config(filepath: str) -> ModelConfig:
    """
    Loads and validates the spin model configuration from a YAML file.

    Args:
        filepath (str): The path to the YAML configuration file.

    Returns:
        ModelConfig: The validated configuration.

    Raises:
        FileNotFoundError: If the configuration file is not found.
        ValueError: If there's an error parsing the YAML.
        pydantic.ValidationError: If the content does not match the schema.
    """
    logger.info(f"Loading spin model configuration from: {filepath}")
    try:
        with open(filepath, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.error(f"Configuration file not found: {filepath}")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML file {filepath}: {e}")
        raise ValueError(f"Invalid YAML format in {filepath}") from e

    if not isinstance(data, dict):
        msg = f"Configuration file {filepath} does not contain a mapping."
        logger.error(msg)
        raise ValueError(msg)

    config = ModelConfig.model_validate(data)
    logger.info("Spin model configuration loaded and validated.")
    return config


def _element(value: Union[float, str], symbolic: bool) -> Any:
    if symbolic:
        return sp.sympify(value)
    if isinstance(value, str):
        raise ValueError(f"Symbolic value '{value}' found but the model is not symbolic.")
    return float(value)


def build_matrix(entry: MatrixConfig, symbolic: bool = False) -> List[List[Any]]:
    """Expand a registry entry into a full 3x3 matrix."""
    zero = sp.Integer(0) if symbolic else 0.0
    if entry.type == "heisenberg":
        j = _element(entry.value, symbolic)
        return [[j, zero, zero], [zero, j, zero], [zero, zero, j]]
    if entry.type == "diagonal":
        jxx, jyy, jzz = (_element(v, symbolic) for v in entry.value)
        return [[jxx, zero, zero], [zero, jyy, zero], [zero, zero, jzz]]
    if entry.type == "dm":
        # antisymmetric matrix with D = (M[1,2], M[2,0], M[0,1])
        dx, dy, dz = (_element(v, symbolic) for v in entry.value)
        return [[zero, dz, -dy], [-dz, zero, dx], [dy, -dx, zero]]
    return [[_element(v, symbolic) for v in row] for row in entry.value]


def build_spin_model(config: ModelConfig) -> SpinModel:
    """Turn a validated configuration into the builder's input model."""
    lattice = config.lattice
    if lattice.lattice_vectors is not None:
        basis = np.array(lattice.lattice_vectors, dtype=float)
    else:
        p = lattice.lattice_parameters
        basis = lattice_vectors_from_parameters(p.a, p.b, p.c, p.alpha, p.beta, p.gamma)

    atom_labels = [a.label for a in config.atoms]

    def atom_index(ref):
        return ref if isinstance(ref, int) else atom_labels.index(ref)

    registry = MatrixRegistry(
        [build_matrix(m, config.symbolic) for m in config.matrices],
        labels=[m.label for m in config.matrices],
        symbolic=config.symbolic,
    )

    couplings = CouplingTable(
        couplings=[
            Coupling(
                dl=c.dl,
                atom1=atom_index(c.atom1),
                atom2=atom_index(c.atom2),
                idx=c.idx,
                slots=tuple(
                    MatrixSlot(
                        index=registry.index_of(s.matrix),
                        biquadratic=s.biquadratic,
                        sym=s.sym,
                    )
                    for s in c.matrices
                ),
            )
            for c in config.couplings
        ],
        nsym=config.nsym,
        rdip=config.rdip,
    )

    si = config.single_ion
    single_ion = SingleIonInput(
        aniso=[registry.index_of(si.aniso[a]) if a in si.aniso else None for a in atom_labels],
        g=[registry.index_of(si.g[a]) if a in si.g else None for a in atom_labels],
        field=tuple(si.field),
    )

    symmetry = None
    if config.symmetry.enabled:
        symmetry = SymmetryOperators(
            bond=np.array(config.symmetry.bond_operators, dtype=float),
            sion=np.array(config.symmetry.site_operators, dtype=float),
        )

    model = SpinModel(
        positions=np.array([a.pos for a in config.atoms], dtype=float),
        basis=basis,
        registry=registry,
        couplings=couplings,
        single_ion=single_ion,
        symmetry=symmetry,
        n_ext=config.n_ext,
        units=Units(mu0=config.units.mu0, muB=config.units.muB),
    )
    logger.info(
        f"Built spin model: {model.n_atom} atoms, {len(registry)} matrices, {len(couplings)} bonds."
    )
    return model


def load_spin_model(filepath: str) -> SpinModel:
    """Load a YAML file straight into a `SpinModel`."""
    return build_spin_model(load_model_config(filepath))
