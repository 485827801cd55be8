# quakeframe/kernel/assemble.py
"""
ASSEMBLY: Global Stiffness Matrix and Gravity Load Vector
=========================================================

Scatter-add of element matrices into K, plus the gravity load vector F built
from node masses.

    K = zeros(ndof × ndof)
    for each active element:
        ke = truss3d_global_stiffness(L, d, E, A)      # 6×6
        K[dof_map, dof_map] += ke                      # (A,A) (A,B) (B,A) (B,B)

    F[uy of node] = -mass × g × load_scale

Assembly is a pure function of the model snapshot. Broken elements carry no
load and are left out; elements whose material is not in the table are
skipped and reported. Assembly is repeated in full every tick: models hold
tens of elements, not thousands.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np

from ..config import SolverConfig
from ..model import Element, StructuralModel
from ..v3d.elements import element_geometry_3d, truss3d_global_stiffness
from .dof import DOFManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ElementGeometry:
    """Per-element data cached during assembly for stress recovery."""
    element_id: str
    node_ids: Tuple[str, str]
    length: float
    axis: np.ndarray
    E: float  # Pa
    A: float  # m²


@dataclass
class AssembledSystem:
    """
    Result of assembling a model.

    Attributes:
        K: Global stiffness matrix (ndof × ndof), symmetric PSD
        F: Global load vector (ndof,)
        dof: DOF numbering used for K and F
        geometry: Geometry of every element that entered K, keyed by id
        skipped: Element ids left out because of an unknown material
        orphan_nodes: Non-support nodes with no active element attached
        warnings: Human-readable notes about skipped/orphaned items
    """
    K: np.ndarray
    F: np.ndarray
    dof: DOFManager
    geometry: Dict[str, ElementGeometry] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    orphan_nodes: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def assemble_global_K(
    ndof: int,
    contributions: List[Tuple[List[int], np.ndarray]]
) -> np.ndarray:
    """
    Assemble the global stiffness matrix from element contributions.

    Args:
        ndof: Total number of DOFs
        contributions: (dof_map, ke) per element, ke in global axes with
            shape (len(dof_map), len(dof_map))

    Returns:
        K, shape (ndof, ndof)
    """
    K = np.zeros((ndof, ndof), dtype=float)

    for dof_map, ke in contributions:
        n_element_dofs = len(dof_map)

        assert ke.shape == (n_element_dofs, n_element_dofs), \
            f"Element ke shape {ke.shape} doesn't match dof_map length {n_element_dofs}"

        idx = np.asarray(dof_map, dtype=int)
        K[np.ix_(idx, idx)] += ke

    return K


def add_nodal_load(F: np.ndarray, dof: DOFManager, node_id: str, load_vector: np.ndarray) -> None:
    """Add a nodal load (Fx, Fy, Fz) in N to F (in-place)."""
    for i, val in enumerate(load_vector):
        F[dof.idx(node_id, i)] += val


def gravity_load_vector(
    model: StructuralModel,
    dof: DOFManager,
    config: SolverConfig,
    load_scale: float = 1.0,
) -> np.ndarray:
    """
    Gravity loads from node masses: mass × g along -y at every node.

    Nodes without a declared mass use config.default_node_mass.
    """
    F = np.zeros(dof.ndof, dtype=float)
    for node in model.nodes.values():
        mass = node.mass if node.mass is not None else config.default_node_mass
        weight = mass * config.gravity * load_scale
        add_nodal_load(F, dof, node.id, np.array([0.0, -weight, 0.0]))
    return F


def _element_contribution(
    model: StructuralModel,
    element: Element,
    dof: DOFManager,
) -> Tuple[List[int], np.ndarray, ElementGeometry]:
    material = model.material_for(element)
    L, d = element_geometry_3d(model, element)
    E = material.E_pa
    A = element.area
    ke = truss3d_global_stiffness(L, d, E, A)
    geom = ElementGeometry(element.id, element.node_ids, L, d, E, A)
    return dof.element_dof_map(element.node_ids), ke, geom


def assemble_system(
    model: StructuralModel,
    config: SolverConfig,
    load_scale: float = 1.0,
) -> AssembledSystem:
    """
    Build K and F for the current model snapshot.

    Args:
        model: Structure to assemble (validated beforehand)
        config: Solver settings (gravity, default node mass)
        load_scale: Multiplier on the gravity load (seismic amplification)

    Returns:
        AssembledSystem with K, F and bookkeeping for the reducer and the
        stress evaluator
    """
    dof = DOFManager(model.node_index())

    contributions = []
    geometry: Dict[str, ElementGeometry] = {}
    skipped: List[str] = []
    warnings: List[str] = []
    connected = set()

    for element in model.active_elements():
        if model.material_for(element) is None:
            skipped.append(element.id)
            message = f"Element {element.id} skipped: unknown material '{element.material}'"
            warnings.append(message)
            logger.warning(message)
            continue

        dof_map, ke, geom = _element_contribution(model, element, dof)
        contributions.append((dof_map, ke))
        geometry[element.id] = geom
        connected.update(element.node_ids)

    K = assemble_global_K(dof.ndof, contributions)
    F = gravity_load_vector(model, dof, config, load_scale)

    orphan_nodes = [
        node.id for node in model.nodes.values()
        if not node.is_support and node.id not in connected
    ]
    if orphan_nodes:
        message = f"{len(orphan_nodes)} node(s) carry no active element and are left out: {', '.join(orphan_nodes)}"
        warnings.append(message)
        logger.info(message)

    return AssembledSystem(
        K=K,
        F=F,
        dof=dof,
        geometry=geometry,
        skipped=skipped,
        orphan_nodes=orphan_nodes,
        warnings=warnings,
    )


