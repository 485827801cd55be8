# quakeframe/post.py
"""
POST-PROCESSING: Element Strains and Stresses from Displacements
================================================================

After the solve, every element that entered K gets

    strain = d_axis · (u_b - u_a) / L
    stress = strain × E              (signed: + tension, - compression)

The field also reports the two headline numbers of an analysis:

    max_displacement : largest |free-DOF displacement|, in mm
    max_stress       : largest |element stress|, in MPa

No randomness anywhere: the same model and load always give the same field.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

import numpy as np

from .kernel.assemble import AssembledSystem
from .v3d.elements import truss3d_axial_strain


@dataclass
class StressField:
    """
    Per-element axial response.

    Attributes:
        strains: Element id -> axial strain (dimensionless)
        stresses: Element id -> axial stress (MPa, signed)
        displacements: Node id -> (ux, uy, uz) in metres
        max_displacement: Largest free-DOF displacement magnitude (mm)
        max_stress: Largest absolute element stress (MPa)
    """
    strains: Dict[str, float] = field(default_factory=dict)
    stresses: Dict[str, float] = field(default_factory=dict)
    displacements: Dict[str, Tuple[float, float, float]] = field(default_factory=dict)
    max_displacement: float = 0.0
    max_stress: float = 0.0


def evaluate_stresses(system: AssembledSystem, d: np.ndarray, free: np.ndarray) -> StressField:
    """
    Recover strains and stresses for every assembled element.

    Args:
        system: The assembled system the displacements belong to
        d: Full displacement vector (ndof,), metres
        free: Free DOF indices (only these count towards max_displacement)

    Returns:
        StressField
    """
    dof = system.dof
    strains: Dict[str, float] = {}
    stresses: Dict[str, float] = {}

    for element_id, geom in system.geometry.items():
        u_a = d[dof.node_dofs(geom.node_ids[0])]
        u_b = d[dof.node_dofs(geom.node_ids[1])]
        strain = truss3d_axial_strain(geom.length, geom.axis, u_a, u_b)
        strains[element_id] = strain
        stresses[element_id] = strain * geom.E / 1e6  # Pa -> MPa

    max_displacement = float(np.max(np.abs(d[free]))) * 1000.0 if len(free) else 0.0
    max_stress = max((abs(s) for s in stresses.values()), default=0.0)

    return StressField(
        strains=strains,
        stresses=stresses,
        displacements=dof.node_vectors(d),
        max_displacement=max_displacement,
        max_stress=max_stress,
    )
