# quakeframe/solve.py
"""Model-level static solve: assemble, apply supports, solve, recover stresses."""

import logging
from dataclasses import dataclass

import numpy as np

from .config import SolverConfig
from .kernel.assemble import AssembledSystem, assemble_system
from .kernel.boundary import support_dofs, unloaded_zero_stiffness_dofs
from .kernel.solve import solve_linear
from .model import StructuralModel
from .post import StressField, evaluate_stresses

logger = logging.getLogger(__name__)


@dataclass
class StaticSolution:
    """Displacements, reactions and stresses of one linear solve."""
    system: AssembledSystem
    d: np.ndarray      # full displacement vector (m)
    R: np.ndarray      # reactions R = K·d - F (N)
    free: np.ndarray   # free DOF indices
    stress: StressField


def solve_structure(
    model: StructuralModel,
    config: SolverConfig,
    load_scale: float = 1.0,
) -> StaticSolution:
    """
    Run the linear pipeline on a model snapshot.

    Fixed DOFs are the three translations of every support node, plus DOFs
    that cannot take part in the solve: those of orphan nodes (no active
    element attached) and unloaded DOFs without stiffness.

    Args:
        model: Validated structure
        config: Solver settings
        load_scale: Multiplier on the gravity load

    Returns:
        StaticSolution

    Raises:
        DegenerateSystem: if no DOF is left free
        SingularSystem: if the structure is a mechanism or ill-conditioned
    """
    system = assemble_system(model, config, load_scale)
    dof = system.dof

    fixed = set(support_dofs(dof, model.support_node_ids()))
    fixed.update(support_dofs(dof, system.orphan_nodes))
    fixed.update(unloaded_zero_stiffness_dofs(system.K, system.F, config.zero_stiffness_tol))

    d, R, free = solve_linear(system.K, system.F, sorted(fixed), config.cond_limit)

    stress = evaluate_stresses(system, d, free)
    logger.debug(
        "Solved %d free DOFs: max displacement %.4f mm, max stress %.3f MPa",
        len(free), stress.max_displacement, stress.max_stress,
    )
    return StaticSolution(system=system, d=d, R=R, free=free, stress=stress)
