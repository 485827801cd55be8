# quakeframe/kernel/boundary.py
"""Boundary conditions: partition DOFs into fixed/free and extract K_ff, F_f."""

from dataclasses import dataclass
from typing import Iterable, List

import numpy as np

from .dof import DOFManager
from .errors import DegenerateSystem


@dataclass
class ReducedSystem:
    """
    Free-DOF system K_ff · u_f = F_f.

    Attributes:
        Kff: Reduced stiffness matrix (n_free × n_free)
        Ff: Reduced load vector (n_free,)
        free: Global indices of the free DOFs (maps u_f back to d)
        fixed: Global indices of DOFs held at zero displacement
    """
    Kff: np.ndarray
    Ff: np.ndarray
    free: np.ndarray
    fixed: np.ndarray


def support_dofs(dof: DOFManager, support_node_ids: Iterable[str]) -> List[int]:
    """All three translational DOFs of every support node."""
    fixed = []
    for node_id in support_node_ids:
        fixed.extend(dof.node_dofs(node_id))
    return fixed


def unloaded_zero_stiffness_dofs(K: np.ndarray, F: np.ndarray, rel_tol: float = 1e-12) -> List[int]:
    """
    DOFs with no stiffness and no load.

    A free joint of a truss has no stiffness across the bars that meet there
    when those bars are collinear (a single hanging bar, for example). With no
    load in that direction the DOF simply stays at zero; keeping it would make
    K_ff singular for no physical reason. A loaded zero-stiffness DOF is a
    real mechanism and is left in for the solver to reject.
    """
    diag = np.abs(np.diag(K))
    scale = diag.max() if diag.size else 0.0
    tol = rel_tol * scale
    return [i for i in range(K.shape[0]) if diag[i] <= tol and F[i] == 0.0]


def reduce_system(
    K: np.ndarray,
    F: np.ndarray,
    fixed_dofs: Iterable[int],
) -> ReducedSystem:
    """
    Remove fixed DOFs from the system.

    Args:
        K: Global stiffness matrix (ndof × ndof)
        F: Global load vector (ndof,)
        fixed_dofs: Global DOF indices held at zero displacement

    Returns:
        ReducedSystem

    Raises:
        DegenerateSystem: if every DOF is fixed (nothing left to solve)
    """
    ndof = K.shape[0]
    fixed_set = set(int(i) for i in fixed_dofs)
    fixed = np.array(sorted(fixed_set), dtype=int)
    free = np.array([i for i in range(ndof) if i not in fixed_set], dtype=int)

    if free.size == 0:
        raise DegenerateSystem(
            f"All {ndof} DOFs are fixed: no free displacement to solve for"
        )

    return ReducedSystem(
        Kff=K[np.ix_(free, free)],
        Ff=F[free],
        free=free,
        fixed=fixed,
    )
