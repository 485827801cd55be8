# quakeframe/kernel/solve.py
"""Linear solve of the reduced system with singularity detection."""

import numpy as np
import scipy.linalg

from .boundary import reduce_system
from .errors import SingularSystem


def solve_reduced(Kff: np.ndarray, Ff: np.ndarray, cond_limit: float = 1e12) -> np.ndarray:
    """
    Solve K_ff · u_f = F_f by Cholesky factorisation.

    Args:
        Kff: Reduced stiffness matrix, symmetric
        Ff: Reduced load vector
        cond_limit: Max condition number before raising SingularSystem

    Returns:
        uf: Free-DOF displacements

    Raises:
        SingularSystem: if K_ff is ill-conditioned, not positive definite or
            K_ff / F_f hold non-finite values
    """
    try:
        cond = np.linalg.cond(Kff)
    except np.linalg.LinAlgError as e:
        raise SingularSystem(f"Condition number could not be computed: {e}") from e
    if not np.isfinite(cond) or cond > cond_limit:
        raise SingularSystem(
            f"Unstable system (cond={cond:.2e}). Check supports and bracing. Need cond < {cond_limit:.0e}."
        )

    # check_finite rejects NaN/inf in K_ff or F_f with a ValueError
    try:
        factor = scipy.linalg.cho_factor(Kff)
        return scipy.linalg.cho_solve(factor, Ff)
    except np.linalg.LinAlgError as e:
        raise SingularSystem(f"Stiffness matrix is not positive definite: {e}") from e
    except ValueError as e:
        raise SingularSystem(f"Non-finite stiffness or load: {e}") from e


def solve_linear(
    K: np.ndarray,
    F: np.ndarray,
    fixed_dofs: list[int],
    cond_limit: float = 1e12
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Solve K·d = F with fixed DOFs held at zero.

    Args:
        K: Global stiffness matrix (ndof x ndof)
        F: Global load vector (ndof,)
        fixed_dofs: Constrained DOF indices
        cond_limit: Max condition number before raising SingularSystem

    Returns:
        d: Displacement vector (ndof,)
        R: Reaction vector R = K·d - F (ndof,), nonzero only at fixed DOFs
        free: Array of free DOF indices

    Raises:
        DegenerateSystem: if no DOF is free
        SingularSystem: if the reduced system cannot be solved
    """
    reduced = reduce_system(K, F, fixed_dofs)
    uf = solve_reduced(reduced.Kff, reduced.Ff, cond_limit)

    d = np.zeros(K.shape[0], dtype=float)
    d[reduced.free] = uf

    R = K @ d - F

    return d, R, reduced.free
