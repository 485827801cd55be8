# quakeframe/v3d/elements.py
"""
3D TRUSS ELEMENT: Stiffness and Strain from Direction Cosines
=============================================================

A truss bar only resists stretching along its own axis. In local coordinates
the stiffness is

    k_local = (EA/L) × [ 1  -1 ]
                       [-1   1 ]

With the unit axis d = (l, m, n) = (Δx, Δy, Δz) / L and B = outer(d, d), the
6×6 matrix in global axes is

    ke = (EA/L) × [  B  -B ]
                  [ -B   B ]

DOF order: [ux_a, uy_a, uz_a, ux_b, uy_b, uz_b].

Strain recovery is the reverse projection: the elongation of the bar is the
relative end displacement dotted with d, and strain = elongation / L.

Units: E in Pa, A in m², lengths in m.
"""

import numpy as np
from typing import Tuple

from ..model import Element, StructuralModel


def element_geometry_3d(model: StructuralModel, element: Element) -> Tuple[float, np.ndarray]:
    """
    Length and unit axis of an element.

    Returns:
        (L, d) where L is the length (m) and d the unit vector from node a
        to node b (direction cosines l, m, n)

    Raises:
        ValueError: if the element has zero length
    """
    v = model.element_vector(element)
    L = float(np.sqrt(v @ v))
    if L <= 0.0:
        raise ValueError(
            f"Element {element.id} has zero length (nodes {element.node_ids[0]} "
            f"and {element.node_ids[1]} coincide)"
        )
    return L, v / L


def truss3d_global_stiffness(L: float, d: np.ndarray, E: float, A: float) -> np.ndarray:
    """
    6×6 global stiffness matrix of a 3D truss element.

    Args:
        L: Length (m)
        d: Unit axis vector (3,)
        E: Elastic modulus (Pa)
        A: Cross-section area (m²)

    Returns:
        ke: symmetric, rank 1, shape (6, 6)
    """
    k = E * A / L
    B = k * np.outer(d, d)

    ke = np.zeros((6, 6), dtype=float)
    ke[0:3, 0:3] = B
    ke[0:3, 3:6] = -B
    ke[3:6, 0:3] = -B
    ke[3:6, 3:6] = B
    return ke


def truss3d_axial_strain(L: float, d: np.ndarray, u_a: np.ndarray, u_b: np.ndarray) -> float:
    """
    Axial strain from end displacements.

    Positive = elongation (tension), negative = shortening (compression).
    """
    delta_L = float(d @ (np.asarray(u_b, dtype=float) - np.asarray(u_a, dtype=float)))
    return delta_L / L
