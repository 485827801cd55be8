# quakeframe/kernel - Truss analysis core
"""
KERNEL: ASSEMBLY, BOUNDARY CONDITIONS AND SOLVE
===============================================

The numerical pipeline shared by static analysis and the earthquake tick:

    assemble_system()  model  -> K, F            (assemble.py)
    reduce_system()    K, F   -> K_ff, F_f        (boundary.py)
    solve_reduced()    K_ff   -> u_f              (solve.py)

DOFManager (dof.py) maps string node ids to rows of K.
"""

from .dof import DOFManager
from .errors import DegenerateSystem, SingularSystem
from .assemble import AssembledSystem, assemble_system
from .boundary import ReducedSystem, reduce_system
from .solve import solve_linear, solve_reduced

__all__ = [
    'DOFManager',
    'SingularSystem',
    'DegenerateSystem',
    'AssembledSystem',
    'assemble_system',
    'ReducedSystem',
    'reduce_system',
    'solve_linear',
    'solve_reduced',
]
