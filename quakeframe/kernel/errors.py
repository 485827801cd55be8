# quakeframe/kernel/errors.py
"""Solver failure conditions."""


class SingularSystem(RuntimeError):
    """
    Raised when K_ff cannot be solved: insufficient supports, a mechanism,
    or a disconnected substructure.

    The diagnostic attribute holds a short human-readable explanation.
    """

    def __init__(self, diagnostic: str):
        self.diagnostic = diagnostic
        super().__init__(diagnostic)


class DegenerateSystem(SingularSystem):
    """Raised when boundary conditions leave no free DOF at all."""
    pass
