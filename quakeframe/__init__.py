# quakeframe - Truss stress engine and collapse simulator
"""
QUAKEFRAME: Earthquake Response and Collapse of 3D Trusses
==========================================================

This package provides:
- Linear static analysis of 3D pin-jointed trusses under gravity
- An earthquake tick that amplifies the load and accumulates element damage
- Progressive collapse: damage spreading from broken elements to neighbours
- Rigid-body fall of broken elements with collisions and chain reactions

ARCHITECTURE:
-------------
    kernel/         DOF numbering, assembly, boundary reduction, linear solve
    v3d/            3D truss element stiffness and strain
    model.py        Nodes, elements, foundations, model snapshots, validation
    materials.py    Material table
    config.py       Engine constants (frozen dataclasses)
    solve.py        Model-level static solve
    post.py         Strain / stress recovery
    failure/        Damage model and collapse propagation
    collapse/       Falling bodies and the fall simulator
    analysis.py     AnalysisOrchestrator (public entry point)
    scheduler.py    Fixed-step scheduler
"""

from .analysis import (
    AnalysisOrchestrator,
    AnalysisResult,
    FoundationReaction,
    SimulationContext,
    SimulationTickResult,
)
from .collapse import CollapseSnapshot, CollisionEvent, FallingBody, IntegrationInstability
from .config import DEFAULT_CONFIG, EngineConfig
from .failure import DamageEvent
from .kernel import DegenerateSystem, SingularSystem
from .materials import MATERIALS, Material
from .model import (
    EarthquakeConfig,
    Element,
    Foundation,
    Node,
    StructuralModel,
    ValidationError,
    model_from_dict,
    validate_model,
)

__version__ = "0.1.0"
