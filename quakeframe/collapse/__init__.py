# quakeframe/collapse - Rigid-body fall of broken elements
"""
COLLAPSE: Falling Bodies, Collisions and Chain Reactions
========================================================

    bodies.py      FallingBody, CollisionEvent, per-body integrator
    simulator.py   CollapseSnapshot and the fixed step over all bodies
"""

from .bodies import CollisionEvent, FallingBody, IntegrationInstability, integrate_body, spawn_body
from .simulator import (
    EMPTY_COLLAPSE,
    CollapseSnapshot,
    CollapseStep,
    is_active,
    release_broken_elements,
    step_collapse,
)

__all__ = [
    'CollisionEvent',
    'FallingBody',
    'IntegrationInstability',
    'integrate_body',
    'spawn_body',
    'EMPTY_COLLAPSE',
    'CollapseSnapshot',
    'CollapseStep',
    'is_active',
    'release_broken_elements',
    'step_collapse',
]
