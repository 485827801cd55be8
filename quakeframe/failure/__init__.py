# quakeframe/failure/__init__.py
"""Element damage, breakage and progressive-collapse propagation."""

from .damage import (
    ELEMENT_BROKEN,
    PROGRESSIVE_COLLAPSE,
    DamageEvent,
    DamageTick,
    advance_element,
    break_elements,
    damage_summary,
    damage_tick,
    effective_stress,
    intensity_factor,
    reset_damage,
    seismic_load_scale,
)
from .propagation import propagate_collapse, propagation_increment

__all__ = [
    'ELEMENT_BROKEN',
    'PROGRESSIVE_COLLAPSE',
    'DamageEvent',
    'DamageTick',
    'advance_element',
    'break_elements',
    'damage_summary',
    'damage_tick',
    'effective_stress',
    'intensity_factor',
    'reset_damage',
    'seismic_load_scale',
    'propagate_collapse',
    'propagation_increment',
]
