# quakeframe/failure/propagation.py
"""
Progressive collapse: damage spreading from newly broken elements.

For each element that broke this tick, every non-broken element sharing one
of its end nodes gets

    damage += 0.9 × intensity / 3        (clamped to 1)

and a PROGRESSIVE_COLLAPSE event when the result reaches 0.3. Only direct
neighbours are touched; the damage model turns the extra damage into
breakage on a later tick, so collapse spreads one ring per tick.
"""

from dataclasses import replace
from typing import Dict, Iterable, List, Tuple

from ..config import DamageConfig
from ..model import EarthquakeConfig, Element, StructuralModel
from .damage import PROGRESSIVE_COLLAPSE, DamageEvent


def propagation_increment(earthquake: EarthquakeConfig, config: DamageConfig) -> float:
    return config.propagation_factor * earthquake.intensity / config.propagation_intensity_scale


def propagate_collapse(
    model: StructuralModel,
    newly_broken: Iterable[str],
    earthquake: EarthquakeConfig,
    config: DamageConfig,
    timestamp: float = 0.0,
) -> Tuple[StructuralModel, List[DamageEvent]]:
    """
    Spread damage to the neighbours of newly broken elements.

    A neighbour of several broken elements is incremented once per source.

    Returns:
        (new model, PROGRESSIVE_COLLAPSE events)
    """
    increment = propagation_increment(earthquake, config)
    touched: Dict[str, Element] = {}
    events: List[DamageEvent] = []

    for source_id in newly_broken:
        if source_id not in model.elements:
            continue
        for neighbour in model.neighbours(source_id):
            current = touched.get(neighbour.id, neighbour)
            if current.is_broken:
                continue

            damage = min(1.0, current.damage_level + increment)
            current = replace(current, damage_level=damage)
            touched[current.id] = current

            if damage >= config.propagation_event_threshold:
                events.append(DamageEvent(
                    kind=PROGRESSIVE_COLLAPSE,
                    element_id=current.id,
                    stress=current.current_stress,
                    damage_level=damage,
                    cause=f"Damage propagated from {source_id}",
                    timestamp=timestamp,
                    source_id=source_id,
                ))

    if touched:
        model = model.with_elements(touched.values())
    return model, events
