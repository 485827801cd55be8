# quakeframe/failure/damage.py
"""
DAMAGE MODEL: Per-Element Damage, Fatigue and Breakage
======================================================

Each element runs a small state machine:

    INTACT ──(damage > 0)──> DAMAGED ──(breakage)──> BROKEN  (terminal)

Per earthquake tick, for every element that is not broken and has a known
material:

    σ_eff          = min(|σ_fem| × (1 + k_d × damage), ultimate)
    stress_ratio   = σ_eff / yield
    I_f            = intensity / 6
    damage        += max(0, stress_ratio − 0.3) × 0.8 × I_f     (clamped to 1)
    fatigue       += stress_ratio × 0.4 × I_f                  (clamped to 1)

    broken  ⇔  damage ≥ 0.5  or  σ_eff ≥ 0.8 × yield

A broken element is pinned at damage 1.0 and leaves the next assembly.
``reset_damage`` is the only way back and acts on the whole model.

The FEM stress σ_fem comes from a gravity load amplified by the excitation,
see ``seismic_load_scale``.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..config import DamageConfig
from ..materials import Material
from ..model import EarthquakeConfig, Element, StructuralModel

logger = logging.getLogger(__name__)

ELEMENT_BROKEN = 'element_broken'
PROGRESSIVE_COLLAPSE = 'progressive_collapse'


@dataclass(frozen=True)
class DamageEvent:
    """
    Log entry for a breakage or for damage spreading to a neighbour.

    kind is ELEMENT_BROKEN or PROGRESSIVE_COLLAPSE; source_id names the broken
    element a progressive_collapse event spread from.
    """
    kind: str
    element_id: str
    stress: float
    damage_level: float
    cause: str
    timestamp: float
    source_id: Optional[str] = None


@dataclass
class DamageTick:
    """Outcome of one damage update."""
    model: StructuralModel
    newly_broken: List[str] = field(default_factory=list)
    events: List[DamageEvent] = field(default_factory=list)


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def intensity_factor(earthquake: EarthquakeConfig, config: DamageConfig) -> float:
    """Excitation intensity normalised to the reference intensity (6)."""
    return earthquake.intensity / config.intensity_reference


def seismic_load_scale(earthquake: EarthquakeConfig, config: DamageConfig) -> float:
    """
    Dynamic amplification of the gravity load during shaking.

        scale = 1 + (I / 6) × min(f / f_res, 1)

    1.0 for a quiet config. Frequencies at or above the resonance frequency
    give the full amplification.
    """
    if config.resonance_frequency <= 0:
        frequency_factor = 1.0
    else:
        frequency_factor = min(earthquake.frequency / config.resonance_frequency, 1.0)
    return 1.0 + intensity_factor(earthquake, config) * frequency_factor


def effective_stress(
    fem_stress: float,
    element: Element,
    material: Material,
    config: DamageConfig,
) -> float:
    """Stress magnitude seen by the damage model (MPa), capped at ultimate."""
    amplified = abs(fem_stress) * (1.0 + config.damage_stress_amplification * element.damage_level)
    return min(amplified, material.ultimate_strength)


def advance_element(
    element: Element,
    material: Material,
    fem_stress: float,
    earthquake: EarthquakeConfig,
    config: DamageConfig,
) -> Element:
    """
    One damage step for a single element.

    Broken elements are returned unchanged.
    """
    if element.is_broken:
        return element

    i_f = intensity_factor(earthquake, config)
    stress = effective_stress(fem_stress, element, material, config)
    ratio = stress / material.yield_strength

    damage = _clamp01(element.damage_level + max(0.0, ratio - config.damage_threshold) * config.damage_rate * i_f)
    fatigue = _clamp01(element.fatigue_factor + ratio * config.fatigue_rate * i_f)

    broken = (
        damage >= config.breakage_damage
        or stress >= config.breakage_stress_fraction * material.yield_strength
    )

    return replace(
        element,
        current_stress=stress,
        damage_level=1.0 if broken else damage,
        fatigue_factor=fatigue,
        is_broken=broken,
        critical_stress=material.ultimate_strength,
    )


def _broken_event(element: Element, timestamp: float, cause: str) -> DamageEvent:
    return DamageEvent(
        kind=ELEMENT_BROKEN,
        element_id=element.id,
        stress=element.current_stress,
        damage_level=element.damage_level,
        cause=cause,
        timestamp=timestamp,
    )


def damage_tick(
    model: StructuralModel,
    stresses: Mapping[str, float],
    earthquake: EarthquakeConfig,
    config: DamageConfig,
    timestamp: float = 0.0,
) -> DamageTick:
    """
    Advance damage for every element that received a stress this tick.

    Args:
        model: Current snapshot
        stresses: Element id -> signed FEM stress (MPa); elements absent here
            (skipped by assembly) keep their state
        earthquake: Excitation driving the damage rate
        config: Damage constants
        timestamp: Simulation time stamped on events (s)

    Returns:
        DamageTick with the new model, ids that broke this tick and one
        ELEMENT_BROKEN event per breakage
    """
    updated: List[Element] = []
    newly_broken: List[str] = []
    events: List[DamageEvent] = []

    for element_id, fem_stress in stresses.items():
        element = model.elements.get(element_id)
        if element is None or element.is_broken:
            continue
        material = model.material_for(element)
        if material is None:
            continue

        new = advance_element(element, material, fem_stress, earthquake, config)
        updated.append(new)

        if new.is_broken:
            newly_broken.append(new.id)
            limit = config.breakage_stress_fraction * material.yield_strength
            if new.current_stress >= limit:
                cause = f"Stress exceeded: {new.current_stress:.1f} MPa >= {limit:.1f} MPa"
            else:
                cause = f"Accumulated damage reached {config.breakage_damage:.2f}"
            events.append(_broken_event(new, timestamp, cause))
            logger.info("Element %s broke at t=%.3f s (%s)", new.id, timestamp, cause)

    return DamageTick(
        model=model.with_elements(updated) if updated else model,
        newly_broken=newly_broken,
        events=events,
    )


def break_elements(
    model: StructuralModel,
    element_ids: Iterable[str],
    timestamp: float = 0.0,
    cause: str = "Forced breakage",
) -> Tuple[StructuralModel, List[str], List[DamageEvent]]:
    """
    Force elements straight to BROKEN (damage 1.0).

    Already broken elements are left alone and unknown ids are ignored with a
    warning.

    Returns:
        (new model, ids that transitioned, ELEMENT_BROKEN events)
    """
    updated: List[Element] = []
    broken_ids: List[str] = []
    events: List[DamageEvent] = []

    for element_id in dict.fromkeys(element_ids):
        element = model.elements.get(element_id)
        if element is None:
            logger.warning("Cannot break unknown element %s", element_id)
            continue
        if element.is_broken:
            continue
        new = replace(element, damage_level=1.0, is_broken=True)
        updated.append(new)
        broken_ids.append(new.id)
        events.append(_broken_event(new, timestamp, cause))

    if broken_ids:
        logger.info("Forced breakage of %d element(s): %s", len(broken_ids), ', '.join(broken_ids))
        model = model.with_elements(updated)
    return model, broken_ids, events


def reset_damage(model: StructuralModel) -> StructuralModel:
    """Return every element to INTACT with stress, damage and fatigue zeroed."""
    return model.with_elements(
        replace(e, current_stress=0.0, damage_level=0.0, fatigue_factor=0.0, is_broken=False)
        for e in model.elements.values()
    )


def damage_summary(model: StructuralModel) -> Dict[str, float]:
    """
    Whole-structure health figures.

    overall_health = 100 − broken share × 100   (percent)
    collapse_risk  = min(100, broken share × 200)
    """
    total = len(model.elements)
    if total == 0:
        return {'overall_health': 100.0, 'collapse_risk': 0.0, 'broken': 0, 'damaged': 0}
    broken = sum(1 for e in model.elements.values() if e.is_broken)
    damaged = sum(1 for e in model.elements.values() if e.damage_level > 0.5)
    share = broken / total
    return {
        'overall_health': max(0.0, 100.0 - share * 100.0),
        'collapse_risk': min(100.0, share * 200.0),
        'broken': broken,
        'damaged': damaged,
    }
