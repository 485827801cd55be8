# quakeframe/collapse/simulator.py
"""
Collapse simulation: one fixed step for every falling body.

    step_collapse(snapshot, model) -> (snapshot', model')

Each step
    1. releases a body for every broken element that does not have one yet
    2. integrates every body (gravity, drag, ground contact)
    3. records at most one CollisionEvent per pair of bodies closer than the
       collision radius (pairs at rest relative to each other are skipped)
    4. evaluates secondary breakage once per ground impact: above the impact
       threshold, intact elements whose centroid lies within the breakage
       radius are scanned, and above twice the threshold they break and fly
       off with an explosive velocity

Random velocities come from the caller's numpy Generator, so a fixed seed
reproduces a collapse exactly.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..config import CollapseConfig
from ..failure.damage import DamageEvent, break_elements
from ..model import StructuralModel
from .bodies import (
    CollisionEvent,
    FallingBody,
    IntegrationInstability,
    integrate_body,
    random_velocity,
    spawn_body,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollapseSnapshot:
    """
    Published state of the fall simulation.

    falling_elements keeps release order. collision_events is the session log
    (oldest first).
    """
    falling_elements: Tuple[FallingBody, ...] = ()
    collision_events: Tuple[CollisionEvent, ...] = ()
    is_active: bool = False
    timestamp: float = 0.0

    def body(self, element_id: str) -> Optional[FallingBody]:
        for b in self.falling_elements:
            if b.element_id == element_id:
                return b
        return None

    def element_ids(self) -> List[str]:
        return [b.element_id for b in self.falling_elements]


EMPTY_COLLAPSE = CollapseSnapshot()


@dataclass
class CollapseStep:
    """Outcome of one collapse step."""
    snapshot: CollapseSnapshot
    model: StructuralModel
    released: List[str] = field(default_factory=list)
    collisions: List[CollisionEvent] = field(default_factory=list)
    damage_events: List[DamageEvent] = field(default_factory=list)


def is_active(bodies: Sequence[FallingBody], config: CollapseConfig) -> bool:
    """True while any body is airborne or still moving faster than rest speed."""
    return any(b.is_moving(config.rest_speed) for b in bodies if not b.is_frozen)


def release_broken_elements(
    bodies: Sequence[FallingBody],
    model: StructuralModel,
    rng: np.random.Generator,
    config: CollapseConfig,
) -> Tuple[List[FallingBody], List[str]]:
    """
    Spawn a body for every broken element without one.

    Returns:
        (all bodies, ids released by this call)
    """
    have = {b.element_id for b in bodies}
    result = list(bodies)
    released = []
    for element in model.elements.values():
        if element.is_broken and element.id not in have:
            if not model.is_resolved(element):
                logger.debug("Broken element %s has a missing end node; not released", element.id)
                continue
            velocity = random_velocity(rng, config.release_velocity)
            result.append(spawn_body(model, element, velocity))
            released.append(element.id)
    if released:
        logger.info("Released %d falling body(ies): %s", len(released), ', '.join(released))
    return result, released


def detect_collisions(
    bodies: Sequence[FallingBody],
    config: CollapseConfig,
    timestamp: float,
) -> Tuple[List[FallingBody], List[CollisionEvent]]:
    """
    Pairwise sphere check between bodies.

    Every unordered pair closer than the collision radius and moving relative
    to each other yields one event with

        impact_force = ½ (m1 + m2) |v1 − v2|²

    and both bodies are marked has_collided.
    """
    bodies = list(bodies)
    events: List[CollisionEvent] = []
    positions = np.array([b.position for b in bodies], dtype=float).reshape(-1, 3)
    velocities = np.array([b.velocity for b in bodies], dtype=float).reshape(-1, 3)
    hit = set()

    for i in range(len(bodies)):
        for j in range(i + 1, len(bodies)):
            if np.linalg.norm(positions[i] - positions[j]) >= config.collision_radius:
                continue
            relative_speed = np.linalg.norm(velocities[i] - velocities[j])
            # Bodies resting against each other are in contact, not colliding
            if relative_speed <= config.rest_speed:
                continue
            force = 0.5 * (bodies[i].mass + bodies[j].mass) * relative_speed ** 2
            midpoint = 0.5 * (positions[i] + positions[j])
            events.append(CollisionEvent(
                element_ids=(bodies[i].element_id, bodies[j].element_id),
                position=(float(midpoint[0]), float(midpoint[1]), float(midpoint[2])),
                impact_force=float(force),
                timestamp=timestamp,
            ))
            hit.update((i, j))

    for i in hit:
        bodies[i] = replace(bodies[i], has_collided=True)
    return bodies, events


def secondary_breakage(
    bodies: Sequence[FallingBody],
    model: StructuralModel,
    rng: np.random.Generator,
    config: CollapseConfig,
    timestamp: float,
) -> Tuple[List[FallingBody], StructuralModel, List[DamageEvent]]:
    """
    Break intact elements near hard ground impacts.

    A body is evaluated once, on the first step after its impact. Elements
    broken here get a body immediately, with explosive separation velocity.
    """
    result = list(bodies)
    events: List[DamageEvent] = []

    for i, body in enumerate(bodies):
        if not body.is_on_ground or body.impact_processed:
            continue
        result[i] = replace(body, impact_processed=True)
        if body.impact_energy <= config.impact_threshold:
            continue

        impact_point = np.asarray(body.position, dtype=float)
        nearby = [
            e.id for e in model.elements.values()
            if not e.is_broken
            and model.is_resolved(e)
            and np.linalg.norm(model.element_centroid(e) - impact_point) < config.breakage_radius
        ]
        if not nearby or body.impact_energy <= 2.0 * config.impact_threshold:
            continue

        model, broken_ids, broken_events = break_elements(
            model, nearby, timestamp,
            cause=f"Impact of {body.element_id} ({body.impact_energy:.0f} J)",
        )
        events.extend(broken_events)
        for element_id in broken_ids:
            velocity = random_velocity(rng, config.explosive_velocity)
            result.append(spawn_body(model, model.elements[element_id], velocity))

    return result, model, events


def step_collapse(
    snapshot: CollapseSnapshot,
    model: StructuralModel,
    rng: np.random.Generator,
    config: CollapseConfig,
    dt: Optional[float] = None,
    max_events: int = 500,
) -> CollapseStep:
    """
    Advance the fall simulation by one fixed step.

    Args:
        snapshot: Current published collapse state
        model: Current structural snapshot (broken elements spawn bodies)
        rng: Random source for release velocities
        config: Physics constants
        dt: Step length (s), defaults to config.time_step
        max_events: Collision log keeps at most this many recent events

    Returns:
        CollapseStep with the new snapshot and the (possibly updated) model
    """
    dt = config.time_step if dt is None else dt
    timestamp = snapshot.timestamp + dt

    bodies, released = release_broken_elements(snapshot.falling_elements, model, rng, config)

    integrated = []
    for body in bodies:
        try:
            integrated.append(integrate_body(body, config, dt))
        except IntegrationInstability as e:
            logger.warning("%s; body frozen", e)
            integrated.append(replace(body, velocity=(0.0, 0.0, 0.0), is_frozen=True))

    integrated, collisions = detect_collisions(integrated, config, timestamp)
    integrated, model, damage_events = secondary_breakage(integrated, model, rng, config, timestamp)

    log = (snapshot.collision_events + tuple(collisions))[-max_events:]
    new_snapshot = CollapseSnapshot(
        falling_elements=tuple(integrated),
        collision_events=log,
        is_active=is_active(integrated, config),
        timestamp=timestamp,
    )
    return CollapseStep(
        snapshot=new_snapshot,
        model=model,
        released=released,
        collisions=collisions,
        damage_events=damage_events,
    )
