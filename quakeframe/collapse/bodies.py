# quakeframe/collapse/bodies.py
"""
FALLING BODIES: Rigid-Body State and the Per-Body Integrator
============================================================

A broken element leaves the structure as a single rigid body located at its
centroid. The body keeps the element id, its mass (mass per length × length)
and where it started.

INTEGRATION (semi-implicit Euler, fixed dt):
--------------------------------------------
    1. v += g·dt                                 (airborne bodies only)
    2. v -= v/|v| × drag × mass × dt             (never reverses v)
    3. |v| clamped to max_speed
    4. x += v·dt
    5. ground contact (first time y ≤ ground):
           y = ground
           impact_energy = ½ m v_y²
           v_x, v_z *= (1 − friction)
           v_y = 0, on_ground = True

Bodies already on the ground stay at ground level and keep losing
horizontal speed to friction until they drop below the rest speed, at which
point they stop.

A body whose state turns non-finite raises IntegrationInstability; the
simulator freezes it in place.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import numpy as np

from ..config import CollapseConfig
from ..model import Element, StructuralModel, Triplet

logger = logging.getLogger(__name__)


class IntegrationInstability(RuntimeError):
    """Raised when a body's position or velocity is no longer finite."""


@dataclass(frozen=True)
class FallingBody:
    """
    Rigid body spawned from a broken element.

    Attributes:
        element_id: Id of the element this body came from
        original_position: Element centroid at release (m)
        position: Current centroid (m)
        velocity: Current velocity (m/s)
        mass: kg
        is_on_ground: Has touched the ground
        impact_energy: ½ m v_y² at ground contact (J), 0 before contact
        has_collided: Has hit another body at least once
        impact_processed: Secondary breakage already evaluated for this impact
        is_frozen: Integration was stopped after an instability
    """
    element_id: str
    original_position: Triplet
    position: Triplet
    velocity: Triplet
    mass: float
    is_on_ground: bool = False
    impact_energy: float = 0.0
    has_collided: bool = False
    impact_processed: bool = False
    is_frozen: bool = False

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def is_moving(self, rest_speed: float) -> bool:
        return not self.is_on_ground or self.speed > rest_speed


@dataclass(frozen=True)
class CollisionEvent:
    """Contact between two falling bodies during one step."""
    element_ids: Tuple[str, str]
    position: Triplet
    impact_force: float
    timestamp: float


def _triplet(v: np.ndarray) -> Triplet:
    return (float(v[0]), float(v[1]), float(v[2]))


def random_velocity(rng: np.random.Generator, bounds: Tuple[float, float]) -> Triplet:
    """Uniform velocity: x, z in ±bounds[0], y (upwards) in [0, bounds[1]]."""
    horizontal, upward = bounds
    return (
        float(rng.uniform(-horizontal, horizontal)),
        float(rng.uniform(0.0, upward)),
        float(rng.uniform(-horizontal, horizontal)),
    )


def spawn_body(
    model: StructuralModel,
    element: Element,
    velocity: Triplet = (0.0, 0.0, 0.0),
) -> FallingBody:
    """Create the falling body of an element at its current centroid."""
    centroid = _triplet(model.element_centroid(element))
    return FallingBody(
        element_id=element.id,
        original_position=centroid,
        position=centroid,
        velocity=tuple(float(c) for c in velocity),
        mass=model.element_mass(element),
    )


def _apply_drag(v: np.ndarray, mass: float, drag: float, dt: float) -> np.ndarray:
    speed = np.linalg.norm(v)
    if speed <= 0.0:
        return v
    loss = drag * mass * dt
    if loss >= speed:
        return np.zeros(3)
    return v - v / speed * loss


def _clamp_speed(v: np.ndarray, max_speed: float, element_id: str) -> np.ndarray:
    speed = np.linalg.norm(v)
    if speed > max_speed:
        logger.warning("Body %s: speed %.1f m/s clamped to %.1f m/s", element_id, speed, max_speed)
        return v * (max_speed / speed)
    return v


def integrate_body(body: FallingBody, config: CollapseConfig, dt: Optional[float] = None) -> FallingBody:
    """
    Advance one body by one step.

    Args:
        body: Current body state
        config: Physics constants
        dt: Step length (s), defaults to config.time_step

    Returns:
        New FallingBody

    Raises:
        IntegrationInstability: if the new state is not finite
    """
    if body.is_frozen:
        return body
    dt = config.time_step if dt is None else dt

    x = np.array(body.position, dtype=float)
    v = np.array(body.velocity, dtype=float)

    if not body.is_on_ground:
        v = v + np.asarray(config.gravity, dtype=float) * dt
    v = _apply_drag(v, body.mass, config.air_resistance, dt)
    v = _clamp_speed(v, config.max_speed, body.element_id)
    x = x + v * dt

    is_on_ground = body.is_on_ground
    impact_energy = body.impact_energy
    friction = 1.0 - config.ground_friction

    if is_on_ground:
        x[1] = config.ground_level
        v[1] = 0.0
        v[0] *= friction
        v[2] *= friction
        if np.linalg.norm(v) < config.rest_speed:
            v = np.zeros(3)
    elif x[1] <= config.ground_level:
        x[1] = config.ground_level
        impact_energy = 0.5 * body.mass * v[1] ** 2
        v[0] *= friction
        v[2] *= friction
        v[1] = 0.0
        is_on_ground = True

    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(v)) and np.isfinite(impact_energy)):
        raise IntegrationInstability(
            f"Body {body.element_id} diverged: position={x.tolist()}, velocity={v.tolist()}"
        )

    return replace(
        body,
        position=_triplet(x),
        velocity=_triplet(v),
        is_on_ground=is_on_ground,
        impact_energy=float(impact_energy),
    )
