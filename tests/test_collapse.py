# tests/test_collapse.py
"""
COLLAPSE TESTS: Free Fall, Ground Impact, Collisions and Chain Reactions
========================================================================

Semi-implicit Euler with fixed dt from rest gives

    y_n = y0 − ½ g t_n² − ½ g t_n dt

so the free-fall error against y0 − ½ g t² is bounded by g·t·dt, i.e. O(dt).
"""

from dataclasses import replace

import numpy as np
import pytest

from quakeframe import Element, Node, StructuralModel
from quakeframe.collapse import (
    EMPTY_COLLAPSE,
    FallingBody,
    IntegrationInstability,
    integrate_body,
    release_broken_elements,
    spawn_body,
    step_collapse,
)
from quakeframe.collapse.simulator import detect_collisions, secondary_breakage
from quakeframe.config import CollapseConfig
from quakeframe.failure import ELEMENT_BROKEN, break_elements

NO_DRAG = CollapseConfig(air_resistance=0.0)
G = 15.0


def body_at(y, velocity=(0.0, 0.0, 0.0), mass=10.0, element_id='b', x=0.0):
    return FallingBody(
        element_id=element_id,
        original_position=(x, y, 0.0),
        position=(x, y, 0.0),
        velocity=velocity,
        mass=mass,
    )


def ground_scene():
    """A low frame whose element centroids sit close to the origin."""
    nodes = [
        Node('n0', (0.0, 0.0, 0.0), is_support=True),
        Node('n1', (1.0, 1.0, 0.0)),
        Node('n2', (2.0, 0.0, 0.0), is_support=True),
        Node('far', (20.0, 0.0, 0.0), is_support=True),
        Node('far2', (20.0, 1.0, 0.0)),
    ]
    elements = [
        Element('left', ('n0', 'n1'), 10.0, 10.0, 'steel_S235'),
        Element('right', ('n1', 'n2'), 10.0, 10.0, 'steel_S235'),
        Element('remote', ('far', 'far2'), 10.0, 10.0, 'steel_S235'),
    ]
    return StructuralModel.build(nodes, elements)


class TestFreeFall:

    def test_follows_parabola_within_dt(self):
        dt = NO_DRAG.time_step
        y0 = 20.0
        body = body_at(y0)
        t = 0.0
        while True:
            body = integrate_body(body, NO_DRAG)
            if body.is_on_ground:
                break
            t += dt
            exact = y0 - 0.5 * G * t ** 2
            assert abs(body.position[1] - exact) <= G * t * dt + 1e-9, \
                f"t={t:.3f}: y={body.position[1]:.5f}, exact={exact:.5f}"

    def test_horizontal_position_unchanged(self):
        body = body_at(5.0)
        for _ in range(10):
            body = integrate_body(body, NO_DRAG)
        assert body.position[0] == 0.0 and body.position[2] == 0.0

    def test_drag_slows_fall(self):
        fast = slow = body_at(30.0, mass=100.0)
        for _ in range(30):
            fast = integrate_body(fast, NO_DRAG)
            slow = integrate_body(slow, CollapseConfig())
        assert slow.position[1] > fast.position[1]

    def test_drag_never_reverses_velocity(self):
        body = body_at(5.0, velocity=(0.01, 0.0, 0.0), mass=1e6)
        config = CollapseConfig(gravity=(0.0, 0.0, 0.0))
        body = integrate_body(body, config)
        assert body.velocity == (0.0, 0.0, 0.0)


class TestGroundImpact:

    def test_impact_energy_at_contact(self):
        body = body_at(5.0, mass=40.0)
        dt = NO_DRAG.time_step
        while True:
            vy_before = body.velocity[1]
            body = integrate_body(body, NO_DRAG)
            if body.is_on_ground:
                break

        vy_contact = vy_before - G * dt
        assert np.isclose(body.impact_energy, 0.5 * 40.0 * vy_contact ** 2, rtol=1e-12)

        # Against the exact drop energy m g h, within one step of velocity
        v_exact = np.sqrt(2 * G * 5.0)
        upper = 0.5 * 40.0 * (v_exact + G * dt) ** 2
        lower = 0.5 * 40.0 * (v_exact - G * dt) ** 2
        assert lower <= body.impact_energy <= upper

    def test_contact_state(self):
        body = body_at(0.01, velocity=(2.0, -1.0, 1.0))
        body = integrate_body(body, NO_DRAG)
        assert body.is_on_ground
        assert body.position[1] == 0.0
        assert body.velocity[1] == 0.0
        assert np.isclose(body.velocity[0], 2.0 * (1 - 0.6)), "Friction on horizontal velocity"
        assert np.isclose(body.velocity[2], 1.0 * (1 - 0.6))

    def test_ground_level_configurable(self):
        config = CollapseConfig(air_resistance=0.0, ground_level=-2.25)
        body = body_at(0.0)
        for _ in range(100):
            body = integrate_body(body, config)
        assert body.is_on_ground and body.position[1] == -2.25

    def test_grounded_body_slides_to_rest(self):
        body = replace(body_at(0.0, velocity=(3.0, 0.0, 0.0)), is_on_ground=True)
        for _ in range(20):
            body = integrate_body(body, NO_DRAG)
            assert body.position[1] == 0.0, "Bodies on the ground stay on the ground"
        assert body.velocity == (0.0, 0.0, 0.0)
        assert not body.is_moving(NO_DRAG.rest_speed)
        assert body.impact_energy == 0.0, "Sliding does not count as a new impact"


class TestInstability:

    def test_speed_clamped(self):
        body = body_at(100.0, velocity=(0.0, -500.0, 0.0))
        body = integrate_body(body, NO_DRAG)
        assert body.speed <= NO_DRAG.max_speed + 1e-9

    def test_non_finite_raises(self):
        with pytest.raises(IntegrationInstability):
            integrate_body(body_at(np.nan), NO_DRAG)

    def test_simulator_freezes_diverged_body(self, tripod):
        snapshot = replace(EMPTY_COLLAPSE, falling_elements=(body_at(np.nan),))
        step = step_collapse(snapshot, tripod, np.random.default_rng(0), NO_DRAG)
        frozen = step.snapshot.falling_elements[0]
        assert frozen.is_frozen
        assert frozen.velocity == (0.0, 0.0, 0.0)
        assert not step.snapshot.is_active


class TestCollisions:

    def test_one_event_per_pair(self):
        bodies = [
            body_at(10.0, velocity=(2.0, 0.0, 0.0), mass=10.0, element_id='p'),
            body_at(10.0, velocity=(-2.0, 0.0, 0.0), mass=20.0, element_id='q', x=0.1),
        ]
        bodies, events = detect_collisions(bodies, NO_DRAG, timestamp=0.5)

        assert len(events) == 1
        assert events[0].element_ids == ('p', 'q')
        assert np.isclose(events[0].impact_force, 0.5 * 30.0 * 4.0 ** 2)
        assert all(b.has_collided for b in bodies)

    def test_far_apart_no_event(self):
        bodies = [body_at(10.0, element_id='p'), body_at(10.0, element_id='q', x=2.0)]
        _, events = detect_collisions(bodies, NO_DRAG, 0.0)
        assert events == []

    def test_bodies_at_rest_together_no_event(self):
        bodies = [body_at(0.0, element_id='p'), body_at(0.0, element_id='q', x=0.2)]
        _, events = detect_collisions(bodies, NO_DRAG, 0.0)
        assert events == [], "Touching bodies with no relative motion do not collide"


class TestSecondaryBreakage:

    def impacted(self, energy):
        return replace(body_at(0.0, element_id='falling'), is_on_ground=True, impact_energy=energy)

    def test_hard_impact_breaks_nearby(self):
        model = ground_scene()
        rng = np.random.default_rng(3)
        bodies, model, events = secondary_breakage([self.impacted(2500.0)], model, rng, NO_DRAG, 1.0)

        assert model.elements['left'].is_broken and model.elements['right'].is_broken
        assert not model.elements['remote'].is_broken, "Outside the breakage radius"
        assert {e.element_id for e in events} == {'left', 'right'}
        assert all(e.kind == ELEMENT_BROKEN for e in events)

        spawned = bodies[1:]
        assert {b.element_id for b in spawned} == {'left', 'right'}
        for b in spawned:
            vx, vy, vz = b.velocity
            assert -3.0 <= vx <= 3.0 and -3.0 <= vz <= 3.0 and 0.0 <= vy <= 3.0

    def test_impact_processed_once(self):
        model = ground_scene()
        rng = np.random.default_rng(3)
        bodies, model, _ = secondary_breakage([self.impacted(2500.0)], model, rng, NO_DRAG, 1.0)
        assert bodies[0].impact_processed

        fresh = ground_scene()
        _, again, events = secondary_breakage([bodies[0]], fresh, rng, NO_DRAG, 2.0)
        assert events == [] and again is fresh

    def test_moderate_impact_breaks_nothing(self):
        model = ground_scene()
        bodies, after, events = secondary_breakage(
            [self.impacted(1500.0)], model, np.random.default_rng(0), NO_DRAG, 1.0,
        )
        assert events == []
        assert after is model
        assert bodies[0].impact_processed

    def test_elements_with_missing_nodes_are_not_scanned(self):
        model = ground_scene()
        model = StructuralModel.build(
            model.nodes.values(),
            list(model.elements.values()) + [Element('loose', ('n0', 'ghost'), 10.0, 10.0, 'steel_S235')],
        )
        _, after, events = secondary_breakage(
            [self.impacted(2500.0)], model, np.random.default_rng(3), NO_DRAG, 1.0,
        )
        assert {e.element_id for e in events} == {'left', 'right'}
        assert not after.elements['loose'].is_broken


class TestRelease:

    def test_broken_element_released_once(self, tripod):
        model, _, _ = break_elements(tripod, ['AC'])
        rng = np.random.default_rng(0)

        bodies, released = release_broken_elements([], model, rng, NO_DRAG)
        assert released == ['AC']
        body = bodies[0]
        assert np.allclose(body.position, model.element_centroid(model.elements['AC']))
        assert np.isclose(body.mass, model.element_mass(model.elements['AC']))
        vx, vy, vz = body.velocity
        assert -2.0 <= vx <= 2.0 and -2.0 <= vz <= 2.0 and 0.0 <= vy <= 2.0

        bodies, released = release_broken_elements(bodies, model, rng, NO_DRAG)
        assert released == [] and len(bodies) == 1

    def test_body_mass_from_density(self, tripod):
        element = tripod.elements['AC']
        body = spawn_body(tripod, element)
        expected = 7850.0 * element.area * tripod.element_length(element)
        assert np.isclose(body.mass, expected)

    def test_seeded_runs_reproducible(self, tripod):
        model, _, _ = break_elements(tripod, ['AC', 'BC'])

        def run(seed):
            snapshot, m, rng = EMPTY_COLLAPSE, model, np.random.default_rng(seed)
            for _ in range(50):
                step = step_collapse(snapshot, m, rng, CollapseConfig())
                snapshot, m = step.snapshot, step.model
            return snapshot

        assert run(11) == run(11)

    def test_settles_and_deactivates(self, tripod):
        model, _, _ = break_elements(tripod, ['AC'])
        snapshot, rng = EMPTY_COLLAPSE, np.random.default_rng(5)
        for _ in range(600):
            step = step_collapse(snapshot, model, rng, CollapseConfig())
            snapshot, model = step.snapshot, step.model
        assert snapshot.falling_elements[0].is_on_ground
        assert not snapshot.is_active
