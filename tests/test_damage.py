# tests/test_damage.py
"""
DAMAGE TESTS: State Machine, Breakage, Reset and Propagation
============================================================

Hand-computed single steps for a S235 element (yield 235, ultimate 360 MPa):

    σ = 150 MPa, intensity 6 (I/6 = 1):
        ratio   = 150 / 235           = 0.6383
        damage  = (0.6383 − 0.3) × 0.8 = 0.2706
        fatigue = 0.6383 × 0.4         = 0.2553
        150 < 0.8 × 235 = 188          → not broken

    next step, same FEM stress:
        σ_eff = 150 × (1 + 4 × 0.2706) = 312.4 MPa ≥ 188 → broken
"""

import numpy as np
import pytest

from quakeframe import EarthquakeConfig, Element
from quakeframe.config import DamageConfig
from quakeframe.failure import (
    ELEMENT_BROKEN,
    PROGRESSIVE_COLLAPSE,
    advance_element,
    break_elements,
    damage_summary,
    damage_tick,
    effective_stress,
    propagate_collapse,
    reset_damage,
    seismic_load_scale,
)
from quakeframe.materials import MATERIALS
from quakeframe.model import ElementState

CFG = DamageConfig()
S235 = MATERIALS['steel_S235']
STRONG = EarthquakeConfig(intensity=6.0, frequency=20.0)
QUIET = EarthquakeConfig(intensity=0.0, frequency=0.0, duration=0.0)


def fresh_element():
    return Element('e', ('a', 'b'), width=10.0, height=10.0, material='steel_S235')


class TestSeismicLoad:

    def test_quiet_is_plain_gravity(self):
        assert seismic_load_scale(QUIET, CFG) == 1.0

    def test_full_amplification_above_resonance(self):
        assert np.isclose(seismic_load_scale(STRONG, CFG), 2.0)

    def test_frequency_below_resonance_scales_down(self):
        eq = EarthquakeConfig(intensity=6.0, frequency=4.0)
        assert np.isclose(seismic_load_scale(eq, CFG), 1.5)

    def test_effective_stress_amplified_and_capped(self):
        damaged = Element('e', ('a', 'b'), 1.0, 1.0, 'steel_S235', damage_level=0.5)
        assert np.isclose(effective_stress(-50.0, damaged, S235, CFG), 150.0), \
            "Magnitude is used and amplified by 1 + 4 × damage"
        assert effective_stress(300.0, damaged, S235, CFG) == S235.ultimate_strength


class TestAdvanceElement:

    def test_single_step_values(self):
        e = advance_element(fresh_element(), S235, 150.0, STRONG, CFG)

        ratio = 150.0 / 235.0
        assert np.isclose(e.current_stress, 150.0)
        assert np.isclose(e.damage_level, (ratio - 0.3) * 0.8), f"damage={e.damage_level}"
        assert np.isclose(e.fatigue_factor, ratio * 0.4), f"fatigue={e.fatigue_factor}"
        assert not e.is_broken
        assert e.state == ElementState.DAMAGED
        assert e.critical_stress == S235.ultimate_strength

    def test_damage_amplification_breaks_on_second_step(self):
        e = advance_element(fresh_element(), S235, 150.0, STRONG, CFG)
        e = advance_element(e, S235, 150.0, STRONG, CFG)
        assert e.is_broken
        assert e.damage_level == 1.0
        assert e.state == ElementState.BROKEN

    def test_below_threshold_no_damage(self):
        e = advance_element(fresh_element(), S235, 50.0, STRONG, CFG)
        assert e.damage_level == 0.0
        assert e.fatigue_factor > 0.0, "Fatigue accumulates from stress ratio alone"
        assert e.state == ElementState.INTACT

    def test_stress_limit_breaks_without_excitation(self):
        e = advance_element(fresh_element(), S235, 200.0, QUIET, CFG)
        assert e.is_broken, "σ ≥ 0.8 × yield breaks regardless of intensity"

    def test_no_damage_without_excitation(self):
        e = advance_element(fresh_element(), S235, 100.0, QUIET, CFG)
        assert e.damage_level == 0.0 and not e.is_broken

    def test_fatigue_clamped(self):
        e = fresh_element()
        for _ in range(20):
            e = advance_element(e, S235, 60.0, STRONG, CFG)
        assert 0.0 <= e.fatigue_factor <= 1.0

    def test_broken_element_unchanged(self):
        broken = Element('e', ('a', 'b'), 1.0, 1.0, 'steel_S235', damage_level=1.0, is_broken=True)
        assert advance_element(broken, S235, 0.0, STRONG, CFG) is broken


class TestDamageTick:

    def test_events_only_on_transition(self, tripod):
        stresses = {'AC': 150.0, 'BC': 10.0, 'DC': 10.0}

        first = damage_tick(tripod, stresses, STRONG, CFG, timestamp=0.03)
        assert first.newly_broken == [] and first.events == []

        second = damage_tick(first.model, stresses, STRONG, CFG, timestamp=0.06)
        assert second.newly_broken == ['AC']
        assert len(second.events) == 1
        event = second.events[0]
        assert event.kind == ELEMENT_BROKEN and event.element_id == 'AC'
        assert event.timestamp == 0.06

        third = damage_tick(second.model, stresses, STRONG, CFG, timestamp=0.09)
        assert third.newly_broken == [] and third.events == [], \
            "A broken element never emits a second breakage event"
        assert third.model.elements['AC'].is_broken

    def test_skipped_elements_keep_state(self, tripod):
        result = damage_tick(tripod, {'AC': 150.0}, STRONG, CFG)
        assert result.model.elements['BC'] == tripod.elements['BC']

    def test_original_model_untouched(self, tripod):
        damage_tick(tripod, {'AC': 500.0}, STRONG, CFG)
        assert not tripod.elements['AC'].is_broken, "Ticks build new snapshots"


class TestBreakAndReset:

    def test_break_elements(self, tripod):
        model, broken, events = break_elements(tripod, ['AC', 'AC', 'nope'], timestamp=1.0)
        assert broken == ['AC']
        assert model.elements['AC'].is_broken and model.elements['AC'].damage_level == 1.0
        assert [e.kind for e in events] == [ELEMENT_BROKEN]

        again, broken_again, _ = break_elements(model, ['AC'])
        assert broken_again == []
        assert again is model

    def test_reset_zeroes_everything(self, tripod):
        model, _, _ = break_elements(tripod, ['AC'])
        model = damage_tick(model, {'BC': 150.0, 'DC': 120.0}, STRONG, CFG).model

        model = reset_damage(model)
        for e in model.elements.values():
            assert e.damage_level == 0.0
            assert e.fatigue_factor == 0.0
            assert e.current_stress == 0.0
            assert e.is_broken is False
            assert e.state == ElementState.INTACT

    def test_damage_summary(self, tripod):
        model, _, _ = break_elements(tripod, ['AC'])
        summary = damage_summary(model)
        assert summary['broken'] == 1
        assert np.isclose(summary['overall_health'], 100.0 - 100.0 / 3)
        assert np.isclose(summary['collapse_risk'], 200.0 / 3)


class TestPropagation:

    def test_neighbours_get_increment(self, chain):
        eq = EarthquakeConfig(intensity=2.0, frequency=5.0)
        broken, _, _ = break_elements(chain, ['e2'])

        model, events = propagate_collapse(broken, ['e2'], eq, CFG, timestamp=0.5)

        expected = 0.9 * 2.0 / 3.0
        assert np.isclose(model.elements['e1'].damage_level, expected)
        assert np.isclose(model.elements['e3'].damage_level, expected)
        assert {e.element_id for e in events} == {'e1', 'e3'}
        assert all(e.kind == PROGRESSIVE_COLLAPSE and e.source_id == 'e2' for e in events)

    def test_breadth_one(self, chain):
        eq = EarthquakeConfig(intensity=2.0, frequency=5.0)
        broken, _, _ = break_elements(chain, ['e2'])
        model, _ = propagate_collapse(broken, ['e2'], eq, CFG)

        assert model.elements['e4'].damage_level == 0.0, "Only direct neighbours are touched"
        assert not model.elements['e1'].is_broken, "Propagation alone never breaks an element"

    def test_small_increment_no_event(self, chain):
        eq = EarthquakeConfig(intensity=0.5, frequency=5.0)
        broken, _, _ = break_elements(chain, ['e2'])
        model, events = propagate_collapse(broken, ['e2'], eq, CFG)

        assert events == []
        assert np.isclose(model.elements['e1'].damage_level, 0.15)

    def test_damage_clamped(self, chain):
        eq = EarthquakeConfig(intensity=9.0, frequency=5.0)
        broken, _, _ = break_elements(chain, ['e2'])
        model, _ = propagate_collapse(broken, ['e2'], eq, CFG)
        assert model.elements['e1'].damage_level == 1.0

    def test_two_sources_accumulate(self, chain):
        eq = EarthquakeConfig(intensity=0.5, frequency=5.0)
        broken, _, _ = break_elements(chain, ['e1', 'e3'])
        model, _ = propagate_collapse(broken, ['e1', 'e3'], eq, CFG)
        assert np.isclose(model.elements['e2'].damage_level, 0.3)

    def test_broken_neighbours_skipped(self, chain):
        eq = EarthquakeConfig(intensity=2.0, frequency=5.0)
        broken, _, _ = break_elements(chain, ['e1', 'e2'])
        _, events = propagate_collapse(broken, ['e2'], eq, CFG)
        assert [e.element_id for e in events] == ['e3']


@pytest.mark.parametrize("stress", [80.0, 120.0, 160.0])
def test_damage_monotone_under_constant_stress(stress):
    eq = EarthquakeConfig(intensity=1.0, frequency=8.0)
    e = fresh_element()
    previous = 0.0
    was_broken = False
    for _ in range(40):
        e = advance_element(e, S235, stress, eq, CFG)
        assert e.damage_level >= previous, "Damage never decreases"
        if was_broken:
            assert e.is_broken, "Broken is terminal"
        previous = e.damage_level
        was_broken = e.is_broken
