# quakeframe/analysis.py
"""
ANALYSIS ORCHESTRATOR: Static Analysis, Earthquake Ticks and Collapse Ticks
===========================================================================

PURPOSE:
--------
Sequences the engine for each call and owns the session state:

    analyze()            model -> assemble -> reduce -> solve -> stresses
                         -> AnalysisResult

    earthquake_tick(dt)  the same solve under an amplified gravity load
                         -> damage -> progressive collapse
                         -> SimulationTickResult

    collapse_tick(dt)    falling bodies for broken elements -> integrate
                         -> collisions -> secondary breakage
                         -> CollapseSnapshot

STATE:
------
All mutable session state lives in one SimulationContext. Ticks never edit a
model in place: each builds new (model, collapse) snapshots and publishes
them together with a single reference swap, so a reader holding ``snapshot``
always sees a consistent pair.

FAILURES:
---------
No tick raises for a bad model or a bad solve. Validation errors and singular
systems come back as results with status "invalid" / "singular" /
"degenerate", zero values and a diagnostic, so a renderer always has
something to draw.
"""

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Deque, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .collapse.simulator import EMPTY_COLLAPSE, CollapseSnapshot, step_collapse
from .config import DEFAULT_CONFIG, EngineConfig
from .failure.damage import (
    PROGRESSIVE_COLLAPSE,
    DamageEvent,
    break_elements,
    damage_summary,
    damage_tick,
    reset_damage,
    seismic_load_scale,
)
from .failure.propagation import propagate_collapse
from .kernel.errors import DegenerateSystem, SingularSystem
from .model import (
    QUIET,
    EarthquakeConfig,
    StructuralModel,
    Triplet,
    ValidationError,
    validate_model,
)
from .post import StressField
from .scheduler import FixedStepScheduler
from .solve import StaticSolution, solve_structure

logger = logging.getLogger(__name__)

STATUS_OK = 'ok'
STATUS_SINGULAR = 'singular'
STATUS_DEGENERATE = 'degenerate'
STATUS_INVALID = 'invalid'

DEFAULT_RECOMMENDATION = "Structure meets the basic safety criteria"


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class AnalysisResult:
    """
    Summary of one analysis.

    max_displacement is in mm, max_stress in MPa. A failed analysis carries
    zeros, a non-ok status and the diagnostic.
    """
    max_displacement: float
    max_stress: float
    safety_factor: float
    critical_elements: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    status: str = STATUS_OK
    warnings: Tuple[str, ...] = ()
    diagnostic: str = ''
    overall_health: float = 100.0
    collapse_risk: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


@dataclass(frozen=True)
class FoundationReaction:
    """Reaction carried by a foundation, (Fx, Fy, Fz) in kN."""
    force: Triplet
    is_estimate: bool = False


@dataclass(frozen=True)
class SimulationTickResult:
    """Everything a renderer needs after one earthquake tick."""
    timestamp: float
    node_positions: Mapping[str, Triplet]
    element_stresses: Mapping[str, float]
    foundation_reactions: Mapping[str, FoundationReaction]
    analysis: AnalysisResult
    damage_events: Tuple[DamageEvent, ...] = ()
    newly_broken: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PublishedState:
    """The (model, collapse) pair readers see; replaced as a whole."""
    model: StructuralModel
    collapse: CollapseSnapshot = EMPTY_COLLAPSE


# =============================================================================
# Result helpers
# =============================================================================

def failed_result(status: str, diagnostic: str, warnings: Sequence[str] = ()) -> AnalysisResult:
    """Zero-valued result for an analysis that could not run."""
    if status == STATUS_INVALID:
        advice = f"Model is invalid and was not analysed: {diagnostic}"
    else:
        advice = f"Structure is unstable: {diagnostic}. Check supports and bracing."
    return AnalysisResult(
        max_displacement=0.0,
        max_stress=0.0,
        safety_factor=0.0,
        recommendations=(advice,),
        status=status,
        warnings=tuple(warnings),
        diagnostic=diagnostic,
    )


def safety_factor(model: StructuralModel, stresses: Mapping[str, float], default: float = 2.0) -> float:
    """Minimum yield / |stress| over elements that carry stress."""
    factors = []
    for element_id, stress in stresses.items():
        material = model.material_for(model.elements[element_id])
        if material is not None and abs(stress) > 1e-9:
            factors.append(material.yield_strength / abs(stress))
    return min(factors) if factors else default


def critical_elements(
    model: StructuralModel,
    stresses: Mapping[str, float],
    stress_ratio: float = 0.8,
    damage_level: float = 0.7,
    limit: Optional[int] = None,
) -> List[str]:
    """
    Elements near failure, worst first.

    An element is critical when |stress| / yield exceeds stress_ratio or its
    damage exceeds damage_level. Broken elements are not listed.
    """
    scored = []
    for element in model.active_elements():
        material = model.material_for(element)
        ratio = abs(stresses.get(element.id, 0.0)) / material.yield_strength if material else 0.0
        if ratio > stress_ratio or element.damage_level > damage_level:
            scored.append((max(ratio, element.damage_level), element.id))
    scored.sort(key=lambda s: s[0], reverse=True)
    ids = [element_id for _, element_id in scored]
    return ids[:limit] if limit is not None else ids


def recommendations(
    model: StructuralModel,
    sf: float,
    critical: Sequence[str],
    events: Sequence[DamageEvent] = (),
    overloaded_foundations: Sequence[str] = (),
) -> List[str]:
    """Plain-language advice derived from the analysis figures."""
    advice = []

    if sf < 1.5:
        advice.append("Safety factor is low. Consider structural reinforcement.")
    if critical:
        advice.append(f"Reinforce critical elements: {', '.join(critical)}")
    if len(model.elements) > 10:
        advice.append("Review the load distribution across the main elements")

    health = damage_summary(model)
    if health['overall_health'] < 50:
        advice.append("CRITICAL STRUCTURE: evacuate immediately")
        advice.append("Reinforce the main structural elements")
    elif health['overall_health'] < 80:
        advice.append("Significant damage detected")
        advice.append("Urgent technical inspection required")

    if health['broken']:
        advice.append(f"Replace {health['broken']} broken element(s)")
    severe = sum(1 for e in model.active_elements() if e.damage_level > 0.8)
    if severe:
        advice.append(f"Reinforce {severe} severely damaged element(s)")

    if any(e.kind == PROGRESSIVE_COLLAPSE for e in events):
        advice.append("Progressive collapse risk detected")
        advice.append("Put containment measures in place")

    for foundation_id in overloaded_foundations:
        advice.append(f"Foundation {foundation_id} exceeds the soil bearing capacity")

    return advice or [DEFAULT_RECOMMENDATION]


def foundation_reactions(
    model: StructuralModel,
    solution: Optional[StaticSolution],
    gravity: float,
    load_scale: float = 1.0,
    default_node_mass: float = 1.0,
) -> Dict[str, FoundationReaction]:
    """
    Reaction per foundation from R = K·d − F at its support nodes.

    A foundation whose nodes are not all supports in the solve, or any
    foundation when there is no valid solve, gets a tributary share of the
    total weight instead and is flagged as an estimate.
    """
    if not model.foundations:
        return {}

    support_ids = set(model.support_node_ids())
    total_weight = sum(
        (n.mass if n.mass is not None else default_node_mass) for n in model.nodes.values()
    ) * gravity * load_scale
    share = total_weight / len(model.foundations) / 1000.0

    reactions = {}
    for foundation in model.foundations.values():
        nodes = foundation.node_ids
        if solution is not None and nodes and all(n in support_ids for n in nodes):
            dof = solution.system.dof
            force = np.zeros(3)
            for node_id in nodes:
                force += solution.R[dof.node_dofs(node_id)]
            force /= 1000.0
            reactions[foundation.id] = FoundationReaction(
                force=(float(force[0]), float(force[1]), float(force[2])),
            )
        else:
            reactions[foundation.id] = FoundationReaction(force=(0.0, share, 0.0), is_estimate=True)
    return reactions


def overloaded_foundations(model: StructuralModel, reactions: Mapping[str, FoundationReaction]) -> List[str]:
    """Foundations whose bearing pressure exceeds the soil resistance (kPa)."""
    overloaded = []
    for foundation_id, reaction in reactions.items():
        foundation = model.foundations[foundation_id]
        area = foundation.bearing_area
        if area <= 0 or foundation.soil_resistance <= 0:
            continue
        pressure = abs(reaction.force[1]) / area  # kN / m² = kPa
        if pressure > foundation.soil_resistance:
            overloaded.append(foundation_id)
    return overloaded


def _deformed_positions(model: StructuralModel, stress: Optional[StressField]) -> Dict[str, Triplet]:
    positions = {}
    for node in model.nodes.values():
        u = stress.displacements.get(node.id, (0.0, 0.0, 0.0)) if stress else (0.0, 0.0, 0.0)
        positions[node.id] = tuple(float(p + du) for p, du in zip(node.position, u))
    return positions


# =============================================================================
# Session state
# =============================================================================

@dataclass
class SimulationContext:
    """
    Mutable session state owned by one orchestrator.

    Attributes:
        state: Published (model, collapse) pair
        earthquake: Current excitation
        config: Engine constants
        clock: Simulation time of the last earthquake tick (s)
        history: Rolling buffer of recent tick results
        damage_events: Session damage log (most recent last)
        pending_breaks: Elements broken outside an earthquake tick whose
            neighbours have not been damaged yet
        rng: Random source for collapse velocities
    """
    state: PublishedState
    earthquake: EarthquakeConfig = QUIET
    config: EngineConfig = DEFAULT_CONFIG
    clock: float = 0.0
    history: Deque[SimulationTickResult] = field(default_factory=deque)
    damage_events: List[DamageEvent] = field(default_factory=list)
    pending_breaks: List[str] = field(default_factory=list)
    rng: np.random.Generator = field(default_factory=np.random.default_rng)

    def __post_init__(self):
        self.history = deque(self.history, maxlen=self.config.history_length)

    @property
    def model(self) -> StructuralModel:
        return self.state.model

    @property
    def collapse(self) -> CollapseSnapshot:
        return self.state.collapse

    def publish(
        self,
        model: Optional[StructuralModel] = None,
        collapse: Optional[CollapseSnapshot] = None,
    ) -> None:
        self.state = PublishedState(
            model=self.state.model if model is None else model,
            collapse=self.state.collapse if collapse is None else collapse,
        )

    def log_damage(self, events: Iterable[DamageEvent]) -> None:
        self.damage_events.extend(events)
        overflow = len(self.damage_events) - self.config.max_event_log
        if overflow > 0:
            del self.damage_events[:overflow]


# =============================================================================
# Orchestrator
# =============================================================================

class AnalysisOrchestrator:
    """
    Public entry point of the engine.

    Usage:
        engine = AnalysisOrchestrator(model, seed=42)
        static = engine.analyze()

        engine.update_earthquake(EarthquakeConfig(intensity=7, frequency=5))
        tick = engine.earthquake_tick(0.03)
        collapse = engine.collapse_tick(0.016)

    Or let the fixed-step schedulers drive both loops:
        engine.start()
        engine.advance(frame_seconds)   # once per frame
        engine.stop()
    """

    def __init__(
        self,
        model: StructuralModel,
        earthquake: EarthquakeConfig = QUIET,
        config: EngineConfig = DEFAULT_CONFIG,
        seed: Optional[int] = None,
    ):
        self.context = SimulationContext(
            state=PublishedState(model=model),
            earthquake=earthquake,
            config=config,
            rng=np.random.default_rng(seed),
        )
        sched = config.scheduler
        self.analysis_scheduler = FixedStepScheduler(
            sched.analysis_interval, self.earthquake_tick, sched.max_steps_per_advance,
        )
        self.physics_scheduler = FixedStepScheduler(
            sched.physics_interval, self.collapse_tick, sched.max_steps_per_advance,
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> PublishedState:
        """Last published (model, collapse) pair."""
        return self.context.state

    @property
    def model(self) -> StructuralModel:
        return self.context.model

    @property
    def collapse(self) -> CollapseSnapshot:
        return self.context.collapse

    @property
    def history(self) -> List[SimulationTickResult]:
        return list(self.context.history)

    @property
    def damage_events(self) -> List[DamageEvent]:
        return list(self.context.damage_events)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _solve(self, model: StructuralModel, load_scale: float):
        """
        Validate and solve, mapping every failure to a result.

        Returns:
            (solution or None, warnings, failed AnalysisResult or None)
        """
        try:
            warnings = validate_model(model)
        except ValidationError as e:
            logger.warning("Model rejected: %s", e)
            return None, [], failed_result(STATUS_INVALID, str(e))

        try:
            solution = solve_structure(model, self.context.config.solver, load_scale)
        except DegenerateSystem as e:
            logger.warning("Degenerate system: %s", e.diagnostic)
            return None, warnings, failed_result(STATUS_DEGENERATE, e.diagnostic, warnings)
        except SingularSystem as e:
            logger.warning("Singular system: %s", e.diagnostic)
            return None, warnings, failed_result(STATUS_SINGULAR, e.diagnostic, warnings)

        warnings = list(dict.fromkeys(warnings + solution.system.warnings))
        return solution, warnings, None

    def _result(
        self,
        model: StructuralModel,
        solution: StaticSolution,
        warnings: Sequence[str],
        events: Sequence[DamageEvent] = (),
        reactions: Optional[Mapping[str, FoundationReaction]] = None,
        limit: Optional[int] = None,
    ) -> AnalysisResult:
        cfg = self.context.config
        stresses = solution.stress.stresses
        sf = safety_factor(model, stresses, cfg.default_safety_factor)
        critical = critical_elements(
            model, stresses, cfg.critical_stress_ratio, cfg.critical_damage_level, limit,
        )
        overloaded = overloaded_foundations(model, reactions or {})
        health = damage_summary(model)
        return AnalysisResult(
            max_displacement=solution.stress.max_displacement,
            max_stress=solution.stress.max_stress,
            safety_factor=sf,
            critical_elements=tuple(critical),
            recommendations=tuple(recommendations(model, sf, critical, events, overloaded)),
            warnings=tuple(warnings),
            overall_health=health['overall_health'],
            collapse_risk=health['collapse_risk'],
        )

    def analyze(self) -> AnalysisResult:
        """Static analysis of the current model under gravity."""
        model = self.context.model
        solution, warnings, failed = self._solve(model, 1.0)
        if failed is not None:
            return failed

        solver = self.context.config.solver
        reactions = foundation_reactions(model, solution, solver.gravity, 1.0, solver.default_node_mass)
        return self._result(
            model, solution, warnings,
            reactions=reactions,
            limit=self.context.config.max_critical_elements,
        )

    def earthquake_tick(self, dt: float) -> SimulationTickResult:
        """
        One seismic step: solve under the amplified load, advance damage and
        spread it from elements that broke since the last tick.
        """
        ctx = self.context
        ctx.clock += dt
        model = ctx.model
        cfg = ctx.config
        scale = seismic_load_scale(ctx.earthquake, cfg.damage)

        solution, warnings, failed = self._solve(model, scale)

        newly_broken: List[str] = []
        events: List[DamageEvent] = []
        stresses: Dict[str, float] = {}

        if solution is not None:
            stresses = dict(solution.stress.stresses)
            damage_input = stresses
        elif failed.status != STATUS_INVALID:
            # Mechanism: no stress field, but elements already past the
            # breakage damage still break
            damage_input = {e.id: 0.0 for e in model.active_elements()}
        else:
            damage_input = None

        if damage_input is not None:
            tick = damage_tick(model, damage_input, ctx.earthquake, cfg.damage, ctx.clock)
            model = tick.model
            newly_broken = tick.newly_broken
            events.extend(tick.events)

        sources = list(dict.fromkeys(ctx.pending_breaks + newly_broken))
        if sources and (failed is None or failed.status != STATUS_INVALID):
            model, spread = propagate_collapse(model, sources, ctx.earthquake, cfg.damage, ctx.clock)
            events.extend(spread)
            ctx.pending_breaks = []

        ctx.publish(model=model)
        ctx.log_damage(events)

        reactions = foundation_reactions(
            model, solution, cfg.solver.gravity, scale, cfg.solver.default_node_mass,
        )
        if failed is not None:
            analysis = replace(failed, **self._health(model))
        else:
            analysis = self._result(model, solution, warnings, events, reactions)

        element_stresses = {e: stresses.get(e, 0.0) for e in model.elements}
        result = SimulationTickResult(
            timestamp=ctx.clock,
            node_positions=_deformed_positions(model, solution.stress if solution else None),
            element_stresses=element_stresses,
            foundation_reactions=reactions,
            analysis=analysis,
            damage_events=tuple(events),
            newly_broken=tuple(newly_broken),
        )
        ctx.history.append(result)
        return result

    @staticmethod
    def _health(model: StructuralModel) -> Dict[str, float]:
        health = damage_summary(model)
        return {'overall_health': health['overall_health'], 'collapse_risk': health['collapse_risk']}

    def collapse_tick(self, dt: Optional[float] = None) -> CollapseSnapshot:
        """One physics step of the fall simulation."""
        ctx = self.context
        cfg = ctx.config
        step = step_collapse(ctx.collapse, ctx.model, ctx.rng, cfg.collapse, dt, cfg.max_event_log)

        broken_by_impact = [e.element_id for e in step.damage_events]
        ctx.pending_breaks.extend(broken_by_impact)
        ctx.publish(model=step.model, collapse=step.snapshot)
        ctx.log_damage(step.damage_events)
        return step.snapshot

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def reset_damage(self) -> None:
        """Return every element to intact. Falling bodies are kept."""
        self.context.publish(model=reset_damage(self.context.model))
        self.context.pending_breaks = []
        logger.info("Damage reset")

    def reset_collapse(self) -> None:
        """Drop every falling body and the collision log."""
        self.context.publish(collapse=EMPTY_COLLAPSE)

    def break_elements(self, element_ids: Iterable[str], cause: str = "Forced breakage") -> List[str]:
        """Force elements to broken; returns the ids that actually changed."""
        ctx = self.context
        model, broken, events = break_elements(ctx.model, element_ids, ctx.clock, cause)
        ctx.pending_breaks.extend(broken)
        ctx.publish(model=model)
        ctx.log_damage(events)
        return broken

    def load_model(self, model: StructuralModel) -> List[str]:
        """
        Replace the structure and start a fresh session.

        Returns:
            Validation warnings (an invalid model is stored and reported by
            the next analysis)
        """
        ctx = self.context
        ctx.state = PublishedState(model=model)
        ctx.clock = 0.0
        ctx.history.clear()
        ctx.damage_events = []
        ctx.pending_breaks = []
        try:
            return validate_model(model)
        except ValidationError as e:
            logger.warning("Loaded an invalid model: %s", e)
            return list(e.errors)

    def _has(self, kind: str, item_id: str) -> bool:
        model = self.context.model
        known = model.nodes if kind == 'node' else model.elements
        if item_id not in known:
            logger.warning("Ignoring edit of unknown %s %s", kind, item_id)
            return False
        return True

    def update_node_position(self, node_id: str, position: Triplet) -> bool:
        """Move a node. Edits of unknown ids are ignored with a warning and return False."""
        if not self._has('node', node_id):
            return False
        self.context.publish(model=self.context.model.with_node_position(node_id, position))
        return True

    def set_support(self, node_id: str, is_support: bool) -> bool:
        if not self._has('node', node_id):
            return False
        self.context.publish(model=self.context.model.with_support(node_id, is_support))
        return True

    def update_element(self, element_id: str, **properties) -> bool:
        """
        Change an element's width, height, material or mass.

        Damage state is kept and the next assembly uses the new section.

        Raises:
            ValueError: for any other property name
        """
        if not self._has('element', element_id):
            return False
        self.context.publish(model=self.context.model.with_element_properties(element_id, **properties))
        return True

    def delete_element(self, element_id: str) -> bool:
        """Remove an element; it is left out of every later assembly."""
        if not self._has('element', element_id):
            return False
        self.context.publish(model=self.context.model.without_element(element_id))
        return True

    def update_earthquake(self, earthquake: EarthquakeConfig) -> None:
        self.context.earthquake = earthquake

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.analysis_scheduler.start()
        self.physics_scheduler.start()

    def stop(self) -> None:
        self.analysis_scheduler.stop()
        self.physics_scheduler.stop()

    def cancel(self) -> None:
        self.analysis_scheduler.cancel()
        self.physics_scheduler.cancel()

    @property
    def running(self) -> bool:
        return self.analysis_scheduler.running or self.physics_scheduler.running

    def advance(self, elapsed: float) -> Tuple[List[SimulationTickResult], List[CollapseSnapshot]]:
        """
        Run every earthquake and physics step that became due.

        Returns:
            (tick results, collapse snapshots), each oldest first
        """
        ticks = self.analysis_scheduler.advance(elapsed)
        snapshots = self.physics_scheduler.advance(elapsed)
        return ticks, snapshots
