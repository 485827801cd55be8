# quakeframe/config.py
"""
Engine configuration and defaults.

Every tunable constant of the stress engine and the collapse simulator lives
here, grouped by the component that reads it. All groups are frozen so a
config can be shared between snapshots without being changed underneath them;
use ``dataclasses.replace`` to derive a variant.
"""

from dataclasses import dataclass, field
from typing import Tuple


GRAVITY = 9.81  # m/s², used for static gravity loads


@dataclass(frozen=True)
class SolverConfig:
    """Stiffness assembly and linear solve settings."""

    # Standard gravity applied to node masses (N = kg × g)
    gravity: float = GRAVITY

    # Mass used for nodes that do not declare one (kg)
    default_node_mass: float = 1.0

    # Max condition number of K_ff before the system is declared singular
    cond_limit: float = 1e12

    # Diagonal entries below rel_tol × max(diag) count as "no stiffness"
    zero_stiffness_tol: float = 1e-12


@dataclass(frozen=True)
class DamageConfig:
    """Damage accumulation, breakage and propagation constants."""

    # Intensity is normalised as intensity / intensity_reference
    intensity_reference: float = 6.0

    # Seismic amplification of the gravity load: (I/6) × min(f / f_res, 1)
    resonance_frequency: float = 8.0

    # Existing damage concentrates stress: σ_eff = σ × (1 + k × damage)
    damage_stress_amplification: float = 4.0

    # Damage: Δd = max(0, ratio − threshold) × rate × intensity_factor
    damage_threshold: float = 0.3
    damage_rate: float = 0.8

    # Fatigue: Δf = ratio × rate × intensity_factor
    fatigue_rate: float = 0.4

    # Element breaks when damage ≥ breakage_damage or σ ≥ fraction × yield
    breakage_damage: float = 0.5
    breakage_stress_fraction: float = 0.8

    # Neighbour increment: factor × intensity / intensity_scale
    propagation_factor: float = 0.9
    propagation_intensity_scale: float = 3.0

    # Neighbour damage at or above this emits a progressive_collapse event
    propagation_event_threshold: float = 0.3


@dataclass(frozen=True)
class CollapseConfig:
    """Rigid-body fall simulation constants."""

    time_step: float = 0.016  # s (60 FPS)

    # Steeper than Earth gravity to keep the visual collapse fast
    gravity: Tuple[float, float, float] = (0.0, -15.0, 0.0)

    air_resistance: float = 0.005
    ground_friction: float = 0.6
    ground_level: float = 0.0  # m

    collision_radius: float = 0.5  # m

    # Secondary breakage: energy gate (J) and scan radius (m)
    impact_threshold: float = 1000.0
    breakage_radius: float = 3.0

    # Velocity magnitude limit (m/s), guards against diverging impacts
    max_speed: float = 50.0

    # Below this speed a body on the ground counts as settled (m/s)
    rest_speed: float = 0.1

    # Initial velocity bounds for released bodies: (±horizontal, max upward)
    release_velocity: Tuple[float, float] = (2.0, 2.0)
    explosive_velocity: Tuple[float, float] = (3.0, 3.0)


@dataclass(frozen=True)
class SchedulerConfig:
    """Fixed-step cadences for the two simulation loops."""

    analysis_interval: float = 0.03  # s between earthquake ticks
    physics_interval: float = 0.016  # s between collapse ticks

    # Upper bound on catch-up steps taken by one advance() call
    max_steps_per_advance: int = 10


@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration."""

    solver: SolverConfig = field(default_factory=SolverConfig)
    damage: DamageConfig = field(default_factory=DamageConfig)
    collapse: CollapseConfig = field(default_factory=CollapseConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)

    # Length of the rolling tick-result history kept by the orchestrator
    history_length: int = 10

    # Event logs are truncated to the most recent entries beyond this size
    max_event_log: int = 500

    # Safety factor reported when no element carries stress
    default_safety_factor: float = 2.0

    # Stress ratio / damage level above which an element is critical
    critical_stress_ratio: float = 0.8
    critical_damage_level: float = 0.7

    # Static analysis lists at most this many critical elements
    max_critical_elements: int = 3


# Default config instance
DEFAULT_CONFIG = EngineConfig()
