# api/main.py
"""
FastAPI backend for QuakeFrame - exposes the quakeframe engine as a REST API.

Stateless: every request carries the full model and gets a fresh engine, so a
seeded simulate call always returns the same collapse.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional
import sys
from pathlib import Path

# Add project root to path to import quakeframe
sys.path.insert(0, str(Path(__file__).parent.parent))

from quakeframe import AnalysisOrchestrator, AnalysisResult, EarthquakeConfig, model_from_dict
from quakeframe.collapse import CollapseSnapshot
from quakeframe.analysis import SimulationTickResult


app = FastAPI(
    title="QuakeFrame API",
    description="3D truss earthquake response and collapse engine",
    version="0.1.0"
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Request/Response Models
# =============================================================================

class NodeData(BaseModel):
    """Node geometry (metres, y up)."""
    id: str
    position: List[float] = Field(..., min_length=3, max_length=3)
    mass: Optional[float] = Field(None, ge=0.0, description="Lumped mass (kg)")
    is_support: bool = False


class ElementData(BaseModel):
    """Truss member. Section in cm, mass per length in kg/m."""
    id: str
    node_ids: List[str] = Field(..., min_length=2, max_length=2)
    width: float
    height: float
    material: str = "steel_S235"
    mass: Optional[float] = None
    damage_level: float = Field(0.0, ge=0.0, le=1.0)
    is_broken: bool = False


class FoundationData(BaseModel):
    """Footing under support nodes; soil resistance in kPa."""
    id: str
    kind: str = "dado"
    position: List[float] = Field(..., min_length=3, max_length=3)
    dimensions: List[float] = Field([1.7, 1.5, 1.5], min_length=3, max_length=3)
    material: str = "concrete_C25"
    soil_resistance: float = 250.0
    node_ids: List[str] = []


class ModelData(BaseModel):
    """Complete structural model."""
    nodes: List[NodeData]
    elements: List[ElementData]
    foundations: List[FoundationData] = []


class EarthquakeData(BaseModel):
    """Seismic excitation."""
    intensity: float = Field(6.0, ge=0.0, le=12.0, description="Richter-like intensity")
    frequency: float = Field(5.0, ge=0.0, le=50.0, description="Hz")
    duration: float = Field(10.0, ge=0.0, description="s")
    direction: List[float] = Field([1.0, 0.0, 0.0], min_length=3, max_length=3)
    type: Literal['horizontal', 'vertical', 'rotational'] = 'horizontal'


class SimulateRequest(ModelData):
    """Model plus the run to perform on it."""
    earthquake: EarthquakeData = EarthquakeData()
    seconds: float = Field(1.0, ge=0.0, le=30.0, description="Simulated time (s)")
    seed: int = 0
    break_elements: List[str] = []


class AnalysisData(BaseModel):
    """Analysis summary."""
    status: str
    max_displacement_mm: float
    max_stress_mpa: float
    safety_factor: float
    critical_elements: List[str]
    recommendations: List[str]
    warnings: List[str]
    diagnostic: str
    overall_health: float
    collapse_risk: float


class ReactionData(BaseModel):
    """Foundation reaction (kN)."""
    force_kn: List[float]
    is_estimate: bool


class DamageEventData(BaseModel):
    kind: str
    element_id: str
    source_id: Optional[str] = None
    stress: float
    damage_level: float
    cause: str
    timestamp: float


class TickData(BaseModel):
    """One earthquake tick."""
    timestamp: float
    node_positions: Dict[str, List[float]]
    element_stresses: Dict[str, float]
    foundation_reactions: Dict[str, ReactionData]
    analysis: AnalysisData
    newly_broken: List[str]


class BodyData(BaseModel):
    element_id: str
    position: List[float]
    velocity: List[float]
    mass: float
    is_on_ground: bool
    impact_energy: float


class CollisionData(BaseModel):
    element_ids: List[str]
    position: List[float]
    impact_force: float
    timestamp: float


class CollapseData(BaseModel):
    falling_elements: List[BodyData]
    collision_events: List[CollisionData]
    is_active: bool


class SimulateResult(BaseModel):
    """Outcome of a simulate run."""
    ticks: List[TickData]
    collapse: CollapseData
    damage_events: List[DamageEventData]
    broken_elements: List[str]


# =============================================================================
# Conversion
# =============================================================================

def analysis_data(result: AnalysisResult) -> AnalysisData:
    return AnalysisData(
        status=result.status,
        max_displacement_mm=round(result.max_displacement, 4),
        max_stress_mpa=round(result.max_stress, 4),
        safety_factor=round(result.safety_factor, 4),
        critical_elements=list(result.critical_elements),
        recommendations=list(result.recommendations),
        warnings=list(result.warnings),
        diagnostic=result.diagnostic,
        overall_health=result.overall_health,
        collapse_risk=result.collapse_risk,
    )


def tick_data(tick: SimulationTickResult) -> TickData:
    return TickData(
        timestamp=tick.timestamp,
        node_positions={k: list(v) for k, v in tick.node_positions.items()},
        element_stresses={k: round(v, 4) for k, v in tick.element_stresses.items()},
        foundation_reactions={
            k: ReactionData(force_kn=[round(f, 3) for f in r.force], is_estimate=r.is_estimate)
            for k, r in tick.foundation_reactions.items()
        },
        analysis=analysis_data(tick.analysis),
        newly_broken=list(tick.newly_broken),
    )


def collapse_data(snapshot: CollapseSnapshot) -> CollapseData:
    return CollapseData(
        falling_elements=[
            BodyData(
                element_id=b.element_id, position=list(b.position), velocity=list(b.velocity),
                mass=b.mass, is_on_ground=b.is_on_ground, impact_energy=b.impact_energy,
            )
            for b in snapshot.falling_elements
        ],
        collision_events=[
            CollisionData(
                element_ids=list(c.element_ids), position=list(c.position),
                impact_force=c.impact_force, timestamp=c.timestamp,
            )
            for c in snapshot.collision_events
        ],
        is_active=snapshot.is_active,
    )


def build_engine(data: ModelData, seed: Optional[int] = None) -> AnalysisOrchestrator:
    model = model_from_dict(data.model_dump(include={'nodes', 'elements', 'foundations'}))
    return AnalysisOrchestrator(model, seed=seed)


# =============================================================================
# API Endpoints
# =============================================================================

@app.get("/")
async def root():
    """Health check."""
    return {"status": "ok", "service": "QuakeFrame API"}


@app.post("/api/analyze", response_model=AnalysisData)
async def analyze(data: ModelData):
    """Static gravity analysis."""
    return analysis_data(build_engine(data).analyze())


@app.post("/api/simulate", response_model=SimulateResult)
async def simulate(request: SimulateRequest):
    """Run an earthquake with collapse for a fixed simulated time."""
    engine = build_engine(request, seed=request.seed)
    eq = request.earthquake
    engine.update_earthquake(EarthquakeConfig(
        intensity=eq.intensity,
        frequency=eq.frequency,
        duration=eq.duration,
        direction=tuple(eq.direction),
        type=eq.type,
    ))
    if request.break_elements:
        engine.break_elements(request.break_elements)

    frame = engine.context.config.scheduler.physics_interval
    ticks = []
    engine.start()
    for _ in range(int(round(request.seconds / frame))):
        new_ticks, _ = engine.advance(frame)
        ticks.extend(new_ticks)
    engine.stop()

    final = engine.snapshot
    return SimulateResult(
        ticks=[tick_data(t) for t in ticks[-engine.context.config.history_length:]],
        collapse=collapse_data(final.collapse),
        damage_events=[
            DamageEventData(
                kind=e.kind, element_id=e.element_id, source_id=e.source_id,
                stress=e.stress, damage_level=e.damage_level, cause=e.cause, timestamp=e.timestamp,
            )
            for e in engine.damage_events
        ],
        broken_elements=[e.id for e in final.model.elements.values() if e.is_broken],
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
