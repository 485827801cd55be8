# quakeframe/model.py
"""
STRUCTURAL MODEL: Nodes, Elements, Foundations and the Model Snapshot
=====================================================================

PURPOSE:
--------
Plain data structures for a 3D truss under seismic load:
- Node:            a joint in space, optionally a support (anchored to ground)
- Element:         an axial member between two nodes, carrying damage state
- Foundation:      a footing that carries one or more support nodes
- EarthquakeConfig: the excitation applied by the earthquake tick
- StructuralModel: an immutable snapshot of all of the above

CONVENTIONS:
------------
- Coordinates in metres, y is the vertical axis (gravity acts along -y)
- Element width/height in centimetres (area = width × height / 10 000 m²)
- Stresses and strengths in MPa, node mass in kg, element mass in kg/m

Every object here is frozen. A tick never edits a model in place; it builds a
new snapshot with ``with_elements()`` / ``with_node_position()`` / ... and the
orchestrator swaps it in. Readers holding the old snapshot are unaffected.

SUPPORTS:
---------
A node is a support only if ``is_support`` is set when the model is built.
Supports are never inferred from coordinates.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from .materials import MATERIALS, Material

logger = logging.getLogger(__name__)

Triplet = Tuple[float, float, float]


class ValidationError(ValueError):
    """Raised when a model is malformed and cannot be analysed."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class ElementState(Enum):
    """Damage state machine: INTACT -> DAMAGED -> BROKEN (terminal)."""
    INTACT = "intact"
    DAMAGED = "damaged"
    BROKEN = "broken"


@dataclass(frozen=True)
class Node:
    """
    A joint in 3D space.

    Parameters:
    -----------
    id : str
        Unique node identifier
    position : Triplet
        (x, y, z) in metres, y up
    mass : float, optional
        Lumped mass in kg; gravity load is mass × g along -y
    is_support : bool
        Anchored to ground: all three translations are fixed
    """
    id: str
    position: Triplet
    mass: Optional[float] = None
    is_support: bool = False


@dataclass(frozen=True)
class Element:
    """
    An axial (truss) member between two nodes.

    The node order (a, b) fixes the axis convention used for strain signs;
    physically the member is undirected.

    Geometry / material:
        width, height : cross-section dimensions (cm)
        material      : key into the material table
        mass          : mass per length (kg/m); defaults to density × area

    State (updated only by producing a new Element):
        current_stress : effective stress magnitude from the last tick (MPa)
        damage_level   : accumulated damage in [0, 1]
        fatigue_factor : accumulated fatigue in [0, 1]
        is_broken      : no longer carries load
        critical_stress: cached ultimate strength of the material (MPa)
    """
    id: str
    node_ids: Tuple[str, str]
    width: float
    height: float
    material: str
    mass: Optional[float] = None
    current_stress: float = 0.0
    damage_level: float = 0.0
    fatigue_factor: float = 0.0
    is_broken: bool = False
    critical_stress: Optional[float] = None

    @property
    def area(self) -> float:
        """Cross-section area in m² (width and height are in cm)."""
        return self.width * self.height / 10000.0

    @property
    def state(self) -> ElementState:
        if self.is_broken:
            return ElementState.BROKEN
        if self.damage_level > 0.0:
            return ElementState.DAMAGED
        return ElementState.INTACT


@dataclass(frozen=True)
class Foundation:
    """
    A footing under one or more support nodes.

    soil_resistance is the allowable bearing pressure (kPa); dimensions are
    (width, height, depth) in metres, so the bearing area is width × depth.
    """
    id: str
    kind: str
    position: Triplet
    dimensions: Triplet
    material: str
    soil_resistance: float
    node_ids: Tuple[str, ...] = ()

    @property
    def bearing_area(self) -> float:
        return self.dimensions[0] * self.dimensions[2]


EDITABLE_ELEMENT_PROPERTIES = frozenset({'width', 'height', 'material', 'mass'})

EARTHQUAKE_TYPES = ('horizontal', 'vertical', 'rotational')


@dataclass(frozen=True)
class EarthquakeConfig:
    """
    Seismic excitation.

    Only intensity (Richter-like) and frequency (Hz) enter the stress and
    damage calculations; direction and type drive the visual shake of the
    rendering layer.
    """
    intensity: float = 9.0
    frequency: float = 20.0
    duration: float = 20.0
    direction: Triplet = (1.0, 0.0, 0.0)
    type: str = 'horizontal'

    def __post_init__(self):
        if self.type not in EARTHQUAKE_TYPES:
            raise ValueError(f"Unknown earthquake type: {self.type}")
        if not all(math.isfinite(v) for v in (self.intensity, self.frequency, self.duration)):
            raise ValueError("Earthquake intensity, frequency and duration must be finite")
        if self.intensity < 0 or self.frequency < 0 or self.duration < 0:
            raise ValueError("Earthquake intensity, frequency and duration must be non-negative")


QUIET = EarthquakeConfig(intensity=0.0, frequency=0.0, duration=0.0)


@dataclass(frozen=True)
class StructuralModel:
    """
    Immutable snapshot of a structure.

    nodes / elements / foundations are keyed by id and keep insertion order;
    node order defines DOF numbering.
    """
    nodes: Mapping[str, Node]
    elements: Mapping[str, Element]
    foundations: Mapping[str, Foundation] = field(default_factory=dict)
    materials: Mapping[str, Material] = field(default_factory=lambda: MATERIALS)

    def __post_init__(self):
        # Read-only views so a published snapshot cannot be edited in place
        object.__setattr__(self, 'nodes', MappingProxyType(dict(self.nodes)))
        object.__setattr__(self, 'elements', MappingProxyType(self._with_critical_stress(self.elements)))
        object.__setattr__(self, 'foundations', MappingProxyType(dict(self.foundations)))

    def _with_critical_stress(self, elements: Mapping[str, Element]) -> Dict[str, Element]:
        """Fill the ultimate-strength cache of elements with a known material."""
        filled = {}
        for element_id, element in elements.items():
            if element.critical_stress is None:
                material = self.materials.get(element.material)
                if material is not None:
                    element = replace(element, critical_stress=material.ultimate_strength)
            filled[element_id] = element
        return filled

    @classmethod
    def build(
        cls,
        nodes: Iterable[Node],
        elements: Iterable[Element],
        foundations: Iterable[Foundation] = (),
        materials: Mapping[str, Material] = MATERIALS,
    ) -> "StructuralModel":
        """Build a model from sequences (ids taken from the objects)."""
        return cls(
            nodes={n.id: n for n in nodes},
            elements={e.id: e for e in elements},
            foundations={f.id: f for f in foundations},
            materials=materials,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def node_index(self) -> Dict[str, int]:
        """Map node id -> 0-based index used for DOF numbering."""
        return {node_id: i for i, node_id in enumerate(self.nodes)}

    def support_node_ids(self) -> List[str]:
        return [n.id for n in self.nodes.values() if n.is_support]

    def active_elements(self) -> List[Element]:
        """Elements that still carry load (not broken)."""
        return [e for e in self.elements.values() if not e.is_broken]

    def material_for(self, element: Element) -> Optional[Material]:
        return self.materials.get(element.material)

    def is_resolved(self, element: Element) -> bool:
        """Both end nodes exist in this model."""
        return all(n in self.nodes for n in element.node_ids)

    def element_vector(self, element: Element) -> np.ndarray:
        """Vector from node a to node b (m)."""
        pa = np.asarray(self.nodes[element.node_ids[0]].position, dtype=float)
        pb = np.asarray(self.nodes[element.node_ids[1]].position, dtype=float)
        return pb - pa

    def element_length(self, element: Element) -> float:
        return float(np.linalg.norm(self.element_vector(element)))

    def element_centroid(self, element: Element) -> np.ndarray:
        pa = np.asarray(self.nodes[element.node_ids[0]].position, dtype=float)
        pb = np.asarray(self.nodes[element.node_ids[1]].position, dtype=float)
        return 0.5 * (pa + pb)

    def element_mass(self, element: Element) -> float:
        """
        Total mass of an element (kg) = mass per length × length.

        Mass per length comes from the element record when given, otherwise
        from material density × area (0 for an unknown material).
        """
        if element.mass is not None:
            per_length = element.mass
        else:
            material = self.material_for(element)
            per_length = material.density * element.area if material else 0.0
        return per_length * self.element_length(element)

    def neighbours(self, element_id: str) -> List[Element]:
        """Other elements sharing either endpoint node with element_id."""
        element = self.elements[element_id]
        ends = set(element.node_ids)
        return [
            e for e in self.elements.values()
            if e.id != element_id and ends.intersection(e.node_ids)
        ]

    # ------------------------------------------------------------------
    # Snapshot updates (each returns a new model)
    # ------------------------------------------------------------------

    def with_elements(self, updated: Iterable[Element]) -> "StructuralModel":
        """Replace elements by id."""
        elements = dict(self.elements)
        for element in updated:
            if element.id not in elements:
                raise KeyError(f"Unknown element: {element.id}")
            elements[element.id] = element
        return replace(self, elements=elements)

    def with_element_properties(self, element_id: str, **properties) -> "StructuralModel":
        """
        Edit the section, material or mass of one element.

        Only width, height, material and mass may change; damage state is
        kept. A new material refreshes the cached critical stress.
        """
        unknown = set(properties) - EDITABLE_ELEMENT_PROPERTIES
        if unknown:
            raise ValueError(f"Cannot edit element properties: {', '.join(sorted(unknown))}")
        element = self.elements[element_id]
        if 'material' in properties and properties['material'] != element.material:
            properties['critical_stress'] = None
        return self.with_elements([replace(element, **properties)])

    def with_node_position(self, node_id: str, position: Triplet) -> "StructuralModel":
        nodes = dict(self.nodes)
        nodes[node_id] = replace(nodes[node_id], position=tuple(float(c) for c in position))
        return replace(self, nodes=nodes)

    def with_support(self, node_id: str, is_support: bool) -> "StructuralModel":
        nodes = dict(self.nodes)
        nodes[node_id] = replace(nodes[node_id], is_support=bool(is_support))
        return replace(self, nodes=nodes)

    def without_element(self, element_id: str) -> "StructuralModel":
        """Drop an element; it simply disappears from the next assembly."""
        elements = dict(self.elements)
        del elements[element_id]
        return replace(self, elements=elements)

    # ------------------------------------------------------------------
    # Plain-data exchange
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodes': [
                {'id': n.id, 'position': list(n.position), 'mass': n.mass, 'is_support': n.is_support}
                for n in self.nodes.values()
            ],
            'elements': [
                {
                    'id': e.id, 'node_ids': list(e.node_ids),
                    'width': e.width, 'height': e.height,
                    'material': e.material, 'mass': e.mass,
                    'current_stress': e.current_stress,
                    'damage_level': e.damage_level,
                    'fatigue_factor': e.fatigue_factor,
                    'is_broken': e.is_broken,
                    'critical_stress': e.critical_stress,
                }
                for e in self.elements.values()
            ],
            'foundations': [
                {
                    'id': f.id, 'kind': f.kind, 'position': list(f.position),
                    'dimensions': list(f.dimensions), 'material': f.material,
                    'soil_resistance': f.soil_resistance, 'node_ids': list(f.node_ids),
                }
                for f in self.foundations.values()
            ],
        }


def model_from_dict(data: Mapping[str, Any], materials: Mapping[str, Material] = MATERIALS) -> StructuralModel:
    """
    Build a StructuralModel from plain data (e.g. parsed JSON).

    Nodes are supports when they carry ``is_support: true`` or the explicit
    ``type: "support"`` attribute. Element lists may be given under
    ``elements`` or ``beams``.
    """
    nodes = []
    for raw in data.get('nodes', []):
        is_support = bool(raw.get('is_support', raw.get('type') == 'support'))
        nodes.append(Node(
            id=str(raw['id']),
            position=tuple(float(c) for c in raw['position']),
            mass=raw.get('mass'),
            is_support=is_support,
        ))

    elements = []
    for raw in data.get('elements', data.get('beams', [])):
        node_ids = raw.get('node_ids', raw.get('nodeIds'))
        elements.append(Element(
            id=str(raw['id']),
            node_ids=(str(node_ids[0]), str(node_ids[1])),
            width=float(raw['width']),
            height=float(raw['height']),
            material=str(raw['material']),
            mass=raw.get('mass'),
            current_stress=float(raw.get('current_stress', 0.0)),
            damage_level=float(raw.get('damage_level', 0.0)),
            fatigue_factor=float(raw.get('fatigue_factor', 0.0)),
            is_broken=bool(raw.get('is_broken', False)),
            critical_stress=raw.get('critical_stress'),
        ))

    foundations = []
    for raw in data.get('foundations', []):
        foundations.append(Foundation(
            id=str(raw['id']),
            kind=str(raw.get('kind', raw.get('type', 'dado'))),
            position=tuple(float(c) for c in raw['position']),
            dimensions=tuple(float(c) for c in raw['dimensions']),
            material=str(raw.get('material', '')),
            soil_resistance=float(raw.get('soil_resistance', raw.get('soilResistance', 0.0))),
            node_ids=tuple(str(n) for n in raw.get('node_ids', ())),
        ))

    return StructuralModel.build(nodes, elements, foundations, materials)


def validate_model(model: StructuralModel) -> List[str]:
    """
    Check a model before any analysis.

    Fatal problems (raised together as one ValidationError):
    - no nodes or no elements
    - a non-finite node position, section size or mass, or a negative mass
    - an element referencing a node that does not exist
    - an element whose two ends are the same node or coincide in space
    - a foundation referencing a node that does not exist

    Non-fatal problems are returned as warnings: an element with an unknown
    material is skipped by assembly while the rest of the model is analysed.

    Returns:
        List of warning strings
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not model.nodes:
        errors.append("Structure must have at least one node")
    if not model.elements:
        errors.append("Structure must have at least one element")

    for node in model.nodes.values():
        if not all(math.isfinite(c) for c in node.position):
            errors.append(f"Node {node.id} has a non-finite position")
        if node.mass is not None and not (math.isfinite(node.mass) and node.mass >= 0):
            errors.append(f"Node {node.id} has an invalid mass: {node.mass}")

    for element in model.elements.values():
        if not all(math.isfinite(v) for v in (element.width, element.height)):
            errors.append(f"Element {element.id} has a non-finite cross-section")
            continue
        if element.mass is not None and not (math.isfinite(element.mass) and element.mass >= 0):
            errors.append(f"Element {element.id} has an invalid mass per length: {element.mass}")
        missing = [n for n in element.node_ids if n not in model.nodes]
        if missing:
            errors.append(f"Element {element.id} references unknown node(s): {', '.join(missing)}")
            continue
        if element.node_ids[0] == element.node_ids[1]:
            errors.append(f"Element {element.id} connects node {element.node_ids[0]} to itself")
            continue
        if model.element_length(element) <= 0.0:
            errors.append(f"Element {element.id} has zero length")
        if element.width <= 0 or element.height <= 0:
            errors.append(f"Element {element.id} has a non-positive cross-section")
        if element.material not in model.materials:
            warnings.append(f"Element {element.id} has unknown material '{element.material}' and is skipped")

    for foundation in model.foundations.values():
        missing = [n for n in foundation.node_ids if n not in model.nodes]
        if missing:
            errors.append(f"Foundation {foundation.id} references unknown node(s): {', '.join(missing)}")

    if errors:
        raise ValidationError(errors)

    for warning in warnings:
        logger.warning(warning)
    return warnings
