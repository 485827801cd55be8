# tests/conftest.py
"""
Shared structures for the test suite.

TRIPOD:
    A, B, D on the ground (y = 0) at the corners of an equilateral triangle
    with side 4 m, all three supports. C sits 3 m above the triangle's
    centroid and carries the load. Legs AC, BC, DC.

    Every leg has the same length and the same vertical component, so the
    gravity load at C splits equally:

        N_leg = m g / (3 sin θ),   sin θ = 3 / L

COLUMN:
    One vertical bar, support at the bottom, mass at the top.

CHAIN:
    Four collinear elements e1..e4 joined end to end (no supports); used for
    propagation tests, which only look at topology.
"""

import numpy as np
import pytest

from quakeframe import Element, Foundation, Node, StructuralModel

SIDE = 4.0
HEIGHT = 3.0
CENTROID = (SIDE / 2, 0.0, SIDE * np.sqrt(3) / 6)


def make_tripod(mass: float = 100.0, width: float = 10.0, height: float = 10.0, foundations=()):
    nodes = [
        Node('A', (0.0, 0.0, 0.0), is_support=True),
        Node('B', (SIDE, 0.0, 0.0), is_support=True),
        Node('D', (SIDE / 2, 0.0, SIDE * np.sqrt(3) / 2), is_support=True),
        Node('C', (CENTROID[0], HEIGHT, CENTROID[2]), mass=mass),
    ]
    elements = [
        Element(f"{n}C", (n, 'C'), width=width, height=height, material='steel_S235')
        for n in ('A', 'B', 'D')
    ]
    return StructuralModel.build(nodes, elements, foundations)


def leg_length() -> float:
    horizontal = SIDE / np.sqrt(3)
    return float(np.hypot(horizontal, HEIGHT))


@pytest.fixture
def tripod():
    return make_tripod()


@pytest.fixture
def heavy_tripod():
    """Legs of 1 cm × 1 cm under 2.5 t: about 103 MPa per leg under gravity."""
    return make_tripod(mass=2500.0, width=1.0, height=1.0)


@pytest.fixture
def tripod_with_foundations():
    foundations = [
        Foundation(
            id=f"F{n}", kind='dado', position=(0.0, -0.75, 0.0), dimensions=(1.7, 1.5, 1.5),
            material='concrete_C25', soil_resistance=250.0, node_ids=(n,),
        )
        for n in ('A', 'B', 'D')
    ]
    return make_tripod(foundations=foundations)


@pytest.fixture
def column():
    nodes = [
        Node('S', (0.0, 0.0, 0.0), is_support=True),
        Node('T', (0.0, 2.0, 0.0), mass=100.0),
    ]
    elements = [Element('col', ('S', 'T'), width=10.0, height=10.0, material='steel_S235')]
    return StructuralModel.build(nodes, elements)


@pytest.fixture
def chain():
    nodes = [Node(n, (float(i), 0.0, 0.0)) for i, n in enumerate('PQRST')]
    elements = [
        Element(f"e{i + 1}", (a, b), width=5.0, height=5.0, material='steel_S235')
        for i, (a, b) in enumerate(zip('PQRS', 'QRST'))
    ]
    return StructuralModel.build(nodes, elements)
