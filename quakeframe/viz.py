"""
VISUALIZATION: PLOTTING EARTHQUAKE RESPONSE AND COLLAPSE
========================================================

PURPOSE:
--------
Quick matplotlib views of an engine session, for demos and for checking that
results make physical sense:

- plot_structure:       the truss in 3D, members coloured by stress ratio,
                        broken members dashed, falling bodies as markers
- plot_tick_history:    max stress, safety factor and structural health over
                        a sequence of earthquake ticks
- plot_fall_paths:      height of every falling body against time

None of these functions call plt.show(); they return the figure so callers
decide whether to show or save it.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np

from .analysis import SimulationTickResult
from .collapse.simulator import CollapseSnapshot
from .model import StructuralModel

COLORS = {
    'structure_primary': '#2C3E50',      # Dark blue-gray (intact)
    'structure_broken': '#E74C3C',       # Coral red (broken)
    'support': '#27AE60',                # Green
    'body': '#F39C12',                   # Golden yellow (falling bodies)
    'ground': '#8B7355',                 # Earth brown
    'health': '#3498DB',                 # Sky blue
    'grid': '#E0E0E0',
}


def plot_structure(
    model: StructuralModel,
    stresses: Optional[Dict[str, float]] = None,
    collapse: Optional[CollapseSnapshot] = None,
    title: str = "Structure",
    ax=None,
):
    """
    Draw the truss in 3D (x, z horizontal, y up).

    Members are coloured by |stress| / yield when stresses are given.
    """
    if ax is None:
        fig = plt.figure(figsize=(8, 7))
        ax = fig.add_subplot(111, projection='3d')
    else:
        fig = ax.figure

    cmap = plt.get_cmap('RdYlGn_r')
    for element in model.elements.values():
        a = model.nodes[element.node_ids[0]].position
        b = model.nodes[element.node_ids[1]].position
        xs, ys, zs = [a[0], b[0]], [a[2], b[2]], [a[1], b[1]]
        if element.is_broken:
            ax.plot(xs, ys, zs, linestyle='--', color=COLORS['structure_broken'], linewidth=1.0)
            continue
        color = COLORS['structure_primary']
        material = model.material_for(element)
        if stresses is not None and material is not None:
            ratio = min(abs(stresses.get(element.id, 0.0)) / material.yield_strength, 1.0)
            color = cmap(ratio)
        ax.plot(xs, ys, zs, color=color, linewidth=2.5)

    for node in model.nodes.values():
        if node.is_support:
            x, y, z = node.position
            ax.scatter([x], [z], [y], marker='^', s=80, color=COLORS['support'])

    if collapse is not None and collapse.falling_elements:
        pts = np.array([b.position for b in collapse.falling_elements])
        ax.scatter(pts[:, 0], pts[:, 2], pts[:, 1], s=40, color=COLORS['body'], label='Falling bodies')
        ax.legend(loc='upper left')

    ax.set_xlabel('x (m)')
    ax.set_ylabel('z (m)')
    ax.set_zlabel('y (m)')
    ax.set_title(title)
    return fig


def plot_tick_history(history: Sequence[SimulationTickResult], title: str = "Earthquake response"):
    """Max stress, safety factor and health per tick."""
    t = [r.timestamp for r in history]
    max_stress = [r.analysis.max_stress for r in history]
    sf = [r.analysis.safety_factor for r in history]
    health = [r.analysis.overall_health for r in history]
    breaks = [r.timestamp for r in history if r.newly_broken]

    fig, axes = plt.subplots(3, 1, figsize=(9, 8), sharex=True)

    axes[0].plot(t, max_stress, color=COLORS['structure_primary'])
    axes[0].set_ylabel('Max stress (MPa)')

    axes[1].plot(t, sf, color=COLORS['structure_broken'])
    axes[1].axhline(1.5, linestyle=':', color='gray', linewidth=1)
    axes[1].set_ylabel('Safety factor')

    axes[2].plot(t, health, color=COLORS['health'])
    axes[2].set_ylabel('Health (%)')
    axes[2].set_xlabel('Time (s)')
    axes[2].set_ylim(0, 105)

    for ax in axes:
        ax.grid(True, color=COLORS['grid'])
        for tb in breaks:
            ax.axvline(tb, color=COLORS['structure_broken'], alpha=0.3, linewidth=1)

    axes[0].set_title(title)
    fig.tight_layout()
    return fig


def plot_fall_paths(
    snapshots: Sequence[CollapseSnapshot],
    ground_level: float = 0.0,
    title: str = "Falling bodies",
):
    """Height of each body over time, one line per element id."""
    paths: Dict[str, Tuple[List[float], List[float]]] = {}
    for snap in snapshots:
        for body in snap.falling_elements:
            ts, ys = paths.setdefault(body.element_id, ([], []))
            ts.append(snap.timestamp)
            ys.append(body.position[1])

    fig, ax = plt.subplots(figsize=(9, 5))
    for element_id, (ts, ys) in paths.items():
        ax.plot(ts, ys, label=element_id)
    ax.axhline(ground_level, color=COLORS['ground'], linewidth=2)
    ax.set_xlabel('Time (s)')
    ax.set_ylabel('Height (m)')
    ax.set_title(title)
    ax.grid(True, color=COLORS['grid'])
    if paths:
        ax.legend(loc='upper right', fontsize='small')
    fig.tight_layout()
    return fig
