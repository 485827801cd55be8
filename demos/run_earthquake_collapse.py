#!/usr/bin/env python3
"""
RUN_EARTHQUAKE_COLLAPSE: Seismic Damage and Collapse of a Braced Tower
======================================================================

This demo runs the whole engine on a two-storey braced steel tower:
1. Build the tower (supports at the base, heavy floor masses)
2. Static analysis under gravity
3. Earthquake: fixed-step ticks accumulate damage until members break
4. Collapse: broken members fall, hit the ground, and may break others
5. Plot the response and the fall paths

Run with:
    python demos/run_earthquake_collapse.py
    python demos/run_earthquake_collapse.py --intensity 7 --frequency 6 --seconds 4
"""

import argparse
import logging
import os
import sys
from pathlib import Path

import matplotlib.pyplot as plt

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from quakeframe import AnalysisOrchestrator, EarthquakeConfig, Element, Foundation, Node, StructuralModel
from quakeframe.viz import plot_fall_paths, plot_structure, plot_tick_history


def print_header(text: str):
    """Print a formatted section header."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def build_tower(bay: float = 4.0, storey: float = 3.0, floor_mass: float = 8000.0) -> StructuralModel:
    """Two storeys, four columns, perimeter beams and X-bracing on every face."""
    corners = [(0.0, 0.0), (bay, 0.0), (bay, bay), (0.0, bay)]
    nodes = []
    for level in range(3):
        for i, (x, z) in enumerate(corners):
            nodes.append(Node(
                id=f"N{level}{i}",
                position=(x, level * storey, z),
                mass=floor_mass if level > 0 else None,
                is_support=(level == 0),
            ))

    elements = []

    def add(kind, a, b, width, height):
        elements.append(Element(
            id=f"{kind}{len(elements):02d}", node_ids=(a, b),
            width=width, height=height, material='steel_S235',
        ))

    for level in range(1, 3):
        for i in range(4):
            j = (i + 1) % 4
            add('C', f"N{level - 1}{i}", f"N{level}{i}", 4.0, 4.0)          # column
            add('B', f"N{level}{i}", f"N{level}{j}", 3.0, 3.0)               # beam
            add('X', f"N{level - 1}{i}", f"N{level}{j}", 2.0, 2.0)           # brace
            add('X', f"N{level - 1}{j}", f"N{level}{i}", 2.0, 2.0)           # brace

    foundations = [
        Foundation(
            id=f"F{i}", kind='dado', position=(x, -0.75, z), dimensions=(1.7, 1.5, 1.5),
            material='concrete_C25', soil_resistance=250.0, node_ids=(f"N0{i}",),
        )
        for i, (x, z) in enumerate(corners)
    ]
    return StructuralModel.build(nodes, elements, foundations)


def main():
    parser = argparse.ArgumentParser(description=__doc__.split('\n')[1])
    parser.add_argument('--intensity', type=float, default=5.0)
    parser.add_argument('--frequency', type=float, default=10.0)
    parser.add_argument('--seconds', type=float, default=3.0)
    parser.add_argument('--seed', type=int, default=7)
    parser.add_argument('--out', default='artifacts')
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format='%(levelname)s %(name)s: %(message)s')

    print_header("EARTHQUAKE RESPONSE AND COLLAPSE")
    model = build_tower()
    print(f"\nTower: {len(model.nodes)} nodes, {len(model.elements)} elements, "
          f"{len(model.support_node_ids())} supports, {len(model.foundations)} foundations")

    # =========================================================================
    # STEP 1: STATIC ANALYSIS
    # =========================================================================
    print_header("STEP 1: Static Analysis (gravity only)")

    engine = AnalysisOrchestrator(model, seed=args.seed)
    static = engine.analyze()
    print(f"\n  Status:            {static.status}")
    print(f"  Max displacement:  {static.max_displacement:.3f} mm")
    print(f"  Max stress:        {static.max_stress:.2f} MPa")
    print(f"  Safety factor:     {static.safety_factor:.2f}")
    print(f"  Critical elements: {', '.join(static.critical_elements) or 'none'}")
    for line in static.recommendations:
        print(f"  - {line}")

    # =========================================================================
    # STEP 2: EARTHQUAKE
    # =========================================================================
    print_header("STEP 2: Earthquake")

    quake = EarthquakeConfig(intensity=args.intensity, frequency=args.frequency, duration=args.seconds)
    engine.update_earthquake(quake)
    print(f"\n  Intensity {quake.intensity}, frequency {quake.frequency} Hz, {args.seconds:.1f} s")

    frame = 1.0 / 60.0
    ticks, snapshots = [], []
    engine.start()
    for _ in range(int(args.seconds / frame)):
        new_ticks, new_snaps = engine.advance(frame)
        ticks.extend(new_ticks)
        snapshots.extend(new_snaps)
        for tick in new_ticks:
            for event in tick.damage_events:
                print(f"  t={event.timestamp:6.3f} s  {event.kind:<20} {event.element_id:<5} "
                      f"damage={event.damage_level:.2f}  {event.cause}")
    engine.stop()

    # =========================================================================
    # STEP 3: COLLAPSE SUMMARY
    # =========================================================================
    print_header("STEP 3: Collapse Summary")

    final = engine.snapshot
    broken = [e.id for e in final.model.elements.values() if e.is_broken]
    print(f"\n  Earthquake ticks:  {len(ticks)}")
    print(f"  Physics steps:     {len(snapshots)}")
    print(f"  Broken elements:   {len(broken)} / {len(final.model.elements)}")
    print(f"  Falling bodies:    {len(final.collapse.falling_elements)}")
    print(f"  Collisions logged: {len(final.collapse.collision_events)}")
    print(f"  Still moving:      {final.collapse.is_active}")
    if ticks:
        last = ticks[-1].analysis
        print(f"  Last analysis:     {last.status}, health {last.overall_health:.0f}%")
        for foundation_id, reaction in ticks[-1].foundation_reactions.items():
            tag = " (estimate)" if reaction.is_estimate else ""
            print(f"  {foundation_id}: Fy = {reaction.force[1]:8.2f} kN{tag}")

    # =========================================================================
    # STEP 4: PLOTS
    # =========================================================================
    print_header("STEP 4: Plots")

    os.makedirs(args.out, exist_ok=True)
    figures = {
        'tower_final.png': plot_structure(final.model, collapse=final.collapse, title="After the earthquake"),
        'tick_history.png': plot_tick_history(ticks),
        'fall_paths.png': plot_fall_paths(snapshots, engine.context.config.collapse.ground_level),
    }
    for name, fig in figures.items():
        path = os.path.join(args.out, name)
        fig.savefig(path, dpi=150)
        plt.close(fig)
        print(f"  Saved {path}")


if __name__ == "__main__":
    main()
