# quakeframe/v3d - 3D truss element
"""Axial-only 3D bar: geometry, 6×6 stiffness and strain recovery."""

from .elements import element_geometry_3d, truss3d_axial_strain, truss3d_global_stiffness

__all__ = ['element_geometry_3d', 'truss3d_global_stiffness', 'truss3d_axial_strain']
