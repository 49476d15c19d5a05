"""Small reference meshes shared by the test suites."""

from __future__ import annotations

import numpy as np

from femesh.constants import MeshSettings, Units
from femesh.mesh_class import Mesh, MeshPath
from femesh.region_classes import Boundary, Dielectric, Region


def unit_square_mesh(boundary: Boundary | None = None, rho: complex = 0.0, e_rel: complex = 1.0,
                     max_area: float | None = 0.002, units: Units = Units.METERS) -> Mesh:
    boundary = boundary or Boundary.electrode(1, 0.0, "Ground")
    region = Region(1, Dielectric(e_rel=e_rel, rho=rho), ref_points=[(0.5, 0.5)], description="Square")
    return Mesh.from_outlines([MeshPath.rectangle(0.0, 0.0, 1.0, 1.0, boundary)], regions=[region],
                              units=units, settings=MeshSettings(max_area=max_area))


def concentric_mesh() -> Mesh:
    """Outer 10x10 square at 0 V, inner 2x2 square at 100 V with a hole inside it, vacuum in between (mm)."""
    outer = Boundary.electrode(1, 0.0, "Tank")
    inner = Boundary.electrode(2, 100.0, "HV lead")
    vacuum = Region(1, Dielectric(), ref_points=[(1.0, 1.0)], description="Vacuum")
    paths = [MeshPath.rectangle(0.0, 0.0, 10.0, 10.0, outer), MeshPath.rectangle(4.0, 4.0, 2.0, 2.0, inner)]
    return Mesh.from_outlines(paths, regions=[vacuum], holes=[(5.0, 5.0)], units=Units.MM,
                              settings=MeshSettings(max_area=0.5))


def two_triangle_mesh() -> Mesh:
    """Unit square without boundary conditions; refinement keeps the two right triangles."""
    square = MeshPath(np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]]))
    return Mesh.from_outlines([square], units=Units.METERS, settings=MeshSettings(min_angle=20.0))


def plate_mesh(r_min: float = 0.5, r_max: float = 2.0, height: float = 1.0, bottom: Boundary | None = None,
               top: Boundary | None = None, max_area: float = 0.01) -> Mesh:
    """Rectangle with fixed-potential plates at the bottom and the top and natural (unmarked) side walls (m)."""
    bottom = bottom or Boundary.electrode(1, 0.0, "Bottom plate")
    top = top or Boundary.electrode(2, 10.0, "Top plate")
    gap = Region(1, Dielectric(), ref_points=[((r_min + r_max) / 2.0, height / 2.0)], description="Gap")
    paths = [MeshPath(np.array([[r_min, 0.0], [r_max, 0.0]]), bottom),
             MeshPath(np.array([[r_max, height], [r_min, height]]), top),
             MeshPath(np.array([[r_max, 0.0], [r_max, height]])),
             MeshPath(np.array([[r_min, height], [r_min, 0.0]]))]
    return Mesh.from_outlines(paths, regions=[gap], units=Units.METERS, settings=MeshSettings(max_area=max_area))
