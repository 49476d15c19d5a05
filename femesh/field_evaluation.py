"""
Reconstruction of the potential and its gradient from the solved node values, the derived field magnitudes and the
region post-processing (areas, volumes and field energies).

Two ways of getting the values at a point inside a triangle:

    values_in_triangle  - plane through the three corners (exact for linear elements, constant gradient)
    lsq_values          - quadratic {1, x, y, x^2, xy, y^2} through the six nearest nodes of the same region

The magnitude of a field with complex components is the peak of the rotating phasor (Andersen, "Finite Element
Solution of Complex Potential Electric Fields", eqs. 19-21).

Usage:
    from femesh.field_evaluation import FieldEvaluator

    evaluator = FieldEvaluator(mesh, locator)
    data = evaluator.data_at_point((x, y), electrostatic=True, is_flat=True)
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging

import numpy as np

from femesh.constants import EPSILON_0, MU_0
from femesh.point_locator_class import LocateResult
from femesh.topology_classes import Element, Point

logger = logging.getLogger(__name__)

LSQ_NODE_COUNT = 6
LSQ_MAX_CONDITION = 1e12


@dataclass
class PointValues:
    """Potential and its two partial derivatives at a point."""
    phi: complex = 0j
    slope_x: complex = 0j
    slope_y: complex = 0j


def values_in_triangle(mesh, element: Element, point: Point) -> PointValues:
    """
    Values of the linear interpolant of the triangle at `point`.

    Parameters:
    -----------
    mesh: Mesh
        mesh holding the solved node values
    element: Element
    point: (x, y)
        query point, normally inside the triangle

    Returns:
    -----------
    PointValues with the interpolated potential and the (constant) gradient of the triangle
    """
    phis = np.array([mesh.nodes[c].phi for c in element.corners], dtype=complex)
    _, grads = element.gradients()
    slope = phis @ grads
    offset = np.asarray(point, dtype=float) - element.points[0]
    phi = phis[0] + slope @ offset
    return PointValues(complex(phi), complex(slope[0]), complex(slope[1]))


def _same_region(mesh, tag: int, region: Optional[int]) -> bool:
    return any(mesh.elements[i].region == region for i in mesh.nodes[tag].elements)


def lsq_values(mesh, element: Element, point: Point) -> Optional[PointValues]:
    """
    Quadratic least-squares values at `point` from the six nearest nodes around the triangle.

    Candidates are the corners of the triangle and their neighbours; a candidate is rejected when none of its
    incident triangles belongs to the region of `element`. The quadratic is written in coordinates centred on the
    point and scaled by the spread of the nodes, so the constant term is the potential and the linear terms give the
    slopes.

    Returns:
    -----------
    PointValues, or None when fewer than six nodes qualify or the 6x6 system is singular
    """
    candidates = set(element.corners)
    for corner in element.corners:
        candidates.update(mesh.nodes[corner].neighbours)
    candidates = [tag for tag in candidates if _same_region(mesh, tag, element.region)]
    if len(candidates) < LSQ_NODE_COUNT:
        logger.debug("Only %d nodes qualify for the fit around triangle %d", len(candidates), element.index)
        return None

    origin = np.asarray(point, dtype=float)
    coords = np.array([mesh.nodes[tag].vertex for tag in candidates], dtype=float) - origin
    distances = np.hypot(coords[:, 0], coords[:, 1])
    nearest = np.argsort(distances, kind="stable")[:LSQ_NODE_COUNT]

    h = float(distances[nearest].max())
    if h == 0.0:
        return None
    dx, dy = coords[nearest, 0] / h, coords[nearest, 1] / h
    M = np.column_stack([np.ones_like(dx), dx, dy, dx * dx, dx * dy, dy * dy])
    phis = np.array([mesh.nodes[candidates[i]].phi for i in nearest], dtype=complex)

    if np.linalg.cond(M) > LSQ_MAX_CONDITION:
        logger.debug("Fit around triangle %d is singular", element.index)
        return None
    try:
        c = np.linalg.solve(M.astype(complex), phis)
    except np.linalg.LinAlgError:
        logger.debug("Fit around triangle %d is singular", element.index)
        return None
    return PointValues(complex(c[0]), complex(c[1] / h), complex(c[2] / h))


def peak_magnitude(fx: complex, fy: complex) -> float:
    """
    Peak magnitude of the field (fx, fy) whose components are phasors, |F+| + |F-| of the two counter-rotating
    parts.
    """
    fx, fy = complex(fx), complex(fy)
    phase_diff = 0.0
    if fx != 0 and fy != 0:
        phase_diff = abs(np.angle(fx) - np.angle(fy))

    fxp = fxn = 0.5 * abs(fx)
    fyp = 0.5 * abs(fy) * np.exp(1j * (np.pi / 2.0 + phase_diff))
    fyn = 0.5 * abs(fy) * np.exp(1j * (np.pi / 2.0 - phase_diff))
    return float(abs(fxp + fyp) + abs(fxn + fyn))


def field_components(values: PointValues, electrostatic: bool, is_flat: bool,
                     radius: float = 1.0) -> Tuple[complex, complex]:
    """
    Field components from the potential slopes: E = -grad(phi); B = (dA/dy, -dA/dx), times -1/r for axisymmetric
    problems (Humphries 9.55).
    """
    if electrostatic:
        return -values.slope_x, -values.slope_y
    bx, by = values.slope_y, -values.slope_x
    if not is_flat:
        bx, by = -bx / radius, -by / radius
    return bx, by


def _element_magnitude(mesh, element: Element, electrostatic: bool, is_flat: bool) -> float:
    centroid = element.centroid()
    values = values_in_triangle(mesh, element, centroid)
    fx, fy = field_components(values, electrostatic, is_flat, float(centroid[0]))
    return peak_magnitude(fx, fy)


def set_element_field_values(mesh, electrostatic: bool = True, is_flat: bool = True) -> Tuple[int, int]:
    """
    Stores the field magnitude at the centroid of every triangle in `Element.value`.

    Returns:
    -----------
    (min_index, max_index): indices of the triangles with the smallest and the largest magnitude
    """
    if not mesh.elements:
        return -1, -1
    magnitudes = np.empty(len(mesh.elements))
    for i, element in enumerate(mesh.elements):
        element.value = _element_magnitude(mesh, element, electrostatic, is_flat)
        magnitudes[i] = element.value
    return int(np.argmin(magnitudes)), int(np.argmax(magnitudes))


# ----------------------------------------------------------------------------------------------------------------
# region post-processing
# ----------------------------------------------------------------------------------------------------------------

def region_area(mesh, region) -> float:
    return float(sum(mesh.elements[i].area() for i in region.elements))


def region_volume(mesh, region, is_flat: bool) -> float:
    """Volume of a region; for flat problems the volume per unit length, i.e. the area."""
    if is_flat:
        return region_area(mesh, region)
    total = sum(float(mesh.elements[i].centroid()[0]) * mesh.elements[i].area() for i in region.elements)
    return 2.0 * np.pi * total


def electric_field_energy(mesh, region, is_flat: bool) -> float:
    eps_fixed = EPSILON_0 * mesh.units.scale
    e_rel = region.e_rel.real
    result = 0.0
    for i in region.elements:
        element = mesh.elements[i]
        e_abs = _element_magnitude(mesh, element, True, is_flat)
        if is_flat:
            result += e_rel * eps_fixed * e_abs * e_abs * element.area() / 2.0
        else:
            result += np.pi * float(element.centroid()[0]) * e_rel * eps_fixed * e_abs * e_abs * element.area()
    return float(result)


def magnetic_field_energy(mesh, region, is_flat: bool) -> float:
    mu_fixed = MU_0 * mesh.units.scale
    mu_rel = region.mu_rel.real
    result = 0.0
    for i in region.elements:
        element = mesh.elements[i]
        b_abs = _element_magnitude(mesh, element, False, is_flat)
        result += b_abs * b_abs / (2.0 * mu_fixed * mu_rel) * element.area()
    return float(result)


def total_field_energy(mesh, electrostatic: bool, is_flat: bool) -> float:
    """Field energy summed over all regions except virtual holes."""
    energy = electric_field_energy if electrostatic else magnetic_field_energy
    return float(sum(energy(mesh, region, is_flat) for region in mesh.regions if not region.is_virtual_hole))


# ----------------------------------------------------------------------------------------------------------------
# point queries
# ----------------------------------------------------------------------------------------------------------------

class FieldEvaluator:
    """
    Point queries on a solved mesh.

    Methods:
    -----------
    values_at_point(self, point, coarse=True)
        (LocateResult, PointValues or None)
    data_at_point(self, point, electrostatic, is_flat)
        list of (name, value, units) for display
    """

    def __init__(self, mesh, locator):
        self.mesh = mesh
        self.locator = locator

    def values_at_point(self, point: Point, coarse: bool = True) -> Tuple[LocateResult, Optional[PointValues]]:
        zone = self.locator.locate(point)
        if zone.element is None:
            if zone.boundary is not None:
                return zone, PointValues(zone.boundary.fixed_value, 0j, 0j)
            return zone, None

        values = None
        if not coarse:
            values = lsq_values(self.mesh, zone.element, point)
        if values is None:
            values = values_in_triangle(self.mesh, zone.element, point)
        return zone, values

    def data_at_point(self, point: Point, electrostatic: bool = True, is_flat: bool = True,
                      coarse: bool = True) -> List[Tuple[str, complex, str]]:
        zone, values = self.values_at_point(point, coarse)
        if values is None:
            return []

        length = self.mesh.units.value
        radius = float(point[0])
        if not is_flat and radius <= 0.0:
            # B stays finite on the axis, take it at the centroid radius of the triangle
            radius = float(zone.element.centroid()[0]) if zone.element is not None else 1.0
        fx, fy = field_components(values, electrostatic, is_flat, radius)
        magnitude = complex(peak_magnitude(fx, fy))
        if electrostatic:
            return [("V:", values.phi, "V"),
                    ("|V|:", complex(abs(values.phi)), "V"),
                    ("Ex:", fx, f"V/{length}"),
                    ("Ey:", fy, f"V/{length}"),
                    ("|E|:", magnitude, f"V/{length}")]
        return [("A:", values.phi, ""),
                ("Bx:", fx, "T"),
                ("By:", fy, "T"),
                ("Bmax:", magnitude, "T")]
