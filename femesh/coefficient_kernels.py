"""
Coefficient kernels for the assembly of the complex potential problems (Humphries, "Field Solutions on Computers").

A kernel turns the fan of triangles around one node into one row of the coefficient matrix and one entry of the
right-hand side. The driver (ComplexPotential2D) owns the assembly loop; the physics lives here:

    FlatElectrostaticKernel     - permittivity weighted, fan walked in angular order
    AxiSymElectrostaticKernel   - permittivity and radius weighted
    MagnetostaticKernel         - reluctivity weighted (flat or axisymmetric), optional eddy current term

Usage:
    from femesh.coefficient_kernels import FlatElectrostaticKernel

    kernel = FlatElectrostaticKernel()
    kernel.prepare(mesh)
    row = kernel.coupling_constants(mesh, node)
"""

from collections import defaultdict
from typing import Dict, List, Optional, Tuple
import logging

import numpy as np

from femesh.constants import EPSILON_0, MU_0, NEUMANN_MARKER
from femesh.exceptions import BoundaryNotFoundError, RegionTypeError
from femesh.region_classes import Boundary, BoundaryKind, Dielectric
from femesh.topology_classes import Element, Node

logger = logging.getLogger(__name__)


class CoefficientKernel:
    """
    Base class of the kernels. Handles the boundary node rule; subclasses supply the interior coefficients and the
    source term.

    Attributes:
    -----------
    is_flat: bool
        planar (True) or axisymmetric (False) geometry
    is_electrostatic: bool
    boundary_kinds: tuple of BoundaryKind
        kinds of boundary that fix the potential of their nodes for this kernel

    Methods:
    -----------
    prepare(self, mesh)
        hook called once before the rows are assembled
    dirichlet_boundary(self, mesh, node)
        the boundary fixing the node's value, or None for a free node
    coupling_constants(self, mesh, node)
        full matrix row of the node as {column: value}
    rhs(self, mesh, node)
        right-hand side entry of the node
    """
    is_flat = True
    is_electrostatic = True
    boundary_kinds: Tuple[BoundaryKind, ...] = (BoundaryKind.ELECTRODE,)

    def prepare(self, mesh):
        pass

    def dirichlet_boundary(self, mesh, node: Node) -> Optional[Boundary]:
        if node.marker == 0 or node.marker == NEUMANN_MARKER:
            return None
        boundary = mesh.boundaries.get(node.marker)
        if boundary is None:
            raise BoundaryNotFoundError(f"Node {node.tag} carries marker {node.marker} but no boundary uses that tag")
        if boundary.kind not in self.boundary_kinds:
            return None
        return boundary

    def coupling_constants(self, mesh, node: Node) -> Dict[int, complex]:
        if self.dirichlet_boundary(mesh, node) is not None:
            return {node.tag: 1.0 + 0j}

        coefficients = self.interior_coefficients(mesh, node)
        row = {col: -value for col, value in coefficients.items()}
        row[node.tag] = sum(coefficients.values(), 0j) + self.diagonal_term(mesh, node)
        return row

    def rhs(self, mesh, node: Node) -> complex:
        boundary = self.dirichlet_boundary(mesh, node)
        if boundary is not None:
            node.prescribed = boundary.fixed_value
            return boundary.fixed_value
        node.prescribed = None
        return self.source_term(mesh, node)

    def interior_coefficients(self, mesh, node: Node) -> Dict[int, complex]:
        """Positive coupling coefficient of every neighbour column; the diagonal is their sum."""
        raise NotImplementedError

    def diagonal_term(self, mesh, node: Node) -> complex:
        return 0j

    def source_term(self, mesh, node: Node) -> complex:
        raise NotImplementedError


class ElectrostaticKernel(CoefficientKernel):
    """
    Common part of the electrostatic kernels: dielectric lookup, conductor/electrode linkage and the charge term.
    """
    is_electrostatic = True
    boundary_kinds = (BoundaryKind.ELECTRODE,)

    def prepare(self, mesh):
        # every node of a triangle inside a conductor linked to an electrode takes the electrode's potential
        marked = 0
        for node in mesh.nodes:
            for index in node.elements:
                region = mesh.region_of(mesh.elements[index])
                if region is not None and region.electrode is not None:
                    node.marker = region.electrode.tag
                    marked += 1
                    break
        if marked:
            logger.debug("%d nodes inside conductors were tied to their electrodes", marked)

    @staticmethod
    def dielectric_of(mesh, element: Element) -> Dielectric:
        region = mesh.region_of(element)
        if region is None:
            raise RegionTypeError(f"Triangle {element.index} has no region")
        if not isinstance(region.material, Dielectric):
            raise RegionTypeError(f"Triangle {element.index} belongs to region {region.tag}, which is not a dielectric")
        return region.material

    def radius(self, element: Element) -> float:
        return 1.0 if self.is_flat else float(element.centroid()[0])

    def source_term(self, mesh, node: Node) -> complex:
        constant = 1.0 / (3.0 * EPSILON_0 * mesh.units.scale)
        result = 0j
        for index in node.elements:
            element = mesh.elements[index]
            rho = complex(self.dielectric_of(mesh, element).rho)
            result += rho * element.area() * self.radius(element) * constant
        return result


class FlatElectrostaticKernel(ElectrostaticKernel):
    """
    Planar electrostatics, Humphries Eq. 2.52.

    The triangles around a node are walked in angular order (by the angle from the node to their centroids). Two
    consecutive triangles share the edge node-n2 / node-n1, and the coefficient of that edge combines the angle of
    both. Where the fan is open (the node is on the hull or on a break) the walk starts right after the gap and the
    edges at the gap only get the contribution of their single triangle.
    """
    is_flat = True

    def ordered_fan(self, mesh, node: Node) -> Tuple[List[Element], bool]:
        """
        Normalized fan around `node`, rotated so that it starts right after a break.

        Returns:
        -----------
        fan: list of Element
            triangles normalized on the node, in counter-clockwise order
        closed: bool
            True when the fan goes all the way around the node
        """
        fan = [mesh.elements[i].normalized_on(node.tag) for i in mesh.sorted_elements_around(node)]
        count = len(fan)
        for i in range(count):
            if fan[i].corners[2] != fan[(i + 1) % count].corners[1]:
                start = (i + 1) % count
                return fan[start:] + fan[:start], False
        return fan, True

    def interior_coefficients(self, mesh, node: Node) -> Dict[int, complex]:
        coefficients: Dict[int, complex] = defaultdict(complex)
        fan, closed = self.ordered_fan(mesh, node)
        count = len(fan)

        for i, triangle in enumerate(fan):
            e_rel = complex(self.dielectric_of(mesh, triangle).e_rel)
            _, n1, n2 = triangle.corners

            previous = fan[i - 1] if (i > 0 or closed) else None
            if previous is None or previous.corners[2] != n1:
                coefficients[n1] += e_rel * triangle.cotan_theta_b() / 2.0

            following = fan[(i + 1) % count] if (i < count - 1 or closed) else None
            if following is not None and following.corners[1] == n2:
                next_e_rel = complex(self.dielectric_of(mesh, following).e_rel)
                coefficients[n2] += (e_rel * triangle.cotan_theta_a() + next_e_rel * following.cotan_theta_b()) / 2.0
            else:
                logger.debug("Fan around node %d breaks after triangle %d", node.tag, triangle.index)
                coefficients[n2] += e_rel * triangle.cotan_theta_a() / 2.0

        return dict(coefficients)


class AxiSymElectrostaticKernel(ElectrostaticKernel):
    """
    Axisymmetric electrostatics, Humphries Eq. 4.31. The x coordinate is the radius; every triangle is weighted by
    the radius of its centroid. The triangles are visited in arbitrary order.
    """
    is_flat = False

    def interior_coefficients(self, mesh, node: Node) -> Dict[int, complex]:
        coefficients: Dict[int, complex] = defaultdict(complex)
        for index in node.elements:
            triangle = mesh.elements[index].normalized_on(node.tag)
            e_rel = complex(self.dielectric_of(mesh, triangle).e_rel)
            R = self.radius(triangle)
            _, n1, n2 = triangle.corners
            coefficients[n2] += e_rel * triangle.cotan_theta_a() * R / 2.0
            coefficients[n1] += e_rel * triangle.cotan_theta_b() * R / 2.0
        return dict(coefficients)


class MagnetostaticKernel(CoefficientKernel):
    """
    Magnetostatics for the (complex) vector potential, flat (Humphries Eq. 9.54) or axisymmetric (Eq. 11.49).

    With a frequency above zero, every triangle in a conductive region adds the eddy current term
    -j * 2 * pi * f * sigma * area / 3 to the diagonal. Electrodes have no meaning for the magnetic problem; their
    nodes are treated like nodes on a natural boundary.

    Parameters:
    -----------
    is_flat: bool
        planar (True) or axisymmetric (False) geometry
    frequency: float
        excitation frequency in Hz, 0 for a static problem
    """
    is_electrostatic = False
    boundary_kinds = (BoundaryKind.MAGNETIC,)

    def __init__(self, is_flat: bool = True, frequency: float = 0.0):
        if frequency < 0.0:
            raise ValueError("The frequency cannot be negative")
        self.is_flat = is_flat
        self.frequency = float(frequency)

    def radius(self, element: Element) -> float:
        return 1.0 if self.is_flat else float(element.centroid()[0])

    def interior_coefficients(self, mesh, node: Node) -> Dict[int, complex]:
        mu_fixed = MU_0 * mesh.units.scale
        coefficients: Dict[int, complex] = defaultdict(complex)
        for index in node.elements:
            triangle = mesh.elements[index].normalized_on(node.tag)
            region = mesh.region_of(triangle)
            mu_rel = region.mu_rel.real if region is not None else 1.0
            scale = mu_rel * mu_fixed * 2.0 * self.radius(triangle)
            _, n1, n2 = triangle.corners
            coefficients[n2] += triangle.cotan_theta_a() / scale
            coefficients[n1] += triangle.cotan_theta_b() / scale
        return dict(coefficients)

    def diagonal_term(self, mesh, node: Node) -> complex:
        if self.frequency == 0.0:
            return 0j
        eddy = 0.0
        for index in node.elements:
            element = mesh.elements[index]
            region = mesh.region_of(element)
            if region is not None and region.conductivity != 0.0:
                eddy += 2.0 * np.pi * self.frequency * region.conductivity * element.area() / 3.0
        return complex(0.0, -eddy)

    def source_term(self, mesh, node: Node) -> complex:
        result = 0j
        for index in node.elements:
            element = mesh.elements[index]
            region = mesh.region_of(element)
            if region is not None and region.is_conductor:
                result += region.source_density * element.area() / 3.0
        return result
