"""
Driver for the 2D complex potential problems on a refined mesh.

One driver class serves every physics variant; the variant is the coefficient kernel handed to it. The factories at
the bottom of this module build the four usual combinations.

Usage:
    from femesh.complex_potential_class import flat_electrostatic

    problem = flat_electrostatic(mesh)
    phi = problem.solve()
    data = problem.data_at_point((x, y))
    lines = problem.contour_lines(10)
"""

from typing import List, Optional, Tuple
import logging

import numpy as np
import scipy.sparse as sp

from femesh.coefficient_kernels import (AxiSymElectrostaticKernel, CoefficientKernel, FlatElectrostaticKernel,
                                        MagnetostaticKernel)
from femesh.contour_lines import ContourLine, contour_lines
from femesh.exceptions import ConfigurationError
from femesh.field_evaluation import (FieldEvaluator, PointValues, electric_field_energy, magnetic_field_energy,
                                     set_element_field_values, total_field_energy)
from femesh.point_locator_class import LocateResult, PointLocator
from femesh.sparse_solver import SparseDirectSolver
from femesh.topology_classes import Element, Point

logger = logging.getLogger(__name__)


class ComplexPotential2D:
    """
    Class to define a complex potential boundary value problem on a refined mesh. The degree of freedom is the
    electric potential (electrostatics) or the z-component of the magnetic vector potential (magnetostatics).

    Attributes:
    -----------
    mesh: Mesh
        refined mesh with its regions and boundaries
    kernel: CoefficientKernel
        physics of the problem
    N: int
        number of nodes (unknowns)
    phi: np.ndarray
        complex potential at the nodes, zero until solved
    locator: PointLocator
        triangle walk used by the point queries
    min_field_element, max_field_element: Element, optional
        triangles with the smallest and the largest field magnitude after evaluate_fields()
    _assembled: boolean
        whether _A and _b are up to date
    _A: scipy.sparse.csr_matrix
        coefficient matrix
    _b: np.ndarray
        right-hand side

    Methods:
    ----------
    assemble(self)
        builds the coefficient matrix and the right-hand side, one row per node
    solve(self)
        solves the system and commits the node potentials
    evaluate_fields(self)
        field magnitude of every triangle
    values_at_point(self, point, coarse=True), data_at_point(self, point, coarse=True)
        point queries
    find_triangle(self, point)
        triangle containing the point
    contour_lines(self, count)
        iso-lines of |phi|
    """

    def __init__(self, mesh, kernel: CoefficientKernel, seed: Optional[int] = None):
        if not mesh.is_refined:
            raise ConfigurationError("The mesh must be refined before a problem can be set up on it")
        self.mesh = mesh
        self.kernel = kernel
        self.N = len(mesh.nodes)
        self.phi = np.zeros(self.N, dtype=complex)
        self.locator = PointLocator(mesh, seed)
        self.evaluator = FieldEvaluator(mesh, self.locator)
        self.min_field_element: Optional[Element] = None
        self.max_field_element: Optional[Element] = None
        self._assembled = False
        self._A = None
        self._b = None

    @property
    def is_flat(self) -> bool:
        return self.kernel.is_flat

    @property
    def is_electrostatic(self) -> bool:
        return self.kernel.is_electrostatic

    def assemble(self):
        """
        Assembles the coefficient matrix and the right-hand side. The rows are collected into local lists and turned
        into one sparse matrix at the end; if any row raises, nothing is stored.

        Sets:
        -----------
        self._A, self._b and self._assembled
        """
        mesh, kernel, N = self.mesh, self.kernel, self.N
        kernel.prepare(mesh)

        rows, cols, data = [], [], []
        b = np.zeros(N, dtype=complex)
        for node in mesh.nodes:
            for col, value in kernel.coupling_constants(mesh, node).items():
                rows.append(node.tag)
                cols.append(col)
                data.append(value)
            b[node.tag] = kernel.rhs(mesh, node)

        A = sp.coo_matrix((np.asarray(data, dtype=complex), (rows, cols)), shape=(N, N)).tocsr()
        self._A, self._b = A, b
        self._assembled = True
        logger.info("Assembled %dx%d system with %d non-zeros (%s)", N, N, A.nnz, type(kernel).__name__)

    def solve(self) -> np.ndarray:
        """
        Method for solving the problem and returning the potential.

        Returns:
        -----------
        self.phi
            the potential at the nodes

        Sets:
        -----------
        self.phi, Node.phi of every node, the field values of the triangles

        Raises:
        -----------
        SolveError if the factorisation fails; no potential is committed in that case
        """
        if not self._assembled:
            self.assemble()

        logger.info("Solving %d unknowns", self.N)
        with SparseDirectSolver(self._A, self.N) as solver:
            solution = np.asarray(solver.solve(self._b), dtype=complex)

        for node in self.mesh.nodes:
            if node.prescribed is not None:
                solution[node.tag] = node.prescribed
        self.phi = solution
        for node in self.mesh.nodes:
            node.phi = complex(solution[node.tag])

        self.evaluate_fields()
        return self.phi

    def evaluate_fields(self):
        min_index, max_index = set_element_field_values(self.mesh, self.is_electrostatic, self.is_flat)
        if min_index < 0:
            return
        self.min_field_element = self.mesh.elements[min_index]
        self.max_field_element = self.mesh.elements[max_index]
        logger.info("Field magnitude between %g and %g", self.min_field_element.value, self.max_field_element.value)

    def values_at_point(self, point: Point, coarse: bool = True) -> Tuple[LocateResult, Optional[PointValues]]:
        return self.evaluator.values_at_point(point, coarse)

    def data_at_point(self, point: Point, coarse: bool = True) -> List[Tuple[str, complex, str]]:
        return self.evaluator.data_at_point(point, self.is_electrostatic, self.is_flat, coarse)

    def find_triangle(self, point: Point) -> Optional[Element]:
        return self.locator.find_triangle(point)

    def contour_lines(self, count: int, max_workers: Optional[int] = None) -> List[ContourLine]:
        return contour_lines(self.mesh, count, max_workers)

    def field_energy(self, region) -> float:
        if self.is_electrostatic:
            return electric_field_energy(self.mesh, region, self.is_flat)
        return magnetic_field_energy(self.mesh, region, self.is_flat)

    def total_field_energy(self) -> float:
        return total_field_energy(self.mesh, self.is_electrostatic, self.is_flat)


def flat_electrostatic(mesh, seed: Optional[int] = None) -> ComplexPotential2D:
    return ComplexPotential2D(mesh, FlatElectrostaticKernel(), seed)


def axisymmetric_electrostatic(mesh, seed: Optional[int] = None) -> ComplexPotential2D:
    return ComplexPotential2D(mesh, AxiSymElectrostaticKernel(), seed)


def flat_magnetostatic(mesh, frequency: float = 0.0, seed: Optional[int] = None) -> ComplexPotential2D:
    return ComplexPotential2D(mesh, MagnetostaticKernel(is_flat=True, frequency=frequency), seed)


def axisymmetric_magnetostatic(mesh, frequency: float = 0.0, seed: Optional[int] = None) -> ComplexPotential2D:
    return ComplexPotential2D(mesh, MagnetostaticKernel(is_flat=False, frequency=frequency), seed)
