"""
femesh - 2D finite element meshes for complex potential electrostatic and magnetostatic problems, flat and
axisymmetric.

Usage:
    from femesh import Mesh, MeshPath, Region, Dielectric, Boundary, flat_electrostatic

    ground = Boundary.electrode(1, 0.0, "Ground")
    oil = Region(1, Dielectric(e_rel=2.2), ref_points=[(5.0, 5.0)])
    mesh = Mesh.from_outlines([MeshPath.rectangle(0, 0, 10, 10, ground)], regions=[oil])
    problem = flat_electrostatic(mesh)
    problem.solve()
"""

from femesh.constants import EPSILON_0, MU_0, NEUMANN_MARKER, MeshSettings, Units
from femesh.exceptions import (BoundaryNotFoundError, ConfigurationError, DimensionMismatchError, FEMeshError,
                               MeshRefinementError, RegionTypeError, SolveError)
from femesh.region_classes import (Boundary, BoundaryKind, Coil, Conductor, ConductorMetal, Dielectric, Region,
                                   Steel)
from femesh.topology_classes import Edge, Element, Node, Rect
from femesh.mesh_class import HoleZone, Mesh, MeshPath
from femesh.complex_potential_class import (ComplexPotential2D, axisymmetric_electrostatic,
                                            axisymmetric_magnetostatic, flat_electrostatic, flat_magnetostatic)
from femesh.logging_config import setup_logging
