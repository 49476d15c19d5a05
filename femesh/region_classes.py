"""
Collection of classes describing the material zones (regions) and the boundary conditions of a mesh.

A region carries exactly one material variant. The variants form a closed set and the assembly kernels select the
behaviour with a `match` on the variant:

    Dielectric  - relative permittivity and charge density
    Conductor   - metal, current density and an optional linked electrode
    Coil        - a conductor made of strands, with a derated resistivity
    Steel       - relative permeability

Usage:
    from femesh.region_classes import *
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union
import logging

from femesh.constants import NEUMANN_MARKER
from femesh.exceptions import ConfigurationError
from femesh.topology_classes import Point, Rect

logger = logging.getLogger(__name__)


class BoundaryKind(Enum):
    ELECTRODE = "electrode"
    MAGNETIC = "magnetic"
    NEUMANN = "neumann"


@dataclass
class Boundary:
    """
    A curve with a fixed potential (Dirichlet) or a natural (Neumann) condition.

    Attributes:
    -----------
    tag: int
        marker of the nodes on this boundary (>= 1)
    description: str
        free text
    fixed_value: complex
        prescribed voltage (electrode) or prescribed magnetic potential
    kind: BoundaryKind
        electrode, magnetic or Neumann
    v_is_rms: bool
        the fixed value is an RMS value
    edges: list of Edge
        mesh edges lying on the boundary, filled in after refinement
    """
    tag: int
    description: str = "Boundary"
    fixed_value: complex = 0j
    kind: BoundaryKind = BoundaryKind.ELECTRODE
    v_is_rms: bool = False
    edges: list = field(default_factory=list, repr=False)

    def __post_init__(self):
        if self.tag < 1:
            raise ConfigurationError(f"Boundary tag must be greater than or equal to 1, got {self.tag}")
        if self.kind is not BoundaryKind.NEUMANN and self.tag >= NEUMANN_MARKER:
            raise ConfigurationError(f"Boundary tag {self.tag} collides with the Neumann marker")
        self.fixed_value = complex(self.fixed_value)

    @classmethod
    def electrode(cls, tag: int, voltage: complex, description: str = "Electrode", v_is_rms: bool = False):
        return cls(tag=tag, description=description, fixed_value=voltage, kind=BoundaryKind.ELECTRODE,
                   v_is_rms=v_is_rms)

    @classmethod
    def magnetic(cls, tag: int, potential: complex = 0j, description: str = "Magnetic boundary"):
        return cls(tag=tag, description=description, fixed_value=potential, kind=BoundaryKind.MAGNETIC)

    @classmethod
    def neumann(cls, description: str = "Neumann boundary"):
        return cls(tag=NEUMANN_MARKER, description=description, kind=BoundaryKind.NEUMANN)

    @property
    def is_neumann(self) -> bool:
        return self.kind is BoundaryKind.NEUMANN


class ConductorMetal(Enum):
    COPPER = "copper"
    ALUMINUM = "aluminum"
    SILVER = "silver"

    @property
    def resistivity(self) -> float:
        # ohm-meters
        return {ConductorMetal.COPPER: 1.68e-8,
                ConductorMetal.ALUMINUM: 2.65e-8,
                ConductorMetal.SILVER: 1.59e-8}[self]


@dataclass(frozen=True)
class Dielectric:
    e_rel: complex = 1.0
    rho: complex = 0.0


@dataclass(frozen=True)
class Conductor:
    """
    Zone that (usually) has a prescribed potential through a linked electrode and/or a uniform current density.
    """
    metal: ConductorMetal = ConductorMetal.COPPER
    current_density: complex = 0.0
    electrode: Optional[Boundary] = None
    j_is_rms: bool = False

    @property
    def resistivity(self) -> float:
        return self.metal.resistivity


@dataclass(frozen=True)
class Coil:
    """
    Conductor made of `turns` strands inside the rectangle `bounds`. Only the copper part of the window conducts, so
    the effective resistivity is the metal's resistivity scaled by window area over strand area.
    """
    turns: float
    strand_dim: Tuple[float, float]
    bounds: Rect
    radial_turns: float = 1.0
    metal: ConductorMetal = ConductorMetal.COPPER
    current_density: complex = 0.0
    electrode: Optional[Boundary] = None
    j_is_rms: bool = False

    @property
    def resistivity(self) -> float:
        total_area = self.bounds.width * self.bounds.height
        conductor_area = self.turns * self.strand_dim[0] * self.strand_dim[1]
        return self.metal.resistivity * total_area / conductor_area


@dataclass(frozen=True)
class Steel:
    mu_rel: complex = 10000.0


Material = Union[Dielectric, Conductor, Coil, Steel]


@dataclass(eq=False)
class Region:
    """
    A material zone of the model.

    Attributes:
    -----------
    tag: int
        identifier handed to Triangle as the regional attribute (>= 1)
    material: Material
        one of Dielectric, Conductor, Coil, Steel
    ref_points: list of (x, y)
        points strictly inside the zone, used to seed the regional attribute (at least one is needed)
    description: str
        free text
    is_virtual_hole: bool
        meshed like any other zone but left out of loss and energy totals
    elements: list of int
        indices of the triangles of this region, filled in after refinement
    """
    tag: int
    material: Material = field(default_factory=Dielectric)
    ref_points: List[Point] = field(default_factory=list)
    description: str = "Region"
    is_virtual_hole: bool = False
    elements: List[int] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if self.tag < 1:
            raise ConfigurationError("Region tag identifier must be greater than or equal to 1")
        self.ref_points = [(float(x), float(y)) for x, y in self.ref_points]
        for x, y in self.ref_points:
            if x == 0.0 and y == 0.0:
                logger.debug("Region %d has a reference point at (0, 0). Did you mean to do this?", self.tag)

    @property
    def e_rel(self) -> complex:
        if isinstance(self.material, Dielectric):
            return complex(self.material.e_rel)
        return 1.0 + 0j

    @property
    def mu_rel(self) -> complex:
        if isinstance(self.material, Steel):
            return complex(self.material.mu_rel)
        return 1.0 + 0j

    @property
    def conductivity(self) -> float:
        match self.material:
            case Conductor() | Coil():
                return 1.0 / self.material.resistivity
            case _:
                return 0.0

    @property
    def source_density(self) -> complex:
        """Charge density of a dielectric or current density of a conductor; zero for steel."""
        match self.material:
            case Dielectric(rho=rho):
                return complex(rho)
            case Conductor(current_density=j) | Coil(current_density=j):
                return complex(j)
            case _:
                return 0j

    @property
    def electrode(self) -> Optional[Boundary]:
        match self.material:
            case Conductor(electrode=electrode) | Coil(electrode=electrode):
                return electrode
            case _:
                return None

    @property
    def is_conductor(self) -> bool:
        return isinstance(self.material, (Conductor, Coil))
