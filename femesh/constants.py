"""
Physical constants, length units and meshing settings shared by the whole package.

Usage:
    from femesh.constants import EPSILON_0, MU_0, Units, MeshSettings
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import numpy as np

# Physical constants (SI units)
EPSILON_0 = 8.8541878128e-12     # Permittivity of free space [F/m]
MU_0 = 4 * np.pi * 1e-7          # Permeability of free space [H/m]

# Node marker reserved for natural (Neumann) boundaries. Boundary tags must stay below this value.
NEUMANN_MARKER = 1_000_000

# Triangle's default boundary marker for unmarked hull vertices and edges
TRIANGLE_HULL_MARKER = 1


class Units(Enum):
    """
    Length unit the geometry is modelled in. The scale converts one model unit into the factor that multiplies the
    vacuum permittivity/permeability during assembly.
    """
    MM = "mm"
    INCH = "inch"
    METERS = "m"

    @property
    def scale(self) -> float:
        if self is Units.MM:
            return 0.001
        if self is Units.INCH:
            return 0.001 * 25.4
        return 1.0


@dataclass
class MeshSettings:
    """
    Settings handed to the quality refinement.

    Attributes:
    -----------
    min_angle: float
        smallest allowed triangle angle in degrees
    max_area: float, optional
        global upper bound on the triangle area; None leaves the area unconstrained
    check_consistency: bool, optional
        run the structural checks after refinement; None means "only when DEBUG logging is enabled"
    """
    min_angle: float = 28.6
    max_area: Optional[float] = None
    check_consistency: Optional[bool] = None

    def triangle_switches(self, use_segments: bool, use_regions: bool) -> str:
        # the python wrapper prepends "Qz" (quiet, zero-based numbering) itself
        switches = "jen"
        if use_segments:
            switches += "p"
        if use_regions:
            switches += "A"
        switches += "q" + _plain_number(self.min_angle)
        if self.max_area is not None:
            switches += "a" + _plain_number(self.max_area)
        return switches


def _plain_number(value: float) -> str:
    # Triangle reads 'e' as a switch, so numbers must never use exponent notation
    text = f"{float(value):.12f}".rstrip("0")
    return text + "0" if text.endswith(".") else text
