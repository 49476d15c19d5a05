"""
Error taxonomy of the mesher and solver.

Configuration errors are fatal for the operation that raised them; nothing it produced should be trusted.
Geometric degeneracies and search failures are not exceptions, they come back as None and a log entry.
"""


class FEMeshError(Exception):
    """Base class for all errors raised by femesh."""


class ConfigurationError(FEMeshError, ValueError):
    """The model handed to the mesher/solver is inconsistent."""


class BoundaryNotFoundError(ConfigurationError):
    """A node carries a marker with no matching boundary definition."""


class RegionTypeError(ConfigurationError):
    """A triangle's region does not carry the material kind the kernel needs."""


class DimensionMismatchError(ConfigurationError):
    """The coefficient matrix, the right-hand side and the node count do not agree."""


class MeshRefinementError(FEMeshError, RuntimeError):
    """Triangle could not produce a conforming triangulation."""


class SolveError(FEMeshError, RuntimeError):
    """Factorisation or back-substitution failed; no potentials were committed."""
