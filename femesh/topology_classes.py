"""
Classes for the mesh graph: nodes, edges and triangular elements, plus a small axis-aligned rectangle.

The graph is an arena: the mesh owns lists of nodes and elements and every cross reference is an integer index into
those lists (node tags, element indices). Elements carry a copy of their corner coordinates, which never change after
refinement, so geometric questions can be answered without going back to the mesh.

Usage:
    from femesh.topology_classes import Node, Edge, Element, Rect
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple
import logging
import numpy as np

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


@dataclass(eq=False)
class Node:
    """
    A mesh vertex and the unit of solver unknowns.

    Attributes:
    -----------
    tag: int
        dense, 0-based index of the node; also its row/column in the coefficient matrix
    vertex: (x, y)
        location of the node; two nodes at the same location are equal, whatever their tags
    marker: int
        0 for interior nodes, a boundary tag for nodes on a boundary, NEUMANN_MARKER for natural boundaries
    phi: complex
        current value of the potential at the node
    prescribed: complex, optional
        fixed value of a Dirichlet node (set during assembly)
    neighbours: set of int
        tags of the nodes sharing an element with this one
    elements: set of int
        indices of the elements having this node as a corner
    """
    tag: int
    vertex: Point
    marker: int = 0
    phi: complex = 0j
    prescribed: Optional[complex] = None
    neighbours: Set[int] = field(default_factory=set)
    elements: Set[int] = field(default_factory=set)

    def __post_init__(self):
        self.vertex = (float(self.vertex[0]), float(self.vertex[1]))

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return self.vertex == other.vertex

    def __hash__(self):
        return hash(self.vertex)

    @property
    def x(self) -> float:
        return self.vertex[0]

    @property
    def y(self) -> float:
        return self.vertex[1]

    def direction_to(self, other: "Node") -> np.ndarray:
        """Unit vector pointing from this node to `other` (zero vector if they coincide)."""
        d = np.array([other.x - self.x, other.y - self.y], dtype=float)
        length = np.hypot(d[0], d[1])
        return d / length if length > 0.0 else d


@dataclass(eq=False)
class Edge:
    """
    Undirected pair of node tags. Used both for triangulation constraints (segments) and for mesh edges.
    """
    end_point1: int
    end_point2: int
    marker: int = 0

    def key(self) -> frozenset:
        return frozenset((self.end_point1, self.end_point2))

    def __eq__(self, other):
        if not isinstance(other, Edge):
            return NotImplemented
        return self.key() == other.key()

    def __hash__(self):
        return hash(self.key())


@dataclass(eq=False)
class Element:
    """
    Triangular element with three ordered corner nodes.

    The order of the corners only matters for the local "normalize on a vertex" operation: equality ignores rotation
    and reflection of the corner list. An element owns none of its nodes.

    Attributes:
    -----------
    index: int
        position of the element in the mesh's element list
    corners: (int, int, int)
        node tags of the corners, counter-clockwise after refinement
    points: (3, 2) np.ndarray
        coordinates of the corners in the same order
    region: int, optional
        tag of the owning region
    value: float
        scalar display value (field magnitude after a solve)
    neighbours: list of int
        indices of the face-adjacent elements

    Methods:
    -----------
    area(self)
        signed area, positive for counter-clockwise corners
    cotan_theta_a(self), cotan_theta_b(self)
        cotangents of the angles at corner 1 and corner 2 (Humphries)
    normalized_on(self, tag)
        copy of the element rotated so that `tag` is corner 0
    gradients(self)
        unsigned area and gradients of the linear shape functions
    """
    index: int
    corners: Tuple[int, int, int]
    points: np.ndarray
    region: Optional[int] = None
    value: float = 0.0
    neighbours: List[int] = field(default_factory=list)

    def __post_init__(self):
        self.corners = tuple(int(c) for c in self.corners)
        if len(self.corners) != 3 or len(set(self.corners)) != 3:
            raise ValueError(f"An element needs three distinct corners, got {self.corners}")
        self.points = np.asarray(self.points, dtype=float).reshape(3, 2)

    def _vertex_set(self) -> frozenset:
        return frozenset(tuple(p) for p in self.points)

    def __eq__(self, other):
        if not isinstance(other, Element):
            return NotImplemented
        return self._vertex_set() == other._vertex_set()

    def __hash__(self):
        return hash(self._vertex_set())

    def area(self) -> float:
        (x0, y0), (x1, y1), (x2, y2) = self.points
        return 0.5 * ((x1 - x0) * (y2 - y0) - (x2 - x0) * (y1 - y0))

    def centroid(self) -> np.ndarray:
        return self.points.mean(axis=0)

    def width(self) -> float:
        return float(np.ptp(self.points[:, 0]))

    def height(self) -> float:
        return float(np.ptp(self.points[:, 1]))

    def _cotan_at(self, i: int) -> float:
        area = self.area()
        if area <= 0.0:
            logger.error("Bad triangle %s with area %g", self.corners, area)
        p = self.points
        a = p[(i + 1) % 3] - p[i]
        b = p[(i + 2) % 3] - p[i]
        return float(a @ b) / (2.0 * area)

    def cotan_theta_a(self) -> float:
        # angle at corner 1, opposite the edge corner0-corner2
        return self._cotan_at(1)

    def cotan_theta_b(self) -> float:
        # angle at corner 2, opposite the edge corner0-corner1
        return self._cotan_at(2)

    def local_index(self, tag: int) -> int:
        try:
            return self.corners.index(tag)
        except ValueError:
            raise ValueError(f"Node {tag} is not a corner of element {self.index}") from None

    def normalized_on(self, tag: int) -> "Element":
        """
        Return a copy of the element whose corner 0 is the node `tag`, keeping the cyclic order of the corners.
        The copy is not registered with any node.
        """
        i = self.local_index(tag)
        order = [(i + k) % 3 for k in range(3)]
        return Element(index=self.index,
                       corners=tuple(self.corners[k] for k in order),
                       points=self.points[order],
                       region=self.region,
                       value=self.value,
                       neighbours=list(self.neighbours))

    def third_corner(self, a: int, b: int) -> int:
        for c in self.corners:
            if c != a and c != b:
                return c
        raise ValueError(f"Element {self.index} has no corner besides {a} and {b}")

    def contains_point(self, point: Point, tol: float = 0.0) -> bool:
        """Closed point-in-triangle test based on the signs of the three edge cross products."""
        x, y = point
        signs = []
        for i in range(3):
            (xa, ya), (xb, yb) = self.points[i], self.points[(i + 1) % 3]
            signs.append((xb - xa) * (y - ya) - (yb - ya) * (x - xa))
        signs = np.asarray(signs)
        return bool(np.all(signs >= -tol) or np.all(signs <= tol))

    def gradients(self) -> Tuple[float, np.ndarray]:
        """
        Unsigned area and gradients of the three linear shape functions.

        Returns:
        -----------
        A: float
            area of the triangle
        grads: (3, 2) np.ndarray
            [d/dx N_i, d/dy N_i] for every corner i
        """
        (x0, y0), (x1, y1), (x2, y2) = self.points
        A = 0.5 * abs((x1 - x0) * (y2 - y0) - (x2 - x0) * (y1 - y0))
        if A == 0.0:
            raise ValueError("Degenerate triangle with zero area.")
        b = np.array([y1 - y2, y2 - y0, y0 - y1], dtype=float)
        c = np.array([x2 - x1, x0 - x2, x1 - x0], dtype=float)
        sign = 1.0 if self.area() > 0.0 else -1.0
        grads = sign * np.column_stack([b, c]) / (2.0 * A)
        return A, grads


@dataclass
class Rect:
    """Axis-aligned rectangle given by its lower-left and upper-right corners."""
    x_min: float
    y_min: float
    x_max: float
    y_max: float

    @classmethod
    def from_points(cls, points: Iterable[Point]) -> "Rect":
        pts = np.asarray(list(points), dtype=float).reshape(-1, 2)
        if pts.size == 0:
            raise ValueError("Cannot build a bounding rectangle from no points")
        return cls(float(pts[:, 0].min()), float(pts[:, 1].min()), float(pts[:, 0].max()), float(pts[:, 1].max()))

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    def contains(self, point: Point) -> bool:
        x, y = point
        return self.x_min <= x <= self.x_max and self.y_min <= y <= self.y_max

    def contains_rect(self, other: "Rect") -> bool:
        return (self.x_min <= other.x_min and self.y_min <= other.y_min
                and other.x_max <= self.x_max and other.y_max <= self.y_max)
