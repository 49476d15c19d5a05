"""
Point location in a refined mesh by a directed triangle walk (Lawson's walk, as used by Triangle's `preciselocate`).

The walk keeps a directed edge (org, dest) of the current triangle together with the third corner (other). The
triangle lies to the left of org -> dest and the query point is never strictly to the right of it. The two other edges
are the pivots; a point strictly to the right of a pivot lies beyond it, and the walk crosses into the neighbouring
triangle. When a pivot is a hull edge (nothing beyond it) the walk follows the hull until it finds a node whose wedge
points at the query point and restarts from there.

Usage:
    from femesh.point_locator_class import PointLocator

    locator = PointLocator(mesh)
    result = locator.locate((x, y))
    if result.element is not None: ...
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple
import logging
import threading

import numpy as np

from femesh.region_classes import Boundary
from femesh.topology_classes import Element, Point

logger = logging.getLogger(__name__)


def right_of(point: Point, p1: Point, p2: Point) -> bool:
    """Strict test whether `point` lies to the right of the directed line p1 -> p2."""
    x, y = point
    x1, y1 = p1
    x2, y2 = p2
    return (x - x1) * (y2 - y1) - (y - y1) * (x2 - x1) > 0.0


@dataclass(frozen=True)
class TriangleEdge:
    """
    Directed edge org -> dest of a counter-clockwise triangle (org, dest, other).

    Methods:
    -----------
    onext(self)
        pivot other -> org (the edge leaving org, seen from outside)
    dprev(self)
        pivot dest -> other (the edge entering dest, seen from outside)
    """
    org: int
    dest: int
    other: int

    def onext(self) -> Tuple[int, int]:
        return self.other, self.org

    def dprev(self) -> Tuple[int, int]:
        return self.dest, self.other


@dataclass
class LocateResult:
    """
    Outcome of a point location.

    Attributes:
    -----------
    element: Element, optional
        the triangle containing the point
    boundary: Boundary, optional
        the boundary of the hole zone containing the point
    path: list of (x, y)
        centroids of the triangles (and hull nodes) visited by the walk
    zone: HoleZone, optional
        the hole zone containing the point
    """
    element: Optional[Element] = None
    boundary: Optional[Boundary] = None
    path: List[Point] = field(default_factory=list)
    zone: Optional[object] = None

    @property
    def found(self) -> bool:
        return self.element is not None or self.zone is not None


class _BudgetExhausted(Exception):
    pass


class PointLocator:
    """
    Triangle walk over one mesh.

    The last triangle hit is remembered per thread and used as the start of the next walk. Without a usable last hit,
    the walk starts at a random triangle none of whose corners is on a boundary.

    Attributes:
    -----------
    mesh: Mesh
    max_steps: int
        step budget of one location (4 * elements + nodes)

    Methods:
    -----------
    locate(self, point, path=None)
        LocateResult for the point
    find_triangle(self, point)
        shortcut returning only the triangle
    clear_cache(self)
        forgets the last hit of the calling thread
    """

    def __init__(self, mesh, seed: Optional[int] = None):
        self.mesh = mesh
        self.max_steps = 4 * len(mesh.elements) + len(mesh.nodes)
        self._rng = np.random.default_rng(seed)
        self._rng_lock = threading.Lock()
        self._local = threading.local()
        self._interior_elements: Optional[List[int]] = None

    # ------------------------------------------------------------------------------------------------------------

    def clear_cache(self):
        self._local.last_hit = None

    def _last_hit(self) -> Optional[Element]:
        index = getattr(self._local, "last_hit", None)
        if index is None or index >= len(self.mesh.elements):
            return None
        return self.mesh.elements[index]

    def _random_start(self) -> Element:
        if self._interior_elements is None:
            nodes = self.mesh.nodes
            self._interior_elements = [e.index for e in self.mesh.elements
                                       if all(nodes[c].marker == 0 for c in e.corners)]
        candidates = self._interior_elements or range(len(self.mesh.elements))
        with self._rng_lock:
            pick = int(self._rng.integers(len(candidates)))
        return self.mesh.elements[candidates[pick]]

    def _vertex(self, tag: int) -> Point:
        return self.mesh.nodes[tag].vertex

    def _edge_for(self, element: Element, point: Point) -> TriangleEdge:
        """Directed edge of a (counter-clockwise) element such that the point is not beyond it."""
        c = element.corners
        if element.area() < 0.0:
            c = (c[0], c[2], c[1])
        for k in range(3):
            org, dest, other = c[k], c[(k + 1) % 3], c[(k + 2) % 3]
            if not right_of(point, self._vertex(org), self._vertex(dest)):
                return TriangleEdge(org, dest, other)
        return TriangleEdge(*c)

    def _opposite(self, element: Element, a: int, b: int) -> Optional[Element]:
        for index in self.mesh.elements_sharing(a, b):
            if index != element.index:
                return self.mesh.elements[index]
        return None

    # ------------------------------------------------------------------------------------------------------------

    def locate(self, point: Point, path: Optional[List[Point]] = None) -> LocateResult:
        """
        Method for finding the triangle or hole zone containing a point.

        Parameters:
        -----------
        point: (x, y)
        path: list, optional
            list receiving the centroids of the visited triangles (a new list is used if None)

        Returns:
        -----------
        LocateResult; element and boundary are both None if the point is outside the mesh bounds or the walk failed
        """
        point = (float(point[0]), float(point[1]))
        path = [] if path is None else path
        mesh = self.mesh

        if mesh.bounds is None or not mesh.elements or not mesh.bounds.contains(point):
            return LocateResult(path=path)

        for zone in mesh.hole_zones:
            if zone.contains(point):
                return LocateResult(boundary=zone.boundary, path=path, zone=zone)

        start = self._last_hit()
        if start is not None and start.contains_point(point):
            path.append(tuple(start.centroid()))
            return LocateResult(element=start, path=path)
        if start is None:
            start = self._random_start()

        self._local.steps = 0
        try:
            element = self._walk(start, point, path, set())
        except _BudgetExhausted:
            logger.error("Point location of %s gave up after %d steps", point, self.max_steps)
            return LocateResult(path=path)

        if element is None:
            logger.warning("Point location failed for %s after visiting %d places", point, len(path))
            return LocateResult(path=path)
        self._local.last_hit = element.index
        return LocateResult(element=element, path=path)

    def find_triangle(self, point: Point) -> Optional[Element]:
        return self.locate(point).element

    def _step(self):
        self._local.steps += 1
        if self._local.steps > self.max_steps:
            raise _BudgetExhausted()

    def _walk(self, element: Element, point: Point, path: List[Point], restarts: Set[int]) -> Optional[Element]:
        e = self._edge_for(element, point)
        while True:
            self._step()
            path.append(tuple(element.centroid()))

            if point == self._vertex(e.org) or point == self._vertex(e.dest):
                return element

            first, second = e.onext(), e.dprev()
            beyond_first = right_of(point, self._vertex(first[0]), self._vertex(first[1]))
            beyond_second = right_of(point, self._vertex(second[0]), self._vertex(second[1]))

            if not beyond_first and not beyond_second:
                return element
            if beyond_first and beyond_second:
                if self._midpoint_distance(first, point) <= self._midpoint_distance(second, point):
                    pivot = first
                else:
                    pivot = second
            else:
                pivot = first if beyond_first else second

            neighbour = self._opposite(element, *pivot)
            if neighbour is None:
                return self._follow_boundary(pivot, point, path, restarts)

            # the crossed edge, reversed, is the new directed edge
            org, dest = pivot[1], pivot[0]
            e = TriangleEdge(org, dest, neighbour.third_corner(org, dest))
            element = neighbour

    def _midpoint_distance(self, edge: Tuple[int, int], point: Point) -> float:
        a = np.asarray(self._vertex(edge[0]))
        b = np.asarray(self._vertex(edge[1]))
        return float(np.hypot(*((a + b) / 2.0 - np.asarray(point))))

    def _wedge_contains(self, element: Element, tag: int, point: Point) -> bool:
        normalized = element.normalized_on(tag)
        if normalized.area() < 0.0:
            return False
        _, n1, n2 = normalized.corners
        origin = self._vertex(tag)
        # the point is on the inner side of both edges leaving the node
        return (not right_of(point, origin, self._vertex(n1))) and (not right_of(point, self._vertex(n2), origin))

    def _follow_boundary(self, pivot: Tuple[int, int], point: Point, path: List[Point],
                         restarts: Set[int]) -> Optional[Element]:
        """
        Walks along the hull starting at the ends of `pivot`, always moving to the unvisited hull neighbour whose
        direction best matches the direction to the point, until a node is found from which one of the incident
        triangles opens towards the point. The main walk then restarts from that triangle.
        """
        mesh = self.mesh
        target = np.asarray(point)
        # start from the end of the pivot closer to the point
        current = min(pivot, key=lambda tag: float(np.hypot(*(np.asarray(self._vertex(tag)) - target))))
        visited: Set[int] = {current}

        while current is not None:
            self._step()
            node = mesh.nodes[current]
            path.append(node.vertex)

            for index in mesh.sorted_elements_around(node):
                if index in restarts:
                    continue
                element = mesh.elements[index]
                if element.contains_point(point):
                    return element
                if self._wedge_contains(element, current, point):
                    restarts.add(index)
                    logger.debug("Walk restarts from triangle %d at hull node %d", index, current)
                    return self._walk(element, point, path, restarts)

            to_target = target - np.asarray(node.vertex)
            length = float(np.hypot(*to_target))
            if length == 0.0:
                return mesh.elements[next(iter(node.elements))]
            to_target /= length

            best, best_dot = None, -np.inf
            for candidate in mesh.hull_neighbours(current):
                if candidate in visited:
                    continue
                dot = float(node.direction_to(mesh.nodes[candidate]) @ to_target)
                if dot > best_dot:
                    best, best_dot = candidate, dot
            if best is not None:
                visited.add(best)
            current = best

        return None
