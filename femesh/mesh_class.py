"""
Class for the setup of a 2D FEM mesh from closed outlines, free vertices, regions and holes.

This is essentially a wrapper around Triangle (J. R. Shewchuk) through the `triangle` package: the outlines become
points and constraining segments, every region contributes its reference points as regional attributes and the
refinement returns a quality triangulation which is copied into the Node/Edge/Element graph of the mesh.

Usage:
    from femesh.mesh_class import *

    mesh = Mesh.from_outlines([MeshPath.rectangle(0, 0, 10, 10, ground)], regions=[oil], units=Units.MM)
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
import logging
import math

import numpy as np
import triangle
from matplotlib.path import Path

from femesh.constants import MeshSettings, NEUMANN_MARKER, TRIANGLE_HULL_MARKER, Units
from femesh.exceptions import ConfigurationError, MeshRefinementError
from femesh.region_classes import Boundary, Region
from femesh.topology_classes import Edge, Element, Node, Point, Rect

logger = logging.getLogger(__name__)


# Number of straight segments every curve of an input path is split into
CURVE_SEGMENTS = 10


def bezier_points(p0: Point, c1: Point, c2: Point, p3: Point, segments: int = CURVE_SEGMENTS) -> np.ndarray:
    """
    Flattens the cubic Bezier curve p0-c1-c2-p3 into `segments` straight pieces.

    Returns:
    -----------
    (segments, 2) np.ndarray
        points on the curve after p0, the last one being exactly p3
    """
    if segments < 1:
        raise ConfigurationError("A curve needs at least one segment")
    p0, c1, c2, p3 = (np.asarray(p, dtype=float) for p in (p0, c1, c2, p3))
    t = (np.arange(1, segments + 1) / segments)[:, None]
    s = 1.0 - t
    pts = s ** 3 * p0 + 3.0 * s * s * t * c1 + 3.0 * s * t * t * c2 + t ** 3 * p3
    pts[-1] = p3
    return pts


@dataclass
class MeshPath:
    """
    An outline, optionally carrying the boundary condition of the nodes that lie on it.

    Attributes:
    -----------
    points: (n, 2) np.ndarray
        vertices of the polygon, consistently directed; a repeated closing vertex is dropped
    boundary: Boundary, optional
        boundary applied to every vertex and segment of the outline
    closed: bool
        the last vertex is joined to the first one; an open path only adds the segments between consecutive vertices

    Methods:
    -----------
    rectangle(x, y, width, height, boundary, extra_points) (class method)
        rectangular outline with extra points close to each corner to grade the mesh there
    from_path(path, boundary, curve_segments) (class method)
        outlines from a matplotlib Path, one per subpath, with the curves flattened
    bounds(self)
        bounding rectangle of the outline
    contains_point(self, point)
        point-in-polygon test
    """
    points: np.ndarray
    boundary: Optional[Boundary] = None
    closed: bool = True

    def __post_init__(self):
        pts = np.asarray(self.points, dtype=float).reshape(-1, 2)
        if len(pts) > 1 and np.array_equal(pts[0], pts[-1]):
            pts = pts[:-1]
        if len(np.unique(pts, axis=0)) < 2:
            raise ConfigurationError("An outline needs at least two distinct points")
        self.points = pts

    @classmethod
    def rectangle(cls, x: float, y: float, width: float, height: float,
                  boundary: Optional[Boundary] = None, extra_points: int = 2) -> "MeshPath":
        """
        Counter-clockwise rectangle with `extra_points` additional vertices next to every corner. The spacing of the
        extra vertices is the average side length divided by 500 (Meeker).
        """
        if width <= 0.0 or height <= 0.0:
            raise ConfigurationError("Rectangle width and height must be positive")
        dl = (width + height) / 2.0 / 500.0

        def side(length: float) -> List[float]:
            if extra_points <= 0 or length <= 2.0 * (extra_points + 1) * dl:
                return [0.0]
            near = [k * dl for k in range(extra_points + 1)]
            far = [length - k * dl for k in range(extra_points, 0, -1)]
            return near + far

        pts = []
        pts += [(x + s, y) for s in side(width)]
        pts += [(x + width, y + s) for s in side(height)]
        pts += [(x + width - s, y + height) for s in side(width)]
        pts += [(x, y + height - s) for s in side(height)]
        return cls(np.array(pts), boundary)

    @classmethod
    def from_path(cls, path: Path, boundary: Optional[Boundary] = None,
                  curve_segments: int = CURVE_SEGMENTS) -> List["MeshPath"]:
        """
        Method for converting a matplotlib Path into outlines, one per subpath.

        Parameters:
        -----------
        path: matplotlib.path.Path
            MOVETO starts a subpath, LINETO adds a vertex, CURVE3/CURVE4 add a quadratic/cubic Bezier curve and
            CLOSEPOLY closes the subpath; a subpath that is never closed becomes an open outline
        boundary: Boundary, optional
            boundary of every outline
        curve_segments: int
            number of straight segments per curve

        Returns:
        -----------
        list of MeshPath
        """
        subpaths: List[Tuple[List[np.ndarray], bool]] = []
        current: List[np.ndarray] = []
        for vertices, code in path.iter_segments(curves=True, simplify=False):
            vertices = np.asarray(vertices, dtype=float).reshape(-1, 2)
            if code == Path.MOVETO:
                if len(current) > 1:
                    subpaths.append((current, False))
                current = [vertices[0]]
                continue
            if not current:
                raise ConfigurationError("A path must start with a MOVETO")
            if code == Path.LINETO:
                current.append(vertices[0])
            elif code == Path.CURVE3:
                q0, q1, q2 = current[-1], vertices[0], vertices[1]
                c1, c2 = q0 + 2.0 * (q1 - q0) / 3.0, q2 + 2.0 * (q1 - q2) / 3.0
                current.extend(bezier_points(q0, c1, c2, q2, curve_segments))
            elif code == Path.CURVE4:
                current.extend(bezier_points(current[-1], vertices[0], vertices[1], vertices[2], curve_segments))
            elif code == Path.CLOSEPOLY:
                subpaths.append((current, True))
                current = [current[0]]
        if len(current) > 1:
            subpaths.append((current, False))

        outlines = [cls(np.array(points), boundary, closed) for points, closed in subpaths]
        logger.debug("Path converted into %d outlines with %d points", len(outlines),
                     sum(len(o.points) for o in outlines))
        return outlines

    def bounds(self) -> Rect:
        return Rect.from_points(self.points)

    def path(self) -> Path:
        return Path(np.vstack([self.points, self.points[:1]]), closed=True)

    def contains_point(self, point: Point) -> bool:
        return bool(self.path().contains_point(point))


@dataclass
class HoleZone:
    """
    The innermost input outline around a declared hole point. Points inside it belong to the outline's boundary and
    never to a triangle.
    """
    point: Point
    path: MeshPath

    @property
    def boundary(self) -> Optional[Boundary]:
        return self.path.boundary

    def contains(self, point: Point) -> bool:
        return self.path.bounds().contains(point) and self.path.contains_point(point)


def _to_triangle_marker(marker: int) -> int:
    # Triangle gives unmarked hull vertices/edges the marker 1, so every real marker is shifted up by one
    return 0 if marker == 0 else marker + 1


def _from_triangle_marker(marker: int) -> int:
    if marker == 0:
        return 0
    if marker == TRIANGLE_HULL_MARKER:
        return NEUMANN_MARKER
    return marker - 1


class Mesh:
    """
    Container of the mesh graph together with the regions and boundaries attached to it.

    Attributes:
    -----------
    paths: list of MeshPath
        the input outlines (unchanged by refinement)
    nodes: list of Node
        nodes of the mesh; before refinement these are the input points
    segments: list of Edge
        constraining segments; before refinement the input segments, afterwards the refined ones
    edges: list of Edge
        edges of the refined mesh
    elements: list of Element
        triangles of the refined mesh
    regions: list of Region
    region_dict: dict of int -> Region
    boundaries: dict of int -> Boundary
        every boundary found on the outlines or linked to a conductor, by tag
    holes: list of (x, y)
        hole points
    hole_zones: list of HoleZone
    bounds: Rect, optional
        bounding rectangle of all nodes (after refinement)
    units: Units
        length unit of the model
    settings: MeshSettings

    Methods:
    -----------
    from_outlines(...) (class method)
        creates and refines a mesh in one go
    refine(self, min_angle=None)
        runs Triangle and replaces nodes, segments, edges and elements
    check_consistency(self)
        structural checks, returns the list of problems found
    sorted_elements_around(self, node)
        incident elements ordered by the angle from the node to their centroids
    """

    def __init__(self, paths: Sequence[MeshPath] = (), vertices: Iterable[Point] = (),
                 regions: Sequence[Region] = (), holes: Iterable[Point] = (),
                 units: Units = Units.MM, settings: Optional[MeshSettings] = None):
        self.paths: List[MeshPath] = list(paths)
        self.units = units
        self.settings = settings or MeshSettings()

        self.nodes: List[Node] = []
        self.segments: List[Edge] = []
        self.edges: List[Edge] = []
        self.elements: List[Element] = []
        self.holes: List[Point] = [(float(x), float(y)) for x, y in holes]
        self.hole_zones: List[HoleZone] = []
        self.bounds: Optional[Rect] = None
        self.is_refined = False

        self.regions: List[Region] = list(regions)
        self.region_dict: Dict[int, Region] = {}
        for region in self.regions:
            if region.tag in self.region_dict:
                raise ConfigurationError(f"Duplicate region tag {region.tag}")
            self.region_dict[region.tag] = region

        self.boundaries: Dict[int, Boundary] = {}
        for path in self.paths:
            if path.boundary is not None:
                self._register_boundary(path.boundary)
        for region in self.regions:
            if region.electrode is not None:
                self._register_boundary(region.electrode)

        vertices = [(float(x), float(y)) for x, y in vertices]
        if not self.paths and not vertices:
            raise ConfigurationError("A mesh needs at least one outline or one vertex")
        self._add_input_geometry(vertices)

    @classmethod
    def from_outlines(cls, paths: Sequence[MeshPath], vertices: Iterable[Point] = (),
                      regions: Sequence[Region] = (), holes: Iterable[Point] = (),
                      units: Units = Units.MM, settings: Optional[MeshSettings] = None) -> "Mesh":
        mesh = cls(paths, vertices, regions, holes, units, settings)
        mesh.refine()
        return mesh

    def _register_boundary(self, boundary: Boundary):
        known = self.boundaries.get(boundary.tag)
        if known is not None and known is not boundary:
            raise ConfigurationError(f"Two different boundaries use the tag {boundary.tag}")
        self.boundaries[boundary.tag] = boundary

    def _add_input_geometry(self, vertices: List[Point]):
        # Points shared by several outlines map to a single node
        index: Dict[Point, int] = {}

        def node_for(point, marker: int) -> int:
            key = (float(point[0]), float(point[1]))
            tag = index.get(key)
            if tag is None:
                tag = len(self.nodes)
                index[key] = tag
                self.nodes.append(Node(tag=tag, vertex=key, marker=marker))
            elif self.nodes[tag].marker == 0:
                self.nodes[tag].marker = marker
            return tag

        for vertex in vertices:
            node_for(vertex, 0)

        seen = set()
        for path in self.paths:
            marker = path.boundary.tag if path.boundary is not None else 0
            tags = [node_for(p, marker) for p in path.points]
            closing = path.closed and len(tags) > 2
            for a, b in zip(tags, tags[1:] + (tags[:1] if closing else [])):
                segment = Edge(a, b, marker)
                if a != b and segment not in seen:
                    seen.add(segment)
                    self.segments.append(segment)

    # ------------------------------------------------------------------------------------------------------------
    # refinement
    # ------------------------------------------------------------------------------------------------------------

    def _triangle_input(self) -> dict:
        data = {
            "vertices": np.array([n.vertex for n in self.nodes], dtype=float),
            "vertex_markers": np.array([[_to_triangle_marker(n.marker)] for n in self.nodes], dtype=np.int32),
        }
        if self.segments:
            data["segments"] = np.array([[s.end_point1, s.end_point2] for s in self.segments], dtype=np.int32)
            data["segment_markers"] = np.array([[_to_triangle_marker(s.marker)] for s in self.segments],
                                               dtype=np.int32)
        if self.holes:
            data["holes"] = np.array(self.holes, dtype=float)
        if self.regions:
            rows = []
            for region in self.regions:
                if not region.ref_points:
                    raise ConfigurationError(f"Region {region.tag} has no reference points")
                for x, y in region.ref_points:
                    rows.append([x, y, float(region.tag), 0.0])
            data["regions"] = np.array(rows, dtype=float)
        return data

    def _triangulate(self, switches: str) -> Tuple[np.ndarray, ...]:
        """
        Single call into Triangle. Everything Triangle returns is copied into plain arrays before returning, so no
        result object outlives this method.
        """
        data = self._triangle_input()
        try:
            result = triangle.triangulate(data, switches)
        except Exception as exc:
            raise MeshRefinementError(f"Triangle failed with switches '{switches}': {exc}") from exc

        try:
            tris = np.array(result.get("triangles", np.empty((0, 3))), dtype=int).reshape(-1, 3)
            if len(tris) == 0:
                raise MeshRefinementError("Triangle did not produce any triangles")
            verts = np.array(result["vertices"], dtype=float).reshape(-1, 2)
            n_verts = len(verts)
            markers = np.array(result.get("vertex_markers", np.zeros(n_verts)), dtype=int).reshape(n_verts)
            attrs = result.get("triangle_attributes")
            attrs = (np.rint(np.asarray(attrs, dtype=float)[:, 0]).astype(int) if attrs is not None
                     else np.zeros(len(tris), dtype=int))
            neighbours = np.array(result.get("neighbors", -np.ones_like(tris)), dtype=int).reshape(-1, 3)
            edges = np.array(result.get("edges", np.empty((0, 2))), dtype=int).reshape(-1, 2)
            edge_markers = np.array(result.get("edge_markers", np.zeros(len(edges))), dtype=int).reshape(len(edges))
            segs = np.array(result.get("segments", np.empty((0, 2))), dtype=int).reshape(-1, 2)
            seg_markers = np.array(result.get("segment_markers", np.zeros(len(segs))), dtype=int).reshape(len(segs))
        finally:
            del result
        return verts, markers, tris, attrs, neighbours, edges, edge_markers, segs, seg_markers

    def refine(self, min_angle: Optional[float] = None):
        """
        Method for refining the mesh with Triangle.

        Parameters:
        -----------
        min_angle: float, optional
            minimum angle for this refinement only; the mesh settings are left unchanged

        Sets:
        -----------
        nodes, segments, edges, elements, the element lists of the regions, the edge lists of the boundaries,
        bounds, hole_zones

        Raises:
        -----------
        MeshRefinementError if Triangle cannot produce a conforming triangulation
        """
        # the override applies to this call only
        settings = self.settings if min_angle is None else replace(self.settings, min_angle=min_angle)
        switches = settings.triangle_switches(bool(self.segments), bool(self.regions) and bool(self.segments))
        logger.info("Refining mesh (%d points, %d segments, %d regions) with switches '%s'",
                    len(self.nodes), len(self.segments), len(self.regions), switches)

        verts, markers, tris, attrs, neighbours, edges, edge_markers, segs, seg_markers = self._triangulate(switches)

        self.nodes = [Node(tag=i, vertex=(x, y), marker=_from_triangle_marker(int(m)))
                      for i, ((x, y), m) in enumerate(zip(verts, markers))]
        self.segments = [Edge(int(a), int(b), _from_triangle_marker(int(m))) for (a, b), m in zip(segs, seg_markers)]
        self.edges = [Edge(int(a), int(b), _from_triangle_marker(int(m))) for (a, b), m in zip(edges, edge_markers)]

        for region in self.regions:
            region.elements = []
        self.elements = []
        for i, (corners, tag) in enumerate(zip(tris, attrs)):
            region = self.region_dict.get(int(tag))
            if region is None and self.regions:
                logger.debug("Triangle %d has no region (attribute %d)", i, tag)
            element = Element(index=i, corners=tuple(int(c) for c in corners), points=verts[corners],
                              region=region.tag if region is not None else None,
                              neighbours=[int(k) for k in neighbours[i] if k >= 0])
            self.elements.append(element)
            if region is not None:
                region.elements.append(i)
            for tag_ in element.corners:
                self.nodes[tag_].elements.add(i)
                self.nodes[tag_].neighbours.update(c for c in element.corners if c != tag_)

        self._collect_boundary_edges()
        self.bounds = Rect.from_points(verts)
        self._find_hole_zones()
        self.is_refined = True

        bad = [e.index for e in self.elements if e.area() <= 0.0]
        if bad:
            logger.error("Refinement produced %d triangles with non-positive area: %s", len(bad), bad[:10])

        logger.info("Mesh refined: %d nodes, %d elements, %d edges", len(self.nodes), len(self.elements),
                    len(self.edges))

        check = self.settings.check_consistency
        if check or (check is None and logger.isEnabledFor(logging.DEBUG)):
            self.check_consistency()

    def _collect_boundary_edges(self):
        for boundary in self.boundaries.values():
            boundary.edges = []
        for edge in self.edges:
            m1 = self.nodes[edge.end_point1].marker
            m2 = self.nodes[edge.end_point2].marker
            # chords between two boundary nodes are not on the boundary
            if m1 != 0 and m1 == m2 == edge.marker and m1 in self.boundaries:
                self.boundaries[m1].edges.append(edge)

    def _find_hole_zones(self):
        self.hole_zones = []
        for hole in self.holes:
            innermost = None
            for path in self.paths:
                if not path.closed or not path.bounds().contains(hole):
                    continue
                if innermost is None or innermost.bounds().contains_rect(path.bounds()):
                    innermost = path
            if innermost is None:
                logger.warning("No outline encloses the hole point %s", hole)
                continue
            self.hole_zones.append(HoleZone(hole, innermost))

    # ------------------------------------------------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------------------------------------------------

    def region_of(self, element: Element) -> Optional[Region]:
        if element.region is None:
            return None
        return self.region_dict.get(element.region)

    def elements_sharing(self, a: int, b: int) -> Set[int]:
        return self.nodes[a].elements & self.nodes[b].elements

    def is_hull_edge(self, a: int, b: int) -> bool:
        return len(self.elements_sharing(a, b)) == 1

    def hull_neighbours(self, tag: int) -> List[int]:
        return [n for n in self.nodes[tag].neighbours if self.is_hull_edge(tag, n)]

    def sorted_elements_around(self, node: Node) -> List[int]:
        """Incident elements of `node` sorted by the angle from the node to each element's centroid."""
        def angle(index: int) -> float:
            cx, cy = self.elements[index].centroid()
            return math.atan2(cy - node.y, cx - node.x)
        return sorted(node.elements, key=angle)

    def triangle_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Node coordinates (n, 2) and triangle corner tags (m, 3), e.g. for matplotlib.tri."""
        points = np.array([n.vertex for n in self.nodes], dtype=float).reshape(-1, 2)
        tris = np.array([e.corners for e in self.elements], dtype=int).reshape(-1, 3)
        return points, tris

    def node_values(self) -> np.ndarray:
        return np.array([n.phi for n in self.nodes], dtype=complex)

    # ------------------------------------------------------------------------------------------------------------
    # consistency
    # ------------------------------------------------------------------------------------------------------------

    def check_consistency(self) -> List[str]:
        """
        Structural checks of the mesh graph. Problems are logged at ERROR level and returned, never raised.

        Checks:
        -----------
        - every element lists itself in each of its corners' element sets and vice versa
        - neighbour sets are symmetric and match the element corner lists
        - the element counts of the regions add up to the number of elements
        - every element has a positive area
        """
        problems = []

        expected_elements: Dict[int, Set[int]] = {n.tag: set() for n in self.nodes}
        expected_neighbours: Dict[int, Set[int]] = {n.tag: set() for n in self.nodes}
        for element in self.elements:
            for tag in element.corners:
                expected_elements[tag].add(element.index)
                expected_neighbours[tag].update(c for c in element.corners if c != tag)
            if element.area() <= 0.0:
                problems.append(f"element {element.index} has non-positive area {element.area():g}")

        for node in self.nodes:
            if node.elements != expected_elements[node.tag]:
                problems.append(f"node {node.tag} lists {len(node.elements)} elements, "
                                f"{len(expected_elements[node.tag])} elements use it")
            if node.neighbours != expected_neighbours[node.tag]:
                problems.append(f"node {node.tag} has inconsistent neighbours")
            for other in node.neighbours:
                if node.tag not in self.nodes[other].neighbours:
                    problems.append(f"neighbour relation {node.tag} -> {other} is not symmetric")

        if self.regions:
            in_regions = sum(len(r.elements) for r in self.regions)
            if in_regions != len(self.elements):
                problems.append(f"regions hold {in_regions} elements, the mesh has {len(self.elements)}")

        for problem in problems:
            logger.error("Mesh consistency: %s", problem)
        if not problems:
            logger.debug("Mesh consistency checks passed")
        return problems
