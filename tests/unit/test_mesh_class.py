import numpy as np
import pytest
from matplotlib.path import Path

import femesh.mesh_class

from femesh.constants import NEUMANN_MARKER, MeshSettings, Units
from femesh.exceptions import ConfigurationError, MeshRefinementError
from femesh.mesh_class import Mesh, MeshPath, _from_triangle_marker, _to_triangle_marker, bezier_points
from femesh.region_classes import Boundary, Dielectric, Region


def _assert_graph_invariants(mesh):
    assert sum(len(r.elements) for r in mesh.regions) == len(mesh.elements)
    assert [n.tag for n in mesh.nodes] == list(range(len(mesh.nodes)))
    for node in mesh.nodes:
        users = {e.index for e in mesh.elements if node.tag in e.corners}
        assert node.elements == users
    for element in mesh.elements:
        assert len(set(element.corners)) == 3
        assert element.area() > 0.0
        for a in element.corners:
            for b in element.corners:
                if a != b:
                    assert b in mesh.nodes[a].neighbours
    assert mesh.check_consistency() == []


def test_marker_shift_round_trip():
    assert _to_triangle_marker(0) == 0
    assert _from_triangle_marker(0) == 0
    assert _from_triangle_marker(_to_triangle_marker(7)) == 7
    assert _from_triangle_marker(_to_triangle_marker(NEUMANN_MARKER)) == NEUMANN_MARKER
    # Triangle's own marker for unmarked hull vertices
    assert _from_triangle_marker(1) == NEUMANN_MARKER


def test_mesh_path_drops_closing_point_and_needs_two_points():
    path = MeshPath(np.array([[0, 0], [1, 0], [1, 1], [0, 0]]))
    assert len(path.points) == 3
    assert path.contains_point((0.7, 0.3))
    assert not path.contains_point((0.3, 0.7))
    with pytest.raises(ConfigurationError):
        MeshPath(np.array([[1.0, 1.0], [1.0, 1.0]]))


def test_rectangle_has_graded_corners():
    path = MeshPath.rectangle(0.0, 0.0, 4.0, 2.0)
    dl = (4.0 + 2.0) / 2.0 / 500.0

    assert len(path.points) == 4 * 5
    assert np.allclose(path.points[:5, 1], 0.0)
    assert np.allclose(path.points[:5, 0], [0.0, dl, 2 * dl, 4.0 - 2 * dl, 4.0 - dl])
    bounds = path.bounds()
    assert (bounds.x_min, bounds.y_min, bounds.x_max, bounds.y_max) == (0.0, 0.0, 4.0, 2.0)
    with pytest.raises(ConfigurationError):
        MeshPath.rectangle(0.0, 0.0, -1.0, 1.0)


def test_mesh_needs_input():
    with pytest.raises(ConfigurationError):
        Mesh()


def test_duplicate_region_tags_are_rejected():
    square = MeshPath.rectangle(0, 0, 1, 1)
    with pytest.raises(ConfigurationError):
        Mesh([square], regions=[Region(1, ref_points=[(0.5, 0.5)]), Region(1, ref_points=[(0.2, 0.2)])])


def test_shared_outline_points_become_one_node():
    left = MeshPath(np.array([[0, 0], [1, 0], [1, 1], [0, 1]]))
    right = MeshPath(np.array([[1, 0], [2, 0], [2, 1], [1, 1]]))
    mesh = Mesh([left, right])

    assert len(mesh.nodes) == 6
    assert len(mesh.segments) == 7


def test_refined_square_invariants(square_mesh):
    mesh = square_mesh

    _assert_graph_invariants(mesh)
    assert mesh.is_refined
    assert len(mesh.elements) > 100
    assert all(e.region == 1 for e in mesh.elements)
    assert (mesh.bounds.x_min, mesh.bounds.y_min, mesh.bounds.x_max, mesh.bounds.y_max) == (0.0, 0.0, 1.0, 1.0)
    assert max(e.area() for e in mesh.elements) <= 0.002 * (1 + 1e-9)


def test_boundary_nodes_and_edges_are_marked(square_mesh):
    mesh = square_mesh
    ground = mesh.boundaries[1]

    for node in mesh.nodes:
        on_hull = min(node.x, node.y, 1.0 - node.x, 1.0 - node.y) < 1e-12
        assert (node.marker == 1) == on_hull
    assert ground.edges
    assert sum(np.hypot(*np.subtract(mesh.nodes[e.end_point1].vertex, mesh.nodes[e.end_point2].vertex))
               for e in ground.edges) == pytest.approx(4.0)
    assert all(mesh.is_hull_edge(e.end_point1, e.end_point2) for e in ground.edges)


def test_unmarked_hull_becomes_neumann(tiny_mesh):
    mesh = tiny_mesh

    assert len(mesh.nodes) == 4
    assert len(mesh.elements) == 2
    assert all(node.marker == NEUMANN_MARKER for node in mesh.nodes)
    assert mesh.regions == []
    assert all(e.region is None for e in mesh.elements)


def test_hole_zone_is_innermost_outline(ring_mesh):
    mesh = ring_mesh

    _assert_graph_invariants(mesh)
    assert len(mesh.hole_zones) == 1
    zone = mesh.hole_zones[0]
    assert zone.boundary is mesh.boundaries[2]
    assert zone.contains((5.0, 5.0))
    assert not zone.contains((2.0, 2.0))
    # no triangle inside the hole
    assert not any(e.contains_point((5.0, 5.0)) for e in mesh.elements)


def test_sorted_elements_around_interior_node(square_mesh):
    mesh = square_mesh
    node = next(n for n in mesh.nodes if n.marker == 0)
    ordered = mesh.sorted_elements_around(node)

    assert set(ordered) == node.elements
    angles = [np.arctan2(*(mesh.elements[i].centroid() - np.array(node.vertex))[::-1]) for i in ordered]
    assert angles == sorted(angles)


def test_triangle_arrays(square_mesh):
    points, tris = square_mesh.triangle_arrays()

    assert points.shape == (len(square_mesh.nodes), 2)
    assert tris.shape == (len(square_mesh.elements), 3)
    assert tris.max() < len(points)


def test_triangles_outside_regions_are_reported():
    left = MeshPath(np.array([[0, 0], [1, 0], [1, 1], [0, 1]]))
    right = MeshPath(np.array([[1, 0], [2, 0], [2, 1], [1, 1]]))
    only_left = Region(1, Dielectric(), ref_points=[(0.5, 0.5)])
    mesh = Mesh.from_outlines([left, right], regions=[only_left], units=Units.METERS,
                              settings=MeshSettings(check_consistency=False))

    assert any(e.region is None for e in mesh.elements)
    problems = mesh.check_consistency()
    assert any("regions hold" in p for p in problems)


def test_boundaries_with_clashing_tags_are_rejected():
    a = MeshPath.rectangle(0, 0, 1, 1, Boundary.electrode(1, 0.0))
    b = MeshPath.rectangle(2, 0, 1, 1, Boundary.electrode(1, 5.0))
    with pytest.raises(ConfigurationError):
        Mesh([a, b])


def test_bezier_points_end_on_the_curve():
    pts = bezier_points((0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (1.0, 0.0))

    assert pts.shape == (10, 2)
    assert np.array_equal(pts[-1], [1.0, 0.0])
    # halfway point of the symmetric arch
    assert np.allclose(pts[4], [0.5, 0.75])
    with pytest.raises(ConfigurationError):
        bezier_points((0, 0), (0, 1), (1, 1), (1, 0), segments=0)


def test_circle_path_is_flattened():
    circle = Path.circle(center=(2.0, 3.0), radius=1.0)
    n_curves = int(np.sum(circle.codes == Path.CURVE4)) // 3

    outlines = MeshPath.from_path(circle)
    assert len(outlines) == 1
    outline = outlines[0]
    assert outline.closed
    assert len(outline.points) == 10 * n_curves
    radii = np.hypot(outline.points[:, 0] - 2.0, outline.points[:, 1] - 3.0)
    assert np.allclose(radii, 1.0, atol=1e-3)


def test_quadratic_curve_and_open_subpath():
    codes = [Path.MOVETO, Path.LINETO, Path.CURVE3, Path.CURVE3, Path.CLOSEPOLY,
             Path.MOVETO, Path.LINETO, Path.LINETO]
    verts = [(0, 0), (2, 0), (2, 2), (0, 2), (0, 0),
             (5, 0), (6, 0), (6, 1)]
    wall = Boundary.magnetic(3)
    closed, polyline = MeshPath.from_path(Path(verts, codes), wall, curve_segments=4)

    assert closed.closed and not polyline.closed
    assert closed.boundary is wall and polyline.boundary is wall
    assert len(closed.points) == 2 + 4
    # the quadratic through (2, 0), (2, 2), (0, 2) passes through (1.5, 1.5) at t = 0.5
    assert np.allclose(closed.points[3], [1.5, 1.5])
    assert len(polyline.points) == 3


def test_open_paths_are_not_closed():
    square = MeshPath(np.array([[0, 0], [1, 0], [1, 1], [0, 1]]))
    chord = MeshPath(np.array([[0.2, 0.5], [0.5, 0.6], [0.8, 0.5]]), closed=False)
    mesh = Mesh([square, chord])

    assert len(mesh.segments) == 4 + 2
    mesh.refine()
    assert mesh.elements
    assert any(node.vertex == (0.5, 0.6) for node in mesh.nodes)
    assert mesh.check_consistency() == []


def test_failed_refinement_leaves_the_mesh_untouched(monkeypatch):
    mesh = Mesh([MeshPath.rectangle(0, 0, 1, 1)], regions=[Region(1, ref_points=[(0.5, 0.5)])])
    vertices = [node.vertex for node in mesh.nodes]

    def broken(data, switches):
        raise RuntimeError("triangle crashed")

    monkeypatch.setattr(femesh.mesh_class.triangle, "triangulate", broken)
    with pytest.raises(MeshRefinementError):
        mesh.refine()

    monkeypatch.setattr(femesh.mesh_class.triangle, "triangulate",
                        lambda data, switches: {"vertices": data["vertices"], "triangles": np.empty((0, 3))})
    with pytest.raises(MeshRefinementError):
        mesh.refine()

    assert not mesh.is_refined
    assert mesh.elements == []
    assert [node.vertex for node in mesh.nodes] == vertices


def test_min_angle_override_keeps_shared_settings():
    settings = MeshSettings(min_angle=20.0)
    first = Mesh([MeshPath.rectangle(0, 0, 1, 1)], settings=settings)
    second = Mesh([MeshPath.rectangle(2, 0, 1, 1)], settings=settings)

    first.refine(min_angle=30.0)

    assert settings.min_angle == 20.0
    assert first.settings.min_angle == 20.0
    assert second.settings is settings
