import numpy as np
import pytest

from femesh.complex_potential_class import axisymmetric_magnetostatic, flat_magnetostatic
from femesh.constants import MU_0, MeshSettings, Units
from femesh.mesh_class import Mesh, MeshPath
from femesh.region_classes import Boundary, Conductor, Region, Steel

from tests.mesh_factories import plate_mesh, unit_square_mesh
from tests.tolerances import ANALYTIC_REL_TOL, EXACT_REL_TOL, UNIT_SQUARE_POISSON_CENTRE


def _conductor_square(current_density=1.0):
    mesh = unit_square_mesh(boundary=Boundary.magnetic(1))
    mesh.regions[0].material = Conductor(current_density=current_density)
    return mesh


def test_current_density_in_a_square_conductor():
    mesh = _conductor_square()
    problem = flat_magnetostatic(mesh, seed=0)
    problem.solve()

    _, centre = problem.values_at_point((0.5, 0.5))
    assert centre.phi.real == pytest.approx(MU_0 * UNIT_SQUARE_POISSON_CENTRE, rel=ANALYTIC_REL_TOL)
    assert all(node.phi == 0j for node in mesh.nodes if node.marker == 1)
    names = [name for name, _, _ in problem.data_at_point((0.5, 0.5))]
    assert names == ["A:", "Bx:", "By:", "Bmax:"]


def test_electrodes_do_not_fix_the_vector_potential():
    mesh = _conductor_square()
    ground = Boundary.electrode(1, 0.0)
    mesh.boundaries[1] = ground

    # no node is fixed, the current flows into an insulated box and the field is left to the natural condition
    problem = flat_magnetostatic(mesh, seed=0)
    problem.assemble()
    assert problem._A.nnz > 2 * len(mesh.nodes)
    assert all(node.prescribed is None for node in mesh.nodes)


def test_uniform_flux_density_between_two_magnetic_boundaries():
    mesh = plate_mesh(r_min=0.0, r_max=1.0, bottom=Boundary.magnetic(1, 0.0), top=Boundary.magnetic(2, 1.0))
    problem = flat_magnetostatic(mesh, seed=0)
    problem.solve()

    for node in mesh.nodes:
        assert node.phi.real == pytest.approx(node.y, abs=1e-9)
    data = {name: value for name, value, _ in problem.data_at_point((0.4, 0.6))}
    assert data["Bx:"] == pytest.approx(1.0, rel=1e-6)
    assert data["By:"] == pytest.approx(0.0, abs=1e-6)
    assert problem.total_field_energy() == pytest.approx(1.0 / (2.0 * MU_0), rel=EXACT_REL_TOL)


def test_steel_lowers_the_energy():
    air = plate_mesh(r_min=0.0, r_max=1.0, bottom=Boundary.magnetic(1, 0.0), top=Boundary.magnetic(2, 1.0))
    steel = plate_mesh(r_min=0.0, r_max=1.0, bottom=Boundary.magnetic(1, 0.0), top=Boundary.magnetic(2, 1.0))
    steel.regions[0].material = Steel(mu_rel=100.0)

    air_problem = flat_magnetostatic(air, seed=0)
    air_problem.solve()
    steel_problem = flat_magnetostatic(steel, seed=0)
    steel_problem.solve()

    # same A everywhere, reluctivity down by mu_rel
    assert np.allclose(steel_problem.phi, air_problem.phi, atol=1e-9)
    assert steel_problem.total_field_energy() == pytest.approx(air_problem.total_field_energy() / 100.0,
                                                               rel=EXACT_REL_TOL)


def test_eddy_currents_shift_the_phase():
    static = flat_magnetostatic(_conductor_square(), frequency=0.0, seed=0)
    static.solve()
    eddy = flat_magnetostatic(_conductor_square(), frequency=50.0, seed=0)
    eddy.solve()

    assert np.all(np.isfinite(eddy.phi))
    assert np.max(np.abs(static.phi.imag)) == 0.0
    assert np.max(np.abs(eddy.phi.imag)) > 0.0
    # induced currents oppose the source, so the field at the centre drops
    assert abs(eddy.phi[np.argmax(np.abs(static.phi))]) < np.max(np.abs(static.phi))


def test_axisymmetric_coil_smoke():
    shield = Boundary.magnetic(1, 0.0, "Shield")
    coil = Region(1, Conductor(current_density=1e6), ref_points=[(1.5, 0.5)], description="Coil")
    mesh = Mesh.from_outlines([MeshPath.rectangle(1.0, 0.0, 1.0, 1.0, shield)], regions=[coil],
                              units=Units.METERS, settings=MeshSettings(max_area=0.005))
    problem = axisymmetric_magnetostatic(mesh, seed=0)
    phi = problem.solve()

    assert np.all(np.isfinite(phi))
    assert phi.real.max() > 0.0
    assert phi.real.min() >= 0.0
    assert problem.max_field_element.value > 0.0
    data = {name: value for name, value, _ in problem.data_at_point((1.5, 0.5))}
    assert abs(data["Bmax:"]) > 0.0


def test_axisymmetric_field_on_the_axis_is_finite():
    mesh = _conductor_square()
    problem = axisymmetric_magnetostatic(mesh, seed=0)
    problem.solve()

    on_axis = {name: value for name, value, _ in problem.data_at_point((0.0, 0.5))}
    assert set(on_axis) == {"A:", "Bx:", "By:", "Bmax:"}
    assert all(np.isfinite(value) for value in on_axis.values())
    near_axis = {name: value for name, value, _ in problem.data_at_point((1e-9, 0.5))}
    assert np.isfinite(near_axis["Bmax:"])
