"""
Main script to run the demo field calculations with.

Usage:
    python3 main.py or hit the play button

Functions:
-----------
make_concentric_electrode_demo(width: float = 10.0, inner: float = 2.0, voltage: complex = 100.0,
                               e_rel: complex = 1.0, max_area: float = 0.5):
    square tank at ground potential around a square high voltage lead, flat electrostatics in mm

make_coil_demo(current_density: complex = 1e6, frequency: float = 0.0, max_area: float = 0.002):
    copper coil inside a steel pot, axisymmetric magnetostatics in m

print_point_data(problem, point):
    logs the data of the solved problem at a point
"""
import logging

import numpy as np

from femesh import (Boundary, Conductor, Dielectric, Mesh, MeshPath, MeshSettings, Region, Steel, Units,
                    axisymmetric_magnetostatic, flat_electrostatic, setup_logging)
from femesh.plotting import plot_potential_and_field

logger = logging.getLogger("femesh.demo")


def make_concentric_electrode_demo(width: float = 10.0, inner: float = 2.0, voltage: complex = 100.0,
                                   e_rel: complex = 1.0, max_area: float = 0.5):
    tank = Boundary.electrode(1, 0.0, "Tank")
    lead = Boundary.electrode(2, voltage, "HV lead")
    oil = Region(1, Dielectric(e_rel=e_rel), ref_points=[(width / 10.0, width / 10.0)], description="Oil")
    x0 = (width - inner) / 2.0
    paths = [MeshPath.rectangle(0.0, 0.0, width, width, tank), MeshPath.rectangle(x0, x0, inner, inner, lead)]

    mesh = Mesh.from_outlines(paths, regions=[oil], holes=[(width / 2.0, width / 2.0)], units=Units.MM,
                              settings=MeshSettings(max_area=max_area))
    problem = flat_electrostatic(mesh)
    problem.solve()
    return problem


def make_coil_demo(current_density: complex = 1e6, frequency: float = 0.0, max_area: float = 0.002):
    shield = Boundary.magnetic(1, 0.0, "Shield")
    air = Region(1, Dielectric(), ref_points=[(0.05, 0.5)], description="Air")
    pot = Region(2, Steel(mu_rel=1000.0), ref_points=[(0.5, 0.95)], description="Pot")
    coil = Region(3, Conductor(current_density=current_density), ref_points=[(0.35, 0.5)], description="Coil")
    outline = [[0.0, 0.0], [0.6, 0.0], [0.6, 0.9], [0.6, 1.0], [0.0, 1.0], [0.0, 0.9]]
    paths = [MeshPath(np.array(outline), shield),
             MeshPath(np.array([[0.0, 0.9], [0.6, 0.9]])),
             MeshPath.rectangle(0.3, 0.3, 0.1, 0.4)]

    mesh = Mesh.from_outlines(paths, regions=[air, pot, coil], units=Units.METERS,
                              settings=MeshSettings(max_area=max_area))
    problem = axisymmetric_magnetostatic(mesh, frequency=frequency)
    problem.solve()
    return problem


def print_point_data(problem, point):
    for name, value, units in problem.data_at_point(point, coarse=False):
        logger.info("%s %s %s", name, value, units)


electric = True

if __name__ == "__main__":
    setup_logging(logging.INFO)
    if electric:
        prob = make_concentric_electrode_demo()
        print_point_data(prob, (7.0, 5.0))
        plot_potential_and_field(prob.mesh, prob.contour_lines(10), outpath_png=None, show_mesh=True)
    else:
        prob = make_coil_demo(frequency=50.0)
        print_point_data(prob, (0.35, 0.8))
        plot_potential_and_field(prob.mesh, prob.contour_lines(15), outpath_png=None, show_mesh=False)
    logger.info("Demo done.")
