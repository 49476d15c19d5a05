"""
Static plots of a solved mesh: potential, per-triangle field magnitude and contour line overlays.

Usage:
    from femesh.plotting import plot_potential_and_field

    plot_potential_and_field(problem.mesh, problem.contour_lines(10), outpath_png="result.png")
"""

from typing import Optional, Sequence
import logging

import matplotlib.pyplot as plt
import matplotlib.tri as mtri
import numpy as np
from matplotlib.collections import LineCollection

from femesh.contour_lines import ContourLine

logger = logging.getLogger(__name__)


def triangulation(mesh) -> mtri.Triangulation:
    nodes, tris = mesh.triangle_arrays()
    return mtri.Triangulation(nodes[:, 0], nodes[:, 1], tris)


def plot_potential_and_field(mesh, lines: Sequence[ContourLine] = (), outpath_png: Optional[str] = None,
                             show_mesh: bool = True, levels: int = 30):
    """
    Method for plotting |phi| and the field magnitude of every triangle.

    Parameters:
    -----------
    mesh: Mesh
        solved mesh (node potentials and Element.value set)
    lines: list of ContourLine
        iso-lines drawn over the field magnitude
    outpath_png: str, optional
        if given, the figures are saved as <name>_potential.png and <name>_field.png, else they are shown
    show_mesh: bool
        draw the triangles over the potential
    levels: int
        number of filled contour levels of the potential

    Returns:
    -----------
    fig1, fig2
    """
    triobj = triangulation(mesh)
    magnitudes = np.abs(mesh.node_values())

    fig1 = plt.figure(figsize=(7, 5.0))
    ax1 = fig1.add_subplot(111)
    if np.ptp(magnitudes) > 0.0:
        tcf = ax1.tricontourf(triobj, magnitudes, levels=levels, cmap='cubehelix')
        plt.colorbar(tcf, ax=ax1, label="|phi|")
    else:
        logger.debug("Constant potential, no filled contours drawn")
    ax1.set_aspect('equal')
    ax1.set_title("Potential magnitude")
    ax1.set_xlabel("x"); ax1.set_ylabel("y")
    if show_mesh:
        ax1.triplot(triobj, linewidth=0.4, alpha=0.4, color="black")

    fig2 = plt.figure(figsize=(7, 5.0))
    ax2 = fig2.add_subplot(111)
    values = np.array([e.value for e in mesh.elements], dtype=float)
    tpc = ax2.tripcolor(triobj, facecolors=values, cmap='cubehelix')
    plt.colorbar(tpc, ax=ax2, label="field magnitude")
    for line in lines:
        if line.segments:
            ax2.add_collection(LineCollection(line.segments, linewidths=0.8, colors="white"))
    ax2.set_aspect('equal')
    ax2.set_title("Field magnitude with contours of |phi|")
    ax2.set_xlabel("x"); ax2.set_ylabel("y")

    fig1.tight_layout()
    fig2.tight_layout()
    if outpath_png is not None:
        fig1.savefig(outpath_png.replace(".png", "_potential.png"), dpi=160, bbox_inches="tight")
        fig2.savefig(outpath_png.replace(".png", "_field.png"), dpi=160, bbox_inches="tight")
        logger.info("Saved plots next to %s", outpath_png)
    else:
        plt.show()
    return fig1, fig2


def plot_mesh(mesh, outpath_png: Optional[str] = None):
    """Triangles of the mesh, coloured by region."""
    triobj = triangulation(mesh)
    regions = np.array([e.region if e.region is not None else 0 for e in mesh.elements], dtype=float)

    fig = plt.figure(figsize=(7, 5.0))
    ax = fig.add_subplot(111)
    ax.tripcolor(triobj, facecolors=regions, cmap='Pastel1', alpha=0.8)
    ax.triplot(triobj, linewidth=0.4, color="black")
    ax.set_aspect('equal')
    ax.set_title(f"Mesh: {len(mesh.nodes)} nodes, {len(mesh.elements)} triangles")
    ax.set_xlabel("x"); ax.set_ylabel("y")

    fig.tight_layout()
    if outpath_png is not None:
        fig.savefig(outpath_png, dpi=160, bbox_inches="tight")
    else:
        plt.show()
    return fig
