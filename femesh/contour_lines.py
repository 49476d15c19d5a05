"""
Extraction of iso-lines of the potential magnitude |phi| from a solved mesh.

Every level is independent of the others: the triangles are only read, so the levels can be traced in parallel.

Usage:
    from femesh.contour_lines import contour_lines

    for line in contour_lines(mesh, count=10):
        for polyline in line.polylines(): ...
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import logging

import numpy as np

from femesh.topology_classes import Point

logger = logging.getLogger(__name__)

Segment = Tuple[Point, Point]


@dataclass
class ContourLine:
    """
    All segments of one iso-value.

    Attributes:
    -----------
    value: float
        the level
    segments: list of ((x1, y1), (x2, y2))
        one segment per triangle crossed by the level
    """
    value: float
    segments: List[Segment] = field(default_factory=list)

    def polylines(self) -> List[List[Point]]:
        """Chains the segments end to end. Closed loops repeat their first point at the end."""
        ends: Dict[Point, List[int]] = {}
        for i, (p, q) in enumerate(self.segments):
            ends.setdefault(p, []).append(i)
            ends.setdefault(q, []).append(i)

        used = [False] * len(self.segments)

        def extend(line: List[Point]):
            while True:
                tip = line[-1]
                nxt = next((i for i in ends.get(tip, ()) if not used[i]), None)
                if nxt is None:
                    return
                used[nxt] = True
                p, q = self.segments[nxt]
                line.append(q if p == tip else p)

        lines = []
        for i, (p, q) in enumerate(self.segments):
            if used[i]:
                continue
            used[i] = True
            line = [p, q]
            extend(line)
            line.reverse()
            extend(line)
            lines.append(line)
        return lines


def contour_levels(mesh, count: int) -> List[float]:
    """`count` equally spaced levels strictly between the smallest and the largest |phi| of the mesh."""
    if count <= 0 or not mesh.nodes:
        return []
    magnitudes = np.abs(mesh.node_values())
    low, high = float(magnitudes.min()), float(magnitudes.max())
    if high <= low:
        return []
    step = (high - low) / (count + 1)
    return [low + k * step for k in range(1, count + 1)]


def _crossing(mesh, magnitudes: np.ndarray, a: int, b: int, level: float) -> Optional[Point]:
    # always interpolate from the lower tag so both triangles of an edge produce the identical point
    if a > b:
        a, b = b, a
    va, vb = magnitudes[a], magnitudes[b]
    if not ((va < level <= vb) or (vb < level <= va)):
        return None
    t = (level - va) / (vb - va)
    (xa, ya), (xb, yb) = mesh.nodes[a].vertex, mesh.nodes[b].vertex
    return xa + t * (xb - xa), ya + t * (yb - ya)


def contour_line(mesh, value: float, magnitudes: Optional[np.ndarray] = None) -> ContourLine:
    """Traces one level through every triangle of the mesh."""
    if magnitudes is None:
        magnitudes = np.abs(mesh.node_values())
    line = ContourLine(float(value))
    for element in mesh.elements:
        c = element.corners
        crossings = [p for p in (_crossing(mesh, magnitudes, c[0], c[1], value),
                                 _crossing(mesh, magnitudes, c[1], c[2], value),
                                 _crossing(mesh, magnitudes, c[2], c[0], value)) if p is not None]
        if len(crossings) == 2:
            line.segments.append((crossings[0], crossings[1]))
    return line


def contour_lines(mesh, count: int, max_workers: Optional[int] = None) -> List[ContourLine]:
    """
    Method for tracing `count` equally spaced iso-lines.

    Parameters:
    -----------
    mesh: Mesh
        solved mesh
    count: int
        number of levels
    max_workers: int, optional
        size of the thread pool; 1 traces the levels sequentially

    Returns:
    -----------
    list of ContourLine, in increasing order of the level
    """
    levels = contour_levels(mesh, count)
    if not levels:
        return []
    magnitudes = np.abs(mesh.node_values())
    if max_workers == 1:
        lines = [contour_line(mesh, level, magnitudes) for level in levels]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            lines = list(pool.map(lambda level: contour_line(mesh, level, magnitudes), levels))
    logger.debug("Traced %d contour levels, %d segments", len(lines), sum(len(l.segments) for l in lines))
    return lines
