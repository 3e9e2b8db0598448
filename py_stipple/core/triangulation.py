"""
Delaunay triangulation provider.

Wraps ``scipy.spatial.Delaunay`` and converts its simplex/neighbor output into
a half-edge layout:

- ``triangles``: site indices grouped in triples, half-edge ``e`` runs from
  ``triangles[e]`` to ``triangles[next_halfedge(e)]``
- ``halfedges``: index of the opposite half-edge, or -1 on the convex hull
- ``hull``: hull sites in boundary order, so that ``hull[k] -> hull[k + 1]``
  follows a boundary half-edge

Every call is independent; nothing is cached between triangulations.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
import structlog
from scipy.spatial import Delaunay, QhullError

logger = structlog.get_logger()

_EMPTY = np.zeros(0, dtype=np.int32)


def next_halfedge(e: int) -> int:
    """Next half-edge within the same triangle."""
    return e - 2 if e % 3 == 2 else e + 1


def prev_halfedge(e: int) -> int:
    """Previous half-edge within the same triangle."""
    return e + 2 if e % 3 == 0 else e - 1


@dataclass(frozen=True)
class Triangulation:
    """Immutable triangulation snapshot of a site set."""

    coords: np.ndarray     # (n, 2) copy of the sites at triangulation time
    triangles: np.ndarray  # (3 * n_triangles,) site indices
    halfedges: np.ndarray  # (3 * n_triangles,) opposite half-edge or -1
    hull: np.ndarray       # hull site indices in boundary order

    @property
    def n_sites(self) -> int:
        return len(self.coords)

    @property
    def n_triangles(self) -> int:
        return len(self.triangles) // 3

    def signed_areas(self) -> np.ndarray:
        """Twice the signed area of every triangle (non-negative for this winding, joggled slivers aside)."""
        if not len(self.triangles):
            return np.zeros(0)
        a, b, c = (self.coords[self.triangles[k::3]] for k in range(3))
        return _cross(a, b, c)


def _as_points(coords) -> np.ndarray:
    points = np.asarray(coords, dtype=np.float64)
    if points.size % 2:
        raise ValueError(f"Expected an even number of coordinates, got {points.size}")
    return points.reshape(-1, 2)


def _cross(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> np.ndarray:
    # Positive for clockwise triangles in y-up coordinates (counter-clockwise on screen)
    return (c[:, 0] - a[:, 0]) * (b[:, 1] - a[:, 1]) - (b[:, 0] - a[:, 0]) * (c[:, 1] - a[:, 1])


def _line_hull(points: np.ndarray) -> np.ndarray:
    """
    Order sites that do not span a triangle along their common line.

    Sites are sorted by their x offset from the first site (y offset when the
    x offset is zero) and exact repeats are dropped.
    """
    if not len(points):
        return _EMPTY
    dx = points[:, 0] - points[0, 0]
    dy = points[:, 1] - points[0, 1]
    dists = np.where(dx != 0, dx, dy)
    hull = []
    d0 = -np.inf
    for i in np.argsort(dists, kind="stable"):
        if dists[i] > d0:
            hull.append(i)
            d0 = dists[i]
    return np.asarray(hull, dtype=np.int32)


def _spans_area(points: np.ndarray) -> bool:
    """False when every site lies exactly on one line (or one point)."""
    offsets = points - points[0]
    far = offsets[np.argmax((offsets ** 2).sum(axis=1))]
    return bool(np.any(far[0] * offsets[:, 1] - far[1] * offsets[:, 0] != 0))


def _pair_halfedges(triangles: np.ndarray) -> np.ndarray:
    edges: Dict[Tuple[int, int], int] = {}
    tri = triangles.tolist()
    for e in range(len(tri)):
        edges[(tri[e], tri[next_halfedge(e)])] = e

    halfedges = np.full(len(tri), -1, dtype=np.int32)
    for (a, b), e in edges.items():
        halfedges[e] = edges.get((b, a), -1)
    return halfedges


def _trace_hull(triangles: np.ndarray, halfedges: np.ndarray) -> np.ndarray:
    boundary = np.flatnonzero(halfedges == -1)
    if not len(boundary):
        return _EMPTY

    hull_next = {}
    for e in boundary.tolist():
        hull_next[int(triangles[e])] = int(triangles[next_halfedge(e)])

    start = int(triangles[boundary[0]])
    hull = [start]
    current = hull_next[start]
    while current != start and len(hull) < len(hull_next):
        hull.append(current)
        current = hull_next.get(current, start)
    return np.asarray(hull, dtype=np.int32)


def _orient_by_adjacency(simplices: np.ndarray, neighbors: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Give every triangle the winding of the best-conditioned one.

    Joggled output can hold slivers whose area sign on the real coordinates is
    noise, so the winding is carried across shared edges instead: a neighbor
    must traverse the shared edge in the opposite direction.
    """
    simplices = simplices.astype(np.int32, copy=True)
    neighbors = neighbors.astype(np.int64, copy=True)
    areas = _cross(points[simplices[:, 0]], points[simplices[:, 1]], points[simplices[:, 2]])

    seed = int(np.argmax(np.abs(areas)))
    if areas[seed] < 0:
        simplices[seed] = simplices[seed][[0, 2, 1]]
        neighbors[seed] = neighbors[seed][[0, 2, 1]]

    visited = np.zeros(len(simplices), dtype=bool)
    visited[seed] = True
    stack = [seed]
    while stack:
        t = stack.pop()
        tri = simplices[t].tolist()
        for k in range(3):
            u = int(neighbors[t, k])
            if u == -1 or visited[u]:
                continue
            # Edge opposite vertex k runs tri[k+1] -> tri[k+2] in t
            p, q = tri[(k + 1) % 3], tri[(k + 2) % 3]
            other = simplices[u].tolist()
            j = other.index(p)
            if other[(j + 1) % 3] == q:
                simplices[u] = simplices[u][[0, 2, 1]]
                neighbors[u] = neighbors[u][[0, 2, 1]]
            visited[u] = True
            stack.append(u)
    return simplices


def _delaunay(points: np.ndarray) -> Tuple[Optional[np.ndarray], Optional[np.ndarray]]:
    """Qhull simplices, plus their adjacency when Qhull had to joggle the input."""
    try:
        return Delaunay(points).simplices, None
    except QhullError:
        logger.debug("Qhull rejected nearly degenerate sites, joggling", sites=len(points))

    try:
        tri = Delaunay(points, qhull_options="QJ")
    except QhullError:
        logger.warning("Qhull could not triangulate joggled sites", sites=len(points))
        return None, None
    return tri.simplices, tri.neighbors


def triangulate(coords, joggle: bool = False) -> Triangulation:
    """
    Triangulate a site set.

    Args:
        coords: Flat sequence of interleaved x, y values or an (n, 2) array
        joggle: Hand flat input to Qhull too instead of returning the line
            hull; Qhull joggles whatever it cannot triangulate exactly

    Returns:
        Triangulation snapshot; sites that cannot form a triangle (fewer than
        three distinct sites, or all on one line) yield no triangles and a
        hull ordered along the line
    """
    points = _as_points(coords).copy()

    simplices = neighbors = None
    if len(points) >= 3 and (joggle or _spans_area(points)):
        simplices, neighbors = _delaunay(points)

    if simplices is None or not len(simplices):
        return Triangulation(points, _EMPTY, _EMPTY, _line_hull(points))

    if neighbors is None:
        simplices = simplices.astype(np.int32, copy=True)
        flipped = _cross(points[simplices[:, 0]], points[simplices[:, 1]], points[simplices[:, 2]]) < 0
        simplices[flipped] = simplices[flipped][:, [0, 2, 1]]
    else:
        simplices = _orient_by_adjacency(simplices, neighbors, points)

    triangles = simplices.ravel()
    halfedges = _pair_halfedges(triangles)
    hull = _trace_hull(triangles, halfedges)
    return Triangulation(points, triangles, halfedges, hull)
