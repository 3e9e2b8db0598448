"""
Nearest-site location over a moving site set.

The locator answers "which site is closest to (x, y)" with a greedy walk over
the Delaunay half-edge graph of the sites. Each site keeps one incoming
half-edge (boundary half-edges preferred, so hull sites can start their fan at
the hull) and hull sites know their position in the hull ordering, which lets
the walk step along the hull for queries outside the convex hull.

The topology is a value: every ``update()`` triangulates again and swaps in a
new snapshot together with the caches derived from it.
"""

import math
from typing import List, NamedTuple

import numpy as np
import structlog

from .triangulation import Triangulation, next_halfedge, triangulate

logger = structlog.get_logger()

# Largest doubled triangle area still treated as flat when testing for collinear sites
COLLINEAR_TOLERANCE = 1e-10

# Collinear sites are perturbed by this fraction of the span of their extremes
JITTER_RADIUS_SCALE = 1e-8


class Bounds(NamedTuple):
    """Axis-aligned bounds of the site domain."""
    xmin: float
    ymin: float
    xmax: float
    ymax: float


class InvalidBoundsError(ValueError):
    """Raised for bounds with xmax < xmin or ymax < ymin."""


class _Topology(NamedTuple):
    triangulation: Triangulation
    xs: List[float]
    ys: List[float]
    triangles: List[int]
    halfedges: List[int]
    hull: List[int]
    inedges: List[int]
    hull_index: List[int]
    collinear: bool


def is_collinear(triangulation: Triangulation, tolerance: float = COLLINEAR_TOLERANCE) -> bool:
    """True when no triangle has a doubled area above ``tolerance``."""
    return bool(np.all(np.abs(triangulation.signed_areas()) <= tolerance))


def _jitter_in_place(points: np.ndarray) -> None:
    order = np.lexsort((points[:, 1], points[:, 0]))
    first, last = points[order[0]], points[order[-1]]
    r = JITTER_RADIUS_SCALE * math.hypot(last[0] - first[0], last[1] - first[1])

    x = points[:, 0].copy()
    y = points[:, 1].copy()
    points[:, 0] = x + np.sin(x + y) * r
    points[:, 1] = y + np.cos(x - y) * r


class NearestSiteLocator:
    """
    Point location against a Delaunay triangulation of ``sites``.

    ``sites`` is shared with the caller: the owner moves the sites in place
    and calls ``update()`` afterwards. Queries between a move and the next
    ``update()`` still see the positions of the last rebuild.
    """

    def __init__(self, sites, bounds):
        """
        Build the locator.

        Args:
            sites: (n, 2) float64 array (or flat interleaved array) of sites;
                collinear sites are perturbed in place
            bounds: (xmin, ymin, xmax, ymax)

        Raises:
            InvalidBoundsError: If xmax < xmin or ymax < ymin
        """
        xmin, ymin, xmax, ymax = (float(v) for v in bounds)
        if not (xmax >= xmin) or not (ymax >= ymin):
            raise InvalidBoundsError(f"Invalid bounds: {(xmin, ymin, xmax, ymax)}")
        self.bounds = Bounds(xmin, ymin, xmax, ymax)

        sites = np.asarray(sites, dtype=np.float64)
        if sites.size % 2:
            raise ValueError(f"Expected an even number of coordinates, got {sites.size}")
        self.sites = sites.reshape(-1, 2)
        self.generation = 0
        self._topology = self._build()

    @property
    def n_sites(self) -> int:
        return len(self.sites)

    @property
    def triangulation(self) -> Triangulation:
        return self._topology.triangulation

    @property
    def is_collinear(self) -> bool:
        """Whether the last rebuild had to perturb collinear sites."""
        return self._topology.collinear

    @property
    def hull(self) -> List[int]:
        return list(self._topology.hull)

    def update(self) -> None:
        """Rebuild the triangulation and caches against the current sites."""
        self._topology = self._build()
        self.generation += 1

    def _build(self) -> _Topology:
        points = self.sites
        triangulation = triangulate(points)

        collinear = False
        if len(triangulation.hull) > 2 and is_collinear(triangulation):
            _jitter_in_place(points)
            triangulation = triangulate(points, joggle=True)
            collinear = True
            logger.debug("Perturbed collinear sites", sites=len(points),
                         triangles=triangulation.n_triangles)
            if not triangulation.n_triangles:
                logger.warning("Collinear sites left without triangles", sites=len(points))

        n = len(points)
        triangles = triangulation.triangles.tolist()
        halfedges = triangulation.halfedges.tolist()
        hull = triangulation.hull.tolist()
        inedges = [-1] * n
        hull_index = [-1] * n

        # An arbitrary incoming half-edge per site; hull sites take a boundary
        # half-edge so that their fan starts at the hull
        for e in range(len(halfedges)):
            p = triangles[next_halfedge(e)]
            if halfedges[e] == -1 or inedges[p] == -1:
                inedges[p] = e

        for i, site in enumerate(hull):
            hull_index[site] = i

        # 1 or 2 distinct sites: no triangle exists, link the hull sites directly
        if 0 < len(hull) <= 2:
            h0, h1 = hull[0], hull[-1]
            triangles = [h0, h1, h1]
            halfedges = [-1, -1, -1]
            inedges[h0] = 1
            if len(hull) == 2:
                inedges[h1] = 0
            logger.debug("Using synthetic topology", hull=len(hull), sites=n)

        coords = triangulation.coords
        return _Topology(
            triangulation=triangulation,
            xs=coords[:, 0].tolist(),
            ys=coords[:, 1].tolist(),
            triangles=triangles,
            halfedges=halfedges,
            hull=hull,
            inedges=inedges,
            hull_index=hull_index,
            collinear=collinear,
        )

    def find(self, x, y, hint: int = 0) -> int:
        """
        Find the site closest to (x, y).

        Args:
            x, y: Query coordinates
            hint: Site to start the walk from; the previous answer for a
                nearby query keeps the walk short; anything that is not a
                site index starts the walk at site 0

        Returns:
            Index of the nearest site, or -1 for non-finite coordinates or an
            empty site set
        """
        try:
            x = float(x)
            y = float(y)
        except (TypeError, ValueError):
            return -1
        if not (math.isfinite(x) and math.isfinite(y)):
            return -1

        topology = self._topology
        n = len(topology.inedges)
        if n == 0:
            return -1
        try:
            hint = int(hint)
        except (TypeError, ValueError, OverflowError):
            hint = 0
        if not 0 <= hint < n:
            hint = 0

        i = i0 = hint
        # Greedy moves strictly decrease the distance and hand-overs past
        # sites without edges advance the index, so 2n + 1 steps bound the walk
        for _ in range(2 * n + 1):
            c = self._step(topology, i, x, y)
            if c < 0 or c == i or c == i0:
                return c
            i = c
        return i

    @staticmethod
    def _step(topology: _Topology, i: int, x: float, y: float) -> int:
        xs, ys = topology.xs, topology.ys
        triangles, halfedges = topology.triangles, topology.halfedges
        inedges = topology.inedges

        if inedges[i] == -1:
            return (i + 1) % len(inedges)

        c = i
        dc = (x - xs[i]) ** 2 + (y - ys[i]) ** 2
        e0 = e = inedges[i]
        while True:
            t = triangles[e]
            dt = (x - xs[t]) ** 2 + (y - ys[t]) ** 2
            if dt < dc:
                dc, c = dt, t
            e = next_halfedge(e)
            if triangles[e] != i:
                break  # inconsistent adjacency
            e = halfedges[e]
            if e == -1:
                hull = topology.hull
                e = hull[(topology.hull_index[i] + 1) % len(hull)]
                if e != t and (x - xs[e]) ** 2 + (y - ys[e]) ** 2 < dc:
                    return e
                break
            if e == e0:
                break
        return c

    def neighbors(self, i: int) -> List[int]:
        """Sites sharing a Delaunay edge with site ``i``."""
        topology = self._topology
        triangles, halfedges = topology.triangles, topology.halfedges
        e0 = topology.inedges[i]
        if e0 == -1:
            return []

        found = []
        e = e0
        while True:
            found.append(triangles[e])
            e = next_halfedge(e)
            if triangles[e] != i:
                break
            e = halfedges[e]
            if e == -1:
                hull = topology.hull
                p = hull[(topology.hull_index[i] + 1) % len(hull)]
                if p != found[0]:
                    found.append(p)
                break
            if e == e0:
                break
        return [p for p in dict.fromkeys(found) if p != i]
