"""Tests for the Delaunay triangulation provider."""

import pytest
import numpy as np
from py_stipple.core.triangulation import triangulate, next_halfedge, prev_halfedge


def grid_points(nx, ny, spacing=10.0):
    xs, ys = np.meshgrid(np.arange(nx) * spacing, np.arange(ny) * spacing)
    return np.column_stack([xs.ravel(), ys.ravel()])


class TestHalfedgeLayout:
    """Test triangle and half-edge arrays."""

    @pytest.fixture
    def random_tri(self):
        rng = np.random.default_rng(7)
        return triangulate(rng.random((40, 2)) * 100)

    def test_array_lengths(self, random_tri):
        """Test that triangles and halfedges line up."""
        assert len(random_tri.triangles) % 3 == 0
        assert len(random_tri.halfedges) == len(random_tri.triangles)
        assert random_tri.n_triangles > 0

    def test_halfedges_are_symmetric(self, random_tri):
        """Test that opposite half-edges point back at each other."""
        tri = random_tri.triangles
        for e, opposite in enumerate(random_tri.halfedges):
            if opposite == -1:
                continue
            assert random_tri.halfedges[opposite] == e
            # Opposite half-edges run between the same sites in reverse
            assert tri[e] == tri[next_halfedge(opposite)]
            assert tri[next_halfedge(e)] == tri[opposite]

    def test_consistent_winding(self, random_tri):
        """Test that every triangle has the same positive orientation."""
        assert np.all(random_tri.signed_areas() > 0)

    def test_halfedge_helpers(self):
        """Test stepping inside a triangle."""
        assert [next_halfedge(e) for e in range(6)] == [1, 2, 0, 4, 5, 3]
        assert [prev_halfedge(e) for e in range(6)] == [2, 0, 1, 5, 3, 4]


class TestHull:
    """Test convex hull ordering."""

    def test_square_hull(self):
        """Test hull of a square with an interior point."""
        points = np.array([[0, 0], [10, 0], [10, 10], [0, 10], [5, 5]], dtype=float)
        result = triangulate(points)

        assert sorted(result.hull.tolist()) == [0, 1, 2, 3]
        assert 4 not in result.hull

    def test_hull_follows_boundary_halfedges(self):
        """Test that consecutive hull sites are joined by boundary half-edges."""
        result = triangulate(grid_points(5, 4))
        tri = result.triangles
        boundary = {
            (int(tri[e]), int(tri[next_halfedge(e)]))
            for e in np.flatnonzero(result.halfedges == -1)
        }
        hull = result.hull.tolist()

        assert len(boundary) == len(hull)
        for k, site in enumerate(hull):
            assert (site, hull[(k + 1) % len(hull)]) in boundary

    def test_accepts_flat_coordinates(self):
        """Test that flat interleaved input matches (n, 2) input."""
        points = np.array([[0, 0], [4, 1], [1, 5], [6, 6]], dtype=float)
        flat = triangulate(points.ravel())
        paired = triangulate(points)

        np.testing.assert_array_equal(flat.triangles, paired.triangles)
        np.testing.assert_array_equal(flat.hull, paired.hull)

    def test_odd_coordinate_count(self):
        """Test that an odd number of scalars is rejected."""
        with pytest.raises(ValueError):
            triangulate([0.0, 1.0, 2.0])


class TestDegenerateInput:
    """Test inputs that cannot form a triangle."""

    def test_empty(self):
        result = triangulate(np.zeros((0, 2)))
        assert result.n_triangles == 0
        assert len(result.hull) == 0

    def test_single_site(self):
        result = triangulate([3.0, 4.0])
        assert result.n_triangles == 0
        assert result.hull.tolist() == [0]

    def test_two_sites(self):
        result = triangulate([[0.0, 0.0], [5.0, 5.0]])
        assert result.n_triangles == 0
        assert result.hull.tolist() == [0, 1]

    def test_collinear_sites_ordered_along_line(self):
        """Test that collinear sites give a hull sorted along the line."""
        points = np.array([[2, 2], [0, 0], [3, 3], [1, 1]], dtype=float)
        result = triangulate(points)

        assert result.n_triangles == 0
        assert result.hull.tolist() == [1, 3, 0, 2]

    def test_vertical_line_uses_y(self):
        points = np.array([[1, 5], [1, 2], [1, 9]], dtype=float)
        result = triangulate(points)
        assert result.hull.tolist() == [1, 0, 2]

    def test_duplicates_dropped(self):
        """Test that coincident sites appear once in the hull."""
        points = np.array([[1, 1], [1, 1], [1, 1]], dtype=float)
        result = triangulate(points)
        assert result.hull.tolist() == [0]

    def test_joggled_line(self):
        """Test that joggling turns a line into a consistent triangulation."""
        points = np.array([[0.0, i * 0.001] for i in range(8)])
        result = triangulate(points, joggle=True)

        assert result.n_triangles > 0
        assert set(result.triangles.tolist()) == set(range(8))

        halfedges = result.halfedges
        for e, opposite in enumerate(halfedges):
            if opposite != -1:
                assert halfedges[opposite] == e
                assert result.triangles[opposite] == result.triangles[next_halfedge(e)]

        boundary = {(int(result.triangles[e]), int(result.triangles[next_halfedge(e)]))
                    for e in np.flatnonzero(halfedges == -1)}
        hull = result.hull.tolist()
        for a, b in zip(hull, hull[1:] + hull[:1]):
            assert (a, b) in boundary


def test_snapshot_is_independent_of_input():
    """Test that later changes to the input do not leak into a snapshot."""
    points = np.array([[0, 0], [10, 0], [0, 10]], dtype=float)
    result = triangulate(points)
    points += 100.0

    assert result.coords.max() == 10.0
