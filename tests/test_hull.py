"""
Unit tests for inlier projection, hull construction and polygon area.
"""

import math
import unittest

import numpy as np

from tabletop_pipeline.cloud import PointCloud
from tabletop_pipeline.errors import DegenerateHull
from tabletop_pipeline.hull import build_hull, plane_basis, polygon_area, project_inliers
from tabletop_pipeline.ransac import PlaneModel


def rotation_about(axis, angle):
    """Rodrigues rotation matrix."""
    axis = np.asarray(axis, dtype=float)
    axis /= np.linalg.norm(axis)
    k = np.array([[0, -axis[2], axis[1]], [axis[2], 0, -axis[0]], [-axis[1], axis[0], 0]])
    return np.eye(3) + math.sin(angle) * k + (1 - math.cos(angle)) * k @ k


class TestPolygonArea(unittest.TestCase):

    def setUp(self):
        self.normal = np.array([0.0, 0.6, 0.8])
        u, v = plane_basis(self.normal)
        # 2 x 1 rectangle on the plane 0.6y + 0.8z = 1
        origin = self.normal * 1.0
        corners = [(0, 0), (2, 0), (2, 1), (0, 1)]
        self.vertices = np.array([origin + a * u + b * v for a, b in corners])

    def test_rectangle(self):
        self.assertAlmostEqual(polygon_area(self.vertices, self.normal), 2.0)

    def test_cyclic_rotation(self):
        for shift in range(4):
            rotated = np.roll(self.vertices, shift, axis=0)
            self.assertAlmostEqual(polygon_area(rotated, self.normal), 2.0)

    def test_winding_reversal(self):
        self.assertAlmostEqual(polygon_area(self.vertices[::-1], self.normal), 2.0)

    def test_rotation_about_normal(self):
        centroid = self.vertices.mean(axis=0)
        for angle in (0.3, 1.2, 2.5):
            rot = rotation_about(self.normal, angle)
            rotated = (self.vertices - centroid) @ rot.T + centroid
            self.assertAlmostEqual(polygon_area(rotated, self.normal), 2.0)

    def test_fewer_than_three_vertices(self):
        self.assertEqual(polygon_area(self.vertices[:2], self.normal), 0.0)


class TestBuildHull(unittest.TestCase):

    def setUp(self):
        rng = np.random.default_rng(0)
        xy = rng.uniform(-0.5, 0.5, (500, 2))
        z = 0.9 + rng.normal(0, 0.002, 500)
        self.cloud = PointCloud(xyz=np.column_stack([xy, z]))
        self.plane = PlaneModel(normal=np.array([0.0, 0.0, -1.0]), d=0.9)

    def test_projection_is_coplanar(self):
        projected = project_inliers(self.cloud, np.arange(500), self.plane)
        np.testing.assert_allclose(projected.xyz[:, 2], 0.9)
        self.assertEqual(len(self.cloud), 500)
        self.assertFalse(np.allclose(self.cloud.xyz[:, 2], 0.9))

    def test_hull_counter_clockwise_in_plane_basis(self):
        projected = project_inliers(self.cloud, np.arange(500), self.plane)
        hull = build_hull(projected, self.plane)

        self.assertGreaterEqual(len(hull), 3)
        np.testing.assert_allclose(self.plane.signed_distance(hull.vertices), 0.0, atol=1e-12)
        polygon = hull.polygon_2d
        signed = np.sum(polygon[:, 0] * np.roll(polygon[:, 1], -1) - np.roll(polygon[:, 0], -1) * polygon[:, 1])
        self.assertGreater(signed, 0)
        self.assertGreater(hull.area, 0.9)
        self.assertLessEqual(hull.area, 1.0)

    def test_collinear_inliers_are_degenerate(self):
        line = PointCloud(xyz=np.column_stack([np.linspace(0, 1, 20), np.zeros(20), np.full(20, 0.9)]))
        with self.assertRaises(DegenerateHull):
            build_hull(line, self.plane)

    def test_too_few_points(self):
        with self.assertRaises(DegenerateHull):
            build_hull(self.cloud.select(np.arange(2)), self.plane)


if __name__ == "__main__":
    unittest.main()
