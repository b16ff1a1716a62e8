"""
Unit tests for the axis-constrained plane segmenter.
"""

import math
import unittest

import numpy as np

from tabletop_pipeline.cloud import PointCloud
from tabletop_pipeline.preprocessing import estimate_normals
from tabletop_pipeline.ransac import (
    PlaneModel,
    angle_to_axis,
    axis_from_tilt,
    fit_plane_from_points,
    fit_plane_least_squares,
    required_iterations,
    segment_plane,
)
from tabletop_pipeline.synthetic import make_tabletop_frame


def tilted_plane_cloud(normal, n_plane=1500, n_clutter=300, seed=0):
    """Points on the plane through (0, 0, 1) with the given normal plus uniform clutter."""
    rng = np.random.default_rng(seed)
    normal = np.asarray(normal, dtype=float)
    normal /= np.linalg.norm(normal)
    helper = np.array([1.0, 0.0, 0.0]) if abs(normal[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
    u = np.cross(normal, helper)
    u /= np.linalg.norm(u)
    v = np.cross(normal, u)
    side = int(math.sqrt(n_plane))
    s, t = np.meshgrid(np.linspace(-0.5, 0.5, side), np.linspace(-0.5, 0.5, side))
    plane = np.array([0.0, 0.0, 1.0]) + np.outer(s.ravel(), u) + np.outer(t.ravel(), v)
    plane += rng.normal(0, 0.001, plane.shape)
    clutter = rng.uniform([-0.5, -0.5, 0.3], [0.5, 0.5, 0.8], (n_clutter, 3))
    return PointCloud(xyz=np.vstack([plane, clutter])), len(plane)


class TestPlaneModel(unittest.TestCase):

    def test_three_points(self):
        plane = fit_plane_from_points(np.array([0.0, 0, 1]), np.array([1.0, 0, 1]), np.array([0.0, 1, 1]))
        np.testing.assert_allclose(np.abs(plane.normal), [0, 0, 1])
        np.testing.assert_allclose(plane.distance_to_points(np.array([[3.0, 4.0, 1.0]])), [0.0], atol=1e-12)

    def test_collinear_points_rejected(self):
        with self.assertRaises(ValueError):
            fit_plane_from_points(np.zeros(3), np.ones(3), 2 * np.ones(3))

    def test_orientation_towards_viewpoint(self):
        plane = PlaneModel(normal=np.array([0.0, 0.0, 1.0]), d=-0.9).oriented_towards((0, 0, 0))
        np.testing.assert_allclose(plane.normal, [0, 0, -1])
        self.assertAlmostEqual(plane.d, 0.9)
        self.assertGreater(plane.signed_distance(np.array([[0.0, 0.0, 0.8]]))[0], 0)

    def test_projection_lands_on_plane(self):
        plane = PlaneModel(normal=np.array([0.0, 0.6, 0.8]), d=-1.0)
        points = np.random.default_rng(3).uniform(-1, 1, (20, 3))
        np.testing.assert_allclose(plane.signed_distance(plane.project(points)), 0.0, atol=1e-12)

    def test_least_squares_unit_normal(self):
        xyz = np.random.default_rng(4).uniform(-1, 1, (50, 3))
        xyz[:, 2] = 0.5
        plane = fit_plane_least_squares(xyz)
        self.assertAlmostEqual(float(np.linalg.norm(plane.normal)), 1.0)
        self.assertAlmostEqual(abs(plane.normal[2]), 1.0)


class TestAxisHelpers(unittest.TestCase):

    def test_angle_ignores_orientation(self):
        self.assertAlmostEqual(angle_to_axis(np.array([0, 0, -1.0]), np.array([0, 0, 1.0])), 0.0)

    def test_axis_from_tilt(self):
        axis = axis_from_tilt(0.0)
        np.testing.assert_allclose(axis, [0.0, 1.0, 0.0], atol=1e-12)
        axis = axis_from_tilt(-math.pi / 2)
        np.testing.assert_allclose(axis, [0.0, 0.0, 1.0], atol=1e-12)
        self.assertTrue(np.all(axis_from_tilt(0.8) >= 0))

    def test_required_iterations_shrinks_with_ratio(self):
        self.assertGreater(required_iterations(0.3, 0.99), required_iterations(0.9, 0.99))
        self.assertEqual(required_iterations(0.0, 0.99), math.inf)


class TestSegmentPlane(unittest.TestCase):

    def test_recovers_table_in_synthetic_frame(self):
        cloud, labels = make_tabletop_frame(n_blobs=3, n_background=0)
        normals = estimate_normals(cloud, k=10)
        fit = segment_plane(cloud, normals, axis=(0, 0, 1), rng=np.random.default_rng(0))

        self.assertIsNotNone(fit.plane)
        self.assertLess(angle_to_axis(fit.plane.normal, np.array([0, 0, 1.0])), math.radians(1.0))
        self.assertAlmostEqual(float(np.linalg.norm(fit.plane.normal)), 1.0)
        table = np.flatnonzero(labels == -1)
        self.assertGreaterEqual(fit.inlier_count, int(0.95 * len(table)))
        self.assertTrue(np.isin(fit.inliers, table).all())

    def test_recovers_tilted_plane_within_eps(self):
        true_normal = np.array([0.0, math.sin(math.radians(10)), math.cos(math.radians(10))])
        cloud, n_plane = tilted_plane_cloud(true_normal)
        normals = estimate_normals(cloud, k=10)
        fit = segment_plane(cloud, normals, axis=(0, 0, 1), eps_angle=15.0, rng=np.random.default_rng(1))

        self.assertLess(angle_to_axis(fit.plane.normal, true_normal), math.radians(1.0))
        self.assertGreaterEqual(fit.inlier_count, int(0.9 * n_plane))

    def test_rejects_plane_outside_eps(self):
        true_normal = np.array([0.0, math.sin(math.radians(40)), math.cos(math.radians(40))])
        cloud, n_plane = tilted_plane_cloud(true_normal)
        normals = estimate_normals(cloud, k=10)
        fit = segment_plane(cloud, normals, axis=(0, 0, 1), eps_angle=15.0,
                            max_iterations=200, rng=np.random.default_rng(2))

        self.assertLess(fit.inlier_count, n_plane // 2)

    def test_points_without_normals_are_not_candidates(self):
        cloud, labels = make_tabletop_frame(n_blobs=0, n_background=0)
        normals = estimate_normals(cloud, k=10)
        normals.valid[::2] = False
        fit = segment_plane(cloud, normals, rng=np.random.default_rng(3))
        self.assertTrue(np.all(fit.inliers % 2 == 1))

    def test_too_few_candidates(self):
        cloud = PointCloud(xyz=np.zeros((2, 3)))
        normals = estimate_normals(cloud, k=3)
        fit = segment_plane(cloud, normals)
        self.assertIsNone(fit.plane)
        self.assertEqual(fit.inlier_count, 0)


if __name__ == "__main__":
    unittest.main()
